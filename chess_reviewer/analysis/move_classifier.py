# chess_reviewer/analysis/move_classifier.py
"""
Classifies chess moves based on engine analysis and tactical heuristics.

This module provides the `MoveClassifier` class, which labels a played move by
comparing the evaluation of the position before it with the evaluation after
it. Ordinary moves are graded by evaluation loss against quadratic threshold
curves; top engine moves may be upgraded to "brilliant" (a sound sacrifice) or
"great" (the only way to punish a blunder); mate transitions are graded by
mate distance.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import chess

from chess_reviewer.analysis.tactics import get_attackers, is_piece_hanging
from chess_reviewer.config import settings
from chess_reviewer.types import Centipawn, Classification, EngineLine, Evaluation, Mate
from chess_reviewer.utils.chess_utils import PROMOTIONS, for_mover, mover_of, piece_value

logger = logging.getLogger(settings.APP_NAME + ".MoveClassifier")

_COEFFICIENTS = dict(settings.EVALUATION_LOSS_COEFFICIENTS)

CENTIPAWN_CLASSIFICATIONS: List[Classification] = [
    *(classification for classification, _ in settings.EVALUATION_LOSS_COEFFICIENTS),
    Classification.BLUNDER,
]
"""Labels available to the threshold walk, strictest first."""


def evaluation_loss_threshold(classification: Classification, previous_value: float) -> float:
    """
    Maximum evaluation loss (in centipawns) a move may have and still earn
    `classification`, given the evaluation before the move. Labels without a
    curve accept any loss.
    """
    if classification not in _COEFFICIENTS:
        return float("inf")
    a, b, c = _COEFFICIENTS[classification]
    magnitude = abs(previous_value)
    return max(a * magnitude ** 2 + b * magnitude + c, 0.0)


def _line_with_rank(lines: List[EngineLine], rank: int) -> Optional[EngineLine]:
    return next((line for line in lines if line.rank == rank), None)


@dataclass(frozen=True)
class _MoveContext:
    """Everything the individual rules need about one move, computed once."""
    previous_fen: str
    fen: str
    board_before: chess.Board
    board_after: chess.Board
    mover: chess.Color
    move_uci: str
    move_san: str
    top_line: EngineLine
    second_line: EngineLine
    previous_evaluation: Evaluation
    evaluation: Evaluation
    evaluation_loss: float

    @property
    def no_mate(self) -> bool:
        return isinstance(self.previous_evaluation, Centipawn) and isinstance(self.evaluation, Centipawn)

    @property
    def absolute_evaluation(self) -> int:
        return for_mover(self.evaluation, self.mover)

    @property
    def previous_absolute_evaluation(self) -> int:
        return for_mover(self.previous_evaluation, self.mover)

    @property
    def destination(self) -> chess.Square:
        return chess.parse_square(self.move_uci[2:4])


class MoveClassifier:
    """Analyzes and classifies chess moves based on engine evaluations and heuristics."""

    def __init__(self):
        """Initializes the MoveClassifier."""
        logger.debug("MoveClassifier initialized.")

    def classify(
        self,
        previous_fen: str,
        fen: str,
        previous_lines: List[EngineLine],
        lines: List[EngineLine],
        move_uci: str,
        move_san: str,
        previous_classification: Optional[Classification] = None,
        cutoff_evaluation: Optional[Evaluation] = None,
    ) -> Classification:
        """
        Labels the move `move_uci` that led from `previous_fen` to `fen`.

        `previous_classification` is the label of the move before this one and
        gates the "great" upgrade. `cutoff_evaluation` is an optional extra
        reference evaluation for the position before the move. Any failure
        while analysing the position yields `book`.
        """
        try:
            return self._classify(
                previous_fen, fen, previous_lines, lines, move_uci, move_san,
                previous_classification, cutoff_evaluation,
            )
        except Exception as e:
            logger.warning(f"Could not classify move {move_uci} from '{previous_fen}': {e}", exc_info=True)
            return Classification.BOOK

    # --- Decision sequence ---

    def _classify(
        self,
        previous_fen: str,
        fen: str,
        previous_lines: List[EngineLine],
        lines: List[EngineLine],
        move_uci: str,
        move_san: str,
        previous_classification: Optional[Classification],
        cutoff_evaluation: Optional[Evaluation],
    ) -> Classification:
        if len(previous_lines) < 2:
            return Classification.FORCED

        board_before = chess.Board(previous_fen)
        if board_before.legal_moves.count() == 1:
            return Classification.FORCED

        board_after = chess.Board(fen)
        if board_after.is_checkmate():
            return Classification.BEST

        top_line = _line_with_rank(previous_lines, 1)
        second_line = _line_with_rank(previous_lines, 2)
        if top_line is None or second_line is None:
            return Classification.FORCED

        current_top = _line_with_rank(lines, 1)
        evaluation = current_top.evaluation if current_top is not None else Centipawn(0)

        mover = mover_of(fen)
        context = _MoveContext(
            previous_fen=previous_fen,
            fen=fen,
            board_before=board_before,
            board_after=board_after,
            mover=mover,
            move_uci=move_uci,
            move_san=move_san,
            top_line=top_line,
            second_line=second_line,
            previous_evaluation=top_line.evaluation,
            evaluation=evaluation,
            evaluation_loss=self._evaluation_loss(
                mover, top_line, previous_lines, evaluation, move_uci, cutoff_evaluation
            ),
        )

        if move_uci == top_line.move_uci:
            return self._classify_top_move(context, previous_classification)

        classification = self._classify_other_move(context)
        return self._apply_decided_position_clamps(context, classification)

    @staticmethod
    def _evaluation_loss(
        mover: chess.Color,
        top_line: EngineLine,
        previous_lines: List[EngineLine],
        evaluation: Evaluation,
        move_uci: str,
        cutoff_evaluation: Optional[Evaluation],
    ) -> float:
        """
        The mover's loss of ground, the most charitable of three readings: against
        the previous best line, against the cutoff evaluation and against the
        previous line for this very move. Positive means the mover lost ground.
        """
        def loss(reference: Evaluation, result: Evaluation) -> float:
            return for_mover(reference, mover) - for_mover(result, mover)

        losses = [loss(top_line.evaluation, evaluation)]
        if cutoff_evaluation is not None:
            losses.append(loss(cutoff_evaluation, evaluation))
        matching_line = next((line for line in previous_lines if line.move_uci == move_uci), None)
        if matching_line is not None:
            losses.append(loss(top_line.evaluation, matching_line.evaluation))
        return min(losses)

    def _classify_top_move(
        self, context: _MoveContext, previous_classification: Optional[Classification]
    ) -> Classification:
        if self._is_brilliant(context):
            logger.debug(f"Move {context.move_uci} classified as brilliant.")
            return Classification.BRILLIANT
        if self._is_great(context, previous_classification):
            logger.debug(f"Move {context.move_uci} classified as great.")
            return Classification.GREAT
        return Classification.BEST

    def _classify_other_move(self, context: _MoveContext) -> Classification:
        previous, current = context.previous_evaluation, context.evaluation

        if isinstance(previous, Centipawn) and isinstance(current, Centipawn):
            for classification in CENTIPAWN_CLASSIFICATIONS:
                if context.evaluation_loss <= evaluation_loss_threshold(classification, previous.value):
                    return classification
            return Classification.BLUNDER

        absolute = context.absolute_evaluation
        previous_absolute = context.previous_absolute_evaluation

        if isinstance(previous, Centipawn) and isinstance(current, Mate):
            # A mate appeared on the board.
            if absolute > 0:
                return Classification.BEST
            if absolute >= -settings.MATE_BLUNDER_MAX_DISTANCE:
                return Classification.BLUNDER
            if absolute >= -settings.MATE_MISTAKE_MAX_DISTANCE:
                return Classification.MISTAKE
            return Classification.INACCURACY

        if isinstance(previous, Mate) and isinstance(current, Centipawn):
            # A mate disappeared from the board.
            if previous_absolute < 0 and absolute < 0:
                return Classification.BEST
            if absolute >= settings.LOST_MATE_GOOD_CP:
                return Classification.GOOD
            if absolute >= settings.LOST_MATE_INACCURACY_CP:
                return Classification.INACCURACY
            if absolute >= settings.LOST_MATE_MISTAKE_CP:
                return Classification.MISTAKE
            return Classification.BLUNDER

        # Mate before and after.
        if previous_absolute > 0:
            if absolute <= -settings.MATE_MISTAKE_DISTANCE:
                return Classification.MISTAKE
            if absolute < 0:
                return Classification.BLUNDER
            if absolute < previous_absolute:
                return Classification.BEST
            if absolute <= previous_absolute + settings.MATE_EXCELLENT_TOLERANCE:
                return Classification.EXCELLENT
            return Classification.GOOD
        if absolute == previous_absolute:
            return Classification.BEST
        return Classification.GOOD

    @staticmethod
    def _apply_decided_position_clamps(context: _MoveContext, classification: Classification) -> Classification:
        """Blunders are not reported in positions that were already decided."""
        if classification != Classification.BLUNDER:
            return classification
        # Only reachable from a mate score: between two centipawn scores the
        # blunder threshold at this evaluation is wider than any loss that
        # still ends above the decided line.
        if isinstance(context.evaluation, Centipawn) and context.absolute_evaluation >= settings.DECIDED_EVALUATION_CP:
            return Classification.GOOD
        if context.no_mate and context.previous_absolute_evaluation <= -settings.DECIDED_EVALUATION_CP:
            return Classification.GOOD
        return classification

    # --- Brilliant & Great ---

    def _is_brilliant(self, context: _MoveContext) -> bool:
        if not context.no_mate or context.absolute_evaluation < 0:
            return False
        if for_mover(context.second_line.evaluation, context.mover) >= settings.BRILLIANT_WINNING_ANYWAY_CP:
            return False
        if context.board_before.is_check():
            return False
        if len(context.move_uci) > 4 or "=" in context.move_san:
            return False

        sacrificed = self._sacrificed_pieces(context)
        if not sacrificed:
            return False
        return self._any_sacrifice_viable(context, sacrificed)

    @staticmethod
    def _sacrificed_pieces(context: _MoveContext) -> List[chess.Square]:
        """The mover's own non-pawn, non-king pieces left hanging by the move."""
        captured = context.board_before.piece_at(context.destination)
        captured_value = piece_value(captured.piece_type) if captured else 0

        sacrificed = []
        for square, piece in context.board_after.piece_map().items():
            if piece.color != context.mover or piece.piece_type in (chess.KING, chess.PAWN):
                continue
            # Won more material than the piece is worth: not a sacrifice.
            if captured_value >= piece_value(piece.piece_type):
                continue
            if is_piece_hanging(context.previous_fen, context.fen, square):
                sacrificed.append(square)
        return sacrificed

    @staticmethod
    def _any_sacrifice_viable(context: _MoveContext, sacrificed: List[chess.Square]) -> bool:
        """
        Whether the opponent can actually take one of the sacrificed pieces.

        A capture is not viable when it leaves one of the capturer's pieces,
        worth at least the most valuable sacrificed piece, hanging in turn.
        For pieces below a rook the capture must also not allow mate in one.
        """
        board_after = context.board_after
        max_sacrificed_value = max(piece_value(board_after.piece_type_at(square)) for square in sacrificed)

        for square in sacrificed:
            target_value = piece_value(board_after.piece_type_at(square))
            for attacker in get_attackers(context.fen, square):
                for promotion in PROMOTIONS:
                    capture = chess.Move(attacker.square, square, promotion=promotion)
                    if not board_after.is_legal(capture):
                        continue
                    test_board = board_after.copy(stack=False)
                    test_board.push(capture)
                    capture_fen = test_board.fen()

                    attacker_pinned = any(
                        piece.color != test_board.turn
                        and piece.piece_type not in (chess.KING, chess.PAWN)
                        and piece_value(piece.piece_type) >= max_sacrificed_value
                        and is_piece_hanging(context.fen, capture_fen, enemy_square)
                        for enemy_square, piece in test_board.piece_map().items()
                    )
                    if attacker_pinned:
                        continue
                    if target_value >= settings.BRILLIANT_UNCONDITIONAL_SACRIFICE_VALUE:
                        return True
                    if not _allows_mate_in_one(test_board):
                        return True
        return False

    @staticmethod
    def _is_great(context: _MoveContext, previous_classification: Optional[Classification]) -> bool:
        if previous_classification != Classification.BLUNDER:
            return False
        if not context.no_mate or not isinstance(context.second_line.evaluation, Centipawn):
            return False
        gap = abs(context.top_line.evaluation.value - context.second_line.evaluation.value)
        if gap < settings.GREAT_MIN_GAP_CP:
            return False
        return not is_piece_hanging(context.previous_fen, context.fen, context.destination)


def _allows_mate_in_one(board: chess.Board) -> bool:
    """Whether the side to move on `board` has a mating move."""
    for move in board.legal_moves:
        board.push(move)
        is_mate = board.is_checkmate()
        board.pop()
        if is_mate:
            return True
    return False
