# chess_reviewer/engine/orchestrator.py
"""
Drives a UCI engine session to evaluate single positions.

The orchestrator owns at most one engine session at a time. It submits the
position, collects the engine's progress reports, enforces a depth-scaled time
budget and always hands back a usable result: at least two ranked lines,
normalized to White's perspective. Engine crashes, malformed output and
timeouts are recovered here and replaced by synthetic lines; the only
exception that escapes is `AnalysisCancelledError`, raised when the caller
abandons the run.
"""
import logging
import threading
from dataclasses import replace
from typing import Dict, List, Optional

import chess
import chess.engine

from chess_reviewer.config import settings
from chess_reviewer.engine.session import EngineSession, SessionFactory
from chess_reviewer.exceptions import AnalysisCancelledError, EngineError
from chess_reviewer.types import Centipawn, EngineLine, Evaluation, EvaluationResult, EvaluationSource, Mate
from chess_reviewer.utils.chess_utils import side_to_move, worsen_for_side

logger = logging.getLogger(settings.APP_NAME + ".Orchestrator")


def clamp_depth(depth: int) -> int:
    return max(settings.MIN_SEARCH_DEPTH, min(settings.MAX_SEARCH_DEPTH, depth))


def search_timeout_for_depth(depth: int) -> float:
    """Looks up the wall-clock budget for a search of the given depth."""
    budget = settings.SEARCH_TIMEOUT_STEPS[0][1]
    for min_depth, seconds in settings.SEARCH_TIMEOUT_STEPS:
        if depth >= min_depth:
            budget = seconds
    return budget


def _candidate_moves(board: chess.Board, exclude: Optional[str] = None) -> List[str]:
    """Legal moves in a stable order, preferring common developing moves."""
    legal = [move.uci() for move in board.legal_moves]
    preferred = settings.FALLBACK_OPENING_MOVES if board.board_fen() == chess.Board().board_fen() \
        else settings.FALLBACK_DEFAULT_MOVES[board.turn]
    ordered = [move for move in preferred if move in legal]
    ordered += sorted(move for move in legal if move not in ordered)
    return [move for move in ordered if move != exclude]


def synthesize_second_line(board: chess.Board, best: EngineLine) -> EngineLine:
    """
    Builds a rank-2 line slightly worse than `best` for the side to move.

    The candidate move differs from the best move whenever the position offers
    an alternative; with a single legal move the null move is used instead.
    """
    alternatives = _candidate_moves(board, exclude=best.move_uci)
    return EngineLine(
        rank=2,
        search_depth=best.search_depth,
        reported_depth=best.reported_depth,
        evaluation=worsen_for_side(best.evaluation, board.turn, settings.SYNTHETIC_LINE_PENALTY_CP),
        move_uci=alternatives[0] if alternatives else settings.NULL_MOVE_UCI,
    )


def fallback_lines(fen: str, reached_depth: int = 0, best_move: Optional[str] = None) -> List[EngineLine]:
    """
    Produces the synthetic two-line evaluation used when the engine fails.

    The first line defaults to a standard opening move in the initial position
    and to a colour-appropriate move elsewhere; the evaluation is level.
    """
    depth = max(reached_depth, settings.FALLBACK_MIN_DEPTH)
    try:
        board = chess.Board(fen)
    except ValueError:
        board = None

    if board is not None:
        candidates = _candidate_moves(board)
        if best_move in candidates:
            candidates.remove(best_move)
            candidates.insert(0, best_move)
        turn = board.turn
    else:
        turn = side_to_move(fen)
        candidates = list(settings.FALLBACK_DEFAULT_MOVES[turn])

    first_move = candidates[0] if candidates else settings.NULL_MOVE_UCI
    best = EngineLine(
        rank=1,
        search_depth=depth,
        reported_depth=depth,
        evaluation=Centipawn(0),
        move_uci=first_move,
    )
    if board is not None:
        return [best, synthesize_second_line(board, best)]

    second_move = candidates[1] if len(candidates) > 1 else settings.NULL_MOVE_UCI
    return [
        best,
        EngineLine(
            rank=2,
            search_depth=depth,
            reported_depth=depth,
            evaluation=worsen_for_side(best.evaluation, turn, settings.SYNTHETIC_LINE_PENALTY_CP),
            move_uci=second_move,
        ),
    ]


class EvaluationOrchestrator:
    """
    Evaluates positions through an engine session it owns.

    Sessions are created lazily from the factory and reused across calls. A
    session that misbehaves is closed immediately and replaced on the next
    call. This class is a context manager to ensure the session is closed.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        multipv_count: int = settings.DEFAULT_MULTI_PV,
    ):
        self._session_factory = session_factory
        self.multipv_count: int = max(settings.MIN_MULTI_PV, multipv_count)
        self._session: Optional[EngineSession] = None
        self._is_closed: bool = False
        logger.debug(f"EvaluationOrchestrator initialized (MultiPV {self.multipv_count}).")

    # --- Session lifecycle ---

    def _acquire_session(self) -> EngineSession:
        if self._is_closed:
            raise EngineError("Operation on a closed EvaluationOrchestrator.")
        if self._session is None:
            self._session = self._session_factory()
        return self._session

    def _discard_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            session.close()
        except Exception as e:
            logger.warning(f"Error while closing engine session: {e}", exc_info=True)

    def close(self) -> None:
        if self._is_closed:
            return
        self._discard_session()
        self._is_closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # --- Public API ---

    def evaluate(
        self, fen: str, target_depth: int, cancel_event: Optional[threading.Event] = None
    ) -> List[EngineLine]:
        """Returns the ranked lines for `fen`: empty only for checkmate, otherwise at least two."""
        return self.analyse(fen, target_depth, cancel_event).lines

    def analyse(
        self, fen: str, target_depth: int, cancel_event: Optional[threading.Event] = None
    ) -> EvaluationResult:
        """Evaluates `fen` and reports where the lines came from."""
        try:
            board = chess.Board(fen)
        except ValueError:
            board = None
        if board is None or not board.is_valid():
            logger.warning(f"Invalid FEN submitted for evaluation, using fallback lines: {fen}")
            return EvaluationResult(fallback_lines(fen), EvaluationSource.FALLBACK)

        if board.is_checkmate():
            return EvaluationResult([], EvaluationSource.ENGINE)
        if board.is_stalemate():
            logger.debug(f"Stalemate, nothing to search: {fen}")
            return EvaluationResult(fallback_lines(fen), EvaluationSource.FALLBACK)

        depth = clamp_depth(target_depth)
        timeout = search_timeout_for_depth(depth)

        search = _Search(board, depth)
        try:
            session = self._acquire_session()
            self._run_search(session, search, timeout, cancel_event)
        except AnalysisCancelledError:
            self._discard_session()
            raise
        except (EngineError, OSError, ValueError) as e:
            logger.warning(f"Engine failure on '{fen}': {e}. Using fallback lines.")
            self._discard_session()
            return EvaluationResult(
                fallback_lines(fen, search.max_depth, search.best_move),
                EvaluationSource.FALLBACK,
                search.max_depth,
            )

        lines = search.finalize()
        if not lines:
            logger.info(f"No usable engine lines for '{fen}', using fallback lines.")
            return EvaluationResult(
                fallback_lines(fen, search.max_depth, search.best_move),
                EvaluationSource.FALLBACK,
                search.max_depth,
            )
        return EvaluationResult(lines, EvaluationSource.ENGINE, search.max_depth)

    # --- Search ---

    def _run_search(
        self,
        session: EngineSession,
        search: "_Search",
        timeout: float,
        cancel_event: Optional[threading.Event],
    ) -> None:
        output = session.search(search.board, search.depth, self.multipv_count, timeout, cancel_event)
        for info in output.infos:
            search.consume(info)
        if output.timed_out:
            logger.warning(
                f"Search stopped at depth {search.max_depth}/{search.depth} after {timeout:.0f}s."
            )
        if output.unresponsive:
            # The lines gathered so far still count.
            logger.warning("Engine ignored the stop request; discarding the session.")
            self._discard_session()


def _to_evaluation(score: chess.engine.PovScore) -> Evaluation:
    """Converts an engine score to the White-relative evaluation model."""
    white = score.white()
    if white.is_mate():
        return Mate(white.mate())
    return Centipawn(white.score())


class _Search:
    """Accumulates the infos reported by one depth-limited search."""

    def __init__(self, board: chess.Board, depth: int):
        self.board = board
        self.depth = depth
        self.max_depth: int = 0
        self.best_move: Optional[str] = None
        self._lines: Dict[int, EngineLine] = {}
        self._legal = {move.uci() for move in board.legal_moves}

    def consume(self, info: chess.engine.InfoDict) -> None:
        """Feeds one engine info; keeps the deepest exact line per rank."""
        depth = info.get("depth")
        if depth is not None:
            self.max_depth = max(self.max_depth, depth)

        score = info.get("score")
        pv = info.get("pv")
        if score is None or not pv:
            return
        rank = info.get("multipv", 1)
        move = pv[0].uci()
        if rank == 1:
            self.best_move = move
        if info.get("lowerbound") or info.get("upperbound"):
            logger.debug(f"Skipping inexact score for rank {rank} at depth {depth}.")
            return
        if move not in self._legal:
            logger.debug(f"Dropping line with illegal first move {move}.")
            return

        current = self._lines.get(rank)
        line_depth = depth or 0
        if current is None or line_depth >= current.search_depth:
            self._lines[rank] = EngineLine(
                rank=rank,
                search_depth=line_depth,
                reported_depth=line_depth,
                evaluation=_to_evaluation(score),
                move_uci=move,
                continuation_uci=tuple(m.uci() for m in pv[1:]),
            )

    def finalize(self) -> List[EngineLine]:
        """Returns the collected lines deduplicated and renumbered by rank."""
        lines: List[EngineLine] = []
        seen_moves = set()
        for rank in sorted(self._lines):
            line = self._lines[rank]
            if line.move_uci in seen_moves:
                continue
            seen_moves.add(line.move_uci)
            lines.append(replace(line, rank=len(lines) + 1, reported_depth=self.max_depth))

        if len(lines) == 1:
            lines.append(synthesize_second_line(self.board, lines[0]))
        return lines
