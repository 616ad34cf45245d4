# chess_reviewer/types.py
"""
A central module for shared data structures and type definitions.

Evaluations are modelled as a small tagged union (`Centipawn | Mate`) and are
always expressed from White's point of view: a positive value favours White
regardless of whose turn it is.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple, Union

import chess
import chess.pgn


@dataclass(frozen=True)
class Centipawn:
    """A numeric evaluation in 1/100ths of a pawn, White's perspective."""
    value: int

    def negated(self) -> "Centipawn":
        return Centipawn(-self.value)


@dataclass(frozen=True)
class Mate:
    """
    A forced mate score, White's perspective.

    `value` is the distance to mate in plies; its sign tells which side delivers
    it. A value of 0 means the position on the board is already checkmate.
    """
    value: int

    def negated(self) -> "Mate":
        return Mate(-self.value)


Evaluation = Union[Centipawn, Mate]


class Classification(str, Enum):
    """The ten move quality labels, ordered from strongest to weakest."""
    BRILLIANT = "brilliant"
    GREAT = "great"
    BEST = "best"
    EXCELLENT = "excellent"
    GOOD = "good"
    INACCURACY = "inaccuracy"
    MISTAKE = "mistake"
    BLUNDER = "blunder"
    BOOK = "book"
    FORCED = "forced"


class EvaluationSource(str, Enum):
    """Where the evaluation lines of a position came from."""
    ENGINE = "engine"
    CLOUD = "cloud"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class EngineLine:
    """A single ranked candidate continuation reported for a position."""
    rank: int  # 1-based, 1 = principal variation
    search_depth: int  # depth at which this line was reported
    reported_depth: int  # deepest depth the search reached overall
    evaluation: Evaluation
    move_uci: str
    continuation_uci: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MoveRecord:
    """The move that produced a position, in both notations."""
    san: str
    uci: str


@dataclass
class Position:
    """
    One entry of a game's position sequence.

    Created by the position sequence provider, enriched with evaluation lines
    by the orchestrator pool, then with a classification and an opening name.
    """
    fen: str
    move: Optional[MoveRecord] = None
    evaluation_lines: List[EngineLine] = field(default_factory=list)
    classification: Optional[Classification] = None
    opening: Optional[str] = None
    evaluation_source: EvaluationSource = EvaluationSource.ENGINE
    cutoff_evaluation: Optional[Evaluation] = None

    @property
    def top_line(self) -> Optional[EngineLine]:
        return next((line for line in self.evaluation_lines if line.rank == 1), None)


@dataclass(frozen=True)
class BoardPiece:
    """A piece located on a square, as returned by the tactical primitives."""
    square: chess.Square
    color: chess.Color
    piece_type: chess.PieceType


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of one orchestrated evaluation."""
    lines: List[EngineLine]
    source: EvaluationSource
    reached_depth: int = 0


@dataclass
class GameReport:
    """Per-side accuracies and classification tallies for a reviewed game."""
    accuracies: Dict[str, float]
    classifications: Dict[str, Dict[Classification, int]]
    positions: List[Position]


@dataclass(frozen=True)
class EngineLineInfo:
    """Holds pre-formatted data for a single engine analysis line for annotation."""
    move_san: str
    eval_str: str  # e.g., "+1.23" or "#-3"
    is_best_line: bool = False
    pv_san_list: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnnotationContext:
    """A container for all data required by the Annotator."""
    classification: Optional[Classification]
    eval_after_move_wpov_str: str  # e.g., "[%eval 0.50,20]"
    clk_comment_part: str
    user_comment_part: str
    engine_lines: List[EngineLineInfo]
    analysis_depth: int
    multipv_setting: int


@dataclass(frozen=True)
class ProcessedGameResult:
    """The final output from processing a single game."""
    game_id: str
    annotated_game: chess.pgn.Game
    report: GameReport


class ProgressReporter(Protocol):
    """
    A protocol defining the interface for reporting progress.
    This allows the core logic to report progress without being tied
    to a specific UI implementation like tqdm.
    """
    def reset(self, total: int = 0) -> None:
        """Resets the reporter for a new task with a given total."""
        ...

    def update(self, n: int = 1) -> None:
        """Updates the progress by n steps."""
        ...

    def set_description(self, desc: str) -> None:
        """Sets the description text for the current task."""
        ...

    def close(self) -> None:
        """Closes or finalizes the progress display."""
        ...
