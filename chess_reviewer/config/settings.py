# chess_reviewer/config/settings.py
"""
Configuration settings for the Chess Reviewer application.

This module centralizes all tunable parameters, default values, thresholds,
and file paths used throughout the application. This approach promotes
maintainability by providing a single source of truth for configuration.
"""
from typing import Dict, Final, Tuple

from chess_reviewer.types import Classification

# --- Analysis Defaults ---
DEFAULT_ANALYSIS_DEPTH: Final[int] = 18
"""Default target depth for engine searches."""

MIN_SEARCH_DEPTH: Final[int] = 1
MAX_SEARCH_DEPTH: Final[int] = 30
"""Requested depths are clamped into this range before a search is issued."""

DEFAULT_MULTI_PV: Final[int] = 3
"""
Number of ranked lines requested from the engine. At least two are required
downstream; a third gives the classifier a wider comparison base.
"""

MIN_MULTI_PV: Final[int] = 2

# --- Search Time Budget ---
# (minimum depth, seconds). The last step whose minimum depth is <= the
# requested depth applies. Must stay monotonic.
SEARCH_TIMEOUT_STEPS: Final[Tuple[Tuple[int, float], ...]] = (
    (0, 5.0),
    (12, 10.0),
    (16, 20.0),
    (19, 45.0),
    (22, 180.0),
)

STOP_GRACE_SECONDS: Final[float] = 2.0
"""How long a stopped search may take to wind down after a timeout."""

ENGINE_POLL_INTERVAL_SECONDS: Final[float] = 0.25
"""Sleep between polls of a running search, so cancellation is noticed quickly."""

# --- Synthetic Lines ---
SYNTHETIC_LINE_PENALTY_CP: Final[int] = 25
"""How much worse (for the side to move) a synthesized second line is."""

FALLBACK_MIN_DEPTH: Final[int] = 10
"""Depth reported on fallback lines when the engine reached less than this."""

FALLBACK_OPENING_MOVES: Final[Tuple[str, str]] = ("e2e4", "d2d4")
"""Fallback candidates in the initial position."""

FALLBACK_DEFAULT_MOVES: Final[Dict[bool, Tuple[str, ...]]] = {
    True: ("e2e4", "d2d4", "g1f3", "c2c4"),   # White to move
    False: ("e7e5", "d7d5", "g8f6", "c7c5"),  # Black to move
}

NULL_MOVE_UCI: Final[str] = "0000"

# --- Worker Pool ---
DEFAULT_WORKER_COUNT: Final[int] = 4
MIN_WORKER_COUNT: Final[int] = 2
MAX_WORKER_COUNT: Final[int] = 8

# --- Stockfish Engine Parameters ---
DEFAULT_STOCKFISH_THREADS: Final[int] = 1
"""Threads per engine process. The pool already runs several processes."""

DEFAULT_STOCKFISH_HASH_MB: Final[int] = 128
"""Hash memory (in MB) per engine process."""

ENGINE_START_TIMEOUT_SECONDS: Final[float] = 10.0
"""How long to wait for the engine to finish the UCI handshake."""

STOCKFISH_VERSION_UNKNOWN: Final[str] = "Unknown"

# --- Cloud Evaluation ---
CLOUD_EVAL_URL: Final[str] = "https://lichess.org/api/cloud-eval"
CLOUD_EVAL_TIMEOUT_SECONDS: Final[float] = 5.0

# --- Classification ---
CLASSIFICATION_WEIGHTS: Final[Dict[Classification, float]] = {
    Classification.BRILLIANT: 1.0,
    Classification.GREAT: 1.0,
    Classification.BEST: 1.0,
    Classification.BOOK: 1.0,
    Classification.FORCED: 1.0,
    Classification.EXCELLENT: 0.9,
    Classification.GOOD: 0.65,
    Classification.INACCURACY: 0.4,
    Classification.MISTAKE: 0.2,
    Classification.BLUNDER: 0.0,
}
"""Accuracy weight of each label, used by the report aggregator."""

# Maximum evaluation loss for a label: a*|prev|^2 + b*|prev| + c, floored at 0.
# Ordered from strictest to most lenient; anything beyond the last is a blunder.
EVALUATION_LOSS_COEFFICIENTS: Final[Tuple[Tuple[Classification, Tuple[float, float, float]], ...]] = (
    (Classification.BEST, (0.0001, 0.0236, -3.7143)),
    (Classification.EXCELLENT, (0.0002, 0.1231, 27.5455)),
    (Classification.GOOD, (0.0002, 0.2643, 60.5455)),
    (Classification.INACCURACY, (0.0002, 0.3624, 108.0909)),
    (Classification.MISTAKE, (0.0003, 0.4027, 225.8182)),
)

POSITIVE_CLASSIFICATIONS: Final[Tuple[Classification, ...]] = (
    Classification.BEST,
    Classification.BRILLIANT,
    Classification.EXCELLENT,
    Classification.GREAT,
)
"""Labels a cloud-evaluated opening move may carry before being turned into `book`."""

# --- Brilliant & Great Move Detection ---
BRILLIANT_WINNING_ANYWAY_CP: Final[int] = 700
"""No brilliancy when the second-best line already wins by this much."""

BRILLIANT_UNCONDITIONAL_SACRIFICE_VALUE: Final[int] = 5
"""Sacrifices worth at least a rook count even if the capture allows mate in one."""

GREAT_MIN_GAP_CP: Final[int] = 150
"""Minimum gap between the two best lines for a 'great' punishment of a blunder."""

# --- Decided Position Clamp ---
DECIDED_EVALUATION_CP: Final[int] = 600

# --- Mate Transition Bands (mover's perspective) ---
MATE_BLUNDER_MAX_DISTANCE: Final[int] = 2
MATE_MISTAKE_MAX_DISTANCE: Final[int] = 5
LOST_MATE_GOOD_CP: Final[int] = 400
LOST_MATE_INACCURACY_CP: Final[int] = 150
LOST_MATE_MISTAKE_CP: Final[int] = -100
MATE_MISTAKE_DISTANCE: Final[int] = 4
MATE_EXCELLENT_TOLERANCE: Final[int] = 2

# --- PGN Annotation Details ---
PV_MAX_MOVES_IN_COMMENT: Final[int] = 3
"""Maximum number of moves from the PV of the best engine line to include in a comment."""

PGN_DEFAULT_COLUMNS: Final[int] = 80
"""Default PGN move text wrapping width for output files."""

# --- File Names and Paths ---
DEFAULT_CSV_REPORT_FILENAME: Final[str] = "review_summary_report.csv"
"""Default filename for the generated CSV summary report."""

DEFAULT_LOG_FILENAME: Final[str] = "chess_reviewer.log"
"""Default filename for the application log."""

# --- Logging ---
DEFAULT_LOG_LEVEL: Final[str] = "INFO"
"""Default logging level for the application."""

# --- Application Specific ---
APP_NAME: Final[str] = "ChessReviewer"
"""Application name, used for logging and other identifiers."""
