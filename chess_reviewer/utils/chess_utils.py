# chess_reviewer/utils/chess_utils.py
"""
Generic chess-related utility functions.

This module provides helper functions that operate on chess concepts,
boards, or pieces, and are not tied to a specific component like
PGN handling or engine interaction. These are pure functions, making
them easy to test and reason about.
"""
import math
from typing import Dict, Final, Optional, Tuple, Union

import chess

from chess_reviewer.types import Centipawn, Evaluation, Mate

# --- Piece Material Values ---
# Knights and bishops are deliberately equal: several exchange rules compare
# against "a minor piece" by value. The king is priceless so that it is never
# considered a cheap attacker.
PIECE_VALUES: Final[Dict[chess.PieceType, float]] = {
    chess.PAWN: 1,
    chess.KNIGHT: 3,
    chess.BISHOP: 3,
    chess.ROOK: 5,
    chess.QUEEN: 9,
    chess.KING: math.inf,
}

PROMOTIONS: Final[Tuple[Optional[chess.PieceType], ...]] = (
    None, chess.BISHOP, chess.KNIGHT, chess.ROOK, chess.QUEEN,
)
"""Promotion choices tried when simulating a capture (None for ordinary moves)."""

SquareLike = Union[chess.Square, str]


def to_square(square: SquareLike) -> chess.Square:
    """Accepts either a square index or a name such as 'h5'."""
    if isinstance(square, str):
        return chess.parse_square(square)
    return square


def piece_value(piece_type: Optional[chess.PieceType]) -> float:
    """Material value of a piece type; an empty square is worth 0."""
    if piece_type is None:
        return 0
    return PIECE_VALUES[piece_type]


def board_with_turn(fen: str, color: chess.Color) -> chess.Board:
    """Loads a FEN and hands the move to `color`, dropping any en passant target."""
    board = chess.Board(fen)
    board.turn = color
    board.ep_square = None
    return board


def side_to_move(fen: str) -> chess.Color:
    """Reads the active colour field of a FEN without validating the rest."""
    parts = fen.split()
    return chess.BLACK if len(parts) > 1 and parts[1] == "b" else chess.WHITE


def mover_of(fen: str) -> chess.Color:
    """The colour that made the move leading to the position `fen`."""
    return not side_to_move(fen)


def for_mover(evaluation: Evaluation, mover: chess.Color) -> int:
    """Returns the evaluation's value from the perspective of `mover`."""
    return evaluation.value if mover == chess.WHITE else -evaluation.value


def format_evaluation(evaluation: Evaluation) -> str:
    """Formats a White-relative evaluation for PGN comments ("0.35" or "#-3")."""
    if isinstance(evaluation, Mate):
        return f"#{evaluation.value}"
    return f"{evaluation.value / 100.0:.2f}"


def worsen_for_side(evaluation: Evaluation, side: chess.Color, penalty_cp: int) -> Evaluation:
    """
    Returns an evaluation that is slightly worse for `side`.

    Centipawn scores move by `penalty_cp`; mate scores move one ply in the
    unfavourable direction (a winning mate gets further, a losing one closer).
    """
    direction = 1 if side == chess.WHITE else -1
    if isinstance(evaluation, Centipawn):
        return Centipawn(evaluation.value - direction * penalty_cp)

    relative = evaluation.value * direction
    if relative > 0:
        relative += 1
    elif relative < -1:
        relative += 1
    elif relative == 0:
        relative = -1
    return Mate(relative * direction)
