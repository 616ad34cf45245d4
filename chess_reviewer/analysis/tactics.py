# chess_reviewer/analysis/tactics.py
"""
Attacker, defender and hanging-piece detection.

Every function here is a pure function of FEN strings and squares: boards are
rebuilt from the FEN on each call and python-chess answers all legality
questions. Attacker and defender sets are memoized per (FEN, square), which
does not change any result.
"""
import logging
from functools import lru_cache
from typing import List, Tuple

import chess

from chess_reviewer.config import settings
from chess_reviewer.types import BoardPiece
from chess_reviewer.utils.chess_utils import (
    PROMOTIONS,
    SquareLike,
    board_with_turn,
    piece_value,
    to_square,
)

logger = logging.getLogger(settings.APP_NAME + ".Tactics")


@lru_cache(maxsize=4096)
def _attackers(fen: str, square: chess.Square) -> Tuple[BoardPiece, ...]:
    board = chess.Board(fen)
    piece = board.piece_at(square)
    if piece is None:
        return ()

    attacker_color = not piece.color
    board = board_with_turn(fen, attacker_color)

    attackers: List[BoardPiece] = []
    seen = set()
    for move in board.legal_moves:
        if move.to_square != square or move.from_square in seen:
            continue
        seen.add(move.from_square)
        attackers.append(BoardPiece(move.from_square, attacker_color, board.piece_type_at(move.from_square)))

    # An adjacent king joins an exchange even when taking right now would be
    # illegal, as long as it is not the only attacker.
    king_square = board.king(attacker_color)
    if (
        king_square is not None
        and king_square not in seen
        and chess.square_distance(king_square, square) == 1
        and attackers
    ):
        attackers.append(BoardPiece(king_square, attacker_color, chess.KING))

    return tuple(attackers)


def get_attackers(fen: str, square: SquareLike) -> List[BoardPiece]:
    """
    Lists the enemy pieces that can capture the piece standing on `square`.

    The side to move is flipped to the attacking colour and every legal move
    landing on the square counts; each attacking piece appears once even when
    it could capture with several promotion choices.
    """
    return list(_attackers(fen, to_square(square)))


@lru_cache(maxsize=4096)
def _defenders(fen: str, square: chess.Square) -> Tuple[BoardPiece, ...]:
    board = chess.Board(fen)
    piece = board.piece_at(square)
    if piece is None:
        return ()

    attackers = _attackers(fen, square)
    if attackers:
        test_attacker = attackers[0]
        board = board_with_turn(fen, test_attacker.color)
        for promotion in PROMOTIONS:
            capture = chess.Move(test_attacker.square, square, promotion=promotion)
            if board.is_legal(capture):
                board.push(capture)
                return _attackers(board.fen(), square)
        return ()

    # Nothing attacks the piece: put an enemy queen in its place and see who
    # would take it back.
    board = board_with_turn(fen, piece.color)
    board.set_piece_at(square, chess.Piece(chess.QUEEN, not piece.color))
    return _attackers(board.fen(), square)


def get_defenders(fen: str, square: SquareLike) -> List[BoardPiece]:
    """Lists the pieces that would recapture if the piece on `square` were taken."""
    return list(_defenders(fen, to_square(square)))


def is_piece_hanging(before_fen: str, after_fen: str, square: SquareLike) -> bool:
    """
    Whether the piece now on `square` can be won for less than it is worth.

    `before_fen` is the position before the last move; it tells whether the
    piece only just arrived on the square by capturing something.
    """
    square = to_square(square)
    last_piece = chess.Board(before_fen).piece_at(square)
    piece = chess.Board(after_fen).piece_at(square)
    if piece is None:
        return False

    value = piece_value(piece.piece_type)
    last_value = piece_value(last_piece.piece_type) if last_piece else 0

    attackers = _attackers(after_fen, square)
    defenders = _defenders(after_fen, square)

    # Equal or better trade just happened on this square.
    if last_piece is not None and last_piece.color != piece.color and last_value >= value:
        return False

    # Rook took a minor piece that only one other minor piece defends.
    if (
        piece.piece_type == chess.ROOK
        and last_value == 3
        and len(attackers) == 1
        and piece_value(attackers[0].piece_type) == 3
    ):
        return False

    if any(piece_value(attacker.piece_type) < value for attacker in attackers):
        return True

    if len(attackers) > len(defenders):
        min_attacker_value = min(piece_value(attacker.piece_type) for attacker in attackers)

        # Taking would be a sacrifice of its own.
        if value < min_attacker_value and any(
            piece_value(defender.piece_type) < min_attacker_value for defender in defenders
        ):
            return False

        # A defending pawn is what actually gets given up.
        if any(defender.piece_type == chess.PAWN for defender in defenders):
            return False

        return True

    return False
