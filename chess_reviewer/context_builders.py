# chess_reviewer/context_builders.py
"""
Data transformation functions for the review pipeline.

This module contains pure, testable functions responsible for building the
structured `dataclass` context objects used by various components. It
isolates the work of converting engine lines into human-readable form.
"""
from typing import Callable, List, Tuple

import chess
import chess.pgn

from chess_reviewer.config import settings
from chess_reviewer.types import (
    AnnotationContext,
    EngineLine,
    EngineLineInfo,
    Mate,
    Position,
)
from chess_reviewer.utils.chess_utils import format_evaluation

# --- Move Notation ---

def line_move_san(fen: str, line: EngineLine) -> str:
    """
    The first move of `line` in SAN, or "" when it cannot be played in `fen`
    (the null move of a synthesized line, or a line reporting mate on the board).
    """
    if isinstance(line.evaluation, Mate) and line.evaluation.value == 0:
        return ""
    try:
        board = chess.Board(fen)
        move = chess.Move.from_uci(line.move_uci)
        if not board.is_legal(move):
            return ""
        return board.san(move)
    except ValueError:
        return ""


def pv_to_san(fen: str, line: EngineLine, max_moves: int = settings.PV_MAX_MOVES_IN_COMMENT) -> List[str]:
    """Converts the start of a line's principal variation to SAN, stopping at the first bad move."""
    board = chess.Board(fen)
    pv_san_list: List[str] = []
    for move_uci in (line.move_uci, *line.continuation_uci)[:max_moves]:
        try:
            move = chess.Move.from_uci(move_uci)
            if not board.is_legal(move):
                break
            pv_san_list.append(board.san(move))
            board.push(move)
        except ValueError:
            pv_san_list.append(f"{move_uci}?")
            break
    return pv_san_list

# --- Context Builders ---

def build_engine_line_infos(fen: str, lines: List[EngineLine]) -> List[EngineLineInfo]:
    """Prepares formatted engine lines for the [Analyse] tag; unplayable lines are omitted."""
    infos: List[EngineLineInfo] = []
    for line in sorted(lines, key=lambda l: l.rank):
        move_san = line_move_san(fen, line)
        if not move_san:
            continue
        infos.append(
            EngineLineInfo(
                move_san=move_san,
                eval_str=format_evaluation(line.evaluation),
                is_best_line=(line.rank == 1),
                pv_san_list=pv_to_san(fen, line) if line.rank == 1 else [],
            )
        )
    return infos


def build_eval_tag(position: Position) -> str:
    """The [%eval] tag for a position, from White's point of view."""
    top_line = position.top_line
    if top_line is None:
        board = chess.Board(position.fen)
        if board.is_checkmate():
            # Mate already on the board; the side to move is the one mated.
            return "[%eval #0]"
        return ""
    return f"[%eval {format_evaluation(top_line.evaluation)},{top_line.reported_depth}]"


def build_annotation_context(
    previous: Position,
    position: Position,
    node_comment: str,
    analysis_depth: int,
    multipv_setting: int,
    prepare_comment_func: Callable[[str], Tuple[str, str]],
) -> AnnotationContext:
    """Constructs the context object required by the Annotator for one move."""
    user_comment, clk_part = prepare_comment_func(node_comment)
    return AnnotationContext(
        classification=position.classification,
        eval_after_move_wpov_str=build_eval_tag(position),
        clk_comment_part=clk_part,
        user_comment_part=user_comment,
        engine_lines=build_engine_line_infos(previous.fen, previous.evaluation_lines),
        analysis_depth=analysis_depth,
        multipv_setting=multipv_setting,
    )


def mainline_nodes(game: chess.pgn.Game) -> List[chess.pgn.ChildNode]:
    """The game's mainline nodes, one per move, in order."""
    return list(game.mainline())
