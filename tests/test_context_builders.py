# tests/test_context_builders.py
"""
Unit tests for the functions in context_builders.py and the Annotator they feed.
"""
import chess
import pytest

from conftest import AFTER_E4_FEN, FOOLS_MATE_FEN, STALEMATE_FEN, START_FEN
from chess_reviewer.analysis.annotator import Annotator
from chess_reviewer.config import settings
from chess_reviewer.context_builders import (
    build_annotation_context,
    build_engine_line_infos,
    build_eval_tag,
    line_move_san,
    pv_to_san,
)
from chess_reviewer.engine.orchestrator import fallback_lines
from chess_reviewer.types import Centipawn, Classification, EngineLine, EvaluationSource, Mate, MoveRecord, Position


def line(rank, evaluation, move, continuation=()):
    return EngineLine(
        rank=rank, search_depth=18, reported_depth=20,
        evaluation=evaluation, move_uci=move, continuation_uci=tuple(continuation),
    )


@pytest.fixture
def annotator():
    return Annotator(engine_name="SF17")


# --- Move Notation ---

@pytest.mark.parametrize("fen, engine_line, expected", [
    (START_FEN, line(1, Centipawn(30), "g1f3"), "Nf3"),
    (START_FEN, line(2, Centipawn(30), "0000"), ""),
    (START_FEN, line(1, Centipawn(30), "e2e5"), ""),
    (FOOLS_MATE_FEN, line(1, Mate(0), "e1f2"), ""),
])
def test_line_move_san(fen, engine_line, expected):
    assert line_move_san(fen, engine_line) == expected


def test_pv_to_san_is_truncated_and_stops_at_illegal_moves():
    full = line(1, Centipawn(30), "e2e4", ["e7e5", "g1f3", "b8c6"])
    assert pv_to_san(START_FEN, full) == ["e4", "e5", "Nf3"]

    broken = line(1, Centipawn(30), "e2e4", ["e2e4"])
    assert pv_to_san(START_FEN, broken) == ["e4"]


# --- Context Builders ---

def test_engine_line_infos_skip_unplayable_lines():
    # Arrange: a real best line and a synthesized null second line
    lines = [line(2, Centipawn(5), "0000"), line(1, Centipawn(-31), "c7c5", ["g1f3"])]

    # Act
    infos = build_engine_line_infos(AFTER_E4_FEN, lines)

    # Assert
    assert len(infos) == 1
    assert infos[0].move_san == "c5"
    assert infos[0].eval_str == "-0.31"
    assert infos[0].is_best_line
    assert infos[0].pv_san_list == ["c5", "Nf3"]


def test_stalemate_fallback_lines_annotate_as_a_level_draw():
    # Arrange: stalemate is evaluated with two null-move fallback lines
    position = Position(
        fen=STALEMATE_FEN,
        evaluation_lines=fallback_lines(STALEMATE_FEN),
        evaluation_source=EvaluationSource.FALLBACK,
    )

    # Act
    infos = build_engine_line_infos(position.fen, position.evaluation_lines)
    eval_tag = build_eval_tag(position)

    # Assert
    assert infos == []
    assert eval_tag == f"[%eval 0.00,{settings.FALLBACK_MIN_DEPTH}]"


@pytest.mark.parametrize("position, expected", [
    (Position(fen=AFTER_E4_FEN, evaluation_lines=[line(1, Centipawn(35), "e7e5")]), "[%eval 0.35,20]"),
    (Position(fen=AFTER_E4_FEN, evaluation_lines=[line(1, Mate(-3), "e7e5")]), "[%eval #-3,20]"),
    (Position(fen=FOOLS_MATE_FEN), "[%eval #0]"),
    (Position(fen=START_FEN), ""),
])
def test_build_eval_tag(position, expected):
    assert build_eval_tag(position) == expected


def test_build_annotation_context(annotator):
    previous = Position(
        fen=START_FEN,
        evaluation_lines=[line(1, Centipawn(30), "e2e4", ["e7e5"]), line(2, Centipawn(25), "d2d4")],
    )
    position = Position(
        fen=AFTER_E4_FEN,
        move=MoveRecord(san="e4", uci="e2e4"),
        evaluation_lines=[line(1, Centipawn(30), "e7e5")],
        classification=Classification.BEST,
    )

    context = build_annotation_context(
        previous=previous,
        position=position,
        node_comment="[%clk 0:03:00]",
        analysis_depth=18,
        multipv_setting=2,
        prepare_comment_func=annotator.prepare_context_from_existing_comment,
    )

    assert context.classification == Classification.BEST
    assert context.eval_after_move_wpov_str == "[%eval 0.30,20]"
    assert context.clk_comment_part == "[%clk 0:03:00]"
    assert context.user_comment_part == ""
    assert [info.move_san for info in context.engine_lines] == ["e4", "d4"]

    comment = annotator.generate_pgn_node_comment(context)
    assert comment == (
        "{Best} [%eval 0.30,20] [%clk 0:03:00] "
        "[Analyse SF17@18d2pv: Best: e4 (0.30) PV: e4 e5; Top: 1.e4(0.30) 2.d4(0.25)]"
    )


# --- Annotator ---

@pytest.mark.parametrize("existing, expected_user, expected_clk", [
    ("", "", ""),
    ("[%clk 0:01:00]", "", "[%clk 0:01:00]"),
    ("great idea", "{great idea}", ""),
    ("{Blunder} [%eval -3.10,18] [Analyse SF16@18d3pv: Best: e4 (0.30)] my note", "{my note}", ""),
])
def test_prepare_context_from_existing_comment(annotator, existing, expected_user, expected_clk):
    assert annotator.prepare_context_from_existing_comment(existing) == (expected_user, expected_clk)


@pytest.mark.parametrize("classification, expected", [
    (Classification.BRILLIANT, 3),
    (Classification.GREAT, 1),
    (Classification.INACCURACY, 6),
    (Classification.MISTAKE, 2),
    (Classification.BLUNDER, 4),
    (Classification.BEST, None),
    (Classification.BOOK, None),
    (None, None),
])
def test_nag_for(classification, expected):
    assert Annotator.nag_for(classification) == expected
