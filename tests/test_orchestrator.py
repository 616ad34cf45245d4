# tests/test_orchestrator.py
"""
Unit tests for the EvaluationOrchestrator, driven by scripted engine sessions.
"""
import threading

import chess
import pytest

from conftest import (
    AFTER_E4_FEN,
    FOOLS_MATE_FEN,
    SINGLE_MOVE_FEN,
    STALEMATE_FEN,
    START_FEN,
    SessionFactoryRecorder,
    flat_responder,
    info,
    scripted_responder,
)
from chess_reviewer.config import settings
from chess_reviewer.engine.orchestrator import (
    EvaluationOrchestrator,
    clamp_depth,
    fallback_lines,
    search_timeout_for_depth,
)
from chess_reviewer.exceptions import AnalysisCancelledError
from chess_reviewer.types import Centipawn, EvaluationSource, Mate


def _orchestrator(lines=None, responder=None, **session_kwargs):
    factory = SessionFactoryRecorder(
        responder=responder or scripted_responder(lines or []), **session_kwargs
    )
    return EvaluationOrchestrator(factory, multipv_count=3), factory


# --- Helpers ---

@pytest.mark.parametrize("requested, expected", [(0, 1), (1, 1), (18, 18), (30, 30), (99, 30)])
def test_clamp_depth(requested, expected):
    assert clamp_depth(requested) == expected


def test_search_timeout_is_monotonic_in_depth():
    budgets = [search_timeout_for_depth(depth) for depth in range(1, 31)]
    assert budgets == sorted(budgets)
    assert search_timeout_for_depth(22) >= 60


def test_fallback_lines_in_start_position():
    lines = fallback_lines(START_FEN)
    assert [line.rank for line in lines] == [1, 2]
    assert lines[0].move_uci in settings.FALLBACK_OPENING_MOVES
    assert lines[0].move_uci != lines[1].move_uci
    assert lines[0].search_depth >= settings.FALLBACK_MIN_DEPTH


def test_fallback_lines_for_black_use_black_moves():
    lines = fallback_lines(AFTER_E4_FEN)
    board = chess.Board(AFTER_E4_FEN)
    assert chess.Move.from_uci(lines[0].move_uci) in board.legal_moves
    # Second line is worse for Black, i.e. better for White.
    assert lines[1].evaluation.value > lines[0].evaluation.value


# --- Evaluation ---

def test_black_to_move_scores_are_flipped_to_white_perspective():
    orchestrator, _ = _orchestrator([
        info(12, 1, "e7e5 g1f3", cp=35),
        info(12, 2, "c7c5", cp=20),
    ])
    lines = orchestrator.evaluate(AFTER_E4_FEN, 12)
    assert [line.evaluation for line in lines] == [Centipawn(-35), Centipawn(-20)]
    assert lines[0].continuation_uci == ("g1f3",)


def test_white_to_move_scores_are_unchanged():
    orchestrator, _ = _orchestrator([
        info(10, 1, "e2e4", mate=3),
        info(10, 2, "d2d4", cp=50),
    ])
    lines = orchestrator.evaluate(START_FEN, 10)
    assert lines[0].evaluation == Mate(3)
    assert lines[1].evaluation == Centipawn(50)


def test_black_mate_scores_are_flipped():
    orchestrator, _ = _orchestrator([
        info(10, 1, "d7d5", mate=2),
        info(10, 2, "e7e5", cp=-40),
    ])
    lines = orchestrator.evaluate(AFTER_E4_FEN, 10)
    assert [line.evaluation for line in lines] == [Mate(-2), Centipawn(40)]


def test_single_line_output_gets_a_synthetic_second_line():
    orchestrator, _ = _orchestrator([info(14, 1, "e2e4", cp=40)])
    lines = orchestrator.evaluate(START_FEN, 14)
    assert len(lines) == 2
    assert lines[1].rank == 2
    assert lines[1].move_uci != "e2e4"
    assert lines[1].evaluation == Centipawn(40 - settings.SYNTHETIC_LINE_PENALTY_CP)


def test_single_legal_move_gets_a_null_second_line():
    orchestrator, _ = _orchestrator([info(5, 1, "h8g8", cp=900)])
    lines = orchestrator.evaluate(SINGLE_MOVE_FEN, 5)
    assert [line.move_uci for line in lines] == ["h8g8", settings.NULL_MOVE_UCI]
    assert lines[0].evaluation == Centipawn(-900)


def test_checkmate_returns_no_lines():
    orchestrator, factory = _orchestrator(responder=flat_responder())
    assert orchestrator.evaluate(FOOLS_MATE_FEN, 12) == []
    assert factory.sessions == []


def test_stalemate_returns_two_fallback_lines():
    orchestrator, factory = _orchestrator(responder=flat_responder())
    result = orchestrator.analyse(STALEMATE_FEN, 12)
    assert result.source == EvaluationSource.FALLBACK
    assert len(result.lines) >= 2
    assert [line.move_uci for line in result.lines] == [settings.NULL_MOVE_UCI] * 2
    assert result.lines[0].evaluation == Centipawn(0)
    assert factory.sessions == []


@pytest.mark.parametrize("fen", [
    START_FEN, AFTER_E4_FEN, SINGLE_MOVE_FEN, STALEMATE_FEN,
    "r1bqkbnr/pppp1ppp/2n5/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R b KQkq - 3 3",
])
def test_minimum_lines_invariant(fen):
    for responder in (flat_responder(), scripted_responder([])):
        orchestrator, _ = _orchestrator(responder=responder)
        assert len(orchestrator.evaluate(fen, 8)) >= 2


def test_invalid_lines_are_dropped():
    orchestrator, _ = _orchestrator([
        info(12, 1, "e2e5", cp=30),  # illegal
        info(12, 1, "d2d4", cp=25, bound="lowerbound"),  # inexact
        {"depth": 12, "multipv": 2, "pv": [chess.Move.from_uci("g1f3")]},  # no score
        {"string": "NNUE evaluation enabled"},
        info(12, 1, "c2c4", cp=15),
        info(12, 2, "g1f3", cp=10),
    ])
    lines = orchestrator.evaluate(START_FEN, 12)
    assert [line.move_uci for line in lines] == ["c2c4", "g1f3"]


def test_deeper_lines_replace_shallower_ones():
    orchestrator, _ = _orchestrator([
        info(8, 1, "d2d4", cp=10),
        info(8, 2, "e2e4", cp=5),
        info(9, 1, "e2e4", cp=30),
        info(9, 2, "d2d4", cp=20),
    ])
    lines = orchestrator.evaluate(START_FEN, 9)
    assert [(line.move_uci, line.search_depth) for line in lines] == [("e2e4", 9), ("d2d4", 9)]
    assert all(line.reported_depth == 9 for line in lines)


def test_duplicate_moves_across_ranks_are_renumbered():
    orchestrator, _ = _orchestrator([
        info(10, 1, "e2e4", cp=30),
        info(10, 2, "e2e4", cp=30),
        info(10, 3, "d2d4", cp=20),
    ])
    lines = orchestrator.evaluate(START_FEN, 10)
    assert [(line.rank, line.move_uci) for line in lines] == [(1, "e2e4"), (2, "d2d4")]


def test_session_is_reused_with_requested_multipv():
    orchestrator, factory = _orchestrator(responder=flat_responder())
    orchestrator.evaluate(START_FEN, 6)
    orchestrator.evaluate(AFTER_E4_FEN, 6)
    assert len(factory.sessions) == 1
    assert factory.sessions[0].searches == [(START_FEN, 6, 3), (AFTER_E4_FEN, 6, 3)]


def test_requested_depth_is_clamped():
    orchestrator, factory = _orchestrator(responder=flat_responder())
    orchestrator.evaluate(START_FEN, 99)
    assert factory.sessions[0].searches[0][1] == settings.MAX_SEARCH_DEPTH


def test_invalid_fen_returns_fallback():
    orchestrator, factory = _orchestrator(responder=flat_responder())
    result = orchestrator.analyse("not a fen", 12)
    assert result.source == EvaluationSource.FALLBACK
    assert len(result.lines) == 2
    assert factory.sessions == []


# --- Failures ---

def test_engine_crash_returns_fallback_and_replaces_session():
    orchestrator, factory = _orchestrator(responder=flat_responder(), crash=True)
    result = orchestrator.analyse(START_FEN, 10)
    assert result.source == EvaluationSource.FALLBACK
    assert len(result.lines) == 2
    assert factory.sessions[0].closed

    orchestrator.analyse(START_FEN, 10)
    assert len(factory.sessions) == 2


def test_timeout_uses_lines_gathered_before_stop():
    orchestrator, factory = _orchestrator([
        info(20, 1, "e2e4", cp=22),
        info(20, 2, "d2d4", cp=18),
    ], time_out=True)
    result = orchestrator.analyse(START_FEN, 25)
    assert result.source == EvaluationSource.ENGINE
    assert result.reached_depth == 20
    assert [line.move_uci for line in result.lines] == ["e2e4", "d2d4"]
    assert not factory.sessions[0].closed


def test_engine_ignoring_stop_keeps_its_lines_but_loses_the_session():
    orchestrator, factory = _orchestrator([info(15, 1, "e2e4", cp=12)], time_out=True, answer_stop=False)
    result = orchestrator.analyse(START_FEN, 25)
    assert result.source == EvaluationSource.ENGINE
    assert [line.move_uci for line in result.lines][0] == "e2e4"
    assert factory.sessions[0].closed

    orchestrator.analyse(START_FEN, 25)
    assert len(factory.sessions) == 2


def test_unresponsive_engine_without_lines_returns_fallback():
    orchestrator, factory = _orchestrator([], time_out=True, answer_stop=False)
    result = orchestrator.analyse(START_FEN, 25)
    assert result.source == EvaluationSource.FALLBACK
    assert len(result.lines) == 2
    assert factory.sessions[0].closed


def test_cancellation_closes_the_session():
    orchestrator, factory = _orchestrator([])
    cancel_event = threading.Event()
    cancel_event.set()
    with pytest.raises(AnalysisCancelledError):
        orchestrator.evaluate(START_FEN, 12, cancel_event)
    assert factory.sessions[0].closed


def test_close_is_idempotent_and_context_managed():
    factory = SessionFactoryRecorder(responder=flat_responder())
    with EvaluationOrchestrator(factory) as orchestrator:
        orchestrator.evaluate(START_FEN, 4)
    assert factory.sessions[0].closed
    orchestrator.close()
