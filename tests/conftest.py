# tests/conftest.py
"""
Shared fixtures for the ChessReviewer test suite.

`ScriptedSession` stands in for a running engine: it answers each search with
the info reports produced by a responder callable, so orchestrator and pool logic can
be exercised without a Stockfish binary.
"""
import threading
from typing import Callable, Dict, List, Optional, Tuple, Union

import chess
import chess.engine
import chess.pgn
import pytest

from chess_reviewer.engine.session import SearchOutput
from chess_reviewer.exceptions import AnalysisCancelledError, EngineSessionError

START_FEN = chess.STARTING_FEN
AFTER_E4_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
FOOLS_MATE_FEN = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
STALEMATE_FEN = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"
# Black king on h8 whose only legal move is Kg8.
SINGLE_MOVE_FEN = "7k/8/6K1/8/8/8/8/R7 b - - 0 1"

Responder = Callable[[chess.Board, int, int], List[chess.engine.InfoDict]]
InfoBuilder = Callable[[chess.Board], chess.engine.InfoDict]


def info(
    depth: int,
    rank: int,
    pv: str,
    cp: Optional[int] = None,
    mate: Optional[int] = None,
    bound: Optional[str] = None,
) -> InfoBuilder:
    """
    Describes one engine report. Scores are relative to the side to move, as
    engines report them; `bound` is "lowerbound" or "upperbound".
    """
    def build(board: chess.Board) -> chess.engine.InfoDict:
        relative = chess.engine.Mate(mate) if mate is not None else chess.engine.Cp(cp)
        report: chess.engine.InfoDict = {
            "depth": depth,
            "seldepth": depth + 2,
            "multipv": rank,
            "score": chess.engine.PovScore(relative, board.turn),
            "nodes": 1000,
            "pv": [chess.Move.from_uci(move) for move in pv.split()],
        }
        if bound:
            report[bound] = True
        return report
    return build


def flat_responder(score_cp: int = 0, preferred: Optional[Dict[str, str]] = None) -> Responder:
    """
    Answers every search with the same centipawn score for several legal moves.
    `preferred` maps a FEN to the move reported as rank 1.
    """
    def respond(board: chess.Board, depth: int, multipv: int) -> List[chess.engine.InfoDict]:
        moves = sorted(move.uci() for move in board.legal_moves)
        best = (preferred or {}).get(board.fen())
        if best in moves:
            moves.remove(best)
            moves.insert(0, best)
        return [info(depth, rank, move, cp=score_cp)(board) for rank, move in enumerate(moves[:multipv], start=1)]
    return respond


def scripted_responder(entries: List[Union[InfoBuilder, chess.engine.InfoDict]]) -> Responder:
    """Answers every search with the same fixed reports; plain dicts pass through untouched."""
    def respond(board: chess.Board, depth: int, multipv: int) -> List[chess.engine.InfoDict]:
        return [entry(board) if callable(entry) else dict(entry) for entry in entries]
    return respond


class ScriptedSession:
    """
    An in-memory engine session driven by a responder.

    `time_out` makes every search end on its time budget; `answer_stop=False`
    additionally makes the engine ignore the stop request that follows.
    """

    def __init__(
        self,
        responder: Responder,
        time_out: bool = False,
        answer_stop: bool = True,
        crash: bool = False,
    ):
        self.responder = responder
        self.time_out = time_out
        self.answer_stop = answer_stop
        self.crash = crash
        self.searches: List[Tuple[str, int, int]] = []
        self.closed = False

    def search(
        self,
        board: chess.Board,
        depth: int,
        multipv: int,
        time_limit: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchOutput:
        if self.closed:
            raise EngineSessionError("closed")
        self.searches.append((board.fen(), depth, multipv))
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("cancelled")
        if self.crash:
            raise EngineSessionError("engine crashed")
        infos = self.responder(board, depth, multipv)
        if self.time_out:
            return SearchOutput(infos, timed_out=True, unresponsive=not self.answer_stop)
        return SearchOutput(infos)

    def close(self) -> None:
        self.closed = True


class SessionFactoryRecorder:
    """A session factory that remembers every session it created."""

    def __init__(self, **session_kwargs):
        self.session_kwargs = session_kwargs
        self.sessions: List[ScriptedSession] = []

    def __call__(self) -> ScriptedSession:
        session = ScriptedSession(**self.session_kwargs)
        self.sessions.append(session)
        return session


@pytest.fixture
def flat_factory() -> SessionFactoryRecorder:
    return SessionFactoryRecorder(responder=flat_responder(0))


@pytest.fixture
def fast_timeouts(monkeypatch):
    """Shrinks the search budget so timeout paths run quickly."""
    from chess_reviewer.config import settings
    monkeypatch.setattr(settings, "SEARCH_TIMEOUT_STEPS", ((0, 0.3),))
    monkeypatch.setattr(settings, "STOP_GRACE_SECONDS", 0.2)
    monkeypatch.setattr(settings, "ENGINE_POLL_INTERVAL_SECONDS", 0.05)


@pytest.fixture
def sample_game() -> chess.pgn.Game:
    """
    A short game with headers: 1. e4 e5 2. Nf3 Nc6 3. Bc4 Nf6
    """
    game = chess.pgn.Game()
    game.headers["Event"] = "Test Game"
    game.headers["Site"] = "https://lichess.org/abcd1234"
    game.headers["White"] = "Player A"
    game.headers["Black"] = "Player B"

    node = game
    for uci in ["e2e4", "e7e5", "g1f3", "b8c6", "f1c4", "g8f6"]:
        node = node.add_variation(chess.Move.from_uci(uci))
    return game
