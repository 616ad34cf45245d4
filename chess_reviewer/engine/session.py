# chess_reviewer/engine/session.py
"""
Engine session handles.

A session is an explicit handle on one running engine process. It is created by
a factory, owned by exactly one orchestrator, and closed on every exit path
(normal completion, timeout, error, cancellation). The UCI protocol itself is
handled by `chess.engine`; the small `EngineSession` interface is the seam the
orchestrator talks through, which keeps it testable against scripted stubs.
"""
import logging
import os
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

import chess
import chess.engine

from chess_reviewer.config import settings
from chess_reviewer.exceptions import (
    AnalysisCancelledError,
    EngineInitializationError,
    EngineSessionError,
)

logger = logging.getLogger(settings.APP_NAME + ".EngineSession")

_MAJOR_VERSION_RE = re.compile(r"Stockfish\s+(\d+)", re.IGNORECASE)


@dataclass
class SearchOutput:
    """Everything one depth-limited search reported, in arrival order."""
    infos: List[chess.engine.InfoDict] = field(default_factory=list)
    timed_out: bool = False
    unresponsive: bool = False  # never wound down after being stopped


class EngineSession(Protocol):
    """The boundary between the orchestrator and a running engine."""

    def search(
        self,
        board: chess.Board,
        depth: int,
        multipv: int,
        time_limit: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchOutput:
        """
        Runs a depth-limited multi-line search on `board`.

        A search still running after `time_limit` seconds is stopped and the
        infos gathered so far are returned with `timed_out` set, plus
        `unresponsive` if it then fails to wind down. Raises
        AnalysisCancelledError when `cancel_event` is set and EngineSessionError
        when the engine dies.
        """
        ...

    def close(self) -> None:
        """Terminates the engine process. Safe to call more than once."""
        ...


SessionFactory = Callable[[], EngineSession]


def parse_major_version(engine_name: str) -> str:
    """Extracts the major version from an engine id such as 'Stockfish 17.1'."""
    match = _MAJOR_VERSION_RE.search(engine_name or "")
    return match.group(1) if match else settings.STOCKFISH_VERSION_UNKNOWN


class UciEngineSession:
    """
    An `EngineSession` backed by a `chess.engine.SimpleEngine`.

    This class is a context manager to ensure the engine process is terminated.
    """

    def __init__(self, engine: chess.engine.SimpleEngine):
        self._engine: Optional[chess.engine.SimpleEngine] = engine
        self.name: str = engine.id.get("name", "")
        self.version: str = parse_major_version(self.name)

    @classmethod
    def popen(
        cls,
        path: str,
        threads: int = settings.DEFAULT_STOCKFISH_THREADS,
        hash_mb: int = settings.DEFAULT_STOCKFISH_HASH_MB,
    ) -> "UciEngineSession":
        """Spawns the engine at `path`, completes the handshake and applies options."""
        engine_path = os.path.realpath(path)
        _validate_engine_path(engine_path)
        try:
            engine = chess.engine.SimpleEngine.popen_uci(
                engine_path, timeout=settings.ENGINE_START_TIMEOUT_SECONDS
            )
        except (chess.engine.EngineError, OSError) as e:
            raise EngineInitializationError(f"Failed to start engine '{engine_path}': {e}") from e
        except Exception as e:
            raise EngineInitializationError(f"A generic error occurred starting the engine: {e}") from e

        session = cls(engine)
        try:
            engine.configure({"Threads": threads, "Hash": hash_mb})
        except chess.engine.EngineError as e:
            session.close()
            raise EngineInitializationError(f"Engine rejected its options: {e}") from e
        logger.debug(
            f"Engine session started ({session.name or 'unnamed'}, Threads {threads}, Hash {hash_mb}MB)."
        )
        return session

    def search(
        self,
        board: chess.Board,
        depth: int,
        multipv: int,
        time_limit: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchOutput:
        if self._engine is None:
            raise EngineSessionError("Operation on a closed engine session.")

        output = SearchOutput()
        try:
            with self._engine.analysis(board, chess.engine.Limit(depth=depth), multipv=multipv) as analysis:
                self._drain(analysis, output, time_limit, cancel_event)
        except chess.engine.EngineError as e:
            raise EngineSessionError(f"Engine failed during search: {e}") from e
        return output

    @staticmethod
    def _drain(
        analysis: chess.engine.SimpleAnalysisResult,
        output: SearchOutput,
        time_limit: float,
        cancel_event: Optional[threading.Event],
    ) -> None:
        """Collects infos until the search ends, polling the deadlines and cancel event."""
        deadline = time.monotonic() + time_limit
        grace_deadline: Optional[float] = None
        while True:
            if cancel_event is not None and cancel_event.is_set():
                analysis.stop()
                raise AnalysisCancelledError("Evaluation cancelled.")

            if not analysis.would_block():
                if analysis.empty():
                    return
                try:
                    output.infos.append(analysis.get())
                except chess.engine.AnalysisComplete:
                    return
                continue

            now = time.monotonic()
            if grace_deadline is None and now >= deadline:
                logger.warning(f"Search timed out after {time_limit:.0f}s; stopping.")
                output.timed_out = True
                analysis.stop()
                grace_deadline = now + settings.STOP_GRACE_SECONDS
            elif grace_deadline is not None and now >= grace_deadline:
                logger.warning("Engine ignored the stop request.")
                output.unresponsive = True
                return
            time.sleep(settings.ENGINE_POLL_INTERVAL_SECONDS)

    def close(self) -> None:
        """Properly terminates the engine process."""
        engine, self._engine = self._engine, None
        if engine is None:
            return
        try:
            engine.quit()
            logger.debug("Engine process quit.")
        except Exception as e:
            logger.warning(f"Engine did not quit gracefully, closing it: {e}")
            engine.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _validate_engine_path(path: str) -> None:
    """Checks if the engine path is valid and executable."""
    if not os.path.exists(path):
        raise EngineInitializationError(f"Engine executable not found: {path}")
    if not os.access(path, os.X_OK):
        raise EngineInitializationError(f"Engine executable is not executable: {path}")


def uci_session_factory(
    path: str,
    threads: int = settings.DEFAULT_STOCKFISH_THREADS,
    hash_mb: int = settings.DEFAULT_STOCKFISH_HASH_MB,
) -> SessionFactory:
    """Builds a zero-argument factory that spawns a fresh `UciEngineSession`."""
    def factory() -> EngineSession:
        return UciEngineSession.popen(path, threads=threads, hash_mb=hash_mb)
    return factory
