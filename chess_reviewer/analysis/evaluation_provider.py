# chess_reviewer/analysis/evaluation_provider.py
"""
Provides engine evaluations for every position of a game.

This module contains the EvaluationProvider class, which fills in the
evaluation lines of a position sequence. When a cloud evaluator is configured,
the leading run of positions known to the cloud service is looked up first.
The remaining positions are evaluated by a small pool of workers, each owning
its own orchestrator and therefore its own engine session. Workers pull the
next unclaimed position from a shared index, so one slow search does not hold
up the cheap positions around it.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from chess_reviewer.config import settings
from chess_reviewer.engine.cloud import CloudEvaluator
from chess_reviewer.engine.orchestrator import EvaluationOrchestrator
from chess_reviewer.exceptions import AnalysisCancelledError, CloudEvaluationError
from chess_reviewer.types import EvaluationSource, Position, ProgressReporter

logger = logging.getLogger(settings.APP_NAME + ".EvaluationProvider")

OrchestratorFactory = Callable[[], EvaluationOrchestrator]


def clamp_worker_count(worker_count: int) -> int:
    return max(settings.MIN_WORKER_COUNT, min(settings.MAX_WORKER_COUNT, worker_count))


class EvaluationProvider:
    """
    A service that evaluates position sequences with a bounded worker pool.
    """

    def __init__(
        self,
        orchestrator_factory: OrchestratorFactory,
        worker_count: int = settings.DEFAULT_WORKER_COUNT,
        cloud_evaluator: Optional[CloudEvaluator] = None,
    ):
        """
        Initializes the EvaluationProvider.

        Args:
            orchestrator_factory: Builds one orchestrator per worker.
            worker_count: Pool size, clamped to the supported range.
            cloud_evaluator: Optional cloud lookup tried before the engine.
        """
        self.orchestrator_factory = orchestrator_factory
        self.worker_count = clamp_worker_count(worker_count)
        self.cloud_evaluator = cloud_evaluator

        self._lock = threading.Lock()
        self._next_index = 0
        self._completed = 0
        self._total = 0
        logger.debug(f"EvaluationProvider initialized with {self.worker_count} workers.")

    @property
    def progress_percent(self) -> float:
        """Share of the current run's positions evaluated so far."""
        with self._lock:
            if self._total == 0:
                return 100.0
            return self._completed * 100.0 / self._total

    def evaluate_positions(
        self,
        positions: List[Position],
        depth: int,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Position]:
        """
        Fills `evaluation_lines` and `evaluation_source` of every position in place.

        Returns the same list once all positions are evaluated.

        Raises:
            AnalysisCancelledError: if `cancel_event` is set before the run ends.
                In-flight engine sessions are closed before this propagates.
        """
        with self._lock:
            self._next_index = 0
            self._completed = 0
            self._total = len(positions)
        if progress is not None:
            progress.reset(total=len(positions))
        if not positions:
            return positions

        start = self._evaluate_from_cloud(positions, progress, cancel_event)
        with self._lock:
            self._next_index = start
        if start == len(positions):
            return positions

        pool_size = min(self.worker_count, len(positions) - start)
        with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="evaluator") as executor:
            futures = [
                executor.submit(self._worker, positions, depth, progress, cancel_event)
                for _ in range(pool_size)
            ]
            errors = [future.exception() for future in futures]

        for error in errors:
            if error is not None:
                raise error
        return positions

    def _evaluate_from_cloud(
        self,
        positions: List[Position],
        progress: Optional[ProgressReporter],
        cancel_event: Optional[threading.Event],
    ) -> int:
        """Looks up the leading run of positions in the cloud; returns how many were found."""
        if self.cloud_evaluator is None:
            return 0

        for index, position in enumerate(positions):
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelledError("Evaluation cancelled.")
            try:
                lines = self.cloud_evaluator.fetch(position.fen)
            except CloudEvaluationError as e:
                logger.warning(f"Cloud evaluation failed, continuing with the engine: {e}")
                return index
            if lines is None:
                logger.debug(f"Cloud evaluation covered the first {index} position(s).")
                return index
            position.evaluation_lines = lines
            position.evaluation_source = EvaluationSource.CLOUD
            self._mark_completed(progress)
        return len(positions)

    def _claim_next(self) -> Optional[int]:
        with self._lock:
            if self._next_index >= self._total:
                return None
            index = self._next_index
            self._next_index += 1
            return index

    def _mark_completed(self, progress: Optional[ProgressReporter]) -> None:
        with self._lock:
            self._completed += 1
            if progress is not None:
                progress.update(1)

    def _worker(
        self,
        positions: List[Position],
        depth: int,
        progress: Optional[ProgressReporter],
        cancel_event: Optional[threading.Event],
    ) -> None:
        """Pool worker: claims and evaluates positions until none are left."""
        with self.orchestrator_factory() as orchestrator:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    raise AnalysisCancelledError("Evaluation cancelled.")
                index = self._claim_next()
                if index is None:
                    return
                position = positions[index]
                result = orchestrator.analyse(position.fen, depth, cancel_event)
                position.evaluation_lines = result.lines
                position.evaluation_source = result.source
                self._mark_completed(progress)
