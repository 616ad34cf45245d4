# chess_reviewer/pipeline.py
"""
The main review pipeline for the Chess Reviewer application.

Reads games from a PGN file, reviews each one with the engine pool, appends
the annotated games to the output PGN and writes the summary reports.
"""
import logging
import os
import threading
import time
from typing import List, Optional

from tqdm import tqdm

from chess_reviewer.analysis.annotator import Annotator
from chess_reviewer.analysis.evaluation_provider import EvaluationProvider
from chess_reviewer.analysis.move_classifier import MoveClassifier
from chess_reviewer.config import settings
from chess_reviewer.engine.cloud import CloudEvaluator
from chess_reviewer.engine.orchestrator import EvaluationOrchestrator
from chess_reviewer.engine.session import UciEngineSession, uci_session_factory
from chess_reviewer.exceptions import AnalysisCancelledError, PGNError, ReportGenerationError
from chess_reviewer.game_processor import GameProcessor
from chess_reviewer.openings.opening_book import OpeningBook
from chess_reviewer.pgn.pgn_handler import PGNHandler
from chess_reviewer.reporting.report_aggregator import ReportAggregator
from chess_reviewer.reporting.report_generator import ReportGenerator
from chess_reviewer.statistics import StatisticsTracker
from chess_reviewer.types import ProcessedGameResult
from chess_reviewer.utils.signal_manager import SignalManager

logger = logging.getLogger(settings.APP_NAME + ".Pipeline")


# --- TQDM Adapter for our ProgressReporter Protocol ---
class TqdmProgressReporter:
    """An adapter that makes a tqdm progress bar conform to our ProgressReporter protocol."""
    def __init__(self, pbar: tqdm):
        self._pbar = pbar

    def reset(self, total: int = 0) -> None:
        self._pbar.reset(total=total)

    def update(self, n: int = 1) -> None:
        self._pbar.update(n)

    def set_description(self, desc: str) -> None:
        self._pbar.set_description_str(desc)

    def close(self) -> None:
        self._pbar.close()


class ReviewPipeline:
    """
    Runs the full review workflow from PGN input to report output.
    """

    def __init__(self, stockfish_path: str, **kwargs):
        """Initializes the entire application stack via dependency injection."""
        # --- Core Parameters ---
        self.analysis_depth: int = kwargs.get('analysis_depth', settings.DEFAULT_ANALYSIS_DEPTH)
        self.multipv_count: int = max(settings.MIN_MULTI_PV, kwargs.get('multipv_count', settings.DEFAULT_MULTI_PV))
        self.stockfish_path = os.path.realpath(stockfish_path)
        threads = kwargs.get('stockfish_threads', settings.DEFAULT_STOCKFISH_THREADS)
        hash_mb = kwargs.get('stockfish_hash_mb', settings.DEFAULT_STOCKFISH_HASH_MB)

        # Spawning one session up front fails fast on a bad engine path.
        with UciEngineSession.popen(self.stockfish_path, threads, hash_mb) as engine_session:
            sf_version = engine_session.version
            engine_name = engine_session.name or "unnamed engine"
        engine_short_name = f"SF{sf_version}" if sf_version != settings.STOCKFISH_VERSION_UNKNOWN else "Engine"
        logger.info(f"Using {engine_name} at '{self.stockfish_path}'.")

        session_factory = uci_session_factory(self.stockfish_path, threads, hash_mb)

        # --- Component Initialization ---
        self.pgn_handler = PGNHandler(pgn_output_columns=kwargs.get('pgn_write_columns', settings.PGN_DEFAULT_COLUMNS))
        self.evaluation_provider = EvaluationProvider(
            orchestrator_factory=lambda: EvaluationOrchestrator(session_factory, self.multipv_count),
            worker_count=kwargs.get('worker_count', settings.DEFAULT_WORKER_COUNT),
            cloud_evaluator=CloudEvaluator(self.multipv_count) if kwargs.get('use_cloud') else None,
        )
        self.annotator = Annotator(engine_name=engine_short_name)
        self.report_generator = ReportGenerator()
        self.stats_tracker = StatisticsTracker()

        self.game_processor = GameProcessor(
            analysis_depth=self.analysis_depth,
            multipv_count=self.multipv_count,
            pgn_handler=self.pgn_handler,
            evaluation_provider=self.evaluation_provider,
            move_classifier=MoveClassifier(),
            report_aggregator=ReportAggregator(OpeningBook.load()),
            annotator=self.annotator,
        )

        self.cancel_event = threading.Event()

    def run(
        self,
        input_pgn_path: str,
        output_pgn_path: str,
        report_path: Optional[str] = None,
        json_report_path: Optional[str] = None,
    ) -> List[ProcessedGameResult]:
        """Executes the main review run and returns the reviewed games."""
        start_time = time.time()
        self.stats_tracker.reset()
        report_file = report_path or settings.DEFAULT_CSV_REPORT_FILENAME
        self.stats_tracker.add_report_path(report_file)
        if json_report_path:
            self.stats_tracker.add_report_path(json_report_path)

        logger.info("Starting review run...")
        results: List[ProcessedGameResult] = []

        with SignalManager(self.cancel_event):
            try:
                processed_ids = self.pgn_handler.get_processed_game_ids(output_pgn_path)

                with open(output_pgn_path, 'a+', encoding='utf-8') as outfile, \
                     tqdm(total=0, unit="pos", bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt}") as pbar:
                    progress = TqdmProgressReporter(pbar)

                    for game in self.pgn_handler.stream_games(input_pgn_path, self.cancel_event):
                        self.stats_tracker.add_game_read()

                        game_id = self.pgn_handler.extract_game_id(game.headers)
                        if game_id and game_id in processed_ids:
                            self.stats_tracker.add_game_skipped("already_processed")
                            continue
                        if game.next() is None:
                            self.stats_tracker.add_game_skipped("no_moves")
                            continue

                        try:
                            result = self.game_processor.process_game(game, progress, self.cancel_event)
                            self.pgn_handler.export_annotated_game(result.annotated_game, outfile)
                        except PGNError as e:
                            logger.error(f"Error processing game {game_id or 'N/A'}: {e}. Skipping.")
                            self.stats_tracker.add_game_with_error()
                            continue

                        self.stats_tracker.add_game_analyzed(result.report)
                        results.append(result)

                self._write_reports(results, report_file, json_report_path)

            except AnalysisCancelledError:
                logger.warning("Review run cancelled; games finished so far were saved.")
                self._write_reports(results, report_file, json_report_path)
            finally:
                run_duration = time.time() - start_time
                logger.info(f"Review run finished in {run_duration:.2f} seconds.")
                self.stats_tracker.log_summary()

        return results

    def _write_reports(
        self, results: List[ProcessedGameResult], report_file: str, json_report_path: Optional[str]
    ) -> None:
        if not results:
            return
        self.stats_tracker.set_games_in_report(len(results))
        try:
            self.report_generator.generate_csv_report(results, report_file)
            if json_report_path:
                self.report_generator.generate_json_report(results, json_report_path)
        except ReportGenerationError as e:
            logger.error(f"Report generation failed: {e}")
