# chess_reviewer/statistics.py
"""
Manages statistics tracking for the Chess Reviewer application.

This module provides the StatisticsTracker class, a centralized component
for aggregating and reporting metrics from a review run.
"""
import logging
import os
from collections import Counter
from typing import List

from chess_reviewer.config import settings
from chess_reviewer.types import Classification, EvaluationSource, GameReport

logger = logging.getLogger(settings.APP_NAME + ".Statistics")


class StatisticsTracker:
    """
    A stateful class to aggregate and report statistics for a review run.
    """

    def __init__(self):
        """Initializes the StatisticsTracker with all counters set to zero."""
        self.stats: Counter[str] = Counter()
        self.classification_totals: Counter[Classification] = Counter()
        self.games_in_report: int = 0
        self.report_paths: List[str] = []
        logger.debug("StatisticsTracker initialized.")

    def reset(self) -> None:
        """Resets all statistics to their initial state for a new run."""
        self.stats.clear()
        self.classification_totals.clear()
        self.games_in_report = 0
        self.report_paths = []

    def add_game_read(self) -> None:
        self.stats["games_read"] += 1

    def add_game_skipped(self, reason: str, count: int = 1) -> None:
        """Counts skipped games, categorized by reason."""
        if count <= 0:
            return
        self.stats["games_skipped_total"] += count
        self.stats[f"skipped_{reason}"] += count

    def add_game_analyzed(self, report: GameReport) -> None:
        """Counts a reviewed game along with where its evaluations came from."""
        self.stats["games_analyzed"] += 1
        for position in report.positions:
            self.stats[f"positions_{position.evaluation_source.value}"] += 1
        for counts in report.classifications.values():
            self.classification_totals.update({label: n for label, n in counts.items() if n})

    def add_game_with_error(self) -> None:
        self.stats["games_with_errors"] += 1

    def set_games_in_report(self, count: int) -> None:
        self.games_in_report = count

    def add_report_path(self, path: str) -> None:
        self.report_paths.append(os.path.abspath(path))

    def positions_by_source(self, source: EvaluationSource) -> int:
        return self.stats[f"positions_{source.value}"]

    def log_summary(self) -> None:
        """
        Logs a formatted summary of all collected statistics for the run.
        """
        logger.info("--- Review Run Summary ---")

        display_order = [
            ("games_read", "Total Games Read from PGN"),
            ("games_analyzed", "Games Fully Reviewed"),
            ("games_skipped_total", "Total Games Skipped"),
            ("skipped_already_processed", "  - Skipped (Already Processed)"),
            ("skipped_no_moves", "  - Skipped (No Moves Found)"),
            ("games_with_errors", "Games with Errors"),
            ("positions_engine", "Positions Evaluated by Engine"),
            ("positions_cloud", "Positions Evaluated by Cloud"),
            ("positions_fallback", "Positions with Fallback Evaluations"),
        ]
        for key, display_text in display_order:
            if key in self.stats:
                logger.info(f"{display_text}: {self.stats[key]}")

        if self.classification_totals:
            parts = [
                f"{label.value}={self.classification_totals[label]}"
                for label in Classification if self.classification_totals[label]
            ]
            logger.info(f"Move Classifications: {', '.join(parts)}")

        logger.info(f"Games Included in Report: {self.games_in_report}")
        for path in self.report_paths:
            if self.games_in_report > 0 and os.path.exists(path):
                logger.info(f"Report Generated: '{path}'")
            else:
                logger.info(f"Report Target (not generated): '{path}'")
