# chess_reviewer/reporting/report_aggregator.py
"""
Folds per-move classifications into a game report.

The aggregator names opening positions, turns the leading run of theory moves
into `book`, and tallies per-side classification counts and accuracies.
"""
import logging
from typing import Dict, List, Optional

import chess

from chess_reviewer.config import settings
from chess_reviewer.openings.opening_book import OpeningBook
from chess_reviewer.types import Classification, EvaluationSource, GameReport, Position
from chess_reviewer.utils.chess_utils import mover_of

logger = logging.getLogger(settings.APP_NAME + ".ReportAggregator")

SIDES = ("white", "black")


def side_name(color: chess.Color) -> str:
    return "white" if color == chess.WHITE else "black"


def empty_classification_counts() -> Dict[Classification, int]:
    return {classification: 0 for classification in Classification}


class ReportAggregator:
    """Builds a `GameReport` from a classified position sequence."""

    def __init__(self, opening_book: Optional[OpeningBook] = None):
        self.opening_book = opening_book

    def assign_openings(self, positions: List[Position]) -> None:
        if self.opening_book is None:
            return
        for position in positions:
            position.opening = self.opening_book.lookup(position.fen)

    @staticmethod
    def apply_book_override(positions: List[Position]) -> int:
        """
        Relabels the leading run of theory moves as `book`.

        A move is theory when it reaches a named opening, or when its position
        came from the cloud and the move was rated positively. The run stops at
        the first move that is neither. Returns the number of moves relabelled.
        """
        count = 0
        for position in positions[1:]:
            from_cloud_and_positive = (
                position.evaluation_source == EvaluationSource.CLOUD
                and position.classification in settings.POSITIVE_CLASSIFICATIONS
            )
            if not (from_cloud_and_positive or position.opening):
                break
            position.classification = Classification.BOOK
            count += 1
        return count

    def build_report(self, positions: List[Position]) -> GameReport:
        """Assigns openings, applies the book override and computes the tallies."""
        self.assign_openings(positions)
        book_moves = self.apply_book_override(positions)
        logger.debug(f"{book_moves} move(s) marked as book.")

        classifications = {side: empty_classification_counts() for side in SIDES}
        earned = {side: 0.0 for side in SIDES}
        moves = {side: 0 for side in SIDES}

        for position in positions[1:]:
            if position.classification is None:
                continue
            side = side_name(mover_of(position.fen))
            classifications[side][position.classification] += 1
            earned[side] += settings.CLASSIFICATION_WEIGHTS[position.classification]
            moves[side] += 1

        accuracies = {
            side: (earned[side] / moves[side] * 100.0) if moves[side] else 100.0
            for side in SIDES
        }
        return GameReport(accuracies=accuracies, classifications=classifications, positions=positions)
