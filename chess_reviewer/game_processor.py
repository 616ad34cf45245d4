# chess_reviewer/game_processor.py
"""
Processes a single chess game from evaluation to annotation.

This module contains the GameProcessor class, which runs the review workflow
for one game: evaluate every position, classify every move in order, fold the
labels into a report and write the annotations back into the game.
"""
import logging
import threading
from typing import List, Optional

import chess.pgn

import chess_reviewer.context_builders as builders
from chess_reviewer.analysis.annotator import Annotator
from chess_reviewer.analysis.evaluation_provider import EvaluationProvider
from chess_reviewer.analysis.move_classifier import MoveClassifier
from chess_reviewer.config import settings
from chess_reviewer.pgn.pgn_handler import PGNHandler
from chess_reviewer.reporting.report_aggregator import ReportAggregator
from chess_reviewer.types import GameReport, Position, ProcessedGameResult, ProgressReporter

logger = logging.getLogger(settings.APP_NAME + ".GameProcessor")


class GameProcessor:
    """
    Executes the position-by-position review workflow for a game.
    """

    def __init__(
        self,
        # --- Review Parameters ---
        analysis_depth: int,
        multipv_count: int,
        # --- Service Components (Injected) ---
        pgn_handler: PGNHandler,
        evaluation_provider: EvaluationProvider,
        move_classifier: MoveClassifier,
        report_aggregator: ReportAggregator,
        annotator: Annotator,
    ):
        """Initializes the GameProcessor with required components and settings."""
        self.analysis_depth = analysis_depth
        self.multipv_count = multipv_count
        self.pgn_handler = pgn_handler
        self.evaluation_provider = evaluation_provider
        self.move_classifier = move_classifier
        self.report_aggregator = report_aggregator
        self.annotator = annotator
        logger.debug("GameProcessor initialized.")

    def classify_positions(self, positions: List[Position]) -> None:
        """
        Labels every move in order. Each label depends on the lines of the
        position before it and on the label of the previous move.
        """
        for previous, position in zip(positions, positions[1:]):
            if position.move is None:
                continue
            position.classification = self.move_classifier.classify(
                previous.fen,
                position.fen,
                previous.evaluation_lines,
                position.evaluation_lines,
                position.move.uci,
                position.move.san,
                previous_classification=previous.classification,
                cutoff_evaluation=previous.cutoff_evaluation,
            )

    def review_positions(
        self,
        positions: List[Position],
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GameReport:
        """Evaluates, classifies and aggregates an already-built position sequence."""
        self.evaluation_provider.evaluate_positions(positions, self.analysis_depth, progress, cancel_event)
        self.classify_positions(positions)
        return self.report_aggregator.build_report(positions)

    def process_game(
        self,
        game: chess.pgn.Game,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessedGameResult:
        """Reviews `game` and annotates it in place."""
        game_id = self.pgn_handler.extract_game_id(game.headers) or "N/A"
        if progress is not None:
            progress.set_description(f"  Game {game_id[:8]}")

        positions = self.pgn_handler.build_positions(game)
        report = self.review_positions(positions, progress, cancel_event)

        nodes = builders.mainline_nodes(game)
        for node, previous, position in zip(nodes, positions, positions[1:]):
            annotation_context = builders.build_annotation_context(
                previous=previous,
                position=position,
                node_comment=node.comment,
                analysis_depth=self.analysis_depth,
                multipv_setting=self.multipv_count,
                prepare_comment_func=self.annotator.prepare_context_from_existing_comment,
            )
            node.comment = self.annotator.generate_pgn_node_comment(annotation_context)
            nag = self.annotator.nag_for(position.classification)
            if nag is not None:
                node.nags.add(nag)

        self._add_final_pgn_headers(game, report)
        logger.debug(
            f"Game {game_id}: accuracy white {report.accuracies['white']:.1f}, "
            f"black {report.accuracies['black']:.1f}."
        )
        return ProcessedGameResult(game_id=game_id, annotated_game=game, report=report)

    @staticmethod
    def _add_final_pgn_headers(game: chess.pgn.Game, report: GameReport) -> None:
        """Adds the per-side accuracies to the game headers."""
        game.headers["WhiteAccuracy"] = f"{report.accuracies['white']:.1f}"
        game.headers["BlackAccuracy"] = f"{report.accuracies['black']:.1f}"
        opening = next((p.opening for p in reversed(report.positions) if p.opening), None)
        if opening and "Opening" not in game.headers:
            game.headers["Opening"] = opening
