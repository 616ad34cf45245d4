# chess_reviewer/reporting/report_generator.py
"""
Writes summary reports for reviewed games.

This module provides the `ReportGenerator` class, which produces a CSV file
with one row of accuracies and classification counts per game, and a JSON
file carrying the full per-position review.
"""
import csv
import json
import logging
import os
from typing import Any, Dict, List

from chess_reviewer.config import settings
from chess_reviewer.exceptions import ReportWriteError
from chess_reviewer.types import Classification, EngineLine, Mate, Position, ProcessedGameResult

logger = logging.getLogger(settings.APP_NAME + ".ReportGenerator")

_HEADER_FIELDS: List[str] = ["Event", "Site", "Date", "Round", "White", "Black", "Result"]


def _count_field(side: str, classification: Classification) -> str:
    return f"{side.capitalize()}{classification.value.capitalize()}"


def evaluation_to_dict(line: EngineLine) -> Dict[str, Any]:
    kind = "mate" if isinstance(line.evaluation, Mate) else "cp"
    return {
        "rank": line.rank,
        "move": line.move_uci,
        "depth": line.search_depth,
        "evaluation": {"type": kind, "value": line.evaluation.value},
        "continuation": list(line.continuation_uci),
    }


def position_to_dict(position: Position) -> Dict[str, Any]:
    return {
        "fen": position.fen,
        "move": {"san": position.move.san, "uci": position.move.uci} if position.move else None,
        "classification": position.classification.value if position.classification else None,
        "opening": position.opening,
        "evaluation_source": position.evaluation_source.value,
        "lines": [evaluation_to_dict(line) for line in position.evaluation_lines],
    }


def game_to_dict(result: ProcessedGameResult) -> Dict[str, Any]:
    report = result.report
    return {
        "game_id": result.game_id,
        "headers": dict(result.annotated_game.headers),
        "accuracies": {side: round(value, 2) for side, value in report.accuracies.items()},
        "classifications": {
            side: {label.value: count for label, count in counts.items()}
            for side, counts in report.classifications.items()
        },
        "positions": [position_to_dict(position) for position in report.positions],
    }


class ReportGenerator:
    """Generates reports from reviewed games."""

    _CSV_HEADERS: List[str] = [
        "GameID", "WhiteAccuracy", "BlackAccuracy", "Opening",
        *(_count_field(side, label) for side in ("white", "black") for label in Classification),
        *_HEADER_FIELDS,
    ]

    def __init__(self):
        """Initializes the ReportGenerator."""
        logger.debug("ReportGenerator initialized.")

    def build_csv_row(self, result: ProcessedGameResult) -> Dict[str, Any]:
        report = result.report
        headers = result.annotated_game.headers
        opening = next((p.opening for p in reversed(report.positions) if p.opening), "")
        row: Dict[str, Any] = {
            "GameID": result.game_id,
            "WhiteAccuracy": f"{report.accuracies['white']:.1f}",
            "BlackAccuracy": f"{report.accuracies['black']:.1f}",
            "Opening": opening,
        }
        for side, counts in report.classifications.items():
            for label, count in counts.items():
                row[_count_field(side, label)] = count
        for field in _HEADER_FIELDS:
            row[field] = headers.get(field, "")
        return row

    def generate_csv_report(self, results: List[ProcessedGameResult], output_report_path: str) -> None:
        """Writes one CSV row per reviewed game."""
        if not results:
            logger.info("No reviewed games; CSV report will not be generated.")
            return

        logger.info(f"Generating CSV summary report for {len(results)} games at: '{output_report_path}'")
        rows = [self.build_csv_row(result) for result in results]
        try:
            self._ensure_directory(output_report_path)
            with open(output_report_path, 'w', newline='', encoding='utf-8') as csvfile:
                writer = csv.DictWriter(csvfile, fieldnames=self._CSV_HEADERS, extrasaction='ignore')
                writer.writeheader()
                writer.writerows(rows)
        except OSError as e:
            raise ReportWriteError(f"Failed to write CSV report to '{output_report_path}'") from e
        logger.info(f"CSV summary report generated successfully: '{output_report_path}'")

    def generate_json_report(self, results: List[ProcessedGameResult], output_report_path: str) -> None:
        """Writes the full per-position review of every game as JSON."""
        if not results:
            logger.info("No reviewed games; JSON report will not be generated.")
            return

        payload = {"games": [game_to_dict(result) for result in results]}
        try:
            self._ensure_directory(output_report_path)
            with open(output_report_path, 'w', encoding='utf-8') as jsonfile:
                json.dump(payload, jsonfile, indent=2)
        except (OSError, TypeError, ValueError) as e:
            raise ReportWriteError(f"Failed to write JSON report to '{output_report_path}'") from e
        logger.info(f"JSON report generated successfully: '{output_report_path}'")

    @staticmethod
    def _ensure_directory(path: str) -> None:
        if (output_dir := os.path.dirname(path)):
            os.makedirs(output_dir, exist_ok=True)
