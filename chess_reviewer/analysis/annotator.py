# chess_reviewer/analysis/annotator.py
"""
Handles the generation of PGN comments based on pre-processed review data.

This module provides the Annotator class, a formatting engine. It takes a
fully prepared AnnotationContext and assembles the final PGN comment string
and the move glyph (NAG) that goes with a classification.
"""
import logging
import re
from typing import Dict, Optional, Tuple

import chess.pgn

from chess_reviewer.config import settings
from chess_reviewer.types import AnnotationContext, Classification

logger = logging.getLogger(settings.APP_NAME + ".Annotator")

CLASSIFICATION_TITLES: Dict[Classification, str] = {
    Classification.BRILLIANT: "Brilliant",
    Classification.GREAT: "Great Move",
    Classification.BEST: "Best",
    Classification.EXCELLENT: "Excellent",
    Classification.GOOD: "Good",
    Classification.INACCURACY: "Inaccuracy",
    Classification.MISTAKE: "Mistake",
    Classification.BLUNDER: "Blunder",
    Classification.BOOK: "Book",
    Classification.FORCED: "Forced",
}

CLASSIFICATION_NAGS: Dict[Classification, int] = {
    Classification.BRILLIANT: chess.pgn.NAG_BRILLIANT_MOVE,
    Classification.GREAT: chess.pgn.NAG_GOOD_MOVE,
    Classification.INACCURACY: chess.pgn.NAG_DUBIOUS_MOVE,
    Classification.MISTAKE: chess.pgn.NAG_MISTAKE,
    Classification.BLUNDER: chess.pgn.NAG_BLUNDER,
}


class Annotator:
    """
    Creates formatted PGN comments from a pre-processed review context.
    This class only formats and does not perform any calculations.
    """

    def __init__(self, engine_name: str = "Engine"):
        """
        Initializes the Annotator.

        Args:
            engine_name: The short name of the engine for use in comments (e.g., "SF17").
        """
        self.engine_name = engine_name
        titles = "|".join(re.escape(title) for title in CLASSIFICATION_TITLES.values())
        self._our_analysis_tags_patterns = [
            re.compile(r"\[%eval\s+[^\]]+\]"),
            re.compile(r"\[Analyse\s+[^\]]+\]"),
            re.compile(rf"\{{({titles})\}}"),
        ]
        logger.debug(f"Annotator initialized for engine '{self.engine_name}'.")

    @staticmethod
    def nag_for(classification: Optional[Classification]) -> Optional[int]:
        """The move glyph for a classification, if it has one."""
        if classification is None:
            return None
        return CLASSIFICATION_NAGS.get(classification)

    def _format_analyse_tag(self, context: AnnotationContext) -> str:
        """Formats the [Analyse ...] tag containing engine lines and the PV."""
        if not context.engine_lines:
            return ""

        best_line = next((line for line in context.engine_lines if line.is_best_line), None)
        if not best_line:
            return ""

        best_line_comment = f"Best: {best_line.move_san} ({best_line.eval_str})"
        if best_line.pv_san_list:
            best_line_comment += f" PV: {' '.join(best_line.pv_san_list)}"

        top_n_comment = ""
        if len(context.engine_lines) > 1:
            top_n_parts = [f"{i+1}.{line.move_san}({line.eval_str})" for i, line in enumerate(context.engine_lines)]
            top_n_comment = f"; Top: {' '.join(top_n_parts)}"

        header = f"[Analyse {self.engine_name}@{context.analysis_depth}d{context.multipv_setting}pv: "
        return f"{header}{best_line_comment}{top_n_comment}]"

    def prepare_context_from_existing_comment(self, existing_comment: str) -> Tuple[str, str]:
        """
        Parses an existing comment to extract the user's portion and the clock tag.

        Returns:
            A tuple of (user_comment_part, clk_comment_part).
        """
        clk_match = re.search(r"(\[%clk\s+[\d:\.]+\])", existing_comment)
        clk_comment_part = clk_match.group(1) if clk_match else ""

        cleaned_comment = existing_comment
        if clk_comment_part:
            cleaned_comment = cleaned_comment.replace(clk_comment_part, "").strip()

        # Drop anything a previous review run wrote.
        for pattern in self._our_analysis_tags_patterns:
            cleaned_comment = pattern.sub("", cleaned_comment).strip()

        user_comment_part = ""
        if cleaned_comment and cleaned_comment != "{}":
            if cleaned_comment.startswith('{') and cleaned_comment.endswith('}'):
                cleaned_comment = cleaned_comment[1:-1].strip()
            if cleaned_comment:
                user_comment_part = f"{{{cleaned_comment}}}"

        return user_comment_part, clk_comment_part

    def generate_pgn_node_comment(self, context: AnnotationContext) -> str:
        """
        Generates a complete PGN comment string from a pre-filled context object.
        The order is: {Classification} [%eval] [%clk] [Analyse] {UserComment}
        """
        classification_part = ""
        if context.classification is not None:
            classification_part = f"{{{CLASSIFICATION_TITLES[context.classification]}}}"

        final_parts = [
            classification_part,
            context.eval_after_move_wpov_str,
            context.clk_comment_part,
            self._format_analyse_tag(context),
            context.user_comment_part,
        ]
        return " ".join(p for p in final_parts if p).strip()
