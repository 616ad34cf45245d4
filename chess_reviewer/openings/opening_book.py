# chess_reviewer/openings/opening_book.py
"""
Named opening lookup.

The book is a static table of `{name, fen}` entries where `fen` holds the
piece placement of a theoretical position. A position matches an entry when
its FEN contains the entry's placement; the first matching entry wins.
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from chess_reviewer.config import settings

logger = logging.getLogger(settings.APP_NAME + ".OpeningBook")

DEFAULT_OPENINGS_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "openings.json")


@dataclass(frozen=True)
class Opening:
    name: str
    fen: str


class OpeningBook:
    """An ordered, read-only table of named opening positions."""

    def __init__(self, openings: List[Opening]):
        self.openings = list(openings)

    @classmethod
    def load(cls, path: str = DEFAULT_OPENINGS_PATH) -> "OpeningBook":
        """Reads an openings table from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            entries = json.load(f)
        openings = [Opening(name=entry["name"], fen=entry["fen"]) for entry in entries]
        logger.debug(f"Loaded {len(openings)} openings from {path}.")
        return cls(openings)

    def lookup(self, fen: str) -> Optional[str]:
        """Returns the name of the first opening whose placement `fen` contains."""
        for opening in self.openings:
            if opening.fen in fen:
                return opening.name
        return None

    def __len__(self) -> int:
        return len(self.openings)
