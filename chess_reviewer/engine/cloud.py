# chess_reviewer/engine/cloud.py
"""
Lookup of cached evaluations from the Lichess cloud evaluation service.

Cloud evaluations are already expressed from White's perspective, so they map
directly onto `EngineLine`s. A position the service does not know is a miss
(None), not an error; callers then fall back to the local engine.
"""
import logging
from typing import Any, Dict, List, Optional

import chess
import requests

from chess_reviewer.config import settings
from chess_reviewer.exceptions import CloudEvaluationError
from chess_reviewer.types import Centipawn, EngineLine, Evaluation, Mate

logger = logging.getLogger(settings.APP_NAME + ".CloudEvaluator")


class CloudEvaluator:
    """Fetches multi-line evaluations for a FEN from the cloud service."""

    def __init__(
        self,
        multipv_count: int = settings.DEFAULT_MULTI_PV,
        url: str = settings.CLOUD_EVAL_URL,
        timeout: float = settings.CLOUD_EVAL_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.multipv_count = max(settings.MIN_MULTI_PV, multipv_count)
        self.url = url
        self.timeout = timeout
        self._http = session

    def _get(self, params: Dict[str, Any]) -> requests.Response:
        if self._http is not None:
            return self._http.get(self.url, params=params, timeout=self.timeout)
        return requests.get(self.url, params=params, timeout=self.timeout)

    def fetch(self, fen: str) -> Optional[List[EngineLine]]:
        """
        Returns at least two ranked lines for `fen`, or None when the service has
        no usable evaluation for it.

        Raises:
            CloudEvaluationError: on transport failures, unexpected status codes
                or malformed response bodies.
        """
        try:
            response = self._get({"fen": fen, "multiPv": self.multipv_count})
        except requests.exceptions.RequestException as e:
            raise CloudEvaluationError(f"Cloud evaluation request failed: {e}") from e

        if response.status_code == 404:
            logger.debug(f"No cloud evaluation for '{fen}'.")
            return None
        if response.status_code != 200:
            raise CloudEvaluationError(
                f"Cloud evaluation service answered {response.status_code} for '{fen}'."
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise CloudEvaluationError(f"Cloud evaluation response is not JSON: {e}") from e

        lines = parse_cloud_payload(fen, payload)
        if len(lines) < settings.MIN_MULTI_PV:
            logger.debug(f"Cloud evaluation for '{fen}' has only {len(lines)} line(s); treating as a miss.")
            return None
        return lines


def _evaluation_from(pv: Dict[str, Any]) -> Evaluation:
    if "mate" in pv:
        return Mate(int(pv["mate"]))
    if "cp" in pv:
        return Centipawn(int(pv["cp"]))
    raise CloudEvaluationError(f"Cloud line has no score: {pv}")


def parse_cloud_payload(fen: str, payload: Any) -> List[EngineLine]:
    """Converts a cloud-eval JSON body into ranked lines, dropping illegal ones."""
    if not isinstance(payload, dict) or not isinstance(payload.get("pvs"), list):
        raise CloudEvaluationError("Cloud evaluation response has no 'pvs' list.")

    try:
        depth = int(payload.get("depth", 0))
        legal = {move.uci() for move in chess.Board(fen).legal_moves}
    except (TypeError, ValueError) as e:
        raise CloudEvaluationError(f"Malformed cloud evaluation: {e}") from e

    lines: List[EngineLine] = []
    for pv in payload["pvs"]:
        if not isinstance(pv, dict):
            raise CloudEvaluationError(f"Malformed cloud line: {pv!r}")
        moves = str(pv.get("moves", "")).split()
        if not moves or moves[0] not in legal or any(line.move_uci == moves[0] for line in lines):
            continue
        try:
            evaluation = _evaluation_from(pv)
        except (TypeError, ValueError) as e:
            raise CloudEvaluationError(f"Malformed cloud score: {pv!r}") from e
        lines.append(EngineLine(
            rank=len(lines) + 1,
            search_depth=depth,
            reported_depth=depth,
            evaluation=evaluation,
            move_uci=moves[0],
            continuation_uci=tuple(moves[1:]),
        ))
    return lines
