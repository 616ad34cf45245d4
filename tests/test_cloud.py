# tests/test_cloud.py
"""
Unit tests for the cloud evaluation client, with the HTTP layer stubbed out.
"""
import pytest
import requests

from conftest import AFTER_E4_FEN, START_FEN
from chess_reviewer.engine import cloud
from chess_reviewer.engine.cloud import CloudEvaluator, parse_cloud_payload
from chess_reviewer.exceptions import CloudEvaluationError
from chess_reviewer.types import Centipawn, Mate

START_PAYLOAD = {
    "fen": START_FEN,
    "knodes": 100,
    "depth": 45,
    "pvs": [
        {"moves": "e2e4 e7e5 g1f3", "cp": 18},
        {"moves": "d2d4 d7d5", "cp": 15},
        {"moves": "g1f3", "cp": 12},
    ],
}


class FakeResponse:
    def __init__(self, status_code, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._payload


@pytest.fixture
def respond(monkeypatch):
    """Makes `requests.get` return the given response (or raise the given error)."""
    calls = []

    def install(response):
        def fake_get(url, params=None, timeout=None):
            calls.append({"url": url, "params": params, "timeout": timeout})
            if isinstance(response, Exception):
                raise response
            return response
        monkeypatch.setattr(cloud.requests, "get", fake_get)
        return calls
    return install


def test_successful_lookup(respond):
    calls = respond(FakeResponse(200, START_PAYLOAD))
    lines = CloudEvaluator(multipv_count=3, timeout=1.5).fetch(START_FEN)

    assert [line.move_uci for line in lines] == ["e2e4", "d2d4", "g1f3"]
    assert [line.rank for line in lines] == [1, 2, 3]
    assert lines[0].evaluation == Centipawn(18)
    assert lines[0].continuation_uci == ("e7e5", "g1f3")
    assert lines[0].search_depth == 45
    assert calls[0]["params"] == {"fen": START_FEN, "multiPv": 3}
    assert calls[0]["timeout"] == 1.5


def test_unknown_position_is_a_miss(respond):
    respond(FakeResponse(404, {"error": "Not found"}))
    assert CloudEvaluator().fetch(START_FEN) is None


def test_single_line_is_a_miss(respond):
    respond(FakeResponse(200, {"depth": 30, "pvs": [{"moves": "e2e4", "cp": 20}]}))
    assert CloudEvaluator().fetch(START_FEN) is None


@pytest.mark.parametrize("response", [
    FakeResponse(500),
    FakeResponse(429),
    FakeResponse(200, invalid_json=True),
    FakeResponse(200, {"depth": 30}),
    requests.exceptions.ConnectionError("connection refused"),
    requests.exceptions.Timeout("timed out"),
])
def test_failures_raise_cloud_errors(respond, response):
    respond(response)
    with pytest.raises(CloudEvaluationError):
        CloudEvaluator().fetch(START_FEN)


def test_injected_session_is_used():
    class FakeSession:
        def __init__(self):
            self.urls = []

        def get(self, url, params=None, timeout=None):
            self.urls.append(url)
            return FakeResponse(200, START_PAYLOAD)

    session = FakeSession()
    evaluator = CloudEvaluator(url="https://example.test/cloud-eval", session=session)
    assert len(evaluator.fetch(START_FEN)) == 3
    assert session.urls == ["https://example.test/cloud-eval"]


def test_multipv_is_at_least_two():
    assert CloudEvaluator(multipv_count=1).multipv_count == 2


def test_payload_parsing_keeps_white_perspective_and_mates():
    payload = {"depth": 20, "pvs": [{"moves": "d7d5", "mate": -3}, {"moves": "e7e5", "cp": -40}]}
    lines = parse_cloud_payload(AFTER_E4_FEN, payload)
    assert [line.evaluation for line in lines] == [Mate(-3), Centipawn(-40)]


def test_payload_parsing_drops_illegal_and_duplicate_moves():
    payload = {"depth": 20, "pvs": [
        {"moves": "e2e5", "cp": 50},
        {"moves": "e2e4", "cp": 30},
        {"moves": "e2e4 e7e5", "cp": 29},
        {"moves": "", "cp": 10},
        {"moves": "d2d4", "cp": 25},
    ]}
    lines = parse_cloud_payload(START_FEN, payload)
    assert [(line.rank, line.move_uci) for line in lines] == [(1, "e2e4"), (2, "d2d4")]


def test_payload_line_without_score_is_malformed():
    with pytest.raises(CloudEvaluationError):
        parse_cloud_payload(START_FEN, {"depth": 20, "pvs": [{"moves": "e2e4"}]})
