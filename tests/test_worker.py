"""Tests for the request handler and background worker."""

from __future__ import annotations

import pytest

from tdeecoach.engine.worker import (
    ChunkedSequence,
    EstimationWorker,
    handle_request,
    recompute_many,
)
from tdeecoach.errors import InvalidInputError
from tdeecoach.io import parse_snapshot


def _estimate_request(snapshot_data: dict, **extra) -> dict:
    payload = {
        "weights": snapshot_data["weights"],
        "intake": snapshot_data["intake"],
        "prior_tdee": 2500,
    }
    payload.update(extra)
    return {"op": "estimate", "payload": payload}


class TestHandleRequest:
    """Tests for handle_request."""

    def test_estimate(self, snapshot_data) -> None:
        response = handle_request(_estimate_request(snapshot_data))
        assert response["op"] == "estimate"
        assert response["result"]["algorithm_tier"] == "weighted_regression"
        assert 2000 <= response["result"]["estimated_tdee"] <= 3000

    def test_estimate_as_of(self, snapshot_data) -> None:
        response = handle_request(_estimate_request(snapshot_data, as_of="2024-01-05"))
        assert response["result"]["algorithm_tier"] == "fallback"
        assert response["result"]["as_of_date"] == "2024-01-05"

    def test_trend(self, snapshot_data) -> None:
        request = {
            "op": "trend",
            "payload": {"weights": snapshot_data["weights"], "method": "kalman"},
        }
        response = handle_request(request)
        assert response["op"] == "trend"
        assert response["result"]["method"] == "kalman"
        assert len(response["result"]["points"]) == 21
        assert response["result"]["direction"] == "losing"

    def test_id_echoed(self, snapshot_data) -> None:
        request = _estimate_request(snapshot_data)
        request["id"] = 42
        assert handle_request(request)["id"] == 42

    def test_id_echoed_on_error(self) -> None:
        response = handle_request({"op": "nope", "id": "abc"})
        assert response["op"] == "error"
        assert response["id"] == "abc"

    def test_unknown_op(self) -> None:
        response = handle_request({"op": "explode"})
        assert response["op"] == "error"
        assert "unknown op" in response["message"]

    def test_not_a_mapping(self) -> None:
        assert handle_request(["estimate"])["op"] == "error"

    def test_payload_not_a_mapping(self) -> None:
        assert handle_request({"op": "estimate", "payload": [1, 2]})["op"] == "error"

    def test_missing_prior(self, snapshot_data) -> None:
        request = _estimate_request(snapshot_data)
        del request["payload"]["prior_tdee"]
        response = handle_request(request)
        assert response["op"] == "error"
        assert "prior_tdee" in response["message"]

    def test_invalid_sample(self, snapshot_data) -> None:
        snapshot_data["weights"][0]["weight_kg"] = -80
        response = handle_request(_estimate_request(snapshot_data))
        assert response["op"] == "error"
        assert "must not be negative" in response["message"]
        assert response["kind"] == "invalid_input"

    def test_trend_without_weights(self) -> None:
        response = handle_request({"op": "trend", "payload": {"weights": []}})
        assert response["op"] == "error"
        assert response["kind"] == "insufficient_data"


class TestEstimationWorker:
    """Tests for EstimationWorker."""

    def test_submit(self, snapshot_data) -> None:
        with EstimationWorker() as worker:
            response = worker.submit(_estimate_request(snapshot_data)).result(timeout=10)
        assert response["op"] == "estimate"

    def test_one_response_per_request(self, snapshot_data) -> None:
        requests = [_estimate_request(snapshot_data), {"op": "bad"}, "garbage"]
        with EstimationWorker(max_workers=2) as worker:
            futures = [worker.submit(r) for r in requests]
            responses = [f.result(timeout=10) for f in futures]
        assert [r["op"] for r in responses] == ["estimate", "error", "error"]

    def test_cancel_finished_request(self, snapshot_data) -> None:
        with EstimationWorker() as worker:
            future = worker.submit(_estimate_request(snapshot_data))
            future.result(timeout=10)
            assert worker.cancel(future) is False


class TestChunkedSequence:
    """Tests for ChunkedSequence."""

    def test_chunks(self) -> None:
        chunks = ChunkedSequence(list(range(7)), chunk_size=3)
        assert len(chunks) == 3
        assert [list(c) for c in chunks] == [[0, 1, 2], [3, 4, 5], [6]]

    def test_reiterable(self) -> None:
        chunks = ChunkedSequence("abcde", chunk_size=2)
        assert list(chunks) == list(chunks)

    def test_empty(self) -> None:
        chunks = ChunkedSequence([], chunk_size=5)
        assert len(chunks) == 0
        assert list(chunks) == []

    def test_invalid_chunk_size(self) -> None:
        with pytest.raises(InvalidInputError):
            ChunkedSequence([1], chunk_size=0)


class TestRecomputeMany:
    """Tests for recompute_many."""

    def test_chunk_size_does_not_change_results(self, snapshot_data) -> None:
        snapshots = []
        for days in (5, 10, 16, 21):
            data = dict(snapshot_data)
            data["weights"] = snapshot_data["weights"][:days]
            data["intake"] = snapshot_data["intake"][:days]
            snapshots.append(parse_snapshot(data))

        one = list(recompute_many(snapshots, chunk_size=1))
        many = list(recompute_many(snapshots, chunk_size=50))
        assert one == many
        assert [e.paired_days for e in one] == [5, 10, 16, 21]

    def test_fallback_prior_for_profileless_snapshot(self, snapshot_data) -> None:
        del snapshot_data["profile"]
        results = list(recompute_many([parse_snapshot(snapshot_data)], prior_tdee=2600))
        assert len(results) == 1

    def test_missing_prior(self, snapshot_data) -> None:
        del snapshot_data["profile"]
        with pytest.raises(InvalidInputError):
            list(recompute_many([parse_snapshot(snapshot_data)]))
