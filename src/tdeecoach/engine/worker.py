"""Off-thread estimation behind a request/response message protocol.

Requests are plain dictionaries::

    {"op": "estimate", "payload": {"weights": [...], "intake": [...], "prior_tdee": 2500}}
    {"op": "trend", "payload": {"weights": [...], "method": "kalman"}}

Every request gets exactly one response: ``{"op": <op>, "result": {...}}`` on
success or ``{"op": "error", "message": "..."}`` on failure. An ``id`` on the
request is echoed back.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Generic, Iterable, Iterator, Optional, Sequence, TypeVar

from tdeecoach.errors import EngineError, ErrorKind, InvalidInputError
from tdeecoach.io import Snapshot, parse_date, parse_intakes, parse_weights
from tdeecoach.tracking.estimator import ExpenditureEstimator
from tdeecoach.tracking.models import ExpenditureEstimate
from tdeecoach.tracking.trend import analyze_trend, get_smoother

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50

T = TypeVar("T")


def _estimate_op(payload: dict, estimator: ExpenditureEstimator) -> dict[str, Any]:
    if "prior_tdee" not in payload:
        raise InvalidInputError("estimate payload is missing 'prior_tdee'")
    as_of = payload.get("as_of")
    estimate = estimator.estimate(
        parse_weights(payload.get("weights")),
        parse_intakes(payload.get("intake")),
        payload["prior_tdee"],
        as_of=parse_date(as_of, "as_of") if as_of is not None else None,
    )
    return estimate.to_dict()


def _trend_op(payload: dict, estimator: ExpenditureEstimator) -> dict[str, Any]:
    weights = parse_weights(payload.get("weights"))
    if not weights:
        raise EngineError(
            "trend payload needs at least one weight", kind=ErrorKind.INSUFFICIENT_DATA
        )
    if "method" in payload or "alpha" in payload:
        smoother = get_smoother(payload.get("method", "ewma"), payload.get("alpha", 0.1))
    else:
        smoother = estimator.smoother
    points = smoother.smooth(weights)
    analysis = analyze_trend(points)
    return {
        "method": smoother.method.value,
        "points": [p.to_dict() for p in points],
        "current_trend_weight": analysis.current_trend_weight,
        "weekly_change_rate_pct": analysis.weekly_change_rate_pct,
        "direction": analysis.direction.value,
        "data_quality": analysis.data_quality,
    }


_OPERATIONS = {
    "estimate": _estimate_op,
    "trend": _trend_op,
}


def handle_request(
    request: Any,
    estimator: Optional[ExpenditureEstimator] = None,
) -> dict[str, Any]:
    """
    Process one request synchronously.

    Args:
        request: ``{"op": ..., "payload": {...}, "id"?: ...}``
        estimator: Estimator to use (default settings when omitted)

    Returns:
        Exactly one response dictionary; never raises
    """
    request_id = request.get("id") if isinstance(request, dict) else None

    def _respond(response: dict[str, Any]) -> dict[str, Any]:
        if request_id is not None:
            response["id"] = request_id
        return response

    if not isinstance(request, dict):
        return _respond({"op": "error", "message": "request must be a mapping"})

    op = request.get("op")
    handler = _OPERATIONS.get(op)
    if handler is None:
        valid = sorted(_OPERATIONS)
        return _respond({"op": "error", "message": f"unknown op {op!r}; expected one of {valid}"})

    payload = request.get("payload") or {}
    if not isinstance(payload, dict):
        return _respond({"op": "error", "message": "payload must be a mapping"})

    try:
        result = handler(payload, estimator or ExpenditureEstimator())
    except EngineError as e:
        logger.debug("Request %s failed: %s", op, e)
        return _respond({"op": "error", "kind": e.kind.value, "message": str(e)})
    except Exception as e:  # one response per request, whatever happens
        logger.exception("Unexpected failure handling %s request", op)
        return _respond({"op": "error", "message": f"internal error: {e}"})
    return _respond({"op": op, "result": result})


class EstimationWorker:
    """
    Run requests on a background thread.

    Cancellation is coarse: a request that has not started can be cancelled,
    and ``shutdown`` abandons everything still queued.

    Example:
        >>> with EstimationWorker() as worker:
        ...     future = worker.submit({"op": "trend", "payload": {"weights": weights}})
        ...     response = future.result()
    """

    def __init__(
        self,
        estimator: Optional[ExpenditureEstimator] = None,
        max_workers: int = 1,
    ) -> None:
        self.estimator = estimator or ExpenditureEstimator()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tdeecoach-worker"
        )

    def submit(self, request: Any) -> Future:
        """Queue a request; the future resolves to its response dictionary."""
        return self._executor.submit(handle_request, request, self.estimator)

    def cancel(self, future: Future) -> bool:
        """Cancel a queued request. Returns False if it already started."""
        return future.cancel()

    def shutdown(self, cancel_pending: bool = True, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)

    def __enter__(self) -> "EstimationWorker":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()


class ChunkedSequence(Generic[T]):
    """
    Finite, re-iterable view of a sequence in fixed-size chunks.

    Iterating twice yields the same chunks; the underlying items are never
    copied or reordered, so chunk size only affects scheduling.
    """

    def __init__(self, items: Sequence[T], chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise InvalidInputError(f"chunk_size must be positive, got {chunk_size}")
        self.items = items
        self.chunk_size = chunk_size

    def __iter__(self) -> Iterator[Sequence[T]]:
        for start in range(0, len(self.items), self.chunk_size):
            yield self.items[start:start + self.chunk_size]

    def __len__(self) -> int:
        return -(-len(self.items) // self.chunk_size)


def recompute_many(
    snapshots: Iterable[Snapshot],
    estimator: Optional[ExpenditureEstimator] = None,
    prior_tdee: Optional[float] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[ExpenditureEstimate]:
    """
    Recompute estimates for many snapshots, chunk by chunk.

    Control is yielded to other threads between chunks. Each snapshot is
    estimated independently over its full history, so results do not depend
    on ``chunk_size``.

    Args:
        snapshots: Snapshots to process, in order
        estimator: Estimator to use (default settings when omitted)
        prior_tdee: Prior used for snapshots without a profile
        chunk_size: Snapshots per chunk

    Yields:
        One ExpenditureEstimate per snapshot, in input order

    Raises:
        InvalidInputError: A snapshot has neither a profile nor a fallback prior
    """
    estimator = estimator or ExpenditureEstimator()
    chunks = ChunkedSequence(list(snapshots), chunk_size)
    for index, chunk in enumerate(chunks):
        for snapshot in chunk:
            prior = snapshot.profile.prior_tdee if snapshot.profile else prior_tdee
            if prior is None:
                raise InvalidInputError("snapshot has no profile and no prior_tdee was given")
            yield estimator.estimate(
                snapshot.weights, snapshot.intake, prior, as_of=snapshot.as_of
            )
        logger.debug("Finished chunk %d/%d", index + 1, len(chunks))
        time.sleep(0)
