"""Optional metrics and caching collaborators for the estimator.

Both are passed in explicitly. Nothing here is a process-wide singleton, and
neither collaborator may change a computed result.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Hashable, Optional, Protocol

logger = logging.getLogger(__name__)

# Calculations slower than this are logged as warnings
SLOW_CALCULATION_SECONDS = 0.1

DEFAULT_CACHE_SIZE = 128


class MetricsRecorder(Protocol):
    """Receives one record per instrumented calculation."""

    def record(
        self,
        name: str,
        elapsed_seconds: float,
        input_size: int,
        algorithm: str,
        cache_hit: bool = False,
    ) -> None:
        ...


@dataclass
class FunctionStats:
    """Aggregated timings for one instrumented function."""

    calls: int = 0
    total_seconds: float = 0.0
    max_seconds: float = 0.0
    cache_hits: int = 0
    last_algorithm: str = ""

    @property
    def mean_seconds(self) -> float:
        computed = self.calls - self.cache_hits
        if computed <= 0:
            return 0.0
        return self.total_seconds / computed

    @property
    def cache_hit_rate(self) -> float:
        if self.calls == 0:
            return 0.0
        return self.cache_hits / self.calls

    def to_dict(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "mean_ms": round(self.mean_seconds * 1000, 3),
            "max_ms": round(self.max_seconds * 1000, 3),
            "cache_hits": self.cache_hits,
            "cache_hit_rate": round(self.cache_hit_rate, 3),
            "last_algorithm": self.last_algorithm,
        }


class InMemoryMetrics:
    """Thread-safe in-memory ``MetricsRecorder``."""

    def __init__(self, slow_threshold_seconds: float = SLOW_CALCULATION_SECONDS) -> None:
        self.slow_threshold_seconds = slow_threshold_seconds
        self._stats: dict[str, FunctionStats] = {}
        self._lock = threading.Lock()

    def record(
        self,
        name: str,
        elapsed_seconds: float,
        input_size: int,
        algorithm: str,
        cache_hit: bool = False,
    ) -> None:
        with self._lock:
            stats = self._stats.setdefault(name, FunctionStats())
            stats.calls += 1
            stats.last_algorithm = algorithm
            if cache_hit:
                stats.cache_hits += 1
            else:
                stats.total_seconds += elapsed_seconds
                stats.max_seconds = max(stats.max_seconds, elapsed_seconds)

        if elapsed_seconds > self.slow_threshold_seconds:
            logger.warning(
                "Slow calculation: %s took %.1f ms (%d inputs, %s)",
                name,
                elapsed_seconds * 1000,
                input_size,
                algorithm,
            )

    def get(self, name: str) -> Optional[FunctionStats]:
        with self._lock:
            return self._stats.get(name)

    def summary(self) -> dict[str, dict[str, Any]]:
        """Per-function statistics as plain dictionaries."""
        with self._lock:
            return {name: stats.to_dict() for name, stats in self._stats.items()}

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


class SnapshotCache:
    """
    Bounded least-recently-used cache keyed on immutable input snapshots.

    Keys must be hashable; the estimator builds them from tuples of frozen
    samples plus its parameters, so equal inputs always map to the same key.

    Attributes:
        max_size: Maximum number of entries kept
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if key not in self._entries:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)
