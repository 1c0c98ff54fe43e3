from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass
class _RouteStats:
    requests: int = 0
    errors: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, status_code: int, duration_ms: float) -> None:
        self.requests += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)
        if status_code >= 400:
            self.errors += 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.requests,
            "error_count": self.errors,
            "avg_duration_ms": round(self.total_ms / self.requests, 2) if self.requests else 0.0,
            "max_duration_ms": round(self.max_ms, 2),
        }


class ServiceMetrics:
    """Process-local counters: per-route request timings and claim outcomes.

    Each worker process keeps its own numbers; nothing is shared or persisted.
    """

    def __init__(self) -> None:
        self._routes: dict[str, _RouteStats] = {}
        self._claim_outcomes: Counter[str] = Counter()
        self._lock = Lock()

    def observe(self, *, route: str, method: str, status_code: int, duration_ms: float) -> None:
        key = f"{method} {route}"
        with self._lock:
            self._routes.setdefault(key, _RouteStats()).add(status_code, duration_ms)

    def record_claim_outcome(self, outcome: str) -> None:
        with self._lock:
            self._claim_outcomes[outcome] += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "endpoints": {key: stats.as_dict() for key, stats in sorted(self._routes.items())},
                "claims": dict(self._claim_outcomes),
            }

    def reset(self) -> None:
        with self._lock:
            self._routes.clear()
            self._claim_outcomes.clear()


service_metrics = ServiceMetrics()
