"""In-process counters and latency windows for source fetch attempts."""

from __future__ import annotations

from collections import defaultdict, deque
from threading import Lock


class SourceMetrics:
    def __init__(self, latency_window: int = 500) -> None:
        self._lock = Lock()
        self._latency_window = latency_window
        self._attempts: dict[str, int] = defaultdict(int)
        self._outcomes: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._latencies_ms: dict[str, deque] = {}

    def observe_attempt(self, source: str, outcome: str, duration_ms: float) -> None:
        with self._lock:
            self._attempts[source] += 1
            self._outcomes[source][outcome] += 1
            window = self._latencies_ms.setdefault(source, deque(maxlen=self._latency_window))
            window.append(float(duration_ms))

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()
            self._outcomes.clear()
            self._latencies_ms.clear()

    def snapshot(self) -> dict:
        with self._lock:
            report = {}
            for source, attempts in self._attempts.items():
                sorted_latencies = sorted(self._latencies_ms.get(source, ()))

                def percentile(p: float) -> float:
                    if not sorted_latencies:
                        return 0.0
                    idx = int((len(sorted_latencies) - 1) * p)
                    return round(sorted_latencies[idx], 2)

                report[source] = {
                    "attempts_total": attempts,
                    "outcomes": dict(self._outcomes[source]),
                    "latency_ms": {
                        "samples": len(sorted_latencies),
                        "p50": percentile(0.50),
                        "p95": percentile(0.95),
                    },
                }
            return report


metrics = SourceMetrics()
