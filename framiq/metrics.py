"""In-process run metrics.

Counts runs and per-file outcomes and keeps per-file durations, so a CLI
summary or a test can see what a batch did without parsing logs.

    from framiq.metrics import metrics
    with metrics.file_timer():
        ...
    metrics.file_done(ok=True)
    metrics.snapshot()["counters"]["pipeline.processed"]
"""

from __future__ import annotations

import time
from collections import Counter, deque
from contextlib import contextmanager
from threading import RLock
from typing import Any

FILE_DURATION = "pipeline.file_duration"
# recent per-file durations kept; older samples fall off
MAX_DURATION_SAMPLES = 1000


class RunMetrics:
    def __init__(self, max_samples: int = MAX_DURATION_SAMPLES) -> None:
        self._counters: Counter[str] = Counter()
        self._durations: deque[float] = deque(maxlen=max_samples)
        self._lock = RLock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def run_started(self) -> None:
        self.inc("pipeline.runs")

    def run_ended(self, phase: str) -> None:
        self.inc(f"pipeline.{phase}")

    def file_done(self, ok: bool) -> None:
        self.inc("pipeline.processed" if ok else "pipeline.skipped")

    @contextmanager
    def file_timer(self):
        start = time.perf_counter()
        try:
            yield
        finally:
            with self._lock:
                self._durations.append(time.perf_counter() - start)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {FILE_DURATION: list(self._durations)} if self._durations else {},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._durations.clear()


metrics = RunMetrics()
