"""Run counters and timings."""

from contextlib import contextmanager
from typing import Dict, Iterator, List
import threading
import time


class MetricsRecorder:
    def increment(self, key: str, value: int = 1) -> None:
        raise NotImplementedError

    def timing(self, key: str, value_ms: float) -> None:
        raise NotImplementedError

    def snapshot(self) -> Dict[str, Dict]:
        raise NotImplementedError

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timing(key, (time.perf_counter() - start) * 1000)


class InMemoryMetricsRecorder(MetricsRecorder):
    def __init__(self) -> None:
        self._counters: Dict[str, int] = {}
        self._timings: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, value: int = 1) -> None:
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + int(value)

    def timing(self, key: str, value_ms: float) -> None:
        with self._lock:
            self._timings.setdefault(key, []).append(float(value_ms))

    def snapshot(self) -> Dict[str, Dict]:
        with self._lock:
            timing_summary = {
                key: {
                    "count": len(values),
                    "avg_ms": sum(values) / len(values),
                    "max_ms": max(values),
                }
                for key, values in self._timings.items()
                if values
            }
            return {
                "counters": dict(self._counters),
                "timings": timing_summary,
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()
