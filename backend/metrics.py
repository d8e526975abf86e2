"""In-process counters and timings for the Teach Me backend.

Series are keyed by name plus optional labels, rendered as
``name{key=value,...}`` in snapshots. Single-process only; swap for a real
exporter when running several workers.
"""
from typing import Any, Dict, Iterator, Optional
from contextlib import contextmanager
import threading
import time


def _series_key(name: str, labels: Optional[Dict[str, Any]] = None) -> str:
    if not labels:
        return name
    rendered = ",".join(f"{k}={labels[k]}" for k in sorted(labels))
    return f"{name}{{{rendered}}}"


class MetricsCollector:
    _global = None
    _global_lock = threading.Lock()

    def __init__(self):
        self._lock = threading.Lock()
        self.counters: Dict[str, int] = {}
        self.timers: Dict[str, list] = {}

    @classmethod
    def get_global(cls) -> "MetricsCollector":
        with cls._global_lock:
            if cls._global is None:
                cls._global = MetricsCollector()
            return cls._global

    def increment(self, name: str, amount: int = 1, labels: Optional[Dict[str, Any]] = None) -> None:
        key = _series_key(name, labels)
        with self._lock:
            self.counters[key] = self.counters.get(key, 0) + amount

    def timing(self, name: str, ms: int, labels: Optional[Dict[str, Any]] = None) -> None:
        key = _series_key(name, labels)
        with self._lock:
            self.timers.setdefault(key, []).append(ms)

    @contextmanager
    def timed(self, name: str, labels: Optional[Dict[str, Any]] = None) -> Iterator[None]:
        t0 = time.time()
        try:
            yield
        finally:
            self.timing(name, int((time.time() - t0) * 1000), labels=labels)

    def counter(self, name: str, labels: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return self.counters.get(_series_key(name, labels), 0)

    def reset(self) -> None:
        with self._lock:
            self.counters.clear()
            self.timers.clear()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {"counters": dict(self.counters), "timers": {k: list(v) for k, v in self.timers.items()}}


__all__ = ["MetricsCollector"]
