"""In-process metrics for sync runs.

Counters track cache hits/misses, reconcile outcomes and entry point
success/error totals; timing summaries track entry point durations.

Provides: MetricsCollector, get_metrics_collector, timing_decorator.
"""
import inspect
import threading
import time
from functools import wraps
from dataclasses import dataclass
from collections import defaultdict
from datetime import datetime, UTC
from typing import Dict, Any, Callable


@dataclass
class TimingSummary:
    count: int = 0
    total: float = 0.0
    min_value: float = float('inf')
    max_value: float = float('-inf')
    last_updated: datetime | None = None

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.min_value = min(self.min_value, value)
        self.max_value = max(self.max_value, value)
        self.last_updated = datetime.now(UTC)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'total': self.total,
            'min': self.min_value if self.count else 0,
            'max': self.max_value if self.count else 0,
            'avg': self.total / self.count if self.count else 0.0,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
        }


class MetricsCollector:
    """Thread-safe labelled counters and timing summaries."""

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._timings: Dict[str, TimingSummary] = defaultdict(TimingSummary)

    @staticmethod
    def _key(name: str, labels: Dict[str, Any]) -> str:
        if not labels:
            return name
        return name + ''.join(f'|{k}={v}' for k, v in sorted(labels.items()))

    def increment_counter(self, name: str, value: int = 1, **labels) -> None:
        with self._lock:
            self._counters[self._key(name, labels)] += value

    def get_counter(self, name: str, **labels) -> int:
        with self._lock:
            return self._counters.get(self._key(name, labels), 0)

    def counter_total(self, name: str) -> int:
        """Sum of a counter across every label combination."""
        with self._lock:
            return sum(v for k, v in self._counters.items() if k == name or k.startswith(f'{name}|'))

    def record_timing(self, name: str, duration_ms: float, **labels) -> None:
        with self._lock:
            self._timings[self._key(name, labels)].observe(duration_ms)

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'timestamp': datetime.now(UTC).isoformat(),
                'counters': dict(self._counters),
                'summaries': {key: summary.to_dict() for key, summary in self._timings.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _metrics


def timing_decorator(metric_name: str, **labels):
    """Count success/error calls as ``<name>_total`` and time them as ``<name>_duration``."""
    def record(status: str, started: float) -> None:
        _metrics.increment_counter(f"{metric_name}_total", status=status, **labels)
        _metrics.record_timing(f"{metric_name}_duration", (time.perf_counter() - started) * 1000, **labels)

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception:
                    record("error", started)
                    raise
                record("success", started)
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception:
                record("error", started)
                raise
            record("success", started)
            return result
        return sync_wrapper
    return decorator
