"""
Observability metrics for the TabTint color resolution pipeline.

Counters track cache behaviour, debounce coalescing, probe outcomes and
recovered errors; ``performance_monitor`` times individual pipeline stages.
"""

import time
import threading
from collections import Counter, defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

import numpy as np
import psutil
from loguru import logger

from tabtint.services.reliability import ExtractionError


@dataclass
class PerformanceMetrics:
    """Performance metrics for one pipeline stage."""
    operation_name: str
    duration_ms: float
    memory_usage_mb: float
    timestamp: float
    key: Optional[str] = None
    error: Optional[str] = None


class MetricsCollector:
    """Thread-safe in-process metrics collector."""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = Counter()
        self._metrics_history: deque = deque(maxlen=max_history)
        self._durations: Dict[str, List[float]] = defaultdict(list)
        self._start_time = time.time()

    def increment(self, name: str, amount: int = 1) -> None:
        """Increment a named counter."""
        with self._lock:
            self._counters[name] += amount

    def record_probe_outcome(self, strategy: str, outcome: str) -> None:
        """Count a strategy result: hit, miss, timeout, error."""
        self.increment(f"probe_{strategy}_{outcome}")

    def record_recovered_error(self, error_type: str) -> None:
        """Count a locally recovered extraction error by class name."""
        self.increment(f"recovered_{error_type}")

    def record_performance(self, metrics: PerformanceMetrics) -> None:
        """Record performance metrics for an operation."""
        with self._lock:
            self._metrics_history.append(metrics)
            durations = self._durations[metrics.operation_name]
            durations.append(metrics.duration_ms)
            # Keep only recent stats to prevent memory growth
            if len(durations) > 100:
                durations.pop(0)

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_counters(self) -> Dict[str, int]:
        """Get current counter values."""
        with self._lock:
            return dict(self._counters)

    def get_operation_stats(self, operation_name: str) -> Dict[str, Any]:
        """Get aggregated duration statistics for a specific operation."""
        with self._lock:
            durations = list(self._durations.get(operation_name, []))

        if not durations:
            return {}

        return {
            'operation_name': operation_name,
            'count': len(durations),
            'mean_ms': float(np.mean(durations)),
            'median_ms': float(np.median(durations)),
            'p95_ms': float(np.percentile(durations, 95)),
            'min_ms': float(np.min(durations)),
            'max_ms': float(np.max(durations)),
        }

    def get_recent_metrics(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get the most recent performance metrics."""
        with self._lock:
            recent = list(self._metrics_history)[-limit:]
        return [asdict(metric) for metric in recent]

    def get_summary(self) -> Dict[str, Any]:
        """Get complete metrics summary."""
        with self._lock:
            operations = list(self._durations.keys())
        return {
            'uptime_seconds': time.time() - self._start_time,
            'counters': self.get_counters(),
            'operations': {name: self.get_operation_stats(name) for name in operations},
        }

    def reset(self):
        """Reset all metrics (for testing)."""
        with self._lock:
            self._counters.clear()
            self._metrics_history.clear()
            self._durations.clear()
            self._start_time = time.time()


# Global metrics collector instance
_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return _metrics_collector


def reset_metrics():
    """Reset global metrics (for testing)."""
    _metrics_collector.reset()


def _rss_mb() -> float:
    return psutil.Process().memory_info().rss / 1024 / 1024


@contextmanager
def performance_monitor(operation_name: str, key: Optional[str] = None):
    """Context manager for monitoring performance of pipeline stages."""
    start_time = time.time()
    start_memory = _rss_mb()

    error_msg = None
    recovered = False

    try:
        yield
    except Exception as e:
        error_msg = str(e) or type(e).__name__
        recovered = isinstance(e, ExtractionError)
        raise
    finally:
        end_time = time.time()

        metrics = PerformanceMetrics(
            operation_name=operation_name,
            duration_ms=(end_time - start_time) * 1000,
            memory_usage_mb=max(_rss_mb(), start_memory),
            timestamp=end_time,
            key=key,
            error=error_msg
        )

        _metrics_collector.record_performance(metrics)

        if error_msg and recovered:
            # Callers fall through to the next strategy
            logger.warning(f"Operation {operation_name} gave up after {metrics.duration_ms:.1f}ms: {error_msg}")
        elif error_msg:
            logger.error(f"Operation {operation_name} failed after {metrics.duration_ms:.1f}ms: {error_msg}")
        else:
            logger.debug(f"Operation {operation_name} completed in {metrics.duration_ms:.1f}ms "
                         f"(memory: {metrics.memory_usage_mb:.1f}MB)")
