"""
Observability metrics collection for ChromaSift passes.

This module provides metrics, logging, and performance monitoring for range
combination and palette quantization passes.
"""

import time
import threading
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from functools import wraps
from typing import Dict, Any, Optional, List

import numpy as np
import psutil
from loguru import logger

from chromasift.config import config


@dataclass
class PerformanceMetrics:
    """Performance metrics for a single monitored operation."""
    operation_name: str
    duration_ms: float
    memory_usage_mb: float
    cpu_percent: float
    pixel_count: int
    cluster_count: int
    timestamp: float
    error: Optional[str] = None


class MetricsCollector:
    """Thread-safe metrics collector for ChromaSift operations."""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._lock = threading.Lock()
        self._metrics_history: deque = deque(maxlen=max_history)
        self._operation_counts = defaultdict(int)
        self._error_counts = defaultdict(int)
        self._performance_stats = defaultdict(list)

    def record_performance(self, metrics: PerformanceMetrics) -> None:
        """Record performance metrics for an operation."""
        with self._lock:
            self._metrics_history.append(metrics)
            self._operation_counts[metrics.operation_name] += 1

            if metrics.error:
                self._error_counts[metrics.operation_name] += 1

            self._performance_stats[metrics.operation_name].append({
                'duration_ms': metrics.duration_ms,
                'memory_mb': metrics.memory_usage_mb,
                'cpu_percent': metrics.cpu_percent
            })

            # Keep only recent stats to prevent memory growth
            if len(self._performance_stats[metrics.operation_name]) > 100:
                self._performance_stats[metrics.operation_name].pop(0)

    def get_operation_stats(self, operation_name: str) -> Dict[str, Any]:
        """Get aggregated statistics for a specific operation."""
        with self._lock:
            return self._operation_stats_locked(operation_name)

    def _operation_stats_locked(self, operation_name: str) -> Dict[str, Any]:
        stats = self._performance_stats.get(operation_name)
        if not stats:
            return {}

        durations = [s['duration_ms'] for s in stats]
        memory_usage = [s['memory_mb'] for s in stats]
        cpu_usage = [s['cpu_percent'] for s in stats]
        total_calls = self._operation_counts[operation_name]

        return {
            'operation_name': operation_name,
            'total_calls': total_calls,
            'error_count': self._error_counts[operation_name],
            'error_rate': self._error_counts[operation_name] / max(1, total_calls),
            'duration_stats': {
                'mean_ms': float(np.mean(durations)),
                'median_ms': float(np.median(durations)),
                'p95_ms': float(np.percentile(durations, 95)),
                'p99_ms': float(np.percentile(durations, 99)),
                'min_ms': float(np.min(durations)),
                'max_ms': float(np.max(durations))
            },
            'memory_stats': {
                'mean_mb': float(np.mean(memory_usage)),
                'peak_mb': float(np.max(memory_usage))
            },
            'cpu_stats': {
                'mean_percent': float(np.mean(cpu_usage)),
                'peak_percent': float(np.max(cpu_usage))
            }
        }

    def get_all_stats(self) -> Dict[str, Any]:
        """Get aggregated statistics for all operations."""
        with self._lock:
            all_stats = {
                name: self._operation_stats_locked(name)
                for name in self._operation_counts.keys()
            }
            total_ops = sum(self._operation_counts.values())
            total_errors = sum(self._error_counts.values())

            return {
                'operations': all_stats,
                'total_operations': total_ops,
                'total_errors': total_errors,
                'overall_error_rate': total_errors / max(1, total_ops)
            }

    def get_recent_metrics(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get the most recent performance metrics."""
        with self._lock:
            recent = list(self._metrics_history)[-limit:]
            return [asdict(metric) for metric in recent]

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        with self._lock:
            self._metrics_history.clear()
            self._operation_counts.clear()
            self._error_counts.clear()
            self._performance_stats.clear()


# Global metrics collector instance
_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return _metrics_collector


def reset_metrics() -> None:
    """Reset global metrics (for testing)."""
    _metrics_collector.reset()


def _process_memory_mb() -> float:
    return psutil.Process().memory_info().rss / 1024 / 1024


@contextmanager
def performance_monitor(operation_name: str, pixel_count: int = 0, cluster_count: int = 0):
    """Context manager for monitoring performance of operations."""
    if not config.METRICS_ENABLED:
        yield
        return

    start_time = time.time()
    start_memory = _process_memory_mb()
    start_cpu = psutil.cpu_percent()

    error_msg = None

    try:
        yield
    except Exception as e:
        error_msg = str(e) or type(e).__name__
        raise
    finally:
        end_time = time.time()
        end_memory = _process_memory_mb()
        end_cpu = psutil.cpu_percent()

        metrics = PerformanceMetrics(
            operation_name=operation_name,
            duration_ms=(end_time - start_time) * 1000,
            memory_usage_mb=max(end_memory, start_memory),
            cpu_percent=max(end_cpu, start_cpu),
            pixel_count=pixel_count,
            cluster_count=cluster_count,
            timestamp=end_time,
            error=error_msg
        )

        _metrics_collector.record_performance(metrics)

        if error_msg:
            logger.error(f"Operation {operation_name} failed after {metrics.duration_ms:.1f}ms: {error_msg}")
        else:
            logger.debug(f"Operation {operation_name} completed in {metrics.duration_ms:.1f}ms "
                         f"(memory: {metrics.memory_usage_mb:.1f}MB, CPU: {metrics.cpu_percent:.1f}%)")


def performance_tracked(operation_name: str):
    """Decorator for automatically tracking function performance."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            pixel_count = 0
            cluster_count = 0

            # First array-like argument with 2+ dims is taken to be the image
            for arg in args:
                shape = getattr(arg, 'shape', None)
                if shape is not None and len(shape) >= 2:
                    pixel_count = int(shape[0] * shape[1])
                    break

            palette_size = kwargs.get('n_colors') or kwargs.get('cluster_count')
            if palette_size:
                cluster_count = int(palette_size)

            with performance_monitor(operation_name, pixel_count, cluster_count):
                return func(*args, **kwargs)
        return wrapper
    return decorator


def log_memory_usage(stage_name: str) -> Dict[str, Any]:
    """Log current memory usage for a specific stage."""
    memory_mb = _process_memory_mb()
    logger.debug(f"Memory usage at {stage_name}: {memory_mb:.1f}MB")

    return {
        'stage': stage_name,
        'memory_mb': memory_mb,
        'timestamp': time.time()
    }
