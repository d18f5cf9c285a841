"""
Observability module for ChromaSift processing passes.

Provides performance monitoring and metrics collection for range combination
and palette quantization.
"""

from .metrics import (
    PerformanceMetrics,
    MetricsCollector,
    get_metrics_collector,
    reset_metrics,
    performance_monitor,
    performance_tracked,
    log_memory_usage
)

__all__ = [
    'PerformanceMetrics',
    'MetricsCollector',
    'get_metrics_collector',
    'reset_metrics',
    'performance_monitor',
    'performance_tracked',
    'log_memory_usage'
]
