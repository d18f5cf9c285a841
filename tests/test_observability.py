"""
Unit tests for performance monitoring and metrics collection.
"""

import pytest

from chromasift.config import config
from chromasift.services.observability.metrics import (
    MetricsCollector,
    PerformanceMetrics,
    get_metrics_collector,
    log_memory_usage,
    performance_monitor,
    performance_tracked,
)
from chromasift.services.quantization.models import QuantizationConfig
from chromasift.services.quantization.quantizer import PaletteQuantizer
from chromasift.services.ranges.engine import RangeCombinationEngine
from chromasift.services.ranges.models import ColorRange


def sample_metrics(name="op", duration=10.0, error=None):
    return PerformanceMetrics(
        operation_name=name,
        duration_ms=duration,
        memory_usage_mb=100.0,
        cpu_percent=5.0,
        pixel_count=64,
        cluster_count=4,
        timestamp=0.0,
        error=error,
    )


class TestMetricsCollector:
    """Test aggregation of recorded metrics"""

    def test_operation_stats(self):
        collector = MetricsCollector()
        for duration in (10.0, 20.0, 30.0):
            collector.record_performance(sample_metrics(duration=duration))
        stats = collector.get_operation_stats("op")
        assert stats["total_calls"] == 3
        assert stats["duration_stats"]["mean_ms"] == pytest.approx(20.0)
        assert stats["duration_stats"]["max_ms"] == 30.0
        assert stats["error_rate"] == 0.0

    def test_error_counting(self):
        collector = MetricsCollector()
        collector.record_performance(sample_metrics())
        collector.record_performance(sample_metrics(error="boom"))
        all_stats = collector.get_all_stats()
        assert all_stats["total_operations"] == 2
        assert all_stats["total_errors"] == 1
        assert all_stats["overall_error_rate"] == pytest.approx(0.5)

    def test_unknown_operation(self):
        assert MetricsCollector().get_operation_stats("missing") == {}

    def test_history_bounded(self):
        collector = MetricsCollector(max_history=3)
        for i in range(5):
            collector.record_performance(sample_metrics(duration=float(i)))
        recent = collector.get_recent_metrics(limit=10)
        assert [m["duration_ms"] for m in recent] == [2.0, 3.0, 4.0]

    def test_reset(self):
        collector = MetricsCollector()
        collector.record_performance(sample_metrics())
        collector.reset()
        assert collector.get_all_stats()["total_operations"] == 0


class TestPerformanceMonitor:
    """Test the monitoring context manager and decorator"""

    def test_records_success(self):
        with performance_monitor("unit_op", pixel_count=10):
            pass
        stats = get_metrics_collector().get_operation_stats("unit_op")
        assert stats["total_calls"] == 1
        assert stats["error_count"] == 0

    def test_records_failure_and_reraises(self):
        with pytest.raises(RuntimeError):
            with performance_monitor("failing_op"):
                raise RuntimeError("boom")
        recent = get_metrics_collector().get_recent_metrics(limit=1)
        assert recent[0]["error"] == "boom"

    def test_disabled(self, monkeypatch):
        monkeypatch.setattr(config, "METRICS_ENABLED", False)
        with performance_monitor("quiet_op"):
            pass
        assert get_metrics_collector().get_operation_stats("quiet_op") == {}

    def test_decorator_infers_pixel_count(self, quadrant_image):
        @performance_tracked("decorated_op")
        def work(image, n_colors=0):
            return image.shape

        assert work(quadrant_image, n_colors=4) == (8, 8, 3)
        recent = get_metrics_collector().get_recent_metrics(limit=1)[0]
        assert recent["pixel_count"] == 64
        assert recent["cluster_count"] == 4

    def test_log_memory_usage(self):
        snapshot = log_memory_usage("unit")
        assert snapshot["stage"] == "unit"
        assert snapshot["memory_mb"] > 0


class TestServiceInstrumentation:
    """Engine and quantizer passes are recorded"""

    def test_range_combination_recorded(self, quadrant_image):
        engine = RangeCombinationEngine()
        engine.add_range(ColorRange())
        engine.apply(quadrant_image)
        stats = get_metrics_collector().get_operation_stats("range_combination")
        assert stats["total_calls"] == 1

    def test_quantization_recorded(self, quadrant_image):
        PaletteQuantizer(QuantizationConfig(target_colors=2)).run(quadrant_image)
        recent = get_metrics_collector().get_recent_metrics(limit=1)[0]
        assert recent["operation_name"] == "palette_quantization"
        assert recent["pixel_count"] == 64
        assert recent["cluster_count"] == 2
