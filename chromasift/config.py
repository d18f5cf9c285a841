"""
ChromaSift Configuration
Manages environment variables and defaults for range filtering and quantization.
"""
import os


class Config:
    """Configuration class for ChromaSift services."""

    # Logging
    LOG_LEVEL: str = os.environ.get("CHROMASIFT_LOG_LEVEL", "INFO")

    # Range sets
    DEFAULT_MAX_RANGES: int = int(os.environ.get("CHROMASIFT_DEFAULT_MAX_RANGES", "8"))
    MIN_RANGES_LIMIT: int = 1
    MAX_RANGES_LIMIT: int = int(os.environ.get("CHROMASIFT_MAX_RANGES_LIMIT", "16"))
    DEFAULT_OVERLAP_TOLERANCE: float = float(os.environ.get("CHROMASIFT_DEFAULT_OVERLAP_TOLERANCE", "0.1"))

    # Palette quantization
    DEFAULT_TARGET_COLORS: int = int(os.environ.get("CHROMASIFT_DEFAULT_TARGET_COLORS", "16"))
    MIN_TARGET_COLORS: int = 2
    MAX_TARGET_COLORS: int = 256
    DEFAULT_MAX_ITERATIONS: int = int(os.environ.get("CHROMASIFT_DEFAULT_MAX_ITERATIONS", "5"))
    MAX_ITERATIONS_LIMIT: int = int(os.environ.get("CHROMASIFT_MAX_ITERATIONS_LIMIT", "100"))
    KMEANS_CONVERGENCE: float = float(os.environ.get("CHROMASIFT_KMEANS_CONVERGENCE", "0.01"))
    KMEANS_MAX_SAMPLES: int = int(os.environ.get("CHROMASIFT_KMEANS_MAX_SAMPLES", "20000"))
    POPULARITY_LEVELS: int = int(os.environ.get("CHROMASIFT_POPULARITY_LEVELS", "32"))
    DEFAULT_DITHER_STRENGTH: float = float(os.environ.get("CHROMASIFT_DEFAULT_DITHER_STRENGTH", "0.5"))
    RNG_SEED: int = int(os.environ.get("CHROMASIFT_RNG_SEED", "42"))

    # Parallel row processing
    WORKER_THREADS: int = int(os.environ.get("CHROMASIFT_WORKER_THREADS", "4"))
    BATCH_ROWS: int = int(os.environ.get("CHROMASIFT_BATCH_ROWS", "64"))

    # Observability
    METRICS_ENABLED: bool = bool(int(os.environ.get("CHROMASIFT_METRICS_ENABLED", "1")))

    # Timeouts (milliseconds, 0 disables)
    TIMEOUT_QUANTIZATION_MS: int = int(os.environ.get("CHROMASIFT_TIMEOUT_QUANTIZATION_MS", "0"))

    @classmethod
    def clamp_target_colors(cls, count: int) -> int:
        """Clamp a palette size into the supported range."""
        return max(cls.MIN_TARGET_COLORS, min(cls.MAX_TARGET_COLORS, int(count)))

    @classmethod
    def clamp_max_ranges(cls, count: int) -> int:
        """Clamp a range-set capacity into the supported range."""
        return max(cls.MIN_RANGES_LIMIT, min(cls.MAX_RANGES_LIMIT, int(count)))

    @classmethod
    def clamp_max_iterations(cls, iterations: int) -> int:
        """Clamp a k-means iteration budget."""
        return max(1, min(cls.MAX_ITERATIONS_LIMIT, int(iterations)))

    @classmethod
    def clamp_unit(cls, value: float) -> float:
        """Clamp a normalized parameter to [0, 1]."""
        return max(0.0, min(1.0, float(value)))


# Global config instance
config = Config()
