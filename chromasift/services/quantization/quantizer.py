"""
Palette Quantizer.

Selects a bounded palette with one of four algorithms and maps images onto
it. ``quantize_image`` is the pure entry point; ``PaletteQuantizer`` wraps it
with a mutable configuration, statistics and failure reporting for hosts.
"""

import threading
import time
from dataclasses import dataclass, replace
from typing import Optional, Union

import numpy as np
from loguru import logger

from chromasift.config import config
from chromasift.services.imaging import count_unique_colors, ensure_float_image
from chromasift.services.observability.metrics import log_memory_usage, performance_monitor
from chromasift.services.quantization.kmeans import kmeans_palette
from chromasift.services.quantization.mapping import apply_palette
from chromasift.services.quantization.median_cut import median_cut_palette
from chromasift.services.quantization.models import (
    Palette,
    QuantizationConfig,
    QuantizationMethod,
    QuantizationResult,
    QuantizationStatistics,
)
from chromasift.services.quantization.popularity import popularity_palette
from chromasift.services.quantization.uniform import uniform_palette
from chromasift.services.reliability import (
    CancellationToken,
    ChromaSiftError,
    OperationCancelledError,
    check_cancelled,
)
from chromasift.utils.ids import generate_run_id
from chromasift.utils.logging import get_logger


@dataclass
class _PaletteBuild:
    palette: Palette
    iterations: int = 0
    converged: bool = True


def _build_palette(pixels: np.ndarray, quant_config: QuantizationConfig,
                   cancel_token: Optional[CancellationToken]) -> _PaletteBuild:
    n = quant_config.target_colors
    method = quant_config.method

    if method == QuantizationMethod.KMEANS:
        outcome = kmeans_palette(pixels, n, quant_config.max_iterations,
                                 seed=quant_config.seed, cancel_token=cancel_token)
        palette = Palette.from_arrays(outcome.centroids, outcome.weights, n, method)
        return _PaletteBuild(palette, outcome.iterations, outcome.converged)

    if method == QuantizationMethod.MEDIAN_CUT:
        colors, weights = median_cut_palette(pixels, n)
    elif method == QuantizationMethod.UNIFORM:
        colors, weights = uniform_palette(n)
    elif method == QuantizationMethod.POPULARITY:
        colors, weights = popularity_palette(pixels, n, cancel_token=cancel_token)
    else:
        raise ValueError(f"Unsupported quantization method: {method}")

    return _PaletteBuild(Palette.from_arrays(colors, weights, n, method))


def quantize_image(image: np.ndarray, quant_config: QuantizationConfig,
                   cancel_token: Optional[CancellationToken] = None) -> Palette:
    """
    Select a palette for ``image``.

    Args:
        image: (H, W, 3|4) raster, uint8 or float in [0, 1]; alpha is ignored
        quant_config: Target size, method and iteration budget
        cancel_token: Checked between k-means iterations and pixel batches

    Returns:
        New Palette whose weights sum to 1

    Raises:
        ImageValidationError: For missing, empty or malformed input
        OperationCancelledError: If the token is cancelled
    """
    arr = ensure_float_image(image)
    pixels = arr[:, :, :3].reshape(-1, 3)
    return _build_palette(pixels, quant_config, cancel_token).palette


class PaletteQuantizer:
    """Host-facing quantizer with a mutable configuration."""

    def __init__(self, quant_config: Optional[QuantizationConfig] = None):
        self._lock = threading.Lock()
        self._config = quant_config or QuantizationConfig()
        self.last_palette: Optional[Palette] = None
        self.last_statistics: Optional[QuantizationStatistics] = None

    @property
    def config(self) -> QuantizationConfig:
        with self._lock:
            return self._config

    def _update(self, **changes) -> QuantizationConfig:
        with self._lock:
            self._config = replace(self._config, **changes)
            return self._config

    def set_target_color_count(self, count: int) -> int:
        """Set the palette size; returns the clamped value actually stored."""
        return self._update(target_colors=count).target_colors

    def set_method(self, method: Union[QuantizationMethod, str]) -> QuantizationMethod:
        return self._update(method=QuantizationMethod(method)).method

    def set_max_iterations(self, iterations: int) -> int:
        """Set the k-means iteration budget; returns the clamped value."""
        return self._update(max_iterations=iterations).max_iterations

    def enable_dithering(self, enabled: bool, strength: Optional[float] = None) -> None:
        changes = {"dithering": enabled}
        if strength is not None:
            changes["dither_strength"] = strength
        self._update(**changes)

    def quantize(self, image: np.ndarray,
                 cancel_token: Optional[CancellationToken] = None) -> Palette:
        """Select a palette with the current configuration. Raises on invalid input."""
        return quantize_image(image, self.config, cancel_token)

    def apply_palette(self, image: np.ndarray, palette: Palette,
                      cancel_token: Optional[CancellationToken] = None) -> np.ndarray:
        """Map ``image`` onto ``palette`` honoring the dithering settings."""
        cfg = self.config
        return apply_palette(image, palette, dithering=cfg.dithering,
                             dither_strength=cfg.dither_strength, cancel_token=cancel_token)

    def run(self, image: np.ndarray,
            cancel_token: Optional[CancellationToken] = None) -> QuantizationResult:
        """
        Quantize ``image`` and map it onto the new palette.

        Failures (invalid image, cancellation, timeout) are returned as an
        unsuccessful QuantizationResult; nothing is raised.

        Args:
            image: (H, W, 3|4) raster, uint8 or float in [0, 1]
            cancel_token: Optional token; when omitted and
                ``config.TIMEOUT_QUANTIZATION_MS`` is set, a deadline token is used

        Returns:
            QuantizationResult with palette, reduced image and statistics
        """
        cfg = self.config
        run_id = generate_run_id("quantize")
        log = get_logger()
        if cancel_token is None and config.TIMEOUT_QUANTIZATION_MS > 0:
            cancel_token = CancellationToken(timeout_ms=config.TIMEOUT_QUANTIZATION_MS)

        start_time = time.time()
        try:
            arr = ensure_float_image(image)
            pixels = arr[:, :, :3].reshape(-1, 3)
            log.info(
                f"Quantizing {arr.shape[1]}x{arr.shape[0]} image to {cfg.target_colors} colors",
                extra={"run_id": run_id, "method": cfg.method.value},
            )

            with performance_monitor("palette_quantization", pixel_count=pixels.shape[0],
                                     cluster_count=cfg.target_colors):
                build = _build_palette(pixels, cfg, cancel_token)
                check_cancelled(cancel_token, "palette quantization")
                reduced = apply_palette(arr, build.palette, dithering=cfg.dithering,
                                        dither_strength=cfg.dither_strength,
                                        cancel_token=cancel_token)
            log_memory_usage("palette_quantization")
        except OperationCancelledError as e:
            log.warning(f"Quantization cancelled: {e}", extra={"run_id": run_id})
            return QuantizationResult(success=False, error=str(e), cancelled=True)
        except ChromaSiftError as e:
            log.error(f"Quantization failed: {e}", extra={"run_id": run_id})
            return QuantizationResult(success=False, error=str(e))

        original_colors = count_unique_colors(arr)
        reduced_colors = count_unique_colors(reduced)
        stats = QuantizationStatistics(
            original_colors=original_colors,
            reduced_colors=reduced_colors,
            compression_ratio=reduced_colors / original_colors if original_colors else 0.0,
            elapsed_ms=(time.time() - start_time) * 1000,
            method=cfg.method.value,
            iterations=build.iterations,
            converged=build.converged,
        )

        self.last_palette = build.palette
        self.last_statistics = stats

        logger.debug(f"Palette: {len(build.palette)} colors, weights sum {build.palette.weights.sum():.4f}")
        log.info(
            f"Quantization completed in {stats.elapsed_ms:.1f}ms: "
            f"{original_colors} -> {reduced_colors} colors",
            extra={"run_id": run_id, "method": cfg.method.value},
        )
        return QuantizationResult(success=True, palette=build.palette, image=reduced, statistics=stats)
