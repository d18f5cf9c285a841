"""
Unit tests for the PaletteQuantizer host surface.
"""

import numpy as np
import pytest

from chromasift.config import config
from chromasift.services.quantization.models import QuantizationConfig, QuantizationMethod
from chromasift.services.quantization.quantizer import PaletteQuantizer
from chromasift.services.reliability import CancellationToken


class TestConfiguration:
    """Test clamped setters"""

    @pytest.mark.parametrize("requested,expected", [(1, 2), (2, 2), (16, 16), (256, 256), (300, 256), (-4, 2)])
    def test_target_color_count_clamped(self, requested, expected):
        quantizer = PaletteQuantizer()
        assert quantizer.set_target_color_count(requested) == expected
        assert quantizer.config.target_colors == expected

    @pytest.mark.parametrize("requested,expected", [(0, 1), (5, 5), (100, 100), (500, 100)])
    def test_max_iterations_clamped(self, requested, expected):
        assert PaletteQuantizer().set_max_iterations(requested) == expected

    def test_set_method_accepts_string(self):
        quantizer = PaletteQuantizer()
        assert quantizer.set_method("median_cut") == QuantizationMethod.MEDIAN_CUT
        assert quantizer.config.method == QuantizationMethod.MEDIAN_CUT

    def test_set_method_rejects_unknown(self):
        with pytest.raises(ValueError):
            PaletteQuantizer().set_method("octree")

    def test_enable_dithering(self):
        quantizer = PaletteQuantizer()
        quantizer.enable_dithering(True, 1.7)
        assert quantizer.config.dithering
        assert quantizer.config.dither_strength == 1.0
        quantizer.enable_dithering(False)
        assert not quantizer.config.dithering
        assert quantizer.config.dither_strength == 1.0

    def test_defaults(self):
        cfg = QuantizationConfig()
        assert cfg.target_colors == config.DEFAULT_TARGET_COLORS
        assert cfg.max_iterations == config.DEFAULT_MAX_ITERATIONS
        assert cfg.dither_strength == pytest.approx(0.5)
        assert not cfg.dithering


class TestRun:
    """Test full quantization runs"""

    def test_uniform_gradient_eight_colors(self, gradient_image):
        """A red-to-blue gradient quantized uniformly to 8 colors"""
        quantizer = PaletteQuantizer(QuantizationConfig(target_colors=8, method=QuantizationMethod.UNIFORM))
        result = quantizer.run(gradient_image)

        assert result.success
        assert len(result.palette) == 8
        for weight in result.palette.weights:
            assert weight == pytest.approx(0.125, abs=1e-3)
        assert result.image.shape == gradient_image.shape

    def test_statistics(self, quadrant_image):
        quantizer = PaletteQuantizer(QuantizationConfig(target_colors=4))
        result = quantizer.run(quadrant_image)

        stats = result.statistics
        assert stats.original_colors == 4
        assert stats.reduced_colors == 4
        assert stats.compression_ratio == pytest.approx(1.0)
        assert stats.method == "kmeans"
        assert stats.converged
        assert stats.iterations >= 1
        assert stats.elapsed_ms >= 0.0
        np.testing.assert_array_equal(result.image, quadrant_image)

    def test_compression_ratio(self, random_image):
        quantizer = PaletteQuantizer(QuantizationConfig(target_colors=8, method="median_cut"))
        result = quantizer.run(random_image)
        stats = result.statistics
        assert stats.reduced_colors <= 8
        assert stats.compression_ratio == pytest.approx(stats.reduced_colors / stats.original_colors)

    def test_last_results_recorded(self, random_image):
        quantizer = PaletteQuantizer(QuantizationConfig(target_colors=6, method="popularity"))
        assert quantizer.last_palette is None
        result = quantizer.run(random_image)
        assert quantizer.last_palette is result.palette
        assert quantizer.last_statistics is result.statistics

    def test_each_run_builds_new_palette(self, random_image):
        quantizer = PaletteQuantizer(QuantizationConfig(target_colors=4, method="median_cut"))
        first = quantizer.run(random_image).palette
        second = quantizer.run(random_image).palette
        assert first is not second
        assert first.entries == second.entries

    def test_dithering_setting_used(self):
        quantizer = PaletteQuantizer(QuantizationConfig(target_colors=2, method="uniform"))
        image = np.full((2, 2, 3), 0.5)
        plain = quantizer.run(image).image
        quantizer.enable_dithering(True, 1.0)
        dithered = quantizer.run(image).image
        assert not np.array_equal(plain, dithered)

    def test_quantize_and_apply(self, quadrant_image):
        quantizer = PaletteQuantizer(QuantizationConfig(target_colors=2, method="median_cut"))
        palette = quantizer.quantize(quadrant_image)
        mapped = quantizer.apply_palette(quadrant_image, palette)
        assert len({tuple(p) for p in mapped.reshape(-1, 3)}) <= 2


class TestFailureReporting:
    """Failures come back as results, never exceptions"""

    @pytest.mark.parametrize("bad", [None, np.zeros((0, 0, 3)), np.zeros((3, 3))])
    def test_invalid_image(self, bad):
        result = PaletteQuantizer().run(bad)
        assert not result.success
        assert result.error
        assert result.palette is None
        assert not result.cancelled

    def test_cancelled(self, random_image):
        token = CancellationToken()
        token.cancel()
        result = PaletteQuantizer().run(random_image, cancel_token=token)
        assert not result.success
        assert result.cancelled

    def test_failed_run_keeps_previous_palette(self, random_image):
        quantizer = PaletteQuantizer(QuantizationConfig(target_colors=4, method="uniform"))
        good = quantizer.run(random_image)
        quantizer.run(None)
        assert quantizer.last_palette is good.palette
