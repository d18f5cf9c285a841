"""
Unit tests for the palette selection algorithms.

Tests each method in isolation:
- k-means clustering with deterministic sampling
- median-cut bucket splitting
- uniform RGB grid
- popularity bucketing
"""

import numpy as np
import pytest

from chromasift.services.quantization.kmeans import kmeans_palette, sample_pixels
from chromasift.services.quantization.median_cut import median_cut_palette
from chromasift.services.quantization.models import QuantizationConfig, QuantizationMethod
from chromasift.services.quantization.popularity import popularity_palette, snap_to_levels
from chromasift.services.quantization.quantizer import quantize_image
from chromasift.services.quantization.uniform import integer_cube_root, uniform_palette
from chromasift.services.reliability import CancellationToken, OperationCancelledError

QUADRANT_COLORS = {(1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0), (1.0, 1.0, 1.0)}


def as_color_set(colors):
    return {tuple(float(round(c, 6)) for c in color) for color in colors}


def flat(image):
    return np.asarray(image, dtype=np.float64)[:, :, :3].reshape(-1, 3)


class TestKMeans:
    """Test k-means palette selection"""

    def test_recovers_distinct_colors(self, quadrant_image):
        outcome = kmeans_palette(flat(quadrant_image), 4, max_iterations=5, seed=42)
        assert as_color_set(outcome.centroids) == QUADRANT_COLORS
        np.testing.assert_allclose(outcome.weights, 0.25)
        assert outcome.converged
        assert outcome.iterations == 1

    def test_fewer_colors_than_clusters(self, quadrant_image):
        """k is capped at the number of distinct colors"""
        outcome = kmeans_palette(flat(quadrant_image), 16, max_iterations=5, seed=42)
        assert outcome.centroids.shape == (4, 3)
        assert outcome.weights.sum() == pytest.approx(1.0)

    def test_deterministic_for_seed(self, random_image):
        pixels = flat(random_image / 255.0)
        a = kmeans_palette(pixels, 8, max_iterations=10, seed=7)
        b = kmeans_palette(pixels, 8, max_iterations=10, seed=7)
        np.testing.assert_array_equal(a.centroids, b.centroids)
        np.testing.assert_array_equal(a.weights, b.weights)

    def test_respects_iteration_budget(self, random_image):
        outcome = kmeans_palette(flat(random_image / 255.0), 16, max_iterations=2, seed=1)
        assert outcome.iterations <= 2
        assert outcome.weights.sum() == pytest.approx(1.0)
        assert np.all(outcome.weights >= 0.0)

    def test_centroids_stay_in_gamut(self, random_image):
        outcome = kmeans_palette(flat(random_image / 255.0), 8, max_iterations=5)
        assert np.all((outcome.centroids >= 0.0) & (outcome.centroids <= 1.0))

    def test_cancellation_between_iterations(self, random_image):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            kmeans_palette(flat(random_image / 255.0), 8, max_iterations=5, cancel_token=token)

    def test_sample_pixels_bounded_and_deterministic(self):
        pixels = np.random.default_rng(3).random((500, 3))
        a = sample_pixels(pixels, 100, seed=42)
        b = sample_pixels(pixels, 100, seed=42)
        assert a.shape == (100, 3)
        np.testing.assert_array_equal(a, b)
        assert sample_pixels(pixels, 1000, seed=42) is pixels


class TestMedianCut:
    """Test median-cut bucket splitting"""

    def test_quadrants_split_cleanly(self, quadrant_image):
        colors, weights = median_cut_palette(flat(quadrant_image), 4)
        assert as_color_set(colors) == QUADRANT_COLORS
        np.testing.assert_allclose(weights, 0.25)

    def test_single_color_never_splits(self):
        pixels = np.tile([0.2, 0.4, 0.6], (50, 1))
        colors, weights = median_cut_palette(pixels, 8)
        assert colors.shape == (1, 3)
        np.testing.assert_allclose(weights, [1.0])

    def test_single_pixel(self):
        colors, weights = median_cut_palette(np.array([[0.1, 0.2, 0.3]]), 4)
        np.testing.assert_allclose(colors, [[0.1, 0.2, 0.3]])
        np.testing.assert_allclose(weights, [1.0])

    def test_bucket_count_and_weights(self, random_image):
        colors, weights = median_cut_palette(flat(random_image / 255.0), 16)
        assert colors.shape == (16, 3)
        assert weights.sum() == pytest.approx(1.0)

    def test_splits_widest_channel(self):
        """Pixels spread only along red split into low and high red"""
        pixels = np.column_stack([np.linspace(0, 1, 10), np.zeros(10), np.zeros(10)])
        colors, weights = median_cut_palette(pixels, 2)
        np.testing.assert_allclose(np.sort(colors[:, 0]), [2 / 9, 7 / 9])
        np.testing.assert_allclose(weights, [0.5, 0.5])


class TestUniform:
    """Test uniform RGB grid selection"""

    @pytest.mark.parametrize("n,root", [(1, 1), (7, 1), (8, 2), (26, 2), (27, 3), (64, 4), (125, 5), (256, 6)])
    def test_integer_cube_root(self, n, root):
        assert integer_cube_root(n) == root

    def test_eight_colors_are_cube_corners(self):
        colors, weights = uniform_palette(8)
        assert colors.shape == (8, 3)
        assert as_color_set(colors) == {
            (float(r), float(g), float(b)) for r in (0, 1) for g in (0, 1) for b in (0, 1)
        }
        np.testing.assert_allclose(weights, 0.125)

    def test_grid_order(self):
        colors, _ = uniform_palette(8)
        np.testing.assert_array_equal(colors[0], [0, 0, 0])
        np.testing.assert_array_equal(colors[1], [0, 0, 1])
        np.testing.assert_array_equal(colors[-1], [1, 1, 1])

    def test_truncated_to_target(self):
        colors, weights = uniform_palette(5)
        assert colors.shape == (5, 3)
        np.testing.assert_allclose(weights, 0.2)

    def test_large_target(self):
        colors, weights = uniform_palette(256)
        assert colors.shape == (216, 3)
        assert weights.sum() == pytest.approx(1.0)


class TestPopularity:
    """Test popularity bucketing"""

    def test_snap_groups_near_duplicates(self):
        buckets = snap_to_levels(np.array([[0.50, 0.0, 1.0], [0.51, 0.0, 1.0]]), 32)
        np.testing.assert_array_equal(buckets[0], buckets[1])

    def test_all_buckets_kept(self, quadrant_image):
        colors, weights = popularity_palette(flat(quadrant_image), 4)
        assert as_color_set(colors) == QUADRANT_COLORS
        np.testing.assert_allclose(weights, 0.25)

    def test_most_frequent_first(self):
        pixels = np.array([[1.0, 0.0, 0.0]] * 6 + [[0.0, 1.0, 0.0]] * 3 + [[0.0, 0.0, 1.0]] * 1)
        colors, weights = popularity_palette(pixels, 3)
        np.testing.assert_allclose(colors[0], [1.0, 0.0, 0.0])
        np.testing.assert_allclose(weights, [0.6, 0.3, 0.1])

    def test_dropped_buckets_reassigned(self, quadrant_image):
        """Weights count pixels nearest to each kept color"""
        colors, weights = popularity_palette(flat(quadrant_image), 2)
        assert colors.shape == (2, 3)
        assert weights.sum() == pytest.approx(1.0)
        np.testing.assert_allclose(weights, [0.5, 0.5])


class TestWeightNormalization:
    """Palette weights sum to 1 for every method and size"""

    @pytest.mark.parametrize("method", list(QuantizationMethod))
    @pytest.mark.parametrize("target", [2, 7, 16, 64, 256])
    def test_weights_sum_to_one(self, random_image, method, target):
        palette = quantize_image(random_image, QuantizationConfig(target_colors=target, method=method))
        assert palette.weights.sum() == pytest.approx(1.0, abs=1e-3)
        assert np.all(palette.weights >= 0.0)
        assert 1 <= len(palette) <= palette.size
        assert palette.size == target

    @pytest.mark.parametrize("method", list(QuantizationMethod))
    def test_gradient(self, gradient_image, method):
        palette = quantize_image(gradient_image, QuantizationConfig(target_colors=8, method=method))
        assert palette.weights.sum() == pytest.approx(1.0, abs=1e-3)
