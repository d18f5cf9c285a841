"""
Perceptual color distance.

Distances use ``sqrt(0.3*dr^2 + 0.59*dg^2 + 0.11*db^2)``. Scaling each channel
by the square root of its weight turns that into a plain Euclidean distance,
so nearest-color queries can go through scikit-learn.
"""

import numpy as np
from sklearn.metrics import pairwise_distances_argmin

PERCEPTUAL_WEIGHTS = np.array([0.3, 0.59, 0.11], dtype=np.float64)
PERCEPTUAL_SCALE = np.sqrt(PERCEPTUAL_WEIGHTS)


def perceptual_distance(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Weighted RGB distance between broadcastable (..., 3) color arrays."""
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return np.sqrt(np.sum(diff ** 2 * PERCEPTUAL_WEIGHTS, axis=-1))


def to_perceptual_space(rgb: np.ndarray) -> np.ndarray:
    """Scale (N, 3) RGB so that Euclidean distance equals perceptual distance."""
    return np.asarray(rgb, dtype=np.float64).reshape(-1, 3) * PERCEPTUAL_SCALE


def nearest_color_indices(pixels: np.ndarray, colors: np.ndarray) -> np.ndarray:
    """
    Index of the nearest palette color for each pixel.

    Args:
        pixels: Array (N, 3) of normalized RGB
        colors: Array (k, 3) of palette colors, k >= 1

    Returns:
        int array (N,) of indices into ``colors``; ties resolve to the lowest index
    """
    pixels = np.asarray(pixels, dtype=np.float64).reshape(-1, 3)
    if pixels.shape[0] == 0:
        return np.zeros(0, dtype=np.intp)
    return pairwise_distances_argmin(to_perceptual_space(pixels), to_perceptual_space(colors))
