"""
Popularity palette selection.
"""

from typing import Optional, Tuple

import numpy as np

from chromasift.config import config
from chromasift.services.quantization.kmeans import assign_counts
from chromasift.services.reliability import CancellationToken


def snap_to_levels(pixels: np.ndarray, levels: int) -> np.ndarray:
    """Integer bucket coordinates of each pixel on a ``levels``-per-channel grid."""
    return np.rint(pixels * (levels - 1)).astype(np.int64)


def popularity_palette(pixels: np.ndarray, n_colors: int,
                       levels: Optional[int] = None,
                       cancel_token: Optional[CancellationToken] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Keep the ``n_colors`` most frequent coarse color buckets.

    Near-duplicate colors are grouped by snapping each channel to ``levels``
    steps. Ties in frequency keep bucket order. Weights are the share of all
    pixels whose nearest kept color is that bucket, which equals its raw
    frequency whenever every bucket is kept.

    Args:
        pixels: Array (N, 3) of normalized RGB, N >= 1
        n_colors: Maximum number of colors
        levels: Steps per channel, defaults to ``config.POPULARITY_LEVELS``
        cancel_token: Checked between assignment batches

    Returns:
        Tuple of (colors (k, 3), weights (k,))
    """
    levels = max(2, int(levels or config.POPULARITY_LEVELS))
    buckets, counts = np.unique(snap_to_levels(pixels, levels), axis=0, return_counts=True)

    order = np.argsort(-counts, kind="stable")[:n_colors]
    colors = buckets[order].astype(np.float64) / (levels - 1)

    if order.shape[0] == buckets.shape[0]:
        weights = counts[order] / float(pixels.shape[0])
    else:
        assigned = assign_counts(pixels, colors, cancel_token)
        weights = assigned / max(1.0, assigned.sum())
    return colors, weights
