"""
Median-cut palette selection.
"""

from typing import List, Tuple

import numpy as np
from loguru import logger


def _channel_ranges(bucket: np.ndarray) -> np.ndarray:
    if bucket.shape[0] < 2:
        return np.zeros(3)
    return bucket.max(axis=0) - bucket.min(axis=0)


def median_cut_palette(pixels: np.ndarray, n_colors: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Recursively split the pixel set at channel medians.

    The bucket with the largest single-channel range is split next, sorted on
    that channel. Buckets with fewer than two pixels or no spread are never
    split, so the result can hold fewer than ``n_colors`` colors.

    Args:
        pixels: Array (N, 3) of normalized RGB, N >= 1
        n_colors: Maximum number of buckets

    Returns:
        Tuple of (colors (k, 3) channel-wise bucket means, weights (k,) bucket shares)
    """
    buckets: List[np.ndarray] = [pixels]
    spreads: List[np.ndarray] = [_channel_ranges(pixels)]

    while len(buckets) < n_colors:
        widest = [float(s.max()) for s in spreads]
        idx = int(np.argmax(widest))
        if widest[idx] <= 0.0:
            logger.debug(f"Median cut stopped at {len(buckets)} buckets: nothing left to split")
            break

        bucket = buckets[idx]
        channel = int(np.argmax(spreads[idx]))
        ordered = bucket[np.argsort(bucket[:, channel], kind="stable")]
        mid = ordered.shape[0] // 2
        low, high = ordered[:mid], ordered[mid:]

        buckets[idx:idx + 1] = [low, high]
        spreads[idx:idx + 1] = [_channel_ranges(low), _channel_ranges(high)]

    total = float(pixels.shape[0])
    colors = np.array([b.mean(axis=0) for b in buckets])
    weights = np.array([b.shape[0] / total for b in buckets])
    return colors, weights
