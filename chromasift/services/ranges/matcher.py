"""
HSV range matcher.

Pure per-pixel classification against a single ColorRange. The array forms
operate on any (..., 3) HSV buffer; the scalar forms wrap them for one pixel.
"""

from typing import Optional, Sequence

import numpy as np

from chromasift.services.ranges.models import ColorRange


def hue_mask(hue: np.ndarray, rng: ColorRange) -> np.ndarray:
    """Hue membership, honoring a window that wraps through 0 degrees."""
    if rng.wraps_hue:
        return (hue >= rng.hue_min) | (hue <= rng.hue_max)
    return (hue >= rng.hue_min) & (hue <= rng.hue_max)


def range_mask(hsv: np.ndarray, rng: ColorRange) -> np.ndarray:
    """
    Boolean membership of every pixel in ``rng``.

    Args:
        hsv: Array (..., 3) with hue in degrees and saturation/value in [0, 1]
        rng: Range to test against

    Returns:
        Boolean array of shape ``hsv.shape[:-1]``
    """
    h = hsv[..., 0]
    s = hsv[..., 1]
    v = hsv[..., 2]

    inside = (
        hue_mask(h, rng)
        & (s >= rng.saturation_min) & (s <= rng.saturation_max)
        & (v >= rng.value_min) & (v <= rng.value_max)
    )
    return ~inside if rng.invert else inside


def range_strength(hsv: np.ndarray, rng: ColorRange, mask: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Match strength in [0, 1] for every pixel.

    Pixels outside the range score 0. Without feathering every matching pixel
    scores 1; with feathering the score falls off with normalized HSV distance
    from the range center: ``clip(1 - distance * feather, 0, 1)``.
    """
    if mask is None:
        mask = range_mask(hsv, rng)

    if rng.feather <= 0.0:
        return mask.astype(np.float64)

    hue_diff = np.abs(hsv[..., 0] - rng.hue_center)
    hue_diff = np.minimum(hue_diff, 360.0 - hue_diff) / 180.0
    sat_diff = hsv[..., 1] - rng.saturation_center
    val_diff = hsv[..., 2] - rng.value_center

    distance = np.sqrt(hue_diff ** 2 + sat_diff ** 2 + val_diff ** 2)
    strength = np.clip(1.0 - distance * rng.feather, 0.0, 1.0)
    return np.where(mask, strength, 0.0)


def in_range(hsv: Sequence[float], rng: ColorRange) -> bool:
    """Whether a single (h, s, v) triple falls inside ``rng``."""
    return bool(range_mask(np.asarray(hsv, dtype=np.float64)[:3], rng))


def match_strength(hsv: Sequence[float], rng: ColorRange) -> float:
    """Match strength of a single (h, s, v) triple."""
    return float(range_strength(np.asarray(hsv, dtype=np.float64)[:3], rng))
