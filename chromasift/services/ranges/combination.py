"""
Range combination pass.

Classifies every pixel against the active ranges of a RangeSet and renders one
output pixel according to the set's combination mode. Rows are processed in
independent batches on worker threads.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from chromasift.services.imaging import ensure_float_image, rgb_array_to_hsv, split_alpha
from chromasift.services.ranges.matcher import range_mask, range_strength
from chromasift.services.ranges.models import (
    Background,
    ColorRange,
    CombinationMode,
    DisplayMode,
    RangeSet,
)
from chromasift.services.reliability import CancellationToken
from chromasift.utils.batching import run_row_batches


def display_color(rgb: np.ndarray, rng: ColorRange) -> np.ndarray:
    """Render ``rgb`` (..., 3) through a range's display mode."""
    if rng.display_mode == DisplayMode.HIGHLIGHT:
        highlight = np.asarray(rng.highlight_color, dtype=np.float64)
        t = rng.highlight_intensity
        return rgb * (1.0 - t) + highlight * t
    if rng.display_mode == DisplayMode.MASK:
        return np.ones_like(rgb)
    return rgb


def _union(rgb: np.ndarray, hsv: np.ndarray, ranges: Sequence[ColorRange]) -> Tuple[np.ndarray, np.ndarray]:
    out = np.zeros_like(rgb)
    claimed = np.zeros(rgb.shape[:-1], dtype=bool)
    for rng in ranges:
        take = range_mask(hsv, rng) & ~claimed
        if take.any():
            out[take] = display_color(rgb[take], rng)
            claimed |= take
    return out, claimed


def _intersection(rgb: np.ndarray, hsv: np.ndarray, ranges: Sequence[ColorRange]) -> Tuple[np.ndarray, np.ndarray]:
    out = np.zeros_like(rgb)
    matched = np.ones(rgb.shape[:-1], dtype=bool)
    for rng in ranges:
        matched &= range_mask(hsv, rng)
    if matched.any():
        out[matched] = display_color(rgb[matched], ranges[0])
    return out, matched


def _exclusive(rgb: np.ndarray, hsv: np.ndarray, ranges: Sequence[ColorRange]) -> Tuple[np.ndarray, np.ndarray]:
    out = np.zeros_like(rgb)
    masks = [range_mask(hsv, rng) for rng in ranges]
    count = np.sum(masks, axis=0)
    single = count == 1
    for rng, mask in zip(ranges, masks):
        take = mask & single
        if take.any():
            out[take] = display_color(rgb[take], rng)
    return out, single


def _weighted(rgb: np.ndarray, hsv: np.ndarray, ranges: Sequence[ColorRange]) -> Tuple[np.ndarray, np.ndarray]:
    accum = np.zeros_like(rgb)
    total = np.zeros(rgb.shape[:-1], dtype=np.float64)
    for rng in ranges:
        mask = range_mask(hsv, rng)
        if not mask.any():
            continue
        contribution = range_strength(hsv, rng, mask) * rng.weight
        accum += display_color(rgb, rng) * contribution[..., None]
        total += contribution

    # Zero total weight renders as background
    matched = total > 0.0
    out = np.zeros_like(rgb)
    out[matched] = accum[matched] / total[matched][:, None]
    return out, matched


_COMBINERS = {
    CombinationMode.UNION: _union,
    CombinationMode.INTERSECTION: _intersection,
    CombinationMode.EXCLUSIVE: _exclusive,
    CombinationMode.WEIGHTED: _weighted,
}


def combine_rows(rgb: np.ndarray, alpha: np.ndarray, range_set: RangeSet,
                 out_channels: int) -> Tuple[np.ndarray, int]:
    """
    Combine one block of rows.

    Args:
        rgb: Normalized RGB rows (h, W, 3)
        alpha: Alpha plane for the same rows (h, W)
        range_set: Immutable range set snapshot
        out_channels: 3 for RGB output, 4 for RGBA

    Returns:
        Tuple of (rendered rows, number of foreground pixels)
    """
    ranges = range_set.active_ranges
    shape = rgb.shape[:-1]

    if ranges:
        hsv = rgb_array_to_hsv(rgb)
        fg_rgb, matched = _COMBINERS[range_set.mode](rgb, hsv, ranges)
    else:
        fg_rgb = np.zeros_like(rgb)
        matched = np.zeros(shape, dtype=bool)

    out = np.zeros(shape + (out_channels,), dtype=np.float64)
    out[..., :3] = np.clip(fg_rgb, 0.0, 1.0)
    if out_channels == 4:
        background_alpha = 0.0 if range_set.background == Background.TRANSPARENT else 1.0
        out[..., 3] = np.where(matched, alpha, background_alpha)
    return out, int(matched.sum())


def combine(image: np.ndarray, range_set: RangeSet,
            cancel_token: Optional[CancellationToken] = None) -> Tuple[np.ndarray, int]:
    """
    Run the combination pass over a whole image.

    Args:
        image: (H, W, 3|4) raster, uint8 or float in [0, 1]
        range_set: Range set to apply
        cancel_token: Optional token checked between row batches

    Returns:
        Tuple of (output image, matched pixel count). Output is RGBA when the
        input has alpha or the background is transparent, RGB otherwise.

    Raises:
        ImageValidationError: For missing, empty or malformed input
        OperationCancelledError: If the token is cancelled mid-pass
    """
    arr = ensure_float_image(image)
    rgb, alpha = split_alpha(arr)
    out_channels = 4 if (arr.shape[2] == 4 or range_set.background == Background.TRANSPARENT) else 3

    def process(rows: slice) -> Tuple[np.ndarray, int]:
        return combine_rows(rgb[rows], alpha[rows], range_set, out_channels)

    results = run_row_batches(process, arr.shape[0], cancel_token, operation="range combination")
    output = np.concatenate([block for block, _ in results], axis=0)
    matched = sum(count for _, count in results)
    return output, matched
