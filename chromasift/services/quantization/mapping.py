"""
Nearest-color palette mapping with optional ordered dithering.
"""

from typing import Optional

import numpy as np

from chromasift.config import config
from chromasift.services.imaging import ensure_float_image, split_alpha
from chromasift.services.quantization.distance import nearest_color_indices
from chromasift.services.quantization.models import Palette
from chromasift.services.reliability import CancellationToken
from chromasift.utils.batching import run_row_batches


def checkerboard_offsets(rows: slice, width: int, strength: float) -> np.ndarray:
    """
    Ordered dither offsets for a block of rows.

    Alternates ``-0.25`` and ``+0.25`` on a checkerboard keyed by absolute
    pixel position, scaled by ``strength``.
    """
    y = np.arange(rows.start, rows.stop)[:, None]
    x = np.arange(width)[None, :]
    return (((x + y) % 2) * 0.5 - 0.25) * strength


def dither(rgb: np.ndarray, rows: slice, strength: float) -> np.ndarray:
    """Perturb a block of RGB rows by the checkerboard pattern, clamped to [0, 1]."""
    offsets = checkerboard_offsets(rows, rgb.shape[1], strength)
    return np.clip(rgb + offsets[..., None], 0.0, 1.0)


def apply_palette(image: np.ndarray, palette: Palette,
                  dithering: bool = False,
                  dither_strength: float = config.DEFAULT_DITHER_STRENGTH,
                  cancel_token: Optional[CancellationToken] = None) -> np.ndarray:
    """
    Replace every pixel with its nearest palette color.

    Args:
        image: (H, W, 3|4) raster, uint8 or float in [0, 1]
        palette: Palette to map onto, at least one color
        dithering: Perturb pixels before matching
        dither_strength: Scale of the dither offsets, clamped to [0, 1]
        cancel_token: Checked between row batches

    Returns:
        float64 image with the input's channel count; alpha passes through

    Raises:
        ImageValidationError: For missing, empty or malformed input
        ValueError: If the palette is empty
        OperationCancelledError: If the token is cancelled mid-pass
    """
    arr = ensure_float_image(image)
    colors = palette.colors
    if colors.shape[0] == 0:
        raise ValueError("Palette has no colors")

    rgb, alpha = split_alpha(arr)
    strength = config.clamp_unit(dither_strength)

    def process(rows: slice) -> np.ndarray:
        block = rgb[rows]
        if dithering and strength > 0.0:
            block = dither(block, rows, strength)
        idx = nearest_color_indices(block.reshape(-1, 3), colors)
        return colors[idx].reshape(block.shape)

    mapped = np.concatenate(
        run_row_batches(process, arr.shape[0], cancel_token, operation="palette mapping"),
        axis=0,
    )
    if arr.shape[2] == 4:
        return np.dstack([mapped, alpha])
    return mapped
