"""
ChromaSift Imaging Utilities
Raster validation, normalization, HSV conversion and Pillow bridges.
"""
from typing import Sequence, Tuple

import numpy as np
from PIL import Image

from chromasift.services.reliability import ImageValidationError


def ensure_float_image(image: np.ndarray) -> np.ndarray:
    """
    Validate a raster buffer and return it as normalized float64.

    Args:
        image: Array of shape (H, W, 3) or (H, W, 4); uint8 or float in [0, 1]

    Returns:
        New float64 array with channels clipped to [0, 1]

    Raises:
        ImageValidationError: For missing, empty or malformed input
    """
    if image is None:
        raise ImageValidationError("No image provided")

    arr = np.asarray(image)
    if arr.size == 0:
        raise ImageValidationError("Image is empty")
    if arr.ndim != 3:
        raise ImageValidationError(f"Expected (H, W, C) image, got shape {arr.shape}")
    if arr.shape[2] not in (3, 4):
        raise ImageValidationError(f"Expected 3 or 4 channels, got {arr.shape[2]}")

    if arr.dtype == np.uint8:
        return arr.astype(np.float64) / 255.0
    if not np.issubdtype(arr.dtype, np.number) or np.issubdtype(arr.dtype, np.complexfloating):
        raise ImageValidationError(f"Unsupported image dtype: {arr.dtype}")

    out = arr.astype(np.float64)
    if not np.all(np.isfinite(out)):
        raise ImageValidationError("Image contains NaN or infinite values")
    return np.clip(out, 0.0, 1.0)


def split_alpha(image: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split a normalized image into RGB and alpha planes.

    Returns:
        Tuple of (rgb (H, W, 3), alpha (H, W)); alpha is all ones for RGB input
    """
    rgb = image[:, :, :3]
    if image.shape[2] == 4:
        alpha = image[:, :, 3]
    else:
        alpha = np.ones(image.shape[:2], dtype=image.dtype)
    return rgb, alpha


def rgb_array_to_hsv(rgb: np.ndarray) -> np.ndarray:
    """
    Convert normalized RGB pixels to HSV in float64.

    Channel arithmetic follows ``colorsys.rgb_to_hsv`` so a pixel whose HSV
    sits exactly on a range bound compares equal to that bound.

    Args:
        rgb: Array (..., 3) with channels in [0, 1]

    Returns:
        float64 array (..., 3): hue in degrees [0, 360), saturation and value in [0, 1]
    """
    rgb = np.asarray(rgb, dtype=np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    cmax = np.max(rgb, axis=-1)
    cmin = np.min(rgb, axis=-1)
    diff = cmax - cmin
    chromatic = diff > 0

    # Grays get zero hue and saturation
    safe_diff = np.where(chromatic, diff, 1.0)
    rc = (cmax - r) / safe_diff
    gc = (cmax - g) / safe_diff
    bc = (cmax - b) / safe_diff

    # Red wins ties, then green
    hue = np.where(r == cmax, bc - gc, np.where(g == cmax, 2.0 + rc - bc, 4.0 + gc - rc))
    hue = np.mod(hue / 6.0, 1.0) * 360.0
    hue = np.where(chromatic, np.mod(hue, 360.0), 0.0)

    sat = np.where(chromatic, diff / np.where(cmax > 0, cmax, 1.0), 0.0)

    return np.stack([hue, sat, cmax], axis=-1)


def rgb_to_hsv(pixel: Sequence[float]) -> Tuple[float, float, float]:
    """Convert a single normalized (r, g, b[, a]) pixel to an (h, s, v) triple."""
    rgb = np.asarray(pixel, dtype=np.float64)[:3].reshape(1, 3)
    h, s, v = rgb_array_to_hsv(np.clip(rgb, 0.0, 1.0))[0]
    return float(h), float(s), float(v)


def count_unique_colors(image: np.ndarray) -> int:
    """Count distinct RGB triples in a normalized image."""
    rgb = np.ascontiguousarray(image[:, :, :3].reshape(-1, 3))
    if rgb.shape[0] == 0:
        return 0
    return int(np.unique(rgb, axis=0).shape[0])


def from_pil(pil_image: Image.Image) -> np.ndarray:
    """
    Convert a Pillow image to a normalized float raster.

    Images with transparency keep their alpha channel; everything else is RGB.
    """
    has_alpha = pil_image.mode in ("RGBA", "LA", "PA") or (
        pil_image.mode == "P" and "transparency" in pil_image.info
    )
    converted = pil_image.convert("RGBA" if has_alpha else "RGB")
    return ensure_float_image(np.array(converted))


def to_pil(image: np.ndarray) -> Image.Image:
    """Convert a normalized float raster to an 8-bit Pillow image."""
    arr = ensure_float_image(image)
    u8 = np.clip(np.round(arr * 255.0), 0, 255).astype(np.uint8)
    # (H, W, 3) infers RGB, (H, W, 4) infers RGBA
    return Image.fromarray(u8)
