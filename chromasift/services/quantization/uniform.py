"""
Uniform palette selection.
"""

from typing import Tuple

import numpy as np


def integer_cube_root(n: int) -> int:
    """Largest integer ``s`` with ``s ** 3 <= n``."""
    s = int(round(n ** (1.0 / 3.0)))
    while s ** 3 > n:
        s -= 1
    while (s + 1) ** 3 <= n:
        s += 1
    return s


def uniform_palette(n_colors: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Regular grid over the RGB cube, independent of image content.

    Uses ``max(2, floor(n ** (1/3)))`` levels per axis, emits the grid in
    r -> g -> b order and truncates it to ``n_colors`` entries. Every color
    gets the same weight.

    Returns:
        Tuple of (colors (k, 3), weights (k,))
    """
    steps = max(2, integer_cube_root(n_colors))
    levels = np.linspace(0.0, 1.0, steps)
    r, g, b = np.meshgrid(levels, levels, levels, indexing="ij")
    grid = np.stack([r.ravel(), g.ravel(), b.ravel()], axis=1)[:n_colors]
    weights = np.full(grid.shape[0], 1.0 / grid.shape[0])
    return grid, weights
