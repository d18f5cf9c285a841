"""
Palette quantization data model.

Palettes are immutable: every quantization run produces a fresh Palette and
nothing patches one in place.
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from chromasift.config import config


class QuantizationMethod(str, Enum):
    """Palette selection algorithm."""
    KMEANS = "kmeans"
    MEDIAN_CUT = "median_cut"
    UNIFORM = "uniform"
    POPULARITY = "popularity"


@dataclass(frozen=True)
class QuantizationConfig:
    """Parameters for a quantization run. Out-of-range values are clamped."""
    target_colors: int = config.DEFAULT_TARGET_COLORS
    method: QuantizationMethod = QuantizationMethod.KMEANS
    max_iterations: int = config.DEFAULT_MAX_ITERATIONS
    dithering: bool = False
    dither_strength: float = config.DEFAULT_DITHER_STRENGTH
    seed: int = config.RNG_SEED

    def __post_init__(self):
        object.__setattr__(self, "target_colors", config.clamp_target_colors(self.target_colors))
        object.__setattr__(self, "method", QuantizationMethod(self.method))
        object.__setattr__(self, "max_iterations", config.clamp_max_iterations(self.max_iterations))
        object.__setattr__(self, "dithering", bool(self.dithering))
        object.__setattr__(self, "dither_strength", config.clamp_unit(self.dither_strength))
        object.__setattr__(self, "seed", int(self.seed))


@dataclass(frozen=True)
class PaletteEntry:
    color: Tuple[float, float, float]
    weight: float


@dataclass(frozen=True)
class Palette:
    """
    Ordered list of representative colors with their pixel shares.

    Weights are non-negative and sum to 1 whenever any pixel was assigned.
    ``size`` is the requested (clamped) palette size; ``len(entries)`` can be
    smaller when the image has fewer distinct colors.
    """
    entries: Tuple[PaletteEntry, ...]
    size: int
    method: QuantizationMethod
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        object.__setattr__(self, "method", QuantizationMethod(self.method))
        object.__setattr__(self, "size", config.clamp_target_colors(self.size))
        object.__setattr__(self, "entries", tuple(self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def colors(self) -> np.ndarray:
        return np.array([e.color for e in self.entries], dtype=np.float64).reshape(-1, 3)

    @property
    def weights(self) -> np.ndarray:
        return np.array([e.weight for e in self.entries], dtype=np.float64)

    @classmethod
    def from_arrays(cls, colors: np.ndarray, weights: Sequence[float], size: int,
                    method: QuantizationMethod) -> "Palette":
        """
        Build a palette from parallel color/weight arrays.

        Exact duplicate colors are merged (weights summed, first occurrence
        keeps its position) and weights are renormalized to sum to 1.

        Args:
            colors: Array (k, 3) of normalized RGB colors
            weights: k non-negative weights
            size: Requested palette size
            method: Algorithm that produced the colors

        Returns:
            New Palette
        """
        colors = np.clip(np.asarray(colors, dtype=np.float64).reshape(-1, 3), 0.0, 1.0)
        weights = np.maximum(np.asarray(weights, dtype=np.float64).reshape(-1), 0.0)
        if colors.shape[0] != weights.shape[0]:
            raise ValueError(f"Got {colors.shape[0]} colors but {weights.shape[0]} weights")

        merged: Dict[Tuple[float, float, float], float] = {}
        for color, weight in zip(colors, weights):
            key = (float(color[0]), float(color[1]), float(color[2]))
            merged[key] = merged.get(key, 0.0) + float(weight)

        total = sum(merged.values())
        if total > 0:
            merged = {k: w / total for k, w in merged.items()}

        entries = tuple(PaletteEntry(color=k, weight=w) for k, w in merged.items())
        return cls(entries=entries, size=size, method=method)


@dataclass
class QuantizationStatistics:
    """Summary of a quantization run."""
    original_colors: int = 0
    reduced_colors: int = 0
    compression_ratio: float = 0.0
    elapsed_ms: float = 0.0
    method: str = QuantizationMethod.KMEANS.value
    iterations: int = 0
    converged: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QuantizationResult:
    """Outcome of ``PaletteQuantizer.run``."""
    success: bool
    palette: Optional[Palette] = None
    image: Optional[np.ndarray] = None
    statistics: QuantizationStatistics = field(default_factory=QuantizationStatistics)
    error: Optional[str] = None
    cancelled: bool = False
