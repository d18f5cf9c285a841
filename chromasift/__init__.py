"""
ChromaSift

Color range isolation and palette quantization for raster images. Provides
HSV range matching, multi-range combination with overlap merging, and four
palette quantization algorithms with nearest-color mapping and dithering.
"""

__version__ = "1.0.0"

from chromasift.services.quantization import (
    Palette,
    PaletteQuantizer,
    QuantizationConfig,
    QuantizationMethod,
)
from chromasift.services.ranges import (
    Background,
    ColorRange,
    CombinationMode,
    DisplayMode,
    RangeCombinationEngine,
    RangeSet,
)
from chromasift.services.reliability import CancellationToken, ChromaSiftError

__all__ = [
    'Background',
    'CancellationToken',
    'ChromaSiftError',
    'ColorRange',
    'CombinationMode',
    'DisplayMode',
    'Palette',
    'PaletteQuantizer',
    'QuantizationConfig',
    'QuantizationMethod',
    'RangeCombinationEngine',
    'RangeSet',
]
