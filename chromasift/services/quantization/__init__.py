"""
ChromaSift Quantization Module

Palette selection by k-means, median-cut, uniform grid or popularity, plus
nearest-color mapping with optional ordered dithering.
"""

from .models import (
    Palette,
    PaletteEntry,
    QuantizationConfig,
    QuantizationMethod,
    QuantizationResult,
    QuantizationStatistics,
)
from .mapping import apply_palette
from .quantizer import PaletteQuantizer, quantize_image

__all__ = [
    'Palette',
    'PaletteEntry',
    'QuantizationConfig',
    'QuantizationMethod',
    'QuantizationResult',
    'QuantizationStatistics',
    'apply_palette',
    'PaletteQuantizer',
    'quantize_image',
]
