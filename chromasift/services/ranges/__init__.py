"""
ChromaSift Ranges Module

HSV range matching, multi-range combination (union, intersection, exclusive,
weighted) and overlap detection with range merging.
"""

from .models import (
    Background,
    ColorRange,
    CombinationMode,
    DisplayMode,
    MutationResult,
    MutationStatus,
    RangeSet,
    range_from_color,
)
from .matcher import in_range, match_strength, range_mask, range_strength
from .overlap import find_overlapping, optimize_ranges, overlapping_pairs, ranges_overlap
from .combination import combine
from .engine import RangeApplyResult, RangeCombinationEngine, RangeStatistics

__all__ = [
    'Background',
    'ColorRange',
    'CombinationMode',
    'DisplayMode',
    'MutationResult',
    'MutationStatus',
    'RangeSet',
    'range_from_color',
    'in_range',
    'match_strength',
    'range_mask',
    'range_strength',
    'find_overlapping',
    'optimize_ranges',
    'overlapping_pairs',
    'ranges_overlap',
    'combine',
    'RangeApplyResult',
    'RangeCombinationEngine',
    'RangeStatistics',
]
