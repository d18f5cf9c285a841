"""
Range overlap detection and merging.

Two ranges overlap when their hue, saturation and value windows all overlap
within a tolerance. Hue windows are compared on the circle, so a window that
wraps through 0 degrees overlaps one sitting just above or below 0.
"""

from typing import Dict, List, Sequence, Tuple

from loguru import logger

from chromasift.services.ranges.models import (
    ColorRange,
    MutationResult,
    MutationStatus,
    RangeSet,
)


def _hue_pieces(rng: ColorRange) -> List[Tuple[float, float]]:
    """Split a hue window into linear pieces inside [0, 360]."""
    if rng.wraps_hue:
        return [(rng.hue_min, 360.0), (0.0, rng.hue_max)]
    return [(rng.hue_min, rng.hue_max)]


def _linear_overlap(min1: float, max1: float, min2: float, max2: float, tolerance: float) -> bool:
    return min1 <= max2 + tolerance and min2 <= max1 + tolerance


def hue_overlap(a: ColorRange, b: ColorRange, tolerance_deg: float) -> bool:
    """Circular overlap test for two hue windows, widened by ``tolerance_deg``."""
    for lo1, hi1 in _hue_pieces(a):
        for lo2, hi2 in _hue_pieces(b):
            for shift in (-360.0, 0.0, 360.0):
                if _linear_overlap(lo1, hi1, lo2 + shift, hi2 + shift, tolerance_deg):
                    return True
    return False


def ranges_overlap(a: ColorRange, b: ColorRange, tolerance: float = 0.1) -> bool:
    """
    Check whether two ranges overlap.

    Args:
        a: First range
        b: Second range
        tolerance: Normalized slack; hue uses ``tolerance * 360`` degrees

    Returns:
        True when hue, saturation and value windows all overlap
    """
    if a.range_id == b.range_id:
        return False
    return (
        hue_overlap(a, b, tolerance * 360.0)
        and _linear_overlap(a.saturation_min, a.saturation_max,
                            b.saturation_min, b.saturation_max, tolerance)
        and _linear_overlap(a.value_min, a.value_max,
                            b.value_min, b.value_max, tolerance)
    )


def find_overlapping(range_set: RangeSet, range_id: str) -> List[ColorRange]:
    """All ranges in the set overlapping the one identified by ``range_id``."""
    target = range_set.get(range_id)
    if target is None:
        return []
    return [
        rng for rng in range_set.ranges
        if ranges_overlap(target, rng, range_set.overlap_tolerance)
    ]


def overlapping_pairs(range_set: RangeSet) -> List[Tuple[str, str]]:
    """Every unordered pair of overlapping range ids, in priority order."""
    pairs = []
    ranges = range_set.ranges
    for i in range(len(ranges)):
        for j in range(i + 1, len(ranges)):
            if ranges_overlap(ranges[i], ranges[j], range_set.overlap_tolerance):
                pairs.append((ranges[i].range_id, ranges[j].range_id))
    return pairs


def _covering_hue(members: Sequence[ColorRange]) -> Tuple[float, float]:
    """
    Smallest circular arc covering every member's hue window.

    Returns the complement of the largest uncovered gap as ``(hue_min, hue_max)``;
    a fully covered circle returns ``(0, 360)``.
    """
    pieces = sorted(p for rng in members for p in _hue_pieces(rng))

    merged: List[List[float]] = []
    for lo, hi in pieces:
        if merged and lo <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], hi)
        else:
            merged.append([lo, hi])

    # Gaps between consecutive covered pieces, plus the one across 360 -> 0
    gaps = [(merged[i][1], merged[i + 1][0]) for i in range(len(merged) - 1)]
    gaps.append((merged[-1][1], merged[0][0] + 360.0))
    gap_start, gap_end = max(gaps, key=lambda g: g[1] - g[0])

    if gap_end - gap_start <= 0.0:
        return 0.0, 360.0
    return gap_end % 360.0, gap_start


def merge_ranges(members: Sequence[ColorRange]) -> ColorRange:
    """
    Merge a group of ranges into one.

    HSV bounds become the union of the members' bounds. Rendering options and
    priority come from the highest-priority member and weight is averaged.
    """
    lead = max(members, key=lambda r: r.priority)
    hue_min, hue_max = _covering_hue(members)

    return ColorRange(
        name=f"Merged Range ({len(members)} ranges)",
        hue_min=hue_min,
        hue_max=hue_max,
        saturation_min=min(r.saturation_min for r in members),
        saturation_max=max(r.saturation_max for r in members),
        value_min=min(r.value_min for r in members),
        value_max=max(r.value_max for r in members),
        active=any(r.active for r in members),
        priority=lead.priority,
        weight=sum(r.weight for r in members) / len(members),
        invert=lead.invert,
        feather=lead.feather,
        display_mode=lead.display_mode,
        highlight_color=lead.highlight_color,
        highlight_intensity=lead.highlight_intensity,
    )


def _group_overlapping(range_set: RangeSet) -> List[List[int]]:
    """Transitive overlap groups as index lists, ordered by first member."""
    parent = list(range(len(range_set.ranges)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    ranges = range_set.ranges
    for i in range(len(ranges)):
        for j in range(i + 1, len(ranges)):
            if ranges_overlap(ranges[i], ranges[j], range_set.overlap_tolerance):
                ri, rj = find(i), find(j)
                if ri != rj:
                    parent[max(ri, rj)] = min(ri, rj)

    groups: Dict[int, List[int]] = {}
    for i in range(len(ranges)):
        groups.setdefault(find(i), []).append(i)
    return [groups[root] for root in sorted(groups)]


def optimize_ranges(range_set: RangeSet) -> Tuple[RangeSet, MutationResult]:
    """
    Replace every transitive group of overlapping ranges with one merged range.

    Each merged range takes the slot of its highest-priority member; ranges
    overlapping nothing are kept unchanged.
    """
    if not range_set.overlap_detection:
        logger.warning("Range optimization skipped: overlap detection disabled")
        return range_set, MutationResult(MutationStatus.DISABLED, message="Overlap detection disabled")

    groups = _group_overlapping(range_set)
    optimized = []
    merged_count = 0
    for group in groups:
        members = [range_set.ranges[i] for i in group]
        if len(members) == 1:
            optimized.append(members[0])
        else:
            optimized.append(merge_ranges(members))
            merged_count += len(members)

    before, after = len(range_set), len(optimized)
    if merged_count:
        logger.info(f"Optimized ranges: {before} -> {after} ({merged_count} merged)")
    return range_set.replace(ranges=tuple(optimized)), MutationResult(
        MutationStatus.OK, message=f"{before} -> {after} ranges"
    )
