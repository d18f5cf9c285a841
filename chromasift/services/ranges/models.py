"""
Color range data model.

This module defines the immutable ColorRange and RangeSet values together with
the pure mutation functions that produce updated range sets. Every mutation
returns a new RangeSet plus a MutationResult describing what happened; invalid
requests (unknown ids, capacity overflow) are reported, never raised.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from chromasift.config import config
from chromasift.services.imaging import rgb_to_hsv
from chromasift.utils.ids import generate_range_id


class DisplayMode(str, Enum):
    """How a matched pixel is rendered."""
    ORIGINAL_COLOR = "original_color"
    HIGHLIGHT = "highlight"
    MASK = "mask"


class CombinationMode(str, Enum):
    """Rule for merging several simultaneous range matches into one pixel."""
    UNION = "union"
    INTERSECTION = "intersection"
    EXCLUSIVE = "exclusive"
    WEIGHTED = "weighted"


class Background(str, Enum):
    """Fill used for pixels that no range claims."""
    BLACK = "black"
    TRANSPARENT = "transparent"


class MutationStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    DISABLED = "disabled"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, float(value)))


@dataclass(frozen=True)
class ColorRange:
    """
    An HSV window plus rendering options.

    ``hue_min > hue_max`` describes a window that wraps through 0 degrees.
    Saturation and value pairs are always stored ordered.
    """
    range_id: str = field(default_factory=generate_range_id)
    name: str = "Color Range"
    hue_min: float = 0.0
    hue_max: float = 360.0
    saturation_min: float = 0.0
    saturation_max: float = 1.0
    value_min: float = 0.0
    value_max: float = 1.0
    active: bool = True
    priority: int = 0
    weight: float = 1.0
    invert: bool = False
    feather: float = 0.0
    display_mode: DisplayMode = DisplayMode.ORIGINAL_COLOR
    highlight_color: Tuple[float, float, float] = (1.0, 1.0, 0.0)
    highlight_intensity: float = 0.5

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        set_ = object.__setattr__
        set_(self, "hue_min", _clamp(self.hue_min, 0.0, 360.0))
        set_(self, "hue_max", _clamp(self.hue_max, 0.0, 360.0))

        s_lo, s_hi = sorted((_clamp(self.saturation_min, 0.0, 1.0), _clamp(self.saturation_max, 0.0, 1.0)))
        v_lo, v_hi = sorted((_clamp(self.value_min, 0.0, 1.0), _clamp(self.value_max, 0.0, 1.0)))
        set_(self, "saturation_min", s_lo)
        set_(self, "saturation_max", s_hi)
        set_(self, "value_min", v_lo)
        set_(self, "value_max", v_hi)

        set_(self, "active", bool(self.active))
        set_(self, "invert", bool(self.invert))
        set_(self, "priority", int(self.priority))
        set_(self, "weight", _clamp(self.weight, 0.0, 1.0))
        set_(self, "feather", _clamp(self.feather, 0.0, 1.0))
        set_(self, "highlight_intensity", _clamp(self.highlight_intensity, 0.0, 1.0))
        set_(self, "display_mode", DisplayMode(self.display_mode))
        set_(self, "highlight_color", tuple(_clamp(c, 0.0, 1.0) for c in self.highlight_color))
        if len(self.highlight_color) != 3:
            raise ValueError(f"highlight_color needs 3 channels, got {len(self.highlight_color)}")

    @property
    def wraps_hue(self) -> bool:
        return self.hue_min > self.hue_max

    @property
    def hue_center(self) -> float:
        """Midpoint of the hue window, measured along the wrapped arc when crossed."""
        if self.wraps_hue:
            return ((self.hue_min + self.hue_max + 360.0) / 2.0) % 360.0
        return (self.hue_min + self.hue_max) / 2.0

    @property
    def hue_span(self) -> float:
        if self.wraps_hue:
            return 360.0 - self.hue_min + self.hue_max
        return self.hue_max - self.hue_min

    @property
    def saturation_center(self) -> float:
        return (self.saturation_min + self.saturation_max) / 2.0

    @property
    def value_center(self) -> float:
        return (self.value_min + self.value_max) / 2.0

    def replace(self, **changes: Any) -> "ColorRange":
        """Return a copy with ``changes`` applied (and re-normalized)."""
        return dataclasses.replace(self, **changes)


def range_from_color(rgb: Sequence[float], tolerance: float = 0.2,
                     name: str = "Color Range", **kwargs: Any) -> ColorRange:
    """
    Build a range centered on a sampled color.

    Args:
        rgb: Normalized (r, g, b) color
        tolerance: Width of the window; hue spans ``tolerance * 360`` degrees,
            saturation and value span ``tolerance`` around the sample
        name: Label for the new range
        **kwargs: Extra ColorRange fields

    Returns:
        ColorRange whose hue window wraps when it crosses 0 degrees
    """
    tol = _clamp(tolerance, 0.0, 1.0)
    h, s, v = rgb_to_hsv(rgb)

    if tol >= 1.0:
        hue_min, hue_max = 0.0, 360.0
    else:
        half = tol * 180.0
        hue_min = (h - half) % 360.0
        hue_max = (h + half) % 360.0

    return ColorRange(
        name=name,
        hue_min=hue_min,
        hue_max=hue_max,
        saturation_min=s - tol / 2.0,
        saturation_max=s + tol / 2.0,
        value_min=v - tol / 2.0,
        value_max=v + tol / 2.0,
        **kwargs,
    )


@dataclass(frozen=True)
class RangeSet:
    """
    Ordered, bounded collection of ranges with a combination mode.

    ``ranges`` is kept highest priority first and priorities are always the
    contiguous run ``n-1 ... 0`` in tuple order.
    """
    ranges: Tuple[ColorRange, ...] = ()
    mode: CombinationMode = CombinationMode.UNION
    overlap_tolerance: float = config.DEFAULT_OVERLAP_TOLERANCE
    max_ranges: int = config.DEFAULT_MAX_RANGES
    background: Background = Background.BLACK
    overlap_detection: bool = True

    def __post_init__(self):
        object.__setattr__(self, "mode", CombinationMode(self.mode))
        object.__setattr__(self, "background", Background(self.background))
        object.__setattr__(self, "overlap_tolerance", _clamp(self.overlap_tolerance, 0.0, 1.0))
        object.__setattr__(self, "max_ranges", config.clamp_max_ranges(self.max_ranges))
        object.__setattr__(self, "ranges", _renumber(self.ranges))

    def __len__(self) -> int:
        return len(self.ranges)

    @property
    def active_ranges(self) -> Tuple[ColorRange, ...]:
        return tuple(r for r in self.ranges if r.active)

    @property
    def is_full(self) -> bool:
        return len(self.ranges) >= self.max_ranges

    def get(self, range_id: str) -> Optional[ColorRange]:
        for rng in self.ranges:
            if rng.range_id == range_id:
                return rng
        return None

    def index_of(self, range_id: str) -> int:
        for i, rng in enumerate(self.ranges):
            if rng.range_id == range_id:
                return i
        return -1

    def replace(self, **changes: Any) -> "RangeSet":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a range-set mutation."""
    status: MutationStatus
    range_id: Optional[str] = None
    message: str = ""
    overlapping: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status == MutationStatus.OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "range_id": self.range_id,
            "message": self.message,
            "overlapping": list(self.overlapping),
        }


def _renumber(ranges: Sequence[ColorRange]) -> Tuple[ColorRange, ...]:
    """Assign priorities n-1 ... 0 following the current order."""
    n = len(ranges)
    out = []
    for i, rng in enumerate(ranges):
        expected = n - 1 - i
        out.append(rng if rng.priority == expected else rng.replace(priority=expected))
    return tuple(out)


def _not_found(range_id: str, action: str) -> MutationResult:
    logger.warning(f"Cannot {action} range {range_id}: not found")
    return MutationResult(MutationStatus.NOT_FOUND, range_id, f"Range {range_id} not found")


def add_range(range_set: RangeSet, color_range: ColorRange) -> Tuple[RangeSet, MutationResult]:
    """
    Insert a range according to its requested priority.

    The range lands above every existing range whose priority is lower than the
    requested one, and below peers with an equal priority. Overlaps with
    existing ranges are reported, never rejected.
    """
    # Deferred: overlap imports models
    from chromasift.services.ranges.overlap import find_overlapping

    if range_set.is_full:
        logger.warning(f"Range capacity reached ({range_set.max_ranges}); rejecting {color_range.name}")
        return range_set, MutationResult(
            MutationStatus.CAPACITY_EXCEEDED,
            color_range.range_id,
            f"Maximum of {range_set.max_ranges} ranges reached",
        )

    existing_ids = {r.range_id for r in range_set.ranges}
    new_range = color_range
    while new_range.range_id in existing_ids:
        new_range = new_range.replace(range_id=generate_range_id())

    ranges: List[ColorRange] = list(range_set.ranges)
    insert_at = len(ranges)
    for i, rng in enumerate(ranges):
        if rng.priority < new_range.priority:
            insert_at = i
            break
    ranges.insert(insert_at, new_range)

    updated = range_set.replace(ranges=tuple(ranges))
    overlapping: Tuple[str, ...] = ()
    if updated.overlap_detection:
        overlapping = tuple(
            r.range_id for r in find_overlapping(updated, new_range.range_id)
        )
        if overlapping:
            logger.warning(f"Range {new_range.name} overlaps with {len(overlapping)} existing range(s)")

    logger.debug(f"Added range {new_range.range_id} ({new_range.name}), total {len(updated)}")
    return updated, MutationResult(MutationStatus.OK, new_range.range_id, overlapping=overlapping)


def remove_range(range_set: RangeSet, range_id: str) -> Tuple[RangeSet, MutationResult]:
    """Remove a range by id."""
    idx = range_set.index_of(range_id)
    if idx < 0:
        return range_set, _not_found(range_id, "remove")

    ranges = range_set.ranges[:idx] + range_set.ranges[idx + 1:]
    logger.debug(f"Removed range {range_id}")
    return range_set.replace(ranges=ranges), MutationResult(MutationStatus.OK, range_id)


def toggle_range(range_set: RangeSet, range_id: str,
                 active: Optional[bool] = None) -> Tuple[RangeSet, MutationResult]:
    """Set a range's active flag, or flip it when ``active`` is None."""
    idx = range_set.index_of(range_id)
    if idx < 0:
        return range_set, _not_found(range_id, "toggle")

    current = range_set.ranges[idx]
    new_active = (not current.active) if active is None else bool(active)
    ranges = list(range_set.ranges)
    ranges[idx] = current.replace(active=new_active)
    return range_set.replace(ranges=tuple(ranges)), MutationResult(MutationStatus.OK, range_id)


def reorder_range(range_set: RangeSet, range_id: str,
                  new_priority: int) -> Tuple[RangeSet, MutationResult]:
    """
    Move a range so that its priority becomes ``new_priority``.

    The target is clamped to ``[0, n-1]``; other ranges keep their relative
    order and all priorities stay contiguous.
    """
    idx = range_set.index_of(range_id)
    if idx < 0:
        return range_set, _not_found(range_id, "reorder")

    n = len(range_set.ranges)
    target_priority = max(0, min(n - 1, int(new_priority)))
    ranges = list(range_set.ranges)
    moving = ranges.pop(idx)
    # Position i in the tuple holds priority n-1-i
    ranges.insert(n - 1 - target_priority, moving)
    return range_set.replace(ranges=tuple(ranges)), MutationResult(MutationStatus.OK, range_id)


def update_range(range_set: RangeSet, range_id: str,
                 **changes: Any) -> Tuple[RangeSet, MutationResult]:
    """Edit fields of a range in place. ``range_id`` and ``priority`` are not editable here."""
    idx = range_set.index_of(range_id)
    if idx < 0:
        return range_set, _not_found(range_id, "update")

    changes.pop("range_id", None)
    changes.pop("priority", None)
    ranges = list(range_set.ranges)
    ranges[idx] = ranges[idx].replace(**changes)
    return range_set.replace(ranges=tuple(ranges)), MutationResult(MutationStatus.OK, range_id)


def clear_ranges(range_set: RangeSet) -> Tuple[RangeSet, MutationResult]:
    """Remove every range, keeping mode and limits."""
    logger.debug(f"Clearing {len(range_set)} ranges")
    return range_set.replace(ranges=()), MutationResult(MutationStatus.OK)


def set_combination_mode(range_set: RangeSet,
                         mode: CombinationMode) -> Tuple[RangeSet, MutationResult]:
    return range_set.replace(mode=CombinationMode(mode)), MutationResult(MutationStatus.OK)


def set_max_active_ranges(range_set: RangeSet, count: int) -> Tuple[RangeSet, MutationResult]:
    """
    Change the capacity, clamped to the supported range.

    Existing ranges are never dropped; if the set is already over the new
    capacity, further adds are rejected until ranges are removed.
    """
    clamped = config.clamp_max_ranges(count)
    if clamped < len(range_set):
        logger.warning(f"Capacity {clamped} is below current range count {len(range_set)}")
    return range_set.replace(max_ranges=clamped), MutationResult(
        MutationStatus.OK, message=f"max_ranges={clamped}"
    )


def set_overlap_tolerance(range_set: RangeSet, tolerance: float) -> Tuple[RangeSet, MutationResult]:
    return range_set.replace(overlap_tolerance=tolerance), MutationResult(MutationStatus.OK)


def set_overlap_detection(range_set: RangeSet, enabled: bool) -> Tuple[RangeSet, MutationResult]:
    return range_set.replace(overlap_detection=bool(enabled)), MutationResult(MutationStatus.OK)


def set_background(range_set: RangeSet, background: Background) -> Tuple[RangeSet, MutationResult]:
    return range_set.replace(background=Background(background)), MutationResult(MutationStatus.OK)
