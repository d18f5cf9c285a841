"""
ChromaSift Presets
Pure serialize/deserialize pairs for range sets and palettes, plus loaders that
recover to a known-good value when stored data is malformed. Where the data is
kept is up to the host.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from loguru import logger
from pydantic import ValidationError

from chromasift.schemas import (
    SCHEMA_VERSION,
    ColorRangeRecord,
    PaletteEntryRecord,
    PaletteRecord,
    RangeSetRecord,
)
from chromasift.services.quantization.models import Palette, PaletteEntry
from chromasift.services.ranges.models import ColorRange, RangeSet
from chromasift.services.reliability import PresetParseError

T = TypeVar("T")

PresetData = Union[str, bytes, Dict[str, Any]]


@dataclass
class PresetLoadResult(Generic[T]):
    """Value to use after a load attempt; ``recovered`` marks a fallback."""
    value: T
    recovered: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.recovered


def _as_dict(data: PresetData) -> Dict[str, Any]:
    if isinstance(data, dict):
        return data
    try:
        decoded = json.loads(data)
    except (TypeError, ValueError) as e:
        raise PresetParseError(f"Preset is not valid JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise PresetParseError(f"Preset must be a JSON object, got {type(decoded).__name__}")
    return decoded


def _check_version(version: int) -> None:
    if version != SCHEMA_VERSION:
        raise PresetParseError(f"Unsupported preset schema version {version}")


# ============================================================================
# RANGE SETS
# ============================================================================

def range_set_to_dict(range_set: RangeSet) -> Dict[str, Any]:
    """Field-named record of a range set."""
    record = RangeSetRecord(
        ranges=[
            ColorRangeRecord(
                range_id=r.range_id,
                name=r.name,
                hue_min=r.hue_min,
                hue_max=r.hue_max,
                saturation_min=r.saturation_min,
                saturation_max=r.saturation_max,
                value_min=r.value_min,
                value_max=r.value_max,
                active=r.active,
                priority=r.priority,
                weight=r.weight,
                invert=r.invert,
                feather=r.feather,
                display_mode=r.display_mode.value,
                highlight_color=list(r.highlight_color),
                highlight_intensity=r.highlight_intensity,
            )
            for r in range_set.ranges
        ],
        mode=range_set.mode.value,
        overlap_tolerance=range_set.overlap_tolerance,
        max_ranges=range_set.max_ranges,
        background=range_set.background.value,
        overlap_detection=range_set.overlap_detection,
    )
    return record.model_dump()


def range_set_from_dict(data: Dict[str, Any]) -> RangeSet:
    """
    Rebuild a range set from its record.

    Raises:
        PresetParseError: If the record is malformed or names unknown enums
    """
    try:
        record = RangeSetRecord.model_validate(data)
        _check_version(record.schema_version)
        # Records are stored highest priority first; sort defensively on priority
        ranges = sorted(
            (ColorRange(**r.model_dump()) for r in record.ranges),
            key=lambda r: -r.priority,
        )
        if len({r.range_id for r in ranges}) != len(ranges):
            raise PresetParseError("Preset contains duplicate range ids")
        return RangeSet(
            ranges=tuple(ranges),
            mode=record.mode,
            overlap_tolerance=record.overlap_tolerance,
            max_ranges=record.max_ranges,
            background=record.background,
            overlap_detection=record.overlap_detection,
        )
    except PresetParseError:
        raise
    except ValidationError as e:
        raise PresetParseError(f"Invalid range set preset: {e.error_count()} error(s)") from e
    except ValueError as e:
        raise PresetParseError(f"Invalid range set preset: {e}") from e


def range_set_to_json(range_set: RangeSet) -> str:
    return json.dumps(range_set_to_dict(range_set))


def range_set_from_json(data: Union[str, bytes]) -> RangeSet:
    return range_set_from_dict(_as_dict(data))


def load_range_set_preset(data: PresetData,
                          fallback: Optional[RangeSet] = None) -> PresetLoadResult:
    """
    Decode a range-set preset, recovering on failure.

    Args:
        data: JSON text or an already-decoded record
        fallback: Last known-good set; defaults to an empty RangeSet

    Returns:
        PresetLoadResult whose ``value`` is always usable
    """
    try:
        return PresetLoadResult(value=range_set_from_dict(_as_dict(data)))
    except PresetParseError as e:
        value = fallback if fallback is not None else RangeSet()
        logger.warning(f"Range set preset rejected, restoring {len(value)} ranges: {e}")
        return PresetLoadResult(value=value, recovered=True, error=str(e))


# ============================================================================
# PALETTES
# ============================================================================

def palette_to_dict(palette: Palette) -> Dict[str, Any]:
    """Field-named record of a palette."""
    record = PaletteRecord(
        entries=[
            PaletteEntryRecord(color=list(e.color), weight=e.weight)
            for e in palette.entries
        ],
        size=palette.size,
        method=palette.method.value,
        created_at=palette.created_at,
    )
    return record.model_dump()


def palette_from_dict(data: Dict[str, Any]) -> Palette:
    """
    Rebuild a palette from its record.

    Raises:
        PresetParseError: If the record is malformed
    """
    try:
        record = PaletteRecord.model_validate(data)
        _check_version(record.schema_version)
        return Palette(
            entries=tuple(PaletteEntry(color=tuple(e.color), weight=e.weight) for e in record.entries),
            size=record.size,
            method=record.method,
            created_at=record.created_at,
        )
    except PresetParseError:
        raise
    except ValidationError as e:
        raise PresetParseError(f"Invalid palette preset: {e.error_count()} error(s)") from e
    except ValueError as e:
        raise PresetParseError(f"Invalid palette preset: {e}") from e


def palette_to_json(palette: Palette) -> str:
    return json.dumps(palette_to_dict(palette))


def palette_from_json(data: Union[str, bytes]) -> Palette:
    return palette_from_dict(_as_dict(data))


def load_palette_preset(data: PresetData,
                        fallback: Optional[Palette] = None) -> PresetLoadResult:
    """
    Decode a palette preset, recovering on failure.

    Without a fallback the recovered value is None; palettes have no
    meaningful default.
    """
    try:
        return PresetLoadResult(value=palette_from_dict(_as_dict(data)))
    except PresetParseError as e:
        logger.warning(f"Palette preset rejected, keeping previous palette: {e}")
        return PresetLoadResult(value=fallback, recovered=True, error=str(e))
