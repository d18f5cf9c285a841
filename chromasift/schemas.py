"""
ChromaSift Preset Schemas
Pydantic records for saving and restoring range sets and palettes.
"""
from typing import List

from pydantic import BaseModel, Field, model_validator

SCHEMA_VERSION = 1
PALETTE_WEIGHT_TOLERANCE = 1e-3


class ColorRangeRecord(BaseModel):
    """Serialized ColorRange."""
    range_id: str = Field(..., min_length=1, description="Stable range identifier")
    name: str = Field("Color Range", description="Human readable label")
    hue_min: float = Field(..., ge=0.0, le=360.0, description="Lower hue bound in degrees")
    hue_max: float = Field(..., ge=0.0, le=360.0, description="Upper hue bound; below hue_min means wraparound")
    saturation_min: float = Field(..., ge=0.0, le=1.0)
    saturation_max: float = Field(..., ge=0.0, le=1.0)
    value_min: float = Field(..., ge=0.0, le=1.0)
    value_max: float = Field(..., ge=0.0, le=1.0)
    active: bool = Field(True, description="Whether the range takes part in combination")
    priority: int = Field(0, ge=0, description="Ordering key, higher wins")
    weight: float = Field(1.0, ge=0.0, le=1.0, description="Contribution in weighted mode")
    invert: bool = Field(False, description="Match everything outside the window")
    feather: float = Field(0.0, ge=0.0, le=1.0, description="Edge softening factor")
    display_mode: str = Field("original_color", description="'original_color', 'highlight' or 'mask'")
    highlight_color: List[float] = Field(
        default_factory=lambda: [1.0, 1.0, 0.0],
        min_length=3,
        max_length=3,
        description="Normalized RGB used by highlight mode"
    )
    highlight_intensity: float = Field(0.5, ge=0.0, le=1.0)


class RangeSetRecord(BaseModel):
    """Serialized RangeSet."""
    schema_version: int = Field(SCHEMA_VERSION, ge=1, description="Record layout version")
    ranges: List[ColorRangeRecord] = Field(default_factory=list, description="Ranges, highest priority first")
    mode: str = Field("union", description="'union', 'intersection', 'exclusive' or 'weighted'")
    overlap_tolerance: float = Field(0.1, ge=0.0, le=1.0)
    max_ranges: int = Field(8, ge=1, description="Capacity of the set")
    background: str = Field("black", description="'black' or 'transparent'")
    overlap_detection: bool = Field(True, description="Report and merge overlapping ranges")


class PaletteEntryRecord(BaseModel):
    """Single palette color with its pixel share."""
    color: List[float] = Field(..., min_length=3, max_length=3, description="Normalized RGB")
    weight: float = Field(..., ge=0.0, le=1.0, description="Fraction of pixels mapped to this color")


class PaletteRecord(BaseModel):
    """Serialized Palette."""
    schema_version: int = Field(SCHEMA_VERSION, ge=1, description="Record layout version")
    entries: List[PaletteEntryRecord] = Field(..., min_length=1)
    size: int = Field(..., ge=2, le=256, description="Requested palette size")
    method: str = Field(..., description="'kmeans', 'median_cut', 'uniform' or 'popularity'")
    created_at: float = Field(..., description="Creation time as a UNIX timestamp")

    @model_validator(mode="after")
    def check_weights_sum_to_one(self) -> "PaletteRecord":
        """Entry weights are pixel shares and must add up to 1."""
        total = sum(entry.weight for entry in self.entries)
        if abs(total - 1.0) > PALETTE_WEIGHT_TOLERANCE:
            raise ValueError(f"Palette weights sum to {total:.4f}, expected 1")
        return self
