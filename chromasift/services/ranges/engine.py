"""
Range Combination Engine.

Owns a RangeSet behind a lock, exposes the mutation surface used by the host
application and runs combination passes on copy-on-write snapshots. Every
method reports failures through result objects instead of raising.
"""

import threading
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Union

import numpy as np
from loguru import logger

from chromasift.services.observability.metrics import performance_monitor
from chromasift.services.presets import (
    PresetLoadResult,
    load_range_set_preset,
    range_set_to_json,
)
from chromasift.services.ranges import models
from chromasift.services.ranges.combination import combine
from chromasift.services.ranges.models import (
    Background,
    ColorRange,
    CombinationMode,
    MutationResult,
    MutationStatus,
    RangeSet,
)
from chromasift.services.ranges.overlap import find_overlapping, optimize_ranges, overlapping_pairs
from chromasift.services.reliability import (
    CancellationToken,
    ChromaSiftError,
    OperationCancelledError,
)
from chromasift.utils.ids import generate_run_id
from chromasift.utils.logging import get_logger


@dataclass
class RangeStatistics:
    """Summary of a range set and, after a pass, of its coverage."""
    total_ranges: int = 0
    active_ranges: int = 0
    overlapping_pairs: int = 0
    matched_pixels: int = 0
    total_pixels: int = 0
    coverage_percent: float = 0.0
    mode: str = CombinationMode.UNION.value
    processing_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RangeApplyResult:
    """Outcome of a combination pass."""
    success: bool
    image: Optional[np.ndarray] = None
    matched_pixel_count: int = 0
    statistics: RangeStatistics = field(default_factory=RangeStatistics)
    error: Optional[str] = None
    cancelled: bool = False


def compute_statistics(range_set: RangeSet, matched_pixels: int = 0,
                       total_pixels: int = 0, processing_ms: float = 0.0) -> RangeStatistics:
    """Build statistics for ``range_set`` and an optional pass over it."""
    coverage = 100.0 * matched_pixels / total_pixels if total_pixels > 0 else 0.0
    return RangeStatistics(
        total_ranges=len(range_set),
        active_ranges=len(range_set.active_ranges),
        overlapping_pairs=len(overlapping_pairs(range_set)),
        matched_pixels=matched_pixels,
        total_pixels=total_pixels,
        coverage_percent=coverage,
        mode=range_set.mode.value,
        processing_ms=processing_ms,
    )


class RangeCombinationEngine:
    """Thread-safe owner of a RangeSet."""

    def __init__(self, range_set: Optional[RangeSet] = None):
        self._lock = threading.RLock()
        self._range_set = range_set if range_set is not None else RangeSet()
        self._backup: Optional[RangeSet] = None

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def snapshot(self) -> RangeSet:
        """Current range set; immutable, safe to hand to another thread."""
        with self._lock:
            return self._range_set

    @property
    def has_backup(self) -> bool:
        with self._lock:
            return self._backup is not None

    def get_range(self, range_id: str) -> Optional[ColorRange]:
        return self.snapshot().get(range_id)

    def get_active_ranges(self) -> List[ColorRange]:
        return list(self.snapshot().active_ranges)

    def get_overlapping_ranges(self, range_id: str) -> List[ColorRange]:
        return find_overlapping(self.snapshot(), range_id)

    def get_statistics(self) -> RangeStatistics:
        return compute_statistics(self.snapshot())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _mutate(self, fn, *args, **kwargs) -> MutationResult:
        with self._lock:
            updated, result = fn(self._range_set, *args, **kwargs)
            self._range_set = updated
            return result

    def add_range(self, color_range: ColorRange) -> MutationResult:
        return self._mutate(models.add_range, color_range)

    def remove_range(self, range_id: str) -> MutationResult:
        return self._mutate(models.remove_range, range_id)

    def toggle_range(self, range_id: str, active: Optional[bool] = None) -> MutationResult:
        return self._mutate(models.toggle_range, range_id, active)

    def reorder_range(self, range_id: str, new_priority: int) -> MutationResult:
        return self._mutate(models.reorder_range, range_id, new_priority)

    def update_range(self, range_id: str, **changes: Any) -> MutationResult:
        return self._mutate(models.update_range, range_id, **changes)

    def set_combination_mode(self, mode: Union[CombinationMode, str]) -> MutationResult:
        return self._mutate(models.set_combination_mode, mode)

    def set_max_active_ranges(self, count: int) -> MutationResult:
        return self._mutate(models.set_max_active_ranges, count)

    def set_overlap_tolerance(self, tolerance: float) -> MutationResult:
        return self._mutate(models.set_overlap_tolerance, tolerance)

    def set_overlap_detection(self, enabled: bool) -> MutationResult:
        return self._mutate(models.set_overlap_detection, enabled)

    def set_background(self, background: Union[Background, str]) -> MutationResult:
        return self._mutate(models.set_background, background)

    def optimize_ranges(self) -> MutationResult:
        return self._mutate(optimize_ranges)

    # ------------------------------------------------------------------
    # Backup and presets
    # ------------------------------------------------------------------

    def create_backup(self) -> None:
        with self._lock:
            self._backup = self._range_set
            logger.debug(f"Backed up range set ({len(self._backup)} ranges)")

    def clear_ranges(self, create_backup: bool = True) -> MutationResult:
        """Remove every range, optionally backing up the current set first."""
        with self._lock:
            if create_backup:
                self.create_backup()
            return self._mutate(models.clear_ranges)

    def restore_from_backup(self) -> MutationResult:
        """Swap the last backup back in. Reports NOT_FOUND when none exists."""
        with self._lock:
            if self._backup is None:
                logger.warning("No range set backup available to restore")
                return MutationResult(MutationStatus.NOT_FOUND, message="No backup available")
            self._range_set = self._backup
            logger.info(f"Restored range set from backup ({len(self._range_set)} ranges)")
            return MutationResult(MutationStatus.OK)

    def export_preset(self) -> str:
        """Serialize the current range set to JSON."""
        return range_set_to_json(self.snapshot())

    def load_preset(self, data: Union[str, bytes, Dict[str, Any]]) -> PresetLoadResult:
        """
        Replace the current set with a serialized preset.

        The current set is backed up first; on a parse failure the backup stays
        active and the result carries ``recovered=True`` with the error.
        """
        with self._lock:
            self.create_backup()
            result = load_range_set_preset(data, fallback=self._backup)
            self._range_set = result.value
            return result

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def apply(self, image: np.ndarray,
              cancel_token: Optional[CancellationToken] = None) -> RangeApplyResult:
        """
        Run a combination pass over ``image``.

        Args:
            image: (H, W, 3|4) raster, uint8 or float in [0, 1]
            cancel_token: Optional token checked between row batches

        Returns:
            RangeApplyResult; ``success`` is False for invalid images or a
            cancelled pass, never raised.
        """
        range_set = self.snapshot()
        run_id = generate_run_id("ranges")
        start_time = time.time()
        log = get_logger()

        try:
            shape = getattr(image, "shape", (0, 0))
            total_pixels = int(shape[0] * shape[1]) if len(shape) >= 2 else 0
            with performance_monitor("range_combination", pixel_count=total_pixels,
                                     cluster_count=len(range_set.active_ranges)):
                output, matched = combine(image, range_set, cancel_token)
            total_pixels = int(output.shape[0] * output.shape[1])
        except OperationCancelledError as e:
            log.warning(f"Range combination cancelled: {e}", extra={"run_id": run_id})
            return RangeApplyResult(success=False, error=str(e), cancelled=True,
                                    statistics=compute_statistics(range_set))
        except ChromaSiftError as e:
            log.error(f"Range combination failed: {e}", extra={"run_id": run_id})
            return RangeApplyResult(success=False, error=str(e),
                                    statistics=compute_statistics(range_set))

        elapsed_ms = (time.time() - start_time) * 1000
        stats = compute_statistics(range_set, matched, total_pixels, elapsed_ms)
        log.info(
            f"Range combination completed in {elapsed_ms:.1f}ms: "
            f"{matched}/{total_pixels} pixels matched ({stats.coverage_percent:.1f}%)",
            extra={"run_id": run_id, "mode": range_set.mode.value, "active_ranges": stats.active_ranges},
        )
        return RangeApplyResult(success=True, image=output, matched_pixel_count=matched, statistics=stats)
