"""Reentry and conduction-block heuristics.

Both detectors are visualization aids. They never raise on odd input; the
worst case is "not detected".
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .constants import (
    BLOCK_GRADIENT_THRESHOLD, BLOCK_MAX_LOCATIONS, BLOCK_MIN_SNAPSHOTS, BLOCK_STRIDE,
    REENTRY_MAX_LOCATIONS, REENTRY_MIN_CROSSINGS, REENTRY_MIN_SNAPSHOTS,
    REENTRY_STRIDE, REENTRY_THRESHOLD,
)
from .grid import Snapshot

Location = Tuple[int, int]


@dataclass(frozen=True)
class DetectionResult:
    detected: bool = False
    locations: Tuple[Location, ...] = ()


def _subsample(mask: np.ndarray, stride: int, cap: int) -> Tuple[Location, ...]:
    rows, cols = np.nonzero(mask)
    keep = (rows % stride == 0) & (cols % stride == 0)
    picked = zip(rows[keep].tolist(), cols[keep].tolist())
    return tuple(picked)[:cap]


@dataclass(frozen=True)
class ReentryDetector:
    """Flag cells that depolarize repeatedly late in the run.

    Upstroke crossings of ``threshold`` are counted between consecutive
    snapshots, starting a third of the way into the snapshot sequence. Cells
    with at least ``min_crossings`` are flagged; every ``stride``-th row and
    column of them is reported, at most ``max_locations``.
    """

    threshold: float = REENTRY_THRESHOLD
    min_crossings: int = REENTRY_MIN_CROSSINGS
    stride: int = REENTRY_STRIDE
    max_locations: int = REENTRY_MAX_LOCATIONS
    min_snapshots: int = REENTRY_MIN_SNAPSHOTS

    def crossing_counts(self, snapshots: Sequence[Snapshot]) -> np.ndarray:
        if not snapshots:
            return np.zeros((0, 0), dtype=np.int32)
        counts = np.zeros(snapshots[0].v.shape, dtype=np.int32)
        first = max(len(snapshots) // 3, 1)
        previous = snapshots[first - 1].v
        for snap in snapshots[first:]:
            counts += (snap.v >= self.threshold) & (previous < self.threshold)
            previous = snap.v
        return counts

    def detect(self, snapshots: Sequence[Snapshot]) -> DetectionResult:
        if len(snapshots) < max(self.min_snapshots, 2):
            return DetectionResult()
        flagged = self.crossing_counts(snapshots) >= self.min_crossings
        return DetectionResult(
            detected=bool(flagged.any()),
            locations=_subsample(flagged, self.stride, self.max_locations),
        )


@dataclass(frozen=True)
class BlockDetector:
    """Flag sharp jumps in the activation-time map.

    For interior cells that activated, the central differences of the
    activation time along rows and columns are compared with
    ``gradient_threshold``. Only every ``stride``-th row and column is
    reported (at most ``max_locations``), and block counts as detected only
    when at least one location survives that subsampling.
    """

    gradient_threshold: float = BLOCK_GRADIENT_THRESHOLD
    stride: int = BLOCK_STRIDE
    max_locations: int = BLOCK_MAX_LOCATIONS
    min_snapshots: int = BLOCK_MIN_SNAPSHOTS

    def gradient_mask(self, activation_times: np.ndarray) -> np.ndarray:
        at = np.asarray(activation_times, dtype=float)
        mask = np.zeros(at.shape, dtype=bool)
        if at.ndim != 2 or at.shape[0] < 3 or at.shape[1] < 3:
            return mask
        interior = at[1:-1, 1:-1]
        horizontal = np.abs(at[1:-1, 2:] - at[1:-1, :-2])
        vertical = np.abs(at[2:, 1:-1] - at[:-2, 1:-1])
        mask[1:-1, 1:-1] = (interior > 0) & (
            (horizontal > self.gradient_threshold) | (vertical > self.gradient_threshold)
        )
        return mask

    def detect(self, activation_times: np.ndarray, snapshot_count: int) -> DetectionResult:
        if snapshot_count < self.min_snapshots:
            return DetectionResult()
        locations = _subsample(
            self.gradient_mask(activation_times), self.stride, self.max_locations
        )
        return DetectionResult(detected=len(locations) > 0, locations=locations)
