from __future__ import annotations
from typing import Optional

import numpy as np

from .constants import UNSET


class ActivationTracker:
    """Track local activation time and upstroke counts.

    The activation time of a cell is the simulation time of the first update
    at which ``v > threshold``; it is recorded once and stays ``UNSET`` (-1)
    otherwise. Every rest-to-active transition across the same threshold is
    also counted, which is how repeated activations are spotted.

    Parameters
    ----------
    height : int
        Grid height.
    width : int
        Grid width.
    threshold : float
        Upstroke threshold on ``v``.
    """

    def __init__(self, height: int, width: int, threshold: float):
        self.threshold = float(threshold)
        self.activation_times = np.full((height, width), UNSET, dtype=float)
        self.activation_counts = np.zeros((height, width), dtype=np.int32)
        self._above = np.zeros((height, width), dtype=bool)

    def update(
        self, v: np.ndarray, time: float, excitable: Optional[np.ndarray] = None
    ) -> None:
        """Record upstrokes for the current state.

        Parameters
        ----------
        v : np.ndarray
            Voltage field after the step.
        time : float
            Simulation time of ``v``.
        excitable : np.ndarray, optional
            Cells to track; inert cells are ignored.
        """
        above = v > self.threshold
        if excitable is not None:
            above &= excitable
        upstroke = above & ~self._above
        self.activation_counts[upstroke] += 1
        first = upstroke & (self.activation_times < 0)
        self.activation_times[first] = time
        self._above = above

    def activated(self) -> np.ndarray:
        return self.activation_times >= 0

    def lat_map(self) -> np.ndarray:
        """Activation times with ``np.nan`` for cells that never activated."""
        lat = self.activation_times.copy()
        lat[lat < 0] = np.nan
        return lat
