from __future__ import annotations
from typing import Optional

import numpy as np

from .constants import UNSET

#: Per-cell APD states.
RESTING = 0
ACTIVATED = 1
RECOVERED = 2


class APDTracker:
    """Per-cell action potential duration, RESTING -> ACTIVATED -> RECOVERED.

    A resting cell becomes ACTIVATED when ``v`` rises above ``threshold``; the
    APD is the time from that activation until ``v`` next falls below the
    threshold. By default a recovered cell stays RECOVERED, so only the first
    cycle of the run is measured. With ``every_cycle=True`` it returns to
    RESTING and the map holds the most recent complete cycle instead.

    Call :meth:`update` after each (tracked) step; read :attr:`apd` at the end.
    """

    def __init__(self, height: int, width: int, threshold: float, every_cycle: bool = False):
        self.threshold = float(threshold)
        self.every_cycle = every_cycle
        self.state = np.full((height, width), RESTING, dtype=np.int8)
        self.apd = np.full((height, width), UNSET, dtype=float)
        self._start = np.full((height, width), UNSET, dtype=float)

    def update(
        self, v: np.ndarray, time: float, excitable: Optional[np.ndarray] = None
    ) -> None:
        tracked = np.ones(v.shape, dtype=bool) if excitable is None else excitable

        starts = (self.state == RESTING) & (v > self.threshold) & tracked
        self.state[starts] = ACTIVATED
        self._start[starts] = time

        finishes = (self.state == ACTIVATED) & (v < self.threshold) & tracked
        if np.any(finishes):
            self.apd[finishes] = time - self._start[finishes]
            if self.every_cycle:
                self.state[finishes] = RESTING
                self._start[finishes] = UNSET
            else:
                self.state[finishes] = RECOVERED

    def durations(self) -> np.ndarray:
        """Flat array of the measured APDs."""
        return self.apd[self.apd >= 0].copy()
