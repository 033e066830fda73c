from __future__ import annotations
from dataclasses import dataclass

import numpy as np

from .cell import ModelParameters, resting_state
from .errors import ConfigurationError


@dataclass(frozen=True)
class Snapshot:
    """Read-only copy of the tissue state at one saved instant."""

    v: np.ndarray
    gate: np.ndarray
    time: float

    @classmethod
    def capture(cls, v: np.ndarray, gate: np.ndarray, time: float) -> "Snapshot":
        v_copy = np.array(v, dtype=float, copy=True)
        gate_copy = np.array(gate, dtype=float, copy=True)
        v_copy.setflags(write=False)
        gate_copy.setflags(write=False)
        return cls(v=v_copy, gate=gate_copy, time=float(time))


class TissueGrid:
    """Mutable ``v``/``gate`` fields plus the simulation clock.

    Owned by a single run; callers only ever see :class:`Snapshot` copies.
    """

    def __init__(self, v: np.ndarray, gate: np.ndarray, dt: float) -> None:
        if v.shape != gate.shape or v.ndim != 2:
            raise ValueError("v and gate must be 2-D arrays of the same shape.")
        self.v = v
        self.gate = gate
        self.dt = float(dt)
        self.step_count = 0

    @property
    def shape(self):
        return self.v.shape

    @property
    def rows(self) -> int:
        return int(self.v.shape[0])

    @property
    def cols(self) -> int:
        return int(self.v.shape[1])

    @property
    def time(self) -> float:
        return self.step_count * self.dt

    def advance_clock(self) -> None:
        self.step_count += 1

    def force_inert(self, mask: np.ndarray) -> None:
        """Pin masked cells to ``v = gate = 0``."""
        self.v[mask] = 0.0
        self.gate[mask] = 0.0

    def snapshot(self) -> Snapshot:
        return Snapshot.capture(self.v, self.gate, self.time)


def initialize_grid(rows: int, cols: int, params: ModelParameters) -> TissueGrid:
    """Return a ``rows x cols`` grid with every cell at the model's rest state."""
    if not (rows > 0 and cols > 0):
        raise ConfigurationError("Grid rows and cols must be positive integers.")
    v_rest, gate_rest = resting_state(params)
    v = np.full((rows, cols), v_rest, dtype=float)
    gate = np.full((rows, cols), gate_rest, dtype=float)
    return TissueGrid(v, gate, params.dt)


def circular_mask(
    rows: int, cols: int, center_row: float, center_col: float, radius: float
) -> np.ndarray:
    """Boolean disc of cells within ``radius`` of the centre (inclusive)."""
    y, x = np.ogrid[:rows, :cols]
    return (y - center_row) ** 2 + (x - center_col) ** 2 <= radius ** 2
