"""Stimulus protocols that write voltage increments into a tissue grid.

Every protocol must be applied exactly once per simulation step, before the
reaction-diffusion update. Applying it twice in the same step stimulates
twice.
"""

from __future__ import annotations
import math
from dataclasses import replace
from typing import Optional, Tuple

import numpy as np

from .config import StimulusSpec
from .grid import TissueGrid


class StimulusProtocol:
    """Interface for anything the orchestrator calls once per step."""

    def apply(self, grid: TissueGrid, t: float, bounds: Tuple[float, float]) -> bool:
        """Stimulate ``grid`` for time ``t``; return ``True`` if anything was added."""
        raise NotImplementedError

    def specs(self) -> Tuple[StimulusSpec, ...]:
        raise NotImplementedError


class RectangularStimulus(StimulusProtocol):
    """Adds ``spec.amplitude`` to ``v`` inside a rectangle during its window.

    The rectangle is clipped to the grid. With ``skip_inexcitable`` the
    increment is not applied where ``gate == 0``. The result is clamped to
    ``bounds``.
    """

    def __init__(self, spec: StimulusSpec, skip_inexcitable: bool = False) -> None:
        self.spec = spec
        self.skip_inexcitable = skip_inexcitable

    def _window(self, grid: TissueGrid) -> Tuple[slice, slice]:
        s = self.spec
        height = grid.rows if s.height is None else s.height
        r0, c0 = max(0, s.row), max(0, s.col)
        r1 = min(grid.rows, s.row + height)
        c1 = min(grid.cols, s.col + s.width)
        return slice(r0, max(r0, r1)), slice(c0, max(c0, c1))

    def apply(self, grid: TissueGrid, t: float, bounds: Tuple[float, float]) -> bool:
        if not self.spec.active(t):
            return False
        rows, cols = self._window(grid)
        region = grid.v[rows, cols]
        if region.size == 0:
            return False
        if self.skip_inexcitable:
            excitable = grid.gate[rows, cols] != 0.0
            region[excitable] += self.spec.amplitude
        else:
            region += self.spec.amplitude
        lo, hi = bounds
        if math.isfinite(lo) or math.isfinite(hi):
            np.clip(region, lo, hi, out=region)
        return True

    def specs(self) -> Tuple[StimulusSpec, ...]:
        return (self.spec,)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.spec!r}, skip_inexcitable={self.skip_inexcitable})"


class PlanarWave(RectangularStimulus):
    """Full-height strip of ``width`` columns at the left edge."""

    def __init__(
        self,
        start: float = 1.0,
        duration: float = 1.0,
        width: int = 5,
        amplitude: float = 1.0,
    ) -> None:
        super().__init__(
            StimulusSpec(
                row=0, col=0, width=width, height=None,
                amplitude=amplitude, start=start, duration=duration,
            )
        )


class PairedProtocol(StimulusProtocol):
    """S1-S2 protocol: two independent rectangles, S2 optional.

    Both stimuli skip non-excitable cells (``gate == 0``) so fibrotic tissue
    and obstacles are never driven.
    """

    def __init__(self, s1: StimulusSpec, s2: Optional[StimulusSpec] = None) -> None:
        self.s1 = RectangularStimulus(s1, skip_inexcitable=True)
        self.s2 = None if s2 is None else RectangularStimulus(s2, skip_inexcitable=True)

    @classmethod
    def with_coupling_interval(
        cls, s1: StimulusSpec, s2: StimulusSpec, coupling_interval: float
    ) -> "PairedProtocol":
        """Place S2 ``coupling_interval`` after the start of S1."""
        return cls(s1, replace(s2, start=s1.start + coupling_interval))

    @property
    def coupling_interval(self) -> Optional[float]:
        if self.s2 is None:
            return None
        return self.s2.spec.start - self.s1.spec.start

    def apply(self, grid: TissueGrid, t: float, bounds: Tuple[float, float]) -> bool:
        applied = self.s1.apply(grid, t, bounds)
        if self.s2 is not None:
            applied = self.s2.apply(grid, t, bounds) or applied
        return applied

    def specs(self) -> Tuple[StimulusSpec, ...]:
        if self.s2 is None:
            return (self.s1.spec,)
        return (self.s1.spec, self.s2.spec)

    def __repr__(self) -> str:
        s2 = None if self.s2 is None else self.s2.spec
        return f"PairedProtocol(s1={self.s1.spec!r}, s2={s2!r})"


class ConductionBlock(RectangularStimulus):
    """Holds ``v`` at ``level`` inside a rectangle during its window.

    A band of clamped cells crossing a conduction path stops every wave that
    reaches it while the window is open. For the gated model the clamped
    cells sit below the gate threshold, so they recover meanwhile and conduct
    normally once released.
    """

    def __init__(self, spec: StimulusSpec, level: float = 0.0) -> None:
        super().__init__(spec)
        self.level = level

    def apply(self, grid: TissueGrid, t: float, bounds: Tuple[float, float]) -> bool:
        if not self.spec.active(t):
            return False
        rows, cols = self._window(grid)
        region = grid.v[rows, cols]
        if region.size == 0:
            return False
        region[...] = min(max(self.level, bounds[0]), bounds[1])
        return True

    def __repr__(self) -> str:
        return f"ConductionBlock({self.spec!r}, level={self.level})"
