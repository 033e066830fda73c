from __future__ import annotations
from typing import Dict, Optional

import numpy as np

from .cell import ModelParameters, is_clamped, reaction, voltage_bounds
from .config import GradientSpec, TissueDimensions
from .constants import DIVERGENCE_LIMIT
from .grid import TissueGrid
from .kernel import LaplacianStencil


class TissueStepper:
    """Advances a :class:`TissueGrid` by one reaction-diffusion step.

    The update is explicit forward Euler::

        v    <- v + dt * (D * Lap(v) / dx**2 + f(v, gate))
        gate <- gate + dt * g(v, gate)

    where ``Lap`` is the no-flux five-point Laplacian and ``f``/``g`` come from
    the cell model selected by ``params``. The gated model is clamped to
    ``[0, 1]`` afterwards. Inert cells (fibrosis, obstacle) are pinned to zero
    before the Laplacian is taken, so a stimulus that wrote into them cannot
    drive their neighbours, and again after the update.

    Explicit Euler is stable only for ``D * dt / dx**2 <= 1/4``;
    :meth:`SimulationConfig.validate` rejects anything above that.

    Parameters
    ----------
    params : ModelParameters
        Cell model parameters, including ``dt``.
    dimensions : TissueDimensions
        Grid size, diffusion coefficient and spatial step.
    gradient : GradientSpec, optional
        Left-to-right gradient of one model constant.
    inert_mask : np.ndarray, optional
        Boolean mask of non-excitable cells.
    """

    def __init__(
        self,
        params: ModelParameters,
        dimensions: TissueDimensions,
        gradient: Optional[GradientSpec] = None,
        inert_mask: Optional[np.ndarray] = None,
    ) -> None:
        self.params = params
        self.dimensions = dimensions
        self.dt = float(params.dt)
        self.coupling = dimensions.diffusion / (dimensions.dx * dimensions.dx)
        self.stencil = LaplacianStencil((dimensions.rows, dimensions.cols))
        self.bounds = voltage_bounds(params)
        self.clamp = is_clamped(params)
        self.inert_mask = (
            inert_mask if inert_mask is not None and inert_mask.any() else None
        )
        self.overrides: Optional[Dict[str, np.ndarray]] = None
        if gradient is not None and gradient.enabled:
            column_values = gradient.column_values(dimensions.cols)
            self.overrides = {gradient.parameter: column_values[np.newaxis, :]}

    def step(self, grid: TissueGrid) -> None:
        """Advance ``grid`` in place by ``dt``."""
        if self.inert_mask is not None:
            grid.force_inert(self.inert_mask)
        v, gate = grid.v, grid.gate
        laplacian = self.stencil.apply(v)
        dv, dgate = reaction(self.params, v, gate, 0.0, self.overrides)

        v_next = v + self.dt * (self.coupling * laplacian + dv)
        gate_next = gate + self.dt * dgate
        if self.clamp:
            np.clip(v_next, 0.0, 1.0, out=v_next)
            np.clip(gate_next, 0.0, 1.0, out=gate_next)

        grid.v[...] = v_next
        grid.gate[...] = gate_next
        if self.inert_mask is not None:
            grid.force_inert(self.inert_mask)
        grid.advance_clock()

    @staticmethod
    def diverged(grid: TissueGrid, limit: float = DIVERGENCE_LIMIT) -> bool:
        """``True`` if ``v`` is non-finite or beyond ``limit`` anywhere."""
        v = grid.v
        if not np.isfinite(v).all():
            return True
        return bool(np.abs(v).max() > limit)
