from __future__ import annotations
from typing import Tuple

import numpy as np
from scipy.signal import convolve2d

#: Five-point neighbour stencil; the centre is excluded.
NEIGHBOR_STENCIL = np.array(
    [[0.0, 1.0, 0.0],
     [1.0, 0.0, 1.0],
     [0.0, 1.0, 0.0]],
    dtype=float,
)


def no_flux_laplacian(v: np.ndarray) -> np.ndarray:
    """Return the discrete Laplacian of ``v`` with no-flux boundaries.

    At each cell this is ``sum(neighbour - centre)`` over the neighbours that
    exist: four in the interior, three on an edge, two in a corner. Nothing is
    mirrored or wrapped across the boundary. Divide by ``dx**2`` for physical
    units.

    Parameters
    ----------
    v : np.ndarray
        2-D field.

    Returns
    -------
    np.ndarray
        Array with the same shape as ``v``.
    """
    return LaplacianStencil(v.shape).apply(v)


class LaplacianStencil:
    """No-flux five-point Laplacian for a fixed grid shape.

    The neighbour count of every cell is computed once; each call then costs
    one zero-padded convolution.
    """

    def __init__(self, shape: Tuple[int, int]) -> None:
        self.shape = tuple(shape)
        self.neighbor_count = convolve2d(
            np.ones(self.shape, dtype=float),
            NEIGHBOR_STENCIL,
            mode="same",
            boundary="fill",
            fillvalue=0.0,
        )

    def apply(self, v: np.ndarray) -> np.ndarray:
        if v.shape != self.shape:
            raise ValueError(f"Expected shape {self.shape}, got {v.shape}.")
        neighbor_sum = convolve2d(
            v, NEIGHBOR_STENCIL, mode="same", boundary="fill", fillvalue=0.0
        )
        return neighbor_sum - self.neighbor_count * v
