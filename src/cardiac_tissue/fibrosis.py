"""Seeded fibrosis masks.

Masks are generated from an explicit integer seed with a Park-Miller linear
congruential generator, so a given ``(shape, pattern, density, seed)`` always
produces the same mask on every platform. Draws are consumed in row-major
order, and for the region patterns only cells inside a region draw a fill
decision.
"""

from __future__ import annotations
import logging
import math
from typing import Union

import numpy as np

from .config import FibrosisPattern, FibrosisSpec
from .constants import (
    COMPACT_FILL, COMPACT_RADIUS, COMPACT_REGIONS_PER_DENSITY,
    LCG_MODULUS, LCG_MULTIPLIER,
    PATCHY_FILL, PATCHY_RADIUS, PATCHY_REGIONS_PER_DENSITY,
)
from .errors import ConfigurationError
from .grid import circular_mask

logger = logging.getLogger(__name__)


class SeededRandom:
    """Park-Miller minimal standard generator.

    Parameters
    ----------
    seed : int
        Any integer. It is reduced modulo ``2**31 - 1`` (keeping its sign) and
        shifted into ``[1, 2**31 - 2]``.
    """

    def __init__(self, seed: int) -> None:
        seed = int(seed)
        state = abs(seed) % LCG_MODULUS
        if seed < 0:
            state = -state
        if state <= 0:
            state += LCG_MODULUS - 1
        self.state = state

    def next(self) -> float:
        """Uniform float in ``(0, 1)``."""
        self.state = (self.state * LCG_MULTIPLIER) % LCG_MODULUS
        return self.state / LCG_MODULUS

    def next_int(self, low: int, high: int) -> int:
        """Uniform integer in ``[low, high]``."""
        return int(math.floor(self.next() * (high - low + 1))) + low

    def draws(self, n: int) -> np.ndarray:
        out = np.empty(n, dtype=float)
        for i in range(n):
            out[i] = self.next()
        return out


def _fill_regions(
    mask: np.ndarray,
    rng: SeededRandom,
    count: int,
    radius_range: tuple,
    fill: float,
) -> None:
    rows, cols = mask.shape
    for _ in range(count):
        center_row = rng.next_int(0, rows - 1)
        center_col = rng.next_int(0, cols - 1)
        radius = rng.next_int(*radius_range)
        inside = circular_mask(rows, cols, center_row, center_col, radius)
        idx_r, idx_c = np.nonzero(inside)
        hits = rng.draws(idx_r.size) < fill
        mask[idx_r[hits], idx_c[hits]] = True


def generate_fibrosis_mask(
    rows: int,
    cols: int,
    pattern: Union[FibrosisPattern, str],
    density: float,
    seed: int,
) -> np.ndarray:
    """Return a boolean ``rows x cols`` mask of fibrotic cells.

    Patterns
    --------
    ``none``
        No fibrosis.
    ``diffuse``
        Each cell is fibrotic with probability ``density``.
    ``compact``
        ``ceil(3 * density)`` discs of radius 20-40, filled with probability 0.9.
    ``patchy``
        ``ceil(30 * density)`` discs of radius 3-12, filled with probability 0.7.
    """
    try:
        pattern = FibrosisPattern(pattern)
    except ValueError:
        raise ConfigurationError(f"Unknown fibrosis pattern {pattern!r}") from None
    if not 0.0 <= density <= 1.0:
        raise ConfigurationError(f"fibrosis density must lie in [0, 1], got {density}")

    mask = np.zeros((rows, cols), dtype=bool)
    if pattern is FibrosisPattern.NONE or density == 0.0:
        return mask

    rng = SeededRandom(seed)
    if pattern is FibrosisPattern.DIFFUSE:
        mask[:] = (rng.draws(rows * cols) < density).reshape(rows, cols)
    elif pattern is FibrosisPattern.COMPACT:
        count = math.ceil(COMPACT_REGIONS_PER_DENSITY * density)
        _fill_regions(mask, rng, count, COMPACT_RADIUS, COMPACT_FILL)
    elif pattern is FibrosisPattern.PATCHY:
        count = math.ceil(PATCHY_REGIONS_PER_DENSITY * density)
        _fill_regions(mask, rng, count, PATCHY_RADIUS, PATCHY_FILL)

    logger.debug(
        "Generated %s fibrosis (density=%.3f, seed=%d): %d fibrotic cells",
        pattern.value, density, seed, int(mask.sum()),
    )
    return mask


def fibrosis_mask_for(spec: FibrosisSpec, rows: int, cols: int) -> np.ndarray:
    return generate_fibrosis_mask(rows, cols, spec.pattern, spec.density, spec.seed)
