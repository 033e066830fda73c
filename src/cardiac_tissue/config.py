from __future__ import annotations
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np

from .cell import (
    CellModelKind, MitchellSchaefferParams, ModelParameters,
    parameter_names, validate_parameters,
)
from .constants import (
    ACTIVATION_THRESHOLD, CANCEL_CHECK_EVERY, DIFFUSION, DIVERGENCE_LIMIT, DX,
    FHN_ACTIVATION_THRESHOLD, GRID_SIZE, LONG_RUN_DURATION, LONG_RUN_MIN_DT,
    SPARSE_BOOKKEEPING_DURATION, STABILITY_LIMIT, TAU_CLOSE,
)
from .detect import BlockDetector, ReentryDetector
from .errors import ConfigurationError

if TYPE_CHECKING:
    from .stimulus import StimulusProtocol


@dataclass(frozen=True)
class TissueDimensions:
    rows: int = GRID_SIZE
    cols: int = GRID_SIZE
    diffusion: float = DIFFUSION
    dx: float = DX

    def stability_ratio(self, dt: float) -> float:
        """``D * dt / dx**2``; explicit Euler needs this at or below 1/4."""
        return self.diffusion * dt / (self.dx * self.dx)


@dataclass(frozen=True)
class StimulusSpec:
    """Rectangular stimulus placed at ``(row, col)``.

    ``height=None`` extends the rectangle to the bottom edge of the grid.
    """

    row: int = 0
    col: int = 0
    width: int = 5
    height: Optional[int] = 5
    amplitude: float = 1.0
    start: float = 1.0
    duration: float = 1.0

    def active(self, t: float) -> bool:
        return self.start <= t < self.start + self.duration


class FibrosisPattern(str, Enum):
    NONE = "none"
    DIFFUSE = "diffuse"
    COMPACT = "compact"
    PATCHY = "patchy"


@dataclass(frozen=True)
class FibrosisSpec:
    pattern: FibrosisPattern = FibrosisPattern.NONE
    density: float = 0.0
    seed: int = 1

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "pattern", FibrosisPattern(self.pattern))
        except ValueError:
            raise ConfigurationError(
                f"Unknown fibrosis pattern {self.pattern!r}; expected one of "
                f"{[p.value for p in FibrosisPattern]}"
            ) from None


@dataclass(frozen=True)
class ObstacleSpec:
    """Permanently inert disc of cells."""

    enabled: bool = False
    center_row: int = 0
    center_col: int = 0
    radius: float = 10.0


@dataclass(frozen=True)
class GradientSpec:
    """Linear left-to-right gradient of one model constant."""

    enabled: bool = False
    parameter: str = "tau_close"
    left: float = TAU_CLOSE
    right: float = TAU_CLOSE

    def column_values(self, cols: int) -> np.ndarray:
        if cols == 1:
            return np.array([self.left], dtype=float)
        position = np.arange(cols, dtype=float) / (cols - 1)
        return self.left + position * (self.right - self.left)


@dataclass(frozen=True)
class FeatureConfig:
    """Bookkeeping thresholds and detector settings.

    ``activation_threshold=None`` picks the model default.
    ``apd_every_cycle=False`` measures only the first activation/recovery
    cycle of each cell.
    """

    activation_threshold: Optional[float] = None
    apd_every_cycle: bool = False
    reentry: ReentryDetector = field(default_factory=ReentryDetector)
    block: BlockDetector = field(default_factory=BlockDetector)

    def threshold_for(self, params: ModelParameters) -> float:
        if self.activation_threshold is not None:
            return float(self.activation_threshold)
        if params.kind is CellModelKind.FITZHUGH_NAGUMO:
            return FHN_ACTIVATION_THRESHOLD
        return ACTIVATION_THRESHOLD


@dataclass(frozen=True)
class SimulationConfig:
    """Everything a tissue run depends on.

    The run is a pure function of this value: equal configurations (seed
    included) produce bit-identical results.
    """

    model: ModelParameters = field(default_factory=MitchellSchaefferParams)
    tissue: TissueDimensions = field(default_factory=TissueDimensions)
    stimuli: Tuple["StimulusProtocol", ...] = ()
    fibrosis: FibrosisSpec = field(default_factory=FibrosisSpec)
    obstacle: ObstacleSpec = field(default_factory=ObstacleSpec)
    gradient: GradientSpec = field(default_factory=GradientSpec)
    features: FeatureConfig = field(default_factory=FeatureConfig)
    duration: float = 100.0
    save_interval: float = 1.0

    # Long runs: raise dt and thin bookkeeping (see ``effective_dt``).
    performance_policy: bool = True
    divergence_limit: float = DIVERGENCE_LIMIT
    cancel_check_every: int = CANCEL_CHECK_EVERY

    # ------------------------------------------------------------------
    # Derived run schedule
    # ------------------------------------------------------------------

    def effective_dt(self) -> float:
        """Time step actually used; long runs use at least ``LONG_RUN_MIN_DT``."""
        dt = float(self.model.dt)
        if self.performance_policy and self.duration > LONG_RUN_DURATION:
            return max(dt, LONG_RUN_MIN_DT)
        return dt

    def num_steps(self, dt: float) -> int:
        return int(math.floor(self.duration / dt + 1e-9))

    def save_every(self, dt: float) -> int:
        return max(1, int(round(self.save_interval / dt)))

    def bookkeeping_stride(self, dt: float) -> int:
        """Steps between activation/APD updates."""
        if self.performance_policy and self.duration > SPARSE_BOOKKEEPING_DURATION:
            return max(1, self.save_every(dt) // 2)
        return 1

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` for any unusable setting."""
        validate_parameters(self.model)
        t = self.tissue
        for name in ("rows", "cols"):
            value = getattr(t, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if not t.dx > 0:
            raise ConfigurationError(f"dx must be positive, got {t.dx}")
        if not t.diffusion >= 0:
            raise ConfigurationError(f"diffusion must be non-negative, got {t.diffusion}")
        if not self.duration > 0:
            raise ConfigurationError(f"duration must be positive, got {self.duration}")
        if not self.save_interval > 0:
            raise ConfigurationError(f"save_interval must be positive, got {self.save_interval}")
        if self.cancel_check_every < 1:
            raise ConfigurationError("cancel_check_every must be at least 1")
        if not 0.0 <= self.fibrosis.density <= 1.0:
            raise ConfigurationError(
                f"fibrosis density must lie in [0, 1], got {self.fibrosis.density}"
            )
        if self.obstacle.enabled and self.obstacle.radius < 0:
            raise ConfigurationError("obstacle radius must be non-negative")
        if self.gradient.enabled and self.gradient.parameter not in parameter_names(self.model):
            raise ConfigurationError(
                f"gradient parameter {self.gradient.parameter!r} is not a "
                f"{self.model.kind.value} constant"
            )
        for protocol in self.stimuli:
            for spec in protocol.specs():
                if spec.width <= 0 or (spec.height is not None and spec.height <= 0):
                    raise ConfigurationError(f"stimulus rectangle must be non-empty: {spec}")
                if spec.duration < 0:
                    raise ConfigurationError(f"stimulus duration must be non-negative: {spec}")

        dt = self.effective_dt()
        ratio = t.stability_ratio(dt)
        if ratio > STABILITY_LIMIT:
            raise ConfigurationError(
                f"D*dt/dx^2 = {ratio:.4f} exceeds the explicit Euler bound "
                f"{STABILITY_LIMIT}; reduce dt or D, or increase dx"
            )
