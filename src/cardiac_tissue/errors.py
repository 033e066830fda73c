from __future__ import annotations
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .simulation import Results


class SimulationError(Exception):
    """Base class for errors raised by the simulation core."""


class ConfigurationError(SimulationError, ValueError):
    """Raised before the time loop starts when a run cannot be configured."""


class NumericalInstabilityError(SimulationError):
    """The explicit integration diverged.

    Raised from inside the time loop when the voltage field stops being
    finite (or grows past the divergence limit). The snapshots saved before
    the failure are attached as ``partial_results``, marked as failed.
    """

    def __init__(
        self,
        message: str,
        step: int,
        time: float,
        partial_results: Optional["Results"] = None,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.time = time
        self.partial_results = partial_results
