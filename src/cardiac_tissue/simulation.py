from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from .apd import APDTracker
from .cell import CellTrace
from .config import SimulationConfig
from .constants import LONG_RUN_DURATION, MIN_LONG_RUN_SAVE_INTERVAL
from .detect import DetectionResult
from .errors import NumericalInstabilityError
from .fibrosis import fibrosis_mask_for
from .grid import Snapshot, circular_mask, initialize_grid
from .lat import ActivationTracker
from .progress import ProgressReporter, ProgressSink
from .stepper import TissueStepper

logger = logging.getLogger(__name__)

StopPredicate = Callable[[], bool]


class RunStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


def _frozen(array: np.ndarray) -> np.ndarray:
    out = np.array(array, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class Results:
    """Outcome of a tissue run.

    Only a ``completed`` run has detector results; ``cancelled`` and
    ``failed`` runs keep whatever was saved before they stopped and report
    ``complete == False``.
    """

    snapshots: Tuple[Snapshot, ...]
    activation_times: np.ndarray
    apd: np.ndarray
    activation_counts: np.ndarray
    inert_mask: np.ndarray
    reentry: DetectionResult
    block: DetectionResult
    status: RunStatus
    dt: float
    bookkeeping_stride: int

    @property
    def complete(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def reentry_detected(self) -> bool:
        return self.reentry.detected

    @property
    def block_detected(self) -> bool:
        return self.block.detected

    def times(self) -> np.ndarray:
        return np.array([s.time for s in self.snapshots], dtype=float)

    def trace_at(self, row: int, col: int) -> CellTrace:
        """Time series of one cell sampled at the saved snapshots."""
        return CellTrace(
            time=self.times(),
            v=np.array([s.v[row, col] for s in self.snapshots], dtype=float),
            gate=np.array([s.gate[row, col] for s in self.snapshots], dtype=float),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested lists/dicts, e.g. for sending across a process boundary."""
        return {
            "status": self.status.value,
            "dt": self.dt,
            "bookkeeping_stride": self.bookkeeping_stride,
            "snapshots": [
                {"v": s.v.tolist(), "gate": s.gate.tolist(), "time": s.time}
                for s in self.snapshots
            ],
            "activation_times": self.activation_times.tolist(),
            "apd": self.apd.tolist(),
            "activation_counts": self.activation_counts.tolist(),
            "inert_mask": self.inert_mask.tolist(),
            "reentry_detected": self.reentry.detected,
            "reentry_locations": [list(loc) for loc in self.reentry.locations],
            "block_detected": self.block.detected,
            "block_locations": [list(loc) for loc in self.block.locations],
        }


class TissueSimulation:
    """Drives one tissue run from a validated :class:`SimulationConfig`.

    Construction validates the configuration, applies the long-run policy,
    builds the resting grid and the inert (obstacle + fibrosis) mask. Each
    instance owns its own grid and trackers; call :meth:`run` once.
    """

    def __init__(self, config: SimulationConfig) -> None:
        config.validate()
        self.config = config

        self.dt = config.effective_dt()
        if self.dt != config.model.dt:
            logger.info(
                "Long run (duration=%g): dt raised from %g to %g",
                config.duration, config.model.dt, self.dt,
            )
        if config.duration > LONG_RUN_DURATION and config.save_interval < MIN_LONG_RUN_SAVE_INTERVAL:
            logger.warning(
                "Long run with save_interval=%g keeps many snapshots in memory",
                config.save_interval,
            )
        self.params = replace(config.model, dt=self.dt)
        self.num_steps = config.num_steps(self.dt)
        self.save_every = config.save_every(self.dt)
        self.stride = config.bookkeeping_stride(self.dt)
        if self.stride > 1:
            logger.info("Activation/APD bookkeeping every %d steps", self.stride)

        rows, cols = config.tissue.rows, config.tissue.cols
        self.grid = initialize_grid(rows, cols, self.params)

        inert = np.zeros((rows, cols), dtype=bool)
        obstacle = config.obstacle
        if obstacle.enabled:
            inert |= circular_mask(
                rows, cols, obstacle.center_row, obstacle.center_col, obstacle.radius
            )
        self.fibrosis_mask = fibrosis_mask_for(config.fibrosis, rows, cols)
        inert |= self.fibrosis_mask
        self.inert_mask = inert
        self.excitable = ~inert
        self.grid.force_inert(inert)

        self.stepper = TissueStepper(
            self.params, config.tissue, config.gradient, inert_mask=inert
        )
        threshold = config.features.threshold_for(self.params)
        self.activation = ActivationTracker(rows, cols, threshold)
        self.apd = APDTracker(
            rows, cols, threshold, every_cycle=config.features.apd_every_cycle
        )
        self.snapshots: List[Snapshot] = [self.grid.snapshot()]
        self._ran = False

    def run(
        self,
        progress: Optional[ProgressSink] = None,
        should_stop: Optional[StopPredicate] = None,
    ) -> Results:
        """Run the time loop.

        Parameters
        ----------
        progress : callable, optional
            Receives integer percentages, strictly increasing, ending with a
            single 100 on success.
        should_stop : callable, optional
            Polled every ``config.cancel_check_every`` steps; returning ``True``
            ends the run with status ``cancelled``.

        Raises
        ------
        NumericalInstabilityError
            If the voltage diverges; the exception carries partial results.
        """
        if self._ran:
            raise RuntimeError("TissueSimulation.run() may only be called once.")
        self._ran = True

        cfg = self.config
        grid, stepper = self.grid, self.stepper
        reporter = ProgressReporter(self.num_steps, progress)
        check_every = cfg.cancel_check_every
        logger.info(
            "Starting %s tissue run: %dx%d, %d steps (dt=%g), saving every %d steps",
            self.params.kind.value, grid.rows, grid.cols,
            self.num_steps, self.dt, self.save_every,
        )

        for step in range(self.num_steps):
            if should_stop is not None and step % check_every == 0 and should_stop():
                logger.info("Run cancelled at step %d (t=%g)", step, grid.time)
                return self._results(RunStatus.CANCELLED)
            reporter.update(step)

            t = step * self.dt
            for protocol in cfg.stimuli:
                protocol.apply(grid, t, stepper.bounds)
            stepper.step(grid)

            if stepper.diverged(grid, cfg.divergence_limit):
                raise NumericalInstabilityError(
                    f"Voltage diverged at step {step + 1} (t={grid.time:g}); "
                    f"D*dt/dx^2={cfg.tissue.stability_ratio(self.dt):.4f}",
                    step=step + 1,
                    time=grid.time,
                    partial_results=self._results(RunStatus.FAILED),
                )

            if step % self.stride == 0:
                self.activation.update(grid.v, grid.time, self.excitable)
                self.apd.update(grid.v, grid.time, self.excitable)

            if (step + 1) % self.save_every == 0 or step == self.num_steps - 1:
                self.snapshots.append(grid.snapshot())

        results = self._results(RunStatus.COMPLETED)
        reporter.finish()
        logger.info(
            "Run complete: %d snapshots, reentry=%s, block=%s",
            len(results.snapshots), results.reentry_detected, results.block_detected,
        )
        return results

    def _results(self, status: RunStatus) -> Results:
        snapshots = tuple(self.snapshots)
        reentry = block = DetectionResult()
        if status is RunStatus.COMPLETED:
            features = self.config.features
            reentry = features.reentry.detect(snapshots)
            block = features.block.detect(self.activation.activation_times, len(snapshots))
        return Results(
            snapshots=snapshots,
            activation_times=_frozen(self.activation.activation_times),
            apd=_frozen(self.apd.apd),
            activation_counts=_frozen(self.activation.activation_counts),
            inert_mask=_frozen(self.inert_mask),
            reentry=reentry,
            block=block,
            status=status,
            dt=self.dt,
            bookkeeping_stride=self.stride,
        )


def run_simulation(
    config: SimulationConfig,
    progress: Optional[ProgressSink] = None,
    should_stop: Optional[StopPredicate] = None,
) -> Results:
    """Validate ``config``, run it and return :class:`Results`."""
    return TissueSimulation(config).run(progress=progress, should_stop=should_stop)
