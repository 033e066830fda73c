from __future__ import annotations
import argparse
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from .cell import MitchellSchaefferParams
from .config import (
    FibrosisPattern, FibrosisSpec, ObstacleSpec, SimulationConfig, StimulusSpec,
    TissueDimensions,
)
from .progress import ProgressChannel
from .simulation import Results, TissueSimulation
from .stimulus import ConductionBlock, PairedProtocol, PlanarWave

#: Default S1-S2 coupling interval (time units after S1).
COUPLING_INTERVAL = 300.0
SCENARIOS = ("planar", "s1s2", "block", "reentry", "fibrosis")

#: Gate time constants for the reentry scenario. They shorten the refractory
#: period to about 40 time units, so the wavelength fits around the obstacle.
SHORT_REFRACTORY = {"tau_open": 20.0, "tau_close": 10.0}
#: How long the band next to S1 is held at rest in the reentry scenario.
BLOCK_DURATION = 35.0


def _s1(rows: int) -> StimulusSpec:
    return StimulusSpec(row=0, col=0, width=5, height=rows, amplitude=1.0, start=1.0, duration=2.0)


def _s2(rows: int, cols: int) -> StimulusSpec:
    size = max(1, rows // 5)
    return StimulusSpec(row=int(rows * 0.4), col=int(cols * 0.6), width=size, height=size, duration=2.0)


def _central_obstacle(rows: int, cols: int, divisor: int) -> ObstacleSpec:
    return ObstacleSpec(
        enabled=True, center_row=rows // 2, center_col=cols // 2,
        radius=float(min(rows, cols) // divisor),
    )


def _reentry(base: SimulationConfig) -> SimulationConfig:
    """Anatomical reentry around a central obstacle.

    S1 excites a bar below the obstacle while the band just right of it is
    clamped at rest, so the wave can only leave to the left. It travels round
    the obstacle and finds the band released and the S1 bar recovered.
    """
    rows, cols = base.tissue.rows, base.tissue.cols
    row, col = rows // 2, cols // 2
    s1 = StimulusSpec(row=row, col=col - 5, width=5, height=rows - row, start=1.0, duration=1.0)
    band = StimulusSpec(
        row=row, col=col, width=3, height=rows - row, start=0.0, duration=BLOCK_DURATION,
    )
    return replace(
        base,
        model=replace(base.model, **SHORT_REFRACTORY),
        stimuli=(ConductionBlock(band), PairedProtocol(s1)),
        obstacle=_central_obstacle(rows, cols, 4),
    )


def build_scenario(
    scenario: str = "planar",
    rows: int = 50,
    cols: int = 50,
    duration: float = 100.0,
    save_interval: float = 1.0,
    dt: float = 0.01,
    diffusion: float = 1.0,
    seed: int = 1,
    coupling_interval: Optional[float] = None,
) -> SimulationConfig:
    """Return a ready-to-run configuration for one of ``SCENARIOS``.

    ``planar``
        Left-edge strip on uniform tissue.
    ``s1s2``
        Left-edge S1 and an offset S2 patch ``coupling_interval`` later.
    ``block``
        Left-edge S1 meeting a central obstacle; the tissue behind it
        activates late, giving a line of conduction block.
    ``reentry``
        A wave circulating around a central obstacle (see :func:`_reentry`).
        Needs at least a 30x30 grid; run it for a few hundred time units
        to see repeated laps.
    ``fibrosis``
        Planar wave through seeded patchy fibrosis.
    """
    if scenario not in SCENARIOS:
        raise ValueError(f"Unknown scenario '{scenario}'. Choose from {SCENARIOS}.")
    base = SimulationConfig(
        model=MitchellSchaefferParams(dt=dt),
        tissue=TissueDimensions(rows=rows, cols=cols, diffusion=diffusion, dx=1.0),
        duration=duration,
        save_interval=save_interval,
    )
    if scenario == "planar":
        return replace(base, stimuli=(PlanarWave(start=1.0, duration=1.0, width=5),))
    if scenario == "fibrosis":
        return replace(
            base,
            stimuli=(PlanarWave(start=1.0, duration=1.0, width=5),),
            fibrosis=FibrosisSpec(pattern=FibrosisPattern.PATCHY, density=0.2, seed=seed),
        )
    if scenario == "block":
        return replace(
            base,
            stimuli=(PairedProtocol(_s1(rows)),),
            obstacle=_central_obstacle(rows, cols, 5),
        )
    if scenario == "reentry":
        return _reentry(base)
    interval = COUPLING_INTERVAL if coupling_interval is None else coupling_interval
    protocol = PairedProtocol.with_coupling_interval(_s1(rows), _s2(rows, cols), interval)
    return replace(base, stimuli=(protocol,))


class SimulationApp:
    """Runs one configuration, prints a summary and optionally saves plots."""

    def __init__(self, config: SimulationConfig) -> None:
        self.cfg = config
        self.progress = ProgressChannel()

    def _report_progress(self, percent: float) -> None:
        self.progress.publish(percent)
        if percent % 10 == 0:
            print(f"  progress: {percent:3d}%")

    def run(self, plots_dir: Optional[Path] = None) -> Results:
        tissue = self.cfg.tissue
        print(
            f"Starting simulation: Size={tissue.rows}x{tissue.cols}, "
            f"Duration={self.cfg.duration}, dt={self.cfg.effective_dt()}"
        )
        start = time.perf_counter()
        results = TissueSimulation(self.cfg).run(progress=self._report_progress)
        elapsed = time.perf_counter() - start
        print(f"Total simulation time: {elapsed:.2f} seconds")
        self.summarize(results)
        if plots_dir is not None:
            from .viz import save_figures

            written = save_figures(results, plots_dir)
            print("Saved: " + ", ".join(str(p) for p in written))
        return results

    @staticmethod
    def summarize(results: Results) -> None:
        excitable = ~results.inert_mask
        activated = (results.activation_times >= 0) & excitable
        n_excitable = int(excitable.sum())
        coverage = 100.0 * activated.sum() / n_excitable if n_excitable else 0.0
        print(f"Snapshots: {len(results.snapshots)}  status: {results.status.value}")
        print(f"Activation coverage: {coverage:.1f}% of excitable cells")
        if activated.any():
            lat = results.activation_times[activated]
            print(f"Activation time min/max: {lat.min():.2f} / {lat.max():.2f}")
        apds = results.apd[results.apd >= 0]
        if apds.size:
            print(f"APD: mean={np.mean(apds):.1f}, std={np.std(apds):.1f}, n={apds.size}")
        else:
            print("APD: none completed (try a longer duration).")
        print(f"Max activations per cell: {int(results.activation_counts.max())}")
        print(f"Reentry detected: {results.reentry_detected} {list(results.reentry.locations)}")
        print(f"Block detected: {results.block_detected} {list(results.block.locations)}")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a cardiac tissue reaction-diffusion simulation.")
    parser.add_argument("--scenario", choices=SCENARIOS, default="planar")
    parser.add_argument("--rows", type=int, default=50)
    parser.add_argument("--cols", type=int, default=50)
    parser.add_argument("--duration", type=float, default=100.0)
    parser.add_argument("--save-interval", type=float, default=1.0)
    parser.add_argument("--dt", type=float, default=0.01)
    parser.add_argument("--diffusion", type=float, default=1.0)
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--coupling-interval", type=float, default=None, help="S1-S2 interval (s1s2 scenario).")
    parser.add_argument("--plots", type=Path, default=None, help="Directory for PNG figures.")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(None if argv is None else list(argv))


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    cfg = build_scenario(
        args.scenario,
        rows=args.rows,
        cols=args.cols,
        duration=args.duration,
        save_interval=args.save_interval,
        dt=args.dt,
        diffusion=args.diffusion,
        seed=args.seed,
        coupling_interval=args.coupling_interval,
    )
    SimulationApp(cfg).run(plots_dir=args.plots)


if __name__ == "__main__":
    main()
