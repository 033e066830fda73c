from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Union

import matplotlib.pyplot as plt
import numpy as np

from .constants import IMSHOW_INTERPOLATION
from .grid import Snapshot
from .simulation import Results


def _masked(grid: np.ndarray) -> np.ndarray:
    out = np.array(grid, dtype=float, copy=True)
    out[out < 0] = np.nan
    return out


def _map_figure(data: np.ndarray, title: str, label: str, cmap: str):
    fig, ax = plt.subplots(figsize=(6.6, 6.6))
    limits = {} if np.isfinite(data).any() else {"vmin": 0.0, "vmax": 1.0}
    img = ax.imshow(data, cmap=cmap, interpolation=IMSHOW_INTERPOLATION, **limits)
    ax.set_title(title)
    cbar = fig.colorbar(img, ax=ax)
    cbar.set_label(label)
    ax.axis("off")
    fig.tight_layout()
    return fig


def activation_map_figure(results: Results):
    """Activation-time map; never-activated cells are left blank."""
    fig = _map_figure(
        _masked(results.activation_times), "Local Activation Time", "time", "turbo"
    )
    ax = fig.axes[0]
    for row, col in results.block.locations:
        ax.plot(col, row, marker="x", color="black", markersize=6)
    return fig


def apd_map_figure(results: Results):
    return _map_figure(_masked(results.apd), "Action Potential Duration", "time", "viridis")


def snapshot_figure(snapshot: Snapshot, results: Optional[Results] = None):
    """Voltage field at one saved instant, with reentry markers if given."""
    fig, ax = plt.subplots(figsize=(6.6, 6.6))
    img = ax.imshow(
        snapshot.v, cmap="inferno", vmin=0.0, vmax=1.0, interpolation=IMSHOW_INTERPOLATION
    )
    ax.set_title(f"v at t={snapshot.time:.1f}")
    fig.colorbar(img, ax=ax)
    if results is not None:
        for row, col in results.reentry.locations:
            ax.plot(col, row, marker="o", fillstyle="none", color="cyan", markersize=8)
    ax.axis("off")
    fig.tight_layout()
    return fig


def save_figures(results: Results, directory: Union[str, Path], dpi: int = 150) -> List[Path]:
    """Write activation, APD and final-snapshot PNGs into ``directory``."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    figures = {
        "lat_map.png": activation_map_figure(results),
        "apd_map.png": apd_map_figure(results),
        "final_snapshot.png": snapshot_figure(results.snapshots[-1], results),
    }
    written = []
    for name, fig in figures.items():
        path = directory / name
        fig.savefig(path, dpi=dpi)
        plt.close(fig)
        written.append(path)
    return written
