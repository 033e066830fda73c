"""
Pytest configuration and shared fixtures.
"""
import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from cardiac_tissue import (  # noqa: E402
    FitzHughNagumoParams, MitchellSchaefferParams, SimulationConfig,
    StimulusSpec, TissueDimensions, initialize_grid,
)


@pytest.fixture
def ms_params():
    """Gated-model defaults."""
    return MitchellSchaefferParams()


@pytest.fixture
def fhn_params():
    """Cubic-model defaults."""
    return FitzHughNagumoParams()


@pytest.fixture
def small_dims():
    return TissueDimensions(rows=12, cols=15, diffusion=1.0, dx=1.0)


@pytest.fixture
def small_grid(ms_params, small_dims):
    """A 12x15 gated-model grid at rest."""
    return initialize_grid(small_dims.rows, small_dims.cols, ms_params)


@pytest.fixture
def small_config(small_dims):
    """Short run on a small grid; tests override fields with dataclasses.replace."""
    return SimulationConfig(
        model=MitchellSchaefferParams(dt=0.02),
        tissue=small_dims,
        duration=10.0,
        save_interval=1.0,
    )


@pytest.fixture
def s1_strip():
    """Full-height S1 strip at the left edge, as used in the S1-S2 scenarios."""
    def make(rows, start=1.0):
        return StimulusSpec(row=0, col=0, width=5, height=rows, amplitude=1.0, start=start, duration=1.0)
    return make


@pytest.fixture
def rng():
    return np.random.default_rng(42)
