from .constants import (
    UNSET, APD_UNDETECTED,
    DT, DX, DIFFUSION, GRID_SIZE, STABILITY_LIMIT, DIVERGENCE_LIMIT,
    ACTIVATION_THRESHOLD, REENTRY_THRESHOLD, BLOCK_GRADIENT_THRESHOLD,
)

from .errors import ConfigurationError, NumericalInstabilityError, SimulationError
from .cell import (
    CellModelKind, FitzHughNagumoParams, MitchellSchaefferParams, CELL_PRESETS,
    CellTrace, Pulse, reaction, resting_state, simulate_cell,
    pulse_stimulus, paired_stimulus, apply_pulse, apply_s1s2,
    calculate_apd, max_upstroke_velocity, apd_threshold,
)
from .config import (
    TissueDimensions, StimulusSpec, FibrosisPattern, FibrosisSpec,
    ObstacleSpec, GradientSpec, FeatureConfig, SimulationConfig,
)
from .kernel import no_flux_laplacian, LaplacianStencil
from .grid import TissueGrid, Snapshot, initialize_grid, circular_mask
from .stimulus import (
    StimulusProtocol, RectangularStimulus, PlanarWave, PairedProtocol, ConductionBlock,
)
from .fibrosis import SeededRandom, generate_fibrosis_mask
from .stepper import TissueStepper
from .lat import ActivationTracker
from .apd import APDTracker
from .detect import DetectionResult, ReentryDetector, BlockDetector
from .progress import ProgressChannel, ProgressReporter
from .simulation import Results, RunStatus, TissueSimulation, run_simulation

__all__ = [
    # constants
    "UNSET", "APD_UNDETECTED",
    "DT", "DX", "DIFFUSION", "GRID_SIZE", "STABILITY_LIMIT", "DIVERGENCE_LIMIT",
    "ACTIVATION_THRESHOLD", "REENTRY_THRESHOLD", "BLOCK_GRADIENT_THRESHOLD",
    # errors
    "ConfigurationError", "NumericalInstabilityError", "SimulationError",
    # cell models
    "CellModelKind", "FitzHughNagumoParams", "MitchellSchaefferParams", "CELL_PRESETS",
    "CellTrace", "Pulse", "reaction", "resting_state", "simulate_cell",
    "pulse_stimulus", "paired_stimulus", "apply_pulse", "apply_s1s2",
    "calculate_apd", "max_upstroke_velocity", "apd_threshold",
    # configuration
    "TissueDimensions", "StimulusSpec", "FibrosisPattern", "FibrosisSpec",
    "ObstacleSpec", "GradientSpec", "FeatureConfig", "SimulationConfig",
    # tissue
    "no_flux_laplacian", "LaplacianStencil",
    "TissueGrid", "Snapshot", "initialize_grid", "circular_mask",
    "StimulusProtocol", "RectangularStimulus", "PlanarWave", "PairedProtocol", "ConductionBlock",
    "SeededRandom", "generate_fibrosis_mask",
    "TissueStepper",
    # features
    "ActivationTracker", "APDTracker",
    "DetectionResult", "ReentryDetector", "BlockDetector",
    # orchestration
    "ProgressChannel", "ProgressReporter",
    "Results", "RunStatus", "TissueSimulation", "run_simulation",
]
