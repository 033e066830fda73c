# ----------------------------- Sentinels ------------------------------------

#: Activation time / APD value for cells that never activated or recovered.
UNSET = -1.0
#: Returned by single-cell APD analysis when no complete cycle is found.
APD_UNDETECTED = -1.0

# ------------------- Physical & numerical resolution ------------------------

#: Forward Euler time step (model time units).
DT = 0.01
#: Spatial step between neighbouring nodes.
DX = 1.0
#: Diffusion coefficient.
DIFFUSION = 1.0
#: Default square grid size (rows == cols).
GRID_SIZE = 100
#: Explicit Euler bound on ``D * dt / dx**2`` for the 2-D five-point stencil.
STABILITY_LIMIT = 0.25
#: ``|v|`` beyond this after a step is reported as numerical divergence.
DIVERGENCE_LIMIT = 1.0e3

# ------------------- Mitchell-Schaeffer (gated) defaults -------------------

#: Depolarization time constant.
TAU_IN = 0.3
#: Repolarization time constant.
TAU_OUT = 6.0
#: Gate recovery time constant.
TAU_OPEN = 120.0
#: Gate inactivation time constant.
TAU_CLOSE = 80.0
#: Voltage separating gate recovery from inactivation.
V_GATE = 0.13

# ------------------- FitzHugh-Nagumo (cubic) defaults ----------------------

FHN_A = 0.7
FHN_B = 0.8
#: Time-scale separation of the recovery variable.
FHN_EPSILON = 0.08

# ------------------- Feature extraction ------------------------------------

#: Upstroke threshold on ``v`` for the gated model (tissue bookkeeping).
ACTIVATION_THRESHOLD = 0.3
#: Upstroke threshold for the cubic model; its rest sits near ``v = 1.2``.
FHN_ACTIVATION_THRESHOLD = 1.5
#: Default threshold for single-cell APD measurement (gated model).
APD_THRESHOLD = 0.1
#: Default threshold for single-cell APD measurement (cubic model).
FHN_APD_THRESHOLD = 0.0
#: Peak search stops once ``v`` drops below this fraction of its running max.
PEAK_FRACTION = 0.9

#: Reentry detector: voltage crossing counted as an upstroke.
REENTRY_THRESHOLD = 0.7
REENTRY_MIN_CROSSINGS = 2
REENTRY_STRIDE = 5
REENTRY_MAX_LOCATIONS = 20
REENTRY_MIN_SNAPSHOTS = 10

#: Block detector: activation-time jump (time units) across one cell.
BLOCK_GRADIENT_THRESHOLD = 20.0
BLOCK_STRIDE = 3
BLOCK_MAX_LOCATIONS = 30
BLOCK_MIN_SNAPSHOTS = 5

# ------------------- Fibrosis ----------------------------------------------

#: Park-Miller modulus (2**31 - 1) and multiplier.
LCG_MODULUS = 2147483647
LCG_MULTIPLIER = 16807

COMPACT_REGIONS_PER_DENSITY = 3
COMPACT_RADIUS = (20, 40)
COMPACT_FILL = 0.9

PATCHY_REGIONS_PER_DENSITY = 30
PATCHY_RADIUS = (3, 12)
PATCHY_FILL = 0.7

# ------------------- Run policy --------------------------------------------

#: Runs longer than this use at least ``LONG_RUN_MIN_DT``.
LONG_RUN_DURATION = 1000.0
LONG_RUN_MIN_DT = 0.05
#: Runs longer than this thin activation/APD bookkeeping.
SPARSE_BOOKKEEPING_DURATION = 500.0
#: Save intervals below this on long runs trigger a memory warning.
MIN_LONG_RUN_SAVE_INTERVAL = 2.0
#: Steps between cooperative cancellation checks.
CANCEL_CHECK_EVERY = 100
#: Progress updates kept by a ``ProgressChannel``.
PROGRESS_BUFFER = 128

# ------------------- Visualization -----------------------------------------

#: Matplotlib ``imshow`` interpolation.
IMSHOW_INTERPOLATION = "bilinear"
