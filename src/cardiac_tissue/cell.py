"""Single-cell reaction kernels.

Two phenomenological excitable-media models are supported, selected per run
by the parameter record that is passed around:

* :class:`FitzHughNagumoParams` (cubic nonlinearity, unbounded)::

    dv/dt    = v - v**3 / 3 - gate + I
    dgate/dt = epsilon * (v - a - b * gate)

* :class:`MitchellSchaefferParams` (gated inward current, clamped to [0, 1])::

    J_in     = gate * v**2 * (1 - v) / tau_in
    J_out    = -v / tau_out
    dv/dt    = J_in + J_out + I
    dgate/dt = (1 - gate) / tau_open   if v < v_gate
             = -gate / tau_close       otherwise

Each record carries a :class:`CellModelKind` tag and :func:`reaction`
dispatches on it explicitly. The kernels accept Python floats or numpy arrays
so the same code drives the stand-alone integrator and the tissue stepper.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Callable, ClassVar, Dict, Mapping, Optional, Tuple, Union

import numpy as np

from .constants import (
    APD_THRESHOLD, APD_UNDETECTED, DT, FHN_A, FHN_APD_THRESHOLD, FHN_B, FHN_EPSILON,
    PEAK_FRACTION, TAU_CLOSE, TAU_IN, TAU_OPEN, TAU_OUT, V_GATE,
)
from .errors import ConfigurationError

ArrayLike = Union[float, np.ndarray]
StimulusFn = Callable[[float], float]


class CellModelKind(str, Enum):
    """Tag selecting the reaction kernel."""

    FITZHUGH_NAGUMO = "fitzhugh_nagumo"
    MITCHELL_SCHAEFFER = "mitchell_schaeffer"


@dataclass(frozen=True)
class FitzHughNagumoParams:
    a: float = FHN_A
    b: float = FHN_B
    epsilon: float = FHN_EPSILON
    #: Constant applied current added to any stimulus.
    current: float = 0.0
    dt: float = DT

    kind: ClassVar[CellModelKind] = CellModelKind.FITZHUGH_NAGUMO


@dataclass(frozen=True)
class MitchellSchaefferParams:
    tau_in: float = TAU_IN
    tau_out: float = TAU_OUT
    tau_open: float = TAU_OPEN
    tau_close: float = TAU_CLOSE
    v_gate: float = V_GATE
    dt: float = DT

    kind: ClassVar[CellModelKind] = CellModelKind.MITCHELL_SCHAEFFER


ModelParameters = Union[FitzHughNagumoParams, MitchellSchaefferParams]


#: Named gated-model parameter sets for different cell phenotypes.
CELL_PRESETS: Dict[str, MitchellSchaefferParams] = {
    "Normal Cell": MitchellSchaefferParams(),
    "Slow Conduction": MitchellSchaefferParams(tau_in=0.5),
    "Long APD": MitchellSchaefferParams(tau_out=12.0),
    "Short APD": MitchellSchaefferParams(tau_out=3.0),
    "Reduced Excitability": MitchellSchaefferParams(tau_open=180.0, v_gate=0.15),
}


def parameter_names(params: ModelParameters) -> Tuple[str, ...]:
    """Names of the model constants (everything except ``dt``)."""
    return tuple(f.name for f in fields(params) if f.name != "dt")


def validate_parameters(params: ModelParameters) -> None:
    """Raise :class:`ConfigurationError` for an unusable parameter record."""
    if not isinstance(params, (FitzHughNagumoParams, MitchellSchaefferParams)):
        raise ConfigurationError(f"Unknown cell model parameters: {params!r}")
    if not params.dt > 0:
        raise ConfigurationError(f"dt must be positive, got {params.dt}")
    if params.kind is CellModelKind.MITCHELL_SCHAEFFER:
        for name in ("tau_in", "tau_out", "tau_open", "tau_close"):
            if not getattr(params, name) > 0:
                raise ConfigurationError(f"{name} must be positive")
    elif params.b == 0:
        raise ConfigurationError("FitzHugh-Nagumo b must be non-zero")


def _values(
    params: ModelParameters, overrides: Optional[Mapping[str, ArrayLike]]
) -> Dict[str, ArrayLike]:
    values: Dict[str, ArrayLike] = {
        name: getattr(params, name) for name in parameter_names(params)
    }
    if overrides:
        unknown = set(overrides) - set(values)
        if unknown:
            raise ConfigurationError(
                f"Cannot override {sorted(unknown)} on {params.kind.value}"
            )
        values.update(overrides)
    return values


def reaction(
    params: ModelParameters,
    v: ArrayLike,
    gate: ArrayLike,
    current: ArrayLike = 0.0,
    overrides: Optional[Mapping[str, ArrayLike]] = None,
) -> Tuple[ArrayLike, ArrayLike]:
    """Return ``(dv/dt, dgate/dt)`` for the model selected by ``params``.

    Parameters
    ----------
    params : ModelParameters
        Parameter record; its ``kind`` selects the kernel.
    v, gate : float or np.ndarray
        Current state.
    current : float or np.ndarray, optional
        Stimulus current ``I``.
    overrides : mapping, optional
        Per-cell replacements for named constants (e.g. a ``tau_close``
        gradient). Values must broadcast against ``v``.
    """
    p = _values(params, overrides)
    if params.kind is CellModelKind.MITCHELL_SCHAEFFER:
        j_in = gate * v * v * (1.0 - v) / p["tau_in"]
        j_out = -v / p["tau_out"]
        dv = j_in + j_out + current
        dgate = np.where(
            v < p["v_gate"],
            (1.0 - gate) / p["tau_open"],
            -gate / p["tau_close"],
        )
        return dv, dgate
    if params.kind is CellModelKind.FITZHUGH_NAGUMO:
        dv = v - v * v * v / 3.0 - gate + p["current"] + current
        dgate = p["epsilon"] * (v - p["a"] - p["b"] * gate)
        return dv, dgate
    raise ConfigurationError(f"Unknown cell model kind: {params.kind!r}")


def voltage_bounds(params: ModelParameters) -> Tuple[float, float]:
    """Valid range of ``v`` (unbounded for the cubic model)."""
    if params.kind is CellModelKind.MITCHELL_SCHAEFFER:
        return 0.0, 1.0
    return -math.inf, math.inf


def is_clamped(params: ModelParameters) -> bool:
    return params.kind is CellModelKind.MITCHELL_SCHAEFFER


def apd_threshold(params: ModelParameters) -> float:
    """Default repolarization threshold for :func:`calculate_apd`."""
    if params.kind is CellModelKind.FITZHUGH_NAGUMO:
        return FHN_APD_THRESHOLD
    return APD_THRESHOLD


def resting_state(params: ModelParameters) -> Tuple[float, float]:
    """Return the ``(v, gate)`` fixed point the model sits at without stimulus.

    The gated model rests at ``(0, 1)``. For the cubic model the fixed point
    is the stable real intersection of the two nullclines.
    """
    if params.kind is CellModelKind.MITCHELL_SCHAEFFER:
        return 0.0, 1.0
    a, b, eps, i0 = params.a, params.b, params.epsilon, params.current
    if b == 0:
        raise ConfigurationError("FitzHugh-Nagumo b must be non-zero")
    # v - v^3/3 - (v - a)/b + I = 0 with gate on its nullcline
    roots = np.roots([-1.0 / 3.0, 0.0, 1.0 - 1.0 / b, a / b + i0])
    real = sorted(float(r.real) for r in roots if abs(r.imag) < 1e-9)
    for v in real:
        trace = 1.0 - v * v - eps * b
        det = -(1.0 - v * v) * eps * b + eps
        if trace < 0 and det > 0:
            return v, (v - a) / b
    v = real[0]
    return v, (v - a) / b


# ---------------------------------------------------------------------------
# Stand-alone integration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CellTrace:
    """Per-step record of one cell: ``time``, ``v`` and ``gate`` arrays."""

    time: np.ndarray
    v: np.ndarray
    gate: np.ndarray

    def __len__(self) -> int:
        return int(self.time.shape[0])


@dataclass(frozen=True)
class Pulse:
    """Rectangular current pulse active on ``[start, start + duration)``."""

    amplitude: float = 1.0
    duration: float = 1.0
    start: float = 5.0

    def active(self, t: float) -> bool:
        return self.start <= t < self.start + self.duration

    def __call__(self, t: float) -> float:
        return self.amplitude if self.active(t) else 0.0


def pulse_stimulus(
    amplitude: float = 1.0, duration: float = 1.0, start: float = 5.0
) -> Pulse:
    return Pulse(amplitude=amplitude, duration=duration, start=start)


def paired_stimulus(s1: Pulse, s2: Optional[Pulse] = None) -> StimulusFn:
    """S1-S2 stimulus function; ``s2`` is optional.

    If the two windows overlap, S1 takes precedence.
    """

    def stimulus(t: float) -> float:
        if s1.active(t):
            return s1.amplitude
        if s2 is not None and s2.active(t):
            return s2.amplitude
        return 0.0

    return stimulus


def simulate_cell(
    params: ModelParameters,
    duration: float = 100.0,
    stimulus: Optional[StimulusFn] = None,
    initial_v: Optional[float] = None,
    initial_gate: Optional[float] = None,
) -> CellTrace:
    """Integrate one cell with forward Euler from ``t = 0`` to ``duration``.

    The state is recorded before each update, so ``trace.v[0]`` is the initial
    voltage and the last sample is taken one step before ``duration``.
    Missing initial values default to :func:`resting_state`.
    """
    validate_parameters(params)
    if not duration > 0:
        raise ConfigurationError(f"duration must be positive, got {duration}")
    dt = params.dt
    n_steps = int(math.ceil(duration / dt - 1e-9))
    v_rest, gate_rest = resting_state(params)
    v = v_rest if initial_v is None else float(initial_v)
    gate = gate_rest if initial_gate is None else float(initial_gate)
    clamp = is_clamped(params)

    time = np.arange(n_steps, dtype=float) * dt
    v_out = np.empty(n_steps, dtype=float)
    gate_out = np.empty(n_steps, dtype=float)
    for k in range(n_steps):
        v_out[k] = v
        gate_out[k] = gate
        current = stimulus(float(time[k])) if stimulus is not None else 0.0
        dv, dgate = reaction(params, v, gate, current)
        v = v + dt * float(dv)
        gate = gate + dt * float(dgate)
        if clamp:
            v = min(1.0, max(0.0, v))
            gate = min(1.0, max(0.0, gate))
    return CellTrace(time=time, v=v_out, gate=gate_out)


def apply_pulse(
    params: ModelParameters,
    amplitude: float = 1.0,
    duration: float = 1.0,
    start: float = 5.0,
    time_span: float = 100.0,
) -> CellTrace:
    """Single pulse from rest."""
    return simulate_cell(params, time_span, pulse_stimulus(amplitude, duration, start))


def apply_s1s2(
    params: ModelParameters,
    s1: Pulse,
    s2: Optional[Pulse] = None,
    time_span: float = 500.0,
) -> CellTrace:
    """Paired-pulse protocol from rest for refractory-period studies."""
    return simulate_cell(params, time_span, paired_stimulus(s1, s2))


# ---------------------------------------------------------------------------
# Derived metrics
# ---------------------------------------------------------------------------


def calculate_apd(trace: CellTrace, threshold: float = APD_THRESHOLD) -> float:
    """Action potential duration of the first complete cycle in ``trace``.

    Activation is the first upstroke crossing of ``threshold``. The peak is
    searched forward from there and the search stops as soon as ``v`` falls
    below ``PEAK_FRACTION`` of the running maximum. Repolarization is the
    next downstroke crossing of ``threshold`` after the peak.

    Returns
    -------
    float
        ``t_repolarization - t_activation``, or ``APD_UNDETECTED`` when no
        complete cycle exists.
    """
    v = np.asarray(trace.v, dtype=float)
    t = np.asarray(trace.time, dtype=float)
    if v.size < 2:
        return APD_UNDETECTED

    upstrokes = np.nonzero((v[:-1] < threshold) & (v[1:] >= threshold))[0]
    if upstrokes.size == 0:
        return APD_UNDETECTED
    activation = int(upstrokes[0]) + 1

    peak = activation
    for i in range(activation, v.size):
        if v[i] > v[peak]:
            peak = i
        elif v[i] < v[peak] * PEAK_FRACTION:
            break

    downstrokes = np.nonzero((v[peak:-1] > threshold) & (v[peak + 1:] <= threshold))[0]
    if downstrokes.size == 0:
        return APD_UNDETECTED
    repolarization = peak + int(downstrokes[0]) + 1
    return float(t[repolarization] - t[activation])


def max_upstroke_velocity(trace: CellTrace) -> float:
    """Largest forward-difference ``dv/dt`` in the trace, never below zero."""
    v = np.asarray(trace.v, dtype=float)
    t = np.asarray(trace.time, dtype=float)
    if v.size < 2:
        return 0.0
    slopes = np.diff(v) / np.diff(t)
    return float(max(0.0, np.max(slopes)))
