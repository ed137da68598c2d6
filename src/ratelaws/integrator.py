"""scipy-backed integration helpers shared by batch and real-time runs."""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.integrate import solve_ivp

from .errors import ConfigError, SimulationError

StateVector = np.ndarray
RhsFn = Callable[..., StateVector]

_SOLVER_METHODS = ("RK45", "RK23", "DOP853", "Radau", "BDF", "LSODA")


@dataclass(frozen=True)
class SolverConfig:
    """Configuration driving scipy's solve_ivp."""

    method: str = "LSODA"
    rtol: float = 1e-6
    atol: float = 1e-9
    max_step: float = math.inf
    max_attempts: int = 8

    def __post_init__(self) -> None:
        if self.method not in _SOLVER_METHODS:
            raise ConfigError(f"Unknown solver method {self.method!r}; expected one of {_SOLVER_METHODS}")
        if self.rtol <= 0.0 or self.atol <= 0.0:
            raise ConfigError("Solver tolerances must be positive")
        if self.max_step <= 0.0:
            raise ConfigError("max_step must be positive")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> "SolverConfig":
        known = {key: payload[key] for key in ("method", "rtol", "atol", "max_step", "max_attempts") if key in payload}
        unknown = set(payload) - set(known)
        if unknown:
            raise ConfigError(f"Unknown solver options: {sorted(unknown)}")
        if known.get("max_step") is None:
            known.pop("max_step", None)
        return cls(**known)  # type: ignore[arg-type]

    def as_dict(self) -> Dict[str, object]:
        return {
            "method": self.method,
            "rtol": self.rtol,
            "atol": self.atol,
            "max_step": self.max_step,
            "max_attempts": self.max_attempts,
        }

    def identity(self) -> str:
        payload = json.dumps(self.as_dict(), sort_keys=True)
        return hashlib.sha256(payload.encode("utf8")).hexdigest()


@dataclass(frozen=True)
class Solution:
    """Raw integrator output: ``states[i]`` is the state vector at ``times[i]``."""

    times: np.ndarray
    states: np.ndarray


def _looks_like_step_failure(message: str) -> bool:
    text = (message or "").lower()
    return ("step size" in text) or ("strictly increasing" in text)


def solve_stiff_ivp(
    rhs: RhsFn,
    span: Tuple[float, float],
    y0: StateVector,
    solver: SolverConfig,
    *,
    t_eval: Optional[np.ndarray] = None,
    args: Sequence[object] = (),
    first_step: Optional[float] = None,
    allow_shrink: bool = True,
):
    """Wrapper around solve_ivp that halves ``max_step`` after step-size failures."""

    t0 = float(span[0])
    t1 = float(span[1])
    state0 = np.asarray(y0, dtype=float)
    total_span = abs(t1 - t0)
    attempt_first = None if first_step is None or first_step <= 0.0 else float(first_step)
    attempt_max = solver.max_step if math.isfinite(solver.max_step) else total_span
    min_cap = max(total_span * 1e-6, 1e-12)
    result = None
    for _ in range(solver.max_attempts):
        options = {"max_step": attempt_max}
        if attempt_first is not None:
            options["first_step"] = attempt_first
        result = solve_ivp(
            rhs,
            (t0, t1),
            state0,
            method=solver.method,
            t_eval=t_eval,
            args=tuple(args) or None,
            rtol=solver.rtol,
            atol=solver.atol,
            **options,
        )
        if result.success or not allow_shrink:
            return result
        if not _looks_like_step_failure(result.message or ""):
            return result
        attempt_max = max(attempt_max * 0.5, min_cap)
        if attempt_first is not None:
            attempt_first = min(attempt_first, attempt_max)
    return result


def _nan_guard(rhs: RhsFn, t_point: float, state: StateVector, args: Sequence[object]) -> None:
    values = np.asarray(rhs(t_point, state.copy(), *args), dtype=float)
    if not np.all(np.isfinite(values)):
        raise SimulationError(f"t={t_point}: non-finite derivative detected")


def integrate(
    rhs: RhsFn,
    t0: float,
    tf: float,
    y0: Sequence[float],
    solver: SolverConfig,
    *,
    args: Sequence[object] = (),
    t_eval: Optional[np.ndarray] = None,
) -> Solution:
    """Integrate ``y' = rhs(t, y, *args)`` over ``[t0, tf]``.

    A zero-length span returns the initial state as the only sample without
    calling the solver. Solver failures and non-finite states raise
    :class:`SimulationError`.
    """

    start = float(t0)
    stop = float(tf)
    state0 = np.array(y0, dtype=float, copy=True)
    if stop < start:
        raise ConfigError(f"Integration end time {stop} precedes start time {start}")
    if stop == start or state0.size == 0:
        times = np.array([start], dtype=float) if stop == start else np.array([start, stop], dtype=float)
        return Solution(times=times, states=np.tile(state0, (times.size, 1)))
    if not np.all(np.isfinite(state0)):
        raise SimulationError("Initial state contains non-finite values")

    try:
        _nan_guard(rhs, start, state0, args)
        sol = solve_stiff_ivp(rhs, (start, stop), state0, solver, t_eval=t_eval, args=args)
    except (ArithmeticError, ValueError) as exc:
        raise SimulationError(f"Integration failed at t={start}: {exc}") from exc
    if not sol.success or not sol.y.size:
        raise SimulationError(f"Integration failed at t={start}: {sol.message}")
    states = np.asarray(sol.y, dtype=float).T
    if not np.all(np.isfinite(states)):
        raise SimulationError(f"Integration over [{start}, {stop}] produced non-finite values")
    return Solution(times=np.asarray(sol.t, dtype=float), states=states)


__all__ = ["Solution", "SolverConfig", "integrate", "solve_stiff_ivp"]
