"""Batch simulation driver: derivative function and write-back runs."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Dict, Optional

import numpy as np

from .compiler import Model
from .entities import Trajectory
from .errors import ConfigError
from .integrator import SolverConfig, integrate

if TYPE_CHECKING:  # pragma: no cover
    from .system import System

logger = logging.getLogger(__name__)


def build_context(model: Model, y: np.ndarray, system: "System") -> Dict[str, float]:
    """Evaluation scope: species ids zipped with *y*, plus live parameter values."""

    context = {identifier: float(value) for identifier, value in zip(model.species, y)}
    for identifier, parameter in system.parameters.items():
        context[identifier] = parameter.value
    return context


def derivative(t: float, y: np.ndarray, model: Model, system: "System") -> np.ndarray:
    """Right-hand side consumed by the integrator, ordered like the species.

    *model* is resolved once per run so a concurrent ``compile()`` cannot swap
    it in the middle of a solve.
    """

    return model.evaluate(build_context(model, y, system))


def _sample_grid(t0: float, tf: float, sample_interval: Optional[float]) -> Optional[np.ndarray]:
    if sample_interval is None:
        return None
    if sample_interval <= 0.0:
        raise ConfigError("sample_interval must be positive")
    steps = int(math.floor((tf - t0) / sample_interval + 1e-9))
    grid = t0 + sample_interval * np.arange(steps + 1, dtype=float)
    if grid[-1] < tf - 1e-12:
        grid = np.append(grid, tf)
    else:
        grid[-1] = tf
    return grid


def run_batch(
    system: "System",
    t0: float,
    tf: float,
    *,
    solver: Optional[SolverConfig] = None,
    sample_interval: Optional[float] = None,
) -> Trajectory:
    """Integrate the compiled model from the current species values.

    On success every species' ``value`` is set to its final sample, so the
    next call continues where this one stopped. A failed run raises before
    anything is written back.
    """

    with system.lock:
        model = system.require_model()
        missing = [identifier for identifier in model.species if identifier not in system.species]
        if missing:
            raise ConfigError(f"Model is stale, species {missing} were removed; call compile() first")
        if tf < t0:
            raise ConfigError(f"Simulation end time {tf} precedes start time {t0}")
        solver = solver or system.solver
        y0 = np.array([system.species[identifier].value for identifier in model.species], dtype=float)

        logger.info(
            "simulate: solver=%s rtol=%g atol=%g span=[%g, %g] species=%d",
            solver.method,
            solver.rtol,
            solver.atol,
            t0,
            tf,
            len(model.species),
        )
        t_eval = _sample_grid(float(t0), float(tf), sample_interval) if tf > t0 else None
        solution = integrate(derivative, t0, tf, y0, solver, args=(model, system), t_eval=t_eval)

        values = {identifier: solution.states[:, idx].copy() for idx, identifier in enumerate(model.species)}
        for identifier, series in values.items():
            system.species[identifier].value = float(series[-1])
        return Trajectory(time=solution.times, values=values)


__all__ = ["build_context", "derivative", "run_batch"]
