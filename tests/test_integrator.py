from __future__ import annotations

import math

import numpy as np
import pytest

from ratelaws.errors import ConfigError, SimulationError
from ratelaws.integrator import SolverConfig, integrate


def _make_solver() -> SolverConfig:
    return SolverConfig(method="LSODA", rtol=1e-8, atol=1e-10, max_step=0.5)


def test_integrate_returns_initial_state_for_zero_span() -> None:
    solver = _make_solver()
    y0 = np.array([1.0, 2.0])

    calls = []
    result = integrate(lambda t, y: calls.append(t) or -y, 0.5, 0.5, y0, solver)

    assert calls == []
    assert np.array_equal(result.times, [0.5])
    assert np.array_equal(result.states[-1], y0)
    assert result.states[-1] is not y0


def test_integrate_matches_linear_system_solution() -> None:
    solver = _make_solver()
    fast_rate = 75.0
    slow_rate = 0.1
    span = 1.25
    y0 = np.array([2.0, 4.0])

    def rhs(_: float, y: np.ndarray) -> np.ndarray:
        return np.array(
            [
                -fast_rate * y[0],
                -slow_rate * y[1],
            ]
        )

    result = integrate(rhs, 0.0, span, y0, solver)

    expected = np.array(
        [
            y0[0] * math.exp(-fast_rate * span),
            y0[1] * math.exp(-slow_rate * span),
        ]
    )
    assert result.times[-1] == pytest.approx(span)
    assert result.states[-1] == pytest.approx(expected, rel=1e-5, abs=1e-6)


def test_integrate_reports_requested_samples() -> None:
    grid = np.linspace(0.0, 1.0, 11)
    result = integrate(lambda t, y: -y, 0.0, 1.0, [1.0], _make_solver(), t_eval=grid)
    assert np.allclose(result.times, grid)
    assert result.states.shape == (11, 1)
    assert result.states[:, 0] == pytest.approx(np.exp(-grid), rel=1e-5)


def test_integrate_forwards_extra_arguments() -> None:
    result = integrate(lambda t, y, k: -k * y, 0.0, 1.0, [3.0], _make_solver(), args=(2.0,))
    assert result.states[-1, 0] == pytest.approx(3.0 * math.exp(-2.0), rel=1e-5)


def test_integrate_rejects_reversed_span() -> None:
    with pytest.raises(ConfigError):
        integrate(lambda t, y: -y, 1.0, 0.0, [1.0], _make_solver())


def test_integrate_wraps_arithmetic_failures() -> None:
    def rhs(_: float, y: np.ndarray) -> np.ndarray:
        return np.array([1.0 / 0.0])

    with pytest.raises(SimulationError):
        integrate(rhs, 0.0, 1.0, [1.0], _make_solver())


def test_integrate_rejects_non_finite_derivative() -> None:
    with pytest.raises(SimulationError):
        integrate(lambda t, y: np.array([math.nan]), 0.0, 1.0, [1.0], _make_solver())
    with pytest.raises(SimulationError):
        integrate(lambda t, y: -y, 0.0, 1.0, [math.inf], _make_solver())


def test_solver_config_validation_and_mapping() -> None:
    with pytest.raises(ConfigError):
        SolverConfig(method="Euler")
    with pytest.raises(ConfigError):
        SolverConfig(rtol=0.0)
    with pytest.raises(ConfigError):
        SolverConfig.from_mapping({"method": "BDF", "order": 2})

    config = SolverConfig.from_mapping({"method": "BDF", "rtol": 1e-7, "max_step": None})
    assert config.method == "BDF"
    assert config.rtol == 1e-7
    assert math.isinf(config.max_step)
    assert config.identity() == SolverConfig(method="BDF", rtol=1e-7).identity()
    assert config.identity() != SolverConfig().identity()
