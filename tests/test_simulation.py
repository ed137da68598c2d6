from __future__ import annotations

import math

import numpy as np
import pytest

from ratelaws import System
from ratelaws.errors import ConfigError, SimulationError
from ratelaws.simulation import derivative


def _decay_system(initial: float = 10.0, rate: float = 0.5) -> System:
    system = System()
    system.add_species("A", initial)
    system.add_parameter("k", rate)
    system.define_interaction("decay", ["a"]).rules["a"].set("-k*a")
    system.add_interaction("decay", ["A"], ["k"])
    system.compile()
    return system


def test_zero_length_run_is_identity() -> None:
    system = _decay_system()
    trajectory = system.simulate(2.0, 2.0)
    assert np.array_equal(trajectory.time, [2.0])
    assert trajectory["A"][-1] == 10.0
    assert system.species["A"].value == 10.0


def test_first_order_decay_matches_closed_form() -> None:
    system = _decay_system()
    trajectory = system.simulate(0.0, 1.0)
    expected = 10.0 * math.exp(-0.5)
    assert trajectory["A"][-1] == pytest.approx(expected, rel=1e-4)
    assert system.species["A"].value == pytest.approx(expected, rel=1e-4)
    assert trajectory.final_state() == {"A": system.species["A"].value}


def test_successive_runs_continue_from_written_back_state() -> None:
    system = _decay_system()
    system.simulate(0.0, 1.0)
    system.simulate(1.0, 2.0)
    assert system.species["A"].value == pytest.approx(10.0 * math.exp(-1.0), rel=1e-4)

    system.reset()
    assert system.species["A"].value == 10.0


def test_sample_interval_controls_reported_grid() -> None:
    system = _decay_system()
    trajectory = system.simulate(0.0, 1.0, sample_interval=0.25)
    assert np.allclose(trajectory.time, [0.0, 0.25, 0.5, 0.75, 1.0])
    assert trajectory["A"][0] == pytest.approx(10.0)
    assert np.all(np.diff(trajectory["A"]) < 0.0)

    ragged = _decay_system().simulate(0.0, 1.0, sample_interval=0.3)
    assert np.allclose(ragged.time, [0.0, 0.3, 0.6, 0.9, 1.0])


def test_invalid_ranges_raise_config_error() -> None:
    system = _decay_system()
    with pytest.raises(ConfigError):
        system.simulate(1.0, 0.0)
    with pytest.raises(ConfigError):
        system.simulate(0.0, 1.0, sample_interval=0.0)
    assert system.species["A"].value == 10.0


def test_failed_run_leaves_species_untouched() -> None:
    system = System()
    system.add_species("A", 0.0)
    system.add_species("B", 5.0)
    system.add_parameter("k", 1.0)
    system.define_interaction("inverse", ["a"]).rules["a"].set("k/a")
    system.define_interaction("decay", ["a"]).rules["a"].set("-k*a")
    system.add_interaction("inverse", ["A"], ["k"])
    system.add_interaction("decay", ["B"], ["k"])
    system.compile()

    with pytest.raises(SimulationError):
        system.simulate(0.0, 1.0)
    assert system.state() == {"A": 0.0, "B": 5.0}


def test_stale_model_after_species_removal_is_rejected() -> None:
    system = _decay_system()
    system.add_species("B", 1.0)
    system.compile()
    system.remove_species("B")
    assert system.is_stale
    with pytest.raises(ConfigError):
        system.simulate(0.0, 1.0)


def test_trajectory_exports_frame_and_csv(tmp_path) -> None:
    system = _decay_system()
    trajectory = system.simulate(0.0, 1.0, sample_interval=0.5)
    frame = trajectory.to_frame()
    assert list(frame.columns) == ["time", "A"]
    assert len(frame) == 3

    destination = tmp_path / "out" / "decay.csv"
    trajectory.save_csv(destination)
    assert destination.read_text().splitlines()[0] == "time,A"


def test_derivative_uses_the_model_it_is_given() -> None:
    system = _decay_system()
    model = system.model
    system.add_species("B", 1.0)
    system.add_interaction("decay", ["B"], ["k"])
    system.compile()

    rates = derivative(0.0, np.array([10.0]), model, system)

    assert rates == pytest.approx([-5.0])
    assert len(system.model) == 2
