from __future__ import annotations

import numpy as np
import pytest
import sympy as sp

from ratelaws import System
from ratelaws.errors import UndefinedSymbolError


def _two_species_system(order) -> System:
    system = System()
    system.add_species("X", 2.0)
    system.add_species("Y", 3.0)
    for identifier, value in (("k1", 0.4), ("k2", 1.5), ("k3", 0.05)):
        system.add_parameter(identifier, value)
    system.define_interaction("decay", ["a"]).rules["a"].set("-k*a")
    transfer = system.define_interaction("transfer", ["a", "b"])
    transfer.rules["a"].set("-k*a*b")
    transfer.rules["b"].set("k*a*b")
    system.define_interaction("inflow", ["a"]).rules["a"].set("k")

    bindings = {
        "decay": ("decay", ["X"], ["k1"]),
        "transfer": ("transfer", ["X", "Y"], ["k2"]),
        "inflow": ("inflow", ["Y"], ["k3"]),
    }
    for key in order:
        system.add_interaction(*bindings[key])
    return system


def test_model_has_one_rate_law_per_species_in_declaration_order() -> None:
    system = _two_species_system(["decay", "transfer", "inflow"])
    model = system.compile()
    assert model.species == ("X", "Y")
    assert len(model) == 2
    assert set(model.parameters) == {"k1", "k2", "k3"}


def test_rate_law_values_do_not_depend_on_registration_order() -> None:
    forward = _two_species_system(["decay", "transfer", "inflow"]).compile()
    backward = _two_species_system(["inflow", "transfer", "decay"]).compile()

    rng = np.random.default_rng(11)
    for x, y in rng.uniform(0.0, 5.0, size=(10, 2)):
        context = {"X": float(x), "Y": float(y), "k1": 0.4, "k2": 1.5, "k3": 0.05}
        assert forward.evaluate(context) == pytest.approx(backward.evaluate(context), abs=1e-12)

    context = {"X": 2.0, "Y": 3.0, "k1": 0.4, "k2": 1.5, "k3": 0.05}
    expected = np.array([-0.4 * 2.0 - 1.5 * 6.0, 1.5 * 6.0 + 0.05])
    assert forward.evaluate(context) == pytest.approx(expected)


def test_rate_laws_are_left_associated_in_registration_order() -> None:
    system = _two_species_system(["decay", "transfer", "inflow"])
    system.add_interaction("decay", ["X"], ["k3"])
    system.compile()

    rate_law = system.species["X"].rate_law
    assert isinstance(rate_law, sp.Add)
    left, right = rate_law.args
    assert {sym.name for sym in right.free_symbols} == {"k3", "X"}
    assert isinstance(left, sp.Add)
    assert {sym.name for sym in left.args[1].free_symbols} == {"k2", "X", "Y"}
    assert {sym.name for sym in left.args[0].free_symbols} == {"k1", "X"}


def test_species_without_interactions_get_zero_rate_law() -> None:
    system = System()
    system.add_species("Idle", 4.0)
    model = system.compile()
    assert system.species["Idle"].rate_law == 0
    assert model.evaluate({"Idle": 4.0}) == pytest.approx([0.0])

    trajectory = system.simulate(0.0, 3.0)
    assert trajectory["Idle"][-1] == pytest.approx(4.0)


def test_compile_rejects_rule_referencing_unknown_name() -> None:
    system = System()
    system.add_species("A", 1.0)
    system.add_parameter("k", 1.0)
    system.define_interaction("leaky", ["a"]).rules["a"].set("-k*a + leak")
    system.add_interaction("leaky", ["A"], {"k": "k", "leak": "k"})
    system.compile()

    instance = system.instances[0]
    instance.rules["A"] = instance.rules["A"] + sp.Symbol("ghost")
    with pytest.raises(UndefinedSymbolError):
        system.compile()


def test_recompile_after_removal_shrinks_model() -> None:
    system = _two_species_system(["decay", "transfer", "inflow"])
    assert len(system.compile()) == 2
    system.remove_species("Y")
    model = system.compile()
    assert len(model) == 1
    assert model.species == ("X",)
    assert "k1" in model.equations()["X"]
    assert model.evaluate({"X": 2.0, "k1": 0.4, "k2": 1.5, "k3": 0.05}) == pytest.approx([-0.8])


def test_compiled_rate_law_reflects_parameter_changes() -> None:
    system = _two_species_system(["decay"])
    model = system.compile()
    assert system.model is model
    first = model.evaluate({"X": 2.0, "Y": 0.0, "k1": 0.4, "k2": 0.0, "k3": 0.0})
    second = model.evaluate({"X": 2.0, "Y": 0.0, "k1": 0.8, "k2": 0.0, "k3": 0.0})
    assert first[0] == pytest.approx(-0.8)
    assert second[0] == pytest.approx(-1.6)
