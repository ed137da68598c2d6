"""Stock interaction templates and the glucose/insulin demonstration model.

The demonstration couples glucagon, insulin and blood glucose through two
third-order feedback interactions, lets meals release glucose through
first-order "bolus absorption" from per-food compartments (each with its own
glycaemic-index rate), and models fast- and long-acting insulin injections as
two-compartment depots that lower glucose in proportion to their potency.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from .system import System

FIRST_ORDER_DECAY = "first order decay"
THIRD_ORDER_AGONIST = "third-order agonist"
THIRD_ORDER_ANTAGONIST = "third-order antagonist"
BOLUS_ABSORPTION = "bolus absorption"
BASAL_PRODUCTION = "basal glucose production"
EXOGENOUS_INSULIN = "exogenous insulin"


@dataclass(frozen=True)
class Food:
    species: str
    bolus: float
    glycaemic_index: float


FOODS: Tuple[Food, ...] = (
    Food("cake", 2.0, 1.0),
    Food("grapes", 0.1, 0.8),
    Food("pizza_slice", 1.0, 0.5),
    Food("rice", 1.5, 1.0),
    Food("steak", 0.5, 0.1),
)

FAST_INSULIN_DEPOT = "Fast-acting insulin_e"
LONG_INSULIN_DEPOT = "Long-acting insulin_e"

_HORMONES: Dict[str, float] = {
    "Glucagon": 1.0,
    "Insulin": 1.0,
    "Glucose": 1.0,
    FAST_INSULIN_DEPOT: 0.0,
    "Fast-acting insulin": 0.0,
    "Long-acting insulin": 0.0,
    LONG_INSULIN_DEPOT: 0.0,
}

_PARAMETERS: Tuple[Tuple[str, float, str], ...] = (
    ("K", 4.1, "glucagon/insulin carrying capacity"),
    ("delta", 0.1, "hormonal degradation rate"),
    ("delta_s", 2.0, "short-acting degradation rate"),
    ("delta_l", 0.025, "long-acting degradation rate"),
    ("k_s", 0.6, "short-acting absorption rate"),
    ("k_l", 0.025, "long-acting absorption rate"),
    ("input", 0.01, "glucose input from tissues"),
    ("eta", 0.1, "glucose output, ie, excretion"),
    ("alpha", 1.0, "glucagon sensitivity"),
    ("beta", 1.0, "insulin sensitivity"),
    ("gamma", 1.0, "beta cell mass"),
    ("p_s", 0.5, "short-acting potency"),
    ("p_l", 0.25, "long-acting potency"),
)


def define_stock_interactions(system: System) -> None:
    """Register the reusable templates used by the demonstration model."""

    system.define_interaction(FIRST_ORDER_DECAY, ["a"]).rules["a"].set("-alpha * a", "first order decay")

    agonist = system.define_interaction(THIRD_ORDER_AGONIST, ["a", "b", "g"])
    agonist.rules["a"].set("a/g*(k-a-b)", "glucose-driven growth")
    agonist.rules["g"].set("alpha*a", "glucagon-driven release")

    antagonist = system.define_interaction(THIRD_ORDER_ANTAGONIST, ["a", "b", "g"])
    antagonist.rules["b"].set("u*a*g*(k-a-b)", "glucose-driven secretion")
    antagonist.rules["g"].set("-beta*b", "insulin-driven uptake")

    bolus = system.define_interaction(BOLUS_ABSORPTION, ["g", "i"])
    bolus.rules["g"].set("gi*i", "absorption into target")
    bolus.rules["i"].set("-gi*i", "depletion of source")

    system.define_interaction(BASAL_PRODUCTION, ["g"]).rules["g"].set("g_in", "basal production")

    exogenous = system.define_interaction(EXOGENOUS_INSULIN, ["g", "b"])
    exogenous.rules["g"].set("-k*b", "insulin-driven uptake")
    exogenous.rules["b"].set("0")


def build_glucose_insulin_system(system: System | None = None) -> System:
    """Build (and compile) the glucose/insulin demonstration model."""

    system = system or System()
    for identifier, initial in _HORMONES.items():
        system.add_species(identifier, initial)
    for identifier, value, description in _PARAMETERS:
        system.add_parameter(identifier, value, description)

    define_stock_interactions(system)

    system.add_interaction(FIRST_ORDER_DECAY, ["Glucagon"], ["delta"])
    system.add_interaction(FIRST_ORDER_DECAY, ["Insulin"], ["delta"])
    system.add_interaction(FIRST_ORDER_DECAY, ["Glucose"], ["eta"])
    system.add_interaction(FIRST_ORDER_DECAY, ["Fast-acting insulin"], ["delta_s"])
    system.add_interaction(FIRST_ORDER_DECAY, ["Long-acting insulin"], ["delta_l"])

    system.add_interaction(THIRD_ORDER_AGONIST, ["Glucagon", "Insulin", "Glucose"], ["K", "alpha"])
    system.add_interaction(THIRD_ORDER_ANTAGONIST, ["Glucagon", "Insulin", "Glucose"], ["gamma", "K", "beta"])

    for idx, food in enumerate(FOODS):
        gi_parameter = f"GI{idx}"
        system.add_species(food.species, 0.0)
        system.add_parameter(gi_parameter, food.glycaemic_index, f"glycaemic index of {food.species}")
        system.add_interaction(BOLUS_ABSORPTION, ["Glucose", food.species], [gi_parameter])
    system.add_interaction(BASAL_PRODUCTION, ["Glucose"], ["input"])

    system.add_interaction(BOLUS_ABSORPTION, ["Fast-acting insulin", FAST_INSULIN_DEPOT], ["k_s"])
    system.add_interaction(BOLUS_ABSORPTION, ["Long-acting insulin", LONG_INSULIN_DEPOT], ["k_l"])
    system.add_interaction(EXOGENOUS_INSULIN, ["Glucose", "Fast-acting insulin"], ["p_s"])
    system.add_interaction(EXOGENOUS_INSULIN, ["Glucose", "Long-acting insulin"], ["p_l"])

    system.compile()
    return system


def food(species: str) -> Food:
    for entry in FOODS:
        if entry.species == species:
            return entry
    raise KeyError(species)


__all__ = [
    "BASAL_PRODUCTION",
    "BOLUS_ABSORPTION",
    "EXOGENOUS_INSULIN",
    "FAST_INSULIN_DEPOT",
    "FIRST_ORDER_DECAY",
    "FOODS",
    "Food",
    "LONG_INSULIN_DEPOT",
    "THIRD_ORDER_AGONIST",
    "THIRD_ORDER_ANTAGONIST",
    "build_glucose_insulin_system",
    "define_stock_interactions",
    "food",
]
