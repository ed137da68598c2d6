"""Aggregate bound interactions into compiled per-species rate laws."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Sequence, Tuple

import numpy as np
import sympy as sp

from . import expressions
from .entities import CompiledExpression, Parameter, Species
from .templates import InteractionInstance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Model:
    """Compiled rate laws ordered like the species declarations."""

    species: Tuple[str, ...]
    parameters: Tuple[str, ...]
    rate_laws: Tuple[CompiledExpression, ...]

    def __len__(self) -> int:
        return len(self.rate_laws)

    def __iter__(self) -> Iterator[CompiledExpression]:
        return iter(self.rate_laws)

    def __getitem__(self, index: int) -> CompiledExpression:
        return self.rate_laws[index]

    def scope(self) -> Tuple[str, ...]:
        return self.species + self.parameters

    def evaluate(self, context: Dict[str, float]) -> np.ndarray:
        derivative = np.zeros(len(self.rate_laws), dtype=float)
        for idx, rate_law in enumerate(self.rate_laws):
            derivative[idx] = rate_law.evaluate(context)
        return derivative

    def equations(self) -> Dict[str, str]:
        """Return ``{species id: rate-law text}`` for inspection and logging."""

        return {
            identifier: expressions.render(rate_law.sympy_expr)
            for identifier, rate_law in zip(self.species, self.rate_laws)
        }


class ModelCompiler:
    """Turns the live instance set into one compiled rate law per species."""

    def __init__(
        self,
        species: Mapping[str, Species],
        parameters: Mapping[str, Parameter],
        instances: Sequence[InteractionInstance],
    ):
        self._species = species
        self._parameters = parameters
        self._instances = instances

    def aggregate(self) -> None:
        """Rebuild every ``Species.rate_law`` from the instances.

        Instances are folded in registration order; the first contribution is
        copied and later ones are added on the right, so the resulting tree is
        reproducible for a fixed registration order.
        """

        for entry in self._species.values():
            entry.rate_law = None
        for instance in self._instances:
            for target, term in instance.rules.items():
                entry = self._species[target]
                if entry.rate_law is None:
                    entry.rate_law = expressions.clone(term)
                else:
                    entry.rate_law = expressions.combine(entry.rate_law, expressions.clone(term))
        for entry in self._species.values():
            if entry.rate_law is None:
                entry.rate_law = sp.Integer(0)

    def compile(self) -> Model:
        self.aggregate()
        scope = set(self._species) | set(self._parameters)
        rate_laws = []
        for identifier, entry in self._species.items():
            rate_laws.append(expressions.compile_expression(entry.rate_law, scope))
            logger.debug("d(%s)/dt = %s", identifier, expressions.render(entry.rate_law))
        model = Model(
            species=tuple(self._species.keys()),
            parameters=tuple(self._parameters.keys()),
            rate_laws=tuple(rate_laws),
        )
        logger.info(
            "compiled model: species=%d parameters=%d interactions=%d",
            len(model.species),
            len(model.parameters),
            len(self._instances),
        )
        return model


__all__ = ["Model", "ModelCompiler"]
