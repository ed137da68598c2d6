"""Interaction templates and their bound instances.

A template owns one :class:`Rule` per local variable symbol. Binding a template
maps every local variable onto a registered species and every remaining symbol
(its parameters) onto a registered parameter, then rewrites a fresh copy of
each rule so the instance refers only to global identifiers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import sympy as sp

from . import expressions
from .errors import ArgumentError, ArityMismatchError, UnknownParameterError, UnknownSpeciesError

logger = logging.getLogger(__name__)

BindingArgs = Union[Sequence[str], Mapping[str, str]]


@dataclass
class Rule:
    """One additive rate-law term scoped to a single local variable."""

    name: Optional[str] = None
    expression: Optional[sp.Expr] = None

    def set(self, expression: str, name: Optional[str] = None) -> "Rule":
        self.expression = expressions.parse(expression)
        self.name = name
        return self

    @property
    def is_set(self) -> bool:
        return self.expression is not None

    def __str__(self) -> str:
        return expressions.render(self.expression)


class InteractionTemplate:
    """A reusable, parametric subsystem definition."""

    def __init__(self, name: str, variables: Sequence[str]):
        self.name = name
        self.rules: Dict[str, Rule] = {}
        for variable in variables:
            self.rules[variable] = Rule()

    def __repr__(self) -> str:
        return f"InteractionTemplate(name={self.name!r}, variables={self.variables()!r})"

    def rule(self, variable: str) -> Rule:
        return self.rules[variable]

    def variables(self) -> List[str]:
        return list(self.rules.keys())

    def parameters(self) -> List[str]:
        """Return the non-variable symbols in first-seen order across rules.

        Rules are scanned in declaration order and each tree in pre-order.
        The order is load-bearing: positional binding relies on it.
        """

        variables = self.variables()
        collected: List[str] = []
        for rule in self.rules.values():
            for name in expressions.symbol_names(rule.expression):
                if name not in variables and name not in collected:
                    collected.append(name)
        return collected


@dataclass
class InteractionInstance:
    """A template bound to global identifiers, holding substituted rules."""

    template: InteractionTemplate
    binding: Dict[str, str]
    rules: Dict[str, sp.Expr] = field(default_factory=dict)
    variables: Tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.template.name

    def species(self) -> Tuple[str, ...]:
        return tuple(self.binding[variable] for variable in self.variables)

    def parameters(self) -> Tuple[str, ...]:
        return tuple(value for key, value in self.binding.items() if key not in self.variables)


def _as_pairs(symbols: Sequence[str], args: BindingArgs, kind: str) -> List[Tuple[str, str]]:
    if isinstance(args, Mapping):
        if set(args.keys()) != set(symbols):
            raise ArityMismatchError(f"Expected {kind} {list(symbols)}, got {sorted(args.keys())}")
        return [(symbol, args[symbol]) for symbol in symbols]
    if len(args) != len(symbols):
        raise ArityMismatchError(f"Expected {kind} {list(symbols)}, got {list(args)}")
    return list(zip(symbols, args))


def _values(args: BindingArgs) -> List[str]:
    if isinstance(args, str):
        raise ArgumentError(f"Binding arguments must be a sequence or mapping, got string {args!r}")
    if isinstance(args, Mapping):
        return list(args.values())
    return list(args)


def build_symbol_table(
    template: InteractionTemplate,
    species_args: BindingArgs,
    parameter_args: BindingArgs,
    *,
    species: Collection[str],
    parameters: Collection[str],
) -> Dict[str, str]:
    """Validate binding arguments and map local symbols to global identifiers.

    Sequences bind positionally against :meth:`InteractionTemplate.variables`
    and :meth:`InteractionTemplate.parameters`; mappings bind by local name.
    Nothing is mutated, so a raised error leaves the caller's state intact.
    """

    for identifier in _values(species_args):
        if identifier not in species:
            raise UnknownSpeciesError(f"{template.name}: unknown species argument {identifier!r}")
    for identifier in _values(parameter_args):
        if identifier not in parameters:
            raise UnknownParameterError(f"{template.name}: unknown parameter argument {identifier!r}")

    variable_pairs = _as_pairs(template.variables(), species_args, "variables")
    parameter_pairs = _as_pairs(template.parameters(), parameter_args, "parameters")

    symbol_table: Dict[str, str] = {}
    symbol_table.update(variable_pairs)
    symbol_table.update(parameter_pairs)
    return symbol_table


def instantiate(template: InteractionTemplate, symbol_table: Mapping[str, str]) -> InteractionInstance:
    """Substitute *symbol_table* into a fresh copy of every template rule."""

    substituted: Dict[str, sp.Expr] = {}
    for variable, rule in template.rules.items():
        if rule.expression is None:
            continue
        target = symbol_table[variable]
        term = expressions.substitute(rule.expression, symbol_table)
        if target in substituted:
            # two local variables bound to the same species
            term = expressions.combine(substituted[target], term)
        substituted[target] = term
        logger.debug("%s: %s -> d(%s)/dt += %s", template.name, rule, target, expressions.render(term))
    return InteractionInstance(
        template=template,
        binding=dict(symbol_table),
        rules=substituted,
        variables=tuple(template.variables()),
    )


__all__ = [
    "BindingArgs",
    "InteractionInstance",
    "InteractionTemplate",
    "Rule",
    "build_symbol_table",
    "instantiate",
]
