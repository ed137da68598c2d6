"""Caller-owned aggregate of registries, interactions and the compiled model."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from .buffer import StateBuffer
from .compiler import Model, ModelCompiler
from .entities import Parameter, Species, Trajectory
from .errors import (
    ConfigError,
    DuplicateIdentifierError,
    UnknownInteractionError,
    UnknownParameterError,
    UnknownSpeciesError,
)
from .integrator import SolverConfig
from .realtime import ErrorSink, RealTimeConfig, RealTimeSimulation, TickSink
from .simulation import run_batch
from .templates import BindingArgs, InteractionInstance, InteractionTemplate, build_symbol_table, instantiate

logger = logging.getLogger(__name__)


class System:
    """Species and parameter registries plus the live interaction instances.

    Structural changes (adding or removing species, parameters or interactions)
    never rebuild the model on their own; call :meth:`compile` before the next
    :meth:`simulate`. Every mutator holds :attr:`lock`, which real-time ticks
    also hold while integrating, so edits never interleave with a running solve.
    """

    def __init__(self, solver: Optional[SolverConfig] = None):
        self.solver = solver or SolverConfig()
        self.species: Dict[str, Species] = {}
        self.parameters: Dict[str, Parameter] = {}
        self.interactions: Dict[str, InteractionTemplate] = {}
        self.instances: List[InteractionInstance] = []
        self.model: Optional[Model] = None
        self._stale = False
        self.lock = threading.RLock()

    def __repr__(self) -> str:
        return (
            f"System(species={len(self.species)}, parameters={len(self.parameters)}, "
            f"templates={len(self.interactions)}, instances={len(self.instances)})"
        )

    def _touch(self, reason: str) -> None:
        if self.model is not None and not self._stale:
            logger.debug("model is stale after %s; call compile() before simulating", reason)
        self._stale = True

    @property
    def is_stale(self) -> bool:
        return self._stale

    # registries -------------------------------------------------------------

    def _check_free(self, identifier: str) -> None:
        if identifier in self.species or identifier in self.parameters:
            raise DuplicateIdentifierError(f"Identifier {identifier!r} is already registered")

    def add_species(self, identifier: str, initial_value: float, name: Optional[str] = None) -> Species:
        with self.lock:
            self._check_free(identifier)
            entry = Species(identifier, initial_value, name)
            self.species[identifier] = entry
            self._touch(f"adding species {identifier!r}")
        return entry

    def add_parameter(self, identifier: str, value: float, name: Optional[str] = None) -> Parameter:
        with self.lock:
            self._check_free(identifier)
            entry = Parameter(identifier, value, name)
            self.parameters[identifier] = entry
            self._touch(f"adding parameter {identifier!r}")
        return entry

    def species_index(self, identifier: str) -> int:
        """Position of *identifier* in the state vector (declaration order)."""

        try:
            return list(self.species).index(identifier)
        except ValueError:
            raise UnknownSpeciesError(f"Unknown species {identifier!r}") from None

    def set_parameter(self, identifier: str, value: float) -> None:
        with self.lock:
            try:
                self.parameters[identifier].set(value)
            except KeyError:
                raise UnknownParameterError(f"Unknown parameter {identifier!r}") from None

    def remove_species(self, identifier: str) -> int:
        """Remove a species and every instance bound to it; return instances removed."""

        with self.lock:
            if identifier not in self.species:
                raise UnknownSpeciesError(f"Unknown species {identifier!r}")
            removed = self.remove_interactions_by_species([identifier])
            del self.species[identifier]
            self._touch(f"removing species {identifier!r}")
        return removed

    def remove_parameter(self, identifier: str) -> int:
        """Remove a parameter and every instance bound to it; return instances removed."""

        with self.lock:
            if identifier not in self.parameters:
                raise UnknownParameterError(f"Unknown parameter {identifier!r}")
            kept = [instance for instance in self.instances if identifier not in instance.parameters()]
            removed = len(self.instances) - len(kept)
            self.instances = kept
            del self.parameters[identifier]
            self._touch(f"removing parameter {identifier!r}")
        return removed

    # interactions -----------------------------------------------------------

    def define_interaction(self, name: str, variables: Iterable[str]) -> InteractionTemplate:
        with self.lock:
            if name in self.interactions:
                logger.warning("redefining interaction template %r; existing instances keep the old one", name)
            template = InteractionTemplate(name, list(variables))
            self.interactions[name] = template
        return template

    def interaction(self, name: str) -> InteractionTemplate:
        try:
            return self.interactions[name]
        except KeyError:
            raise UnknownInteractionError(f"Interaction template {name!r} is not defined") from None

    def add_interaction(
        self,
        name: str,
        species_args: BindingArgs,
        parameter_args: BindingArgs,
    ) -> InteractionInstance:
        """Bind template *name* to global species and parameters.

        Every argument is validated before anything changes; on error the
        system is left exactly as it was.
        """

        with self.lock:
            template = self.interaction(name)
            symbol_table = build_symbol_table(
                template,
                species_args,
                parameter_args,
                species=self.species.keys(),
                parameters=self.parameters.keys(),
            )
            instance = instantiate(template, symbol_table)
            self.instances.append(instance)
            self._touch(f"adding interaction {name!r}")
        logger.debug("bound %s with %s", name, symbol_table)
        return instance

    def remove_interactions_by_species(self, identifiers: Iterable[str]) -> int:
        targets = set(identifiers)
        with self.lock:
            kept = [instance for instance in self.instances if not targets.intersection(instance.species())]
            removed = len(self.instances) - len(kept)
            if removed:
                self.instances = kept
                self._touch(f"removing {removed} interaction(s) bound to {sorted(targets)}")
        return removed

    def remove_interactions_by_name(self, name: str) -> int:
        with self.lock:
            kept = [instance for instance in self.instances if instance.name != name]
            removed = len(self.instances) - len(kept)
            if not removed:
                logger.warning("no live instances of interaction %r to remove", name)
                return 0
            self.instances = kept
            self._touch(f"removing interaction {name!r}")
        return removed

    # compile & simulate -----------------------------------------------------

    def compile(self) -> Model:
        """Rebuild every rate law and the compiled model from scratch."""

        with self.lock:
            self.model = ModelCompiler(self.species, self.parameters, self.instances).compile()
            self._stale = False
            return self.model

    def require_model(self) -> Model:
        if self.model is None:
            raise ConfigError("System has not been compiled; call compile() first")
        return self.model

    def simulate(
        self,
        t0: float,
        tf: float,
        *,
        solver: Optional[SolverConfig] = None,
        sample_interval: Optional[float] = None,
    ) -> Trajectory:
        if self._stale:
            logger.warning("simulating with a stale model; structural changes since the last compile() are ignored")
        return run_batch(self, t0, tf, solver=solver, sample_interval=sample_interval)

    def reset(self) -> None:
        """Restore every species to its initial value."""

        with self.lock:
            for entry in self.species.values():
                entry.reset()

    def state(self) -> Dict[str, float]:
        with self.lock:
            return {identifier: entry.value for identifier, entry in self.species.items()}

    def simulate_in_real_time(
        self,
        tick_sink: Optional[TickSink] = None,
        config: Optional[RealTimeConfig] = None,
        *,
        on_error: Optional[ErrorSink] = None,
        buffer: Optional[StateBuffer] = None,
        start: bool = True,
    ) -> RealTimeSimulation:
        """Return a handle ticking the compiled model; ``cancel()`` stops it."""

        handle = RealTimeSimulation(self, tick_sink, config, on_error=on_error, buffer=buffer)
        if start:
            handle.start()
        return handle


__all__ = ["System"]
