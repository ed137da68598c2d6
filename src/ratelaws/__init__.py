"""Compose ODE models from reusable, parameterised interaction templates."""

from .buffer import NO_DATA, StateBuffer
from .compiler import Model, ModelCompiler
from .entities import CompiledExpression, Parameter, Species, Trajectory
from .errors import (
    ArgumentError,
    ArityMismatchError,
    ConfigError,
    DuplicateIdentifierError,
    RateLawError,
    SimulationError,
    UndefinedSymbolError,
    UnknownInteractionError,
    UnknownParameterError,
    UnknownSpeciesError,
)
from .integrator import SolverConfig
from .realtime import RealTimeConfig, RealTimeSimulation, load_realtime_config
from .system import System
from .templates import InteractionInstance, InteractionTemplate, Rule

__all__ = [
    "NO_DATA",
    "ArgumentError",
    "ArityMismatchError",
    "CompiledExpression",
    "ConfigError",
    "DuplicateIdentifierError",
    "InteractionInstance",
    "InteractionTemplate",
    "Model",
    "ModelCompiler",
    "Parameter",
    "RateLawError",
    "RealTimeConfig",
    "RealTimeSimulation",
    "Rule",
    "SimulationError",
    "SolverConfig",
    "Species",
    "StateBuffer",
    "System",
    "Trajectory",
    "UndefinedSymbolError",
    "UnknownInteractionError",
    "UnknownParameterError",
    "UnknownSpeciesError",
    "load_realtime_config",
]
