"""Domain-specific exceptions for the rate-law composer."""

from __future__ import annotations


class RateLawError(RuntimeError):
    """Base class for rate-law composer errors."""


class ConfigError(RateLawError):
    """Raised when solver, time span or real-time configuration is invalid."""


class ArgumentError(RateLawError):
    """Raised when an operation receives arguments that do not resolve."""


class UnknownSpeciesError(ArgumentError):
    """Raised when an argument names a species that is not registered."""


class UnknownParameterError(ArgumentError):
    """Raised when an argument names a parameter that is not registered."""


class UnknownInteractionError(ArgumentError):
    """Raised when an interaction template name has not been defined."""


class ArityMismatchError(ArgumentError):
    """Raised when binding arguments do not match a template's symbols."""


class DuplicateIdentifierError(ArgumentError):
    """Raised when a species or parameter identifier is already taken."""


class UndefinedSymbolError(RateLawError):
    """Raised when a rate law references a name missing from the scope."""


class SimulationError(RateLawError):
    """Raised when the numerical solver fails or produces non-finite values."""


__all__ = [
    "RateLawError",
    "ConfigError",
    "ArgumentError",
    "UnknownSpeciesError",
    "UnknownParameterError",
    "UnknownInteractionError",
    "ArityMismatchError",
    "DuplicateIdentifierError",
    "UndefinedSymbolError",
    "SimulationError",
]
