"""Core dataclasses shared across the rate-law composer."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
import sympy as sp

from .errors import UndefinedSymbolError


@dataclass
class Species:
    """A named state variable of the modelled system."""

    identifier: str
    initial_value: float
    name: Optional[str] = None
    value: float = field(default=0.0, init=False)
    rate_law: Optional[sp.Expr] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.initial_value = float(self.initial_value)
        self.value = self.initial_value

    def reset(self) -> None:
        self.value = self.initial_value


@dataclass
class Parameter:
    """A named constant referenced by rules; the value may change between runs."""

    identifier: str
    value: float
    name: Optional[str] = None

    def __post_init__(self) -> None:
        self.value = float(self.value)

    def set(self, value: float) -> None:
        self.value = float(value)


@dataclass(frozen=True)
class CompiledExpression:
    tokens: Tuple[str, ...]
    func: object
    sympy_expr: Optional[sp.Expr] = None

    def evaluate(self, context: Dict[str, float]) -> float:
        result = self.evaluate_raw(context)
        return float(result)

    def evaluate_raw(self, context: Dict[str, float]):
        if not self.tokens:
            return self.func()
        try:
            values = [context[token] for token in self.tokens]
        except KeyError as exc:
            raise UndefinedSymbolError(
                f"Symbol {exc.args[0]!r} in '{self.sympy_expr}' is not defined in the evaluation scope"
            ) from exc
        return self.func(*values)


@dataclass(frozen=True)
class Trajectory:
    """Container describing the output of a batch simulation."""

    time: np.ndarray
    values: Dict[str, np.ndarray] = field(default_factory=dict)

    def __getitem__(self, identifier: str) -> np.ndarray:
        return self.values[identifier]

    def species(self) -> Tuple[str, ...]:
        return tuple(self.values.keys())

    def final_state(self) -> Dict[str, float]:
        return {identifier: float(series[-1]) for identifier, series in self.values.items()}

    def to_frame(self) -> pd.DataFrame:
        """Return the trajectory as a tidy :class:`pandas.DataFrame`."""

        data = {"time": self.time}
        data.update(self.values)
        return pd.DataFrame(data)

    def save_csv(self, path: Path, **to_csv_kwargs) -> None:
        frame = self.to_frame()
        path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(path, index=False, **to_csv_kwargs)


__all__ = ["CompiledExpression", "Parameter", "Species", "Trajectory"]
