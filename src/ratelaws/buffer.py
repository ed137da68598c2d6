"""Time-windowed trajectory cache used by the real-time driver."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .errors import UnknownSpeciesError

NO_DATA = float("nan")


class StateBuffer:
    """Ordered time axis plus one equally long series per species.

    ``time`` is strictly increasing and every ``trajectory[s]`` always has
    ``len(time)`` entries; every mutating method preserves both properties.
    """

    def __init__(
        self,
        time: Optional[Sequence[float]] = None,
        trajectory: Optional[Mapping[str, Sequence[float]]] = None,
    ):
        self.time = np.asarray(time if time is not None else [], dtype=float)
        self.trajectory: Dict[str, np.ndarray] = {
            identifier: np.asarray(series, dtype=float) for identifier, series in (trajectory or {}).items()
        }
        for identifier, series in self.trajectory.items():
            if series.shape != self.time.shape:
                raise ValueError(
                    f"Series {identifier!r} has {series.size} samples but the time axis has {self.time.size}"
                )
        if self.time.size > 1 and not np.all(np.diff(self.time) > 0.0):
            raise ValueError("Buffer time axis must be strictly increasing")

    @classmethod
    def from_values(cls, values: Mapping[str, float], t0: float = 0.0) -> "StateBuffer":
        return cls([t0], {identifier: [value] for identifier, value in values.items()})

    def __len__(self) -> int:
        return int(self.time.size)

    def __repr__(self) -> str:
        span = f"{self.start_time:g}..{self.end_time:g}" if len(self) else "empty"
        return f"StateBuffer(samples={len(self)}, span={span}, species={list(self.trajectory)})"

    @property
    def species(self) -> List[str]:
        return list(self.trajectory.keys())

    @property
    def start_time(self) -> float:
        return float(self.time[0]) if self.time.size else 0.0

    @property
    def end_time(self) -> float:
        return float(self.time[-1]) if self.time.size else 0.0

    def last_state(self, species: Optional[Iterable[str]] = None) -> np.ndarray:
        """Return the most recent sample of *species* (default: every series)."""

        if not self.time.size:
            raise ValueError("Buffer is empty")
        keys = list(species) if species is not None else self.species
        return np.array([self._series(identifier)[-1] for identifier in keys], dtype=float)

    def _series(self, identifier: str) -> np.ndarray:
        try:
            return self.trajectory[identifier]
        except KeyError:
            raise UnknownSpeciesError(f"Species {identifier!r} is not tracked by this buffer") from None

    def append(self, times: Sequence[float], samples: Mapping[str, Sequence[float]]) -> None:
        new_times = np.asarray(times, dtype=float)
        if not new_times.size:
            return
        if set(samples) != set(self.trajectory):
            raise ValueError(
                f"Samples must cover exactly the tracked species {self.species}, got {sorted(samples)}"
            )
        if self.time.size and new_times[0] <= self.time[-1]:
            raise ValueError(f"Appended time {new_times[0]} does not follow buffer end {self.time[-1]}")
        if new_times.size > 1 and not np.all(np.diff(new_times) > 0.0):
            raise ValueError("Appended times must be strictly increasing")
        extensions = {}
        for identifier in self.trajectory:
            series = np.asarray(samples[identifier], dtype=float)
            if series.shape != new_times.shape:
                raise ValueError(f"Series {identifier!r} does not match the appended time axis")
            extensions[identifier] = series
        self.time = np.concatenate([self.time, new_times])
        for identifier, series in extensions.items():
            self.trajectory[identifier] = np.concatenate([self.trajectory[identifier], series])

    def append_shifted(self, times: Sequence[float], samples: Mapping[str, Sequence[float]]) -> None:
        """Append a run that started from this buffer's last state at local time 0.

        Times are shifted by the buffer's end time; the run's leading sample,
        which duplicates the current last sample, is dropped.
        """

        local = np.asarray(times, dtype=float)
        if not local.size:
            return
        keep = local > local[0]
        shifted = local[keep] - local[0] + self.end_time
        self.append(shifted, {identifier: np.asarray(series, dtype=float)[keep] for identifier, series in samples.items()})

    def trim(self, buffer_size: float) -> int:
        """Drop leading samples older than ``latest - buffer_size``.

        Returns the number of samples removed.
        """

        if not self.time.size:
            return 0
        cutoff = self.time[-1] - float(buffer_size)
        keep = self.time >= cutoff
        dropped = int(self.time.size - np.count_nonzero(keep))
        if dropped:
            self.time = self.time[keep]
            for identifier in self.trajectory:
                self.trajectory[identifier] = self.trajectory[identifier][keep]
        return dropped

    def concat(self, other: "StateBuffer") -> "StateBuffer":
        """Splice *other* after this buffer, shifted by this buffer's end time.

        Samples of *other* that land at or before this buffer's end time are
        dropped, even when their values differ; in practice that is *other*'s
        local ``t = 0`` sample, which coincides with our last one. Species
        present on only one side are padded with ``NaN`` for the other side's
        full length.
        """

        shifted = other.time + self.end_time
        if self.time.size and shifted.size and shifted[0] <= self.time[-1]:
            # other starts at local time 0, which coincides with our last sample
            keep = shifted > self.time[-1]
        else:
            keep = np.ones(shifted.shape, dtype=bool)
        species = self.species + [identifier for identifier in other.species if identifier not in self.trajectory]
        trajectory = {}
        for identifier in species:
            head = self.trajectory.get(identifier, np.full(self.time.shape, NO_DATA))
            tail = other.trajectory.get(identifier, np.full(other.time.shape, NO_DATA))[keep]
            trajectory[identifier] = np.concatenate([head, tail])
        return StateBuffer(np.concatenate([self.time, shifted[keep]]), trajectory)

    def track(self, identifier: str, value: float) -> None:
        """Track *identifier*, seeding its latest sample with *value* if it has no data.

        A new series gets a ``NaN`` history; an existing series is only touched
        when its latest sample is ``NaN`` (e.g. a species removed and re-added).
        """

        series = self.trajectory.get(identifier)
        if series is None:
            series = np.full(self.time.shape, NO_DATA)
            self.trajectory[identifier] = series
        if series.size and np.isnan(series[-1]):
            series[-1] = float(value)

    def perturb(self, species: str, amount: float) -> float:
        """Add *amount* to the most recent sample of *species*; return the new value."""

        series = self._series(species)
        if not series.size:
            raise ValueError("Buffer is empty")
        series[-1] = series[-1] + float(amount)
        return float(series[-1])

    def copy(self) -> "StateBuffer":
        return StateBuffer(self.time.copy(), {key: value.copy() for key, value in self.trajectory.items()})

    def to_frame(self) -> pd.DataFrame:
        data = {"time": self.time}
        data.update(self.trajectory)
        return pd.DataFrame(data)


__all__ = ["NO_DATA", "StateBuffer"]
