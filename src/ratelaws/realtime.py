"""Tick-paced simulation that keeps a bounded trajectory window alive.

Each tick integrates one fixed step of ``refresh_rate / 1000 * t_scale`` model
time units from the buffer's latest state, appends the new samples and trims
everything older than ``buffer_size``. Ticks never overlap: a tick that finds
another one in progress is skipped rather than queued.

A tick integrates whatever model the system holds when it starts, under the
system's lock. Species added by a later ``compile()`` join the buffer with a
``NaN`` history seeded from their current value; species dropped by it keep
their history and receive ``NaN`` from then on.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Mapping, Optional

import numpy as np

from .buffer import NO_DATA, StateBuffer
from .errors import ConfigError, RateLawError, SimulationError
from .integrator import SolverConfig, integrate
from .simulation import derivative

if TYPE_CHECKING:  # pragma: no cover
    from .compiler import Model
    from .system import System

logger = logging.getLogger(__name__)

TickSink = Callable[[StateBuffer], None]
ErrorSink = Callable[[Exception], None]


@dataclass(frozen=True)
class RealTimeConfig:
    """Pacing and windowing options for :class:`RealTimeSimulation`."""

    refresh_rate: float = 50.0  # wall-clock milliseconds between ticks
    t_scale: float = 1.0  # model time units per wall-clock second
    buffer_size: float = 2.5  # model time kept in the window
    solver: SolverConfig = field(default_factory=SolverConfig)

    def __post_init__(self) -> None:
        if self.refresh_rate <= 0.0:
            raise ConfigError("refresh_rate must be positive")
        if self.t_scale <= 0.0:
            raise ConfigError("t_scale must be positive")
        if self.buffer_size < 0.0:
            raise ConfigError("buffer_size must be non-negative")

    @property
    def t_step(self) -> float:
        return self.refresh_rate / 1000.0 * self.t_scale

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> "RealTimeConfig":
        options: Dict[str, object] = dict(payload)
        solver_payload = options.pop("solver", None)
        unknown = set(options) - {"refresh_rate", "t_scale", "buffer_size"}
        if unknown:
            raise ConfigError(f"Unknown real-time options: {sorted(unknown)}")
        if solver_payload is not None:
            if not isinstance(solver_payload, Mapping):
                raise ConfigError("solver options must be a mapping")
            options["solver"] = SolverConfig.from_mapping(solver_payload)
        return cls(**options)  # type: ignore[arg-type]


def load_realtime_config(path: Path | str) -> RealTimeConfig:
    """Load a :class:`RealTimeConfig` from a JSON object on disk."""

    with Path(path).open("r", encoding="utf8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, Mapping):
        raise ConfigError(f"{path}: expected a JSON object")
    return RealTimeConfig.from_mapping(payload)


class RealTimeSimulation:
    """Handle for a running (or runnable) real-time simulation."""

    def __init__(
        self,
        system: "System",
        tick_sink: Optional[TickSink] = None,
        config: Optional[RealTimeConfig] = None,
        *,
        on_error: Optional[ErrorSink] = None,
        buffer: Optional[StateBuffer] = None,
    ):
        self.system = system
        self.config = config or RealTimeConfig()
        self.tick_sink = tick_sink
        self.on_error = on_error
        model = system.require_model()
        if buffer is None:
            buffer = StateBuffer.from_values({sid: system.species[sid].value for sid in model.species})
        self.buffer = buffer
        self.ticks = 0
        self.skipped_ticks = 0
        self.last_error: Optional[Exception] = None
        self._busy = threading.Lock()
        self._stop = threading.Event()
        self._paused = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    def start(self) -> "RealTimeSimulation":
        if self._stop.is_set():
            raise RateLawError("A cancelled real-time simulation cannot be restarted")
        if self._thread is None:
            self._thread = threading.Thread(target=self._run_loop, name="ratelaws-realtime", daemon=True)
            self._thread.start()
        return self

    def cancel(self, timeout: Optional[float] = 2.0) -> None:
        """Stop the loop; an in-flight tick finishes, no further tick fires."""

        if self._stop.is_set():
            return
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.info("real-time simulation stopped after %d ticks (%d skipped)", self.ticks, self.skipped_ticks)

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def __enter__(self) -> "RealTimeSimulation":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.cancel()

    def _run_loop(self) -> None:
        period = self.config.refresh_rate / 1000.0
        logger.info(
            "real-time simulation: refresh_rate=%gms t_step=%g buffer_size=%g",
            self.config.refresh_rate,
            self.config.t_step,
            self.config.buffer_size,
        )
        while not self._stop.wait(period):
            if self._paused.is_set():
                continue
            try:
                self.tick()
            except Exception as exc:
                self.last_error = exc
                logger.error("unexpected tick failure, stopping real-time loop: %s", exc, exc_info=True)
                self._stop.set()

    def tick(self) -> bool:
        """Run one tick now. Returns ``False`` if cancelled, skipped or failed."""

        if self._stop.is_set():
            logger.debug("tick ignored: simulation was cancelled")
            return False
        if not self._busy.acquire(blocking=False):
            self.skipped_ticks += 1
            logger.debug("tick skipped: previous tick still in progress")
            return False
        failure: Optional[RateLawError] = None
        try:
            with self.system.lock:
                model = self.system.require_model()
                self._track(model)
                y0 = self.buffer.last_state(model.species)
                solution = integrate(
                    derivative,
                    0.0,
                    self.config.t_step,
                    y0,
                    self.config.solver,
                    args=(model, self.system),
                )
            samples = {sid: solution.states[:, idx] for idx, sid in enumerate(model.species)}
            for sid in self.buffer.species:
                # species dropped by the last compile
                samples.setdefault(sid, np.full(solution.times.shape, NO_DATA))
            try:
                self.buffer.append_shifted(solution.times, samples)
            except ValueError as exc:
                raise SimulationError(f"tick could not extend the buffer: {exc}") from exc
            self.buffer.trim(self.config.buffer_size)
            self.ticks += 1
        except RateLawError as exc:
            failure = exc
        finally:
            self._busy.release()
        if failure is not None:
            self.last_error = failure
            logger.error("tick %d failed: %s", self.ticks + 1, failure)
            if self.on_error is not None:
                self.on_error(failure)
            return False
        if self.tick_sink is not None:
            self.tick_sink(self.buffer)
        return True

    def _track(self, model: "Model") -> None:
        if not len(self.buffer):
            raise SimulationError("Real-time buffer is empty; seed it with at least one sample")
        for sid in model.species:
            if sid in self.buffer.trajectory and not np.isnan(self.buffer.trajectory[sid][-1]):
                continue
            entry = self.system.species.get(sid)
            self.buffer.track(sid, entry.value if entry is not None else NO_DATA)
            logger.info("tracking %s in the real-time buffer from %g", sid, self.buffer.trajectory[sid][-1])

    def perturb(self, species: str, amount: float) -> float:
        """Add *amount* to the latest sample of *species* (e.g. a dose).

        Waits for an in-flight tick; the next tick integrates from the new value.
        """

        with self._busy:
            value = self.buffer.perturb(species, amount)
        logger.info("perturbed %s by %g -> %g at t=%g", species, amount, value, self.buffer.end_time)
        return value

    def commit(self) -> None:
        """Write the buffer's latest state back into the system's species values."""

        with self._busy, self.system.lock:
            for identifier in self.buffer.species:
                latest = float(self.buffer.trajectory[identifier][-1])
                if identifier in self.system.species and not np.isnan(latest):
                    self.system.species[identifier].value = latest


__all__ = ["RealTimeConfig", "RealTimeSimulation", "load_realtime_config"]
