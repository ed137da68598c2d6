"""Command line driver for the glucose/insulin demonstration model.

Batch mode integrates the model once and writes the trajectory as CSV. Real-time
mode ticks the model for a fixed number of refresh periods, optionally eating a
meal or injecting insulin after the first tick, and writes the final buffer
window instead.

Typical usage::

    python -m scripts.run_glucose_demo --days 5 --sample-interval 0.1 \
        --output artifacts/glucose.csv

    python -m scripts.run_glucose_demo --realtime --ticks 40 --meal cake \
        --config configs/realtime.json
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Iterable

from ratelaws import RateLawError, RealTimeConfig, load_realtime_config
from ratelaws.library import FAST_INSULIN_DEPOT, LONG_INSULIN_DEPOT, FOODS, build_glucose_insulin_system, food

LOGGER = logging.getLogger("run_glucose_demo")

_DEFAULT_OUTPUT = Path("artifacts") / "glucose_demo.csv"


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate the glucose/insulin interaction model")
    parser.add_argument("--days", type=float, default=2.5, help="Batch simulation horizon (default: 2.5)")
    parser.add_argument(
        "--sample-interval",
        type=float,
        default=0.1,
        help="Spacing of reported samples in batch mode (default: 0.1)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=_DEFAULT_OUTPUT,
        help=f"Destination CSV (default: {_DEFAULT_OUTPUT})",
    )
    parser.add_argument("--realtime", action="store_true", help="Run the tick-paced simulation instead")
    parser.add_argument("--ticks", type=int, default=20, help="Number of ticks in real-time mode (default: 20)")
    parser.add_argument("--config", type=Path, default=None, help="JSON file with real-time options")
    parser.add_argument(
        "--meal",
        choices=[entry.species for entry in FOODS],
        default=None,
        help="Food eaten at the start of the run",
    )
    parser.add_argument("--fast-insulin", type=float, default=0.0, help="Fast-acting insulin units injected")
    parser.add_argument("--long-insulin", type=float, default=0.0, help="Long-acting insulin units injected")
    parser.add_argument(
        "--print-equations",
        action="store_true",
        help="Log every compiled rate law before simulating",
    )
    parser.add_argument("--verbose", action="store_true", help="Emit debug logging")
    return parser.parse_args(argv)


def _run_batch(args: argparse.Namespace) -> int:
    system = build_glucose_insulin_system()
    if args.meal:
        system.species[args.meal].value += food(args.meal).bolus
    system.species[FAST_INSULIN_DEPOT].value += args.fast_insulin
    system.species[LONG_INSULIN_DEPOT].value += args.long_insulin
    if args.print_equations:
        for identifier, equation in system.model.equations().items():
            LOGGER.info("d(%s)/dt = %s", identifier, equation)
    trajectory = system.simulate(0.0, args.days, sample_interval=args.sample_interval)
    trajectory.save_csv(args.output)
    LOGGER.info("Wrote %d samples to %s (final glucose %.4f)", trajectory.time.size, args.output, system.species["Glucose"].value)
    return 0


def _run_realtime(args: argparse.Namespace) -> int:
    config = load_realtime_config(args.config) if args.config else RealTimeConfig()
    system = build_glucose_insulin_system()
    handle = system.simulate_in_real_time(config=config, start=False)
    handle.tick()
    if args.meal:
        handle.perturb(args.meal, food(args.meal).bolus)
    if args.fast_insulin:
        handle.perturb(FAST_INSULIN_DEPOT, args.fast_insulin)
    if args.long_insulin:
        handle.perturb(LONG_INSULIN_DEPOT, args.long_insulin)
    with handle:
        deadline = time.monotonic() + 10.0 * config.refresh_rate / 1000.0 * args.ticks
        while handle.ticks < args.ticks and time.monotonic() < deadline:
            if handle.last_error is not None:
                break
            time.sleep(config.refresh_rate / 1000.0)
    if handle.last_error is not None:
        LOGGER.error("Real-time run failed: %s", handle.last_error)
        return 1
    frame = handle.buffer.to_frame()
    args.output.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(args.output, index=False)
    LOGGER.info("Wrote %d-sample window (%d ticks) to %s", len(frame), handle.ticks, args.output)
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)
    try:
        if args.realtime:
            return _run_realtime(args)
        return _run_batch(args)
    except RateLawError as exc:
        LOGGER.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
