from __future__ import annotations

import math

import numpy as np
import pytest

from ratelaws import StateBuffer
from ratelaws.errors import UnknownSpeciesError


def _ramp(end: int = 25) -> StateBuffer:
    time = np.arange(0.0, end + 1.0)
    return StateBuffer(time, {"A": time * 2.0, "B": -time})


def test_trim_keeps_recent_window() -> None:
    buffer = _ramp()
    dropped = buffer.trim(10.0)

    assert dropped == 15
    assert buffer.time[0] == pytest.approx(15.0)
    assert buffer.time[-1] == pytest.approx(25.0)
    assert np.all(buffer.time >= 15.0)
    for series in buffer.trajectory.values():
        assert series.size == buffer.time.size
    assert buffer.trajectory["A"][0] == pytest.approx(30.0)


def test_trim_on_empty_buffer_is_noop() -> None:
    buffer = StateBuffer()
    assert buffer.trim(1.0) == 0
    assert len(buffer) == 0


def test_constructor_rejects_ragged_or_unordered_input() -> None:
    with pytest.raises(ValueError):
        StateBuffer([0.0, 1.0], {"A": [1.0]})
    with pytest.raises(ValueError):
        StateBuffer([0.0, 0.0], {"A": [1.0, 1.0]})


def test_append_validates_before_mutating() -> None:
    buffer = _ramp(3)
    with pytest.raises(ValueError):
        buffer.append([3.0], {"A": [1.0], "B": [1.0]})
    with pytest.raises(ValueError):
        buffer.append([4.0], {"A": [1.0]})
    with pytest.raises(ValueError):
        buffer.append([4.0, 5.0], {"A": [1.0, 2.0], "B": [1.0]})
    assert len(buffer) == 4
    assert all(series.size == 4 for series in buffer.trajectory.values())

    buffer.append([4.0, 5.0], {"A": [8.0, 10.0], "B": [-4.0, -5.0]})
    assert buffer.end_time == 5.0
    assert buffer.last_state() == pytest.approx([10.0, -5.0])


def test_append_shifted_drops_duplicate_start_sample() -> None:
    buffer = StateBuffer.from_values({"A": 1.0}, t0=2.0)
    buffer.append_shifted([0.0, 0.1, 0.2], {"A": [1.0, 0.9, 0.8]})
    assert buffer.time == pytest.approx([2.0, 2.1, 2.2])
    assert buffer.trajectory["A"] == pytest.approx([1.0, 0.9, 0.8])


def test_concat_pads_missing_species_with_nan() -> None:
    head = StateBuffer([0.0, 1.0], {"A": [1.0, 2.0], "B": [5.0, 6.0]})
    tail = StateBuffer([0.0, 0.5, 1.0], {"A": [2.0, 3.0, 4.0], "C": [7.0, 8.0, 9.0]})

    joined = head.concat(tail)

    assert joined.time == pytest.approx([0.0, 1.0, 1.5, 2.0])
    assert joined.species == ["A", "B", "C"]
    assert joined.trajectory["A"] == pytest.approx([1.0, 2.0, 3.0, 4.0])
    assert joined.trajectory["B"][:2] == pytest.approx([5.0, 6.0])
    assert np.all(np.isnan(joined.trajectory["B"][2:]))
    assert np.all(np.isnan(joined.trajectory["C"][:2]))
    assert joined.trajectory["C"][2:] == pytest.approx([8.0, 9.0])
    assert len(head) == 2


def test_perturb_adds_to_latest_sample_only() -> None:
    buffer = _ramp(2)
    assert buffer.perturb("A", 1.5) == pytest.approx(5.5)
    assert buffer.trajectory["A"] == pytest.approx([0.0, 2.0, 5.5])
    with pytest.raises(UnknownSpeciesError):
        buffer.perturb("Z", 1.0)


def test_copy_is_independent() -> None:
    buffer = _ramp(2)
    clone = buffer.copy()
    clone.perturb("B", 10.0)
    assert buffer.trajectory["B"][-1] == pytest.approx(-2.0)
    assert math.isclose(clone.trajectory["B"][-1], 8.0)


def test_to_frame_has_time_column_first() -> None:
    frame = _ramp(1).to_frame()
    assert list(frame.columns) == ["time", "A", "B"]
    assert len(frame) == 2


def test_concat_drops_other_sample_landing_on_the_junction() -> None:
    head = StateBuffer([0.0, 1.0], {"A": [1.0, 2.0]})
    tail = StateBuffer([0.0, 0.5], {"A": [9.0, 3.0]})

    joined = head.concat(tail)

    assert joined.time == pytest.approx([0.0, 1.0, 1.5])
    assert joined.trajectory["A"] == pytest.approx([1.0, 2.0, 3.0])


def test_track_adds_nan_history_and_seeds_latest_sample() -> None:
    buffer = _ramp(2)
    buffer.track("C", 4.0)
    assert np.all(np.isnan(buffer.trajectory["C"][:-1]))
    assert buffer.trajectory["C"][-1] == pytest.approx(4.0)

    buffer.track("A", 100.0)
    assert buffer.trajectory["A"][-1] == pytest.approx(4.0)

    buffer.append([3.0], {"A": [6.0], "B": [-3.0], "C": [np.nan]})
    buffer.track("C", 5.0)
    assert buffer.trajectory["C"][-1] == pytest.approx(5.0)
    assert buffer.trajectory["C"][-2] == pytest.approx(4.0)
