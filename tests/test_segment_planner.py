"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Tests for the segment planner command protocol.
"""

from __future__ import annotations

import random

import pytest

from services.pacer.models import AidStation, EffortLevel
from services.pacer.planner import (
    ApplyPreset,
    CancelDrag,
    CommitDrag,
    PlannerContext,
    PlannerState,
    RefreshPower,
    SetEffort,
    SetTargetTime,
    StartDrag,
    UpdateDrag,
    apply_command,
    preview_is_valid,
    preview_segments,
)
from services.pacer.segments import generate_segments_from_aid_stations, is_valid_partition
from services.power_service import compute_power_targets
from utils.constants import DEFAULT_INTENSITY_FACTORS


def _run(state, *commands, context=None):
    results = []
    for command in commands:
        result = apply_command(state, command, context)
        results.append(result)
        state = result.state
    return state, results


def _bounds(state):
    return [(s.start_mile, s.end_mile) for s in state.segments]


def test_drag_end_edge_moves_shared_boundary(planner_state):
    """Test dragging segment 1's end from 30 to 35."""
    state, results = _run(planner_state, StartDrag("s1", "end"), UpdateDrag(35.0), CommitDrag())
    assert all(r.accepted for r in results)
    assert _bounds(state) == [(0.0, 35.0), (35.0, 70.0), (70.0, 100.0)]
    assert [s.distance for s in state.segments] == [35.0, 35.0, 30.0]
    assert sum(s.distance for s in state.segments) == 100.0
    assert state.drag is None
    assert is_valid_partition(state.segments, 100.0)


def test_drag_start_edge_moves_previous_end(planner_state):
    """Test dragging segment 3's start couples with segment 2's end only."""
    state, _ = _run(planner_state, StartDrag("s3", "start"), UpdateDrag(64.5), CommitDrag())
    assert _bounds(state) == [(0.0, 30.0), (30.0, 64.5), (64.5, 100.0)]
    assert state.segments[0] == planner_state.segments[0]


def test_commit_keeps_other_fields(planner_state):
    """Test a boundary move leaves names, efforts and times untouched."""
    state, _ = _run(planner_state, StartDrag("s2", "end"), UpdateDrag(80.0), CommitDrag())
    for before, after in zip(planner_state.segments, state.segments):
        assert (before.id, before.start_name, before.end_name) == (after.id, after.start_name, after.end_name)
        assert before.target_time_minutes == after.target_time_minutes
        assert before.effort_level == after.effort_level


@pytest.mark.parametrize("mile", [70.0, 75.0, 0.0, -1.0, 100.5])
def test_commit_rejects_collapsing_or_out_of_range(planner_state, mile):
    """Test dragging onto or past a neighbour's far boundary is refused."""
    state, results = _run(planner_state, StartDrag("s1", "end"), UpdateDrag(mile), CommitDrag())
    commit = results[-1]
    assert not commit.accepted
    assert commit.reason
    assert state.segments == planner_state.segments
    assert state.drag is None


@pytest.mark.parametrize(
    "segment_id, edge",
    [("s1", "start"), ("s3", "end"), ("missing", "end")],
)
def test_start_drag_rejects_fixed_edges_and_unknown_segments(planner_state, segment_id, edge):
    """Test the course start/end and unknown segments cannot be dragged."""
    result = apply_command(planner_state, StartDrag(segment_id, edge))
    assert not result.accepted
    assert result.state is planner_state


def test_start_drag_twice_is_rejected(planner_state):
    state, results = _run(planner_state, StartDrag("s1", "end"), StartDrag("s2", "end"))
    assert results[0].accepted
    assert not results[1].accepted
    assert state.drag.segment_id == "s1"


def test_drag_commands_require_active_drag(planner_state):
    for command in (UpdateDrag(40.0), CommitDrag(), CancelDrag()):
        result = apply_command(planner_state, command)
        assert not result.accepted
        assert result.state is planner_state


def test_update_drag_never_touches_segments(planner_state):
    """Test updates only move the preview, even to invalid positions."""
    state, _ = _run(planner_state, StartDrag("s1", "end"), UpdateDrag(90.0))
    assert state.segments == planner_state.segments
    assert state.drag.initial_mile == 30.0
    assert state.drag.current_mile == 90.0
    assert state.dragging


def test_preview_and_cancel(planner_state):
    """Test preview reflects the drag while the committed state does not."""
    state, _ = _run(planner_state, StartDrag("s1", "end"), UpdateDrag(40.0))
    preview = preview_segments(state)
    assert [(s.start_mile, s.end_mile) for s in preview][:2] == [(0.0, 40.0), (40.0, 70.0)]
    assert preview_is_valid(state)
    assert _bounds(state) == _bounds(planner_state)

    invalid, _ = _run(state, UpdateDrag(75.0))
    assert not preview_is_valid(invalid)
    assert preview_segments(invalid) == invalid.segments

    cancelled, results = _run(state, CancelDrag())
    assert results[0].accepted
    assert cancelled.drag is None
    assert cancelled.segments == planner_state.segments


def test_partition_invariant_over_random_drags(planner_state):
    """Test any sequence of drags keeps the course partitioned."""
    rng = random.Random(7)
    state = planner_state
    accepted = 0
    for _ in range(200):
        seg = rng.choice(state.segments)
        edge = rng.choice(["start", "end"])
        mile = round(rng.uniform(-5.0, 105.0), 1)
        state, results = _run(state, StartDrag(seg.id, edge), UpdateDrag(mile), CommitDrag())
        accepted += results[-1].accepted
        assert state.drag is None
        assert is_valid_partition(state.segments, 100.0)
        assert [s.id for s in state.segments] == ["s1", "s2", "s3"]
    assert accepted > 0


def test_set_effort_recomputes_power(planner_state):
    table = compute_power_targets(250.0, 0.20, DEFAULT_INTENSITY_FACTORS)
    context = PlannerContext(power_table=table)
    result = apply_command(planner_state, SetEffort("s2", EffortLevel.PUSHING), context)
    assert result.accepted
    seg = result.state.segment("s2")
    assert seg.effort_level is EffortLevel.PUSHING
    assert (seg.power_target_low, seg.power_target_high) == (131, 175)
    assert _bounds(result.state) == _bounds(planner_state)


def test_set_effort_rejects_unknown_values(planner_state):
    assert not apply_command(planner_state, SetEffort("s2", "sprint")).accepted
    assert not apply_command(planner_state, SetEffort("nope", EffortLevel.SAFE)).accepted


def test_set_target_time(planner_state):
    result = apply_command(planner_state, SetTargetTime("s1", 95.0))
    assert result.accepted
    assert result.state.segment("s1").target_time_minutes == 95.0
    assert _bounds(result.state) == _bounds(planner_state)

    assert apply_command(planner_state, SetTargetTime("s1", 0.0)).accepted
    rejected = apply_command(planner_state, SetTargetTime("s1", -5.0))
    assert not rejected.accepted
    assert rejected.state is planner_state


def test_input_state_is_never_mutated(planner_state):
    snapshot = planner_state.segments
    _run(planner_state, StartDrag("s1", "end"), UpdateDrag(35.0), CommitDrag(), SetTargetTime("s1", 1.0))
    assert planner_state.segments is snapshot
    assert planner_state.drag is None


@pytest.mark.parametrize(
    "preset, expected",
    [
        ("conservative", ["safe", "safe", "safe"]),
        ("tempo", ["tempo", "tempo", "tempo"]),
        ("aggressive", ["pushing", "tempo", "tempo"]),
    ],
)
def test_apply_preset_uses_mean_gradient(rolling_points, preset, expected):
    """Test presets pick the climb effort only where the mean gradient is >= 2%."""
    segments = generate_segments_from_aid_stations(
        [AidStation("Top", 1.0), AidStation("Flat end", 2.0)], 3.0, 60
    )
    state = PlannerState.from_segments(segments, 3.0)
    table = compute_power_targets(250.0, 0.20, DEFAULT_INTENSITY_FACTORS)
    context = PlannerContext(points=tuple(rolling_points), power_table=table)

    result = apply_command(state, ApplyPreset(preset), context)
    assert result.accepted
    assert [s.effort_level.value for s in result.state.segments] == expected
    assert all(s.power_target_low is not None for s in result.state.segments)


def test_apply_preset_overwrites_manual_efforts(planner_state):
    state, _ = _run(planner_state, SetEffort("s1", EffortLevel.PUSHING), ApplyPreset("conservative"))
    assert all(s.effort_level is EffortLevel.SAFE for s in state.segments)


def test_apply_unknown_preset_is_rejected(planner_state):
    result = apply_command(planner_state, ApplyPreset("reckless"))
    assert not result.accepted
    assert result.state is planner_state


def test_refresh_power_follows_new_table(planner_state):
    """Test power ranges are recomputed for every segment when FTP changes."""
    old = PlannerContext(power_table=compute_power_targets(250.0, 0.20, DEFAULT_INTENSITY_FACTORS))
    state, _ = _run(planner_state, ApplyPreset("tempo"), context=old)
    assert all((s.power_target_low, s.power_target_high) == (126, 168) for s in state.segments)

    new = PlannerContext(power_table=compute_power_targets(300.0, 0.20, DEFAULT_INTENSITY_FACTORS))
    result = apply_command(state, RefreshPower(), new)
    assert result.accepted
    # 300 W at 20% loss -> NP 168, flat 151.2, climb 201.6
    assert all((s.power_target_low, s.power_target_high) == (151, 202) for s in result.state.segments)
    assert [s.effort_level for s in result.state.segments] == [s.effort_level for s in state.segments]
    assert _bounds(result.state) == _bounds(state)

    cleared = apply_command(result.state, RefreshPower()).state
    assert all(s.power_target_low is None for s in cleared.segments)
