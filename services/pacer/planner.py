"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Segment planner: every edit is a command applied to an immutable state.

    result = apply_command(state, StartDrag(seg_id, "end"), context)
    result = apply_command(result.state, UpdateDrag(35.0), context)
    result = apply_command(result.state, CommitDrag(), context)

A rejected command returns the input state (or the idle state, for a failed
commit) with accepted=False and a reason; nothing is raised. The drag preview
lives in PlannerState.drag and is only merged into the segments on commit.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Union

from streamlit.logger import get_logger

from services.pacer.models import DragState, Edge, EffortLevel, ElevationPoint, PowerTargetTable, Segment
from services.pacer.segments import sort_segments, with_power_targets
from services.terrain_service import mean_gradient
from utils.constants import CLIMBING_GRADE_PCT, EFFORT_PRESETS

logger = get_logger(__name__)


@dataclass(frozen=True)
class StartDrag:
    segment_id: str
    edge: Edge


@dataclass(frozen=True)
class UpdateDrag:
    current_mile: float


@dataclass(frozen=True)
class CommitDrag:
    pass


@dataclass(frozen=True)
class CancelDrag:
    pass


@dataclass(frozen=True)
class SetEffort:
    segment_id: str
    effort: EffortLevel


@dataclass(frozen=True)
class SetTargetTime:
    segment_id: str
    minutes: float


@dataclass(frozen=True)
class ApplyPreset:
    preset: str


@dataclass(frozen=True)
class RefreshPower:
    """Recompute every segment's power range from the context power table."""


Command = Union[
    StartDrag,
    UpdateDrag,
    CommitDrag,
    CancelDrag,
    SetEffort,
    SetTargetTime,
    ApplyPreset,
    RefreshPower,
]


@dataclass(frozen=True)
class PlannerState:
    segments: tuple[Segment, ...]
    total_distance: float
    drag: Optional[DragState] = None

    @classmethod
    def from_segments(cls, segments: Sequence[Segment], total_distance: float) -> "PlannerState":
        return cls(segments=tuple(sort_segments(segments)), total_distance=float(total_distance))

    @property
    def dragging(self) -> bool:
        return self.drag is not None

    def segment(self, segment_id: str) -> Optional[Segment]:
        return next((seg for seg in self.segments if seg.id == segment_id), None)


@dataclass(frozen=True)
class PlannerContext:
    """Read-only inputs commands may need: the course trace and athlete power."""

    points: tuple[ElevationPoint, ...] = ()
    power_table: Optional[PowerTargetTable] = None


@dataclass(frozen=True)
class CommandResult:
    state: PlannerState
    accepted: bool
    reason: Optional[str] = None


def _accept(state: PlannerState) -> CommandResult:
    return CommandResult(state=state, accepted=True)


def _reject(state: PlannerState, command: Command, reason: str) -> CommandResult:
    logger.debug("Rejected %s: %s", type(command).__name__, reason)
    return CommandResult(state=state, accepted=False, reason=reason)


def _index_of(segments: Sequence[Segment], segment_id: str) -> Optional[int]:
    return next((i for i, seg in enumerate(segments) if seg.id == segment_id), None)


def _adjacent_index(segments: Sequence[Segment], index: int, edge: Edge, boundary: float) -> Optional[int]:
    """Index of the neighbour sharing `boundary` on the given edge, if any."""
    if edge == "end":
        neighbour = index + 1
        if neighbour < len(segments) and segments[neighbour].start_mile == boundary:
            return neighbour
    else:
        neighbour = index - 1
        if neighbour >= 0 and segments[neighbour].end_mile == boundary:
            return neighbour
    return None


def _dragged_segments(
    state: PlannerState,
) -> tuple[Optional[tuple[Segment, ...]], Optional[str]]:
    """Segments after committing the current drag, or (None, reason)."""
    drag = state.drag
    if drag is None:
        return None, "no drag in progress"

    segments = state.segments
    index = _index_of(segments, drag.segment_id)
    if index is None:
        return None, f"unknown segment {drag.segment_id}"

    mile = drag.current_mile
    if math.isnan(mile) or not 0 <= mile <= state.total_distance:
        return None, f"mile {mile} outside [0, {state.total_distance}]"

    neighbour = _adjacent_index(segments, index, drag.edge, drag.initial_mile)
    if neighbour is None:
        return None, f"no segment shares the {drag.edge} boundary at mile {drag.initial_mile}"

    if drag.edge == "end":
        moved = replace(segments[index], end_mile=mile)
        coupled = replace(segments[neighbour], start_mile=mile)
    else:
        moved = replace(segments[index], start_mile=mile)
        coupled = replace(segments[neighbour], end_mile=mile)

    if moved.distance <= 0 or coupled.distance <= 0:
        return None, f"mile {mile} would collapse a segment to zero width"

    updated = list(segments)
    updated[index] = moved
    updated[neighbour] = coupled
    return tuple(updated), None


def preview_segments(state: PlannerState) -> tuple[Segment, ...]:
    """Segments to render while dragging; the committed ones when the drag is invalid."""
    segments, _ = _dragged_segments(state)
    return segments if segments is not None else state.segments


def preview_is_valid(state: PlannerState) -> bool:
    """Whether committing the current drag would be accepted."""
    segments, _ = _dragged_segments(state)
    return segments is not None


def _start_drag(state: PlannerState, command: StartDrag) -> CommandResult:
    if state.dragging:
        return _reject(state, command, "a drag is already in progress")
    if command.edge not in ("start", "end"):
        return _reject(state, command, f"unknown edge {command.edge!r}")

    index = _index_of(state.segments, command.segment_id)
    if index is None:
        return _reject(state, command, f"unknown segment {command.segment_id}")

    segment = state.segments[index]
    initial = segment.start_mile if command.edge == "start" else segment.end_mile
    if _adjacent_index(state.segments, index, command.edge, initial) is None:
        return _reject(state, command, f"the course {command.edge} boundary is fixed")

    drag = DragState(
        segment_id=command.segment_id,
        edge=command.edge,
        initial_mile=initial,
        current_mile=initial,
    )
    return _accept(replace(state, drag=drag))


def _update_drag(state: PlannerState, command: UpdateDrag) -> CommandResult:
    if state.drag is None:
        return _reject(state, command, "no drag in progress")
    return _accept(replace(state, drag=replace(state.drag, current_mile=float(command.current_mile))))


def _commit_drag(state: PlannerState, command: CommitDrag) -> CommandResult:
    if state.drag is None:
        return _reject(state, command, "no drag in progress")

    segments, reason = _dragged_segments(state)
    if segments is None:
        return _reject(replace(state, drag=None), command, reason or "invalid drag")

    logger.debug(
        "Moved %s edge of %s from mile %s to %s",
        state.drag.edge,
        state.drag.segment_id,
        state.drag.initial_mile,
        state.drag.current_mile,
    )
    return _accept(replace(state, segments=segments, drag=None))


def _cancel_drag(state: PlannerState, command: CancelDrag) -> CommandResult:
    if state.drag is None:
        return _reject(state, command, "no drag in progress")
    return _accept(replace(state, drag=None))


def _replace_segment(state: PlannerState, index: int, segment: Segment) -> PlannerState:
    updated = list(state.segments)
    updated[index] = segment
    return replace(state, segments=tuple(updated))


def _set_effort(state: PlannerState, command: SetEffort, context: PlannerContext) -> CommandResult:
    index = _index_of(state.segments, command.segment_id)
    if index is None:
        return _reject(state, command, f"unknown segment {command.segment_id}")
    try:
        effort = EffortLevel(command.effort)
    except ValueError:
        return _reject(state, command, f"unknown effort level {command.effort!r}")

    segment = replace(state.segments[index], effort_level=effort)
    return _accept(_replace_segment(state, index, with_power_targets(segment, context.power_table)))


def _set_target_time(state: PlannerState, command: SetTargetTime) -> CommandResult:
    index = _index_of(state.segments, command.segment_id)
    if index is None:
        return _reject(state, command, f"unknown segment {command.segment_id}")
    minutes = command.minutes
    if minutes is None or math.isnan(minutes) or minutes < 0:
        return _reject(state, command, f"target time must be >= 0, got {minutes!r}")

    segment = replace(state.segments[index], target_time_minutes=float(minutes))
    return _accept(_replace_segment(state, index, segment))


def _apply_preset(state: PlannerState, command: ApplyPreset, context: PlannerContext) -> CommandResult:
    preset = EFFORT_PRESETS.get(command.preset)
    if preset is None:
        return _reject(state, command, f"unknown preset {command.preset!r}")

    default_effort = EffortLevel(preset["defaultEffort"])
    climb_effort = EffortLevel(preset["climbEffort"])

    segments = []
    for seg in state.segments:
        climbing = mean_gradient(context.points, seg.start_mile, seg.end_mile) >= CLIMBING_GRADE_PCT
        effort = climb_effort if climbing else default_effort
        segments.append(with_power_targets(replace(seg, effort_level=effort), context.power_table))

    logger.debug("Applied %s preset to %d segments", command.preset, len(segments))
    return _accept(replace(state, segments=tuple(segments)))


def _refresh_power(state: PlannerState, context: PlannerContext) -> CommandResult:
    segments = tuple(with_power_targets(seg, context.power_table) for seg in state.segments)
    return _accept(replace(state, segments=segments))


def apply_command(
    state: PlannerState, command: Command, context: Optional[PlannerContext] = None
) -> CommandResult:
    """Apply one planner command.

    Args:
        state: Current planner state (never mutated)
        command: One of the planner command types
        context: Course points and power table; defaults to an empty context

    Returns:
        CommandResult with the new state, or the previous one when rejected
    """
    context = context or PlannerContext()

    if isinstance(command, StartDrag):
        return _start_drag(state, command)
    if isinstance(command, UpdateDrag):
        return _update_drag(state, command)
    if isinstance(command, CommitDrag):
        return _commit_drag(state, command)
    if isinstance(command, CancelDrag):
        return _cancel_drag(state, command)
    if isinstance(command, SetEffort):
        return _set_effort(state, command, context)
    if isinstance(command, SetTargetTime):
        return _set_target_time(state, command)
    if isinstance(command, ApplyPreset):
        return _apply_preset(state, command, context)
    if isinstance(command, RefreshPower):
        return _refresh_power(state, context)
    return _reject(state, command, "unsupported command")
