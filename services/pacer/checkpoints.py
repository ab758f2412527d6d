"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Checkpoint export: cumulative target times, arrival clock times against
cutoffs, and the flat snapshot handed to the bike computer sync.
"""

from __future__ import annotations

import datetime as dt
import json
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from streamlit.logger import get_logger

from services.pacer.models import (
    AidStation,
    Checkpoint,
    CheckpointTiming,
    EffortLevel,
    PowerTargetTable,
    Segment,
)
from services.pacer.segments import sort_segments
from utils.constants import CUTOFF_CAUTION_MARGIN_MIN, CUTOFF_SAFE_MARGIN_MIN, DEFAULT_RACE_START_TIME
from utils.formatting import format_clock, format_time_of_day
from utils.helpers import round_half_up

logger = get_logger(__name__)

MINUTES_PER_DAY = 24 * 60


def format_target_time(minutes: float) -> str:
    """Cumulative minutes as H:MM, e.g. 125 -> '2:05'."""
    return format_clock(minutes)


def required_speed_mph(distance_miles: float, minutes: float) -> float:
    """Average speed needed to cover a distance in the given time, 0 without time."""
    if minutes is None or minutes <= 0:
        return 0.0
    return distance_miles / minutes * 60


def export_checkpoints(segments: Iterable[Segment]) -> List[Checkpoint]:
    """One checkpoint per segment end, carrying the cumulative target time.

    No checkpoint is emitted for the course start. A segment without an end
    name is exported as 'Checkpoint N' (1-based position).
    """
    checkpoints = []
    cumulative = 0.0
    for index, seg in enumerate(sort_segments(segments)):
        cumulative += seg.target_time_minutes
        checkpoints.append(
            Checkpoint(
                name=seg.end_name or f"Checkpoint {index + 1}",
                mile=seg.end_mile,
                target_minutes=cumulative,
                effort=EffortLevel(seg.effort_level),
                target_time=format_target_time(cumulative),
                speed_mph=required_speed_mph(seg.distance, seg.target_time_minutes),
            )
        )
    return checkpoints


def parse_clock(value: str) -> int:
    """'HH:MM' (24h) to minutes after midnight.

    Raises:
        ValueError: if the value is not a valid 24h clock time
    """
    parsed = dt.datetime.strptime(value.strip(), "%H:%M")
    return parsed.hour * 60 + parsed.minute


def _time_of_day(minutes_after_midnight: float) -> dt.time:
    total = int(round(minutes_after_midnight)) % MINUTES_PER_DAY
    return dt.time(hour=total // 60, minute=total % 60)


def cutoff_status(margin_minutes: float) -> str:
    if margin_minutes >= CUTOFF_SAFE_MARGIN_MIN:
        return "safe"
    if margin_minutes >= CUTOFF_CAUTION_MARGIN_MIN:
        return "caution"
    return "danger"


def _cutoff_margin(start_minutes: int, elapsed_minutes: float, cutoff: str) -> Optional[int]:
    """Minutes between arrival and cutoff (negative when late).

    The cutoff refers to the first occurrence of that clock time at or after
    the race start, so overnight cutoffs land on the next day.
    """
    try:
        cutoff_minutes = parse_clock(cutoff)
    except ValueError:
        logger.warning("Ignoring invalid cutoff time %r", cutoff)
        return None
    while cutoff_minutes < start_minutes:
        cutoff_minutes += MINUTES_PER_DAY
    arrival = start_minutes + elapsed_minutes
    return int(round(cutoff_minutes - arrival))


def checkpoint_arrivals(
    segments: Sequence[Segment],
    start_time: str = DEFAULT_RACE_START_TIME,
    aid_stations: Iterable[AidStation] = (),
) -> List[CheckpointTiming]:
    """Arrival clock time at the start and at every segment end.

    Args:
        segments: Segment partition (any order; sorted by order here)
        start_time: Race start, 'HH:MM' 24h clock
        aid_stations: Stations whose cutoff_time is matched to checkpoints by name

    Returns:
        Start row followed by one row per segment end

    Raises:
        ValueError: if start_time is not a valid clock time
    """
    start_minutes = parse_clock(start_time)
    cutoffs: Dict[str, str] = {
        station.name: station.cutoff_time for station in aid_stations if station.cutoff_time
    }

    ordered = sort_segments(segments)
    timings = [
        CheckpointTiming(
            name=ordered[0].start_name if ordered else "Start",
            mile=ordered[0].start_mile if ordered else 0.0,
            elapsed_minutes=0.0,
            arrival_time=format_time_of_day(_time_of_day(start_minutes)),
        )
    ]

    elapsed = 0.0
    for seg in ordered:
        elapsed += seg.target_time_minutes
        timing = CheckpointTiming(
            name=seg.end_name,
            mile=seg.end_mile,
            elapsed_minutes=elapsed,
            arrival_time=format_time_of_day(_time_of_day(start_minutes + elapsed)),
        )
        cutoff = cutoffs.get(seg.end_name)
        if cutoff:
            margin = _cutoff_margin(start_minutes, elapsed, cutoff)
            if margin is not None:
                timing = replace(
                    timing,
                    cutoff_time=cutoff,
                    cutoff_margin=margin,
                    cutoff_status=cutoff_status(margin),
                )
        timings.append(timing)
    return timings


def total_target_minutes(segments: Iterable[Segment]) -> float:
    return sum(seg.target_time_minutes for seg in segments)


def _power_snapshot(table: PowerTargetTable) -> Dict[str, float]:
    safe, tempo, pushing = EffortLevel.SAFE, EffortLevel.TEMPO, EffortLevel.PUSHING
    return {
        "ftp": table.base_ftp,
        "adjustedFtp": table.adjusted_ftp,
        "safe": table.normalized_power[safe],
        "tempo": table.normalized_power[tempo],
        "pushing": table.normalized_power[pushing],
        "climbSafe": table.climbing_power[safe],
        "climbTempo": table.climbing_power[tempo],
        "climbPushing": table.climbing_power[pushing],
        "flatSafe": table.flat_power[safe],
        "flatTempo": table.flat_power[tempo],
        "flatPushing": table.flat_power[pushing],
    }


def build_device_snapshot(
    segments: Sequence[Segment],
    power_table: Optional[PowerTargetTable] = None,
    race_name: str = "Race Plan",
    distance_name: str = "",
    distance_miles: float = 0.0,
    goal_time_minutes: Optional[float] = None,
    athlete_name: str = "Athlete",
    exported_at: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """Flat, JSON-serialisable plan summary for the device sync collaborator."""
    exported_at = exported_at or dt.datetime.now(dt.timezone.utc)
    checkpoints = [
        {
            "name": cp.name,
            "mile": cp.mile,
            "targetTime": cp.target_time,
            "targetMinutes": cp.target_minutes,
            "effort": cp.effort.value,
            "speedMph": round_half_up(cp.speed_mph, 1),
        }
        for cp in export_checkpoints(segments)
    ]
    return {
        "raceName": race_name or "Race Plan",
        "distanceName": distance_name or "",
        "distanceMiles": distance_miles or 0.0,
        "goalTimeMinutes": goal_time_minutes,
        "goalTimeFormatted": format_clock(goal_time_minutes) if goal_time_minutes else None,
        "goalSpeedMph": (
            round_half_up(required_speed_mph(distance_miles, goal_time_minutes), 1)
            if goal_time_minutes
            else None
        ),
        "checkpoints": checkpoints,
        "power": _power_snapshot(power_table) if power_table is not None else None,
        "athleteName": athlete_name or "Athlete",
        "exportedAt": exported_at.isoformat(),
    }


def snapshot_to_json(snapshot: Dict[str, Any]) -> str:
    return json.dumps(snapshot, indent=2)
