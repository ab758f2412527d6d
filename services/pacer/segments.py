"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Segment partition model: invariant checks, derived fields, initial segmentation.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional, Sequence

from streamlit.logger import get_logger

from services.pacer.models import AidStation, EffortLevel, ElevationPoint, PowerTargetTable, Segment
from services.power_service import power_range
from services.terrain_service import segment_elevation
from utils.constants import (
    CLIMB_PENALTY_PER_GRADE_PCT,
    DEFAULT_SEGMENT_EFFORT,
    DESCENT_BONUS_PER_GRADE_PCT,
    FINISH_NAME,
    MAX_DIFFICULTY,
    MILES_TO_FEET,
    MIN_DIFFICULTY,
    START_NAME,
)
from utils.helpers import round_int
from utils.ids import new_id

logger = get_logger(__name__)


def sort_segments(segments: Iterable[Segment]) -> list[Segment]:
    return sorted(segments, key=lambda seg: seg.order)


def partition_errors(segments: Sequence[Segment], total_distance: float) -> list[str]:
    """List every way the segments fail to partition [0, total_distance].

    A valid partition is sorted by order with consecutive orders, starts at 0,
    ends at total_distance, has each start equal to the previous end, and no
    segment of zero or negative width.

    Returns:
        Empty list when the partition is valid
    """
    if not segments:
        return ["no segments"]

    errors = []
    ordered = list(segments)
    orders = [seg.order for seg in ordered]
    if orders != sorted(orders):
        errors.append("segments are not sorted by order")
        ordered = sort_segments(ordered)
    if [seg.order for seg in ordered] != list(range(ordered[0].order, ordered[0].order + len(ordered))):
        errors.append("segment orders are not consecutive")

    if ordered[0].start_mile != 0:
        errors.append(f"first segment starts at {ordered[0].start_mile}, not 0")
    if ordered[-1].end_mile != total_distance:
        errors.append(f"last segment ends at {ordered[-1].end_mile}, not {total_distance}")

    for seg in ordered:
        if seg.end_mile <= seg.start_mile:
            errors.append(f"segment {seg.id} has non-positive width")
    for prev, curr in zip(ordered, ordered[1:]):
        if curr.start_mile != prev.end_mile:
            errors.append(
                f"gap or overlap between {prev.id} (ends {prev.end_mile}) "
                f"and {curr.id} (starts {curr.start_mile})"
            )
    return errors


def is_valid_partition(segments: Sequence[Segment], total_distance: float) -> bool:
    return not partition_errors(segments, total_distance)


def with_power_targets(segment: Segment, table: Optional[PowerTargetTable]) -> Segment:
    """Recompute the segment's power range from its effort level."""
    if table is None:
        return replace(segment, power_target_low=None, power_target_high=None)
    low, high = power_range(table, segment.effort_level)
    return replace(segment, power_target_low=low, power_target_high=high)


def terrain_difficulty(distance_miles: float, gain_ft: float, loss_ft: float) -> float:
    """Time multiplier for a stretch of course (1.0 = flat, > 1 = slower).

    Each 1% of average climb grade adds 20% time on the climbing share; each 1%
    of descent grade saves 8% on the descending share, capped at 30% faster.
    The result is clamped to [0.7, 3.0].
    """
    if distance_miles <= 0:
        return 1.0

    distance_ft = distance_miles * MILES_TO_FEET
    avg_climb_grade = gain_ft / distance_ft * 100
    avg_descent_grade = loss_ft / distance_ft * 100

    climb_penalty = 1 + avg_climb_grade * CLIMB_PENALTY_PER_GRADE_PCT if avg_climb_grade > 0 else 1.0
    descent_bonus = (
        max(MIN_DIFFICULTY, 1 - avg_descent_grade * DESCENT_BONUS_PER_GRADE_PCT)
        if avg_descent_grade > 0
        else 1.0
    )

    climb_ratio = gain_ft / (gain_ft + loss_ft + 1)
    descent_ratio = loss_ft / (gain_ft + loss_ft + 1)
    difficulty = (
        climb_penalty * climb_ratio
        + descent_bonus * descent_ratio
        + (1 - climb_ratio - descent_ratio)
    )
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, difficulty))


def _usable_stations(aid_stations: Sequence[AidStation], total_distance: float) -> list[AidStation]:
    stations = []
    seen_miles: set[float] = set()
    for station in sorted(aid_stations, key=lambda s: s.mile):
        if station.mile <= 0 or station.mile > total_distance:
            logger.warning(
                "Ignoring aid station %s at mile %s outside (0, %s]",
                station.name,
                station.mile,
                total_distance,
            )
            continue
        if station.mile in seen_miles:
            logger.warning("Ignoring aid station %s: duplicate mile %s", station.name, station.mile)
            continue
        seen_miles.add(station.mile)
        stations.append(station)
    return stations


def generate_segments_from_aid_stations(
    aid_stations: Sequence[AidStation],
    total_distance: float,
    goal_time_minutes: float,
    points: Optional[Sequence[ElevationPoint]] = None,
    power_table: Optional[PowerTargetTable] = None,
) -> list[Segment]:
    """Seed a plan with one segment per aid-station leg.

    Goal time is shared out in proportion to terrain-difficulty-weighted
    distance and rounded to whole minutes. Every segment starts at tempo effort.

    Args:
        aid_stations: Aid stations (any order)
        total_distance: Course length in miles (> 0)
        goal_time_minutes: Target finish time
        points: Optional elevation trace for terrain weighting
        power_table: Optional power targets to fill segment power ranges

    Returns:
        Segments forming a valid partition of [0, total_distance]

    Raises:
        ValueError: if total_distance is not positive
    """
    if total_distance <= 0:
        raise ValueError(f"Total distance must be positive, got {total_distance!r}")

    stations = _usable_stations(aid_stations, total_distance)

    legs: list[tuple[float, float, str, str]] = []
    last_mile = 0.0
    last_name = START_NAME
    for station in stations:
        legs.append((last_mile, station.mile, last_name, station.name))
        last_mile = station.mile
        last_name = station.name
    if last_mile < total_distance:
        legs.append((last_mile, total_distance, last_name, FINISH_NAME))

    difficulties = []
    for start_mile, end_mile, _, _ in legs:
        if points:
            elevation = segment_elevation(points, start_mile, end_mile)
            gain, loss = elevation["elevationGainFt"], elevation["elevationLossFt"]
        else:
            gain, loss = 0.0, 0.0
        difficulties.append(terrain_difficulty(end_mile - start_mile, gain, loss))

    weighted_total = sum((end - start) * d for (start, end, _, _), d in zip(legs, difficulties))

    segments = []
    for order, ((start_mile, end_mile, start_name, end_name), difficulty) in enumerate(
        zip(legs, difficulties)
    ):
        if weighted_total > 0:
            share = (end_mile - start_mile) * difficulty / weighted_total
        else:
            share = 1 / len(legs)
        segment = Segment(
            id=new_id(),
            order=order,
            start_mile=start_mile,
            end_mile=end_mile,
            start_name=start_name,
            end_name=end_name,
            effort_level=EffortLevel(DEFAULT_SEGMENT_EFFORT),
            target_time_minutes=float(round_int(goal_time_minutes * share)),
        )
        segments.append(with_power_targets(segment, power_table))

    logger.info(
        "Generated %d segments over %.1f miles from %d aid stations",
        len(segments),
        total_distance,
        len(stations),
    )
    return segments
