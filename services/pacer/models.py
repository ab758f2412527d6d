"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Domain types for course terrain, power targets and pacing segments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Literal, Optional, Tuple

from utils.constants import (
    DEFAULT_ALTITUDE_ADJUSTMENT,
    DEFAULT_INTENSITY_FACTORS,
    DEFAULT_RACE_START_TIME,
)


class EffortLevel(str, Enum):
    SAFE = "safe"
    TEMPO = "tempo"
    PUSHING = "pushing"


Edge = Literal["start", "end"]


@dataclass(frozen=True)
class ElevationPoint:
    mile: float
    elevation_ft: float
    lat: float
    lon: float
    gradient_pct: float = 0.0


@dataclass(frozen=True)
class AidStation:
    name: str
    mile: float
    cutoff_time: Optional[str] = None  # "HH:MM", 24h clock


@dataclass(frozen=True)
class CourseProfile:
    """Aggregate terrain mix for a whole course.

    Percentages are rounded independently, so their sum may differ from 100.
    An all-zero profile means the trace carried no usable terrain data.
    """

    climbing_pct: int
    flat_pct: int
    descent_pct: int
    avg_climb_grade: float
    avg_descent_grade: float
    elevation_gain_ft: int
    elevation_loss_ft: int

    @classmethod
    def empty(cls) -> "CourseProfile":
        return cls(0, 0, 0, 0.0, 0.0, 0, 0)

    @property
    def has_terrain_data(self) -> bool:
        return (self.climbing_pct + self.flat_pct + self.descent_pct) > 0

    @property
    def percent_total(self) -> int:
        return self.climbing_pct + self.flat_pct + self.descent_pct


@dataclass(frozen=True)
class PowerTargetTable:
    base_ftp: float
    adjusted_ftp: float
    normalized_power: Dict[EffortLevel, float]
    climbing_power: Dict[EffortLevel, float]
    flat_power: Dict[EffortLevel, float]
    descent_power: Dict[EffortLevel, float]


@dataclass(frozen=True)
class AthleteProfile:
    """Inputs from the athlete profile. Weight is carried through untouched."""

    ftp_watts: float
    weight_kg: Optional[float] = None
    altitude_adjustment_factor: float = DEFAULT_ALTITUDE_ADJUSTMENT
    intensity_factors: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_INTENSITY_FACTORS)
    )


@dataclass(frozen=True)
class Segment:
    id: str
    order: int
    start_mile: float
    end_mile: float
    start_name: str
    end_name: str
    effort_level: EffortLevel = EffortLevel.TEMPO
    target_time_minutes: float = 0.0
    power_target_low: Optional[int] = None
    power_target_high: Optional[int] = None

    @property
    def distance(self) -> float:
        return self.end_mile - self.start_mile


@dataclass(frozen=True)
class DragState:
    segment_id: str
    edge: Edge
    initial_mile: float
    current_mile: float


@dataclass(frozen=True)
class Checkpoint:
    name: str
    mile: float
    target_minutes: float
    effort: EffortLevel
    target_time: str = ""
    speed_mph: float = 0.0  # required average over the segment ending here


@dataclass(frozen=True)
class CheckpointTiming:
    name: str
    mile: float
    elapsed_minutes: float
    arrival_time: str
    cutoff_time: Optional[str] = None
    cutoff_margin: Optional[int] = None
    cutoff_status: Optional[Literal["safe", "caution", "danger"]] = None


@dataclass(frozen=True)
class RacePlan:
    """Everything needed to reopen a plan: course, stations and edited segments."""

    name: str
    total_distance: float
    goal_time_minutes: float
    segments: Tuple[Segment, ...]
    profile: CourseProfile
    aid_stations: Tuple[AidStation, ...] = ()
    points: Tuple[ElevationPoint, ...] = ()
    start_time: str = DEFAULT_RACE_START_TIME
    plan_id: Optional[str] = None
