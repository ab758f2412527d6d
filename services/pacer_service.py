"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Pacer service: the entry point the race pacing page uses.

Wires GPX import, terrain profile, power targets, the segment planner,
checkpoint export and plan persistence together.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from streamlit.logger import get_logger

from persistence.csv_storage import CsvStorage
from services import power_service, terrain_service
from services.pacer import checkpoints as checkpoint_export
from services.pacer.models import (
    AidStation,
    AthleteProfile,
    Checkpoint,
    CheckpointTiming,
    CourseProfile,
    ElevationPoint,
    PowerTargetTable,
    RacePlan,
)
from services.pacer.planner import (
    Command,
    CommandResult,
    PlannerContext,
    PlannerState,
    RefreshPower,
    apply_command,
)
from services.pacer.race_persistence import RacePersistence
from services.pacer.segments import generate_segments_from_aid_stations, partition_errors
from utils.config import Config
from utils.constants import (
    DEFAULT_ALTITUDE_ADJUSTMENT,
    DEFAULT_GPX_SAMPLE_MILES,
    DEFAULT_INTENSITY_FACTORS,
    DEFAULT_RACE_START_TIME,
)
from utils.gpx_parser import parse_gpx_to_timeseries

logger = get_logger(__name__)


class PacerService:
    """Service for race course terrain, power targets and segment planning."""

    def __init__(self, storage: CsvStorage, config: Optional[Config] = None):
        self.storage = storage
        self.config = config
        self.races = RacePersistence(storage)

    @property
    def sample_miles(self) -> float:
        return self.config.gpx_sample_miles if self.config else DEFAULT_GPX_SAMPLE_MILES

    @property
    def start_time(self) -> str:
        return self.config.race_start_time if self.config else DEFAULT_RACE_START_TIME

    # Course

    def import_course(self, gpx_bytes: bytes) -> List[ElevationPoint]:
        """Parse a GPX file into resampled elevation points (empty list on failure)."""
        timeseries_df = parse_gpx_to_timeseries(gpx_bytes)
        if timeseries_df.empty:
            logger.warning("GPX import produced no usable track points")
            return []
        return terrain_service.points_from_timeseries(timeseries_df, self.sample_miles)

    def course_profile(self, points: Sequence[ElevationPoint]) -> CourseProfile:
        return terrain_service.compute_course_profile(points)

    def tagged_points(self, points: Sequence[ElevationPoint]) -> pd.DataFrame:
        return terrain_service.tag_points(points)

    @staticmethod
    def course_distance(points: Sequence[ElevationPoint]) -> float:
        return points[-1].mile if points else 0.0

    # Athlete

    def athlete_profile(
        self,
        ftp_watts: float,
        weight_kg: Optional[float] = None,
        altitude_adjustment_factor: Optional[float] = None,
        intensity_factors: Optional[Dict[str, float]] = None,
    ) -> AthleteProfile:
        """Athlete inputs, filling gaps from the configured defaults."""
        if altitude_adjustment_factor is None:
            altitude_adjustment_factor = (
                self.config.default_altitude_adjustment if self.config else DEFAULT_ALTITUDE_ADJUSTMENT
            )
        if intensity_factors is None:
            intensity_factors = dict(
                self.config.default_intensity_factors if self.config else DEFAULT_INTENSITY_FACTORS
            )
        return AthleteProfile(
            ftp_watts=ftp_watts,
            weight_kg=weight_kg,
            altitude_adjustment_factor=altitude_adjustment_factor,
            intensity_factors=intensity_factors,
        )

    def power_targets(self, profile: AthleteProfile) -> PowerTargetTable:
        """Raises InvalidAthleteInputError for out-of-range athlete inputs."""
        return power_service.power_targets_for_athlete(profile)

    # Planning

    def init_plan(
        self,
        aid_stations: Sequence[AidStation],
        total_distance: float,
        goal_time_minutes: float,
        points: Sequence[ElevationPoint] = (),
        power_table: Optional[PowerTargetTable] = None,
    ) -> PlannerState:
        segments = generate_segments_from_aid_stations(
            aid_stations,
            total_distance,
            goal_time_minutes,
            points=points or None,
            power_table=power_table,
        )
        return PlannerState.from_segments(segments, total_distance)

    @staticmethod
    def context(
        points: Sequence[ElevationPoint] = (), power_table: Optional[PowerTargetTable] = None
    ) -> PlannerContext:
        return PlannerContext(points=tuple(points), power_table=power_table)

    def apply(
        self, state: PlannerState, command: Command, context: Optional[PlannerContext] = None
    ) -> CommandResult:
        result = apply_command(state, command, context)
        errors = partition_errors(result.state.segments, result.state.total_distance)
        if errors:
            # Only reachable with a plan that was already invalid when loaded
            logger.warning("Planner state violates the segment partition: %s", "; ".join(errors))
        return result

    def refresh_power(
        self, state: PlannerState, power_table: Optional[PowerTargetTable]
    ) -> PlannerState:
        """Segments with power ranges recomputed from the current athlete table.

        Returns the input state unchanged when no range moved.
        """
        refreshed = self.apply(state, RefreshPower(), self.context(power_table=power_table)).state
        if refreshed.segments == state.segments:
            return state
        logger.debug("Refreshed segment power ranges")
        return refreshed

    # Export

    def checkpoints(self, state: PlannerState) -> List[Checkpoint]:
        return checkpoint_export.export_checkpoints(state.segments)

    def arrivals(
        self,
        state: PlannerState,
        aid_stations: Sequence[AidStation] = (),
        start_time: Optional[str] = None,
    ) -> List[CheckpointTiming]:
        return checkpoint_export.checkpoint_arrivals(
            state.segments, start_time or self.start_time, aid_stations
        )

    def device_snapshot(
        self,
        state: PlannerState,
        power_table: Optional[PowerTargetTable] = None,
        race_name: str = "Race Plan",
        goal_time_minutes: Optional[float] = None,
        athlete_name: str = "Athlete",
        distance_name: str = "",
    ) -> Dict[str, Any]:
        return checkpoint_export.build_device_snapshot(
            state.segments,
            power_table=power_table,
            race_name=race_name,
            distance_name=distance_name,
            distance_miles=state.total_distance,
            goal_time_minutes=goal_time_minutes,
            athlete_name=athlete_name,
        )

    # Persistence

    def save_plan(
        self,
        name: str,
        state: PlannerState,
        goal_time_minutes: float,
        profile: CourseProfile,
        aid_stations: Sequence[AidStation] = (),
        points: Sequence[ElevationPoint] = (),
        plan_id: Optional[str] = None,
        start_time: Optional[str] = None,
    ) -> str:
        plan = RacePlan(
            plan_id=plan_id,
            name=name,
            total_distance=state.total_distance,
            goal_time_minutes=goal_time_minutes,
            segments=state.segments,
            profile=profile,
            aid_stations=tuple(aid_stations),
            points=tuple(points),
            start_time=start_time or self.start_time,
        )
        return self.races.save_plan(plan)

    def load_plan(self, plan_id: str) -> Optional[RacePlan]:
        return self.races.load_plan(plan_id)

    def list_plans(self) -> pd.DataFrame:
        return self.races.list_plans()

    def delete_plan(self, plan_id: str) -> bool:
        return self.races.delete_plan(plan_id)

    @staticmethod
    def state_from_plan(plan: RacePlan) -> PlannerState:
        return PlannerState.from_segments(plan.segments, plan.total_distance)
