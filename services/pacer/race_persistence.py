"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later
"""

from __future__ import annotations

import datetime
from dataclasses import asdict
from typing import Any, Dict, Optional, Sequence

import pandas as pd
from streamlit.logger import get_logger

from persistence.csv_storage import CsvStorage
from services.pacer.models import (
    AidStation,
    CourseProfile,
    EffortLevel,
    ElevationPoint,
    RacePlan,
    Segment,
)
from utils.coercion import clean_text, safe_float, safe_int_optional
from utils.constants import DEFAULT_RACE_START_TIME
from utils.ids import new_id

logger = get_logger(__name__)

PLANS_FILE = "plans.csv"
PLANS_DIR = "race_pacing"

SEGMENT_COLUMNS = [
    "segmentId",
    "order",
    "startMile",
    "endMile",
    "startName",
    "endName",
    "effortLevel",
    "targetTimeMinutes",
    "powerTargetLow",
    "powerTargetHigh",
]
AID_STATION_COLUMNS = ["name", "mile", "cutoffTime"]
POINT_COLUMNS = ["mile", "elevationFt", "lat", "lon", "gradientPct"]

# Read back as text so names like "007" or "1e3" survive a round-trip
PLAN_TEXT_COLUMNS = ["planId", "name", "createdAt", "updatedAt", "startTime"]
SEGMENT_TEXT_COLUMNS = ["segmentId", "startName", "endName", "effortLevel"]
AID_STATION_TEXT_COLUMNS = ["name", "cutoffTime"]

PROFILE_FIELDS = {
    "climbingPct": "climbing_pct",
    "flatPct": "flat_pct",
    "descentPct": "descent_pct",
    "avgClimbGrade": "avg_climb_grade",
    "avgDescentGrade": "avg_descent_grade",
    "elevationGainFt": "elevation_gain_ft",
    "elevationLossFt": "elevation_loss_ft",
}
PROFILE_INT_FIELDS = {"climbing_pct", "flat_pct", "descent_pct", "elevation_gain_ft", "elevation_loss_ft"}


def segments_to_frame(segments: Sequence[Segment]) -> pd.DataFrame:
    rows = [
        {
            "segmentId": seg.id,
            "order": seg.order,
            "startMile": seg.start_mile,
            "endMile": seg.end_mile,
            "startName": seg.start_name,
            "endName": seg.end_name,
            "effortLevel": EffortLevel(seg.effort_level).value,
            "targetTimeMinutes": seg.target_time_minutes,
            "powerTargetLow": seg.power_target_low,
            "powerTargetHigh": seg.power_target_high,
        }
        for seg in segments
    ]
    return pd.DataFrame(rows, columns=SEGMENT_COLUMNS)


def segments_from_frame(df: pd.DataFrame) -> list[Segment]:
    """Rebuild segments (sorted by order) from a frame written by segments_to_frame."""
    if df is None or df.empty:
        return []
    segments = [
        Segment(
            id=clean_text(row.get("segmentId")),
            order=int(row.get("order")),
            start_mile=float(row.get("startMile")),
            end_mile=float(row.get("endMile")),
            start_name=clean_text(row.get("startName")),
            end_name=clean_text(row.get("endName")),
            effort_level=EffortLevel(clean_text(row.get("effortLevel"), "tempo")),
            target_time_minutes=safe_float(row.get("targetTimeMinutes")),
            power_target_low=safe_int_optional(row.get("powerTargetLow")),
            power_target_high=safe_int_optional(row.get("powerTargetHigh")),
        )
        for row in df.to_dict(orient="records")
    ]
    return sorted(segments, key=lambda seg: seg.order)


def profile_to_record(profile: CourseProfile) -> Dict[str, Any]:
    values = asdict(profile)
    return {column: values[attr] for column, attr in PROFILE_FIELDS.items()}


def profile_from_record(record: Dict[str, Any]) -> CourseProfile:
    values = {}
    for column, attr in PROFILE_FIELDS.items():
        raw = safe_float(record.get(column))
        values[attr] = int(raw) if attr in PROFILE_INT_FIELDS else raw
    return CourseProfile(**values)


def aid_stations_to_frame(aid_stations: Sequence[AidStation]) -> pd.DataFrame:
    rows = [
        {"name": s.name, "mile": s.mile, "cutoffTime": s.cutoff_time or ""} for s in aid_stations
    ]
    return pd.DataFrame(rows, columns=AID_STATION_COLUMNS)


def aid_stations_from_frame(df: pd.DataFrame) -> list[AidStation]:
    if df is None or df.empty:
        return []
    return [
        AidStation(
            name=clean_text(row.get("name")),
            mile=float(row.get("mile")),
            cutoff_time=clean_text(row.get("cutoffTime")) or None,
        )
        for row in df.to_dict(orient="records")
    ]


def points_to_storage_frame(points: Sequence[ElevationPoint]) -> pd.DataFrame:
    rows = [[p.mile, p.elevation_ft, p.lat, p.lon, p.gradient_pct] for p in points]
    return pd.DataFrame(rows, columns=POINT_COLUMNS)


def points_from_storage_frame(df: pd.DataFrame) -> list[ElevationPoint]:
    if df is None or df.empty:
        return []
    return [
        ElevationPoint(
            mile=float(row["mile"]),
            elevation_ft=float(row["elevationFt"]),
            lat=float(row["lat"]),
            lon=float(row["lon"]),
            gradient_pct=safe_float(row.get("gradientPct")),
        )
        for row in df.to_dict(orient="records")
    ]


class RacePersistence:
    """Persistence helpers for race pacing plans.

    Layout under the storage base dir:
        plans.csv                          one row per plan (metadata + course profile)
        race_pacing/{id}_segments.csv      edited segments
        race_pacing/{id}_aid_stations.csv  aid stations and cutoffs
        race_pacing/{id}_points.csv        resampled elevation trace
    """

    def __init__(self, storage: CsvStorage) -> None:
        self.storage = storage

    def _plan_file(self, plan_id: str, kind: str) -> str:
        return f"{PLANS_DIR}/{plan_id}_{kind}.csv"

    def save_plan(self, plan: RacePlan) -> str:
        """Save a race plan to CSV files, returning its id."""
        plan_id = plan.plan_id or new_id()
        now = datetime.datetime.now().isoformat()

        plans_df = self.storage.read_csv(PLANS_FILE, text_cols=PLAN_TEXT_COLUMNS)
        created_at = now
        if not plans_df.empty and "planId" in plans_df.columns:
            existing = plans_df[plans_df["planId"].astype(str) == plan_id]
            if not existing.empty:
                created_at = clean_text(existing.iloc[0].get("createdAt"), now)

        row: Dict[str, Any] = {
            "planId": plan_id,
            "name": plan.name,
            "createdAt": created_at,
            "updatedAt": now,
            "totalDistance": plan.total_distance,
            "goalTimeMinutes": plan.goal_time_minutes,
            "startTime": plan.start_time,
        }
        row.update(profile_to_record(plan.profile))
        self.storage.upsert(PLANS_FILE, ["planId"], row, text_cols=PLAN_TEXT_COLUMNS)

        self.storage.write_csv(self._plan_file(plan_id, "segments"), segments_to_frame(plan.segments))
        self.storage.write_csv(
            self._plan_file(plan_id, "aid_stations"), aid_stations_to_frame(plan.aid_stations)
        )
        self.storage.write_csv(self._plan_file(plan_id, "points"), points_to_storage_frame(plan.points))

        logger.info("Saved race plan %s: %s (%d segments)", plan_id, plan.name, len(plan.segments))
        return plan_id

    def load_plan(self, plan_id: str) -> Optional[RacePlan]:
        """Load a race plan from CSV files, None if it does not exist."""
        plans_df = self.storage.read_csv(PLANS_FILE, text_cols=PLAN_TEXT_COLUMNS)
        if plans_df.empty or "planId" not in plans_df.columns:
            return None
        matches = plans_df[plans_df["planId"].astype(str) == plan_id]
        if matches.empty:
            return None

        segments_file = self._plan_file(plan_id, "segments")
        if not self.storage.exists(segments_file):
            logger.warning("Race plan %s has no segments file", plan_id)
            return None

        record = matches.iloc[0].to_dict()
        segments_df = self.storage.read_csv(segments_file, text_cols=SEGMENT_TEXT_COLUMNS)
        stations_df = self.storage.read_csv(
            self._plan_file(plan_id, "aid_stations"), text_cols=AID_STATION_TEXT_COLUMNS
        )
        points_df = self.storage.read_csv(self._plan_file(plan_id, "points"))
        return RacePlan(
            plan_id=plan_id,
            name=clean_text(record.get("name")),
            total_distance=safe_float(record.get("totalDistance")),
            goal_time_minutes=safe_float(record.get("goalTimeMinutes")),
            start_time=clean_text(record.get("startTime"), DEFAULT_RACE_START_TIME),
            profile=profile_from_record(record),
            segments=tuple(segments_from_frame(segments_df)),
            aid_stations=tuple(aid_stations_from_frame(stations_df)),
            points=tuple(points_from_storage_frame(points_df)),
        )

    def list_plans(self) -> pd.DataFrame:
        """List all saved plans."""
        columns = ["planId", "name", "createdAt", "updatedAt", "totalDistance", "goalTimeMinutes"]
        plans_df = self.storage.read_csv(PLANS_FILE, text_cols=PLAN_TEXT_COLUMNS)
        if plans_df.empty:
            return pd.DataFrame(columns=columns)
        for col in columns:
            if col not in plans_df.columns:
                plans_df[col] = None
        return plans_df[columns].copy()

    def delete_plan(self, plan_id: str) -> bool:
        removed = self.storage.delete_rows(
            PLANS_FILE, "planId", plan_id, text_cols=PLAN_TEXT_COLUMNS
        )
        for kind in ("segments", "aid_stations", "points"):
            self.storage.delete(self._plan_file(plan_id, kind))
        if removed:
            logger.info("Deleted race plan %s", plan_id)
        return bool(removed)
