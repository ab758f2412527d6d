"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Terrain classification for race courses.

Turns an elevation/position trace into per-point grade and terrain tags and an
aggregate CourseProfile (terrain mix, average grades, total gain/loss).
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd
from streamlit.logger import get_logger

from services.pacer.models import CourseProfile, ElevationPoint
from utils import timeseries_preprocessing as ts_pre
from utils.constants import (
    DEFAULT_GPX_SAMPLE_MILES,
    FEET_TO_METERS,
    GPX_DROPOUT_FT,
    MILES_TO_FEET,
    MILES_TO_METERS,
)
from utils.grade_classification import TerrainClass, classify_terrain, is_steep
from utils.helpers import round_half_up, round_int

logger = get_logger(__name__)

DistanceFn = Callable[[float, float, float, float], float]

POINT_COLUMNS = ["mile", "elevation_ft", "lat", "lon", "gradient_pct"]


def compute_course_profile(
    points: Sequence[ElevationPoint], distance_fn: DistanceFn = ts_pre.haversine_m
) -> CourseProfile:
    """Compute the terrain mix of a course from consecutive point pairs.

    Each span's grade is derived from its great-circle length (distance_fn,
    meters) and elevation delta. Zero-length spans are skipped. Percentages
    are rounded independently and may not sum to exactly 100.

    Args:
        points: Ordered elevation points (>= 2 for a meaningful profile)
        distance_fn: (lat1, lon1, lat2, lon2) -> meters

    Returns:
        CourseProfile, all zeros when the trace has no classifiable distance
    """
    if len(points) < 2:
        logger.warning("Course profile needs at least 2 points, got %d", len(points))
        return CourseProfile.empty()

    bucket_m = {terrain: 0.0 for terrain in TerrainClass}
    climb_grade_sum = 0.0
    climb_spans = 0
    descent_grade_sum = 0.0
    descent_spans = 0
    gain_ft = 0.0
    loss_ft = 0.0

    for prev, curr in zip(points, points[1:]):
        span_m = distance_fn(prev.lat, prev.lon, curr.lat, curr.lon)
        if not span_m > 0:
            continue

        delta_ft = curr.elevation_ft - prev.elevation_ft
        if delta_ft > 0:
            gain_ft += delta_ft
        else:
            loss_ft += -delta_ft

        grade = delta_ft * FEET_TO_METERS / span_m * 100
        terrain = classify_terrain(grade)
        bucket_m[terrain] += span_m
        if terrain is TerrainClass.CLIMBING:
            climb_grade_sum += grade
            climb_spans += 1
        elif terrain is TerrainClass.DESCENT:
            descent_grade_sum += grade
            descent_spans += 1

    total_m = sum(bucket_m.values())
    if total_m <= 0:
        logger.warning("Course trace has zero classified distance; no terrain data")
        return CourseProfile.empty()

    return CourseProfile(
        climbing_pct=round_int(bucket_m[TerrainClass.CLIMBING] / total_m * 100),
        flat_pct=round_int(bucket_m[TerrainClass.FLAT] / total_m * 100),
        descent_pct=round_int(bucket_m[TerrainClass.DESCENT] / total_m * 100),
        avg_climb_grade=round_half_up(climb_grade_sum / climb_spans, 1) if climb_spans else 0.0,
        avg_descent_grade=(
            round_half_up(descent_grade_sum / descent_spans, 1) if descent_spans else 0.0
        ),
        elevation_gain_ft=round_int(gain_ft),
        elevation_loss_ft=round_int(loss_ft),
    )


def points_to_frame(points: Sequence[ElevationPoint]) -> pd.DataFrame:
    """Build a DataFrame with one row per elevation point."""
    return pd.DataFrame(
        [[p.mile, p.elevation_ft, p.lat, p.lon, p.gradient_pct] for p in points],
        columns=POINT_COLUMNS,
    )


def tag_points(points: Sequence[ElevationPoint]) -> pd.DataFrame:
    """Tag each point with its terrain class and steepness flag."""
    df = points_to_frame(points)
    df["terrain"] = [classify_terrain(g).value for g in df["gradient_pct"]]
    df["steep"] = [is_steep(g) for g in df["gradient_pct"]]
    return df


def _points_between(
    points: Sequence[ElevationPoint], start_mile: float, end_mile: float
) -> list[ElevationPoint]:
    return [p for p in points if start_mile <= p.mile <= end_mile]


def mean_gradient(points: Sequence[ElevationPoint], start_mile: float, end_mile: float) -> float:
    """Mean gradient_pct of the points inside [start_mile, end_mile], 0 if none."""
    inside = _points_between(points, start_mile, end_mile)
    if not inside:
        return 0.0
    return float(np.mean([p.gradient_pct for p in inside]))


def segment_elevation(
    points: Sequence[ElevationPoint], start_mile: float, end_mile: float
) -> dict[str, float]:
    """Elevation gain/loss (ft) and net average gradient (%) for a mile range."""
    inside = _points_between(points, start_mile, end_mile)
    if len(inside) < 2:
        return {"elevationGainFt": 0.0, "elevationLossFt": 0.0, "avgGradient": 0.0}

    deltas = np.diff([p.elevation_ft for p in inside])
    gain = float(deltas[deltas > 0].sum())
    loss = float(-deltas[deltas < 0].sum())

    distance_ft = (end_mile - start_mile) * MILES_TO_FEET
    net_change = inside[-1].elevation_ft - inside[0].elevation_ft
    avg_gradient = net_change / distance_ft * 100 if distance_ft > 0 else 0.0

    return {
        "elevationGainFt": float(round_int(gain)),
        "elevationLossFt": float(round_int(loss)),
        "avgGradient": round_half_up(avg_gradient, 1),
    }


def points_from_timeseries(
    timeseries_df: pd.DataFrame, sample_miles: float = DEFAULT_GPX_SAMPLE_MILES
) -> list[ElevationPoint]:
    """Resample a parsed GPX trace into ElevationPoints.

    Points are kept roughly every `sample_miles`, with the gradient measured
    against the previously kept point. Missing elevations and sudden jumps of
    more than 500 ft reuse the last valid elevation; leading points without any
    elevation are dropped. The last raw point is always kept so the trace
    covers the whole course.

    Args:
        timeseries_df: DataFrame with lat, lon, elevationM
        sample_miles: Sampling interval in miles

    Returns:
        Ordered list of ElevationPoint, empty if the trace is unusable
    """
    if timeseries_df.empty or not {"lat", "lon", "elevationM"}.issubset(timeseries_df.columns):
        logger.warning("Missing lat/lon/elevation columns for course import")
        return []

    df = ts_pre.elevation_feet(timeseries_df, elevation_col="elevationM")

    points: list[ElevationPoint] = []
    total_miles = 0.0
    prev_lat: Optional[float] = None
    prev_lon: Optional[float] = None
    last_valid_ft: Optional[float] = None
    last_sample_ft: Optional[float] = None
    last_sample_mile = 0.0
    pending: Optional[tuple[float, float, float, float]] = None

    for lat, lon, raw_ft in zip(df["lat"], df["lon"], df["elevationFt"]):
        invalid = pd.isna(raw_ft)
        dropout = (
            not invalid
            and last_valid_ft is not None
            and abs(raw_ft - last_valid_ft) > GPX_DROPOUT_FT
        )
        if invalid or dropout:
            if last_valid_ft is None:
                continue
            elevation_ft = last_valid_ft
        else:
            elevation_ft = float(raw_ft)
            last_valid_ft = elevation_ft

        if prev_lat is not None and prev_lon is not None:
            total_miles += ts_pre.haversine_m(prev_lat, prev_lon, lat, lon) / MILES_TO_METERS
        prev_lat, prev_lon = lat, lon

        if not points or total_miles - points[-1].mile >= sample_miles:
            points.append(
                _sample_point(total_miles, elevation_ft, lat, lon, last_sample_ft, last_sample_mile)
            )
            last_sample_ft = elevation_ft
            last_sample_mile = total_miles
            pending = None
        else:
            pending = (total_miles, elevation_ft, lat, lon)

    if pending is not None and points and round_half_up(pending[0], 2) > points[-1].mile:
        mile, elevation_ft, lat, lon = pending
        points.append(
            _sample_point(mile, elevation_ft, lat, lon, last_sample_ft, last_sample_mile)
        )

    logger.debug("Imported %d elevation points over %.2f miles", len(points), total_miles)
    return points


def _sample_point(
    mile: float,
    elevation_ft: float,
    lat: float,
    lon: float,
    last_sample_ft: Optional[float],
    last_sample_mile: float,
) -> ElevationPoint:
    gradient = 0.0
    if last_sample_ft is not None and mile > last_sample_mile:
        gradient = (elevation_ft - last_sample_ft) / ((mile - last_sample_mile) * MILES_TO_FEET) * 100
    return ElevationPoint(
        mile=round_half_up(mile, 2),
        elevation_ft=float(round_int(elevation_ft)),
        lat=float(lat),
        lon=float(lon),
        gradient_pct=round_half_up(gradient, 1),
    )
