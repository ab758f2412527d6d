"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later
"""

from __future__ import annotations

import pandas as pd
from haversine import Unit, haversine

from utils.constants import METERS_TO_FEET


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in meters."""
    return haversine((lat1, lon1), (lat2, lon2), unit=Unit.METERS)


def elevation_feet(df: pd.DataFrame, elevation_col: str = "elevationM") -> pd.DataFrame:
    """Convert an elevation column in meters to feet."""
    df = df.copy()
    df["elevationFt"] = df[elevation_col] * METERS_TO_FEET
    return df
