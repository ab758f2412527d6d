"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later
"""

from __future__ import annotations

from enum import Enum

import pandas as pd

from utils.constants import (
    CLIMBING_GRADE_PCT,
    DESCENT_GRADE_PCT,
    STEEP_CLIMB_GRADE_PCT,
    STEEP_DESCENT_GRADE_PCT,
)


class TerrainClass(str, Enum):
    CLIMBING = "climbing"
    FLAT = "flat"
    DESCENT = "descent"


def classify_terrain(gradient_pct: float) -> TerrainClass:
    """Classify a span's terrain from its grade.

    Args:
        gradient_pct: Grade in percent (not decimal).

    Returns:
        CLIMBING at >= +2%, DESCENT at <= -2%, FLAT otherwise (and for NaN).
    """
    if pd.isna(gradient_pct):
        return TerrainClass.FLAT
    if gradient_pct >= CLIMBING_GRADE_PCT:
        return TerrainClass.CLIMBING
    if gradient_pct <= DESCENT_GRADE_PCT:
        return TerrainClass.DESCENT
    return TerrainClass.FLAT


def is_steep(gradient_pct: float) -> bool:
    """True at or beyond the +/-8% steep thresholds. Does not affect classification."""
    if pd.isna(gradient_pct):
        return False
    return gradient_pct >= STEEP_CLIMB_GRADE_PCT or gradient_pct <= STEEP_DESCENT_GRADE_PCT
