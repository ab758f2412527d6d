"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later
"""

from __future__ import annotations

# ==============================================================================
# UNIT CONVERSIONS
# ==============================================================================

METERS_TO_FEET = 3.28084
FEET_TO_METERS = 0.3048
MILES_TO_FEET = 5280
MILES_TO_METERS = 1609.344

# ==============================================================================
# TERRAIN / GRADE THRESHOLDS (percent)
# ==============================================================================

CLIMBING_GRADE_PCT = 2.0
DESCENT_GRADE_PCT = -2.0
# Informational only, never changes the terrain class
STEEP_CLIMB_GRADE_PCT = 8.0
STEEP_DESCENT_GRADE_PCT = -8.0

# ==============================================================================
# POWER
# ==============================================================================

DEFAULT_INTENSITY_FACTORS = {
    "safe": 0.67,
    "tempo": 0.70,
    "pushing": 0.73,
}

TERRAIN_POWER_MULTIPLIERS = {
    "climbing": 1.20,
    "flat": 0.90,
    "descent": 0.40,
}

DEFAULT_ALTITUDE_ADJUSTMENT = 0.20
MAX_ALTITUDE_ADJUSTMENT = 0.5

# ==============================================================================
# SEGMENT PLANNING
# ==============================================================================

EFFORT_PRESETS = {
    "conservative": {
        "label": "Conservative",
        "description": "Safe effort throughout - finish strong",
        "defaultEffort": "safe",
        "climbEffort": "safe",
    },
    "tempo": {
        "label": "Tempo",
        "description": "Balanced tempo - steady performance",
        "defaultEffort": "tempo",
        "climbEffort": "tempo",
    },
    "aggressive": {
        "label": "Aggressive",
        "description": "Push the climbs - race hard",
        "defaultEffort": "tempo",
        "climbEffort": "pushing",
    },
}

START_NAME = "Start"
FINISH_NAME = "Finish"
DEFAULT_SEGMENT_EFFORT = "tempo"

# Terrain difficulty model for goal-time allocation
CLIMB_PENALTY_PER_GRADE_PCT = 0.20
DESCENT_BONUS_PER_GRADE_PCT = 0.08
MIN_DIFFICULTY = 0.7
MAX_DIFFICULTY = 3.0

# ==============================================================================
# CHECKPOINTS / CUTOFFS
# ==============================================================================

DEFAULT_RACE_START_TIME = "06:00"
CUTOFF_SAFE_MARGIN_MIN = 60
CUTOFF_CAUTION_MARGIN_MIN = 30

# ==============================================================================
# GPX IMPORT
# ==============================================================================

DEFAULT_GPX_SAMPLE_MILES = 0.1
# Elevation jumps larger than this between raw points are treated as dropouts
GPX_DROPOUT_FT = 500.0

# ==============================================================================
# COLOR MAPPINGS
# ==============================================================================

EFFORT_COLORS = {
    "safe": "#22c55e",
    "tempo": "#38bdf8",
    "pushing": "#fb923c",
}

EFFORT_LABELS = {
    "safe": "Safe",
    "tempo": "Tempo",
    "pushing": "Pushing",
}
