"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Type coercion utilities for rehydrating values read back from CSV.
"""

from __future__ import annotations

import math
from typing import Any, Optional


def safe_float(value: object, default: float = 0.0) -> float:
    """Safely convert a value to float, handling NaN and None."""
    try:
        if value in (None, "", "NaN"):
            return default
        result = float(value)
        if math.isnan(result):
            return default
        return result
    except (TypeError, ValueError):
        return default


def safe_int_optional(value: object) -> Optional[int]:
    """Safely convert a value to int, returning None on failure.

    Handles None, empty strings, "NaN" and math.nan by returning None.
    """
    try:
        if value in (None, "", "NaN"):
            return None
        result = float(value)
        if math.isnan(result):
            return None
        return int(result)
    except (TypeError, ValueError):
        return None


def clean_text(value: Any, default: str = "") -> str:
    """Convert None/NaN to a default string, anything else to str."""
    if value is None:
        return default
    if isinstance(value, float) and math.isnan(value):
        return default
    return str(value)
