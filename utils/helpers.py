"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later

Generic helper functions for common operations.
"""

from __future__ import annotations

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves toward +infinity.

    Python's round() uses banker's rounding, which would turn 12.5% into 12%.
    Display values (percentages, watts, minutes) expect 12.5 -> 13 and -2.25 -> -2.2.

    Args:
        value: Value to round
        digits: Number of decimal digits to keep (default: 0)

    Returns:
        float: Rounded value
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """Round half up to the nearest integer."""
    return int(round_half_up(value))
