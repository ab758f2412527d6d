"""
Locale display helpers for miles, feet, watts and race clock times.

Note: CSV storage must keep '.' as decimal separator. These helpers
are for UI rendering only.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional

from babel import dates, numbers
from babel.core import UnknownLocaleError

LOCALE = "en_US"


def set_locale(locale_str: str = "en_US") -> None:
    global LOCALE
    try:
        # Validate by formatting a simple number
        numbers.format_decimal(1.0, locale=locale_str)
        LOCALE = locale_str
    except (UnknownLocaleError, ValueError):
        LOCALE = "en_US"


def _nbsp() -> str:
    return "\u00A0"


def fmt_decimal(value: Optional[float], digits: Optional[int] = None) -> str:
    if value is None:
        return ""
    fmt = None
    if digits is not None:
        fmt = "#,##0" if digits == 0 else "#,##0." + ("0" * digits)
    return numbers.format_decimal(value, format=fmt, locale=LOCALE)


def fmt_mile(miles: Optional[float]) -> str:
    if miles is None:
        return ""
    return f"{fmt_decimal(miles, 1)}{_nbsp()}mi"


def fmt_ft(feet: Optional[float]) -> str:
    if feet is None:
        return ""
    # integers preferred
    return f"{numbers.format_decimal(int(round(feet)), locale=LOCALE)}{_nbsp()}ft"


def fmt_watts(watts: Optional[float]) -> str:
    if watts is None:
        return ""
    return f"{numbers.format_decimal(int(round(watts)), locale=LOCALE)}{_nbsp()}W"


def fmt_grade(grade_pct: Optional[float]) -> str:
    if grade_pct is None:
        return ""
    return f"{fmt_decimal(grade_pct, 1)}{_nbsp()}%"


def fmt_speed_mph(speed_mph: Optional[float]) -> str:
    if speed_mph is None:
        return ""
    return f"{fmt_decimal(speed_mph, 1)}{_nbsp()}mph"


def fmt_power_range(low: Optional[int], high: Optional[int]) -> str:
    if low is None or high is None:
        return ""
    return f"{low}-{high}{_nbsp()}W"


def format_clock(minutes: Optional[float]) -> str:
    """Elapsed minutes as H:MM (hours are not wrapped at 24)."""
    if minutes is None:
        return ""
    total = int(round(minutes))
    return f"{total // 60}:{total % 60:02d}"


def format_duration(minutes: Optional[float]) -> str:
    """Elapsed minutes as HH:MM:SS."""
    if minutes is None:
        return ""
    total_seconds = int(round(minutes * 60))
    hours, rest = divmod(total_seconds, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def format_time_of_day(moment: dt.time) -> str:
    """Wall-clock time of day, e.g. "10:45 AM" for en_US."""
    return dates.format_time(moment, "h:mm a", locale=LOCALE)


def to_str_storage(value: Optional[float], ndigits: Optional[int] = None) -> str:
    if value is None:
        return ""
    if ndigits is None:
        return f"{value}"
    return f"{value:.{ndigits}f}"
