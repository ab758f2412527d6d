import datetime as dt

import pytest

from utils.formatting import (
    fmt_decimal,
    fmt_ft,
    fmt_grade,
    fmt_mile,
    fmt_power_range,
    fmt_speed_mph,
    fmt_watts,
    format_clock,
    format_duration,
    format_time_of_day,
    set_locale,
    to_str_storage,
)


@pytest.fixture(autouse=True)
def en_us():
    set_locale("en_US")
    yield
    set_locale("en_US")


def _spaces(s: str) -> str:
    # NBSP and NNBSP to a regular space
    return s.replace("\u00A0", " ").replace("\u202F", " ")


def test_en_us_formatting():
    assert fmt_decimal(1234.5, 1) == "1,234.5"
    assert fmt_decimal(1234.4, 0) == "1,234"
    assert _spaces(fmt_mile(26.2)) == "26.2 mi"
    assert _spaces(fmt_ft(5280.4)) == "5,280 ft"
    assert _spaces(fmt_watts(249.6)) == "250 W"
    assert _spaces(fmt_grade(-4.25)).endswith("%")
    assert _spaces(fmt_power_range(126, 168)) == "126-168 W"
    assert fmt_mile(None) == ""
    assert fmt_power_range(None, 168) == ""
    assert _spaces(fmt_speed_mph(40 / 3)) == "13.3 mph"
    assert fmt_speed_mph(None) == ""


def test_fr_formatting():
    set_locale("fr_FR")
    normalized = _spaces(fmt_decimal(1234.5, 1))
    assert normalized == "1 234,5"
    assert "," in fmt_mile(12.3)


def test_unknown_locale_falls_back():
    set_locale("xx_YY")
    assert fmt_decimal(1234.5, 1) == "1,234.5"


def test_clock_and_duration():
    assert format_clock(125) == "2:05"
    assert format_clock(24 * 60 + 5) == "24:05"
    assert format_clock(None) == ""
    assert format_duration(90.5) == "01:30:30"
    assert format_duration(0) == "00:00:00"


def test_format_time_of_day():
    assert _spaces(format_time_of_day(dt.time(10, 45))) == "10:45 AM"
    assert _spaces(format_time_of_day(dt.time(18, 5))) == "6:05 PM"


def test_to_str_storage():
    assert to_str_storage(12.3) == "12.3"
    assert to_str_storage(12.345, 1) == "12.3"
    assert to_str_storage(None) == ""
