"""
Tests for calendar-day normalization.
"""
from datetime import date, datetime, timedelta, timezone, UTC
from zoneinfo import ZoneInfo

import pytest

from dailyops.dates import day_key, format_instant, next_day, normalize_day


def test_date_passes_through():
    assert normalize_day(date(2024, 5, 1)) == date(2024, 5, 1)


def test_string_day():
    assert normalize_day("2024-05-01") == date(2024, 5, 1)
    assert normalize_day("  2024-05-01 ") == date(2024, 5, 1)


def test_time_component_is_dropped():
    assert day_key(datetime(2024, 5, 1, 23, 59)) == "2024-05-01"
    assert day_key(datetime(2024, 5, 1, 0, 0)) == "2024-05-01"


def test_aware_instant_uses_site_timezone():
    instant = datetime(2024, 5, 1, 23, 30, tzinfo=UTC)
    assert day_key(instant, ZoneInfo("Europe/Paris")) == "2024-05-02"
    assert day_key(instant, timezone.utc) == "2024-05-01"


def test_iso_instant_string_with_z():
    assert day_key("2024-05-01T23:30:00Z", timezone.utc) == "2024-05-01"
    assert day_key("2024-05-01T23:30:00Z", timezone(timedelta(hours=2))) == "2024-05-02"


@pytest.mark.parametrize("value", ["", "   ", "yesterday", "2024-13-01", "2024/05/01"])
def test_invalid_day_raises(value):
    with pytest.raises(ValueError):
        normalize_day(value)


def test_unsupported_type_raises():
    with pytest.raises(ValueError):
        normalize_day(20240501)


def test_next_day_crosses_month_and_year():
    assert next_day("2024-05-31") == date(2024, 6, 1)
    assert next_day("2024-12-31") == date(2025, 1, 1)
    assert next_day("2024-02-28") == date(2024, 2, 29)


def test_format_instant_is_fixed_width_utc():
    value = format_instant(datetime(2024, 5, 1, 8, 0, 0, tzinfo=UTC))
    assert value == "2024-05-01T08:00:00.000000+00:00"
    # Naive values are taken to be UTC
    assert format_instant(datetime(2024, 5, 1, 8, 0, 0)) == value
    paris = datetime(2024, 5, 1, 10, 0, 0, tzinfo=ZoneInfo("Europe/Paris"))
    assert format_instant(paris) == value
