from __future__ import annotations

import json
from datetime import datetime

import pytest

from fieldtrack.services.business_hours import (
    BusinessHours,
    is_active,
    is_known_timezone,
    localize,
    parse_business_hours,
)

WEEKDAYS = {
    "days": ["mon", "tue", "wed", "thu", "fri"],
    "startTime": "08:00",
    "endTime": "17:00",
}

MONDAY_ONLY = {"days": ["mon"], "startTime": "08:00", "endTime": "17:00"}


def test_monday_morning_is_active():
    assert is_active(MONDAY_ONLY, datetime(2026, 10, 12, 9, 0)) is True


def test_monday_evening_is_not_active():
    assert is_active(MONDAY_ONLY, datetime(2026, 10, 12, 18, 0)) is False


def test_tuesday_is_not_active_for_monday_schedule():
    assert is_active(MONDAY_ONLY, datetime(2026, 10, 13, 9, 0)) is False


def test_window_is_closed_on_both_ends():
    assert is_active(WEEKDAYS, datetime(2026, 10, 12, 8, 0)) is True
    assert is_active(WEEKDAYS, datetime(2026, 10, 12, 17, 0)) is True
    assert is_active(WEEKDAYS, datetime(2026, 10, 12, 17, 0, 30)) is False
    assert is_active(WEEKDAYS, datetime(2026, 10, 12, 7, 59)) is False


def test_weekend_is_not_active():
    assert is_active(WEEKDAYS, datetime(2026, 10, 17, 10, 0)) is False


def test_json_text_schedule():
    assert is_active(json.dumps(WEEKDAYS), datetime(2026, 10, 14, 12, 0)) is True


@pytest.mark.parametrize(
    "schedule",
    [
        None,
        "",
        "not json",
        "[]",
        {"days": [], "startTime": "08:00", "endTime": "17:00"},
        {"days": ["mon"], "startTime": "8am", "endTime": "17:00"},
        {"days": ["mon"], "startTime": "25:00", "endTime": "26:00"},
        {"days": ["mon"], "startTime": "0²:00", "endTime": "17:00"},
        {"days": ["mon"], "startTime": "٠٩:00", "endTime": "17:00"},
        {"days": ["mon"], "startTime": "08:00", "endTime": "１７:00"},
        {"days": ["mon"], "startTime": "08:00"},
        {"days": ["monday"], "startTime": "08:00", "endTime": "17:00"},
        {"days": "mon", "startTime": "08:00", "endTime": "17:00"},
        {"days": ["mon"], "startTime": "17:00", "endTime": "08:00"},
        {"days": ["mon"], "startTime": "08:00", "endTime": "08:00"},
    ],
)
def test_malformed_schedules_are_never_active(schedule):
    assert parse_business_hours(schedule) is None
    assert is_active(schedule, datetime(2026, 10, 12, 9, 0)) is False


def test_parse_normalizes_and_round_trips_to_camel_case():
    hours = parse_business_hours({"days": ["FRI", "mon"], "start_time": "9:05", "end_time": "17:30"})

    assert hours == BusinessHours(days=frozenset({"mon", "fri"}), start_time="09:05", end_time="17:30")
    assert hours.to_dict() == {"days": ["mon", "fri"], "startTime": "09:05", "endTime": "17:30"}
    assert parse_business_hours(hours.to_json()) == hours


def test_localized_time_is_used_for_evaluation():
    # 13:00 UTC is 09:00 in New York during daylight saving time
    at_utc = datetime(2026, 10, 12, 13, 0)
    local = localize(at_utc, "America/New_York")

    assert local.hour == 9
    assert is_active(MONDAY_ONLY, local) is True
    assert is_active(MONDAY_ONLY, localize(datetime(2026, 10, 12, 23, 0), "America/New_York")) is False


def test_unknown_timezone_falls_back_to_utc():
    assert localize(datetime(2026, 10, 12, 9, 0), "Mars/Olympus").hour == 9
    assert is_known_timezone("Mars/Olympus") is False
    assert is_known_timezone("Europe/Berlin") is True
    assert is_known_timezone(None) is False
