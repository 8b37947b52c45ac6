"""Business-hours parsing and evaluation.

A schedule is a set of weekdays plus a same-day ``HH:MM`` window. Evaluation
never raises: anything malformed simply means "not in business hours".
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DAY_CODES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
HHMM_PATTERN = re.compile(r"(\d{1,2}):(\d{2})", re.ASCII)


@dataclass(frozen=True)
class BusinessHours:
    days: frozenset[str]
    start_time: str
    end_time: str

    def to_dict(self) -> dict:
        return {
            "days": [day for day in DAY_CODES if day in self.days],
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def parse_hhmm(value: Any) -> tuple[int, int] | None:
    if not isinstance(value, str):
        return None
    # ASCII digits only
    found = HHMM_PATTERN.fullmatch(value.strip())
    if found is None:
        return None
    hour, minute = int(found.group(1)), int(found.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def _normalize_days(raw_days: Any) -> frozenset[str] | None:
    if isinstance(raw_days, str) or not isinstance(raw_days, (list, tuple, set, frozenset)):
        return None
    days = set()
    for day in raw_days:
        if not isinstance(day, str):
            return None
        code = day.strip().lower()
        if code not in DAY_CODES:
            return None
        days.add(code)
    if not days:
        return None
    return frozenset(days)


def parse_business_hours(raw: Any) -> BusinessHours | None:
    """Build a validated BusinessHours from a stored value.

    Accepts a BusinessHours, a mapping (camelCase or snake_case keys) or the
    JSON text stored on the user. Returns None for anything malformed.
    """

    if raw is None:
        return None
    if isinstance(raw, BusinessHours):
        candidate = raw.to_dict()
    elif isinstance(raw, (str, bytes)):
        try:
            candidate = json.loads(raw)
        except ValueError:
            return None
    else:
        candidate = raw

    if not isinstance(candidate, dict):
        return None

    days = _normalize_days(candidate.get("days"))
    start_raw = candidate.get("startTime", candidate.get("start_time"))
    end_raw = candidate.get("endTime", candidate.get("end_time"))
    start = parse_hhmm(start_raw)
    end = parse_hhmm(end_raw)
    if days is None or start is None or end is None:
        return None

    # No overnight spans
    if start >= end:
        return None

    return BusinessHours(
        days=days,
        start_time=f"{start[0]:02d}:{start[1]:02d}",
        end_time=f"{end[0]:02d}:{end[1]:02d}",
    )


def is_active(schedule: Any, at: datetime) -> bool:
    """Whether ``at`` falls inside the schedule's window on its own date.

    The window is closed on both ends and uses the wall-clock time of ``at``;
    localize before calling.
    """

    hours = parse_business_hours(schedule)
    if hours is None or not isinstance(at, datetime):
        return False

    if DAY_CODES[at.weekday()] not in hours.days:
        return False

    start_hour, start_minute = parse_hhmm(hours.start_time)
    end_hour, end_minute = parse_hhmm(hours.end_time)
    window_start = at.replace(hour=start_hour, minute=start_minute, second=0, microsecond=0)
    window_end = at.replace(hour=end_hour, minute=end_minute, second=0, microsecond=0)

    return window_start <= at <= window_end


def zone_for(tz_name: str | None):
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", tz_name)
        return timezone.utc


def localize(at_utc: datetime, tz_name: str | None) -> datetime:
    """Convert a naive-UTC (or aware) timestamp to wall-clock time in tz_name."""

    if at_utc.tzinfo is None:
        at_utc = at_utc.replace(tzinfo=timezone.utc)
    return at_utc.astimezone(zone_for(tz_name))


def is_known_timezone(tz_name: str | None) -> bool:
    if not tz_name:
        return False
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True
