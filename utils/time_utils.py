"""
Date/time parsing for event schedules.

Operators enter a date (YYYY-MM-DD) and a time (HH:MM) in the configured
timezone; everything is stored as UTC unix seconds.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import TIMEZONE
from services.errors import InvalidTimeError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def get_zone(tz_name: str | None = None) -> ZoneInfo:
    name = tz_name or TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimeError(f"Unknown timezone: {name}") from exc


def is_valid_date_string(date_str: str) -> bool:
    if not DATE_PATTERN.match(date_str or ""):
        return False
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def is_valid_time_string(time_str: str) -> bool:
    return bool(TIME_PATTERN.match(time_str or ""))


def parse_schedule(date_str: str, time_str: str, tz_name: str | None = None) -> datetime:
    """
    Combine a local date and time into an aware UTC datetime.

    Raises:
        InvalidTimeError: if either part is malformed or the timezone is unknown.
    """
    date_str = (date_str or "").strip()
    time_str = (time_str or "").strip()
    if not is_valid_date_string(date_str):
        raise InvalidTimeError(f"Invalid date '{date_str}'. Use YYYY-MM-DD.")
    if not is_valid_time_string(time_str):
        raise InvalidTimeError(f"Invalid time '{time_str}'. Use 24-hour HH:MM.")

    local = datetime.strptime(f"{date_str} {time_str}", "%Y-%m-%d %H:%M")
    return local.replace(tzinfo=get_zone(tz_name)).astimezone(timezone.utc)


def to_timestamp(value: datetime) -> int:
    """Unix seconds for an aware datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def is_in_past(value: datetime, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value < now


def format_schedule(timestamp: int | None, tz_name: str | None = None) -> str:
    """Human-readable schedule line; Discord renders <t:...> in each viewer's locale."""
    if timestamp is None:
        return "Not scheduled"
    local = datetime.fromtimestamp(timestamp, tz=get_zone(tz_name))
    return f"{local.strftime('%Y-%m-%d %H:%M %Z')} (<t:{timestamp}:R>)"


def parse_datetime(value: datetime | str, tz_name: str | None = None) -> datetime:
    """
    Accept an aware/naive datetime, "YYYY-MM-DD HH:MM" (local time) or ISO-8601.

    Raises:
        InvalidTimeError: if the value cannot be read as a date and time.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=get_zone(tz_name)).astimezone(timezone.utc)
        return value.astimezone(timezone.utc)
    if not isinstance(value, str) or not value.strip():
        raise InvalidTimeError("A date and time are required.")

    text = value.strip()
    parts = text.split()
    if len(parts) == 2 and is_valid_date_string(parts[0]):
        return parse_schedule(parts[0], parts[1], tz_name)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidTimeError(f"Invalid date/time '{text}'. Use YYYY-MM-DD HH:MM.") from exc
    return parse_datetime(parsed, tz_name)
