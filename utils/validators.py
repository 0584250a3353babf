"""
Input validation for event definitions and payout processing.

Each validator returns a list of human-readable problems; an empty list means
the input is acceptable. Callers decide how to surface them.
"""

from __future__ import annotations

from datetime import datetime

from domain.models.event import BettingLimits, EventType
from domain.models.payout import PayoutMethod
from utils.time_utils import is_in_past

MAX_EVENT_NAME_LENGTH = 100
MIN_CHOICES = 2
MAX_CHOICES = 25  # Discord select menus hold at most 25 options

VALID_EVENT_TYPES = [event_type.value for event_type in EventType]
VALID_PAYOUT_METHODS = [method.value for method in PayoutMethod]


def validate_event_name(name: str | None) -> list[str]:
    if not name or not name.strip():
        return ["Event name is required"]
    if len(name.strip()) > MAX_EVENT_NAME_LENGTH:
        return [f"Event name must be {MAX_EVENT_NAME_LENGTH} characters or less"]
    return []


def validate_event_type(event_type: str | None) -> list[str]:
    if event_type not in VALID_EVENT_TYPES:
        return [f"Event type must be one of: {', '.join(VALID_EVENT_TYPES)}"]
    return []


def validate_choices(choices: list[str] | None) -> list[str]:
    if not choices or len(choices) < MIN_CHOICES:
        return [f"Event must have at least {MIN_CHOICES} choices"]

    errors = []
    if len(choices) > MAX_CHOICES:
        errors.append(f"Event can have at most {MAX_CHOICES} choices")
    if any(not choice or not choice.strip() for choice in choices):
        errors.append("Event choices cannot be empty")
    normalized = [choice.strip().lower() for choice in choices if choice]
    if len(set(normalized)) != len(normalized):
        errors.append("Event choices must be unique")
    return errors


def validate_schedule(scheduled_time: datetime | None, now: datetime | None = None) -> list[str]:
    if scheduled_time is not None and is_in_past(scheduled_time, now):
        return ["Scheduled time cannot be in the past"]
    return []


def validate_event(
    name: str | None,
    event_type: str | None,
    choices: list[str] | None,
    limits: BettingLimits | None = None,
    scheduled_time: datetime | None = None,
    now: datetime | None = None,
) -> list[str]:
    """All problems with a complete event definition."""
    errors = []
    errors.extend(validate_event_name(name))
    errors.extend(validate_event_type(event_type))
    errors.extend(validate_choices(choices))
    errors.extend(validate_schedule(scheduled_time, now))
    if limits is not None:
        errors.extend(limits.validate())
    return errors


def validate_payout_method(method: str | None) -> list[str]:
    if method is not None and method not in VALID_PAYOUT_METHODS:
        return [f"Payout method must be one of: {', '.join(VALID_PAYOUT_METHODS)}"]
    return []


def parse_choices(raw: str) -> list[str]:
    """Split operator input (one choice per line, or comma separated) into labels."""
    separator = "\n" if "\n" in raw else ","
    return [part.strip() for part in raw.split(separator) if part.strip()]
