"""
Tests for event and payout input validation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from domain.models.event import BettingLimits
from utils.validators import (
    parse_choices,
    validate_choices,
    validate_event,
    validate_event_name,
    validate_event_type,
    validate_payout_method,
)


NOW = datetime(2030, 1, 1, tzinfo=timezone.utc)


def test_event_name():
    assert validate_event_name("Title Fight") == []
    assert validate_event_name("   ") == ["Event name is required"]
    assert "100 characters" in validate_event_name("x" * 101)[0]


def test_event_type():
    assert validate_event_type("boxing") == []
    assert validate_event_type("chess")


@pytest.mark.parametrize(
    "choices,message",
    [
        (["Only"], "at least 2"),
        (["Red", " "], "cannot be empty"),
        (["Red", "red "], "unique"),
        ([f"c{i}" for i in range(26)], "at most 25"),
    ],
)
def test_bad_choices(choices, message):
    errors = validate_choices(choices)

    assert any(message in error for error in errors)


def test_validate_event_collects_everything():
    limits = BettingLimits(min_bet=0, max_bet=10, limit_per_user=1, fee_percent=5)

    errors = validate_event("", "chess", ["A"], limits, NOW - timedelta(hours=1), now=NOW)

    assert len(errors) == 5
    assert "Scheduled time cannot be in the past" in errors
    assert "Minimum bet must be at least 1" in errors


def test_validate_event_accepts_future_event():
    limits = BettingLimits(min_bet=10, max_bet=100, limit_per_user=1, fee_percent=5)

    assert validate_event("Derby", "racing", ["A", "B"], limits, NOW + timedelta(days=1), now=NOW) == []


def test_payout_method():
    assert validate_payout_method(None) == []
    assert validate_payout_method("venmo") == []
    assert validate_payout_method("cheque")


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Red, Blue", ["Red", "Blue"]),
        ("Red\nBlue, Jr.\n", ["Red", "Blue, Jr."]),
        (" , ", []),
    ],
)
def test_parse_choices(raw, expected):
    assert parse_choices(raw) == expected
