"""Tests for the Result type, error codes and the named error hierarchy."""

import inspect

import pytest

from services import error_codes
from services.errors import (
    AlreadyFinalizedError,
    EventLockedError,
    EventNotOpenError,
    ExternalChannelError,
    InvalidTimeError,
    LimitExceededError,
    RateLimitedError,
    StateConflictError,
    ValidationError,
    WageringError,
)
from services.result import Result


class TestResultOk:
    """Tests for successful Result creation."""

    def test_ok_without_value(self):
        result = Result.ok()
        assert result.success is True
        assert result.value is None
        assert result.error is None
        assert result.error_code is None

    def test_ok_with_dict_value(self):
        data = {"bet_id": 7, "amount": 100}
        result = Result.ok(data)
        assert result.success is True
        assert result.value["bet_id"] == 7


class TestResultFail:
    """Tests for failed Result creation."""

    def test_fail_with_message(self):
        result = Result.fail("Something went wrong")
        assert result.success is False
        assert result.value is None
        assert result.error == "Something went wrong"
        assert result.error_code is None

    def test_fail_with_code(self):
        result = Result.fail("Event not found", code=error_codes.NOT_FOUND)
        assert result.success is False
        assert result.error_code == error_codes.NOT_FOUND

    def test_from_error_carries_code_and_message(self):
        result = Result.from_error(LimitExceededError("Maximum bet is 1000."))
        assert result.success is False
        assert result.error == "Maximum bet is 1000."
        assert result.error_code == error_codes.LIMIT_EXCEEDED

    def test_from_error_respects_code_override(self):
        result = Result.from_error(ValidationError("bad", code="custom_code"))
        assert result.error_code == "custom_code"


class TestResultBooleanContext:
    def test_ok_is_truthy(self):
        assert bool(Result.ok(42)) is True

    def test_fail_is_falsy(self):
        assert bool(Result.fail("error")) is False


class TestResultUnwrap:
    def test_unwrap_success(self):
        assert Result.ok(42).unwrap() == 42

    def test_unwrap_failure_raises(self):
        with pytest.raises(ValueError, match="Cannot unwrap failed result"):
            Result.fail("Something went wrong").unwrap()

    def test_unwrap_or_failure(self):
        assert Result.fail("error").unwrap_or(0) == 0


class TestResultMap:
    def test_map_on_success(self):
        mapped = Result.ok(5).map(lambda x: Result.ok(x * 2))
        assert mapped.value == 10

    def test_map_on_failure(self):
        mapped = Result.fail("error", code="test_error").map(lambda x: Result.ok(x * 2))
        assert mapped.success is False
        assert mapped.error_code == "test_error"


class TestResultImmutability:
    def test_result_is_frozen(self):
        result = Result.ok(42)
        with pytest.raises(Exception):  # FrozenInstanceError
            result.value = 100


class TestErrorCodes:
    def test_error_codes_are_unique(self):
        codes = [
            value
            for name, value in inspect.getmembers(error_codes)
            if not name.startswith("_") and isinstance(value, str)
        ]
        assert len(codes) == len(set(codes)), "Duplicate error codes found"

    @pytest.mark.parametrize(
        "error_class,code",
        [
            (EventLockedError, error_codes.EVENT_LOCKED),
            (EventNotOpenError, error_codes.EVENT_NOT_OPEN),
            (AlreadyFinalizedError, error_codes.ALREADY_FINALIZED),
            (InvalidTimeError, error_codes.INVALID_TIME),
            (RateLimitedError, error_codes.RATE_LIMITED),
        ],
    )
    def test_each_error_has_its_own_code(self, error_class, code):
        assert error_class("x").code == code


class TestErrorHierarchy:
    def test_locked_is_a_not_open_state_conflict(self):
        exc = EventLockedError("locked")
        assert isinstance(exc, EventNotOpenError)
        assert isinstance(exc, StateConflictError)
        assert isinstance(exc, WageringError)

    def test_invalid_time_is_a_validation_error(self):
        assert isinstance(InvalidTimeError("bad"), ValidationError)

    def test_rate_limit_flag(self):
        assert RateLimitedError("slow down", status=429).is_rate_limit is True
        assert ExternalChannelError("boom", status=500).is_rate_limit is False
