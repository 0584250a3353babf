"""
Named errors raised by the wagering services.

Every error carries a machine-readable ``code`` from services.error_codes so the
command boundary can turn it into a Result without parsing the message.
"""

from services import error_codes


class WageringError(Exception):
    """Base class for all expected wagering failures."""

    code = error_codes.INTERNAL_ERROR

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(WageringError):
    code = error_codes.NOT_FOUND


class ValidationError(WageringError):
    code = error_codes.VALIDATION_ERROR


class InvalidTimeError(ValidationError):
    code = error_codes.INVALID_TIME


class StateConflictError(WageringError):
    code = error_codes.STATE_ERROR


class EventNotOpenError(StateConflictError):
    code = error_codes.EVENT_NOT_OPEN


class EventLockedError(EventNotOpenError):
    """Betting was rejected because the event is locked."""

    code = error_codes.EVENT_LOCKED


class AlreadyFinalizedError(StateConflictError):
    """The event's winners are approved; nothing settlement-related may change."""

    code = error_codes.ALREADY_FINALIZED


class LimitExceededError(WageringError):
    code = error_codes.LIMIT_EXCEEDED


class PermissionDeniedError(WageringError):
    code = error_codes.PERMISSION_DENIED


class ExternalChannelError(WageringError):
    """An announcement send/edit failed on the chat platform."""

    code = error_codes.EXTERNAL_CHANNEL_ERROR

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, code)
        self.status = status
        self.retry_after = retry_after

    @property
    def is_rate_limit(self) -> bool:
        return False


class RateLimitedError(ExternalChannelError):
    code = error_codes.RATE_LIMITED

    @property
    def is_rate_limit(self) -> bool:
        return True


class QueueClearedError(WageringError):
    code = error_codes.QUEUE_CLEARED
