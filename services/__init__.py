"""
Application services layer.

Services orchestrate business operations using repositories and domain services.
Concrete services are imported from their own modules; this package only
re-exports the shared error and result types, since repositories import them too.
"""

# Result type for consistent error handling
from services.result import Result
from services.errors import (
    AlreadyFinalizedError,
    EventLockedError,
    EventNotOpenError,
    ExternalChannelError,
    InvalidTimeError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
    QueueClearedError,
    RateLimitedError,
    StateConflictError,
    ValidationError,
    WageringError,
)

__all__ = [
    "Result",
    "WageringError",
    "NotFoundError",
    "ValidationError",
    "InvalidTimeError",
    "StateConflictError",
    "EventNotOpenError",
    "EventLockedError",
    "AlreadyFinalizedError",
    "LimitExceededError",
    "PermissionDeniedError",
    "ExternalChannelError",
    "RateLimitedError",
    "QueueClearedError",
]
