"""
Standard error codes for service layer.

These error codes allow command handlers to programmatically handle
specific error conditions without parsing error message text.

Usage:
    from services.error_codes import NOT_FOUND, LIMIT_EXCEEDED
    from services.result import Result

    if event is None:
        return Result.fail("Event not found", code=NOT_FOUND)
"""

# General errors
NOT_FOUND = "not_found"
VALIDATION_ERROR = "validation_error"
STATE_ERROR = "state_error"
PERMISSION_DENIED = "permission_denied"
RATE_LIMITED = "rate_limited"
INTERNAL_ERROR = "internal_error"
UNKNOWN_ACTION = "unknown_action"

# Scheduling errors
INVALID_TIME = "invalid_time"

# Betting errors
EVENT_NOT_OPEN = "event_not_open"
EVENT_LOCKED = "event_locked"
LIMIT_EXCEEDED = "limit_exceeded"

# Settlement errors
ALREADY_FINALIZED = "already_finalized"

# Announcement channel errors
EXTERNAL_CHANNEL_ERROR = "external_channel_error"
QUEUE_CLEARED = "queue_cleared"
