"""
Result type for consistent error handling across the command boundary.

Services raise the named errors from services.errors; the action router and the
command layer convert them into a Result so that a failed operator action is
reported to the operator instead of escaping as an unhandled exception.

Usage:
    return Result.ok(bet)                       # success with a value
    return Result.fail("Event not found", code=NOT_FOUND)
    return Result.from_error(exc)               # exc is a WageringError

    if result.success:
        print(result.value)
    else:
        print(f"Error ({result.error_code}): {result.error}")
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from services.errors import WageringError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    A simple result type for operator-facing operations.

    Attributes:
        success: Whether the operation succeeded
        value: The return value if successful (None if failed or void operation)
        error: Human-readable reason if failed (None if successful)
        error_code: Error code from services.error_codes
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        """Create a successful result with an optional value."""
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        """Create a failed result with an error message and optional error code."""
        return cls(success=False, error=error, error_code=code)

    @classmethod
    def from_error(cls, exc: "WageringError") -> "Result[T]":
        """Create a failed result from a named wagering error."""
        return cls(success=False, error=exc.message, error_code=exc.code)

    def __bool__(self) -> bool:
        """Allow using Result in boolean context: if result: ..."""
        return self.success

    def unwrap(self) -> T:
        """
        Get the value, raising ValueError if the result is a failure.

        Raises:
            ValueError: If the result is a failure
        """
        if not self.success:
            raise ValueError(f"Cannot unwrap failed result: {self.error}")
        return self.value  # type: ignore

    def unwrap_or(self, default: T) -> T:
        """Get the value or a default if the result is a failure."""
        return self.value if self.success else default  # type: ignore

    def map(self, fn: Callable[[T], "Result"]) -> "Result":
        """
        Chain operations on successful results.

        If this result is successful, applies fn to the value and returns its result.
        If this result is a failure, returns this failure unchanged.
        """
        if not self.success:
            return self
        return fn(self.value)
