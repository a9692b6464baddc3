"""
Result type for operator-facing operations.

Settlement and bet placement raise exceptions (see services.exceptions).
Admin adjustments return a Result instead, because they can succeed while
still carrying warnings (for example a failed audit-log write).

Usage:
    return Result.ok({"balance": 150.0})
    return Result.ok(updated, warnings=["Failed to write admin log"])
    return Result.fail("Target user not found", code=error_codes.USER_NOT_FOUND)

    if result.success:
        print(result.value, result.warnings)
    else:
        print(f"Error ({result.error_code}): {result.error}")
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a service call.

    Attributes:
        success: Whether the operation succeeded
        value: The return value if successful
        error: Error message if failed
        error_code: Code from services.error_codes
        warnings: Non-fatal problems encountered on a successful call
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def ok(cls, value: T | None = None, warnings: list[str] | None = None) -> "Result[T]":
        """Create a successful result, optionally with warnings."""
        return cls(success=True, value=value, warnings=tuple(warnings or ()))

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        """Create a failed result with an error message and optional error code."""
        return cls(success=False, error=error, error_code=code)

    def __bool__(self) -> bool:
        return self.success

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

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
