"""Base exception class for the invocation harness.

Uses Template Method + Registry pattern for structured error handling.
"""

from enum import StrEnum
from typing import Any, ClassVar


class ErrorCategory(StrEnum):
    """Failure classes an operator needs to tell apart."""

    INTERNAL = "internal"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    STORE = "store"


class HarnessError(Exception):
    """Base exception for all harness errors.

    All custom exceptions inherit from this class, enabling:
    - Single catch block for all harness errors
    - Consistent result and log structure
    - Lookup of the exception class by error code

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        category: Failure class used by alerting.
        context: Additional debugging information.
    """

    error_code: ClassVar[str] = "INTERNAL_ERROR"
    category: ClassVar[ErrorCategory] = ErrorCategory.INTERNAL

    _registry: ClassVar[dict[str, type["HarnessError"]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Register subclass in the exception registry."""
        super().__init_subclass__(**kwargs)
        cls._registry[cls.error_code] = cls

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            context: Additional key-value pairs for debugging.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary suitable for JSON results."""
        return {
            "error_code": self.error_code,
            "category": self.category.value,
            "message": self.message,
            "context": self.context,
        }

    def to_log_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for structured logging."""
        return {
            **self.to_dict(),
            "exception_type": self.__class__.__name__,
        }

    @classmethod
    def get_by_error_code(cls, error_code: str) -> type["HarnessError"] | None:
        """Look up exception class by error code.

        Args:
            error_code: The error code to look up.

        Returns:
            The exception class, or None if not found.
        """
        return cls._registry.get(error_code)

    def __str__(self) -> str:
        """Return string representation."""
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"context={self.context!r})"
        )
