"""Exceptions raised by the harness itself around an invocation."""

from typing import Any, ClassVar

from lambda_harness.exceptions.base import ErrorCategory, HarnessError


class ConfigurationError(HarnessError):
    """Configuration is invalid or missing.

    Raised before any invocation runs.
    """

    error_code: ClassVar[str] = "CONFIGURATION_ERROR"
    category: ClassVar[ErrorCategory] = ErrorCategory.CONFIGURATION

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Description of the problem.
            setting: Name of the offending setting.
            context: Additional context information.
        """
        context_dict = context or {}
        if setting is not None:
            context_dict["setting"] = setting
        super().__init__(message, context=context_dict)


class EventValidationError(HarnessError):
    """Event payload does not match the runner's event type."""

    error_code: ClassVar[str] = "EVENT_VALIDATION_ERROR"
    category: ClassVar[ErrorCategory] = ErrorCategory.VALIDATION


class InvocationTimeoutError(HarnessError):
    """The deadline watcher fired before the runner completed."""

    error_code: ClassVar[str] = "INVOCATION_TIMEOUT"
    category: ClassVar[ErrorCategory] = ErrorCategory.TIMEOUT

    def __init__(
        self,
        message: str = "Lambda failed by running into a timeout",
        *,
        deadline_ms: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize timeout error.

        Args:
            message: Description of the timeout.
            deadline_ms: Absolute deadline in epoch milliseconds.
            context: Additional context information.
        """
        context_dict = context or {}
        if deadline_ms is not None:
            context_dict["deadline_ms"] = deadline_ms
        super().__init__(message, context=context_dict)
