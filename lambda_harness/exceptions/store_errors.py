"""Secret store exceptions.

Every store error names the gateway operation and the secret it was
working on, so a failed rotation can be diagnosed from the log line alone.
"""

from typing import Any, ClassVar

from lambda_harness.exceptions.base import ErrorCategory, HarnessError


class SecretStoreError(HarnessError):
    """A secret store operation failed permanently."""

    error_code: ClassVar[str] = "SECRET_STORE_ERROR"
    category: ClassVar[ErrorCategory] = ErrorCategory.STORE

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        secret_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize store error.

        Args:
            message: Description of the failure.
            operation: Store operation that failed, e.g. "GetSecretValue".
            secret_id: Secret id or arn the operation targeted.
            context: Additional context information.
        """
        context_dict = context or {}
        if operation is not None:
            context_dict["operation"] = operation
        if secret_id is not None:
            context_dict["secret_id"] = secret_id
        super().__init__(message, context=context_dict)


class SecretNotFoundError(SecretStoreError):
    """No secret version carries the requested stage."""

    error_code: ClassVar[str] = "SECRET_NOT_FOUND"


class SecretFormatError(SecretStoreError):
    """Secret payload is missing or does not match the expected structure."""

    error_code: ClassVar[str] = "SECRET_FORMAT_ERROR"


class ThrottlingError(SecretStoreError):
    """The store kept throttling past the configured attempt limit."""

    error_code: ClassVar[str] = "SECRET_STORE_THROTTLED"
