"""Invocation harness exception hierarchy.

Architecture:
    HarnessError (base)
    ├── ConfigurationError        (configuration)
    ├── EventValidationError      (validation)
    ├── InvocationTimeoutError    (timeout)
    └── SecretStoreError          (store)
        ├── SecretNotFoundError
        ├── SecretFormatError
        └── ThrottlingError

Failures raised by user-supplied runner or rotation code are not wrapped.

Usage:
    from lambda_harness.exceptions import SecretNotFoundError

    try:
        record = await gateway.fetch(secret_id, VersionStage.PENDING, Secret)
    except SecretNotFoundError:
        record = None
"""

from lambda_harness.exceptions.base import ErrorCategory, HarnessError
from lambda_harness.exceptions.invocation_errors import (
    ConfigurationError,
    EventValidationError,
    InvocationTimeoutError,
)
from lambda_harness.exceptions.store_errors import (
    SecretFormatError,
    SecretNotFoundError,
    SecretStoreError,
    ThrottlingError,
)

__all__ = [
    "ConfigurationError",
    "ErrorCategory",
    "EventValidationError",
    "HarnessError",
    "InvocationTimeoutError",
    "SecretFormatError",
    "SecretNotFoundError",
    "SecretStoreError",
    "ThrottlingError",
]
