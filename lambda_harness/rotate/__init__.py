"""Secrets Manager rotation runners.

Usage:
    from lambda_harness.rotate import RotationHandler, RotationRunner, SecretContainer
"""

from lambda_harness.rotate.gateway import (
    SecretsManagerGateway,
    SecretStoreGateway,
    is_throttling_error,
)
from lambda_harness.rotate.models import (
    RotationEvent,
    RotationStep,
    SecretContainer,
    SecretRecord,
    VersionStage,
)
from lambda_harness.rotate.runner import RotationHandler, RotationRunner

__all__ = [
    "RotationEvent",
    "RotationHandler",
    "RotationRunner",
    "RotationStep",
    "SecretContainer",
    "SecretRecord",
    "SecretStoreGateway",
    "SecretsManagerGateway",
    "VersionStage",
    "is_throttling_error",
]
