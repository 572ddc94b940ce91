"""Secrets Manager access for rotation functions.

``SecretStoreGateway`` is the interface the rotation runner depends on;
``SecretsManagerGateway`` is its boto3 implementation. boto3 is blocking,
so every call runs in a worker thread and the deadline watcher can still
fire while a store call is in flight.

Throttled calls are retried after a short cool-down. botocore's own retry
handling is switched off so that this is the only retry policy in play.
"""

import asyncio
from collections.abc import Callable
from typing import Any, Protocol, Self

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from lambda_harness.config import Settings, get_settings
from lambda_harness.exceptions import (
    SecretFormatError,
    SecretNotFoundError,
    SecretStoreError,
    ThrottlingError,
)
from lambda_harness.logging import get_logger
from lambda_harness.rotate.models import SecretContainer, SecretRecord, VersionStage

logger = get_logger(__name__)

# Double quotes are never generated so passwords embed safely in JSON and connection strings.
EXCLUDED_PASSWORD_CHARACTERS = '"'

_THROTTLING_MARKERS = ("Throttling", "TooManyRequests", "Too Many Requests", "SlowDown")
_MAX_RETRY_DELAY_SECONDS = 1.0


def is_throttling_error(error: ClientError) -> bool:
    """Whether ``error`` is the store asking the caller to slow down.

    True for HTTP 429, and for HTTP 400/503 responses whose error code or
    message names a throttling condition.
    """
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if status == 429:
        return True
    if status not in (400, 503):
        return False
    details = error.response.get("Error", {})
    text = f"{details.get('Code', '')} {details.get('Message', '')}"
    return any(marker in text for marker in _THROTTLING_MARKERS)


class SecretStoreGateway(Protocol):
    """Typed operations over a versioned secret store."""

    async def fetch[S: BaseModel](
        self,
        secret_id: str,
        stage: VersionStage,
        secret_type: type[S],
    ) -> SecretRecord[S]:
        """Read the version carrying ``stage``."""
        ...

    async def generate_password(
        self,
        *,
        exclude_punctuation: bool = False,
        length: int | None = None,
    ) -> str:
        """Ask the store for random secret material."""
        ...

    async def write_pending(
        self,
        secret_id: str,
        request_token: str | None,
        secret_string: str,
    ) -> str:
        """Store a new version labeled pending and return its version id."""
        ...

    async def promote(
        self,
        arn: str,
        current_version_id: str,
        pending_version_id: str,
    ) -> None:
        """Move the current label from one version to another."""
        ...


class SecretsManagerGateway:
    """AWS Secrets Manager implementation of ``SecretStoreGateway``."""

    def __init__(
        self,
        client: Any,
        *,
        retry_delay_seconds: float = 0.1,
        max_attempts: int = 10,
    ) -> None:
        """Initialize the gateway.

        Args:
            client: boto3 ``secretsmanager`` client.
            retry_delay_seconds: Base cool-down after a throttled call.
            max_attempts: Attempts per call while throttled, 0 for no limit.
        """
        self._client = client
        self._retry_delay_seconds = retry_delay_seconds
        self._max_attempts = max_attempts

    @classmethod
    def for_region(cls, region: str, settings: Settings | None = None) -> Self:
        """Build a gateway with a boto3 client for ``region``."""
        settings = settings or get_settings()
        client = boto3.client(  # type: ignore[call-overload]
            "secretsmanager",
            config=Config(region_name=region, retries={"total_max_attempts": 1}),
        )
        return cls(
            client,
            retry_delay_seconds=settings.throttle_retry_delay_ms / 1000,
            max_attempts=settings.throttle_max_attempts,
        )

    async def fetch[S: BaseModel](
        self,
        secret_id: str,
        stage: VersionStage,
        secret_type: type[S],
    ) -> SecretRecord[S]:
        """Read and parse the version carrying ``stage``.

        Raises:
            SecretNotFoundError: If no version carries ``stage``.
            SecretStoreError: If the response lacks its arn or version id.
            SecretFormatError: If the payload is absent or does not match ``secret_type``.
        """
        operation = "GetSecretValue"
        response = await self._call(
            operation,
            secret_id,
            self._client.get_secret_value,
            SecretId=secret_id,
            VersionStage=stage.value,
        )

        arn = response.get("ARN")
        if not arn:
            raise SecretStoreError(
                f"Arn is unavailable for secret value with id: {secret_id}",
                operation=operation,
                secret_id=secret_id,
            )
        version_id = response.get("VersionId")
        if not version_id:
            raise SecretStoreError(
                f"version_id is unavailable for secret value with id: {secret_id}",
                operation=operation,
                secret_id=secret_id,
            )

        raw = response.get("SecretString")
        if raw is None:
            raw = response.get("SecretBinary")
        if raw is None:
            raise SecretFormatError(
                f"Neither SecretString nor SecretBinary is set for id: {secret_id}",
                operation=operation,
                secret_id=secret_id,
            )
        try:
            container = SecretContainer.from_json(secret_type, raw)
        except ValueError as error:
            raise SecretFormatError(
                f"Unable to parse secret value. Value does not conform to {secret_type.__name__}",
                operation=operation,
                secret_id=secret_id,
                context={"stage": stage.value},
            ) from error

        return SecretRecord(arn=arn, version_id=version_id, container=container)

    async def generate_password(
        self,
        *,
        exclude_punctuation: bool = False,
        length: int | None = None,
    ) -> str:
        """Generate random secret material.

        Args:
            exclude_punctuation: Leave punctuation characters out.
            length: Password length, store default if None.

        Raises:
            SecretStoreError: If the store returns no password.
        """
        operation = "GetRandomPassword"
        parameters: dict[str, Any] = {
            "ExcludeCharacters": EXCLUDED_PASSWORD_CHARACTERS,
            "ExcludePunctuation": exclude_punctuation,
        }
        if length is not None:
            parameters["PasswordLength"] = length

        response = await self._call(operation, None, self._client.get_random_password, **parameters)
        password: str | None = response.get("RandomPassword")
        if not password:
            raise SecretStoreError("Generated password is empty", operation=operation)
        return password

    async def write_pending(
        self,
        secret_id: str,
        request_token: str | None,
        secret_string: str,
    ) -> str:
        """Store ``secret_string`` as a new version labeled pending.

        The request token makes repeated writes of one rotation attempt
        idempotent on the store side.

        Returns:
            Version id of the written version.
        """
        parameters: dict[str, Any] = {
            "SecretId": secret_id,
            "SecretString": secret_string,
            "VersionStages": [VersionStage.PENDING.value],
        }
        if request_token is not None:
            parameters["ClientRequestToken"] = request_token

        response = await self._call(
            "PutSecretValue",
            secret_id,
            self._client.put_secret_value,
            **parameters,
        )
        version_id: str = response.get("VersionId", request_token or "")
        return version_id

    async def promote(
        self,
        arn: str,
        current_version_id: str,
        pending_version_id: str,
    ) -> None:
        """Move the current label from ``current_version_id`` to ``pending_version_id``."""
        await self._call(
            "UpdateSecretVersionStage",
            arn,
            self._client.update_secret_version_stage,
            SecretId=arn,
            VersionStage=VersionStage.CURRENT.value,
            MoveToVersionId=pending_version_id,
            RemoveFromVersionId=current_version_id,
        )

    async def _call(
        self,
        operation: str,
        secret_id: str | None,
        method: Callable[..., dict[str, Any]],
        **parameters: Any,
    ) -> dict[str, Any]:
        """Call the client off the event loop, cooling down while throttled."""
        attempt = 1
        while True:
            try:
                return await asyncio.to_thread(method, **parameters)
            except ClientError as error:
                if not is_throttling_error(error):
                    raise self._wrap(error, operation, secret_id) from error
                if self._max_attempts and attempt >= self._max_attempts:
                    raise ThrottlingError(
                        f"Still throttled after {attempt} attempts",
                        operation=operation,
                        secret_id=secret_id,
                    ) from error
            except BotoCoreError as error:
                raise SecretStoreError(
                    f"{operation} failed: {error}",
                    operation=operation,
                    secret_id=secret_id,
                ) from error

            delay = min(self._retry_delay_seconds * attempt, _MAX_RETRY_DELAY_SECONDS)
            logger.info(
                "Cooling down to prevent request limits",
                extra={"operation": operation, "attempt": attempt, "delay_seconds": delay},
            )
            await asyncio.sleep(delay)
            attempt += 1

    @staticmethod
    def _wrap(error: ClientError, operation: str, secret_id: str | None) -> SecretStoreError:
        code = error.response.get("Error", {}).get("Code", "Unknown")
        detail = error.response.get("Error", {}).get("Message", str(error))
        if code == "ResourceNotFoundException":
            return SecretNotFoundError(
                f"Unable to fetch SecretValue with id: {secret_id}",
                operation=operation,
                secret_id=secret_id,
                context={"error_code": code, "detail": detail},
            )
        return SecretStoreError(
            f"{operation} failed for id: {secret_id}",
            operation=operation,
            secret_id=secret_id,
            context={"error_code": code, "detail": detail},
        )
