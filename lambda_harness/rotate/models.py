"""Rotation events and secret payload containers."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RotationStep(StrEnum):
    """Steps of a Secrets Manager rotation, in the order they are invoked."""

    CREATE = "createSecret"
    SET = "setSecret"
    TEST = "testSecret"
    FINISH = "finishSecret"


class VersionStage(StrEnum):
    """Staging labels attached to secret versions."""

    CURRENT = "AWSCURRENT"
    PENDING = "AWSPENDING"


class RotationEvent(BaseModel):
    """Event sent by Secrets Manager to a rotation function.

    An unknown ``Step`` fails validation.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    client_request_token: str = Field(alias="ClientRequestToken", min_length=1)
    secret_id: str = Field(alias="SecretId", min_length=1)
    step: RotationStep = Field(alias="Step")


def _wire_keys(model_type: type[BaseModel]) -> frozenset[str]:
    return frozenset(info.alias or name for name, info in model_type.model_fields.items())


@dataclass
class SecretContainer[S: BaseModel]:
    """A secret payload split into typed fields and everything else.

    Secrets often carry fields the rotation code does not model (engine,
    dbClusterIdentifier, ...). They are kept in ``extra`` and written back
    untouched, so rotating a password never drops them.

    Attribute access falls through to ``data``, so ``container.password``
    reads the typed field.
    """

    data: S
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, secret_type: type[S], payload: Mapping[str, Any]) -> "SecretContainer[S]":
        """Split a decoded payload into ``secret_type`` and the remaining fields.

        Raises:
            pydantic.ValidationError: If the known fields do not match ``secret_type``.
        """
        known = _wire_keys(secret_type)
        data = secret_type.model_validate({key: value for key, value in payload.items() if key in known})
        extra = {key: value for key, value in payload.items() if key not in known}
        return cls(data=data, extra=extra)

    @classmethod
    def from_json(cls, secret_type: type[S], raw: str | bytes) -> "SecretContainer[S]":
        """Parse a JSON object into a container.

        Raises:
            ValueError: If ``raw`` is not a JSON object or does not match ``secret_type``.
        """
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError(f"Secret payload must be a JSON object, got {type(payload).__name__}")
        return cls.parse(secret_type, payload)

    def to_dict(self) -> dict[str, Any]:
        """Union of the typed fields and the preserved extra fields."""
        return {**self.extra, **self.data.model_dump(mode="json", by_alias=True)}

    def to_json(self) -> str:
        """Serialize to the JSON string stored in the secret."""
        return json.dumps(self.to_dict())

    def replace(self, **changes: Any) -> "SecretContainer[S]":
        """Copy with some typed fields changed; extra fields are carried over."""
        return SecretContainer(
            data=self.data.model_copy(update=changes),
            extra=dict(self.extra),
        )

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not dataclass fields.
        if name.startswith("__") or name in ("data", "extra"):
            raise AttributeError(name)
        return getattr(self.data, name)


@dataclass(frozen=True)
class SecretRecord[S: BaseModel]:
    """One secret version as read from the store."""

    arn: str
    version_id: str
    container: SecretContainer[S]
