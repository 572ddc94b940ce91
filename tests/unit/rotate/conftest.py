"""Fixtures for rotation tests: an in-memory secret store and a recording handler."""

import json
from typing import Any

import pytest
from pydantic import BaseModel

from lambda_harness.exceptions import SecretNotFoundError
from lambda_harness.rotate import (
    RotationEvent,
    RotationHandler,
    RotationRunner,
    RotationStep,
    SecretContainer,
    SecretRecord,
    SecretStoreGateway,
    VersionStage,
)
from lambda_harness.types import InvocationContext

SECRET_ID = "db-credentials"
REQUEST_TOKEN = "5f0d3c1e-7a89-4b6e-9c2d-1e4f5a6b7c8d"


class Credentials(BaseModel):
    username: str
    password: str


class FakeSecretStore:
    """Versioned secret store keeping staging labels in memory."""

    def __init__(self) -> None:
        self.arn = f"arn:aws:secretsmanager:eu-central-1:123456789012:secret:{SECRET_ID}"
        self.payloads: dict[str, str] = {}
        self.stages: dict[str, set[str]] = {}
        self.writes: list[tuple[str, str | None, str]] = []
        self.promotions: list[tuple[str, str, str]] = []
        self._generated = 0

    def add_version(self, version_id: str, payload: dict[str, Any], *stages: VersionStage) -> None:
        self.payloads[version_id] = json.dumps(payload)
        self.stages[version_id] = {stage.value for stage in stages}

    def version_with(self, stage: VersionStage) -> str | None:
        return next(
            (version_id for version_id, labels in self.stages.items() if stage.value in labels),
            None,
        )

    async def fetch(self, secret_id, stage, secret_type):
        version_id = self.version_with(stage)
        if version_id is None:
            raise SecretNotFoundError(
                f"Unable to fetch SecretValue with id: {secret_id}",
                operation="GetSecretValue",
                secret_id=secret_id,
            )
        container = SecretContainer.from_json(secret_type, self.payloads[version_id])
        return SecretRecord(arn=self.arn, version_id=version_id, container=container)

    async def generate_password(self, *, exclude_punctuation=False, length=None):
        self._generated += 1
        return f"generated-password-{self._generated}"

    async def write_pending(self, secret_id, request_token, secret_string):
        self.writes.append((secret_id, request_token, secret_string))
        version_id = request_token or f"version-{len(self.writes)}"
        for labels in self.stages.values():
            labels.discard(VersionStage.PENDING.value)
        self.payloads[version_id] = secret_string
        self.stages[version_id] = {VersionStage.PENDING.value}
        return version_id

    async def promote(self, arn, current_version_id, pending_version_id):
        self.promotions.append((arn, current_version_id, pending_version_id))
        self.stages[current_version_id].discard(VersionStage.CURRENT.value)
        self.stages[pending_version_id].add(VersionStage.CURRENT.value)


class RecordingRotation(RotationHandler[None, Credentials]):
    """Rotation whose external service is a set of accepted passwords."""

    secret_type = Credentials

    def __init__(self, accepted_passwords: set[str] | None = None) -> None:
        self.accepted_passwords = accepted_passwords if accepted_passwords is not None else set()
        self.calls: list[tuple[Any, ...]] = []

    async def create(
        self,
        shared: None,
        current: SecretContainer[Credentials],
        gateway: SecretStoreGateway,
        region: str,
    ) -> SecretContainer[Credentials]:
        self.calls.append(("create", current.password))
        return current.replace(password=await gateway.generate_password())

    async def set(
        self,
        shared: None,
        current: SecretContainer[Credentials],
        pending: SecretContainer[Credentials],
        region: str,
    ) -> None:
        self.calls.append(("set", current.password, pending.password))
        self.accepted_passwords.add(pending.password)

    async def test(self, shared: None, pending: SecretContainer[Credentials], region: str) -> None:
        self.calls.append(("test", pending.password))
        if pending.password not in self.accepted_passwords:
            raise ConnectionError("password authentication failed")

    async def finish(
        self,
        shared: None,
        current: SecretContainer[Credentials],
        pending: SecretContainer[Credentials],
        region: str,
    ) -> None:
        self.calls.append(("finish", current.password, pending.password))


def _rotation_event(step: RotationStep) -> RotationEvent:
    return RotationEvent(ClientRequestToken=REQUEST_TOKEN, SecretId=SECRET_ID, Step=step)


@pytest.fixture()
def store():
    store = FakeSecretStore()
    store.add_version(
        "v1",
        {"username": "app", "password": "old-password", "engine": "postgres", "port": 5432},
        VersionStage.CURRENT,
    )
    return store


@pytest.fixture()
def rotation():
    return RecordingRotation(accepted_passwords={"old-password"})


@pytest.fixture()
def runner(store, rotation):
    return RotationRunner(rotation, gateway_factory=lambda region: store)


@pytest.fixture()
def context():
    return InvocationContext(region="eu-central-1")


@pytest.fixture()
def make_event():
    """Build the event Secrets Manager sends for a step of one rotation."""
    return _rotation_event


@pytest.fixture()
def wire_event():
    """Raw event payload as delivered to the function."""
    return {"ClientRequestToken": REQUEST_TOKEN, "SecretId": SECRET_ID, "Step": "createSecret"}
