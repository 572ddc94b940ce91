"""Tests for the Secrets Manager gateway."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import boto3
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from moto import mock_aws
from pydantic import BaseModel

from lambda_harness.config import Settings
from lambda_harness.exceptions import (
    SecretFormatError,
    SecretNotFoundError,
    SecretStoreError,
    ThrottlingError,
)
from lambda_harness.rotate import (
    RotationRunner,
    RotationStep,
    SecretContainer,
    SecretsManagerGateway,
    VersionStage,
    is_throttling_error,
)
from lambda_harness.types import InvocationContext

REGION = "eu-central-1"
SECRET_ID = "db-credentials"
PENDING_TOKEN = "0b6c9a52-3f1e-4d8b-a7e2-9c4d5f6a7b8c"


class Credentials(BaseModel):
    username: str
    password: str


def client_error(code: str, message: str = "", status: int = 400, operation: str = "GetSecretValue"):
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


@pytest.fixture()
def secretsmanager():
    """Mock Secrets Manager holding one JSON secret."""
    with mock_aws():
        client = boto3.client("secretsmanager", region_name=REGION)
        client.create_secret(
            Name=SECRET_ID,
            SecretString=json.dumps({"username": "app", "password": "old-password", "engine": "postgres"}),
        )
        yield client


@pytest.fixture()
def gateway(secretsmanager):
    return SecretsManagerGateway(secretsmanager)


class TestIsThrottlingError:
    @pytest.mark.parametrize(
        ("code", "message", "status", "expected"),
        [
            ("ThrottlingException", "Rate exceeded", 400, True),
            ("SlowDown", "", 503, True),
            ("ServiceUnavailable", "Too Many Requests", 503, True),
            ("Anything", "", 429, True),
            ("ThrottlingException", "Rate exceeded", 500, False),
            ("ResourceNotFoundException", "not found", 400, False),
        ],
    )
    def test_classification(self, code, message, status, expected):
        assert is_throttling_error(client_error(code, message, status)) is expected


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_current(self, gateway, secretsmanager):
        record = await gateway.fetch(SECRET_ID, VersionStage.CURRENT, Credentials)

        described = secretsmanager.describe_secret(SecretId=SECRET_ID)
        assert record.arn == described["ARN"]
        assert "AWSCURRENT" in described["VersionIdsToStages"][record.version_id]
        assert record.container.password == "old-password"
        assert record.container.extra == {"engine": "postgres"}

    @pytest.mark.asyncio
    async def test_missing_stage(self, gateway):
        with pytest.raises(SecretNotFoundError) as exc_info:
            await gateway.fetch(SECRET_ID, VersionStage.PENDING, Credentials)
        assert exc_info.value.context["secret_id"] == SECRET_ID
        assert exc_info.value.context["operation"] == "GetSecretValue"

    @pytest.mark.asyncio
    async def test_missing_secret(self, gateway):
        with pytest.raises(SecretNotFoundError):
            await gateway.fetch("no-such-secret", VersionStage.CURRENT, Credentials)

    @pytest.mark.asyncio
    async def test_malformed_payload(self, gateway, secretsmanager):
        secretsmanager.create_secret(Name="broken", SecretString="not json")
        with pytest.raises(SecretFormatError):
            await gateway.fetch("broken", VersionStage.CURRENT, Credentials)

    @pytest.mark.asyncio
    async def test_payload_missing_fields(self, gateway, secretsmanager):
        secretsmanager.create_secret(Name="partial", SecretString=json.dumps({"username": "app"}))
        with pytest.raises(SecretFormatError) as exc_info:
            await gateway.fetch("partial", VersionStage.CURRENT, Credentials)
        assert exc_info.value.context["stage"] == "AWSCURRENT"

    @pytest.mark.asyncio
    async def test_binary_payload(self, gateway, secretsmanager):
        secretsmanager.create_secret(
            Name="binary",
            SecretBinary=json.dumps({"username": "app", "password": "pw"}).encode(),
        )
        record = await gateway.fetch("binary", VersionStage.CURRENT, Credentials)
        assert record.container.username == "app"

    @pytest.mark.asyncio
    async def test_response_without_version_id(self):
        client = MagicMock()
        client.get_secret_value.return_value = {"ARN": "arn", "SecretString": "{}"}
        with pytest.raises(SecretStoreError, match="version_id is unavailable"):
            await SecretsManagerGateway(client).fetch(SECRET_ID, VersionStage.CURRENT, Credentials)

    @pytest.mark.asyncio
    async def test_response_without_payload(self):
        client = MagicMock()
        client.get_secret_value.return_value = {"ARN": "arn", "VersionId": "v1"}
        with pytest.raises(SecretFormatError):
            await SecretsManagerGateway(client).fetch(SECRET_ID, VersionStage.CURRENT, Credentials)


class TestGeneratePassword:
    @pytest.mark.asyncio
    async def test_never_contains_double_quote(self, gateway):
        for _ in range(5):
            password = await gateway.generate_password()
            assert password
            assert '"' not in password

    @pytest.mark.asyncio
    async def test_length(self, gateway):
        assert len(await gateway.generate_password(length=48)) == 48

    @pytest.mark.asyncio
    async def test_request_parameters(self):
        client = MagicMock()
        client.get_random_password.return_value = {"RandomPassword": "abc"}
        await SecretsManagerGateway(client).generate_password(exclude_punctuation=True, length=20)
        client.get_random_password.assert_called_once_with(
            ExcludeCharacters='"',
            ExcludePunctuation=True,
            PasswordLength=20,
        )

    @pytest.mark.asyncio
    async def test_empty_password(self):
        client = MagicMock()
        client.get_random_password.return_value = {}
        with pytest.raises(SecretStoreError, match="Generated password is empty"):
            await SecretsManagerGateway(client).generate_password()


class TestWritePendingAndPromote:
    @pytest.mark.asyncio
    async def test_write_pending(self, gateway, secretsmanager):
        current = await gateway.fetch(SECRET_ID, VersionStage.CURRENT, Credentials)
        payload = current.container.replace(password="new-password").to_json()

        version_id = await gateway.write_pending(SECRET_ID, PENDING_TOKEN, payload)

        assert version_id == PENDING_TOKEN
        pending = await gateway.fetch(SECRET_ID, VersionStage.PENDING, Credentials)
        assert pending.version_id == PENDING_TOKEN
        assert pending.container.password == "new-password"
        assert pending.container.extra == {"engine": "postgres"}
        again = await gateway.fetch(SECRET_ID, VersionStage.CURRENT, Credentials)
        assert again.version_id == current.version_id

    @pytest.mark.asyncio
    async def test_promote(self, gateway, secretsmanager):
        current = await gateway.fetch(SECRET_ID, VersionStage.CURRENT, Credentials)
        await gateway.write_pending(SECRET_ID, PENDING_TOKEN, current.container.replace(password="x").to_json())

        await gateway.promote(current.arn, current.version_id, PENDING_TOKEN)

        promoted = await gateway.fetch(SECRET_ID, VersionStage.CURRENT, Credentials)
        assert promoted.version_id == PENDING_TOKEN
        stages = secretsmanager.describe_secret(SecretId=SECRET_ID)["VersionIdsToStages"]
        assert "AWSCURRENT" not in stages.get(current.version_id, [])

    @pytest.mark.asyncio
    async def test_write_to_missing_secret(self, gateway):
        with pytest.raises(SecretNotFoundError):
            await gateway.write_pending("no-such-secret", PENDING_TOKEN, "{}")


class TestThrottling:
    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        client = MagicMock()
        client.get_random_password.side_effect = [
            client_error("ThrottlingException", "Rate exceeded"),
            client_error("ThrottlingException", "Rate exceeded"),
            {"RandomPassword": "abc"},
        ]
        sleep = AsyncMock()
        with patch("lambda_harness.rotate.gateway.asyncio.sleep", sleep):
            password = await SecretsManagerGateway(client).generate_password()

        assert password == "abc"
        assert client.get_random_password.call_count == 3
        assert [call.args[0] for call in sleep.call_args_list] == pytest.approx([0.1, 0.2])

    @pytest.mark.asyncio
    async def test_delay_is_capped(self):
        client = MagicMock()
        client.get_random_password.side_effect = [client_error("SlowDown", status=503)] * 4 + [
            {"RandomPassword": "abc"}
        ]
        sleep = AsyncMock()
        with patch("lambda_harness.rotate.gateway.asyncio.sleep", sleep):
            await SecretsManagerGateway(client, retry_delay_seconds=0.4).generate_password()

        assert [call.args[0] for call in sleep.call_args_list] == pytest.approx([0.4, 0.8, 1.0, 1.0])

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        client = MagicMock()
        client.get_secret_value.side_effect = client_error("ThrottlingException", "Rate exceeded")
        with patch("lambda_harness.rotate.gateway.asyncio.sleep", AsyncMock()):
            with pytest.raises(ThrottlingError) as exc_info:
                await SecretsManagerGateway(client, max_attempts=3).fetch(
                    SECRET_ID, VersionStage.CURRENT, Credentials
                )

        assert client.get_secret_value.call_count == 3
        assert exc_info.value.context["operation"] == "GetSecretValue"

    @pytest.mark.asyncio
    async def test_zero_max_attempts_retries_without_limit(self):
        client = MagicMock()
        client.get_random_password.side_effect = [client_error("ThrottlingException", "Rate exceeded")] * 15 + [
            {"RandomPassword": "abc"}
        ]
        sleep = AsyncMock()
        with patch("lambda_harness.rotate.gateway.asyncio.sleep", sleep):
            password = await SecretsManagerGateway(client, max_attempts=0).generate_password()

        assert password == "abc"
        assert client.get_random_password.call_count == 16
        assert sleep.await_count == 15
        assert sleep.call_args.args[0] == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        client = MagicMock()
        client.put_secret_value.side_effect = client_error("AccessDeniedException", "denied")
        with pytest.raises(SecretStoreError) as exc_info:
            await SecretsManagerGateway(client).write_pending(SECRET_ID, PENDING_TOKEN, "{}")

        assert client.put_secret_value.call_count == 1
        assert exc_info.value.context["error_code"] == "AccessDeniedException"
        assert not isinstance(exc_info.value, ThrottlingError)

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        client = MagicMock()
        client.update_secret_version_stage.side_effect = EndpointConnectionError(endpoint_url="https://example")
        with pytest.raises(SecretStoreError):
            await SecretsManagerGateway(client).promote("arn", "v1", "v2")


class TestForRegion:
    def test_uses_settings(self):
        with mock_aws():
            gateway = SecretsManagerGateway.for_region(
                REGION,
                Settings(throttle_retry_delay_ms=250, throttle_max_attempts=4),
            )
        assert gateway._retry_delay_seconds == 0.25
        assert gateway._max_attempts == 4
        assert gateway._client.meta.region_name == REGION


class TestRotationAgainstSecretsManager:
    @pytest.mark.asyncio
    async def test_full_rotation(self, secretsmanager, rotation):
        runner = RotationRunner(rotation, gateway_factory=SecretsManagerGateway.for_region)
        context = InvocationContext(region=REGION)
        before = secretsmanager.describe_secret(SecretId=SECRET_ID)["VersionIdsToStages"]
        (old_version,) = [version for version, stages in before.items() if "AWSCURRENT" in stages]

        for step in RotationStep:
            event = {"ClientRequestToken": PENDING_TOKEN, "SecretId": SECRET_ID, "Step": step.value}
            await runner.run(None, runner.event_type.model_validate(event), context)

        current = secretsmanager.get_secret_value(SecretId=SECRET_ID, VersionStage="AWSCURRENT")
        assert current["VersionId"] == PENDING_TOKEN
        rotated = SecretContainer.from_json(Credentials, current["SecretString"])
        assert rotated.password != "old-password"
        assert rotated.extra == {"engine": "postgres"}
        stages = secretsmanager.describe_secret(SecretId=SECRET_ID)["VersionIdsToStages"]
        assert "AWSCURRENT" not in stages.get(old_version, [])
