"""Rotate the password of an HTTP API account stored in Secrets Manager.

The secret holds at least ``{"base_url", "username", "password"}``; any other
fields are preserved. The API is expected to expose:

    GET  {base_url}/whoami                         basic auth, 200 if valid
    POST {base_url}/users/{username}/password      basic auth, {"password": new}

Deployment (``handler.py``):
    from examples.password_rotation import ApiPasswordRotation
    from lambda_harness import create_handler
    from lambda_harness.rotate import RotationRunner

    handler = create_handler(RotationRunner(ApiPasswordRotation()))
"""

import asyncio

import requests
from pydantic import BaseModel

from lambda_harness.rotate import RotationHandler, SecretContainer, SecretStoreGateway

REQUEST_TIMEOUT_SECONDS = 10
PASSWORD_LENGTH = 32


class ApiCredentials(BaseModel):
    base_url: str
    username: str
    password: str


def _check_login(credentials: ApiCredentials) -> None:
    response = requests.get(
        f"{credentials.base_url}/whoami",
        auth=(credentials.username, credentials.password),
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()


def _change_password(current: ApiCredentials, new_password: str) -> None:
    response = requests.post(
        f"{current.base_url}/users/{current.username}/password",
        auth=(current.username, current.password),
        json={"password": new_password},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()


class ApiPasswordRotation(RotationHandler[None, ApiCredentials]):
    secret_type = ApiCredentials

    async def create(
        self,
        shared: None,
        current: SecretContainer[ApiCredentials],
        gateway: SecretStoreGateway,
        region: str,
    ) -> SecretContainer[ApiCredentials]:
        password = await gateway.generate_password(length=PASSWORD_LENGTH)
        return current.replace(password=password)

    async def set(
        self,
        shared: None,
        current: SecretContainer[ApiCredentials],
        pending: SecretContainer[ApiCredentials],
        region: str,
    ) -> None:
        await asyncio.to_thread(_change_password, current.data, pending.data.password)

    async def test(
        self,
        shared: None,
        pending: SecretContainer[ApiCredentials],
        region: str,
    ) -> None:
        await asyncio.to_thread(_check_login, pending.data)
