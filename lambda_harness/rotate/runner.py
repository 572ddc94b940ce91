"""Secrets Manager rotation on top of the generic runner contract.

Secrets Manager invokes a rotation function four times per rotation, once
per step. All state lives in the store's staging labels, so any step may be
re-invoked after a partial failure:

    createSecret  write a new candidate labeled AWSPENDING, unless a
                  rotation is already in progress
    setSecret     push the candidate into the external service, unless
                  the service already accepts it
    testSecret    check the external service accepts the candidate
    finishSecret  move AWSCURRENT onto the candidate

Users implement a ``RotationHandler``; ``RotationRunner`` adapts it to
``Runner`` and drives the steps.

Usage:
    class Credentials(BaseModel):
        user: str
        password: str

    class DatabaseRotation(RotationHandler[None, Credentials]):
        secret_type = Credentials

        async def create(self, shared, current, gateway, region):
            return current.replace(password=await gateway.generate_password())

        async def set(self, shared, current, pending, region): ...
        async def test(self, shared, pending, region): ...

    handler = create_handler(RotationRunner(DatabaseRotation()))
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import ClassVar

from pydantic import BaseModel

from lambda_harness.exceptions import SecretNotFoundError
from lambda_harness.logging import get_logger
from lambda_harness.rotate.gateway import SecretsManagerGateway, SecretStoreGateway
from lambda_harness.rotate.models import (
    RotationEvent,
    RotationStep,
    SecretContainer,
    SecretRecord,
    VersionStage,
)
from lambda_harness.runner import Runner
from lambda_harness.types import InvocationContext

logger = get_logger(__name__)

GatewayFactory = Callable[[str], SecretStoreGateway]


class RotationHandler[SharedT, SecretT: BaseModel](ABC):
    """User-supplied behaviour of a rotation.

    Attributes:
        secret_type: Model of the fields the rotation needs. Fields of the
            stored secret not declared here are preserved untouched.
    """

    secret_type: ClassVar[type[BaseModel]]

    async def setup(self) -> None:
        """See ``Runner.setup``."""

    def create_shared(self) -> SharedT:
        """See ``Runner.create_shared``."""
        return None  # type: ignore[return-value]

    @abstractmethod
    async def create(
        self,
        shared: SharedT,
        current: SecretContainer[SecretT],
        gateway: SecretStoreGateway,
        region: str,
    ) -> SecretContainer[SecretT]:
        """Build a new secret from the current one without applying it anywhere.

        Only called when no rotation is in progress.
        """

    @abstractmethod
    async def set(
        self,
        shared: SharedT,
        current: SecretContainer[SecretT],
        pending: SecretContainer[SecretT],
        region: str,
    ) -> None:
        """Apply the pending secret in the external service.

        Only called after ``test`` failed for the pending secret: once a
        password change went through, the current credentials no longer
        work, so a retried rotation must not try to change it again.
        """

    @abstractmethod
    async def test(
        self,
        shared: SharedT,
        pending: SecretContainer[SecretT],
        region: str,
    ) -> None:
        """Raise if the external service rejects the pending secret."""

    async def finish(
        self,
        shared: SharedT,
        current: SecretContainer[SecretT],
        pending: SecretContainer[SecretT],
        region: str,
    ) -> None:
        """Perform any work needed before the pending secret becomes current."""


class RotationRunner[SharedT, SecretT: BaseModel](Runner[SharedT, RotationEvent, None]):
    """Runs the rotation steps of a ``RotationHandler``."""

    event_type = RotationEvent

    def __init__(
        self,
        handler: RotationHandler[SharedT, SecretT],
        *,
        gateway_factory: GatewayFactory = SecretsManagerGateway.for_region,
    ) -> None:
        """Initialize the runner.

        Args:
            handler: User-supplied rotation behaviour.
            gateway_factory: Builds the store gateway for a region.
        """
        self._handler = handler
        self._gateway_factory = gateway_factory
        self._gateways: dict[str, SecretStoreGateway] = {}

    @property
    def handler(self) -> RotationHandler[SharedT, SecretT]:
        """The wrapped rotation behaviour."""
        return self._handler

    async def setup(self) -> None:
        """Delegate to the handler."""
        await self._handler.setup()

    def create_shared(self) -> SharedT:
        """Delegate to the handler."""
        return self._handler.create_shared()

    def gateway(self, region: str) -> SecretStoreGateway:
        """Store gateway for ``region``, built on first use."""
        if region not in self._gateways:
            self._gateways[region] = self._gateway_factory(region)
        return self._gateways[region]

    async def run(
        self,
        shared: SharedT,
        event: RotationEvent,
        context: InvocationContext,
    ) -> None:
        """Execute the step named by ``event``."""
        gateway = self.gateway(context.region)
        logger.info("Running rotation step", extra={"step": event.step.value, "secret_id": event.secret_id})
        match event.step:
            case RotationStep.CREATE:
                await self._create(shared, event, gateway, context.region)
            case RotationStep.SET:
                await self._set(shared, event, gateway, context.region)
            case RotationStep.TEST:
                await self._test(shared, event, gateway, context.region)
            case RotationStep.FINISH:
                await self._finish(shared, event, gateway, context.region)

    async def _fetch(
        self,
        gateway: SecretStoreGateway,
        secret_id: str,
        stage: VersionStage,
    ) -> SecretRecord[SecretT]:
        record: SecretRecord[SecretT] = await gateway.fetch(
            secret_id,
            stage,
            self._handler.secret_type,  # type: ignore[arg-type]
        )
        return record

    async def _create(
        self,
        shared: SharedT,
        event: RotationEvent,
        gateway: SecretStoreGateway,
        region: str,
    ) -> None:
        current = await self._fetch(gateway, event.secret_id, VersionStage.CURRENT)
        try:
            pending: SecretRecord[SecretT] | None = await self._fetch(
                gateway, event.secret_id, VersionStage.PENDING
            )
        except SecretNotFoundError:
            pending = None

        # A pending label left on the current version belongs to an earlier,
        # completed or abandoned rotation.
        if pending is not None and pending.version_id != current.version_id:
            logger.info("Found existing pending value", extra={"version_id": pending.version_id})
            return

        logger.info("Creating new secret value")
        candidate = await self._handler.create(shared, current.container, gateway, region)
        version_id = await gateway.write_pending(
            event.secret_id,
            event.client_request_token,
            candidate.to_json(),
        )
        logger.info("Stored pending secret value", extra={"version_id": version_id})

    async def _set(
        self,
        shared: SharedT,
        event: RotationEvent,
        gateway: SecretStoreGateway,
        region: str,
    ) -> None:
        pending = await self._fetch(gateway, event.secret_id, VersionStage.PENDING)
        try:
            await self._handler.test(shared, pending.container, region)
        except Exception as error:
            logger.info("Setting secret on remote system", extra={"test_error": repr(error)})
        else:
            logger.info("Password already set in remote system")
            return

        current = await self._fetch(gateway, event.secret_id, VersionStage.CURRENT)
        await self._handler.set(shared, current.container, pending.container, region)

    async def _test(
        self,
        shared: SharedT,
        event: RotationEvent,
        gateway: SecretStoreGateway,
        region: str,
    ) -> None:
        logger.info("Testing secret on remote system")
        pending = await self._fetch(gateway, event.secret_id, VersionStage.PENDING)
        await self._handler.test(shared, pending.container, region)

    async def _finish(
        self,
        shared: SharedT,
        event: RotationEvent,
        gateway: SecretStoreGateway,
        region: str,
    ) -> None:
        current = await self._fetch(gateway, event.secret_id, VersionStage.CURRENT)
        pending = await self._fetch(gateway, event.secret_id, VersionStage.PENDING)
        if pending.version_id == current.version_id:
            logger.info("Pending version is already current", extra={"version_id": current.version_id})
            return

        logger.info("Finishing secret deployment")
        await self._handler.finish(shared, current.container, pending.container, region)
        await gateway.promote(current.arn, current.version_id, pending.version_id)
        logger.info(
            "Promoted pending version to current",
            extra={"version_id": pending.version_id, "previous_version_id": current.version_id},
        )
