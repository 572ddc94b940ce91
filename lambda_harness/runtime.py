"""Bridge between the AWS Lambda Python runtime and the harness.

The Lambda runtime calls a plain function per event. ``LambdaRuntime`` is
that function: it is built once at import time of the handler module (cold
start) and reused for every invocation the execution environment receives.

Usage (``handler.py``):
    from lambda_harness import create_handler

    handler = create_handler(MyRunner())
"""

import asyncio
from typing import Any

from pydantic_core import to_jsonable_python

from lambda_harness.config import Settings, validate_startup_config
from lambda_harness.deadline import epoch_millis
from lambda_harness.harness import InvocationHarness
from lambda_harness.logging import LoggingConfig, clear_context, get_logger, setup_logging
from lambda_harness.logging.adapters.lambda_adapter import set_lambda_context
from lambda_harness.runner import Runner
from lambda_harness.types import LambdaContext

logger = get_logger(__name__)


class LambdaRuntime[SharedT, EventT, ReturnT]:
    """Lambda handler owning one event loop and one harness per process.

    The event loop outlives single invocations so that shared state bound
    to it (locks, client sessions) stays usable in a warm environment.
    """

    def __init__(
        self,
        runner: Runner[SharedT, EventT, ReturnT],
        *,
        settings: Settings | None = None,
    ) -> None:
        """Validate configuration, set up logging and the runner.

        Args:
            runner: The work to execute per invocation.
            settings: Harness settings. Loads from environment if not provided.

        Raises:
            ConfigurationError: If the configuration is invalid or AWS_REGION is missing.
        """
        settings = settings or validate_startup_config()
        setup_logging(LoggingConfig.from_settings(settings))
        region = settings.require_region()

        self._loop = asyncio.new_event_loop()
        self._loop.run_until_complete(runner.setup())
        logger.info("Starting lambda runtime", extra={"region": region})
        self._harness = self._loop.run_until_complete(self._build_harness(runner, region, settings))

    @staticmethod
    async def _build_harness(
        runner: Runner[SharedT, EventT, ReturnT],
        region: str,
        settings: Settings,
    ) -> InvocationHarness[SharedT, EventT, ReturnT]:
        # Shared state is created inside the loop it will be used from.
        return InvocationHarness(runner, region=region, settings=settings)

    @property
    def harness(self) -> InvocationHarness[SharedT, EventT, ReturnT]:
        """The harness serving every invocation of this environment."""
        return self._harness

    def __call__(self, event: Any, context: LambdaContext) -> Any:
        """Handle one Lambda invocation.

        Args:
            event: Raw Lambda event.
            context: Lambda context.

        Returns:
            JSON-compatible result of the runner.
        """
        deadline_ms = epoch_millis() + context.get_remaining_time_in_millis()
        set_lambda_context(event, context)
        try:
            result = self._loop.run_until_complete(
                self._harness.invoke(
                    event,
                    deadline_ms=deadline_ms,
                    request_id=context.aws_request_id,
                )
            )
        finally:
            clear_context()
        return to_jsonable_python(result)

    def close(self) -> None:
        """Close the event loop. Primarily for testing."""
        self._loop.close()


def create_handler[SharedT, EventT, ReturnT](
    runner: Runner[SharedT, EventT, ReturnT],
    *,
    settings: Settings | None = None,
) -> LambdaRuntime[SharedT, EventT, ReturnT]:
    """Build the Lambda handler for ``runner``."""
    return LambdaRuntime(runner, settings=settings)
