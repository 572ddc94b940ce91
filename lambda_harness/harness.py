"""Invocation harness: races a runner against the Lambda deadline.

When the Lambda service kills a function at its timeout, nothing reaches the
function's failure destinations. The harness therefore starts a deadline
watcher next to the runner and fails the invocation itself shortly before the
hard timeout, turning the silent kill into an ``InvocationTimeoutError``.

Without a deadline (local replays) no watcher is started and the runner is
simply awaited.

A runner that loses the race is cancelled and never awaited for its result.
At most one invocation may touch the shared state at a time, so the next
invocation first waits until every cancelled runner has unwound (releasing
the locks it held). That wait counts against the next invocation's own
deadline. Store calls already handed to a worker thread cannot be
interrupted and may still complete.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from lambda_harness.config import Settings, get_settings
from lambda_harness.deadline import sleep_until_deadline
from lambda_harness.exceptions import EventValidationError, HarnessError, InvocationTimeoutError
from lambda_harness.logging import get_logger
from lambda_harness.runner import Runner
from lambda_harness.types import InvocationContext

logger = get_logger(__name__)


def _log_abandoned_outcome(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        logger.debug("Timed-out invocation was cancelled")
        return
    error = task.exception()
    if error is not None:
        logger.debug("Timed-out invocation failed while unwinding", extra={"error": repr(error)})
    else:
        logger.debug("Timed-out invocation completed while unwinding")


def _error_fields(error: BaseException) -> dict[str, Any]:
    if isinstance(error, HarnessError):
        return error.to_log_dict()
    return {"exception_type": type(error).__name__, "message": str(error)}


class InvocationHarness[SharedT, EventT, ReturnT]:
    """Runs a runner once per event, sharing one state across invocations."""

    def __init__(
        self,
        runner: Runner[SharedT, EventT, ReturnT],
        *,
        region: str,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the harness and build the shared state.

        Args:
            runner: The work to execute per invocation.
            region: AWS region handed to every invocation.
            settings: Harness settings. Loads from environment if not provided.
        """
        settings = settings or get_settings()
        self._runner = runner
        self._region = region
        self._safety_margin_ms = settings.deadline_safety_margin_ms
        self._event_adapter: TypeAdapter[EventT] = TypeAdapter(runner.event_type)
        self._shared = runner.create_shared()
        # Cancelled runner tasks of timed-out invocations, kept until they unwind.
        self._abandoned: set[asyncio.Task[Any]] = set()

    @property
    def abandoned_tasks(self) -> frozenset[asyncio.Task[Any]]:
        """Runner tasks of timed-out invocations that have not unwound yet."""
        return frozenset(self._abandoned)

    @property
    def shared(self) -> SharedT:
        """State shared by every invocation of this harness."""
        return self._shared

    @property
    def region(self) -> str:
        """Region handed to every invocation."""
        return self._region

    async def invoke(
        self,
        payload: Any,
        *,
        deadline_ms: int | None = None,
        request_id: str | None = None,
    ) -> ReturnT:
        """Run one invocation to completion, failure or timeout.

        Args:
            payload: Raw event as delivered by Lambda.
            deadline_ms: Absolute deadline in epoch milliseconds, None to
                await the runner without a timeout.
            request_id: Lambda request id.

        Returns:
            The runner's result.

        Raises:
            EventValidationError: If the payload does not match the runner's event type.
            InvocationTimeoutError: If the deadline watcher fired first.
        """
        logger.info("Received lambda invocation", extra={"event": payload})
        try:
            result = await self._invoke(payload, deadline_ms=deadline_ms, request_id=request_id)
        except Exception as error:
            logger.error("Lambda invocation failed", extra={"error": _error_fields(error)})
            raise
        logger.info(
            "Completed lambda invocation",
            extra={"result": to_jsonable_python(result, fallback=repr)},
        )
        return result

    async def _invoke(
        self,
        payload: Any,
        *,
        deadline_ms: int | None,
        request_id: str | None,
    ) -> ReturnT:
        try:
            event = self._event_adapter.validate_python(payload)
        except ValidationError as error:
            raise EventValidationError(
                "Unable to deserialize event",
                context={"errors": error.errors(include_url=False, include_context=False)},
            ) from error

        context = InvocationContext(
            region=self._region,
            deadline_ms=deadline_ms,
            request_id=request_id,
            event=payload,
        )
        work = self._run(event, context)
        if deadline_ms is None:
            return await work
        return await self._race(work, deadline_ms)

    async def _run(self, event: EventT, context: InvocationContext) -> ReturnT:
        await self._settle_abandoned()
        return await self._runner.run(self._shared, event, context)

    async def _settle_abandoned(self) -> None:
        pending = [task for task in self._abandoned if not task.done()]
        if not pending:
            return
        logger.debug("Waiting for timed-out invocations to unwind", extra={"tasks": len(pending)})
        await asyncio.wait(pending)

    async def _race(self, work: Coroutine[Any, Any, ReturnT], deadline_ms: int) -> ReturnT:
        work_task = asyncio.ensure_future(work)
        watcher = asyncio.ensure_future(
            sleep_until_deadline(deadline_ms, safety_margin_ms=self._safety_margin_ms)
        )
        await asyncio.wait({work_task, watcher}, return_when=asyncio.FIRST_COMPLETED)

        if work_task.done():
            watcher.cancel()
            return work_task.result()

        self._abandon(work_task)
        raise InvocationTimeoutError(deadline_ms=deadline_ms)

    def _abandon(self, task: asyncio.Task[Any]) -> None:
        task.cancel()
        self._abandoned.add(task)
        task.add_done_callback(self._abandoned.discard)
        task.add_done_callback(_log_abandoned_outcome)
