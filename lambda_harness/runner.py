"""The contract between the harness and the code it runs.

A runner is instantiated once per process. ``setup`` and ``create_shared``
run once before the first invocation; ``run`` runs for every event.

Shared state lives as long as the execution environment, which Lambda may
or may not reuse between invocations. Treat it as a cache, never as the
source of truth. Lambda never runs two invocations concurrently in one
environment, but a runner that spawns its own tasks must still guard the
shared state (e.g. with ``asyncio.Lock``).

Usage:
    class Counter(Runner[CounterState, Any, int]):
        def create_shared(self) -> CounterState:
            return CounterState()

        async def run(self, shared, event, context) -> int:
            async with shared.lock:
                shared.invocations += 1
                return shared.invocations
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from lambda_harness.types import InvocationContext


class Runner[SharedT, EventT, ReturnT](ABC):
    """Work executed by the harness for every Lambda invocation.

    Attributes:
        event_type: Type the raw event is validated into before ``run``.
            Anything pydantic can validate: a model, a TypedDict, ``dict``.
    """

    event_type: ClassVar[Any] = Any

    async def setup(self) -> None:
        """Prepare process-wide services before the first invocation.

        Runs once per execution environment and delays cold starts, so
        keep it short.
        """

    def create_shared(self) -> SharedT:
        """Build the state shared by all invocations of this environment."""
        return None  # type: ignore[return-value]

    @abstractmethod
    async def run(
        self,
        shared: SharedT,
        event: EventT,
        context: InvocationContext,
    ) -> ReturnT:
        """Handle one invocation.

        Args:
            shared: State built once by ``create_shared``.
            event: The validated event.
            context: Region, deadline and raw event of this invocation.

        Returns:
            A value pydantic can serialize to JSON.
        """
