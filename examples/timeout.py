"""Sleep for ``timeout_secs`` (default 60) to demonstrate timeout reporting.

Deployed with a Lambda timeout shorter than the requested sleep, the
invocation fails with ``InvocationTimeoutError`` about 100 ms before Lambda
would kill it, so the failure reaches the function's on-failure destination.
"""

import asyncio

from pydantic import BaseModel, Field

from lambda_harness import InvocationContext, Runner


class SleepEvent(BaseModel):
    timeout_secs: float = Field(default=60, ge=0)


class SleepRunner(Runner[None, SleepEvent, None]):
    event_type = SleepEvent

    async def run(self, shared: None, event: SleepEvent, context: InvocationContext) -> None:
        await asyncio.sleep(event.timeout_secs)
