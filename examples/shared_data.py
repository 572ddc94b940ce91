"""Compare each event with the previous one seen by this execution environment.

The first invocation of an environment never matches: there is no previous
value. Lambda may start a fresh environment at any time, so a real function
must not rely on ``matches_prev`` for correctness.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from lambda_harness import InvocationContext, Runner


@dataclass
class PreviousValue:
    value: str | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class SharedDataResult(BaseModel):
    matches_prev: bool


class SharedDataRunner(Runner[PreviousValue, dict[str, Any], SharedDataResult]):
    event_type = dict[str, Any]

    def create_shared(self) -> PreviousValue:
        return PreviousValue()

    async def run(
        self,
        shared: PreviousValue,
        event: dict[str, Any],
        context: InvocationContext,
    ) -> SharedDataResult:
        value = event.get("test")
        this_value = value if isinstance(value, str) else None
        async with shared.lock:
            matches_prev = shared.value is not None and this_value == shared.value
            shared.value = this_value
        return SharedDataResult(matches_prev=matches_prev)
