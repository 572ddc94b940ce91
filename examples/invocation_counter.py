"""Count the invocations served by one execution environment."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from lambda_harness import InvocationContext, Runner


@dataclass
class Counter:
    invocations: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class InvocationCounterRunner(Runner[Counter, Any, int]):
    def create_shared(self) -> Counter:
        return Counter()

    async def run(self, shared: Counter, event: Any, context: InvocationContext) -> int:
        async with shared.lock:
            shared.invocations += 1
            return shared.invocations
