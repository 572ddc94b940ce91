"""Echo the ``test`` attribute of the event.

Local replay:
    python -m lambda_harness.local examples.basic:EchoRunner examples/basic.json
"""

from typing import Any

from pydantic import BaseModel

from lambda_harness import InvocationContext, Runner
from lambda_harness.logging import get_logger

logger = get_logger(__name__)


class EchoResult(BaseModel):
    data: str


class EchoRunner(Runner[None, dict[str, Any], EchoResult]):
    event_type = dict[str, Any]

    async def run(
        self,
        shared: None,
        event: dict[str, Any],
        context: InvocationContext,
    ) -> EchoResult:
        logger.info("Echoing event", extra={"attributes": event})
        value = event.get("test")
        return EchoResult(data=value if isinstance(value, str) else "none")
