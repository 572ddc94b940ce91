"""Type definitions shared by the harness and runners."""

from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from lambda_harness.deadline import epoch_millis


class LambdaContext(Protocol):
    """AWS Lambda context object interface."""

    function_name: str
    function_version: str
    invoked_function_arn: str
    memory_limit_in_mb: int
    aws_request_id: str
    log_group_name: str
    log_stream_name: str

    def get_remaining_time_in_millis(self) -> int:
        """Return remaining execution time in milliseconds."""
        ...


class InvocationContext(BaseModel):
    """Immutable per-invocation data handed to a runner.

    Attributes:
        region: AWS region the function runs in.
        deadline_ms: Absolute deadline in epoch milliseconds, None in local replays.
        request_id: Lambda request id, None in local replays.
        event: The raw event payload as received.
    """

    model_config = ConfigDict(frozen=True)

    region: str = Field(min_length=1)
    deadline_ms: int | None = None
    request_id: str | None = None
    event: Any = None

    def remaining_ms(self) -> int | None:
        """Milliseconds left until the deadline, None without a deadline."""
        if self.deadline_ms is None:
            return None
        return max(self.deadline_ms - epoch_millis(), 0)
