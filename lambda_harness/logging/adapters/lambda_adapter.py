"""Lambda adapter for setting logging context from Lambda invocations."""

from collections.abc import Mapping
from typing import Any

from lambda_harness.logging.context import set_correlation_id, set_extra_context
from lambda_harness.types import LambdaContext

_ROTATION_FIELDS = {"SecretId": "secret_id", "Step": "rotation_step"}


def set_lambda_context(event: Any, context: LambdaContext) -> None:
    """Set logging context from a Lambda event and context.

    Rotation events additionally tag every record with the secret id and
    the rotation step.

    Args:
        event: Raw Lambda event.
        context: Lambda context object.
    """
    set_correlation_id(context.aws_request_id)
    set_extra_context(
        function_name=context.function_name,
        function_version=context.function_version,
    )

    if isinstance(event, Mapping):
        rotation_fields = {
            field_name: str(event[key])
            for key, field_name in _ROTATION_FIELDS.items()
            if key in event
        }
        if rotation_fields:
            set_extra_context(**rotation_fields)
