"""Typed runners for AWS Lambda functions.

Races every invocation against the Lambda deadline so timeouts surface as
errors, shares state across warm invocations, and drives Secrets Manager
rotations (see ``lambda_harness.rotate``).
"""

from lambda_harness.harness import InvocationHarness
from lambda_harness.local import ReplayDocument, replay, run_test
from lambda_harness.runner import Runner
from lambda_harness.runtime import LambdaRuntime, create_handler
from lambda_harness.types import InvocationContext, LambdaContext

__all__ = [
    "InvocationContext",
    "InvocationHarness",
    "LambdaContext",
    "LambdaRuntime",
    "ReplayDocument",
    "Runner",
    "create_handler",
    "replay",
    "run_test",
]
