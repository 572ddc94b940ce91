"""Replay a fixed list of invocations locally.

A replay document names the region and the events to feed::

    {"region": "eu-central-1", "invocations": [{"test": "a"}, {"test": "b"}]}

All events run sequentially through the same harness (and therefore the same
shared state) without a deadline, so no timeout races can occur.

Command line:
    python -m lambda_harness.local package.module:RunnerClass test_data.json
"""

import asyncio
import importlib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_core import to_jsonable_python

from lambda_harness.config import Settings, validate_startup_config
from lambda_harness.exceptions import ConfigurationError, HarnessError
from lambda_harness.harness import InvocationHarness
from lambda_harness.logging import (
    LogFormat,
    LoggingConfig,
    clear_context,
    get_logger,
    set_extra_context,
    setup_logging,
)
from lambda_harness.runner import Runner

logger = get_logger(__name__)


class ReplayDocument(BaseModel):
    """Region and ordered events of a local replay."""

    region: str = Field(min_length=1)
    invocations: list[Any] = Field(default_factory=list)


def load_replay_document(document: str | bytes) -> ReplayDocument:
    """Parse a replay document.

    Raises:
        ConfigurationError: If the document is not valid JSON or lacks a region.
    """
    try:
        return ReplayDocument.model_validate_json(document)
    except ValidationError as error:
        raise ConfigurationError(
            "Unable to deserialize test_data",
            context={"errors": error.errors(include_url=False, include_context=False)},
        ) from error


async def replay[SharedT, EventT, ReturnT](
    runner: Runner[SharedT, EventT, ReturnT],
    document: ReplayDocument,
    *,
    settings: Settings | None = None,
) -> list[ReturnT]:
    """Run every invocation of ``document`` through one harness.

    Stops at, and re-raises, the first failing invocation.

    Returns:
        The result of each invocation, in order.
    """
    await runner.setup()
    logger.info("Starting lambda test runtime", extra={"region": document.region})
    harness = InvocationHarness(runner, region=document.region, settings=settings)

    results: list[ReturnT] = []
    for index, payload in enumerate(document.invocations):
        set_extra_context(invocation=index)
        try:
            result = await harness.invoke(payload)
        finally:
            clear_context()
        logger.info(
            "Invocation %d result",
            index,
            extra={"result": to_jsonable_python(result, fallback=repr)},
        )
        results.append(result)
    return results


def run_test[SharedT, EventT, ReturnT](
    runner: Runner[SharedT, EventT, ReturnT],
    test_data: str | bytes,
    *,
    settings: Settings | None = None,
) -> list[ReturnT]:
    """Synchronous entry point for ``replay`` on a fresh event loop."""
    document = load_replay_document(test_data)
    return asyncio.run(replay(runner, document, settings=settings))


def _load_runner(reference: str) -> Runner[Any, Any, Any]:
    """Instantiate ``package.module:RunnerClass``."""
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(
            f"Runner reference must look like 'package.module:Runner', got '{reference}'",
            setting="runner",
        )
    try:
        module = importlib.import_module(module_name)
        runner_class = getattr(module, attribute)
    except (ImportError, AttributeError) as error:
        raise ConfigurationError(f"Unable to load runner '{reference}'", setting="runner") from error
    runner: Runner[Any, Any, Any] = runner_class()
    return runner


def main(arguments: Sequence[str] | None = None) -> int:
    """Replay a test document and print each result as a JSON line.

    Logs go to stderr so stdout carries only the results.

    Returns:
        0 on success, 1 if configuration is invalid or an invocation failed.
    """
    arguments = sys.argv[1:] if arguments is None else arguments
    if len(arguments) != 2:
        print("usage: python -m lambda_harness.local package.module:Runner test_data.json")
        return 1

    try:
        settings = validate_startup_config()
    except ConfigurationError as error:
        print(json.dumps(error.to_dict(), default=str))
        return 1
    setup_logging(
        LoggingConfig.from_settings(settings, log_format=LogFormat.HUMAN),
        stream=sys.stderr,
    )

    try:
        runner = _load_runner(arguments[0])
        results = run_test(runner, Path(arguments[1]).read_bytes(), settings=settings)
    except OSError as error:
        logger.error("Unable to read test data: %s", error)
        return 1
    except HarnessError as error:
        print(json.dumps(error.to_dict(), default=str))
        return 1
    except Exception:
        logger.exception("Lambda invocation failed")
        return 1

    for result in results:
        print(json.dumps(to_jsonable_python(result, fallback=repr)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
