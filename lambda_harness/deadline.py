"""Deadline watcher that wakes shortly before the Lambda hard timeout.

The absolute deadline is converted into an event-loop (monotonic) instant
once, at call time, so wall-clock adjustments during the sleep cannot move
an already scheduled wake-up.

Firing on time is best effort: the watcher only runs when the event loop
gets a chance to schedule it, i.e. while the runner is awaiting.
"""

import asyncio
import time

from lambda_harness.logging import get_logger

logger = get_logger(__name__)

SAFETY_MARGIN_MS = 100


def epoch_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def seconds_until_wake(
    deadline_ms: int,
    *,
    now_ms: int,
    safety_margin_ms: int = SAFETY_MARGIN_MS,
) -> float:
    """Seconds from ``now_ms`` until the watcher should fire.

    Saturates at zero when the deadline is already (effectively) past.

    Args:
        deadline_ms: Absolute deadline in epoch milliseconds.
        now_ms: Wall-clock sample in epoch milliseconds.
        safety_margin_ms: Lead time before the deadline.

    Returns:
        Non-negative number of seconds.
    """
    remaining_ms = deadline_ms - now_ms - safety_margin_ms
    return max(remaining_ms, 0) / 1000


async def sleep_until_deadline(
    deadline_ms: int,
    *,
    safety_margin_ms: int = SAFETY_MARGIN_MS,
) -> float:
    """Suspend until ``deadline_ms - safety_margin_ms``.

    Args:
        deadline_ms: Absolute deadline in epoch milliseconds.
        safety_margin_ms: Lead time before the deadline.

    Returns:
        The event-loop time the watcher was scheduled to wake at.
    """
    loop = asyncio.get_running_loop()
    wake_at = loop.time() + seconds_until_wake(
        deadline_ms,
        now_ms=epoch_millis(),
        safety_margin_ms=safety_margin_ms,
    )
    logger.info(
        "Setting deadline",
        extra={"deadline_ms": deadline_ms, "wake_in_seconds": round(wake_at - loop.time(), 3)},
    )
    await asyncio.sleep(max(wake_at - loop.time(), 0))
    return wake_at
