"""Bounded polling loop shared by the receipt waiter and the status poller.

Both loops have the same shape: call ``fetch`` at a fixed interval until
``is_done`` accepts the value or the attempt budget is spent. Errors raised
by ``fetch`` are logged and count as an attempt.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from bridgeflow.errors import BridgeError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PollOutcome(Generic[T]):
    """Result of a polling loop."""

    value: Optional[T]       # last value observed (None if every attempt failed)
    done: bool               # whether is_done accepted a value
    attempts: int


async def poll_until(
    fetch: Callable[[], Awaitable[Optional[T]]],
    is_done: Callable[[Optional[T]], bool],
    *,
    max_attempts: int,
    interval: float,
    label: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> PollOutcome[T]:
    """Poll ``fetch`` until ``is_done`` or ``max_attempts`` is reached."""
    last: Optional[T] = None

    for attempt in range(1, max_attempts + 1):
        try:
            value = await fetch()
        except BridgeError as e:
            logger.warning(f"{label}: poll attempt {attempt}/{max_attempts} failed: {e}")
        else:
            if value is not None:
                last = value
            if is_done(value):
                return PollOutcome(value=value, done=True, attempts=attempt)
            logger.debug(f"{label}: not final yet (attempt {attempt}/{max_attempts})")

        if attempt < max_attempts:
            await sleep(interval)

    return PollOutcome(value=last, done=False, attempts=max_attempts)
