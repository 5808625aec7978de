"""Retry decisions shared by every component that talks to an external endpoint.

An error is retryable when the endpoint answered 5xx or 429, or when the
failure looks like a timeout or a network problem. Everything else
(other 4xx, malformed routes, signature errors) propagates immediately.
Backoff is linear: the pause after attempt ``n`` is ``n * base_delay``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

from bridgeflow.config import get_settings
from bridgeflow.errors import (
    InvalidIntent,
    InvalidRoute,
    ProviderHttpError,
    UnsupportedSignatureScheme,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Error text fragments that indicate a transient transport problem
TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "network",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
)

NEVER_RETRY = (InvalidRoute, InvalidIntent, UnsupportedSignatureScheme)


def is_retryable(error: BaseException) -> bool:
    """Decide whether a failed call is worth repeating."""
    if isinstance(error, NEVER_RETRY):
        return False

    if isinstance(error, ProviderHttpError) and error.status is not None:
        return error.status >= 500 or error.status == 429

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status >= 500 or status == 429

    if isinstance(error, httpx.TransportError):
        return True

    text = str(error).lower()
    return any(marker in text for marker in TRANSIENT_MARKERS)


@dataclass
class RetryPolicy:
    """Bounded retry loop with linear backoff."""

    max_attempts: int = 3
    base_delay: float = 2.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(max_attempts=settings.retry_max_attempts, base_delay=settings.retry_base_delay)

    def delay_for(self, attempt: int) -> float:
        """Pause after the given 1-based attempt."""
        return attempt * self.base_delay

    async def run(self, func: Callable[[], Awaitable[T]], operation: str = "request") -> T:
        """Call ``func`` until it succeeds, fails permanently, or attempts run out."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await func()
            except Exception as e:
                if attempt >= self.max_attempts or not is_retryable(e):
                    logger.error(f"{operation} failed (attempt {attempt}/{self.max_attempts}): {e}")
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    f"{operation} attempt {attempt}/{self.max_attempts} failed: {e} "
                    f"- retrying in {delay:.1f}s"
                )
                await self.sleep(delay)
