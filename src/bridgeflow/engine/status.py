"""Cross-chain status polling."""

import asyncio
import logging
from typing import Awaitable, Callable

from bridgeflow.errors import TimeoutExhausted
from bridgeflow.routing.base import ProviderStatus
from bridgeflow.utils.polling import poll_until

logger = logging.getLogger(__name__)


class StatusPoller:
    """Polls a provider's status endpoint until it reports a terminal state.

    On exhaustion the last observed (non-terminal) status is returned so the
    caller can surface it; ``TimeoutExhausted`` is raised only when no status
    was ever observed.
    """

    def __init__(
        self,
        max_attempts: int = 30,
        interval: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts
        self.interval = interval
        self.sleep = sleep

    async def wait(self, fetch: Callable[[], Awaitable[ProviderStatus]], label: str) -> ProviderStatus:
        outcome = await poll_until(
            fetch,
            lambda status: status is not None and status.is_terminal,
            max_attempts=self.max_attempts,
            interval=self.interval,
            label=f"status {label}",
            sleep=self.sleep,
        )

        if outcome.done:
            logger.info(f"Provider status for {label}: {outcome.value.status}")
            return outcome.value

        if outcome.value is None:
            raise TimeoutExhausted(f"provider status of {label}", self.max_attempts)

        logger.warning(
            f"Provider status for {label} still '{outcome.value.status}' "
            f"after {self.max_attempts} attempts"
        )
        return outcome.value
