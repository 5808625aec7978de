"""Quote-and-execute service for a single move intent."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from bridgeflow.evm.client import ChainClient
from bridgeflow.routing.base import MoveIntent, ProviderAdapter, Route, StepResult, StepStatus
from bridgeflow.routing.factory import ProviderName, create_adapter

logger = logging.getLogger(__name__)


@dataclass
class MoveOutcome:
    """Route that was executed and the results of its steps."""

    route: Route
    results: list[StepResult]

    @property
    def tx_hashes(self) -> list[str]:
        return [r.tx_hash for r in self.results if r.tx_hash]

    @property
    def pending(self) -> bool:
        """True if the last step's cross-chain status never became final."""
        return bool(self.results) and self.results[-1].status == StepStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "route": self.route.to_dict(),
            "results": [r.to_dict() for r in self.results],
        }


async def quote(
    intent: MoveIntent,
    provider: Union[ProviderName, str] = ProviderName.LIFI,
    adapter: Optional[ProviderAdapter] = None,
) -> Route:
    """Get a route for an intent without executing it."""
    adapter = adapter or create_adapter(provider)
    return await adapter.get_quote(intent)


async def move(
    intent: MoveIntent,
    private_key: str,
    *,
    provider: Union[ProviderName, str] = ProviderName.LIFI,
    adapter: Optional[ProviderAdapter] = None,
    clients: Optional[dict[int, ChainClient]] = None,
    timeout: Optional[float] = None,
) -> MoveOutcome:
    """Quote an intent and drive the resulting route to completion.

    Args:
        intent: What to move
        private_key: Wallet key, used for this call only
        provider: Aggregator to use when no adapter is given
        adapter: Pre-built adapter (takes precedence over ``provider``)
        clients: Chain clients to reuse, keyed by chain id
        timeout: Optional overall deadline in seconds

    Raises:
        InvalidIntent, InvalidRoute, ProviderHttpError: While quoting.
        StepAborted: If a step failed; carries the partial results.
        asyncio.TimeoutError: If ``timeout`` elapsed.
    """
    adapter = adapter or create_adapter(provider)

    async def run() -> MoveOutcome:
        route = await adapter.get_quote(intent)
        results = await adapter.execute(private_key, route, clients)
        return MoveOutcome(route=route, results=results)

    if timeout is None:
        return await run()
    return await asyncio.wait_for(run(), timeout)
