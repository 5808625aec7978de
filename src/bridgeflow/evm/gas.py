"""Nonce, gas price and gas limit for outgoing transactions.

Aggregator-supplied gas values are often stale, so every envelope is built
from the chain itself:

- nonce: pending-inclusive transaction count of the sender
- gasPrice: current network gas price plus a safety margin (default +20%)
- gas: node estimate plus a safety margin (default +10%)
"""

import logging
from typing import Optional

from bridgeflow.config import get_settings
from bridgeflow.evm.client import ChainClient
from bridgeflow.routing.base import TransactionPayload

logger = logging.getLogger(__name__)


class GasManager:
    """Builds signed-ready transaction envelopes from first principles."""

    def __init__(self, price_multiplier_pct: int = 120, limit_multiplier_pct: int = 110):
        if price_multiplier_pct < 100 or limit_multiplier_pct < 100:
            raise ValueError("Gas multipliers must be at least 100%")
        self.price_multiplier_pct = price_multiplier_pct
        self.limit_multiplier_pct = limit_multiplier_pct

    @classmethod
    def from_settings(cls) -> "GasManager":
        settings = get_settings()
        return cls(
            price_multiplier_pct=settings.gas_price_multiplier_pct,
            limit_multiplier_pct=settings.gas_limit_multiplier_pct,
        )

    def boost_price(self, network_price: int) -> int:
        return network_price * self.price_multiplier_pct // 100

    def gas_limit(self, estimate: int) -> int:
        return estimate * self.limit_multiplier_pct // 100

    async def build_envelope(
        self,
        client: ChainClient,
        sender: str,
        payload: TransactionPayload,
        nonce: Optional[int] = None,
    ) -> dict:
        """Compute nonce, gas price and gas limit for ``payload``.

        Any ``suggested_gas``/``suggested_gas_price`` on the payload is ignored.
        """
        if nonce is None:
            nonce = await client.get_transaction_count(sender, "pending")

        gas_price = self.boost_price(await client.gas_price())

        estimate = await client.estimate_gas(
            {"from": sender, "to": payload.to, "data": payload.data, "value": payload.value}
        )
        gas = self.gas_limit(estimate)

        if payload.suggested_gas is not None or payload.suggested_gas_price is not None:
            logger.debug(
                f"Ignoring provider gas hints (gas={payload.suggested_gas}, "
                f"price={payload.suggested_gas_price}); using gas={gas}, price={gas_price}"
            )

        logger.info(f"Gas for tx to {payload.to}: price={gas_price}, limit={gas}, nonce={nonce}")

        return {
            "from": sender,
            "to": payload.to,
            "data": payload.data,
            "value": payload.value,
            "chainId": payload.chain_id,
            "nonce": nonce,
            "gasPrice": gas_price,
            "gas": gas,
        }
