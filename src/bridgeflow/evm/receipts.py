"""Waiting for transaction receipts."""

import asyncio
import logging
from typing import Awaitable, Callable

from bridgeflow.errors import TimeoutExhausted
from bridgeflow.evm.client import ChainClient
from bridgeflow.evm.erc20 import parse_amount
from bridgeflow.utils.polling import poll_until

logger = logging.getLogger(__name__)


def receipt_succeeded(receipt: dict) -> bool:
    """Check a receipt's status flag (receipts without one predate EIP-658 and count as success)."""
    status = receipt.get("status")
    if status is None:
        return True
    return parse_amount(status) != 0


class ReceiptWaiter:
    """Polls a chain until a transaction has a receipt.

    When the attempts run out, the transaction is treated as failed
    (``TimeoutExhausted``) unless ``assume_success_on_timeout`` is set, in
    which case a synthetic successful receipt is returned.
    """

    def __init__(
        self,
        max_attempts: int = 60,
        interval: float = 5.0,
        assume_success_on_timeout: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts
        self.interval = interval
        self.assume_success_on_timeout = assume_success_on_timeout
        self.sleep = sleep

    async def wait(self, client: ChainClient, tx_hash: str) -> dict:
        """Wait for the receipt of ``tx_hash``.

        Raises:
            TimeoutExhausted: If no receipt appeared and success is not assumed.
        """
        outcome = await poll_until(
            lambda: client.get_transaction_receipt(tx_hash),
            lambda receipt: receipt is not None,
            max_attempts=self.max_attempts,
            interval=self.interval,
            label=f"receipt {tx_hash}",
            sleep=self.sleep,
        )

        if outcome.done:
            receipt = outcome.value
            logger.info(
                f"Receipt for {tx_hash}: block {receipt.get('blockNumber')}, "
                f"status {receipt.get('status')}"
            )
            return receipt

        if self.assume_success_on_timeout:
            logger.warning(
                f"No receipt for {tx_hash} after {self.max_attempts} attempts - assuming success"
            )
            return {"transactionHash": tx_hash, "status": "0x1", "assumed": True}

        raise TimeoutExhausted(f"receipt of {tx_hash}", self.max_attempts)
