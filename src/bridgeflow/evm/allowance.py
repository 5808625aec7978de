"""ERC20 allowance checks and approvals."""

import logging
from typing import Optional

from bridgeflow.chains import is_native_token
from bridgeflow.errors import ApprovalRejected
from bridgeflow.evm.client import ChainClient
from bridgeflow.evm.erc20 import decode_uint, encode_allowance, encode_approve
from bridgeflow.evm.gas import GasManager
from bridgeflow.evm.receipts import ReceiptWaiter, receipt_succeeded
from bridgeflow.evm.signer import WalletSigner
from bridgeflow.routing.base import ApprovalRequirement, TransactionPayload

logger = logging.getLogger(__name__)


class AllowanceManager:
    """Makes sure a spender may pull the required amount before the main transaction."""

    def __init__(self, gas: GasManager, receipt_waiter: ReceiptWaiter):
        self.gas = gas
        self.receipt_waiter = receipt_waiter

    async def get_allowance(self, client: ChainClient, token: str, owner: str, spender: str) -> int:
        """Read ``allowance(owner, spender)`` on ``token``."""
        return decode_uint(await client.eth_call(token, encode_allowance(owner, spender)))

    async def ensure_allowance(
        self,
        client: ChainClient,
        signer: WalletSigner,
        requirement: ApprovalRequirement,
        chain_id: int,
    ) -> Optional[str]:
        """Approve ``requirement.spender`` if the current allowance is too low.

        Returns:
            The approval transaction hash, or None if no approval was needed.

        Raises:
            ApprovalRejected: If the approval transaction reverted.
        """
        if is_native_token(requirement.token):
            return None

        current = await self.get_allowance(client, requirement.token, signer.address, requirement.spender)
        if current >= requirement.amount:
            logger.info(
                f"Allowance sufficient for {requirement.token}: {current} >= {requirement.amount}"
            )
            return None

        logger.info(
            f"Allowance too low for {requirement.token} ({current} < {requirement.amount}), "
            f"approving {requirement.spender}"
        )

        payload = TransactionPayload(
            to=requirement.token,
            data=encode_approve(requirement.spender, requirement.amount),
            value=0,
            chain_id=chain_id,
        )
        envelope = await self.gas.build_envelope(client, signer.address, payload)
        tx_hash = await client.send_raw_transaction(signer.sign_transaction(envelope))
        logger.info(f"Approval tx broadcast: {tx_hash}")

        receipt = await self.receipt_waiter.wait(client, tx_hash)
        if not receipt_succeeded(receipt):
            raise ApprovalRejected(tx_hash, requirement.token, requirement.spender)

        logger.info(f"Approval confirmed: {tx_hash}")
        return tx_hash
