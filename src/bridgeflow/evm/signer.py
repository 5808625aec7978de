"""Wallet signing for transactions and personal messages.

The private key is handed in per call by the caller and only lives as long
as the ``WalletSigner`` instance of one route execution.
"""

import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from bridgeflow.errors import UnsupportedSignatureScheme

logger = logging.getLogger(__name__)

# Ethereum personal-message signatures ("\x19Ethereum Signed Message:\n" prefix)
EIP191 = "eip191"

# Fields accepted by eth_account for a legacy (gasPrice) transaction
ENVELOPE_FIELDS = ("nonce", "gasPrice", "gas", "to", "value", "data", "chainId")


class WalletSigner:
    """Signs transactions and messages with one EVM account."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, envelope: dict) -> str:
        """Sign a transaction envelope and return the raw transaction as 0x-hex."""
        tx = {key: envelope[key] for key in ENVELOPE_FIELDS if key in envelope}
        tx["to"] = Web3.to_checksum_address(tx["to"])
        signed = self._account.sign_transaction(tx)
        # eth-account >= 0.13 uses raw_transaction, older versions rawTransaction
        raw_tx = getattr(signed, "raw_transaction", None) or signed.rawTransaction
        return Web3.to_hex(raw_tx)

    def sign_message(self, message: str, scheme: str = EIP191) -> str:
        """Sign a provider-supplied message.

        Raises:
            UnsupportedSignatureScheme: For any scheme other than eip191.
        """
        if scheme != EIP191:
            raise UnsupportedSignatureScheme(scheme)
        signed = self._account.sign_message(encode_defunct(text=message))
        return Web3.to_hex(signed.signature)

    def __repr__(self) -> str:
        return f"WalletSigner(address={self.address})"
