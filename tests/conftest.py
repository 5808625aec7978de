"""Pytest configuration and fixtures."""

import os
from typing import Optional

import pytest

# Set test environment before settings are cached
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["POLL_INTERVAL"] = "0"
os.environ["RETRY_BASE_DELAY"] = "0"
os.environ["OPERATION_DELAY_MS"] = "0"
os.environ["RELAY_API_KEY"] = ""
os.environ["LIFI_API_KEY"] = ""

from bridgeflow.evm.erc20 import ALLOWANCE_SELECTOR, APPROVE_SELECTOR, BALANCE_OF_SELECTOR
from bridgeflow.evm.signer import WalletSigner
from bridgeflow.routing.base import (
    Postback,
    ProviderAdapter,
    ProviderStatus,
    StatusCheck,
    SubmittedTx,
)

# Well-known test key (never holds funds)
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_ADDRESS = WalletSigner(TEST_PRIVATE_KEY).address

USDC_OPTIMISM = "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85"
LIFI_DIAMOND = "0x1231DEB6f5749EF6cE6943a275A1D3E7486F4EaE"
RELAY_RECEIVER = "0xa5F565650890fBA1824Ee0F21EbBbF660a179934"


def uint_word(value: int) -> str:
    return "0x" + format(value, "x").zfill(64)


class FakeChainClient:
    """In-memory stand-in for ``ChainClient``.

    Receipts appear after ``receipt_delay`` polls with ``receipt_status``.
    Broadcast raw transactions are kept in ``sent``.
    """

    def __init__(
        self,
        chain_id: int = 10,
        *,
        nonce: int = 7,
        gas_price: int = 1_000_000_000,
        gas_estimate: int = 100_000,
        allowance: int = 0,
        native_balance: int = 0,
        token_balances: Optional[dict[str, int]] = None,
        receipt_status: str = "0x1",
        receipt_delay: int = 0,
    ):
        self.chain_id = chain_id
        self.name = f"chain {chain_id}"
        self.nonce = nonce
        self._gas_price = gas_price
        self.gas_estimate = gas_estimate
        self.allowance = allowance
        self.native_balance = native_balance
        self.token_balances = {k.lower(): v for k, v in (token_balances or {}).items()}
        self.receipt_status = receipt_status
        self.receipt_delay = receipt_delay

        self.sent: list[str] = []
        self.estimates: list[dict] = []
        self.calls: list[tuple[str, str]] = []
        self.nonce_blocks: list[str] = []
        self.receipt_polls = 0

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        self.nonce_blocks.append(block)
        return self.nonce + len(self.sent)

    async def gas_price(self) -> int:
        return self._gas_price

    async def estimate_gas(self, tx: dict) -> int:
        self.estimates.append(tx)
        return self.gas_estimate

    async def eth_call(self, to: str, data: str) -> str:
        self.calls.append((to, data))
        if data.startswith(ALLOWANCE_SELECTOR):
            return uint_word(self.allowance)
        if data.startswith(BALANCE_OF_SELECTOR):
            return uint_word(self.token_balances.get(to.lower(), 0))
        return "0x"

    async def get_balance(self, address: str) -> int:
        return self.native_balance

    async def get_token_balance(self, token: str, owner: str) -> int:
        return self.token_balances.get(token.lower(), 0)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        self.sent.append(raw_tx)
        return "0x" + format(len(self.sent), "x").zfill(64)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        self.receipt_polls += 1
        if self.receipt_polls <= self.receipt_delay:
            return None
        return {"transactionHash": tx_hash, "status": self.receipt_status, "blockNumber": "0x10"}


class RecordingSigner(WalletSigner):
    """Real signer that also records every envelope and message it signs."""

    def __init__(self, private_key: str, log: dict):
        super().__init__(private_key)
        self.log = log

    def sign_transaction(self, envelope: dict) -> str:
        self.log.setdefault("envelopes", []).append(dict(envelope))
        return super().sign_transaction(envelope)

    def sign_message(self, message: str, scheme: str = "eip191") -> str:
        self.log.setdefault("messages", []).append((message, scheme))
        return super().sign_message(message, scheme)


class StubAdapter(ProviderAdapter):
    """Provider adapter with scripted status answers."""

    def __init__(self, statuses: Optional[list[str]] = None, notify_error: Optional[Exception] = None):
        self.statuses = list(statuses or [])
        self.notify_error = notify_error
        self.status_queries: list[tuple[StatusCheck, Optional[str]]] = []
        self.notified: list[SubmittedTx] = []
        self.postbacks: list[tuple[Postback, str]] = []

    @property
    def name(self) -> str:
        return "stub"

    async def request_quote(self, intent):
        raise NotImplementedError

    def parse_quote(self, payload, intent=None):
        raise NotImplementedError

    async def fetch_status(self, check, tx_hash=None):
        self.status_queries.append((check, tx_hash))
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return ProviderStatus(status=status, detail={"status": status})

    async def post_signature(self, postback, signature):
        self.postbacks.append((postback, signature))

    async def notify_indexed(self, tx):
        self.notified.append(tx)
        if self.notify_error is not None:
            raise self.notify_error


def approvals_in(envelopes: list[dict]) -> list[dict]:
    return [e for e in envelopes if e["data"].lower().startswith(APPROVE_SELECTOR)]


async def no_sleep(_: float) -> None:
    return None


@pytest.fixture
def sign_log() -> dict:
    return {}


@pytest.fixture
def signer_factory(sign_log):
    return lambda key: RecordingSigner(key, sign_log)


@pytest.fixture
def optimism_client() -> FakeChainClient:
    return FakeChainClient(chain_id=10)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def recording_sleep(sleeps):
    async def sleep(delay: float) -> None:
        sleeps.append(delay)
    return sleep
