"""Tests for the EVM helpers: amounts, calldata, RPC client, gas and allowances."""

import json

import httpx
import pytest
from web3 import Web3

from bridgeflow.errors import ApprovalRejected, RpcError, UnsupportedSignatureScheme
from bridgeflow.evm.allowance import AllowanceManager
from bridgeflow.evm.client import ChainClient
from bridgeflow.evm.erc20 import (
    ALLOWANCE_SELECTOR,
    decode_approve,
    decode_uint,
    encode_allowance,
    encode_approve,
    parse_amount,
)
from bridgeflow.evm.gas import GasManager
from bridgeflow.evm.receipts import ReceiptWaiter, receipt_succeeded
from bridgeflow.evm.signer import WalletSigner
from bridgeflow.routing.base import ApprovalRequirement, TransactionPayload
from bridgeflow.routing.retry import RetryPolicy
from conftest import (
    LIFI_DIAMOND,
    TEST_ADDRESS,
    TEST_PRIVATE_KEY,
    USDC_OPTIMISM,
    FakeChainClient,
    no_sleep,
)


class TestAmounts:
    """Tests for integer amount parsing."""

    def test_accepts_int_decimal_and_hex(self):
        assert parse_amount(1_000_000) == 1_000_000
        assert parse_amount("1000000") == 1_000_000
        assert parse_amount("0xf4240") == 1_000_000
        assert parse_amount(None) == 0
        assert parse_amount("0x") == 0

    def test_rejects_fractions(self):
        with pytest.raises(ValueError):
            parse_amount("1.5")
        with pytest.raises(ValueError):
            parse_amount(1.5)

    def test_large_values_stay_exact(self):
        value = 123456789012345678901234567890
        assert parse_amount(str(value)) == value
        assert parse_amount(hex(value)) == value


class TestCalldata:
    """Tests for ERC20 calldata helpers."""

    def test_approve_roundtrip(self):
        data = encode_approve(LIFI_DIAMOND, 1_000_000)

        assert data.startswith("0x095ea7b3")
        assert len(data) == 2 + 8 + 128
        assert decode_approve(data) == (Web3.to_checksum_address(LIFI_DIAMOND), 1_000_000)

    def test_decode_approve_ignores_other_calls(self):
        assert decode_approve("0x4630a0d8" + "00" * 64) is None
        assert decode_approve(None) is None

    def test_allowance_calldata(self):
        data = encode_allowance(TEST_ADDRESS, LIFI_DIAMOND)

        assert data.startswith(ALLOWANCE_SELECTOR)
        assert TEST_ADDRESS.lower()[2:] in data
        assert LIFI_DIAMOND.lower()[2:] in data

    def test_decode_uint(self):
        assert decode_uint("0x" + "0" * 63 + "a") == 10
        assert decode_uint("0x") == 0


class TestChainClient:
    """Tests for the JSON-RPC client."""

    @pytest.mark.asyncio
    async def test_falls_back_to_next_url(self):
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            if request.url.host == "primary.test":
                raise httpx.ConnectError("refused")
            body = json.loads(request.content)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x2a"})

        client = ChainClient(
            10,
            ["https://primary.test", "https://backup.test"],
            retry=RetryPolicy(sleep=no_sleep),
            transport=httpx.MockTransport(handler),
        )

        assert await client.get_transaction_count(TEST_ADDRESS) == 42
        assert hosts == ["primary.test", "backup.test"]

    @pytest.mark.asyncio
    async def test_rpc_error_object_raises(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "nonce too low"}},
            )

        client = ChainClient(
            10, ["https://rpc.test"], retry=RetryPolicy(sleep=no_sleep), transport=httpx.MockTransport(handler)
        )

        with pytest.raises(RpcError) as exc_info:
            await client.send_raw_transaction("0x01")

        assert exc_info.value.code == -32000
        assert "nonce too low" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_gas_estimate_retried_after_network_error(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("refused")
            body = json.loads(request.content)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x5208"})

        client = ChainClient(
            10, ["https://rpc.test"], retry=RetryPolicy(sleep=no_sleep), transport=httpx.MockTransport(handler)
        )

        gas = await client.estimate_gas({"from": TEST_ADDRESS, "to": LIFI_DIAMOND, "data": "0x", "value": 0})

        assert gas == 21_000
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_reverting_gas_estimate_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": 3, "message": "execution reverted"}},
            )

        client = ChainClient(
            10, ["https://rpc.test"], retry=RetryPolicy(sleep=no_sleep), transport=httpx.MockTransport(handler)
        )

        with pytest.raises(RpcError):
            await client.estimate_gas({"from": TEST_ADDRESS, "to": LIFI_DIAMOND, "data": "0x", "value": 0})

        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_missing_receipt_is_none(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None})

        client = ChainClient(10, ["https://rpc.test"], transport=httpx.MockTransport(handler))

        assert await client.get_transaction_receipt("0xabc") is None

    def test_requires_an_url(self):
        with pytest.raises(ValueError):
            ChainClient(10, [])


class TestGasManager:
    """Tests for envelope construction."""

    @pytest.mark.asyncio
    async def test_envelope_uses_chain_values(self):
        client = FakeChainClient(chain_id=10, nonce=3, gas_price=100, gas_estimate=21_000)
        payload = TransactionPayload(
            to=LIFI_DIAMOND, data="0x", value=5, chain_id=10, suggested_gas=1, suggested_gas_price=1
        )

        envelope = await GasManager(120, 110).build_envelope(client, TEST_ADDRESS, payload)

        assert envelope["nonce"] == 3
        assert envelope["gasPrice"] == 120
        assert envelope["gas"] == 23_100
        assert envelope["value"] == 5
        assert envelope["chainId"] == 10
        assert client.estimates[0]["from"] == TEST_ADDRESS

    @pytest.mark.asyncio
    async def test_integer_arithmetic(self):
        client = FakeChainClient(gas_price=7, gas_estimate=33)
        payload = TransactionPayload(to=LIFI_DIAMOND, data="0x", value=0, chain_id=10)

        envelope = await GasManager(120, 120).build_envelope(client, TEST_ADDRESS, payload)

        assert envelope["gasPrice"] == 8
        assert envelope["gas"] == 39

    def test_multiplier_below_100_rejected(self):
        with pytest.raises(ValueError):
            GasManager(price_multiplier_pct=90)


class TestReceipts:
    """Tests for receipt waiting."""

    def test_receipt_status(self):
        assert receipt_succeeded({"status": "0x1"})
        assert not receipt_succeeded({"status": "0x0"})
        assert receipt_succeeded({})

    @pytest.mark.asyncio
    async def test_waits_until_mined(self):
        client = FakeChainClient(receipt_delay=2)
        waiter = ReceiptWaiter(max_attempts=5, interval=0, sleep=no_sleep)

        receipt = await waiter.wait(client, "0xabc")

        assert receipt["transactionHash"] == "0xabc"
        assert client.receipt_polls == 3

    @pytest.mark.asyncio
    async def test_rpc_errors_while_polling_are_tolerated(self):
        client = FakeChainClient()
        errors = [RpcError("eth_getTransactionReceipt", "timeout")]
        original = client.get_transaction_receipt

        async def flaky(tx_hash):
            if errors:
                raise errors.pop()
            return await original(tx_hash)

        client.get_transaction_receipt = flaky
        receipt = await ReceiptWaiter(max_attempts=3, interval=0, sleep=no_sleep).wait(client, "0xabc")

        assert receipt["status"] == "0x1"


class TestAllowanceManager:
    """Tests for allowance checks and approvals."""

    def _manager(self):
        return AllowanceManager(
            GasManager(), ReceiptWaiter(max_attempts=2, interval=0, sleep=no_sleep)
        )

    @pytest.mark.asyncio
    async def test_native_token_needs_nothing(self):
        client = FakeChainClient()
        requirement = ApprovalRequirement(
            token="0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE", spender=LIFI_DIAMOND, amount=10
        )

        tx_hash = await self._manager().ensure_allowance(
            client, WalletSigner(TEST_PRIVATE_KEY), requirement, 10
        )

        assert tx_hash is None
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_exact_amount_approved(self):
        client = FakeChainClient(allowance=10)
        requirement = ApprovalRequirement(token=USDC_OPTIMISM, spender=LIFI_DIAMOND, amount=1_000_000)

        tx_hash = await self._manager().ensure_allowance(
            client, WalletSigner(TEST_PRIVATE_KEY), requirement, 10
        )

        assert tx_hash is not None
        assert len(client.sent) == 1
        assert client.estimates[0]["data"] == encode_approve(LIFI_DIAMOND, 1_000_000)
        assert client.estimates[0]["to"] == USDC_OPTIMISM

    @pytest.mark.asyncio
    async def test_reverted_approval_raises(self):
        client = FakeChainClient(allowance=0, receipt_status="0x0")
        requirement = ApprovalRequirement(token=USDC_OPTIMISM, spender=LIFI_DIAMOND, amount=5)

        with pytest.raises(ApprovalRejected):
            await self._manager().ensure_allowance(
                client, WalletSigner(TEST_PRIVATE_KEY), requirement, 10
            )


class TestWalletSigner:
    """Tests for transaction and message signing."""

    def test_address_from_key(self):
        assert WalletSigner(TEST_PRIVATE_KEY).address == TEST_ADDRESS

    def test_signs_legacy_transaction(self):
        raw = WalletSigner(TEST_PRIVATE_KEY).sign_transaction(
            {
                "from": TEST_ADDRESS,
                "to": LIFI_DIAMOND.lower(),
                "data": "0x",
                "value": 0,
                "chainId": 10,
                "nonce": 0,
                "gasPrice": 1_000_000_000,
                "gas": 21_000,
            }
        )

        assert raw.startswith("0x")
        assert len(raw) > 100

    def test_personal_message_recovers_signer(self):
        from eth_account import Account
        from eth_account.messages import encode_defunct

        signature = WalletSigner(TEST_PRIVATE_KEY).sign_message("hello relay", "eip191")

        recovered = Account.recover_message(encode_defunct(text="hello relay"), signature=signature)
        assert recovered == TEST_ADDRESS

    def test_other_schemes_rejected(self):
        with pytest.raises(UnsupportedSignatureScheme):
            WalletSigner(TEST_PRIVATE_KEY).sign_message("hello", "eip712")
