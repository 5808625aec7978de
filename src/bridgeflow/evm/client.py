"""Minimal async JSON-RPC client for one EVM chain.

Talks to the node over plain JSON-RPC with httpx. When a chain has
backup endpoints, transport failures on one URL fall through to the next.
Read calls go through the shared retry policy; broadcasting is never
retried automatically.
"""

import logging
from typing import Any, Optional

import httpx
from web3 import Web3

from bridgeflow.chains import get_chain_name, get_rpc_urls
from bridgeflow.errors import RpcError
from bridgeflow.evm.erc20 import decode_uint, encode_balance_of, parse_amount
from bridgeflow.routing.retry import RetryPolicy

logger = logging.getLogger(__name__)


class ChainClient:
    """JSON-RPC access to a single chain.

    One instance should be owned by one in-flight route execution, so that
    nonce reads for an account are never interleaved by another caller.
    """

    def __init__(
        self,
        chain_id: int,
        rpc_urls: list[str],
        *,
        timeout: float = 30.0,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not rpc_urls:
            raise ValueError(f"No RPC URL configured for chain {chain_id}")
        self.chain_id = chain_id
        self.rpc_urls = list(rpc_urls)
        self.timeout = timeout
        self.retry = retry or RetryPolicy.from_settings()
        self._transport = transport
        self._request_id = 0

    @classmethod
    def for_chain(cls, chain_id: int, **kwargs: Any) -> "ChainClient":
        """Create a client from the configured chain table."""
        return cls(chain_id, get_rpc_urls(chain_id), **kwargs)

    @property
    def name(self) -> str:
        return get_chain_name(self.chain_id)

    async def _post(self, url: str, payload: dict) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()
            return response.json()

    async def _call_once(self, method: str, params: list) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": self._request_id}
        last_error: Optional[Exception] = None

        for index, url in enumerate(self.rpc_urls):
            try:
                data = await self._post(url, payload)
            except (httpx.RequestError, httpx.HTTPStatusError, ValueError) as e:
                last_error = e
                if index < len(self.rpc_urls) - 1:
                    logger.warning(f"[{self.name}] RPC {url} failed for {method}: {e} - trying fallback")
                continue

            if "error" in data and data["error"]:
                error = data["error"]
                message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                code = error.get("code") if isinstance(error, dict) else None
                raise RpcError(method, message, code)

            return data.get("result")

        raise RpcError(method, f"network error on all {len(self.rpc_urls)} endpoint(s): {last_error}")

    async def call(self, method: str, params: Optional[list] = None, *, retry: bool = True) -> Any:
        """Invoke a JSON-RPC method and return its ``result``.

        Raises:
            RpcError: If the node returns an error or no endpoint is reachable.
        """
        params = params or []
        if not retry:
            return await self._call_once(method, params)
        return await self.retry.run(
            lambda: self._call_once(method, params), operation=f"{self.name}.{method}"
        )

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return parse_amount(await self.call("eth_getTransactionCount", [address, block]))

    async def gas_price(self) -> int:
        return parse_amount(await self.call("eth_gasPrice"))

    async def estimate_gas(self, tx: dict) -> int:
        """Simulate a transaction and return the node's gas estimate."""
        call = {
            "from": tx["from"],
            "to": tx["to"],
            "data": tx.get("data") or "0x",
            "value": Web3.to_hex(tx.get("value", 0)),
        }
        return parse_amount(await self.call("eth_estimateGas", [call]))

    async def eth_call(self, to: str, data: str) -> str:
        return await self.call("eth_call", [{"to": to, "data": data}, "latest"])

    async def get_balance(self, address: str) -> int:
        return parse_amount(await self.call("eth_getBalance", [address, "latest"]))

    async def get_token_balance(self, token: str, owner: str) -> int:
        return decode_uint(await self.eth_call(token, encode_balance_of(owner)))

    async def send_raw_transaction(self, raw_tx: str) -> str:
        """Broadcast a signed transaction and return its hash."""
        return await self.call("eth_sendRawTransaction", [raw_tx], retry=False)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        """Return the receipt, or None while the transaction is not mined."""
        return await self.call("eth_getTransactionReceipt", [tx_hash], retry=False)

    def __repr__(self) -> str:
        return f"ChainClient(chain_id={self.chain_id}, urls={len(self.rpc_urls)})"
