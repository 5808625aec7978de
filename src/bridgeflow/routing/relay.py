"""Relay bridge/swap integration.

Relay answers a quote with a list of steps, each holding one or more items.
Transaction items carry ready-to-sign calldata; signature items carry a
message to sign and an endpoint that receives the signature. Items may
declare a ``check`` endpoint used to follow the cross-chain intent.

API docs: https://docs.relay.link/references/api/get-quote
"""

import copy
import logging
from typing import Any, Optional

import httpx

from bridgeflow.config import get_settings
from bridgeflow.errors import BridgeError, InvalidRoute
from bridgeflow.evm.erc20 import decode_approve, parse_amount, parse_optional_amount
from bridgeflow.routing.base import (
    ApprovalRequirement,
    MoveIntent,
    Postback,
    ProviderAdapter,
    ProviderStatus,
    Route,
    SignaturePayload,
    StatusCheck,
    Step,
    StepKind,
    SubmittedTx,
    TransactionPayload,
)
from bridgeflow.routing.http import ProviderHttpClient
from bridgeflow.routing.retry import RetryPolicy

logger = logging.getLogger(__name__)

RELAY_API = "https://api.relay.link"
RELAY_TESTNET_API = "https://api.testnets.relay.link"

STATUS_PATH = "/intents/status/v2"


class RelayAdapter(ProviderAdapter):
    """Relay aggregator provider."""

    receipt_max_attempts = 15
    status_max_attempts = 30

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        source: Optional[str] = None,
        app_fee_recipient: Optional[str] = None,
        app_fee_bps: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        """Initialize Relay provider.

        Args:
            base_url: API base URL (defaults to settings)
            api_key: Relay API key, sent as a bearer token when set
            source: Integrator identifier reported as the quote ``source``
            app_fee_recipient: Address receiving the integrator app fee
            app_fee_bps: App fee in basis points
            transport: Optional httpx transport (used by tests)
            retry: Retry policy for quote and status calls
        """
        settings = get_settings()
        self.source = source or settings.integrator
        self.app_fee_recipient = app_fee_recipient or settings.relay_app_fee_recipient
        self.app_fee_bps = app_fee_bps if app_fee_bps is not None else settings.relay_app_fee_bps
        self.receipt_max_attempts = settings.relay_receipt_max_attempts
        self.status_max_attempts = settings.relay_status_max_attempts

        api_key = api_key if api_key is not None else settings.relay_api_key
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.http = ProviderHttpClient(
            base_url or settings.relay_base_url,
            name="relay",
            headers=headers,
            timeout=settings.http_timeout,
            retry=retry,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "relay"

    def _app_fees(self) -> list[dict]:
        if not self.app_fee_recipient or not self.app_fee_bps:
            return []
        return [{"recipient": self.app_fee_recipient, "fee": str(self.app_fee_bps)}]

    def build_quote_request(self, intent: MoveIntent) -> dict:
        """Build the ``POST /quote`` body for an intent."""
        return {
            "user": intent.wallet_address,
            "recipient": intent.recipient,
            "originChainId": intent.source_chain_id,
            "destinationChainId": intent.dest_chain_id,
            "originCurrency": intent.source_token,
            "destinationCurrency": intent.dest_token,
            "amount": str(intent.amount),
            "tradeType": intent.trade_type.value,
            "slippageTolerance": str(intent.slippage_bps),
            "source": self.source,
            "appFees": self._app_fees(),
        }

    async def request_quote(self, intent: MoveIntent) -> dict:
        return await self.http.request_json(
            "POST", "/quote", operation="relay.quote", json=self.build_quote_request(intent)
        )

    def parse_quote(self, payload: Any, intent: Optional[MoveIntent] = None) -> Route:
        """Normalize a Relay quote into a Route.

        Each item of each step becomes one Step. When a step has several
        items their ids get a ``-<index>`` suffix.
        """
        if not isinstance(payload, dict):
            raise InvalidRoute("Relay quote is not a JSON object")

        raw_steps = payload.get("steps")
        if not raw_steps:
            raise InvalidRoute("Relay quote has no steps")
        if payload.get("fees") is None:
            raise InvalidRoute("Relay quote has no fees block")
        if payload.get("details") is None:
            raise InvalidRoute("Relay quote has no details block")

        steps: list[Step] = []
        for raw_step in raw_steps:
            items = raw_step.get("items") or []
            if not items:
                raise InvalidRoute(f"Relay step '{raw_step.get('id')}' has no items")

            step_id = raw_step.get("id") or f"step{len(steps)}"
            description = raw_step.get("description") or raw_step.get("action") or step_id
            kind = raw_step.get("kind")

            for index, item in enumerate(items):
                item_id = step_id if len(items) == 1 else f"{step_id}-{index}"
                check = self._parse_check(item.get("check"))

                if kind == StepKind.TRANSACTION.value:
                    step_payload = self._parse_transaction(item_id, item, intent)
                elif kind == StepKind.SIGNATURE.value:
                    step_payload = self._parse_signature(item_id, item)
                else:
                    raise InvalidRoute(f"Relay step '{item_id}' has unknown kind '{kind}'")

                steps.append(
                    Step(
                        id=item_id,
                        kind=StepKind(kind),
                        description=description,
                        payload=step_payload,
                        check=check,
                    )
                )

        quote_id = next((s.get("requestId") for s in raw_steps if s.get("requestId")), None)

        return Route(
            provider=self.name,
            steps=tuple(steps),
            fee_summary=copy.deepcopy(payload["fees"]),
            route_details=copy.deepcopy(payload["details"]),
            quote_id=quote_id,
        )

    def _parse_transaction(
        self, item_id: str, item: dict, intent: Optional[MoveIntent]
    ) -> TransactionPayload:
        data = item.get("data") or {}
        if not data.get("to") or not data.get("data"):
            raise InvalidRoute(f"Relay step '{item_id}' lacks transaction target or calldata")

        chain_id = data.get("chainId") or (intent.source_chain_id if intent else None)
        if chain_id is None:
            raise InvalidRoute(f"Relay step '{item_id}' has no chain id")

        approval = None
        decoded = decode_approve(data["data"])
        if decoded is not None:
            spender, amount = decoded
            approval = ApprovalRequirement(token=data["to"], spender=spender, amount=amount)

        try:
            return TransactionPayload(
                to=data["to"],
                data=data["data"],
                value=parse_amount(data.get("value")),
                chain_id=int(chain_id),
                suggested_gas=parse_optional_amount(data.get("gas")),
                suggested_gas_price=parse_optional_amount(
                    data.get("gasPrice") or data.get("maxFeePerGas")
                ),
                approval=approval,
            )
        except ValueError as e:
            raise InvalidRoute(f"Relay step '{item_id}' has malformed amounts: {e}") from e

    def _parse_signature(self, item_id: str, item: dict) -> SignaturePayload:
        # Signature data may sit on the item itself or under its "data" block
        data = item.get("data") or {}
        sign = item.get("sign") or data.get("sign") or {}
        post = item.get("post") or data.get("post")

        if not sign.get("message"):
            raise InvalidRoute(f"Relay step '{item_id}' has no message to sign")

        postback = None
        if post and post.get("endpoint"):
            postback = Postback(
                endpoint=post["endpoint"],
                body=copy.deepcopy(post.get("body") or {}),
                method=(post.get("method") or "POST").upper(),
            )

        return SignaturePayload(
            message=sign["message"],
            signature_kind=sign.get("signatureKind", ""),
            postback=postback,
        )

    @staticmethod
    def _parse_check(check: Optional[dict]) -> Optional[StatusCheck]:
        if not check or not check.get("endpoint"):
            return None
        endpoint = check["endpoint"]
        request_id = httpx.URL(endpoint).params.get("requestId")
        params = {"requestId": request_id} if request_id else {}
        return StatusCheck(endpoint=endpoint, params=params)

    async def fetch_status(self, check: StatusCheck, tx_hash: Optional[str] = None) -> ProviderStatus:
        """Query the intent status for the request id of a step's check."""
        request_id = check.params.get("requestId")
        if request_id:
            data = await self.http.request_json(
                "GET", STATUS_PATH, operation="relay.status", params={"requestId": request_id}
            )
        else:
            data = await self.http.request_json("GET", check.endpoint, operation="relay.status")

        return ProviderStatus(status=str(data.get("status", "unknown")), detail=data)

    async def notify_indexed(self, tx: SubmittedTx) -> None:
        """Tell Relay about a broadcast transaction so it is indexed sooner."""
        try:
            await self.http.request_json(
                "POST",
                "/transactions/index",
                operation="relay.index",
                json={"txHash": tx.tx_hash, "chainId": str(tx.chain_id)},
                retry=False,
            )
            logger.debug(f"Relay notified about {tx.tx_hash}")
        except BridgeError as e:
            logger.warning(f"Relay index notification for {tx.tx_hash} failed: {e}")

    async def post_signature(self, postback: Postback, signature: str) -> None:
        body = {**postback.body, "signature": signature}
        await self.http.request_json(
            postback.method, postback.endpoint, operation="relay.signature", json=body
        )

    async def get_chains(self) -> list[dict]:
        """List chains supported by Relay."""
        data = await self.http.request_json("GET", "/chains", operation="relay.chains")
        if isinstance(data, dict):
            return data.get("chains", [])
        return data

    async def get_token_price(self, address: str, chain_id: int) -> dict:
        """Get the USD price Relay reports for a token."""
        return await self.http.request_json(
            "GET",
            "/currencies/token/price",
            operation="relay.price",
            params={"address": address, "chainId": chain_id},
        )
