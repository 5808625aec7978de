"""LI.FI bridge/DEX aggregator integration.

A LI.FI quote is a single transaction (``transactionRequest``) plus an
``estimate`` block naming the contract that needs an ERC20 allowance.
Cross-chain transfers are followed on ``/status`` until DONE or FAILED.

API docs: https://docs.li.fi/li.fi-api/li.fi-api/requesting-a-quote
"""

import copy
import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from bridgeflow.chains import is_native_token
from bridgeflow.config import get_settings
from bridgeflow.errors import InvalidRoute
from bridgeflow.evm.erc20 import encode_approve, parse_amount, parse_optional_amount
from bridgeflow.routing.base import (
    ApprovalRequirement,
    MoveIntent,
    Postback,
    ProviderAdapter,
    ProviderStatus,
    Route,
    StatusCheck,
    Step,
    StepKind,
    TransactionPayload,
)
from bridgeflow.routing.http import ProviderHttpClient
from bridgeflow.routing.retry import RetryPolicy

logger = logging.getLogger(__name__)

LIFI_API = "https://li.quest/v1"


def _join(values: Optional[list[str]]) -> Optional[str]:
    return ",".join(values) if values else None


class LiFiAdapter(ProviderAdapter):
    """LI.FI aggregator provider.

    Supports same-chain swaps and cross-chain bridges on EVM chains.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        integrator: Optional[str] = None,
        fee: Optional[float] = None,
        order: Optional[str] = None,
        allow_bridges: Optional[list[str]] = None,
        deny_bridges: Optional[list[str]] = None,
        allow_exchanges: Optional[list[str]] = None,
        deny_exchanges: Optional[list[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        settings = get_settings()
        self.integrator = integrator or settings.integrator
        self.fee = fee if fee is not None else settings.lifi_fee
        self.order = order or settings.lifi_order
        self.allow_bridges = allow_bridges
        self.deny_bridges = deny_bridges
        self.allow_exchanges = allow_exchanges
        self.deny_exchanges = deny_exchanges
        self.receipt_max_attempts = settings.receipt_max_attempts
        self.status_max_attempts = settings.lifi_status_max_attempts

        api_key = api_key if api_key is not None else settings.lifi_api_key
        headers = {"x-lifi-api-key": api_key} if api_key else {}
        self.http = ProviderHttpClient(
            base_url or settings.lifi_base_url,
            name="lifi",
            headers=headers,
            timeout=settings.http_timeout,
            retry=retry,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "lifi"

    def build_quote_params(self, intent: MoveIntent) -> dict:
        """Build the ``GET /quote`` query for an intent.

        Slippage is sent as a fraction (300 bps -> "0.03").
        """
        slippage = Decimal(intent.slippage_bps) / Decimal(10_000)
        params = {
            "fromChain": str(intent.source_chain_id),
            "toChain": str(intent.dest_chain_id),
            "fromToken": intent.source_token,
            "toToken": intent.dest_token,
            "fromAmount": str(intent.amount),
            "fromAddress": intent.wallet_address,
            "toAddress": intent.recipient,
            "slippage": format(slippage.normalize(), "f"),
            "order": self.order,
            "integrator": self.integrator,
            "fee": format(Decimal(str(self.fee)).normalize(), "f") if self.fee else None,
            "allowBridges": _join(self.allow_bridges),
            "denyBridges": _join(self.deny_bridges),
            "allowExchanges": _join(self.allow_exchanges),
            "denyExchanges": _join(self.deny_exchanges),
        }
        return {key: value for key, value in params.items() if value is not None}

    async def request_quote(self, intent: MoveIntent) -> dict:
        return await self.http.request_json(
            "GET", "/quote", operation="lifi.quote", params=self.build_quote_params(intent)
        )

    def parse_quote(self, payload: Any, intent: Optional[MoveIntent] = None) -> Route:
        """Normalize a LI.FI quote into a Route.

        Produces an ``approve`` step (only for ERC20 sources with an approval
        address) followed by a ``swap`` or ``bridge`` step.
        """
        if not isinstance(payload, dict):
            raise InvalidRoute("LI.FI quote is not a JSON object")

        tx_request = payload.get("transactionRequest")
        estimate = payload.get("estimate")
        action = payload.get("action")
        if not tx_request:
            raise InvalidRoute("LI.FI quote has no transactionRequest")
        if estimate is None:
            raise InvalidRoute("LI.FI quote has no estimate block")
        if not action:
            raise InvalidRoute("LI.FI quote has no action block")
        if not tx_request.get("to") or not tx_request.get("data"):
            raise InvalidRoute("LI.FI transactionRequest lacks target or calldata")

        try:
            from_chain = int(action.get("fromChainId") or tx_request["chainId"])
            to_chain = int(action.get("toChainId") or from_chain)
            value = parse_amount(tx_request.get("value"))
            from_amount = parse_amount(action.get("fromAmount") or estimate.get("fromAmount"))
            suggested_gas = parse_optional_amount(tx_request.get("gasLimit"))
            suggested_gas_price = parse_optional_amount(tx_request.get("gasPrice"))
        except (KeyError, ValueError) as e:
            raise InvalidRoute(f"LI.FI quote has malformed fields: {e}") from e

        tool = payload.get("tool")
        from_token = (action.get("fromToken") or {}).get("address")
        if not from_token:
            raise InvalidRoute("LI.FI quote lacks action.fromToken.address")
        to_symbol = (action.get("toToken") or {}).get("symbol", "?")
        from_symbol = (action.get("fromToken") or {}).get("symbol", "?")
        steps: list[Step] = []

        approval_address = estimate.get("approvalAddress")
        if approval_address and not is_native_token(from_token):
            requirement = ApprovalRequirement(
                token=from_token, spender=approval_address, amount=from_amount
            )
            steps.append(
                Step(
                    id="approve",
                    kind=StepKind.TRANSACTION,
                    description=f"Approve {from_symbol} for {approval_address}",
                    payload=TransactionPayload(
                        to=from_token,
                        data=encode_approve(approval_address, from_amount),
                        value=0,
                        chain_id=from_chain,
                        approval=requirement,
                    ),
                )
            )

        cross_chain = from_chain != to_chain
        check = None
        if cross_chain:
            check = StatusCheck(
                endpoint="/status",
                params={"bridge": tool, "fromChain": from_chain, "toChain": to_chain},
            )

        steps.append(
            Step(
                id="bridge" if cross_chain else "swap",
                kind=StepKind.TRANSACTION,
                description=f"{from_symbol} -> {to_symbol} via {tool or 'lifi'}",
                payload=TransactionPayload(
                    to=tx_request["to"],
                    data=tx_request["data"],
                    value=value,
                    chain_id=from_chain,
                    suggested_gas=suggested_gas,
                    suggested_gas_price=suggested_gas_price,
                ),
                check=check,
            )
        )

        return Route(
            provider=self.name,
            steps=tuple(steps),
            fee_summary={
                "feeCosts": copy.deepcopy(estimate.get("feeCosts") or []),
                "gasCosts": copy.deepcopy(estimate.get("gasCosts") or []),
            },
            route_details={
                "tool": tool,
                "action": copy.deepcopy(action),
                "estimate": copy.deepcopy(estimate),
            },
            quote_id=payload.get("id"),
        )

    async def fetch_status(self, check: StatusCheck, tx_hash: Optional[str] = None) -> ProviderStatus:
        """Query the cross-chain transfer status of a submitted transaction."""
        params = {**check.params, "txHash": tx_hash}
        data = await self.http.request_json(
            "GET", check.endpoint, operation="lifi.status", params=params
        )
        logger.debug(f"LI.FI status for {tx_hash}: {data.get('status')} / {data.get('substatus')}")
        return ProviderStatus(status=str(data.get("status", "UNKNOWN")), detail=data)

    async def post_signature(self, postback: Postback, signature: str) -> None:
        # LI.FI quotes never contain signature steps
        raise NotImplementedError("LI.FI routes do not use off-chain signatures")

    async def get_chains(self) -> list[dict]:
        """List chains supported by LI.FI."""
        data = await self.http.request_json("GET", "/chains", operation="lifi.chains")
        return data.get("chains", [])
