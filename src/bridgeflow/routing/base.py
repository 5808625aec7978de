"""Route model and the provider adapter interface.

A ``MoveIntent`` describes what should happen ("move asset X on chain A to
asset Y on chain B"); a provider turns it into a ``Route``: an ordered list
of ``Step`` objects, each either an on-chain transaction or an off-chain
signature. Executing a route yields one ``StepResult`` per processed step.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Union

from bridgeflow.config import get_settings
from bridgeflow.errors import InvalidIntent, StepAborted

if TYPE_CHECKING:
    from bridgeflow.engine.executor import StepExecutor
    from bridgeflow.evm.client import ChainClient

logger = logging.getLogger(__name__)


class TradeType(str, Enum):
    """Which side of the trade the amount refers to."""
    EXACT_INPUT = "EXACT_INPUT"
    EXACT_OUTPUT = "EXACT_OUTPUT"


class StepKind(str, Enum):
    """Kind of work a step performs."""
    TRANSACTION = "transaction"
    SIGNATURE = "signature"


class StepStatus(str, Enum):
    """Outcome recorded for a processed step."""
    COMPLETED = "completed"
    SUCCESS = "success"
    FAILED = "failed"
    REFUND = "refund"
    PENDING = "pending"      # cross-chain polling exhausted, last status was non-terminal


# Provider status values that end cross-chain polling
TERMINAL_PROVIDER_STATUSES = frozenset({"success", "failure", "refund", "DONE", "FAILED"})


@dataclass(frozen=True)
class MoveIntent:
    """Request to move ``amount`` base units of ``source_token`` to ``dest_token``."""

    wallet_address: str
    source_chain_id: int
    dest_chain_id: int
    source_token: str
    dest_token: str
    amount: int
    slippage_bps: int = 300
    recipient_address: Optional[str] = None
    trade_type: TradeType = TradeType.EXACT_INPUT

    @property
    def recipient(self) -> str:
        """Destination address (defaults to the wallet itself)."""
        return self.recipient_address or self.wallet_address

    @property
    def is_cross_chain(self) -> bool:
        return self.source_chain_id != self.dest_chain_id

    def validate(self) -> None:
        """Reject intents that must never reach a provider.

        Raises:
            InvalidIntent: If the amount is not a positive integer or slippage is out of range.
        """
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidIntent(f"Amount must be an integer in base units, got {self.amount!r}")
        if self.amount <= 0:
            raise InvalidIntent(f"Refusing to quote non-positive amount {self.amount}")
        if not 0 <= self.slippage_bps <= 10_000:
            raise InvalidIntent(f"Slippage {self.slippage_bps} bps is out of range")
        if not self.wallet_address:
            raise InvalidIntent("Wallet address is required")


@dataclass(frozen=True)
class ApprovalRequirement:
    """ERC20 allowance that must be in place before the route can pull funds."""

    token: str
    spender: str
    amount: int


@dataclass(frozen=True)
class TransactionPayload:
    """Unsigned transaction request produced by a provider.

    Provider gas hints are kept for logging only; the envelope is always
    recomputed from the chain before submission.
    """

    to: str
    data: str
    value: int
    chain_id: int
    suggested_gas: Optional[int] = None
    suggested_gas_price: Optional[int] = None
    approval: Optional[ApprovalRequirement] = None


@dataclass(frozen=True)
class Postback:
    """Provider endpoint that receives a produced signature."""

    endpoint: str
    body: dict = field(default_factory=dict)
    method: str = "POST"


@dataclass(frozen=True)
class SignaturePayload:
    """Message the wallet must sign off-chain."""

    message: str
    signature_kind: str
    postback: Optional[Postback] = None


@dataclass(frozen=True)
class StatusCheck:
    """Provider-side completion check declared by a step."""

    endpoint: str
    params: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Step:
    """One unit of work in a route."""

    id: str
    kind: StepKind
    description: str
    payload: Union[TransactionPayload, SignaturePayload]
    check: Optional[StatusCheck] = None


@dataclass(frozen=True)
class Route:
    """Ordered, provider-produced plan of steps achieving a move intent."""

    provider: str
    steps: tuple[Step, ...]
    fee_summary: dict = field(default_factory=dict)
    route_details: dict = field(default_factory=dict)
    quote_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary for logging and display."""
        return {
            "provider": self.provider,
            "quote_id": self.quote_id,
            "steps": [
                {
                    "id": step.id,
                    "kind": step.kind.value,
                    "description": step.description,
                    "check": step.check.endpoint if step.check else None,
                }
                for step in self.steps
            ],
            "fees": self.fee_summary,
            "details": self.route_details,
        }


@dataclass(frozen=True)
class SubmittedTx:
    """A transaction that has been broadcast for a step."""

    step_id: str
    tx_hash: str
    chain_id: int


@dataclass
class ProviderStatus:
    """Cross-chain execution status reported by a provider."""

    status: str
    detail: dict = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PROVIDER_STATUSES

    @property
    def outcome(self) -> StepStatus:
        """Map the provider's vocabulary onto a step status."""
        if self.status in ("success", "DONE"):
            if str(self.detail.get("substatus", "")).upper() == "REFUNDED":
                return StepStatus.REFUND
            return StepStatus.SUCCESS
        if self.status in ("failure", "FAILED"):
            return StepStatus.FAILED
        if self.status == "refund":
            return StepStatus.REFUND
        return StepStatus.PENDING


@dataclass
class StepResult:
    """Outcome of one processed step."""

    step_id: str
    status: StepStatus
    tx_hash: Optional[str] = None
    signature: Optional[str] = None
    error: Optional[str] = None
    provider_status: Optional[dict] = None
    receipt_assumed: bool = False    # no receipt seen, success assumed on timeout

    @property
    def is_failure(self) -> bool:
        """Failed and refunded steps stop the route."""
        return self.status in (StepStatus.FAILED, StepStatus.REFUND)

    def to_dict(self) -> dict:
        return {
            "step": self.step_id,
            "status": self.status.value,
            "tx_hash": self.tx_hash,
            "signature": self.signature,
            "error": self.error,
            "receipt_assumed": self.receipt_assumed,
        }


class ProviderAdapter(ABC):
    """Abstract base class for bridge aggregator adapters.

    Subclasses bind one aggregator's wire protocol: building the quote
    request, normalizing the response into a ``Route`` and answering
    status queries. Step execution itself is provider-agnostic.
    """

    receipt_max_attempts: int = 60
    status_max_attempts: int = 30

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @abstractmethod
    async def request_quote(self, intent: MoveIntent) -> Any:
        """Send the provider-specific quote request and return the raw payload."""
        pass

    @abstractmethod
    def parse_quote(self, payload: Any, intent: Optional[MoveIntent] = None) -> Route:
        """Normalize a raw quote payload into a ``Route``.

        Raises:
            InvalidRoute: If required structure is missing.
        """
        pass

    @abstractmethod
    async def fetch_status(self, check: StatusCheck, tx_hash: Optional[str] = None) -> ProviderStatus:
        """Query the provider's execution status for a submitted step."""
        pass

    @abstractmethod
    async def post_signature(self, postback: Postback, signature: str) -> None:
        """Deliver a produced signature to the provider."""
        pass

    async def notify_indexed(self, tx: SubmittedTx) -> None:
        """Best-effort hint that a transaction was broadcast. No-op by default."""
        return None

    async def get_quote(self, intent: MoveIntent) -> Route:
        """Get an executable route for a move intent.

        Raises:
            InvalidIntent: If the intent is rejected before any request is made.
            InvalidRoute: If the provider answered without a usable route.
            ProviderHttpError: If the provider could not be reached.
        """
        intent.validate()
        logger.info(
            f"[{self.name}] Requesting quote: {intent.amount} {intent.source_token} "
            f"(chain {intent.source_chain_id}) -> {intent.dest_token} (chain {intent.dest_chain_id})"
        )
        payload = await self.request_quote(intent)
        route = self.parse_quote(payload, intent)
        logger.info(
            f"[{self.name}] Quote obtained: {len(route.steps)} step(s) "
            f"[{', '.join(step.id for step in route.steps)}]"
        )
        return route

    def create_executor(self, clients: Optional[dict[int, "ChainClient"]] = None) -> "StepExecutor":
        """Build a step executor wired with this adapter's polling limits."""
        from bridgeflow.engine.executor import StepExecutor
        from bridgeflow.engine.status import StatusPoller
        from bridgeflow.evm.receipts import ReceiptWaiter

        settings = get_settings()
        return StepExecutor(
            self,
            receipt_waiter=ReceiptWaiter(
                max_attempts=self.receipt_max_attempts,
                interval=settings.poll_interval,
                assume_success_on_timeout=settings.receipt_timeout_assume_success,
            ),
            status_poller=StatusPoller(
                max_attempts=self.status_max_attempts,
                interval=settings.poll_interval,
            ),
            clients=clients,
        )

    async def execute(
        self,
        private_key: str,
        route: Route,
        clients: Optional[dict[int, "ChainClient"]] = None,
    ) -> list[StepResult]:
        """Drive every step of a route to a terminal state.

        Args:
            private_key: Decrypted wallet key, used only for this call
            route: Route previously returned by ``get_quote``
            clients: Optional chain id -> client map (created on demand otherwise)

        Returns:
            Ordered step results

        Raises:
            StepAborted: If a step failed; carries the results gathered so far.
        """
        executor = self.create_executor(clients)
        results = await executor.run(private_key, route)
        if results and results[-1].is_failure:
            raise StepAborted(results)
        return results

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
