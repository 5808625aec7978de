"""Step executor: drives the steps of a route to terminal states.

Each step moves through ``pending -> submitting -> awaiting_receipt ->
awaiting_provider_status -> terminal``; signature steps skip the receipt
state. Steps run strictly in route order and the first failed (or
refunded) step ends the run.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from bridgeflow.chains import get_chain_name
from bridgeflow.engine.status import StatusPoller
from bridgeflow.errors import TransactionReverted
from bridgeflow.evm.allowance import AllowanceManager
from bridgeflow.evm.client import ChainClient
from bridgeflow.evm.gas import GasManager
from bridgeflow.evm.receipts import ReceiptWaiter, receipt_succeeded
from bridgeflow.evm.signer import WalletSigner
from bridgeflow.routing.base import (
    ProviderAdapter,
    ProviderStatus,
    Route,
    SignaturePayload,
    Step,
    StepKind,
    StepResult,
    StepStatus,
    SubmittedTx,
    TransactionPayload,
)

logger = logging.getLogger(__name__)


class StepState(str, Enum):
    PENDING = "pending"
    SUBMITTING = "submitting"
    AWAITING_RECEIPT = "awaiting_receipt"
    AWAITING_PROVIDER_STATUS = "awaiting_provider_status"
    TERMINAL = "terminal"


class StepExecutor:
    """Executes a route's steps for one wallet.

    An executor instance serves one route execution at a time: it owns the
    chain clients it creates, so nonces for the wallet are read by a single
    caller.
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        *,
        gas: Optional[GasManager] = None,
        allowance: Optional[AllowanceManager] = None,
        receipt_waiter: Optional[ReceiptWaiter] = None,
        status_poller: Optional[StatusPoller] = None,
        clients: Optional[dict[int, ChainClient]] = None,
        client_factory: Callable[[int], ChainClient] = ChainClient.for_chain,
        signer_factory: Callable[[str], WalletSigner] = WalletSigner,
    ):
        self.adapter = adapter
        self.gas = gas or GasManager.from_settings()
        self.receipt_waiter = receipt_waiter or ReceiptWaiter()
        self.allowance = allowance or AllowanceManager(self.gas, self.receipt_waiter)
        self.status_poller = status_poller or StatusPoller()
        self.clients: dict[int, ChainClient] = dict(clients or {})
        self.client_factory = client_factory
        self.signer_factory = signer_factory
        self.states: dict[str, StepState] = {}

    def _client(self, chain_id: int) -> ChainClient:
        if chain_id not in self.clients:
            self.clients[chain_id] = self.client_factory(chain_id)
        return self.clients[chain_id]

    def _set_state(self, step: Step, state: StepState) -> None:
        self.states[step.id] = state
        logger.debug(f"[{self.adapter.name}] Step '{step.id}' -> {state.value}")

    async def run(self, private_key: str, route: Route) -> list[StepResult]:
        """Process the route's steps in order.

        Step-local errors never escape: they are recorded as a failed
        ``StepResult``, which is then the last element of the returned list.
        """
        signer = self.signer_factory(private_key)
        results: list[StepResult] = []
        self.states = {step.id: StepState.PENDING for step in route.steps}

        logger.info(
            f"[{self.adapter.name}] Executing {len(route.steps)} step(s) for {signer.address}"
        )

        for step in route.steps:
            result = StepResult(step_id=step.id, status=StepStatus.PENDING)
            try:
                if step.kind == StepKind.TRANSACTION:
                    await self._run_transaction(signer, step, result)
                else:
                    await self._run_signature(signer, step, result)
            except Exception as e:
                result.status = StepStatus.FAILED
                result.error = str(e)
                result.tx_hash = result.tx_hash or getattr(e, "tx_hash", None)
                logger.error(
                    f"[{self.adapter.name}] Step '{step.id}' failed ({self._context(step)}): {e}"
                )

            self._set_state(step, StepState.TERMINAL)
            results.append(result)
            logger.info(
                f"[{self.adapter.name}] Step '{step.id}' finished: {result.status.value}"
                + (f" tx={result.tx_hash}" if result.tx_hash else "")
            )

            if result.is_failure:
                break

        return results

    def _context(self, step: Step) -> str:
        payload = step.payload
        if isinstance(payload, TransactionPayload):
            token = payload.approval.token if payload.approval else payload.to
            return f"chain {get_chain_name(payload.chain_id)}, token/target {token}"
        return f"signature {payload.signature_kind}"

    async def _run_transaction(self, signer: WalletSigner, step: Step, result: StepResult) -> None:
        payload: TransactionPayload = step.payload
        client = self._client(payload.chain_id)

        if payload.approval is not None:
            # Approval steps are satisfied by the allowance check alone
            self._set_state(step, StepState.SUBMITTING)
            result.tx_hash = await self.allowance.ensure_allowance(
                client, signer, payload.approval, payload.chain_id
            )
            result.status = StepStatus.COMPLETED
            return

        self._set_state(step, StepState.SUBMITTING)
        envelope = await self.gas.build_envelope(client, signer.address, payload)
        raw_tx = signer.sign_transaction(envelope)
        tx_hash = await client.send_raw_transaction(raw_tx)
        result.tx_hash = tx_hash
        logger.info(
            f"[{self.adapter.name}] Step '{step.id}' submitted on {client.name}: {tx_hash}"
        )

        await self._notify(SubmittedTx(step_id=step.id, tx_hash=tx_hash, chain_id=payload.chain_id))

        self._set_state(step, StepState.AWAITING_RECEIPT)
        receipt = await self.receipt_waiter.wait(client, tx_hash)
        if not receipt_succeeded(receipt):
            raise TransactionReverted(tx_hash, payload.chain_id)
        if receipt.get("assumed"):
            result.receipt_assumed = True
            logger.warning(
                f"[{self.adapter.name}] Step '{step.id}' completed without a receipt: {tx_hash}"
            )

        result.status = StepStatus.COMPLETED
        if step.check is not None:
            await self._await_provider(step, result, tx_hash)

    async def _run_signature(self, signer: WalletSigner, step: Step, result: StepResult) -> None:
        payload: SignaturePayload = step.payload

        self._set_state(step, StepState.SUBMITTING)
        result.signature = signer.sign_message(payload.message, payload.signature_kind)

        if payload.postback is not None:
            await self.adapter.post_signature(payload.postback, result.signature)
            logger.info(f"[{self.adapter.name}] Signature for step '{step.id}' delivered")

        result.status = StepStatus.COMPLETED
        if step.check is not None:
            await self._await_provider(step, result, None)

    async def _await_provider(self, step: Step, result: StepResult, tx_hash: Optional[str]) -> None:
        self._set_state(step, StepState.AWAITING_PROVIDER_STATUS)
        status: ProviderStatus = await self.status_poller.wait(
            lambda: self.adapter.fetch_status(step.check, tx_hash), label=step.id
        )
        result.status = status.outcome
        result.provider_status = {"status": status.status, **status.detail}
        if result.is_failure:
            result.error = f"Provider reported '{status.status}' for step '{step.id}'"

    async def _notify(self, tx: SubmittedTx) -> None:
        try:
            await self.adapter.notify_indexed(tx)
        except Exception as e:
            logger.warning(f"[{self.adapter.name}] Indexing notification for {tx.tx_hash} failed: {e}")
