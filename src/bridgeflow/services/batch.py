"""Batch jobs over a wallet's balances.

- swap_all_to_native: swap every ERC20 balance on a chain into that chain's
  native asset.
- bridge_all_native: bridge native balances from every chain to one
  destination chain, leaving a gas reserve behind.
- swap_and_bridge_all: both of the above, one after the other.

Balances come from an external oracle as ``TokenBalance`` records; the
amount actually moved is always re-read on-chain first, since oracle
snapshots can be stale.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Iterable, Optional, Union

from bridgeflow.chains import (
    ZERO_ADDRESS,
    chain_id_by_name,
    get_chain,
    get_chain_name,
    is_native_token,
)
from bridgeflow.config import get_settings
from bridgeflow.errors import BridgeError
from bridgeflow.evm.client import ChainClient
from bridgeflow.evm.signer import WalletSigner
from bridgeflow.routing.base import MoveIntent, ProviderAdapter
from bridgeflow.services.mover import move

logger = logging.getLogger(__name__)

# Gas kept back when bridging a native balance: limit x price x 115%
GAS_RESERVE_LIMIT = 800_000
GAS_RESERVE_PRICE_PCT = 115

# A token priced within 1% of one dollar is treated as a stablecoin
STABLE_PRICE_TOLERANCE = 0.01

# Pause between the swap and bridge phases of swap_and_bridge_all
PHASE_PAUSE_SECONDS = 5.0


@dataclass
class TokenBalance:
    """One asset balance reported by the balance oracle."""

    chain_id: int
    address: str
    symbol: str
    amount: int
    value_usd: float = 0.0
    price_usd: Optional[float] = None

    @property
    def is_native(self) -> bool:
        return is_native_token(self.address)

    @property
    def is_stable(self) -> bool:
        if self.price_usd is None:
            return False
        return abs(self.price_usd - 1.0) <= STABLE_PRICE_TOLERANCE


@dataclass
class OperationOutcome:
    """What happened to one balance."""

    chain_id: int
    symbol: str
    status: str              # success, failed or skipped
    amount: int = 0
    tx_hashes: list[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class BatchReport:
    """Counters and per-asset outcomes of a batch job."""

    success: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: list[OperationOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.failed

    def record(self, outcome: OperationOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status == "success":
            self.success += 1
        elif outcome.status == "failed":
            self.failed += 1
        else:
            self.skipped += 1

    def merge(self, other: "BatchReport") -> "BatchReport":
        """Combine two reports into a new one."""
        merged = BatchReport()
        for outcome in self.outcomes + other.outcomes:
            merged.record(outcome)
        return merged


class BatchRunner:
    """Runs batch jobs for one wallet at a time through one adapter."""

    def __init__(
        self,
        adapter: ProviderAdapter,
        *,
        delay_ms: Optional[int] = None,
        min_value_usd: Optional[float] = None,
        chains: Optional[Iterable[Union[int, str]]] = None,
        slippage_bps: Optional[int] = None,
        timeout: Optional[float] = None,
        client_factory: Callable[[int], ChainClient] = ChainClient.for_chain,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        settings = get_settings()
        self.adapter = adapter
        self.delay_ms = delay_ms if delay_ms is not None else settings.operation_delay_ms
        self.min_value_usd = min_value_usd if min_value_usd is not None else settings.min_value_usd
        # Accepts chain ids or names ("arbitrum", "base")
        self.chains = {chain_id_by_name(str(c)) for c in chains} if chains else None
        self.slippage_bps = slippage_bps if slippage_bps is not None else settings.default_slippage_bps
        self.timeout = timeout
        self.client_factory = client_factory
        self.sleep = sleep

    def _chain_allowed(self, chain_id: int) -> bool:
        return self.chains is None or chain_id in self.chains

    def _client(self, clients: dict[int, ChainClient], chain_id: int) -> ChainClient:
        if chain_id not in clients:
            clients[chain_id] = self.client_factory(chain_id)
        return clients[chain_id]

    async def _pause(self) -> None:
        if self.delay_ms:
            await self.sleep(self.delay_ms / 1000)

    async def _execute(
        self,
        intent: MoveIntent,
        private_key: str,
        clients: dict[int, ChainClient],
        token: TokenBalance,
        label: str,
    ) -> OperationOutcome:
        try:
            outcome = await move(
                intent, private_key, adapter=self.adapter, clients=clients, timeout=self.timeout
            )
        except (BridgeError, asyncio.TimeoutError) as e:
            error = str(e) or "timed out"
            logger.error(f"{label} | Error: {error}")
            return OperationOutcome(
                chain_id=token.chain_id,
                symbol=token.symbol,
                status="failed",
                amount=intent.amount,
                tx_hashes=[r.tx_hash for r in getattr(e, "results", []) if r.tx_hash],
                error=error,
            )

        logger.info(f"{label} | TX: {', '.join(outcome.tx_hashes) or '-'}")
        return OperationOutcome(
            chain_id=token.chain_id,
            symbol=token.symbol,
            status="success",
            amount=intent.amount,
            tx_hashes=outcome.tx_hashes,
        )

    async def swap_all_to_native(
        self,
        private_key: str,
        balances: Iterable[TokenBalance],
        exclude_stables: bool = False,
    ) -> BatchReport:
        """Swap every ERC20 balance worth more than the threshold into native."""
        wallet = WalletSigner(private_key).address
        report = BatchReport()
        clients: dict[int, ChainClient] = {}

        candidates = [
            b for b in balances
            if not b.is_native and b.value_usd > self.min_value_usd and self._chain_allowed(b.chain_id)
        ]
        logger.info(f"Checking {wallet} | {self.adapter.name} | {len(candidates)} token(s) to swap")

        for token in candidates:
            label = f"[{get_chain_name(token.chain_id)}] {token.symbol} ({token.value_usd:.2f} USD)"

            if exclude_stables and token.is_stable:
                logger.debug(f"{label} | Skip: stablecoin")
                report.record(OperationOutcome(token.chain_id, token.symbol, "skipped"))
                continue

            try:
                client = self._client(clients, token.chain_id)
                actual = await client.get_token_balance(token.address, wallet)
            except (BridgeError, ValueError) as e:
                logger.error(f"{label} | Balance check failed: {e}")
                report.record(
                    OperationOutcome(token.chain_id, token.symbol, "failed", error=str(e))
                )
                continue

            if actual <= 0:
                logger.warning(f"{label} | Skip: on-chain balance is 0")
                report.record(OperationOutcome(token.chain_id, token.symbol, "skipped"))
                continue

            await self._pause()

            intent = MoveIntent(
                wallet_address=wallet,
                source_chain_id=token.chain_id,
                dest_chain_id=token.chain_id,
                source_token=token.address,
                dest_token=ZERO_ADDRESS,
                amount=actual,
                slippage_bps=self.slippage_bps,
            )
            report.record(await self._execute(intent, private_key, clients, token, label))

        logger.info(
            f"Done {wallet} | Total: {report.total} | Success: {report.success} | Fail: {report.failed}"
        )
        return report

    async def bridge_all_native(
        self,
        private_key: str,
        balances: Iterable[TokenBalance],
        destination_chain_id: int,
    ) -> BatchReport:
        """Bridge native balances from every other chain to ``destination_chain_id``."""
        wallet = WalletSigner(private_key).address
        report = BatchReport()
        clients: dict[int, ChainClient] = {}
        destination = get_chain_name(destination_chain_id)

        candidates = [
            b for b in balances
            if b.is_native
            and b.value_usd > self.min_value_usd
            and b.chain_id != destination_chain_id
            and self._chain_allowed(b.chain_id)
        ]
        logger.info(
            f"Checking {wallet} | {self.adapter.name} | Target: {destination} | "
            f"{len(candidates)} native balance(s)"
        )

        for token in candidates:
            label = (
                f"[{get_chain_name(token.chain_id)} -> {destination}] "
                f"{token.symbol} ({token.value_usd:.2f} USD)"
            )
            try:
                client = self._client(clients, token.chain_id)
                gas_price = await client.gas_price()
                balance = await client.get_balance(wallet)
            except (BridgeError, ValueError) as e:
                logger.error(f"{label} | Balance check failed: {e}")
                report.record(
                    OperationOutcome(token.chain_id, token.symbol, "failed", error=str(e))
                )
                continue

            reserve = GAS_RESERVE_LIMIT * gas_price * GAS_RESERVE_PRICE_PCT // 100
            if balance <= reserve:
                logger.info(f"{label} | Skip: balance too low ({balance} <= reserve {reserve})")
                report.record(OperationOutcome(token.chain_id, token.symbol, "skipped"))
                continue

            await self._pause()

            intent = MoveIntent(
                wallet_address=wallet,
                source_chain_id=token.chain_id,
                dest_chain_id=destination_chain_id,
                source_token=token.address,
                dest_token=ZERO_ADDRESS,
                amount=balance - reserve,
                slippage_bps=self.slippage_bps,
            )
            report.record(await self._execute(intent, private_key, clients, token, label))

        logger.info(
            f"Done {wallet} | Total: {report.total} | Success: {report.success} | Fail: {report.failed}"
        )
        return report

    async def swap_and_bridge_all(
        self,
        private_key: str,
        balances: Iterable[TokenBalance],
        destination_chain_id: int,
        exclude_stables: bool = False,
    ) -> BatchReport:
        """Swap every token to native, then bridge all native balances to one chain.

        The oracle snapshot predates the swaps, so the native balances handed
        to the bridge phase are credited with the USD value of every token
        swapped successfully on their chain. Chains without a native entry
        in the snapshot get one. The amount bridged is still read on-chain.
        """
        balances = list(balances)

        logger.info("Step 1: swapping all tokens to native")
        swap_report = await self.swap_all_to_native(private_key, balances, exclude_stables)

        await self.sleep(PHASE_PAUSE_SECONDS)

        logger.info(f"Step 2: bridging all native balances to {get_chain_name(destination_chain_id)}")
        natives = native_balances_after_swaps(balances, swap_report)
        bridge_report = await self.bridge_all_native(private_key, natives, destination_chain_id)

        return swap_report.merge(bridge_report)


def native_balances_after_swaps(
    balances: Iterable[TokenBalance], swap_report: BatchReport
) -> list[TokenBalance]:
    """Native balances of a snapshot, credited with the value of successful swaps."""
    swapped = {
        (o.chain_id, o.symbol) for o in swap_report.outcomes if o.status == "success"
    }
    credit: dict[int, float] = {}
    natives: dict[int, TokenBalance] = {}
    for balance in balances:
        if balance.is_native:
            natives[balance.chain_id] = replace(balance)
        elif (balance.chain_id, balance.symbol) in swapped:
            credit[balance.chain_id] = credit.get(balance.chain_id, 0.0) + balance.value_usd

    for chain_id, value in credit.items():
        if chain_id not in natives:
            chain = get_chain(chain_id)
            natives[chain_id] = TokenBalance(
                chain_id, ZERO_ADDRESS, chain.symbol if chain else "NATIVE", 0
            )
        natives[chain_id].value_usd += value
    return list(natives.values())


async def run_wallets(jobs: Iterable[Awaitable[BatchReport]]) -> list[BatchReport]:
    """Run batch jobs for several wallets concurrently."""
    return list(await asyncio.gather(*jobs))
