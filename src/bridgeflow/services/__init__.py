"""Services built on top of the routing and execution layers."""

from bridgeflow.services.batch import BatchReport, BatchRunner, TokenBalance, run_wallets
from bridgeflow.services.mover import MoveOutcome, move, quote

__all__ = [
    "move",
    "quote",
    "MoveOutcome",
    "BatchRunner",
    "BatchReport",
    "TokenBalance",
    "run_wallets",
]
