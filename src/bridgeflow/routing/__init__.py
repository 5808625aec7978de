"""Route discovery through bridge aggregators.

Providers:
- Relay: intents with transaction and signature steps
- LI.FI: single-transaction swaps and bridges with an optional approval
"""

from bridgeflow.routing.base import (
    ApprovalRequirement,
    MoveIntent,
    ProviderAdapter,
    ProviderStatus,
    Route,
    Step,
    StepKind,
    StepResult,
    StepStatus,
    TradeType,
)
from bridgeflow.routing.factory import ProviderName, create_adapter
from bridgeflow.routing.lifi import LiFiAdapter
from bridgeflow.routing.relay import RelayAdapter
from bridgeflow.routing.retry import RetryPolicy, is_retryable

__all__ = [
    # Data model
    "MoveIntent",
    "Route",
    "Step",
    "StepKind",
    "StepResult",
    "StepStatus",
    "TradeType",
    "ApprovalRequirement",
    "ProviderStatus",
    # Providers
    "ProviderAdapter",
    "RelayAdapter",
    "LiFiAdapter",
    "ProviderName",
    "create_adapter",
    # Retry
    "RetryPolicy",
    "is_retryable",
]
