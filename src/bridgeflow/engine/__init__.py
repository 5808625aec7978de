"""Route execution engine."""

from bridgeflow.engine.executor import StepExecutor, StepState
from bridgeflow.engine.status import StatusPoller

__all__ = ["StepExecutor", "StepState", "StatusPoller"]
