"""Exception hierarchy for quoting and route execution."""

from typing import Optional


class BridgeError(Exception):
    """Base class for all bridgeflow errors."""
    pass


class InvalidIntent(BridgeError):
    """Raised when a move intent cannot be quoted (e.g. zero amount)."""
    pass


class InvalidRoute(BridgeError):
    """Raised when a provider response lacks required route structure.

    This is a local validation failure and is never retried.
    """
    pass


class ProviderHttpError(BridgeError):
    """Raised when a provider endpoint answers with an HTTP error or is unreachable."""

    def __init__(self, operation: str, status: Optional[int] = None, message: str = ""):
        self.operation = operation
        self.status = status
        self.message = message
        label = f"HTTP {status}" if status is not None else "network error"
        super().__init__(f"{operation} failed: {label} {message}".rstrip())


class RpcError(BridgeError):
    """Raised when a JSON-RPC call fails or returns an error object."""

    def __init__(self, method: str, message: str, code: Optional[int] = None):
        self.method = method
        self.code = code
        super().__init__(f"RPC {method} failed: {message}")


class ApprovalRejected(BridgeError):
    """Raised when an ERC20 approval transaction reverts on-chain."""

    def __init__(self, tx_hash: str, token: str, spender: str):
        self.tx_hash = tx_hash
        self.token = token
        self.spender = spender
        super().__init__(f"Approval {tx_hash} for token {token} (spender {spender}) was rejected")


class TransactionReverted(BridgeError):
    """Raised when a submitted transaction's receipt reports status 0."""

    def __init__(self, tx_hash: str, chain_id: int):
        self.tx_hash = tx_hash
        self.chain_id = chain_id
        super().__init__(f"Transaction {tx_hash} reverted on chain {chain_id}")


class UnsupportedSignatureScheme(BridgeError):
    """Raised when a provider requests a signature scheme other than eip191."""

    def __init__(self, scheme: Optional[str]):
        self.scheme = scheme
        super().__init__(f"Unsupported signature scheme: {scheme}")


class TimeoutExhausted(BridgeError):
    """Raised when a polling loop runs out of attempts without a terminal signal."""

    def __init__(self, what: str, attempts: int):
        self.what = what
        self.attempts = attempts
        super().__init__(f"No terminal result for {what} after {attempts} attempts")


class StepAborted(BridgeError):
    """Raised by ``execute`` when a step fails; carries the results gathered so far."""

    def __init__(self, results: list, message: str = ""):
        self.results = results
        failed = results[-1] if results else None
        detail = message or (failed.error if failed is not None else "") or ""
        step = failed.step_id if failed is not None else "?"
        super().__init__(f"Route aborted at step '{step}': {detail}")
