"""
Exceptions for the arbstylus command-line tool.

Every failure is terminal for the current invocation: nothing here is
retried, and the CLI turns any ``ArbStylusError`` into a message on stderr
and a non-zero exit code.
"""
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Layer, TransactionOutcome


class ArbStylusError(Exception):
    """Base exception for arbstylus errors."""
    pass


class ConfigError(ArbStylusError):
    """Raised when an address, credential or endpoint is missing or invalid."""
    pass


class ValidationError(ArbStylusError):
    """Raised when a command argument (function call token, amount) is malformed."""
    pass


class NetworkError(ArbStylusError):
    """Raised when a read-only RPC call fails outside a balance snapshot."""
    pass


class EstimationError(ArbStylusError):
    """Raised when gas price, gas limit or bridge fee data cannot be obtained."""
    pass


class ContractCallError(ArbStylusError):
    """Raised when the contract collaborator rejects a function name or its arguments."""
    pass


class InsufficientFundsError(ArbStylusError):
    """Raised when the source balance cannot cover the cost envelope."""

    def __init__(self, message: str, available: int, required: int, layer: Optional["Layer"] = None):
        self.available = available
        self.required = required
        self.layer = layer
        super().__init__(message)


class SubmissionError(ArbStylusError):
    """Raised when a transaction is rejected at send time or reverts when mined."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class CrossLayerFailure(ArbStylusError):
    """
    Raised when a cross-layer message reaches the Failed terminal state.

    The parent-layer transaction is already mined and final; the outcome is
    attached so the caller can still report what happened on each layer.
    """

    def __init__(self, message: str, outcome: "TransactionOutcome"):
        self.outcome = outcome
        super().__init__(message)


class WaitTimeoutError(ArbStylusError):
    """Raised when waiting for a receipt or a cross-layer message exceeds its timeout."""

    def __init__(self, message: str, outcome: "TransactionOutcome"):
        self.outcome = outcome
        super().__init__(message)
