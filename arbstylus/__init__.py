"""
arbstylus - move ETH between Arbitrum L1 and L2 and call Stylus contracts.
"""
from .config import NetworkConfig, NetworkDescriptor, Settings
from .exceptions import (
    ArbStylusError,
    ConfigError,
    ContractCallError,
    CrossLayerFailure,
    EstimationError,
    InsufficientFundsError,
    NetworkError,
    SubmissionError,
    ValidationError,
    WaitTimeoutError,
)
from .models import (
    CostEnvelope,
    CrossLayerStatus,
    FlowKind,
    FunctionCallDescriptor,
    Layer,
    TransactionOutcome,
)
from .orchestrator import TransactionOrchestrator
from .router import CommandRouter
from .version import __version__

__all__ = [
    "Settings",
    "NetworkConfig",
    "NetworkDescriptor",
    "CommandRouter",
    "TransactionOrchestrator",
    "Layer",
    "FlowKind",
    "CrossLayerStatus",
    "CostEnvelope",
    "FunctionCallDescriptor",
    "TransactionOutcome",
    "ArbStylusError",
    "ConfigError",
    "ValidationError",
    "NetworkError",
    "EstimationError",
    "ContractCallError",
    "InsufficientFundsError",
    "SubmissionError",
    "CrossLayerFailure",
    "WaitTimeoutError",
    "__version__",
]
