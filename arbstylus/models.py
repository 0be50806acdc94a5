"""
Data models for the arbstylus tool.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Layer(str, Enum):
    """Which chain a call goes to"""
    PARENT = "L1"
    CHILD = "L2"


class FlowKind(str, Enum):
    """
    Flow-kind tag selecting how the orchestrator estimates and submits.

    SIMPLE_TRANSFER covers every single-transaction flow on the child layer,
    including direct contract calls.
    """
    SIMPLE_TRANSFER = "simple_transfer"
    CROSS_LAYER_DEPOSIT = "cross_layer_deposit"
    CROSS_LAYER_CALL = "cross_layer_call"

    @property
    def is_cross_layer(self) -> bool:
        return self is not FlowKind.SIMPLE_TRANSFER


class CrossLayerStatus(str, Enum):
    NONE = "None"
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"

    @property
    def is_terminal(self) -> bool:
        return self in (CrossLayerStatus.COMPLETED, CrossLayerStatus.FAILED)


class Mutability(str, Enum):
    """Declared capability of a contract function"""
    READ_ONLY = "read_only"
    MUTATING = "mutating"
    PAYABLE = "payable"

    @classmethod
    def from_abi(cls, state_mutability: str) -> "Mutability":
        if state_mutability in ("view", "pure"):
            return cls.READ_ONLY
        if state_mutability == "payable":
            return cls.PAYABLE
        return cls.MUTATING


class FunctionCallDescriptor(BaseModel):
    """A parsed ``name(arg0,arg1,...)`` token plus the optional value to send"""
    model_config = ConfigDict(frozen=True)

    name: str
    args: List[str] = Field(default_factory=list)
    value_amount: int = 0

    @property
    def display(self) -> str:
        return f"{self.name}({', '.join(self.args)})"


class KnownFunction(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    signature: str
    mutability: Mutability

    @property
    def is_read_only(self) -> bool:
        return self.mutability is Mutability.READ_ONLY


class ResolvedAddresses(BaseModel):
    """Addresses a flow works with, after configuration and CLI overrides"""
    model_config = ConfigDict(frozen=True)

    source: str
    target: Optional[str] = None
    contract: Optional[str] = None


class CostEnvelope(BaseModel):
    """
    Funds a flow needs, in wei.

    ``prepared_tx`` is the unsigned transaction the figures were estimated
    for; the orchestrator submits exactly this transaction.
    """
    kind: FlowKind
    layer: Layer
    base_amount: int
    fee_estimate: int
    submission_fee: int = 0
    total: int
    gas_limit: int
    gas_price: int
    prepared_tx: Dict[str, Any] = Field(default_factory=dict)


class BalanceSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    amount: int
    label: str
    layer: Layer = Layer.CHILD


class TransactionOutcome(BaseModel):
    """What happened to a submitted transaction, for display only"""
    tx_hash: str
    confirmed_block: Optional[int] = None
    cross_layer_status: CrossLayerStatus = CrossLayerStatus.NONE
    child_tx_hash: Optional[str] = None
    timed_out: bool = False


@dataclass
class SnapshotTarget:
    layer: Layer
    address: str
    label: str


@dataclass
class FlowRequest:
    """
    Everything the orchestrator needs for one run.

    Attributes:
        kind: Flow-kind tag
        source: Sender address (must match the signer)
        destination: Recipient on the destination layer, or the contract
        amount: Value moved to the destination, in wei
        data: Calldata for contract calls
        summary: Human readable description shown before the delay
        snapshots: Balances shown before and after the run
        follow_up: Called after a successful run; failures are warnings
    """
    kind: FlowKind
    source: str
    destination: str
    amount: int = 0
    data: bytes = b""
    summary: str = ""
    snapshots: List[SnapshotTarget] = field(default_factory=list)
    follow_up: Optional[Callable[[], None]] = None
