"""
Console output for the command-line flows.
"""
from typing import Callable, Dict, Optional

import typer

from .amounts import format_amount, format_gwei
from .config import NetworkDescriptor
from .exceptions import InsufficientFundsError
from .models import BalanceSnapshot, CostEnvelope, CrossLayerStatus, Layer, TransactionOutcome


class Reporter:
    """Writes progress to stdout and problems to stderr"""

    def __init__(self, symbols: Optional[Dict[Layer, str]] = None, echo: Callable[..., None] = typer.echo):
        self.symbols = symbols or {Layer.PARENT: "ETH", Layer.CHILD: "ETH"}
        self._echo = echo

    @classmethod
    def for_network(cls, network: NetworkDescriptor) -> "Reporter":
        return cls({
            Layer.PARENT: network.parent.native_symbol,
            Layer.CHILD: network.child.native_symbol,
        })

    def amount(self, wei: int, layer: Layer = Layer.CHILD) -> str:
        return f"{format_amount(wei)} {self.symbols[layer]}"

    def title(self, text: str) -> None:
        self._echo(text)
        self._echo("=" * len(text) + "\n")

    def info(self, text: str = "") -> None:
        self._echo(text)

    def warn(self, text: str) -> None:
        self._echo(f"Warning: {text}", err=True)

    def error(self, text: str) -> None:
        self._echo(text, err=True)

    def network(self, layer: Layer, name: str, chain_id: int, show_layer: bool = True) -> None:
        prefix = f"{layer.value} " if show_layer else ""
        self._echo(f"Connected to {prefix}network: {name} (chainId: {chain_id})")

    def balance(self, snapshot: BalanceSnapshot) -> None:
        self._echo(
            f"{snapshot.label} Balance ({snapshot.address}): "
            f"{self.amount(snapshot.amount, snapshot.layer)}"
        )

    def envelope(self, envelope: CostEnvelope) -> None:
        layer = envelope.layer
        self._echo(f"\nCurrent {layer.value} gas price: {format_gwei(envelope.gas_price)} gwei")
        self._echo(f"Estimated {layer.value} gas: {envelope.gas_limit}")
        if envelope.kind.is_cross_layer:
            self._echo(f"Submission fee: {self.amount(envelope.submission_fee, layer)}")
        self._echo(f"Estimated fees: {self.amount(envelope.fee_estimate, layer)}")
        self._echo(f"Total required: {self.amount(envelope.total, layer)}")

    def confirm(self, summary: str, delay: float) -> None:
        self._echo(f"\nReady to {summary}")
        self._echo(f"Press Ctrl+C to cancel or wait {delay:g} seconds to continue...")

    def sent(self, tx_hash: str) -> None:
        self._echo(f"\nTransaction sent! Hash: {tx_hash}")
        self._echo("Waiting for confirmation...")

    def mined(self, block_number: int) -> None:
        self._echo(f"Transaction confirmed in block {block_number}")

    def cross_layer(self, status: CrossLayerStatus, child_tx_hash: Optional[str]) -> None:
        if status is CrossLayerStatus.COMPLETED:
            self._echo("L1-to-L2 message successfully executed on L2")
            if child_tx_hash:
                self._echo(f"L2 transaction hash: {child_tx_hash}")
        elif status is CrossLayerStatus.TIMED_OUT:
            self.error("Timed out waiting for the L1-to-L2 message to execute on L2")
        else:
            self.error(f"L1-to-L2 message execution failed. Status: {status.value}")

    def insufficient_funds(self, error: InsufficientFundsError) -> None:
        layer = error.layer or Layer.CHILD
        self.error("Error: Insufficient funds for amount + fees")
        self.error(f"Available: {self.amount(error.available, layer)}")
        self.error(f"Required: {self.amount(error.required, layer)}")

    def outcome(self, outcome: TransactionOutcome) -> None:
        self._echo(f"\nTransaction: {outcome.tx_hash}")
        if outcome.confirmed_block is not None:
            self._echo(f"Block: {outcome.confirmed_block}")
        if outcome.cross_layer_status is not CrossLayerStatus.NONE:
            self._echo(f"Cross-layer status: {outcome.cross_layer_status.value}")
