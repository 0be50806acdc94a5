"""
CostEstimator - turns a flow request into a CostEnvelope.
"""
import logging
from typing import Any, Dict, Optional

from web3 import Web3

from .addresses import same_address, to_checksum
from .bridge import BridgeEstimate, RetryableBridge
from .chain import ChainClient
from .exceptions import ArbStylusError, ConfigError, EstimationError
from .models import CostEnvelope, FlowKind, FlowRequest, Layer

# Buffer added to the parent gas estimate of inbox transactions
PARENT_GAS_LIMIT_BUFFER_PERCENT = 20


class CostEstimator:
    """
    Asks the chain and bridge collaborators what a flow will cost.

    Single-layer flows: ``total = amount + gasLimit * gasPrice`` on the
    child chain. Cross-layer flows: ``total = deposit + parentGasLimit *
    parentGasPrice`` where ``deposit`` comes from the bridge estimate and is
    not recomputed here.
    """

    def __init__(
        self,
        child: ChainClient,
        parent: Optional[ChainClient] = None,
        bridge: Optional[RetryableBridge] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.child = child
        self.parent = parent
        self.bridge = bridge
        self.logger = logger or logging.getLogger(__name__)

    def estimate(self, kind: FlowKind, amount: int, request: FlowRequest) -> CostEnvelope:
        """
        Compute the cost envelope for one flow.

        Raises:
            EstimationError: If gas price, gas limit or fee data cannot be obtained
        """
        try:
            if kind is FlowKind.SIMPLE_TRANSFER:
                return self._single_layer(amount, request)
            return self._cross_layer(kind, amount, request)
        except ArbStylusError:
            raise
        except Exception as e:
            self.logger.error(f"Cost estimation failed: {e}")
            raise EstimationError(f"Could not estimate transaction cost: {e}") from e

    def _single_layer(self, amount: int, request: FlowRequest) -> CostEnvelope:
        tx: Dict[str, Any] = {
            "from": to_checksum(request.source),
            "to": to_checksum(request.destination),
            "value": amount,
        }
        if request.data:
            tx["data"] = Web3.to_hex(request.data)

        gas_price = self.child.gas_price()
        if not gas_price:
            raise EstimationError("Failed to get gas price")
        gas_limit = self.child.estimate_gas(tx)
        fee = gas_limit * gas_price

        prepared = dict(tx)
        prepared.pop("from")
        return CostEnvelope(
            kind=FlowKind.SIMPLE_TRANSFER,
            layer=Layer.CHILD,
            base_amount=amount,
            fee_estimate=fee,
            total=amount + fee,
            gas_limit=gas_limit,
            gas_price=gas_price,
            prepared_tx=prepared
        )

    def _bridge_estimate(self, kind: FlowKind, amount: int, request: FlowRequest) -> BridgeEstimate:
        if kind is FlowKind.CROSS_LAYER_DEPOSIT:
            if same_address(request.source, request.destination):
                return self.bridge.estimate_eth_deposit(amount)
            return self.bridge.estimate_retryable(
                sender=request.source,
                to=request.destination,
                call_value=amount,
                data=b"",
                excess_fee_refund_address=request.source,
                call_value_refund_address=request.destination
            )
        return self.bridge.estimate_retryable(
            sender=request.source,
            to=request.destination,
            call_value=amount,
            data=request.data,
            excess_fee_refund_address=request.source,
            call_value_refund_address=request.source
        )

    def _cross_layer(self, kind: FlowKind, amount: int, request: FlowRequest) -> CostEnvelope:
        if self.parent is None or self.bridge is None:
            raise ConfigError("Cross-layer flows need an L1 provider (set L1_RPC_URL)")

        estimate = self._bridge_estimate(kind, amount, request)
        prepared = {
            "to": estimate.inbox,
            "data": Web3.to_hex(estimate.data),
            "value": estimate.deposit,
        }

        gas_price = self.parent.gas_price()
        if not gas_price:
            raise EstimationError("Failed to get L1 gas price")
        parent_gas = self.parent.estimate_gas({"from": to_checksum(request.source), **prepared})
        parent_gas = parent_gas * (100 + PARENT_GAS_LIMIT_BUFFER_PERCENT) // 100
        parent_fee = parent_gas * gas_price

        self.logger.debug(
            f"Parent gas limit with buffer: {parent_gas}, parent fee: {parent_fee}, "
            f"deposit: {estimate.deposit}"
        )
        return CostEnvelope(
            kind=kind,
            layer=Layer.PARENT,
            base_amount=amount,
            fee_estimate=parent_fee + estimate.execution_budget,
            submission_fee=estimate.submission_fee,
            total=estimate.deposit + parent_fee,
            gas_limit=parent_gas,
            gas_price=gas_price,
            prepared_tx=prepared
        )
