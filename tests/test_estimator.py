"""
Tests for cost envelope estimation.
"""
import pytest
from web3 import Web3

from arbstylus.bridge import NODE_INTERFACE_ADDRESS, RetryableBridge
from arbstylus.chain import ChainClient
from arbstylus.estimator import CostEstimator
from arbstylus.exceptions import ConfigError, EstimationError
from arbstylus.models import FlowKind, FlowRequest, Layer
from conftest import (
    CONTRACT_ADDRESS,
    GAS_LIMIT,
    GAS_PRICE,
    PARENT_CHAIN_ID,
    TARGET_ADDRESS,
    TEST_ADDRESS,
    make_w3,
    uint_result,
)

AMOUNT = 10 ** 17
CHILD_GAS = 50000
CHILD_GAS_PRICE = 10 ** 8
PARENT_GAS = 100000
PARENT_GAS_PRICE = 2 * 10 ** 9

# Padded values the bridge derives from the stubs above
SUBMISSION_FEE = 1000 * 4
MAX_FEE_PER_GAS = CHILD_GAS_PRICE * 6
PARENT_GAS_WITH_BUFFER = PARENT_GAS * 120 // 100
PARENT_FEE = PARENT_GAS_WITH_BUFFER * PARENT_GAS_PRICE


def selector(signature):
    return Web3.to_hex(Web3.keccak(text=signature)[:4])


@pytest.fixture
def child_w3():
    return make_w3(gas=CHILD_GAS, gas_price=CHILD_GAS_PRICE)


@pytest.fixture
def parent_w3():
    w3 = make_w3(chain_id=PARENT_CHAIN_ID, gas=PARENT_GAS, gas_price=PARENT_GAS_PRICE)
    w3.eth.call.return_value = uint_result(1000)
    return w3


@pytest.fixture
def estimator(child_w3, parent_w3, network):
    child = ChainClient(child_w3, Layer.CHILD)
    parent = ChainClient(parent_w3, Layer.PARENT)
    bridge = RetryableBridge(parent, child, network)
    return CostEstimator(child, parent=parent, bridge=bridge)


def request(kind, destination=TARGET_ADDRESS, amount=AMOUNT, data=b""):
    return FlowRequest(kind=kind, source=TEST_ADDRESS, destination=destination, amount=amount, data=data)


def test_simple_transfer():
    w3 = make_w3()
    envelope = CostEstimator(ChainClient(w3)).estimate(
        FlowKind.SIMPLE_TRANSFER, AMOUNT, request(FlowKind.SIMPLE_TRANSFER)
    )

    assert envelope.layer is Layer.CHILD
    assert envelope.fee_estimate == GAS_LIMIT * GAS_PRICE
    assert envelope.total == AMOUNT + GAS_LIMIT * GAS_PRICE
    assert envelope.submission_fee == 0
    assert envelope.prepared_tx == {"to": TARGET_ADDRESS, "value": AMOUNT}

    estimated = w3.eth.estimate_gas.call_args[0][0]
    assert estimated["from"] == TEST_ADDRESS


def test_simple_transfer_with_calldata():
    w3 = make_w3()
    data = bytes.fromhex("d09de08a")
    envelope = CostEstimator(ChainClient(w3)).estimate(
        FlowKind.SIMPLE_TRANSFER, 0, request(FlowKind.SIMPLE_TRANSFER, CONTRACT_ADDRESS, 0, data)
    )

    assert envelope.prepared_tx["data"] == "0xd09de08a"
    assert envelope.total == GAS_LIMIT * GAS_PRICE


def test_missing_gas_price():
    w3 = make_w3(gas_price=0)
    with pytest.raises(EstimationError, match="gas price"):
        CostEstimator(ChainClient(w3)).estimate(FlowKind.SIMPLE_TRANSFER, AMOUNT, request(FlowKind.SIMPLE_TRANSFER))


def test_rpc_failures_become_estimation_errors():
    w3 = make_w3()
    w3.eth.estimate_gas.side_effect = ValueError("execution reverted")
    with pytest.raises(EstimationError, match="execution reverted"):
        CostEstimator(ChainClient(w3)).estimate(FlowKind.SIMPLE_TRANSFER, AMOUNT, request(FlowKind.SIMPLE_TRANSFER))


def test_deposit_to_own_address_uses_deposit_eth(estimator):
    envelope = estimator.estimate(
        FlowKind.CROSS_LAYER_DEPOSIT, AMOUNT, request(FlowKind.CROSS_LAYER_DEPOSIT, TEST_ADDRESS)
    )

    assert envelope.layer is Layer.PARENT
    assert envelope.prepared_tx["data"] == selector("depositEth()")
    assert envelope.prepared_tx["value"] == AMOUNT
    assert envelope.gas_limit == PARENT_GAS_WITH_BUFFER
    assert envelope.gas_price == PARENT_GAS_PRICE
    assert envelope.total == AMOUNT + PARENT_FEE


def test_deposit_to_other_address_uses_retryable(estimator, child_w3):
    envelope = estimator.estimate(
        FlowKind.CROSS_LAYER_DEPOSIT, AMOUNT, request(FlowKind.CROSS_LAYER_DEPOSIT)
    )

    deposit = CHILD_GAS * MAX_FEE_PER_GAS + SUBMISSION_FEE + AMOUNT
    assert envelope.prepared_tx["data"].startswith(
        selector("createRetryableTicket(address,uint256,uint256,address,address,uint256,uint256,bytes)")
    )
    assert envelope.prepared_tx["value"] == deposit
    assert envelope.submission_fee == SUBMISSION_FEE
    assert envelope.total == deposit + PARENT_FEE
    assert envelope.fee_estimate == PARENT_FEE + CHILD_GAS * MAX_FEE_PER_GAS

    node_interface_call = child_w3.eth.estimate_gas.call_args[0][0]
    assert node_interface_call["to"] == NODE_INTERFACE_ADDRESS


def test_cross_layer_call_carries_calldata(estimator):
    data = bytes.fromhex("d09de08a")
    envelope = estimator.estimate(
        FlowKind.CROSS_LAYER_CALL, 0, request(FlowKind.CROSS_LAYER_CALL, CONTRACT_ADDRESS, 0, data)
    )

    assert envelope.kind is FlowKind.CROSS_LAYER_CALL
    assert envelope.base_amount == 0
    assert envelope.prepared_tx["data"].endswith("d09de08a" + "00" * 28)
    assert envelope.total == CHILD_GAS * MAX_FEE_PER_GAS + SUBMISSION_FEE + PARENT_FEE


def test_cross_layer_needs_parent_chain():
    estimator = CostEstimator(ChainClient(make_w3()))
    with pytest.raises(ConfigError, match="L1_RPC_URL"):
        estimator.estimate(FlowKind.CROSS_LAYER_DEPOSIT, AMOUNT, request(FlowKind.CROSS_LAYER_DEPOSIT))


def test_missing_parent_base_fee(child_w3, network):
    parent_w3 = make_w3(chain_id=PARENT_CHAIN_ID, base_fee=None)
    child = ChainClient(child_w3)
    parent = ChainClient(parent_w3, Layer.PARENT)
    estimator = CostEstimator(child, parent, RetryableBridge(parent, child, network))

    with pytest.raises(EstimationError, match="base fee"):
        estimator.estimate(FlowKind.CROSS_LAYER_CALL, 0, request(FlowKind.CROSS_LAYER_CALL, CONTRACT_ADDRESS))
