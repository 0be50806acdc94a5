"""
Pytest fixtures for the arbstylus tests.
"""
import time
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from eth_abi import encode
from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound
from web3.providers.rpc import HTTPProvider

from arbstylus.bridge import (
    INBOX_MESSAGE_DELIVERED_TOPIC,
    L1_MESSAGE_TYPE_ETH_DEPOSIT,
    L1_MESSAGE_TYPE_SUBMIT_RETRYABLE,
    MESSAGE_DELIVERED_TOPIC,
)
from arbstylus.chain import ChainClient
from arbstylus.config import NetworkConfig, Settings
from arbstylus.console import Reporter
from arbstylus.models import Layer
from arbstylus.router import CommandRouter

# Constants for testing
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_ADDRESS = Account.from_key(TEST_PRIV_KEY).address
TARGET_ADDRESS = "0x2222222222222222222222222222222222222222"
CONTRACT_ADDRESS = "0x3333333333333333333333333333333333333333"
OTHER_PRIV_KEY = "0x" + "11" * 32

PARENT_CHAIN_ID = 1337
CHILD_CHAIN_ID = 412346
BLOCK_NUMBER = 1234
GAS_LIMIT = 100000
GAS_PRICE = 10 ** 10  # 10 gwei, 0.001 ETH for GAS_LIMIT
TX_HASH = "0x" + "ab" * 32
ONE_ETH = 10 ** 18


@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    """No test waits on the wall clock"""
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """Stub every Web3 HTTP call so no network traffic is triggered"""
    def _dummy(self, method, params=None, _=None):
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


def make_w3(
    balances: Optional[Dict[str, int]] = None,
    chain_id: int = CHILD_CHAIN_ID,
    gas_price: int = GAS_PRICE,
    gas: int = GAS_LIMIT,
    base_fee: Optional[int] = 10 ** 9,
    receipt: Optional[dict] = None
) -> MagicMock:
    """
    A Web3 stand-in answering the RPC calls ChainClient makes.

    Balances are looked up case-insensitively; unknown addresses hold zero.
    """
    lowered = {k.lower(): v for k, v in (balances or {}).items()}

    w3 = MagicMock(spec=Web3)
    eth = MagicMock()
    eth.chain_id = chain_id
    eth.block_number = BLOCK_NUMBER
    eth.gas_price = gas_price
    eth.get_balance = MagicMock(side_effect=lambda address: lowered.get(address.lower(), 0))
    eth.estimate_gas = MagicMock(return_value=gas)
    eth.get_transaction_count = MagicMock(return_value=7)
    eth.get_block = MagicMock(return_value={"number": BLOCK_NUMBER, "baseFeePerGas": base_fee})
    eth.send_raw_transaction = MagicMock(return_value=HexBytes(TX_HASH))
    eth.wait_for_transaction_receipt = MagicMock(
        return_value=receipt or {"status": 1, "blockNumber": 100, "logs": []}
    )
    eth.get_transaction_receipt = MagicMock(side_effect=TransactionNotFound("not found"))
    w3.eth = eth
    return w3


def uint_result(value: int) -> bytes:
    return encode(["uint256"], [value])


def inbox_logs(message_number: int, kind: int, sender: str, payload: bytes, base_fee: int = 10 ** 9) -> List[dict]:
    """Bridge ``MessageDelivered`` and inbox ``InboxMessageDelivered`` logs for one message"""
    network = NetworkConfig.get_network("arb-local")
    number_topic = HexBytes(message_number.to_bytes(32, "big"))
    return [
        {
            "address": network.eth_bridge.bridge,
            "topics": [HexBytes(MESSAGE_DELIVERED_TOPIC), number_topic, HexBytes(b"\x00" * 32)],
            "data": HexBytes(encode(
                ["address", "uint8", "address", "bytes32", "uint256", "uint64"],
                [network.eth_bridge.inbox.lower(), kind, sender, b"\x00" * 32, base_fee, 1700000000]
            )),
        },
        {
            "address": network.eth_bridge.inbox,
            "topics": [HexBytes(INBOX_MESSAGE_DELIVERED_TOPIC), number_topic],
            "data": HexBytes(encode(["bytes"], [bytes(payload)])),
        },
    ]


def deposit_logs(
    message_number: int,
    sender: str,
    to: str,
    value: int,
    base_fee: int = 10 ** 9
) -> List[dict]:
    """Logs emitted by a ``depositEth`` call"""
    payload = HexBytes(to)[:20] + value.to_bytes(32, "big")
    return inbox_logs(message_number, L1_MESSAGE_TYPE_ETH_DEPOSIT, sender, payload, base_fee)


def retryable_logs(
    message_number: int,
    sender: str,
    destination: str,
    call_value: int = 0,
    data: bytes = b"",
    call_value_refund: Optional[str] = None
) -> List[dict]:
    """Logs emitted by a ``createRetryableTicket`` call"""
    fields = [
        int(destination, 16),
        call_value,
        6 * GAS_PRICE * GAS_LIMIT + call_value,
        4000,
        int(sender, 16),
        int(call_value_refund or sender, 16),
        GAS_LIMIT,
        6 * GAS_PRICE,
        len(data),
    ]
    payload = encode(["uint256"] * 9, fields) + data
    return inbox_logs(message_number, L1_MESSAGE_TYPE_SUBMIT_RETRYABLE, sender, payload)


class EchoRecorder:
    """Collects Reporter output as (text, err) pairs"""

    def __init__(self):
        self.lines: List[Tuple[str, bool]] = []

    def __call__(self, message: str = "", err: bool = False) -> None:
        self.lines.append((message, err))

    @property
    def stdout(self) -> str:
        return "\n".join(text for text, err in self.lines if not err)

    @property
    def stderr(self) -> str:
        return "\n".join(text for text, err in self.lines if err)


@pytest.fixture
def echo():
    return EchoRecorder()


@pytest.fixture
def reporter(echo):
    return Reporter(echo=echo)


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIV_KEY)


@pytest.fixture
def network():
    return NetworkConfig.get_network("arb-local")


@pytest.fixture
def settings():
    return Settings(
        source_address=TEST_ADDRESS,
        target_address=TARGET_ADDRESS,
        source_private_key=TEST_PRIV_KEY,
        l1_rpc_url="http://l1.example",
        contract_address=CONTRACT_ADDRESS,
        poll_interval=0.01,
    )


@pytest.fixture
def child_w3():
    return make_w3(balances={TEST_ADDRESS: ONE_ETH, TARGET_ADDRESS: 2 * ONE_ETH})


@pytest.fixture
def parent_w3():
    return make_w3(balances={TEST_ADDRESS: 5 * ONE_ETH}, chain_id=PARENT_CHAIN_ID, gas_price=2 * 10 ** 9)


@pytest.fixture
def chain_factory(child_w3, parent_w3):
    """Factory handing out ChainClients over the mocked Web3 instances"""
    w3s = {Layer.CHILD: child_w3, Layer.PARENT: parent_w3}
    return MagicMock(side_effect=lambda url, layer: ChainClient(w3s[layer], layer=layer))


@pytest.fixture
def router(settings, network, chain_factory):
    return CommandRouter(settings, network=network, chain_factory=chain_factory, sleep=lambda _s: None)
