"""
RetryableBridge - parent-to-child messaging through the rollup inbox.

Builds inbox transactions (plain ETH deposits and retryable tickets),
estimates what they cost, finds the messages a mined parent transaction
created and polls the child chain until each message is executed.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import rlp
from eth_abi import decode
from hexbytes import HexBytes
from pydantic import BaseModel, ConfigDict
from web3 import Web3

from .addresses import same_address, to_checksum
from .chain import ChainClient
from .config import NetworkDescriptor
from .contracts import encode_function_call
from .exceptions import EstimationError
from .models import CrossLayerStatus

# Arbitrum precompiles on the child chain
NODE_INTERFACE_ADDRESS = "0x00000000000000000000000000000000000000C8"
ARB_RETRYABLE_TX_ADDRESS = "0x000000000000000000000000000000000000006E"

# Inbox message kinds
L1_MESSAGE_TYPE_SUBMIT_RETRYABLE = 9
L1_MESSAGE_TYPE_ETH_DEPOSIT = 12

# Padding applied to bridge estimates; unused funds are refunded on the child chain
SUBMISSION_FEE_PERCENT_INCREASE = 300
GAS_PRICE_PERCENT_INCREASE = 500
ESTIMATE_SENDER_DEPOSIT = Web3.to_wei(1, "ether")

MESSAGE_DELIVERED_TOPIC = Web3.keccak(
    text="MessageDelivered(uint256,bytes32,address,uint8,address,bytes32,uint256,uint64)"
)
INBOX_MESSAGE_DELIVERED_TOPIC = Web3.keccak(text="InboxMessageDelivered(uint256,bytes)")
REDEEM_SCHEDULED_TOPIC = Web3.keccak(
    text="RedeemScheduled(bytes32,bytes32,uint64,uint64,address,uint256,uint256)"
)

DEPOSIT_TX_TYPE = b"\x64"
SUBMIT_RETRYABLE_TX_TYPE = b"\x69"


class BridgeEstimate(BaseModel):
    """
    An estimated inbox transaction.

    ``deposit`` is the value the parent transaction must carry; it is the
    authoritative figure for what the message costs on the child chain.
    """
    inbox: str
    data: bytes
    deposit: int
    call_value: int
    gas_limit: int = 0
    max_fee_per_gas: int = 0
    submission_fee: int = 0

    @property
    def execution_budget(self) -> int:
        return self.gas_limit * self.max_fee_per_gas


class CrossLayerMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    message_number: int
    kind: int
    sender: str
    child_tx_id: str

    @property
    def is_retryable(self) -> bool:
        return self.kind == L1_MESSAGE_TYPE_SUBMIT_RETRYABLE


def _rlp_int(value: int) -> bytes:
    """Minimal big-endian encoding; zero is the empty string"""
    if value == 0:
        return b""
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def _address_bytes(address: str) -> bytes:
    return bytes(HexBytes(to_checksum(address)))


def _topic_int(topic: Any) -> int:
    return int.from_bytes(bytes(HexBytes(topic)), "big")


def _log_matches(log: Dict[str, Any], address: str, topic: bytes) -> bool:
    topics = log.get("topics") or []
    if not topics or bytes(HexBytes(topics[0])) != bytes(topic):
        return False
    return same_address(log["address"], address)


def calculate_deposit_tx_id(chain_id: int, message_number: int, sender: str, to: str, value: int) -> str:
    """Hash of the child-chain transaction an ETH deposit message produces"""
    fields = [
        _rlp_int(chain_id),
        message_number.to_bytes(32, "big"),
        _address_bytes(sender),
        _address_bytes(to),
        _rlp_int(value),
    ]
    return Web3.to_hex(Web3.keccak(DEPOSIT_TX_TYPE + rlp.encode(fields)))


def calculate_retryable_id(
    chain_id: int,
    message_number: int,
    sender: str,
    parent_base_fee: int,
    destination: str,
    call_value: int,
    deposit: int,
    max_submission_fee: int,
    excess_fee_refund_address: str,
    call_value_refund_address: str,
    gas_limit: int,
    max_fee_per_gas: int,
    data: bytes
) -> str:
    """Hash of the child-chain ticket-creation transaction for a retryable"""
    dest = b"" if int(destination, 16) == 0 else _address_bytes(destination)
    fields = [
        _rlp_int(chain_id),
        message_number.to_bytes(32, "big"),
        _address_bytes(sender),
        _rlp_int(parent_base_fee),
        _rlp_int(deposit),
        _rlp_int(max_fee_per_gas),
        _rlp_int(gas_limit),
        dest,
        _rlp_int(call_value),
        _address_bytes(call_value_refund_address),
        _rlp_int(max_submission_fee),
        _address_bytes(excess_fee_refund_address),
        bytes(data),
    ]
    return Web3.to_hex(Web3.keccak(SUBMIT_RETRYABLE_TX_TYPE + rlp.encode(fields)))


class RetryableBridge:
    """
    Talks to the inbox on the parent chain and the retryable precompiles on
    the child chain.

    Args:
        parent: Parent (L1) chain client
        child: Child (L2) chain client
        network: Descriptor with the bridge contract addresses
        poll_interval: Seconds between child-chain status polls
        sleep: Sleep function, injectable for tests
    """

    def __init__(
        self,
        parent: ChainClient,
        child: ChainClient,
        network: NetworkDescriptor,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        self.parent = parent
        self.child = child
        self.network = network
        self.inbox = to_checksum(network.eth_bridge.inbox)
        self.bridge = to_checksum(network.eth_bridge.bridge)
        self.poll_interval = poll_interval
        self._sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    # ---------------------------------------------------------------- estimation

    def estimate_eth_deposit(self, amount: int) -> BridgeEstimate:
        """A ``depositEth()`` call crediting the sender's own child address"""
        return BridgeEstimate(
            inbox=self.inbox,
            data=encode_function_call("depositEth", [], []),
            deposit=amount,
            call_value=amount
        )

    def submission_fee(self, data_length: int, parent_base_fee: int) -> int:
        raw = self.parent.call({
            "to": self.inbox,
            "data": Web3.to_hex(encode_function_call(
                "calculateRetryableSubmissionFee",
                ["uint256", "uint256"],
                [data_length, parent_base_fee]
            ))
        })
        (fee,) = decode(["uint256"], raw)
        return fee

    def estimate_retryable(
        self,
        sender: str,
        to: str,
        call_value: int,
        data: bytes,
        excess_fee_refund_address: str,
        call_value_refund_address: str
    ) -> BridgeEstimate:
        """
        Estimate a ``createRetryableTicket`` call.

        Raises:
            EstimationError: If the parent chain reports no base fee
        """
        parent_base_fee = self.parent.base_fee()
        if parent_base_fee is None:
            raise EstimationError(
                "Could not retrieve L1 base fee (the network may not support EIP-1559)"
            )

        submission_fee = self.submission_fee(len(data), parent_base_fee)
        submission_fee = submission_fee * (100 + SUBMISSION_FEE_PERCENT_INCREASE) // 100

        gas_limit = self.child.estimate_gas({
            "from": to_checksum(sender),
            "to": NODE_INTERFACE_ADDRESS,
            "data": Web3.to_hex(encode_function_call(
                "estimateRetryableTicket",
                ["address", "uint256", "address", "uint256", "address", "address", "bytes"],
                [
                    to_checksum(sender),
                    call_value + ESTIMATE_SENDER_DEPOSIT,
                    to_checksum(to),
                    call_value,
                    to_checksum(excess_fee_refund_address),
                    to_checksum(call_value_refund_address),
                    bytes(data),
                ]
            ))
        })
        max_fee_per_gas = self.child.gas_price() * (100 + GAS_PRICE_PERCENT_INCREASE) // 100
        deposit = gas_limit * max_fee_per_gas + submission_fee + call_value

        self.logger.debug(
            f"Retryable estimate: gasLimit={gas_limit} maxFeePerGas={max_fee_per_gas} "
            f"submissionFee={submission_fee} deposit={deposit}"
        )

        calldata = encode_function_call(
            "createRetryableTicket",
            ["address", "uint256", "uint256", "address", "address", "uint256", "uint256", "bytes"],
            [
                to_checksum(to),
                call_value,
                submission_fee,
                to_checksum(excess_fee_refund_address),
                to_checksum(call_value_refund_address),
                gas_limit,
                max_fee_per_gas,
                bytes(data),
            ]
        )
        return BridgeEstimate(
            inbox=self.inbox,
            data=calldata,
            deposit=deposit,
            call_value=call_value,
            gas_limit=gas_limit,
            max_fee_per_gas=max_fee_per_gas,
            submission_fee=submission_fee
        )

    # ---------------------------------------------------------------- messages

    def get_messages(self, receipt: Dict[str, Any]) -> List[CrossLayerMessage]:
        """
        Messages delivered to the inbox by a mined parent transaction.

        Pairs each bridge ``MessageDelivered`` event with the inbox's
        ``InboxMessageDelivered`` event of the same message number.
        """
        delivered: Dict[int, Tuple[int, str, int]] = {}
        payloads: Dict[int, bytes] = {}

        for log in receipt.get("logs", []):
            if _log_matches(log, self.bridge, MESSAGE_DELIVERED_TOPIC):
                number = _topic_int(log["topics"][1])
                _inbox, kind, sender, _hash, base_fee, _ts = decode(
                    ["address", "uint8", "address", "bytes32", "uint256", "uint64"],
                    bytes(HexBytes(log["data"]))
                )
                delivered[number] = (kind, to_checksum(sender), base_fee)
            elif _log_matches(log, self.inbox, INBOX_MESSAGE_DELIVERED_TOPIC):
                number = _topic_int(log["topics"][1])
                (payload,) = decode(["bytes"], bytes(HexBytes(log["data"])))
                payloads[number] = payload

        chain_id = self.network.child.chain_id
        messages = []
        for number in sorted(delivered):
            if number not in payloads:
                continue
            kind, sender, base_fee = delivered[number]
            payload = payloads[number]
            if kind == L1_MESSAGE_TYPE_ETH_DEPOSIT:
                child_tx_id = self._eth_deposit_id(chain_id, number, sender, payload)
            elif kind == L1_MESSAGE_TYPE_SUBMIT_RETRYABLE:
                child_tx_id = self._retryable_id(chain_id, number, sender, base_fee, payload)
            else:
                self.logger.debug(f"Skipping inbox message {number} of kind {kind}")
                continue
            messages.append(CrossLayerMessage(
                message_number=number,
                kind=kind,
                sender=sender,
                child_tx_id=child_tx_id
            ))
        return messages

    @staticmethod
    def _eth_deposit_id(chain_id: int, number: int, sender: str, payload: bytes) -> str:
        to = Web3.to_hex(payload[:20])
        value = int.from_bytes(payload[20:52], "big")
        return calculate_deposit_tx_id(chain_id, number, sender, to, value)

    @staticmethod
    def _retryable_id(chain_id: int, number: int, sender: str, base_fee: int, payload: bytes) -> str:
        fields = decode(["uint256"] * 9, payload[:9 * 32])
        (dest, call_value, deposit, max_submission_fee, excess_refund,
         call_value_refund, gas_limit, max_fee_per_gas, data_length) = fields
        data = payload[9 * 32:9 * 32 + data_length]

        def as_address(value: int) -> str:
            return Web3.to_hex(value.to_bytes(20, "big"))

        return calculate_retryable_id(
            chain_id=chain_id,
            message_number=number,
            sender=sender,
            parent_base_fee=base_fee,
            destination=as_address(dest),
            call_value=call_value,
            deposit=deposit,
            max_submission_fee=max_submission_fee,
            excess_fee_refund_address=as_address(excess_refund),
            call_value_refund_address=as_address(call_value_refund),
            gas_limit=gas_limit,
            max_fee_per_gas=max_fee_per_gas,
            data=data
        )

    # ---------------------------------------------------------------- status

    def _redeem_tx_hash(self, creation_receipt: Dict[str, Any]) -> Optional[str]:
        for log in creation_receipt.get("logs", []):
            if _log_matches(log, ARB_RETRYABLE_TX_ADDRESS, REDEEM_SCHEDULED_TOPIC):
                return Web3.to_hex(HexBytes(log["topics"][2]))
        return None

    def message_status(self, message: CrossLayerMessage) -> Tuple[CrossLayerStatus, Optional[str]]:
        """
        Current status of a message on the child chain.

        Returns:
            (status, child transaction hash if one executed)
        """
        receipt = self.child.get_receipt(message.child_tx_id)
        if receipt is None:
            return CrossLayerStatus.PENDING, None
        if receipt["status"] != 1:
            return CrossLayerStatus.FAILED, message.child_tx_id
        if not message.is_retryable:
            return CrossLayerStatus.COMPLETED, message.child_tx_id

        redeem_hash = self._redeem_tx_hash(receipt)
        if redeem_hash is None:
            # Ticket created but not auto-redeemed; it needs a manual redeem
            return CrossLayerStatus.FAILED, None
        redeem = self.child.get_receipt(redeem_hash)
        if redeem is None:
            return CrossLayerStatus.PENDING, None
        if redeem["status"] == 1:
            return CrossLayerStatus.COMPLETED, redeem_hash
        return CrossLayerStatus.FAILED, redeem_hash

    def wait_for_status(self, message: CrossLayerMessage, timeout: float) -> Tuple[CrossLayerStatus, Optional[str]]:
        """
        Poll until the message is Completed or Failed.

        Returns:
            (status, child transaction hash); status is TIMED_OUT if no
            terminal state was reached within ``timeout`` seconds
        """
        deadline = time.monotonic() + timeout
        while True:
            status, child_hash = self.message_status(message)
            self.logger.debug(f"Message {message.message_number} status: {status.value}")
            if status.is_terminal:
                return status, child_hash
            if time.monotonic() >= deadline:
                self.logger.warning(
                    f"Message {message.message_number} not executed after {timeout}s"
                )
                return CrossLayerStatus.TIMED_OUT, None
            self._sleep(self.poll_interval)
