"""
ChainClient - thin wrapper over a Web3 connection to one layer.
"""
import logging
from typing import Any, Dict, Optional, Protocol

from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound
from web3.types import TxReceipt

from .models import Layer


class Signer(Protocol):
    """Protocol for transaction signers (eth_account's LocalAccount fits)"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


class ChainClient:
    """
    RPC access to a single chain.

    Methods raise whatever web3.py raises; callers decide which error kind a
    failure maps to.
    """

    def __init__(self, w3: Web3, layer: Layer = Layer.CHILD, logger: Optional[logging.Logger] = None):
        self.w3 = w3
        self.layer = layer
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_url(cls, rpc_url: str, layer: Layer = Layer.CHILD, timeout: int = 30) -> "ChainClient":
        """
        Connect to an HTTP RPC endpoint.

        Args:
            rpc_url: JSON-RPC endpoint (e.g., "http://127.0.0.1:8547")
            layer: Which layer the endpoint serves
            timeout: Timeout for individual HTTP requests in seconds
        """
        w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        return cls(w3, layer=layer)

    def get_balance(self, address: str) -> int:
        return int(self.w3.eth.get_balance(address))

    def chain_id(self) -> int:
        return int(self.w3.eth.chain_id)

    def block_number(self) -> int:
        return int(self.w3.eth.block_number)

    def gas_price(self) -> int:
        return int(self.w3.eth.gas_price)

    def base_fee(self) -> Optional[int]:
        """Base fee of the latest block, or None before EIP-1559"""
        block = self.w3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        return int(base_fee) if base_fee is not None else None

    def estimate_gas(self, tx: Dict[str, Any]) -> int:
        gas = int(self.w3.eth.estimate_gas(tx))
        self.logger.debug(f"[{self.layer.value}] estimated gas {gas} for tx to {tx.get('to')}")
        return gas

    def call(self, tx: Dict[str, Any]) -> bytes:
        return bytes(self.w3.eth.call(tx))

    def transaction_count(self, address: str) -> int:
        return int(self.w3.eth.get_transaction_count(address))

    def send_raw_transaction(self, raw_tx: bytes) -> str:
        tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        tx_hash_hex = Web3.to_hex(HexBytes(tx_hash))
        self.logger.info(f"[{self.layer.value}] transaction sent: {tx_hash_hex}")
        return tx_hash_hex

    def wait_for_receipt(self, tx_hash: str, timeout: float, poll_latency: float = 0.1) -> TxReceipt:
        """
        Block until the transaction is mined.

        Raises:
            web3.exceptions.TimeExhausted: If not mined within ``timeout``
        """
        return self.w3.eth.wait_for_transaction_receipt(
            tx_hash,
            timeout=timeout,
            poll_latency=poll_latency
        )

    def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        """Receipt if the transaction is mined, otherwise None"""
        try:
            return self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
