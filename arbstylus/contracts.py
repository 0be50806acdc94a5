"""
Counter contract adapter: known-function allowlist, calldata encoding and
view calls.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import Web3Exception

from .addresses import is_address, to_checksum
from .chain import ChainClient
from .exceptions import ContractCallError
from .models import KnownFunction, Mutability

# ABI for the Stylus Counter contract
COUNTER_ABI = [
    {
        "inputs": [],
        "name": "number",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "new_number", "type": "uint256"}],
        "name": "setNumber",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "new_number", "type": "uint256"}],
        "name": "mulNumber",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "new_number", "type": "uint256"}],
        "name": "addNumber",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "increment",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "addFromMsgValue",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function"
    }
]


def _signature(entry: Dict[str, Any]) -> str:
    types = ",".join(i["type"] for i in entry["inputs"])
    return f"{entry['name']}({types})"


KNOWN_FUNCTIONS: Dict[str, KnownFunction] = {
    entry["name"]: KnownFunction(
        name=entry["name"],
        signature=_signature(entry),
        mutability=Mutability.from_abi(entry["stateMutability"])
    )
    for entry in COUNTER_ABI
}


def lookup_function(name: str) -> Optional[KnownFunction]:
    """Allowlist entry for ``name``, or None for unknown functions"""
    return KNOWN_FUNCTIONS.get(name)


def is_read_only(name: str) -> bool:
    known = lookup_function(name)
    return known is not None and known.is_read_only


def available_functions() -> str:
    return ", ".join(f"{fn.signature}" for fn in KNOWN_FUNCTIONS.values())


def encode_function_call(name: str, types: Sequence[str], values: Sequence[Any]) -> bytes:
    """4-byte selector followed by the ABI-encoded arguments"""
    selector = Web3.keccak(text=f"{name}({','.join(types)})")[:4]
    return bytes(selector) + encode(list(types), list(values))


def coerce_argument(abi_type: str, raw: str) -> Any:
    """
    Convert a raw command-line string to the Python value eth_abi expects.

    Raises:
        ContractCallError: If the string does not fit the ABI type
    """
    if "[" in abi_type or abi_type.startswith("("):
        raise ContractCallError(f"Unsupported argument type: {abi_type}")
    try:
        if abi_type.startswith(("uint", "int")):
            text = raw.strip().lower()
            if text.startswith(("0x", "-0x")):
                return int(text, 16)
            return int(text, 10)
        if abi_type == "address":
            if not is_address(raw):
                raise ValueError("not an address")
            return to_checksum(raw)
        if abi_type == "bool":
            lowered = raw.strip().lower()
            if lowered in ("true", "1"):
                return True
            if lowered in ("false", "0"):
                return False
            raise ValueError("expected true/false")
        if abi_type.startswith("bytes"):
            if not raw.startswith("0x"):
                raise ValueError("expected 0x-prefixed hex")
            return bytes(HexBytes(raw))
        if abi_type == "string":
            return raw
    except ValueError as e:
        raise ContractCallError(f"Argument {raw!r} is not a valid {abi_type}: {e}") from e
    raise ContractCallError(f"Unsupported argument type: {abi_type}")


class CounterContract:
    """
    Encodes and reads calls against the Counter contract on one chain.

    Arguments arrive as raw strings; this class is where a wrong function
    name or argument count is rejected.
    """

    def __init__(self, address: str, chain: ChainClient, abi: Optional[List[Dict[str, Any]]] = None,
                 logger: Optional[logging.Logger] = None):
        self.address = to_checksum(address)
        self.chain = chain
        self.abi = abi or COUNTER_ABI
        self.logger = logger or logging.getLogger(__name__)

    def _entry(self, name: str) -> Dict[str, Any]:
        for entry in self.abi:
            if entry.get("type") == "function" and entry["name"] == name:
                return entry
        raise ContractCallError(
            f"Function '{name}' not found in contract ABI. Available functions: {available_functions()}"
        )

    def encode_call(self, name: str, args: Sequence[str]) -> bytes:
        """
        Build calldata for ``name(args...)``.

        Raises:
            ContractCallError: Unknown function, wrong argument count or types
        """
        entry = self._entry(name)
        types = [i["type"] for i in entry["inputs"]]
        if len(args) != len(types):
            raise ContractCallError(
                f"{_signature(entry)} expects {len(types)} argument(s), got {len(args)}"
            )
        values = [coerce_argument(t, a) for t, a in zip(types, args)]
        try:
            data = encode_function_call(name, types, values)
        except EncodingError as e:
            raise ContractCallError(f"Could not encode {_signature(entry)}: {e}") from e
        self.logger.debug(f"Encoded {_signature(entry)} -> {Web3.to_hex(data)}")
        return data

    def call_view(self, name: str, args: Sequence[str] = ()) -> Any:
        """
        Execute a read-only call and decode the result.

        Returns:
            The single return value, or a tuple when there are several

        Raises:
            ContractCallError: If encoding fails or the call reverts
        """
        entry = self._entry(name)
        data = self.encode_call(name, args)
        output_types = [o["type"] for o in entry["outputs"]]
        try:
            raw = self.chain.call({"to": self.address, "data": Web3.to_hex(data)})
            decoded = decode(output_types, raw)
        except (Web3Exception, DecodingError) as e:
            raise ContractCallError(f"Call to {name}() failed: {e}") from e
        if len(decoded) == 1:
            return decoded[0]
        return decoded

    def number(self) -> int:
        return self.call_view("number")
