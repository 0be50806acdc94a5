"""
Tests for the Counter contract adapter.
"""
import pytest
from eth_abi import encode
from web3 import Web3
from web3.exceptions import ContractLogicError

from arbstylus.chain import ChainClient
from arbstylus.contracts import (
    KNOWN_FUNCTIONS,
    CounterContract,
    coerce_argument,
    is_read_only,
    lookup_function,
)
from arbstylus.exceptions import ContractCallError
from arbstylus.models import Mutability
from conftest import CONTRACT_ADDRESS, TARGET_ADDRESS, make_w3, uint_result


def selector(signature):
    return bytes(Web3.keccak(text=signature)[:4])


@pytest.fixture
def w3():
    return make_w3()


@pytest.fixture
def contract(w3):
    return CounterContract(CONTRACT_ADDRESS, ChainClient(w3))


def test_allowlist_mutability():
    assert KNOWN_FUNCTIONS["number"].mutability is Mutability.READ_ONLY
    assert KNOWN_FUNCTIONS["setNumber"].mutability is Mutability.MUTATING
    assert KNOWN_FUNCTIONS["addFromMsgValue"].mutability is Mutability.PAYABLE
    assert KNOWN_FUNCTIONS["mulNumber"].signature == "mulNumber(uint256)"
    assert set(KNOWN_FUNCTIONS) == {
        "number", "setNumber", "mulNumber", "addNumber", "increment", "addFromMsgValue"
    }


def test_read_only_lookup():
    assert is_read_only("number")
    assert not is_read_only("increment")
    assert not is_read_only("doesNotExist")
    assert lookup_function("doesNotExist") is None


def test_encode_call(contract):
    assert contract.encode_call("increment", []) == selector("increment()")
    assert contract.encode_call("setNumber", ["42"]) == selector("setNumber(uint256)") + encode(["uint256"], [42])
    assert contract.encode_call("addNumber", ["0x10"])[4:] == encode(["uint256"], [16])


def test_encode_call_rejects_unknown_function(contract):
    with pytest.raises(ContractCallError, match="not found in contract ABI"):
        contract.encode_call("selfDestruct", [])


def test_encode_call_rejects_argument_count(contract):
    with pytest.raises(ContractCallError, match="expects 1 argument"):
        contract.encode_call("setNumber", [])


def test_encode_call_rejects_bad_values(contract):
    with pytest.raises(ContractCallError, match="not a valid uint256"):
        contract.encode_call("setNumber", ["ten"])
    with pytest.raises(ContractCallError, match="Could not encode"):
        contract.encode_call("setNumber", ["-1"])


@pytest.mark.parametrize("abi_type,raw,expected", [
    ("uint256", "7", 7),
    ("int256", "-0x10", -16),
    ("bool", "true", True),
    ("bool", "0", False),
    ("address", TARGET_ADDRESS.lower(), Web3.to_checksum_address(TARGET_ADDRESS)),
    ("bytes32", "0x" + "00" * 32, b"\x00" * 32),
    ("string", "hello", "hello"),
])
def test_coerce_argument(abi_type, raw, expected):
    assert coerce_argument(abi_type, raw) == expected


def test_coerce_argument_rejects():
    with pytest.raises(ContractCallError):
        coerce_argument("bool", "maybe")
    with pytest.raises(ContractCallError):
        coerce_argument("address", "0x1234")
    with pytest.raises(ContractCallError, match="Unsupported"):
        coerce_argument("uint256[]", "1")


def test_call_view(contract, w3):
    w3.eth.call.return_value = uint_result(42)

    assert contract.number() == 42
    tx = w3.eth.call.call_args[0][0]
    assert tx["to"] == Web3.to_checksum_address(CONTRACT_ADDRESS)
    assert tx["data"] == Web3.to_hex(selector("number()"))


def test_call_view_revert(contract, w3):
    w3.eth.call.side_effect = ContractLogicError("execution reverted")

    with pytest.raises(ContractCallError, match="number"):
        contract.call_view("number")


def test_call_view_bad_output(contract, w3):
    w3.eth.call.return_value = b""

    with pytest.raises(ContractCallError):
        contract.number()
