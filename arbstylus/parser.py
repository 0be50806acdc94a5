"""
Parsing of free-form command arguments into call descriptors and amounts.
"""
import logging
import re
from typing import Optional, Sequence, Tuple

from .addresses import is_address
from .amounts import looks_numeric, parse_amount
from .exceptions import ValidationError
from .models import FunctionCallDescriptor

logger = logging.getLogger(__name__)

_ARGS_RE = re.compile(r"\(([^)]*)\)")
_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DEFAULT_AMOUNT = "0.01"


def parse_function_call(token: str, value_token: Optional[str] = None) -> FunctionCallDescriptor:
    """
    Parse ``name(arg0,arg1,...)`` into a FunctionCallDescriptor.

    Only the first parenthesis group carries arguments; a trailing return
    type such as ``number()(uint256)`` is ignored. Arguments are passed
    through as raw strings, unchecked against any ABI.

    Args:
        token: Function call token
        value_token: Optional second token; used as the value to send when
            it is numeric, otherwise the value is zero

    Raises:
        ValidationError: If the name is empty or not an identifier, or the
            argument list is not closed
    """
    token = token.strip()
    if "(" in token:
        name = token[:token.index("(")].strip()
        match = _ARGS_RE.search(token)
        if match is None:
            raise ValidationError(f"Malformed function call: {token!r} (missing ')')")
        args = [arg.strip() for arg in match.group(1).split(",")]
        args = [arg for arg in args if arg]
    else:
        name = token
        args = []

    if not _NAME_RE.match(name):
        raise ValidationError(f"Malformed function call: {token!r} (invalid function name)")

    value = 0
    if value_token is not None and looks_numeric(value_token):
        value = parse_amount(value_token)

    return FunctionCallDescriptor(name=name, args=args, value_amount=value)


def parse_call_args(args: Sequence[str]) -> FunctionCallDescriptor:
    """Parse ``[call_token, value?]`` command arguments"""
    if not args:
        raise ValidationError("You must specify a function to call, e.g. \"increment()\"")
    return parse_function_call(args[0], args[1] if len(args) > 1 else None)


def split_amount_and_address(
    args: Sequence[str],
    default_amount: str = DEFAULT_AMOUNT
) -> Tuple[int, Optional[str]]:
    """
    Disambiguate tokens by shape: address-shaped tokens select the target,
    numeric tokens the amount. Order does not matter and the last of each
    kind wins.

    Returns:
        (amount in wei, target override or None)

    Raises:
        ValidationError: If a token is neither an address nor a number, or
            the amount is negative
    """
    amount = default_amount
    target = None
    for arg in args:
        if is_address(arg):
            target = arg
        elif looks_numeric(arg):
            amount = arg
        elif arg.strip().lower().startswith("0x"):
            raise ValidationError(f"Invalid address: {arg!r} (expected 0x followed by 40 hex characters)")
        else:
            raise ValidationError(f"Invalid argument: {arg!r} is neither an amount nor an address")
    logger.debug(f"Amount {amount}, target override {target}")
    return parse_amount(amount), target
