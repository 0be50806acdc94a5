"""
Conversion between decimal ether amounts typed on the command line and wei.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional

from web3 import Web3

from .exceptions import ValidationError

WEI_PER_ETHER = 10 ** 18
MAX_UINT256 = 2 ** 256 - 1


def _to_decimal(text: str) -> Optional[Decimal]:
    try:
        value = Decimal(text.strip())
    except (InvalidOperation, AttributeError):
        return None
    if not value.is_finite():
        return None
    return value


def looks_numeric(token: str) -> bool:
    """True if ``token`` parses as a finite decimal number"""
    return _to_decimal(token) is not None


def parse_amount(text: str) -> int:
    """
    Parse a decimal ether amount into wei.

    Args:
        text: Amount such as ``"0.5"`` or ``"12"``

    Returns:
        The amount in wei

    Raises:
        ValidationError: If the amount is not a finite non-negative number,
            has more precision than one wei, or does not fit in uint256
    """
    value = _to_decimal(text)
    if value is None:
        raise ValidationError(f"Invalid amount: {text!r} is not a number")
    if value < 0:
        raise ValidationError(f"Invalid amount: {text!r} is negative")

    wei = value * WEI_PER_ETHER
    if wei != wei.to_integral_value():
        raise ValidationError(f"Invalid amount: {text!r} has more than 18 decimal places")
    if wei > MAX_UINT256:
        raise ValidationError(f"Invalid amount: {text!r} is too large")
    return int(wei)


def format_amount(wei: int) -> str:
    """Render wei as decimal ether, always with a fractional part (``1.0``)"""
    ether = Web3.from_wei(wei, "ether")
    text = format(Decimal(ether).normalize(), "f")
    if "." not in text:
        text += ".0"
    return text


def format_gwei(wei: int) -> str:
    return format(Decimal(Web3.from_wei(wei, "gwei")).normalize(), "f")
