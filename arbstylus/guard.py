"""
Funds and identity checks run before anything is signed.
"""
import logging
from typing import Optional

from .addresses import same_address
from .amounts import format_amount
from .chain import ChainClient
from .exceptions import ConfigError, InsufficientFundsError, NetworkError
from .models import CostEnvelope

logger = logging.getLogger(__name__)


def ensure_signer_matches(signer_address: str, source_address: str) -> None:
    """
    Raises:
        ConfigError: If the key does not belong to the configured source address
    """
    if not same_address(signer_address, source_address):
        raise ConfigError(
            f"Wallet address does not match SOURCE_ADDRESS "
            f"(wallet: {signer_address}, SOURCE_ADDRESS: {source_address})"
        )


class BalanceGuard:
    """Rejects a flow when the source balance cannot cover its cost envelope"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def ensure_sufficient(self, chain: ChainClient, address: str, envelope: CostEnvelope) -> None:
        """
        Check that ``address`` holds at least ``envelope.total`` on ``chain``.

        Raises:
            InsufficientFundsError: If the balance is lower than required
            NetworkError: If the balance cannot be read
        """
        try:
            balance = chain.get_balance(address)
        except Exception as e:
            raise NetworkError(f"Could not read balance of {address}: {e}") from e

        self.logger.debug(f"Balance {balance} vs required {envelope.total} for {address}")
        if balance < envelope.total:
            raise InsufficientFundsError(
                f"Insufficient funds on {envelope.layer.value} for {envelope.kind.value}: "
                f"available {format_amount(balance)}, required {format_amount(envelope.total)}",
                available=balance,
                required=envelope.total,
                layer=envelope.layer
            )
