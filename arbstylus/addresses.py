"""
Address resolution from configuration and command-line overrides.
"""
import logging
import re
from typing import Optional, Sequence, Tuple

from web3 import Web3

from .config import Settings
from .exceptions import ConfigError
from .models import ResolvedAddresses

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")


def is_address(value: Optional[str]) -> bool:
    """
    True if ``value`` is exactly 40 hex characters after an optional ``0x``.

    Mixed-case checksums are not enforced; comparisons elsewhere are
    case-insensitive.
    """
    return bool(value) and bool(_ADDRESS_RE.match(value))


def to_checksum(value: str) -> str:
    if not value.lower().startswith("0x"):
        value = "0x" + value
    return Web3.to_checksum_address(value.lower())


def same_address(a: str, b: str) -> bool:
    return to_checksum(a) == to_checksum(b)


class AddressBook:
    """
    Resolves source, target and contract addresses.

    The source and contract addresses only ever come from configuration.
    A target may be overridden by an address-shaped command-line token.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _configured(self, value: Optional[str], variable: str, role: str, required: bool) -> Optional[str]:
        if not value:
            if required:
                raise ConfigError(
                    f"{variable} environment variable is required "
                    f"(set it in your .env file)"
                )
            return None
        if not is_address(value):
            raise ConfigError(f"Invalid {role} address: {value}")
        return to_checksum(value)

    def source(self) -> str:
        return self._configured(self.settings.source_address, "SOURCE_ADDRESS", "source", True)

    def contract(self) -> str:
        return self._configured(
            self.settings.contract_address, "COUNTER_CONTRACT_ADDRESS", "contract", True
        )

    def target(self, cli_args: Sequence[str] = (), default_to_source: bool = False) -> str:
        """
        Resolve the target address.

        The last address-shaped token in ``cli_args`` wins; otherwise the
        configured TARGET_ADDRESS, otherwise the source address if
        ``default_to_source`` is set.
        """
        overrides = [arg for arg in cli_args if is_address(arg)]
        if overrides:
            return to_checksum(overrides[-1])

        configured = self._configured(self.settings.target_address, "TARGET_ADDRESS", "target", False)
        if configured:
            return configured
        if default_to_source:
            return self.source()
        raise ConfigError(
            "Target address is required: set TARGET_ADDRESS in your .env file "
            "or provide it as an argument"
        )

    def resolve(
        self,
        cli_args: Sequence[str] = (),
        need_target: bool = False,
        target_defaults_to_source: bool = False,
        need_contract: bool = False
    ) -> ResolvedAddresses:
        """
        Resolve every address a flow needs.

        Raises:
            ConfigError: If a required address is absent or malformed
        """
        source = self.source()
        target = None
        if need_target or target_defaults_to_source:
            target = self.target(cli_args, default_to_source=target_defaults_to_source)
        contract = self.contract() if need_contract else None
        resolved = ResolvedAddresses(source=source, target=target, contract=contract)
        logger.debug(f"Resolved addresses: {resolved}")
        return resolved

    def display_pair(self, cli_args: Sequence[str]) -> Tuple[str, Optional[str]]:
        """
        Addresses shown by the balance command.

        The first and second tokens replace the configured source and target
        when they are address-shaped; other tokens are ignored.
        """
        source_override = cli_args[0] if len(cli_args) >= 1 and is_address(cli_args[0]) else None
        target_override = cli_args[1] if len(cli_args) >= 2 and is_address(cli_args[1]) else None

        if source_override:
            source = to_checksum(source_override)
        else:
            source = self._configured(self.settings.source_address, "SOURCE_ADDRESS", "source", False)
            if source is None:
                raise ConfigError(
                    "Source address is required: set SOURCE_ADDRESS in your .env file "
                    "or provide it as an argument"
                )

        if target_override:
            target = to_checksum(target_override)
        else:
            target = self._configured(self.settings.target_address, "TARGET_ADDRESS", "target", False)
        return source, target
