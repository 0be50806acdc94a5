"""
Configuration for the arbstylus tool.

``Settings`` is resolved once at process start from the environment (layered
over a ``.env`` file) and passed explicitly to the components that need it.
``NetworkConfig`` turns the bundled network definitions into an immutable
``NetworkDescriptor``.
"""
import json
import logging
import os
import importlib.resources
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "http://127.0.0.1:8547"
DEFAULT_NETWORK = "arb-local"

# Settings field -> environment variable
ENV_VARS = {
    "source_address": "SOURCE_ADDRESS",
    "target_address": "TARGET_ADDRESS",
    "source_private_key": "SOURCE_PRIVATE_KEY",
    "rpc_url": "RPC_URL",
    "l1_rpc_url": "L1_RPC_URL",
    "contract_address": "COUNTER_CONTRACT_ADDRESS",
    "network": "ARB_NETWORK",
    "tx_timeout": "TX_TIMEOUT",
    "cross_layer_timeout": "CROSS_LAYER_TIMEOUT",
    "poll_interval": "POLL_INTERVAL",
    "log_level": "LOG_LEVEL",
}


class Settings(BaseModel):
    """Process-wide configuration, immutable once loaded"""
    model_config = ConfigDict(frozen=True)

    source_address: Optional[str] = None
    target_address: Optional[str] = None
    source_private_key: Optional[SecretStr] = None
    rpc_url: str = DEFAULT_RPC_URL
    l1_rpc_url: Optional[str] = None
    contract_address: Optional[str] = None
    network: str = DEFAULT_NETWORK
    tx_timeout: float = Field(120.0, gt=0)
    cross_layer_timeout: float = Field(900.0, gt=0)
    poll_interval: float = Field(1.0, gt=0)
    log_level: str = "WARNING"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None
    ) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` and ``.env``
            dotenv_path: Explicit ``.env`` file (default: search from cwd)

        Returns:
            Settings instance

        Raises:
            ConfigError: If a value cannot be parsed
        """
        if environ is None:
            path = dotenv_path or find_dotenv(usecwd=True)
            merged: Dict[str, Optional[str]] = dict(dotenv_values(path)) if path else {}
            merged.update(os.environ)
            environ = {k: v for k, v in merged.items() if v is not None}

        values: Dict[str, Any] = {}
        for field_name, var in ENV_VARS.items():
            raw = environ.get(var)
            if raw is None or not raw.strip():
                continue
            values[field_name] = raw.strip()

        try:
            return cls(**values)
        except PydanticValidationError as e:
            fields = ", ".join(
                ENV_VARS.get(str(err["loc"][0]), str(err["loc"][0])) for err in e.errors()
            )
            raise ConfigError(f"Invalid configuration value(s): {fields}") from e

    def private_key(self) -> Optional[str]:
        if self.source_private_key is None:
            return None
        return self.source_private_key.get_secret_value()


class ChainInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    chain_id: int = Field(..., alias="chainId")
    block_time: float = Field(0, alias="blockTime")
    native_symbol: str = Field("ETH", alias="nativeSymbol")


class EthBridge(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bridge: str
    inbox: str
    outbox: str
    rollup: str
    sequencer_inbox: str = Field(..., alias="sequencerInbox")


class NetworkDescriptor(BaseModel):
    """Immutable description of a parent/child chain pair and its bridge"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str
    parent: ChainInfo
    child: ChainInfo
    eth_bridge: EthBridge = Field(..., alias="ethBridge")
    confirm_period_blocks: int = Field(0, alias="confirmPeriodBlocks")
    retryable_lifetime_seconds: int = Field(604800, alias="retryableLifetimeSeconds")
    deposit_timeout_ms: int = Field(900000, alias="depositTimeout")


class NetworkConfig:
    """Access to the bundled network definitions"""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load network definitions from the package's ``networks.json``.

        Returns:
            Mapping of network name to raw definition
        """
        if cls._networks_cache is None:
            resource = importlib.resources.files("arbstylus").joinpath("networks.json")
            with resource.open("r") as f:
                cls._networks_cache = json.load(f)
        return cls._networks_cache

    @classmethod
    def get_network(cls, name: str) -> NetworkDescriptor:
        """
        Get the descriptor for a named network.

        Raises:
            ConfigError: If the network is unknown or its definition is invalid
        """
        networks = cls.load_networks()
        if name not in networks:
            available = ", ".join(sorted(networks))
            raise ConfigError(f"Unknown network '{name}'. Available networks: {available}")
        try:
            return NetworkDescriptor.model_validate({"key": name, **networks[name]})
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid definition for network '{name}': {e}") from e

    @classmethod
    def get_chain_ids(cls, name: str) -> Tuple[int, int]:
        """Parent and child chain ids for a named network"""
        network = cls.get_network(name)
        return network.parent.chain_id, network.child.chain_id
