"""Configuration management for the data union relayer.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with defaults matching
the local development environment where appropriate.
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from web3 import Web3

from .errors import InvalidArgument

logger = logging.getLogger(__name__)

DEFAULT_MAINNET_RPC_URL = "http://localhost:8545"
DEFAULT_SIDECHAIN_RPC_URL = "http://localhost:8546"
DEFAULT_MAINNET_FACTORY = "0x5E959e5d5F3813bE5c6CeA996a286F734cc9593b"
DEFAULT_SIDECHAIN_FACTORY = "0x4081B7e107E59af8E82756F96C751174590989FE"


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for one of the two chains.

    Attributes:
        name: Label used in error messages and logs ("mainnet" or "sidechain")
        rpc_url: HTTP(S) or websocket RPC endpoint
        factory_address: Checksummed data union factory address
        private_key: Admin key used for transactions on this chain
    """

    name: str
    rpc_url: str
    factory_address: str
    private_key: str = field(repr=False)

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        if not self.rpc_url:
            raise InvalidArgument(f"{self.name} RPC URL is required")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https', 'ws', 'wss'):
            raise InvalidArgument(
                f"Invalid {self.name} RPC URL scheme: {parsed.scheme}. "
                "Expected http, https, ws, or wss"
            )

        if not self.factory_address or not Web3.is_address(self.factory_address):
            raise InvalidArgument(f"Invalid {self.name} factory address: {self.factory_address}")

        checksummed = Web3.to_checksum_address(self.factory_address)
        if checksummed != self.factory_address:
            # Use object.__setattr__ since dataclass is frozen
            object.__setattr__(self, 'factory_address', checksummed)

        key = self.private_key.removeprefix('0x') if self.private_key else ""
        if len(key) != 64:
            raise InvalidArgument(
                f"Invalid {self.name} private key length. Expected 64 hex characters, got {len(key)}"
            )
        try:
            int(key, 16)
        except ValueError:
            raise InvalidArgument(
                f"Invalid {self.name} private key format. Must be hexadecimal"
            ) from None


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    """Settings for waiting on bridge affirmations."""
    poll_interval: float = 10.0  # seconds between affirmation checks
    poll_timeout: float = 600.0  # seconds to wait for affirmations per message

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise InvalidArgument(f"Bridge poll interval must be positive, got {self.poll_interval}")
        if self.poll_timeout < 0:
            raise InvalidArgument(f"Bridge poll timeout must be non-negative, got {self.poll_timeout}")


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Main configuration for the data union client.

    Attributes:
        mainnet: Mainnet chain settings
        sidechain: Sidechain settings
        bridge: Affirmation polling settings
    """

    mainnet: ChainConfig
    sidechain: ChainConfig
    bridge: BridgeConfig = field(default_factory=BridgeConfig)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables.

        Returns:
            ClientConfig instance with loaded values

        Raises:
            InvalidArgument: If required environment variables are missing or invalid
        """
        mainnet_key = os.environ.get("MAINNET_PRIVATE_KEY", "")
        if not mainnet_key:
            raise InvalidArgument(
                "MAINNET_PRIVATE_KEY environment variable is required. "
                "This is used to sign mainnet transactions, including bridge relays."
            )

        sidechain_key = os.environ.get("SIDECHAIN_PRIVATE_KEY", "")
        if not sidechain_key:
            raise InvalidArgument(
                "SIDECHAIN_PRIVATE_KEY environment variable is required. "
                "This is the data union admin key on the sidechain."
            )

        mainnet = ChainConfig(
            name="mainnet",
            rpc_url=os.environ.get("MAINNET_RPC_URL", DEFAULT_MAINNET_RPC_URL),
            factory_address=os.environ.get("MAINNET_FACTORY_ADDRESS", DEFAULT_MAINNET_FACTORY),
            private_key=mainnet_key,
        )
        sidechain = ChainConfig(
            name="sidechain",
            rpc_url=os.environ.get("SIDECHAIN_RPC_URL", DEFAULT_SIDECHAIN_RPC_URL),
            factory_address=os.environ.get("SIDECHAIN_FACTORY_ADDRESS", DEFAULT_SIDECHAIN_FACTORY),
            private_key=sidechain_key,
        )

        try:
            poll_interval = float(os.environ.get("BRIDGE_POLL_INTERVAL", "10"))
            poll_timeout = float(os.environ.get("BRIDGE_POLL_TIMEOUT", "600"))
        except ValueError as e:
            raise InvalidArgument(f"Invalid bridge polling setting: {e}") from e

        return cls(
            mainnet=mainnet,
            sidechain=sidechain,
            bridge=BridgeConfig(poll_interval=poll_interval, poll_timeout=poll_timeout),
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format (keys hidden)."""
        logger.info("=" * 60)
        logger.info("Data Union Client Configuration")
        logger.info("=" * 60)

        for chain in (self.mainnet, self.sidechain):
            logger.info(f"{chain.name.capitalize()}:")
            logger.info(f"  RPC URL: {chain.rpc_url}")
            logger.info(f"  Factory: {chain.factory_address}")
            logger.info(f"  Private Key: {'[SET]' if chain.private_key else '[NOT SET]'}")

        logger.info("Bridge Settings:")
        logger.info(f"  Poll Interval: {self.bridge.poll_interval} seconds")
        logger.info(f"  Poll Timeout: {self.bridge.poll_timeout} seconds")
        logger.info("=" * 60)
