"""
Data union client.

Entry point for working with data unions: deploying and loading them through
the factories, relaying withdrawals over the bridge, and waiting for
cross-chain side effects to land.
"""

import logging
from typing import Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .bridge import BridgeRelay
from .config import BridgeConfig, ClientConfig
from .data_union import DataUnion
from .errors import InvalidArgument
from .models import RelayResult, TransactionReceipt
from .utils.chain_client import ChainClient, Web3ChainClient
from .utils.poller import wait_for

logger = logging.getLogger(__name__)

MAINNET_FACTORY = "DataUnionFactoryMainnet"
SIDECHAIN_FACTORY = "DataUnionFactorySidechain"
ERC20 = "IERC20"


def to_wei(fraction: float) -> int:
    """Convert a fraction in [0, 1] to an 18-decimal fixed point integer."""
    return Web3.to_wei(str(fraction), 'ether')


class DataUnionClient:
    """
    Client for data unions spanning mainnet and a sidechain.

    Use DataUnion (returned by the deploy/load methods) for operations on a
    particular data union.
    """

    def __init__(
        self,
        mainnet: ChainClient,
        mainnet_account: LocalAccount,
        mainnet_factory: str,
        sidechain: ChainClient,
        sidechain_account: LocalAccount,
        sidechain_factory: str,
        bridge_config: BridgeConfig | None = None,
    ) -> None:
        """
        Initialize the DataUnionClient.

        Args:
            mainnet: Client for the mainnet chain
            mainnet_account: Mainnet admin account
            mainnet_factory: Mainnet DataUnionFactory address
            sidechain: Client for the sidechain
            sidechain_account: Sidechain admin account
            sidechain_factory: Sidechain DataUnionFactory address
            bridge_config: Affirmation polling settings
        """
        self.mainnet = mainnet
        self.mainnet_account = mainnet_account
        self.mainnet_factory = mainnet_factory
        self.sidechain = sidechain
        self.sidechain_account = sidechain_account
        self.sidechain_factory = sidechain_factory
        self.bridge_config = bridge_config or BridgeConfig()

    @classmethod
    def from_config(cls, config: ClientConfig) -> "DataUnionClient":
        """Connect to both chains as described by ``config``."""
        return cls(
            mainnet=Web3ChainClient.connect(config.mainnet.rpc_url),
            mainnet_account=Account.from_key(config.mainnet.private_key),
            mainnet_factory=config.mainnet.factory_address,
            sidechain=Web3ChainClient.connect(config.sidechain.rpc_url),
            sidechain_account=Account.from_key(config.sidechain.private_key),
            sidechain_factory=config.sidechain.factory_address,
            bridge_config=config.bridge,
        )

    @classmethod
    def from_env(cls) -> "DataUnionClient":
        config = ClientConfig.from_env()
        config.log_config()
        return cls.from_config(config)

    def _data_union(self, mainnet_address: str, sidechain_address: str) -> DataUnion:
        return DataUnion(
            mainnet_address=mainnet_address,
            mainnet=self.mainnet,
            mainnet_account=self.mainnet_account,
            sidechain_address=sidechain_address,
            sidechain=self.sidechain,
            sidechain_account=self.sidechain_account,
        )

    # Factories

    def deploy_data_union(
        self, name: str, admin: str, admin_fee_fraction: float, agents: Sequence[str]
    ) -> DataUnion:
        """
        Deploy a new data union through the mainnet factory.

        The sidechain contract is created asynchronously by a bridge message;
        use ``DataUnion.wait_for_deployment`` before using it.

        Args:
            name: Data union name, unique per deployer
            admin: Admin address of the new data union
            admin_fee_fraction: Share of revenue for the admin, between 0 and 1
            agents: Initial join/part agents

        Raises:
            InvalidArgument: If the fee fraction is outside [0, 1]
        """
        if not 0 <= admin_fee_fraction <= 1:
            raise InvalidArgument("admin_fee_fraction must be between 0 and 1")
        return self.deploy_data_union_wei(name, admin, to_wei(admin_fee_fraction), agents)

    def deploy_data_union_wei(
        self, name: str, admin: str, admin_fee_fraction_wei: int, agents: Sequence[str]
    ) -> DataUnion:
        if not 0 <= admin_fee_fraction_wei <= 10**18:
            raise InvalidArgument("admin_fee_fraction_wei must be between 0 and 1e18")

        logger.info(f"Deploying data union '{name}' for admin {admin}")
        self.mainnet.send_transaction(
            MAINNET_FACTORY, self.mainnet_factory, "deployNewDataUnion",
            admin, admin_fee_fraction_wei, list(agents), name,
            account=self.mainnet_account,
        )
        mainnet_address = self._mainnet_address_for_name(name)
        sidechain_address = self._sidechain_address_for(mainnet_address)
        logger.info(f"Data union '{name}' deployed: mainnet={mainnet_address} sidechain={sidechain_address}")
        return self._data_union(mainnet_address, sidechain_address)

    def _mainnet_address_for_name(self, name: str) -> str:
        return self.mainnet.call(
            MAINNET_FACTORY, self.mainnet_factory, "mainnetAddress", self.mainnet_account.address, name
        )

    def _sidechain_address_for(self, mainnet_address: str) -> str:
        return self.mainnet.call(MAINNET_FACTORY, self.mainnet_factory, "sidechainAddress", mainnet_address)

    def data_union_from_name(self, name: str) -> DataUnion:
        """Load a data union deployed by this client's mainnet account."""
        return self.data_union_from_mainnet_address(self._mainnet_address_for_name(name))

    def data_union_from_mainnet_address(self, mainnet_address: str) -> DataUnion:
        return self._data_union(mainnet_address, self._sidechain_address_for(mainnet_address))

    def mainnet_token_address(self) -> str:
        return self.mainnet.call(MAINNET_FACTORY, self.mainnet_factory, "token")

    def sidechain_token_address(self) -> str:
        return self.sidechain.call(SIDECHAIN_FACTORY, self.sidechain_factory, "token")

    def mainnet_amb_address(self) -> str:
        return self.mainnet.call(MAINNET_FACTORY, self.mainnet_factory, "amb")

    def sidechain_amb_address(self) -> str:
        return self.sidechain.call(SIDECHAIN_FACTORY, self.sidechain_factory, "amb")

    def set_new_du_initial_eth(self, amount_wei: int) -> TransactionReceipt:
        return self._send_sidechain_factory("setNewDUInitialEth", amount_wei)

    def set_new_du_owner_initial_eth(self, amount_wei: int) -> TransactionReceipt:
        return self._send_sidechain_factory("setNewDUOwnerInitialEth", amount_wei)

    def set_new_member_initial_eth(self, amount_wei: int) -> TransactionReceipt:
        return self._send_sidechain_factory("setNewMemberInitialEth", amount_wei)

    def _send_sidechain_factory(self, function: str, amount_wei: int) -> TransactionReceipt:
        if amount_wei < 0:
            raise InvalidArgument(f"Amount must be non-negative, got {amount_wei}")
        return self.sidechain.send_transaction(
            SIDECHAIN_FACTORY, self.sidechain_factory, function, amount_wei,
            account=self.sidechain_account,
        )

    # Bridge

    def bridge(self) -> BridgeRelay:
        """BridgeRelay wired to the AMB contracts the factories point at."""
        return BridgeRelay(
            mainnet=self.mainnet,
            sidechain=self.sidechain,
            mainnet_amb_address=self.mainnet_amb_address(),
            sidechain_amb_address=self.sidechain_amb_address(),
            poll_interval=self.bridge_config.poll_interval,
            poll_timeout=self.bridge_config.poll_timeout,
        )

    async def wait_for_sidechain_affirmations(
        self, message_hash: bytes, interval: float, timeout: float
    ) -> int | None:
        """Signature count once quorum is reached, or None if not yet affirmed."""
        return await self.bridge().wait_for_sidechain_affirmations(message_hash, interval, timeout)

    async def port_txs_to_mainnet(
        self,
        withdrawal: TransactionReceipt | str,
        mainnet_sender: LocalAccount | str | None = None,
    ) -> list[RelayResult]:
        """
        Relay the bridge messages of a sidechain withdrawal to mainnet.

        Args:
            withdrawal: Sidechain withdrawal receipt or transaction hash
            mainnet_sender: Account or private key paying for the mainnet
                transactions; defaults to the client's mainnet account

        Returns:
            One RelayResult per bridge message in the withdrawal
        """
        match mainnet_sender:
            case None:
                account = self.mainnet_account
            case str() as private_key:
                account = Account.from_key(private_key)
            case _:
                account = mainnet_sender

        return await self.bridge().port_txs_to_mainnet(withdrawal, account)

    # Waiting for side effects

    async def _wait_for_tx(self, chain: ChainClient, tx_hash: str, interval: float, timeout: float) -> bool:
        receipt = await wait_for(lambda: chain.get_transaction_receipt(tx_hash), interval, timeout)
        return receipt.succeeded

    async def wait_for_mainnet_tx(self, tx_hash: str, interval: float, timeout: float) -> bool:
        """
        Wait for a mainnet transaction to be mined.

        Returns:
            True if it succeeded, False if it reverted

        Raises:
            WaitTimeout: If no receipt appeared within ``timeout``
        """
        return await self._wait_for_tx(self.mainnet, tx_hash, interval, timeout)

    async def wait_for_sidechain_tx(self, tx_hash: str, interval: float, timeout: float) -> bool:
        return await self._wait_for_tx(self.sidechain, tx_hash, interval, timeout)

    async def _wait_for_balance_change(
        self, chain: ChainClient, token: str, initial_balance: int, address: str,
        interval: float, timeout: float,
    ) -> int:
        def balance_changed() -> int | None:
            balance = int(chain.call(ERC20, token, "balanceOf", address))
            return balance if balance != initial_balance else None

        return await wait_for(balance_changed, interval, timeout)

    async def wait_for_mainnet_balance_change(
        self, initial_balance: int, address: str, interval: float, timeout: float
    ) -> int:
        """New mainnet token balance of ``address``; raises WaitTimeout if unchanged."""
        return await self._wait_for_balance_change(
            self.mainnet, self.mainnet_token_address(), initial_balance, address, interval, timeout
        )

    async def wait_for_sidechain_balance_change(
        self, initial_balance: int, address: str, interval: float, timeout: float
    ) -> int:
        return await self._wait_for_balance_change(
            self.sidechain, self.sidechain_token_address(), initial_balance, address, interval, timeout
        )
