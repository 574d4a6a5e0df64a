"""
Data union handle.

A DataUnion binds one mainnet data union contract to its sidechain twin and
forwards queries and admin operations to the right chain. Use
DataUnionClient to create one.
"""

import logging

from eth_account.signers.local import LocalAccount

from .errors import WaitTimeout
from .models import MemberStatus, TransactionReceipt, WithdrawalRequest
from .utils.bridge_encoder import BridgeEncoder
from .utils.chain_client import ChainClient
from .utils.poller import wait_for
from .withdrawal import SIDECHAIN_CONTRACT, WithdrawalAuthorizer

logger = logging.getLogger(__name__)

MAINNET_CONTRACT = "DataUnionMainnet"


class DataUnion:
    """
    Handle for a deployed data union.

    Holds no chain state of its own, only the two addresses and the clients
    and admin accounts used to reach them.
    """

    def __init__(
        self,
        mainnet_address: str,
        mainnet: ChainClient,
        mainnet_account: LocalAccount,
        sidechain_address: str,
        sidechain: ChainClient,
        sidechain_account: LocalAccount,
    ) -> None:
        BridgeEncoder.address_bytes(mainnet_address)
        BridgeEncoder.address_bytes(sidechain_address)
        self._mainnet_address = mainnet_address.lower()
        self._sidechain_address = sidechain_address.lower()
        self._mainnet = mainnet
        self._mainnet_account = mainnet_account
        self._sidechain = sidechain
        self._sidechain_account = sidechain_account
        self._authorizer = WithdrawalAuthorizer(sidechain, self._sidechain_address)

    @property
    def mainnet_address(self) -> str:
        return self._mainnet_address

    @property
    def sidechain_address(self) -> str:
        return self._sidechain_address

    @property
    def authorizer(self) -> WithdrawalAuthorizer:
        return self._authorizer

    def __repr__(self) -> str:
        return f"DataUnion(mainnet={self._mainnet_address}, sidechain={self._sidechain_address})"

    def _read(self, function: str, *args) -> int:
        return int(self._sidechain.call(SIDECHAIN_CONTRACT, self._sidechain_address, function, *args))

    def _send(self, function: str, *args) -> TransactionReceipt:
        return self._sidechain.send_transaction(
            SIDECHAIN_CONTRACT, self._sidechain_address, function, *args,
            account=self._sidechain_account,
        )

    # Deployment

    async def wait_for_deployment(self, interval: float, timeout: float) -> bool:
        """
        Wait until the sidechain contract has code at its address.

        The sidechain contract is created by a bridge message triggered by the
        mainnet factory, so it appears some time after the mainnet deploy.

        Returns:
            True once deployed, False if still undeployed after ``timeout``
        """
        def has_code() -> bool | None:
            return True if self._sidechain.get_code(self._sidechain_address) else None

        try:
            return await wait_for(has_code, interval, timeout)
        except WaitTimeout:
            return False

    async def is_deployed(self) -> bool:
        # checks the condition only once
        return await self.wait_for_deployment(0, 0)

    # Queries

    def total_earnings(self) -> int:
        return self._read("totalEarnings")

    def total_earnings_withdrawn(self) -> int:
        return self._read("totalEarningsWithdrawn")

    def active_member_count(self) -> int:
        return self._read("activeMemberCount")

    def inactive_member_count(self) -> int:
        return self._read("inactiveMemberCount")

    def lifetime_member_earnings(self) -> int:
        return self._read("lifetimeMemberEarnings")

    def join_part_agent_count(self) -> int:
        return self._read("joinPartAgentCount")

    def get_earnings(self, member: str) -> int:
        return self._read("getEarnings", member)

    def get_withdrawn(self, member: str) -> int:
        return self._read("getWithdrawn", member)

    def get_withdrawable_earnings(self, member: str) -> int:
        return self._read("getWithdrawableEarnings", member)

    def member_status(self, member: str) -> MemberStatus:
        data = self._sidechain.call(SIDECHAIN_CONTRACT, self._sidechain_address, "memberData", member)
        return MemberStatus(int(data[0]))

    def is_member_active(self, member: str) -> bool:
        return self.member_status(member) is MemberStatus.ACTIVE

    async def wait_for_earnings_change(self, initial_balance: int, interval: float, timeout: float) -> int:
        """
        Wait for total earnings to move away from ``initial_balance``.

        Returns:
            The new total earnings

        Raises:
            WaitTimeout: If earnings did not change within ``timeout``
        """
        def earnings_changed() -> int | None:
            balance = self.total_earnings()
            return balance if balance != initial_balance else None

        return await wait_for(earnings_changed, interval, timeout)

    # Admin operations

    def add_join_part_agents(self, *agents: str) -> TransactionReceipt:
        return self._send("addJoinPartAgents", list(agents))

    def remove_join_part_agent(self, agent: str) -> TransactionReceipt:
        return self._send("removeJoinPartAgent", agent)

    def add_members(self, *members: str) -> TransactionReceipt:
        logger.info(f"Adding {len(members)} member(s) to {self._sidechain_address}")
        return self._send("addMembers", list(members))

    def part_members(self, *members: str) -> TransactionReceipt:
        logger.info(f"Parting {len(members)} member(s) from {self._sidechain_address}")
        return self._send("partMembers", list(members))

    def send_tokens_to_bridge(self) -> TransactionReceipt:
        """Move tokens held by the mainnet contract over the bridge to the sidechain."""
        return self._mainnet.send_transaction(
            MAINNET_CONTRACT, self._mainnet_address, "sendTokensToBridge",
            account=self._mainnet_account,
        )

    # Withdrawals. Amount 0 always means the whole withdrawable balance and
    # every withdrawal is sent on to mainnet.

    def withdraw_member(self, member: str, amount: int) -> TransactionReceipt:
        """Withdraw a member's earnings to the member's own address (member or admin only)."""
        BridgeEncoder.uint256_bytes(amount)
        if amount == 0:
            return self._send("withdrawAll", member, True)
        return self._send("withdraw", member, amount, True)

    def withdraw_self(self, amount: int, to: str | None = None) -> TransactionReceipt:
        """
        Withdraw the sidechain account's own earnings.

        Args:
            amount: Amount in wei, or 0 to withdraw everything
            to: Recipient address, defaults to the member's own address
        """
        BridgeEncoder.uint256_bytes(amount)
        recipient = to or self._sidechain_account.address
        if amount == 0:
            return self._send("withdrawAllTo", recipient, True)
        return self._send("withdrawTo", recipient, amount, True)

    def create_withdraw_request(self, from_address: str, to: str, amount: int) -> WithdrawalRequest:
        """Unsigned request for out-of-band signing by ``from_address``."""
        return self._authorizer.create_withdraw_request(from_address, to, amount)

    def withdraw(self, member_account: LocalAccount, to: str, amount: int) -> TransactionReceipt:
        """
        Withdraw on behalf of a member using the member's signature.

        The member signs, the sidechain admin account submits and pays gas.

        Args:
            member_account: The member's keypair
            to: Recipient address
            amount: Amount in wei, or 0 to withdraw everything

        Returns:
            Receipt of the sidechain withdrawal, whose logs carry the bridge
            messages to relay with ``DataUnionClient.port_txs_to_mainnet``
        """
        return self._authorizer.submit(member_account, to, amount, relayer=self._sidechain_account)
