"""
Withdrawal authorization for data union members.

A signed withdrawal lets an admin (or anyone paying sidechain gas) withdraw a
member's earnings on the member's behalf. The signed message binds the
member's cumulative withdrawn amount, so a signature stops verifying as soon
as any withdrawal by that member succeeds.
"""

import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .errors import InvalidArgument
from .models import TransactionReceipt, WithdrawalRequest
from .utils.bridge_encoder import BridgeEncoder
from .utils.chain_client import ChainClient

logger = logging.getLogger(__name__)

SIDECHAIN_CONTRACT = "DataUnionSidechain"


class WithdrawalAuthorizer:
    """Builds, signs and submits replay-protected withdrawal requests."""

    def __init__(self, sidechain: ChainClient, sidechain_address: str) -> None:
        """
        Initialize the WithdrawalAuthorizer.

        Args:
            sidechain: Client for the sidechain
            sidechain_address: Address of the sidechain data union contract
        """
        BridgeEncoder.address_bytes(sidechain_address)
        self.sidechain = sidechain
        self.sidechain_address = sidechain_address.lower()

    def get_withdrawn(self, member: str) -> int:
        """Member's cumulative withdrawn amount, the replay-protection counter."""
        return int(self.sidechain.call(SIDECHAIN_CONTRACT, self.sidechain_address, "getWithdrawn", member))

    def create_withdraw_request(self, from_address: str, to: str, amount: int) -> WithdrawalRequest:
        """
        Build an unsigned withdrawal request against the live withdrawn counter.

        Requests must be rebuilt whenever the counter may have moved; a request
        built from a stale counter produces a signature the contract rejects.

        Args:
            from_address: Member whose earnings are withdrawn
            to: Recipient address
            amount: Amount in wei, or 0 to withdraw everything

        Returns:
            WithdrawalRequest ready to be signed

        Raises:
            InvalidArgument: On a malformed address or amount (before any RPC)
            ChainCallError: If reading the withdrawn counter fails
        """
        BridgeEncoder.address_bytes(from_address)
        BridgeEncoder.address_bytes(to)
        BridgeEncoder.uint256_bytes(amount)

        prior_withdrawn = self.get_withdrawn(from_address)
        request = WithdrawalRequest(
            from_address=from_address.lower(),
            to_address=to.lower(),
            amount=amount,
            sidechain_address=self.sidechain_address,
            prior_withdrawn=prior_withdrawn,
        )
        logger.debug(
            f"Withdraw request from {request.from_address} to {request.to_address}: "
            f"amount={amount} prior_withdrawn={prior_withdrawn}"
        )
        return request

    def create_withdraw_all_request(self, from_address: str, to: str) -> WithdrawalRequest:
        return self.create_withdraw_request(from_address, to, 0)

    @staticmethod
    def sign(request: WithdrawalRequest, account: LocalAccount) -> bytes:
        """
        Sign a request as a prefixed personal message.

        Returns:
            65-byte signature laid out as r || s || v

        Raises:
            InvalidArgument: If the account is not the member the request is for
        """
        if account.address.lower() != request.from_address:
            raise InvalidArgument(
                f"Request is for {request.from_address}, cannot sign with {account.address}"
            )
        signed = account.sign_message(encode_defunct(primitive=request.encode()))
        return bytes(signed.signature)

    @staticmethod
    def recover_signer(message: bytes, signature: bytes) -> str:
        """Address that produced ``signature`` over ``message`` (lowercase hex)."""
        signer = Account.recover_message(
            encode_defunct(primitive=message),
            signature=BridgeEncoder.to_bytes_safe(signature)
        )
        return signer.lower()

    @staticmethod
    def verify(message: bytes, signature: bytes, address: str) -> bool:
        return WithdrawalAuthorizer.recover_signer(message, signature) == address.lower()

    def signed_withdraw_request(
        self, account: LocalAccount, to: str, amount: int
    ) -> tuple[WithdrawalRequest, bytes]:
        """Build and sign a request for out-of-band hand-off to a relayer."""
        request = self.create_withdraw_request(account.address, to, amount)
        return request, self.sign(request, account)

    def submit_signed(
        self, request: WithdrawalRequest, signature: bytes, relayer: LocalAccount
    ) -> TransactionReceipt:
        """
        Submit a member-signed request, paying gas from ``relayer``.

        Amount 0 goes through ``withdrawAllToSigned``; the contract resolves it
        to the member's whole withdrawable balance.
        """
        signature = BridgeEncoder.to_bytes_safe(signature)
        logger.info(
            f"Submitting signed withdrawal for {request.from_address} to {request.to_address} "
            f"({'all' if request.withdraws_all else request.amount}) from {relayer.address}"
        )
        if request.withdraws_all:
            return self.sidechain.send_transaction(
                SIDECHAIN_CONTRACT, self.sidechain_address, "withdrawAllToSigned",
                request.from_address, request.to_address, True, signature,
                account=relayer,
            )
        return self.sidechain.send_transaction(
            SIDECHAIN_CONTRACT, self.sidechain_address, "withdrawToSigned",
            request.from_address, request.to_address, request.amount, True, signature,
            account=relayer,
        )

    def submit(
        self, account: LocalAccount, to: str, amount: int, relayer: LocalAccount
    ) -> TransactionReceipt:
        """Build a fresh request, sign it with ``account`` and submit it via ``relayer``."""
        request, signature = self.signed_withdraw_request(account, to, amount)
        logger.debug(f"Signature: {Web3.to_hex(signature)}")
        return self.submit_signed(request, signature, relayer)
