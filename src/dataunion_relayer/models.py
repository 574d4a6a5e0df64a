"""
Shared data models for the data union relayer.

This module contains the immutable value types passed between the chain
client, the withdrawal authorizer and the bridge relay.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any

from web3 import Web3

from .utils.bridge_encoder import BridgeEncoder


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A single log emitted by a transaction.

    Attributes:
        address: Address of the emitting contract
        topics: Indexed topics, topic 0 being the event signature hash
        data: ABI-encoded non-indexed event arguments
    """
    address: str
    topics: tuple[bytes, ...]
    data: bytes


@dataclass(frozen=True, slots=True)
class TransactionReceipt:
    """Chain-agnostic view of a mined transaction.

    Attributes:
        tx_hash: Transaction hash (with 0x prefix)
        block_number: Block the transaction was mined in
        status: 1 for success, 0 for revert
        logs: Logs in emission order
    """
    tx_hash: str
    block_number: int
    status: int
    logs: tuple[LogEntry, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_web3(cls, receipt: Any) -> "TransactionReceipt":
        """Convert a web3 ``TxReceipt`` (or a dict shaped like one)."""
        logs = tuple(
            LogEntry(
                address=str(log['address']).lower(),
                topics=tuple(BridgeEncoder.to_bytes_safe(topic) for topic in log['topics']),
                data=BridgeEncoder.to_bytes_safe(log['data']),
            )
            for log in receipt.get('logs', [])
        )
        return cls(
            tx_hash=Web3.to_hex(BridgeEncoder.to_bytes_safe(receipt['transactionHash'])),
            block_number=int(receipt.get('blockNumber', 0)),
            status=int(receipt.get('status', 1)),
            logs=logs,
        )

    def __str__(self) -> str:
        return f"TransactionReceipt(tx={self.tx_hash[:10]}..., block={self.block_number}, status={self.status})"


@dataclass(frozen=True, slots=True)
class WithdrawalRequest:
    """An unsigned withdrawal authorization.

    ``prior_withdrawn`` is the member's cumulative withdrawn amount read from
    the sidechain when the request was built. Once any withdrawal succeeds the
    counter moves and a signature over this request stops verifying.

    Attributes:
        from_address: Member whose earnings are withdrawn
        to_address: Recipient of the tokens
        amount: Amount in wei, 0 meaning the whole withdrawable balance
        sidechain_address: Sidechain data union contract
        prior_withdrawn: Member's withdrawn counter at construction time
    """
    from_address: str
    to_address: str
    amount: int
    sidechain_address: str
    prior_withdrawn: int

    @property
    def withdraws_all(self) -> bool:
        return self.amount == 0

    def encode(self) -> bytes:
        """The 104-byte message the member signs."""
        return BridgeEncoder.encode_withdraw_request(
            self.to_address,
            self.amount,
            self.sidechain_address,
            self.prior_withdrawn,
        )


@dataclass(frozen=True, slots=True)
class BridgeMessage:
    """A bridge message requested by a sidechain transaction.

    Attributes:
        message_id: 32-byte AMB message id (indexed event topic)
        message_hash: keccak256 of ``encoded_data``, the key for affirmations
        encoded_data: Opaque message payload as emitted by the home bridge
    """
    message_id: bytes
    message_hash: bytes
    encoded_data: bytes

    @property
    def message_id_hex(self) -> str:
        return Web3.to_hex(self.message_id)

    @property
    def message_hash_hex(self) -> str:
        return Web3.to_hex(self.message_hash)

    def __str__(self) -> str:
        return f"BridgeMessage(id={self.message_id_hex[:10]}..., hash={self.message_hash_hex[:10]}...)"


@dataclass(frozen=True, slots=True)
class AmbSignature:
    """One validator affirmation decomposed into its components."""
    v: int
    r: bytes
    s: bytes

    @classmethod
    def from_bytes65(cls, signature: bytes) -> "AmbSignature":
        v, r, s = BridgeEncoder.split_signature(signature)
        return cls(v=v, r=r, s=s)


class RelayStatus(Enum):
    RELAYED = "relayed"
    ALREADY_HANDLED = "already_handled"
    NOT_AFFIRMED = "not_affirmed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RelayResult:
    """Outcome of relaying one bridge message.

    Attributes:
        message: The message that was processed
        status: What happened to it
        signatures: Affirmation count used for the submission, if any
        tx_hash: Mainnet transaction hash when relayed
        error: The failure when ``status`` is FAILED
    """
    message: BridgeMessage
    status: RelayStatus
    signatures: int | None = None
    tx_hash: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status is not RelayStatus.FAILED


class MemberStatus(IntEnum):
    """Member state as stored in the sidechain ``memberData`` mapping."""
    NONE = 0
    ACTIVE = 1
    INACTIVE = 2
