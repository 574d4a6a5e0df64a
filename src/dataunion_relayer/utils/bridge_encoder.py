"""
Byte-level encoding utilities for the data union relayer.

This module builds the two wire-exact payloads the contracts verify: the
104-byte withdrawal message signed by members and the signature bundle the
mainnet bridge expects in ``executeSignatures``.
"""

from typing import TYPE_CHECKING, Sequence, Union

from eth_abi import decode
from hexbytes import HexBytes
from web3 import Web3

from ..errors import InvalidArgument

if TYPE_CHECKING:
    from ..models import AmbSignature

MAX_UINT256 = 2**256 - 1
MAX_BUNDLE_SIGNATURES = 255
SIGNATURE_LENGTH = 65
WITHDRAW_REQUEST_LENGTH = 104

USER_REQUEST_FOR_SIGNATURE = "UserRequestForSignature(bytes32,bytes)"


class BridgeEncoder:
    """Utilities for encoding withdrawal requests and bridge signatures."""

    @staticmethod
    def to_bytes_safe(value: Union[HexBytes, bytes, str]) -> bytes:
        """
        Safely convert value to bytes, handling HexBytes, bytes, and hex strings.

        Args:
            value: Value to convert (HexBytes, bytes, or hex string)

        Returns:
            Bytes representation
        """
        if isinstance(value, HexBytes):
            return bytes(value)
        elif isinstance(value, bytes):
            return value
        else:
            return Web3.to_bytes(hexstr=value)

    @staticmethod
    def address_bytes(address: str) -> bytes:
        """
        Convert a hex address to its 20 raw bytes.

        Equivalent to the low 20 bytes of the 32-byte ABI encoding of an
        address, i.e. the ABI word with its 12 bytes of left padding dropped.

        Raises:
            InvalidArgument: If the value is not a 20-byte hex address
        """
        if not isinstance(address, str) or not Web3.is_address(address):
            raise InvalidArgument(f"Invalid address: {address!r}")
        return Web3.to_bytes(hexstr=address)

    @staticmethod
    def uint256_bytes(value: int) -> bytes:
        """Big-endian 32-byte encoding of an unsigned 256-bit integer."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgument(f"Expected an integer amount, got {type(value).__name__}")
        if value < 0 or value > MAX_UINT256:
            raise InvalidArgument(f"Amount out of uint256 range: {value}")
        return value.to_bytes(32, 'big')

    @staticmethod
    def encode_withdraw_request(to: str, amount: int, sidechain_contract: str, prior_withdrawn: int) -> bytes:
        """
        Build the canonical withdrawal message.

        Layout: [20 bytes to][32 bytes amount][20 bytes contract][32 bytes prior withdrawn].
        Amount 0 is passed through as-is; the contract reads it as "withdraw all".

        Args:
            to: Recipient address
            amount: Amount in wei, or 0 for the whole withdrawable balance
            sidechain_contract: Sidechain data union address
            prior_withdrawn: Member's withdrawn counter read from the sidechain

        Returns:
            104-byte message
        """
        message = (
            BridgeEncoder.address_bytes(to)
            + BridgeEncoder.uint256_bytes(amount)
            + BridgeEncoder.address_bytes(sidechain_contract)
            + BridgeEncoder.uint256_bytes(prior_withdrawn)
        )
        return message

    @staticmethod
    def split_signature(signature: bytes) -> tuple[int, bytes, bytes]:
        """
        Decompose a 65-byte recoverable signature laid out as r || s || v.

        Returns:
            Tuple of (v, r, s)
        """
        signature = BridgeEncoder.to_bytes_safe(signature)
        if len(signature) != SIGNATURE_LENGTH:
            raise InvalidArgument(
                f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}"
            )
        return signature[64], signature[0:32], signature[32:64]

    @staticmethod
    def encode_signature_bundle(signatures: Sequence["AmbSignature"]) -> bytes:
        """
        Pack validator signatures for the foreign bridge's ``executeSignatures``.

        The bridge reads the blob as:
        - first byte X is the number of signatures,
        - next X bytes are the v components,
        - next 32 * X bytes are the r components,
        - next 32 * X bytes are the s components.

        Args:
            signatures: Signatures in affirmation order

        Returns:
            Bundle of length 1 + 65 * len(signatures)

        Raises:
            InvalidArgument: If there are more than 255 signatures
        """
        count = len(signatures)
        if count > MAX_BUNDLE_SIGNATURES:
            raise InvalidArgument(
                f"Signature count cannot be greater than {MAX_BUNDLE_SIGNATURES}, got {count}"
            )

        vs = bytes(sig.v for sig in signatures)
        rs = b''.join(sig.r for sig in signatures)
        ss = b''.join(sig.s for sig in signatures)
        bundle = bytes([count]) + vs + rs + ss

        if len(bundle) != 1 + SIGNATURE_LENGTH * count:
            raise InvalidArgument("Signature components must be 1, 32 and 32 bytes long")
        return bundle

    @staticmethod
    def user_request_for_signature_topic() -> bytes:
        """Topic 0 of the home bridge's UserRequestForSignature event."""
        return bytes(Web3.keccak(text=USER_REQUEST_FOR_SIGNATURE))

    @staticmethod
    def decode_user_request_data(data: bytes) -> bytes:
        """Decode the non-indexed ``bytes encodedData`` argument of the event."""
        (encoded_data,) = decode(['bytes'], BridgeEncoder.to_bytes_safe(data))
        return encoded_data
