"""
Chain access for the data union relayer.

Contract calls and transactions are addressed by bundled ABI name and
contract address. Malformed addresses are rejected before any RPC; transport
and contract failures surface as ChainCallError.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from ..errors import ChainCallError, InvalidArgument, NotFound
from ..models import TransactionReceipt

logger = logging.getLogger(__name__)

CONTRACTS_DIR = Path(__file__).parent.parent / "contracts"

# Transport, RPC and decoding failures surface from web3 as these
CHAIN_ERRORS = (Web3Exception, OSError)


@lru_cache(maxsize=None)
def get_contract_abi(contract_name: str) -> list:
    """Fetches ABI of the given contract from the contracts folder"""
    contract_path = (CONTRACTS_DIR / f"{contract_name}.json").resolve()
    if not contract_path.exists():
        raise NotFound(f"No ABI bundled for contract {contract_name}")

    with contract_path.open() as file:
        contract_data = json.load(file)

    return contract_data["abi"]


class ChainClient(Protocol):
    """
    The narrow set of chain operations the relayer needs.

    Implemented over web3 for real chains and in memory for tests.
    """

    def call(self, contract_name: str, address: str, function: str, *args: Any) -> Any:
        ...

    def send_transaction(
        self, contract_name: str, address: str, function: str, *args: Any, account: LocalAccount
    ) -> TransactionReceipt:
        ...

    def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        ...

    def get_code(self, address: str) -> bytes:
        ...


class Web3ChainClient:
    """
    ChainClient backed by a web3 provider.

    Each method is one stateless RPC round-trip (plus the receipt wait for
    transactions), so one instance can be shared by concurrent callers.
    """

    DEFAULT_RECEIPT_TIMEOUT = 120  # seconds

    def __init__(self, w3: Web3, receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT) -> None:
        """
        Initialize the Web3ChainClient.

        Args:
            w3: Connected Web3 instance
            receipt_timeout: Seconds to wait for a sent transaction to be mined
        """
        self.w3 = w3
        self.receipt_timeout = receipt_timeout

    @classmethod
    def connect(cls, rpc_url: str, receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT) -> "Web3ChainClient":
        """Create a client for an http(s) or websocket RPC URL."""
        if not rpc_url:
            raise InvalidArgument("RPC URL is required")

        provider = (
            Web3.LegacyWebSocketProvider(rpc_url)
            if rpc_url.startswith(("ws:", "wss:"))
            else Web3.HTTPProvider(rpc_url)
        )
        return cls(Web3(provider), receipt_timeout=receipt_timeout)

    @staticmethod
    def _checksum(address: str) -> str:
        if not isinstance(address, str) or not Web3.is_address(address):
            raise InvalidArgument(f"Invalid address: {address!r}")
        return Web3.to_checksum_address(address)

    def _contract(self, contract_name: str, address: str):
        return self.w3.eth.contract(
            address=self._checksum(address),
            abi=get_contract_abi(contract_name)
        )

    @staticmethod
    def _normalize_arg(arg: Any) -> Any:
        # web3 only accepts checksummed address strings
        if isinstance(arg, str) and len(arg) == 42 and arg.startswith("0x"):
            return Web3ChainClient._checksum(arg)
        if isinstance(arg, (list, tuple)):
            return [Web3ChainClient._normalize_arg(item) for item in arg]
        return arg

    def _function(self, contract_name: str, address: str, function: str, args: tuple):
        contract = self._contract(contract_name, address)
        normalized = [self._normalize_arg(arg) for arg in args]
        return getattr(contract.functions, function)(*normalized)

    def call(self, contract_name: str, address: str, function: str, *args: Any) -> Any:
        try:
            return self._function(contract_name, address, function, args).call()
        except CHAIN_ERRORS as e:
            raise ChainCallError(f"{contract_name}.{function} call failed at {address}: {e}") from e

    def send_transaction(
        self, contract_name: str, address: str, function: str, *args: Any, account: LocalAccount
    ) -> TransactionReceipt:
        """
        Build, sign locally, send and wait for a contract transaction.

        Returns:
            Receipt of the mined transaction

        Raises:
            InvalidArgument: If the contract or an address argument is malformed
            ChainCallError: If sending fails or the transaction reverts
        """
        try:
            tx = self._function(contract_name, address, function, args).build_transaction({
                'from': account.address,
                'nonce': self.w3.eth.get_transaction_count(account.address, 'pending'),
                'gasPrice': self.w3.eth.gas_price,
            })
            signed = account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.debug(f"{contract_name}.{function} sent: {Web3.to_hex(tx_hash)}")

            raw_receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except CHAIN_ERRORS as e:
            raise ChainCallError(f"{contract_name}.{function} transaction failed at {address}: {e}") from e

        receipt = TransactionReceipt.from_web3(raw_receipt)
        if not receipt.succeeded:
            raise ChainCallError(f"{contract_name}.{function} reverted in {receipt.tx_hash}")

        logger.info(f"✓ {contract_name}.{function} confirmed in block {receipt.block_number}")
        return receipt

    def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        try:
            raw_receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except CHAIN_ERRORS as e:
            raise ChainCallError(f"Fetching receipt for {tx_hash} failed: {e}") from e
        return TransactionReceipt.from_web3(raw_receipt)

    def get_code(self, address: str) -> bytes:
        try:
            return bytes(self.w3.eth.get_code(self._checksum(address)))
        except CHAIN_ERRORS as e:
            raise ChainCallError(f"Fetching code at {address} failed: {e}") from e
