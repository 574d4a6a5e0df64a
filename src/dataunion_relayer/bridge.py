"""
Bridge relay for sidechain-to-mainnet AMB messages.

A sidechain withdrawal emits UserRequestForSignature events on the home
bridge. Once validators have affirmed a message, its signatures are collected
from the home bridge and submitted to the foreign (mainnet) bridge's
``executeSignatures``.

Per message: observed -> pending (waiting for quorum) -> affirmed -> relayed.
Messages the mainnet bridge has already executed or marked failed are
skipped, so a relay pass can be repeated safely.
"""

import logging

from eth_abi.exceptions import DecodingError
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .errors import AlreadyHandled, ChainCallError, InvalidArgument, NotFound, WaitTimeout
from .models import AmbSignature, BridgeMessage, RelayResult, RelayStatus, TransactionReceipt
from .utils.bridge_encoder import MAX_BUNDLE_SIGNATURES, BridgeEncoder
from .utils.chain_client import ChainClient
from .utils.poller import wait_for

logger = logging.getLogger(__name__)

HOME_AMB = "HomeAMB"
FOREIGN_AMB = "ForeignAMB"

# The home bridge sets this bit of numMessagesSigned once collection is complete
COLLECTION_COMPLETE_BIT = 255
COLLECTION_COMPLETE_FLAG = 1 << COLLECTION_COMPLETE_BIT


class BridgeRelay:
    """Relays affirmed sidechain bridge messages to the mainnet bridge."""

    DEFAULT_POLL_INTERVAL = 10.0  # seconds
    DEFAULT_POLL_TIMEOUT = 600.0  # seconds

    def __init__(
        self,
        mainnet: ChainClient,
        sidechain: ChainClient,
        mainnet_amb_address: str,
        sidechain_amb_address: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
    ) -> None:
        """
        Initialize the BridgeRelay.

        Args:
            mainnet: Client for the mainnet chain
            sidechain: Client for the sidechain
            mainnet_amb_address: Foreign AMB contract on mainnet
            sidechain_amb_address: Home AMB contract on the sidechain
            poll_interval: Seconds between affirmation checks
            poll_timeout: Seconds to wait for affirmations per message
        """
        self.mainnet = mainnet
        self.sidechain = sidechain
        self.mainnet_amb_address = mainnet_amb_address
        self.sidechain_amb_address = sidechain_amb_address
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout

    def extract_bridge_messages(self, receipt: TransactionReceipt) -> list[BridgeMessage]:
        """
        Find the bridge messages a sidechain transaction requested.

        event UserRequestForSignature(bytes32 indexed messageId, bytes encodedData)

        Only logs emitted by the home bridge are considered. A log whose
        payload does not decode is skipped with a warning.

        The message hash (keccak256 of encodedData) is what the home bridge
        tracks affirmations under; the id is what the mainnet bridge records
        execution status under.

        Args:
            receipt: Receipt of the sidechain transaction

        Returns:
            Messages in log order
        """
        topic = BridgeEncoder.user_request_for_signature_topic()
        home_amb = self.sidechain_amb_address.lower()
        messages = []
        for index, log in enumerate(receipt.logs):
            if len(log.topics) < 2 or log.topics[0] != topic:
                continue
            if log.address.lower() != home_amb:
                logger.debug(f"Ignoring UserRequestForSignature log {index} from {log.address}")
                continue
            try:
                encoded_data = BridgeEncoder.decode_user_request_data(log.data)
            except DecodingError as e:
                logger.warning(f"Skipping undecodable bridge log {index} in {receipt.tx_hash}: {e}")
                continue
            messages.append(BridgeMessage(
                message_id=bytes(log.topics[1]),
                message_hash=bytes(Web3.keccak(encoded_data)),
                encoded_data=encoded_data,
            ))
        logger.debug(f"Extracted {len(messages)} bridge message(s) from {receipt.tx_hash}")
        return messages

    def is_already_handled(self, message_id: bytes) -> bool:
        """True if mainnet executed this message or recorded it as failed."""
        if self.mainnet.call(FOREIGN_AMB, self.mainnet_amb_address, "messageCallStatus", message_id):
            return True
        failed_sender = self.mainnet.call(FOREIGN_AMB, self.mainnet_amb_address, "failedMessageSender", message_id)
        return int(failed_sender, 16) != 0

    def ensure_not_handled(self, message: BridgeMessage) -> None:
        """Raise AlreadyHandled if the mainnet bridge has seen this message."""
        if self.is_already_handled(message.message_id):
            raise AlreadyHandled(message.message_id_hex)

    async def wait_for_sidechain_affirmations(
        self, message_hash: bytes, interval: float, timeout: float
    ) -> int | None:
        """
        Wait until the home bridge has collected enough signatures.

        Args:
            message_hash: keccak256 of the message payload
            interval: Seconds between checks
            timeout: Seconds to wait, 0 for a single check

        Returns:
            Number of signatures if complete, or None if still incomplete
        """
        def affirmed() -> int | None:
            required = int(self.sidechain.call(HOME_AMB, self.sidechain_amb_address, "requiredSignatures"))
            signed = int(self.sidechain.call(
                HOME_AMB, self.sidechain_amb_address, "numMessagesSigned", message_hash
            ))
            complete = bool(signed & COLLECTION_COMPLETE_FLAG)
            signatures = signed & ~COLLECTION_COMPLETE_FLAG
            logger.debug(f"{Web3.to_hex(message_hash)[:10]}...: {signatures}/{required} signatures, {complete=}")
            if not complete or signatures < required:
                return None
            return signatures

        try:
            return await wait_for(affirmed, interval, timeout)
        except WaitTimeout:
            return None

    def collect_signatures(self, message_hash: bytes, count: int) -> list[AmbSignature]:
        return [
            AmbSignature.from_bytes65(
                self.sidechain.call(HOME_AMB, self.sidechain_amb_address, "signature", message_hash, index)
            )
            for index in range(count)
        ]

    def port_tx_to_mainnet(self, message_hash: bytes, collected_signatures: int, account: LocalAccount) -> TransactionReceipt:
        """
        Submit an affirmed message and its signatures to the mainnet bridge.

        Args:
            message_hash: keccak256 of the message payload
            collected_signatures: Number of affirmations to include
            account: Mainnet account paying for the submission

        Returns:
            Receipt of the executeSignatures transaction

        Raises:
            InvalidArgument: If more than 255 signatures are requested
            ChainCallError: If reading from the sidechain or submitting fails
        """
        if collected_signatures > MAX_BUNDLE_SIGNATURES:
            raise InvalidArgument(
                f"collected_signatures cannot be greater than {MAX_BUNDLE_SIGNATURES}, got {collected_signatures}"
            )
        message = BridgeEncoder.to_bytes_safe(
            self.sidechain.call(HOME_AMB, self.sidechain_amb_address, "message", message_hash)
        )
        bundle = BridgeEncoder.encode_signature_bundle(self.collect_signatures(message_hash, collected_signatures))
        return self.mainnet.send_transaction(
            FOREIGN_AMB, self.mainnet_amb_address, "executeSignatures", message, bundle,
            account=account,
        )

    async def relay_message(self, message: BridgeMessage, account: LocalAccount) -> RelayResult:
        """
        Relay a single bridge message, reporting the outcome instead of raising.

        Chain failures end up in a FAILED result. A submission that reverts
        because a concurrent relayer got there first is reported as
        ALREADY_HANDLED.
        """
        try:
            self.ensure_not_handled(message)

            signatures = await self.wait_for_sidechain_affirmations(
                message.message_hash, self.poll_interval, self.poll_timeout
            )
            if signatures is None:
                logger.warning(f"Couldn't find affirmation for AMB msgId {message.message_id_hex}")
                return RelayResult(message=message, status=RelayStatus.NOT_AFFIRMED)

            logger.info(f"Porting msgId {message.message_id_hex} with {signatures} signature(s)")
            try:
                receipt = self.port_tx_to_mainnet(message.message_hash, signatures, account)
            except ChainCallError as submit_error:
                try:
                    handled = self.is_already_handled(message.message_id)
                except ChainCallError as e:
                    logger.warning(f"Could not re-check msgId {message.message_id_hex} after failed submission: {e}")
                    handled = False
                if handled:
                    raise AlreadyHandled(message.message_id_hex) from submit_error
                raise submit_error

        except AlreadyHandled:
            logger.warning(f"ForeignAMB has already seen msgId {message.message_id_hex}. skipping")
            return RelayResult(message=message, status=RelayStatus.ALREADY_HANDLED)
        except (ChainCallError, InvalidArgument) as e:
            logger.error(f"Failed to relay msgId {message.message_id_hex}: {e}")
            return RelayResult(message=message, status=RelayStatus.FAILED, error=e)

        logger.info(f"✓ msgId {message.message_id_hex} relayed in {receipt.tx_hash}")
        return RelayResult(
            message=message,
            status=RelayStatus.RELAYED,
            signatures=signatures,
            tx_hash=receipt.tx_hash,
        )

    def resolve_receipt(self, receipt_or_tx_hash: TransactionReceipt | str) -> TransactionReceipt:
        if isinstance(receipt_or_tx_hash, TransactionReceipt):
            return receipt_or_tx_hash
        receipt = self.sidechain.get_transaction_receipt(receipt_or_tx_hash)
        if receipt is None:
            raise NotFound(f"No sidechain transaction found for txhash {receipt_or_tx_hash}")
        return receipt

    async def port_txs_to_mainnet(
        self, receipt_or_tx_hash: TransactionReceipt | str, account: LocalAccount
    ) -> list[RelayResult]:
        """
        Relay every bridge message requested by a sidechain transaction.

        Messages are handled one after another; a failure or skip on one does
        not stop the rest.

        Args:
            receipt_or_tx_hash: Sidechain withdrawal receipt or its hash
            account: Mainnet account paying for the submissions

        Returns:
            One RelayResult per extracted message

        Raises:
            NotFound: If a hash was given and the sidechain has no receipt for it
        """
        receipt = self.resolve_receipt(receipt_or_tx_hash)
        messages = self.extract_bridge_messages(receipt)
        if not messages:
            logger.warning(f"No bridge messages found in {receipt.tx_hash}")

        results = []
        for message in messages:
            results.append(await self.relay_message(message, account))
        return results
