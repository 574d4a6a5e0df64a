"""
Error types for the data union relayer.

Chain failures, poll timeouts and bad input are kept apart so callers can
decide which of them are worth retrying.
"""


class DataUnionError(Exception):
    """Base class for all data union relayer errors."""


class ChainCallError(DataUnionError):
    """An RPC call or transaction failed, or the contract reverted."""


class WaitTimeout(DataUnionError, TimeoutError):
    """A condition did not become true before the deadline.

    This is an expected state ("not yet"), the caller may poll again later.
    """


class InvalidArgument(DataUnionError, ValueError):
    """Caller input rejected before any network call was made."""


class NotFound(DataUnionError, LookupError):
    """No transaction receipt, member or message exists for the given key."""


class AlreadyHandled(DataUnionError):
    """The mainnet bridge already executed or failed this message."""

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"Bridge message {message_id} already handled on mainnet")
