"""
Data union relayer package.

Replay-protected withdrawals and sidechain-to-mainnet bridge relaying for
data unions.
"""

from .bridge import BridgeRelay
from .client import DataUnionClient
from .config import ClientConfig
from .data_union import DataUnion
from .errors import (
    AlreadyHandled,
    ChainCallError,
    DataUnionError,
    InvalidArgument,
    NotFound,
    WaitTimeout,
)
from .models import BridgeMessage, RelayResult, RelayStatus, TransactionReceipt, WithdrawalRequest
from .withdrawal import WithdrawalAuthorizer

__all__ = [
    "AlreadyHandled",
    "BridgeMessage",
    "BridgeRelay",
    "ChainCallError",
    "ClientConfig",
    "DataUnion",
    "DataUnionClient",
    "DataUnionError",
    "InvalidArgument",
    "NotFound",
    "RelayResult",
    "RelayStatus",
    "TransactionReceipt",
    "WaitTimeout",
    "WithdrawalAuthorizer",
    "WithdrawalRequest",
]
__version__ = "0.1.0"
