from safe_relay_toolkit.relay.safe import (
    SafeSignature,
    SafeTransactionData,
    Web3SafeClient,
)
from safe_relay_toolkit.relay.session import (
    FailureReason,
    RelayOrchestrator,
    RelaySession,
    RelayState,
)
from safe_relay_toolkit.relay.types import RelayAction, SafeTxParams

__all__ = [
    "RelayOrchestrator",
    "RelaySession",
    "RelayState",
    "FailureReason",
    "RelayAction",
    "SafeTxParams",
    "SafeTransactionData",
    "SafeSignature",
    "Web3SafeClient",
]
