"""
Type definitions for cross-chain relays.
"""

from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional

from hexbytes import HexBytes

from safe_relay_toolkit.shared.constants import RelayConstants
from safe_relay_toolkit.shared.services.web3_service import Web3Service


class SafeTxParams(NamedTuple):
    """SafeTxParams argument of Peripheral/ControllerModule.execTransaction."""

    to: str
    value: int
    data: bytes
    operation: int
    safe_tx_gas: int
    base_gas: int
    gas_price: int
    gas_token: str
    refund_receiver: str
    signatures: bytes


@dataclass(frozen=True)
class RelayAction:
    """The call the destination Safe should make once the relay completes."""

    to: str
    value: int = 0
    data: bytes = b""
    operation: int = RelayConstants.CALL
    refund_receiver: Optional[str] = None


class ExecutedTransaction:
    """A broadcast transaction whose receipt can be awaited."""

    def __init__(self, tx_hash: HexBytes, web3_service: Web3Service):
        self.tx_hash = HexBytes(tx_hash)
        self.web3_service = web3_service

    def wait(self, timeout: int = 180) -> Dict[str, Any]:
        return self.web3_service.wait_for_receipt(self.tx_hash, timeout)
