"""
Safe multisig client: transaction data, EIP-712 hashing, signing, execution.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import encode
from eth_account.messages import encode_defunct
from eth_utils import keccak, to_canonical_address, to_checksum_address
from hexbytes import HexBytes
from web3.logs import DISCARD

from safe_relay_toolkit.relay.types import ExecutedTransaction, SafeTxParams
from safe_relay_toolkit.shared.constants import GlobalConstants, RelayConstants
from safe_relay_toolkit.shared.logging import get_logger
from safe_relay_toolkit.shared.retry import RPC_RETRY_CONFIG
from safe_relay_toolkit.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)

DOMAIN_SEPARATOR_TYPEHASH = keccak(
    text="EIP712Domain(uint256 chainId,address verifyingContract)"
)
SAFE_TX_TYPEHASH = keccak(
    text=(
        "SafeTx(address to,uint256 value,bytes data,uint8 operation,"
        "uint256 safeTxGas,uint256 baseGas,uint256 gasPrice,"
        "address gasToken,address refundReceiver,uint256 nonce)"
    )
)

# eth_sign signatures are flagged by v + 4 (v in {31, 32})
ETH_SIGN_V_OFFSET = 4


@dataclass(frozen=True)
class SafeSignature:
    signer: str
    data: bytes


@dataclass(frozen=True)
class SafeTransactionData:
    """Fields of a Safe transaction, as hashed by the Safe contract."""

    to: str
    value: int
    data: bytes
    operation: int
    safe_tx_gas: int
    base_gas: int
    gas_price: int
    gas_token: str
    refund_receiver: str
    nonce: int

    def safe_tx_hash(self, chain_id: int, safe_address: str) -> bytes:
        """EIP-712 hash of the transaction for a Safe (>= 1.3.0)."""
        domain_separator = keccak(
            encode(
                ["bytes32", "uint256", "address"],
                [DOMAIN_SEPARATOR_TYPEHASH, chain_id, safe_address],
            )
        )
        struct_hash = keccak(
            encode(
                [
                    "bytes32",
                    "address",
                    "uint256",
                    "bytes32",
                    "uint8",
                    "uint256",
                    "uint256",
                    "uint256",
                    "address",
                    "address",
                    "uint256",
                ],
                [
                    SAFE_TX_TYPEHASH,
                    self.to,
                    self.value,
                    keccak(self.data),
                    self.operation,
                    self.safe_tx_gas,
                    self.base_gas,
                    self.gas_price,
                    self.gas_token,
                    self.refund_receiver,
                    self.nonce,
                ],
            )
        )
        return keccak(b"\x19\x01" + domain_separator + struct_hash)

    def to_safe_tx_params(self, signatures: bytes) -> SafeTxParams:
        return SafeTxParams(
            self.to,
            self.value,
            self.data,
            self.operation,
            self.safe_tx_gas,
            self.base_gas,
            self.gas_price,
            self.gas_token,
            self.refund_receiver,
            bytes(signatures),
        )


def pre_validated_signature(owner: str) -> bytes:
    """Signature accepted when the owner itself calls execTransaction (v = 1)."""
    return (
        b"\x00" * 12
        + to_canonical_address(owner)
        + b"\x00" * 32
        + b"\x01"
    )


def encode_signatures(signatures: Sequence[SafeSignature]) -> bytes:
    """Concatenate signatures ordered by signer, as checkSignatures expects."""
    ordered = sorted(
        signatures,
        key=lambda s: int.from_bytes(to_canonical_address(s.signer), "big"),
    )
    return b"".join(s.data for s in ordered)


class Web3SafeClient:
    """Builds, signs and executes transactions of one Safe on one chain."""

    def __init__(self, web3_service: Web3Service, safe_address: str):
        self.web3_service = web3_service
        self.safe_address = to_checksum_address(safe_address)
        self.contract = web3_service.get_contract(self.safe_address, "safe")

    def get_nonce(self) -> int:
        return RPC_RETRY_CONFIG.run(
            self.contract.functions.nonce().call,
            operation_name=f"safe_nonce_{self.safe_address[:10]}",
        )

    def create_transaction(
        self,
        to: str,
        value: int = 0,
        data: bytes = b"",
        operation: int = RelayConstants.CALL,
        safe_tx_gas: int = 0,
        base_gas: int = 0,
        gas_price: int = 0,
        gas_token: str = GlobalConstants.ZERO_ADDRESS,
        refund_receiver: Optional[str] = None,
        nonce: Optional[int] = None,
    ) -> SafeTransactionData:
        """Transaction data, defaulting the nonce to the Safe's current nonce."""
        return SafeTransactionData(
            to=to_checksum_address(to),
            value=value,
            data=bytes(HexBytes(data)),
            operation=operation,
            safe_tx_gas=safe_tx_gas,
            base_gas=base_gas,
            gas_price=gas_price,
            gas_token=to_checksum_address(gas_token),
            refund_receiver=to_checksum_address(
                refund_receiver or self.web3_service.address
            ),
            nonce=self.get_nonce() if nonce is None else nonce,
        )

    def get_transaction_hash(self, transaction: SafeTransactionData) -> bytes:
        return transaction.safe_tx_hash(
            self.web3_service.chain_id, self.safe_address
        )

    def sign_transaction_hash(self, safe_tx_hash: bytes) -> SafeSignature:
        """Sign a Safe transaction hash eth_sign style with the local signer."""
        account = self.web3_service.account
        if account is None:
            raise ValueError(
                f"No signer configured for {self.web3_service.network}"
            )

        signed = account.sign_message(encode_defunct(primitive=safe_tx_hash))
        data = (
            signed.r.to_bytes(32, "big")
            + signed.s.to_bytes(32, "big")
            + bytes([signed.v + ETH_SIGN_V_OFFSET])
        )
        return SafeSignature(signer=account.address, data=data)

    def execute_transaction(
        self,
        transaction: SafeTransactionData,
        signatures: Optional[List[SafeSignature]] = None,
        gas_limit: Optional[int] = None,
    ) -> ExecutedTransaction:
        """
        Broadcast execTransaction.

        Without collected signatures, the sender's pre-validated signature is
        used, which is enough for a threshold-one Safe owned by the sender.
        """
        encoded = (
            encode_signatures(signatures)
            if signatures
            else pre_validated_signature(self.web3_service.address)
        )
        params = transaction.to_safe_tx_params(encoded)
        tx_hash = self.web3_service.send_transaction(
            self.contract.functions.execTransaction(*params), gas_limit
        )
        _logger.info(
            f"[{self.web3_service.network}] Safe {self.safe_address} "
            f"execTransaction {tx_hash.hex()}"
        )
        return ExecutedTransaction(tx_hash, self.web3_service)

    def execution_succeeded(self, receipt: Dict[str, Any]) -> bool:
        """
        Whether an included execTransaction also ran its inner call.

        With a non-zero safeTxGas a failing inner call does not revert the
        transaction: the receipt status stays 1 and the Safe emits
        ExecutionFailure instead of ExecutionSuccess.
        """
        if self._own_events("ExecutionFailure", receipt):
            return False
        return bool(self._own_events("ExecutionSuccess", receipt))

    def _own_events(
        self, event_name: str, receipt: Dict[str, Any]
    ) -> List[Any]:
        event = getattr(self.contract.events, event_name)()
        return [
            log
            for log in event.process_receipt(receipt, errors=DISCARD)
            if to_checksum_address(log["address"]) == self.safe_address
        ]
