"""
Two-phase cross-chain relay.

A relay signs a Safe transaction on the destination chain, runs it through
the Peripheral on the source chain, proves the Peripheral's storage at the
inclusion block and finally hands the proof to the ControllerModule on the
destination chain:

    IDLE -> AWAITING_TARGET_SIGNATURE -> EXECUTING_ON_SOURCE
         -> AWAITING_RECEIPT -> BUILDING_PROOF
         -> SUBMITTING_TO_DESTINATION -> COMPLETED

Any non-terminal state may move to FAILED. Each session is single-shot: a
failed relay is retried by starting a new session, never by replaying a
phase with a stale signature or block number.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from safe_relay_toolkit.proofs.generators.proof_bundle import (
    build_proof_bundle,
)
from safe_relay_toolkit.proofs.types import ProofBundle
from safe_relay_toolkit.relay.contracts import (
    ControllerModuleContract,
    PeripheralContract,
)
from safe_relay_toolkit.relay.safe import (
    SafeSignature,
    SafeTransactionData,
    Web3SafeClient,
)
from safe_relay_toolkit.relay.types import RelayAction
from safe_relay_toolkit.shared.constants import GlobalConstants, RelayConstants
from safe_relay_toolkit.shared.exceptions import (
    DestinationRejected,
    ExecutionReverted,
    InvalidTransition,
    SigningFailed,
    VerificationFailed,
)
from safe_relay_toolkit.shared.logging import get_logger
from safe_relay_toolkit.shared.results import (
    ErrorSeverity,
    ProcessingError,
    Result,
)
from safe_relay_toolkit.shared.retry import DEFAULT_RETRYABLE_EXCEPTIONS
from safe_relay_toolkit.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)


class RelayState(Enum):
    IDLE = "idle"
    AWAITING_TARGET_SIGNATURE = "awaiting_target_signature"
    EXECUTING_ON_SOURCE = "executing_on_source"
    AWAITING_RECEIPT = "awaiting_receipt"
    BUILDING_PROOF = "building_proof"
    SUBMITTING_TO_DESTINATION = "submitting_to_destination"
    COMPLETED = "completed"
    FAILED = "failed"


_HAPPY_PATH = [
    RelayState.IDLE,
    RelayState.AWAITING_TARGET_SIGNATURE,
    RelayState.EXECUTING_ON_SOURCE,
    RelayState.AWAITING_RECEIPT,
    RelayState.BUILDING_PROOF,
    RelayState.SUBMITTING_TO_DESTINATION,
    RelayState.COMPLETED,
]

TERMINAL_STATES = frozenset((RelayState.COMPLETED, RelayState.FAILED))


class FailureReason(Enum):
    SIGNING_FAILED = "signing_failed"
    EXECUTION_REVERTED = "execution_reverted"
    PROOF_INVALID = "proof_invalid"
    DESTINATION_REJECTED = "destination_rejected"
    # Chain unreachable after retries; nothing was proven or rejected
    RPC_UNAVAILABLE = "rpc_unavailable"


@dataclass
class RelayFailure:
    reason: FailureReason
    phase: RelayState
    message: str
    exception: Optional[Exception] = None


@dataclass
class RelaySession:
    """
    Transient state of one relay attempt.

    Mutated forward-only by the orchestrator and discarded afterwards. On
    failure the pending signature and any proof bundle are dropped so that
    nothing half-built leaves the session.
    """

    source: Web3Service
    destination: Web3Service
    action: RelayAction
    state: RelayState = RelayState.IDLE
    peripheral_address: Optional[str] = None
    source_safe_address: Optional[str] = None
    main_safe_address: Optional[str] = None
    destination_transaction: Optional[SafeTransactionData] = None
    pending_signature: Optional[SafeSignature] = None
    claimed_nonce: Optional[int] = None
    source_tx_hash: Optional[HexBytes] = None
    source_block_number: Optional[int] = None
    proof_bundle: Optional[ProofBundle] = None
    destination_tx_hash: Optional[HexBytes] = None
    failure: Optional[RelayFailure] = None
    history: List[RelayState] = field(
        default_factory=lambda: [RelayState.IDLE]
    )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.state == RelayState.COMPLETED

    def transition(self, state: RelayState) -> None:
        if self.is_terminal:
            raise InvalidTransition(
                f"Session already {self.state.value}", self.state.value
            )
        if state != RelayState.FAILED:
            expected = _HAPPY_PATH[_HAPPY_PATH.index(self.state) + 1]
            if state != expected:
                raise InvalidTransition(
                    f"Cannot move from {self.state.value} to {state.value}",
                    self.state.value,
                )

        _logger.info(f"Relay {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(
        self,
        reason: FailureReason,
        message: str,
        exception: Optional[Exception] = None,
    ) -> None:
        phase = self.state
        self.transition(RelayState.FAILED)
        self.failure = RelayFailure(reason, phase, message, exception)
        self.pending_signature = None
        self.proof_bundle = None
        _logger.error(
            f"Relay failed during {phase.value} ({reason.value}): {message}"
        )

    def context(self) -> Dict[str, Any]:
        return {
            "source": self.source.network,
            "destination": self.destination.network,
            "state": self.state.value,
            "source_tx": self.source_tx_hash.hex()
            if self.source_tx_hash
            else None,
            "source_block": self.source_block_number,
            "destination_tx": self.destination_tx_hash.hex()
            if self.destination_tx_hash
            else None,
        }

    def to_result(self) -> Result["RelaySession"]:
        """Map the finished session onto a Result."""
        if self.succeeded:
            return Result.ok(self)
        if self.failure is None:
            return Result.fail_with_message(
                source="relay",
                message=f"Relay not finished (state {self.state.value})",
                severity=ErrorSeverity.ERROR,
                context=self.context(),
            )
        return Result.fail(
            ProcessingError(
                source=self.failure.phase.value,
                message=f"{self.failure.reason.value}: {self.failure.message}",
                severity=ErrorSeverity.CRITICAL,
                context=self.context(),
                exception=self.failure.exception,
            )
        )


_FAILURE_REASONS = (
    (SigningFailed, FailureReason.SIGNING_FAILED),
    (ExecutionReverted, FailureReason.EXECUTION_REVERTED),
    (VerificationFailed, FailureReason.PROOF_INVALID),
    (DestinationRejected, FailureReason.DESTINATION_REJECTED),
    (DEFAULT_RETRYABLE_EXCEPTIONS, FailureReason.RPC_UNAVAILABLE),
)


def _receipt_succeeded(receipt: Dict[str, Any]) -> bool:
    return receipt is not None and receipt.get("status") == 1


class RelayOrchestrator:
    """
    Drives relay sessions between a source and a destination chain.

    The orchestrator keeps no per-session state: every chain call receives
    the context handle of the chain it targets, so sessions using distinct
    handles can run concurrently.

    Args:
        source: Context of the chain hosting the source Safe and Peripheral
        destination: Context of the chain hosting the main Safe and ControllerModule
        controller_module_address: ControllerModule on the destination chain
        storage_key_address: Mapping key of the proven Peripheral slot
            (defaults to the main Safe)
        storage_slot: Base slot of the proven Peripheral mapping
    """

    def __init__(
        self,
        source: Web3Service,
        destination: Web3Service,
        controller_module_address: str,
        storage_key_address: Optional[str] = None,
        storage_slot: int = RelayConstants.PERIPHERAL_STORAGE_SLOT,
        safe_client_factory: Callable[..., Any] = Web3SafeClient,
        controller_factory: Callable[..., Any] = ControllerModuleContract,
        peripheral_factory: Callable[..., Any] = PeripheralContract,
        proof_builder: Callable[..., ProofBundle] = build_proof_bundle,
        receipt_timeout: int = 180,
    ):
        self.source = source
        self.destination = destination
        self.controller_module_address = to_checksum_address(
            controller_module_address
        )
        self.storage_key_address = storage_key_address
        self.storage_slot = storage_slot
        self.safe_client_factory = safe_client_factory
        self.controller_factory = controller_factory
        self.peripheral_factory = peripheral_factory
        self.proof_builder = proof_builder
        self.receipt_timeout = receipt_timeout

    def relay(self, action: RelayAction) -> RelaySession:
        """Run one relay attempt; the returned session is terminal."""
        session = RelaySession(
            source=self.source, destination=self.destination, action=action
        )
        phases = (
            (
                RelayState.AWAITING_TARGET_SIGNATURE,
                self._sign_on_destination,
                FailureReason.SIGNING_FAILED,
            ),
            (
                RelayState.EXECUTING_ON_SOURCE,
                self._execute_on_source,
                FailureReason.EXECUTION_REVERTED,
            ),
            (
                RelayState.BUILDING_PROOF,
                self._build_proof,
                FailureReason.PROOF_INVALID,
            ),
            (
                RelayState.SUBMITTING_TO_DESTINATION,
                self._submit_to_destination,
                FailureReason.DESTINATION_REJECTED,
            ),
        )

        for state, phase, default_reason in phases:
            session.transition(state)
            try:
                phase(session)
            except Exception as e:
                reason = next(
                    (r for t, r in _FAILURE_REASONS if isinstance(e, t)),
                    default_reason,
                )
                session.fail(reason, str(e), e)
                return session

        session.transition(RelayState.COMPLETED)
        _logger.info(
            f"Relay completed: source tx {session.source_tx_hash.hex()}, "
            f"destination tx {session.destination_tx_hash.hex()}"
        )
        return session

    def _sign_on_destination(self, session: RelaySession) -> None:
        controller = self.controller_factory(
            self.destination, self.controller_module_address
        )
        session.peripheral_address = controller.peripheral()
        session.source_safe_address = controller.source_safe()
        session.main_safe_address = controller.main_safe()

        main_safe = self.safe_client_factory(
            self.destination, session.main_safe_address
        )
        action = session.action
        transaction = main_safe.create_transaction(
            to=action.to,
            value=action.value,
            data=action.data,
            operation=action.operation,
            safe_tx_gas=RelayConstants.SAFE_TX_GAS,
            base_gas=RelayConstants.BASE_GAS,
            gas_price=RelayConstants.GAS_PRICE,
            gas_token=GlobalConstants.ZERO_ADDRESS,
            refund_receiver=action.refund_receiver
            or self.destination.address,
        )
        try:
            safe_tx_hash = main_safe.get_transaction_hash(transaction)
            signature = main_safe.sign_transaction_hash(safe_tx_hash)
        except Exception as e:
            raise SigningFailed(
                f"Could not sign Safe transaction: {e}",
                RelayState.AWAITING_TARGET_SIGNATURE.value,
            ) from e

        session.destination_transaction = transaction
        session.pending_signature = signature

    def _execute_on_source(self, session: RelaySession) -> None:
        peripheral = self.peripheral_factory(
            self.source, session.peripheral_address
        )
        session.claimed_nonce = peripheral.nonce()

        params = session.destination_transaction.to_safe_tx_params(
            session.pending_signature.data
        )
        source_safe = self.safe_client_factory(
            self.source, session.source_safe_address
        )
        transaction = source_safe.create_transaction(
            to=peripheral.address,
            value=0,
            data=peripheral.encode_exec_transaction(params),
            operation=RelayConstants.CALL,
            safe_tx_gas=RelayConstants.SOURCE_SAFE_TX_GAS,
            base_gas=0,
            gas_price=0,
            gas_token=GlobalConstants.ZERO_ADDRESS,
            refund_receiver=self.source.address,
        )

        try:
            executed = source_safe.execute_transaction(transaction)
        except ContractLogicError as e:
            raise ExecutionReverted(
                f"Source execution reverted: {e}",
                RelayState.EXECUTING_ON_SOURCE.value,
            ) from e
        session.source_tx_hash = executed.tx_hash
        session.transition(RelayState.AWAITING_RECEIPT)

        receipt = executed.wait(self.receipt_timeout)
        if not _receipt_succeeded(receipt):
            raise ExecutionReverted(
                f"Source transaction {executed.tx_hash.hex()} reverted",
                RelayState.AWAITING_RECEIPT.value,
            )
        if not source_safe.execution_succeeded(receipt):
            raise ExecutionReverted(
                f"Source Safe {source_safe.safe_address} did not execute the "
                f"Peripheral call in {executed.tx_hash.hex()}",
                RelayState.AWAITING_RECEIPT.value,
            )
        session.source_block_number = receipt["blockNumber"]

    def _build_proof(self, session: RelaySession) -> None:
        session.proof_bundle = self.proof_builder(
            self.source,
            session.source_block_number,
            session.peripheral_address,
            self.storage_key_address or session.main_safe_address,
            self.storage_slot,
            session.claimed_nonce,
        )

    def _submit_to_destination(self, session: RelaySession) -> None:
        controller = self.controller_factory(
            self.destination, self.controller_module_address
        )
        params = session.destination_transaction.to_safe_tx_params(
            session.pending_signature.data
        )

        try:
            executed = controller.exec_transaction(
                params,
                session.proof_bundle.to_proof_struct(),
                gas_limit=RelayConstants.DESTINATION_GAS_LIMIT,
            )
        except ContractLogicError as e:
            raise DestinationRejected(
                f"ControllerModule rejected the proof: {e}",
                RelayState.SUBMITTING_TO_DESTINATION.value,
            ) from e
        session.destination_tx_hash = executed.tx_hash

        receipt = executed.wait(self.receipt_timeout)
        if not _receipt_succeeded(receipt):
            raise DestinationRejected(
                f"Destination transaction {executed.tx_hash.hex()} reverted",
                RelayState.SUBMITTING_TO_DESTINATION.value,
            )
