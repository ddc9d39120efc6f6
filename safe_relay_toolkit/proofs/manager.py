from typing import Optional

from safe_relay_toolkit.proofs.generators.block_info import get_block_info
from safe_relay_toolkit.proofs.generators.proof_bundle import (
    build_proof_bundle,
)
from safe_relay_toolkit.proofs.types import BlockInfo, ProofBundle
from safe_relay_toolkit.shared.exceptions import VerificationFailed
from safe_relay_toolkit.shared.logging import get_logger
from safe_relay_toolkit.shared.results import (
    ErrorSeverity,
    ProcessingError,
    Result,
)
from safe_relay_toolkit.shared.retry import retry_sync_operation
from safe_relay_toolkit.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)


class RelayProofs:
    """A global class for generating and checking relay proofs on one chain"""

    def __init__(self, web3_service: Web3Service):
        self.web3_service = web3_service

    @classmethod
    def for_network(cls, network: str) -> "RelayProofs":
        return cls(Web3Service.from_network(network, with_signer=False))

    def get_block_info(
        self, block_number: int, max_retries: int = 3
    ) -> Result[BlockInfo]:
        """
        Get block info for a given block number.

        Args:
            block_number: The block number
            max_retries: Number of retries for RPC calls

        Returns:
            Result[BlockInfo]: Success with block info, or failure with error
        """
        try:
            block_info = retry_sync_operation(
                get_block_info,
                self.web3_service,
                block_number,
                max_attempts=max_retries,
                base_delay=1.0,
                operation_name=f"block_info_{block_number}",
            )
            return Result.ok(block_info)
        except Exception as e:
            return Result.fail(
                ProcessingError(
                    source="block_info",
                    message=f"Error getting block info: {str(e)}",
                    severity=ErrorSeverity.ERROR,
                    context={
                        "network": self.web3_service.network,
                        "block_number": block_number,
                    },
                    exception=e,
                )
            )

    def get_proof_bundle(
        self,
        block_number: int,
        account_address: str,
        key_address: str,
        slot_index: int = 0,
        claimed_nonce: Optional[int] = None,
    ) -> Result[ProofBundle]:
        """
        Build and locally verify a proof bundle.

        Args:
            block_number: Source chain block to prove against
            account_address: Contract whose storage is proven
            key_address: Mapping key of the proven slot
            slot_index: Base slot of the mapping
            claimed_nonce: Nonce claimed on the destination (defaults to the proven value)

        Returns:
            Result[ProofBundle]: Success with the bundle, or failure with error
        """
        context = {
            "network": self.web3_service.network,
            "block": block_number,
            "account": account_address,
            "key_address": key_address,
            "slot": slot_index,
        }

        try:
            bundle = build_proof_bundle(
                self.web3_service,
                block_number,
                account_address,
                key_address,
                slot_index,
                claimed_nonce,
            )
            return Result.ok(bundle)
        except VerificationFailed as e:
            _logger.error(f"Proof bundle rejected: {e.message}")
            return Result.fail(
                ProcessingError(
                    source=f"{e.layer}_proof",
                    message=e.message,
                    severity=ErrorSeverity.CRITICAL,
                    context=context,
                    exception=e,
                )
            )
        except Exception as e:
            return Result.fail(
                ProcessingError(
                    source="proof_bundle",
                    message=f"Error building proof bundle: {str(e)}",
                    severity=ErrorSeverity.ERROR,
                    context=context,
                    exception=e,
                )
            )
