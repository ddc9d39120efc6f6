"""Proof bundle builder: fetch, encode, verify locally, assemble"""

from typing import Any, Dict, Optional

from eth_utils import to_checksum_address
from hexbytes import HexBytes

from safe_relay_toolkit.proofs.generators.block_info import (
    compute_block_hash,
    encode_block_header,
)
from safe_relay_toolkit.proofs.generators.storage_key import (
    derive_storage_key,
)
from safe_relay_toolkit.proofs.types import AccountRecord, ProofBundle
from safe_relay_toolkit.proofs.verifier import (
    verify_account_proof,
    verify_storage_proof,
)
from safe_relay_toolkit.shared.exceptions import (
    EncodingError,
    ProofInvalid,
    VerificationFailed,
)
from safe_relay_toolkit.shared.logging import get_logger
from safe_relay_toolkit.shared.retry import RPC_RETRY_CONFIG, RetryConfig
from safe_relay_toolkit.shared.services.web3_service import Web3Service
from safe_relay_toolkit.utils.blockchain import (
    reencode_decoded_nodes,
    to_int,
)

_logger = get_logger(__name__)


def assemble_proof_bundle(
    block: Dict[str, Any],
    raw_proof: Dict[str, Any],
    account_address: str,
    storage_key: bytes,
    claimed_nonce: Optional[int] = None,
) -> ProofBundle:
    """
    Verify a fetched block and eth_getProof response, then build the bundle.

    Args:
        block: Block as returned by eth_getBlockByNumber
        raw_proof: Response of eth_getProof for `account_address` and `storage_key`
        account_address: Account whose storage is proven
        storage_key: Storage slot proven (not yet hashed into a trie path)
        claimed_nonce: Nonce to claim on the destination; defaults to the
            proven storage value

    Returns:
        ProofBundle: Wire-ready proof bundle

    Raises:
        VerificationFailed: If the header, account or storage layer does not verify
    """
    try:
        block_header_rlp = encode_block_header(block)
    except EncodingError as e:
        raise VerificationFailed("header", e.message) from e

    block_hash = compute_block_hash(block_header_rlp)
    reported = block.get("hash")
    if reported is not None and bytes(HexBytes(reported)) != block_hash:
        raise VerificationFailed(
            "header",
            f"encoded header hashes to 0x{block_hash.hex()}, block reports "
            f"0x{bytes(HexBytes(reported)).hex()}",
        )

    try:
        claimed_account = AccountRecord.from_rpc(raw_proof)
        account = verify_account_proof(
            bytes(HexBytes(block["stateRoot"])),
            account_address,
            raw_proof["accountProof"],
            claimed_account,
        )
    except (ProofInvalid, EncodingError) as e:
        raise VerificationFailed("account", e.message) from e

    storage_proofs = raw_proof["storageProof"]
    if len(storage_proofs) != 1:
        raise VerificationFailed(
            "storage",
            f"expected one storage proof, got {len(storage_proofs)}",
        )
    storage_proof = storage_proofs[0]
    if storage_proof.get("key") is not None and to_int(
        storage_proof["key"]
    ) != int.from_bytes(storage_key, "big"):
        raise VerificationFailed(
            "storage", "storage proof was returned for another key"
        )

    try:
        value = verify_storage_proof(
            account.storage_root,
            storage_key,
            storage_proof["proof"],
            storage_proof["value"],
        )
        account_proof_rlp = reencode_decoded_nodes(raw_proof["accountProof"])
        storage_proof_rlp = reencode_decoded_nodes(storage_proof["proof"])
    except (ProofInvalid, EncodingError) as e:
        raise VerificationFailed("storage", e.message) from e

    return ProofBundle(
        block_number=to_int(block["number"]),
        block_hash=block_hash,
        account_address=to_checksum_address(account_address),
        storage_key=bytes(storage_key),
        account_nonce=value if claimed_nonce is None else claimed_nonce,
        block_header_rlp=block_header_rlp,
        account_proof_rlp=account_proof_rlp,
        storage_proof_rlp=storage_proof_rlp,
    )


def build_proof_bundle(
    web3_service: Web3Service,
    block_number: int,
    account_address: str,
    key_address: str,
    slot_index: int = 0,
    claimed_nonce: Optional[int] = None,
    retry_config: RetryConfig = RPC_RETRY_CONFIG,
) -> ProofBundle:
    """
    Build the proof that `account_address` stored a value for `key_address`
    at mapping slot `slot_index` at `block_number`.

    RPC reads are retried; a verification failure is not.
    """
    storage_key = derive_storage_key(key_address, slot_index)

    block = retry_config.run(
        web3_service.get_block,
        block_number,
        operation_name=f"get_block_{block_number}",
    )
    raw_proof = retry_config.run(
        web3_service.get_proof,
        account_address,
        [storage_key],
        block_number,
        operation_name=f"get_proof_{account_address[:10]}",
    )

    bundle = assemble_proof_bundle(
        block, raw_proof, account_address, storage_key, claimed_nonce
    )
    _logger.info(
        f"[{web3_service.network}] proof bundle built for {account_address} "
        f"at block {bundle.block_number} (nonce {bundle.account_nonce})"
    )
    return bundle
