"""
Type definitions for Safe relay proofs.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, TypedDict

import rlp
from hexbytes import HexBytes
from rlp.exceptions import DecodingError

from safe_relay_toolkit.shared.exceptions import EncodingError
from safe_relay_toolkit.utils.blockchain import to_int, to_minimal_bytes

# =============================================================================
# BLOCK TYPES
# =============================================================================


class BlockInfo(TypedDict):
    """Block information for proof verification."""

    block_number: int  # Block number
    block_hash: str  # Block hash (hex string)
    block_timestamp: int  # Block timestamp
    rlp_block_header: str  # RLP encoded block header


# =============================================================================
# ACCOUNT TYPES
# =============================================================================


@dataclass(frozen=True)
class AccountRecord:
    """The (nonce, balance, storage root, code hash) leaf of the state trie."""

    nonce: int
    balance: int
    storage_root: bytes
    code_hash: bytes

    def to_rlp_list(self) -> List[bytes]:
        return [
            to_minimal_bytes(self.nonce),
            to_minimal_bytes(self.balance),
            bytes(self.storage_root),
            bytes(self.code_hash),
        ]

    def encode(self) -> bytes:
        """RLP encoding as stored in the state trie"""
        return rlp.encode(self.to_rlp_list())

    @classmethod
    def decode(cls, encoded: bytes) -> "AccountRecord":
        try:
            fields = rlp.decode(encoded)
        except DecodingError as e:
            raise EncodingError(f"Malformed account record: {e}") from e
        if (
            not isinstance(fields, list)
            or len(fields) != 4
            or any(not isinstance(f, bytes) for f in fields)
        ):
            raise EncodingError("Account record must be a list of 4 strings")
        nonce, balance, storage_root, code_hash = fields
        return cls(
            nonce=to_int(nonce),
            balance=to_int(balance),
            storage_root=storage_root,
            code_hash=code_hash,
        )

    @classmethod
    def from_rpc(cls, raw_proof: Dict[str, Any]) -> "AccountRecord":
        """Build the record claimed by an eth_getProof response"""
        return cls(
            nonce=to_int(raw_proof["nonce"]),
            balance=to_int(raw_proof["balance"]),
            storage_root=bytes(HexBytes(raw_proof["storageHash"])),
            code_hash=bytes(HexBytes(raw_proof["codeHash"])),
        )


# =============================================================================
# PROOF TYPES
# =============================================================================


class ProofStruct(NamedTuple):
    """Proof argument of ControllerModule.execTransaction."""

    block_number: int
    nonce: int
    block_header_rlp: bytes
    account_proof_rlp: bytes
    storage_proof_rlp: bytes


@dataclass(frozen=True)
class ProofBundle:
    """
    Everything the destination verifier needs for one relay.

    Built from a single source-chain block and consumed once by the
    destination submission.
    """

    block_number: int
    block_hash: bytes
    account_address: str
    storage_key: bytes
    account_nonce: int  # Nonce claimed at proof time
    block_header_rlp: bytes
    account_proof_rlp: bytes
    storage_proof_rlp: bytes

    def to_proof_struct(self) -> ProofStruct:
        return ProofStruct(
            self.block_number,
            self.account_nonce,
            self.block_header_rlp,
            self.account_proof_rlp,
            self.storage_proof_rlp,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            "block_number": self.block_number,
            "block_hash": "0x" + self.block_hash.hex(),
            "account_address": self.account_address,
            "storage_key": "0x" + self.storage_key.hex(),
            "nonce": self.account_nonce,
            "block_header_rlp": "0x" + self.block_header_rlp.hex(),
            "account_proof_rlp": "0x" + self.account_proof_rlp.hex(),
            "storage_proof_rlp": "0x" + self.storage_proof_rlp.hex(),
        }
