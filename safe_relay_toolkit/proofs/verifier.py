"""
Merkle-Patricia proof verification.

Mirrors what the on-chain verifier recomputes: starting from a root hash,
each raw proof node must hash to the reference held by its parent, and the
nibbles of the key select the path through branch, extension and leaf
nodes. Verification is pure: no RPC access, no trie storage.
"""

from typing import Any, List, Sequence, Tuple, Union

import rlp
from eth_utils import keccak
from hexbytes import HexBytes
from rlp.exceptions import DecodingError

from safe_relay_toolkit.proofs.generators.storage_key import (
    account_trie_path,
    storage_trie_path,
)
from safe_relay_toolkit.proofs.types import AccountRecord
from safe_relay_toolkit.shared.exceptions import EncodingError, ProofInvalid
from safe_relay_toolkit.utils.blockchain import to_int, to_minimal_bytes

BLANK_NODE = b""
BLANK_ROOT = keccak(rlp.encode(b""))

BRANCH_WIDTH = 17
LEAF_OR_EXTENSION_WIDTH = 2

RawNode = Union[bytes, str]


def bytes_to_nibble_list(data: bytes) -> List[int]:
    """Split bytes into 4-bit nibbles, high nibble first."""
    nibbles = []
    for byte in data:
        nibbles.append((byte & 0xF0) >> 4)
        nibbles.append(byte & 0x0F)
    return nibbles


def decode_compact_path(encoded: bytes) -> Tuple[List[int], bool]:
    """
    Decode a hex-prefix encoded path.

    The high nibble of the first byte holds two flags: bit 1 marks a leaf,
    bit 0 an odd number of nibbles (the odd first nibble sits in the low
    half of the first byte).

    Returns:
        Tuple[List[int], bool]: The path nibbles and whether the node is a leaf.
    """
    if not encoded:
        raise ProofInvalid("Empty hex-prefix path")

    nibbles = bytes_to_nibble_list(encoded)
    flag = nibbles[0]
    if flag > 3:
        raise ProofInvalid(f"Invalid hex-prefix flag: {flag}")

    is_leaf = flag & 2 == 2
    if flag & 1:
        return nibbles[1:], is_leaf
    if nibbles[1] != 0:
        raise ProofInvalid("Non-zero padding nibble in even hex-prefix path")
    return nibbles[2:], is_leaf


def _decode_node(raw: bytes) -> Any:
    try:
        node = rlp.decode(raw)
    except DecodingError as e:
        raise ProofInvalid(f"Malformed proof node: {e}") from e
    if not isinstance(node, list):
        raise ProofInvalid("Proof node is not an RLP list")
    return node


def verify_proof(
    root_hash: bytes,
    key: bytes,
    proof: Sequence[RawNode],
    allow_exclusion: bool = False,
) -> bytes:
    """
    Walk a proof and return the value bound to `key` under `root_hash`.

    Args:
        root_hash: Root of the trie (32 bytes)
        key: Trie path, already hashed for secure tries
        proof: Raw RLP nodes, root first
        allow_exclusion: Accept a proof that the key is absent and return b""

    Returns:
        bytes: The (still RLP-encoded) value stored at the leaf

    Raises:
        ProofInvalid: On any hash mismatch, malformed node, unresolved key
            or unused trailing node.
    """
    raw_nodes = [bytes(HexBytes(node)) for node in proof]
    root_hash = bytes(HexBytes(root_hash))
    path = bytes_to_nibble_list(bytes(HexBytes(key)))

    if not raw_nodes:
        if root_hash == BLANK_ROOT and allow_exclusion:
            return BLANK_NODE
        raise ProofInvalid("Empty proof")

    def _absent(reason: str, index: int) -> bytes:
        if index != len(raw_nodes) - 1:
            raise ProofInvalid(
                f"Proof has {len(raw_nodes) - index - 1} unused trailing node(s)"
            )
        if not allow_exclusion:
            raise ProofInvalid(f"Key not present in trie: {reason}")
        return BLANK_NODE

    expected_ref = root_hash
    position = 0

    for index, raw in enumerate(raw_nodes):
        if keccak(raw) != expected_ref:
            raise ProofInvalid(
                f"Node {index} hash mismatch: expected "
                f"0x{expected_ref.hex()}, got 0x{keccak(raw).hex()}"
            )

        node = _decode_node(raw)
        expected_ref = None

        # Embedded (<32 byte) children are resolved inline, without
        # consuming a proof element.
        while expected_ref is None:
            if len(node) == BRANCH_WIDTH:
                if position == len(path):
                    if index != len(raw_nodes) - 1:
                        raise ProofInvalid("Unused nodes after branch value")
                    if node[16] == BLANK_NODE:
                        return _absent("empty branch value", index)
                    return node[16]
                child = node[path[position]]
                position += 1
            elif len(node) == LEAF_OR_EXTENSION_WIDTH:
                if not isinstance(node[0], bytes):
                    raise ProofInvalid("Malformed leaf/extension path")
                segment, is_leaf = decode_compact_path(node[0])
                if path[position : position + len(segment)] != segment:
                    return _absent("path diverges", index)
                position += len(segment)
                if is_leaf:
                    if position != len(path):
                        raise ProofInvalid(
                            "Key path not fully consumed at leaf"
                        )
                    if index != len(raw_nodes) - 1:
                        raise ProofInvalid("Unused nodes after leaf")
                    return node[1]
                child = node[1]
            else:
                raise ProofInvalid(
                    f"Node {index} has {len(node)} items, expected 2 or 17"
                )

            if isinstance(child, list):
                node = child
            elif child == BLANK_NODE:
                return _absent("empty child slot", index)
            elif len(child) == 32:
                expected_ref = child
            else:
                raise ProofInvalid(
                    f"Invalid child reference of {len(child)} bytes"
                )

    raise ProofInvalid("Proof ended before the key was resolved")


def verify_account_proof(
    state_root: bytes,
    address: str,
    proof: Sequence[RawNode],
    expected: AccountRecord,
) -> AccountRecord:
    """Check that `address` holds `expected` in the state trie under `state_root`."""
    value = verify_proof(state_root, account_trie_path(address), proof)
    try:
        record = AccountRecord.decode(value)
    except EncodingError as e:
        raise ProofInvalid(f"Proven account value is malformed: {e}") from e

    if record != expected:
        raise ProofInvalid(
            f"Account record mismatch for {address}: proven {record}, "
            f"claimed {expected}"
        )
    # Equal fields with non-canonical RLP (e.g. a zero-padded nonce)
    if bytes(value) != expected.encode():
        raise ProofInvalid(
            f"Account record for {address} is not canonically encoded"
        )
    return record


def verify_storage_proof(
    storage_root: bytes,
    storage_key: bytes,
    proof: Sequence[RawNode],
    expected_value: Any,
) -> int:
    """
    Check that `storage_key` holds `expected_value` under `storage_root`.

    A zero claim is proven by an exclusion proof (zero slots are not stored).
    """
    expected = to_minimal_bytes(expected_value)
    value = verify_proof(
        storage_root,
        storage_trie_path(bytes(HexBytes(storage_key))),
        proof,
        allow_exclusion=expected == b"",
    )

    if value == BLANK_NODE:
        proven = b""
    else:
        try:
            proven = rlp.decode(value)
        except DecodingError as e:
            raise ProofInvalid(f"Proven storage value is malformed: {e}") from e
        if not isinstance(proven, bytes):
            raise ProofInvalid("Proven storage value is not a byte string")

    if proven != expected:
        raise ProofInvalid(
            f"Storage value mismatch: proven 0x{proven.hex()}, "
            f"claimed 0x{expected.hex()}"
        )
    return to_int(proven)
