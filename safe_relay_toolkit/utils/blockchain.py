"""Wire-format helpers: quantities, padding and proof node list codecs."""

from typing import Any, List, Sequence, Tuple, Union

import rlp
from eth_utils import big_endian_to_int, int_to_big_endian
from hexbytes import HexBytes
from rlp.exceptions import DecodingError

from safe_relay_toolkit.shared.exceptions import EncodingError

BytesLike = Union[bytes, bytearray, str]


def to_int(value: Any) -> int:
    """Read an RPC quantity given as int, hex string or big-endian bytes"""
    if isinstance(value, bool):
        raise EncodingError(f"Unsupported quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    if isinstance(value, (bytes, bytearray)):
        return big_endian_to_int(bytes(value))
    raise EncodingError(f"Unsupported quantity: {value!r}")


def to_minimal_bytes(value: Any) -> bytes:
    """Big-endian minimal encoding of a quantity; zero is the empty string"""
    number = to_int(value)
    if number < 0:
        raise EncodingError(f"Negative quantity: {number}")
    if number == 0:
        return b""
    return int_to_big_endian(number)


def _decode(encoded: BytesLike) -> Any:
    try:
        return rlp.decode(HexBytes(encoded))
    except (DecodingError, ValueError) as e:
        raise EncodingError(f"Malformed RLP: {e}") from e


def encode_proof_nodes(nodes: Sequence[BytesLike]) -> bytes:
    """Wrap raw trie nodes as an RLP list of byte strings"""
    return rlp.encode([HexBytes(node) for node in nodes])


def decode_proof_nodes(encoded: BytesLike) -> List[bytes]:
    """Inverse of encode_proof_nodes"""
    decoded = _decode(encoded)
    if not isinstance(decoded, list) or any(
        not isinstance(item, bytes) for item in decoded
    ):
        raise EncodingError("Expected an RLP list of byte strings")
    return decoded


def reencode_decoded_nodes(nodes: Sequence[BytesLike]) -> bytes:
    """
    Encode raw trie nodes the way the on-chain verifier reads them.

    Each raw node is itself RLP, so it is decoded first and the list of
    decoded (structured) nodes is encoded again.
    """
    return rlp.encode([_decode(node) for node in nodes])


def decode_structured_nodes(encoded: BytesLike) -> List[bytes]:
    """Recover the raw node list from a reencode_decoded_nodes output"""
    decoded = _decode(encoded)
    if not isinstance(decoded, list):
        raise EncodingError("Expected an RLP list of proof nodes")
    return [rlp.encode(node) for node in decoded]


def encode_rlp_proofs(proofs: dict) -> Tuple[bytes, bytes]:
    """Encode an eth_getProof response: account proof and every storage proof"""
    account_proof = reencode_decoded_nodes(proofs["accountProof"])
    storage_proofs = rlp.encode(
        [
            [_decode(node) for node in proof["proof"]]
            for proof in proofs["storageProof"]
        ]
    )
    return account_proof, storage_proofs
