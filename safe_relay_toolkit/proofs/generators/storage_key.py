"""Storage key derivation for mapping entries and secure trie paths"""

from eth_abi import encode
from eth_utils import is_address, keccak, to_canonical_address

from safe_relay_toolkit.shared.exceptions import EncodingError

MAX_SLOT_INDEX = 2**256 - 1


def _validate(address: str, slot_index: int) -> None:
    if not isinstance(address, str) or not is_address(address):
        raise EncodingError(f"Invalid address: {address!r}")
    if not isinstance(slot_index, int) or not 0 <= slot_index <= MAX_SLOT_INDEX:
        raise EncodingError(f"Invalid slot index: {slot_index!r}")


def derive_storage_key(address: str, slot_index: int) -> bytes:
    """
    Storage location of `mapping(address => ...)[address]` at a base slot.

    Args:
        address (str): The mapping key, left-padded to 32 bytes.
        slot_index (int): The mapping's base slot, padded to 32 bytes.

    Returns:
        bytes: keccak256(pad32(address) ++ pad32(slot_index))
    """
    _validate(address, slot_index)
    return keccak(encode(["address", "uint256"], [address, slot_index]))


def account_trie_path(address: str) -> bytes:
    """Path of an account in the (secure) state trie"""
    if not isinstance(address, str) or not is_address(address):
        raise EncodingError(f"Invalid address: {address!r}")
    return keccak(to_canonical_address(address))


def storage_trie_path(storage_key: bytes) -> bytes:
    """Path of a storage slot in the (secure) storage trie"""
    if len(storage_key) != 32:
        raise EncodingError(
            f"Storage key must be 32 bytes, got {len(storage_key)}"
        )
    return keccak(storage_key)
