"""Block header encoder"""

from typing import Any, Dict, List

import rlp
from eth_utils import keccak
from hexbytes import HexBytes

from safe_relay_toolkit.proofs.types import BlockInfo
from safe_relay_toolkit.shared.exceptions import EncodingError
from safe_relay_toolkit.shared.services.web3_service import Web3Service
from safe_relay_toolkit.utils.blockchain import to_minimal_bytes

# London header, in hash-preimage order
BLOCK_HEADER = (
    "parentHash",
    "sha3Uncles",
    "miner",
    "stateRoot",
    "transactionsRoot",
    "receiptsRoot",
    "logsBloom",
    "difficulty",
    "number",
    "gasLimit",
    "gasUsed",
    "timestamp",
    "extraData",
    "mixHash",
    "nonce",
    "baseFeePerGas",
)

# Appended only when the block carries them
OPTIONAL_BLOCK_HEADER = (
    "withdrawalsRoot",
    "blobGasUsed",
    "excessBlobGas",
    "parentBeaconBlockRoot",
    "requestsHash",
)

POA_EXTRA_DATA = "proofOfAuthorityData"

QUANTITY_FIELDS = frozenset(
    (
        "difficulty",
        "number",
        "gasLimit",
        "gasUsed",
        "timestamp",
        "baseFeePerGas",
        "blobGasUsed",
        "excessBlobGas",
    )
)

FIXED_WIDTH_FIELDS = {
    "parentHash": 32,
    "sha3Uncles": 32,
    "miner": 20,
    "stateRoot": 32,
    "transactionsRoot": 32,
    "receiptsRoot": 32,
    "logsBloom": 256,
    "mixHash": 32,
    "nonce": 8,
    "withdrawalsRoot": 32,
    "parentBeaconBlockRoot": 32,
    "requestsHash": 32,
}


def _encode_field(name: str, value: Any) -> bytes:
    if name in QUANTITY_FIELDS:
        return to_minimal_bytes(value)

    try:
        encoded = bytes(HexBytes(value))
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Cannot read header field {name}: {e}") from e

    width = FIXED_WIDTH_FIELDS.get(name)
    if width is not None and len(encoded) != width:
        raise EncodingError(
            f"Header field {name} must be {width} bytes, got {len(encoded)}"
        )
    return encoded


def header_fields(block: Dict[str, Any]) -> List[bytes]:
    """Header fields as byte strings, zero quantities as empty strings"""
    # web3's POA middleware renames extraData
    if block.get("extraData") is None and POA_EXTRA_DATA in block:
        block = {**block, "extraData": block[POA_EXTRA_DATA]}

    missing = [k for k in BLOCK_HEADER if block.get(k) is None]
    if missing:
        raise EncodingError(f"Block is missing header fields: {missing}")

    fields = [_encode_field(k, block[k]) for k in BLOCK_HEADER]
    fields += [
        _encode_field(k, block[k])
        for k in OPTIONAL_BLOCK_HEADER
        if block.get(k) is not None
    ]
    return fields


def encode_block_header(block: Dict[str, Any]) -> bytes:
    """Encode a block header -> RLP encoded"""
    return rlp.encode(header_fields(block))


def compute_block_hash(encoded_header: bytes) -> bytes:
    """Header hash as computed by the chain and by the destination verifier"""
    return keccak(encoded_header)


def get_block_info(web3_service: Web3Service, block_number: int) -> BlockInfo:
    """Get block info -> block number, block hash, block timestamp, rlp encoded block header"""
    block = web3_service.get_block(block_number)
    encoded_header = encode_block_header(block)

    return {
        "block_number": block_number,
        "block_hash": "0x" + bytes(HexBytes(block["hash"])).hex(),
        "block_timestamp": block["timestamp"],
        "rlp_block_header": "0x" + encoded_header.hex(),
    }
