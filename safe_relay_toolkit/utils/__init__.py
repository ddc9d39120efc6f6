from safe_relay_toolkit.utils.blockchain import (
    decode_proof_nodes,
    decode_structured_nodes,
    encode_proof_nodes,
    encode_rlp_proofs,
    reencode_decoded_nodes,
    to_int,
    to_minimal_bytes,
)

__all__ = [
    "to_int",
    "to_minimal_bytes",
    "encode_proof_nodes",
    "decode_proof_nodes",
    "reencode_decoded_nodes",
    "decode_structured_nodes",
    "encode_rlp_proofs",
]
