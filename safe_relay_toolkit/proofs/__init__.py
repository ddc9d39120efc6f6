from safe_relay_toolkit.proofs.generators.proof_bundle import (
    build_proof_bundle,
)
from safe_relay_toolkit.proofs.manager import RelayProofs
from safe_relay_toolkit.proofs.types import (
    AccountRecord,
    BlockInfo,
    ProofBundle,
    ProofStruct,
)
from safe_relay_toolkit.proofs.verifier import verify_proof

__all__ = [
    "RelayProofs",
    "build_proof_bundle",
    "verify_proof",
    "AccountRecord",
    "BlockInfo",
    "ProofBundle",
    "ProofStruct",
]
