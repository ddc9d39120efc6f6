"""Safe Relay Toolkit - proof-based cross-chain execution for Safe multisigs."""

__version__ = "0.1.0"

from .proofs import RelayProofs
from .relay import RelayOrchestrator

__all__ = ["RelayProofs", "RelayOrchestrator"]
