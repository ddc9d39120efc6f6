"""
Exception hierarchy for the Safe relay toolkit.

Exception Categories:
- RetryableException: Transient failures that may succeed on retry (RPC, network)
- NonRetryableException: Permanent failures that won't benefit from retry (bad data)
- ConfigurationException: Startup/config errors that prevent operation

Proof and relay errors are all NonRetryableException:
- EncodingError -> malformed or unsupported field width
- ProofInvalid -> node hash mismatch, unresolved key, value mismatch
- VerificationFailed -> a proof layer of a bundle did not verify
- RelayException -> a relay phase failed (signing, execution, destination)
"""

from typing import Optional


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on retry.

    Use for transient failures like:
    - RPC timeouts
    - Rate limiting
    - Temporary network issues
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid input data
    - Proofs that do not verify
    - Reverted transactions
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - Required environment variables are missing
    - Unknown network names
    """

    pass


class RPCException(RetryableException):
    """Exception for chain RPC read failures (blocks, proofs, nonces)."""

    pass


class EncodingError(NonRetryableException):
    """Malformed wire data or a field with an unsupported width."""

    pass


class ProofInvalid(NonRetryableException):
    """A Merkle-Patricia proof does not resolve the key under the root."""

    pass


class VerificationFailed(NonRetryableException):
    """
    Raised by the proof bundle builder when a layer fails local verification.

    Attributes:
        layer: Which part failed ("header", "account" or "storage")
    """

    def __init__(self, layer: str, message: str):
        super().__init__(f"{layer} verification failed: {message}")
        self.layer = layer


class RelayException(NonRetryableException):
    """
    Base class for relay phase failures.

    Attributes:
        phase: Relay state in which the failure happened
    """

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        self.phase = phase


class SigningFailed(RelayException):
    """The destination Safe transaction could not be signed."""

    pass


class ExecutionReverted(RelayException):
    """The source chain transaction reverted or was never included."""

    pass


class DestinationRejected(RelayException):
    """The destination verifier rejected the proof bundle."""

    pass


class InvalidTransition(RelayException):
    """A relay session was asked to move backwards or out of a terminal state."""

    pass
