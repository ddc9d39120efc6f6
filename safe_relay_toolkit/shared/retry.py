"""
Retry helpers for transient RPC failures.

Only chain reads (blocks, proofs, nonces) go through here. Signing and
transaction submission are single-shot: replaying them could reuse a nonce
or sign a different payload.

NonRetryableException (bad encodings, proofs that do not verify, reverted
transactions) is never retried and propagates on the first attempt.
"""

import logging
import time
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from web3.exceptions import BlockNotFound, TimeExhausted

from safe_relay_toolkit.shared.exceptions import RetryableException

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Transport failures and RPCException (JSON-RPC error responses)
DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    RetryableException,
    ConnectionError,
    TimeoutError,
    OSError,  # requests' transport errors derive from IOError
    BlockNotFound,  # Lagging RPC nodes may not serve the block yet
    TimeExhausted,
)


def _backoff_delay(
    attempt: int, base_delay: float, max_delay: float, exponential: bool
) -> float:
    if exponential:
        return min(base_delay * (2**attempt), max_delay)
    return base_delay


def retry_sync_operation(
    operation: Callable[..., T],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    operation_name: Optional[str] = None,
    **kwargs: Any,
) -> T:
    """
    Call `operation`, retrying retryable failures with backoff.

    Args:
        operation: Chain read to call
        *args: Positional arguments for the operation
        max_attempts: Total number of calls before giving up
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        exponential: Double the delay after every failed attempt
        retryable_exceptions: Exception types to retry on
        operation_name: Name used in log lines
        **kwargs: Keyword arguments for the operation

    Returns:
        Result of the operation; the last exception is re-raised once the
        attempts are exhausted
    """
    if retryable_exceptions is None:
        retryable_exceptions = DEFAULT_RETRYABLE_EXCEPTIONS

    name = operation_name or getattr(operation, "__name__", "operation")
    last_exception: Optional[Exception] = None

    for attempt in range(max_attempts):
        try:
            return operation(*args, **kwargs)
        except retryable_exceptions as e:
            last_exception = e
            if attempt == max_attempts - 1:
                break

            delay = _backoff_delay(attempt, base_delay, max_delay, exponential)
            logger.warning(
                f"Attempt {attempt + 1}/{max_attempts} failed for "
                f"{name}: {e}. Retrying in {delay:.1f}s..."
            )
            time.sleep(delay)

    if last_exception:
        raise last_exception
    raise RuntimeError(f"{name} was never attempted")


class RetryConfig:
    """Retry settings shared by the chain reads of one component."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential: bool = True,
        retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential = exponential
        self.retryable_exceptions = (
            retryable_exceptions or DEFAULT_RETRYABLE_EXCEPTIONS
        )

    def run(
        self, operation: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        """Run a single chain read with this config."""
        return retry_sync_operation(
            operation,
            *args,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential=self.exponential,
            retryable_exceptions=self.retryable_exceptions,
            **kwargs,
        )


# Pre-configured retry config for chain reads
RPC_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
    exponential=True,
)
