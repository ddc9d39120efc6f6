"""
Result types for proof building and relay sessions.

A failed phase reaches the caller as a Result carrying the phase, the
reason and the original exception. There is no partial success: a Result
is either ok with data or failed with at least one error.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorSeverity(Enum):
    """Severity levels for processing errors."""

    ERROR = "error"  # Abort this operation
    CRITICAL = "critical"  # Abort the whole relay session


@dataclass
class ProcessingError:
    """
    A single failure with the context it happened in.

    Attributes:
        source: Proof layer or relay phase that failed
        message: Human-readable error description
        severity: Whether only the operation or the whole session aborted
        context: Block number, account, network and similar details
        exception: Original exception if available
    """

    source: str
    message: str
    severity: ErrorSeverity
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None


@dataclass
class Result(Generic[T]):
    """
    Outcome of a proof or relay operation.

    Attributes:
        success: Whether the operation succeeded
        data: The result data if successful
        errors: Why the operation failed (empty on success)
    """

    success: bool
    data: Optional[T] = None
    errors: List[ProcessingError] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ProcessingError) -> "Result[T]":
        return cls(success=False, errors=[error])

    @classmethod
    def fail_with_message(
        cls,
        source: str,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None,
    ) -> "Result[T]":
        """Failed result built from a message (convenience method)."""
        return cls.fail(
            ProcessingError(
                source=source,
                message=message,
                severity=severity,
                context=context or {},
                exception=exception,
            )
        )

    def unwrap(self) -> T:
        """Return the data, re-raising the original failure if there is one."""
        if self.success:
            return self.data
        first = self.errors[0] if self.errors else None
        if first is not None and first.exception is not None:
            raise first.exception
        raise RuntimeError(
            first.message if first else "Result failed without error details"
        )
