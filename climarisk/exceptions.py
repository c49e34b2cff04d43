"""ClimaRisk Exception Hierarchy.

Exceptions raised by the climate risk analytics engine, carrying rich error
context for logging, monitoring, and caller-side recovery.

Exception Hierarchy:
    ClimaRiskException (base)
    ├── InvalidInput           (also a ValueError)
    ├── ConfigurationError     (also a ValueError)
    ├── DataUnavailable
    └── CacheUnavailable

Zero-variance history is deliberately absent from the hierarchy: it is not an
error. :func:`climarisk.statistics.calculate_anomaly` reports it through
``AnomalyResult.degenerate`` instead.

All exceptions include rich context:
- error_code: Unique error identifier
- context: Dictionary with error-specific details
- timestamp: When the error occurred

Example:
    >>> from climarisk.exceptions import InvalidInput
    >>> raise InvalidInput(
    ...     message="grid_size must be > 0",
    ...     field="grid_size",
    ...     value=0,
    ... )
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class ClimaRiskException(Exception):
    """Base exception for all ClimaRisk errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "CR_INVALID_INPUT")
        context: Dictionary with error-specific details
        timestamp: When the error occurred
    """

    ERROR_PREFIX = "CR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now()

    def _generate_error_code(self) -> str:
        """Generate error code from the exception class name.

        Returns:
            Error code like "CR_DATA_UNAVAILABLE"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# Input / configuration errors (fatal, raised before any I/O)
# ==============================================================================

class InvalidInput(ClimaRiskException, ValueError):
    """Caller supplied an out-of-range or malformed argument.

    Raised for out-of-range coordinates, inverted bounding boxes,
    non-positive grid sizes or intervals, and empty histories. Always raised
    before any provider fetch or cache access.

    Example:
        >>> raise InvalidInput(
        ...     message="latitude out of range",
        ...     field="lat",
        ...     value=91.0,
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        value: Any = None,
    ):
        """Initialize invalid input error.

        Args:
            message: Error message
            context: Error context
            field: Name of the offending argument
            value: The rejected value
        """
        context = context or {}
        if field:
            context["field"] = field
            context["value"] = value
        super().__init__(message, context=context)


class ConfigurationError(ClimaRiskException, ValueError):
    """Engine configuration is invalid.

    Raised when weights do not sum to 1.0, breakpoints are not strictly
    increasing, or a limit is non-positive.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        errors: Optional[list] = None,
    ):
        context = context or {}
        if errors:
            context["errors"] = list(errors)
        super().__init__(message, context=context)


# ==============================================================================
# I/O errors
# ==============================================================================

class DataUnavailable(ClimaRiskException):
    """Upstream data could not be fetched after retries.

    Surfaced to the caller by single-point assessments; swallowed and the
    element excluded by grid and time-series batches.

    Example:
        >>> raise DataUnavailable(
        ...     message="weather archive returned HTTP 503",
        ...     provider="open-meteo-archive",
        ...     attempts=3,
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
        attempts: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        """Initialize data unavailable error.

        Args:
            message: Error message
            context: Error context
            provider: Provider that failed
            attempts: Number of attempts made before giving up
            cause: Original exception
        """
        context = context or {}
        if provider:
            context["provider"] = provider
        if attempts is not None:
            context["attempts"] = attempts
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, context=context)


class CacheUnavailable(ClimaRiskException):
    """Cache backend read or write failed.

    Raised only inside cache backends; the cache facade converts it into a
    miss or a no-op, so it never reaches engine callers.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        backend: Optional[str] = None,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        context = context or {}
        if backend:
            context["backend"] = backend
        if operation:
            context["operation"] = operation
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: BaseException) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current: Optional[BaseException] = exc

    while current is not None:
        if isinstance(current, ClimaRiskException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = current.__cause__

    return "\n".join(lines)


def is_retriable(exc: BaseException) -> bool:
    """Check if a fetch failure is worth retrying.

    Args:
        exc: Exception to check

    Returns:
        True if operation should be retried
    """
    if isinstance(exc, (InvalidInput, ConfigurationError)):
        return False
    if isinstance(exc, (DataUnavailable, CacheUnavailable)):
        return True
    # Transport-level failures from providers
    if isinstance(exc, (ConnectionError, TimeoutError, OSError)):
        return True
    return False


__all__ = [
    "ClimaRiskException",
    "InvalidInput",
    "ConfigurationError",
    "DataUnavailable",
    "CacheUnavailable",
    "format_exception_chain",
    "is_retriable",
]
