"""
Exception classes for the IP monitor.

All exceptions inherit from IPMonitorError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class IPMonitorError(Exception):
    """Base exception for all IP monitor errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(IPMonitorError):
    """Raised when no domain (or an unusable request) is supplied."""

    pass


class ResolutionTimeoutError(IPMonitorError):
    """Raised when a resolver exceeds its time bound."""

    pass


class ResolutionFailedError(IPMonitorError):
    """Raised when the system resolver reports a failure."""

    pass


class TransportUnavailableError(IPMonitorError):
    """Raised when the native resolver bridge is not present on this platform."""

    pass


class NetworkUnavailableError(IPMonitorError):
    """Raised when DNS-over-HTTPS queries cannot be completed."""

    pass


class PersistenceError(IPMonitorError):
    """Raised when snapshot or settings persistence fails."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation fails, indicating snapshot tampering."""

    pass
