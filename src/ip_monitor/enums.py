"""
Enumeration types for the IP monitor.

These enums provide type-safe constants for resolver sources, error codes,
display states and configuration options throughout the system.
"""

from enum import Enum, IntEnum


class ResolverKind(Enum):
    """Source that produced a resolution result."""

    SYSTEM = "system"
    DOH = "doh"
    LOCAL = "local"
    UNKNOWN = "unknown"


class DnsRecordType(IntEnum):
    """DNS record types queried over DNS-over-HTTPS."""

    A = 1
    AAAA = 28


class NativeErrorCode(IntEnum):
    """Stable error codes surfaced by the native resolver host."""

    UNKNOWN = 0
    INVALID_DOMAIN = 1
    DNS_RESOLUTION_FAILED = 2
    TIMEOUT = 3
    SYSTEM_ERROR = 4

    @property
    def message_key(self) -> str:
        """i18n key holding the human-readable description."""
        return f"native_error.{self.name.lower()}"


class IPv6Support(Enum):
    """Whether a domain is known to publish IPv6 addresses."""

    UNKNOWN = "unknown"
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"


class ExtractorState(Enum):
    """Lifecycle of a WebRTC candidate extraction."""

    COLLECTING = "collecting"
    COMPLETE = "complete"
    TIMED_OUT = "timed_out"


class ConnectionSecurity(Enum):
    """Aggregate transport security of a tab."""

    ALL_SECURE = "all_secure"
    INSECURE_DETECTED = "insecure_detected"
    NO_DATA = "no_data"


class DisplayState(Enum):
    """How a domain's addresses are presented to the user."""

    LOADING = "loading"
    RESOLVED = "resolved"
    LOCAL = "local"
    UNKNOWN = "unknown"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}
