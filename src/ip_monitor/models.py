"""
Data models for the IP monitor.

This module defines the resolution result record, the per-tab connection
records owned by the registry, and the user's public IP report.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import IPv6Support, ResolverKind


@dataclass(frozen=True)
class ResolutionResult:
    """
    Addresses backing a domain, as produced by one resolver source.

    Immutable: re-resolution replaces the whole record.
    """

    ipv4: tuple[str, ...]
    ipv6: tuple[str, ...]
    is_local: bool
    resolver: ResolverKind
    timestamp: float

    def __post_init__(self) -> None:
        # Accept any iterable of strings, store as tuples
        object.__setattr__(self, "ipv4", tuple(self.ipv4))
        object.__setattr__(self, "ipv6", tuple(self.ipv6))
        if self.is_local and (
            self.ipv4 or self.ipv6 or self.resolver is not ResolverKind.LOCAL
        ):
            raise ValueError("Local results carry no addresses and use the local resolver")

    @classmethod
    def local(cls, timestamp: float) -> "ResolutionResult":
        """Result for a domain that must never leave the local machine."""
        return cls(ipv4=(), ipv6=(), is_local=True, resolver=ResolverKind.LOCAL, timestamp=timestamp)

    @classmethod
    def unknown(cls, timestamp: float) -> "ResolutionResult":
        """Result produced when every source failed."""
        return cls(ipv4=(), ipv6=(), is_local=False, resolver=ResolverKind.UNKNOWN, timestamp=timestamp)

    @property
    def has_ipv6(self) -> bool:
        return bool(self.ipv6)

    def to_dict(self) -> dict:
        return {
            "ipv4": list(self.ipv4),
            "ipv6": list(self.ipv6),
            "isLocal": self.is_local,
            "resolver": self.resolver.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ResolutionResult":
        return cls(
            ipv4=tuple(data.get("ipv4", [])),
            ipv6=tuple(data.get("ipv6", [])),
            is_local=bool(data.get("isLocal", False)),
            resolver=ResolverKind(data.get("resolver", ResolverKind.UNKNOWN.value)),
            timestamp=float(data["timestamp"]),
        )


@dataclass
class DomainRecord:
    """Aggregate connection statistics for one domain within one tab."""

    domain: str
    protocol: str
    is_secure: bool
    request_count: int = 0
    request_types: set[str] = field(default_factory=set)
    ipv6_support: IPv6Support = IPv6Support.UNKNOWN
    resolution: Optional[ResolutionResult] = None

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "protocol": self.protocol,
            "isSecure": self.is_secure,
            "requestCount": self.request_count,
            "types": sorted(self.request_types),
            "ipv6Support": self.ipv6_support.value,
            "ipAddresses": self.resolution.to_dict() if self.resolution else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DomainRecord":
        resolution = data.get("ipAddresses")
        return cls(
            domain=data["domain"],
            protocol=data.get("protocol", ""),
            is_secure=bool(data.get("isSecure", False)),
            request_count=int(data.get("requestCount", 0)),
            request_types=set(data.get("types", [])),
            ipv6_support=IPv6Support(data.get("ipv6Support", IPv6Support.UNKNOWN.value)),
            resolution=ResolutionResult.from_dict(resolution) if resolution else None,
        )


@dataclass
class TabState:
    """Everything recorded for a tab during its current navigation."""

    domains: dict[str, DomainRecord] = field(default_factory=dict)
    main_domain: Optional[str] = None
    url: Optional[str] = None
    last_update: float = 0.0

    def to_dict(self) -> dict:
        return {
            "domains": [record.to_dict() for record in self.domains.values()],
            "mainDomain": self.main_domain,
            "url": self.url,
            "timestamp": self.last_update,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TabState":
        records = [DomainRecord.from_dict(item) for item in data.get("domains", [])]
        return cls(
            domains={record.domain: record for record in records},
            main_domain=data.get("mainDomain"),
            url=data.get("url"),
            last_update=float(data.get("timestamp") or 0.0),
        )


@dataclass(frozen=True)
class CandidateReport:
    """Addresses gathered from ICE candidates."""

    ipv4: Optional[str]
    ipv6: Optional[str]
    local: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {"ipv4": self.ipv4, "ipv6": self.ipv6, "local": list(self.local)}


@dataclass(frozen=True)
class UserPublicIP:
    """The user's own externally visible addresses, newest report wins."""

    ipv4: Optional[str] = None
    ipv6: Optional[str] = None
    has_ipv6_connectivity: bool = False
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "ipv4": self.ipv4,
            "ipv6": self.ipv6,
            "hasIPv6Connectivity": self.has_ipv6_connectivity,
            "timestamp": self.timestamp,
        }
