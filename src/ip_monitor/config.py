"""
Configuration dataclasses for the IP monitor.

This module defines all configuration structures used throughout the system,
including resolver sources, cache bounds, WebRTC detection, persistence,
and logging configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_DOH_ENDPOINT = "https://dns.google/resolve"

DEFAULT_STUN_SERVERS = [
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
]


@dataclass
class ResolverConfig:
    """Resolution sources, time bounds and cache limits."""

    doh_endpoint: str = DEFAULT_DOH_ENDPOINT
    doh_timeout_seconds: float = 3.0
    native_enabled: bool = True
    native_timeout_seconds: float = 5.0
    # None means "run the bundled host with the current interpreter"
    native_host_command: Optional[list[str]] = None
    cache_ttl_seconds: float = 300.0
    cache_capacity: int = 100
    dedupe_inflight: bool = False


@dataclass
class WebRTCConfig:
    """Public IP detection settings."""

    stun_servers: list[str] = field(default_factory=lambda: list(DEFAULT_STUN_SERVERS))
    gather_timeout_seconds: float = 5.0
    ipv6_probe_url: str = "https://ipv6.google.com/"
    ipv6_probe_timeout_seconds: float = 2.0


@dataclass
class PersistenceConfig:
    """Tab snapshot and user settings storage."""

    snapshot_path: Path
    hmac_secret: str
    settings_path: Optional[Path] = None
    max_snapshot_age_seconds: float = 1800.0


@dataclass
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    resolver: ResolverConfig
    webrtc: WebRTCConfig
    persistence: PersistenceConfig
    logging: LoggingConfig
    language: str = "en"  # 'en' or 'ru'
