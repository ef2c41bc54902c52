"""
IP Monitor - shows which IP addresses the sites open in a browser tab use.

This package resolves the domains a tab connects to through the operating
system resolver or DNS-over-HTTPS, never sends local names off the machine,
and infers the user's own public IP from WebRTC ICE candidates.
"""

__version__ = "0.1.0"
__author__ = "IP Monitor Team"

from ip_monitor.exceptions import (
    IPMonitorError,
    InvalidInputError,
    ResolutionTimeoutError,
    ResolutionFailedError,
    TransportUnavailableError,
    NetworkUnavailableError,
    PersistenceError,
    TamperingError,
)
from ip_monitor.enums import (
    ResolverKind,
    DnsRecordType,
    NativeErrorCode,
    IPv6Support,
    ExtractorState,
    ConnectionSecurity,
    DisplayState,
    LogLevel,
)
from ip_monitor.config import (
    ResolverConfig,
    WebRTCConfig,
    PersistenceConfig,
    LoggingConfig,
    SystemConfig,
)
from ip_monitor.models import (
    ResolutionResult,
    DomainRecord,
    TabState,
    CandidateReport,
    UserPublicIP,
)
from ip_monitor.address_classifier import (
    is_private_ipv4,
    is_private_ipv6,
    is_local_domain_name,
)
from ip_monitor.resolution_cache import (
    ResolutionCache,
)
from ip_monitor.native_bridge import (
    NativeResolverBridge,
    NativeLookupResponse,
    NativeLookupError,
)
from ip_monitor.doh_client import (
    DoHClient,
    DoHAnswer,
)
from ip_monitor.resolver import (
    ResolverPipeline,
    ResolverStrategy,
    StrategyOutcome,
    SystemResolverStrategy,
    LocalGuardStrategy,
    DoHStrategy,
)
from ip_monitor.webrtc_extractor import (
    CandidateExtractor,
    candidate_address,
    candidates_from_sdp,
    check_ipv6_connectivity,
    detect_public_ip,
)
from ip_monitor.snapshot_store import (
    SnapshotStore,
)
from ip_monitor.registry import (
    DomainRegistry,
    display_state,
)
from ip_monitor.settings import (
    SettingsStore,
    DNS_RESOLVE_ENABLED,
    DNS_EXCLUDE_LOCAL,
)
from ip_monitor.background import (
    BackgroundService,
    Response,
    parse_request,
)
from ip_monitor.audit_logger import (
    AuditLogger,
    LogEntry,
)
from ip_monitor.i18n import (
    get_message,
    get_all_message_keys,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from ip_monitor.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "IPMonitorError",
    "InvalidInputError",
    "ResolutionTimeoutError",
    "ResolutionFailedError",
    "TransportUnavailableError",
    "NetworkUnavailableError",
    "PersistenceError",
    "TamperingError",
    # Enums
    "ResolverKind",
    "DnsRecordType",
    "NativeErrorCode",
    "IPv6Support",
    "ExtractorState",
    "ConnectionSecurity",
    "DisplayState",
    "LogLevel",
    # Configuration
    "ResolverConfig",
    "WebRTCConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "SystemConfig",
    # Models
    "ResolutionResult",
    "DomainRecord",
    "TabState",
    "CandidateReport",
    "UserPublicIP",
    # Address Classifier
    "is_private_ipv4",
    "is_private_ipv6",
    "is_local_domain_name",
    # Resolution Cache
    "ResolutionCache",
    # Native Bridge
    "NativeResolverBridge",
    "NativeLookupResponse",
    "NativeLookupError",
    # DoH Client
    "DoHClient",
    "DoHAnswer",
    # Resolver Pipeline
    "ResolverPipeline",
    "ResolverStrategy",
    "StrategyOutcome",
    "SystemResolverStrategy",
    "LocalGuardStrategy",
    "DoHStrategy",
    # WebRTC Extractor
    "CandidateExtractor",
    "candidate_address",
    "candidates_from_sdp",
    "check_ipv6_connectivity",
    "detect_public_ip",
    # Persistence
    "SnapshotStore",
    "SettingsStore",
    "DNS_RESOLVE_ENABLED",
    "DNS_EXCLUDE_LOCAL",
    # Registry
    "DomainRegistry",
    "display_state",
    # Background Service
    "BackgroundService",
    "Response",
    "parse_request",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # I18n
    "get_message",
    "get_all_message_keys",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
