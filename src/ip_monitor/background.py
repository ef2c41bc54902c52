"""
Background service for the IP monitor.

Wires the registry, resolver pipeline and settings together and answers
the messages sent by the popup and content script:

- getTabData: connection records of a tab plus the user's public IP
- resolveIPs: resolve one domain and attach the result to the tab
- checkIPv6Support: resolve one domain and record whether it has IPv6
- clearDnsCache: wipe the cache and the tab's attached results
- USER_IP_DETECTED: store the newest public IP report

Browser events (requests, navigations, closed tabs) are fed in through
the ``on_*`` methods.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .audit_logger import AuditLogger
from .config import SystemConfig
from .enums import LogLevel
from .exceptions import IPMonitorError, InvalidInputError
from .models import UserPublicIP
from .registry import DomainRegistry, display_state
from .resolver import ResolverPipeline
from .settings import DNS_EXCLUDE_LOCAL, DNS_RESOLVE_ENABLED, SettingsStore
from .snapshot_store import SnapshotStore


COMPONENT = "BackgroundService"


@dataclass(frozen=True)
class GetTabData:
    tab_id: int
    live_url: Optional[str] = None


@dataclass(frozen=True)
class ResolveIPs:
    domain: str
    tab_id: int


@dataclass(frozen=True)
class CheckIPv6Support:
    domain: str
    tab_id: int


@dataclass(frozen=True)
class ClearDnsCache:
    tab_id: Optional[int] = None


@dataclass(frozen=True)
class UserIPDetected:
    ipv4: Optional[str] = None
    ipv6: Optional[str] = None
    has_ipv6_connectivity: bool = False
    timestamp: Optional[float] = None


Request = Union[GetTabData, ResolveIPs, CheckIPv6Support, ClearDnsCache, UserIPDetected]


@dataclass
class Response:
    """Reply to a request: success flag, payload and optional error text."""

    success: bool
    data: Optional[dict] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        reply: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            reply.update(self.data)
        if self.error is not None:
            reply["error"] = self.error
        return reply


def _require_tab_id(message: dict) -> int:
    tab_id = message.get("tabId")
    if isinstance(tab_id, bool) or not isinstance(tab_id, int):
        raise InvalidInputError(
            code="missing_tab_id",
            message="Request requires an integer tabId",
            details={"action": message.get("action")},
        )
    return tab_id


def _require_domain(message: dict) -> str:
    domain = message.get("domain")
    if not isinstance(domain, str) or not domain.strip():
        raise InvalidInputError(
            code="missing_domain",
            message="Request requires a domain",
            details={"action": message.get("action")},
        )
    return domain.strip()


def parse_request(message: dict) -> Request:
    """
    Convert a wire message into a typed request.

    Raises:
        InvalidInputError: If the message is unknown or incomplete
    """
    if not isinstance(message, dict):
        raise InvalidInputError(code="invalid_message", message="Message must be an object")

    if message.get("type") == "USER_IP_DETECTED":
        data = message.get("data") or {}
        return UserIPDetected(
            ipv4=data.get("ipv4"),
            ipv6=data.get("ipv6"),
            has_ipv6_connectivity=bool(data.get("hasIPv6Connectivity", False)),
            timestamp=data.get("timestamp"),
        )

    action = message.get("action")
    if action == "getTabData":
        return GetTabData(tab_id=_require_tab_id(message), live_url=message.get("url"))
    if action == "resolveIPs":
        return ResolveIPs(domain=_require_domain(message), tab_id=_require_tab_id(message))
    if action == "checkIPv6Support":
        return CheckIPv6Support(domain=_require_domain(message), tab_id=_require_tab_id(message))
    if action == "clearDnsCache":
        tab_id = message.get("tabId")
        return ClearDnsCache(tab_id=tab_id if isinstance(tab_id, int) else None)

    raise InvalidInputError(
        code="unknown_message",
        message=f"Unknown message: {action or message.get('type')}",
    )


class BackgroundService:
    """
    Message and event handler owning the process-wide state.

    The resolution cache is shared by all tabs; changing either DNS
    setting clears it. Snapshot writes from request traffic are batched
    by ``flush_interval``.
    """

    DEFAULT_FLUSH_INTERVAL = 5.0

    async def __aenter__(self) -> "BackgroundService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __init__(
        self,
        pipeline: ResolverPipeline,
        registry: Optional[DomainRegistry] = None,
        settings: Optional[SettingsStore] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ) -> None:
        """
        Initialize the background service.

        Args:
            pipeline: Resolver pipeline (owns the shared cache)
            registry: Per-tab connection registry
            settings: DNS settings store
            clock: Source of the current time in epoch seconds
            logger: Optional audit logger
            flush_interval: Minimum seconds between snapshot writes caused by
                requests and resolutions; navigation, tab close and close()
                always write
        """
        self._pipeline = pipeline
        self._flush_interval = flush_interval
        self._last_flush = clock()
        self._registry = registry or DomainRegistry(clock=clock, logger=logger)
        self._settings = settings or SettingsStore()
        self._clock = clock
        self._logger = logger
        self._settings.on_change(self._on_settings_changed)

    @classmethod
    def from_config(
        cls,
        config: SystemConfig,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
    ) -> "BackgroundService":
        """Build the service with a snapshot-backed registry and persisted settings."""
        snapshot_store = SnapshotStore(
            file_path=config.persistence.snapshot_path,
            hmac_secret=config.persistence.hmac_secret,
            max_age_seconds=config.persistence.max_snapshot_age_seconds,
            clock=clock,
        )
        settings = SettingsStore(config.persistence.settings_path)
        settings.load()
        return cls(
            pipeline=ResolverPipeline.from_config(config.resolver, clock=clock, logger=logger),
            registry=DomainRegistry(snapshot_store=snapshot_store, clock=clock, logger=logger),
            settings=settings,
            clock=clock,
            logger=logger,
        )

    @property
    def pipeline(self) -> ResolverPipeline:
        return self._pipeline

    @property
    def registry(self) -> DomainRegistry:
        return self._registry

    @property
    def settings(self) -> SettingsStore:
        return self._settings

    async def handle(self, request: Request) -> Response:
        """
        Dispatch a typed request.

        Returns:
            Response; failures are reported in it rather than raised
        """
        try:
            if isinstance(request, GetTabData):
                return self._get_tab_data(request)
            if isinstance(request, ResolveIPs):
                return await self._resolve_ips(request)
            if isinstance(request, CheckIPv6Support):
                return await self._check_ipv6_support(request)
            if isinstance(request, ClearDnsCache):
                return self._clear_dns_cache(request)
            if isinstance(request, UserIPDetected):
                return self._user_ip_detected(request)
        except IPMonitorError as e:
            self._log_error("Request failed", e)
            return Response(success=False, error=e.message)

        raise InvalidInputError(
            code="unknown_request",
            message=f"Unhandled request type: {type(request).__name__}",
        )

    async def handle_message(self, message: dict) -> dict:
        """Parse and handle a wire message, returning the wire reply."""
        try:
            request = parse_request(message)
        except InvalidInputError as e:
            self._log(LogLevel.WARN, "Rejected message", {"error": e.message})
            return Response(success=False, error=e.message).to_dict()
        response = await self.handle(request)
        return response.to_dict()

    def _get_tab_data(self, request: GetTabData) -> Response:
        tab = self._registry.get_snapshot(request.tab_id)
        if tab is None:
            tab = self._registry.restore(request.tab_id, request.live_url)
        if tab is None:
            return Response(success=False, data={"data": None})

        domains = []
        for record in tab.domains.values():
            entry = record.to_dict()
            entry["displayState"] = display_state(record).value
            domains.append(entry)

        return Response(success=True, data={"data": {
            "domains": domains,
            "mainDomain": tab.main_domain,
            "connectionSecurity": self._registry.connection_security(request.tab_id).value,
            "userPublicIP": self._registry.user_public_ip.to_dict(),
        }})

    async def _resolve_ips(self, request: ResolveIPs) -> Response:
        if not self._settings.dns_resolve_enabled:
            return Response(success=True, data={
                "ips": {"ipv4": [], "ipv6": [], "timestamp": self._clock()},
            })

        result = await self._pipeline.resolve(
            request.domain,
            exclude_local_domains=self._settings.dns_exclude_local,
        )
        self._registry.attach_resolution(request.tab_id, request.domain, result)
        self._flush_if_due()
        return Response(success=True, data={"ips": result.to_dict()})

    async def _check_ipv6_support(self, request: CheckIPv6Support) -> Response:
        if not self._settings.dns_resolve_enabled:
            return Response(success=True, data={"supported": None})

        result = await self._pipeline.resolve(
            request.domain,
            exclude_local_domains=self._settings.dns_exclude_local,
        )
        supported = result.has_ipv6
        self._registry.set_ipv6_support(request.tab_id, request.domain, supported)
        self._flush_if_due()
        return Response(success=True, data={"supported": supported})

    def _clear_dns_cache(self, request: ClearDnsCache) -> Response:
        self._pipeline.clear_cache()
        if request.tab_id is not None:
            self._registry.clear_resolutions(request.tab_id)
        self._log(LogLevel.INFO, "DNS cache cleared", {"tab_id": request.tab_id})
        return Response(success=True)

    def _user_ip_detected(self, request: UserIPDetected) -> Response:
        self._registry.set_user_public_ip(UserPublicIP(
            ipv4=request.ipv4,
            ipv6=request.ipv6,
            has_ipv6_connectivity=request.has_ipv6_connectivity,
            timestamp=request.timestamp,
        ))
        return Response(success=True)

    def on_before_request(self, details: dict) -> None:
        """Record an intercepted browser request."""
        tab_id = details.get("tabId", -1)
        url = details.get("url")
        if not isinstance(tab_id, int) or tab_id < 0 or not url:
            return
        recorded = self._registry.record_request_url(
            tab_id,
            url,
            details.get("type", "other"),
            initiator=details.get("initiator"),
            document_url=details.get("documentUrl"),
            origin_url=details.get("originUrl"),
        )
        if recorded is not None:
            self._flush_if_due()

    def on_tab_updated(self, tab_id: int, status: Optional[str] = None) -> None:
        if status == "loading":
            self._registry.reset_on_navigation(tab_id)
            self._flush()

    def on_tab_removed(self, tab_id: int) -> None:
        self._registry.evict_on_close(tab_id)
        self._flush()

    def _on_settings_changed(self, key: str, old: bool, new: bool) -> None:
        if key in (DNS_RESOLVE_ENABLED, DNS_EXCLUDE_LOCAL):
            self._pipeline.clear_cache()
            self._log(LogLevel.INFO, "DNS settings changed, cache cleared", {
                "key": key, "old": old, "new": new,
            })

    async def close(self) -> None:
        self._flush()
        await self._pipeline.close()

    def _flush(self) -> None:
        self._registry.flush()
        self._last_flush = self._clock()

    def _flush_if_due(self) -> None:
        if self._clock() - self._last_flush >= self._flush_interval:
            self._flush()

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)

    def _log_error(self, message: str, error: Exception) -> None:
        if self._logger:
            self._logger.log_error(COMPONENT, message, error)
