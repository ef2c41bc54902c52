"""
Domain Connection Registry.

Sole owner of per-tab connection records. Browser request events are
recorded here; resolution results and the user's public IP report are
attached here by the components that produced them. Persistence is an
explicit flush rather than a side effect of every mutation.
"""

import copy
import time
from typing import Callable, Optional
from urllib.parse import urlsplit

from .audit_logger import AuditLogger
from .enums import ConnectionSecurity, DisplayState, IPv6Support, LogLevel, ResolverKind
from .exceptions import PersistenceError
from .models import DomainRecord, ResolutionResult, TabState, UserPublicIP
from .snapshot_store import SnapshotStore


COMPONENT = "DomainRegistry"

MAIN_FRAME = "main_frame"

EXTENSION_SCHEMES = (
    "safari-web-extension://",
    "safari-extension://",
    "chrome-extension://",
    "moz-extension://",
)

# Hosts contacted by the monitor itself
SERVICE_DOMAINS = frozenset({
    "dns.google",
    "stun.l.google.com",
    "stun1.l.google.com",
    "stun2.l.google.com",
    "stun3.l.google.com",
    "stun4.l.google.com",
    "ipv6.google.com",
})


def is_extension_origin(origin: Optional[str]) -> bool:
    return bool(origin) and origin.startswith(EXTENSION_SCHEMES)


def resolution_state(resolution: Optional[ResolutionResult]) -> DisplayState:
    """Map a resolution onto one of the presentation states."""
    if resolution is None:
        return DisplayState.LOADING
    if resolution.is_local:
        return DisplayState.LOCAL
    if resolution.resolver is ResolverKind.UNKNOWN:
        return DisplayState.UNKNOWN
    return DisplayState.RESOLVED


def display_state(record: DomainRecord) -> DisplayState:
    return resolution_state(record.resolution)


class DomainRegistry:
    """Per-tab map of domain to aggregate connection statistics."""

    def __init__(
        self,
        snapshot_store: Optional[SnapshotStore] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            snapshot_store: Optional store used by flush() and restore()
            clock: Source of the current time in epoch seconds
            logger: Optional audit logger
        """
        self._tabs: dict[int, TabState] = {}
        self._snapshot_store = snapshot_store
        self._clock = clock
        self._logger = logger
        self._user_public_ip = UserPublicIP()
        self._dirty = False

    def record_request(
        self,
        tab_id: int,
        domain: str,
        protocol: str,
        request_type: str,
        url: Optional[str] = None,
    ) -> Optional[DomainRecord]:
        """
        Count one request of a tab towards a domain.

        Args:
            tab_id: Browser tab id (negative ids are background requests)
            domain: Host name of the request
            protocol: URL scheme without the colon
            request_type: Browser resource type (main_frame, script, ...)
            url: Full request URL, stored for main_frame requests

        Returns:
            The updated DomainRecord, or None if the request was ignored
        """
        if tab_id < 0 or not domain or domain in SERVICE_DOMAINS:
            return None

        now = self._clock()
        tab = self._tabs.get(tab_id)
        if tab is None:
            tab = TabState(last_update=now)
            self._tabs[tab_id] = tab

        if request_type == MAIN_FRAME:
            tab.main_domain = domain
            tab.url = url
            tab.last_update = now

        record = tab.domains.get(domain)
        if record is None:
            record = DomainRecord(
                domain=domain,
                protocol=protocol,
                is_secure=protocol == "https",
            )
            tab.domains[domain] = record

        record.request_count += 1
        record.request_types.add(request_type)
        self._dirty = True
        return record

    def record_request_url(
        self,
        tab_id: int,
        url: str,
        request_type: str,
        initiator: Optional[str] = None,
        document_url: Optional[str] = None,
        origin_url: Optional[str] = None,
    ) -> Optional[DomainRecord]:
        """Record a request from its URL, ignoring the monitor's own traffic."""
        if any(is_extension_origin(o) for o in (initiator, document_url, origin_url)):
            return None
        try:
            parts = urlsplit(url)
        except ValueError:
            self._log(LogLevel.DEBUG, "Unparseable request URL ignored", {"url": url})
            return None
        if not parts.hostname:
            return None
        return self.record_request(
            tab_id, parts.hostname, parts.scheme, request_type, url=url
        )

    def get_snapshot(self, tab_id: int) -> Optional[TabState]:
        """Return a copy of a tab's state; callers cannot mutate the registry."""
        tab = self._tabs.get(tab_id)
        return copy.deepcopy(tab) if tab is not None else None

    def has_tab(self, tab_id: int) -> bool:
        return tab_id in self._tabs

    def tab_ids(self) -> list[int]:
        return list(self._tabs)

    def attach_resolution(
        self,
        tab_id: int,
        domain: str,
        result: ResolutionResult,
    ) -> bool:
        """
        Attach a resolution result to a tab's domain record.

        Returns:
            True if the record exists and was updated
        """
        record = self._record(tab_id, domain)
        if record is None:
            return False
        record.resolution = result
        record.ipv6_support = IPv6Support.SUPPORTED if result.has_ipv6 else IPv6Support.UNSUPPORTED
        self._dirty = True
        return True

    def set_ipv6_support(self, tab_id: int, domain: str, supported: bool) -> bool:
        record = self._record(tab_id, domain)
        if record is None:
            return False
        record.ipv6_support = IPv6Support.SUPPORTED if supported else IPv6Support.UNSUPPORTED
        self._dirty = True
        return True

    def clear_resolutions(self, tab_id: int) -> None:
        """Drop every attached result of a tab and forget IPv6 support."""
        tab = self._tabs.get(tab_id)
        if tab is None:
            return
        for record in tab.domains.values():
            record.resolution = None
            record.ipv6_support = IPv6Support.UNKNOWN
        self._dirty = True

    def reset_on_navigation(self, tab_id: int) -> None:
        """Discard a tab's records at the start of a new top-level navigation."""
        if self._tabs.pop(tab_id, None) is not None:
            self._dirty = True
            self._log(LogLevel.DEBUG, "Tab reset on navigation", {"tab_id": tab_id})

    def evict_on_close(self, tab_id: int) -> None:
        """Discard a closed tab's records."""
        if self._tabs.pop(tab_id, None) is not None:
            self._dirty = True
            self._log(LogLevel.DEBUG, "Tab evicted on close", {"tab_id": tab_id})

    def connection_security(self, tab_id: int) -> ConnectionSecurity:
        tab = self._tabs.get(tab_id)
        if tab is None:
            return ConnectionSecurity.NO_DATA
        protocols = {record.protocol for record in tab.domains.values()}
        if "http" in protocols:
            return ConnectionSecurity.INSECURE_DETECTED
        if "https" in protocols:
            return ConnectionSecurity.ALL_SECURE
        return ConnectionSecurity.NO_DATA

    @property
    def user_public_ip(self) -> UserPublicIP:
        return self._user_public_ip

    def set_user_public_ip(self, report: UserPublicIP) -> None:
        """Replace the user's public IP record with the newest report."""
        self._user_public_ip = report
        self._log(LogLevel.INFO, "User public IP updated", {
            "ipv4": report.ipv4,
            "ipv6": report.ipv6,
            "has_ipv6_connectivity": report.has_ipv6_connectivity,
        })

    @property
    def dirty(self) -> bool:
        return self._dirty

    def flush(self) -> bool:
        """
        Persist all tabs if anything changed since the last flush.

        Returns:
            True if a snapshot was written
        """
        if self._snapshot_store is None or not self._dirty:
            return False
        try:
            self._snapshot_store.save(self._tabs)
        except PersistenceError as e:
            self._log_error("Failed to save tab snapshot", e)
            return False
        self._dirty = False
        return True

    def restore(self, tab_id: int, live_url: Optional[str] = None) -> Optional[TabState]:
        """
        Rebuild a tab from the persisted snapshot.

        A restored tab whose stored URL (without query string) is not a
        prefix of the tab's live URL belongs to an earlier page and is
        discarded.

        Returns:
            A copy of the restored TabState, or None
        """
        if tab_id in self._tabs:
            return self.get_snapshot(tab_id)
        if self._snapshot_store is None:
            return None

        try:
            persisted = self._snapshot_store.load()
        except PersistenceError as e:
            self._log_error("Failed to load tab snapshot", e)
            return None

        tab = persisted.get(tab_id)
        if tab is None:
            return None

        if tab.url and live_url and not live_url.startswith(tab.url.split("?", 1)[0]):
            self._log(LogLevel.DEBUG, "Stale tab snapshot discarded", {
                "tab_id": tab_id, "stored_url": tab.url, "live_url": live_url,
            })
            self._dirty = True
            return None

        self._tabs[tab_id] = tab
        return self.get_snapshot(tab_id)

    def restore_all(self) -> int:
        """
        Load every persisted tab not already present.

        Returns:
            Number of tabs restored

        Raises:
            PersistenceError: If the snapshot cannot be read or was tampered with
        """
        if self._snapshot_store is None:
            return 0
        restored = 0
        for tab_id, tab in self._snapshot_store.load().items():
            if tab_id not in self._tabs:
                self._tabs[tab_id] = tab
                restored += 1
        return restored

    def _record(self, tab_id: int, domain: str) -> Optional[DomainRecord]:
        tab = self._tabs.get(tab_id)
        if tab is None:
            return None
        return tab.domains.get(domain)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)

    def _log_error(self, message: str, error: Exception) -> None:
        if self._logger:
            self._logger.log_error(COMPONENT, message, error)
