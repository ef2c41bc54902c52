"""
Property-based tests for the Domain Connection Registry and Snapshot Store.
"""

import json
import string
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from ip_monitor.enums import ConnectionSecurity, DisplayState, IPv6Support, ResolverKind
from ip_monitor.exceptions import PersistenceError, TamperingError
from ip_monitor.models import ResolutionResult, TabState, UserPublicIP
from ip_monitor.registry import DomainRegistry, display_state
from ip_monitor.snapshot_store import SnapshotStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def doh_result(ipv4=("93.184.216.34",), ipv6=()) -> ResolutionResult:
    return ResolutionResult(
        ipv4=ipv4, ipv6=ipv6, is_local=False, resolver=ResolverKind.DOH, timestamp=1.0,
    )


request_types = st.sampled_from(["main_frame", "script", "image", "xmlhttprequest", "stylesheet"])
hosts = st.text(alphabet=string.ascii_lowercase, min_size=1, max_size=8).map(lambda s: f"{s}.com")


class TestRequestCountingProperty:
    """Property 23: request counts and types aggregate per domain."""

    @given(requests=st.lists(st.tuples(hosts, request_types), min_size=1, max_size=30))
    @settings(max_examples=100)
    def test_counts_match_requests(self, requests: list[tuple[str, str]]) -> None:
        registry = DomainRegistry(clock=FakeClock())
        for host, request_type in requests:
            registry.record_request(1, host, "https", request_type)

        tab = registry.get_snapshot(1)
        for host in {h for h, _ in requests}:
            record = tab.domains[host]
            assert record.request_count == sum(1 for h, _ in requests if h == host)
            assert record.request_types == {t for h, t in requests if h == host}
            assert record.is_secure

    def test_main_frame_sets_page(self) -> None:
        clock = FakeClock()
        registry = DomainRegistry(clock=clock)
        registry.record_request_url(3, "https://example.com/page?q=1", "main_frame")

        tab = registry.get_snapshot(3)
        assert tab.main_domain == "example.com"
        assert tab.url == "https://example.com/page?q=1"
        assert tab.last_update == clock.now

    def test_ignored_requests(self) -> None:
        registry = DomainRegistry(clock=FakeClock())

        assert registry.record_request(-1, "example.com", "https", "script") is None
        assert registry.record_request(1, "dns.google", "https", "xmlhttprequest") is None
        assert registry.record_request(1, "stun2.l.google.com", "https", "other") is None
        assert registry.record_request_url(
            1, "https://example.com/a.js", "script",
            initiator="safari-web-extension://abc",
        ) is None
        assert registry.record_request_url(
            1, "https://example.com/a.js", "script",
            document_url="chrome-extension://abc/popup.html",
        ) is None
        assert registry.get_snapshot(1) is None

    def test_snapshot_is_a_copy(self) -> None:
        registry = DomainRegistry(clock=FakeClock())
        registry.record_request(1, "example.com", "https", "script")

        snapshot = registry.get_snapshot(1)
        snapshot.domains["example.com"].request_count = 99
        snapshot.domains.clear()

        assert registry.get_snapshot(1).domains["example.com"].request_count == 1


class TestLifecycleProperty:
    """Property 24: navigation and closing discard a tab's records."""

    def test_reset_on_navigation(self) -> None:
        registry = DomainRegistry(clock=FakeClock())
        registry.record_request(1, "old.com", "https", "script")
        registry.reset_on_navigation(1)
        registry.record_request(1, "new.com", "https", "main_frame")

        assert set(registry.get_snapshot(1).domains) == {"new.com"}

    def test_evict_on_close(self) -> None:
        registry = DomainRegistry(clock=FakeClock())
        registry.record_request(1, "a.com", "https", "script")
        registry.record_request(2, "b.com", "https", "script")
        registry.evict_on_close(1)

        assert registry.get_snapshot(1) is None
        assert registry.get_snapshot(2) is not None


class TestResolutionAttachmentProperty:
    """Property 25: attached results drive IPv6 support and display state."""

    @given(ipv6=st.lists(st.just("2001:4860:4860::8888"), max_size=2))
    @settings(max_examples=10)
    def test_ipv6_support_follows_result(self, ipv6: list[str]) -> None:
        registry = DomainRegistry(clock=FakeClock())
        registry.record_request(1, "example.com", "https", "script")

        assert registry.attach_resolution(1, "example.com", doh_result(ipv6=ipv6))

        record = registry.get_snapshot(1).domains["example.com"]
        expected = IPv6Support.SUPPORTED if ipv6 else IPv6Support.UNSUPPORTED
        assert record.ipv6_support is expected

    def test_attach_to_unknown_domain_is_noop(self) -> None:
        registry = DomainRegistry(clock=FakeClock())
        assert not registry.attach_resolution(1, "example.com", doh_result())

    def test_display_states_are_distinct(self) -> None:
        registry = DomainRegistry(clock=FakeClock())
        for host in ("a.com", "b.lan", "c.com", "d.com"):
            registry.record_request(1, host, "https", "script")
        registry.attach_resolution(1, "b.lan", ResolutionResult.local(1.0))
        registry.attach_resolution(1, "c.com", ResolutionResult.unknown(1.0))
        registry.attach_resolution(1, "d.com", doh_result())

        domains = registry.get_snapshot(1).domains
        assert display_state(domains["a.com"]) is DisplayState.LOADING
        assert display_state(domains["b.lan"]) is DisplayState.LOCAL
        assert display_state(domains["c.com"]) is DisplayState.UNKNOWN
        assert display_state(domains["d.com"]) is DisplayState.RESOLVED

    def test_clear_resolutions(self) -> None:
        registry = DomainRegistry(clock=FakeClock())
        registry.record_request(1, "example.com", "https", "script")
        registry.attach_resolution(1, "example.com", doh_result())
        registry.clear_resolutions(1)

        record = registry.get_snapshot(1).domains["example.com"]
        assert record.resolution is None
        assert record.ipv6_support is IPv6Support.UNKNOWN


class TestConnectionSecurityProperty:
    """Property 26: any plain-http domain marks the tab insecure."""

    @given(protocols=st.lists(st.sampled_from(["http", "https", "wss"]), min_size=1, max_size=10))
    @settings(max_examples=100)
    def test_security_summary(self, protocols: list[str]) -> None:
        registry = DomainRegistry(clock=FakeClock())
        for i, protocol in enumerate(protocols):
            registry.record_request(1, f"host{i}.com", protocol, "script")

        security = registry.connection_security(1)
        if "http" in protocols:
            assert security is ConnectionSecurity.INSECURE_DETECTED
        elif "https" in protocols:
            assert security is ConnectionSecurity.ALL_SECURE
        else:
            assert security is ConnectionSecurity.NO_DATA

    def test_unknown_tab_has_no_data(self) -> None:
        assert DomainRegistry().connection_security(5) is ConnectionSecurity.NO_DATA


class TestUserPublicIP:

    def test_newest_report_replaces_previous(self) -> None:
        registry = DomainRegistry()
        registry.set_user_public_ip(UserPublicIP(ipv4="203.0.113.7", ipv6="2001:4860::1", timestamp=1.0))
        registry.set_user_public_ip(UserPublicIP(ipv4="198.51.100.9", timestamp=2.0))

        assert registry.user_public_ip == UserPublicIP(ipv4="198.51.100.9", timestamp=2.0)


def make_store(tmpdir: str, clock: FakeClock, secret: str = "test-secret") -> SnapshotStore:
    return SnapshotStore(Path(tmpdir) / "tabs.json", secret, clock=clock)


class TestSnapshotStoreProperty:
    """Property 27: snapshots survive a restart and detect tampering."""

    @given(requests=st.lists(st.tuples(hosts, request_types), min_size=1, max_size=10))
    @settings(max_examples=30)
    def test_flush_and_restore(self, requests: list[tuple[str, str]]) -> None:
        clock = FakeClock()
        with tempfile.TemporaryDirectory() as tmpdir:
            registry = DomainRegistry(snapshot_store=make_store(tmpdir, clock), clock=clock)
            registry.record_request_url(7, "https://page.com/", "main_frame")
            for host, request_type in requests:
                registry.record_request(7, host, "https", request_type)
            registry.attach_resolution(7, "page.com", doh_result())
            assert registry.flush()

            restarted = DomainRegistry(snapshot_store=make_store(tmpdir, clock), clock=clock)
            restored = restarted.restore(7, "https://page.com/")

            assert restored == registry.get_snapshot(7)

    def test_flush_skipped_when_clean(self) -> None:
        clock = FakeClock()
        with tempfile.TemporaryDirectory() as tmpdir:
            registry = DomainRegistry(snapshot_store=make_store(tmpdir, clock), clock=clock)
            registry.record_request(1, "a.com", "https", "script")
            assert registry.flush()
            assert not registry.flush()

    def test_tampered_snapshot_rejected(self) -> None:
        clock = FakeClock()
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir, clock)
            store.save({1: TabState(main_domain="a.com", last_update=clock.now)})

            with open(store.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            data["tabs"]["1"]["mainDomain"] = "evil.com"
            with open(store.file_path, "w", encoding="utf-8") as f:
                json.dump(data, f)

            try:
                store.load()
            except TamperingError:
                pass
            else:
                raise AssertionError("tampered snapshot accepted")

            registry = DomainRegistry(snapshot_store=store, clock=clock)
            assert registry.restore(1) is None

    def test_wrong_secret_rejected(self) -> None:
        clock = FakeClock()
        with tempfile.TemporaryDirectory() as tmpdir:
            make_store(tmpdir, clock, "one").save({1: TabState(last_update=clock.now)})
            try:
                make_store(tmpdir, clock, "two").load()
            except TamperingError:
                return
        raise AssertionError("snapshot accepted with a different secret")

    def test_corrupt_file_is_persistence_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir, FakeClock())
            store.file_path.write_text("{not json", encoding="utf-8")
            try:
                store.load()
            except TamperingError:
                raise AssertionError("corrupt file reported as tampering")
            except PersistenceError as e:
                assert e.code == "parse_error"
                return
        raise AssertionError("corrupt file accepted")

    def test_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            assert make_store(tmpdir, FakeClock()).load() == {}

    def test_old_snapshots_dropped(self) -> None:
        clock = FakeClock()
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir, clock)
            store.save({
                1: TabState(main_domain="fresh.com", last_update=clock.now - 1799.0),
                2: TabState(main_domain="stale.com", last_update=clock.now - 1801.0),
            })

            loaded = store.load()

            assert set(loaded) == {1}

    def test_restore_discards_navigated_away_tab(self) -> None:
        clock = FakeClock()
        with tempfile.TemporaryDirectory() as tmpdir:
            registry = DomainRegistry(snapshot_store=make_store(tmpdir, clock), clock=clock)
            registry.record_request_url(4, "https://shop.com/cart?item=3", "main_frame")
            registry.flush()

            restarted = DomainRegistry(snapshot_store=make_store(tmpdir, clock), clock=clock)
            assert restarted.restore(4, "https://news.com/") is None

            restarted_again = DomainRegistry(snapshot_store=make_store(tmpdir, clock), clock=clock)
            restored = restarted_again.restore(4, "https://shop.com/cart?item=4")
            assert restored is not None
            assert restored.main_domain == "shop.com"
