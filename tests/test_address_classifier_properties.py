"""
Property-based tests for the Address Classifier module.

Uses Hypothesis to verify that classification is conservative: malformed
input is private, and public ranges are never mistaken for local ones.
"""

import ipaddress
import string

from hypothesis import given, settings, assume
from hypothesis import strategies as st

from ip_monitor.address_classifier import (
    is_local_domain_name,
    is_private_ipv4,
    is_private_ipv6,
    is_valid_ipv4,
    normalize_ipv6,
)


octet = st.integers(min_value=0, max_value=255)


def _is_ascii_dotted_quad(text: str) -> bool:
    """Independent oracle: four ASCII decimal octets, nothing else."""
    if not text.isascii() or text != text.strip():
        return False
    parts = text.split(".")
    if len(parts) != 4 or not all(p.isdigit() and len(p) <= 3 for p in parts):
        return False
    try:
        ipaddress.IPv4Address(".".join(str(int(p)) for p in parts))
    except ipaddress.AddressValueError:
        return False
    return True


def _is_private_octets(a: int, b: int) -> bool:
    return (
        a in (0, 10, 127)
        or (a == 169 and b == 254)
        or (a == 192 and b == 168)
        or (a == 172 and 16 <= b <= 31)
        or (a == 100 and 64 <= b <= 127)
    )


class TestPrivateIPv4Property:
    """
    Property 1: IPv4 classification matches the reserved ranges exactly,
    and anything malformed is private.
    """

    @given(a=octet, b=octet, c=octet, d=octet)
    @settings(max_examples=200)
    def test_classification_matches_reserved_ranges(
        self, a: int, b: int, c: int, d: int
    ) -> None:
        """
        *For any* well-formed dotted quad, the address SHALL be private iff
        it falls in one of the reserved ranges.
        """
        address = f"{a}.{b}.{c}.{d}"
        assert is_private_ipv4(address) == _is_private_octets(a, b)

    @given(
        a=octet, b=octet, c=octet,
        bad=st.integers(min_value=256, max_value=100000),
    )
    @settings(max_examples=100)
    def test_out_of_range_octet_is_private(self, a: int, b: int, c: int, bad: int) -> None:
        """An octet above 255 makes the address malformed, hence private."""
        assert is_private_ipv4(f"{a}.{b}.{c}.{bad}")
        assert not is_valid_ipv4(f"{a}.{b}.{c}.{bad}")

    @given(text=st.one_of(
        st.text(max_size=30),
        st.text(alphabet="0123456789.\n ٨१", max_size=20),
    ))
    @settings(max_examples=300)
    def test_never_raises_and_garbage_is_private(self, text: str) -> None:
        """*For any* string that is not a plain ASCII dotted quad, the result SHALL be private."""
        result = is_private_ipv4(text)
        if not _is_ascii_dotted_quad(text):
            assert result is True

    def test_trailing_newline_and_foreign_digits_are_private(self) -> None:
        assert is_private_ipv4("8.8.8.8\n")
        assert is_private_ipv4("8.8.8.8\r\n")
        assert is_private_ipv4("٨.٨.٨.٨")
        assert is_private_ipv4("२.8.8.8")
        assert not is_valid_ipv4("8.8.8.8\n")

    def test_known_addresses(self) -> None:
        assert is_private_ipv4("10.0.0.5")
        assert is_private_ipv4("172.31.255.255")
        assert not is_private_ipv4("172.32.0.1")
        assert is_private_ipv4("100.64.0.1")
        assert not is_private_ipv4("100.128.0.1")
        assert is_private_ipv4("169.254.1.1")
        assert not is_private_ipv4("93.184.216.34")
        assert not is_private_ipv4("8.8.8.8")

    def test_non_numeric_octet_is_private(self) -> None:
        assert is_private_ipv4("192.168.one.1")
        assert is_private_ipv4("1.2.3")
        assert is_private_ipv4("1.2.3.4.5")
        assert is_private_ipv4("")
        assert is_private_ipv4(None)


class TestPrivateIPv6Property:
    """Property 2: IPv6 classification strips zones and fails safe."""

    hex_group = st.text(alphabet="0123456789abcdef", min_size=1, max_size=4)

    @given(
        groups=st.lists(hex_group, min_size=2, max_size=8),
        zone=st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=6),
    )
    @settings(max_examples=100)
    def test_zone_suffix_does_not_change_classification(
        self, groups: list[str], zone: str
    ) -> None:
        """*For any* address, appending a zone suffix SHALL not change the result."""
        address = ":".join(groups)
        assert is_private_ipv6(address) == is_private_ipv6(f"{address}%{zone}")

    @given(groups=st.lists(hex_group, min_size=2, max_size=8))
    @settings(max_examples=100)
    def test_case_insensitive(self, groups: list[str]) -> None:
        address = ":".join(groups)
        assert is_private_ipv6(address) == is_private_ipv6(address.upper())

    @given(text=st.text(alphabet="ghijklmnopqrstuvwxyz!@# .", min_size=1, max_size=20))
    @settings(max_examples=100)
    def test_invalid_syntax_is_private(self, text: str) -> None:
        assert is_private_ipv6(text)

    @given(
        groups=st.lists(hex_group, min_size=2, max_size=8),
        junk=st.sampled_from(["\n", "\r\n", " ", "\t", "٨", "ａ"]),
    )
    @settings(max_examples=100)
    def test_trailing_junk_is_private(self, groups: list[str], junk: str) -> None:
        """*For any* address with a non-hex character appended, the result SHALL be private."""
        assert is_private_ipv6(":".join(groups) + junk)

    def test_trailing_newline_is_private(self) -> None:
        assert not is_private_ipv6("2606:4700::1")
        assert is_private_ipv6("2606:4700::1\n")

    def test_known_addresses(self) -> None:
        assert is_private_ipv6("::1")
        assert is_private_ipv6("fe80::1%en0")
        assert is_private_ipv6("FE80::abcd")
        assert is_private_ipv6("fc00::1")
        assert is_private_ipv6("fd12:3456::1")
        assert is_private_ipv6("2001:db8::1")
        assert not is_private_ipv6("2606:2800:220:1:248:1893:25c8:1946")
        assert not is_private_ipv6("2001:4860:4860::8888")

    def test_normalize_strips_zone_and_lowercases(self) -> None:
        assert normalize_ipv6("FE80::1%eth0") == "fe80::1"


class TestLocalDomainNameProperty:
    """Property 3: local names are recognized and public names are not."""

    label = st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=15)

    @given(label=label, tld=st.sampled_from([".local", ".home", ".lan", ".internal", ".lab"]))
    @settings(max_examples=100)
    def test_home_network_tlds_are_local(self, label: str, tld: str) -> None:
        assert is_local_domain_name(f"{label}{tld}")
        assert is_local_domain_name(f"{label}{tld}".upper())

    @given(label=label, tld=st.sampled_from([".com", ".org", ".net", ".de", ".io"]))
    @settings(max_examples=100)
    def test_public_tlds_are_not_local(self, label: str, tld: str) -> None:
        assume(label != "localhost")
        assert not is_local_domain_name(f"{label}{tld}")

    def test_loopback_names(self) -> None:
        assert is_local_domain_name("localhost")
        assert is_local_domain_name("127.0.0.1")
        assert is_local_domain_name("::1")
        assert is_local_domain_name("[::1]")
        assert is_local_domain_name("localhost.")

    def test_literal_addresses(self) -> None:
        assert is_local_domain_name("10.0.0.5")
        assert is_local_domain_name("192.168.1.1")
        assert not is_local_domain_name("93.184.216.34")
        assert is_local_domain_name("fd00::1")
        assert not is_local_domain_name("2001:4860:4860::8888")

    def test_names_starting_with_unique_local_prefix_are_not_local(self) -> None:
        assert not is_local_domain_name("fdic.gov")
        assert not is_local_domain_name("fcbarcelona.com")

    def test_non_string_is_not_local(self) -> None:
        assert not is_local_domain_name(None)
        assert not is_local_domain_name("")
