"""
Address and domain classification.

Pure functions deciding whether an address is private, reserved or local,
and whether a domain name should ever be resolved beyond the local machine.
Classification is conservative: anything that cannot be parsed is treated
as private, and no function here raises.
"""

import re
from typing import Optional


IPV4_OCTET_PATTERN = re.compile(r"[0-9]{1,3}")
IPV4_LITERAL_PATTERN = re.compile(r"[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+")
IPV6_CHARS_PATTERN = re.compile(r"[0-9a-f:]+")

LOCAL_HOSTNAMES = frozenset({"localhost", "127.0.0.1", "::1"})
LOCAL_TLDS = (".local", ".home", ".lan", ".internal", ".lab")


def parse_ipv4(addr: str) -> Optional[tuple[int, int, int, int]]:
    """Return the four octets of a dotted-quad address, or None if malformed."""
    if not isinstance(addr, str):
        return None
    parts = addr.split(".")
    if len(parts) != 4:
        return None
    octets = []
    for part in parts:
        if not IPV4_OCTET_PATTERN.fullmatch(part):
            return None
        value = int(part)
        if value > 255:
            return None
        octets.append(value)
    return octets[0], octets[1], octets[2], octets[3]


def is_valid_ipv4(addr: str) -> bool:
    return parse_ipv4(addr) is not None


def is_private_ipv4(addr: str) -> bool:
    """
    Check whether an IPv4 address is private, reserved or malformed.

    Covers 0/8, 10/8, 127/8, 169.254/16, 172.16/12, 192.168/16 and the
    100.64/10 carrier-grade NAT range.
    """
    octets = parse_ipv4(addr)
    if octets is None:
        return True

    a, b = octets[0], octets[1]
    if a in (0, 10, 127):
        return True
    if a == 169 and b == 254:
        return True
    if a == 192 and b == 168:
        return True
    if a == 172 and 16 <= b <= 31:
        return True
    if a == 100 and 64 <= b <= 127:
        return True
    return False


def normalize_ipv6(addr: str) -> str:
    """Strip any zone suffix (``%en0``) and lower-case."""
    return addr.split("%", 1)[0].lower()


def is_valid_ipv6(addr: str) -> bool:
    """Loose syntax check: hex digits and colons, at least one colon."""
    if not addr or ":" not in addr:
        return False
    return IPV6_CHARS_PATTERN.fullmatch(addr) is not None


def is_private_ipv6(addr: str) -> bool:
    """
    Check whether an IPv6 address is loopback, link-local, unique-local,
    documentation or unparseable.
    """
    if not isinstance(addr, str):
        return True
    normalized = normalize_ipv6(addr)

    if not is_valid_ipv6(normalized):
        return True
    if normalized == "::1":
        return True
    if normalized.startswith("fe80:"):
        return True
    if normalized.startswith(("fc", "fd")):
        return True
    if normalized.startswith("2001:db8"):
        return True
    return False


def is_local_domain_name(domain: str) -> bool:
    """
    Decide whether a host name refers to the local machine or network.

    True for localhost, loopback literals, the home-network TLDs and
    literal private IPv4/IPv6 addresses.
    """
    if not isinstance(domain, str):
        return False
    host = domain.strip().lower().rstrip(".")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not host:
        return False

    if host in LOCAL_HOSTNAMES:
        return True
    if host.endswith(LOCAL_TLDS):
        return True

    if IPV4_LITERAL_PATTERN.fullmatch(host):
        return is_private_ipv4(host)
    if ":" in host:
        return is_private_ipv6(host)
    return False
