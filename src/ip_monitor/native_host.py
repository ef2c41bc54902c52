"""
Native resolver host.

A small process that answers native messaging requests on stdin/stdout.
Each message is a 4-byte length prefix in native byte order followed by
UTF-8 JSON. The host resolves names through the operating system's
getaddrinfo, the same facility every other program on the machine uses.

Handled messages:
- performDNSLookup: {name, domain} -> {domain, ipv4, ipv6, success}
  or {domain, ipv4, ipv6, error, errorCode, systemMessage}
- getNativeInfo: version, platform and capabilities
"""

import json
import platform
import socket
import struct
import sys
import threading
from typing import BinaryIO, Optional

import idna

from . import __version__
from .enums import NativeErrorCode
from .i18n import DEFAULT_LANGUAGE, get_message


LENGTH_PREFIX = struct.Struct("=I")

# Upper bound on a single inbound message; lookups are tiny
MAX_MESSAGE_BYTES = 1024 * 1024

DEFAULT_LOOKUP_TIMEOUT = 5.0


class FramingError(Exception):
    """Raised when a message frame cannot be read or decoded."""

    pass


class LookupTimeout(Exception):
    """Raised when getaddrinfo does not return within the lookup timeout."""

    pass


def encode_message(message: dict) -> bytes:
    """Frame a message for the native messaging channel."""
    payload = json.dumps(message, ensure_ascii=False).encode("utf-8")
    return LENGTH_PREFIX.pack(len(payload)) + payload


def decode_message(frame: bytes) -> dict:
    """
    Decode one complete frame.

    Raises:
        FramingError: If the frame is truncated or not a JSON object
    """
    if len(frame) < LENGTH_PREFIX.size:
        raise FramingError("Frame shorter than its length prefix")
    (length,) = LENGTH_PREFIX.unpack(frame[:LENGTH_PREFIX.size])
    payload = frame[LENGTH_PREFIX.size:LENGTH_PREFIX.size + length]
    if len(payload) != length:
        raise FramingError(f"Expected {length} payload bytes, got {len(payload)}")
    try:
        message = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FramingError(f"Invalid message payload: {e}") from e
    if not isinstance(message, dict):
        raise FramingError("Message payload is not an object")
    return message


def read_message(stream: BinaryIO) -> Optional[dict]:
    """Read one message from a binary stream; None on clean EOF."""
    header = stream.read(LENGTH_PREFIX.size)
    if not header:
        return None
    if len(header) < LENGTH_PREFIX.size:
        raise FramingError("Truncated length prefix")
    (length,) = LENGTH_PREFIX.unpack(header)
    if length > MAX_MESSAGE_BYTES:
        raise FramingError(f"Message of {length} bytes exceeds limit")
    payload = stream.read(length)
    return decode_message(header + payload)


def write_message(stream: BinaryIO, message: dict) -> None:
    stream.write(encode_message(message))
    stream.flush()


def _error_response(
    domain: Optional[str],
    code: NativeErrorCode,
    system_message: str = "",
    ipv4: Optional[list[str]] = None,
    ipv6: Optional[list[str]] = None,
) -> dict:
    return {
        "domain": domain,
        "ipv4": ipv4 or [],
        "ipv6": ipv6 or [],
        "error": get_message(code.message_key, DEFAULT_LANGUAGE),
        "errorCode": int(code),
        "systemMessage": system_message,
    }


def _to_query_name(domain: str) -> str:
    """IDNA-encode internationalised names; ASCII names pass through."""
    if all(ord(c) < 128 for c in domain):
        return domain
    return idna.encode(domain, uts46=True).decode("ascii")


def _getaddrinfo(host: str) -> tuple[list[str], list[str]]:
    ipv4: list[str] = []
    ipv6: list[str] = []
    for family, _, _, _, sockaddr in socket.getaddrinfo(
        host, None, socket.AF_UNSPEC, socket.SOCK_STREAM
    ):
        address = sockaddr[0]
        if family == socket.AF_INET:
            ipv4.append(address)
        elif family == socket.AF_INET6:
            ipv6.append(address)
    # Deduplicate, preserve order
    return list(dict.fromkeys(ipv4)), list(dict.fromkeys(ipv6))


def _bounded_getaddrinfo(host: str, timeout: float) -> tuple[list[str], list[str]]:
    """
    Run getaddrinfo on a daemon thread and wait at most ``timeout`` seconds.

    A lookup that never returns leaves its thread behind; being a daemon,
    it does not hold up interpreter exit.

    Raises:
        LookupTimeout: If the lookup is still running after the timeout
        OSError: As raised by getaddrinfo
    """
    outcome: dict = {}

    def run() -> None:
        try:
            outcome["addresses"] = _getaddrinfo(host)
        except (OSError, UnicodeError) as e:
            outcome["error"] = e

    worker = threading.Thread(target=run, name=f"getaddrinfo-{host}", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise LookupTimeout(host)
    if "error" in outcome:
        raise outcome["error"]
    return outcome["addresses"]


def perform_dns_lookup(
    domain: Optional[str],
    timeout: float = DEFAULT_LOOKUP_TIMEOUT,
) -> dict:
    """
    Resolve a domain through the system resolver with a bounded wait.

    Args:
        domain: Host name to resolve
        timeout: Seconds to wait for getaddrinfo

    Returns:
        Wire-format response dict (success or error)
    """
    if not isinstance(domain, str) or not domain.strip():
        return {
            "error": get_message(NativeErrorCode.INVALID_DOMAIN.message_key, DEFAULT_LANGUAGE),
            "errorCode": int(NativeErrorCode.INVALID_DOMAIN),
        }

    try:
        host = _to_query_name(domain.strip())
    except idna.IDNAError as e:
        return _error_response(domain, NativeErrorCode.DNS_RESOLUTION_FAILED, str(e))

    try:
        ipv4, ipv6 = _bounded_getaddrinfo(host, timeout)
    except LookupTimeout:
        return _error_response(domain, NativeErrorCode.TIMEOUT)
    except socket.gaierror as e:
        return _error_response(
            domain, NativeErrorCode.DNS_RESOLUTION_FAILED, e.strerror or str(e)
        )
    except (OSError, UnicodeError) as e:
        return _error_response(domain, NativeErrorCode.SYSTEM_ERROR, str(e))

    return {"domain": domain, "ipv4": ipv4, "ipv6": ipv6, "success": True}


def native_info() -> dict:
    return {
        "version": __version__,
        "platform": platform.system(),
        "capabilities": {
            "dnsLookup": True,
            # Which address a connection actually used is not observable here
            "networkMonitoring": False,
        },
    }


def handle_message(message: dict, timeout: float = DEFAULT_LOOKUP_TIMEOUT) -> dict:
    """Dispatch one decoded message to its handler."""
    name = message.get("name")
    if name == "performDNSLookup":
        return perform_dns_lookup(message.get("domain"), timeout=timeout)
    if name == "getNativeInfo":
        return native_info()
    return {"error": "Unknown message type"}


def serve(
    stdin: BinaryIO,
    stdout: BinaryIO,
    timeout: float = DEFAULT_LOOKUP_TIMEOUT,
) -> int:
    """
    Answer messages until EOF.

    Returns:
        Exit code (0 on clean EOF, 1 on a framing error)
    """
    while True:
        try:
            message = read_message(stdin)
        except FramingError as e:
            write_message(stdout, {
                "error": get_message(NativeErrorCode.SYSTEM_ERROR.message_key, DEFAULT_LANGUAGE),
                "errorCode": int(NativeErrorCode.SYSTEM_ERROR),
                "systemMessage": str(e),
            })
            return 1
        if message is None:
            return 0
        write_message(stdout, handle_message(message, timeout=timeout))


def main() -> int:
    """Entry point for the native host process."""
    return serve(sys.stdin.buffer, sys.stdout.buffer)


if __name__ == "__main__":
    sys.exit(main())
