"""
Native Resolver Bridge.

Invokes the out-of-process native resolver host with a bounded timeout and
translates its replies (and any failure to reach it) into a small typed
error taxonomy. Nothing here raises to the caller: a missing transport is
reported as None, every other failure as a NativeLookupResponse carrying
a NativeLookupError.
"""

import asyncio
import contextlib
import shutil
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .enums import LogLevel, NativeErrorCode, ResolverKind
from .exceptions import (
    InvalidInputError,
    IPMonitorError,
    ResolutionFailedError,
    ResolutionTimeoutError,
    TransportUnavailableError,
)
from .i18n import get_message
from .models import ResolutionResult
from .native_host import FramingError, decode_message, encode_message


COMPONENT = "NativeResolverBridge"


@dataclass
class NativeLookupError:
    """Error information from a native lookup."""

    code: NativeErrorCode
    message: str
    system_message: str = ""

    def to_exception(self) -> IPMonitorError:
        """Map the wire error onto the resolver exception taxonomy."""
        details = {"error_code": int(self.code), "system_message": self.system_message}
        if self.code is NativeErrorCode.INVALID_DOMAIN:
            return InvalidInputError(code="invalid_domain", message=self.message, details=details)
        if self.code is NativeErrorCode.TIMEOUT:
            return ResolutionTimeoutError(code="timeout", message=self.message, details=details)
        return ResolutionFailedError(
            code=self.code.name.lower(), message=self.message, details=details
        )


@dataclass
class NativeLookupResponse:
    """Outcome of one native lookup: a result or an error, never both."""

    domain: str
    result: Optional[ResolutionResult]
    error: Optional[NativeLookupError]

    @property
    def succeeded(self) -> bool:
        return self.result is not None


def default_host_command(timeout: float) -> list[str]:
    return [sys.executable, "-m", "ip_monitor", "native-host", "--timeout", str(timeout)]


def _dedupe(values) -> list[str]:
    if not isinstance(values, list):
        return []
    return list(dict.fromkeys(v for v in values if isinstance(v, str) and v))


class NativeResolverBridge:
    """
    Client for the native resolver host.

    A host process is started per request and fed a single framed
    message; closing its stdin ends the session.
    """

    DEFAULT_TIMEOUT = 5.0
    # Host start-up plus reply framing, on top of the host's own lookup bound
    DEFAULT_STARTUP_GRACE = 2.0

    def __init__(
        self,
        command: Optional[list[str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        startup_grace: float = DEFAULT_STARTUP_GRACE,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the bridge.

        Args:
            command: Host command line (defaults to the bundled host)
            timeout: Lookup timeout handed to the host
            startup_grace: Extra seconds allowed for the host to start and reply
            enabled: If False, the transport is reported as unavailable
            clock: Source of result timestamps in epoch seconds
            logger: Optional audit logger
        """
        self._command = list(command) if command else default_host_command(timeout)
        self._timeout = timeout
        self._startup_grace = startup_grace
        self._enabled = enabled
        self._clock = clock
        self._logger = logger

    @property
    def available(self) -> bool:
        """Whether the host executable can be launched on this platform."""
        if not self._enabled:
            return False
        executable = self._command[0]
        return shutil.which(executable) is not None or Path(executable).is_file()

    @property
    def timeout(self) -> float:
        return self._timeout

    async def lookup(self, domain: str) -> Optional[NativeLookupResponse]:
        """
        Resolve a domain through the native host.

        Args:
            domain: Domain to resolve

        Returns:
            NativeLookupResponse, or None if the bridge is unavailable
        """
        if not domain:
            return self._failure(domain, NativeErrorCode.INVALID_DOMAIN)

        try:
            reply = await self._exchange({"name": "performDNSLookup", "domain": domain})
        except TransportUnavailableError as e:
            self._log(LogLevel.DEBUG, "Native transport unavailable", {"reason": e.message})
            return None
        except asyncio.TimeoutError:
            return self._failure(domain, NativeErrorCode.TIMEOUT)
        except (FramingError, OSError) as e:
            return self._failure(domain, NativeErrorCode.SYSTEM_ERROR, str(e))

        if "error" in reply:
            try:
                code = NativeErrorCode(int(reply.get("errorCode", 0)))
            except (TypeError, ValueError):
                code = NativeErrorCode.UNKNOWN
            return self._failure(domain, code, str(reply.get("systemMessage") or ""))

        result = ResolutionResult(
            ipv4=_dedupe(reply.get("ipv4")),
            ipv6=_dedupe(reply.get("ipv6")),
            is_local=False,
            resolver=ResolverKind.SYSTEM,
            timestamp=self._clock(),
        )
        self._log(LogLevel.DEBUG, "Native lookup succeeded", {
            "domain": domain, "ipv4": len(result.ipv4), "ipv6": len(result.ipv6),
        })
        return NativeLookupResponse(domain=domain, result=result, error=None)

    async def get_native_info(self) -> Optional[dict]:
        """Ask the host for its version and capabilities; None if unreachable."""
        try:
            reply = await self._exchange({"name": "getNativeInfo"})
        except (TransportUnavailableError, asyncio.TimeoutError, FramingError, OSError):
            return None
        if "error" in reply:
            return None
        return reply

    async def _exchange(self, message: dict) -> dict:
        """
        Send one message to a fresh host process and read its reply.

        Raises:
            TransportUnavailableError: If the host cannot be launched
            asyncio.TimeoutError: If no reply arrives within the timeout
            FramingError: If the reply cannot be decoded
        """
        if not self._enabled:
            raise TransportUnavailableError(
                code="disabled",
                message="Native resolver is disabled",
            )

        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise TransportUnavailableError(
                code="not_found",
                message=f"Native host cannot be started: {e}",
                details={"command": self._command},
            ) from e

        try:
            stdout, _ = await asyncio.wait_for(
                process.communicate(encode_message(message)),
                timeout=self._timeout + self._startup_grace,
            )
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise

        return decode_message(stdout)

    def _failure(
        self,
        domain: str,
        code: NativeErrorCode,
        system_message: str = "",
    ) -> NativeLookupResponse:
        error = NativeLookupError(
            code=code,
            message=get_message(code.message_key),
            system_message=system_message,
        )
        self._log(LogLevel.WARN, "Native lookup failed", {
            "domain": domain,
            "error_code": int(code),
            "error": error.message,
            "system_message": system_message,
        })
        return NativeLookupResponse(domain=domain, result=None, error=error)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)
