"""
WebRTC candidate extraction.

Infers the user's externally visible IPv4/IPv6 addresses from the ICE
candidates a peer connection gathers against STUN servers. Candidates are
whitespace-delimited; the transport address is the fifth field. Private
and local addresses are kept aside and never reported as public; the first
public address of each family wins.

The extraction finishes when both families are found (complete) or when
the gather timeout expires (timed out). Either way the peer connection is
released exactly once.
"""

import asyncio
import time
from abc import abstractmethod
from typing import Awaitable, Callable, Iterable, Optional, Protocol, runtime_checkable

import httpx

from .address_classifier import (
    is_private_ipv4,
    is_private_ipv6,
    is_valid_ipv4,
    normalize_ipv6,
)
from .audit_logger import AuditLogger
from .enums import ExtractorState, LogLevel
from .models import CandidateReport, UserPublicIP


COMPONENT = "CandidateExtractor"

ADDRESS_FIELD_INDEX = 4
MIN_CANDIDATE_FIELDS = 6
SDP_CANDIDATE_PREFIX = "a=candidate:"

DEFAULT_GATHER_TIMEOUT = 5.0


def candidate_address(candidate: str) -> Optional[str]:
    """
    Extract the transport address from an ICE candidate string.

    >>> candidate_address("candidate:1 1 udp 2122260223 192.168.1.5 54321 typ host")
    '192.168.1.5'
    """
    if not isinstance(candidate, str):
        return None
    fields = candidate.split()
    if len(fields) < MIN_CANDIDATE_FIELDS:
        return None
    return fields[ADDRESS_FIELD_INDEX]


def candidates_from_sdp(sdp: str) -> list[str]:
    """Collect candidate attributes (``candidate:...``) from SDP text."""
    candidates = []
    for line in sdp.splitlines():
        line = line.strip()
        if line.startswith(SDP_CANDIDATE_PREFIX):
            candidates.append(line[2:])
    return candidates


@runtime_checkable
class PeerConnection(Protocol):
    """The resource held while candidates are gathered."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection."""
        ...


class CandidateExtractor:
    """
    State machine accumulating addresses from ICE candidates.

    States: collecting -> complete (both families found) or
    collecting -> timed_out (gather timeout). Both are terminal.
    """

    def __init__(
        self,
        connection: Optional[PeerConnection] = None,
        timeout: float = DEFAULT_GATHER_TIMEOUT,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the extractor.

        Args:
            connection: Peer connection to release when extraction ends
            timeout: Seconds to wait for both address families
            logger: Optional audit logger
        """
        self._connection = connection
        self._timeout = timeout
        self._logger = logger
        self._state = ExtractorState.COLLECTING
        self._released = False
        self._finished = asyncio.Event()
        self._ipv4: Optional[str] = None
        self._ipv6: Optional[str] = None
        self._local: list[str] = []

    @property
    def state(self) -> ExtractorState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state is not ExtractorState.COLLECTING

    @property
    def released(self) -> bool:
        return self._released

    def add_candidate(self, candidate: Optional[str]) -> None:
        """Classify one ICE candidate; ignored once extraction has ended."""
        if self.done or not candidate:
            return

        address = candidate_address(candidate)
        if not address:
            return

        if "." in address:
            # IPv4-looking garbage (e.g. mDNS names) is dropped outright
            if not is_valid_ipv4(address):
                return
            if is_private_ipv4(address):
                self._remember_local(address)
            elif self._ipv4 is None:
                self._ipv4 = address
        elif ":" in address:
            normalized = normalize_ipv6(address)
            if is_private_ipv6(normalized):
                self._remember_local(normalized)
            elif self._ipv6 is None:
                self._ipv6 = normalized
        else:
            return

        if self._ipv4 and self._ipv6:
            self._finish(ExtractorState.COMPLETE)

    def add_candidates(self, candidates: Iterable[str]) -> None:
        for candidate in candidates:
            self.add_candidate(candidate)

    async def wait(self) -> CandidateReport:
        """
        Wait until both families are found or the timeout expires.

        Returns:
            The addresses gathered so far
        """
        if not self.done:
            try:
                await asyncio.wait_for(self._finished.wait(), timeout=self._timeout)
            except asyncio.TimeoutError:
                self._finish(ExtractorState.TIMED_OUT)
        return self.report()

    def report(self) -> CandidateReport:
        return CandidateReport(ipv4=self._ipv4, ipv6=self._ipv6, local=tuple(self._local))

    def _remember_local(self, address: str) -> None:
        if address not in self._local:
            self._local.append(address)

    def _finish(self, state: ExtractorState) -> None:
        if self.done:
            return
        self._state = state
        self._finished.set()
        self._release()
        self._log(LogLevel.INFO, "Candidate extraction finished", {
            "state": state.value,
            "ipv4": self._ipv4,
            "ipv6": self._ipv6,
            "local": len(self._local),
        })

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._connection is None:
            return
        try:
            self._connection.close()
        except Exception as e:
            if self._logger:
                self._logger.log_error(COMPONENT, "Failed to close peer connection", e)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)


async def check_ipv6_connectivity(
    url: str = "https://ipv6.google.com/",
    timeout: float = 2.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Return True if an IPv6-only endpoint answers at all within the timeout."""
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            transport=transport,
        ) as client:
            await client.get(url)
        return True
    except httpx.HTTPError:
        return False


async def detect_public_ip(
    extractor: CandidateExtractor,
    ipv6_probe: Optional[Callable[[], Awaitable[bool]]] = None,
    clock: Callable[[], float] = time.time,
) -> tuple[UserPublicIP, CandidateReport]:
    """
    Finish an extraction and build the user's public IP record.

    Args:
        extractor: Extractor being fed candidates
        ipv6_probe: Optional IPv6 connectivity check run after extraction
        clock: Source of the report timestamp

    Returns:
        The UserPublicIP record and the raw candidate report
    """
    report = await extractor.wait()
    has_ipv6 = await ipv6_probe() if ipv6_probe else False
    user_ip = UserPublicIP(
        ipv4=report.ipv4,
        ipv6=report.ipv6,
        has_ipv6_connectivity=has_ipv6,
        timestamp=clock(),
    )
    return user_ip, report
