"""
DNS-over-HTTPS client.

Resolves A and AAAA records through a public JSON DoH endpoint
(``Accept: application/dns-json``). Both record types are queried in
parallel and each may fail independently; local domains are never sent.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .address_classifier import is_local_domain_name
from .audit_logger import AuditLogger
from .config import DEFAULT_DOH_ENDPOINT
from .enums import DnsRecordType, LogLevel, ResolverKind
from .exceptions import NetworkUnavailableError
from .models import ResolutionResult


COMPONENT = "DoHClient"


@dataclass
class DoHAnswer:
    """Addresses of one record type returned by a DoH query."""

    record_type: DnsRecordType
    addresses: list[str]
    status: Optional[int] = None


class DoHClient:
    """
    Async DNS-over-HTTPS client.

    Usable as an async context manager; otherwise an httpx client is
    created lazily on first query and released by close().
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_DOH_ENDPOINT,
        timeout: float = 3.0,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the DoH client.

        Args:
            endpoint: JSON DoH endpoint URL
            timeout: Request timeout in seconds
            clock: Source of result timestamps in epoch seconds
            logger: Optional audit logger
            transport: Optional httpx transport (tests inject a mock here)
        """
        self._endpoint = endpoint
        self._timeout = timeout
        self._clock = clock
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DoHClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def query(self, domain: str, record_type: DnsRecordType) -> DoHAnswer:
        """
        Query one record type.

        Only answers whose ``type`` equals the requested type contribute;
        a response without an ``Answer`` field means zero addresses.

        Raises:
            NetworkUnavailableError: On transport failure, a non-2xx status
                or an unreadable body
        """
        client = self._ensure_client()
        try:
            response = await client.get(
                self._endpoint,
                params={"name": domain, "type": record_type.name},
                headers={"Accept": "application/dns-json"},
            )
        except httpx.TimeoutException as e:
            raise NetworkUnavailableError(
                code="timeout",
                message=f"DoH {record_type.name} query timed out after {self._timeout}s",
                details={"domain": domain},
            ) from e
        except httpx.HTTPError as e:
            raise NetworkUnavailableError(
                code="network_error",
                message=f"DoH {record_type.name} query failed: {e}",
                details={"domain": domain},
            ) from e

        if not response.is_success:
            raise NetworkUnavailableError(
                code="http_error",
                message=f"DoH endpoint returned HTTP {response.status_code}",
                details={"domain": domain, "status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise NetworkUnavailableError(
                code="parse_error",
                message=f"DoH response is not JSON: {e}",
                details={"domain": domain},
            ) from e

        return DoHAnswer(
            record_type=record_type,
            addresses=self._parse_answers(body, record_type),
            status=body.get("Status") if isinstance(body, dict) else None,
        )

    @staticmethod
    def _parse_answers(body, record_type: DnsRecordType) -> list[str]:
        if not isinstance(body, dict):
            return []
        answers = body.get("Answer")
        if not isinstance(answers, list):
            return []
        return [
            answer["data"]
            for answer in answers
            if isinstance(answer, dict)
            and answer.get("type") == int(record_type)
            and isinstance(answer.get("data"), str)
        ]

    async def resolve(self, domain: str) -> ResolutionResult:
        """
        Resolve A and AAAA records in parallel.

        Returns:
            A ``doh`` result, partial if one query failed, or a ``local``
            result if the domain must not leave the machine

        Raises:
            NetworkUnavailableError: If both queries failed
        """
        if is_local_domain_name(domain):
            return ResolutionResult.local(self._clock())

        ipv4_outcome, ipv6_outcome = await asyncio.gather(
            self.query(domain, DnsRecordType.A),
            self.query(domain, DnsRecordType.AAAA),
            return_exceptions=True,
        )

        failures = []
        for outcome in (ipv4_outcome, ipv6_outcome):
            if isinstance(outcome, NetworkUnavailableError):
                failures.append(outcome)
                self._log(LogLevel.WARN, "DoH query failed", {
                    "domain": domain, "error_code": outcome.code, "error": outcome.message,
                })
            elif isinstance(outcome, BaseException):
                raise outcome

        if len(failures) == 2:
            raise NetworkUnavailableError(
                code="all_queries_failed",
                message=f"DoH resolution failed for {domain}",
                details={"errors": [f.to_dict() for f in failures]},
            )

        return ResolutionResult(
            ipv4=ipv4_outcome.addresses if isinstance(ipv4_outcome, DoHAnswer) else [],
            ipv6=ipv6_outcome.addresses if isinstance(ipv6_outcome, DoHAnswer) else [],
            is_local=False,
            resolver=ResolverKind.DOH,
            timestamp=self._clock(),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)
