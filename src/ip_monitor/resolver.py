"""
Resolver Pipeline.

Produces exactly one ResolutionResult per call, with this fixed order:

1. Local domain with local exclusion enabled: a cached ``local`` result,
   no native or network call.
2. A fresh cache entry (local entries only while exclusion is enabled).
3. The ordered strategy chain: native system resolver, local guard,
   DNS-over-HTTPS. The first strategy that succeeds wins and is cached.
4. Nothing succeeded, or anything unexpected happened: ``unknown``.

Local domains are never sent to DNS-over-HTTPS, even when the user chose
to display them.
"""

import asyncio
import time
from abc import abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from .address_classifier import is_local_domain_name
from .audit_logger import AuditLogger
from .config import ResolverConfig
from .doh_client import DoHClient
from .enums import LogLevel
from .exceptions import IPMonitorError, TransportUnavailableError
from .models import ResolutionResult
from .native_bridge import NativeResolverBridge
from .resolution_cache import ResolutionCache


COMPONENT = "ResolverPipeline"


@dataclass(frozen=True)
class StrategyOutcome:
    """Success (a result) or failure (an optional error) of one strategy."""

    result: Optional[ResolutionResult] = None
    error: Optional[IPMonitorError] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


@runtime_checkable
class ResolverStrategy(Protocol):
    """One link in the resolution chain."""

    name: str

    @abstractmethod
    async def attempt(self, domain: str, is_local: bool) -> StrategyOutcome:
        """
        Try to resolve a domain.

        Args:
            domain: Domain to resolve
            is_local: Whether the domain was classified as local

        Returns:
            StrategyOutcome; failures are returned, not raised
        """
        ...


class SystemResolverStrategy:
    """Resolve through the operating system via the native bridge."""

    name = "system"

    def __init__(self, bridge: NativeResolverBridge) -> None:
        self._bridge = bridge

    async def attempt(self, domain: str, is_local: bool) -> StrategyOutcome:
        response = await self._bridge.lookup(domain)
        if response is None:
            return StrategyOutcome(error=TransportUnavailableError(
                code="unavailable",
                message="Native resolver is not available on this platform",
            ))
        if response.error is not None:
            return StrategyOutcome(error=response.error.to_exception())
        return StrategyOutcome(result=response.result)


class LocalGuardStrategy:
    """Answer local domains locally once the system resolver has failed."""

    name = "local"

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    async def attempt(self, domain: str, is_local: bool) -> StrategyOutcome:
        if is_local:
            return StrategyOutcome(result=ResolutionResult.local(self._clock()))
        return StrategyOutcome()


class DoHStrategy:
    """Resolve public domains over HTTPS."""

    name = "doh"

    def __init__(self, client: DoHClient) -> None:
        self._client = client

    async def attempt(self, domain: str, is_local: bool) -> StrategyOutcome:
        if is_local:
            return StrategyOutcome()
        try:
            return StrategyOutcome(result=await self._client.resolve(domain))
        except IPMonitorError as e:
            return StrategyOutcome(error=e)

    async def close(self) -> None:
        await self._client.close()


class ResolverPipeline:
    """
    Orchestrates classification, cache lookup and the strategy chain.

    Every call runs to completion and caches what it found even if its
    caller stops waiting. Concurrent calls for the same domain each run
    in full unless in-flight de-duplication is enabled.
    """

    def __init__(
        self,
        cache: ResolutionCache,
        strategies: list[ResolverStrategy],
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
        dedupe_inflight: bool = False,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            cache: Shared resolution cache
            strategies: Resolution sources in the order they are tried
            clock: Source of result timestamps in epoch seconds
            logger: Optional audit logger
            dedupe_inflight: Collapse concurrent identical requests onto one task
        """
        self._cache = cache
        self._strategies = list(strategies)
        self._clock = clock
        self._logger = logger
        self._dedupe_inflight = dedupe_inflight
        self._inflight: dict[tuple[str, bool], asyncio.Future] = {}
        self._pending: set[asyncio.Future] = set()

    @classmethod
    def from_config(
        cls,
        config: ResolverConfig,
        cache: Optional[ResolutionCache] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[AuditLogger] = None,
    ) -> "ResolverPipeline":
        """Build the standard system -> local -> DoH chain from configuration."""
        if cache is None:
            cache = ResolutionCache(
                ttl_seconds=config.cache_ttl_seconds,
                capacity=config.cache_capacity,
                clock=clock,
            )
        bridge = NativeResolverBridge(
            command=config.native_host_command,
            timeout=config.native_timeout_seconds,
            enabled=config.native_enabled,
            clock=clock,
            logger=logger,
        )
        doh_client = DoHClient(
            endpoint=config.doh_endpoint,
            timeout=config.doh_timeout_seconds,
            clock=clock,
            logger=logger,
        )
        return cls(
            cache=cache,
            strategies=[
                SystemResolverStrategy(bridge),
                LocalGuardStrategy(clock),
                DoHStrategy(doh_client),
            ],
            clock=clock,
            logger=logger,
            dedupe_inflight=config.dedupe_inflight,
        )

    @property
    def cache(self) -> ResolutionCache:
        return self._cache

    @property
    def strategies(self) -> list[ResolverStrategy]:
        return list(self._strategies)

    async def resolve(
        self,
        domain: str,
        exclude_local_domains: bool = True,
    ) -> ResolutionResult:
        """
        Resolve a domain to its candidate addresses.

        Args:
            domain: Domain as observed in the browser
            exclude_local_domains: Skip resolution of local domains entirely

        Returns:
            ResolutionResult; never raises
        """
        key = (domain, exclude_local_domains)
        if self._dedupe_inflight and key in self._inflight:
            return await asyncio.shield(self._inflight[key])

        task = asyncio.ensure_future(self._run(domain, exclude_local_domains))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        if self._dedupe_inflight:
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))

        # Cancelling the caller leaves the task running and its result cached
        return await asyncio.shield(task)

    async def _run(self, domain: str, exclude_local_domains: bool) -> ResolutionResult:
        try:
            return await self._resolve_ordered(domain, exclude_local_domains)
        except Exception as e:
            self._log_error("Resolution failed unexpectedly", e, {"domain": domain})
            return ResolutionResult.unknown(self._clock())

    async def _resolve_ordered(self, domain: str, exclude_local_domains: bool) -> ResolutionResult:
        is_local = is_local_domain_name(domain)

        if exclude_local_domains and is_local:
            result = ResolutionResult.local(self._clock())
            self._cache.put(domain, result)
            self._log(LogLevel.DEBUG, "Local domain excluded", {"domain": domain})
            return result

        cached = self._cache.get(domain, exclude_local_domains=exclude_local_domains)
        if cached is not None:
            self._log(LogLevel.DEBUG, "Cache hit", {"domain": domain, "resolver": cached.resolver.value})
            return cached

        for strategy in self._strategies:
            outcome = await strategy.attempt(domain, is_local)
            if outcome.succeeded:
                self._cache.put(domain, outcome.result)
                self._log(LogLevel.INFO, "Domain resolved", {
                    "domain": domain,
                    "resolver": outcome.result.resolver.value,
                    "ipv4": len(outcome.result.ipv4),
                    "ipv6": len(outcome.result.ipv6),
                })
                return outcome.result
            if outcome.error is not None:
                self._log(LogLevel.DEBUG, "Resolver strategy failed", {
                    "domain": domain,
                    "strategy": strategy.name,
                    "error": outcome.error.to_dict(),
                })

        self._log(LogLevel.ERROR, "All resolvers failed", {"domain": domain})
        return ResolutionResult.unknown(self._clock())

    def clear_cache(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        """Wait for running resolutions, then release strategy resources."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        for strategy in self._strategies:
            close = getattr(strategy, "close", None)
            if close is not None:
                await close()

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)

    def _log_error(self, message: str, error: Exception, data: dict) -> None:
        if self._logger:
            self._logger.log_error(COMPONENT, message, error, data)
