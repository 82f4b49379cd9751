"""Acquisition service: the two inbound entry points.

acquire_product() and acquire_comparison() sit in front of the pipeline,
consult the result cache, and enforce the overall request ceilings. Neither
raises for acquisition failures; the caller always gets a record (possibly
flagged ``unavailable``) or a possibly-empty comparison list.
"""

import asyncio
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Union

import structlog

from pricepulse.config import Settings, settings as default_settings
from pricepulse.core.exceptions import UnknownPlatformError
from pricepulse.scrapers.base import (
    KIND_PRODUCT,
    KIND_SEARCH,
    AcquisitionTarget,
    NormalizedRecord,
    unavailable_record,
)
from pricepulse.scrapers.factory import StrategyRegistry
from pricepulse.scrapers.methods import AcquisitionMethod, build_methods
from pricepulse.scrapers.pipeline import AcquisitionPipeline
from pricepulse.scrapers.register_strategies import register_all_strategies
from pricepulse.scrapers.strategies.generic import GENERIC_PLATFORM
from pricepulse.scrapers.utils.intermediary_registry import IntermediaryHealthRegistry
from pricepulse.scrapers.utils.timed_fetch import TimedFetcher
from pricepulse.services.cache_service import (
    RedisResultCache,
    ResultCache,
    cache_key_for_comparison,
    cache_key_for_product,
    create_result_cache,
)

logger = structlog.get_logger(__name__)

Cache = Union[ResultCache, RedisResultCache]


class AcquisitionService:
    """Service for acquiring single products and multi-platform comparisons.

    Owns the pipeline and, unless methods are injected, the fetcher and the
    method clients built from settings. The registry and cache are passed
    in so callers decide their lifetime.
    """

    def __init__(
        self,
        settings: Settings,
        registry: IntermediaryHealthRegistry,
        cache: Cache,
        strategies: StrategyRegistry,
        methods: Optional[Sequence[AcquisitionMethod]] = None,
        fetcher: Optional[TimedFetcher] = None,
        exclude: Iterable[str] = (),
    ):
        """Initialize acquisition service.

        Args:
            settings: Application settings
            registry: Shared intermediary health registry
            cache: Result cache backend
            strategies: Platform strategy registry
            methods: Ranked methods (built from METHOD_ORDER if omitted)
            fetcher: Timed fetcher for the fetch methods (created if omitted)
            exclude: Method names to leave out when building methods
        """
        self.settings = settings
        self.registry = registry
        self.cache = cache
        self.strategies = strategies

        if methods is None:
            self.fetcher = fetcher or TimedFetcher(registry, settings)
            methods = build_methods(settings, registry, self.fetcher, exclude=exclude)
        else:
            self.fetcher = fetcher

        self.pipeline = AcquisitionPipeline(methods, strategies, settings)
        self.logger = logger.bind(service="acquisition_service")

    @property
    def method_names(self) -> List[str]:
        return [method.name for method in self.pipeline.methods]

    def resolve_platform(self, url: str) -> str:
        return self.strategies.platform_for_url(url) or GENERIC_PLATFORM

    async def acquire_product(self, url: str) -> NormalizedRecord:
        """Acquire one product record for a page URL.

        Args:
            url: Product page URL

        Returns:
            NormalizedRecord; flagged ``unavailable`` when every method
            failed or the product ceiling elapsed
        """
        url = url.strip()
        key = cache_key_for_product(url)

        cached = await self.cache.get(key)
        if isinstance(cached, NormalizedRecord):
            self.logger.info("product_cache_hit", url=url)
            return cached

        target = AcquisitionTarget(platform=self.resolve_platform(url), url=url, kind=KIND_PRODUCT)
        self.logger.info("product_acquisition_started", platform=target.platform, url=url)

        try:
            record = await asyncio.wait_for(
                self.pipeline.run(target),
                timeout=self.settings.PRODUCT_CEILING_SECONDS,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "product_ceiling_elapsed",
                platform=target.platform,
                ceiling=self.settings.PRODUCT_CEILING_SECONDS,
            )
            return self._timed_out(target)

        if record.is_usable:
            await self.cache.put(key, record, self.settings.PRODUCT_CACHE_TTL_SECONDS)
        return record

    async def acquire_comparison(
        self,
        search_term: str,
        platforms: Optional[Sequence[str]] = None,
    ) -> List[NormalizedRecord]:
        """Search every comparison platform concurrently.

        Platforms that time out, exhaust their methods or return no price
        are omitted. Results are sorted by price ascending and the cheapest
        is flagged ``best_price``.

        Args:
            search_term: Free-text product query
            platforms: Platform slugs (default: COMPARISON_PLATFORMS)

        Returns:
            Sorted list of records, possibly empty
        """
        term = " ".join(search_term.split())
        if not term:
            return []

        selected = list(platforms) if platforms else self.settings.get_comparison_platforms()
        key = cache_key_for_comparison(term)
        if platforms:
            key = f"{key}|{','.join(sorted(selected))}"

        cached = await self.cache.get(key)
        if isinstance(cached, list):
            self.logger.info("comparison_cache_hit", term=term, count=len(cached))
            return cached

        targets = self._search_targets(term, selected)
        self.logger.info(
            "comparison_started",
            term=term,
            platforms=[t.platform for t in targets],
            ceiling=self.settings.COMPARISON_CEILING_SECONDS,
        )

        tasks = [
            asyncio.create_task(self.pipeline.run(target), name=f"compare:{target.platform}")
            for target in targets
        ]
        records: List[NormalizedRecord] = []

        try:
            if tasks:
                done, pending = await asyncio.wait(
                    tasks, timeout=self.settings.COMPARISON_CEILING_SECONDS
                )
            else:
                done, pending = set(), set()

            for target, task in zip(targets, tasks):
                if task in pending:
                    self.logger.info("comparison_platform_timed_out", platform=target.platform)
                    continue
                if task.cancelled():
                    continue
                error = task.exception()
                if error is not None:
                    self.logger.error(
                        "comparison_platform_crashed",
                        platform=target.platform,
                        error=str(error),
                    )
                    continue
                record = task.result()
                if record.is_usable:
                    records.append(record)
                else:
                    self.logger.info("comparison_platform_omitted", platform=target.platform)
        finally:
            outstanding = [task for task in tasks if not task.done()]
            for task in outstanding:
                task.cancel()
            if outstanding:
                await asyncio.gather(*outstanding, return_exceptions=True)

        ranked = rank_by_price(records)
        self.logger.info("comparison_completed", term=term, results=len(ranked))

        if ranked:
            await self.cache.put(key, ranked, self.settings.COMPARISON_CACHE_TTL_SECONDS)
        return ranked

    def _search_targets(self, term: str, platforms: Sequence[str]) -> List[AcquisitionTarget]:
        targets = []
        for platform in platforms:
            try:
                url = self.strategies.search_url(platform, term)
            except UnknownPlatformError as e:
                self.logger.warning("comparison_platform_unknown", platform=platform, error=e.message)
                continue
            targets.append(
                AcquisitionTarget(platform=platform, url=url, kind=KIND_SEARCH, query=term)
            )
        return targets

    def _timed_out(self, target: AcquisitionTarget) -> NormalizedRecord:
        strategy = self.strategies.strategy_for(target.platform)
        placeholder = unavailable_record(target, self.method_names, strategy.currency_for(target.url))
        metadata = dict(placeholder.metadata)
        metadata["reason"] = "acquisition timed out"
        return placeholder.with_flags(metadata=metadata)

    async def sweep_cache(self) -> int:
        return await self.cache.sweep_expired()

    async def close(self) -> None:
        """Release HTTP clients and the cache. Call on shutdown."""
        await self.pipeline.close()
        if self.fetcher is not None:
            await self.fetcher.close()
        await self.cache.close()
        self.logger.info("acquisition_service_closed")


def rank_by_price(records: Iterable[NormalizedRecord]) -> List[NormalizedRecord]:
    """Sort records by price ascending and flag the cheapest as best price."""
    ordered = sorted(
        (r.with_flags(best_price=False) for r in records if r.price > Decimal("0")),
        key=lambda r: r.price,
    )
    if ordered:
        ordered[0] = ordered[0].with_flags(best_price=True)
    return ordered


def build_acquisition_service(
    settings: Settings = default_settings,
    exclude: Iterable[str] = (),
    cache: Optional[Cache] = None,
) -> AcquisitionService:
    """Wire the default object graph from settings.

    Args:
        settings: Application settings
        exclude: Method names to leave out (the API server drops "delegated")
        cache: Cache backend (built from CACHE_BACKEND if omitted)

    Returns:
        Ready AcquisitionService
    """
    strategies = register_all_strategies(
        StrategyRegistry(default_currency=settings.DEFAULT_CURRENCY)
    )
    registry = IntermediaryHealthRegistry(settings.get_intermediary_list())
    service = AcquisitionService(
        settings=settings,
        registry=registry,
        cache=cache or create_result_cache(settings),
        strategies=strategies,
        exclude=exclude,
    )
    logger.info(
        "acquisition_service_built",
        methods=service.method_names,
        intermediaries=len(registry.intermediaries),
        cache_backend=settings.CACHE_BACKEND,
    )
    return service
