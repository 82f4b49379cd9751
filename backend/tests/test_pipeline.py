"""Tests for the acquisition pipeline and the intermediary fetch method."""

from decimal import Decimal
from typing import List, Sequence, Tuple

import httpx
import pytest

from pricepulse.core.exceptions import (
    ChallengeDetectedError,
    ConfigurationError,
    ContentTooShortError,
    ExtractionError,
    FetchTimeoutError,
    HTTPStatusFetchError,
    NetworkError,
    RateLimitedError,
)
from pricepulse.scrapers.base import AcquisitionTarget, NormalizedRecord
from pricepulse.scrapers.factory import StrategyRegistry
from pricepulse.scrapers.methods import (
    METHOD_DIRECT,
    AcquisitionMethod,
    IntermediaryFetchMethod,
    build_methods,
)
from pricepulse.scrapers.pipeline import AcquisitionPipeline
from pricepulse.scrapers.register_strategies import register_all_strategies
from pricepulse.scrapers.utils.intermediary_registry import IntermediaryHealthRegistry
from pricepulse.scrapers.utils.timed_fetch import DeadlineProfile, TimedFetcher

TARGET = AcquisitionTarget(platform="flipkart", url="https://www.flipkart.com/item/p/itm123")
AMAZON_TARGET = AcquisitionTarget(platform="amazon", url="https://www.amazon.in/dp/B0BXYZ1234")


def good_record(platform: str = "flipkart", price: str = "999") -> NormalizedRecord:
    return NormalizedRecord(
        source_platform=platform,
        title="Boat Airdopes 141",
        price=Decimal(price),
        currency="₹",
        canonical_url=TARGET.url,
    )


def incomplete_record() -> NormalizedRecord:
    return NormalizedRecord(
        source_platform="flipkart",
        title="Boat Airdopes 141",
        price=Decimal("0"),
        currency="₹",
        canonical_url=TARGET.url,
        incomplete=True,
    )


class ScriptedMethod(AcquisitionMethod):
    """Method that replays a fixed list of outcomes (the last one repeats)."""

    def __init__(self, name: str, outcomes: Sequence, calls: List[Tuple[str, int]], configured: bool = True):
        self.name = name
        self.outcomes = list(outcomes)
        self.calls = calls
        self.configured = configured
        self.closed = False

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError(self.name, "missing credentials")

    async def attempt(self, target, strategy, retry):
        self.calls.append((self.name, retry))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def strategies() -> StrategyRegistry:
    return register_all_strategies(StrategyRegistry())


# ============================================================================
# PIPELINE
# ============================================================================


class TestPipelineOrdering:
    """Tests for strict rank-order method iteration."""

    async def test_retries_spent_before_next_method(self, make_settings, strategies):
        """A and B spend all retries before C is tried; C's record is returned."""
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("A", [FetchTimeoutError(1.0)], calls),
            ScriptedMethod("B", [NetworkError(ConnectionResetError())], calls),
            ScriptedMethod("C", [good_record()], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings(MAX_RETRIES=3))

        record = await pipeline.run(TARGET)

        assert calls == [("A", 0), ("A", 1), ("A", 2), ("B", 0), ("B", 1), ("B", 2), ("C", 0)]
        assert record.title == "Boat Airdopes 141"
        assert record.unavailable is False

    async def test_success_after_retry_stops_the_ladder(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("A", [FetchTimeoutError(1.0), good_record(price="500")], calls),
            ScriptedMethod("B", [good_record(price="400")], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings(MAX_RETRIES=3))

        record = await pipeline.run(TARGET)

        assert calls == [("A", 0), ("A", 1)]
        assert record.price == Decimal("500")

    async def test_unconfigured_method_is_skipped(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("hosted_api", [good_record(price="1")], calls, configured=False),
            ScriptedMethod("direct", [good_record(price="2")], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings())

        record = await pipeline.run(TARGET)

        assert calls == [("direct", 0)]
        assert record.price == Decimal("2")

    async def test_configuration_error_during_attempt_skips_method(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("hosted_api", [ConfigurationError("hosted_api", "rejected")], calls),
            ScriptedMethod("direct", [good_record()], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings(MAX_RETRIES=3))

        await pipeline.run(TARGET)

        assert calls == [("hosted_api", 0), ("direct", 0)]

    async def test_extraction_error_advances_without_retry(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("direct", [ExtractionError("flipkart", "no product")], calls),
            ScriptedMethod("render_tolerant", [good_record()], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings(MAX_RETRIES=3))

        await pipeline.run(TARGET)

        assert calls == [("direct", 0), ("render_tolerant", 0)]

    async def test_non_retryable_status_advances_without_retry(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("direct", [HTTPStatusFetchError(404)], calls),
            ScriptedMethod("render_tolerant", [good_record()], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings(MAX_RETRIES=3))

        await pipeline.run(TARGET)

        assert calls == [("direct", 0), ("render_tolerant", 0)]

    async def test_unexpected_exception_advances(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("direct", [RuntimeError("bug")], calls),
            ScriptedMethod("render_tolerant", [good_record()], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings(MAX_RETRIES=3))

        record = await pipeline.run(TARGET)

        assert calls == [("direct", 0), ("render_tolerant", 0)]
        assert record.unavailable is False


class TestPipelineTerminalStates:
    """Tests for exhaustion and incomplete records."""

    async def test_exhaustion_returns_placeholder(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("direct", [FetchTimeoutError(1.0)], calls),
            ScriptedMethod("render_tolerant", [FetchTimeoutError(1.0)], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings(MAX_RETRIES=2))

        record = await pipeline.run(TARGET)

        assert record.unavailable is True
        assert record.incomplete is True
        assert record.price == Decimal("0")
        assert record.in_stock is False
        assert record.canonical_url == TARGET.url
        assert record.metadata["methods_tried"] == ["direct", "render_tolerant"]
        assert len(calls) == 4

    async def test_no_methods_returns_placeholder(self, make_settings, strategies):
        pipeline = AcquisitionPipeline([], strategies, make_settings())
        record = await pipeline.run(TARGET)
        assert record.unavailable is True
        assert record.metadata["methods_tried"] == []

    async def test_incomplete_record_accepted_by_default(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("direct", [incomplete_record()], calls),
            ScriptedMethod("render_tolerant", [good_record()], calls),
        ]
        pipeline = AcquisitionPipeline(methods, strategies, make_settings())

        record = await pipeline.run(TARGET)

        assert record.incomplete is True
        assert calls == [("direct", 0)]

    async def test_incomplete_record_held_when_not_accepted(self, make_settings, strategies):
        """The next method runs; its complete record wins."""
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("direct", [incomplete_record()], calls),
            ScriptedMethod("render_tolerant", [good_record()], calls),
        ]
        pipeline = AcquisitionPipeline(
            methods, strategies, make_settings(ACCEPT_INCOMPLETE_RECORDS=False)
        )

        record = await pipeline.run(TARGET)

        assert record.incomplete is False
        assert calls == [("direct", 0), ("render_tolerant", 0)]

    async def test_held_incomplete_record_beats_placeholder(self, make_settings, strategies):
        calls: List[Tuple[str, int]] = []
        methods = [
            ScriptedMethod("direct", [incomplete_record()], calls),
            ScriptedMethod("render_tolerant", [FetchTimeoutError(1.0)], calls),
        ]
        pipeline = AcquisitionPipeline(
            methods, strategies, make_settings(ACCEPT_INCOMPLETE_RECORDS=False)
        )

        record = await pipeline.run(TARGET)

        assert record.incomplete is True
        assert record.unavailable is False

    async def test_close_closes_methods(self, make_settings, strategies):
        method = ScriptedMethod("direct", [good_record()], [])
        pipeline = AcquisitionPipeline([method], strategies, make_settings())
        await pipeline.close()
        assert method.closed is True


# ============================================================================
# INTERMEDIARY FETCH METHOD
# ============================================================================


PROXY = "http://10.0.0.2:8080"


def fetch_method(settings, registry, handler) -> IntermediaryFetchMethod:
    fetcher = TimedFetcher(
        registry,
        settings,
        client_factory=lambda proxy: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return IntermediaryFetchMethod(
        METHOD_DIRECT,
        fetcher,
        registry,
        DeadlineProfile(base=5, minimum=1, maximum=10),
        settings=settings,
    )


class TestIntermediaryFetchMethod:
    """Tests for fetch, classify and extract through an intermediary."""

    async def test_success_is_recorded(self, make_settings, strategies, clock, amazon_product_html):
        registry = IntermediaryHealthRegistry([PROXY], clock=clock)
        method = fetch_method(make_settings(), registry, lambda r: httpx.Response(200, text=amazon_product_html))

        record = await method.attempt(AMAZON_TARGET, strategies.strategy_for("amazon"), 0)

        assert record.price == Decimal("26990.00")
        stats = registry.stats_for(PROXY)
        assert stats.success_count == 1
        assert registry.preferred_for("amazon").identifier == PROXY

    async def test_short_payload_is_failure(self, make_settings, strategies, clock):
        registry = IntermediaryHealthRegistry([PROXY], clock=clock)
        method = fetch_method(make_settings(), registry, lambda r: httpx.Response(200, text="<html></html>"))

        with pytest.raises(ContentTooShortError):
            await method.attempt(TARGET, strategies.strategy_for("flipkart"), 0)

        assert registry.stats_for(PROXY).failure_count == 1
        assert registry.is_suspended(PROXY) is False

    async def test_captcha_suspends_intermediary(self, make_settings, strategies, clock, captcha_html):
        registry = IntermediaryHealthRegistry([PROXY], clock=clock)
        method = fetch_method(make_settings(), registry, lambda r: httpx.Response(200, text=captcha_html))

        with pytest.raises(ChallengeDetectedError):
            await method.attempt(TARGET, strategies.strategy_for("flipkart"), 0)

        assert registry.is_suspended(PROXY) is True

    async def test_challenge_page_yields_partial_record(self, make_settings, strategies, clock, amazon_product_html):
        """Amazon still renders the product under a soft challenge banner."""
        payload = amazon_product_html.replace(
            "<body>", "<body><div class='banner'>Robot Check</div>", 1
        )
        registry = IntermediaryHealthRegistry([PROXY], clock=clock)
        method = fetch_method(make_settings(), registry, lambda r: httpx.Response(200, text=payload))

        record = await method.attempt(AMAZON_TARGET, strategies.strategy_for("amazon"), 0)

        assert record.partial is True
        assert record.metadata["challenge_pattern"] == "robot check"
        assert record.price == Decimal("26990.00")
        assert registry.is_suspended(PROXY) is True

    async def test_rate_limit_status_suspends(self, make_settings, strategies, clock):
        registry = IntermediaryHealthRegistry([PROXY], clock=clock)
        method = fetch_method(make_settings(), registry, lambda r: httpx.Response(429, text="slow down"))

        with pytest.raises(RateLimitedError):
            await method.attempt(TARGET, strategies.strategy_for("flipkart"), 0)

        assert registry.is_suspended(PROXY) is True

    async def test_direct_fetch_without_intermediaries(self, make_settings, strategies, amazon_product_html):
        registry = IntermediaryHealthRegistry()
        method = fetch_method(make_settings(), registry, lambda r: httpx.Response(200, text=amazon_product_html))

        record = await method.attempt(AMAZON_TARGET, strategies.strategy_for("amazon"), 0)

        assert record.title == "Sony WH-1000XM5 Wireless Headphones"


class TestBuildMethods:
    """Tests for method list construction from METHOD_ORDER."""

    def test_order_and_exclusion(self, make_settings):
        settings = make_settings(METHOD_ORDER="hosted_api,direct,render_tolerant,delegated")
        registry = IntermediaryHealthRegistry()
        fetcher = TimedFetcher(registry, settings)

        names = [m.name for m in build_methods(settings, registry, fetcher)]
        assert names == ["hosted_api", "direct", "render_tolerant", "delegated"]

        names = [m.name for m in build_methods(settings, registry, fetcher, exclude={"delegated"})]
        assert names == ["hosted_api", "direct", "render_tolerant"]

    def test_unknown_method_is_ignored(self, make_settings):
        settings = make_settings(METHOD_ORDER="direct,carrier_pigeon")
        registry = IntermediaryHealthRegistry()
        names = [m.name for m in build_methods(settings, registry, TimedFetcher(registry, settings))]
        assert names == ["direct"]
