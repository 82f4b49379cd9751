"""Tests for the timed fetch primitive."""

import asyncio

import httpx
import pytest

from pricepulse.core.exceptions import (
    FetchTimeoutError,
    HTTPStatusFetchError,
    NetworkError,
    RateLimitedError,
    UpstreamServerError,
)
from pricepulse.scrapers.utils.intermediary_registry import (
    Intermediary,
    IntermediaryHealthRegistry,
)
from pricepulse.scrapers.utils.retry import is_retryable
from pricepulse.scrapers.utils.timed_fetch import DeadlineProfile, TimedFetcher
from pricepulse.scrapers.utils.user_agents import (
    PROFILE_RENDER,
    PROFILE_STANDARD,
    USER_AGENTS,
    build_headers,
)

TARGET = "https://www.flipkart.com/item/p/itm123"


def make_fetcher(settings, handler, registry=None):
    """Fetcher whose clients all route through a MockTransport."""
    registry = registry or IntermediaryHealthRegistry()
    proxies = []

    def factory(proxy):
        proxies.append(proxy)
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return TimedFetcher(registry, settings, client_factory=factory), proxies


class TestFetch:
    """Tests for TimedFetcher.fetch()."""

    async def test_successful_fetch(self, make_settings):
        def handler(request):
            return httpx.Response(200, text="<html>ok</html>")

        fetcher, _ = make_fetcher(make_settings(), handler)
        result = await fetcher.fetch(TARGET, None, {"User-Agent": "test"}, 5.0)

        assert result.status_code == 200
        assert result.payload == "<html>ok</html>"
        assert result.elapsed >= 0
        await fetcher.close()

    async def test_template_intermediary_rewrites_url(self, make_settings):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, text="ok")

        fetcher, proxies = make_fetcher(make_settings(), handler)
        relay = Intermediary("https://corsproxy.io/?")
        await fetcher.fetch(TARGET, relay, None, 5.0)

        assert seen[0].startswith("https://corsproxy.io/?https%3A%2F%2Fwww.flipkart.com")
        assert proxies == [None]
        await fetcher.close()

    async def test_forward_proxy_gets_its_own_client(self, make_settings):
        def handler(request):
            return httpx.Response(200, text="ok")

        fetcher, proxies = make_fetcher(make_settings(), handler)
        proxy = Intermediary("http://10.0.0.2:8080")
        await fetcher.fetch(TARGET, proxy, None, 5.0)
        await fetcher.fetch(TARGET, proxy, None, 5.0)
        await fetcher.fetch(TARGET, None, None, 5.0)

        assert proxies == ["http://10.0.0.2:8080", None]
        await fetcher.close()

    @pytest.mark.parametrize(
        "status_code,error_class,retryable",
        [
            (403, RateLimitedError, True),
            (429, RateLimitedError, True),
            (503, RateLimitedError, True),
            (500, UpstreamServerError, True),
            (502, UpstreamServerError, True),
            (404, HTTPStatusFetchError, False),
            (410, HTTPStatusFetchError, False),
        ],
    )
    async def test_status_mapping(self, make_settings, status_code, error_class, retryable):
        def handler(request):
            return httpx.Response(status_code, text="error")

        fetcher, _ = make_fetcher(make_settings(), handler)
        with pytest.raises(error_class) as exc_info:
            await fetcher.fetch(TARGET, None, None, 5.0)

        assert type(exc_info.value) is error_class
        assert exc_info.value.status_code == status_code
        assert is_retryable(exc_info.value) is retryable
        await fetcher.close()

    async def test_deadline_aborts_request(self, make_settings):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, text="too late")

        fetcher, _ = make_fetcher(make_settings(), handler)
        with pytest.raises(FetchTimeoutError):
            await fetcher.fetch(TARGET, None, None, 0.05)
        await fetcher.close()

    async def test_connection_error_is_network_error(self, make_settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher, _ = make_fetcher(make_settings(), handler)
        with pytest.raises(NetworkError) as exc_info:
            await fetcher.fetch(TARGET, None, None, 5.0)

        assert is_retryable(exc_info.value)
        await fetcher.close()


class TestDeadline:
    """Tests for TimedFetcher.deadline_for()."""

    def test_deadline_grows_per_retry(self, make_settings):
        fetcher = TimedFetcher(IntermediaryHealthRegistry(), make_settings(RETRY_TIMEOUT_GROWTH=0.5))
        profile = DeadlineProfile(base=20, minimum=10, maximum=40)

        assert fetcher.deadline_for(None, profile, 0) == 20
        assert fetcher.deadline_for(None, profile, 1) == 30
        assert fetcher.deadline_for(None, profile, 2) == 40

    def test_deadline_uses_latency_history(self, make_settings, clock):
        registry = IntermediaryHealthRegistry(["http://10.0.0.2:8080"], clock=clock)
        registry.record_success("http://10.0.0.2:8080", 15.0)
        fetcher = TimedFetcher(registry, make_settings())
        profile = DeadlineProfile(base=20, minimum=10, maximum=40)

        assert fetcher.deadline_for(Intermediary("http://10.0.0.2:8080"), profile, 0) == 15.0


class TestHeaders:
    """Tests for build_headers()."""

    def test_standard_profile(self):
        headers = build_headers(PROFILE_STANDARD)
        assert headers["User-Agent"] in USER_AGENTS
        assert "Sec-Fetch-Mode" not in headers

    def test_render_profile_looks_like_navigation(self):
        headers = build_headers(PROFILE_RENDER)
        assert headers["Sec-Fetch-Mode"] == "navigate"
        assert "Chrome/" in headers["User-Agent"]
        assert "Edg/" not in headers["User-Agent"]
