"""Single HTTP fetch with a hard, adaptive deadline."""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

import httpx
import structlog

from pricepulse.config import Settings, settings as default_settings
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

logger = structlog.get_logger(__name__)


RATE_LIMIT_STATUS_CODES = frozenset({403, 429, 503})

ClientFactory = Callable[[Optional[str]], httpx.AsyncClient]


@dataclass(frozen=True)
class DeadlineProfile:
    """Deadline band for a fetch method, in seconds."""

    base: float
    minimum: float
    maximum: float


@dataclass(frozen=True)
class FetchResult:
    """Successful (2xx/3xx) response."""

    payload: str
    status_code: int
    elapsed: float
    final_url: str
    intermediary: Optional[Intermediary] = None


def default_client_factory(proxy: Optional[str]) -> httpx.AsyncClient:
    """Create an httpx client, optionally bound to a forward proxy.

    The client has no timeout of its own: TimedFetcher enforces the deadline.
    """
    return httpx.AsyncClient(
        proxy=proxy,
        follow_redirects=True,
        timeout=None,
    )


class TimedFetcher:
    """Performs one request through an intermediary under a hard deadline.

    Outcomes are not recorded here. The caller records them after the
    payload has also been classified.
    """

    def __init__(
        self,
        registry: IntermediaryHealthRegistry,
        settings: Settings = default_settings,
        client_factory: Optional[ClientFactory] = None,
    ):
        """Initialize the fetcher.

        Args:
            registry: Registry supplying latency history for deadlines
            settings: Application settings
            client_factory: Builds an httpx.AsyncClient for a proxy URL (or None)
        """
        self.registry = registry
        self.settings = settings
        self._client_factory = client_factory or default_client_factory
        self._clients: Dict[str, httpx.AsyncClient] = {}
        self.logger = logger.bind(component="timed_fetch")

    def deadline_for(
        self,
        intermediary: Optional[Intermediary],
        profile: DeadlineProfile,
        retry: int = 0,
    ) -> float:
        """Compute the deadline for an attempt.

        Args:
            intermediary: Intermediary the request will use (None = direct)
            profile: The method's deadline band
            retry: Zero-based retry index; each retry adds RETRY_TIMEOUT_GROWTH

        Returns:
            Deadline in seconds
        """
        base = self.registry.adaptive_timeout(
            intermediary, profile.base, profile.minimum, profile.maximum
        )
        return base * (1 + self.settings.RETRY_TIMEOUT_GROWTH * max(0, retry))

    def _client_for(self, intermediary: Optional[Intermediary]) -> httpx.AsyncClient:
        proxy = (
            intermediary.identifier
            if intermediary is not None and intermediary.is_forward_proxy
            else None
        )
        key = proxy or ""
        client = self._clients.get(key)
        if client is None:
            client = self._client_factory(proxy)
            self._clients[key] = client
        return client

    async def fetch(
        self,
        target_url: str,
        intermediary: Optional[Intermediary],
        headers: Optional[Mapping[str, str]],
        deadline: float,
    ) -> FetchResult:
        """Fetch target_url, cancelling the request when the deadline passes.

        Args:
            target_url: Page to fetch
            intermediary: Route through this intermediary (None = direct)
            headers: Request headers
            deadline: Hard deadline in seconds

        Returns:
            FetchResult for a non-error response

        Raises:
            FetchTimeoutError: Deadline expired
            NetworkError: Connection-level failure
            RateLimitedError: 403, 429 or 503
            UpstreamServerError: Any other 5xx
            HTTPStatusFetchError: Any other 4xx
        """
        request_url = intermediary.request_url(target_url) if intermediary else target_url
        client = self._client_for(intermediary)
        started = time.monotonic()

        try:
            response = await asyncio.wait_for(
                client.get(request_url, headers=dict(headers or {})),
                timeout=deadline,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            self.logger.info(
                "fetch_timeout",
                url=target_url,
                intermediary=str(intermediary) if intermediary else None,
                deadline=round(deadline, 2),
            )
            raise FetchTimeoutError(deadline)
        except httpx.HTTPError as e:
            self.logger.info(
                "fetch_network_error",
                url=target_url,
                intermediary=str(intermediary) if intermediary else None,
                error=str(e),
            )
            raise NetworkError(e) from e

        elapsed = time.monotonic() - started
        status_code = response.status_code

        if status_code in RATE_LIMIT_STATUS_CODES:
            raise RateLimitedError(status_code)
        if status_code >= 500:
            raise UpstreamServerError(status_code)
        if status_code >= 400:
            raise HTTPStatusFetchError(status_code)

        self.logger.debug(
            "fetch_completed",
            url=target_url,
            status_code=status_code,
            elapsed=round(elapsed, 3),
            size=len(response.content),
        )

        return FetchResult(
            payload=response.text,
            status_code=status_code,
            elapsed=elapsed,
            final_url=str(response.url),
            intermediary=intermediary,
        )

    async def close(self) -> None:
        """Close every HTTP client this fetcher created."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()
