"""Client for a hosted structured-data scraping API.

Speaks the Oxylabs realtime protocol: one POST per query with HTTP Basic
auth, ``{"source": ..., "query"|"url": ..., "parse": bool}`` in the body and
``results[0].content`` in the response. Amazon product pages are requested
with ``source=amazon_product`` and come back parsed; everything else goes
through ``source=universal`` and comes back as raw HTML for the platform
strategy to extract.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

import httpx
import structlog

from pricepulse.config import Settings, settings as default_settings
from pricepulse.core.exceptions import (
    ConfigurationError,
    ExtractionError,
    FetchTimeoutError,
    NetworkError,
)
from pricepulse.scrapers.base import KIND_PRODUCT, AcquisitionTarget, NormalizedRecord
from pricepulse.scrapers.clients._http import raise_for_status
from pricepulse.scrapers.utils.normalizer import (
    clean_text,
    coerce_in_stock,
    extract_asin,
    parse_price,
)

logger = structlog.get_logger(__name__)

METHOD_NAME = "hosted_api"


@dataclass(frozen=True)
class HostedResult:
    """Content returned by the hosted API for one query."""

    content: Union[Dict[str, Any], str]
    parsed: bool


class HostedDataApiClient:
    """Hosted scraping API client.

    The HTTP client is created lazily and reused until close().
    """

    def __init__(
        self,
        settings: Settings = default_settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            settings: Application settings (HOSTED_API_* fields)
            http_client: Preconfigured httpx client (tests inject a mock transport)
        """
        self.settings = settings
        self._http_client = http_client
        self._owns_client = http_client is None
        self.logger = logger.bind(client=METHOD_NAME)

    @property
    def configured(self) -> bool:
        return self.settings.hosted_api_configured

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when credentials are missing."""
        if not self.configured:
            raise ConfigurationError(
                METHOD_NAME, "HOSTED_API_USERNAME and HOSTED_API_PASSWORD must be set"
            )

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.HOSTED_API_TIMEOUT)
        return self._http_client

    def build_payload(self, target: AcquisitionTarget) -> Dict[str, Any]:
        """Build the query body for a target."""
        asin = extract_asin(target.url) if target.platform == "amazon" else None

        if target.kind == KIND_PRODUCT and asin:
            payload: Dict[str, Any] = {
                "source": "amazon_product",
                "query": asin,
                "parse": True,
            }
            domain = _amazon_domain(target.url)
            if domain:
                payload["domain"] = domain
        else:
            payload = {
                "source": "universal",
                "url": target.url,
                "parse": False,
            }

        if self.settings.HOSTED_API_GEO_LOCATION:
            payload["geo_location"] = self.settings.HOSTED_API_GEO_LOCATION
        return payload

    async def fetch(self, target: AcquisitionTarget) -> HostedResult:
        """Run one hosted query for a target.

        Args:
            target: What to acquire

        Returns:
            HostedResult with parsed JSON (amazon_product) or raw HTML

        Raises:
            ConfigurationError: Credentials missing or rejected
            FetchTimeoutError: The hosted API did not answer in time
            NetworkError: Connection failure
            RateLimitedError, UpstreamServerError, HTTPStatusFetchError: Error status
            ExtractionError: The response carried no content
        """
        self.ensure_configured()
        payload = self.build_payload(target)

        self.logger.info(
            "hosted_api_query",
            platform=target.platform,
            source=payload["source"],
        )

        try:
            response = await self._client().post(
                self.settings.HOSTED_API_URL,
                json=payload,
                auth=(self.settings.HOSTED_API_USERNAME, self.settings.HOSTED_API_PASSWORD),
                timeout=self.settings.HOSTED_API_TIMEOUT,
            )
        except httpx.TimeoutException:
            raise FetchTimeoutError(self.settings.HOSTED_API_TIMEOUT)
        except httpx.HTTPError as e:
            raise NetworkError(e) from e

        raise_for_status(METHOD_NAME, response)

        try:
            data = response.json()
        except ValueError:
            raise ExtractionError(target.platform, "hosted API returned invalid JSON")

        results = data.get("results") if isinstance(data, dict) else None
        if not results or not isinstance(results, list):
            raise ExtractionError(target.platform, "hosted API returned no results")

        content = results[0].get("content") if isinstance(results[0], dict) else None
        if not content:
            raise ExtractionError(target.platform, "hosted API result has no content")

        return HostedResult(content=content, parsed=isinstance(content, dict))

    def record_from_parsed(
        self,
        content: Dict[str, Any],
        target: AcquisitionTarget,
        fallback_currency: str,
    ) -> NormalizedRecord:
        """Map a parsed amazon_product result onto a NormalizedRecord.

        Raises:
            ExtractionError: Neither title nor price is present
        """
        currency_code = str(content.get("currency") or "")
        price, currency = parse_price(
            _with_code(content.get("price"), currency_code), fallback_currency
        )
        previous, _ = parse_price(
            _with_code(content.get("price_strikethrough"), currency_code), currency
        )
        title = clean_text(content.get("title"))

        has_price = price is not None and price > 0
        if not title and not has_price:
            raise ExtractionError(target.platform, "parsed result has no title or price")

        metadata: Dict[str, Any] = {"extraction": METHOD_NAME}
        if content.get("asin"):
            metadata["asin"] = str(content["asin"])
        if content.get("brand"):
            metadata["brand"] = clean_text(content["brand"])
        features = _bullet_points(content.get("bullet_points"))
        if features:
            metadata["features"] = features
        category = _category(content.get("category"))
        if category:
            metadata["category"] = category

        images = content.get("images")
        if not isinstance(images, list):
            images = []
        in_stock = coerce_in_stock(content.get("stock"))

        return NormalizedRecord(
            source_platform=target.platform,
            title=title,
            price=price if has_price else Decimal("0"),
            currency=currency,
            canonical_url=str(content.get("url") or target.url),
            in_stock=True if in_stock is None else in_stock,
            metadata=metadata,
            previous_price=previous if previous and has_price and previous > price else None,
            image_url=str(images[0]) if images and images[0] else None,
            incomplete=not (title and has_price),
        )

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None


def _with_code(value: Any, code: str) -> Any:
    if value is None or not code or isinstance(value, str):
        return value
    return f"{code} {value}"


def _amazon_domain(url: str) -> Optional[str]:
    marker = "amazon."
    lowered = url.lower()
    index = lowered.find(marker)
    if index == -1:
        return None
    rest = lowered[index + len(marker):]
    return rest.split("/", 1)[0] or None


def _bullet_points(value: Any) -> List[str]:
    if isinstance(value, list):
        return [clean_text(str(v)) for v in value if v]
    if isinstance(value, str):
        return [clean_text(line) for line in value.splitlines() if line.strip()]
    return []


def _category(value: Any) -> Optional[str]:
    if not isinstance(value, list) or not value:
        return None
    ladder = value[0].get("ladder") if isinstance(value[0], dict) else None
    if isinstance(ladder, list) and ladder:
        last = ladder[-1]
        if isinstance(last, dict) and last.get("name"):
            return clean_text(last["name"])
    return None
