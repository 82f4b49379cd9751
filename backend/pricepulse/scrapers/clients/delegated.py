"""Client for a remote acquisition service returning normalized JSON.

The remote side (see ``pricepulse.main``) performs the fetch server-side
and answers ``POST /scrape {"url"}`` and
``POST /compare {"searchTerm", "platform"}`` with records in the wire shape
of ``NormalizedRecord.to_dict``.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from pricepulse.config import Settings, settings as default_settings
from pricepulse.core.exceptions import (
    ConfigurationError,
    ExtractionError,
    FetchTimeoutError,
    NetworkError,
)
from pricepulse.scrapers.base import KIND_SEARCH, AcquisitionTarget, NormalizedRecord
from pricepulse.scrapers.clients._http import raise_for_status

logger = structlog.get_logger(__name__)

METHOD_NAME = "delegated"


class DelegatedAcquisitionClient:
    """Delegates a whole acquisition to a remote endpoint."""

    def __init__(
        self,
        settings: Settings = default_settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self._http_client = http_client
        self._owns_client = http_client is None
        self.logger = logger.bind(client=METHOD_NAME)

    @property
    def configured(self) -> bool:
        return self.settings.delegated_configured

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when no endpoint is set."""
        if not self.configured:
            raise ConfigurationError(METHOD_NAME, "DELEGATED_ENDPOINT_URL must be set")

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.DELEGATED_TIMEOUT)
        return self._http_client

    def _request(self, target: AcquisitionTarget) -> tuple[str, Dict[str, Any]]:
        base = self.settings.DELEGATED_ENDPOINT_URL.rstrip("/")
        if target.kind == KIND_SEARCH and target.query:
            return f"{base}/compare", {"searchTerm": target.query, "platform": target.platform}
        return f"{base}/scrape", {"url": target.url}

    async def acquire(self, target: AcquisitionTarget, fallback_currency: str) -> NormalizedRecord:
        """Ask the remote endpoint for a record.

        Args:
            target: What to acquire
            fallback_currency: Currency when the response names none

        Returns:
            The remote record (for searches, the one matching target.platform)

        Raises:
            ConfigurationError: Endpoint missing or API key rejected
            FetchTimeoutError, NetworkError: Transport failure
            RateLimitedError, UpstreamServerError, HTTPStatusFetchError: Error status
            ExtractionError: Response carried no usable record
        """
        self.ensure_configured()
        url, body = self._request(target)

        headers = {"Accept": "application/json"}
        if self.settings.DELEGATED_API_KEY:
            headers["API-Key"] = self.settings.DELEGATED_API_KEY

        self.logger.info("delegated_request", platform=target.platform, endpoint=url)

        try:
            response = await self._client().post(
                url,
                json=body,
                headers=headers,
                timeout=self.settings.DELEGATED_TIMEOUT,
            )
        except httpx.TimeoutException:
            raise FetchTimeoutError(self.settings.DELEGATED_TIMEOUT)
        except httpx.HTTPError as e:
            raise NetworkError(e) from e

        raise_for_status(METHOD_NAME, response)

        try:
            data = response.json()
        except ValueError:
            raise ExtractionError(target.platform, "delegated endpoint returned invalid JSON")

        if isinstance(data, dict) and data.get("success") is False:
            raise ExtractionError(
                target.platform, str(data.get("error") or "delegated endpoint reported failure")
            )

        records = self._records(data, target, fallback_currency)
        usable = [r for r in records if not r.unavailable and (r.title or r.price > 0)]
        if not usable:
            raise ExtractionError(target.platform, "delegated endpoint returned no record")

        for record in usable:
            if record.source_platform == target.platform:
                return record
        return usable[0]

    def _records(
        self, data: Any, target: AcquisitionTarget, fallback_currency: str
    ) -> List[NormalizedRecord]:
        items = data
        if isinstance(data, dict):
            for key in ("results", "data"):
                if key in data:
                    items = data[key]
                    break
        if isinstance(items, dict):
            items = [items]
        if not isinstance(items, list):
            return []

        records = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                records.append(
                    NormalizedRecord.from_dict(
                        item,
                        default_platform=target.platform,
                        fallback_currency=fallback_currency,
                    )
                )
            except (ValueError, TypeError) as e:
                self.logger.warning("delegated_record_invalid", error=str(e))
        return records

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
