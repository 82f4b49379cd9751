"""Base extraction interface and the normalized record.

Every platform strategy inherits from ExtractionStrategy and turns a raw
payload into a NormalizedRecord, or raises ExtractionError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Union
import structlog

from pricepulse.core.exceptions import ExtractionError, NoContainerFound
from pricepulse.scrapers.utils.normalizer import (
    coerce_in_stock,
    estimate_from_previous_price,
    parse_price,
)


MetadataValue = Union[str, List[str]]

KIND_PRODUCT = "product"
KIND_SEARCH = "search"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class NormalizedRecord:
    """Normalized product/price record returned by every acquisition path."""

    source_platform: str
    title: str
    price: Decimal
    currency: str
    canonical_url: str
    in_stock: bool = True
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)
    observed_at: datetime = field(default_factory=utcnow)
    previous_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    incomplete: bool = False  # title or price missing
    partial: bool = False  # extracted from a challenge page
    estimated: bool = False  # price derived from the previous price
    unavailable: bool = False  # every method failed
    best_price: bool = False  # cheapest entry of a comparison

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.source_platform:
            raise ValueError("source_platform is required")
        if self.price is None:
            raise ValueError("price must be a non-negative Decimal")
        if not isinstance(self.price, Decimal):
            object.__setattr__(self, "price", Decimal(str(self.price)))
        if self.price < 0:
            raise ValueError("price must be a non-negative Decimal")
        if self.previous_price is not None and not isinstance(self.previous_price, Decimal):
            object.__setattr__(self, "previous_price", Decimal(str(self.previous_price)))
        if not self.title and not self.incomplete:
            raise ValueError("title is required unless the record is incomplete")

    @property
    def is_usable(self) -> bool:
        """True when the record carries a real price the caller can show."""
        return not self.unavailable and self.price > 0

    def with_flags(self, **changes: Any) -> "NormalizedRecord":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON wire shape."""
        return {
            "sourcePlatform": self.source_platform,
            "title": self.title,
            "price": str(self.price),
            "currency": self.currency,
            "canonicalUrl": self.canonical_url,
            "inStock": self.in_stock,
            "metadata": dict(self.metadata),
            "observedAt": self.observed_at.isoformat(),
            "previousPrice": str(self.previous_price) if self.previous_price is not None else None,
            "imageUrl": self.image_url,
            "incomplete": self.incomplete,
            "partial": self.partial,
            "estimated": self.estimated,
            "unavailable": self.unavailable,
            "isBestPrice": self.best_price,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        default_platform: str = "unknown",
        fallback_currency: str = "₹",
    ) -> "NormalizedRecord":
        """Build a record from the JSON wire shape.

        Also accepts the older delegated-endpoint shape
        (name/currentPrice/previousPrice/url/marketplace).

        Args:
            data: Decoded JSON object
            default_platform: Platform to use when the payload names none
            fallback_currency: Currency when the payload names none

        Returns:
            NormalizedRecord

        Raises:
            ValueError: If the payload cannot form a valid record
        """
        currency = str(data.get("currency") or fallback_currency)
        price, currency = parse_price(
            _first(data, "price", "currentPrice", "current_price"), currency
        )
        previous, _ = parse_price(
            _first(data, "previousPrice", "previous_price", "originalPrice"), currency
        )
        title = _first(data, "title", "name", "productName") or ""
        in_stock = coerce_in_stock(_first(data, "inStock", "in_stock"))

        observed_at = utcnow()
        raw_observed = _first(data, "observedAt", "observed_at", "lastUpdated")
        if isinstance(raw_observed, str):
            try:
                observed_at = datetime.fromisoformat(raw_observed.replace("Z", "+00:00"))
            except ValueError:
                pass

        has_price = price is not None and price > 0
        platform = _first(data, "sourcePlatform", "source_platform", "marketplace") or default_platform
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}

        return cls(
            source_platform=str(platform),
            title=str(title),
            price=price if price is not None else Decimal("0"),
            currency=currency,
            canonical_url=str(_first(data, "canonicalUrl", "canonical_url", "url") or ""),
            in_stock=True if in_stock is None else in_stock,
            metadata={str(k): v for k, v in metadata.items()},
            observed_at=observed_at,
            previous_price=previous if previous else None,
            image_url=_first(data, "imageUrl", "image_url"),
            incomplete=bool(data.get("incomplete")) or not (title and has_price),
            partial=bool(data.get("partial")),
            estimated=bool(data.get("estimated")),
            unavailable=bool(data.get("unavailable")),
            best_price=bool(_first(data, "isBestPrice", "best_price")),
        )


def _first(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True)
class AcquisitionTarget:
    """One unit of work for the pipeline."""

    platform: str
    url: str
    kind: str = KIND_PRODUCT  # 'product' or 'search'
    query: Optional[str] = None


@dataclass
class AcquisitionAttempt:
    """One pipeline iteration. Logged, never persisted."""

    method: str
    intermediary: Optional[str]
    started_at: datetime = field(default_factory=utcnow)
    outcome: str = "pending"


def unavailable_record(
    target: AcquisitionTarget,
    methods_tried: Sequence[str],
    currency: str,
) -> NormalizedRecord:
    """Terminal placeholder returned when every method failed."""
    return NormalizedRecord(
        source_platform=target.platform,
        title=target.query or "",
        price=Decimal("0"),
        currency=currency,
        canonical_url=target.url,
        in_stock=False,
        metadata={
            "reason": "all acquisition methods exhausted",
            "methods_tried": list(methods_tried),
        },
        incomplete=True,
        unavailable=True,
    )


class ExtractionStrategy(ABC):
    """Abstract base class for payload-to-record extraction.

    Subclasses mostly supply data (selector tables, JSON shapes); the two
    strategy families hold the logic.
    """

    platform: str = ""  # Must be overridden in subclass (e.g., "flipkart")
    platform_name: str = ""  # Display name (e.g., "Flipkart")
    fallback_currency: str = "₹"
    # Some storefronts still render the product under a soft challenge banner
    extract_on_challenge: bool = False

    def __init__(self, fallback_currency: Optional[str] = None):
        if fallback_currency:
            self.fallback_currency = fallback_currency
        self.logger = structlog.get_logger(strategy=self.platform or type(self).__name__)

    @abstractmethod
    def extract(self, payload: str, target_url: Optional[str] = None) -> NormalizedRecord:
        """Extract a record from a payload.

        Args:
            payload: Page body (HTML or JSON)
            target_url: URL the payload was fetched for

        Returns:
            NormalizedRecord, tagged incomplete when title or price is missing

        Raises:
            ExtractionError: If no product could be located
        """
        pass

    def currency_for(self, target_url: Optional[str]) -> str:
        """Currency to assume when the page does not state one."""
        return self.fallback_currency

    def build_record(
        self,
        *,
        title: Optional[str],
        price: Optional[Decimal],
        currency: str,
        canonical_url: str,
        previous_price: Optional[Decimal] = None,
        in_stock: Optional[bool] = None,
        image_url: Optional[str] = None,
        metadata: Optional[Dict[str, MetadataValue]] = None,
    ) -> NormalizedRecord:
        """Assemble a record, applying the partial-success rules.

        - no price but a previous price: estimate 90% of it, flag estimated
        - title without price, or price without title: flag incomplete
        - neither: NoContainerFound

        Raises:
            NoContainerFound: Neither title nor price was found
        """
        metadata = dict(metadata or {})
        estimated = False

        if (price is None or price <= 0) and previous_price:
            price = estimate_from_previous_price(previous_price)
            estimated = True
            metadata["estimated"] = "true"

        has_title = bool(title)
        has_price = price is not None and price > 0

        if not has_title and not has_price:
            raise NoContainerFound(self.platform)

        return NormalizedRecord(
            source_platform=self.platform,
            title=title or "",
            price=price if has_price else Decimal("0"),
            currency=currency,
            canonical_url=canonical_url,
            in_stock=True if in_stock is None else in_stock,
            metadata=metadata,
            previous_price=previous_price or None,
            image_url=image_url,
            incomplete=not (has_title and has_price),
            estimated=estimated,
        )


class CompositeStrategy(ExtractionStrategy):
    """Tries child strategies in order.

    A complete record wins immediately. Otherwise the first incomplete
    record is returned, and when every child fails the last error is raised.
    """

    def __init__(
        self,
        strategies: Sequence[ExtractionStrategy],
        fallback_currency: Optional[str] = None,
    ):
        super().__init__(fallback_currency)
        if not strategies:
            raise ValueError("CompositeStrategy needs at least one strategy")
        self.strategies = list(strategies)

    def currency_for(self, target_url: Optional[str]) -> str:
        return self.strategies[0].currency_for(target_url)

    def extract(self, payload: str, target_url: Optional[str] = None) -> NormalizedRecord:
        fallback: Optional[NormalizedRecord] = None
        last_error: Optional[ExtractionError] = None

        for strategy in self.strategies:
            try:
                record = strategy.extract(payload, target_url)
            except ExtractionError as e:
                self.logger.debug(
                    "strategy_failed",
                    strategy=type(strategy).__name__,
                    error=e.message,
                )
                last_error = e
                continue

            if not record.incomplete:
                return record
            if fallback is None:
                fallback = record

        if fallback is not None:
            return fallback
        raise last_error or NoContainerFound(self.platform)
