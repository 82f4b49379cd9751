"""Extraction from JSON state embedded in the page.

Client-rendered storefronts ship their product data inside the HTML:
Next.js ``__NEXT_DATA__``, ``window.__INITIAL_STATE__`` assignments and
schema.org ``application/ld+json`` blocks. This strategy walks a fixed list
of known shapes, in priority order, until one yields a plausible product.
"""

import json
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup

from pricepulse.core.exceptions import NoContainerFound
from pricepulse.scrapers.base import ExtractionStrategy, NormalizedRecord
from pricepulse.scrapers.utils.normalizer import (
    absolute_url,
    clean_text,
    coerce_in_stock,
    parse_price,
)

PathElement = Union[str, int]
Path = Tuple[PathElement, ...]

_INITIAL_STATE_MARKER = "__INITIAL_STATE__"


def resolve_path(data: Any, path: Sequence[PathElement]) -> Any:
    """Follow a key/index path through nested dicts and lists.

    Returns:
        The value at the path, or None if any step is missing
    """
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


class StructuredDataStrategy(ExtractionStrategy):
    """Finds products in embedded JSON state."""

    # Known shapes, highest priority first. Each path ends at a product
    # object or a list of product objects.
    SHAPES: Tuple[Path, ...] = (
        ("props", "pageProps", "product"),
        ("props", "pageProps", "catalogList", "products"),
        ("props", "pageProps", "searchResults", "products"),
        ("props", "pageProps", "initialState", "search", "products"),
        ("props", "pageProps", "initialData", "products"),
        ("products",),
        ("results",),
        ("items",),
    )
    # Appended after the generic shapes by platform subclasses
    PLATFORM_SHAPES: Tuple[Path, ...] = ()

    NAME_KEYS: Tuple[Path, ...] = (
        ("name",),
        ("productName",),
        ("title",),
        ("displayName",),
        ("productTitle",),
        ("product_name",),
    )
    PRICE_KEYS: Tuple[Path, ...] = (
        ("discountedPrice",),
        ("price",),
        ("productPrice",),
        ("displayedPrice",),
        ("pricing", "finalPrice"),
        ("pricing", "price"),
        ("productInfo", "value", "pricing", "finalPrice"),
        ("finalPrice",),
        ("offer_price",),
        ("sp",),
        ("variants", 0, "price"),
        ("offers", "price"),
    )
    PREVIOUS_PRICE_KEYS: Tuple[Path, ...] = (
        ("mrp",),
        ("originalPrice",),
        ("listPrice",),
        ("strikePrice",),
        ("pricing", "mrp"),
        ("variants", 0, "mrp"),
    )
    STOCK_KEYS: Tuple[Path, ...] = (
        ("inStock",),
        ("in_stock",),
        ("stock",),
        ("availability",),
        ("available",),
        ("offers", "availability"),
    )
    URL_KEYS: Tuple[Path, ...] = (
        ("url",),
        ("productUrl",),
        ("link",),
        ("absolute_url",),
    )
    IMAGE_KEYS: Tuple[Path, ...] = (
        ("image",),
        ("imageUrl",),
        ("image_url",),
        ("images", 0),
        ("thumbnail",),
    )

    BASE_URL: str = ""

    def extract(self, payload: str, target_url: Optional[str] = None) -> NormalizedRecord:
        currency = self.currency_for(target_url)
        blobs = self.embedded_blobs(payload)
        fallback: Optional[Dict[str, Any]] = None

        for blob in blobs:
            for candidate in self._candidates(blob):
                fields = self._fields(candidate, currency, target_url)
                if fields["title"] and fields["price"]:
                    return self._record(fields, target_url)
                if fallback is None and (fields["title"] or fields["price"]):
                    fallback = fields

        if fallback is not None:
            return self._record(fallback, target_url)

        self.logger.debug("structured_data_not_found", blobs=len(blobs))
        raise NoContainerFound(self.platform or "generic")

    # ------------------------------------------------------------------
    # Locating embedded JSON
    # ------------------------------------------------------------------

    def embedded_blobs(self, payload: str) -> List[Any]:
        """Decode every embedded JSON document in the payload.

        Order: __NEXT_DATA__, __INITIAL_STATE__, ld+json blocks. A payload
        that is itself JSON is returned as the only blob.
        """
        stripped = payload.lstrip()
        if stripped.startswith(("{", "[")):
            try:
                return [json.loads(stripped)]
            except ValueError:
                pass

        soup = BeautifulSoup(payload, "lxml")
        blobs: List[Any] = []

        next_data = soup.find("script", id="__NEXT_DATA__")
        if next_data and next_data.string:
            decoded = _loads(next_data.string)
            if decoded is not None:
                blobs.append(decoded)

        for script in soup.find_all("script"):
            text = script.string or ""
            if _INITIAL_STATE_MARKER not in text:
                continue
            decoded = _decode_assignment(text, _INITIAL_STATE_MARKER)
            if decoded is not None:
                blobs.append(decoded)

        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            decoded = _loads(script.string or "")
            if decoded is not None:
                blobs.extend(_ld_products(decoded))

        return blobs

    def _candidates(self, blob: Any) -> Iterator[Dict[str, Any]]:
        if isinstance(blob, dict) and _is_ld_product(blob):
            yield _flatten_ld_product(blob)
            return

        for shape in self.SHAPES + self.PLATFORM_SHAPES:
            found = resolve_path(blob, shape)
            if isinstance(found, dict):
                yield found
            elif isinstance(found, list):
                for item in found:
                    if isinstance(item, dict):
                        yield item

    # ------------------------------------------------------------------
    # Field extraction
    # ------------------------------------------------------------------

    def _fields(
        self, item: Dict[str, Any], currency: str, target_url: Optional[str]
    ) -> Dict[str, Any]:
        title = self._first_value(item, self.NAME_KEYS)
        price, currency = self._first_price(item, self.PRICE_KEYS, currency)
        previous, _ = self._first_price(item, self.PREVIOUS_PRICE_KEYS, currency)
        if previous is not None and price is not None and previous <= price:
            previous = None

        stock_value = self._first_value(item, self.STOCK_KEYS, allow_false=True)
        url = self._first_value(item, self.URL_KEYS)
        image = self._first_value(item, self.IMAGE_KEYS)
        if isinstance(image, dict):
            image = image.get("url")

        base = target_url or self.BASE_URL
        return {
            "title": clean_text(str(title)) if title else "",
            "price": price if price and price > 0 else None,
            "previous_price": previous,
            "currency": currency,
            "in_stock": coerce_in_stock(stock_value),
            "url": absolute_url(base, url) if isinstance(url, str) else None,
            "image": image if isinstance(image, str) else None,
            "brand": self._brand(item),
        }

    @staticmethod
    def _first_value(item: Dict[str, Any], paths: Sequence[Path], allow_false: bool = False) -> Any:
        for path in paths:
            value = resolve_path(item, path)
            if value is None or value == "":
                continue
            if value is False and not allow_false:
                continue
            return value
        return None

    @staticmethod
    def _first_price(
        item: Dict[str, Any], paths: Sequence[Path], currency: str
    ) -> Tuple[Optional[Decimal], str]:
        for path in paths:
            value = resolve_path(item, path)
            if isinstance(value, dict):
                value = value.get("value") or value.get("amount") or value.get("decimalValue")
            amount, found_currency = parse_price(value, currency)
            if amount is not None and amount > 0:
                return amount, found_currency
        return None, currency

    @staticmethod
    def _brand(item: Dict[str, Any]) -> Optional[str]:
        brand = item.get("brand")
        if isinstance(brand, dict):
            brand = brand.get("name")
        return clean_text(brand) if isinstance(brand, str) and brand else None

    def _record(self, fields: Dict[str, Any], target_url: Optional[str]) -> NormalizedRecord:
        metadata: Dict[str, Any] = {"extraction": "structured"}
        if fields["brand"]:
            metadata["brand"] = fields["brand"]
        return self.build_record(
            title=fields["title"],
            price=fields["price"],
            currency=fields["currency"],
            canonical_url=fields["url"] or target_url or "",
            previous_price=fields["previous_price"],
            in_stock=fields["in_stock"],
            image_url=fields["image"],
            metadata=metadata,
        )


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _decode_assignment(script_text: str, marker: str) -> Any:
    """Decode the object literal assigned after ``marker =``."""
    index = script_text.find(marker)
    equals = script_text.find("=", index + len(marker))
    if equals == -1:
        return None
    start = script_text.find("{", equals)
    if start == -1:
        return None
    try:
        decoded, _ = json.JSONDecoder().raw_decode(script_text, start)
    except ValueError:
        return None
    return decoded


def _is_ld_product(data: Dict[str, Any]) -> bool:
    kind = data.get("@type")
    if isinstance(kind, list):
        return "Product" in kind
    return kind == "Product"


def _ld_products(decoded: Any) -> List[Dict[str, Any]]:
    if isinstance(decoded, list):
        items = decoded
    elif isinstance(decoded, dict) and isinstance(decoded.get("@graph"), list):
        items = decoded["@graph"]
    else:
        items = [decoded]
    return [item for item in items if isinstance(item, dict) and _is_ld_product(item)]


def _flatten_ld_product(product: Dict[str, Any]) -> Dict[str, Any]:
    """Map a schema.org Product onto the generic field names."""
    offers = product.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else {}
    offers = offers if isinstance(offers, dict) else {}

    price = offers.get("price") or offers.get("lowPrice")
    code = offers.get("priceCurrency")
    if price is not None and code:
        price = f"{code} {price}"

    image = product.get("image")
    if isinstance(image, list):
        image = image[0] if image else None

    return {
        "name": product.get("name"),
        "price": price,
        "availability": offers.get("availability"),
        "url": product.get("url") or offers.get("url"),
        "image": image,
        "brand": product.get("brand"),
    }
