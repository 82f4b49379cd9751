"""Extraction from server-rendered markup with ordered CSS selectors."""

import json
import re
from decimal import Decimal
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from pricepulse.scrapers.base import ExtractionStrategy, NormalizedRecord
from pricepulse.scrapers.utils.normalizer import (
    absolute_url,
    clean_text,
    coerce_in_stock,
    parse_price,
)

# "selector@attribute" reads an attribute instead of the element text
_ATTRIBUTE_SUFFIX = re.compile(r"^(?P<selector>.+)@(?P<attr>[\w:-]+)$")
_BRAND_PREFIXES = re.compile(r"^(visit the|brand:)\s*|\s*store$", re.IGNORECASE)


class SelectorStrategy(ExtractionStrategy):
    """Reads fields from the DOM using ordered selector candidates.

    For each field the first selector that yields a non-empty value wins.
    Subclasses only fill in the tables. When CARD_SELECTORS match (search
    result pages) the lookup is scoped to the first matching card.
    """

    CARD_SELECTORS: Tuple[str, ...] = ()
    TITLE_SELECTORS: Tuple[str, ...] = (
        "h1",
        "meta[property='og:title']@content",
        "title",
    )
    PRICE_SELECTORS: Tuple[str, ...] = (
        "meta[property='product:price:amount']@content",
        "[itemprop='price']@content",
        "[itemprop='price']",
        ".price",
    )
    PREVIOUS_PRICE_SELECTORS: Tuple[str, ...] = ()
    IMAGE_SELECTORS: Tuple[str, ...] = ("meta[property='og:image']@content",)
    IMAGE_ATTRIBUTES: Tuple[str, ...] = ("src", "data-old-hires", "data-a-dynamic-image", "data-src")
    STOCK_SELECTORS: Tuple[str, ...] = ("[itemprop='availability']@href",)
    CATEGORY_SELECTORS: Tuple[str, ...] = ()
    FEATURE_SELECTORS: Tuple[str, ...] = ()
    BRAND_SELECTORS: Tuple[str, ...] = ()
    LINK_SELECTORS: Tuple[str, ...] = ("a[href]@href",)
    BASE_URL: str = ""

    def extract(self, payload: str, target_url: Optional[str] = None) -> NormalizedRecord:
        soup = BeautifulSoup(payload, "lxml")
        scope, in_card = self._scope(soup)

        title = self._first_text(scope, self.TITLE_SELECTORS)
        price, currency = self._first_price(scope, self.PRICE_SELECTORS, self.currency_for(target_url))
        previous, _ = self._first_price(scope, self.PREVIOUS_PRICE_SELECTORS, currency)
        if previous is not None and price is not None and previous <= price:
            previous = None

        metadata = {"extraction": "selector"}
        brand = self._first_text(scope, self.BRAND_SELECTORS)
        if brand:
            metadata["brand"] = _BRAND_PREFIXES.sub("", brand).strip()

        breadcrumbs = self._all_texts(soup, self.CATEGORY_SELECTORS)
        if breadcrumbs:
            metadata["category"] = breadcrumbs[-1]
            metadata["breadcrumbs"] = breadcrumbs

        features = self._all_texts(scope, self.FEATURE_SELECTORS)
        if features:
            metadata["features"] = features

        canonical_url = target_url or self.BASE_URL
        if in_card:
            link = self._first_text(scope, self.LINK_SELECTORS)
            resolved = absolute_url(target_url or self.BASE_URL, link)
            if resolved:
                canonical_url = resolved

        return self.build_record(
            title=title,
            price=price,
            currency=currency,
            canonical_url=canonical_url or "",
            previous_price=previous,
            in_stock=self._in_stock(scope),
            image_url=self._first_image(scope),
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _scope(self, soup: BeautifulSoup) -> Tuple[Tag, bool]:
        for selector in self.CARD_SELECTORS:
            card = soup.select_one(selector)
            if card is not None:
                return card, True
        return soup, False

    @staticmethod
    def _value(element: Tag, attr: Optional[str]) -> str:
        if attr:
            value = element.get(attr)
            if isinstance(value, list):
                value = " ".join(value)
            return clean_text(value)
        return clean_text(element.get_text(" "))

    def _first_text(self, scope: Tag, selectors: Tuple[str, ...]) -> str:
        for raw in selectors:
            selector, attr = _split_selector(raw)
            element = scope.select_one(selector)
            if element is None:
                continue
            value = self._value(element, attr)
            if value:
                return value
        return ""

    def _all_texts(self, scope: Tag, selectors: Tuple[str, ...]) -> List[str]:
        for raw in selectors:
            selector, attr = _split_selector(raw)
            values = [self._value(el, attr) for el in scope.select(selector)]
            values = [v for v in values if v and v not in ("›", ">")]
            if values:
                return values
        return []

    def _first_price(
        self, scope: Tag, selectors: Tuple[str, ...], currency: str
    ) -> Tuple[Optional[Decimal], str]:
        for raw in selectors:
            selector, attr = _split_selector(raw)
            element = scope.select_one(selector)
            if element is None:
                continue
            amount, found_currency = parse_price(self._value(element, attr), currency)
            if amount is not None and amount > 0:
                return amount, found_currency
        return None, currency

    def _first_image(self, scope: Tag) -> Optional[str]:
        for raw in self.IMAGE_SELECTORS:
            selector, attr = _split_selector(raw)
            element = scope.select_one(selector)
            if element is None:
                continue
            candidates = (attr,) if attr else self.IMAGE_ATTRIBUTES
            for name in candidates:
                value = element.get(name)
                if not value:
                    continue
                value = value.strip()
                if value.startswith("{"):
                    # data-a-dynamic-image holds {"url": [w, h], ...}
                    try:
                        value = next(iter(json.loads(value)), "")
                    except ValueError:
                        continue
                if value:
                    return value
        return None

    def _in_stock(self, scope: Tag) -> Optional[bool]:
        text = self._first_text(scope, self.STOCK_SELECTORS)
        return coerce_in_stock(text) if text else None


def _split_selector(raw: str) -> Tuple[str, Optional[str]]:
    match = _ATTRIBUTE_SUFFIX.match(raw)
    if match and "[" not in match.group("attr"):
        return match.group("selector"), match.group("attr")
    return raw, None
