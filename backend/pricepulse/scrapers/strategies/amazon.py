"""Amazon product and search pages."""

from typing import Optional
from urllib.parse import urlparse

from pricepulse.scrapers.base import CompositeStrategy, NormalizedRecord
from pricepulse.scrapers.strategies.selector import SelectorStrategy
from pricepulse.scrapers.strategies.structured import StructuredDataStrategy
from pricepulse.scrapers.utils.normalizer import extract_asin


# Marketplace host suffix -> currency
AMAZON_CURRENCIES = {
    ".in": "₹",
    ".co.uk": "£",
    ".de": "€",
    ".fr": "€",
    ".it": "€",
    ".es": "€",
    ".co.jp": "¥",
    ".com": "$",
    ".ca": "$",
}


def amazon_currency(url: Optional[str], default: str = "₹") -> str:
    if not url:
        return default
    host = urlparse(url).netloc.lower()
    for suffix, symbol in AMAZON_CURRENCIES.items():
        if host.endswith(suffix):
            return symbol
    return default


class AmazonSelectorStrategy(SelectorStrategy):
    platform = "amazon"
    platform_name = "Amazon"
    extract_on_challenge = True

    CARD_SELECTORS = ('.s-result-item[data-asin]:not([data-asin=""])',)
    TITLE_SELECTORS = (
        "#productTitle",
        "#title",
        "h2 .a-link-normal",
        "h2 span",
    )
    PRICE_SELECTORS = (
        ".a-price .a-offscreen",
        "#priceblock_ourprice",
        "#priceblock_dealprice",
        ".a-price .a-price-whole",
        ".a-price",
        ".a-color-price",
        "#price_inside_buybox",
        "#corePrice_feature_div .a-offscreen",
        ".priceToPay .a-offscreen",
    )
    PREVIOUS_PRICE_SELECTORS = (
        ".a-price.a-text-price .a-offscreen",
        ".a-text-strike",
        ".a-text-price .a-offscreen",
        "#listPrice",
        "#priceblock_saleprice",
        ".priceBlockStrikePriceString",
    )
    IMAGE_SELECTORS = (
        "#landingImage",
        "#imgBlkFront",
        "#img-canvas img",
        ".a-dynamic-image",
        "#main-image",
        ".a-stretch-horizontal img",
        "img.s-image",
    )
    STOCK_SELECTORS = ("#availability",)
    CATEGORY_SELECTORS = ("#wayfinding-breadcrumbs_container li",)
    FEATURE_SELECTORS = ("#feature-bullets li",)
    BRAND_SELECTORS = ("#bylineInfo",)
    LINK_SELECTORS = ("h2 a[href]@href", "a.a-link-normal[href]@href")
    BASE_URL = "https://www.amazon.in"

    def currency_for(self, target_url: Optional[str]) -> str:
        return amazon_currency(target_url, self.fallback_currency)

    def extract(self, payload: str, target_url: Optional[str] = None) -> NormalizedRecord:
        record = super().extract(payload, target_url)
        asin = extract_asin(record.canonical_url) or extract_asin(target_url or "")
        if asin:
            metadata = dict(record.metadata)
            metadata["asin"] = asin
            record = record.with_flags(metadata=metadata)
        return record


class AmazonStructuredStrategy(StructuredDataStrategy):
    platform = "amazon"
    platform_name = "Amazon"
    BASE_URL = "https://www.amazon.in"

    def currency_for(self, target_url: Optional[str]) -> str:
        return amazon_currency(target_url, self.fallback_currency)


class AmazonStrategy(CompositeStrategy):
    """Selectors first: Amazon pages are server-rendered."""

    platform = "amazon"
    platform_name = "Amazon"
    extract_on_challenge = True

    def __init__(self, fallback_currency: Optional[str] = None):
        super().__init__(
            [AmazonSelectorStrategy(fallback_currency), AmazonStructuredStrategy(fallback_currency)],
            fallback_currency,
        )
