"""Meesho catalog and search pages (Next.js)."""

from typing import Optional

from pricepulse.scrapers.base import CompositeStrategy
from pricepulse.scrapers.strategies.selector import SelectorStrategy
from pricepulse.scrapers.strategies.structured import StructuredDataStrategy


class MeeshoStructuredStrategy(StructuredDataStrategy):
    platform = "meesho"
    platform_name = "Meesho"
    BASE_URL = "https://www.meesho.com"

    PLATFORM_SHAPES = (
        ("props", "pageProps", "initialState", "product", "details", "data"),
        ("props", "pageProps", "initialState", "searchListing", "products"),
    )
    PRICE_KEYS = (
        ("min_product_price",),
        ("discountedPrice",),
        ("price",),
        ("productPrice",),
        ("displayedPrice",),
        ("pricing", "finalPrice"),
    )
    PREVIOUS_PRICE_KEYS = (("original_price",), ("mrp",), ("originalPrice",))
    URL_KEYS = (("productUrl",), ("url",))


class MeeshoSelectorStrategy(SelectorStrategy):
    platform = "meesho"
    platform_name = "Meesho"
    BASE_URL = "https://www.meesho.com"

    CARD_SELECTORS = ("div[class*='ProductListItem']", "div[class*='ProductCard']")
    TITLE_SELECTORS = (
        "p[class*='ProductTitle']",
        "span[class*='ProductTitle']",
        "h1",
        "p[class*='StyledDesktopProductTitle']",
    )
    PRICE_SELECTORS = (
        "h5[class*='Price']",
        "h4[class*='Price']",
        "h4",
        "h5",
    )
    PREVIOUS_PRICE_SELECTORS = ("p[class*='StrikedPrice']", "span[class*='StrikedPrice']", "del")
    IMAGE_SELECTORS = ("img[class*='ProductImage']", "picture img", "img")
    LINK_SELECTORS = ("a[href*='/p/']@href", "a[href]@href")


class MeeshoStrategy(CompositeStrategy):
    platform = "meesho"
    platform_name = "Meesho"

    def __init__(self, fallback_currency: Optional[str] = None):
        super().__init__(
            [MeeshoStructuredStrategy(fallback_currency), MeeshoSelectorStrategy(fallback_currency)],
            fallback_currency,
        )
