"""Flipkart product and search pages."""

from typing import Optional

from pricepulse.scrapers.base import CompositeStrategy
from pricepulse.scrapers.strategies.selector import SelectorStrategy
from pricepulse.scrapers.strategies.structured import StructuredDataStrategy


class FlipkartStructuredStrategy(StructuredDataStrategy):
    platform = "flipkart"
    platform_name = "Flipkart"
    BASE_URL = "https://www.flipkart.com"

    # window.__INITIAL_STATE__ layouts
    PLATFORM_SHAPES = (
        ("pageDataV4", "page", "data", "10", "widget", "data", "products"),
        ("SEARCH_RESPONSE", "products"),
        ("productPage", "productDetails"),
    )


class FlipkartSelectorStrategy(SelectorStrategy):
    platform = "flipkart"
    platform_name = "Flipkart"
    BASE_URL = "https://www.flipkart.com"

    CARD_SELECTORS = ("div[data-id]", "._1AtVbE")
    TITLE_SELECTORS = (
        "span.VU-ZEz",
        "span.B_NuCI",
        "._4rR01T",
        ".KzDlHZ",
        ".wjcEIp",
        ".s1Q9rs",
        "a[title]@title",
    )
    PRICE_SELECTORS = (
        "div.Nx9bqj.CxhGGd",
        "._30jeq3._16Jk6d",
        ".Nx9bqj",
        "._30jeq3",
    )
    PREVIOUS_PRICE_SELECTORS = (".yRaY8j", "._3I9_wc")
    IMAGE_SELECTORS = ("img.DByuf4", "img._396cs4", "img._53J4C-", "img")
    STOCK_SELECTORS = ("._16FRp0", ".Z8JjpR")
    CATEGORY_SELECTORS = ("a.R0cyWM", "._2whKao")
    FEATURE_SELECTORS = ("li._7eSDEz", "li.rgWa7D", "li._21Ahn-")
    LINK_SELECTORS = ("a[href*='/p/']@href", "a[href]@href")


class FlipkartStrategy(CompositeStrategy):
    """Embedded state first, rendered markup second."""

    platform = "flipkart"
    platform_name = "Flipkart"

    def __init__(self, fallback_currency: Optional[str] = None):
        super().__init__(
            [FlipkartStructuredStrategy(fallback_currency), FlipkartSelectorStrategy(fallback_currency)],
            fallback_currency,
        )
