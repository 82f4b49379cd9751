"""Swiggy Instamart search and item pages."""

from typing import Optional

from pricepulse.scrapers.base import CompositeStrategy
from pricepulse.scrapers.strategies.selector import SelectorStrategy
from pricepulse.scrapers.strategies.structured import StructuredDataStrategy


class SwiggyStructuredStrategy(StructuredDataStrategy):
    platform = "swiggy_instamart"
    platform_name = "Swiggy Instamart"
    BASE_URL = "https://www.swiggy.com"

    PLATFORM_SHAPES = (
        ("props", "pageProps", "initialState", "instamart", "products"),
        ("props", "pageProps", "initialState", "search", "results"),
        ("data", "widgets", 0, "data"),
    )
    PRICE_KEYS = (
        ("variations", 0, "price", "offer_price"),
        ("variants", 0, "price"),
        ("price",),
        ("offer_price",),
        ("discountedPrice",),
        ("finalPrice",),
    )
    PREVIOUS_PRICE_KEYS = (
        ("variations", 0, "price", "mrp"),
        ("variants", 0, "mrp"),
        ("mrp",),
        ("store_price",),
    )
    NAME_KEYS = (
        ("display_name",),
        ("name",),
        ("title",),
        ("productName",),
    )


class SwiggySelectorStrategy(SelectorStrategy):
    platform = "swiggy_instamart"
    platform_name = "Swiggy Instamart"
    BASE_URL = "https://www.swiggy.com"

    CARD_SELECTORS = ("div[data-testid='default_container_ux4']", "div[data-testid='ItemWidgetContainer']")
    TITLE_SELECTORS = (
        "div[class*='novMV']",
        "[data-testid='item-name']",
        "h1",
    )
    PRICE_SELECTORS = (
        "div[data-testid='item-offer-price']",
        "div[class*='_20EAp'] div",
        "[data-testid='item-price']",
    )
    PREVIOUS_PRICE_SELECTORS = ("div[data-testid='item-mrp-price']",)
    IMAGE_SELECTORS = ("img",)
    STOCK_SELECTORS = ("[data-testid='sold-out']",)
    LINK_SELECTORS = ("a[href]@href",)


class SwiggyStrategy(CompositeStrategy):
    """Instamart is fully client-rendered; markup is a last resort."""

    platform = "swiggy_instamart"
    platform_name = "Swiggy Instamart"

    def __init__(self, fallback_currency: Optional[str] = None):
        super().__init__(
            [SwiggyStructuredStrategy(fallback_currency), SwiggySelectorStrategy(fallback_currency)],
            fallback_currency,
        )
