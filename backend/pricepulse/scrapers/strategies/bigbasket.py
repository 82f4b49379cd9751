"""BigBasket product and search pages."""

from typing import Optional

from pricepulse.scrapers.base import CompositeStrategy
from pricepulse.scrapers.strategies.selector import SelectorStrategy
from pricepulse.scrapers.strategies.structured import StructuredDataStrategy


class BigBasketStructuredStrategy(StructuredDataStrategy):
    platform = "bigbasket"
    platform_name = "BigBasket"
    BASE_URL = "https://www.bigbasket.com"

    PLATFORM_SHAPES = (
        ("props", "pageProps", "SSRData", "tabs", 0, "product_info", "products"),
        ("props", "pageProps", "productDetails", "children", 0),
        ("ta_results", "products"),
        ("__STATE__", "search", "results"),
        ("productList",),
        ("searchResult", "products"),
    )
    NAME_KEYS = (
        ("desc",),
        ("name",),
        ("product_name",),
        ("productName",),
        ("title",),
    )
    PRICE_KEYS = (
        ("pricing", "discount", "prim_price", "sp"),
        ("sp",),
        ("price",),
        ("actual_price",),
        ("discountedPrice",),
    )
    PREVIOUS_PRICE_KEYS = (("pricing", "discount", "mrp"), ("mrp",))
    STOCK_KEYS = (
        ("in_stock",),
        ("inStock",),
        ("availability", "avail_status"),
        ("status",),
        ("availability",),
    )
    URL_KEYS = (("absolute_url",), ("url",))
    IMAGE_KEYS = (("images", 0, "l"), ("images", 0, "m"), ("image",), ("p_img_url",))


class BigBasketSelectorStrategy(SelectorStrategy):
    platform = "bigbasket"
    platform_name = "BigBasket"
    BASE_URL = "https://www.bigbasket.com"

    CARD_SELECTORS = (
        "li[class*='PaginateItems']",
        ".uiv2-list-box-img-block",
    )
    TITLE_SELECTORS = (
        "h1",
        "h3",
        ".uiv2-list-box-img-title",
        "div[class*='ProductTitle']",
    )
    PRICE_SELECTORS = (
        "span[class*='Pricing___StyledLabel-']",
        "td[data-qa='productPrice']",
        ".discnt-price",
    )
    PREVIOUS_PRICE_SELECTORS = ("span[class*='Pricing___StyledLabel2']", "td.line-through", ".mp-price")
    IMAGE_SELECTORS = ("img[class*='Image']", "img")
    STOCK_SELECTORS = ("div[class*='OutOfStock']", "span[class*='StockStatus']")
    CATEGORY_SELECTORS = ("div[class*='Breadcrumb'] a",)
    LINK_SELECTORS = ("a[href*='/pd/']@href", "a[href]@href")


class BigBasketStrategy(CompositeStrategy):
    platform = "bigbasket"
    platform_name = "BigBasket"

    def __init__(self, fallback_currency: Optional[str] = None):
        super().__init__(
            [BigBasketStructuredStrategy(fallback_currency), BigBasketSelectorStrategy(fallback_currency)],
            fallback_currency,
        )
