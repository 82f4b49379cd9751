"""Tests for extraction strategies and the strategy registry."""

import json
from decimal import Decimal

import pytest

from pricepulse.core.exceptions import NoContainerFound, UnknownPlatformError
from pricepulse.scrapers.base import NormalizedRecord
from pricepulse.scrapers.factory import StrategyRegistry
from pricepulse.scrapers.register_strategies import register_all_strategies
from pricepulse.scrapers.strategies import (
    AmazonStrategy,
    BigBasketStrategy,
    FlipkartStrategy,
    GenericStrategy,
    MeeshoStrategy,
)
from pricepulse.scrapers.strategies.amazon import AmazonSelectorStrategy, amazon_currency

from conftest import FILLER

AMAZON_URL = "https://www.amazon.in/Sony-WH-1000XM5/dp/B0BXYZ1234/ref=sr_1_1"


@pytest.fixture
def registry() -> StrategyRegistry:
    return register_all_strategies(StrategyRegistry())


# ============================================================================
# TREE-SELECTOR FAMILY
# ============================================================================


class TestAmazonStrategy:
    """Tests for Amazon selector extraction."""

    def test_product_page(self, amazon_product_html):
        record = AmazonStrategy().extract(amazon_product_html, AMAZON_URL)

        assert record.source_platform == "amazon"
        assert record.title == "Sony WH-1000XM5 Wireless Headphones"
        assert record.price == Decimal("26990.00")
        assert record.currency == "₹"
        assert record.previous_price == Decimal("34990.00")
        assert record.in_stock is True
        assert record.image_url == "https://m.media-amazon.com/images/I/sony.jpg"
        assert record.canonical_url == AMAZON_URL
        assert record.incomplete is False
        assert record.estimated is False

    def test_product_metadata(self, amazon_product_html):
        record = AmazonStrategy().extract(amazon_product_html, AMAZON_URL)

        assert record.metadata["asin"] == "B0BXYZ1234"
        assert record.metadata["brand"] == "Sony"
        assert record.metadata["category"] == "Headphones"
        assert record.metadata["breadcrumbs"] == ["Electronics", "Headphones"]
        assert record.metadata["features"] == [
            "Industry leading noise cancellation",
            "30 hour battery",
        ]

    def test_out_of_stock(self):
        html = (
            '<span id="productTitle">Kindle</span>'
            '<span class="a-price"><span class="a-offscreen">₹9,999</span></span>'
            '<div id="availability">Currently unavailable.</div>'
        )
        record = AmazonStrategy().extract(html, AMAZON_URL)
        assert record.in_stock is False

    def test_search_results_use_first_card(self):
        html = """
        <div class="s-result-item" data-asin=""><h2><span>Sponsored banner</span></h2></div>
        <div class="s-result-item" data-asin="B0AAAAAAAA">
          <h2><a class="a-link-normal" href="/boAt-Rockerz/dp/B0AAAAAAAA"><span>boAt Rockerz 450</span></a></h2>
          <span class="a-price"><span class="a-offscreen">₹1,499</span></span>
          <img class="s-image" src="https://m.media-amazon.com/images/I/boat.jpg">
        </div>
        """
        record = AmazonStrategy().extract(html, "https://www.amazon.in/s?k=headphones")

        assert record.title == "boAt Rockerz 450"
        assert record.price == Decimal("1499")
        assert record.canonical_url == "https://www.amazon.in/boAt-Rockerz/dp/B0AAAAAAAA"
        assert record.metadata["asin"] == "B0AAAAAAAA"
        assert record.image_url == "https://m.media-amazon.com/images/I/boat.jpg"

    def test_dynamic_image_attribute(self):
        html = (
            '<span id="productTitle">Echo Dot</span>'
            '<span class="a-price"><span class="a-offscreen">₹4,499</span></span>'
            '<img id="landingImage" data-a-dynamic-image=\'{"https://m.media-amazon.com/dot.jpg": [500, 500]}\'>'
        )
        record = AmazonSelectorStrategy().extract(html, AMAZON_URL)
        assert record.image_url == "https://m.media-amazon.com/dot.jpg"

    def test_currency_follows_marketplace(self):
        assert amazon_currency("https://www.amazon.com/dp/B0BXYZ1234") == "$"
        assert amazon_currency("https://www.amazon.co.uk/dp/B0BXYZ1234") == "£"
        assert amazon_currency("https://www.amazon.in/dp/B0BXYZ1234") == "₹"
        assert amazon_currency(None) == "₹"

        html = '<span id="productTitle">Kindle</span><span class="a-price"><span class="a-offscreen">99.99</span></span>'
        record = AmazonStrategy().extract(html, "https://www.amazon.com/dp/B0BXYZ1234")
        assert record.currency == "$"


# ============================================================================
# PARTIAL SUCCESS
# ============================================================================


class TestPartialSuccess:
    """Tests for incomplete and estimated records."""

    def test_title_without_price_is_incomplete(self):
        html = '<span id="productTitle">Mystery Item</span>'
        record = AmazonStrategy().extract(html, AMAZON_URL)

        assert record.incomplete is True
        assert record.title == "Mystery Item"
        assert record.price == Decimal("0")
        assert record.is_usable is False

    def test_price_without_title_is_incomplete(self):
        html = '<span class="a-price"><span class="a-offscreen">₹799</span></span>'
        record = AmazonSelectorStrategy().extract(html, AMAZON_URL)

        assert record.incomplete is True
        assert record.title == ""
        assert record.price == Decimal("799")

    def test_previous_price_only_is_estimated(self):
        """No current price: 90% of the previous price, labelled estimated."""
        html = (
            '<span id="productTitle">Old Stock Item</span>'
            '<span class="a-text-strike">₹1,000</span>'
        )
        record = AmazonSelectorStrategy().extract(html, AMAZON_URL)

        assert record.estimated is True
        assert record.metadata["estimated"] == "true"
        assert record.price == Decimal("900.00")
        assert record.previous_price == Decimal("1000")
        assert record.incomplete is False

    def test_nothing_found_raises(self):
        with pytest.raises(NoContainerFound):
            AmazonStrategy().extract("<html><body><p>Nothing here</p></body></html>", AMAZON_URL)


# ============================================================================
# STRUCTURED-DATA FAMILY
# ============================================================================


class TestStructuredStrategies:
    """Tests for embedded JSON extraction."""

    def test_next_data_catalog_list(self, next_data_html):
        """The first plausible product in the shape wins."""
        record = MeeshoStrategy().extract(next_data_html, "https://www.meesho.com/search?q=kurta")

        assert record.source_platform == "meesho"
        assert record.title == "Cotton Kurta Set"
        assert record.price == Decimal("449")
        assert record.previous_price == Decimal("999")
        assert record.canonical_url == "https://www.meesho.com/cotton-kurta/p/4x8k2"
        assert record.image_url == "https://images.meesho.com/kurta.jpg"
        assert record.metadata["extraction"] == "structured"

    def test_ld_json_product(self, ld_json_html):
        url = "https://www.bigbasket.com/pd/276795/fortune-oil/"
        record = BigBasketStrategy().extract(ld_json_html, url)

        assert record.title == "Fortune Sunlite Refined Sunflower Oil 1 L"
        assert record.price == Decimal("155.00")
        assert record.currency == "₹"
        assert record.in_stock is True
        assert record.metadata["brand"] == "Fortune"
        assert record.image_url == "https://www.bigbasket.com/media/oil.jpg"
        assert record.canonical_url == url

    def test_initial_state_assignment(self):
        state = {
            "SEARCH_RESPONSE": {
                "products": [
                    {
                        "title": "Apple iPhone 15 (Black, 128 GB)",
                        "finalPrice": "₹69,900",
                        "mrp": "₹79,900",
                        "url": "/apple-iphone-15/p/itm6ac6485515ae4",
                    }
                ]
            }
        }
        html = (
            "<html><body><script>window.__INITIAL_STATE__ = "
            f"{json.dumps(state)};window.other = 1;</script></body></html>"
        )
        record = FlipkartStrategy().extract(html, "https://www.flipkart.com/search?q=iphone+15")

        assert record.title == "Apple iPhone 15 (Black, 128 GB)"
        assert record.price == Decimal("69900")
        assert record.previous_price == Decimal("79900")
        assert record.canonical_url == "https://www.flipkart.com/apple-iphone-15/p/itm6ac6485515ae4"

    def test_raw_json_payload(self):
        payload = json.dumps({"products": [{"name": "Amul Butter 500 g", "price": 285}]})
        record = GenericStrategy().extract(payload, "https://shop.example/api/search?q=butter")

        assert record.source_platform == "generic"
        assert record.title == "Amul Butter 500 g"
        assert record.price == Decimal("285")

    def test_generic_falls_back_to_microdata(self):
        html = (
            "<html><head>"
            '<meta property="og:title" content="Handmade Ceramic Mug">'
            '<meta property="product:price:amount" content="650">'
            '<meta property="og:image" content="https://shop.example/mug.jpg">'
            f"</head><body>{FILLER}</body></html>"
        )
        record = GenericStrategy().extract(html, "https://shop.example/mug")

        assert record.title == "Handmade Ceramic Mug"
        assert record.price == Decimal("650")
        assert record.image_url == "https://shop.example/mug.jpg"
        assert record.metadata["extraction"] == "selector"


# ============================================================================
# RECORD AND REGISTRY
# ============================================================================


class TestNormalizedRecord:
    """Tests for NormalizedRecord invariants and wire shape."""

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            NormalizedRecord("amazon", "Item", Decimal("-1"), "₹", AMAZON_URL)

    def test_title_required_unless_incomplete(self):
        with pytest.raises(ValueError):
            NormalizedRecord("amazon", "", Decimal("10"), "₹", AMAZON_URL)
        record = NormalizedRecord("amazon", "", Decimal("10"), "₹", AMAZON_URL, incomplete=True)
        assert record.incomplete is True

    def test_wire_shape(self):
        record = NormalizedRecord(
            "flipkart", "Item", Decimal("99.50"), "₹", "https://www.flipkart.com/p", best_price=True
        )
        data = record.to_dict()

        assert data["sourcePlatform"] == "flipkart"
        assert data["price"] == "99.50"
        assert data["canonicalUrl"] == "https://www.flipkart.com/p"
        assert data["isBestPrice"] is True
        assert NormalizedRecord.from_dict(data).price == Decimal("99.50")

    def test_from_dict_tolerates_odd_field_types(self):
        record = NormalizedRecord.from_dict(
            {"title": 42, "price": "₹120", "metadata": "oops", "sourcePlatform": "meesho", "url": 7}
        )

        assert record.title == "42"
        assert record.metadata == {}
        assert record.canonical_url == "7"

    def test_legacy_delegated_shape(self):
        record = NormalizedRecord.from_dict(
            {
                "name": "Tata Salt 1 kg",
                "currentPrice": 28,
                "previousPrice": 30,
                "url": "https://www.bigbasket.com/pd/241600/",
                "marketplace": "bigbasket",
            },
            default_platform="bigbasket",
        )
        assert record.title == "Tata Salt 1 kg"
        assert record.price == Decimal("28")
        assert record.source_platform == "bigbasket"
        assert record.canonical_url == "https://www.bigbasket.com/pd/241600/"


class TestStrategyRegistry:
    """Tests for the platform strategy registry."""

    @pytest.mark.parametrize(
        "url,platform",
        [
            ("https://www.amazon.in/dp/B0BXYZ1234", "amazon"),
            ("https://dl.flipkart.com/s/abc", "flipkart"),
            ("https://www.meesho.com/kurta/p/4x8k2", "meesho"),
            ("https://www.bigbasket.com/pd/1/", "bigbasket"),
            ("https://www.swiggy.com/instamart/item/1", "swiggy_instamart"),
            ("https://shop.example/item", None),
        ],
    )
    def test_platform_for_url(self, registry, url, platform):
        assert registry.platform_for_url(url) == platform

    def test_configured_default_currency(self):
        registry = register_all_strategies(StrategyRegistry(default_currency="$"))
        html = (
            "<html><head>"
            '<meta property="og:title" content="Steel Bottle">'
            '<meta property="product:price:amount" content="1,299">'
            f"</head><body>{FILLER}</body></html>"
        )

        record = registry.strategy_for("nykaa").extract(html, "https://shop.example/bottle")

        assert record.price == Decimal("1299")
        assert record.currency == "$"
        assert registry.strategy_for("flipkart").currency_for(None) == "$"

    def test_amazon_domain_currency_beats_default(self):
        registry = register_all_strategies(StrategyRegistry(default_currency="$"))
        amazon = registry.strategy_for("amazon")

        assert amazon.currency_for("https://www.amazon.in/dp/B0BXYZ1234") == "₹"
        assert amazon.currency_for(None) == "$"

    def test_rupee_when_no_default_configured(self, registry):
        assert registry.strategy_for("generic").currency_for(None) == "₹"

    def test_registries_are_independent(self):
        populated = register_all_strategies(StrategyRegistry())
        empty = StrategyRegistry()

        assert "amazon" in populated.registered_platforms()
        assert empty.registered_platforms() == []
        assert isinstance(empty.strategy_for("amazon"), GenericStrategy)

    def test_unknown_platform_gets_generic(self, registry):
        assert isinstance(registry.strategy_for("nykaa"), GenericStrategy)

    def test_strategy_instances_are_shared(self, registry):
        assert registry.strategy_for("amazon") is registry.strategy_for("amazon")

    def test_search_url(self, registry):
        url = registry.search_url("flipkart", "  basmati rice 5kg ")
        assert url == "https://www.flipkart.com/search?q=basmati+rice+5kg"

    def test_search_url_unknown_platform(self, registry):
        with pytest.raises(UnknownPlatformError):
            registry.search_url("nykaa", "lipstick")

    def test_register_all_is_idempotent(self, registry):
        before = registry.registered_platforms()
        register_all_strategies(registry)
        assert registry.registered_platforms() == before
