"""Pytest configuration and shared fixtures."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from pricepulse.config import Settings

# Pads fixture pages past the minimum payload length
FILLER = "<p>" + ("Lorem ipsum dolor sit amet, consectetur adipiscing elit. " * 30) + "</p>"


class FakeClock:
    """Manually advanced clock for registry and cache tests."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings():
    """Build Settings with zero backoff and no external collaborators."""

    def _make(**overrides) -> Settings:
        values = {
            "ENVIRONMENT": "test",
            "INTERMEDIARIES": "",
            "METHOD_ORDER": "direct,render_tolerant",
            "MAX_RETRIES": 2,
            "BACKOFF_BASE_SECONDS": 0.0,
            "BACKOFF_MAX_SECONDS": 0.0,
            "HOSTED_API_USERNAME": "",
            "HOSTED_API_PASSWORD": "",
            "DELEGATED_ENDPOINT_URL": "",
            "DELEGATED_API_KEY": "",
            "CACHE_BACKEND": "memory",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def amazon_product_html() -> str:
    return f"""
    <html>
    <head><title>Amazon.in</title></head>
    <body>
      <div id="wayfinding-breadcrumbs_container">
        <ul><li><a>Electronics</a></li><li>›</li><li><a>Headphones</a></li></ul>
      </div>
      <span id="productTitle">  Sony WH-1000XM5 Wireless Headphones  </span>
      <a id="bylineInfo">Visit the Sony Store</a>
      <div id="corePrice_feature_div">
        <span class="a-price"><span class="a-offscreen">₹26,990.00</span></span>
        <span class="a-price a-text-price"><span class="a-offscreen">₹34,990.00</span></span>
      </div>
      <div id="availability"><span>In stock</span></div>
      <img id="landingImage" data-old-hires="https://m.media-amazon.com/images/I/sony.jpg">
      <div id="feature-bullets">
        <ul><li>Industry leading noise cancellation</li><li>30 hour battery</li></ul>
      </div>
      {FILLER}
    </body>
    </html>
    """


@pytest.fixture
def next_data_html() -> str:
    state = {
        "props": {
            "pageProps": {
                "catalogList": {
                    "products": [
                        {"name": "", "price": 0},
                        {
                            "name": "Cotton Kurta Set",
                            "price": 449,
                            "mrp": 999,
                            "image": "https://images.meesho.com/kurta.jpg",
                            "url": "/cotton-kurta/p/4x8k2",
                            "in_stock": True,
                        },
                    ]
                }
            }
        }
    }
    return (
        "<html><body>"
        f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(state)}</script>'
        f"{FILLER}</body></html>"
    )


@pytest.fixture
def ld_json_html() -> str:
    product = {
        "@context": "https://schema.org",
        "@type": "Product",
        "name": "Fortune Sunlite Refined Sunflower Oil 1 L",
        "image": ["https://www.bigbasket.com/media/oil.jpg"],
        "brand": {"@type": "Brand", "name": "Fortune"},
        "offers": {
            "@type": "Offer",
            "price": "155.00",
            "priceCurrency": "INR",
            "availability": "https://schema.org/InStock",
        },
    }
    return (
        "<html><head>"
        f'<script type="application/ld+json">{json.dumps(product)}</script>'
        f"</head><body>{FILLER}</body></html>"
    )


@pytest.fixture
def captcha_html() -> str:
    return (
        "<html><body><h4>Enter the characters you see below</h4>"
        "<p>Type the characters to continue. This is a captcha.</p>"
        f"{FILLER}</body></html>"
    )
