"""Register all platform strategies with a registry.

Called during application startup (API server lifespan, CLI runner).
"""

import structlog

from pricepulse.scrapers.factory import StrategyRegistry
from pricepulse.scrapers.strategies import (
    AmazonStrategy,
    BigBasketStrategy,
    FlipkartStrategy,
    MeeshoStrategy,
    SwiggyStrategy,
)

logger = structlog.get_logger(__name__)


PLATFORMS = [
    (
        "amazon",
        AmazonStrategy,
        ("amazon.in", "amazon.com", "amazon.co.uk", "amazon.de", "amzn.in", "amzn.to"),
        "https://www.amazon.in/s?k={query}",
    ),
    (
        "flipkart",
        FlipkartStrategy,
        ("flipkart.com", "dl.flipkart.com"),
        "https://www.flipkart.com/search?q={query}",
    ),
    (
        "meesho",
        MeeshoStrategy,
        ("meesho.com",),
        "https://www.meesho.com/search?q={query}",
    ),
    (
        "bigbasket",
        BigBasketStrategy,
        ("bigbasket.com",),
        "https://www.bigbasket.com/ps/?q={query}",
    ),
    (
        "swiggy_instamart",
        SwiggyStrategy,
        ("swiggy.com",),
        "https://www.swiggy.com/instamart/search?query={query}",
    ),
]


def register_all_strategies(registry: StrategyRegistry) -> StrategyRegistry:
    """Register every platform strategy. Safe to call more than once.

    Args:
        registry: Target registry

    Returns:
        The registry that was populated
    """
    for platform, strategy_class, hosts, search_url in PLATFORMS:
        registry.register_strategy(platform, strategy_class, hosts, search_url)

    logger.info("strategies_registered", count=len(PLATFORMS), platforms=registry.registered_platforms())
    return registry
