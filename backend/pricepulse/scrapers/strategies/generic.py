"""Fallback for storefronts without a dedicated strategy."""

from typing import Optional

from pricepulse.scrapers.base import CompositeStrategy
from pricepulse.scrapers.strategies.selector import SelectorStrategy
from pricepulse.scrapers.strategies.structured import StructuredDataStrategy

GENERIC_PLATFORM = "generic"


class GenericStructuredStrategy(StructuredDataStrategy):
    platform = GENERIC_PLATFORM
    platform_name = "Web"


class GenericSelectorStrategy(SelectorStrategy):
    """schema.org microdata and Open Graph tags."""

    platform = GENERIC_PLATFORM
    platform_name = "Web"


class GenericStrategy(CompositeStrategy):
    platform = GENERIC_PLATFORM
    platform_name = "Web"

    def __init__(self, fallback_currency: Optional[str] = None):
        super().__init__(
            [GenericStructuredStrategy(fallback_currency), GenericSelectorStrategy(fallback_currency)],
            fallback_currency,
        )
