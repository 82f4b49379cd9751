"""Registry mapping platforms to extraction strategies."""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type
from urllib.parse import quote_plus, urlparse
import structlog

from pricepulse.core.exceptions import UnknownPlatformError
from pricepulse.scrapers.base import ExtractionStrategy
from pricepulse.scrapers.strategies.generic import GENERIC_PLATFORM, GenericStrategy


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PlatformEntry:
    """Registration record for one platform."""

    platform: str
    strategy_class: Type[ExtractionStrategy]
    hosts: Tuple[str, ...] = ()
    search_url_template: Optional[str] = None  # "{query}" is URL-quoted


class StrategyRegistry:
    """Holds platform registrations and hands out strategy instances.

    Strategies are stateless, so one instance per platform is shared.
    Unknown platforms get the generic strategy. Strategies report
    default_currency for prices that name no currency.
    """

    def __init__(self, default_currency: Optional[str] = None):
        self.default_currency = default_currency
        self._entries: Dict[str, PlatformEntry] = {}
        self._instances: Dict[str, ExtractionStrategy] = {}

    def register_strategy(
        self,
        platform: str,
        strategy_class: Type[ExtractionStrategy],
        hosts: Tuple[str, ...] = (),
        search_url_template: Optional[str] = None,
    ) -> None:
        """Register a strategy class for a platform.

        Args:
            platform: Platform slug (e.g., "flipkart")
            strategy_class: Strategy class (must inherit from ExtractionStrategy)
            hosts: Host names served by the platform (e.g., ("flipkart.com",))
            search_url_template: Search page URL with a "{query}" placeholder
        """
        if not issubclass(strategy_class, ExtractionStrategy):
            raise ValueError(f"Strategy class must inherit from ExtractionStrategy: {strategy_class}")

        self._entries[platform] = PlatformEntry(
            platform=platform,
            strategy_class=strategy_class,
            hosts=tuple(h.lower() for h in hosts),
            search_url_template=search_url_template,
        )
        self._instances.pop(platform, None)
        logger.debug("strategy_registered", platform=platform, strategy=strategy_class.__name__)

    def strategy_for(self, platform: str) -> ExtractionStrategy:
        """Get the strategy for a platform (generic when unregistered).

        Args:
            platform: Platform slug

        Returns:
            Shared ExtractionStrategy instance
        """
        key = platform if platform in self._entries else GENERIC_PLATFORM
        strategy = self._instances.get(key)
        if strategy is None:
            entry = self._entries.get(key)
            strategy_class = entry.strategy_class if entry else GenericStrategy
            strategy = strategy_class(fallback_currency=self.default_currency)
            self._instances[key] = strategy
        return strategy

    def platform_for_url(self, url: str) -> Optional[str]:
        """Match a URL's host against registered platforms.

        Returns:
            Platform slug, or None when no platform serves the host
        """
        host = urlparse(url).netloc.lower().split(":")[0]
        for entry in self._entries.values():
            for known in entry.hosts:
                if host == known or host.endswith("." + known):
                    return entry.platform
        return None

    def search_url(self, platform: str, term: str) -> str:
        """Build the search page URL for a platform.

        Raises:
            UnknownPlatformError: Platform not registered or has no search page
        """
        entry = self._entries.get(platform)
        if entry is None or not entry.search_url_template:
            raise UnknownPlatformError(platform)
        return entry.search_url_template.format(query=quote_plus(term.strip()))

    def registered_platforms(self) -> list[str]:
        return list(self._entries.keys())

    def has_strategy(self, platform: str) -> bool:
        return platform in self._entries

