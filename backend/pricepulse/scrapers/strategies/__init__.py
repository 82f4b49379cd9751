"""Platform-specific extraction strategies.

Each platform module pairs a StructuredDataStrategy subclass (embedded JSON
shapes) with a SelectorStrategy subclass (CSS selector tables) and combines
them in a CompositeStrategy.
"""

from .structured import StructuredDataStrategy
from .selector import SelectorStrategy
from .generic import GenericStrategy, GENERIC_PLATFORM
from .amazon import AmazonStrategy
from .flipkart import FlipkartStrategy
from .meesho import MeeshoStrategy
from .bigbasket import BigBasketStrategy
from .swiggy import SwiggyStrategy

__all__ = [
    "StructuredDataStrategy",
    "SelectorStrategy",
    "GenericStrategy",
    "GENERIC_PLATFORM",
    "AmazonStrategy",
    "FlipkartStrategy",
    "MeeshoStrategy",
    "BigBasketStrategy",
    "SwiggyStrategy",
]
