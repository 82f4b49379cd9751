"""Acquisition system for fetching product records from e-commerce platforms.

This package provides:
- The normalized record and the extraction strategy interface
- Platform strategies (embedded JSON shapes and CSS selector tables)
- Utility modules for intermediary health, content classification,
  timed fetches and price normalization
- Ranked acquisition methods and the pipeline that iterates them
"""

from .base import (
    AcquisitionTarget,
    CompositeStrategy,
    ExtractionStrategy,
    NormalizedRecord,
    unavailable_record,
)
from .factory import StrategyRegistry

__all__ = [
    # Data structures
    "AcquisitionTarget",
    "NormalizedRecord",
    "unavailable_record",
    # Strategies
    "ExtractionStrategy",
    "CompositeStrategy",
    # Registry
    "StrategyRegistry",
]
