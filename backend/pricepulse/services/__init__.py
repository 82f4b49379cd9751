"""Services module for acquisition orchestration.

This module contains the service classes callers talk to: the acquisition
service (single product and multi-platform comparison) and the result
cache that fronts it.
"""

from pricepulse.services.acquisition_service import (
    AcquisitionService,
    build_acquisition_service,
    rank_by_price,
)
from pricepulse.services.cache_service import (
    RedisResultCache,
    ResultCache,
    cache_key_for_comparison,
    cache_key_for_product,
    create_result_cache,
)

__all__ = [
    "AcquisitionService",
    "build_acquisition_service",
    "rank_by_price",
    "ResultCache",
    "RedisResultCache",
    "create_result_cache",
    "cache_key_for_product",
    "cache_key_for_comparison",
]
