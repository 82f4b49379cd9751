"""Pydantic schemas for the acquisition API.

All request/response models are defined here for easy import.
"""

from pricepulse.schemas.health import HealthCheckResponse
from pricepulse.schemas.record import (
    CompareRequest,
    CompareResponse,
    RecordResponse,
    ScrapeRequest,
    ScrapeResponse,
)

__all__ = [
    # Records
    "ScrapeRequest",
    "CompareRequest",
    "RecordResponse",
    "ScrapeResponse",
    "CompareResponse",
    # Health
    "HealthCheckResponse",
]
