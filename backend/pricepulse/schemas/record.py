"""Record request/response schemas for the delegated acquisition API.

Field names on the wire are camelCase, matching NormalizedRecord.to_dict.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pricepulse.scrapers.base import NormalizedRecord


class ScrapeRequest(BaseModel):
    """Single product acquisition request."""

    url: str = Field(..., min_length=1, max_length=2048)

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, value: str) -> str:
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("url must be an absolute http(s) URL")
        return value


class CompareRequest(BaseModel):
    """Comparison search request, optionally limited to one platform."""

    model_config = ConfigDict(populate_by_name=True)

    search_term: str = Field(..., alias="searchTerm", min_length=1, max_length=200)
    platform: Optional[str] = Field(None, max_length=50)

    @field_validator("search_term")
    @classmethod
    def search_term_not_blank(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("searchTerm must not be blank")
        return value


class RecordResponse(BaseModel):
    """Normalized record in its wire shape."""

    model_config = ConfigDict(populate_by_name=True)

    source_platform: str = Field(..., alias="sourcePlatform")
    title: str
    price: Decimal
    currency: str
    canonical_url: str = Field(..., alias="canonicalUrl")
    in_stock: bool = Field(True, alias="inStock")
    metadata: Dict[str, Union[str, List[str]]] = {}
    observed_at: datetime = Field(..., alias="observedAt")
    previous_price: Optional[Decimal] = Field(None, alias="previousPrice")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    incomplete: bool = False
    partial: bool = False
    estimated: bool = False
    unavailable: bool = False
    is_best_price: bool = Field(False, alias="isBestPrice")

    @classmethod
    def from_record(cls, record: NormalizedRecord) -> "RecordResponse":
        return cls.model_validate(record.to_dict())


class ScrapeResponse(BaseModel):
    """Envelope for /scrape."""

    success: bool = True
    data: Optional[RecordResponse] = None
    error: Optional[str] = None


class CompareResponse(BaseModel):
    """Envelope for /compare."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    search_term: str = Field(..., alias="searchTerm")
    count: int = 0
    results: List[RecordResponse] = []
