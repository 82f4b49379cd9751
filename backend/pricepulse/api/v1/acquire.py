"""Delegated acquisition endpoints.

Performs fetches server-side on behalf of clients that cannot reach the
platforms directly. Both endpoints accept POST with a JSON body or GET with
query parameters and answer with the normalized record shape:

- ``/scrape``  ``{"url"}``                         -> ``{"success", "data"}``
- ``/compare`` ``{"searchTerm", "platform"?}``     -> ``{"success", "results"}``

A failed acquisition is still a 200 with ``success: false`` so callers can
tell "nothing found" apart from a transport error.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from pricepulse.dependencies import get_acquisition_service, verify_api_key
from pricepulse.schemas import (
    CompareRequest,
    CompareResponse,
    RecordResponse,
    ScrapeRequest,
    ScrapeResponse,
)
from pricepulse.services.acquisition_service import AcquisitionService

router = APIRouter(dependencies=[Depends(verify_api_key)])
logger = structlog.get_logger(__name__)


async def _scrape(request: ScrapeRequest, service: AcquisitionService) -> ScrapeResponse:
    record = await service.acquire_product(request.url)
    if record.unavailable:
        logger.info("delegated_scrape_unavailable", url=request.url)
        return ScrapeResponse(
            success=False,
            data=RecordResponse.from_record(record),
            error=str(record.metadata.get("reason") or "product unavailable"),
        )
    return ScrapeResponse(success=True, data=RecordResponse.from_record(record))


async def _compare(request: CompareRequest, service: AcquisitionService) -> CompareResponse:
    platforms = None
    if request.platform:
        platform = request.platform.strip().lower()
        if not service.strategies.has_strategy(platform):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown platform: {request.platform}",
            )
        platforms = [platform]

    records = await service.acquire_comparison(request.search_term, platforms=platforms)
    return CompareResponse(
        success=bool(records),
        search_term=request.search_term,
        count=len(records),
        results=[RecordResponse.from_record(r) for r in records],
    )


@router.post("/scrape", response_model=ScrapeResponse)
async def scrape_product(
    request: ScrapeRequest,
    service: AcquisitionService = Depends(get_acquisition_service),
):
    """Acquire one product record for a URL."""
    return await _scrape(request, service)


@router.get("/scrape", response_model=ScrapeResponse)
async def scrape_product_get(
    url: str = Query(..., min_length=1, max_length=2048),
    service: AcquisitionService = Depends(get_acquisition_service),
):
    """GET variant of /scrape."""
    try:
        request = ScrapeRequest(url=url)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.errors()[0]["msg"])
    return await _scrape(request, service)


@router.post("/compare", response_model=CompareResponse)
async def compare_prices(
    request: CompareRequest,
    service: AcquisitionService = Depends(get_acquisition_service),
):
    """Search the comparison platforms and rank results by price."""
    return await _compare(request, service)


@router.get("/compare", response_model=CompareResponse)
async def compare_prices_get(
    search_term: str = Query(..., alias="searchTerm", min_length=1, max_length=200),
    platform: Optional[str] = Query(None, max_length=50),
    service: AcquisitionService = Depends(get_acquisition_service),
):
    """GET variant of /compare."""
    try:
        request = CompareRequest(search_term=search_term, platform=platform)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.errors()[0]["msg"])
    return await _compare(request, service)
