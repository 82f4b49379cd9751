"""Health check endpoint."""

from fastapi import APIRouter, Depends

from pricepulse.dependencies import get_acquisition_service
from pricepulse.schemas import HealthCheckResponse
from pricepulse.services.acquisition_service import AcquisitionService

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(service: AcquisitionService = Depends(get_acquisition_service)):
    """Return service health status.

    Reports:
    - Cache backend connectivity
    - Active acquisition methods in rank order
    - Intermediary pool statistics (credentials masked)
    """
    try:
        cache_status = "ok" if await service.cache.health_check() else "error: ping failed"
    except Exception as e:
        cache_status = f"error: {str(e)}"

    intermediaries = service.registry.get_stats()
    degraded = cache_status != "ok" or (
        intermediaries["total_intermediaries"] > 0
        and intermediaries["suspended_intermediaries"] == intermediaries["total_intermediaries"]
    )

    return HealthCheckResponse(
        status="degraded" if degraded else "ok",
        cache=cache_status,
        methods=service.method_names,
        intermediaries=intermediaries,
    )
