"""FastAPI dependency injection providers."""

import secrets
from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, Request, status

from pricepulse.config import Settings, settings
from pricepulse.services.acquisition_service import AcquisitionService

logger = structlog.get_logger(__name__)


def get_settings() -> Settings:
    return settings


def get_acquisition_service(request: Request) -> AcquisitionService:
    """Return the service built during application startup.

    Raises 503 if the lifespan has not created it (e.g. during shutdown).
    """
    service = getattr(request.app.state, "acquisition_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Acquisition service is not ready",
        )
    return service


def verify_api_key(
    api_key: Optional[str] = Header(None, alias="API-Key"),
    app_settings: Settings = Depends(get_settings),
) -> None:
    """Check the API-Key header against DELEGATED_API_KEY.

    The endpoints stay open when no key is configured. The comparison uses
    ``secrets.compare_digest``.

    Raises:
        HTTPException: 403 Forbidden when the key is missing or wrong
    """
    configured_key = app_settings.DELEGATED_API_KEY
    if not configured_key:
        return

    if not api_key or not secrets.compare_digest(api_key.encode(), configured_key.encode()):
        logger.warning("api_key_rejected")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )
