"""Health check schemas."""

from typing import Any, Dict, List

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Health check response schema."""

    status: str
    cache: str
    methods: List[str] = []
    intermediaries: Dict[str, Any] = {}
