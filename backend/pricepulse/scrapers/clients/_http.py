"""Shared HTTP error mapping for outbound collaborators."""

import httpx

from pricepulse.core.exceptions import (
    ConfigurationError,
    HTTPStatusFetchError,
    RateLimitedError,
    UpstreamServerError,
)


def raise_for_status(method: str, response: httpx.Response) -> None:
    """Map a collaborator's error status onto the acquisition taxonomy.

    Args:
        method: Method name, used for ConfigurationError
        response: The collaborator's response

    Raises:
        ConfigurationError: 401/403, credentials missing or rejected
        RateLimitedError: 429
        UpstreamServerError: 5xx
        HTTPStatusFetchError: Other 4xx
    """
    status_code = response.status_code
    if status_code < 400:
        return
    if status_code in (401, 403):
        raise ConfigurationError(method, f"credentials rejected (HTTP {status_code})")
    if status_code == 429:
        raise RateLimitedError(status_code)
    if status_code >= 500:
        raise UpstreamServerError(status_code)
    raise HTTPStatusFetchError(status_code)
