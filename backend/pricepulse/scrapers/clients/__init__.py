"""Outbound collaborators: hosted data API and delegated acquisition endpoint."""

from .hosted_api import HostedDataApiClient, HostedResult
from .delegated import DelegatedAcquisitionClient

__all__ = [
    "HostedDataApiClient",
    "HostedResult",
    "DelegatedAcquisitionClient",
]
