from __future__ import annotations

from typing import Optional

import httpx

from .base import BaseConnector
from .apollo import ApolloConnector
from .campaign import CampaignUploadConnector
from ...core.config import Settings

__all__ = [
    "BaseConnector",
    "ApolloConnector",
    "CampaignUploadConnector",
    "get_connectors",
]


def get_connectors(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> tuple[ApolloConnector, CampaignUploadConnector]:
    """Build the pipeline's external collaborators from configuration."""
    return (
        ApolloConnector.from_settings(settings, transport=transport),
        CampaignUploadConnector.from_settings(settings, transport=transport),
    )
