from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

import httpx

from .base import BaseConnector
from ...core.config import Settings

logger = logging.getLogger(__name__)


class CampaignUploadConnector(BaseConnector):
    """
    Pushes personalized leads to the outreach platform.

    Without an upload URL the connector runs dry: leads are counted and
    reported but nothing leaves the process.
    """
    name = "campaign"

    def __init__(
        self,
        upload_url: str | None,
        api_key: str | None = None,
        *,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.upload_url = upload_url
        self.api_key = api_key

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CampaignUploadConnector":
        return cls(
            settings.CAMPAIGN_UPLOAD_URL,
            settings.CAMPAIGN_API_KEY,
            timeout=settings.CAMPAIGN_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def dry_run(self) -> bool:
        return not self.upload_url

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def upload(self, campaign_name: str, leads: List[Dict[str, Any]]) -> Dict[str, Any]:
        # Leads without an address cannot be sequenced
        sendable = [lead for lead in leads if lead.get("email")]
        skipped = len(leads) - len(sendable)
        summary: Dict[str, Any] = {
            "campaign_name": campaign_name,
            "dry_run": self.dry_run,
            "uploaded": 0,
            "skipped": skipped,
            "campaign_id": None,
        }

        if self.dry_run:
            logger.info(
                "Campaign upload dry run: %d leads ready, %d skipped",
                len(sendable),
                skipped,
            )
            summary["uploaded"] = len(sendable)
            return summary

        if not sendable:
            return summary

        async with self._client() as client:
            data = await self._post_json(
                client,
                self.upload_url,
                headers=self._headers(),
                payload={"campaign_name": campaign_name, "leads": sendable},
                endpoint="upload",
            )

        data = data or {}
        summary["campaign_id"] = data.get("campaign_id") or data.get("id")
        summary["uploaded"] = int(data.get("uploaded", len(sendable)) or 0)
        return summary
