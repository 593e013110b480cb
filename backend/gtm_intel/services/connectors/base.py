from typing import Any, Optional
import logging

import httpx

from ...core.errors import UpstreamCallError

logger = logging.getLogger(__name__)


class BaseConnector:
    """
    Shared HTTP plumbing for external collaborators.

    Status handling:
    - transport errors, 401/403, 429 and 5xx raise UpstreamCallError
    - other 4xx (invalid filters etc.) are logged and treated as "no data"
    """
    name: str

    def __init__(
        self,
        *,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        headers: dict[str, str],
        payload: dict[str, Any],
        endpoint: str,
    ) -> Optional[dict[str, Any]]:
        """POST and return the decoded body, or None for a soft 4xx."""
        try:
            resp = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise UpstreamCallError(f"{self.name} {endpoint} request failed: {e}") from e

        if resp.status_code in (401, 403):
            raise UpstreamCallError(
                f"{self.name} {endpoint} rejected credentials ({resp.status_code})"
            )
        if resp.status_code == 429:
            raise UpstreamCallError(f"{self.name} {endpoint} rate limited (429)")
        if 400 <= resp.status_code < 500:
            logger.warning(
                "%s %s returned %s: %s",
                self.name,
                endpoint,
                resp.status_code,
                resp.text[:500],
            )
            return None
        if resp.status_code >= 500:
            raise UpstreamCallError(
                f"{self.name} {endpoint} server error ({resp.status_code})"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamCallError(f"{self.name} {endpoint} returned non-JSON body") from e
        return data if isinstance(data, dict) else {}
