# backend/gtm_intel/services/connectors/apollo.py
from __future__ import annotations

import logging

from typing import Any, Dict, List, Optional, Sequence

import httpx

from .base import BaseConnector
from ...core.config import Settings
from ...core.errors import ConfigurationError
from ...schemas.pipeline import ProspectCriteria

logger = logging.getLogger(__name__)

DEFAULT_PERSON_TITLES = [
    "founder",
    "co-founder",
    "ceo",
    "chief executive officer",
    "cto",
    "vp sales",
    "head of sales",
    "vp marketing",
    "head of growth",
]
DEFAULT_SENIORITIES = ["owner", "founder", "c_suite", "vp", "head", "director"]


class ApolloConnector(BaseConnector):
    """
    Apollo.io connector used as the prospect discovery layer.

    - search_organizations: lookalike companies for the generated ICP filters.
    - search_people: decision makers at one discovered organization.

    Both return NORMALISED internal payloads, not raw Apollo JSON. Empty
    results are a legitimate outcome; rate limits are not retried.
    """
    name = "apollo"

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = "https://api.apollo.io/api/v1",
        timeout: float = 30,
        contacts_per_entity: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        if not api_key:
            raise ConfigurationError("APOLLO_API_KEY is not configured")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.contacts_per_entity = contacts_per_entity

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ApolloConnector":
        return cls(
            settings.APOLLO_API_KEY,
            base_url=settings.APOLLO_BASE_URL,
            timeout=settings.APOLLO_TIMEOUT_SECONDS,
            contacts_per_entity=settings.APOLLO_CONTACTS_PER_ENTITY,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "X-Api-Key": self.api_key,
            "Content-Type": "application/json",
            "accept": "application/json",
        }

    @staticmethod
    def normalise_domain(raw: str | None) -> Optional[str]:
        if not raw:
            return None
        d = raw.strip().lower()
        if "://" in d:
            d = d.split("://", 1)[1]
        # Strip path/query
        d = d.split("/", 1)[0]
        # Strip port
        d = d.split(":", 1)[0]
        if d.startswith("www."):
            d = d[4:]
        return d or None

    @classmethod
    def _normalise_organization(cls, org: Dict[str, Any]) -> Dict[str, Any]:
        # The exact key names vary between Apollo endpoints
        est_employees = (
            org.get("estimated_num_employees")
            or org.get("estimated_num_employees_range")
            or org.get("employee_count")
        )
        location = ", ".join(
            x for x in (org.get("city"), org.get("state"), org.get("country")) if x
        )
        return {
            "apollo_organization_id": org.get("id") or org.get("organization_id"),
            "name": org.get("name"),
            "domain": cls.normalise_domain(
                org.get("primary_domain") or org.get("domain") or org.get("website_url")
            ),
            "estimated_num_employees": est_employees,
            "industry": org.get("industry"),
            "location": location or None,
            "linkedin_url": org.get("linkedin_url"),
            "source": "apollo",
        }

    @staticmethod
    def _normalise_person(p: Dict[str, Any], entity: Dict[str, Any]) -> Dict[str, Any]:
        org = p.get("organization") or {}
        first_name = p.get("first_name")
        last_name = p.get("last_name")
        full_name = (
            p.get("name")
            or " ".join(x for x in [first_name, last_name] if x)
            or "Unknown"
        )
        return {
            "apollo_person_id": p.get("id"),
            "first_name": first_name,
            "last_name": last_name,
            "full_name": full_name,
            "title": p.get("title") or p.get("headline"),
            "email": p.get("email"),
            "linkedin_url": p.get("linkedin_url"),
            "company": org.get("name") or p.get("organization_name") or entity.get("name"),
            "company_domain": org.get("primary_domain") or entity.get("domain"),
            "entity_id": entity.get("apollo_organization_id"),
            "source": "apollo",
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search_organizations(
        self,
        criteria: ProspectCriteria,
        *,
        limit: int,
    ) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {"page": 1, "per_page": limit}
        if criteria.employee_ranges:
            payload["organization_num_employees_ranges"] = criteria.employee_ranges
        if criteria.locations:
            payload["organization_locations"] = criteria.locations
        tags = [*criteria.industries, *criteria.keywords]
        if tags:
            payload["q_organization_keyword_tags"] = tags

        async with self._client() as client:
            data = await self._post_json(
                client,
                f"{self.base_url}/mixed_companies/search",
                headers=self._auth_headers(),
                payload=payload,
                endpoint="mixed_companies/search",
            )
        if not data:
            return []

        raw_orgs = data.get("organizations") or data.get("accounts") or []
        orgs = [
            self._normalise_organization(o) for o in raw_orgs if isinstance(o, dict)
        ]
        logger.info(
            "Apollo returned %d organizations",
            len(orgs),
            extra={"step": "mixed_companies/search"},
        )
        return orgs[:limit]

    async def search_people(
        self,
        entity: Dict[str, Any],
        *,
        titles: Sequence[str] = (),
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        org_id = entity.get("apollo_organization_id")
        domain = self.normalise_domain(entity.get("domain"))
        if not org_id and not domain:
            return []

        per_page = limit or self.contacts_per_entity
        payload: Dict[str, Any] = {
            "page": 1,
            "per_page": per_page,
            "person_titles": list(titles) or DEFAULT_PERSON_TITLES,
            "person_seniorities": DEFAULT_SENIORITIES,
        }
        if org_id:
            payload["organization_ids"] = [org_id]
        else:
            payload["q_organization_domains_list"] = [domain]

        async with self._client() as client:
            data = await self._post_json(
                client,
                f"{self.base_url}/mixed_people/api_search",
                headers=self._auth_headers(),
                payload=payload,
                endpoint="mixed_people/api_search",
            )
        if not data:
            return []

        raw_people = data.get("people") or []
        people = [
            self._normalise_person(p, entity) for p in raw_people if isinstance(p, dict)
        ]
        return people[:per_page]
