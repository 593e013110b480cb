"""
Tests for the Apollo and campaign upload connectors (httpx.MockTransport).
"""
import asyncio
import json

import httpx
import pytest

from gtm_intel.core.errors import ConfigurationError, UpstreamCallError
from gtm_intel.schemas.pipeline import ProspectCriteria
from gtm_intel.services.connectors import get_connectors
from gtm_intel.services.connectors.apollo import DEFAULT_PERSON_TITLES, ApolloConnector
from gtm_intel.services.connectors.campaign import CampaignUploadConnector

from tests.fixtures.research_fixtures import APOLLO_ORGANIZATIONS, APOLLO_PEOPLE


def _apollo(handler) -> ApolloConnector:
    return ApolloConnector(
        "apollo-test",
        base_url="https://apollo.test/api/v1/",
        transport=httpx.MockTransport(handler),
    )


class TestApolloOrganizations:
    def test_normalises_organizations(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=APOLLO_ORGANIZATIONS)

        criteria = ProspectCriteria(industries=["Logistics"], keywords="3pl", titles=None)
        orgs = asyncio.run(_apollo(handler).search_organizations(criteria, limit=10))

        assert str(seen[0].url) == "https://apollo.test/api/v1/mixed_companies/search"
        payload = json.loads(seen[0].content)
        assert payload["q_organization_keyword_tags"] == ["Logistics", "3pl"]
        assert "organization_locations" not in payload

        assert orgs[0] == {
            "apollo_organization_id": "org-1",
            "name": "ShipFast",
            "domain": "shipfast.com",
            "estimated_num_employees": 220,
            "industry": "logistics",
            "location": "Reno, United States",
            "linkedin_url": None,
            "source": "apollo",
        }
        # website_url is reduced to a bare domain
        assert orgs[1]["domain"] == "boxly.io"

    def test_results_are_capped_at_limit(self):
        orgs = asyncio.run(
            _apollo(lambda r: httpx.Response(200, json=APOLLO_ORGANIZATIONS))
            .search_organizations(ProspectCriteria(), limit=1)
        )
        assert len(orgs) == 1

    def test_invalid_filters_are_an_empty_result(self):
        orgs = asyncio.run(
            _apollo(lambda r: httpx.Response(422, json={"error": "bad range"}))
            .search_organizations(ProspectCriteria(employee_ranges=["x"]), limit=5)
        )
        assert orgs == []

    @pytest.mark.parametrize("status", [401, 429, 500, 503])
    def test_hard_failures_raise(self, status):
        with pytest.raises(UpstreamCallError):
            asyncio.run(
                _apollo(lambda r: httpx.Response(status))
                .search_organizations(ProspectCriteria(), limit=5)
            )

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamCallError):
            asyncio.run(_apollo(handler).search_organizations(ProspectCriteria(), limit=5))


class TestApolloPeople:
    def test_people_for_organization(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=APOLLO_PEOPLE)

        entity = {"apollo_organization_id": "org-1", "name": "ShipFast", "domain": "shipfast.com"}
        people = asyncio.run(_apollo(handler).search_people(entity))

        assert seen[0]["organization_ids"] == ["org-1"]
        assert seen[0]["person_titles"] == DEFAULT_PERSON_TITLES
        assert seen[0]["per_page"] == 3
        assert people[0]["full_name"] == "Dana Lee"
        assert people[0]["email"] == "dana@shipfast.com"
        assert people[0]["entity_id"] == "org-1"

    def test_domain_used_without_organization_id(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"people": []})

        asyncio.run(_apollo(handler).search_people({"domain": "https://www.boxly.io"}, titles=["CEO"]))

        assert seen[0]["q_organization_domains_list"] == ["boxly.io"]
        assert seen[0]["person_titles"] == ["CEO"]

    def test_entity_without_identifiers_makes_no_call(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert asyncio.run(_apollo(handler).search_people({"name": "Ghost"})) == []


class TestConnectorConfiguration:
    def test_apollo_requires_key(self):
        with pytest.raises(ConfigurationError):
            ApolloConnector(None)

    def test_get_connectors_uses_settings(self, settings):
        apollo, uploader = get_connectors(settings)
        assert apollo.base_url == "https://apollo.test/api/v1"
        assert uploader.dry_run


class TestCampaignUpload:
    LEADS = [
        {"email": "dana@shipfast.com", "first_name": "Dana", "subject": "Hi", "body": "..."},
        {"email": None, "first_name": "Sam", "subject": "Hi", "body": "..."},
    ]

    def test_dry_run_counts_sendable_leads(self):
        summary = asyncio.run(CampaignUploadConnector(None).upload("Acme outreach", self.LEADS))
        assert summary == {
            "campaign_name": "Acme outreach",
            "dry_run": True,
            "uploaded": 1,
            "skipped": 1,
            "campaign_id": None,
        }

    def test_posts_leads_with_bearer_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"campaign_id": "cmp-9", "uploaded": 1})

        uploader = CampaignUploadConnector(
            "https://campaigns.test/leads", "secret", transport=httpx.MockTransport(handler)
        )
        summary = asyncio.run(uploader.upload("Acme outreach", self.LEADS))

        assert seen[0].headers["Authorization"] == "Bearer secret"
        body = json.loads(seen[0].content)
        assert body["campaign_name"] == "Acme outreach"
        assert [lead["email"] for lead in body["leads"]] == ["dana@shipfast.com"]
        assert summary["campaign_id"] == "cmp-9"
        assert summary["uploaded"] == 1
        assert summary["dry_run"] is False

    def test_upload_server_error_raises(self):
        uploader = CampaignUploadConnector(
            "https://campaigns.test/leads",
            transport=httpx.MockTransport(lambda r: httpx.Response(502)),
        )
        with pytest.raises(UpstreamCallError):
            asyncio.run(uploader.upload("Acme outreach", self.LEADS))
