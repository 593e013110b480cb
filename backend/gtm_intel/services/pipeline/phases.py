# backend/gtm_intel/services/pipeline/phases.py
"""
The five pipeline phases.

Each phase receives the previous phase's output plus the shared PhaseContext
and returns a PhaseOutcome. Phases raise on failure; the executor owns every
state transition.
"""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError

from ...core.errors import ParseError
from ...models.pipeline_run import PipelinePhase
from ...schemas.pipeline import OutreachMessage, PipelineConfig, ProspectCriteria
from ..connectors.apollo import ApolloConnector
from ..connectors.campaign import CampaignUploadConnector
from ..field_resolver import NOT_FOUND, resolve_field
from ..generation import GenerationStepExecutor
from ..orchestrator import ResearchOrchestrator
from ..research_steps import JSON_ONLY, render_context

logger = logging.getLogger(__name__)


@dataclass
class PhaseContext:
    pipeline_id: UUID
    owner_id: Optional[str]
    config: PipelineConfig
    outputs: Dict[PipelinePhase, Any] = field(default_factory=dict)

    @property
    def log_extra(self) -> Dict[str, Any]:
        return {"pipeline_id": str(self.pipeline_id), "owner_id": self.owner_id}


@dataclass
class PhaseOutcome:
    output: Any
    counters: Dict[str, int] = field(default_factory=dict)


class BasePhase(ABC):
    phase: PipelinePhase

    @abstractmethod
    async def run(self, previous: Any, ctx: PhaseContext) -> PhaseOutcome:
        ...


def _profile_report(ctx: PhaseContext) -> Dict[str, Any]:
    profile = ctx.outputs.get(PipelinePhase.PROFILE_GENERATION) or {}
    return profile.get("report") or {}


def _profile_value(report: Dict[str, Any], name: str, default: Any = None) -> Any:
    value = resolve_field(report, name)
    return default if value is NOT_FOUND else value


# ---------------------------------------------------------------------------
# 1. Profile generation
# ---------------------------------------------------------------------------

class ProfileGenerationPhase(BasePhase):
    phase = PipelinePhase.PROFILE_GENERATION

    def __init__(self, orchestrator: ResearchOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def run(self, previous: Any, ctx: PhaseContext) -> PhaseOutcome:
        url = ctx.config.url
        # The orchestrator and its LLM client are synchronous
        report = await asyncio.to_thread(
            self._orchestrator.run, url, owner_id=ctx.owner_id
        )
        return PhaseOutcome(output={"subject": url, "report": report})


# ---------------------------------------------------------------------------
# 2. Entity discovery
# ---------------------------------------------------------------------------

CRITERIA_ROLE = (
    "You are a B2B prospecting analyst who turns an ideal customer profile into "
    "database search filters. Always return valid JSON."
)

CRITERIA_PROMPT = (
    "The following is a research report on a company that wants to find new "
    "customers:\n{report}\n\n"
    "Derive search filters for companies that match its ideal customer profile.\n"
    "Return a JSON object with these keys:\n"
    '  "industries": array of industry names,\n'
    '  "employee_ranges": array of "min,max" strings (e.g. "51,200"),\n'
    '  "locations": array of countries or regions,\n'
    '  "keywords": array of short keyword tags,\n'
    '  "titles": array of buyer job titles to contact\n\n'
    "{json_only}"
)


class EntityDiscoveryPhase(BasePhase):
    phase = PipelinePhase.ENTITY_DISCOVERY

    def __init__(self, executor: GenerationStepExecutor, apollo: ApolloConnector) -> None:
        self._executor = executor
        self._apollo = apollo

    async def _build_criteria(self, report: Dict[str, Any]) -> ProspectCriteria:
        prompt = CRITERIA_PROMPT.format(report=render_context(report), json_only=JSON_ONLY)
        raw = await asyncio.to_thread(self._executor.execute, CRITERIA_ROLE, prompt)
        if not isinstance(raw, dict):
            raise ParseError("Search criteria must be a JSON object", raw_text=str(raw))
        try:
            return ProspectCriteria.model_validate(raw)
        except ValidationError as e:
            raise ParseError(f"Invalid search criteria: {e}", raw_text=json.dumps(raw)) from e

    async def run(self, previous: Any, ctx: PhaseContext) -> PhaseOutcome:
        report = (previous or {}).get("report") or {}
        criteria = await self._build_criteria(report)
        entities = await self._apollo.search_organizations(
            criteria, limit=ctx.config.batch_size
        )
        logger.info(
            "Discovered %d entities",
            len(entities),
            extra={**ctx.log_extra, "phase": self.phase.value},
        )
        return PhaseOutcome(
            output={"criteria": criteria.model_dump(), "entities": entities},
            counters={"entities_processed": len(entities)},
        )


# ---------------------------------------------------------------------------
# 3. Contact discovery
# ---------------------------------------------------------------------------

class ContactDiscoveryPhase(BasePhase):
    phase = PipelinePhase.CONTACT_DISCOVERY

    def __init__(self, apollo: ApolloConnector) -> None:
        self._apollo = apollo

    async def run(self, previous: Any, ctx: PhaseContext) -> PhaseOutcome:
        previous = previous or {}
        entities: List[Dict[str, Any]] = previous.get("entities") or []
        titles = (previous.get("criteria") or {}).get("titles") or []

        contacts: List[Dict[str, Any]] = []
        for entity in entities:
            contacts.extend(await self._apollo.search_people(entity, titles=titles))

        logger.info(
            "Found %d contacts across %d entities",
            len(contacts),
            len(entities),
            extra={**ctx.log_extra, "phase": self.phase.value},
        )
        return PhaseOutcome(
            output={"contacts": contacts},
            counters={"contacts_found": len(contacts)},
        )


# ---------------------------------------------------------------------------
# 4. Personalization
# ---------------------------------------------------------------------------

PERSONALIZATION_ROLE = (
    "You are an SDR copywriter who writes short, specific cold emails. "
    "Always return valid JSON."
)

PERSONALIZATION_PROMPT = (
    "Sender company: {sender_name}\n"
    "What the sender does: {sender_summary}\n"
    "Sender products: {sender_products}\n"
    "Additional instructions from the sender: {user_input}\n\n"
    "Recipient:\n{contact}\n\n"
    "Write one first-touch email to this recipient. Keep the body under 120 words.\n"
    "Return a JSON object with these keys:\n"
    '  "subject": string,\n'
    '  "body": string,\n'
    '  "personalized_hook": string (the recipient-specific opening line)\n\n'
    "{json_only}"
)


class PersonalizationPhase(BasePhase):
    phase = PipelinePhase.PERSONALIZATION

    def __init__(self, executor: GenerationStepExecutor) -> None:
        self._executor = executor

    def _render(self, contact: Dict[str, Any], report: Dict[str, Any], user_input: str | None) -> str:
        products = _profile_value(report, "main_products", [])
        contact_view = {
            k: contact.get(k) for k in ("full_name", "title", "company", "company_domain")
        }
        return PERSONALIZATION_PROMPT.format(
            sender_name=_profile_value(report, "company_name", "") or "(unknown)",
            sender_summary=_profile_value(report, "summary", "") or "(unknown)",
            sender_products=", ".join(map(str, products)) if isinstance(products, list) else products,
            user_input=user_input or "(none)",
            contact=json.dumps(contact_view, ensure_ascii=False),
            json_only=JSON_ONLY,
        )

    async def run(self, previous: Any, ctx: PhaseContext) -> PhaseOutcome:
        contacts: List[Dict[str, Any]] = (previous or {}).get("contacts") or []
        report = _profile_report(ctx)

        messages: List[Dict[str, Any]] = []
        for contact in contacts:
            prompt = self._render(contact, report, ctx.config.user_input)
            raw = await asyncio.to_thread(self._executor.execute, PERSONALIZATION_ROLE, prompt)
            try:
                message = OutreachMessage.model_validate(raw)
            except ValidationError as e:
                raise ParseError(
                    f"Invalid outreach message for {contact.get('full_name')}: {e}",
                    raw_text=json.dumps(raw, default=str),
                ) from e
            messages.append({"contact": contact, **message.model_dump()})

        return PhaseOutcome(
            output={"messages": messages},
            counters={"artifacts_generated": len(messages)},
        )


# ---------------------------------------------------------------------------
# 5. Upload
# ---------------------------------------------------------------------------

class UploadPhase(BasePhase):
    phase = PipelinePhase.UPLOAD

    def __init__(self, uploader: CampaignUploadConnector) -> None:
        self._uploader = uploader

    @staticmethod
    def _to_lead(message: Dict[str, Any]) -> Dict[str, Any]:
        contact = message.get("contact") or {}
        return {
            "email": contact.get("email"),
            "first_name": contact.get("first_name"),
            "last_name": contact.get("last_name"),
            "company_name": contact.get("company"),
            "title": contact.get("title"),
            "subject": message.get("subject"),
            "body": message.get("body"),
        }

    async def run(self, previous: Any, ctx: PhaseContext) -> PhaseOutcome:
        messages: List[Dict[str, Any]] = (previous or {}).get("messages") or []
        report = _profile_report(ctx)
        campaign_name = (
            ctx.config.campaign_name
            or f"{_profile_value(report, 'company_name', '') or ctx.config.url} outreach"
        )
        summary = await self._uploader.upload(
            campaign_name, [self._to_lead(m) for m in messages]
        )
        return PhaseOutcome(output=summary)
