from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ...core.config import Settings
from ...models.pipeline_run import PipelinePhase, PipelineStatus
from ...schemas.pipeline import PipelineConfig, PipelineRunOut
from ..canonical import load_report_schema
from ..connectors import get_connectors
from ..generation import GenerationStepExecutor
from ..llm import build_llm_client
from ..orchestrator import ResearchOrchestrator
from ..step_log import StepLog
from .phases import (
    BasePhase,
    ContactDiscoveryPhase,
    EntityDiscoveryPhase,
    PersonalizationPhase,
    PhaseContext,
    PhaseOutcome,
    ProfileGenerationPhase,
    UploadPhase,
)
from .state import PHASE_ORDER, PipelineStateStore

logger = logging.getLogger(__name__)


def build_summary(outputs: Dict[PipelinePhase, Any], counters: Dict[str, int]) -> Dict[str, Any]:
    upload = outputs.get(PipelinePhase.UPLOAD) or {}
    return {
        "entities_found": counters.get("entities_processed", 0),
        "contacts_found": counters.get("contacts_found", 0),
        "messages_generated": counters.get("artifacts_generated", 0),
        "uploaded": upload.get("uploaded", 0),
        "dry_run": upload.get("dry_run"),
        "completed_at": datetime.utcnow().isoformat(),
    }


def build_results(outputs: Dict[PipelinePhase, Any], counters: Dict[str, int]) -> Dict[str, Any]:
    """Aggregate phase outputs into the single persisted result document."""
    entity_out = outputs.get(PipelinePhase.ENTITY_DISCOVERY) or {}
    return {
        "profile": (outputs.get(PipelinePhase.PROFILE_GENERATION) or {}).get("report"),
        "criteria": entity_out.get("criteria"),
        "entities": entity_out.get("entities") or [],
        "contacts": (outputs.get(PipelinePhase.CONTACT_DISCOVERY) or {}).get("contacts") or [],
        "messages": (outputs.get(PipelinePhase.PERSONALIZATION) or {}).get("messages") or [],
        "upload": outputs.get(PipelinePhase.UPLOAD),
        "summary": build_summary(outputs, counters),
    }


class PipelineExecutor:
    """
    Drives one pipeline run through its phases, in order, in one event loop.

    Before each phase the phase name and its checkpoint are written. Any exception,
    including a bad config or a failed completion write, marks the run failed
    with phase/progress frozen. A run that is not `running` is left untouched.
    """

    def __init__(self, store: PipelineStateStore, phases: Sequence[BasePhase]) -> None:
        ordered = tuple(p.phase for p in phases)
        if ordered != PHASE_ORDER:
            raise ValueError(f"Phases must be supplied in order {PHASE_ORDER}, got {ordered}")
        self._store = store
        self._phases = tuple(phases)

    def execute(self, pipeline_id: UUID) -> PipelineRunOut:
        run = self._store.get(pipeline_id)
        if run.status != PipelineStatus.RUNNING:
            logger.warning(
                "Pipeline is %s, not running; nothing to do",
                run.status.value,
                extra={"pipeline_id": str(pipeline_id)},
            )
            return run
        return asyncio.run(self._execute(run))

    async def _execute(self, run: PipelineRunOut) -> PipelineRunOut:
        stage = "setup"
        try:
            ctx = PhaseContext(
                pipeline_id=run.id,
                owner_id=run.owner_id,
                config=PipelineConfig.model_validate(run.config),
            )
            counters: Dict[str, int] = {}
            pending: Dict[str, int] = {}
            previous: Any = None

            for phase in self._phases:
                stage = phase.phase.value
                self._store.enter_phase(run.id, phase.phase, counters=pending)
                logger.info("Phase started", extra={**ctx.log_extra, "phase": stage})
                outcome: PhaseOutcome = await phase.run(previous, ctx)

                ctx.outputs[phase.phase] = outcome.output
                previous = outcome.output
                pending = dict(outcome.counters)
                counters.update(outcome.counters)
                logger.info("Phase completed", extra={**ctx.log_extra, "phase": stage})

            stage = "completion"
            results = build_results(ctx.outputs, counters)
            final = self._store.complete(run.id, results, counters=counters)
        except Exception as e:
            logger.exception(
                "Pipeline failed during '%s': %s",
                stage,
                e,
                extra={"pipeline_id": str(run.id), "phase": stage},
            )
            return self._fail(run.id, f"{stage}: {e}")

        logger.info("Pipeline completed", extra={**ctx.log_extra, "phase": "completed"})
        return final

    def _fail(self, pipeline_id: UUID, error: str) -> PipelineRunOut:
        try:
            return self._store.fail(pipeline_id, error)
        except Exception:
            logger.exception(
                "Failed to record pipeline failure",
                extra={"pipeline_id": str(pipeline_id)},
            )
            raise


def build_pipeline_executor(
    settings: Settings,
    session_factory: Callable[[], Session],
) -> PipelineExecutor:
    """Wire the production collaborators from configuration."""
    settings.require_pipeline_credentials()
    generation = GenerationStepExecutor(build_llm_client(settings), settings)
    orchestrator = ResearchOrchestrator(
        generation,
        StepLog(session_factory),
        load_report_schema(settings.REPORT_SCHEMA_PATH),
    )
    apollo, uploader = get_connectors(settings)
    return PipelineExecutor(
        PipelineStateStore(session_factory),
        [
            ProfileGenerationPhase(orchestrator),
            EntityDiscoveryPhase(generation, apollo),
            ContactDiscoveryPhase(apollo),
            PersonalizationPhase(generation),
            UploadPhase(uploader),
        ],
    )
