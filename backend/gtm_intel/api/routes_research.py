from typing import Callable
from uuid import UUID, uuid4
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.db import SessionLocal, get_db
from ..core.errors import ConfigurationError, ParseError, UpstreamCallError
from ..models.research_report import ResearchReport
from ..models.research_run import ResearchRun
from ..schemas.research import (
    ResearchReportOut,
    ResearchRequest,
    ResearchRunOut,
    StepResultOut,
)
from ..services.canonical import load_report_schema
from ..services.generation import GenerationStepExecutor
from ..services.llm import build_llm_client
from ..services.orchestrator import ResearchOrchestrator
from ..services.step_log import StepLog, list_steps

router = APIRouter(tags=["research"])

settings = get_settings()
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
logger = logging.getLogger(__name__)


def verify_api_key(api_key: str | None = Security(api_key_header)) -> None:
    """
    Simple header-based API key authentication.

    - In dev, if API_AUTH_KEY is not set, auth is skipped.
    - Otherwise, require X-API-Key == API_AUTH_KEY.
    """
    expected = settings.API_AUTH_KEY

    # In dev with no configured key, skip auth for convenience
    if settings.ENV == "dev" and not expected:
        return

    if not expected:
        # In non-dev environments, missing config is treated as misconfiguration
        raise HTTPException(status_code=401, detail="API key not configured")

    if api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_owner_id(x_user_id: str | None = Header(default=None)) -> str | None:
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def get_session_factory() -> Callable[[], Session]:
    return SessionLocal


def get_research_orchestrator(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> ResearchOrchestrator:
    try:
        settings.require_llm_credentials()
        executor = GenerationStepExecutor(build_llm_client(settings), settings)
        schema = load_report_schema(settings.REPORT_SCHEMA_PATH)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return ResearchOrchestrator(executor, StepLog(session_factory), schema)


@router.post("/research")
def run_research(
    payload: ResearchRequest,
    orchestrator: ResearchOrchestrator = Depends(get_research_orchestrator),
    owner_id: str | None = Depends(get_owner_id),
    _: None = Depends(verify_api_key),
):
    """Run the four research steps synchronously and return the canonical report."""
    run_id = uuid4()
    request_id = str(uuid4())
    logger.info(
        "Research requested",
        extra={
            "run_id": str(run_id),
            "request_id": request_id,
            "owner_id": owner_id,
            "step": "run_research",
        },
    )

    try:
        report = orchestrator.run(payload.subject, owner_id=owner_id, run_id=run_id)
    except ParseError as e:
        raise HTTPException(
            status_code=502,
            detail={"error": str(e), "raw_text": (e.raw_text or "")[:2000]},
        )
    except UpstreamCallError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return ResearchReportOut(run_id=run_id, report=report)


@router.get("/research/{run_id}")
def get_research_run(
    run_id: UUID,
    db: Session = Depends(get_db),
    owner_id: str | None = Depends(get_owner_id),
    _: None = Depends(verify_api_key),
):
    q = db.query(ResearchRun).filter(ResearchRun.id == run_id)
    if owner_id is not None:
        q = q.filter(ResearchRun.owner_id == owner_id)
    run = q.first()
    if not run:
        raise HTTPException(status_code=404, detail="Research run not found")

    report = db.query(ResearchReport).filter(ResearchReport.run_id == run.id).first()
    steps = list_steps(db, run.id)

    return {
        "run": ResearchRunOut.model_validate(run).model_dump(),
        "steps": [StepResultOut.model_validate(s).model_dump() for s in steps],
        "report": report.content_json if report else None,
    }
