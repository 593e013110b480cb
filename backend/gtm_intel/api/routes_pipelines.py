from typing import Callable
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.errors import ConfigurationError, NotFoundError, StateTransitionError, UpstreamCallError
from ..schemas.pipeline import (
    PipelineConfig,
    PipelineResultOut,
    PipelineStartOut,
    PipelineStatusOut,
)
from ..services.pipeline.service import PipelineService
from ..services.pipeline.state import PipelineStateStore
from .routes_research import get_owner_id, get_session_factory, verify_api_key

router = APIRouter(tags=["pipelines"])
logger = logging.getLogger(__name__)


def get_pipeline_service(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> PipelineService:
    return PipelineService(get_settings(), PipelineStateStore(session_factory))


@router.post("/pipelines", response_model=PipelineStartOut, status_code=202)
def start_pipeline(
    payload: PipelineConfig,
    service: PipelineService = Depends(get_pipeline_service),
    owner_id: str | None = Depends(get_owner_id),
    _: None = Depends(verify_api_key),
):
    try:
        run = service.start(payload, owner_id=owner_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except UpstreamCallError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return PipelineStartOut(pipeline_id=run.id, status=run.status)


@router.get("/pipelines/{pipeline_id}/status", response_model=PipelineStatusOut)
def get_pipeline_status(
    pipeline_id: UUID,
    service: PipelineService = Depends(get_pipeline_service),
    owner_id: str | None = Depends(get_owner_id),
    _: None = Depends(verify_api_key),
):
    try:
        run = service.get_status(pipeline_id, owner_id=owner_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Pipeline not found")
    return PipelineStatusOut.from_run(run)


@router.get("/pipelines/{pipeline_id}/results", response_model=list[PipelineResultOut])
def get_pipeline_results(
    pipeline_id: UUID,
    service: PipelineService = Depends(get_pipeline_service),
    owner_id: str | None = Depends(get_owner_id),
    _: None = Depends(verify_api_key),
):
    try:
        result = service.get_results(pipeline_id, owner_id=owner_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Pipeline not found")
    return [result] if result else []
