from uuid import UUID
import logging

from ...core.celery_app import celery_app
from ...core.config import get_settings
from ...core.db import SessionLocal
from .executor import build_pipeline_executor
from .state import PipelineStateStore

logger = logging.getLogger(__name__)


@celery_app.task(name="gtm_intel.services.pipeline.tasks.run_pipeline", bind=True, queue="pipelines")
def run_pipeline(self, pipeline_id: str) -> str:
    """Execute one pipeline run; returns its terminal status."""
    logger.info(
        "Pipeline task received",
        extra={"pipeline_id": pipeline_id, "request_id": self.request.id},
    )
    run_id = UUID(pipeline_id)
    try:
        executor = build_pipeline_executor(get_settings(), SessionLocal)
    except Exception as e:
        logger.exception(
            "Pipeline worker could not be configured: %s",
            e,
            extra={"pipeline_id": pipeline_id},
        )
        run = PipelineStateStore(SessionLocal).fail(run_id, f"setup: {e}")
        return run.status.value
    run = executor.execute(run_id)
    return run.status.value
