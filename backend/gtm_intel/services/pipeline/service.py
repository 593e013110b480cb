# backend/gtm_intel/services/pipeline/service.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict
from uuid import UUID, uuid4

from ...core.config import Settings
from ...core.errors import UpstreamCallError
from ...schemas.pipeline import PipelineConfig, PipelineResultOut, PipelineRunOut
from .state import PipelineStateStore

logger = logging.getLogger(__name__)

# Background dispatcher: (pipeline_id, task_id) -> None
Dispatcher = Callable[[UUID, str], None]


def celery_dispatcher(pipeline_id: UUID, task_id: str) -> None:
    from .tasks import run_pipeline

    run_pipeline.apply_async(args=[str(pipeline_id)], task_id=task_id, queue="pipelines")


class PipelineService:
    """
    Entry point for starting pipelines and querying their state.

    start() returns as soon as the run is `running` and dispatched; execution
    happens in a Celery worker.
    """

    def __init__(
        self,
        settings: Settings,
        store: PipelineStateStore,
        dispatch: Dispatcher = celery_dispatcher,
    ) -> None:
        self._settings = settings
        self._store = store
        self._dispatch = dispatch

    def start(self, config: PipelineConfig, owner_id: str | None = None) -> PipelineRunOut:
        self._settings.require_pipeline_credentials()

        run = self._store.create(owner_id, config.model_dump())
        log_extra: Dict[str, Any] = {"pipeline_id": str(run.id), "owner_id": owner_id}
        run = self._store.mark_running(run.id)
        # The task id is recorded before dispatch; a fast worker may finish the run first
        task_id = str(uuid4())
        run = self._store.set_task_id(run.id, task_id)

        try:
            self._dispatch(run.id, task_id)
        except Exception as e:
            logger.exception("Pipeline dispatch failed", extra=log_extra)
            self._store.fail(run.id, f"dispatch: {e}")
            raise UpstreamCallError(f"Could not dispatch pipeline {run.id}: {e}") from e

        logger.info("Pipeline dispatched", extra={**log_extra, "step": "dispatched"})
        return run

    def get_status(self, run_id: UUID, owner_id: str | None = None) -> PipelineRunOut:
        return self._store.get(run_id, owner_id=owner_id)

    def get_results(self, run_id: UUID, owner_id: str | None = None) -> PipelineResultOut | None:
        # Unknown ids raise NotFoundError rather than returning "no results yet"
        self._store.get(run_id, owner_id=owner_id)
        return self._store.get_result(run_id, owner_id=owner_id)
