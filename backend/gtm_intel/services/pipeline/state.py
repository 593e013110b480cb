"""
Pipeline state store.

Each transition opens its own short-lived session, locks the run row, checks
the guards and commits a single update. Snapshots are returned as
PipelineRunOut so callers never hold a live ORM object.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from ...core.errors import NotFoundError, StateTransitionError
from ...models.pipeline_result import PipelineResult
from ...models.pipeline_run import PipelinePhase, PipelineRun, PipelineStatus
from ...schemas.pipeline import PipelineResultOut, PipelineRunOut

logger = logging.getLogger(__name__)

PHASE_ORDER: tuple[PipelinePhase, ...] = (
    PipelinePhase.PROFILE_GENERATION,
    PipelinePhase.ENTITY_DISCOVERY,
    PipelinePhase.CONTACT_DISCOVERY,
    PipelinePhase.PERSONALIZATION,
    PipelinePhase.UPLOAD,
)

# Progress written when a phase starts
PHASE_CHECKPOINTS: Dict[PipelinePhase, int] = {
    PipelinePhase.PROFILE_GENERATION: 10,
    PipelinePhase.ENTITY_DISCOVERY: 30,
    PipelinePhase.CONTACT_DISCOVERY: 60,
    PipelinePhase.PERSONALIZATION: 80,
    PipelinePhase.UPLOAD: 95,
}
COMPLETED_PROGRESS = 100

COUNTER_FIELDS = ("entities_processed", "contacts_found", "artifacts_generated")
MAX_ERROR_CHARS = 500


class PipelineStateStore:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        run_id: UUID,
        apply: Callable[[Session, PipelineRun], None],
    ) -> PipelineRunOut:
        db = self._session_factory()
        try:
            run = (
                db.query(PipelineRun)
                .filter(PipelineRun.id == run_id)
                .with_for_update()
                .first()
            )
            if run is None:
                raise NotFoundError(f"Pipeline {run_id} not found")
            if PipelineStatus(run.status).is_terminal:
                raise StateTransitionError(
                    f"Pipeline {run_id} is already {PipelineStatus(run.status).value}"
                )
            apply(db, run)
            run.updated_at = datetime.utcnow()
            db.commit()
            db.refresh(run)
            return PipelineRunOut.model_validate(run)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _set_progress(run: PipelineRun, progress: int) -> None:
        if progress < (run.progress or 0):
            raise StateTransitionError(
                f"Progress may not decrease ({run.progress} -> {progress})"
            )
        run.progress = progress

    @staticmethod
    def _set_counters(run: PipelineRun, counters: Optional[Dict[str, int]]) -> None:
        for key, value in (counters or {}).items():
            if key not in COUNTER_FIELDS:
                raise ValueError(f"Unknown pipeline counter '{key}'")
            setattr(run, key, int(value))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(self, owner_id: str | None, config: Dict[str, Any]) -> PipelineRunOut:
        db = self._session_factory()
        try:
            now = datetime.utcnow()
            run = PipelineRun(
                owner_id=owner_id,
                status=PipelineStatus.IDLE,
                current_phase=None,
                progress=0,
                config=config,
                created_at=now,
                updated_at=now,
            )
            db.add(run)
            db.commit()
            db.refresh(run)
            return PipelineRunOut.model_validate(run)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def mark_running(self, run_id: UUID) -> PipelineRunOut:
        def apply(db: Session, run: PipelineRun) -> None:
            if run.status != PipelineStatus.IDLE:
                raise StateTransitionError(f"Pipeline {run_id} is not idle")
            run.status = PipelineStatus.RUNNING
            run.current_phase = PHASE_ORDER[0]
            run.progress = 0

        return self._transition(run_id, apply)

    def set_task_id(self, run_id: UUID, task_id: str) -> PipelineRunOut:
        def apply(db: Session, run: PipelineRun) -> None:
            run.task_id = task_id

        return self._transition(run_id, apply)

    def enter_phase(
        self,
        run_id: UUID,
        phase: PipelinePhase,
        counters: Optional[Dict[str, int]] = None,
    ) -> PipelineRunOut:
        """Record that `phase` is starting, plus counters from the previous phase."""
        def apply(db: Session, run: PipelineRun) -> None:
            if run.status != PipelineStatus.RUNNING:
                raise StateTransitionError(f"Pipeline {run_id} is not running")
            self._set_progress(run, PHASE_CHECKPOINTS[phase])
            run.current_phase = phase
            self._set_counters(run, counters)

        return self._transition(run_id, apply)

    def complete(
        self,
        run_id: UUID,
        results_data: Dict[str, Any],
        counters: Optional[Dict[str, int]] = None,
    ) -> PipelineRunOut:
        """Mark the run completed and append its single result row atomically."""
        def apply(db: Session, run: PipelineRun) -> None:
            if run.status != PipelineStatus.RUNNING:
                raise StateTransitionError(f"Pipeline {run_id} is not running")
            self._set_progress(run, COMPLETED_PROGRESS)
            self._set_counters(run, counters)
            run.status = PipelineStatus.COMPLETED
            db.add(
                PipelineResult(
                    pipeline_id=run.id,
                    owner_id=run.owner_id,
                    results_data=results_data,
                    created_at=datetime.utcnow(),
                )
            )

        return self._transition(run_id, apply)

    def fail(self, run_id: UUID, error: str) -> PipelineRunOut:
        """Freeze phase and progress and record the error."""
        def apply(db: Session, run: PipelineRun) -> None:
            run.status = PipelineStatus.FAILED
            run.error = (error or "Unknown error")[:MAX_ERROR_CHARS]

        return self._transition(run_id, apply)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, run_id: UUID, owner_id: str | None = None) -> PipelineRunOut:
        db = self._session_factory()
        try:
            q = db.query(PipelineRun).filter(PipelineRun.id == run_id)
            if owner_id is not None:
                q = q.filter(PipelineRun.owner_id == owner_id)
            run = q.first()
            if run is None:
                raise NotFoundError(f"Pipeline {run_id} not found")
            return PipelineRunOut.model_validate(run)
        finally:
            db.close()

    def get_result(self, run_id: UUID, owner_id: str | None = None) -> PipelineResultOut | None:
        db = self._session_factory()
        try:
            q = db.query(PipelineResult).filter(PipelineResult.pipeline_id == run_id)
            if owner_id is not None:
                q = q.filter(PipelineResult.owner_id == owner_id)
            row = q.order_by(PipelineResult.created_at.desc(), PipelineResult.id.desc()).first()
            return PipelineResultOut.model_validate(row) if row else None
        finally:
            db.close()
