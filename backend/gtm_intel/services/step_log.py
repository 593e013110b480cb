# backend/gtm_intel/services/step_log.py
"""
Step Persistence Log for research runs.

Every write is best-effort: it uses its own short-lived session, commits a
single row, and reports the outcome as a StepWriteResult. Nothing here raises
for a database failure; the orchestrator decides what to log.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import PersistenceError
from ..models.research_run import ResearchRun, ResearchRunStatus
from ..models.research_step_result import ResearchStepResult
from ..models.research_report import ResearchReport


# Error messages are truncated to fit comfortably in a status column
MAX_ERROR_CHARS = 500


class _MissingRun(Exception):
    def __init__(self, run_id: UUID) -> None:
        super().__init__(f"Research run {run_id} is not recorded")


@dataclass(frozen=True)
class StepWriteResult:
    ok: bool
    error: PersistenceError | None = None
    row_id: int | None = None

    @classmethod
    def success(cls, row_id: int | None = None) -> "StepWriteResult":
        return cls(ok=True, row_id=row_id)

    @classmethod
    def failure(cls, error: Exception) -> "StepWriteResult":
        return cls(ok=False, error=PersistenceError(str(error)))


class StepLog:
    """Append-only store of per-step raw outputs, keyed by run id."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _write(self, op: Callable[[Session], int | None]) -> StepWriteResult:
        db = self._session_factory()
        try:
            row_id = op(db)
            db.commit()
            return StepWriteResult.success(row_id)
        except (SQLAlchemyError, _MissingRun) as e:
            db.rollback()
            return StepWriteResult.failure(e)
        finally:
            db.close()

    def open_run(self, run_id: UUID, subject: str, owner_id: str | None) -> StepWriteResult:
        def op(db: Session) -> None:
            db.add(
                ResearchRun(
                    id=run_id,
                    subject=subject,
                    owner_id=owner_id,
                    status=ResearchRunStatus.RUNNING,
                )
            )
            return None

        return self._write(op)

    def append(self, run_id: UUID, step_name: str, output: Any) -> StepWriteResult:
        def op(db: Session) -> int:
            row = ResearchStepResult(
                run_id=run_id,
                step_name=step_name,
                output=output,
                created_at=datetime.utcnow(),
            )
            db.add(row)
            db.flush()
            return row.id

        return self._write(op)

    def complete_run(self, run_id: UUID, report: dict) -> StepWriteResult:
        def op(db: Session) -> None:
            run = db.get(ResearchRun, run_id)
            if run is None:
                raise _MissingRun(run_id)
            run.status = ResearchRunStatus.COMPLETED
            run.completed_at = datetime.utcnow()
            db.merge(ResearchReport(run_id=run_id, content_json=report))
            return None

        return self._write(op)

    def fail_run(self, run_id: UUID, error: str) -> StepWriteResult:
        def op(db: Session) -> None:
            run = db.get(ResearchRun, run_id)
            if run is None:
                raise _MissingRun(run_id)
            run.status = ResearchRunStatus.FAILED
            run.error_message = error[:MAX_ERROR_CHARS]
            run.completed_at = datetime.utcnow()
            return None

        return self._write(op)


def list_steps(db: Session, run_id: UUID) -> List[ResearchStepResult]:
    """Step rows for a run in insertion order."""
    return (
        db.query(ResearchStepResult)
        .filter(ResearchStepResult.run_id == run_id)
        .order_by(ResearchStepResult.created_at.asc(), ResearchStepResult.id.asc())
        .all()
    )
