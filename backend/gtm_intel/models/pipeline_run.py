"""
PipelineRun: the persisted state machine behind a prospecting pipeline.

Lifecycle:
1. idle      - row inserted, nothing dispatched yet
2. running   - background task dispatched; current_phase/progress advance
3. completed - all five phases succeeded, a PipelineResult row exists
4. failed    - a phase raised; current_phase/progress are frozen

Terminal rows are never updated again.
"""
from sqlalchemy import Column, Integer, String, Text, Enum, DateTime, JSON, Uuid
from datetime import datetime
import uuid
import enum
from ..core.db import Base


class PipelineStatus(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStatus.COMPLETED, PipelineStatus.FAILED)


class PipelinePhase(str, enum.Enum):
    PROFILE_GENERATION = "profile_generation"
    ENTITY_DISCOVERY = "entity_discovery"
    CONTACT_DISCOVERY = "contact_discovery"
    PERSONALIZATION = "personalization"
    UPLOAD = "upload"


class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(String, index=True, nullable=True)
    # values_callable stores the lowercase values the status API exposes
    status = Column(
        Enum(PipelineStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PipelineStatus.IDLE,
    )
    current_phase = Column(
        Enum(PipelinePhase, values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )
    progress = Column(Integer, nullable=False, default=0)

    entities_processed = Column(Integer, nullable=False, default=0)
    contacts_found = Column(Integer, nullable=False, default=0)
    artifacts_generated = Column(Integer, nullable=False, default=0)

    error = Column(Text, nullable=True)
    config = Column(JSON, nullable=False, default=dict)
    task_id = Column(String, nullable=True)  # Celery task id of the executor

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
