# backend/gtm_intel/schemas/pipeline.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.pipeline_run import PipelinePhase, PipelineStatus

MAX_URL_LEN = 2048
MAX_USER_INPUT_LEN = 4000
MAX_BATCH_SIZE = 100


class PipelineConfig(BaseModel):
    """Opaque-to-the-state-machine run configuration, stored as JSON."""
    url: str
    batch_size: int = Field(default=10, ge=1, le=MAX_BATCH_SIZE)
    user_input: str | None = None
    campaign_name: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("url must not be empty")
        if len(v) > MAX_URL_LEN:
            raise ValueError("url is too long")
        return v

    @field_validator("user_input", "campaign_name", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            stripped = v.strip()
            return stripped or None
        return v

    @field_validator("user_input")
    @classmethod
    def validate_user_input(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_USER_INPUT_LEN:
            raise ValueError(
                f"user_input must be at most {MAX_USER_INPUT_LEN} characters"
            )
        return v


class PipelineCounters(BaseModel):
    entities_processed: int = 0
    contacts_found: int = 0
    artifacts_generated: int = 0


class PipelineRunOut(BaseModel):
    id: UUID
    owner_id: str | None = None
    status: PipelineStatus
    current_phase: PipelinePhase | None = None
    progress: int
    entities_processed: int = 0
    contacts_found: int = 0
    artifacts_generated: int = 0
    error: str | None = None
    config: dict = {}
    task_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def counters(self) -> PipelineCounters:
        return PipelineCounters(
            entities_processed=self.entities_processed,
            contacts_found=self.contacts_found,
            artifacts_generated=self.artifacts_generated,
        )


class PipelineStartOut(BaseModel):
    pipeline_id: UUID
    status: PipelineStatus
    message: str = "Pipeline started"


class PipelineStatusOut(BaseModel):
    id: UUID
    status: PipelineStatus
    current_phase: PipelinePhase | None = None
    progress: int
    counters: PipelineCounters
    error: str | None = None
    updated_at: datetime

    @classmethod
    def from_run(cls, run: PipelineRunOut) -> "PipelineStatusOut":
        return cls(
            id=run.id,
            status=run.status,
            current_phase=run.current_phase,
            progress=run.progress,
            counters=run.counters,
            error=run.error,
            updated_at=run.updated_at,
        )


class PipelineResultOut(BaseModel):
    id: int
    pipeline_id: UUID
    results_data: dict
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProspectCriteria(BaseModel):
    """Search filters derived from the generated company profile."""
    industries: list[str] = []
    employee_ranges: list[str] = []   # Apollo "min,max" strings, e.g. "51,200"
    locations: list[str] = []
    keywords: list[str] = []
    titles: list[str] = []

    @field_validator("industries", "employee_ranges", "locations", "keywords", "titles", mode="before")
    @classmethod
    def _coerce_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return [str(x) for x in v if x is not None and str(x).strip()]


class OutreachMessage(BaseModel):
    subject: str
    body: str
    personalized_hook: str | None = None
