# backend/gtm_intel/schemas/research.py
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from ..models.research_run import ResearchRunStatus

MAX_SUBJECT_LEN = 2048


class ResearchRequest(BaseModel):
    subject: str  # company URL or name

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("subject must not be empty")
        if len(v) > MAX_SUBJECT_LEN:
            raise ValueError(
                f"subject must be at most {MAX_SUBJECT_LEN} characters"
            )
        return v


class ResearchRunOut(BaseModel):
    id: UUID
    subject: str
    owner_id: str | None = None
    status: ResearchRunStatus
    created_at: datetime
    completed_at: datetime | None = None
    error_message: str | None = None

    model_config = ConfigDict(from_attributes=True)


class StepResultOut(BaseModel):
    id: int
    step_name: str
    output: Any = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ResearchReportOut(BaseModel):
    run_id: UUID
    report: dict[str, dict[str, Any]]
