from sqlalchemy import Column, String, Enum, DateTime, Uuid
from datetime import datetime
import uuid
import enum
from ..core.db import Base

class ResearchRunStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

class ResearchRun(Base):
    __tablename__ = "research_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject = Column(String, nullable=False)      # usually the company URL
    owner_id = Column(String, index=True, nullable=True)
    status = Column(Enum(ResearchRunStatus), nullable=False, default=ResearchRunStatus.RUNNING)
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    error_message = Column(String, nullable=True)
