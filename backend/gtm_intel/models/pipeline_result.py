from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Uuid
from datetime import datetime

from ..core.db import Base

class PipelineResult(Base):
    __tablename__ = "pipeline_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pipeline_id = Column(Uuid(as_uuid=True),
                         ForeignKey("pipeline_runs.id"),
                         index=True,
                         nullable=False)
    owner_id = Column(String, nullable=True)
    results_data = Column(JSON, nullable=False)  # {entities, contacts, messages, upload, summary}
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
