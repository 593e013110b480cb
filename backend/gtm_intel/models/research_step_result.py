from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Uuid
from datetime import datetime

from ..core.db import Base

class ResearchStepResult(Base):
    """
    Append-only log of raw step outputs. Rows are never updated; read them
    back ordered by (created_at, id).
    """
    __tablename__ = "research_step_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(Uuid(as_uuid=True),
                    ForeignKey("research_runs.id"),
                    index=True,
                    nullable=False)
    step_name = Column(String, nullable=False)   # "overview", "market_intelligence", …
    output = Column(JSON, nullable=True)         # raw structured output, any shape
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
