from sqlalchemy import Column, ForeignKey, JSON, Uuid
from ..core.db import Base

class ResearchReport(Base):
    __tablename__ = "research_reports"

    run_id = Column(Uuid(as_uuid=True), ForeignKey("research_runs.id"), primary_key=True)
    content_json = Column(JSON, nullable=False)  # canonical report, section -> field -> value
