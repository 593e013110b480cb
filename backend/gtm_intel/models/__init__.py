# Import every model so Base.metadata is complete for create_all / Alembic.
from .research_run import ResearchRun, ResearchRunStatus
from .research_step_result import ResearchStepResult
from .research_report import ResearchReport
from .pipeline_run import PipelineRun, PipelineStatus, PipelinePhase
from .pipeline_result import PipelineResult

__all__ = [
    "ResearchRun",
    "ResearchRunStatus",
    "ResearchStepResult",
    "ResearchReport",
    "PipelineRun",
    "PipelineStatus",
    "PipelinePhase",
    "PipelineResult",
]
