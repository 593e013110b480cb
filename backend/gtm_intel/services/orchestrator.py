from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence, Tuple
from uuid import UUID, uuid4
import logging

from ..core.errors import ParseError, UpstreamCallError
from ..schemas.report import ReportSchema
from .canonical import CanonicalReport, map_to_canonical
from .generation import GenerationStepExecutor
from .research_steps import RESEARCH_STEPS, ResearchStep
from .step_log import StepLog

logger = logging.getLogger(__name__)


def merge_step_outputs(outputs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """
    Shallow-merge step outputs in order; later keys win on direct collisions.

    A step whose output is not a JSON object is kept under its step name so
    nothing it produced is dropped.
    """
    merged: Dict[str, Any] = {}
    for step_name, output in outputs:
        if isinstance(output, dict):
            merged.update(output)
        else:
            merged[step_name] = output
    return merged


class ResearchOrchestrator:
    """
    Runs the fixed research sequence for one subject.

    - Steps run strictly in order; each prompt sees the cumulative merge of
      every earlier step.
    - Each successful step is appended to the step log before the next step
      starts. Log failures are logged and the run continues.
    - UpstreamCallError / ParseError abort the run and propagate; no report is
      produced for a failed run.
    """

    def __init__(
        self,
        executor: GenerationStepExecutor,
        step_log: StepLog,
        schema: ReportSchema,
        steps: Sequence[ResearchStep] = RESEARCH_STEPS,
    ) -> None:
        self._executor = executor
        self._step_log = step_log
        self._schema = schema
        self._steps = tuple(steps)

    def run(
        self,
        subject: str,
        *,
        owner_id: str | None = None,
        run_id: UUID | None = None,
    ) -> CanonicalReport:
        run_id = run_id or uuid4()
        log_extra = {"run_id": str(run_id), "owner_id": owner_id}

        logger.info("Starting research run for %s", subject, extra=log_extra)
        self._record(self._step_log.open_run(run_id, subject, owner_id), run_id, "open_run")

        outputs: List[Tuple[str, Any]] = []
        for step in self._steps:
            context = merge_step_outputs(outputs)
            prompt = step.render_prompt(subject, context)
            try:
                output = self._executor.execute(step.role, prompt)
            except (UpstreamCallError, ParseError) as e:
                logger.warning(
                    "Research step '%s' failed: %s",
                    step.name,
                    e,
                    extra={**log_extra, "step": step.name},
                )
                self._record(
                    self._step_log.fail_run(run_id, f"{step.name}: {e}"),
                    run_id,
                    "fail_run",
                )
                raise

            outputs.append((step.name, output))
            self._record(self._step_log.append(run_id, step.name, output), run_id, step.name)
            logger.info(
                "Research step '%s' completed",
                step.name,
                extra={**log_extra, "step": step.name},
            )

        merged = merge_step_outputs(outputs)
        report = map_to_canonical(self._schema, merged)

        self._record(self._step_log.complete_run(run_id, report), run_id, "complete_run")
        logger.info("Research run completed", extra={**log_extra, "step": "completed"})
        return report

    @staticmethod
    def _record(result, run_id: UUID, step: str) -> None:
        if not result.ok:
            logger.warning(
                "Step log write failed; continuing: %s",
                result.error,
                extra={"run_id": str(run_id), "step": step},
            )
