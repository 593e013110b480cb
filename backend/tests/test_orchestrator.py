"""
Tests for the research run orchestrator and its step log.
"""
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from gtm_intel.core.errors import ParseError, UpstreamCallError
from gtm_intel.models.research_report import ResearchReport
from gtm_intel.models.research_run import ResearchRun, ResearchRunStatus
from gtm_intel.services.canonical import default_for_type, load_report_schema
from gtm_intel.services.orchestrator import ResearchOrchestrator, merge_step_outputs
from gtm_intel.services.research_steps import RESEARCH_STEPS
from gtm_intel.services.step_log import StepLog, StepWriteResult, list_steps

from tests.fixtures.research_fixtures import (
    MARKET_OUTPUT,
    OVERVIEW_OUTPUT,
    SALES_OUTPUT,
    TECH_OUTPUT,
    ScriptedExecutor,
    parse_error,
)


@pytest.fixture
def schema():
    return load_report_schema()


class TestMergeStepOutputs:
    def test_later_keys_win(self):
        merged = merge_step_outputs([("a", {"x": 1, "y": 1}), ("b", {"x": 2})])
        assert merged == {"x": 2, "y": 1}

    def test_merge_is_shallow(self):
        merged = merge_step_outputs([("a", {"n": {"p": 1}}), ("b", {"n": {"q": 2}})])
        assert merged == {"n": {"q": 2}}

    def test_non_dict_output_kept_under_step_name(self):
        merged = merge_step_outputs([("a", {"x": 1}), ("tech_stack", ["Python"])])
        assert merged == {"x": 1, "tech_stack": ["Python"]}


class TestResearchRun:
    """End-to-end runs against an in-memory step log."""

    def test_steps_run_in_fixed_order_with_cumulative_context(self, schema, session_factory):
        executor = ScriptedExecutor([OVERVIEW_OUTPUT, MARKET_OUTPUT, TECH_OUTPUT, SALES_OUTPUT])
        orchestrator = ResearchOrchestrator(executor, StepLog(session_factory), schema)

        report = orchestrator.run("acme.com")

        assert [c["role"] for c in executor.calls] == [s.role for s in RESEARCH_STEPS]
        assert "acme.com" in executor.calls[0]["prompt"]
        # Second prompt sees the first step's output, the first does not
        assert "Acme Robotics" not in executor.calls[0]["prompt"]
        assert "Acme Robotics" in executor.calls[1]["prompt"]
        assert "PickBot" in executor.calls[3]["prompt"]
        assert report["company_overview"]["company_name"] == "Acme Robotics"

    def test_identical_summaries_fill_only_summary(self, schema, session_factory):
        executor = ScriptedExecutor([{"summary": "ok"}] * 4)
        orchestrator = ResearchOrchestrator(executor, StepLog(session_factory), schema)

        report = orchestrator.run("acme.com")

        for section in schema.sections:
            for field in section.field_names():
                expected = (
                    "ok" if field == "summary"
                    else default_for_type(schema.field_mappings[field].type)
                )
                assert report[section.id][field] == expected

    def test_completed_run_is_recorded_with_report(self, schema, session_factory):
        run_id = uuid4()
        executor = ScriptedExecutor([OVERVIEW_OUTPUT, MARKET_OUTPUT, TECH_OUTPUT, SALES_OUTPUT])
        step_log = StepLog(session_factory)
        report = ResearchOrchestrator(executor, step_log, schema).run(
            "acme.com", owner_id="user-1", run_id=run_id
        )

        db = session_factory()
        try:
            run = db.get(ResearchRun, run_id)
            assert run.status == ResearchRunStatus.COMPLETED
            assert run.owner_id == "user-1"
            assert db.get(ResearchReport, run_id).content_json == report
            steps = list_steps(db, run_id)
            assert [s.step_name for s in steps] == [s.name for s in RESEARCH_STEPS]
        finally:
            db.close()

    def test_parse_error_in_second_step_aborts_and_keeps_first_step(self, schema, session_factory):
        run_id = uuid4()
        executor = ScriptedExecutor([OVERVIEW_OUTPUT, parse_error()])
        step_log = StepLog(session_factory)
        orchestrator = ResearchOrchestrator(executor, step_log, schema)

        with pytest.raises(ParseError):
            orchestrator.run("acme.com", run_id=run_id)

        assert len(executor.calls) == 2
        db = session_factory()
        try:
            steps = list_steps(db, run_id)
            assert [s.step_name for s in steps] == ["overview"]
            assert steps[0].output == OVERVIEW_OUTPUT
            run = db.get(ResearchRun, run_id)
            assert run.status == ResearchRunStatus.FAILED
            assert "market_intelligence" in run.error_message
            assert db.get(ResearchReport, run_id) is None
        finally:
            db.close()

    def test_upstream_error_propagates(self, schema, session_factory):
        executor = ScriptedExecutor([UpstreamCallError("401 from provider")])
        orchestrator = ResearchOrchestrator(executor, StepLog(session_factory), schema)

        with pytest.raises(UpstreamCallError):
            orchestrator.run("acme.com")

    def test_step_log_failures_do_not_stop_the_run(self, schema):
        step_log = MagicMock(spec=StepLog)
        failure = StepWriteResult.failure(OperationalError("INSERT", {}, Exception("db down")))
        step_log.open_run.return_value = failure
        step_log.append.return_value = failure
        step_log.complete_run.return_value = failure

        executor = ScriptedExecutor([OVERVIEW_OUTPUT, MARKET_OUTPUT, TECH_OUTPUT, SALES_OUTPUT])
        report = ResearchOrchestrator(executor, step_log, schema).run("acme.com")

        assert report["company_overview"]["company_name"] == "Acme Robotics"
        assert step_log.append.call_count == 4


class TestStepLog:
    def test_append_returns_row_ids_in_order(self, session_factory):
        run_id = uuid4()
        step_log = StepLog(session_factory)
        assert step_log.open_run(run_id, "acme.com", None).ok

        first = step_log.append(run_id, "overview", {"a": 1})
        second = step_log.append(run_id, "market_intelligence", ["not", "a", "dict"])

        assert first.ok and second.ok
        assert second.row_id > first.row_id

        db = session_factory()
        try:
            outputs = [s.output for s in list_steps(db, run_id)]
        finally:
            db.close()
        assert outputs == [{"a": 1}, ["not", "a", "dict"]]

    def test_completing_unknown_run_is_a_failure_result(self, session_factory):
        result = StepLog(session_factory).complete_run(uuid4(), {})
        assert not result.ok
        assert result.error is not None

    def test_database_errors_become_failure_results(self):
        session = MagicMock()
        session.commit.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        result = StepLog(lambda: session).append(uuid4(), "overview", {})

        assert not result.ok
        assert "db down" in str(result.error)
        session.rollback.assert_called_once()
        session.close.assert_called_once()

    def test_fail_run_truncates_error(self, session_factory):
        run_id = uuid4()
        step_log = StepLog(session_factory)
        step_log.open_run(run_id, "acme.com", None)

        assert step_log.fail_run(run_id, "x" * 2000).ok

        db = session_factory()
        try:
            assert len(db.get(ResearchRun, run_id).error_message) == 500
        finally:
            db.close()
