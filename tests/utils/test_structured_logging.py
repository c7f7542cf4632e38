"""Tests for structured event logging helpers."""

from structlog.contextvars import get_contextvars
from structlog.testing import capture_logs

from insight_system.utils.logging import get_structured_logger, new_run_id, run_context


class TestRunContext:
    def test_binds_and_clears(self):
        with run_context("run-1", "proj-1"):
            assert get_contextvars() == {"run_id": "run-1", "project_id": "proj-1"}
        assert "run_id" not in get_contextvars()

    def test_new_run_ids_are_unique(self):
        assert new_run_id() != new_run_id()


class TestStructuredLogger:
    def test_binds_component_and_project(self):
        with capture_logs() as logs:
            get_structured_logger("ledger", project_id="proj-9").info("conflict_opened", conflict_id="c-1")

        assert logs == [
            {
                "event": "conflict_opened",
                "log_level": "info",
                "component": "ledger",
                "project_id": "proj-9",
                "conflict_id": "c-1",
            }
        ]
