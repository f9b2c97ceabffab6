"""Tests for structlog configuration and LogContext."""

import pytest
import structlog

from stresslab.core.logging import LogContext, bind_context, configure_logging, get_logger, unbind_context


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_json_output_carries_service_name(self, capsys):
        configure_logging(level="INFO", json_format=True, service="stresslab-test")
        get_logger("test").info("workflow.start", run_id="r1")
        out = capsys.readouterr().out
        assert '"event": "workflow.start"' in out
        assert '"service.name": "stresslab-test"' in out
        assert '"run_id": "r1"' in out

    def test_level_filters_debug(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        get_logger("test").info("hidden.event")
        assert "hidden.event" not in capsys.readouterr().out


class TestLogContext:
    def test_binds_and_unbinds(self):
        with LogContext(run_id="r1", tenant_id="acme"):
            assert structlog.contextvars.get_contextvars() == {"run_id": "r1", "tenant_id": "acme"}
        assert structlog.contextvars.get_contextvars() == {}

    @pytest.mark.asyncio
    async def test_async_context(self):
        async with LogContext(run_id="r2"):
            assert structlog.contextvars.get_contextvars()["run_id"] == "r2"
        assert "run_id" not in structlog.contextvars.get_contextvars()

    def test_bind_unbind_helpers(self):
        bind_context(stage="plan")
        assert structlog.contextvars.get_contextvars()["stage"] == "plan"
        unbind_context("stage")
        assert "stage" not in structlog.contextvars.get_contextvars()
