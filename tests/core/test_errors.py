"""Tests for stresslab.core.errors module."""

import pytest

from stresslab.core.errors import (
    ConfigError,
    DisposalError,
    ErrorCategory,
    ErrorContext,
    OrchestrationError,
    RegistrationError,
    StageExecutionError,
    StressLabError,
    ValidationError,
    ValidationIssue,
    WorkflowError,
    WorkspaceValidationError,
    categorize_error,
)


class TestErrorContext:
    def test_empty_context_serializes_empty(self):
        assert ErrorContext().to_dict() == {}

    def test_to_dict_includes_set_fields_and_metadata(self):
        ctx = ErrorContext(run_id="run:acme:1", stage="plan", metadata={"attempt": 1})
        assert ctx.to_dict() == {"run_id": "run:acme:1", "stage": "plan", "attempt": 1}


class TestStressLabError:
    def test_defaults(self):
        error = StressLabError("boom")
        assert str(error) == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_with_context_sets_known_fields_and_metadata(self):
        error = StressLabError("boom").with_context(run_id="r1", shard=3)
        assert error.context.run_id == "r1"
        assert error.context.metadata == {"shard": 3}

    def test_cause_is_chained(self):
        cause = RuntimeError("inner")
        error = StressLabError("outer", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "inner"

    def test_subclass_categories(self):
        assert ValidationError("x").category == ErrorCategory.VALIDATION
        assert ConfigError("x").category == ErrorCategory.CONFIG
        assert OrchestrationError("x").category == ErrorCategory.ORCHESTRATION
        assert DisposalError("x").category == ErrorCategory.INTERNAL

    def test_catch_whole_family(self):
        with pytest.raises(StressLabError):
            raise RegistrationError("kind:B", missing=["kind:A"])


class TestWorkspaceValidationError:
    def test_lists_every_issue(self):
        error = WorkspaceValidationError(
            [("signals[0].class", "bad class"), ValidationIssue("tenantId", "missing")]
        )
        assert error.paths == ["signals[0].class", "tenantId"]
        assert str(error) == "workspace validation failed: signals[0].class: bad class; tenantId: missing"

    def test_to_dict_includes_issues(self):
        error = WorkspaceValidationError([("mode", "invalid")])
        data = error.to_dict()
        assert data["category"] == "VALIDATION"
        assert data["issues"] == [{"path": "mode", "message": "invalid"}]


class TestRegistrationError:
    def test_names_missing_kinds(self):
        error = RegistrationError("B", missing=["kind:A"])
        assert error.missing == ["kind:A"]
        assert "kind:A" in str(error)
        assert error.plugin_kind == "B"

    def test_custom_message(self):
        error = RegistrationError("B", message="Plugin 'B' is already registered")
        assert str(error) == "Plugin 'B' is already registered"
        assert error.missing == []


class TestStageExecutionError:
    def test_joins_errors(self):
        error = StageExecutionError(["first", "second"], stage="plan", plugin_id="p")
        assert str(error) == "first, second"
        assert error.context.stage == "plan"
        assert error.context.plugin_id == "p"

    def test_empty_errors_get_default_message(self):
        error = StageExecutionError([])
        assert error.errors == ["plugin returned failure"]


class TestWorkflowError:
    def test_keeps_errors(self):
        error = WorkflowError("workflow execution failed: a, b", errors=["a", "b"])
        assert error.errors == ["a", "b"]
        assert error.category == ErrorCategory.ORCHESTRATION


class TestCategorizeError:
    def test_stresslab_error_uses_own_category(self):
        assert categorize_error(ConfigError("x")) == ErrorCategory.CONFIG

    def test_value_error_is_validation(self):
        assert categorize_error(ValueError("x")) == ErrorCategory.VALIDATION

    def test_other_is_unknown(self):
        assert categorize_error(RuntimeError("x")) == ErrorCategory.UNKNOWN
