"""
Structured error types for the stress-lab workflow engine.

Every failure the engine can surface is a typed ``StressLabError`` carrying
a category, a retry flag, structured context, and an optional chained cause.
Callers can catch the whole family with one ``except`` clause or branch on
the concrete subclass.

Manifesto:
    - **Typed hierarchy:** One subclass per failure family in the taxonomy
    - **Explicit retry semantics:** None of the engine errors are retryable;
      retry policy belongs to the caller
    - **Rich context:** run id, tenant, stage, plugin travel with the error
    - **Error chaining:** Wrapped exceptions survive as ``cause``

Architecture:
    ::

        StressLabError  (category, retryable, context, cause)
          ├── ValidationError            VALIDATION
          │     └── WorkspaceValidationError   issues: [(path, message), ...]
          ├── ConfigError                CONFIG
          ├── OrchestrationError         ORCHESTRATION
          │     ├── RegistrationError      unknown dependency / duplicate kind
          │     ├── StageExecutionError    plugin failed or raised
          │     └── WorkflowError          façade-level joined failure
          └── DisposalError              INTERNAL (always swallowed)

Examples:
    >>> error = RegistrationError("stress-lab/b", missing=["kind:A"])
    >>> error.missing
    ['kind:A']
    >>> error.category.value
    'ORCHESTRATION'

Tags:
    error-handling, exception-hierarchy, error-context, stresslab
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and log routing."""

    VALIDATION = "VALIDATION"  # Malformed workspace seed documents
    CONFIG = "CONFIG"  # Missing or invalid settings
    ORCHESTRATION = "ORCHESTRATION"  # Registry, chain, and façade failures
    INTERNAL = "INTERNAL"  # Bugs, unexpected state, disposal
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are emitted by ``to_dict()`` so log lines stay short.

    Attributes:
        run_id: Workflow run identifier
        tenant_id: Tenant the run belongs to
        stage: Pipeline stage where the error surfaced
        plugin_id: Plugin that produced the error
        metadata: Additional key-value pairs
    """

    run_id: str | None = None
    tenant_id: str | None = None
    stage: str | None = None
    plugin_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("run_id", "tenant_id", "stage", "plugin_id"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class StressLabError(Exception):
    """
    Base exception for all stress-lab errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    call sites only need to pass a message.

    Examples:
        >>> error = StressLabError("boom").with_context(run_id="run:acme:1")
        >>> error.context.run_id
        'run:acme:1'
        >>> error.to_dict()["category"]
        'INTERNAL'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> StressLabError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StageExecutionError(...).with_context(run_id=run_id)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(StressLabError):
    """Input validation error. Never retryable - the input must be fixed."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


@dataclass(frozen=True)
class ValidationIssue:
    """One offending field in a workspace seed document."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class WorkspaceValidationError(ValidationError):
    """
    Malformed workspace seed document.

    Carries every offending ``(path, message)`` pair, never just the first.
    """

    def __init__(self, issues: Iterable[ValidationIssue | tuple[str, str]], **kwargs: Any):
        normalized = [
            issue if isinstance(issue, ValidationIssue) else ValidationIssue(*issue)
            for issue in issues
        ]
        self.issues: list[ValidationIssue] = normalized
        detail = "; ".join(str(issue) for issue in normalized) or "no details"
        super().__init__(f"workspace validation failed: {detail}", **kwargs)

    @property
    def paths(self) -> list[str]:
        """Offending field paths in document order."""
        return [issue.path for issue in self.issues]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["issues"] = [{"path": i.path, "message": i.message} for i in self.issues]
        return result


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(StressLabError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class OrchestrationError(StressLabError):
    """Registry, chain, or workflow error."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class RegistrationError(OrchestrationError):
    """A plugin could not be registered (unknown dependency or duplicate kind)."""

    def __init__(
        self,
        plugin_kind: str,
        *,
        missing: Sequence[str] | None = None,
        message: str | None = None,
    ):
        self.plugin_kind = plugin_kind
        self.missing = list(missing or [])
        if message is None:
            message = (
                f"Plugin '{plugin_kind}' depends on unregistered kinds: "
                f"{', '.join(self.missing)}"
            )
        super().__init__(message)


class StageExecutionError(OrchestrationError):
    """A plugin's ``run()`` returned a failure or raised."""

    def __init__(
        self,
        errors: Sequence[str],
        *,
        stage: str | None = None,
        plugin_id: str | None = None,
        cause: Exception | None = None,
    ):
        self.errors = list(errors) or ["plugin returned failure"]
        self.stage = stage
        self.plugin_id = plugin_id
        super().__init__(
            ", ".join(self.errors),
            context=ErrorContext(stage=stage, plugin_id=plugin_id),
            cause=cause,
        )


class WorkflowError(OrchestrationError):
    """Workflow execution error surfaced by the façade as a single string."""

    def __init__(self, message: str, *, errors: Sequence[str] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.errors = list(errors or [])


# =============================================================================
# DISPOSAL
# =============================================================================


class DisposalError(StressLabError):
    """Raised while releasing a scoped resource; never escapes the façade."""

    default_category = ErrorCategory.INTERNAL


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, StressLabError):
        return error.category
    if isinstance(error, (TypeError, ValueError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "StressLabError",
    "ValidationError",
    "ValidationIssue",
    "WorkspaceValidationError",
    "ConfigError",
    "OrchestrationError",
    "RegistrationError",
    "StageExecutionError",
    "WorkflowError",
    "DisposalError",
    "categorize_error",
]
