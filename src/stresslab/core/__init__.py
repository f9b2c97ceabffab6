"""
stresslab.core - shared primitives.

- errors: typed error hierarchy (StressLabError and subclasses)
- result: Ok / Err result envelope
- logging: structlog configuration and ``get_logger``
- settings: environment-driven ``StressLabSettings``
- identifiers: newtype string identifiers
- timestamps: UTC helpers
"""

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
)
from stresslab.core.identifiers import RunbookId, RunId, SignalId, TenantId, WorkloadId
from stresslab.core.logging import LogContext, configure_logging, get_logger
from stresslab.core.result import Err, Ok, Result, try_result, try_result_async
from stresslab.core.settings import StressLabSettings, get_settings
from stresslab.core.timestamps import from_iso8601, to_iso8601, utc_now

__all__ = [
    # errors
    "ConfigError",
    "DisposalError",
    "ErrorCategory",
    "ErrorContext",
    "OrchestrationError",
    "RegistrationError",
    "StageExecutionError",
    "StressLabError",
    "ValidationError",
    "ValidationIssue",
    "WorkflowError",
    "WorkspaceValidationError",
    # identifiers
    "RunbookId",
    "RunId",
    "SignalId",
    "TenantId",
    "WorkloadId",
    # logging
    "LogContext",
    "configure_logging",
    "get_logger",
    # result
    "Err",
    "Ok",
    "Result",
    "try_result",
    "try_result_async",
    # settings
    "StressLabSettings",
    "get_settings",
    # timestamps
    "from_iso8601",
    "to_iso8601",
    "utc_now",
]
