"""
Domain-specific exception hierarchy for the pipeline engine.

All pipeline exceptions inherit from PipelineError so callers can
catch broadly or narrowly as needed.  Each exception carries structured
context (step name, execution ID, etc.) for logging/debugging.

ProcessingError subclasses are the failures a processing client can
report for one file.  Clients never raise them to their callers; they
are returned inside a ClientResult and turned into a StepOutcome by the
engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from imagepipe.core.constants import ErrorKind

if TYPE_CHECKING:
    from imagepipe.pipeline.validator import ValidationIssue


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        execution_id: str | None = None,
        step_name: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.execution_id = execution_id
        self.step_name = step_name
        self.details = details or {}
        super().__init__(message)


class PipelineValidationError(PipelineError):
    """The submitted pipeline definition failed validation."""

    def __init__(self, issues: list[ValidationIssue], **kwargs) -> None:
        self.issues = list(issues)
        super().__init__(
            f"Invalid pipeline definition ({len(self.issues)} problem(s))",
            **kwargs,
        )


class StepResolutionError(PipelineError):
    """No step is registered for a requested operation."""
    pass


class StorageError(PipelineError):
    """Upload directory or result file operation failed."""
    pass


# ─── Per-file processing failures ─────────────────────


class ProcessingError(PipelineError):
    """A processing client could not transform one file."""

    kind: ErrorKind = ErrorKind.PROCESSING_FAILED


class TransportError(ProcessingError):
    """Network or protocol failure talking to a remote provider."""

    kind = ErrorKind.TRANSPORT_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, **kwargs)


class ProcessingFailed(ProcessingError):
    """The provider accepted the work but reported that it failed."""

    kind = ErrorKind.PROCESSING_FAILED


class ProcessingTimeout(ProcessingError):
    """The provider did not reach a terminal state before the deadline."""

    kind = ErrorKind.PROCESSING_TIMEOUT

    def __init__(self, message: str, *, timeout_seconds: float = 0, **kwargs) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(message, **kwargs)
