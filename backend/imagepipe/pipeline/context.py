"""
Run state and audit records for one pipeline execution.

WorkingFile is the engine's handle to an image at one point in the
pipeline.  It is frozen: a step never edits a file, it returns a new
WorkingFile whose parent_id points at the one it was derived from, so
the chain of files can be traced back to the upload.

PipelineContext is the mutable per-run state owned by the engine.  It
records which state the run is in, the files currently flowing through
it and one StepResult per executed step.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Sequence

from imagepipe.core.constants import ErrorKind, Operation, PipelineStatus, StepStatus


# ═══════════════════════════════════════════════════════════
#  WorkingFile
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkingFile:
    """
    Immutable handle to an image file at one point of a run.

    Args:
        identifier: Unique ID for this version of the file.
        original_name: Filename as uploaded by the client.
        size_bytes: Size on disk.
        mime_type: Detected MIME type, e.g. "image/png".
        location_ref: Where the bytes live; a local path for stored files.
        public_url: URL the file is served under, if any.
        parent_id: identifier of the file this one was produced from.
    """

    identifier: str
    original_name: str
    size_bytes: int
    mime_type: str
    location_ref: str
    public_url: str | None = None
    parent_id: str | None = None

    def derive(self, **changes: Any) -> WorkingFile:
        """Return a new file that records this one as its parent."""
        changes.setdefault("identifier", uuid.uuid4().hex)
        return replace(self, parent_id=self.identifier, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "original_name": self.original_name,
            "size_bytes": self.size_bytes,
            "mime_type": self.mime_type,
            "location_ref": self.location_ref,
            "public_url": self.public_url,
            "parent_id": self.parent_id,
        }


# ═══════════════════════════════════════════════════════════
#  StepOutcome / StepResult
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StepOutcome:
    """Result of applying one step to one file."""

    success: bool
    source: WorkingFile
    file: WorkingFile | None = None
    error: ErrorKind | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "source": self.source.original_name,
            "file": self.file.to_dict() if self.file else None,
            "error": self.error.value if self.error else None,
            "message": self.message,
        }


@dataclass
class StepResult:
    """Outcome of a single pipeline step across all its input files."""

    step_index: int
    operation: Operation
    outcomes: list[StepOutcome] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> list[WorkingFile]:
        return [o.file for o in self.outcomes if o.success and o.file is not None]

    @property
    def failed(self) -> list[StepOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def status(self) -> StepStatus:
        if not self.outcomes or not self.succeeded:
            return StepStatus.FAILED
        if self.failed:
            return StepStatus.PARTIALLY_COMPLETED
        return StepStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """Serialise for API responses and logs."""
        return {
            "step": self.step_index + 1,
            "operation": self.operation.value,
            "status": self.status.value,
            "output_files": len(self.succeeded),
            "failed_files": len(self.failed),
            "duration_ms": self.duration_ms,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


# ═══════════════════════════════════════════════════════════
#  RequestContext
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RequestContext:
    """
    Everything one request hands to the orchestrator.

    The calling layer builds this from the HTTP request; the validator
    and engine only ever read from it.
    """

    files: tuple[WorkingFile, ...]
    raw_definition: Any

    @classmethod
    def build(cls, files: Sequence[WorkingFile], raw_definition: Any) -> RequestContext:
        return cls(files=tuple(files), raw_definition=raw_definition)


# ═══════════════════════════════════════════════════════════
#  PipelineContext
# ═══════════════════════════════════════════════════════════

@dataclass
class PipelineContext:
    """Mutable state for one run; owned exclusively by the engine."""

    execution_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: PipelineStatus = PipelineStatus.PENDING
    current_files: list[WorkingFile] = field(default_factory=list)
    current_step_index: int = 0
    total_steps: int = 0
    step_results: list[StepResult] = field(default_factory=list)
    failure_reason: ErrorKind | None = None
    error: str | None = None

    def transition(self, status: PipelineStatus) -> None:
        if self.status in (PipelineStatus.COMPLETED, PipelineStatus.FAILED):
            raise RuntimeError(f"Run {self.execution_id} already finished ({self.status})")
        self.status = status

    def fail(self, reason: ErrorKind, error: str) -> None:
        """Move the run to FAILED; no files survive a failed run."""
        self.transition(PipelineStatus.FAILED)
        self.failure_reason = reason
        self.error = error
        self.current_files = []

    def to_summary_dict(self) -> dict[str, Any]:
        """Compact summary for logging."""
        return {
            "execution_id": self.execution_id,
            "status": self.status.value,
            "steps_completed": len(self.step_results),
            "total_steps": self.total_steps,
            "current_files": len(self.current_files),
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "error": self.error,
        }
