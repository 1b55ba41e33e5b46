"""
PipelineStep — abstract base class for the per-operation steps.

A step applies one operation to one file by delegating to a processing
client.  The engine calls apply() once per file and turns the returned
ClientResult into a StepOutcome; steps never build outcomes themselves.

continue_on_error decides what the engine does when a file fails:
    True  — record the failure, drop the file, keep going with the rest
    False — abort the whole run on the first failed file
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from imagepipe.core.constants import ErrorKind, Operation
from imagepipe.pipeline.context import StepOutcome, WorkingFile
from imagepipe.pipeline.schema import StepParams

if TYPE_CHECKING:
    from imagepipe.processing.base import ClientResult, ProcessingClient


class PipelineStep(ABC):
    """
    Base class for every operation step.

    Subclasses MUST set:
        - operation (Operation)  — the operation this step performs
        - description (str)      — human-readable label for logs
    """

    operation: Operation
    description: str = "No description"
    continue_on_error: bool = True

    def __init__(self, client: ProcessingClient, continue_on_error: bool | None = None) -> None:
        self.client = client
        if continue_on_error is not None:
            self.continue_on_error = continue_on_error

    @abstractmethod
    async def apply(self, file: WorkingFile, params: StepParams) -> ClientResult:
        """Transform one file.  Must return, never raise, for expected failures."""
        ...

    # ─── Helpers available to all steps ────────────────

    @staticmethod
    def to_outcome(source: WorkingFile, result: ClientResult) -> StepOutcome:
        """Build the audit record for one file from a client result."""
        if result.is_ok:
            return StepOutcome(success=True, source=source, file=result.file)
        return StepOutcome(
            success=False,
            source=source,
            error=result.error_kind or ErrorKind.PROCESSING_FAILED,
            message=str(result.error) if result.error else "No result returned",
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(client={self.client.name!r}, "
            f"continue_on_error={self.continue_on_error})"
        )
