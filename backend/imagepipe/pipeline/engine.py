"""
PipelineEngine — the orchestrator that runs steps sequentially.

Responsibilities:
    - Validate the submitted definition (submit)
    - Resolve each operation to its step via StepResolver
    - Apply every step to every current file, with timing and logging
    - Apply the per-operation failure policy (continue vs. abort)
    - Return a complete PipelineResult; a run never raises for a
      processing failure
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

import structlog

from imagepipe.core.constants import ErrorKind, PipelineStatus
from imagepipe.pipeline.context import (
    PipelineContext,
    RequestContext,
    StepOutcome,
    StepResult,
    WorkingFile,
)
from imagepipe.pipeline.errors import PipelineValidationError, StepResolutionError
from imagepipe.pipeline.schema import PipelineDefinition, Step
from imagepipe.pipeline.step import PipelineStep
from imagepipe.pipeline.step_resolver import StepResolver
from imagepipe.pipeline.validator import parse_definition

DEFAULT_MAX_CONCURRENCY = 4


@dataclass
class PipelineResult:
    """Final outcome of a pipeline execution."""

    execution_id: str
    status: PipelineStatus
    summary: list[StepResult] = field(default_factory=list)
    final_files: list[WorkingFile] = field(default_factory=list)
    failure_reason: ErrorKind | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == PipelineStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "status": self.status.value,
            "summary": [sr.to_dict() for sr in self.summary],
            "final_files": [f.to_dict() for f in self.final_files],
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "error": self.error,
            "total_duration_ms": self.total_duration_ms,
        }


class PipelineEngine:
    """
    Runs a validated PipelineDefinition against a set of WorkingFiles.

    Usage::

        engine = PipelineEngine(StepResolver(build_step_registry(opt, bg)))
        result = await engine.submit(RequestContext.build(files, raw_steps))
        if result.succeeded:
            ...
    """

    def __init__(
        self,
        resolver: StepResolver,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self.resolver = resolver
        self.max_concurrency = max(1, max_concurrency)
        self.logger = structlog.get_logger("pipeline.engine")

    async def submit(self, request: RequestContext) -> PipelineResult:
        """
        Validate a raw definition and run it.

        Raises:
            PipelineValidationError: If the definition is invalid.  No
                step is attempted in that case.
        """
        ctx = PipelineContext()
        ctx.transition(PipelineStatus.VALIDATING)
        log = self.logger.bind(execution_id=ctx.execution_id)

        try:
            definition = parse_definition(request.raw_definition)
        except PipelineValidationError as exc:
            exc.execution_id = ctx.execution_id
            log.warning(
                "Pipeline definition rejected",
                issues=[issue.to_dict() for issue in exc.issues],
            )
            raise

        return await self.run(definition, request.files, ctx=ctx)

    async def run(
        self,
        definition: PipelineDefinition,
        initial_files: Sequence[WorkingFile],
        ctx: PipelineContext | None = None,
    ) -> PipelineResult:
        """
        Execute every step of `definition` in order.

        Each step consumes the whole current file set and produces the
        next one.  The next step only starts once every file of the
        current step has finished.
        """
        started_at = datetime.now(timezone.utc)
        ctx = ctx or PipelineContext()
        ctx.total_steps = len(definition)

        log = self.logger.bind(
            execution_id=ctx.execution_id,
            total_steps=ctx.total_steps,
            total_files=len(initial_files),
        )
        log.info(
            "Pipeline started",
            steps=[step.to_dict() for step in definition],
        )

        if not initial_files:
            ctx.fail(ErrorKind.NO_INPUT_FILES, "No input files to process")
            log.error("Pipeline failed before first step", reason=ctx.failure_reason)
            return self._finalise(ctx, started_at, log)

        ctx.current_files = list(initial_files)
        ctx.transition(PipelineStatus.EXECUTING)

        for index, step in enumerate(definition):
            ctx.current_step_index = index
            step_number = index + 1

            step_log = log.bind(step_name=step.operation.value, step_index=step_number)

            try:
                handler = self.resolver.resolve(step.operation)
            except StepResolutionError as exc:
                step_log.error("Step could not be resolved", error=str(exc))
                ctx.fail(ErrorKind.UNSUPPORTED_OPERATION, str(exc))
                break

            step_log.info(
                f"Step {step_number}/{ctx.total_steps}: {handler.description}",
                input_files=len(ctx.current_files),
                continue_on_error=handler.continue_on_error,
            )

            result, fatal = await self._execute_step(index, step, handler, ctx.current_files, step_log)
            ctx.step_results.append(result)

            if fatal is not None:
                step_log.error(
                    "Step failed — pipeline stopping",
                    file=fatal.source.original_name,
                    error_kind=fatal.error,
                    error=fatal.message,
                )
                ctx.fail(
                    fatal.error or ErrorKind.PROCESSING_FAILED,
                    f"Step {step_number} ({step.operation.value}) failed for "
                    f"'{fatal.source.original_name}': {fatal.message}",
                )
                break

            ctx.current_files = result.succeeded
            step_log.info(
                "Step completed",
                status=result.status,
                output_files=len(result.succeeded),
                failed_files=len(result.failed),
                duration_ms=result.duration_ms,
            )

            if not ctx.current_files:
                ctx.fail(
                    ErrorKind.PIPELINE_EXHAUSTED,
                    f"No files survived step {step_number} ({step.operation.value})",
                )
                step_log.error("Pipeline exhausted — no files left")
                break

        if ctx.status != PipelineStatus.FAILED:
            ctx.transition(PipelineStatus.COMPLETED)

        return self._finalise(ctx, started_at, log)

    async def _execute_step(
        self,
        index: int,
        step: Step,
        handler: PipelineStep,
        files: list[WorkingFile],
        log: structlog.BoundLogger,
    ) -> tuple[StepResult, StepOutcome | None]:
        """
        Apply one step to every file.

        Returns the StepResult and, for an aborting step, the outcome that
        caused the abort (None otherwise).
        """
        started_at = datetime.now(timezone.utc)
        result = StepResult(step_index=index, operation=step.operation, started_at=started_at)
        fatal: StepOutcome | None = None

        if handler.continue_on_error:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def bounded(file: WorkingFile) -> StepOutcome:
                async with semaphore:
                    return await self._apply_one(handler, step, file, log)

            # gather keeps outcomes in input order
            result.outcomes = list(await asyncio.gather(*(bounded(f) for f in files)))
        else:
            for file in files:
                outcome = await self._apply_one(handler, step, file, log)
                result.outcomes.append(outcome)
                if not outcome.success:
                    fatal = outcome
                    break

        result.completed_at = datetime.now(timezone.utc)
        result.duration_ms = int((result.completed_at - started_at).total_seconds() * 1000)
        return result, fatal

    async def _apply_one(
        self,
        handler: PipelineStep,
        step: Step,
        file: WorkingFile,
        log: structlog.BoundLogger,
    ) -> StepOutcome:
        try:
            client_result = await handler.apply(file, step.params)
        except Exception as exc:
            # Unexpected error: recorded like a processing failure
            log.exception("Unexpected error in step", file=file.original_name, error=str(exc))
            return StepOutcome(
                success=False,
                source=file,
                error=ErrorKind.PROCESSING_FAILED,
                message=f"Unexpected: {exc}",
            )

        outcome = handler.to_outcome(file, client_result)
        if not outcome.success:
            log.warning(
                "File failed",
                file=file.original_name,
                error_kind=outcome.error,
                error=outcome.message,
            )
        return outcome

    def _finalise(
        self,
        ctx: PipelineContext,
        started_at: datetime,
        log: structlog.BoundLogger,
    ) -> PipelineResult:
        completed_at = datetime.now(timezone.utc)
        total_duration_ms = int((completed_at - started_at).total_seconds() * 1000)

        log.info(
            "Pipeline finished",
            duration_ms=total_duration_ms,
            **ctx.to_summary_dict(),
        )

        return PipelineResult(
            execution_id=ctx.execution_id,
            status=ctx.status,
            summary=list(ctx.step_results),
            final_files=list(ctx.current_files),
            failure_reason=ctx.failure_reason,
            error=ctx.error,
            started_at=started_at,
            completed_at=completed_at,
            total_duration_ms=total_duration_ms,
        )
