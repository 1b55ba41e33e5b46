"""
Pipeline endpoint — run a client-defined sequence of operations on uploads.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from imagepipe.api.deps import get_engine, get_storage, read_uploads
from imagepipe.api.schemas import PipelineRunData, StepSummary, error_response, success_response
from imagepipe.core.constants import ErrorKind
from imagepipe.core.logging import get_logger
from imagepipe.pipeline.context import RequestContext
from imagepipe.pipeline.engine import PipelineEngine, PipelineResult
from imagepipe.pipeline.errors import PipelineValidationError
from imagepipe.pipeline.validator import validate
from imagepipe.storage.file_handler import FileStorage

router = APIRouter(prefix="/pipeline", tags=["Pipeline"])
logger = get_logger(__name__)


def public_urls(result: PipelineResult) -> list[str]:
    return [f.public_url or f.location_ref for f in result.final_files]


def failure_response(result: PipelineResult) -> JSONResponse:
    """Error envelope for a run that ended FAILED."""
    status_code = 400 if result.failure_reason == ErrorKind.UNSUPPORTED_OPERATION else 500
    return error_response(
        result.error or "Pipeline execution failed.",
        status_code,
        details={
            "execution_id": result.execution_id,
            "reason": result.failure_reason.value if result.failure_reason else None,
            "summary": [sr.to_dict() for sr in result.summary],
        },
    )


# ─── Run ──────────────────────────────────────────────────
@router.post("/run")
async def run_pipeline(
    images: list[UploadFile] = File(default=[]),
    pipeline: str | None = Form(default=None),
    storage: FileStorage = Depends(get_storage),
    engine: PipelineEngine = Depends(get_engine),
):
    """
    Run a pipeline over the uploaded images.

    1. Parses the `pipeline` form field (JSON array of steps)
    2. Validates uploads and the definition; nothing is stored if either fails
    3. Stores the uploads and hands them to the engine
    4. Returns per-step counts and the public URLs of the final files
    """
    if not images:
        return error_response("No image files provided for the pipeline.", 400)
    if not pipeline:
        return error_response("Pipeline definition not provided.", 400)

    try:
        definition = json.loads(pipeline)
    except json.JSONDecodeError:
        definition = None
    if not isinstance(definition, list):
        return error_response("Invalid pipeline definition format. Must be valid JSON array.", 400)

    # ── Validate before touching disk ─────────────────────
    incoming = await read_uploads(images)
    upload_errors = storage.validate_uploads(incoming)
    if upload_errors:
        return error_response("Invalid file uploads.", 400, details={"errors": upload_errors})

    issues = validate(definition)
    if issues:
        return error_response(
            "Invalid pipeline definition.",
            400,
            details={"errors": [issue.to_dict() for issue in issues]},
        )

    files = storage.intake(incoming)
    if not files:
        return error_response("Failed to process uploaded files.", 500)

    # ── Execute ───────────────────────────────────────────
    try:
        result = await engine.submit(RequestContext.build(files, definition))
    except PipelineValidationError as exc:
        return error_response(
            "Invalid pipeline definition.",
            400,
            details={"errors": [issue.to_dict() for issue in exc.issues]},
        )
    except Exception:
        logger.exception("Pipeline execution crashed")
        return error_response("An internal error occurred during pipeline execution.", 500)

    if not result.succeeded:
        return failure_response(result)

    data = PipelineRunData(
        pipeline_summary=[StepSummary.model_validate(sr.to_dict()) for sr in result.summary],
        final_results=public_urls(result),
    )
    return success_response(data, "Pipeline executed successfully.")
