"""Single-purpose endpoints built on one-operation pipelines."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, UploadFile

from imagepipe.api.deps import get_engine, get_storage, read_uploads
from imagepipe.api.schemas import error_response, success_response
from imagepipe.api.v1.pipeline import failure_response, public_urls
from imagepipe.core.constants import Operation
from imagepipe.core.logging import get_logger
from imagepipe.pipeline.context import RequestContext
from imagepipe.pipeline.engine import PipelineEngine
from imagepipe.pipeline.validator import validate
from imagepipe.storage.file_handler import FileStorage

router = APIRouter(tags=["Images"])
logger = get_logger(__name__)


def _form_params(**fields: str | None) -> dict[str, Any]:
    return {name: value for name, value in fields.items() if value not in (None, "")}


def optimize_definition(params: dict[str, Any]) -> list[dict[str, Any]]:
    """Resize first when dimensions are given, then optimize."""
    resize = {k: params[k] for k in ("width", "height") if k in params}
    optimize = {k: params[k] for k in ("quality", "format") if k in params}

    steps = []
    if resize:
        steps.append({"operation": Operation.RESIZE.value, "params": resize})
    steps.append({"operation": Operation.OPTIMIZE.value, "params": optimize})
    return steps


@router.post("/optimize")
async def optimize_images(
    images: list[UploadFile] = File(default=[]),
    file: list[UploadFile] = File(default=[]),
    quality: str | None = Form(default=None),
    format: str | None = Form(default=None),
    width: str | None = Form(default=None),
    height: str | None = Form(default=None),
    storage: FileStorage = Depends(get_storage),
    engine: PipelineEngine = Depends(get_engine),
):
    """Optimize one or more images (`images` or `file` field)."""
    uploads = images or file
    if not uploads:
        return error_response("No image files provided.", 400)

    incoming = await read_uploads(uploads)
    upload_errors = storage.validate_uploads(incoming)
    if upload_errors:
        return error_response("Invalid file uploads.", 400, details={"errors": upload_errors})

    definition = optimize_definition(_form_params(quality=quality, format=format, width=width, height=height))
    issues = validate(definition)
    if issues:
        return error_response(
            "Invalid optimization parameters.",
            400,
            details={"errors": [issue.to_dict() for issue in issues]},
        )

    files = storage.intake(incoming)
    if not files:
        return error_response("Failed to process uploaded files.", 500)

    try:
        result = await engine.submit(RequestContext.build(files, definition))
    except Exception as exc:
        logger.exception("Optimization crashed")
        return error_response(f"An internal error occurred during optimization: {exc}", 500)

    if not result.succeeded:
        return failure_response(result)
    return success_response({"results": public_urls(result)}, "Images optimized successfully.")


@router.post("/remove-background")
async def remove_background(
    image: UploadFile | None = File(default=None),
    storage: FileStorage = Depends(get_storage),
    engine: PipelineEngine = Depends(get_engine),
):
    """Remove the background from a single image (`image` field)."""
    if image is None:
        return error_response("No image file provided.", 400)

    incoming = await read_uploads([image])
    upload_errors = storage.validate_uploads(incoming)
    if upload_errors:
        return error_response("Invalid file upload.", 400, details={"errors": upload_errors})

    files = storage.intake(incoming)
    if not files:
        return error_response("Failed to process uploaded file.", 500)

    definition = [{"operation": Operation.REMOVE_BACKGROUND.value}]
    try:
        result = await engine.submit(RequestContext.build(files, definition))
    except Exception:
        logger.exception("Background removal crashed")
        return error_response("An internal error occurred during background removal.", 500)

    if not result.succeeded:
        return failure_response(result)
    return success_response({"resultUrl": public_urls(result)[0]}, "Background removed successfully.")
