"""JSON envelope returned by every processing endpoint."""

from __future__ import annotations

from typing import Any, Literal

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field


class StepSummary(BaseModel):
    """Per-step counts reported after a pipeline run."""

    step: int = Field(..., ge=1)
    operation: str
    output_files: int = Field(..., ge=0)
    failed_files: int = Field(..., ge=0)


class PipelineRunData(BaseModel):
    pipeline_summary: list[StepSummary]
    final_results: list[str]


class SuccessResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    message: str
    details: dict[str, Any] | None = None


def success_response(data: BaseModel | dict[str, Any], message: str | None = None) -> JSONResponse:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    body = SuccessResponse(message=message, data=data)
    return JSONResponse(status_code=200, content=body.model_dump(exclude_none=True))


def error_response(
    message: str,
    status_code: int = 400,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    body = ErrorResponse(message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))
