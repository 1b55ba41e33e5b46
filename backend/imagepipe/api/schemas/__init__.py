"""API schema package."""

from imagepipe.api.schemas.responses import (
    ErrorResponse,
    PipelineRunData,
    StepSummary,
    SuccessResponse,
    error_response,
    success_response,
)

__all__ = [
    "ErrorResponse",
    "PipelineRunData",
    "StepSummary",
    "SuccessResponse",
    "error_response",
    "success_response",
]
