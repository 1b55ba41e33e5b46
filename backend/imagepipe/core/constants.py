"""Shared constants and enums used across the application."""

from enum import StrEnum


class Operation(StrEnum):
    """Image operations a pipeline step can request."""

    OPTIMIZE = "optimize"
    RESIZE = "resize"
    CONVERT = "convert"
    REMOVE_BACKGROUND = "remove_background"


class ParamType(StrEnum):
    """Value types a step parameter may declare."""

    NUMERIC = "numeric"
    STRING = "string"
    BOOLEAN = "boolean"


class PipelineStatus(StrEnum):
    """Overall status of a pipeline execution."""

    PENDING = "PENDING"
    VALIDATING = "VALIDATING"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StepStatus(StrEnum):
    """Status of an individual pipeline step."""

    COMPLETED = "COMPLETED"
    PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"
    FAILED = "FAILED"


class ValidationErrorKind(StrEnum):
    """Problems found in a submitted pipeline definition before execution."""

    EMPTY_PIPELINE = "EmptyPipeline"
    MALFORMED_STEP = "MalformedStep"
    MISSING_OPERATION = "MissingOperation"
    UNSUPPORTED_OPERATION = "UnsupportedOperation"
    MALFORMED_PARAMS = "MalformedParams"
    INVALID_PARAM_TYPE = "InvalidParamType"
    INVALID_PARAM_VALUE = "InvalidParamValue"


class ErrorKind(StrEnum):
    """Reasons a run (or a single file within a step) can fail."""

    UNSUPPORTED_OPERATION = "UnsupportedOperation"
    NO_INPUT_FILES = "NoInputFiles"
    PIPELINE_EXHAUSTED = "PipelineExhausted"
    PROCESSING_FAILED = "ProcessingFailed"
    PROCESSING_TIMEOUT = "ProcessingTimeout"
    TRANSPORT_ERROR = "TransportError"


class PredictionState(StrEnum):
    """Lifecycle of a background-removal job as seen by the poller."""

    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


# Provider statuses that end polling.
TERMINAL_PREDICTION_STATUSES = frozenset({"succeeded", "failed", "canceled"})

ALLOWED_IMAGE_FORMATS = ("jpg", "jpeg", "png", "webp", "gif", "auto")
ALLOWED_RESIZE_MODES = ("fit", "fill", "crop", "scale")

ALLOWED_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
)

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
