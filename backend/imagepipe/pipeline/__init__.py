"""
Pipeline Engine — image processing orchestrator.

This package validates a submitted sequence of image operations and
runs it against a batch of files, threading each step's output into the
next step, with per-file outcomes and a structured run result.
"""

from imagepipe.pipeline.engine import PipelineEngine, PipelineResult
from imagepipe.pipeline.context import RequestContext, StepOutcome, StepResult, WorkingFile
from imagepipe.pipeline.step import PipelineStep
from imagepipe.pipeline.validator import ValidationIssue, parse_definition, validate

__all__ = [
    "PipelineEngine",
    "PipelineResult",
    "PipelineStep",
    "RequestContext",
    "StepOutcome",
    "StepResult",
    "ValidationIssue",
    "WorkingFile",
    "parse_definition",
    "validate",
]
