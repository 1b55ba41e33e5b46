"""
Pipeline validator — static checks on a raw pipeline definition.

validate() never stops at the first problem: every step is checked and
every issue is returned, so a client can fix a definition in one round
trip.  It has no side effects and never raises for bad input.

parse_definition() is the boundary between untrusted input and the
engine: it validates and then builds the typed PipelineDefinition.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from imagepipe.core.constants import Operation, ParamType, ValidationErrorKind
from imagepipe.pipeline.errors import PipelineValidationError
from imagepipe.pipeline.schema import (
    STEP_SCHEMA,
    ParamSpec,
    PipelineDefinition,
    Step,
    allowed_operations,
    build_params,
    parse_numeric,
)


@dataclass(frozen=True)
class ValidationIssue:
    """One problem in a pipeline definition."""

    kind: ValidationErrorKind
    message: str
    step: int | None = None         # 1-based position in the definition
    param: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "step": self.step,
            "param": self.param,
        }


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def validate(definition: Any) -> list[ValidationIssue]:
    """Return every problem found in a raw definition; empty means valid."""
    if not _is_sequence(definition) or len(definition) == 0:
        return [ValidationIssue(
            ValidationErrorKind.EMPTY_PIPELINE,
            "Pipeline must be a non-empty list of steps.",
        )]

    issues: list[ValidationIssue] = []
    for index, entry in enumerate(definition):
        issues.extend(_validate_step(index + 1, entry))
    return issues


def _validate_step(step_num: int, entry: Any) -> list[ValidationIssue]:
    if not isinstance(entry, Mapping):
        return [ValidationIssue(
            ValidationErrorKind.MALFORMED_STEP,
            f"Pipeline step {step_num} must be an object.",
            step=step_num,
        )]

    operation = entry.get("operation")
    if not isinstance(operation, str) or not operation.strip():
        return [ValidationIssue(
            ValidationErrorKind.MISSING_OPERATION,
            f"Pipeline step {step_num} is missing a valid 'operation' string.",
            step=step_num,
        )]

    if operation not in allowed_operations():
        return [ValidationIssue(
            ValidationErrorKind.UNSUPPORTED_OPERATION,
            f"Pipeline step {step_num} has an unsupported operation: '{operation}'. "
            f"Allowed: {', '.join(allowed_operations())}",
            step=step_num,
        )]

    params = entry.get("params")
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        return [ValidationIssue(
            ValidationErrorKind.MALFORMED_PARAMS,
            f"Pipeline step {step_num} ('{operation}') has invalid 'params'. Must be an object.",
            step=step_num,
        )]

    issues = []
    for name, spec in STEP_SCHEMA[Operation(operation)].items():
        issue = _check_param(step_num, operation, name, spec, params.get(name))
        if issue is not None:
            issues.append(issue)
    return issues


def _check_param(
    step_num: int,
    operation: str,
    name: str,
    spec: ParamSpec,
    value: Any,
) -> ValidationIssue | None:
    prefix = f"Pipeline step {step_num} ('{operation}'): Parameter '{name}'"

    if value is None:
        if spec.required:
            return ValidationIssue(
                ValidationErrorKind.INVALID_PARAM_VALUE,
                f"{prefix} is required.",
                step=step_num,
                param=name,
            )
        return None

    if not _matches_type(spec.type, value):
        return ValidationIssue(
            ValidationErrorKind.INVALID_PARAM_TYPE,
            f"{prefix} must be of type {spec.type.value}.",
            step=step_num,
            param=name,
        )

    if not _meets_constraints(spec, value):
        return ValidationIssue(
            ValidationErrorKind.INVALID_PARAM_VALUE,
            f"{prefix} must be {spec.describe()}.",
            step=step_num,
            param=name,
        )
    return None


def _matches_type(param_type: ParamType, value: Any) -> bool:
    if param_type is ParamType.NUMERIC:
        return parse_numeric(value) is not None
    if param_type is ParamType.STRING:
        return isinstance(value, str)
    return isinstance(value, bool)


def _meets_constraints(spec: ParamSpec, value: Any) -> bool:
    if spec.type is ParamType.NUMERIC:
        number = parse_numeric(value)
        if spec.minimum is not None and number < spec.minimum:
            return False
        if spec.maximum is not None and number > spec.maximum:
            return False
        if spec.exclusive_minimum is not None and number <= spec.exclusive_minimum:
            return False
    if spec.choices and value.lower() not in spec.choices:
        return False
    return True


def parse_definition(raw: Any) -> PipelineDefinition:
    """
    Validate a raw definition and build the typed PipelineDefinition.

    Raises:
        PipelineValidationError: carrying every issue found.
    """
    issues = validate(raw)
    if issues:
        raise PipelineValidationError(issues)

    return PipelineDefinition(steps=tuple(
        Step(
            operation=Operation(entry["operation"]),
            params=build_params(Operation(entry["operation"]), entry.get("params")),
        )
        for entry in raw
    ))
