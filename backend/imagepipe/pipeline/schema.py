"""
Step schema — the closed set of operations and the parameters each accepts.

STEP_SCHEMA is declarative: the validator walks it to check raw input,
and build_params() turns checked raw params into the typed, frozen
params object for the operation.  Downstream code (engine, steps,
clients) only ever sees the typed objects.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Any, Iterator, Mapping, Union

from imagepipe.core.constants import (
    ALLOWED_IMAGE_FORMATS,
    ALLOWED_RESIZE_MODES,
    Operation,
    ParamType,
)


# ═══════════════════════════════════════════════════════════
#  ParamSpec
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ParamSpec:
    """
    Declared type and constraints of one step parameter.

    Args:
        type: Expected value type.
        required: Whether the parameter must be present.
        minimum / maximum: Inclusive numeric bounds.
        exclusive_minimum: Numeric lower bound the value must exceed.
        choices: Allowed values for strings (compared lower-cased).
    """

    type: ParamType
    required: bool = False
    minimum: float | None = None
    maximum: float | None = None
    exclusive_minimum: float | None = None
    choices: tuple[str, ...] = ()

    def describe(self) -> str:
        """Human-readable constraint text used in validation messages."""
        if self.choices:
            return "one of: " + ", ".join(self.choices)
        if self.minimum is not None and self.maximum is not None:
            return f"between {_fmt(self.minimum)} and {_fmt(self.maximum)}"
        if self.exclusive_minimum is not None:
            return f"greater than {_fmt(self.exclusive_minimum)}"
        return f"of type {self.type.value}"


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


def parse_numeric(value: Any) -> float | None:
    """
    Return the numeric value of an int, float or numeric string.

    Booleans, non-finite numbers (including ints too large for a float)
    and anything else return None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _number(value: Any) -> int | float | None:
    number = parse_numeric(value)
    if number is None:
        return None
    return int(number) if number.is_integer() else number


def _lower(value: Any) -> str | None:
    return value.lower() if isinstance(value, str) else None


# ═══════════════════════════════════════════════════════════
#  Typed params (one per operation)
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class _Params:
    def to_form(self) -> dict[str, str]:
        """Non-empty params as string form fields for remote APIs."""
        form = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                form[f.name] = str(value)
        return form


@dataclass(frozen=True)
class OptimizeParams(_Params):
    quality: int | float | None = None
    format: str | None = None


@dataclass(frozen=True)
class ResizeParams(_Params):
    width: int | float | None = None
    height: int | float | None = None
    mode: str | None = None


@dataclass(frozen=True)
class ConvertParams(_Params):
    format: str


@dataclass(frozen=True)
class RemoveBackgroundParams(_Params):
    pass


StepParams = Union[OptimizeParams, ResizeParams, ConvertParams, RemoveBackgroundParams]


# ═══════════════════════════════════════════════════════════
#  Schema registry
# ═══════════════════════════════════════════════════════════

_FORMAT = ParamSpec(ParamType.STRING, choices=ALLOWED_IMAGE_FORMATS)
_DIMENSION = ParamSpec(ParamType.NUMERIC, exclusive_minimum=0)

STEP_SCHEMA: dict[Operation, dict[str, ParamSpec]] = {
    Operation.OPTIMIZE: {
        "quality": ParamSpec(ParamType.NUMERIC, minimum=0, maximum=100),
        "format": _FORMAT,
    },
    Operation.RESIZE: {
        "width": _DIMENSION,
        "height": _DIMENSION,
        "mode": ParamSpec(ParamType.STRING, choices=ALLOWED_RESIZE_MODES),
    },
    Operation.CONVERT: {
        "format": ParamSpec(ParamType.STRING, required=True, choices=ALLOWED_IMAGE_FORMATS),
    },
    Operation.REMOVE_BACKGROUND: {},
}

PARAMS_TYPES: dict[Operation, type[_Params]] = {
    Operation.OPTIMIZE: OptimizeParams,
    Operation.RESIZE: ResizeParams,
    Operation.CONVERT: ConvertParams,
    Operation.REMOVE_BACKGROUND: RemoveBackgroundParams,
}


def allowed_operations() -> list[str]:
    return [op.value for op in Operation]


def build_params(operation: Operation, raw: Mapping[str, Any] | None) -> StepParams:
    """
    Build the typed params for an operation from already-validated input.

    Numbers are normalised (numeric strings become int/float) and string
    choices are lower-cased.  Keys the schema does not declare are dropped.
    """
    raw = raw or {}
    values: dict[str, Any] = {}
    for name, spec in STEP_SCHEMA[operation].items():
        if raw.get(name) is None:
            continue
        if spec.type is ParamType.NUMERIC:
            values[name] = _number(raw[name])
        elif spec.type is ParamType.STRING:
            values[name] = _lower(raw[name]) if spec.choices else raw[name]
        else:
            values[name] = raw[name]
    return PARAMS_TYPES[operation](**values)


# ═══════════════════════════════════════════════════════════
#  Step / PipelineDefinition
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Step:
    """One operation and its typed params."""

    operation: Operation
    params: StepParams

    def to_dict(self) -> dict[str, Any]:
        return {"operation": self.operation.value, "params": self.params.to_form()}


@dataclass(frozen=True)
class PipelineDefinition:
    """Ordered, non-empty, validated sequence of steps."""

    steps: tuple[Step, ...]

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError("A pipeline needs at least one step")

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)
