"""Parameter descriptor language and argument coercion."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from toolcore.errors import BadRequest

PARAM_TYPES = ("string", "number", "integer", "boolean", "array", "object")

_MISSING = object()


@dataclass(slots=True, frozen=True)
class ParamSpec:
    """One tool parameter declaration."""

    name: str
    type: str
    required: bool = False
    description: str = ""
    enum: tuple[object, ...] | None = None
    items: str | None = None
    default: object = _MISSING

    def __post_init__(self) -> None:
        if self.type not in PARAM_TYPES:
            raise ValueError(f"Unsupported parameter type for {self.name}: {self.type}")
        if self.items is not None and self.items not in PARAM_TYPES:
            raise ValueError(f"Unsupported array item type for {self.name}: {self.items}")

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING

    def to_schema(self) -> dict[str, object]:
        """JSON-schema fragment for LLM-facing declarations."""
        schema: dict[str, object] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.type == "array" and self.items is not None:
            schema["items"] = {"type": self.items}
        if self.has_default:
            schema["default"] = self.default
        return schema


def param(
    name: str,
    type_: str,
    description: str = "",
    *,
    required: bool = False,
    enum: Sequence[object] | None = None,
    items: str | None = None,
    default: object = _MISSING,
) -> ParamSpec:
    """Shorthand used by tool registrations."""
    return ParamSpec(
        name=name,
        type=type_,
        required=required,
        description=description,
        enum=tuple(enum) if enum is not None else None,
        items=items,
        default=default,
    )


def parameters_schema(specs: Sequence[ParamSpec]) -> dict[str, object]:
    return {
        "type": "object",
        "properties": {spec.name: spec.to_schema() for spec in specs},
        "required": [spec.name for spec in specs if spec.required],
    }


def coerce_arguments(
    tool: str, specs: Sequence[ParamSpec], arguments: Mapping[str, object]
) -> dict[str, object]:
    """Validate and coerce arguments against parameter specs.

    Defaults are applied for absent optional parameters, numeric strings and
    ``"true"``/``"false"`` are converted, array element types and enums are
    checked. Arguments without a spec pass through untouched.
    """
    coerced = dict(arguments)
    missing: list[str] = []
    for spec in specs:
        value = coerced.get(spec.name, _MISSING)
        if value is _MISSING or value is None:
            if spec.required:
                missing.append(spec.name)
            elif spec.has_default:
                coerced[spec.name] = spec.default
            continue
        value = _coerce_value(tool, spec.name, spec.type, value)
        if spec.type == "array" and spec.items is not None:
            value = [
                _coerce_value(tool, f"{spec.name}[{index}]", spec.items, item)
                for index, item in enumerate(value)
            ]
        if spec.enum is not None and value not in spec.enum:
            allowed = ", ".join(str(item) for item in spec.enum)
            raise BadRequest(
                f"Invalid value for '{spec.name}' in {tool}: {value!r}. Allowed: {allowed}.",
                details={"parameter": spec.name},
            )
        coerced[spec.name] = value
    if missing:
        raise BadRequest(
            f"Missing required parameter(s) for {tool}: {', '.join(missing)}.",
            hint="Check the tool definition and supply every required parameter.",
            details={"missing": missing},
        )
    return coerced


def _coerce_value(tool: str, name: str, expected: str, value: object) -> object:
    if expected == "string":
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
    elif expected == "boolean":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
    elif expected == "integer":
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            number = _parse_number(value)
            if number is not None and float(number).is_integer():
                return int(number)
    elif expected == "number":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            number = _parse_number(value)
            if number is not None:
                return number
    elif expected == "array":
        if isinstance(value, list):
            return value
        if isinstance(value, tuple):
            return list(value)
    elif expected == "object":
        if isinstance(value, dict):
            return value
    raise BadRequest(
        f"Invalid type for '{name}' in {tool}: expected {expected}, "
        f"got {type(value).__name__}.",
        details={"parameter": name, "expected": expected},
    )


def _parse_number(text: str) -> int | float | None:
    stripped = text.strip()
    if not stripped:
        return None
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        number = float(stripped)
    except ValueError:
        return None
    return number if math.isfinite(number) else None
