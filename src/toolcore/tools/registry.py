"""Deterministic tool registration primitives."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field

from toolcore.tools.schema import ParamSpec, param, parameters_schema
from toolcore.workspace import Workspace

ToolHandler = Callable[[dict[str, object], Workspace | None], Awaitable[dict[str, object]]]


@dataclass(slots=True, frozen=True)
class ToolDescriptor:
    """Everything the dispatcher needs to know about one tool."""

    name: str
    handler: ToolHandler
    requires_project: bool = True
    creates_checkpoint: bool = False
    description: str = ""
    parameters: tuple[ParamSpec, ...] = ()
    cacheable: bool = False
    mutates: bool = False
    timeout_seconds: float | None = None

    def definition(self) -> dict[str, object]:
        """LLM-facing declaration of the tool."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": parameters_schema(self.parameters),
        }


@dataclass(slots=True)
class ToolRegistry:
    """In-memory tool registry preserving deterministic insertion order."""

    _descriptors: dict[str, ToolDescriptor] = field(default_factory=dict)

    def register(
        self, name: str, descriptor: ToolDescriptor | Mapping[str, object]
    ) -> ToolDescriptor:
        """Register or override a tool; mappings are normalized into descriptors."""
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Tool name must be a non-empty string.")
        if isinstance(descriptor, ToolDescriptor):
            normalized = descriptor if descriptor.name == name else _renamed(descriptor, name)
        elif isinstance(descriptor, Mapping):
            normalized = _from_mapping(name, descriptor)
        else:
            raise ValueError(f"Descriptor for tool '{name}' must be a ToolDescriptor or mapping.")
        if not callable(normalized.handler):
            raise ValueError(f"Handler for tool '{name}' must be callable.")
        self._descriptors[name] = normalized
        return normalized

    def register_all(
        self, descriptors: Mapping[str, ToolDescriptor | Mapping[str, object]]
    ) -> None:
        for name, descriptor in descriptors.items():
            self.register(name, descriptor)

    def get(self, name: str) -> ToolDescriptor | None:
        """Return a descriptor by name."""
        return self._descriptors.get(name)

    def list(self) -> tuple[str, ...]:
        """Return registered tool names in deterministic order."""
        return tuple(self._descriptors.keys())

    def descriptors(self) -> tuple[ToolDescriptor, ...]:
        return tuple(self._descriptors.values())

    def definitions(self) -> list[dict[str, object]]:
        return [descriptor.definition() for descriptor in self._descriptors.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)


def _renamed(descriptor: ToolDescriptor, name: str) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        handler=descriptor.handler,
        requires_project=descriptor.requires_project,
        creates_checkpoint=descriptor.creates_checkpoint,
        description=descriptor.description,
        parameters=descriptor.parameters,
        cacheable=descriptor.cacheable,
        mutates=descriptor.mutates,
        timeout_seconds=descriptor.timeout_seconds,
    )


def _from_mapping(name: str, payload: Mapping[str, object]) -> ToolDescriptor:
    handler = payload.get("handler")
    if not callable(handler):
        raise ValueError(f"Handler for tool '{name}' must be callable.")
    timeout = payload.get("timeout_seconds")
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        raise ValueError(f"timeout_seconds for tool '{name}' must be a positive number.")
    return ToolDescriptor(
        name=name,
        handler=handler,
        requires_project=bool(payload.get("requires_project", True)),
        creates_checkpoint=bool(payload.get("creates_checkpoint", False)),
        description=str(payload.get("description", "")),
        parameters=_parameters_from(name, payload.get("parameters")),
        cacheable=bool(payload.get("cacheable", False)),
        mutates=bool(payload.get("mutates", False)),
        timeout_seconds=float(timeout) if timeout is not None else None,
    )


def _parameters_from(name: str, raw: object) -> tuple[ParamSpec, ...]:
    """Accept ParamSpec sequences, spec mappings, or a JSON-schema object."""
    if raw is None:
        return ()
    if isinstance(raw, Mapping) and isinstance(raw.get("properties"), Mapping):
        required = set(raw.get("required") or ())
        items = [
            {"name": key, **dict(value), "required": key in required}
            for key, value in raw["properties"].items()
            if isinstance(value, Mapping)
        ]
        return _parameters_from(name, items)
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise ValueError(f"Parameters for tool '{name}' must be a list or a JSON schema.")
    specs: list[ParamSpec] = []
    for entry in raw:
        if isinstance(entry, ParamSpec):
            specs.append(entry)
            continue
        if not isinstance(entry, Mapping) or not isinstance(entry.get("name"), str):
            raise ValueError(f"Invalid parameter declaration for tool '{name}': {entry!r}")
        items_value = entry.get("items")
        if isinstance(items_value, Mapping):
            items_value = items_value.get("type")
        extra: dict[str, object] = {}
        if "default" in entry:
            extra["default"] = entry["default"]
        enum = entry.get("enum")
        specs.append(
            param(
                str(entry["name"]),
                str(entry.get("type", "string")).lower(),
                str(entry.get("description", "")),
                required=bool(entry.get("required", False)),
                enum=list(enum) if isinstance(enum, Sequence) else None,
                items=str(items_value) if items_value is not None else None,
                **extra,
            )
        )
    return tuple(specs)
