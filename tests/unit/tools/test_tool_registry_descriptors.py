from __future__ import annotations

import pytest

from toolcore.tools import ToolDescriptor, ToolRegistry
from toolcore.tools.schema import param
from toolcore.workspace import Workspace


async def _noop(arguments: dict[str, object], workspace: Workspace | None) -> dict[str, object]:
    return {}


def test_registry_preserves_insertion_order() -> None:
    registry = ToolRegistry()

    for name in ("zeta", "alpha", "mid"):
        registry.register(name, ToolDescriptor(name=name, handler=_noop))
    registry.register("alpha", ToolDescriptor(name="alpha", handler=_noop, cacheable=True))

    assert registry.list() == ("zeta", "alpha", "mid")
    assert len(registry) == 3
    assert "alpha" in registry and "missing" not in registry
    descriptor = registry.get("alpha")
    assert descriptor is not None and descriptor.cacheable is True


def test_descriptor_registered_under_another_name_is_renamed() -> None:
    registry = ToolRegistry()

    stored = registry.register(
        "read_file", ToolDescriptor(name="old", handler=_noop, mutates=True, timeout_seconds=2)
    )

    assert stored.name == "read_file"
    assert (stored.mutates, stored.timeout_seconds) == (True, 2)
    assert registry.get("old") is None


def test_mapping_with_json_schema_parameters_is_normalized() -> None:
    registry = ToolRegistry()

    stored = registry.register(
        "search",
        {
            "handler": _noop,
            "description": "Search things.",
            "requires_project": False,
            "timeout_seconds": 5,
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Text."},
                    "limit": {"type": "integer", "default": 10},
                    "kinds": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["query"],
            },
        },
    )

    assert stored.requires_project is False
    assert stored.timeout_seconds == 5.0
    assert [spec.name for spec in stored.parameters] == ["query", "limit", "kinds"]
    assert stored.parameters[0].required is True
    assert stored.parameters[1].default == 10
    assert stored.parameters[2].items == "string"


def test_mapping_with_spec_list_is_normalized() -> None:
    registry = ToolRegistry()

    stored = registry.register(
        "mixed",
        {
            "handler": _noop,
            "parameters": [
                param("path", "string", required=True),
                {"name": "mode", "type": "STRING", "enum": ["a", "b"]},
            ],
        },
    )

    assert stored.parameters[0].name == "path"
    assert stored.parameters[1].type == "string"
    assert stored.parameters[1].enum == ("a", "b")


@pytest.mark.parametrize(
    ("name", "descriptor", "message"),
    [
        ("", {"handler": _noop}, "non-empty string"),
        ("   ", {"handler": _noop}, "non-empty string"),
        ("tool", {"handler": "not callable"}, "must be callable"),
        ("tool", {"handler": _noop, "timeout_seconds": 0}, "positive number"),
        ("tool", {"handler": _noop, "parameters": "query"}, "list or a JSON schema"),
        ("tool", {"handler": _noop, "parameters": [{"type": "string"}]}, "Invalid parameter"),
        ("tool", {"handler": _noop, "parameters": [{"name": "x", "type": "date"}]}, "Unsupported"),
        ("tool", 42, "ToolDescriptor or mapping"),
    ],
)
def test_invalid_registrations_raise_value_error(
    name: str, descriptor: object, message: str
) -> None:
    registry = ToolRegistry()

    with pytest.raises(ValueError, match=message):
        registry.register(name, descriptor)  # type: ignore[arg-type]

    assert len(registry) == 0


def test_definitions_expose_json_schema() -> None:
    registry = ToolRegistry()
    registry.register_all(
        {
            "read_file": ToolDescriptor(
                name="read_file",
                handler=_noop,
                description="Reads a file.",
                parameters=(
                    param("filename", "string", "Relative path.", required=True),
                    param("include_line_numbers", "boolean", default=False),
                ),
            ),
            "list_tools": {"handler": _noop, "requires_project": False},
        }
    )

    definitions = registry.definitions()

    assert [item["name"] for item in definitions] == ["read_file", "list_tools"]
    assert definitions[0] == {
        "name": "read_file",
        "description": "Reads a file.",
        "parameters": {
            "type": "object",
            "properties": {
                "filename": {"type": "string", "description": "Relative path."},
                "include_line_numbers": {"type": "boolean", "default": False},
            },
            "required": ["filename"],
        },
    }
    assert definitions[1]["parameters"] == {"type": "object", "properties": {}, "required": []}
