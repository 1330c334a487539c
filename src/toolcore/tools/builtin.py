"""Built-in tool set registration and introspection tools."""

from __future__ import annotations

from toolcore.tools.code_intel import code_intel_tools
from toolcore.tools.editing import editing_tools
from toolcore.tools.filesystem import filesystem_tools
from toolcore.tools.indexing import indexing_tools
from toolcore.tools.registry import ToolDescriptor, ToolHandler, ToolRegistry
from toolcore.tools.schema import param
from toolcore.tools.services import ToolServices
from toolcore.tools.tasks import task_tools
from toolcore.tools.web import web_tools
from toolcore.workspace import Workspace

MAX_LOG_ENTRIES = 500


def register_builtin_tools(registry: ToolRegistry, services: ToolServices) -> None:
    """Register every built-in tool in a stable order."""
    groups = (
        introspection_tools(services),
        filesystem_tools(services),
        editing_tools(services),
        indexing_tools(services),
        code_intel_tools(services),
        web_tools(services),
        task_tools(services),
    )
    for descriptors in groups:
        for descriptor in descriptors:
            registry.register(descriptor.name, descriptor)


def introspection_tools(services: ToolServices) -> list[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="list_tools",
            handler=_list_tools_handler(services),
            requires_project=False,
            description="Lists all available tools.",
        ),
        ToolDescriptor(
            name="get_tool_log",
            handler=_tool_log_handler(services),
            requires_project=False,
            description="Returns recent tool calls from the persisted execution log.",
            parameters=(
                param("since", "string", "Only entries at or after this ISO-8601 timestamp."),
                param("limit", "integer", "Maximum entries to return.", default=100),
            ),
        ),
    ]


def _list_tools_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        _: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        names = services.registry.list()
        return {"tools": list(names), "count": len(names)}

    return handler


def _tool_log_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", 100)

        since: str | None = since_value if isinstance(since_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else 100
        if limit < 1:
            limit = 1
        if limit > MAX_LOG_ENTRIES:
            limit = MAX_LOG_ENTRIES

        return {"entries": services.tool_log.read(since, limit)}

    return handler
