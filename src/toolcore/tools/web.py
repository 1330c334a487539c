"""Web access tools delegated to the hosting application."""

from __future__ import annotations

from toolcore.research import ResearchOptions
from toolcore.tools.registry import ToolDescriptor, ToolHandler
from toolcore.tools.schema import param
from toolcore.tools.services import ToolServices
from toolcore.workspace import Workspace

# Headroom so the engine's own deadline fires before the dispatcher's timeout.
RESEARCH_TIMEOUT_SLACK_SECONDS = 5.0


def web_tools(services: ToolServices) -> list[ToolDescriptor]:
    research = services.config.research
    return [
        ToolDescriptor(
            name="read_url",
            handler=_read_url_handler(services),
            description=(
                "Reads and extracts the main content and all links from a given URL. "
                'The result has "content" and "links" properties.'
            ),
            parameters=(param("url", "string", "Absolute http(s) URL.", required=True),),
            requires_project=False,
            cacheable=True,
        ),
        ToolDescriptor(
            name="duckduckgo_search",
            handler=_search_handler(services),
            description="Performs a web search and returns titles, links and snippets.",
            parameters=(param("query", "string", "Search query.", required=True),),
            requires_project=False,
            cacheable=True,
        ),
        ToolDescriptor(
            name="perform_research",
            handler=_research_handler(services),
            description=(
                "Performs multi-stage web research: broad searches, link following and "
                "targeted searches for knowledge gaps. Returns a summary, the extracted "
                "content and every source read."
            ),
            parameters=(
                param("query", "string", "The research topic to investigate.", required=True),
                param("queries", "array", "Explicit search queries to run first.", items="string"),
                param("max_results", "integer", "URLs to read per search (1-6).", default=3),
                param("depth", "integer", "Maximum link-following depth (1-4).", default=2),
                param(
                    "relevance_threshold",
                    "number",
                    "Minimum relevance score to read a URL (0.3-1.0). Lower reads more URLs.",
                    default=0.7,
                ),
                param("task_id", "string", "Task whose stage subtasks track the research."),
                param(
                    "deadline_ms",
                    "integer",
                    "Time budget for the whole session in milliseconds.",
                    default=research.deadline_ms,
                ),
            ),
            requires_project=False,
            timeout_seconds=research.max_deadline_ms / 1000 + RESEARCH_TIMEOUT_SLACK_SECONDS,
        ),
    ]


def _read_url_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        return await services.host.read_url(str(arguments["url"]))

    return handler


def _search_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        return await services.host.search(str(arguments["query"]))

    return handler


def _research_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        options = research_options(arguments, services.config.research.deadline_ms)
        return await services.research.perform_research(options)

    return handler


def _given(arguments: dict[str, object], name: str, default: object) -> object:
    value = arguments.get(name)
    return default if value is None else value


def research_options(arguments: dict[str, object], default_deadline_ms: int) -> ResearchOptions:
    """Build options from tool arguments; explicit zeros are kept for the engine to clamp."""
    queries = arguments.get("queries")
    task_id = arguments.get("task_id")
    return ResearchOptions(
        query=str(arguments["query"]),
        queries=tuple(str(item) for item in queries) if queries else None,
        max_results=int(_given(arguments, "max_results", 3)),
        depth=int(_given(arguments, "depth", 2)),
        relevance_threshold=float(_given(arguments, "relevance_threshold", 0.7)),
        task_id=str(task_id) if task_id else None,
        deadline_ms=int(_given(arguments, "deadline_ms", default_deadline_ms)),
    )
