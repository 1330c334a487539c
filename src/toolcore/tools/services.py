"""Collaborators shared by the built-in tool handlers."""

from __future__ import annotations

from dataclasses import dataclass

from toolcore.analysis import AnalysisCache, InsightsLedger
from toolcore.config import ServerConfig
from toolcore.edit import EditEngine
from toolcore.editor import EditorBridge
from toolcore.errors import BadRequest
from toolcore.index import IndexManager
from toolcore.logging import JsonlToolLogger
from toolcore.research import HostClient, ResearchEngine
from toolcore.tasks import TaskManager
from toolcore.tools.cache import ResultCache
from toolcore.tools.error_analyzer import ErrorAnalyzer
from toolcore.tools.metrics import ToolMetrics
from toolcore.tools.registry import ToolRegistry
from toolcore.validation import SyntaxValidator
from toolcore.workers import WorkerPool
from toolcore.workspace import Workspace


@dataclass(slots=True, frozen=True)
class ToolServices:
    """Everything a handler may touch, built once by the composition root."""

    config: ServerConfig
    registry: ToolRegistry
    editor: EditorBridge
    edits: EditEngine
    index: IndexManager
    workers: WorkerPool
    validator: SyntaxValidator
    analysis_cache: AnalysisCache
    insights: InsightsLedger
    host: HostClient
    research: ResearchEngine
    tasks: TaskManager
    tool_log: JsonlToolLogger
    result_cache: ResultCache
    error_analyzer: ErrorAnalyzer
    metrics: ToolMetrics


def require_workspace(workspace: Workspace | None) -> Workspace:
    if workspace is None:
        raise BadRequest(
            "No workspace is open. Please ask the user to open a folder before using this tool."
        )
    return workspace


def string_list(arguments: dict[str, object], key: str, tool: str) -> list[str]:
    """Non-empty list of non-empty strings."""
    value = arguments.get(key)
    if (
        not isinstance(value, list)
        or not value
        or not all(isinstance(item, str) and item.strip() for item in value)
    ):
        raise BadRequest(
            f"The '{key}' parameter is required for {tool} and must be a non-empty array "
            "of strings."
        )
    return [str(item) for item in value]
