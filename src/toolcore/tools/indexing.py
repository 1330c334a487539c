"""Codebase index tools and project-wide content search."""

from __future__ import annotations

import asyncio

from toolcore.errors import Conflict, NotFound
from toolcore.index import IndexManager, IndexSchemaUnsupportedError
from toolcore.tools.registry import ToolDescriptor, ToolHandler
from toolcore.tools.schema import param
from toolcore.tools.services import ToolServices, require_workspace, string_list
from toolcore.workspace import Workspace

NO_INDEX_MESSAGE = "No codebase index. Please run 'build_or_update_codebase_index'."


def indexing_tools(services: ToolServices) -> list[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="build_or_update_codebase_index",
            handler=_build_index_handler(services),
            description=(
                "Scans the codebase to build a searchable index. Unchanged files are skipped."
            ),
            parameters=(
                param("force", "boolean", "Rebuild every file from scratch.", default=False),
            ),
            timeout_seconds=300.0,
        ),
        ToolDescriptor(
            name="query_codebase",
            handler=_query_handler(services),
            description="Searches definitions and content in the pre-built codebase index.",
            parameters=(param("query", "string", "Text to look for.", required=True),),
        ),
        ToolDescriptor(
            name="reindex_codebase_paths",
            handler=_reindex_handler(services),
            description="Re-indexes specific files or folders after they changed.",
            parameters=(
                param(
                    "paths",
                    "array",
                    "Files or folders to refresh.",
                    required=True,
                    items="string",
                ),
            ),
        ),
        ToolDescriptor(
            name="search_code",
            handler=_search_code_handler(services),
            description="Searches for a string in all indexed files (like grep).",
            parameters=(param("search_term", "string", "Text to search for.", required=True),),
            timeout_seconds=120.0,
        ),
    ]


def _schema_conflict(error: IndexSchemaUnsupportedError) -> Conflict:
    return Conflict(
        f"Stored index schema {error.found} is not supported (expected {error.expected}).",
        hint="Run build_or_update_codebase_index with force=true to rebuild it.",
    )


def _index_available(index: IndexManager) -> bool:
    try:
        return index.exists()
    except IndexSchemaUnsupportedError as error:
        raise _schema_conflict(error) from error


def _build_index_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        force = bool(arguments.get("force"))
        try:
            stats = await asyncio.to_thread(services.index.build, ws, force)
        except IndexSchemaUnsupportedError as error:
            raise _schema_conflict(error) from error
        return {
            "message": (
                f"Codebase index updated. {stats.indexed} files indexed, {stats.skipped} files "
                f"skipped (unchanged), {stats.deleted} files removed."
            ),
            "stats": {"indexed": stats.indexed, "skipped": stats.skipped, "deleted": stats.deleted},
        }

    return handler


def _query_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        if not _index_available(services.index):
            raise NotFound(NO_INDEX_MESSAGE, hint="Build the index, then query again.")
        results = services.index.query(str(arguments["query"]))
        limit = require_workspace(workspace).limits.max_search_hits
        return {"results": results[:limit]}

    return handler


def _reindex_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        paths = string_list(arguments, "paths", "reindex_codebase_paths")
        if not _index_available(services.index):
            raise NotFound(
                "No codebase index found. Please run 'build_or_update_codebase_index' first."
            )
        counts = await asyncio.to_thread(services.index.reindex_paths, ws, paths)
        return {
            "message": (
                "Re-indexing complete for specified paths. "
                f"{counts['updated']} files were updated, {counts['removed']} removed."
            ),
            "stats": counts,
        }

    return handler


def _search_code_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        term = str(arguments["search_term"])
        if not _index_available(services.index):
            await asyncio.to_thread(services.index.build, ws, False)
        files = [[path, record.content] for path, record in services.index.records().items()]
        outcome = await services.workers.run_with_fallback("search", {"files": files, "term": term})
        results = list(outcome["results"])
        payload: dict[str, object] = {
            "summary": f"Search complete. Found {len(results)} files with matches.",
            "results": results,
        }
        if outcome.get("fallback"):
            payload["fallback"] = True
        return payload

    return handler
