"""Content mutation tools backed by the edit engine."""

from __future__ import annotations

from toolcore.errors import BadRequest
from toolcore.tools.filesystem import PATH_HINT
from toolcore.tools.registry import ToolDescriptor, ToolHandler
from toolcore.tools.schema import param
from toolcore.tools.services import ToolServices, require_workspace
from toolcore.workspace import Workspace

DIFF_FORMAT = (
    "<<<<<<< SEARCH\n:start_line:10\n-------\nold code here\n=======\nnew code here\n"
    ">>>>>>> REPLACE"
)
NO_FENCE_HINT = "CRITICAL: Do NOT wrap this content in markdown backticks (```)."


def editing_tools(services: ToolServices) -> list[ToolDescriptor]:
    filename = param("filename", "string", PATH_HINT, required=True)
    return [
        ToolDescriptor(
            name="create_file",
            handler=_create_file_handler(services),
            description="Creates a new file, replacing any existing one. " + PATH_HINT,
            parameters=(
                filename,
                param("content", "string", "Raw text content. " + NO_FENCE_HINT, default=""),
            ),
            creates_checkpoint=True,
            mutates=True,
        ),
        ToolDescriptor(
            name="edit_file",
            handler=_edit_file_handler(services),
            description=(
                "The primary tool for file modifications. Provide EITHER 'content' for a full "
                "rewrite OR an 'edits' array of replace_lines/insert_lines operations. Read the "
                "file first and strip any ' | ' line-number prefixes from new content."
            ),
            parameters=(
                filename,
                param("content", "string", "Complete file content. " + NO_FENCE_HINT),
                param(
                    "edits",
                    "array",
                    "Targeted edits: {type: replace_lines, start_line, end_line, "
                    "expected_content, new_content} or {type: insert_lines, line_number, "
                    "new_content}.",
                    items="object",
                ),
            ),
            creates_checkpoint=True,
            mutates=True,
        ),
        ToolDescriptor(
            name="apply_diff",
            handler=_apply_diff_handler(services),
            description=(
                "Apply precise, surgical changes using SEARCH/REPLACE blocks in the exact "
                f"format:\n\n{DIFF_FORMAT}\n\nUse read_file with include_line_numbers=true "
                "first to copy the current content verbatim."
            ),
            parameters=(
                filename,
                param("diff", "string", "One or more diff blocks.", required=True),
            ),
            creates_checkpoint=True,
            mutates=True,
        ),
        ToolDescriptor(
            name="append_to_file",
            handler=_append_handler(services),
            description="Appends content to the end of a file, creating it when missing.",
            parameters=(
                filename,
                param("content", "string", "Content to append. " + NO_FENCE_HINT, required=True),
            ),
            creates_checkpoint=True,
            mutates=True,
        ),
        ToolDescriptor(
            name="undo_last_change",
            handler=_undo_handler(services),
            description="Reverts the most recent file modification made by a tool.",
            mutates=True,
        ),
    ]


def _create_file_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        return await services.edits.create(
            ws, str(arguments["filename"]), str(arguments.get("content") or "")
        )

    return handler


def _edit_file_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        filename = str(arguments["filename"])
        content = arguments.get("content")
        edits = arguments.get("edits")
        if content is not None and edits is not None:
            raise BadRequest(
                "Provide either 'content' or 'edits' for edit_file, not both.",
                hint="Use 'edits' for targeted changes and 'content' only for full rewrites.",
            )
        if content is None and edits is None:
            raise BadRequest(
                "Either 'content' or 'edits' parameter is required for edit_file.",
                hint="Read the file first, then send targeted 'edits' or the full 'content'.",
            )
        if edits is not None:
            if not isinstance(edits, list) or not edits:
                raise BadRequest("The 'edits' parameter must be a non-empty array.")
            return await services.edits.edit_lines(ws, filename, edits)
        return await services.edits.rewrite(ws, filename, str(content))

    return handler


def _apply_diff_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        return await services.edits.apply_diff(
            ws, str(arguments["filename"]), str(arguments["diff"])
        )

    return handler


def _append_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        return await services.edits.append(
            ws, str(arguments["filename"]), str(arguments["content"])
        )

    return handler


def _undo_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        _: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        return await services.edits.undo_last(require_workspace(workspace))

    return handler
