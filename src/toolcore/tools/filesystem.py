"""Workspace file and folder tools."""

from __future__ import annotations

import mimetypes
import re
import shutil
from datetime import UTC, datetime

from toolcore.errors import BadRequest, Conflict, PermissionDenied, ToolError
from toolcore.security import enforce_open_line_limits
from toolcore.tools.registry import ToolDescriptor, ToolHandler
from toolcore.tools.schema import param
from toolcore.tools.services import ToolServices, require_workspace, string_list
from toolcore.workers import BatchJob
from toolcore.workspace import Workspace, format_tree

PATH_HINT = "Do NOT include the root directory name in the path."
LARGE_FILE_GUIDANCE = (
    "Only preview content shown to prevent exceeding context window. File opened in editor. "
    "Use 'read_file_lines' for specific sections or 'edit_file' for targeted modifications."
)


def filesystem_tools(services: ToolServices) -> list[ToolDescriptor]:
    filename = param("filename", "string", PATH_HINT, required=True)
    folder_path = param("folder_path", "string", PATH_HINT, required=True)
    return [
        ToolDescriptor(
            name="get_project_structure",
            handler=_project_structure_handler(),
            description=(
                "Gets the entire file and folder structure of the project. Use it before "
                "reading or creating a file to confirm the correct path."
            ),
            cacheable=True,
        ),
        ToolDescriptor(
            name="read_file",
            handler=_read_file_handler(services),
            description=(
                "Reads a file's content. Set 'include_line_numbers' to true before editing. "
                + PATH_HINT
            ),
            parameters=(
                filename,
                param(
                    "include_line_numbers",
                    "boolean",
                    "Prepend line numbers to each line of the output.",
                    default=False,
                ),
            ),
            cacheable=True,
        ),
        ToolDescriptor(
            name="read_file_lines",
            handler=_read_file_lines_handler(),
            description="Reads a range of lines from a file. Output always includes line numbers.",
            parameters=(
                filename,
                param("start_line", "integer", "First line (1-based).", required=True),
                param("end_line", "integer", "Last line (inclusive).", required=True),
            ),
        ),
        ToolDescriptor(
            name="read_multiple_files",
            handler=_read_multiple_files_handler(services),
            description="Reads and concatenates the content of multiple files.",
            parameters=(
                param("filenames", "array", "Files to read.", required=True, items="string"),
            ),
        ),
        ToolDescriptor(
            name="search_in_file",
            handler=_search_in_file_handler(),
            description="Searches a file for a regular expression and returns matching lines.",
            parameters=(
                filename,
                param("pattern", "string", "Regular expression to search for.", required=True),
                param("context", "integer", "Context lines around each match.", default=2),
            ),
            cacheable=True,
        ),
        ToolDescriptor(
            name="get_file_info",
            handler=_file_info_handler(),
            description="Gets file metadata (size, last modified, type) without reading content.",
            parameters=(filename,),
        ),
        ToolDescriptor(
            name="delete_file",
            handler=_delete_file_handler(services),
            description="Deletes a file. " + PATH_HINT,
            parameters=(filename,),
            creates_checkpoint=True,
            mutates=True,
        ),
        ToolDescriptor(
            name="rename_file",
            handler=_rename_file_handler(services),
            description="Renames a file. " + PATH_HINT,
            parameters=(
                param("old_path", "string", PATH_HINT, required=True),
                param("new_path", "string", PATH_HINT, required=True),
            ),
            creates_checkpoint=True,
            mutates=True,
        ),
        ToolDescriptor(
            name="create_folder",
            handler=_create_folder_handler(),
            description="Creates a new folder. " + PATH_HINT,
            parameters=(folder_path,),
            creates_checkpoint=True,
            mutates=True,
        ),
        ToolDescriptor(
            name="delete_folder",
            handler=_delete_folder_handler(services),
            description="Deletes a folder and all its contents. " + PATH_HINT,
            parameters=(folder_path,),
            creates_checkpoint=True,
            mutates=True,
        ),
        ToolDescriptor(
            name="rename_folder",
            handler=_rename_folder_handler(services),
            description="Renames a folder. " + PATH_HINT,
            parameters=(
                param("old_folder_path", "string", PATH_HINT, required=True),
                param("new_folder_path", "string", PATH_HINT, required=True),
            ),
            creates_checkpoint=True,
            mutates=True,
        ),
    ]


def number_lines(lines: list[str], first: int = 1) -> str:
    return "\n".join(f"{first + offset} | {line}" for offset, line in enumerate(lines))


def _project_structure_handler() -> ToolHandler:
    async def handler(_: dict[str, object], workspace: Workspace | None) -> dict[str, object]:
        return {"structure": format_tree(require_workspace(workspace).structure())}

    return handler


def _read_file_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        filename = str(arguments["filename"])
        resolved = ws.resolve_existing_file(filename)
        file_size = resolved.stat().st_size
        content = ws.read_text(resolved)
        services.editor.open(ws.relative(resolved), content)

        limit = ws.limits.max_read_bytes
        if file_size > limit:
            preview = content.encode("utf-8", "surrogateescape")[:limit]
            return {
                "message": "File is large - showing preview content.",
                "filename": filename,
                "file_size": file_size,
                "preview_size": limit,
                "truncated": True,
                "content": preview.decode("utf-8", "ignore"),
                "guidance": LARGE_FILE_GUIDANCE,
            }
        if arguments.get("include_line_numbers"):
            content = number_lines(content.split("\n"))
        return {
            "content": content,
            "filename": filename,
            "file_size": file_size,
            "truncated": False,
        }

    return handler


def _read_file_lines_handler() -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        filename = str(arguments["filename"])
        start_line = int(arguments["start_line"])
        end_line = int(arguments["end_line"])
        if start_line > end_line:
            raise BadRequest("The 'start_line' must not be after the 'end_line'.")
        lines = ws.read_text(ws.resolve_existing_file(filename)).split("\n")
        first = max(1, start_line)
        last = min(len(lines), end_line)
        if first > last:
            return {"content": ""}
        enforce_open_line_limits(first, last, ws.limits)
        selected = lines[first - 1 : last]
        return {
            "content": number_lines(selected, first),
            "details": {
                "filename": filename,
                "start_line": first,
                "end_line": last,
                "lines_count": len(selected),
                "original_lines_count": len(lines),
            },
        }

    return handler


def _read_multiple_files_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        filenames = string_list(arguments, "filenames", "read_multiple_files")
        limit = ws.limits.max_read_bytes

        jobs: list[BatchJob] = []
        sizes: dict[str, int] = {}
        early_errors: dict[str, str] = {}
        for filename in filenames:
            try:
                resolved = ws.resolve_existing_file(filename)
            except ToolError as error:
                early_errors[filename] = error.message
                continue
            sizes[filename] = resolved.stat().st_size
            jobs.append(BatchJob("read_file", {"full_path": str(resolved), "path": filename}))
        outcomes = iter(await services.workers.execute_batch(jobs))

        blocks: list[str] = []
        successful: list[str] = []
        errors: list[dict[str, str]] = []
        fallback = False
        for filename in filenames:
            if filename in early_errors:
                message = early_errors[filename]
            else:
                outcome = next(outcomes)
                if outcome["ok"]:
                    result = outcome["result"]
                    fallback = fallback or bool(result.get("fallback"))
                    content = str(result["content"])
                    services.editor.open(filename, content)
                    if sizes[filename] > limit:
                        body = (
                            "File is too large to be included in the context "
                            f"(Size: {sizes[filename]} bytes).\nGuidance: The file has been "
                            "opened in the editor. Use surgical tools to modify it.\n"
                        )
                    else:
                        body = content + "\n"
                    blocks.append(
                        f"--- START OF FILE: {filename} ---\n{body}"
                        f"--- END OF FILE: {filename} ---\n\n"
                    )
                    successful.append(filename)
                    continue
                message = str(outcome["error"]["message"])
            blocks.append(
                f"--- ERROR READING FILE: {filename} ---\n{message}\n--- END OF ERROR ---\n\n"
            )
            errors.append({"filename": filename, "error": message})

        return {
            "combined_content": "".join(blocks),
            "batch_stats": {
                "total_files": len(filenames),
                "successful": len(successful),
                "failed": len(errors),
                "fallback": fallback,
            },
            "errors": errors,
        }

    return handler


def _search_in_file_handler() -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        pattern_text = str(arguments["pattern"])
        if not pattern_text:
            raise BadRequest("The 'pattern' parameter is required for search_in_file.")
        try:
            pattern = re.compile(pattern_text)
        except re.error as error:
            raise BadRequest(f"Invalid regular expression '{pattern_text}': {error}") from error
        context = max(0, int(arguments.get("context", 2)))
        lines = ws.read_text(ws.resolve_existing_file(str(arguments["filename"]))).split("\n")

        results: list[dict[str, object]] = []
        for index, line in enumerate(lines):
            if not pattern.search(line):
                continue
            start = max(0, index - context)
            stop = min(len(lines), index + context + 1)
            results.append(
                {
                    "line_number": index + 1,
                    "line_content": line,
                    "context": "\n".join(
                        f"{number + 1}: {lines[number]}" for number in range(start, stop)
                    ),
                }
            )
        if not results:
            return {"message": "No matches found."}
        limit = ws.limits.max_search_hits
        if len(results) > limit:
            return {"results": results[:limit], "truncated": True, "total_matches": len(results)}
        return {"results": results}

    return handler


def _file_info_handler() -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        filename = str(arguments["filename"])
        resolved = ws.resolve_existing_file(filename)
        stat = resolved.stat()
        guessed, _ = mimetypes.guess_type(resolved.name)
        return {
            "message": f"File info for '{filename}':",
            "details": {
                "name": resolved.name,
                "size": stat.st_size,
                "last_modified": datetime.fromtimestamp(stat.st_mtime, tz=UTC)
                .isoformat(timespec="milliseconds")
                .replace("+00:00", "Z"),
                "type": guessed or "text/plain",
            },
        }

    return handler


def _delete_file_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        filename = str(arguments["filename"])
        resolved = ws.resolve_existing_file(filename)
        ws.ensure_writable(resolved)
        relative = ws.relative(resolved)
        services.edits.snapshot_for_delete(ws, resolved)
        resolved.unlink()
        services.editor.close(relative)
        services.validator.invalidate(relative)
        return {"message": f"File '{filename}' deleted successfully."}

    return handler


def _rename_file_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        old_path = str(arguments["old_path"])
        new_path = str(arguments["new_path"])
        source = ws.resolve_existing_file(old_path)
        target = ws.resolve(new_path)
        if target.exists():
            raise Conflict(f"Cannot rename '{old_path}': '{new_path}' already exists.")
        ws.ensure_writable(source)
        ws.ensure_writable(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        old_relative = ws.relative(source)
        source.rename(target)
        services.editor.rename(old_relative, ws.relative(target))
        services.validator.invalidate(old_relative)
        return {"message": f"File '{old_path}' renamed to '{new_path}' successfully."}

    return handler


def _create_folder_handler() -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        folder_path = str(arguments["folder_path"])
        resolved = ws.resolve(folder_path)
        if resolved.is_file():
            raise Conflict(f"Cannot create folder '{folder_path}': a file with that name exists.")
        ws.ensure_writable(resolved)
        resolved.mkdir(parents=True, exist_ok=True)
        return {"message": f"Folder '{folder_path}' created successfully."}

    return handler


def _delete_folder_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        folder_path = str(arguments["folder_path"])
        resolved = ws.resolve_existing_folder(folder_path)
        if resolved == ws.root:
            raise PermissionDenied("Refusing to delete the workspace root.")
        ws.ensure_writable(resolved)
        relative = ws.relative(resolved)
        shutil.rmtree(resolved)
        for open_path in services.editor.open_files():
            if open_path.startswith(f"{relative}/"):
                services.editor.close(open_path)
        return {"message": f"Folder '{folder_path}' deleted successfully."}

    return handler


def _rename_folder_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        old_folder = str(arguments["old_folder_path"])
        new_folder = str(arguments["new_folder_path"])
        source = ws.resolve_existing_folder(old_folder)
        target = ws.resolve(new_folder)
        if source == ws.root:
            raise PermissionDenied("Refusing to rename the workspace root.")
        if target.exists():
            raise Conflict(f"Cannot rename '{old_folder}': '{new_folder}' already exists.")
        ws.ensure_writable(source)
        ws.ensure_writable(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        old_relative = ws.relative(source)
        source.rename(target)
        new_relative = ws.relative(target)
        for open_path in services.editor.open_files():
            if open_path.startswith(f"{old_relative}/"):
                services.editor.rename(
                    open_path, f"{new_relative}/{open_path[len(old_relative) + 1 :]}"
                )
        return {"message": f"Folder '{old_folder}' renamed to '{new_folder}' successfully."}

    return handler
