"""Composition root and STDIO JSON-lines server entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import httpx

from toolcore.analysis import AnalysisCache, InsightsLedger
from toolcore.config import CliOverrides, ServerConfig, load_effective_config
from toolcore.edit import EditEngine
from toolcore.editor import EditorBridge, HeadlessEditor
from toolcore.history import CheckpointStore, UndoStack
from toolcore.index import IndexManager
from toolcore.logging import (
    JsonlToolLogger,
    ToolLogEntry,
    configure_logging,
    get_logger,
    sanitize_arguments,
    utc_timestamp,
)
from toolcore.research import HostClient, ResearchEngine
from toolcore.storage import JsonStore
from toolcore.tasks import TaskManager
from toolcore.tools import (
    ErrorAnalyzer,
    ResultCache,
    ToolCall,
    ToolDispatcher,
    ToolLogSink,
    ToolMetrics,
    ToolRegistry,
    ToolResult,
    ToolServices,
    register_builtin_tools,
)
from toolcore.validation import SyntaxValidator
from toolcore.workers import WorkerPool
from toolcore.workspace import Workspace

STORE_FILE_NAME = "store.json"
TOOL_LOG_FILE_NAME = "tool_log.jsonl"
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

logger = get_logger("server")


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


@dataclass(slots=True)
class ToolCore:
    """Wired collaborators plus the workspace every call runs against."""

    config: ServerConfig
    registry: ToolRegistry
    dispatcher: ToolDispatcher
    services: ToolServices
    editor: EditorBridge
    workspace: Workspace | None

    async def execute(
        self,
        name: str,
        args: dict[str, object] | None = None,
        request_id: str | None = None,
        mode: str | None = None,
        silent: bool = False,
    ) -> ToolResult:
        call = ToolCall(name=name, args=dict(args or {}), request_id=request_id)
        return await self.dispatcher.execute(call, self.workspace, silent=silent, mode=mode)

    async def aclose(self) -> None:
        """Release worker processes and the HTTP connection pool."""
        self.services.workers.shutdown()
        await self.services.host.aclose()


def build_tool_core(
    config: ServerConfig,
    editor: EditorBridge | None = None,
    task_manager: TaskManager | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> ToolCore:
    """Wire every collaborator for one configuration."""
    store = JsonStore(config.data_dir / STORE_FILE_NAME)
    active_editor = editor or HeadlessEditor()
    tasks = task_manager or TaskManager(store)
    tool_log = JsonlToolLogger(path=config.data_dir / TOOL_LOG_FILE_NAME)
    validator = SyntaxValidator()
    host = HostClient(config.research)
    if http_transport is not None:
        host._transport = http_transport

    registry = ToolRegistry()
    result_cache = ResultCache(
        ttl_seconds=config.dispatcher.cache_ttl_seconds,
        max_entries=config.dispatcher.cache_max_entries,
    )
    error_analyzer = ErrorAnalyzer()
    metrics = ToolMetrics(slow_call_ms=config.dispatcher.slow_call_ms)
    services = ToolServices(
        config=config,
        registry=registry,
        editor=active_editor,
        edits=EditEngine(UndoStack(), validator, active_editor),
        index=IndexManager(data_dir=config.data_dir, index_config=config.index),
        workers=WorkerPool(config.workers),
        validator=validator,
        analysis_cache=AnalysisCache(),
        insights=InsightsLedger(),
        host=host,
        research=ResearchEngine(host, config.research, tasks),
        tasks=tasks,
        tool_log=tool_log,
        result_cache=result_cache,
        error_analyzer=error_analyzer,
        metrics=metrics,
    )
    register_builtin_tools(registry, services)
    dispatcher = ToolDispatcher(
        registry,
        config=config.dispatcher,
        checkpoints=CheckpointStore(store),
        editor=active_editor,
        cache=result_cache,
        error_analyzer=error_analyzer,
        metrics=metrics,
        sinks=[ToolLogSink(tool_log)],
    )
    workspace = (
        Workspace(
            config.repo_root,
            ignore_patterns=config.index.ignore_patterns,
            limits=config.limits,
        )
        if config.repo_root is not None
        else None
    )
    logger.debug(
        "Tool core ready: {} tools, workspace={}", len(registry), config.repo_root or "<none>"
    )
    return ToolCore(
        config=config,
        registry=registry,
        dispatcher=dispatcher,
        services=services,
        editor=active_editor,
        workspace=workspace,
    )


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="toolcore")
    parser.add_argument("--repo-root", required=False, default=None)
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--max-file-bytes", type=int, required=False, default=None)
    parser.add_argument("--max-read-bytes", type=int, required=False, default=None)
    parser.add_argument("--max-open-lines", type=int, required=False, default=None)
    parser.add_argument("--max-search-hits", type=int, required=False, default=None)
    parser.add_argument("--mode", choices=("code", "amend"), required=False, default=None)
    parser.add_argument(
        "--worker-mode", choices=("thread", "process"), required=False, default=None
    )
    parser.add_argument("--max-workers", type=int, required=False, default=None)
    parser.add_argument("--host-url", required=False, default=None)
    parser.add_argument("--log-level", choices=LOG_LEVELS, required=False, default="INFO")
    return parser


class ToolCoreServer:
    """Deterministic JSON-lines server routing requests through the dispatcher."""

    def __init__(self, core: ToolCore) -> None:
        self._core = core
        self._loop = asyncio.new_event_loop()
        self._fallback_request_counter = 0

    @property
    def core(self) -> ToolCore:
        return self._core

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests from stdin and write JSON-line responses."""
        try:
            for raw_line in in_stream:
                line = raw_line.strip()
                if not line:
                    continue
                response = self.handle_json_line(line)
                out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
                out_stream.flush()
        finally:
            self.close()

    def close(self) -> None:
        if self._loop.is_closed():
            return
        self._loop.run_until_complete(self._core.aclose())
        self._loop.close()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_rejected(request_id, "invalid_json", {"raw_line_length": len(raw_line)})
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Synchronous wrapper running the request on the server's event loop."""
        return self._loop.run_until_complete(self.handle_payload_async(payload))

    async def handle_payload_async(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_rejected(request_id, "invalid_request", {})
            return parsed

        request = parsed
        tool_name: str
        arguments: dict[str, object]
        mode_value = request.params.get("mode")
        if request.method == "tools/call":
            tool_name_value = request.params.get("name")
            arguments_value = request.params.get("arguments", {})
            if not isinstance(tool_name_value, str) or not tool_name_value:
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.name must be a non-empty string.",
                )
            if not isinstance(arguments_value, dict):
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.arguments must be an object.",
                )
            tool_name = tool_name_value
            arguments = arguments_value
        else:
            tool_name = request.method
            arguments = {key: value for key, value in request.params.items() if key != "mode"}
        if mode_value is not None and not isinstance(mode_value, str):
            return self.error_response(
                request_id=request.request_id,
                code="INVALID_PARAMS",
                message="params.mode must be a string.",
            )

        result = await self._core.execute(
            tool_name, arguments, request_id=request.request_id, mode=mode_value
        )
        return self.tool_response(request.request_id, result)

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Extract request ID from payload or synthesize deterministic fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        """Generate deterministic fallback request IDs for invalid/missing IDs."""
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def tool_response(request_id: str, result: ToolResult) -> dict[str, object]:
        """Wrap a dispatcher result; permission failures are reported as blocked."""
        response: dict[str, object] = {
            "request_id": request_id,
            "ok": result.ok,
            "result": result.to_dict(),
            "warnings": list(result.warnings),
            "blocked": False,
        }
        if result.error is not None:
            kind = str(result.error.get("kind"))
            response["blocked"] = kind == "PermissionDenied"
            response["error"] = {"code": kind, "message": result.error.get("message")}
        return response

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "blocked": False,
            "error": {"code": code, "message": message},
        }

    def log_rejected(self, request_id: str, label: str, arguments: dict[str, object]) -> None:
        """Persist requests that never reached the dispatcher."""
        self._core.services.tool_log.append(
            ToolLogEntry(
                timestamp=utc_timestamp(),
                request_id=request_id,
                tool=label,
                status="Error",
                elapsed_ms=0,
                error_kind="BadRequest",
                cached=False,
                metadata=sanitize_arguments(arguments),
            )
        )


def create_server(
    repo_root: str | None = None,
    data_dir: str | None = None,
    cli_overrides: CliOverrides | None = None,
    editor: EditorBridge | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> ToolCoreServer:
    """Create a configured JSON-lines server instance."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None and overrides.data_dir is None:
        overrides = CliOverrides(
            data_dir=Path(data_dir).resolve(),
            max_file_bytes=overrides.max_file_bytes,
            max_read_bytes=overrides.max_read_bytes,
            max_open_lines=overrides.max_open_lines,
            max_search_hits=overrides.max_search_hits,
            mode=overrides.mode,
            worker_mode=overrides.worker_mode,
            max_workers=overrides.max_workers,
            host_url=overrides.host_url,
        )
    root = Path(repo_root).resolve() if repo_root is not None else None
    config = load_effective_config(repo_root=root, overrides=overrides)
    return ToolCoreServer(build_tool_core(config, editor=editor, http_transport=http_transport))


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the tool execution server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        max_file_bytes=args.max_file_bytes,
        max_read_bytes=args.max_read_bytes,
        max_open_lines=args.max_open_lines,
        max_search_hits=args.max_search_hits,
        mode=args.mode,
        worker_mode=args.worker_mode,
        max_workers=args.max_workers,
        host_url=args.host_url,
    )
    try:
        server = create_server(repo_root=args.repo_root, cli_overrides=overrides)
    except ValueError as error:
        parser.error(str(error))
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
