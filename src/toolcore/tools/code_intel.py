"""Code intelligence tools: structure, quality, data flow and guided reasoning."""

from __future__ import annotations

from pathlib import PurePosixPath

from toolcore.analysis import (
    JS_FAMILY,
    debug_error,
    explain_section,
    optimize_architecture,
    solve_problem,
)
from toolcore.errors import BadRequest, ToolError, Unsupported
from toolcore.tools.cache import normalize_path
from toolcore.tools.registry import ToolDescriptor, ToolHandler
from toolcore.tools.schema import param
from toolcore.tools.services import ToolServices, require_workspace, string_list
from toolcore.validation import format_issues
from toolcore.workers import BatchJob
from toolcore.workspace import Workspace

ANALYSIS_TYPES = {"ast": "parse_ast", "quality": "quality", "symbols": "symbols"}
PRIORITIES = ["low", "medium", "high", "critical"]


def code_intel_tools(services: ToolServices) -> list[ToolDescriptor]:
    file_path = param("file_path", "string", "Path of the file to analyze.", required=True)
    filenames = param(
        "filenames", "array", "Files to process in parallel.", required=True, items="string"
    )
    return [
        ToolDescriptor(
            name="analyze_code",
            handler=_analyze_code_handler(services),
            description="Analyzes a JavaScript or TypeScript file's structure.",
            parameters=(param("filename", "string", "File to analyze.", required=True),),
            cacheable=True,
        ),
        ToolDescriptor(
            name="validate_syntax",
            handler=_validate_syntax_handler(services),
            description="Validates the syntax of a file and reports errors and warnings.",
            parameters=(file_path,),
        ),
        ToolDescriptor(
            name="analyze_symbol",
            handler=_analyze_symbol_handler(services),
            description="Analyzes a symbol's definition, usages and relationships in a file.",
            parameters=(
                param("symbol_name", "string", "Name of the symbol to analyze.", required=True),
                file_path,
            ),
        ),
        ToolDescriptor(
            name="build_symbol_table",
            handler=_symbol_table_handler(services),
            description="Builds a table of functions, classes, imports and exports in a file.",
            parameters=(file_path,),
        ),
        ToolDescriptor(
            name="trace_data_flow",
            handler=_data_flow_handler(services),
            description="Traces definitions, usages and mutations of a variable.",
            parameters=(
                param("variable_name", "string", "Variable to trace.", required=True),
                file_path,
                param("line", "integer", "Line to start tracing from.", default=1),
            ),
        ),
        ToolDescriptor(
            name="debug_systematically",
            handler=_debug_handler(services),
            description="Hypothesis-driven debugging of an error message and stack trace.",
            parameters=(
                param("error_message", "string", "The error to debug.", required=True),
                param("file_path", "string", "File where the error occurred."),
                param("line", "integer", "Line where the error occurred."),
                param("stack_trace", "string", "Full stack trace."),
            ),
            requires_project=False,
        ),
        ToolDescriptor(
            name="analyze_code_quality",
            handler=_quality_handler(services),
            description=(
                "Code quality report: complexity, maintainability, code smells, security and "
                "performance issues."
            ),
            parameters=(file_path,),
        ),
        ToolDescriptor(
            name="solve_engineering_problem",
            handler=_solve_handler(services),
            description="Evaluates candidate approaches to a problem and plans the chosen one.",
            parameters=(
                param(
                    "problem_description", "string", "The problem to solve.", required=True
                ),
                param("file_path", "string", "Related file."),
                param("priority", "string", "Problem priority.", enum=PRIORITIES, default="medium"),
                param("constraints", "array", "Constraints or limitations.", items="string"),
            ),
            requires_project=False,
        ),
        ToolDescriptor(
            name="get_engineering_insights",
            handler=_insights_handler(services),
            description="Statistics about analyzed code, debugging sessions and tool usage.",
            parameters=(param("file_path", "string", "Limit quality insights to one file."),),
            requires_project=False,
        ),
        ToolDescriptor(
            name="optimize_code_architecture",
            handler=_optimize_handler(services),
            description="Suggests architectural optimizations for a file.",
            parameters=(
                file_path,
                param(
                    "optimization_goals",
                    "array",
                    "maintainability, performance, readability or security.",
                    items="string",
                ),
            ),
        ),
        ToolDescriptor(
            name="explain_code_section",
            handler=_explain_handler(services),
            description="Explains a line range: complexity, symbols and control flow.",
            parameters=(
                file_path,
                param("start_line", "integer", "First line.", required=True),
                param("end_line", "integer", "Last line.", required=True),
            ),
        ),
        ToolDescriptor(
            name="batch_analyze_files",
            handler=_batch_analyze_handler(services),
            description="Analyzes several files in parallel on the worker pool.",
            parameters=(
                filenames,
                param(
                    "analysis_types",
                    "array",
                    "Any of ast, quality, symbols.",
                    items="string",
                    default=["ast", "quality", "symbols"],
                ),
            ),
            timeout_seconds=120.0,
        ),
        ToolDescriptor(
            name="batch_validate_files",
            handler=_batch_validate_handler(services),
            description="Validates the syntax of several files in parallel.",
            parameters=(filenames,),
            timeout_seconds=120.0,
        ),
        ToolDescriptor(
            name="clear_cache_for_file",
            handler=_clear_cache_handler(services),
            description="Clears cached results for a file when they may be stale.",
            parameters=(param("filename", "string", "File whose cache to drop.", required=True),),
            requires_project=False,
        ),
    ]


def _load(ws: Workspace, candidate: str) -> tuple[str, str]:
    resolved = ws.resolve_existing_file(candidate)
    return ws.relative(resolved), ws.read_text(resolved)


async def _analyze(
    services: ToolServices,
    kind: str,
    path: str,
    content: str,
    extra: dict[str, object] | None = None,
    memo_key: str | None = None,
) -> dict[str, object]:
    """Run a worker job once per (kind, path, content); repeated calls hit the memo."""

    async def compute() -> dict[str, object]:
        payload: dict[str, object] = {"path": path, "content": content, **(extra or {})}
        result = dict(await services.workers.run_with_fallback(kind, payload))
        result.pop("fallback", None)
        return result

    return await services.analysis_cache.get_or_await(memo_key or kind, path, content, compute)


def _analyze_code_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        filename = str(arguments["filename"])
        if PurePosixPath(filename.replace("\\", "/")).suffix.lower() not in JS_FAMILY:
            raise Unsupported(
                "This tool can only analyze JavaScript/TypeScript files. "
                "Use read_file for others."
            )
        path, content = _load(ws, filename)
        table = await _analyze(services, "parse_ast", path, content)
        return {
            "analysis": {
                "functions": table["functions"],
                "classes": table["classes"],
                "imports": table["imports"],
                "variables": table["variables"],
                "exports": table["exports"],
            }
        }

    return handler


def _validate_syntax_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        path, content = _load(require_workspace(workspace), str(arguments["file_path"]))
        result = services.validator.validate(path, content)
        if result.valid:
            message = f"No syntax errors found in {path}."
        else:
            message = f"Syntax errors found in {path}:\n{format_issues(result)}"
        return {"message": message, "file": path, **result.to_dict()}

    return handler


def _analyze_symbol_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        path, content = _load(require_workspace(workspace), str(arguments["file_path"]))
        symbol = str(arguments["symbol_name"])
        analysis = await _analyze(
            services,
            "analyze_symbol",
            path,
            content,
            {"symbol": symbol},
            memo_key=f"analyze_symbol:{symbol}",
        )
        return {"message": f"Symbol analysis for '{symbol}' in {path}", "analysis": analysis}

    return handler


def _symbol_table_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        path, content = _load(require_workspace(workspace), str(arguments["file_path"]))
        result = await _analyze(services, "symbols", path, content)
        summary = dict(result["summary"])
        services.insights.record_symbols(path, summary)
        return {
            "message": f"Symbol table built for {path}",
            "summary": summary,
            "table": result["table"],
        }

    return handler


def _data_flow_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        path, content = _load(require_workspace(workspace), str(arguments["file_path"]))
        variable = str(arguments["variable_name"])
        start_line = int(arguments.get("line") or 1)
        flow = await _analyze(
            services,
            "data_flow",
            path,
            content,
            {"variable": variable, "start_line": start_line},
            memo_key=f"data_flow:{variable}:{start_line}",
        )
        services.insights.record_flow(flow)
        return {"message": f"Data flow traced for '{variable}' in {path}", "flow": flow}

    return handler


def _debug_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        file_path = arguments.get("file_path")
        path: str | None = None
        content: str | None = None
        if file_path and workspace is not None:
            path, content = _load(workspace, str(file_path))
        line = arguments.get("line")
        stack_trace = arguments.get("stack_trace")
        result = debug_error(
            services.insights.next_session_id("debug"),
            str(arguments["error_message"]),
            stack_trace=str(stack_trace) if stack_trace else None,
            path=path or (str(file_path) if file_path else None),
            line=int(line) if isinstance(line, int) else None,
            content=content,
        )
        services.insights.record_debug(result)
        return result

    return handler


def _quality_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        path, content = _load(require_workspace(workspace), str(arguments["file_path"]))
        report = await _analyze(services, "quality", path, content)
        services.insights.record_quality(report)
        return {
            "message": (
                f"Code quality for {path}: {report['overall_score']}/100 ({report['category']})"
            ),
            "report": report,
        }

    return handler


def _solve_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        file_path = arguments.get("file_path")
        path: str | None = None
        content: str | None = None
        if file_path and workspace is not None:
            path, content = _load(workspace, str(file_path))
        constraints = arguments.get("constraints") or []
        result = solve_problem(
            services.insights.next_session_id("problem"),
            str(arguments["problem_description"]),
            priority=str(arguments.get("priority") or "medium"),
            constraints=[str(item) for item in constraints],
            content=content,
            path=path,
        )
        services.insights.record_solution(result)
        return result

    return handler


def _insights_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        insights: dict[str, object] = {
            "analysis": services.insights.summary(),
            "errors": services.error_analyzer.stats(),
            "tools": services.metrics.snapshot(),
            "workers": services.workers.stats(),
            "analysis_cache": {
                "entries": len(services.analysis_cache),
                "hits": services.analysis_cache.hits,
                "misses": services.analysis_cache.misses,
            },
        }
        file_path = arguments.get("file_path")
        if file_path:
            key = normalize_path(str(file_path))
            insights["file_quality"] = services.insights.quality_reports.get(key)
            message = f"Engineering insights for {key}"
        else:
            message = "Project-wide engineering insights"
        return {"message": message, "insights": insights}

    return handler


def _optimize_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        path, content = _load(require_workspace(workspace), str(arguments["file_path"]))
        quality = await _analyze(services, "quality", path, content)
        symbols = await _analyze(services, "symbols", path, content)
        goals = arguments.get("optimization_goals")
        result = optimize_architecture(
            quality,
            int(dict(symbols["summary"])["classes"]),
            [str(goal) for goal in goals] if isinstance(goals, list) and goals else None,
        )
        return {"message": f"Architecture optimization analysis for {path}", **result}

    return handler


def _explain_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        path, content = _load(require_workspace(workspace), str(arguments["file_path"]))
        start_line = int(arguments["start_line"])
        end_line = int(arguments["end_line"])
        return services.analysis_cache.get_or_compute(
            f"explain:{start_line}:{end_line}",
            path,
            content,
            lambda: explain_section(path, content, start_line, end_line),
        )

    return handler


def _batch_analyze_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        names = string_list(arguments, "filenames", "batch_analyze_files")
        types = [str(item) for item in arguments.get("analysis_types") or ANALYSIS_TYPES]
        unknown = [item for item in types if item not in ANALYSIS_TYPES]
        if unknown:
            raise BadRequest(
                f"Unknown analysis type(s): {', '.join(unknown)}.",
                hint=f"Use any of: {', '.join(ANALYSIS_TYPES)}.",
            )

        files: list[dict[str, object]] = []
        analyses: dict[int, dict[str, object]] = {}
        jobs: list[BatchJob] = []
        owners: list[tuple[int, str]] = []
        for name in names:
            entry: dict[str, object] = {"filename": name}
            files.append(entry)
            try:
                path, content = _load(ws, name)
            except ToolError as error:
                entry["success"] = False
                entry["error"] = error.message
                continue
            entry["success"] = True
            entry["analysis"] = analyses[len(files) - 1] = {}
            for kind in types:
                jobs.append(BatchJob(ANALYSIS_TYPES[kind], {"path": path, "content": content}))
                owners.append((len(files) - 1, kind))

        outcomes = await services.workers.execute_batch(jobs)
        for (position, kind), outcome in zip(owners, outcomes, strict=True):
            entry = files[position]
            if not outcome["ok"]:
                entry["success"] = False
                entry["error"] = dict(outcome["error"])["message"]
                continue
            result = dict(outcome["result"])
            result.pop("fallback", None)
            analyses[position][kind] = result
            if kind == "quality":
                services.insights.record_quality(result)
                entry["quality_score"] = result["overall_score"]
                entry["issues"] = list(result["top_issues"])
                entry["recommendations"] = list(result["recommendations"])

        successful = [entry for entry in files if entry["success"]]
        scores = [float(entry["quality_score"]) for entry in successful if "quality_score" in entry]
        return {
            "message": f"Analyzed {len(successful)} of {len(files)} files.",
            "results": files,
            "summary": {
                "total_files": len(files),
                "successful": len(successful),
                "failed": len(files) - len(successful),
                "total_issues": sum(len(entry.get("issues", [])) for entry in successful),
                "average_quality": round(sum(scores) / len(scores), 2) if scores else None,
            },
        }

    return handler


def _batch_validate_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        ws = require_workspace(workspace)
        names = string_list(arguments, "filenames", "batch_validate_files")
        files: list[dict[str, object]] = []
        jobs: list[BatchJob] = []
        owners: list[int] = []
        for name in names:
            entry: dict[str, object] = {"filename": name}
            files.append(entry)
            try:
                path, content = _load(ws, name)
            except ToolError as error:
                entry["success"] = False
                entry["error"] = error.message
                continue
            jobs.append(BatchJob("validate", {"path": path, "content": content}))
            owners.append(len(files) - 1)

        outcomes = await services.workers.execute_batch(jobs)
        for position, outcome in zip(owners, outcomes, strict=True):
            entry = files[position]
            entry["success"] = bool(outcome["ok"])
            if outcome["ok"]:
                result = dict(outcome["result"])
                entry["valid"] = result["valid"]
                entry["errors"] = result["errors"]
                entry["warnings"] = result["warnings"]
            else:
                entry["error"] = dict(outcome["error"])["message"]

        checked = [entry for entry in files if entry["success"]]
        return {
            "message": f"Validated {len(checked)} of {len(files)} files.",
            "results": files,
            "summary": {
                "total_files": len(files),
                "valid_files": sum(
                    1 for entry in checked if not entry["errors"] and not entry["warnings"]
                ),
                "files_with_errors": sum(1 for entry in checked if entry["errors"]),
                "files_with_warnings": sum(1 for entry in checked if entry["warnings"]),
                "total_errors": sum(len(entry["errors"]) for entry in checked),
                "total_warnings": sum(len(entry["warnings"]) for entry in checked),
                "failed": len(files) - len(checked),
            },
        }

    return handler


def _clear_cache_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        filename = normalize_path(str(arguments["filename"]))
        if not filename:
            raise BadRequest("The 'filename' parameter is required.")
        cleared = (
            services.analysis_cache.invalidate(filename)
            + services.result_cache.invalidate_paths([filename])
            + services.validator.invalidate(filename)
        )
        return {
            "message": f"Cache invalidated for '{filename}'. Cleared {cleared} related entries.",
            "cleared": cleared,
        }

    return handler
