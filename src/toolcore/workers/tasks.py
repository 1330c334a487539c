"""Pure, picklable job functions executed by the worker pool."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from toolcore.analysis.dataflow import trace_variable
from toolcore.analysis.quality import analyze_quality
from toolcore.analysis.symbols import build_symbol_table
from toolcore.errors import BadRequest, NotFound, Unsupported
from toolcore.index.search import search_content
from toolcore.validation import SyntaxValidator

TASK_KINDS = (
    "parse_ast",
    "symbols",
    "analyze_symbol",
    "data_flow",
    "quality",
    "validate",
    "search",
    "read_file",
)


def _require_str(payload: dict[str, object], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise BadRequest(f"Worker payload field '{key}' must be a string.")
    return value


def _parse_ast(payload: dict[str, object]) -> dict[str, object]:
    table = build_symbol_table(_require_str(payload, "path"), _require_str(payload, "content"))
    return table.to_dict()


def _symbols(payload: dict[str, object]) -> dict[str, object]:
    table = build_symbol_table(_require_str(payload, "path"), _require_str(payload, "content"))
    return {"summary": table.summary(), "table": table.to_dict()}


def _analyze_symbol(payload: dict[str, object]) -> dict[str, object]:
    path = _require_str(payload, "path")
    content = _require_str(payload, "content")
    symbol = _require_str(payload, "symbol")
    table = build_symbol_table(path, content)
    definitions = table.lookup(symbol)
    flow = trace_variable(path, content, symbol)
    imported = table.imported_names()
    kind_hint = "import" if symbol in imported else "unknown"
    return {
        "symbol": symbol,
        "definitions": [item.to_dict() for item in definitions],
        "usages": [event.to_dict() for event in flow.usages],
        "type": definitions[0].kind if definitions else kind_hint,
        "scope": definitions[0].scope if definitions else flow.scope,
        "imported_from": imported.get(symbol),
        "exported": symbol in table.exports,
        "documented": any(item.documented for item in definitions),
    }


def _data_flow(payload: dict[str, object]) -> dict[str, object]:
    start_line = payload.get("start_line", 1)
    flow = trace_variable(
        _require_str(payload, "path"),
        _require_str(payload, "content"),
        _require_str(payload, "variable"),
        start_line if isinstance(start_line, int) else 1,
    )
    return flow.to_dict()


def _quality(payload: dict[str, object]) -> dict[str, object]:
    return analyze_quality(_require_str(payload, "path"), _require_str(payload, "content"))


def _validate(payload: dict[str, object]) -> dict[str, object]:
    result = SyntaxValidator().validate(
        _require_str(payload, "path"), _require_str(payload, "content")
    )
    return result.to_dict()


def _search(payload: dict[str, object]) -> dict[str, object]:
    files = payload.get("files")
    if not isinstance(files, list):
        raise BadRequest("Worker payload field 'files' must be a list.")
    pairs = [(str(item[0]), str(item[1])) for item in files]
    return {"results": search_content(pairs, _require_str(payload, "term"))}


def _read_file(payload: dict[str, object]) -> dict[str, object]:
    full_path = Path(_require_str(payload, "full_path"))
    try:
        with full_path.open("r", encoding="utf-8", errors="surrogateescape", newline="") as handle:
            content = handle.read()
    except FileNotFoundError as error:
        raise NotFound(f"File '{payload.get('path', full_path.name)}' does not exist.") from error
    return {"path": payload.get("path", full_path.name), "content": content}


_TASKS: dict[str, Callable[[dict[str, object]], dict[str, object]]] = {
    "parse_ast": _parse_ast,
    "symbols": _symbols,
    "analyze_symbol": _analyze_symbol,
    "data_flow": _data_flow,
    "quality": _quality,
    "validate": _validate,
    "search": _search,
    "read_file": _read_file,
}


def run_task(kind: str, payload: dict[str, object]) -> dict[str, object]:
    """Run one job by kind; module-level so process pools can pickle it."""
    task = _TASKS.get(kind)
    if task is None:
        raise Unsupported(f"Unknown worker task kind: {kind}")
    return task(payload)
