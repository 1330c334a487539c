"""Single-file variable flow tracing: definitions, usages and mutations."""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from toolcore.analysis.symbols import JS_FAMILY, build_symbol_table
from toolcore.validation.lexical import JS_RULES, mask_comments_and_strings

_MUTATING_METHODS = frozenset(
    {
        "append",
        "extend",
        "insert",
        "pop",
        "remove",
        "clear",
        "update",
        "setdefault",
        "add",
        "discard",
        "sort",
        "reverse",
        "push",
        "shift",
        "unshift",
        "splice",
        "fill",
        "set",
        "delete",
    }
)
_WEIGHTS = {"definition": 1.0, "usage": 0.5, "mutation": 2.0, "cross_file": 3.0}


@dataclass(slots=True, frozen=True)
class FlowEvent:
    """One touch of the traced variable."""

    line: int
    kind: str
    text: str
    detail: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"line": self.line, "kind": self.kind, "text": self.text}
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


@dataclass(slots=True)
class VariableFlow:
    """Everything known about a variable within one file."""

    variable: str
    path: str
    start_line: int
    definitions: list[FlowEvent] = field(default_factory=list)
    usages: list[FlowEvent] = field(default_factory=list)
    mutations: list[FlowEvent] = field(default_factory=list)
    cross_file_flows: list[dict[str, object]] = field(default_factory=list)
    data_types: set[str] = field(default_factory=set)
    scope: str = "unknown"

    @property
    def complexity(self) -> float:
        return (
            len(self.definitions) * _WEIGHTS["definition"]
            + len(self.usages) * _WEIGHTS["usage"]
            + len(self.mutations) * _WEIGHTS["mutation"]
            + len(self.cross_file_flows) * _WEIGHTS["cross_file"]
        )

    def summary(self) -> dict[str, object]:
        return {
            "definitions": len(self.definitions),
            "usages": len(self.usages),
            "mutations": len(self.mutations),
            "cross_file_flows": len(self.cross_file_flows),
            "data_types": sorted(self.data_types),
            "complexity": self.complexity,
            "scope": self.scope,
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "variable": self.variable,
            "path": self.path,
            "start_line": self.start_line,
            "definitions": [event.to_dict() for event in self.definitions],
            "usages": [event.to_dict() for event in self.usages],
            "mutations": [event.to_dict() for event in self.mutations],
            "cross_file_flows": list(self.cross_file_flows),
            "data_types": sorted(self.data_types),
            "scope": self.scope,
            "complexity": self.complexity,
        }


def trace_variable(path: str, content: str, variable: str, start_line: int = 1) -> VariableFlow:
    """Trace ``variable`` through ``content`` from ``start_line`` onward."""
    flow = VariableFlow(variable=variable, path=path, start_line=max(1, start_line))
    suffix = PurePosixPath(path).suffix.lower()
    if suffix == ".py":
        try:
            _trace_python(flow, content)
        except SyntaxError:
            _trace_text(flow, content, mask=False)
    else:
        _trace_text(flow, content, mask=suffix in JS_FAMILY)

    imported = build_symbol_table(path, content).imported_names()
    if variable in imported:
        flow.cross_file_flows.append({"source_module": imported[variable], "target_file": path})
        flow.data_types.add("import")
    return flow


def _trace_python(flow: VariableFlow, content: str) -> None:
    tree = ast.parse(content)
    lines = content.splitlines()
    scopes: list[str] = []

    def text_at(line: int) -> str:
        return lines[line - 1].strip() if 0 < line <= len(lines) else ""

    def record(kind: str, node: ast.AST, detail: str | None = None) -> None:
        line = getattr(node, "lineno", 0)
        if line < flow.start_line:
            return
        event = FlowEvent(line=line, kind=kind, text=text_at(line), detail=detail)
        getattr(flow, f"{kind}s").append(event)

    class Visitor(ast.NodeVisitor):
        def _scoped(self, node: ast.AST, label: str) -> None:
            scopes.append(label)
            self.generic_visit(node)
            scopes.pop()

        def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
            for arg in _arg_names(node.args):
                if arg == flow.variable:
                    record("definition", node, "parameter")
                    flow.scope = f"function {node.name}"
            self._scoped(node, f"function {node.name}")

        def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
            self._visit_function(node)

        def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
            self._visit_function(node)

        def visit_ClassDef(self, node: ast.ClassDef) -> None:
            self._scoped(node, f"class {node.name}")

        def visit_Assign(self, node: ast.Assign) -> None:
            for target in node.targets:
                if flow.variable in _bound_names(target):
                    record("definition", node, _infer_type(node.value))
                    flow.data_types.add(_infer_type(node.value))
                    if flow.scope == "unknown":
                        flow.scope = scopes[-1] if scopes else "module"
                elif _mutates_through_subscript(target, flow.variable):
                    record("mutation", node, "item assignment")
            self.visit(node.value)

        def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
            if flow.variable in _bound_names(node.target):
                detail = ast.unparse(node.annotation)
                record("definition", node, detail)
                flow.data_types.add(detail)
                if flow.scope == "unknown":
                    flow.scope = scopes[-1] if scopes else "module"
            if node.value is not None:
                self.visit(node.value)

        def visit_AugAssign(self, node: ast.AugAssign) -> None:
            if flow.variable in _bound_names(node.target):
                record("mutation", node, type(node.op).__name__.lower())
            self.visit(node.value)

        def visit_Call(self, node: ast.Call) -> None:
            func = node.func
            if (
                isinstance(func, ast.Attribute)
                and isinstance(func.value, ast.Name)
                and func.value.id == flow.variable
                and func.attr in _MUTATING_METHODS
            ):
                record("mutation", node, f".{func.attr}()")
            self.generic_visit(node)

        def visit_Name(self, node: ast.Name) -> None:
            if node.id == flow.variable and isinstance(node.ctx, ast.Load):
                record("usage", node)
            elif node.id == flow.variable and isinstance(node.ctx, ast.Del):
                record("mutation", node, "del")

        def visit_For(self, node: ast.For) -> None:
            if flow.variable in _bound_names(node.target):
                record("definition", node, "loop variable")
            self.generic_visit(node)

    Visitor().visit(tree)
    for events in (flow.definitions, flow.usages, flow.mutations):
        events.sort(key=lambda event: event.line)


def _trace_text(flow: VariableFlow, content: str, mask: bool) -> None:
    scanned = mask_comments_and_strings(content, JS_RULES).text if mask else content
    name = re.escape(flow.variable)
    declaration = re.compile(rf"\b(const|let|var|val|final)\s+{name}\b\s*(?:=\s*(.*))?")
    mutation = re.compile(rf"(?<![\w$.]){name}\s*(?:[-+*/%&|^]?=(?!=)|\+\+|--)")
    method_mutation = re.compile(rf"(?<![\w$.]){name}\.(\w+)\s*\(")
    word = re.compile(rf"(?<![\w$.]){name}(?![\w$])")
    raw_lines = content.splitlines()

    for number, line in enumerate(scanned.splitlines(), start=1):
        if number < flow.start_line:
            continue
        text = raw_lines[number - 1].strip() if number <= len(raw_lines) else line.strip()
        declared = declaration.search(line)
        if declared is not None:
            raw_value = ""
            if declared.group(2) is not None and number <= len(raw_lines):
                raw_value = raw_lines[number - 1][declared.start(2) :].strip()
            flow.definitions.append(FlowEvent(number, "definition", text, declared.group(1)))
            flow.data_types.add(_infer_text_type(raw_value))
            if flow.scope == "unknown":
                flow.scope = "block" if declared.group(1) in ("let", "const") else "function"
            if declared.group(2) is not None and word.search(declared.group(2)):
                flow.usages.append(FlowEvent(number, "usage", text))
            continue
        if mutation.search(line):
            flow.mutations.append(FlowEvent(number, "mutation", text, "assignment"))
            continue
        method = method_mutation.search(line)
        if method is not None and method.group(1) in _MUTATING_METHODS:
            flow.mutations.append(FlowEvent(number, "mutation", text, f".{method.group(1)}()"))
            continue
        if word.search(line):
            flow.usages.append(FlowEvent(number, "usage", text))


def _arg_names(arguments: ast.arguments) -> list[str]:
    names = [arg.arg for arg in arguments.posonlyargs + arguments.args + arguments.kwonlyargs]
    if arguments.vararg is not None:
        names.append(arguments.vararg.arg)
    if arguments.kwarg is not None:
        names.append(arguments.kwarg.arg)
    return names


def _bound_names(target: ast.expr) -> set[str]:
    if isinstance(target, ast.Name):
        return {target.id}
    if isinstance(target, (ast.Tuple, ast.List)):
        return {name for element in target.elts for name in _bound_names(element)}
    if isinstance(target, ast.Starred):
        return _bound_names(target.value)
    return set()


def _mutates_through_subscript(target: ast.expr, variable: str) -> bool:
    node = target
    while isinstance(node, (ast.Subscript, ast.Attribute)):
        node = node.value
    return target is not node and isinstance(node, ast.Name) and node.id == variable


def _infer_type(value: ast.expr) -> str:
    if isinstance(value, ast.Constant):
        return "none" if value.value is None else type(value.value).__name__
    if isinstance(value, (ast.List, ast.ListComp)):
        return "list"
    if isinstance(value, (ast.Dict, ast.DictComp)):
        return "dict"
    if isinstance(value, (ast.Set, ast.SetComp)):
        return "set"
    if isinstance(value, ast.Tuple):
        return "tuple"
    if isinstance(value, ast.Lambda):
        return "function"
    if isinstance(value, ast.JoinedStr):
        return "str"
    if isinstance(value, ast.Call):
        return f"call:{ast.unparse(value.func)}"
    return "unknown"


def _infer_text_type(value: str) -> str:
    if not value:
        return "undefined"
    if value[0] in "'\"`":
        return "string"
    if re.match(r"-?\d", value):
        return "number"
    if value.startswith("["):
        return "array"
    if value.startswith("{"):
        return "object"
    if value.startswith(("true", "false")):
        return "boolean"
    if value.startswith("null"):
        return "null"
    if value.startswith("new "):
        match = re.match(r"new\s+([\w$.]+)", value)
        return f"instance:{match.group(1)}" if match else "object"
    if "=>" in value or value.startswith(("function", "async")):
        return "function"
    if value.startswith("await "):
        return "promise_result"
    call = re.match(r"([\w$.]+)\s*\(", value)
    if call is not None:
        return f"call:{call.group(1)}"
    return "unknown"
