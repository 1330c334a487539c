"""Per-file symbol tables: Python through ``ast``, brace languages through masked regexes."""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from toolcore.validation.lexical import JS_RULES, mask_comments_and_strings

JS_FAMILY = frozenset({".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"})

_JS_FUNCTION = re.compile(r"\b(?:async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)\s*\(([^)]*)\)")
_JS_ARROW = re.compile(
    r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s*)?"
    r"(?:\(([^)]*)\)|([A-Za-z_$][\w$]*))\s*=>"
)
_JS_CLASS = re.compile(r"\bclass\s+([A-Za-z_$][\w$]*)(?:\s+extends\s+([A-Za-z_$][\w$.]*))?")
_JS_METHOD = re.compile(
    r"^\s*(?:static\s+)?(?:async\s+)?(?!if\b|for\b|while\b|switch\b|catch\b|function\b)"
    r"([A-Za-z_$][\w$]*)\s*\(([^)]*)\)\s*\{",
    re.MULTILINE,
)
_JS_VARIABLE = re.compile(r"\b(const|let|var)\s+([A-Za-z_$][\w$]*)\s*=(?!=)")
_JS_IMPORT = re.compile(r"""\bimport\s+(?:([\w$*{}\s,]+?)\s+from\s+)?['"]([^'"]+)['"]""")
_JS_REQUIRE = re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)""")
_JS_EXPORT = re.compile(
    r"\bexport\s+(?:default\s+)?(?:async\s+)?"
    r"(?:function\s*\*?|class|const|let|var)\s+([A-Za-z_$][\w$]*)"
)
_JS_EXPORT_LIST = re.compile(r"\bexport\s*\{([^}]*)\}")
_JS_BRANCH = re.compile(r"\b(?:if|for|while|case|catch)\b|&&|\|\||\?\?|\?(?![.?:])")

_GENERIC_FUNCTION = re.compile(r"\b(?:function|def|func|fn)\s+([A-Za-z_][\w]*)\s*\(([^)]*)\)")
_GENERIC_CLASS = re.compile(r"\b(?:class|struct|interface)\s+([A-Za-z_][\w]*)")


@dataclass(slots=True, frozen=True)
class Symbol:
    """A named construct with its 1-based line span."""

    name: str
    kind: str
    line: int
    end_line: int
    scope: str = "module"
    params: tuple[str, ...] = ()
    complexity: int = 1
    documented: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "kind": self.kind,
            "line": self.line,
            "end_line": self.end_line,
            "scope": self.scope,
            "params": list(self.params),
            "complexity": self.complexity,
            "documented": self.documented,
        }


@dataclass(slots=True, frozen=True)
class ImportRef:
    """An import statement: source module plus bound names."""

    source: str
    names: tuple[str, ...]
    line: int

    def to_dict(self) -> dict[str, object]:
        return {"source": self.source, "names": list(self.names), "line": self.line}


@dataclass(slots=True)
class SymbolTable:
    """Symbols defined by one file."""

    path: str
    language: str
    line_count: int
    functions: list[Symbol] = field(default_factory=list)
    classes: list[Symbol] = field(default_factory=list)
    variables: list[Symbol] = field(default_factory=list)
    imports: list[ImportRef] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)

    def all_symbols(self) -> list[Symbol]:
        return sorted(
            self.functions + self.classes + self.variables, key=lambda item: (item.line, item.name)
        )

    def lookup(self, name: str) -> list[Symbol]:
        return [symbol for symbol in self.all_symbols() if symbol.name == name]

    def imported_names(self) -> dict[str, str]:
        return {name: ref.source for ref in self.imports for name in ref.names}

    def summary(self) -> dict[str, int]:
        return {
            "symbols": len({symbol.name for symbol in self.all_symbols()}),
            "functions": len(self.functions),
            "classes": len(self.classes),
            "imports": len(self.imports),
            "exports": len(self.exports),
            "variables": len(self.variables),
            "dependencies": len({ref.source for ref in self.imports}),
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "language": self.language,
            "line_count": self.line_count,
            "functions": [symbol.to_dict() for symbol in self.functions],
            "classes": [symbol.to_dict() for symbol in self.classes],
            "variables": [symbol.to_dict() for symbol in self.variables],
            "imports": [ref.to_dict() for ref in self.imports],
            "exports": list(self.exports),
        }


def build_symbol_table(path: str, content: str) -> SymbolTable:
    """Build the symbol table for a file, choosing the parser by extension."""
    suffix = PurePosixPath(path).suffix.lower()
    if suffix == ".py":
        try:
            return _python_table(path, content)
        except SyntaxError:
            # Unparseable Python still gets a best-effort regex table.
            return _generic_table(path, content, "python")
    if suffix in JS_FAMILY:
        return _js_table(path, content)
    return _generic_table(path, content, suffix.lstrip(".") or "text")


def _python_table(path: str, content: str) -> SymbolTable:
    tree = ast.parse(content, filename=path)
    table = SymbolTable(path=path, language="python", line_count=_line_count(content))
    explicit_exports: list[str] | None = None

    def visit(nodes: list[ast.stmt], scope: str) -> None:
        for node in nodes:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                table.functions.append(
                    Symbol(
                        name=node.name,
                        kind="method" if scope.startswith("class ") else "function",
                        line=node.lineno,
                        end_line=node.end_lineno or node.lineno,
                        scope=scope,
                        params=tuple(arg.arg for arg in _all_args(node.args)),
                        complexity=python_complexity(node),
                        documented=ast.get_docstring(node) is not None,
                    )
                )
                visit(node.body, f"function {node.name}")
            elif isinstance(node, ast.ClassDef):
                table.classes.append(
                    Symbol(
                        name=node.name,
                        kind="class",
                        line=node.lineno,
                        end_line=node.end_lineno or node.lineno,
                        scope=scope,
                        params=tuple(_expr_name(base) for base in node.bases),
                        documented=ast.get_docstring(node) is not None,
                    )
                )
                visit(node.body, f"class {node.name}")
            elif isinstance(node, (ast.Assign, ast.AnnAssign)) and scope == "module":
                targets = node.targets if isinstance(node, ast.Assign) else [node.target]
                for target in targets:
                    for name in _target_names(target):
                        table.variables.append(
                            Symbol(
                                name=name,
                                kind="variable",
                                line=node.lineno,
                                end_line=node.end_lineno or node.lineno,
                                scope=scope,
                            )
                        )
            elif isinstance(node, ast.Import):
                for alias in node.names:
                    table.imports.append(
                        ImportRef(
                            alias.name, (alias.asname or alias.name.split(".")[0],), node.lineno
                        )
                    )
            elif isinstance(node, ast.ImportFrom):
                source = "." * node.level + (node.module or "")
                names = tuple(alias.asname or alias.name for alias in node.names)
                table.imports.append(ImportRef(source, names, node.lineno))
            elif isinstance(node, (ast.If, ast.Try, ast.With, ast.For, ast.While)):
                visit(_child_statements(node), scope)

    visit(tree.body, "module")

    for node in tree.body:
        if isinstance(node, ast.Assign) and any(
            isinstance(target, ast.Name) and target.id == "__all__" for target in node.targets
        ):
            if isinstance(node.value, (ast.List, ast.Tuple)):
                explicit_exports = [
                    element.value
                    for element in node.value.elts
                    if isinstance(element, ast.Constant) and isinstance(element.value, str)
                ]
    if explicit_exports is not None:
        table.exports = explicit_exports
    else:
        table.exports = [
            symbol.name
            for symbol in table.all_symbols()
            if symbol.scope == "module" and not symbol.name.startswith("_")
        ]
    return table


def python_complexity(node: ast.AST) -> int:
    """Cyclomatic complexity of a Python function body."""
    complexity = 1
    for child in ast.walk(node):
        if isinstance(child, (ast.If, ast.IfExp, ast.For, ast.AsyncFor, ast.While)):
            complexity += 1
        elif isinstance(child, ast.ExceptHandler):
            complexity += 1
        elif isinstance(child, ast.BoolOp):
            complexity += len(child.values) - 1
        elif isinstance(child, ast.comprehension):
            complexity += len(child.ifs)
        elif isinstance(child, ast.match_case):
            complexity += 1
    return complexity


def _all_args(arguments: ast.arguments) -> list[ast.arg]:
    found = list(arguments.posonlyargs) + list(arguments.args)
    if arguments.vararg is not None:
        found.append(arguments.vararg)
    found.extend(arguments.kwonlyargs)
    if arguments.kwarg is not None:
        found.append(arguments.kwarg)
    return found


def _expr_name(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return f"{_expr_name(node.value)}.{node.attr}"
    return ast.unparse(node)


def _target_names(target: ast.expr) -> list[str]:
    if isinstance(target, ast.Name):
        return [target.id]
    if isinstance(target, (ast.Tuple, ast.List)):
        return [name for element in target.elts for name in _target_names(element)]
    return []


def _child_statements(node: ast.stmt) -> list[ast.stmt]:
    statements: list[ast.stmt] = []
    for attribute in ("body", "orelse", "finalbody"):
        statements.extend(getattr(node, attribute, []))
    for handler in getattr(node, "handlers", []):
        statements.extend(handler.body)
    return statements


def _js_table(path: str, content: str) -> SymbolTable:
    masked = mask_comments_and_strings(content, JS_RULES).text
    table = SymbolTable(path=path, language="javascript", line_count=_line_count(content))
    line_starts = _line_starts(content)
    class_spans: list[tuple[str, int, int]] = []

    for match in _JS_CLASS.finditer(masked):
        line = _line_at(line_starts, match.start())
        end_line = _block_end_line(masked, match.end(), line_starts, line)
        class_spans.append((match.group(1), line, end_line))
        table.classes.append(
            Symbol(
                name=match.group(1),
                kind="class",
                line=line,
                end_line=end_line,
                params=(match.group(2),) if match.group(2) else (),
                documented=_has_leading_doc_comment(content, line),
            )
        )

    seen_functions: set[tuple[str, int]] = set()
    for pattern in (_JS_FUNCTION, _JS_ARROW):
        for match in pattern.finditer(masked):
            name = match.group(1)
            line = _line_at(line_starts, match.start())
            if (name, line) in seen_functions:
                continue
            seen_functions.add((name, line))
            raw_params = match.group(2) if match.group(2) is not None else (match.group(3) or "")
            end_line = _block_end_line(masked, match.end(), line_starts, line)
            body = "\n".join(masked.splitlines()[line - 1 : end_line])
            table.functions.append(
                Symbol(
                    name=name,
                    kind="function",
                    line=line,
                    end_line=end_line,
                    scope=_enclosing_scope(class_spans, line),
                    params=_split_params(raw_params),
                    complexity=1 + len(_JS_BRANCH.findall(body)),
                    documented=_has_leading_doc_comment(content, line),
                )
            )

    for class_name, start, end in class_spans:
        class_lines = masked.splitlines()[start - 1 : end]
        offset = sum(len(text) + 1 for text in masked.splitlines()[: start - 1])
        for match in _JS_METHOD.finditer("\n".join(class_lines)):
            name = match.group(1)
            line = _line_at(line_starts, offset + match.start(1))
            if (name, line) in seen_functions:
                continue
            seen_functions.add((name, line))
            end_line = _block_end_line(masked, offset + match.end(), line_starts, line)
            body = "\n".join(masked.splitlines()[line - 1 : end_line])
            table.functions.append(
                Symbol(
                    name=name,
                    kind="method",
                    line=line,
                    end_line=end_line,
                    scope=f"class {class_name}",
                    params=_split_params(match.group(2)),
                    complexity=1 + len(_JS_BRANCH.findall(body)),
                    documented=_has_leading_doc_comment(content, line),
                )
            )
    table.functions.sort(key=lambda item: (item.line, item.name))

    function_names = {symbol.name for symbol in table.functions}
    for match in _JS_VARIABLE.finditer(masked):
        name = match.group(2)
        if name in function_names:
            continue
        line = _line_at(line_starts, match.start())
        table.variables.append(
            Symbol(
                name=name,
                kind=match.group(1),
                line=line,
                end_line=line,
                scope=_enclosing_scope(class_spans, line),
            )
        )

    for raw_line_number, raw_line in enumerate(content.splitlines(), start=1):
        import_match = _JS_IMPORT.search(raw_line)
        if import_match is not None:
            table.imports.append(
                ImportRef(
                    source=import_match.group(2),
                    names=_import_bindings(import_match.group(1) or ""),
                    line=raw_line_number,
                )
            )
            continue
        require_match = _JS_REQUIRE.search(raw_line)
        if require_match is not None:
            binding = _JS_VARIABLE.search(raw_line)
            names = (binding.group(2),) if binding is not None else ()
            table.imports.append(ImportRef(require_match.group(1), names, raw_line_number))

    exports: list[str] = []
    for match in _JS_EXPORT.finditer(masked):
        exports.append(match.group(1))
    for match in _JS_EXPORT_LIST.finditer(masked):
        for item in match.group(1).split(","):
            name = item.strip().split(" as ")[-1].strip()
            if name:
                exports.append(name)
    table.exports = list(dict.fromkeys(exports))
    return table


def _generic_table(path: str, content: str, language: str) -> SymbolTable:
    table = SymbolTable(path=path, language=language, line_count=_line_count(content))
    for number, line in enumerate(content.splitlines(), start=1):
        for match in _GENERIC_FUNCTION.finditer(line):
            table.functions.append(
                Symbol(
                    name=match.group(1),
                    kind="function",
                    line=number,
                    end_line=number,
                    params=_split_params(match.group(2)),
                )
            )
        for match in _GENERIC_CLASS.finditer(line):
            table.classes.append(
                Symbol(name=match.group(1), kind="class", line=number, end_line=number)
            )
    return table


def _line_count(content: str) -> int:
    return len(content.splitlines())


def _line_starts(content: str) -> list[int]:
    starts = [0]
    for index, char in enumerate(content):
        if char == "\n":
            starts.append(index + 1)
    return starts


def _line_at(line_starts: list[int], offset: int) -> int:
    low, high = 0, len(line_starts) - 1
    while low < high:
        middle = (low + high + 1) // 2
        if line_starts[middle] <= offset:
            low = middle
        else:
            high = middle - 1
    return low + 1


def _block_end_line(masked: str, start: int, line_starts: list[int], fallback: int) -> int:
    """Line of the brace closing the first block opened at or after ``start``."""
    opening = masked.find("{", start)
    if opening < 0:
        return fallback
    # Expression-bodied arrows end on their own line.
    newline = masked.find("\n", start)
    if newline != -1 and opening > newline and masked[start:newline].strip():
        return fallback
    depth = 0
    for index in range(opening, len(masked)):
        char = masked[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return _line_at(line_starts, index)
    return _line_at(line_starts, len(masked) - 1) if masked else fallback


def _enclosing_scope(class_spans: list[tuple[str, int, int]], line: int) -> str:
    for name, start, end in class_spans:
        if start < line <= end:
            return f"class {name}"
    return "module"


def _split_params(raw: str) -> tuple[str, ...]:
    params: list[str] = []
    for item in raw.split(","):
        name = item.strip().split("=")[0].split(":")[0].strip().lstrip(".")
        if name:
            params.append(name)
    return tuple(params)


def _import_bindings(clause: str) -> tuple[str, ...]:
    names: list[str] = []
    for part in re.split(r"[{},]", clause):
        token = part.strip()
        if not token:
            continue
        if " as " in token:
            token = token.split(" as ")[-1].strip()
        names.append(token.lstrip("* ").strip())
    return tuple(name for name in names if name)


def _has_leading_doc_comment(content: str, line: int) -> bool:
    lines = content.splitlines()
    index = line - 2
    while index >= 0 and not lines[index].strip():
        index -= 1
    if index < 0:
        return False
    previous = lines[index].strip()
    return previous.endswith("*/") or previous.startswith("//")
