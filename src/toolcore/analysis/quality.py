"""Heuristic code quality scoring: complexity, maintainability, smells and risks."""

from __future__ import annotations

import ast
import math
import re
from pathlib import PurePosixPath

from toolcore.analysis.symbols import JS_FAMILY, Symbol, SymbolTable, build_symbol_table
from toolcore.validation.lexical import JS_RULES, mask_comments_and_strings

COMPLEXITY_THRESHOLDS = {"low": 5, "medium": 10, "high": 15}
LONG_FUNCTION_LINES = 50
LARGE_CLASS_LINES = 500
MAX_PARAMETERS = 5
GOD_OBJECT_METHODS = 20
MAX_MAGIC_NUMBERS = 10

_WEIGHTS = {
    "complexity": 0.25,
    "maintainability": 0.25,
    "code_smells": 0.15,
    "security": 0.15,
    "performance": 0.10,
    "testability": 0.05,
    "documentation": 0.05,
}
_SEVERITY_ORDER = {"critical": 3, "high": 2, "medium": 1, "low": 0}

_SECURITY_PATTERNS: tuple[tuple[re.Pattern[str], str, str, bool], ...] = (
    (re.compile(r"\beval\s*\("), "critical", "eval() allows arbitrary code execution", False),
    (re.compile(r"\bnew\s+Function\s*\("), "high", "Dynamic Function constructor", False),
    (re.compile(r"\.innerHTML\s*=(?!=)"), "high", "Assignment to innerHTML may allow XSS", False),
    (re.compile(r"\bdocument\.write\s*\("), "high", "document.write may allow XSS", False),
    (re.compile(r"\bexec\s*\("), "high", "Dynamic code execution through exec()", False),
    (re.compile(r"\bpickle\.loads?\s*\("), "high", "Unpickling untrusted data", False),
    (re.compile(r"shell\s*=\s*True"), "high", "Subprocess invoked through the shell", False),
    (
        re.compile(r"\byaml\.load\s*\((?![^)]*Loader)"),
        "medium",
        "yaml.load without a safe loader",
        False,
    ),
    (
        re.compile(r"""(?i)\b(password|passwd|secret|api_?key|token)\s*[:=]\s*['"][^'"]{4,}['"]"""),
        "critical",
        "Hard-coded credential",
        True,
    ),
)
_PERFORMANCE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bfor\s*\([^;]*;[^;]*\.length\s*;"), "Loop re-reads .length on every pass"),
    (re.compile(r"\b(?:readFileSync|writeFileSync|execSync)\s*\("), "Blocking synchronous I/O"),
    (re.compile(r"\bsetInterval\s*\("), "setInterval without visible clearInterval"),
    (re.compile(r"\bJSON\.parse\s*\(\s*JSON\.stringify\s*\("), "Deep copy through JSON round trip"),
)
_MAGIC_NUMBER = re.compile(r"(?<![\w.$])(-?\d+(?:\.\d+)?)(?![\w.])")
_CONSTANT_DECLARATION = re.compile(r"^\s*(?:const\s+[A-Z_][A-Z0-9_]*|[A-Z_][A-Z0-9_]*\s*[:=])")
_SIDE_EFFECT = re.compile(
    r"\b(?:global|nonlocal|print|console\.\w+|document\.|window\.|this\.|self\.)"
)


def categorize_complexity(complexity: int) -> str:
    if complexity <= COMPLEXITY_THRESHOLDS["low"]:
        return "low"
    if complexity <= COMPLEXITY_THRESHOLDS["medium"]:
        return "medium"
    if complexity <= COMPLEXITY_THRESHOLDS["high"]:
        return "high"
    return "critical"


def categorize_score(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 80:
        return "good"
    if score >= 70:
        return "moderate"
    if score >= 60:
        return "poor"
    return "critical"


def complexity_recommendations(complexity: int) -> list[str]:
    recommendations: list[str] = []
    if complexity > COMPLEXITY_THRESHOLDS["medium"]:
        recommendations.append("Consider breaking this function into smaller functions")
        recommendations.append("Extract complex conditional logic into separate methods")
    if complexity > COMPLEXITY_THRESHOLDS["high"]:
        recommendations.append("This function is too complex and should be refactored immediately")
    return recommendations


def analyze_quality(path: str, content: str) -> dict[str, object]:
    """Score one file; the result is a plain dict so it can cross process boundaries."""
    table = build_symbol_table(path, content)
    lines = content.splitlines()
    scanned = _scannable_text(path, content)

    complexity = _complexity_section(table)
    documentation = _documentation_section(table)
    smells = _code_smells(table, scanned)
    security = _scan(scanned, lines, _SECURITY_PATTERNS)
    performance = _performance_issues(path, content, scanned, lines)
    testability = _testability(table, lines, complexity["average"])
    maintainability = _maintainability(
        complexity["average"], len(lines), documentation["coverage"], len(smells)
    )
    architecture = _architecture(table, scanned)

    score = (
        max(0.0, 100 - complexity["average"] * 5) * _WEIGHTS["complexity"]
        + maintainability["index"] * _WEIGHTS["maintainability"]
        + max(0, 100 - len(smells) * 10) * _WEIGHTS["code_smells"]
        + max(0, 100 - len(security) * 20) * _WEIGHTS["security"]
        + max(0, 100 - len(performance) * 15) * _WEIGHTS["performance"]
        + testability["score"] * _WEIGHTS["testability"]
        + documentation["coverage"] * _WEIGHTS["documentation"]
    )
    overall = round(score)

    report: dict[str, object] = {
        "file": path,
        "language": table.language,
        "lines_of_code": len(lines),
        "overall_score": overall,
        "category": categorize_score(overall),
        "complexity": complexity,
        "maintainability": maintainability,
        "code_smells": smells,
        "security": security,
        "performance": performance,
        "testability": testability,
        "documentation": documentation,
        "architecture": architecture,
    }
    report["top_issues"] = _top_issues(report)
    report["recommendations"] = _top_recommendations(report)
    return report


def _scannable_text(path: str, content: str) -> str:
    if PurePosixPath(path).suffix.lower() in JS_FAMILY:
        return mask_comments_and_strings(content, JS_RULES).text
    return content


def _complexity_section(table: SymbolTable) -> dict:
    functions: list[dict[str, object]] = []
    distribution = {"low": 0, "medium": 0, "high": 0, "critical": 0}
    total = 0
    maximum = 0
    for symbol in table.functions:
        category = categorize_complexity(symbol.complexity)
        distribution[category] += 1
        total += symbol.complexity
        maximum = max(maximum, symbol.complexity)
        functions.append(
            {
                "name": symbol.name,
                "line": symbol.line,
                "complexity": symbol.complexity,
                "category": category,
                "recommendations": complexity_recommendations(symbol.complexity),
            }
        )
    average = total / len(functions) if functions else 0.0
    return {
        "average": round(average, 2),
        "max": maximum,
        "total": total,
        "functions": functions,
        "distribution": distribution,
    }


def _documentation_section(table: SymbolTable) -> dict:
    documented = [symbol for symbol in table.functions if symbol.documented]
    coverage = len(documented) / len(table.functions) * 100 if table.functions else 0.0
    missing = [
        {"type": symbol.kind, "name": symbol.name, "line": symbol.line}
        for symbol in table.functions + table.classes
        if not symbol.documented
    ]
    if coverage >= 80:
        quality = "excellent"
    elif coverage >= 60:
        quality = "good"
    elif coverage >= 40:
        quality = "moderate"
    else:
        quality = "poor"
    return {"coverage": round(coverage, 1), "quality": quality, "missing": missing}


def _maintainability(
    average_complexity: float, line_count: int, doc_coverage: float, smell_count: int
) -> dict:
    complexity = average_complexity or 1
    index = max(
        0.0,
        171
        - 5.2 * math.log(complexity)
        - 0.23 * complexity
        - 16.2 * math.log(line_count or 1)
        + 50 * math.sin(math.sqrt(2.4 * doc_coverage)),
    )
    rounded = min(100, round(index))
    if rounded >= 85:
        category = "excellent"
    elif rounded >= 70:
        category = "good"
    elif rounded >= 50:
        category = "moderate"
    elif rounded >= 25:
        category = "poor"
    else:
        category = "critical"
    recommendations: list[str] = []
    if average_complexity > 10:
        recommendations.append("Reduce cyclomatic complexity by breaking down complex functions")
    if doc_coverage < 50:
        recommendations.append("Improve documentation coverage with doc comments")
    if smell_count > 5:
        recommendations.append("Address code smells to improve code quality")
    if category in ("poor", "critical"):
        recommendations.append("Consider major refactoring to improve maintainability")
    return {
        "index": rounded,
        "category": category,
        "factors": {
            "complexity": average_complexity,
            "lines_of_code": line_count,
            "documentation": doc_coverage,
            "code_smells": smell_count,
        },
        "recommendations": recommendations,
    }


def _code_smells(table: SymbolTable, scanned: str) -> list[dict[str, object]]:
    smells: list[dict[str, object]] = []
    for symbol in table.functions:
        length = symbol.end_line - symbol.line + 1
        if length > LONG_FUNCTION_LINES:
            smells.append(
                _smell(
                    "long_method",
                    symbol,
                    "high" if length > 100 else "medium",
                    f"Function '{symbol.name}' is {length} lines long",
                    "Split the function into smaller, focused helpers",
                )
            )
        params = [name for name in symbol.params if name not in ("self", "cls")]
        if len(params) > MAX_PARAMETERS:
            smells.append(
                _smell(
                    "long_parameter_list",
                    symbol,
                    "medium",
                    f"Function '{symbol.name}' takes {len(params)} parameters",
                    "Group related parameters into an object",
                )
            )
    for symbol in table.classes:
        length = symbol.end_line - symbol.line + 1
        methods = [fn for fn in table.functions if fn.scope == f"class {symbol.name}"]
        if len(methods) > GOD_OBJECT_METHODS:
            smells.append(
                _smell(
                    "god_object",
                    symbol,
                    "critical",
                    f"Class '{symbol.name}' defines {len(methods)} methods",
                    "Split responsibilities into collaborating classes",
                )
            )
        elif length > LARGE_CLASS_LINES:
            smells.append(
                _smell(
                    "large_class",
                    symbol,
                    "high",
                    f"Class '{symbol.name}' spans {length} lines",
                    "Extract cohesive parts of the class",
                )
            )

    magic: list[int] = []
    for number, line in enumerate(scanned.splitlines(), start=1):
        if _CONSTANT_DECLARATION.match(line):
            continue
        for match in _MAGIC_NUMBER.finditer(line):
            if match.group(1) not in ("0", "1", "-1", "2", "100"):
                magic.append(number)
    if len(magic) > MAX_MAGIC_NUMBERS:
        smells.append(
            {
                "name": "magic_numbers",
                "severity": "low",
                "line": magic[0],
                "description": f"{len(magic)} unexplained numeric literals",
                "recommendation": "Replace numeric literals with named constants",
            }
        )
    return smells


def _smell(name: str, symbol: Symbol, severity: str, description: str, fix: str) -> dict:
    return {
        "name": name,
        "severity": severity,
        "line": symbol.line,
        "symbol": symbol.name,
        "description": description,
        "recommendation": fix,
    }


def _scan(
    scanned: str, lines: list[str], patterns: tuple[tuple[re.Pattern[str], str, str, bool], ...]
) -> list[dict[str, object]]:
    findings: list[dict[str, object]] = []
    scanned_lines = scanned.splitlines()
    for number, line in enumerate(lines, start=1):
        masked = scanned_lines[number - 1] if number <= len(scanned_lines) else line
        for pattern, severity, description, match_raw in patterns:
            # Credentials live inside string literals, so they are matched on raw lines.
            if pattern.search(line if match_raw else masked):
                findings.append(
                    {
                        "line": number,
                        "severity": severity,
                        "description": description,
                        "code": line.strip(),
                    }
                )
    return findings


def _performance_issues(
    path: str, content: str, scanned: str, lines: list[str]
) -> list[dict[str, object]]:
    issues: list[dict[str, object]] = []
    for number, line in enumerate(scanned.splitlines(), start=1):
        for pattern, description in _PERFORMANCE_PATTERNS:
            if pattern.search(line):
                issues.append(
                    {"line": number, "description": description, "code": lines[number - 1].strip()}
                )
    if PurePosixPath(path).suffix.lower() != ".py":
        return issues
    try:
        tree = ast.parse(content)
    except SyntaxError:
        return issues

    def loop_depth(node: ast.AST) -> int:
        deepest = 0
        for child in ast.iter_child_nodes(node):
            deepest = max(deepest, loop_depth(child))
        return deepest + 1 if isinstance(node, (ast.For, ast.AsyncFor, ast.While)) else deepest

    def visit(node: ast.AST) -> None:
        if isinstance(node, (ast.For, ast.AsyncFor, ast.While)) and loop_depth(node) >= 3:
            issues.append(
                {
                    "line": node.lineno,
                    "description": "Triple-nested loop",
                    "code": lines[node.lineno - 1].strip(),
                }
            )
            return
        for child in ast.iter_child_nodes(node):
            visit(child)

    visit(tree)
    for node in ast.walk(tree):
        if not isinstance(node, ast.AsyncFunctionDef):
            continue
        for inner in ast.walk(node):
            if (
                isinstance(inner, ast.Call)
                and isinstance(inner.func, ast.Attribute)
                and inner.func.attr == "sleep"
                and isinstance(inner.func.value, ast.Name)
                and inner.func.value.id == "time"
            ):
                issues.append(
                    {
                        "line": inner.lineno,
                        "description": "Blocking time.sleep inside a coroutine",
                        "code": lines[inner.lineno - 1].strip(),
                    }
                )
    return issues


def _testability(table: SymbolTable, lines: list[str], average_complexity: float) -> dict:
    pure = 0
    for symbol in table.functions:
        body = "\n".join(lines[symbol.line - 1 : symbol.end_line])
        if not _SIDE_EFFECT.search(body):
            pure += 1
    pure_ratio = pure / len(table.functions) * 100 if table.functions else 100.0
    score = 100.0
    if average_complexity > 10:
        score -= (average_complexity - 10) * 5
    score = score * 0.8 + pure_ratio * 0.2
    score = max(0.0, min(100.0, score))
    recommendations: list[str] = []
    if average_complexity > 10:
        recommendations.append("Reduce function complexity to improve testability")
    if pure_ratio < 50:
        recommendations.append("Increase the number of pure functions for easier testing")
    if score < 70:
        recommendations.append("Separate business logic from side effects")
    return {
        "score": round(score, 1),
        "pure_function_ratio": round(pure_ratio, 1),
        "recommendations": recommendations,
    }


def _architecture(table: SymbolTable, scanned: str) -> dict:
    detected: list[str] = []
    if re.search(r"\b(?:getInstance|get_instance|_instance)\b", scanned):
        detected.append("singleton")
    if any(re.match(r"(?:create|make|build)[A-Z_]", fn.name) for fn in table.functions):
        detected.append("factory")
    method_names = {fn.name.lower() for fn in table.functions}
    if method_names & {"subscribe", "notify", "emit", "on", "add_listener", "addeventlistener"}:
        detected.append("observer")
    recommendations: list[str] = []
    if not detected and table.classes:
        recommendations.append("No design patterns detected; consider an explicit structure")
    if len(table.classes) > 5:
        recommendations.append("Many classes in one file; consider splitting the module")
    return {"detected": detected, "recommendations": recommendations}


def _top_issues(report: dict) -> list[dict[str, object]]:
    issues: list[dict[str, object]] = []
    for smell in report["code_smells"]:
        if smell["severity"] in ("critical", "high"):
            issues.append(
                {
                    "type": "code_smell",
                    "severity": smell["severity"],
                    "description": smell["description"],
                    "line": smell["line"],
                }
            )
    for finding in report["security"]:
        if finding["severity"] in ("critical", "high"):
            issues.append(
                {
                    "type": "security",
                    "severity": finding["severity"],
                    "description": finding["description"],
                    "line": finding["line"],
                }
            )
    for function in report["complexity"]["functions"]:
        if function["category"] == "critical":
            issues.append(
                {
                    "type": "complexity",
                    "severity": "high",
                    "description": f"High complexity function ({function['complexity']})",
                    "line": function["line"],
                }
            )
    issues.sort(key=lambda item: _SEVERITY_ORDER[str(item["severity"])], reverse=True)
    return issues[:5]


def _top_recommendations(report: dict) -> list[str]:
    recommendations: list[str] = []
    for text in report["maintainability"]["recommendations"]:
        recommendations.append(text)
    for function in report["complexity"]["functions"]:
        recommendations.extend(function["recommendations"])
    for smell in report["code_smells"]:
        recommendations.append(smell["recommendation"])
    recommendations.extend(report["architecture"]["recommendations"])
    return list(dict.fromkeys(recommendations))[:5]
