"""Rule-driven explanations, debugging hypotheses and problem-solving plans."""

from __future__ import annotations

import difflib
import keyword
import re
from pathlib import PurePosixPath

from toolcore.analysis.symbols import JS_FAMILY, build_symbol_table
from toolcore.errors import BadRequest

_IDENTIFIER = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_JS_RESERVED = frozenset(
    """
    break case catch class const continue debugger default delete do else export extends
    false finally for function if import in instanceof let new null return super switch this
    throw true try typeof undefined var void while with yield async await of static
    """.split()
)
_CONTROL_FLOW = (
    ("conditions", re.compile(r"\b(?:if|elif|else\s+if)\b")),
    ("loops", re.compile(r"\b(?:for|while)\b")),
    ("switches", re.compile(r"\b(?:switch|match)\b")),
    ("cases", re.compile(r"\bcase\b")),
    ("handlers", re.compile(r"\b(?:catch|except)\b")),
)
_ENTRY = re.compile(r"\bfunction\b|=>|\bdef\b")
_EXIT = re.compile(r"\b(?:return|throw|raise)\b")
_IMPORT_SOURCE = re.compile(r"""(?:from\s+['"]([^'"]+)['"]|^\s*(?:from|import)\s+([\w.]+))""")
_QUOTED_NAME = re.compile(r"""['"`]([A-Za-z_$][\w$]*)['"`]""")
_STACK_FRAME_JS = re.compile(r"at\s+(.+?)\s+\((.+?):(\d+):(\d+)\)")
_STACK_FRAME_PY = re.compile(r'File "(.+?)", line (\d+), in (\S+)')

_ERROR_CATEGORIES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"is not defined|not declared|ReferenceError|NameError"), "undefined_variable"),
    (
        re.compile(
            r"cannot read propert|of undefined|of null|'NoneType' object has no attribute", re.I
        ),
        "null_undefined_access",
    ),
    (re.compile(r"is not a function|object is not callable", re.I), "not_a_function"),
    (re.compile(r"cannot set property|read-only|readonly", re.I), "readonly_property"),
    (re.compile(r"SyntaxError|IndentationError|Unexpected token", re.I), "syntax_error"),
    (re.compile(r"RangeError|IndexError|out of range|Maximum call stack", re.I), "range_error"),
    (re.compile(r"ImportError|ModuleNotFoundError|Cannot find module", re.I), "missing_module"),
    (re.compile(r"KeyError", re.I), "missing_key"),
)

_HYPOTHESES: dict[str, list[dict[str, object]]] = {
    "undefined_variable": [
        {"hypothesis": "Variable name is misspelled", "confidence": 0.8, "check": "spelling"},
        {"hypothesis": "Variable is out of scope", "confidence": 0.7, "check": "scope"},
        {"hypothesis": "Missing import statement", "confidence": 0.6, "check": "import"},
    ],
    "null_undefined_access": [
        {"hypothesis": "Object is null or undefined", "confidence": 0.9, "check": "null"},
        {"hypothesis": "Async operation not completed", "confidence": 0.7, "check": "async"},
    ],
    "not_a_function": [
        {
            "hypothesis": "Variable overwritten with non-function value",
            "confidence": 0.8,
            "check": "overwrite",
        },
        {"hypothesis": "Function name misspelled", "confidence": 0.7, "check": "spelling"},
    ],
    "missing_module": [
        {
            "hypothesis": "Module is not installed or path is wrong",
            "confidence": 0.8,
            "check": "import",
        },
    ],
    "syntax_error": [
        {
            "hypothesis": "Unbalanced brackets or invalid token",
            "confidence": 0.8,
            "check": "syntax",
        },
    ],
}
_FALLBACK_HYPOTHESIS = {
    "hypothesis": "Unknown error pattern - requires investigation",
    "confidence": 0.5,
    "check": "none",
}
_SOLUTION_STEPS = {
    "spelling": [
        "Correct the misspelled name",
        "Update all references to use the correct spelling",
    ],
    "scope": [
        "Move the declaration to a scope visible at the failing line",
        "Pass the value explicitly instead of relying on outer scope",
    ],
    "import": [
        "Add or fix the import statement",
        "Verify the module path and that the name is exported",
    ],
    "null": [
        "Add a null check before the property access",
        "Initialize the value with a sensible default",
    ],
    "async": [
        "Await the asynchronous call before using its result",
        "Verify promise and coroutine handling along the call path",
    ],
    "overwrite": [
        "Find the assignment that replaced the function",
        "Rename the variable so it no longer shadows the function",
    ],
    "syntax": [
        "Run validate_syntax on the file",
        "Fix the reported line and re-run validation",
    ],
}

_PROBLEM_TYPES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("bug", "error", "fix", "crash", "broken"), "bug_fix"),
    (("feature", "implement", "add", "support"), "feature_development"),
    (("refactor", "improve", "clean", "restructure"), "refactoring"),
    (("performance", "slow", "speed", "optimize", "latency"), "performance_optimization"),
    (("security", "vulnerability", "injection", "xss"), "security_issue"),
    (("test", "testing", "coverage"), "testing_improvement"),
)
_SOLUTION_TEMPLATES: dict[str, list[dict[str, object]]] = {
    "bug_fix": [
        {
            "approach": "direct_fix",
            "description": "Fix the immediate issue with minimal changes",
            "pros": ["Quick resolution", "Low risk"],
            "cons": ["May not address root cause"],
        },
        {
            "approach": "root_cause_fix",
            "description": "Address the underlying cause of the issue",
            "pros": ["Prevents similar issues", "Improves overall quality"],
            "cons": ["More time-consuming", "Higher risk of side effects"],
        },
    ],
    "feature_development": [
        {
            "approach": "incremental_development",
            "description": "Build the feature incrementally behind small, reviewable changes",
            "pros": ["Early feedback", "Reduced risk"],
            "cons": ["Requires more coordination"],
        },
        {
            "approach": "complete_implementation",
            "description": "Implement the complete feature before release",
            "pros": ["Cohesive design", "Easier end-to-end testing"],
            "cons": ["Longer development cycle", "Higher risk"],
        },
    ],
    "refactoring": [
        {
            "approach": "gradual_refactoring",
            "description": "Refactor incrementally while maintaining behaviour",
            "pros": ["Lower risk", "Easier to review"],
            "cons": ["Longer timeline"],
        },
        {
            "approach": "complete_rewrite",
            "description": "Rewrite the component from scratch",
            "pros": ["Clean architecture"],
            "cons": ["High risk", "Potential for new bugs"],
        },
    ],
    "performance_optimization": [
        {
            "approach": "profile_and_tune",
            "description": "Profile the hot path and optimize the measured bottleneck",
            "pros": ["Evidence-driven", "Targeted changes"],
            "cons": ["Requires representative workloads"],
        },
        {
            "approach": "caching_layer",
            "description": "Cache expensive results close to their consumers",
            "pros": ["Large wins for repeated work"],
            "cons": ["Invalidation complexity"],
        },
    ],
}
_STANDARD_SOLUTION = {
    "approach": "standard_approach",
    "description": "Apply standard engineering practices",
    "pros": ["Proven approach", "Lower risk"],
    "cons": ["May not be optimal for the specific case"],
}
_PHASES = ("analysis", "design", "implementation", "testing", "review")


def explain_section(path: str, content: str, start_line: int, end_line: int) -> dict[str, object]:
    """Describe a line range: complexity, symbols, control flow and dependencies."""
    lines = content.splitlines()
    if start_line < 1 or end_line < start_line:
        raise BadRequest(
            f"Invalid line range {start_line}-{end_line}.",
            hint="start_line must be >= 1 and end_line must be >= start_line.",
        )
    if start_line > len(lines):
        raise BadRequest(
            f"start_line {start_line} exceeds file length ({len(lines)} lines).",
            hint="Use read_file with include_line_numbers to find the section.",
        )
    end_line = min(end_line, len(lines))
    section = lines[start_line - 1 : end_line]
    code = "\n".join(section)

    counts = {name: len(pattern.findall(code)) for name, pattern in _CONTROL_FLOW}
    cyclomatic = 1 + sum(counts.values()) + code.count("&&") + code.count("||")
    flow: dict[str, list[int]] = {
        "entry_points": [],
        "exit_points": [],
        "branches": [],
        "loops": [],
    }
    for offset, line in enumerate(section):
        number = start_line + offset
        if _ENTRY.search(line):
            flow["entry_points"].append(number)
        if _EXIT.search(line):
            flow["exit_points"].append(number)
        if _CONTROL_FLOW[0][1].search(line) or _CONTROL_FLOW[2][1].search(line):
            flow["branches"].append(number)
        if _CONTROL_FLOW[1][1].search(line):
            flow["loops"].append(number)

    table = build_symbol_table(path, content)
    defined_here = [
        symbol.name
        for symbol in table.all_symbols()
        if start_line <= symbol.line <= end_line
    ]
    identifiers = _identifiers(code)
    imports = [
        match.group(1) or match.group(2)
        for line in section
        for match in [_IMPORT_SOURCE.search(line)]
        if match is not None
    ]
    external = sorted(
        name
        for name in identifiers
        if name not in defined_here and name in table.imported_names()
    )

    summary_parts = [f"{len(section)} line(s)"]
    if defined_here:
        summary_parts.append(f"defines {', '.join(defined_here[:5])}")
    if flow["loops"]:
        summary_parts.append(f"{len(flow['loops'])} loop(s)")
    if flow["branches"]:
        summary_parts.append(f"{len(flow['branches'])} branch(es)")
    if external:
        summary_parts.append(f"uses imported {', '.join(external[:5])}")

    return {
        "file": path,
        "lines": f"{start_line}-{end_line}",
        "code": code,
        "analysis": {
            "complexity": {
                "cyclomatic": cyclomatic,
                "lines": len(section),
                "nested_levels": _max_nesting(path, section),
                "conditions": counts["conditions"],
                "loops": counts["loops"],
            },
            "symbols": identifiers,
            "defined_symbols": defined_here,
            "control_flow": flow,
            "dependencies": {"imports": imports, "external_symbols": external},
        },
        "summary": "Section with " + "; ".join(summary_parts) + ".",
    }


def debug_error(
    session_id: str,
    error_message: str,
    stack_trace: str | None = None,
    path: str | None = None,
    line: int | None = None,
    content: str | None = None,
) -> dict[str, object]:
    """Classify an error, rank hypotheses and test them against the source, if given."""
    category = classify_error(error_message)
    frames = parse_stack_trace(stack_trace or "")
    names = _QUOTED_NAME.findall(error_message)
    if not names:
        bare = re.search(r"([A-Za-z_$][\w$]*)\s+is not (?:defined|a function)", error_message)
        if bare is not None:
            names = [bare.group(1)]
    affected = names[0] if names else None

    hypotheses = [dict(item) for item in _HYPOTHESES.get(category, [_FALLBACK_HYPOTHESIS])]
    if affected is not None:
        for hypothesis in hypotheses:
            hypothesis["confidence"] = round(min(1.0, float(hypothesis["confidence"]) * 1.1), 3)
    hypotheses.sort(key=lambda item: float(item["confidence"]), reverse=True)

    results: list[dict[str, object]] = []
    for hypothesis in hypotheses[:3]:
        evidence = _gather_evidence(str(hypothesis["check"]), affected, content, path, line)
        results.append(
            {
                "hypothesis": hypothesis["hypothesis"],
                "check": hypothesis["check"],
                "evidence": evidence,
                "success": bool(evidence),
                "confidence": float(hypothesis["confidence"]) if evidence else 0.0,
            }
        )

    confirmed = sorted(
        (result for result in results if result["success"]),
        key=lambda result: float(result["confidence"]),
        reverse=True,
    )
    root_cause = confirmed[0] if confirmed else None
    solution = None
    if root_cause is not None:
        solution = {
            "description": f"Fix based on: {root_cause['hypothesis']}",
            "steps": _SOLUTION_STEPS.get(str(root_cause["check"]), []),
        }
    status = "resolved" if root_cause is not None else "needs_more_investigation"
    if root_cause is not None:
        recommendation = f"Most likely cause: {root_cause['hypothesis']}."
    else:
        recommendation = (
            "No hypothesis could be confirmed. Provide file_path and line, or the full "
            "stack trace, for a deeper analysis."
        )
    return {
        "session": {
            "id": session_id,
            "status": status,
            "error_type": category,
            "affected_symbol": affected,
            "root_cause": root_cause["hypothesis"] if root_cause else None,
            "hypotheses_tested": len(results),
            "solution": solution,
        },
        "execution_path": frames,
        "hypotheses": results,
        "recommendation": recommendation,
    }


def classify_error(message: str) -> str:
    for pattern, category in _ERROR_CATEGORIES:
        if pattern.search(message):
            return category
    return "unknown_error"


def parse_stack_trace(stack_trace: str) -> list[dict[str, object]]:
    frames: list[dict[str, object]] = []
    for raw in stack_trace.splitlines():
        js = _STACK_FRAME_JS.search(raw)
        if js is not None:
            frames.append(
                {
                    "step": len(frames) + 1,
                    "function": js.group(1),
                    "file": js.group(2),
                    "line": int(js.group(3)),
                    "column": int(js.group(4)),
                }
            )
            continue
        py = _STACK_FRAME_PY.search(raw)
        if py is not None:
            frames.append(
                {
                    "step": len(frames) + 1,
                    "function": py.group(3),
                    "file": py.group(1),
                    "line": int(py.group(2)),
                }
            )
    return frames


def _gather_evidence(
    check: str, name: str | None, content: str | None, path: str | None, line: int | None
) -> list[str]:
    if content is None:
        return []
    lines = content.splitlines()
    identifiers = set(_IDENTIFIER.findall(content))
    evidence: list[str] = []
    if check == "spelling" and name is not None:
        close = difflib.get_close_matches(name, sorted(identifiers - {name}), n=3, cutoff=0.75)
        if close:
            evidence.append(f"Similar names exist: {', '.join(close)}")
    elif check == "scope" and name is not None and path is not None:
        for symbol in build_symbol_table(path, content).lookup(name):
            if symbol.scope != "module" and line is not None and not (
                symbol.line <= line <= symbol.end_line
            ):
                evidence.append(f"'{name}' is declared in {symbol.scope} at line {symbol.line}")
    elif check == "import" and name is not None and path is not None:
        table = build_symbol_table(path, content)
        if name not in table.imported_names() and not table.lookup(name):
            evidence.append(f"'{name}' is neither imported nor declared in {path}")
    elif check == "null" and line is not None and 0 < line <= len(lines):
        target = lines[line - 1]
        guarded = re.search(r"\?\.|is not None|!= null", target)
        if re.search(r"[\w\])]\.[A-Za-z_]", target) and not guarded:
            evidence.append(f"Line {line} dereferences a value without a null guard")
    elif check == "async" and line is not None and 0 < line <= len(lines):
        window = lines[max(0, line - 4) : line]
        if any(re.search(r"\b(?:fetch|then|async|Promise)\b", item) for item in window) and not any(
            "await" in item for item in window
        ):
            evidence.append("An asynchronous call near the failing line is not awaited")
    elif check == "overwrite" and name is not None:
        assignment = re.compile(
            rf"(?<![\w$.]){re.escape(name)}\s*=(?!=)(?!\s*(?:function|\(|async))"
        )
        for number, text in enumerate(lines, start=1):
            if assignment.search(text):
                evidence.append(f"'{name}' is reassigned at line {number}")
    elif check == "syntax" and path is not None:
        from toolcore.validation import SyntaxValidator

        result = SyntaxValidator().validate(path, content)
        evidence.extend(f"Line {issue.line}: {issue.message}" for issue in result.errors)
    return evidence


def solve_problem(
    session_id: str,
    description: str,
    priority: str = "medium",
    constraints: list[str] | None = None,
    content: str | None = None,
    path: str | None = None,
) -> dict[str, object]:
    """Classify a problem, evaluate candidate approaches and plan the chosen one."""
    constraints = list(constraints or [])
    lowered = description.lower()
    problem_type = next(
        (kind for words, kind in _PROBLEM_TYPES if any(word in lowered for word in words)),
        "general_improvement",
    )

    complexity_points = 1
    if any(word in lowered for word in ("multiple", "several", "many")):
        complexity_points += 2
    if any(word in lowered for word in ("system", "architecture", "across")):
        complexity_points += 3
    if any(word in lowered for word in ("integration", "compatibility", "migration")):
        complexity_points += 2
    if content is not None and len(content.splitlines()) > 500:
        complexity_points += 2
    complexity_points += min(3, len(constraints))
    if priority in ("high", "critical"):
        complexity_points += 1
    if complexity_points >= 8:
        complexity = "critical"
    elif complexity_points >= 5:
        complexity = "high"
    elif complexity_points >= 3:
        complexity = "medium"
    else:
        complexity = "low"

    templates = _SOLUTION_TEMPLATES.get(problem_type, [_STANDARD_SOLUTION])
    candidates = [dict(item) for item in templates]
    for candidate in candidates:
        candidate["evaluation"] = _evaluate(str(candidate["approach"]), complexity, constraints)
    candidates.sort(key=lambda item: item["evaluation"]["overall_score"], reverse=True)
    selected = candidates[0]

    steps: list[dict[str, object]] = []
    for phase in _PHASES:
        steps.append({"phase": phase, "step": f"{phase.capitalize()} for {selected['approach']}"})
    if complexity in ("high", "critical"):
        steps.insert(1, {"phase": "design", "step": "Write a design note and review it"})
    if path is not None:
        steps.insert(0, {"phase": "analysis", "step": f"Review {path} and its callers"})

    return {
        "session_id": session_id,
        "status": "planned",
        "problem_type": problem_type,
        "complexity": complexity,
        "priority": priority,
        "constraints": constraints,
        "candidates": candidates,
        "selected_approach": selected["approach"],
        "feasibility": selected["evaluation"]["feasibility"],
        "risk_level": selected["evaluation"]["risk_level"],
        "recommendations": selected["evaluation"]["reasoning"],
        "implementation": {
            "phases": list(dict.fromkeys(str(step["phase"]) for step in steps)),
            "steps": steps,
            "total_steps": len(steps),
            "testing_required": True,
        },
    }


def _evaluate(approach: str, complexity: str, constraints: list[str]) -> dict[str, object]:
    feasibility = 80
    if complexity == "critical":
        feasibility -= 30
    elif complexity == "high":
        feasibility -= 20
    if len(constraints) > 3:
        feasibility -= 15

    risk = 20
    if approach == "complete_rewrite":
        risk += 40
    elif approach in ("root_cause_fix", "caching_layer", "complete_implementation"):
        risk += 20

    time_cost = 50
    if approach == "complete_rewrite":
        time_cost += 40
    elif approach in ("incremental_development", "direct_fix"):
        time_cost -= 10
    time_cost += {"critical": 30, "high": 20}.get(complexity, 0)

    maintainability = 70
    if approach == "gradual_refactoring":
        maintainability += 20
    elif approach == "complete_rewrite":
        maintainability += 15
    elif approach == "direct_fix":
        maintainability -= 15

    scalability = 60 + (20 if approach in ("caching_layer", "complete_rewrite") else 0)
    clamp = lambda value: max(0, min(100, value))  # noqa: E731
    feasibility, risk, time_cost = clamp(feasibility), clamp(risk), clamp(time_cost)
    maintainability, scalability = clamp(maintainability), clamp(scalability)
    overall = (
        feasibility * 0.25
        + (100 - risk) * 0.25
        + (100 - time_cost) * 0.20
        + maintainability * 0.15
        + scalability * 0.15
    )
    reasoning: list[str] = []
    if feasibility > 80:
        reasoning.append("High feasibility - solution is practical and achievable")
    elif feasibility < 50:
        reasoning.append("Low feasibility - expect significant implementation challenges")
    if risk < 30:
        reasoning.append("Low risk - minimal chance of negative side effects")
    elif risk > 70:
        reasoning.append("High risk - plan mitigation before starting")
    if maintainability > 80:
        reasoning.append("Good maintainability - the result will be easy to extend")
    return {
        "feasibility": feasibility,
        "risk_level": risk,
        "time_to_implement": time_cost,
        "maintainability": maintainability,
        "scalability": scalability,
        "overall_score": round(overall, 2),
        "reasoning": reasoning,
    }


def optimize_architecture(
    quality: dict[str, object], class_count: int, goals: list[str] | None = None
) -> dict[str, object]:
    """Turn a quality report into prioritized optimization suggestions."""
    goals = list(goals or ["maintainability", "performance", "readability"])
    optimizations: list[dict[str, object]] = []
    complexity = quality["complexity"]
    complex_functions = [
        item for item in complexity["functions"] if item["category"] in ("high", "critical")
    ]
    if complex_functions:
        optimizations.append(
            {
                "type": "complexity_reduction",
                "priority": "high",
                "description": f"{len(complex_functions)} functions have high complexity",
                "recommendations": list(
                    dict.fromkeys(
                        rec for item in complex_functions for rec in item["recommendations"]
                    )
                ),
            }
        )
    serious_smells = [
        smell for smell in quality["code_smells"] if smell["severity"] in ("critical", "high")
    ]
    if serious_smells:
        optimizations.append(
            {
                "type": "code_smell_removal",
                "priority": "medium",
                "description": f"{len(serious_smells)} critical code smells detected",
                "recommendations": [smell["recommendation"] for smell in serious_smells],
            }
        )
    if "performance" in goals and quality["performance"]:
        optimizations.append(
            {
                "type": "performance",
                "priority": "medium",
                "description": f"{len(quality['performance'])} performance issues detected",
                "recommendations": [issue["description"] for issue in quality["performance"]],
            }
        )
    if "security" in goals and quality["security"]:
        optimizations.append(
            {
                "type": "security_hardening",
                "priority": "high",
                "description": f"{len(quality['security'])} security findings",
                "recommendations": [finding["description"] for finding in quality["security"]],
            }
        )
    architecture = quality["architecture"]
    if not architecture["detected"] and class_count > 0:
        optimizations.append(
            {
                "type": "architectural_patterns",
                "priority": "medium",
                "description": "No design patterns detected",
                "recommendations": architecture["recommendations"],
            }
        )
    issue_count = (
        len(quality["code_smells"]) + len(quality["security"]) + len(quality["performance"])
    )
    return {
        "goals": goals,
        "current_state": {
            "quality_score": quality["overall_score"],
            "complexity": complexity["average"],
            "maintainability": quality["maintainability"]["index"],
            "issues": issue_count,
        },
        "optimizations": optimizations,
        "estimated_impact": {
            "quality_improvement": len(optimizations) * 10,
            "maintenance_reduction": sum(
                20 for item in optimizations if item["type"] == "complexity_reduction"
            ),
            "risk_reduction": sum(15 for item in optimizations if item["priority"] == "high"),
        },
    }


def _identifiers(code: str) -> list[str]:
    found: dict[str, None] = {}
    for name in _IDENTIFIER.findall(code):
        if keyword.iskeyword(name) or name in _JS_RESERVED or len(name) < 2:
            continue
        found.setdefault(name, None)
    return list(found)


def _max_nesting(path: str, section: list[str]) -> int:
    if PurePosixPath(path).suffix.lower() in JS_FAMILY or "{" in "".join(section):
        depth = deepest = 0
        for line in section:
            for char in line:
                if char == "{":
                    depth += 1
                    deepest = max(deepest, depth)
                elif char == "}":
                    depth = max(0, depth - 1)
        return deepest
    indents = [len(line) - len(line.lstrip()) for line in section if line.strip()]
    if not indents:
        return 0
    base = min(indents)
    return max((indent - base) // 4 for indent in indents)
