"""Language-keyed syntax checks over in-memory content."""

from __future__ import annotations

import ast
import hashlib
import json
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from html.parser import HTMLParser
from pathlib import PurePosixPath

from toolcore.validation.lexical import (
    CSS_RULES,
    JS_RULES,
    SCSS_RULES,
    LexicalRules,
    mask_comments_and_strings,
    scan_brackets,
)

CACHE_TTL_SECONDS = 300.0

LANGUAGE_BY_EXTENSION = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".less": "less",
    ".html": "html",
    ".htm": "html",
    ".json": "json",
    ".py": "python",
    ".sql": "sql",
    ".md": "markdown",
    ".yaml": "yaml",
    ".yml": "yaml",
}

_SQL_RULES = LexicalRules(
    line_comment_prefixes=("--",),
    block_comment_pairs=(("/*", "*/"),),
    string_delimiters=("'", '"'),
)
_VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
        "!doctype",
    }
)
_OPTIONAL_CLOSE = frozenset(
    {"p", "li", "dt", "dd", "tr", "td", "th", "thead", "tbody", "tfoot", "option", "colgroup"}
)
_PY2_PRINT = re.compile(r"^\s*print\s+[^\s(=]", re.MULTILINE)
_SQL_SELECT_STAR = re.compile(r"\bselect\s+\*", re.IGNORECASE)
_SQL_WHERE = re.compile(r"\bwhere\b", re.IGNORECASE)
_SQL_CONCAT = re.compile(r"(['\"]\s*\+\s*\w+|\$\{[^}]*\})")


@dataclass(slots=True, frozen=True)
class SyntaxIssue:
    """One syntax error with a 1-based line."""

    line: int
    message: str
    column: int | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"line": self.line, "message": self.message}
        if self.column is not None:
            payload["column"] = self.column
        return payload


@dataclass(slots=True, frozen=True)
class ValidationResult:
    """Outcome of validating one file's content."""

    valid: bool
    language: str
    errors: tuple[SyntaxIssue, ...] = ()
    warnings: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "valid": self.valid,
            "language": self.language,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


@dataclass(slots=True)
class _Findings:
    errors: list[SyntaxIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


def detect_language(filename: str) -> str:
    """Map a file name to a validator language, or 'unknown'."""
    return LANGUAGE_BY_EXTENSION.get(PurePosixPath(filename).suffix.lower(), "unknown")


def format_issues(result: ValidationResult) -> str:
    """Render errors as 'Line N: message' lines."""
    return "\n".join(f"Line {issue.line}: {issue.message}" for issue in result.errors)


class SyntaxValidator:
    """Validates content by language with a short-lived result cache."""

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[str, tuple[float, ValidationResult]] = {}
        self._checkers: dict[str, Callable[[str, _Findings], None]] = {
            "javascript": _check_brace_language(JS_RULES),
            "typescript": _check_brace_language(JS_RULES),
            "css": _check_brace_language(CSS_RULES),
            "scss": _check_brace_language(SCSS_RULES),
            "less": _check_brace_language(SCSS_RULES),
            "sass": _check_indented_stylesheet,
            "html": _check_html,
            "json": _check_json,
            "python": _check_python,
            "sql": _check_sql,
            "markdown": _check_markdown,
            "yaml": _check_yaml,
        }

    def validate(self, filename: str, content: str) -> ValidationResult:
        """Validate content as the language implied by the file name."""
        key = f"{filename}:{hashlib.sha1(content.encode('utf-8', 'surrogatepass')).hexdigest()}"
        now = self._clock()
        cached = self._cache.get(key)
        if cached is not None and now - cached[0] < self._ttl_seconds:
            return cached[1]

        result = self._run(filename, content)
        self._cache[key] = (now, result)
        return result

    def invalidate(self, filename: str) -> int:
        """Drop cached results for one file; returns how many were removed."""
        prefix = f"{filename}:"
        stale = [key for key in self._cache if key.startswith(prefix)]
        for key in stale:
            del self._cache[key]
        return len(stale)

    def clear(self) -> None:
        self._cache.clear()

    def _run(self, filename: str, content: str) -> ValidationResult:
        language = detect_language(filename)
        checker = self._checkers.get(language)
        if checker is None:
            return ValidationResult(
                valid=True,
                language="unknown",
                warnings=("Unknown file type - skipping validation",),
            )
        findings = _Findings()
        try:
            checker(content, findings)
        except Exception as error:  # noqa: BLE001
            return ValidationResult(
                valid=False,
                language=language,
                errors=(SyntaxIssue(line=1, message=f"Validation error: {error}"),),
            )
        return ValidationResult(
            valid=not findings.errors,
            language=language,
            errors=tuple(findings.errors),
            warnings=tuple(findings.warnings),
            suggestions=tuple(findings.suggestions),
        )


def _check_brace_language(rules: LexicalRules) -> Callable[[str, _Findings], None]:
    def check(content: str, findings: _Findings) -> None:
        masked = mask_comments_and_strings(content, rules)
        if masked.unterminated is not None:
            kind, line = masked.unterminated
            label = "string literal" if kind == "string" else "block comment"
            findings.errors.append(SyntaxIssue(line=line, message=f"Unterminated {label}"))
        for issue in scan_brackets(masked.text):
            findings.errors.append(
                SyntaxIssue(line=issue.line, column=issue.column, message=issue.message)
            )
        if findings.errors:
            findings.suggestions.append("Check for missing or extra brackets and quotes")

    return check


def _check_python(content: str, findings: _Findings) -> None:
    try:
        ast.parse(content)
    except SyntaxError as error:
        findings.errors.append(
            SyntaxIssue(
                line=error.lineno or 1,
                column=error.offset,
                message=error.msg,
            )
        )
    indents = {
        line[: len(line) - len(line.lstrip(" \t"))]
        for line in content.splitlines()
        if line.strip()
    }
    uses_tabs = any("\t" in indent for indent in indents)
    uses_spaces = any(" " in indent for indent in indents)
    if uses_tabs and uses_spaces:
        findings.warnings.append("Mixed tabs and spaces in indentation")
    if _PY2_PRINT.search(content):
        findings.warnings.append("Consider using print() function for Python 3")


def _check_json(content: str, findings: _Findings) -> None:
    try:
        json.loads(content)
    except json.JSONDecodeError as error:
        findings.errors.append(
            SyntaxIssue(line=error.lineno, column=error.colno, message=error.msg)
        )
        findings.suggestions.extend(
            [
                "Check for missing commas, quotes, or brackets",
                "Validate JSON structure with a formatter",
            ]
        )


def _check_sql(content: str, findings: _Findings) -> None:
    masked = mask_comments_and_strings(content, _SQL_RULES)
    for issue in scan_brackets(masked.text):
        findings.errors.append(
            SyntaxIssue(line=issue.line, column=issue.column, message=issue.message)
        )
    if _SQL_SELECT_STAR.search(content) and _SQL_WHERE.search(content):
        findings.warnings.append("SELECT * with WHERE clause - consider selecting specific columns")
    if _SQL_CONCAT.search(content):
        findings.warnings.append(
            "Possible SQL injection risk - use parameterized queries instead of string building"
        )


def _check_markdown(content: str, findings: _Findings) -> None:
    fences = [
        number
        for number, line in enumerate(content.splitlines(), start=1)
        if line.lstrip().startswith("```")
    ]
    if len(fences) % 2 == 1:
        findings.warnings.append(f"Unclosed code fence starting at line {fences[-1]}")


def _check_yaml(content: str, findings: _Findings) -> None:
    for number, line in enumerate(content.splitlines(), start=1):
        indent = line[: len(line) - len(line.lstrip(" \t"))]
        if "\t" in indent:
            findings.errors.append(
                SyntaxIssue(line=number, message="Tabs are not allowed in YAML indentation")
            )


def _check_indented_stylesheet(content: str, findings: _Findings) -> None:
    indents = [
        line[: len(line) - len(line.lstrip(" \t"))] for line in content.splitlines() if line.strip()
    ]
    if any("\t" in indent for indent in indents) and any(" " in indent for indent in indents):
        findings.warnings.append("Mixed tabs and spaces in indentation")


class _HtmlTagChecker(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.stack: list[tuple[str, int]] = []
        self.errors: list[SyntaxIssue] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag not in _VOID_ELEMENTS:
            self.stack.append((tag, self.getpos()[0]))

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        return

    def handle_endtag(self, tag: str) -> None:
        line = self.getpos()[0]
        if tag in _VOID_ELEMENTS:
            return
        if not any(open_tag == tag for open_tag, _ in self.stack):
            self.errors.append(SyntaxIssue(line=line, message=f"Unexpected closing tag </{tag}>"))
            return
        while self.stack:
            open_tag, open_line = self.stack.pop()
            if open_tag == tag:
                return
            if open_tag not in _OPTIONAL_CLOSE:
                self.errors.append(
                    SyntaxIssue(
                        line=open_line,
                        message=f"Tag <{open_tag}> is not closed before </{tag}>",
                    )
                )


def _check_html(content: str, findings: _Findings) -> None:
    checker = _HtmlTagChecker()
    checker.feed(content)
    checker.close()
    findings.errors.extend(checker.errors)
    for tag, line in checker.stack:
        if tag in _OPTIONAL_CLOSE:
            continue
        findings.errors.append(SyntaxIssue(line=line, message=f"Unclosed tag <{tag}>"))
