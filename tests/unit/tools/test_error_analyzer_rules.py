from __future__ import annotations

import pytest

from toolcore.tools.error_analyzer import ErrorAnalyzer, suggest_fix


def test_suggestion_appears_only_once_the_error_recurs() -> None:
    analyzer = ErrorAnalyzer()

    first = analyzer.analyze("read_file", "File 'a.py' does not exist.", {"file_type": "py"})
    second = analyzer.analyze("read_file", "File 'a.py' does not exist.")
    third = analyzer.analyze("read_file", "File 'a.py' does not exist.")

    assert first is None and second is None
    assert third is not None
    assert third.alternative_tool == "get_project_structure"
    assert third.confidence == 0.9


def test_signatures_are_per_tool_and_message() -> None:
    analyzer = ErrorAnalyzer(threshold=2)

    analyzer.analyze("read_file", "boom")
    analyzer.analyze("write_file", "boom")
    analyzer.analyze("read_file", "boom")

    stats = analyzer.stats()
    assert stats["tracked_signatures"] == 2
    assert stats["total_errors"] == 3
    assert list(stats["recurring"]) == ["read_file:boom"]
    assert stats["recurring"]["read_file:boom"]["count"] == 2

    analyzer.clear()
    assert analyzer.stats()["tracked_signatures"] == 0


def test_signature_uses_first_hundred_characters() -> None:
    analyzer = ErrorAnalyzer(threshold=2)
    prefix = "x" * 100

    analyzer.analyze("t", prefix + "first tail")
    analyzer.analyze("t", prefix + "second tail")

    assert analyzer.stats()["tracked_signatures"] == 1


@pytest.mark.parametrize(
    ("tool", "message", "alternative", "confidence"),
    [
        ("apply_diff", "No valid diff blocks found.", "read_file", 0.95),
        ("apply_diff", "Search content does not match at line 4.", "read_file", 0.95),
        ("read_file", "NotFoundError: gone", "get_project_structure", 0.9),
        ("write_file", "Permission denied", None, 0.9),
        ("write_file", "User activation is required to request permissions.", None, 0.9),
        ("edit_file", "Resulting code has a syntax error", "apply_diff", 0.85),
        ("read_file", "Invalid line range", "read_file", 0.9),
    ],
)
def test_rule_table(
    tool: str, message: str, alternative: str | None, confidence: float
) -> None:
    suggestion = suggest_fix(tool, message)

    assert suggestion is not None
    assert suggestion.alternative_tool == alternative
    assert suggestion.confidence == confidence


def test_unmatched_errors_have_no_suggestion() -> None:
    assert suggest_fix("read_file", "Something odd happened") is None
    assert suggest_fix("write_file", "syntax error") is None
