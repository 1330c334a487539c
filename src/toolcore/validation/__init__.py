"""Syntax validation for edited content."""

from .syntax import (
    LANGUAGE_BY_EXTENSION,
    SyntaxIssue,
    SyntaxValidator,
    ValidationResult,
    detect_language,
    format_issues,
)

__all__ = [
    "LANGUAGE_BY_EXTENSION",
    "SyntaxIssue",
    "SyntaxValidator",
    "ValidationResult",
    "detect_language",
    "format_issues",
]
