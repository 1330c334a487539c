"""Recurring tool error detection with remediation suggestions."""

from __future__ import annotations

from dataclasses import dataclass, field

from toolcore.logging import get_logger, utc_timestamp

RECURRENCE_THRESHOLD = 3
MAX_CONTEXTS = 10

logger = get_logger("errors")


@dataclass(slots=True, frozen=True)
class Suggestion:
    suggestion: str
    alternative_tool: str | None
    confidence: float


@dataclass(slots=True)
class ErrorPattern:
    count: int
    first_seen: str
    last_seen: str
    contexts: list[dict[str, object]] = field(default_factory=list)


def suggest_fix(tool: str, message: str) -> Suggestion | None:
    """Match an error against the rule table; first matching rule wins."""
    lowered = message.lower()
    if tool == "apply_diff":
        if "no valid diff blocks found" in lowered:
            return Suggestion(
                "The diff format is incorrect. Use read_file with include_line_numbers=true "
                "first, then format the diff exactly as: <<<<<<< SEARCH\\n:start_line:N\\n"
                "-------\\nexact content\\n=======\\nnew content\\n>>>>>>> REPLACE",
                "read_file",
                0.95,
            )
        if "search content does not match" in lowered:
            return Suggestion(
                "The search content must match exactly. Use read_file with "
                "include_line_numbers=true to get the exact current content, then copy it "
                "precisely into the SEARCH block",
                "read_file",
                0.95,
            )
    if any(marker in lowered for marker in ("not found", "notfounderror", "does not exist")):
        return Suggestion(
            "Use get_project_structure first to verify file paths",
            "get_project_structure",
            0.9,
        )
    if any(
        marker in lowered for marker in ("permission", "denied", "user activation is required")
    ):
        return Suggestion(
            "File system permission issue. Ask the user to grant access to the workspace, "
            "then retry the operation.",
            None,
            0.9,
        )
    if "edit" in tool and "syntax" in lowered:
        return Suggestion(
            "Use apply_diff for more precise editing to avoid syntax errors",
            "apply_diff",
            0.85,
        )
    if "line" in lowered and "invalid" in lowered:
        return Suggestion(
            "Use read_file with line numbers first to get accurate line references",
            "read_file",
            0.9,
        )
    return None


class ErrorAnalyzer:
    """Tracks error signatures and emits a suggestion once one recurs."""

    def __init__(self, threshold: int = RECURRENCE_THRESHOLD) -> None:
        self._threshold = threshold
        self._patterns: dict[str, ErrorPattern] = {}

    def analyze(
        self, tool: str, message: str, context: dict[str, object] | None = None
    ) -> Suggestion | None:
        signature = f"{tool}:{message[:100]}"
        now = utc_timestamp()
        pattern = self._patterns.get(signature)
        if pattern is None:
            pattern = ErrorPattern(count=0, first_seen=now, last_seen=now)
            self._patterns[signature] = pattern
        pattern.count += 1
        pattern.last_seen = now
        pattern.contexts.append(dict(context or {}))
        del pattern.contexts[:-MAX_CONTEXTS]
        if pattern.count < self._threshold:
            return None
        logger.warning("Recurring error detected: {}", signature)
        return suggest_fix(tool, message)

    def stats(self) -> dict[str, object]:
        recurring = {
            signature: {
                "count": pattern.count,
                "first_seen": pattern.first_seen,
                "last_seen": pattern.last_seen,
            }
            for signature, pattern in sorted(self._patterns.items())
            if pattern.count >= self._threshold
        }
        return {
            "tracked_signatures": len(self._patterns),
            "total_errors": sum(pattern.count for pattern in self._patterns.values()),
            "recurring": recurring,
        }

    def clear(self) -> None:
        self._patterns.clear()
