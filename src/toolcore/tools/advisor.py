"""Smart tool selection hints attached to dispatcher results."""

from __future__ import annotations

from dataclasses import dataclass

from toolcore.logging import get_logger
from toolcore.tools.metrics import ToolMetrics

LARGE_FILE_BYTES = 500_000

logger = get_logger("advisor")


@dataclass(slots=True, frozen=True)
class Recommendation:
    recommended_tool: str
    reason: str
    alternatives: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "recommended_tool": self.recommended_tool,
            "reason": self.reason,
            "alternatives": list(self.alternatives),
        }


def file_type_of(arguments: dict[str, object]) -> str | None:
    filename = arguments.get("filename")
    if not isinstance(filename, str) or "." not in filename.rsplit("/", 1)[-1]:
        return None
    return filename.rsplit(".", 1)[-1].lower()


class ToolAdvisor:
    """Suggests better-suited tools from mode, file size and failure history."""

    def __init__(self, metrics: ToolMetrics) -> None:
        self._metrics = metrics

    def recommend(
        self,
        tool: str,
        arguments: dict[str, object],
        mode: str | None = None,
        file_size: int | None = None,
    ) -> Recommendation | None:
        if mode == "amend":
            if tool == "edit_file":
                return Recommendation(
                    "apply_diff",
                    "apply_diff is safer and more precise for amend mode",
                    ("edit_file",),
                )
            if tool == "search_code":
                return Recommendation(
                    "search_in_file",
                    "More targeted search for amend mode",
                    ("search_code",),
                )
        if tool == "edit_file" and file_size is not None and file_size > LARGE_FILE_BYTES:
            return Recommendation(
                "edit_file",
                "Use the edits array for large files",
                ("apply_diff",),
            )
        file_type = file_type_of(arguments)
        stats = self._metrics.for_file_type(tool, file_type)
        if stats is not None and stats.failure_count > stats.success_count:
            logger.warning(
                "Tool {} has a high failure rate for {} files", tool, file_type or "unknown"
            )
            alternative = "apply_diff" if tool == "edit_file" else "read_file"
            return Recommendation(
                alternative,
                f"{tool} has failed more often than it succeeded for {file_type or 'these'} files",
                (tool,),
            )
        return None
