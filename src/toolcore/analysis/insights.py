"""Session-wide ledger of engineering analyses."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from toolcore.logging.toollog import utc_timestamp


@dataclass(slots=True)
class InsightsLedger:
    """Remembers what was analyzed so insights can be summarized later."""

    quality_reports: dict[str, dict[str, object]] = field(default_factory=dict)
    debug_sessions: list[dict[str, object]] = field(default_factory=list)
    solutions: list[dict[str, object]] = field(default_factory=list)
    flows: dict[str, dict[str, object]] = field(default_factory=dict)
    symbol_tables: dict[str, dict[str, int]] = field(default_factory=dict)
    _sequence: int = 0

    def next_session_id(self, prefix: str) -> str:
        self._sequence += 1
        return f"{prefix}-{self._sequence:06d}"

    def record_quality(self, report: dict[str, object]) -> None:
        self.quality_reports[str(report["file"])] = {
            "overall_score": report["overall_score"],
            "category": report["category"],
            "issues": len(report["code_smells"]) + len(report["security"]),
            "timestamp": utc_timestamp(),
        }

    def record_symbols(self, path: str, summary: dict[str, int]) -> None:
        self.symbol_tables[path] = dict(summary)

    def record_flow(self, flow: dict[str, object]) -> None:
        key = f"{flow['path']}:{flow['variable']}"
        self.flows[key] = {
            "complexity": flow["complexity"],
            "mutations": len(flow["mutations"]),
            "timestamp": utc_timestamp(),
        }

    def record_debug(self, result: dict[str, object]) -> None:
        session = result["session"]
        self.debug_sessions.append(
            {
                "id": session["id"],
                "error_type": session["error_type"],
                "status": session["status"],
                "timestamp": utc_timestamp(),
            }
        )

    def record_solution(self, result: dict[str, object]) -> None:
        self.solutions.append(
            {
                "id": result["session_id"],
                "problem_type": result["problem_type"],
                "selected_approach": result["selected_approach"],
                "timestamp": utc_timestamp(),
            }
        )

    def summary(self) -> dict[str, object]:
        scores = [float(item["overall_score"]) for item in self.quality_reports.values()]
        resolved = sum(1 for item in self.debug_sessions if item["status"] == "resolved")
        error_types = Counter(str(item["error_type"]) for item in self.debug_sessions)
        weakest = sorted(
            self.quality_reports.items(), key=lambda item: float(item[1]["overall_score"])
        )[:5]
        return {
            "files_analyzed": len(self.quality_reports),
            "average_quality": round(sum(scores) / len(scores), 2) if scores else None,
            "lowest_quality_files": [
                {"file": path, "overall_score": data["overall_score"]} for path, data in weakest
            ],
            "symbol_tables_built": len(self.symbol_tables),
            "data_flows_traced": len(self.flows),
            "debug_sessions": {
                "total": len(self.debug_sessions),
                "resolved": resolved,
                "success_rate": round(resolved / len(self.debug_sessions), 2)
                if self.debug_sessions
                else None,
                "error_types": dict(error_types.most_common()),
            },
            "problems_solved": len(self.solutions),
            "approaches": dict(
                Counter(str(item["selected_approach"]) for item in self.solutions).most_common()
            ),
        }

    def clear(self) -> None:
        self.quality_reports.clear()
        self.debug_sessions.clear()
        self.solutions.clear()
        self.flows.clear()
        self.symbol_tables.clear()
