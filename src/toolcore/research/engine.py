"""Three-stage web research: broad exploration, gap analysis, focused reading."""

from __future__ import annotations

import asyncio
import math
from collections import Counter
from dataclasses import dataclass, field
from urllib.parse import urlparse

from toolcore.config import ResearchConfig
from toolcore.errors import BadRequest, QualityCompromised, ToolError
from toolcore.logging import get_logger, utc_timestamp
from toolcore.research.client import HostClient
from toolcore.research.scoring import (
    PROFILE_SCORE,
    frequent_terms,
    generate_queries,
    looks_like_username,
    profile_urls,
    score_url,
)
from toolcore.tasks import TaskManager

MAX_DEPTH = 4
MAX_RESULTS = 6
MIN_THRESHOLD = 0.3
STAGE_ONE_SLACK = 0.2
STAGE_THREE_MARGIN = 0.1
MAX_GAP_CANDIDATES = 10
READS_PER_GAP = 2
MIN_DEADLINE_MS = 1_000

logger = get_logger("research")


@dataclass(slots=True, frozen=True)
class ResearchOptions:
    """Caller-supplied research parameters before clamping."""

    query: str
    queries: tuple[str, ...] | None = None
    max_results: int = 3
    depth: int = 2
    relevance_threshold: float = 0.7
    task_id: str | None = None
    deadline_ms: int = 45_000


@dataclass(slots=True)
class UrlInfo:
    """A candidate URL with the score that placed it on the frontier."""

    url: str
    title: str
    snippet: str
    query: str
    score: float
    depth: int = 1
    stage: int = 1


@dataclass(slots=True)
class ResearchState:
    """Mutable bookkeeping for one research session."""

    original_query: str
    max_depth: int
    max_results: int
    max_total_urls: int
    relevance_threshold: float
    deadline_ms: int
    visited_urls: set[str] = field(default_factory=set)
    references: list[str] = field(default_factory=list)
    frontier: list[UrlInfo] = field(default_factory=list)
    all_content: list[dict[str, object]] = field(default_factory=list)
    search_history: list[dict[str, object]] = field(default_factory=list)
    knowledge_gaps: list[dict[str, object]] = field(default_factory=list)
    queries: list[str] = field(default_factory=list)
    total_urls_read: int = 0
    failed_url_count: int = 0

    def push_frontier(self, candidates: list[UrlInfo]) -> None:
        """Merge candidates, keeping the best score per URL, best first."""
        by_url = {item.url: item for item in self.frontier}
        for candidate in candidates:
            if candidate.url in self.visited_urls:
                continue
            current = by_url.get(candidate.url)
            if current is None or candidate.score > current.score:
                by_url[candidate.url] = candidate
        self.frontier = sorted(by_url.values(), key=lambda item: (-item.score, item.depth))

    def pop_frontier(self) -> UrlInfo | None:
        return self.frontier.pop(0) if self.frontier else None

    def successful(self, stage: int | None = None) -> list[dict[str, object]]:
        return [
            entry
            for entry in self.all_content
            if "error" not in entry and (stage is None or entry["stage"] == stage)
        ]


def failure_threshold(total_reads: int) -> float:
    """Tolerated failed-read ratio; grows slowly with the number of reads."""
    return min(0.6, 0.20 + 0.15 * math.log10(max(1, total_reads)))


class ResearchEngine:
    """Runs research sessions against the hosting collaborator."""

    def __init__(
        self,
        client: HostClient,
        config: ResearchConfig,
        tasks: TaskManager | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._tasks = tasks

    async def perform_research(self, options: ResearchOptions) -> dict[str, object]:
        query = options.query.strip()
        if not query:
            raise BadRequest("The 'query' parameter is required for perform_research.")
        deadline_ms = max(MIN_DEADLINE_MS, min(options.deadline_ms, self._config.max_deadline_ms))
        state = ResearchState(
            original_query=query,
            max_depth=max(1, min(options.depth, MAX_DEPTH)),
            max_results=max(1, min(options.max_results, MAX_RESULTS)),
            max_total_urls=self._config.max_total_urls,
            relevance_threshold=max(MIN_THRESHOLD, min(options.relevance_threshold, 1.0)),
            deadline_ms=deadline_ms,
        )
        stage_tasks = self._link_tasks(options.task_id)
        completed_stages: set[int] = set()

        degraded_reason: str | None = None
        scope = asyncio.timeout(deadline_ms / 1000)
        try:
            async with scope:
                self._start_stage(stage_tasks, 1)
                await self._stage_one(state, options)
                self._finish_stage(
                    stage_tasks,
                    1,
                    f"Completed Stage 1: read {len(state.successful(1))} sources from "
                    f"{len(state.queries)} queries.",
                )
                completed_stages.add(1)

                self._start_stage(stage_tasks, 2)
                self._stage_two(state)
                gap_names = ", ".join(str(gap["keyword"]) for gap in state.knowledge_gaps)
                self._finish_stage(
                    stage_tasks,
                    2,
                    f"Completed Stage 2: identified {len(state.knowledge_gaps)} knowledge gaps"
                    + (f": {gap_names}" if gap_names else "."),
                )
                completed_stages.add(2)

                self._start_stage(stage_tasks, 3)
                await self._stage_three(state)
                self._finish_stage(
                    stage_tasks,
                    3,
                    f"Completed Stage 3: added {len(state.successful(3))} focused sources.",
                )
                completed_stages.add(3)
        except TimeoutError:
            if not scope.expired():
                raise
            degraded_reason = "Timeout"
            logger.info(
                "Research deadline of {}ms reached after {} reads",
                deadline_ms,
                state.total_urls_read,
            )
        except Exception as error:
            message = error.message if isinstance(error, ToolError) else str(error)
            self._fail_tasks(options.task_id, stage_tasks, completed_stages, message, parent=True)
            raise

        if degraded_reason is not None:
            self._fail_tasks(
                options.task_id,
                stage_tasks,
                completed_stages,
                f"Research degraded: {degraded_reason}",
                parent=False,
            )
            return self._compile(state, "Degraded", degraded_reason, options.task_id)

        total = state.total_urls_read
        if total > 0 and state.failed_url_count / total > failure_threshold(total):
            message = (
                f"Research quality compromised: {state.failed_url_count} of {total} "
                "URL reads failed."
            )
            self._fail_tasks(options.task_id, stage_tasks, completed_stages, message, parent=True)
            raise QualityCompromised(
                message,
                hint="Retry later or narrow the query; the hosting service may be degraded.",
                details={
                    "failed_url_count": state.failed_url_count,
                    "total_urls_read": total,
                    "threshold": round(failure_threshold(total), 4),
                },
            )

        self._complete_parent(options.task_id, state)
        return self._compile(state, "Success", None, options.task_id)

    async def _stage_one(self, state: ResearchState, options: ResearchOptions) -> None:
        if options.queries:
            queries = [item.strip() for item in options.queries if item.strip()]
        else:
            queries = generate_queries(state.original_query, self._config.max_queries)
        state.queries = list(dict.fromkeys(queries))[: self._config.max_queries]

        seeds: list[UrlInfo] = []
        result_count = 0
        for search_query in state.queries:
            results = await self._search(state, search_query, stage=1)
            result_count += len(results)
            scored = sorted(
                (
                    UrlInfo(
                        url=item["link"],
                        title=item["title"],
                        snippet=item["snippet"],
                        query=search_query,
                        score=score_url(item["link"], item["title"], item["snippet"], search_query),
                    )
                    for item in results
                ),
                key=lambda info: -info.score,
            )
            seeds.extend(scored[: state.max_results])

        if result_count == 0 and looks_like_username(state.original_query):
            logger.debug("No search results; trying profile URLs for {}", state.original_query)
            seeds = [
                UrlInfo(
                    url=url,
                    title=f"{state.original_query} profile",
                    snippet="",
                    query=state.original_query,
                    score=PROFILE_SCORE,
                )
                for url in profile_urls(state.original_query)
            ]
        state.push_frontier(seeds)

        read_cap = state.max_total_urls // 2
        floor = state.relevance_threshold - STAGE_ONE_SLACK
        while state.frontier and state.total_urls_read < read_cap:
            info = state.pop_frontier()
            if info is None or info.url in state.visited_urls or info.score < floor:
                continue
            entry = await self._read(state, info)
            if entry is not None and info.depth < state.max_depth:
                state.push_frontier(self._score_links(state, entry, info.depth + 1))

    def _stage_two(self, state: ResearchState) -> None:
        coverage: dict[str, list[str]] = {}
        frequency: Counter[str] = Counter()
        for entry in state.successful(1):
            for term in frequent_terms(str(entry["content"]), state.original_query):
                coverage.setdefault(term, []).append(str(entry["url"]))
                frequency[term] += 1
        ranked = sorted(frequency.items(), key=lambda item: (-item[1], item[0]))
        state.knowledge_gaps = [
            {"keyword": term, "coverage_count": len(coverage[term]), "sources": coverage[term]}
            for term, _ in ranked[:MAX_GAP_CANDIDATES]
            if len(coverage[term]) < 2
        ]

    async def _stage_three(self, state: ResearchState) -> None:
        floor = state.relevance_threshold + STAGE_THREE_MARGIN
        for gap in state.knowledge_gaps:
            if state.total_urls_read >= state.max_total_urls:
                break
            gap_query = f"{state.original_query} {gap['keyword']}"
            results = await self._search(state, gap_query, stage=3)
            scored = sorted(
                (
                    UrlInfo(
                        url=item["link"],
                        title=item["title"],
                        snippet=item["snippet"],
                        query=gap_query,
                        score=score_url(item["link"], item["title"], item["snippet"], gap_query),
                        stage=3,
                    )
                    for item in results
                ),
                key=lambda info: -info.score,
            )
            reads = 0
            for info in scored:
                if reads >= READS_PER_GAP or state.total_urls_read >= state.max_total_urls:
                    break
                if info.url in state.visited_urls or info.score < floor:
                    continue
                await self._read(state, info)
                reads += 1

    async def _search(self, state: ResearchState, query: str, stage: int) -> list[dict[str, str]]:
        try:
            payload = await self._client.search(query)
        except ToolError as error:
            state.search_history.append(
                {"query": query, "stage": stage, "result_count": 0, "error": error.message}
            )
            logger.debug("Search failed for {!r}: {}", query, error.message)
            return []
        results = list(payload["results"])
        state.search_history.append(
            {"query": query, "stage": stage, "result_count": len(results)}
        )
        return results

    async def _read(self, state: ResearchState, info: UrlInfo) -> dict[str, object] | None:
        """Read one URL; the URL counts as visited before the request is made."""
        state.visited_urls.add(info.url)
        state.references.append(info.url)
        state.total_urls_read += 1
        try:
            payload = await self._client.read_url(info.url)
        except ToolError as error:
            state.failed_url_count += 1
            state.all_content.append(
                {
                    "url": info.url,
                    "title": info.title,
                    "stage": info.stage,
                    "error": error.message,
                    "timestamp": utc_timestamp(),
                }
            )
            logger.debug("Read failed for {}: {}", info.url, error.message)
            return None
        content = str(payload["content"])
        if not content.strip():
            return None
        entry: dict[str, object] = {
            "url": info.url,
            "title": info.title,
            "snippet": info.snippet,
            "content": content[: self._config.max_content_chars],
            "links": payload["links"],
            "stage": info.stage,
            "depth": info.depth,
            "relevance_score": info.score,
            "timestamp": utc_timestamp(),
        }
        state.all_content.append(entry)
        return entry

    @staticmethod
    def _score_links(
        state: ResearchState, entry: dict[str, object], depth: int
    ) -> list[UrlInfo]:
        candidates: list[UrlInfo] = []
        for raw in entry.get("links") or []:
            if isinstance(raw, str):
                url, text = raw, ""
            elif isinstance(raw, dict):
                url = str(raw.get("url") or raw.get("href") or raw.get("link") or "")
                text = str(raw.get("text") or raw.get("title") or "")
            else:
                continue
            if urlparse(url).scheme not in ("http", "https") or url in state.visited_urls:
                continue
            synthetic = f"{text} {state.original_query}".strip()
            candidates.append(
                UrlInfo(
                    url=url,
                    title=text,
                    snippet="",
                    query=synthetic,
                    score=score_url(url, text, "", synthetic),
                    depth=depth,
                    stage=int(entry["stage"]),
                )
            )
        return candidates

    def _link_tasks(self, task_id: str | None) -> dict[int, str]:
        if task_id is None or self._tasks is None:
            return {}
        parent = self._tasks.require(task_id)
        stages: dict[int, str] = {}
        for subtask_id in parent.subtasks:
            subtask = self._tasks.get(subtask_id)
            if subtask is None:
                continue
            for number in (1, 2, 3):
                if f"stage-{number}" in subtask.tags or f"Stage {number}" in subtask.title:
                    stages.setdefault(number, subtask.id)
                    break
        if parent.status != "in_progress":
            self._tasks.update(task_id, status="in_progress")
        return stages

    def _start_stage(self, stage_tasks: dict[int, str], number: int) -> None:
        task_id = stage_tasks.get(number)
        if task_id is not None and self._tasks is not None:
            self._tasks.update(task_id, status="in_progress")

    def _finish_stage(self, stage_tasks: dict[int, str], number: int, note: str) -> None:
        task_id = stage_tasks.get(number)
        if task_id is not None and self._tasks is not None:
            self._tasks.update(task_id, status="completed", notes=[note])

    def _fail_tasks(
        self,
        parent_id: str | None,
        stage_tasks: dict[int, str],
        completed: set[int],
        reason: str,
        parent: bool,
    ) -> None:
        if self._tasks is None:
            return
        for number, task_id in sorted(stage_tasks.items()):
            if number in completed or self._tasks.get(task_id) is None:
                continue
            self._tasks.update(task_id, status="failed", notes=[f"Failed: {reason}"])
        if parent_id is None or self._tasks.get(parent_id) is None:
            return
        if parent:
            self._tasks.update(parent_id, status="failed", notes=[reason])
        else:
            self._tasks.add_note(parent_id, reason, "system")

    def _complete_parent(self, task_id: str | None, state: ResearchState) -> None:
        if task_id is None or self._tasks is None:
            return
        parent = self._tasks.get(task_id)
        if parent is None:
            return
        sources = state.successful()
        self._tasks.update(
            task_id,
            status="completed",
            notes=[f"Research complete! Processed {len(sources)} sources across 3 stages."],
            context={
                **parent.context,
                "research_completed": True,
                "total_sources": len(sources),
                "unique_domains": len(_domains(state.references)),
                "knowledge_gaps": len(state.knowledge_gaps),
            },
        )

    @staticmethod
    def _compile(
        state: ResearchState, status: str, degraded_reason: str | None, task_id: str | None
    ) -> dict[str, object]:
        successful = sorted(
            state.successful(), key=lambda entry: -float(entry["relevance_score"])
        )
        stats: dict[str, object] = {
            "total_urls_read": state.total_urls_read,
            "successful_reads": len(successful),
            "failed_reads": state.failed_url_count,
            "stage1_sources": len(state.successful(1)),
            "stage3_sources": len(state.successful(3)),
            "unique_domains": len(_domains(state.references)),
            "searches": len(state.search_history),
            "knowledge_gaps": len(state.knowledge_gaps),
        }
        if degraded_reason is not None:
            stats["degraded_reason"] = degraded_reason
        headline = (
            f'Research for "{state.original_query}" completed.'
            if degraded_reason is None
            else f'Research for "{state.original_query}" stopped early ({degraded_reason}); '
            "results are partial."
        )
        summary = "\n".join(
            [
                headline,
                f"- Total URLs visited: {state.total_urls_read}",
                f"- Successful content retrievals: {len(successful)}",
                f"- Failed retrievals: {state.failed_url_count}",
                f"- Stage 1 (broad exploration): {stats['stage1_sources']} sources",
                f"- Stage 3 (focused reading): {stats['stage3_sources']} sources",
                f"- Unique domains explored: {stats['unique_domains']}",
                f"- Search queries performed: {stats['searches']}",
                f"- Knowledge gaps identified: {stats['knowledge_gaps']}",
            ]
        )
        full_content = "\n\n".join(
            f"--- START OF CONTENT FROM {entry['url']} (Stage: {entry['stage']}, "
            f"Relevance: {float(entry['relevance_score']):.2f}) ---\n"
            f"Title: {entry['title']}\nURL: {entry['url']}\nRetrieved: {entry['timestamp']}\n\n"
            f"{entry['content']}\n\n--- END OF CONTENT ---"
            for entry in successful
        )
        return {
            "status": status,
            "summary": summary,
            "full_content": full_content,
            "references": list(state.references),
            "results": {
                "sources": [
                    {
                        "url": entry["url"],
                        "title": entry["title"],
                        "stage": entry["stage"],
                        "relevance_score": round(float(entry["relevance_score"]), 4),
                    }
                    for entry in successful
                ],
                "stats": stats,
                "queries": list(state.queries),
            },
            "metadata": {
                "search_history": list(state.search_history),
                "knowledge_gaps": list(state.knowledge_gaps),
                "failed_urls": [
                    {"url": entry["url"], "error": entry["error"]}
                    for entry in state.all_content
                    if "error" in entry
                ],
                "deadline_ms": state.deadline_ms,
                "task_id": task_id,
            },
        }


def _domains(urls: list[str]) -> set[str]:
    return {urlparse(url).hostname or "unknown" for url in urls}
