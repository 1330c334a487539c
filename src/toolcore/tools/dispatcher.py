"""Registry-driven tool execution with gating, caching, metrics and error analysis."""

from __future__ import annotations

import asyncio
import itertools
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from toolcore.config import DispatcherConfig
from toolcore.editor import EditorBridge
from toolcore.errors import BadRequest, PermissionDenied, ToolError, ToolTimeout, Unsupported
from toolcore.history import CheckpointStore
from toolcore.logging import get_logger, utc_timestamp
from toolcore.security import PathBlockedError, PolicyBlockedError
from toolcore.tools.advisor import ToolAdvisor, file_type_of
from toolcore.tools.cache import ResultCache, argument_paths
from toolcore.tools.error_analyzer import ErrorAnalyzer
from toolcore.tools.metrics import MetricsSink, ToolCallEvent, ToolMetrics
from toolcore.tools.registry import ToolDescriptor, ToolRegistry
from toolcore.tools.schema import coerce_arguments
from toolcore.workspace import Workspace

WARNINGS_KEY = "__warnings__"

logger = get_logger("dispatcher")


@dataclass(slots=True, frozen=True)
class ToolCall:
    """Normalized tool invocation from the model."""

    name: str
    args: dict[str, object] = field(default_factory=dict)
    request_id: str | None = None


@dataclass(slots=True, frozen=True)
class ToolResult:
    """Structured outcome returned to the caller; failures never raise."""

    status: str
    payload: dict[str, object] | None = None
    error: dict[str, object] | None = None
    warnings: tuple[str, ...] = ()
    elapsed_ms: int = 0
    cached: bool = False
    recommendation: dict[str, object] | None = None

    @property
    def ok(self) -> bool:
        return self.status == "Success"

    def to_dict(self) -> dict[str, object]:
        envelope: dict[str, object] = {
            "status": self.status,
            "warnings": list(self.warnings),
            "elapsed_ms": self.elapsed_ms,
            "cached": self.cached,
        }
        if self.payload is not None:
            envelope["payload"] = self.payload
        if self.error is not None:
            envelope["error"] = self.error
        if self.recommendation is not None:
            envelope["recommendation"] = self.recommendation
        return envelope


def error_kind(error: Exception) -> str:
    if isinstance(error, ToolError):
        return error.kind
    if isinstance(error, (PathBlockedError, PolicyBlockedError)):
        return PermissionDenied.kind
    return ToolError.kind


def error_message(error: Exception) -> str:
    if isinstance(error, ToolError):
        return error.message
    if isinstance(error, (PathBlockedError, PolicyBlockedError)):
        return error.reason
    return str(error) or type(error).__name__


def error_hint(error: Exception) -> str | None:
    if isinstance(error, (ToolError, PathBlockedError, PolicyBlockedError)):
        return error.hint
    return None


class ToolDispatcher:
    """Executes registered tools and converts every outcome into a ToolResult."""

    def __init__(
        self,
        registry: ToolRegistry,
        config: DispatcherConfig | None = None,
        checkpoints: CheckpointStore | None = None,
        editor: EditorBridge | None = None,
        cache: ResultCache | None = None,
        error_analyzer: ErrorAnalyzer | None = None,
        metrics: ToolMetrics | None = None,
        sinks: Sequence[MetricsSink] = (),
    ) -> None:
        self._registry = registry
        self._config = config or DispatcherConfig()
        self._checkpoints = checkpoints
        self._editor = editor
        self._cache = cache or ResultCache(
            ttl_seconds=self._config.cache_ttl_seconds,
            max_entries=self._config.cache_max_entries,
        )
        self._error_analyzer = error_analyzer or ErrorAnalyzer()
        self._metrics = metrics or ToolMetrics(slow_call_ms=self._config.slow_call_ms)
        self._sinks: tuple[MetricsSink, ...] = (self._metrics, *sinks)
        self._advisor = ToolAdvisor(self._metrics)
        self._call_ids = itertools.count(1)

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def metrics(self) -> ToolMetrics:
        return self._metrics

    @property
    def error_analyzer(self) -> ErrorAnalyzer:
        return self._error_analyzer

    async def execute(
        self,
        call: ToolCall,
        workspace: Workspace | None,
        silent: bool = False,
        mode: str | None = None,
    ) -> ToolResult:
        """Run one tool call end to end. Never raises for tool failures."""
        started = time.perf_counter()
        request_id = call.request_id or f"call-{next(self._call_ids):06d}"
        effective_mode = mode or self._config.mode
        arguments = dict(call.args)
        descriptor: ToolDescriptor | None = None
        recommendation: dict[str, object] | None = None
        try:
            descriptor = self._registry.get(call.name)
            if descriptor is None:
                raise BadRequest(
                    f"Unknown tool: {call.name}",
                    hint="Call list_tools to see the available tool names.",
                )
            if descriptor.requires_project and workspace is None:
                raise BadRequest(
                    "No workspace is open. Please ask the user to open a folder before "
                    "using this tool."
                )
            _guard_mode(descriptor.name, arguments, effective_mode)
            arguments = coerce_arguments(descriptor.name, descriptor.parameters, arguments)

            advice = self._advisor.recommend(descriptor.name, arguments, effective_mode)
            if advice is not None:
                recommendation = advice.to_dict()
                if not silent:
                    logger.info(
                        "Recommended {} for {}: {}",
                        advice.recommended_tool,
                        descriptor.name,
                        advice.reason,
                    )

            if descriptor.cacheable:
                hit = self._cache.get(descriptor.name, arguments)
                if hit is not None:
                    return self._success(
                        descriptor.name,
                        request_id,
                        arguments,
                        dict(hit),
                        started,
                        silent,
                        recommendation,
                        cached=True,
                    )

            if descriptor.creates_checkpoint:
                self._create_checkpoint()

            payload = await self._invoke(descriptor, arguments, workspace)
        except Exception as error:
            if descriptor is not None and descriptor.mutates:
                self._invalidate(arguments)
            return self._failure(
                call.name, request_id, arguments, error, started, silent, recommendation
            )

        if descriptor.mutates:
            self._invalidate(arguments)
        warnings = payload.pop(WARNINGS_KEY, [])
        if descriptor.cacheable:
            self._cache.put(descriptor.name, arguments, dict(payload))
        return self._success(
            descriptor.name,
            request_id,
            arguments,
            payload,
            started,
            silent,
            recommendation,
            warnings=tuple(str(item) for item in warnings),
        )

    async def _invoke(
        self,
        descriptor: ToolDescriptor,
        arguments: dict[str, object],
        workspace: Workspace | None,
    ) -> dict[str, object]:
        timeout = descriptor.timeout_seconds or self._config.tool_timeout_seconds
        scope = asyncio.timeout(timeout)
        try:
            async with scope:
                result = await descriptor.handler(arguments, workspace)
        except TimeoutError as error:
            if not scope.expired():
                raise
            raise ToolTimeout(
                f"Tool '{descriptor.name}' timed out after {timeout:g} seconds.",
                hint="Retry with a narrower request.",
            ) from error
        if not isinstance(result, dict):
            raise TypeError(f"Tool '{descriptor.name}' returned {type(result).__name__}.")
        return dict(result)

    def _create_checkpoint(self) -> None:
        if self._checkpoints is None or self._editor is None:
            return
        try:
            checkpoint = self._checkpoints.create(self._editor.snapshot_state())
        except Exception as error:  # checkpoint failures never fail the tool
            logger.warning("Skipping automatic checkpoint: {}", error)
            return
        if checkpoint is not None:
            logger.debug("Created checkpoint {}", checkpoint.name)

    def _invalidate(self, arguments: dict[str, object]) -> None:
        paths = argument_paths(arguments)
        dropped = self._cache.invalidate_paths(paths)
        if dropped:
            logger.debug("Invalidated {} cached results for {}", dropped, list(paths) or "*")

    def _success(
        self,
        tool: str,
        request_id: str,
        arguments: dict[str, object],
        payload: dict[str, object],
        started: float,
        silent: bool,
        recommendation: dict[str, object] | None,
        cached: bool = False,
        warnings: tuple[str, ...] = (),
    ) -> ToolResult:
        elapsed_ms = _elapsed_ms(started)
        self._emit(
            ToolCallEvent(
                tool=tool,
                request_id=request_id,
                status="Success",
                elapsed_ms=elapsed_ms,
                cached=cached,
                file_type=file_type_of(arguments),
                arguments=arguments,
                timestamp=utc_timestamp(),
            )
        )
        if not silent:
            logger.info(
                "tool={} request_id={} status=Success elapsed_ms={} cached={}",
                tool,
                request_id,
                elapsed_ms,
                cached,
            )
        return ToolResult(
            status="Success",
            payload=payload,
            warnings=warnings,
            elapsed_ms=elapsed_ms,
            cached=cached,
            recommendation=recommendation,
        )

    def _failure(
        self,
        tool: str,
        request_id: str,
        arguments: dict[str, object],
        error: Exception,
        started: float,
        silent: bool,
        recommendation: dict[str, object] | None,
    ) -> ToolResult:
        elapsed_ms = _elapsed_ms(started)
        kind = error_kind(error)
        message = error_message(error)
        if kind == ToolError.kind:
            logger.opt(exception=error).error("Unexpected failure in tool {}", tool)
        elif not silent:
            logger.info(
                "tool={} request_id={} status=Error kind={} message={}",
                tool,
                request_id,
                kind,
                message,
            )
        analysis = self._error_analyzer.analyze(
            tool, message, {"file_type": file_type_of(arguments), "kind": kind}
        )
        payload: dict[str, object] = {"kind": kind, "message": message}
        if analysis is not None:
            payload["suggestion"] = analysis.suggestion
            if analysis.alternative_tool is not None:
                payload["alternative_tool"] = analysis.alternative_tool
        else:
            hint = error_hint(error)
            if hint:
                payload["suggestion"] = hint
        if isinstance(error, ToolError) and error.details:
            payload["details"] = error.details
        self._emit(
            ToolCallEvent(
                tool=tool,
                request_id=request_id,
                status="Error",
                elapsed_ms=elapsed_ms,
                error_kind=kind,
                file_type=file_type_of(arguments),
                arguments=arguments,
                timestamp=utc_timestamp(),
            )
        )
        return ToolResult(
            status="Error",
            error=payload,
            elapsed_ms=elapsed_ms,
            recommendation=recommendation,
        )

    def _emit(self, event: ToolCallEvent) -> None:
        for sink in self._sinks:
            try:
                sink.record(event)
            except OSError as error:
                logger.warning("Metrics sink {} failed: {}", type(sink).__name__, error)


def _guard_mode(tool: str, arguments: dict[str, object], mode: str | None) -> None:
    if mode != "amend":
        return
    if tool == "edit_file" and arguments.get("content") is not None:
        raise Unsupported(
            f"Full-file rewrites via '{tool}' are not allowed in 'amend' mode.",
            hint="Use 'apply_diff' or 'edit_file' with the 'edits' parameter for targeted "
            "changes.",
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
