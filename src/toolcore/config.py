"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, replace
from pathlib import Path

from toolcore.security import SecurityLimits

CONFIG_FILE_NAME = "toolcore.toml"
DATA_DIR_NAME = ".toolcore"

MAX_FILE_BYTES_CAP = 64 * 1024 * 1024
MAX_READ_BYTES_CAP = 4 * 1024 * 1024
MAX_OPEN_LINES_CAP = 20_000
MAX_SEARCH_HITS_CAP = 2_000
MAX_TOOL_TIMEOUT_CAP = 600
MAX_WORKERS_CAP = 32
MAX_DEADLINE_MS_CAP = 600_000

DEFAULT_INCLUDE_EXTENSIONS = (
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".html",
    ".css",
    ".scss",
    ".md",
    ".json",
    ".py",
    ".java",
    ".c",
    ".cpp",
    ".h",
    ".cs",
    ".go",
    ".rb",
    ".php",
    ".swift",
    ".kt",
    ".rs",
    ".toml",
    ".yaml",
    ".sh",
    ".txt",
)
DEFAULT_IGNORE_PATTERNS = (
    ".git/",
    "node_modules/",
    "__pycache__/",
    ".venv/",
    DATA_DIR_NAME + "/",
)
WORKER_MODES = ("thread", "process")
EDIT_MODES = ("code", "amend")


@dataclass(slots=True, frozen=True)
class IndexConfig:
    """Codebase indexing settings."""

    include_extensions: tuple[str, ...] = DEFAULT_INCLUDE_EXTENSIONS
    ignore_patterns: tuple[str, ...] = DEFAULT_IGNORE_PATTERNS
    max_query_results: int = 200


@dataclass(slots=True, frozen=True)
class DispatcherConfig:
    """Tool dispatch, caching and timing settings."""

    tool_timeout_seconds: float = 30.0
    cache_ttl_seconds: float = 30.0
    cache_max_entries: int = 100
    slow_call_ms: int = 5_000
    mode: str | None = None


@dataclass(slots=True, frozen=True)
class WorkersConfig:
    """Worker pool settings."""

    mode: str = "thread"
    max_workers: int = 4
    timeout_seconds: float = 30.0


@dataclass(slots=True, frozen=True)
class ResearchConfig:
    """Hosting collaborator and research session settings."""

    host_url: str = "http://127.0.0.1:3333"
    http_timeout_seconds: float = 12.0
    read_attempts: int = 3
    search_attempts: int = 2
    backoff_seconds: float = 0.5
    deadline_ms: int = 45_000
    max_deadline_ms: int = 300_000
    max_total_urls: int = 20
    max_queries: int = 5
    max_content_chars: int = 8_000


@dataclass(slots=True, frozen=True)
class ServerConfig:
    """Fully merged configuration."""

    repo_root: Path | None
    data_dir: Path
    limits: SecurityLimits
    index: IndexConfig
    dispatcher: DispatcherConfig
    workers: WorkersConfig
    research: ResearchConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return a serializable snapshot for status payloads."""
        return {
            "repo_root": str(self.repo_root) if self.repo_root is not None else None,
            "data_dir": str(self.data_dir),
            "limits": {
                "max_file_bytes": self.limits.max_file_bytes,
                "max_read_bytes": self.limits.max_read_bytes,
                "max_open_lines": self.limits.max_open_lines,
                "max_search_hits": self.limits.max_search_hits,
            },
            "index": {
                "include_extensions": list(self.index.include_extensions),
                "ignore_patterns": list(self.index.ignore_patterns),
                "max_query_results": self.index.max_query_results,
            },
            "dispatcher": {
                "tool_timeout_seconds": self.dispatcher.tool_timeout_seconds,
                "cache_ttl_seconds": self.dispatcher.cache_ttl_seconds,
                "cache_max_entries": self.dispatcher.cache_max_entries,
                "slow_call_ms": self.dispatcher.slow_call_ms,
                "mode": self.dispatcher.mode,
            },
            "workers": {
                "mode": self.workers.mode,
                "max_workers": self.workers.max_workers,
                "timeout_seconds": self.workers.timeout_seconds,
            },
            "research": {
                "host_url": self.research.host_url,
                "deadline_ms": self.research.deadline_ms,
                "max_total_urls": self.research.max_total_urls,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    max_file_bytes: int | None = None
    max_read_bytes: int | None = None
    max_open_lines: int | None = None
    max_search_hits: int | None = None
    mode: str | None = None
    worker_mode: str | None = None
    max_workers: int | None = None
    host_url: str | None = None


def default_config(repo_root: Path | None) -> ServerConfig:
    """Build default config for a workspace root, or for no workspace at all."""
    if repo_root is None:
        resolved_root = None
        data_dir = Path.home() / DATA_DIR_NAME
    else:
        resolved_root = repo_root.resolve()
        data_dir = resolved_root / DATA_DIR_NAME
    return ServerConfig(
        repo_root=resolved_root,
        data_dir=data_dir,
        limits=SecurityLimits(),
        index=IndexConfig(),
        dispatcher=DispatcherConfig(),
        workers=WorkersConfig(),
        research=ResearchConfig(),
    )


def load_repo_config_file(repo_root: Path | None) -> dict[str, object]:
    """Load the optional toolcore.toml from the workspace root."""
    if repo_root is None:
        return {}
    config_path = repo_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{name}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{name}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value


def _optional_positive_float(value: object, name: str, default: float, cap: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"Config field '{name}' must be a positive number.")
    if value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return float(value)


def _optional_choice(
    value: object, name: str, default: str | None, choices: tuple[str, ...]
) -> str | None:
    if value is None:
        return default
    if not isinstance(value, str) or value not in choices:
        allowed = ", ".join(repr(choice) for choice in choices)
        raise ValueError(f"Config field '{name}' must be one of {allowed}.")
    return value


def _optional_str(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value


def merge_config(
    base: ServerConfig, repo_payload: dict[str, object], overrides: CliOverrides
) -> ServerConfig:
    """Merge defaults, repo config, then CLI/startup overrides."""
    limits_payload = _get_table(repo_payload, "limits")
    index_payload = _get_table(repo_payload, "index")
    dispatcher_payload = _get_table(repo_payload, "dispatcher")
    workers_payload = _get_table(repo_payload, "workers")
    research_payload = _get_table(repo_payload, "research")
    security_payload = _get_table(repo_payload, "security")

    if security_payload:
        raise ValueError(
            "Config section 'security' is not supported; the default denylist cannot be relaxed."
        )

    limits = SecurityLimits(
        max_file_bytes=_optional_positive_int_with_cap(
            limits_payload.get("max_file_bytes"),
            "limits.max_file_bytes",
            base.limits.max_file_bytes,
            MAX_FILE_BYTES_CAP,
        ),
        max_read_bytes=_optional_positive_int_with_cap(
            limits_payload.get("max_read_bytes"),
            "limits.max_read_bytes",
            base.limits.max_read_bytes,
            MAX_READ_BYTES_CAP,
        ),
        max_open_lines=_optional_positive_int_with_cap(
            limits_payload.get("max_open_lines"),
            "limits.max_open_lines",
            base.limits.max_open_lines,
            MAX_OPEN_LINES_CAP,
        ),
        max_search_hits=_optional_positive_int_with_cap(
            limits_payload.get("max_search_hits"),
            "limits.max_search_hits",
            base.limits.max_search_hits,
            MAX_SEARCH_HITS_CAP,
        ),
    )

    include_extensions = base.index.include_extensions
    if "include_extensions" in index_payload:
        include_extensions = _tuple_of_strings(
            index_payload["include_extensions"], "index.include_extensions"
        )
    ignore_patterns = base.index.ignore_patterns
    if "ignore_patterns" in index_payload:
        ignore_patterns = _tuple_of_strings(
            index_payload["ignore_patterns"], "index.ignore_patterns"
        )
    index = IndexConfig(
        include_extensions=tuple(ext.lower() for ext in include_extensions),
        ignore_patterns=ignore_patterns,
        max_query_results=_optional_positive_int_with_cap(
            index_payload.get("max_query_results"),
            "index.max_query_results",
            base.index.max_query_results,
            MAX_SEARCH_HITS_CAP,
        ),
    )

    dispatcher = DispatcherConfig(
        tool_timeout_seconds=_optional_positive_float(
            dispatcher_payload.get("tool_timeout_seconds"),
            "dispatcher.tool_timeout_seconds",
            base.dispatcher.tool_timeout_seconds,
            MAX_TOOL_TIMEOUT_CAP,
        ),
        cache_ttl_seconds=_optional_positive_float(
            dispatcher_payload.get("cache_ttl_seconds"),
            "dispatcher.cache_ttl_seconds",
            base.dispatcher.cache_ttl_seconds,
            3_600,
        ),
        cache_max_entries=_optional_positive_int_with_cap(
            dispatcher_payload.get("cache_max_entries"),
            "dispatcher.cache_max_entries",
            base.dispatcher.cache_max_entries,
            10_000,
        ),
        slow_call_ms=_optional_positive_int_with_cap(
            dispatcher_payload.get("slow_call_ms"),
            "dispatcher.slow_call_ms",
            base.dispatcher.slow_call_ms,
            MAX_TOOL_TIMEOUT_CAP * 1000,
        ),
        mode=_optional_choice(
            dispatcher_payload.get("mode"), "dispatcher.mode", base.dispatcher.mode, EDIT_MODES
        ),
    )

    workers = WorkersConfig(
        mode=_optional_choice(
            workers_payload.get("mode"), "workers.mode", base.workers.mode, WORKER_MODES
        ),
        max_workers=_optional_positive_int_with_cap(
            workers_payload.get("max_workers"),
            "workers.max_workers",
            base.workers.max_workers,
            MAX_WORKERS_CAP,
        ),
        timeout_seconds=_optional_positive_float(
            workers_payload.get("timeout_seconds"),
            "workers.timeout_seconds",
            base.workers.timeout_seconds,
            MAX_TOOL_TIMEOUT_CAP,
        ),
    )

    research = ResearchConfig(
        host_url=_optional_str(
            research_payload.get("host_url"), "research.host_url", base.research.host_url
        ),
        http_timeout_seconds=_optional_positive_float(
            research_payload.get("http_timeout_seconds"),
            "research.http_timeout_seconds",
            base.research.http_timeout_seconds,
            120,
        ),
        read_attempts=_optional_positive_int_with_cap(
            research_payload.get("read_attempts"),
            "research.read_attempts",
            base.research.read_attempts,
            10,
        ),
        search_attempts=_optional_positive_int_with_cap(
            research_payload.get("search_attempts"),
            "research.search_attempts",
            base.research.search_attempts,
            10,
        ),
        backoff_seconds=_optional_positive_float(
            research_payload.get("backoff_seconds"),
            "research.backoff_seconds",
            base.research.backoff_seconds,
            30,
        ),
        deadline_ms=_optional_positive_int_with_cap(
            research_payload.get("deadline_ms"),
            "research.deadline_ms",
            base.research.deadline_ms,
            MAX_DEADLINE_MS_CAP,
        ),
        max_deadline_ms=_optional_positive_int_with_cap(
            research_payload.get("max_deadline_ms"),
            "research.max_deadline_ms",
            base.research.max_deadline_ms,
            MAX_DEADLINE_MS_CAP,
        ),
        max_total_urls=_optional_positive_int_with_cap(
            research_payload.get("max_total_urls"),
            "research.max_total_urls",
            base.research.max_total_urls,
            100,
        ),
        max_queries=_optional_positive_int_with_cap(
            research_payload.get("max_queries"),
            "research.max_queries",
            base.research.max_queries,
            20,
        ),
        max_content_chars=_optional_positive_int_with_cap(
            research_payload.get("max_content_chars"),
            "research.max_content_chars",
            base.research.max_content_chars,
            200_000,
        ),
    )

    merged = ServerConfig(
        repo_root=base.repo_root,
        data_dir=base.data_dir,
        limits=limits,
        index=index,
        dispatcher=dispatcher,
        workers=workers,
        research=research,
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: ServerConfig, overrides: CliOverrides) -> ServerConfig:
    """Apply startup overrides at highest precedence."""
    limits = SecurityLimits(
        max_file_bytes=_optional_positive_int_with_cap(
            overrides.max_file_bytes,
            "overrides.max_file_bytes",
            config.limits.max_file_bytes,
            MAX_FILE_BYTES_CAP,
        ),
        max_read_bytes=_optional_positive_int_with_cap(
            overrides.max_read_bytes,
            "overrides.max_read_bytes",
            config.limits.max_read_bytes,
            MAX_READ_BYTES_CAP,
        ),
        max_open_lines=_optional_positive_int_with_cap(
            overrides.max_open_lines,
            "overrides.max_open_lines",
            config.limits.max_open_lines,
            MAX_OPEN_LINES_CAP,
        ),
        max_search_hits=_optional_positive_int_with_cap(
            overrides.max_search_hits,
            "overrides.max_search_hits",
            config.limits.max_search_hits,
            MAX_SEARCH_HITS_CAP,
        ),
    )
    dispatcher = DispatcherConfig(
        tool_timeout_seconds=config.dispatcher.tool_timeout_seconds,
        cache_ttl_seconds=config.dispatcher.cache_ttl_seconds,
        cache_max_entries=config.dispatcher.cache_max_entries,
        slow_call_ms=config.dispatcher.slow_call_ms,
        mode=_optional_choice(overrides.mode, "overrides.mode", config.dispatcher.mode, EDIT_MODES),
    )
    workers = WorkersConfig(
        mode=_optional_choice(
            overrides.worker_mode, "overrides.worker_mode", config.workers.mode, WORKER_MODES
        ),
        max_workers=_optional_positive_int_with_cap(
            overrides.max_workers,
            "overrides.max_workers",
            config.workers.max_workers,
            MAX_WORKERS_CAP,
        ),
        timeout_seconds=config.workers.timeout_seconds,
    )
    research = config.research
    if overrides.host_url is not None:
        research = replace(
            research,
            host_url=_optional_str(overrides.host_url, "overrides.host_url", research.host_url),
        )
    data_dir = overrides.data_dir or config.data_dir
    return ServerConfig(
        repo_root=config.repo_root,
        data_dir=data_dir.resolve(),
        limits=limits,
        index=config.index,
        dispatcher=dispatcher,
        workers=workers,
        research=research,
    )


def load_effective_config(
    repo_root: Path | None, overrides: CliOverrides | None = None
) -> ServerConfig:
    """Load effective config using merge order defaults -> repo config -> overrides."""
    resolved_root = repo_root.resolve() if repo_root is not None else None
    base = default_config(resolved_root)
    payload = load_repo_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())
