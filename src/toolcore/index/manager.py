"""Persistent codebase index and incremental refresh orchestration."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path

from toolcore.config import IndexConfig
from toolcore.index.definitions import extract_definitions
from toolcore.index.discovery import CandidateFile, discover_files, is_binary_file
from toolcore.index.models import Definition, FileRecord, IndexStats, IndexStatus
from toolcore.index.search import query_index
from toolcore.logging import get_logger
from toolcore.workspace import Workspace, matches_ignore_pattern

INDEX_SCHEMA_VERSION = 1

logger = get_logger("index")


@dataclass(slots=True, frozen=True)
class IndexSchemaUnsupportedError(Exception):
    """Raised when stored index schema does not match supported version."""

    found: int
    expected: int


class IndexManager:
    """Owns the index snapshot; only refresh passes replace it."""

    def __init__(self, data_dir: Path, index_config: IndexConfig) -> None:
        self._index_config = index_config
        self._data_dir = data_dir.resolve()
        self._index_dir = self._data_dir / "index"
        self._manifest_path = self._index_dir / "manifest.json"
        self._files_path = self._index_dir / "files.jsonl"
        self._records: dict[str, FileRecord] | None = None
        self._last_index_timestamp: int | None = None
        self._indexed_root: str | None = None

    def exists(self) -> bool:
        self._ensure_loaded()
        return self._records is not None

    def status(self) -> IndexStatus:
        manifest = self._read_manifest()
        if manifest is None:
            return IndexStatus("not_indexed", None, 0)
        if manifest.get("schema_version") != INDEX_SCHEMA_VERSION:
            return IndexStatus("schema_mismatch", None, 0)
        count = manifest.get("indexed_file_count")
        timestamp = manifest.get("last_index_timestamp")
        return IndexStatus(
            index_status="ready",
            last_index_timestamp=timestamp if isinstance(timestamp, int) else None,
            indexed_file_count=count if isinstance(count, int) else 0,
        )

    def records(self) -> dict[str, FileRecord]:
        """Return the current snapshot (empty when nothing is indexed)."""
        self._ensure_loaded()
        return dict(self._records or {})

    def query(self, query: str) -> list[dict[str, object]]:
        records = [record.to_dict() for record in self.records().values()]
        return query_index(records, query, self._index_config.max_query_results)

    def build(self, workspace: Workspace, force: bool = False) -> IndexStats:
        """Run an incremental pass; unchanged files are skipped unless forced."""
        started = time.perf_counter()
        pass_timestamp = int(time.time() * 1000)
        previous: dict[str, FileRecord] = {}
        last_timestamp: int | None = None
        if not force:
            self._ensure_loaded()
            if self._indexed_root == str(workspace.root):
                previous = dict(self._records or {})
                last_timestamp = self._last_index_timestamp

        current: dict[str, FileRecord] = {}
        indexed = 0
        skipped = 0
        for candidate in self._candidates(workspace):
            prior = previous.get(candidate.relative_path)
            if (
                prior is not None
                and last_timestamp is not None
                and candidate.mtime <= last_timestamp
                and prior.mtime == candidate.mtime
                and prior.size == candidate.size
            ):
                current[candidate.relative_path] = prior
                skipped += 1
                continue
            record = self._parse(candidate.relative_path, candidate.full_path)
            if record is None:
                continue
            current[candidate.relative_path] = record
            indexed += 1

        deleted = len(set(previous) - set(current))
        self._replace(workspace, current, pass_timestamp)
        logger.debug(
            "Index pass: {} indexed, {} skipped, {} deleted in {:.3f}s",
            indexed,
            skipped,
            deleted,
            time.perf_counter() - started,
        )
        return IndexStats(indexed=indexed, skipped=skipped, deleted=deleted)

    def reindex_paths(self, workspace: Workspace, paths: list[str]) -> dict[str, int]:
        """Force re-parse of the given files and folders, dropping vanished paths."""
        self._ensure_loaded()
        records = dict(self._records or {})
        include = {ext.lower() for ext in self._index_config.include_extensions}
        updated = 0
        removed = 0
        for raw_path in paths:
            resolved = workspace.resolve(raw_path)
            relative = workspace.relative(resolved)
            if resolved.is_dir():
                prefix = f"{relative}/" if relative else ""
                seen: set[str] = set()
                for candidate in self._candidates(workspace, resolved):
                    record = self._parse(candidate.relative_path, candidate.full_path)
                    if record is None:
                        continue
                    records[record.path] = record
                    seen.add(record.path)
                    updated += 1
                for stale in [p for p in records if p.startswith(prefix) and p not in seen]:
                    del records[stale]
                    removed += 1
            elif resolved.is_file():
                if resolved.suffix.lower() not in include or workspace.is_ignored(relative):
                    continue
                record = self._parse(relative, resolved)
                if record is not None:
                    records[relative] = record
                    updated += 1
            else:
                doomed = [p for p in records if p == relative or p.startswith(f"{relative}/")]
                for stale in doomed:
                    del records[stale]
                    removed += 1
        self._replace(workspace, records, self._last_index_timestamp or int(time.time() * 1000))
        return {"updated": updated, "removed": removed}

    def _candidates(
        self, workspace: Workspace, start: Path | None = None
    ) -> list[CandidateFile]:
        root = workspace.root
        ignore = workspace.ignore_patterns + self._internal_ignores(root)
        if start is None or start == root:
            return discover_files(root, self._index_config.include_extensions, ignore)
        prefix = workspace.relative(start)
        found = discover_files(start, self._index_config.include_extensions, ())
        output: list[CandidateFile] = []
        for candidate in found:
            relative = f"{prefix}/{candidate.relative_path}"
            if matches_ignore_pattern(relative, ignore):
                continue
            output.append(
                CandidateFile(
                    relative_path=relative,
                    full_path=candidate.full_path,
                    size=candidate.size,
                    mtime=candidate.mtime,
                )
            )
        return output

    def _internal_ignores(self, root: Path) -> tuple[str, ...]:
        if not self._data_dir.is_relative_to(root):
            return ()
        return (self._data_dir.relative_to(root).as_posix(),)

    @staticmethod
    def _parse(relative_path: str, full_path: Path) -> FileRecord | None:
        try:
            if is_binary_file(full_path):
                return None
            stat = full_path.stat()
            content = full_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None
        return FileRecord(
            path=relative_path,
            mtime=stat.st_mtime_ns // 1_000_000,
            size=stat.st_size,
            content=content,
            definitions=extract_definitions(relative_path, content),
        )

    def _replace(
        self, workspace: Workspace, records: dict[str, FileRecord], timestamp: int
    ) -> None:
        ordered = dict(sorted(records.items()))
        manifest = {
            "schema_version": INDEX_SCHEMA_VERSION,
            "workspace_root": str(workspace.root),
            "last_index_timestamp": timestamp,
            "indexed_file_count": len(ordered),
        }
        self._index_dir.mkdir(parents=True, exist_ok=True)
        self._atomic_write_jsonl(self._files_path, [r.to_dict() for r in ordered.values()])
        self._atomic_write_json(self._manifest_path, manifest)
        self._records = ordered
        self._last_index_timestamp = timestamp
        self._indexed_root = str(workspace.root)

    def _ensure_loaded(self) -> None:
        if self._records is not None:
            return
        manifest = self._read_manifest()
        if manifest is None:
            return
        schema = manifest.get("schema_version")
        if not isinstance(schema, int):
            raise IndexSchemaUnsupportedError(found=-1, expected=INDEX_SCHEMA_VERSION)
        if schema != INDEX_SCHEMA_VERSION:
            raise IndexSchemaUnsupportedError(found=schema, expected=INDEX_SCHEMA_VERSION)
        records: dict[str, FileRecord] = {}
        if self._files_path.exists():
            for obj in self._read_jsonl(self._files_path):
                record = _record_from_dict(obj)
                if record is not None:
                    records[record.path] = record
        timestamp = manifest.get("last_index_timestamp")
        root = manifest.get("workspace_root")
        self._records = records
        self._last_index_timestamp = timestamp if isinstance(timestamp, int) else None
        self._indexed_root = root if isinstance(root, str) else None

    def _read_manifest(self) -> dict[str, object] | None:
        if not self._manifest_path.exists():
            return None
        with self._manifest_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if not isinstance(payload, dict):
            return None
        return payload

    @staticmethod
    def _read_jsonl(path: Path) -> list[dict[str, object]]:
        output: list[dict[str, object]] = []
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                stripped = raw_line.strip()
                if not stripped:
                    continue
                try:
                    obj = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                if isinstance(obj, dict):
                    output.append(obj)
        return output

    @staticmethod
    def _atomic_write_json(path: Path, payload: dict[str, object]) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(path)

    @staticmethod
    def _atomic_write_jsonl(path: Path, rows: list[dict[str, object]]) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            for row in rows:
                handle.write(json.dumps(row, sort_keys=True))
                handle.write("\n")
        tmp.replace(path)


def _record_from_dict(obj: dict[str, object]) -> FileRecord | None:
    path = obj.get("path")
    mtime = obj.get("mtime")
    size = obj.get("size")
    content = obj.get("content")
    raw_definitions = obj.get("definitions", [])
    if not isinstance(path, str) or not isinstance(content, str):
        return None
    if not isinstance(mtime, int) or not isinstance(size, int):
        return None
    definitions: list[Definition] = []
    if isinstance(raw_definitions, list):
        for item in raw_definitions:
            if not isinstance(item, dict) or not isinstance(item.get("type"), str):
                continue
            definitions.append(
                Definition(
                    type=item["type"],
                    name=item.get("name"),
                    content=item.get("content"),
                    line=item.get("line"),
                )
            )
    return FileRecord(
        path=path, mtime=mtime, size=size, content=content, definitions=tuple(definitions)
    )
