"""Named snapshots of editor state taken before mutating tools run."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from toolcore.logging.toollog import utc_timestamp
from toolcore.storage import JsonStore

CHECKPOINTS_KEY = "checkpoints"
MAX_CHECKPOINTS = 50


@dataclass(slots=True, frozen=True)
class Checkpoint:
    """Opaque editor state captured under a display name."""

    name: str
    editor_state: dict[str, object]
    timestamp: str


class CheckpointStore:
    """Write-through checkpoint history backed by the key/value store."""

    def __init__(self, store: JsonStore, max_entries: int = MAX_CHECKPOINTS) -> None:
        self._store = store
        self._max_entries = max_entries

    def create(
        self, editor_state: dict[str, object], name: str | None = None
    ) -> Checkpoint | None:
        """Persist a checkpoint; returns None when no files are open."""
        open_files = editor_state.get("open_files")
        if not isinstance(open_files, list) or not open_files:
            return None
        checkpoint = Checkpoint(
            name=name or f"Auto-Checkpoint @ {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            editor_state=editor_state,
            timestamp=utc_timestamp(),
        )
        history = self._load()
        history.append(asdict(checkpoint))
        self._store.set(CHECKPOINTS_KEY, history[-self._max_entries :])
        return checkpoint

    def list(self) -> list[Checkpoint]:
        return [
            Checkpoint(
                name=str(item.get("name", "")),
                editor_state=dict(item.get("editor_state") or {}),
                timestamp=str(item.get("timestamp", "")),
            )
            for item in self._load()
        ]

    def latest(self) -> Checkpoint | None:
        checkpoints = self.list()
        return checkpoints[-1] if checkpoints else None

    def _load(self) -> list[dict]:
        raw = self._store.get(CHECKPOINTS_KEY, [])
        if not isinstance(raw, list):
            return []
        return [item for item in raw if isinstance(item, dict)]
