"""Editor collaborator contract and a headless in-memory implementation."""

from __future__ import annotations

from typing import Protocol


class EditorBridge(Protocol):
    """What the core needs from the editor UI."""

    def open_files(self) -> list[str]: ...

    def is_open(self, path: str) -> bool: ...

    def open(self, path: str, content: str) -> None: ...

    def update(self, path: str, content: str) -> None: ...

    def close(self, path: str) -> None: ...

    def rename(self, old_path: str, new_path: str) -> None: ...

    def snapshot_state(self) -> dict[str, object]: ...


class HeadlessEditor:
    """Tracks open buffers by workspace-relative path."""

    def __init__(self) -> None:
        self._buffers: dict[str, str] = {}
        self._active: str | None = None

    def open_files(self) -> list[str]:
        return list(self._buffers.keys())

    def is_open(self, path: str) -> bool:
        return path in self._buffers

    def buffer(self, path: str) -> str | None:
        return self._buffers.get(path)

    def open(self, path: str, content: str) -> None:
        self._buffers[path] = content
        self._active = path

    def update(self, path: str, content: str) -> None:
        if path in self._buffers:
            self._buffers[path] = content

    def close(self, path: str) -> None:
        """Close a buffer, or every buffer under a folder path."""
        for open_path in list(self._buffers):
            if open_path == path or open_path.startswith(f"{path}/"):
                del self._buffers[open_path]
        if self._active is not None and self._active not in self._buffers:
            self._active = next(iter(self._buffers), None)

    def rename(self, old_path: str, new_path: str) -> None:
        """Move buffers for a renamed file or folder."""
        for open_path in list(self._buffers):
            if open_path == old_path:
                target = new_path
            elif open_path.startswith(f"{old_path}/"):
                target = new_path + open_path[len(old_path) :]
            else:
                continue
            self._buffers[target] = self._buffers.pop(open_path)
            if self._active == open_path:
                self._active = target

    def snapshot_state(self) -> dict[str, object]:
        return {
            "open_files": [{"path": path, "content": text} for path, text in self._buffers.items()],
            "active_file": self._active,
        }
