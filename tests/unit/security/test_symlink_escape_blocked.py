from __future__ import annotations

from pathlib import Path

import pytest

from toolcore.security import PathBlockedError, resolve_workspace_path


def test_symlink_escape_is_blocked(tmp_path: Path) -> None:
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    outside = tmp_path / "outside-target"
    outside.mkdir()
    (outside / "leak.txt").write_text("secret", encoding="utf-8")
    (workspace / "link").symlink_to(outside, target_is_directory=True)

    with pytest.raises(PathBlockedError) as error:
        resolve_workspace_path(workspace_root=workspace, candidate="link/leak.txt")

    assert error.value.reason == "Resolved path escapes the workspace root."
