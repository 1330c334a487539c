from __future__ import annotations

from pathlib import Path

import pytest

from toolcore.security import PathBlockedError, resolve_workspace_path


def test_absolute_path_outside_root_is_blocked(tmp_path: Path) -> None:
    outside_file = tmp_path.parent / "outside.txt"
    outside_file.write_text("x", encoding="utf-8")

    with pytest.raises(PathBlockedError) as error:
        resolve_workspace_path(workspace_root=tmp_path, candidate=str(outside_file))

    assert error.value.reason == "Absolute paths are not accepted."


def test_absolute_path_inside_root_is_also_blocked(tmp_path: Path) -> None:
    inside = tmp_path / "app.js"
    inside.write_text("x", encoding="utf-8")

    with pytest.raises(PathBlockedError) as error:
        resolve_workspace_path(workspace_root=tmp_path, candidate=str(inside))

    assert error.value.reason == "Absolute paths are not accepted."


def test_windows_drive_path_is_blocked(tmp_path: Path) -> None:
    with pytest.raises(PathBlockedError) as error:
        resolve_workspace_path(workspace_root=tmp_path, candidate=r"C:\Users\me\app.js")

    assert error.value.reason == "Absolute paths are not accepted."
