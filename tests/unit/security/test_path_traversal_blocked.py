from __future__ import annotations

from pathlib import Path

import pytest

from toolcore.errors import PermissionDenied
from toolcore.security import PathBlockedError, resolve_workspace_path
from toolcore.workspace import Workspace


def test_path_traversal_is_blocked(tmp_path: Path) -> None:
    with pytest.raises(PathBlockedError) as error:
        resolve_workspace_path(workspace_root=tmp_path, candidate="../outside.txt")

    assert error.value.reason == "Path traversal is blocked."


def test_nested_traversal_is_blocked(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()

    with pytest.raises(PathBlockedError) as error:
        resolve_workspace_path(workspace_root=tmp_path, candidate="src/../../outside.txt")

    assert error.value.reason == "Path traversal is blocked."


def test_workspace_folder_name_prefix_is_blocked(tmp_path: Path) -> None:
    with pytest.raises(PathBlockedError) as error:
        resolve_workspace_path(workspace_root=tmp_path, candidate=f"{tmp_path.name}/app.js")

    assert error.value.reason.startswith("Path must not start with the workspace folder name")


def test_empty_path_is_blocked(tmp_path: Path) -> None:
    with pytest.raises(PathBlockedError) as error:
        resolve_workspace_path(workspace_root=tmp_path, candidate="   ")

    assert error.value.reason == "Path is empty."


def test_workspace_maps_blocked_paths_to_permission_denied(tmp_path: Path) -> None:
    workspace = Workspace(tmp_path)

    with pytest.raises(PermissionDenied) as error:
        workspace.resolve("../outside.txt")

    assert error.value.message == "Path traversal is blocked."
    assert error.value.hint is not None
