from __future__ import annotations

import os
from pathlib import Path

import pytest

from toolcore.errors import NotFound, PermissionDenied
from toolcore.workspace import Workspace


def test_resolve_existing_file_reports_missing_file(tmp_path: Path) -> None:
    workspace = Workspace(tmp_path)

    with pytest.raises(NotFound) as error:
        workspace.resolve_existing_file("src/missing.js")

    assert error.value.message == "File 'src/missing.js' does not exist."


def test_resolve_existing_folder_rejects_files(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("x", encoding="utf-8")
    workspace = Workspace(tmp_path)

    with pytest.raises(NotFound, match="Folder 'a.txt' does not exist."):
        workspace.resolve_existing_folder("a.txt")


def test_relative_uses_forward_slashes(tmp_path: Path) -> None:
    nested = tmp_path / "src" / "lib"
    nested.mkdir(parents=True)
    workspace = Workspace(tmp_path)

    assert workspace.relative(workspace.resolve(r"src\lib")) == "src/lib"
    assert workspace.relative(workspace.resolve(".")) == ""


def test_write_text_is_atomic_and_keeps_mode(tmp_path: Path) -> None:
    target = tmp_path / "run.sh"
    target.write_text("echo old\n", encoding="utf-8")
    os.chmod(target, 0o755)
    workspace = Workspace(tmp_path)

    workspace.write_text(target, "echo new\n")

    assert target.read_text(encoding="utf-8") == "echo new\n"
    assert target.stat().st_mode & 0o777 == 0o755
    assert [p.name for p in tmp_path.iterdir()] == ["run.sh"]


def test_read_text_keeps_line_endings(tmp_path: Path) -> None:
    target = tmp_path / "win.txt"
    target.write_bytes(b"a\r\nb\r\n")

    assert Workspace(tmp_path).read_text(target) == "a\r\nb\r\n"


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="POSIX permissions as non-root")
def test_ensure_writable_denies_read_only_folder(tmp_path: Path) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    os.chmod(locked, 0o555)
    workspace = Workspace(tmp_path)
    try:
        with pytest.raises(PermissionDenied, match="Write permission denied"):
            workspace.ensure_writable(workspace.resolve("locked/new.txt"))
    finally:
        os.chmod(locked, 0o755)
