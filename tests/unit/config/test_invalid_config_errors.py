from __future__ import annotations

from pathlib import Path

import pytest

from toolcore.config import CliOverrides, load_effective_config


def test_invalid_limit_type_raises_value_error(tmp_path: Path) -> None:
    (tmp_path / "toolcore.toml").write_text(
        "\n".join(
            [
                "[limits]",
                'max_open_lines = "not-an-int"',
            ]
        ),
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="limits.max_open_lines"):
        load_effective_config(repo_root=tmp_path)


def test_invalid_section_type_raises_value_error(tmp_path: Path) -> None:
    (tmp_path / "toolcore.toml").write_text('limits = "not-a-table"\n', encoding="utf-8")

    with pytest.raises(ValueError, match="section 'limits'"):
        load_effective_config(repo_root=tmp_path)


def test_security_section_cannot_relax_denylist(tmp_path: Path) -> None:
    (tmp_path / "toolcore.toml").write_text(
        '[security]\ndeny_globs = []\n', encoding="utf-8"
    )

    with pytest.raises(ValueError, match="security"):
        load_effective_config(repo_root=tmp_path)


def test_unknown_worker_mode_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "toolcore.toml").write_text('[workers]\nmode = "gpu"\n', encoding="utf-8")

    with pytest.raises(ValueError, match="workers.mode"):
        load_effective_config(repo_root=tmp_path)


def test_unknown_edit_mode_override_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="overrides.mode"):
        load_effective_config(repo_root=tmp_path, overrides=CliOverrides(mode="yolo"))
