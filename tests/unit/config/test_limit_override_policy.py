from __future__ import annotations

from pathlib import Path

import pytest

from toolcore.config import CliOverrides, load_effective_config


def test_repo_config_limit_above_cap_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "toolcore.toml").write_text(
        "\n".join(
            [
                "[limits]",
                "max_search_hits = 5000",
            ]
        ),
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="max_search_hits"):
        load_effective_config(repo_root=tmp_path)


def test_cli_override_limit_above_cap_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="overrides.max_open_lines"):
        load_effective_config(
            repo_root=tmp_path,
            overrides=CliOverrides(max_open_lines=50_000),
        )


def test_tool_timeout_above_cap_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "toolcore.toml").write_text(
        "[dispatcher]\ntool_timeout_seconds = 9000\n", encoding="utf-8"
    )

    with pytest.raises(ValueError, match="dispatcher.tool_timeout_seconds"):
        load_effective_config(repo_root=tmp_path)


def test_repo_and_cli_overrides_within_caps_are_applied(tmp_path: Path) -> None:
    (tmp_path / "toolcore.toml").write_text(
        "\n".join(
            [
                "[limits]",
                "max_file_bytes = 2000000",
                "max_open_lines = 800",
                "",
                "[dispatcher]",
                "cache_ttl_seconds = 5",
                "cache_max_entries = 10",
            ]
        ),
        encoding="utf-8",
    )

    config = load_effective_config(
        repo_root=tmp_path,
        overrides=CliOverrides(max_search_hits=150, max_workers=2),
    )

    assert config.limits.max_file_bytes == 2_000_000
    assert config.limits.max_open_lines == 800
    assert config.limits.max_search_hits == 150
    assert config.workers.max_workers == 2
    assert config.dispatcher.cache_ttl_seconds == 5.0
    assert config.dispatcher.cache_max_entries == 10
