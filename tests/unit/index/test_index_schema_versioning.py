from __future__ import annotations

import json
from pathlib import Path

import pytest

from toolcore.config import IndexConfig
from toolcore.index import INDEX_SCHEMA_VERSION, IndexManager, IndexSchemaUnsupportedError


def test_status_reports_not_indexed_before_first_build(tmp_path: Path) -> None:
    index = IndexManager(data_dir=tmp_path, index_config=IndexConfig())

    assert index.status().index_status == "not_indexed"
    assert index.exists() is False


def test_unsupported_schema_version_is_rejected(tmp_path: Path) -> None:
    index_dir = tmp_path / "index"
    index_dir.mkdir()
    (index_dir / "manifest.json").write_text(
        json.dumps({"schema_version": INDEX_SCHEMA_VERSION + 1}), encoding="utf-8"
    )
    index = IndexManager(data_dir=tmp_path, index_config=IndexConfig())

    assert index.status().index_status == "schema_mismatch"
    with pytest.raises(IndexSchemaUnsupportedError) as error:
        index.exists()

    assert error.value.found == INDEX_SCHEMA_VERSION + 1
    assert error.value.expected == INDEX_SCHEMA_VERSION
