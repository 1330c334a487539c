from __future__ import annotations

from pathlib import Path


def test_required_package_paths_exist() -> None:
    root = Path(__file__).resolve().parents[1]
    required = [
        "src/toolcore/server.py",
        "src/toolcore/tools/__init__.py",
        "src/toolcore/tools/dispatcher.py",
        "src/toolcore/edit/__init__.py",
        "src/toolcore/index/__init__.py",
        "src/toolcore/analysis/__init__.py",
        "src/toolcore/research/__init__.py",
        "src/toolcore/tasks/__init__.py",
        "src/toolcore/workers/__init__.py",
        "src/toolcore/security/__init__.py",
        "src/toolcore/logging/__init__.py",
    ]
    for rel in required:
        assert (root / rel).exists(), rel
