from __future__ import annotations

from pathlib import Path

from toolcore.workspace import TreeNode, Workspace, format_tree


def test_structure_lists_folders_first_and_skips_ignored(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.js").write_text("x", encoding="utf-8")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("x", encoding="utf-8")
    (tmp_path / "README.md").write_text("x", encoding="utf-8")
    workspace = Workspace(tmp_path, ignore_patterns=("node_modules/",))

    nodes = workspace.structure()

    assert nodes == (
        TreeNode("src", "folder", (TreeNode("app.js", "file"),)),
        TreeNode("README.md", "file"),
    )


def test_format_tree_uses_box_drawing_connectors() -> None:
    nodes = (
        TreeNode(
            "src",
            "folder",
            (TreeNode("lib", "folder", (TreeNode("util.js", "file"),)), TreeNode("app.js", "file")),
        ),
        TreeNode("package.json", "file"),
    )

    assert format_tree(nodes) == "\n".join(
        [
            "├── src/",
            "│   ├── lib/",
            "│   │   └── util.js",
            "│   └── app.js",
            "└── package.json",
        ]
    )


def test_format_tree_reports_empty_project() -> None:
    assert format_tree(()) == "Project directory is empty."
