from __future__ import annotations

from toolcore.analysis import ImportRef, build_symbol_table

JS_SOURCE = """import { readFile } from 'fs';
const path = require('path');

/** Adds numbers */
export function add(a, b) {
  if (a > 0 && b > 0) {
    return a + b;
  }
  return 0;
}

export class Cart extends Base {
  total(items) {
    return items.length;
  }
}

const double = (x) => x * 2;
"""

PY_SOURCE = '''"""Module doc."""
import os
from .helpers import load as load_data

LIMIT = 5


class Store:
    """Keeps items."""

    def add(self, item):
        if item and item not in self.items:
            self.items.append(item)


def _private():
    return LIMIT
'''


def test_javascript_functions_methods_and_arrows() -> None:
    table = build_symbol_table("src/cart.js", JS_SOURCE)

    assert table.language == "javascript"
    assert [(symbol.name, symbol.line) for symbol in table.functions] == [
        ("add", 5),
        ("total", 13),
        ("double", 18),
    ]
    add, total, double = table.functions
    assert add.params == ("a", "b")
    assert add.end_line == 10
    assert add.complexity == 3
    assert add.documented is True
    assert total.kind == "method"
    assert total.scope == "class Cart"
    assert double.params == ("x",)
    assert double.end_line == 18


def test_javascript_classes_imports_and_exports() -> None:
    table = build_symbol_table("src/cart.js", JS_SOURCE)

    assert [(symbol.name, symbol.line, symbol.end_line) for symbol in table.classes] == [
        ("Cart", 12, 16)
    ]
    assert table.classes[0].params == ("Base",)
    assert table.imports == [
        ImportRef("fs", ("readFile",), 1),
        ImportRef("path", ("path",), 2),
    ]
    assert table.imported_names() == {"readFile": "fs", "path": "path"}
    assert table.exports == ["add", "Cart"]
    assert [symbol.name for symbol in table.variables] == ["path"]


def test_javascript_summary_counts() -> None:
    summary = build_symbol_table("src/cart.js", JS_SOURCE).summary()

    assert summary == {
        "symbols": 5,
        "functions": 3,
        "classes": 1,
        "imports": 2,
        "exports": 2,
        "variables": 1,
        "dependencies": 2,
    }


def test_declarations_inside_strings_and_comments_are_ignored() -> None:
    source = "// function ghost() {}\nconst text = 'class Phantom {}';\n"

    table = build_symbol_table("ghost.js", source)

    assert table.functions == []
    assert table.classes == []


def test_python_table_uses_syntax_tree() -> None:
    table = build_symbol_table("pkg/store.py", PY_SOURCE)

    assert table.language == "python"
    assert [(symbol.name, symbol.line) for symbol in table.classes] == [("Store", 8)]
    assert table.classes[0].documented is True
    add = table.lookup("add")[0]
    assert add.kind == "method"
    assert add.scope == "class Store"
    assert add.params == ("self", "item")
    assert add.complexity == 3
    assert [symbol.name for symbol in table.variables] == ["LIMIT"]
    assert table.imports == [
        ImportRef("os", ("os",), 2),
        ImportRef(".helpers", ("load_data",), 3),
    ]


def test_python_exports_skip_private_and_nested_names() -> None:
    table = build_symbol_table("pkg/store.py", PY_SOURCE)

    assert table.exports == ["LIMIT", "Store"]


def test_python_dunder_all_overrides_exports() -> None:
    table = build_symbol_table("pkg/api.py", "__all__ = ['run']\n\ndef run():\n    pass\n")

    assert table.exports == ["run"]


def test_unparseable_python_falls_back_to_regex_table() -> None:
    table = build_symbol_table("broken.py", "def ok(a):\n    pass\n\ndef broken(:\n")

    assert table.language == "python"
    assert [symbol.name for symbol in table.functions] == ["ok"]
