from __future__ import annotations

import pytest

from toolcore.edit import apply_diff_blocks, parse_diff
from toolcore.errors import BadRequest, Conflict


def _block(start_line: int, search: str, replace: str) -> str:
    return (
        f"<<<<<<< SEARCH\n:start_line:{start_line}\n-------\n{search}\n=======\n{replace}\n"
        ">>>>>>> REPLACE\n"
    )


def test_parse_diff_reads_every_block() -> None:
    blocks = parse_diff(_block(1, "a", "A") + _block(3, "c\nd", "C"))

    assert [(b.start_line, b.search_content, b.replace_content) for b in blocks] == [
        (1, "a", "A"),
        (3, "c\nd", "C"),
    ]


def test_parse_diff_accepts_crlf_input() -> None:
    blocks = parse_diff(_block(2, "b", "B").replace("\n", "\r\n"))

    assert blocks[0].search_content == "b"
    assert blocks[0].replace_content == "B"


def test_malformed_diff_reports_debug_info() -> None:
    with pytest.raises(BadRequest) as error:
        parse_diff("please change line 3 to foo")

    assert error.value.message.startswith("No valid diff blocks found. Debug info:")
    assert "'<<<<<<< SEARCH' marker: missing" in error.value.message


def test_one_malformed_block_rejects_the_whole_diff() -> None:
    broken = "<<<<<<< SEARCH\n:start_line:5\nno separator here\n"

    with pytest.raises(BadRequest):
        parse_diff(_block(1, "a", "A") + broken)


def test_block_order_does_not_change_the_result() -> None:
    lines = ["a", "b", "c", "d", ""]
    first = _block(1, "a", "A1\nA2")
    last = _block(4, "d", "D")

    forward, _ = apply_diff_blocks(lines, parse_diff(first + last))
    backward, _ = apply_diff_blocks(lines, parse_diff(last + first))

    assert forward == backward == ["A1", "A2", "b", "c", "D", ""]


def test_trim_strategy_tolerates_indentation_and_drift() -> None:
    lines = ["function f() {", "    return 1;", "}"]

    result, outcomes = apply_diff_blocks(lines, parse_diff(_block(1, "return 1;", "    return 2;")))

    assert result == ["function f() {", "    return 2;", "}"]
    assert outcomes[0].strategy == "trim"
    assert outcomes[0].matched_line == 2


def test_boundary_strategy_matches_first_and_last_lines() -> None:
    lines = ["a", "start", "mid-old", "end", "z"]

    result, outcomes = apply_diff_blocks(
        lines, parse_diff(_block(2, "start\nmid-new\nend", "replaced"))
    )

    assert result == ["a", "replaced", "z"]
    assert outcomes[0].strategy == "boundary"


def test_empty_replace_deletes_the_matched_lines() -> None:
    blocks = parse_diff(_block(2, "drop", ""))

    result, outcomes = apply_diff_blocks(["keep", "drop", "keep too"], blocks)

    assert result == ["keep", "keep too"]
    assert outcomes[0].strategy == "exact"


def test_mismatch_raises_conflict_with_context() -> None:
    with pytest.raises(Conflict) as error:
        apply_diff_blocks(["x", "y", "z"], parse_diff(_block(2, "nope", "yes")))

    assert ">>> 2: y" in error.value.message
    assert error.value.details == {"start_line": 2, "expected": "nope", "actual": "y"}


def test_start_line_outside_file_is_rejected() -> None:
    with pytest.raises(BadRequest, match="Invalid start_line 9"):
        apply_diff_blocks(["only"], parse_diff(_block(9, "only", "x")))
