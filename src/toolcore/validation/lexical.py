"""Comment/string masking and bracket balance scanning for brace languages."""

from __future__ import annotations

from dataclasses import dataclass

_PAIRS = {")": "(", "]": "[", "}": "{"}


@dataclass(slots=True, frozen=True)
class LexicalRules:
    """Markers used while masking non-code text."""

    line_comment_prefixes: tuple[str, ...] = ("//",)
    block_comment_pairs: tuple[tuple[str, str], ...] = (("/*", "*/"),)
    string_delimiters: tuple[str, ...] = ("'", '"', "`")
    escape_char: str = "\\"


JS_RULES = LexicalRules()
CSS_RULES = LexicalRules(line_comment_prefixes=(), string_delimiters=("'", '"'))
SCSS_RULES = LexicalRules(string_delimiters=("'", '"'))


@dataclass(slots=True, frozen=True)
class BracketIssue:
    """Unbalanced bracket with its 1-based position."""

    line: int
    column: int
    message: str


@dataclass(slots=True, frozen=True)
class MaskResult:
    """Masked text plus the line of an unterminated string or comment, if any."""

    text: str
    unterminated: tuple[str, int] | None


def mask_comments_and_strings(text: str, rules: LexicalRules = JS_RULES) -> MaskResult:
    """Blank out comments and string bodies, keeping offsets and newlines."""
    line_prefixes = tuple(sorted(rules.line_comment_prefixes, key=len, reverse=True))
    block_pairs = tuple(sorted(rules.block_comment_pairs, key=lambda p: len(p[0]), reverse=True))
    delimiters = tuple(sorted(rules.string_delimiters, key=len, reverse=True))

    chars = list(text)
    length = len(text)
    index = 0
    line = 1
    state: tuple[str, str, int] | None = None
    unterminated: tuple[str, int] | None = None

    def blank(start: int, count: int) -> None:
        for offset in range(count):
            if chars[start + offset] != "\n":
                chars[start + offset] = " "

    while index < length:
        char = text[index]
        if state is None:
            prefix = next((p for p in line_prefixes if text.startswith(p, index)), None)
            if prefix is not None:
                blank(index, len(prefix))
                state = ("line_comment", "\n", line)
                index += len(prefix)
                continue
            pair = next((p for p in block_pairs if text.startswith(p[0], index)), None)
            if pair is not None:
                blank(index, len(pair[0]))
                state = ("block_comment", pair[1], line)
                index += len(pair[0])
                continue
            delimiter = next((d for d in delimiters if text.startswith(d, index)), None)
            if delimiter is not None:
                blank(index, len(delimiter))
                state = ("string", delimiter, line)
                index += len(delimiter)
                continue
            if char == "\n":
                line += 1
            index += 1
            continue

        mode, marker, _ = state
        if mode == "line_comment":
            if char == "\n":
                state = None
                line += 1
            else:
                chars[index] = " "
            index += 1
            continue

        if text.startswith(marker, index) and not (
            mode == "string" and _is_escaped(text, index, rules.escape_char)
        ):
            blank(index, len(marker))
            state = None
            index += len(marker)
            continue
        if char == "\n":
            line += 1
            # Plain quotes cannot span lines.
            if mode == "string" and marker in ("'", '"'):
                unterminated = unterminated or ("string", state[2])
                state = None
        else:
            chars[index] = " "
        index += 1

    if state is not None and state[0] != "line_comment":
        unterminated = unterminated or (state[0], state[2])
    return MaskResult(text="".join(chars), unterminated=unterminated)


def scan_brackets(masked_text: str) -> list[BracketIssue]:
    """Report mismatched, unexpected, and unclosed brackets in masked text."""
    stack: list[tuple[str, int, int]] = []
    issues: list[BracketIssue] = []
    line = 1
    col = 1
    for char in masked_text:
        if char in "([{":
            stack.append((char, line, col))
        elif char in _PAIRS:
            expected = _PAIRS[char]
            if not stack:
                issues.append(BracketIssue(line, col, f"Unexpected closing '{char}'"))
            elif stack[-1][0] != expected:
                opener, open_line, open_col = stack.pop()
                issues.append(
                    BracketIssue(
                        line,
                        col,
                        f"Mismatched '{char}' closes '{opener}' opened at {open_line}:{open_col}",
                    )
                )
            else:
                stack.pop()
        if char == "\n":
            line += 1
            col = 1
        else:
            col += 1
    for opener, open_line, open_col in stack:
        issues.append(BracketIssue(open_line, open_col, f"Unclosed '{opener}'"))
    return issues


def _is_escaped(text: str, index: int, escape_char: str) -> bool:
    backslashes = 0
    cursor = index - 1
    while cursor >= 0 and text[cursor] == escape_char:
        backslashes += 1
        cursor -= 1
    return backslashes % 2 == 1
