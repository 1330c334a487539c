"""Substring search over indexed content and definitions.

Both functions take plain ``(path, content)`` / dict inputs so they can run
inside a worker process as well as in-process.
"""

from __future__ import annotations

CONTEXT_RADIUS = 1


def search_content(
    files: list[tuple[str, str]], term: str, max_matches_per_file: int = 50
) -> list[dict[str, object]]:
    """Case-insensitive substring search returning per-file match sets."""
    needle = term.lower()
    results: list[dict[str, object]] = []
    if not needle:
        return results
    for path, content in sorted(files):
        if needle not in content.lower():
            continue
        lines = content.splitlines()
        matches: list[dict[str, object]] = []
        for index, line in enumerate(lines):
            if needle not in line.lower():
                continue
            start = max(0, index - CONTEXT_RADIUS)
            stop = min(len(lines), index + CONTEXT_RADIUS + 1)
            matches.append(
                {
                    "line_number": index + 1,
                    "line_content": line.strip(),
                    "context": [f"{number + 1}: {lines[number]}" for number in range(start, stop)],
                }
            )
            if len(matches) >= max_matches_per_file:
                break
        results.append({"file": path, "matches": matches})
    return results


def query_index(
    records: list[dict[str, object]], query: str, limit: int
) -> list[dict[str, object]]:
    """Definition matches first, then files whose content mentions the query."""
    needle = query.lower()
    definition_hits: list[dict[str, object]] = []
    content_hits: list[dict[str, object]] = []
    files_with_definition_hit: set[str] = set()

    for record in sorted(records, key=lambda item: str(item["path"])):
        path = str(record["path"])
        for definition in record.get("definitions", []):
            label = definition.get("name") or definition.get("content") or ""
            if needle and needle in str(label).lower():
                hit: dict[str, object] = {
                    "file": path,
                    "type": definition.get("type"),
                    "name": label,
                }
                if definition.get("line") is not None:
                    hit["line"] = definition["line"]
                definition_hits.append(hit)
                files_with_definition_hit.add(path)

    for record in sorted(records, key=lambda item: str(item["path"])):
        path = str(record["path"])
        if path in files_with_definition_hit:
            continue
        content = str(record.get("content", ""))
        lowered = content.lower()
        position = lowered.find(needle) if needle else -1
        if position < 0:
            continue
        line = lowered.count("\n", 0, position) + 1
        content_hits.append({"file": path, "type": "content", "name": query, "line": line})

    combined = definition_hits + content_hits
    if not combined:
        return [
            {
                "file": "N/A",
                "type": "info",
                "name": (
                    f'No results found for query: "{query}". The index may need to be updated '
                    "or the term may not exist."
                ),
            }
        ]
    return combined[:limit]
