"""Chunked read/write for large files with cooperative yield points."""

from __future__ import annotations

import asyncio
import codecs
from dataclasses import dataclass
from pathlib import Path

from toolcore.edit.text import CRLF, LF
from toolcore.workspace import Workspace

STREAMING_THRESHOLD_BYTES = 500 * 1024
READ_CHUNK_BYTES = 1024 * 1024
WRITE_CHUNK_CHARS = 100 * 1024
YIELD_EVERY_CHUNKS = 4


@dataclass(slots=True, frozen=True)
class StreamedFile:
    """Raw text plus LF-normalized lines of a streamed file."""

    raw: str
    lines: list[str]
    line_ending: str
    chunks_read: int


def should_stream(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > STREAMING_THRESHOLD_BYTES


async def read_streaming(path: Path) -> StreamedFile:
    """Read in 1 MB chunks, carrying partial lines across chunk boundaries."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="surrogateescape")
    raw_parts: list[str] = []
    lines: list[str] = []
    carry = ""
    crlf = False
    chunks = 0
    with path.open("rb") as handle:
        while True:
            block = handle.read(READ_CHUNK_BYTES)
            final = not block
            text = decoder.decode(block, final=final)
            raw_parts.append(text)
            pending = carry + text
            parts = pending.split(LF)
            carry = parts.pop()
            for part in parts:
                if part.endswith("\r"):
                    crlf = True
                    part = part[:-1]
                lines.append(part)
            if final:
                break
            chunks += 1
            if chunks % YIELD_EVERY_CHUNKS == 0:
                await asyncio.sleep(0)
    lines.append(carry)
    return StreamedFile(
        raw="".join(raw_parts),
        lines=lines,
        line_ending=CRLF if crlf else LF,
        chunks_read=chunks,
    )


async def write_streaming(
    workspace: Workspace, path: Path, lines: list[str], line_ending: str
) -> int:
    """Write lines through an atomic temp file in 100 KB chunks; returns chunk count."""
    chunks = 0
    buffer: list[str] = []
    buffered = 0
    with workspace.atomic_writer(path) as handle:
        last = len(lines) - 1
        for position, line in enumerate(lines):
            piece = line if position == last else line + line_ending
            buffer.append(piece)
            buffered += len(piece)
            if buffered >= WRITE_CHUNK_CHARS:
                handle.write("".join(buffer))
                buffer.clear()
                buffered = 0
                chunks += 1
                if chunks % YIELD_EVERY_CHUNKS == 0:
                    await asyncio.sleep(0)
        if buffer:
            handle.write("".join(buffer))
            chunks += 1
    return chunks
