from __future__ import annotations

import asyncio
from collections.abc import Callable

_CHUNK_SIZE = 4096


def _decode_line(raw: bytes) -> str:
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")


async def stream_lines(
    stream: asyncio.StreamReader | None, on_line: Callable[[str], object]
) -> int:
    """
    Forward every line of ``stream`` to ``on_line`` until EOF.

    Lines are split on ``\\n`` with a trailing ``\\r`` dropped; a final line
    without a newline is still forwarded. Reading is chunked, so line length is
    not bounded by the stream reader's buffer limit. Returns the line count.
    """
    if stream is None:
        return 0
    count = 0
    pending = bytearray()
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        pending.extend(chunk)
        while True:
            idx = pending.find(b"\n")
            if idx < 0:
                break
            line = bytes(pending[:idx])
            del pending[: idx + 1]
            on_line(_decode_line(line))
            count += 1
    if pending:
        on_line(_decode_line(bytes(pending)))
        count += 1
    return count
