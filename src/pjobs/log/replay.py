from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

from pjobs.log.entry import LogEntry
from pjobs.log.sink import LogSink
from pjobs.util.errors import LogReplayError


def compile_filter(pattern: str | None) -> re.Pattern[str] | None:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise LogReplayError(f"error compiling regex {pattern!r}: {exc}") from exc


def read_entries(path: Path) -> Iterator[LogEntry]:
    """Yield the records of a JSON-lines log file in file order."""
    if not path.is_file():
        raise LogReplayError(f"error finding file {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    raw = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise LogReplayError(
                        f"error unmarshaling json at line {lineno}: {exc}"
                    ) from exc
                if not isinstance(raw, dict):
                    raise LogReplayError(f"log record at line {lineno} must be an object")
                yield LogEntry.from_dict(raw)
    except UnicodeError as exc:
        raise LogReplayError(f"failed to decode log file as utf-8: {path}") from exc
    except OSError as exc:
        raise LogReplayError(f"error opening file {path}: {exc}") from exc


def filter_entries(
    entries: Iterable[LogEntry],
    *,
    tag: str | None = None,
    message_filter: re.Pattern[str] | None = None,
) -> Iterator[LogEntry]:
    for entry in entries:
        if tag and entry.tag != tag:
            continue
        if message_filter is not None and message_filter.search(entry.message) is None:
            continue
        yield entry


def replay(
    path: Path,
    sink: LogSink,
    *,
    tag: str | None = None,
    pattern: str | None = None,
) -> int:
    """Re-emit the matching records of ``path`` through ``sink``; return the count."""
    message_filter = compile_filter(pattern)
    count = 0
    for entry in filter_entries(read_entries(path), tag=tag, message_filter=message_filter):
        sink.emit(entry.color, entry.tag, entry.message)
        count += 1
    return count
