from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import NoReturn

from rich.console import Console
from rich.text import Text

from pjobs.log.entry import BLUE, COLOR_STYLES, RED, LogEntry
from pjobs.util.errors import FatalError, InfrastructureError, LogWriteError
from pjobs.util.path_guard import open_regular_file
from pjobs.util.time import now_iso


def _format(message: str, args: tuple[object, ...]) -> str:
    if not args:
        return message
    return message % args


class LogSink:
    """
    Emit tagged log lines to the console and, optionally, to a JSON-lines file.

    The file is opened and closed for every record. Appends from concurrent
    writers are serialized by a lock, so every record lands as one whole line.
    A file that cannot be written raises ``LogWriteError``; the sink never
    terminates the process on its own.
    """

    def __init__(self, console: Console | None = None, log_path: Path | None = None) -> None:
        self.console = console if console is not None else Console(highlight=False)
        self.log_path = log_path
        self._write_lock = threading.Lock()

    def reset_log_file(self) -> None:
        """Create the log file, or truncate it when it already exists."""
        if self.log_path is None:
            return
        try:
            fd = open_regular_file(self.log_path, append=False)
            os.close(fd)
        except (OSError, RuntimeError) as exc:
            raise LogWriteError(f"failed to create log file {self.log_path}: {exc}") from exc

    def emit(self, color: int, tag: str, message: str, *args: object) -> LogEntry:
        text = _format(message, args)
        entry = LogEntry(tag=tag, message=text, timestamp=now_iso(), color=color)
        line = Text.assemble("[ ", (tag, COLOR_STYLES.get(color, "")), " ] ", text)
        self.console.print(line, soft_wrap=True)
        if self.log_path is not None:
            self._append(entry)
        return entry

    def info(self, tag: str, message: str, *args: object) -> LogEntry:
        return self.emit(BLUE, tag, message, *args)

    def error(self, tag: str, message: str, *args: object) -> LogEntry:
        return self.emit(RED, tag, message, *args)

    def fatal(
        self,
        tag: str,
        message: str,
        *args: object,
        error_type: type[InfrastructureError] = FatalError,
    ) -> NoReturn:
        """Log at error level, then raise ``error_type``; callers cannot recover."""
        self.error(tag, message, *args)
        raise error_type(f"{tag}: {_format(message, args)}")

    def _append(self, entry: LogEntry) -> None:
        assert self.log_path is not None
        payload = entry.to_json_line().encode("utf-8")
        with self._write_lock:
            try:
                fd = open_regular_file(self.log_path, append=True)
                with os.fdopen(fd, "ab") as f:
                    f.write(payload)
            except (OSError, RuntimeError) as exc:
                raise LogWriteError(f"failed to write log file {self.log_path}: {exc}") from exc
