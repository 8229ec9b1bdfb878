from __future__ import annotations

import threading


class HighestExitCode:
    """Lock-guarded running maximum of job exit codes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def observe(self, exit_code: int) -> int:
        with self._lock:
            if exit_code > self._value:
                self._value = exit_code
            return self._value

    def at_least(self, floor: int) -> int:
        return self.observe(floor)
