from __future__ import annotations

import asyncio
import os
import signal
import time
from contextlib import suppress
from dataclasses import dataclass, field

DEFAULT_SHELL = "/bin/bash"


@dataclass(slots=True)
class JobSpec:
    tag: str
    command: str
    shell: str = DEFAULT_SHELL
    dir: str = ""
    env: list[str] = field(default_factory=list)
    exit_code: int | None = field(default=None, init=False, compare=False)
    duration: float | None = field(default=None, init=False, compare=False)
    _proc: asyncio.subprocess.Process | None = field(
        default=None, init=False, compare=False, repr=False
    )
    _launched_at: float | None = field(default=None, init=False, compare=False, repr=False)

    @property
    def finished(self) -> bool:
        return self.exit_code is not None

    @property
    def running(self) -> bool:
        return self._proc is not None

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc is not None else None

    def environ(self) -> dict[str, str] | None:
        """Return the explicit environment, or ``None`` to inherit the caller's."""
        if not self.env:
            return None
        env: dict[str, str] = {}
        for item in self.env:
            key, sep, value = item.partition("=")
            if not sep or not key:
                continue
            env[key] = value
        return env

    def attach(self, proc: asyncio.subprocess.Process, launched_at: float) -> None:
        if self._proc is not None:
            raise RuntimeError(f"job '{self.tag}' is already running")
        self._proc = proc
        self._launched_at = launched_at

    def release(self) -> None:
        self._proc = None

    def elapsed(self) -> float:
        if self._launched_at is None:
            return 0.0
        return time.monotonic() - self._launched_at

    def kill(self) -> bool:
        """Kill the job's process group; return whether the job itself was still alive."""
        proc = self._proc
        if proc is None:
            return False
        alive = proc.returncode is None
        with suppress(ProcessLookupError, PermissionError):
            os.killpg(proc.pid, signal.SIGKILL)
        if alive:
            with suppress(ProcessLookupError):
                proc.kill()
        return alive

    def record(self, exit_code: int, duration: float) -> None:
        if self.exit_code is not None:
            raise RuntimeError(f"job '{self.tag}' result already recorded")
        self.exit_code = exit_code
        self.duration = duration

    def to_dict(self) -> dict[str, object]:
        return {
            "tag": self.tag,
            "command": self.command,
            "shell": self.shell,
            "dir": self.dir,
            "env": list(self.env),
        }
