from __future__ import annotations

import asyncio
import signal
import time
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from typing import Literal

from pjobs.exec.jobset import JobSet
from pjobs.log.sink import LogSink
from pjobs.state.exit_code import HighestExitCode

RunStatus = Literal["DISPATCHING", "RUNNING", "COMPLETED", "INTERRUPTED"]
STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass(slots=True)
class RunOutcome:
    status: RunStatus
    exit_code: int
    killed: list[str]


@contextmanager
def stop_on_signals(stop: asyncio.Event) -> Iterator[None]:
    """Set ``stop`` when the process receives SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in STOP_SIGNALS:
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


class Supervisor:
    """
    Run every job concurrently and race completion against a stop request.

    Whichever finishes first wins: all jobs completing naturally yields the
    highest job exit code; a stop request kills the remaining jobs and yields
    at least 1. An error escaping any job, such as an ``InfrastructureError``,
    kills the rest and is re-raised to the caller.
    """

    def __init__(
        self,
        jobs: JobSet,
        sink: LogSink,
        *,
        stop: asyncio.Event | None = None,
    ) -> None:
        self.jobs = jobs
        self.sink = sink
        self.stop = stop if stop is not None else asyncio.Event()
        self.exit_codes = HighestExitCode()
        self.status: RunStatus = "DISPATCHING"

    async def run(self) -> RunOutcome:
        started = time.monotonic()
        all_done = self.jobs.dispatch_all(self.sink, self.exit_codes)
        self.status = "RUNNING"
        stop_wait = asyncio.create_task(self.stop.wait())
        try:
            await asyncio.wait({all_done, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()

        if all_done.done():
            try:
                all_done.result()
            except Exception:
                self.jobs.shutdown(self.exit_codes)
                await self.jobs.cancel_tasks()
                raise
            self.status = "COMPLETED"
            self.jobs.status_report(self.sink, started)
            return RunOutcome(status=self.status, exit_code=self.exit_codes.value, killed=[])

        self.status = "INTERRUPTED"
        killed = self.jobs.shutdown(self.exit_codes)
        await self.jobs.cancel_tasks()
        await asyncio.gather(all_done, return_exceptions=True)
        self.jobs.status_report(self.sink, started)
        return RunOutcome(
            status=self.status,
            exit_code=self.exit_codes.at_least(1),
            killed=killed,
        )


async def supervise(jobs: JobSet, sink: LogSink) -> RunOutcome:
    """Run ``jobs`` with SIGINT/SIGTERM wired to the stop request."""
    stop = asyncio.Event()
    with stop_on_signals(stop):
        return await Supervisor(jobs, sink, stop=stop).run()
