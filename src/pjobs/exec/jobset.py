from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Iterator

from pjobs.config.schema import JobSpec
from pjobs.exec.runner import JobResult, decode_exit_status, run_job
from pjobs.log.sink import LogSink
from pjobs.state.exit_code import HighestExitCode
from pjobs.util.time import format_duration


class JobSet:
    """Ordered jobs of one run, with the operations that act on all of them."""

    def __init__(self, jobs: Iterable[JobSpec] = ()) -> None:
        self.jobs: list[JobSpec] = list(jobs)
        self.tasks: list[asyncio.Task[JobResult]] = []

    def __iter__(self) -> Iterator[JobSpec]:
        return iter(self.jobs)

    def __len__(self) -> int:
        return len(self.jobs)

    def append(self, job: JobSpec) -> None:
        self.jobs.append(job)

    def to_dicts(self) -> list[dict[str, object]]:
        return [job.to_dict() for job in self.jobs]

    def dispatch_all(
        self, sink: LogSink, exit_codes: HighestExitCode
    ) -> asyncio.Future[list[JobResult]]:
        """Start every job at once; the returned future resolves when all are done."""
        self.tasks = [
            asyncio.create_task(run_job(job, sink, exit_codes), name=f"job:{job.tag}")
            for job in self.jobs
        ]
        return asyncio.gather(*self.tasks)

    def shutdown(self, exit_codes: HighestExitCode | None = None) -> list[str]:
        """
        Kill every job still running and return the tags that were killed.

        A live job without a recorded result gets one now: its exit status when
        it already exited, otherwise 1, with the time elapsed since launch.
        """
        killed: list[str] = []
        for job in self.jobs:
            if job.kill():
                killed.append(job.tag)
            if job.running and not job.finished:
                exit_code = decode_exit_status(job.returncode)
                job.record(exit_code, job.elapsed())
                if exit_codes is not None:
                    exit_codes.observe(exit_code)
        return killed

    async def cancel_tasks(self) -> None:
        pending = [task for task in self.tasks if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def status_report(self, sink: LogSink, started: float) -> None:
        """Log every job's outcome, then the total wall time since ``started``."""
        for job in self.jobs:
            exit_code = job.exit_code if job.exit_code is not None else 0
            emit = sink.error if exit_code > 0 else sink.info
            emit(job.tag, "exit=%d, duration=%s", exit_code, format_duration(job.duration))
        sink.console.print(f"total run time {format_duration(time.monotonic() - started)}")
