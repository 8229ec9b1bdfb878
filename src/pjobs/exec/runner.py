from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from pjobs.config.schema import JobSpec
from pjobs.exec.capture import stream_lines
from pjobs.log.sink import LogSink
from pjobs.state.exit_code import HighestExitCode
from pjobs.util.errors import LaunchError


@dataclass(slots=True)
class JobResult:
    exit_code: int
    duration: float


def decode_exit_status(returncode: int | None) -> int:
    """Map a subprocess return code to a job exit code.

    Negative codes (death by signal) and unknown statuses count as 1.
    """
    if returncode is None or returncode < 0:
        return 1
    return returncode


async def run_job(spec: JobSpec, sink: LogSink, exit_codes: HighestExitCode) -> JobResult:
    sink.info(spec.tag, "job started")

    started = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            spec.shell,
            "-c",
            spec.command,
            cwd=spec.dir or None,
            env=spec.environ(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except (OSError, ValueError) as exc:
        sink.fatal(spec.tag, "failed to start process: %s", exc, error_type=LaunchError)

    spec.attach(proc, started)

    def _forward(line: str) -> None:
        sink.info(spec.tag, line)

    # Log level is not derived from stream origin: stderr lines are info too.
    # The console drops control characters such as \r; the log file keeps lines as read.
    out_reader = asyncio.create_task(stream_lines(proc.stdout, _forward))
    err_reader = asyncio.create_task(stream_lines(proc.stderr, _forward))
    try:
        returncode, _, _ = await asyncio.gather(proc.wait(), out_reader, err_reader)
    except BaseException:
        spec.kill()
        raise
    finally:
        for reader in (out_reader, err_reader):
            if not reader.done():
                reader.cancel()
        spec.release()
    duration = time.monotonic() - started

    exit_code = decode_exit_status(returncode)
    if exit_code == 0:
        sink.info(spec.tag, "job complete, exit=0")
    else:
        sink.error(spec.tag, "job error, exit=%d", exit_code)

    if not spec.finished:
        spec.record(exit_code, duration)
    exit_codes.observe(exit_code)
    return JobResult(exit_code=exit_code, duration=duration)
