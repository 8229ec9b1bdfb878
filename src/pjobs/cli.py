from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pjobs.config.loader import load_jobs, new_job, save_jobs
from pjobs.config.schema import DEFAULT_SHELL
from pjobs.exec.jobset import JobSet
from pjobs.exec.supervisor import supervise
from pjobs.log.replay import replay
from pjobs.log.sink import LogSink
from pjobs.util.errors import InfrastructureError, JobFileError, LogReplayError, LogWriteError

app = typer.Typer(help="Run shell commands in parallel with tagged, structured logs")
console = Console(highlight=False)


def _load_jobs_or_exit(path: Path) -> JobSet:
    try:
        return JobSet(load_jobs(path))
    except JobFileError as exc:
        console.print(f"[red]Job file error:[/red] {exc}")
        raise typer.Exit(2) from exc


@app.command()
def add(
    tag: Annotated[str, typer.Option("--tag", help="tag to be applied to job output")],
    command: Annotated[str, typer.Option("--command", help="command to run")] = "",
    shell: Annotated[
        str, typer.Option("--shell", help="the shell to run the command in")
    ] = DEFAULT_SHELL,
    workdir: Annotated[
        Path | None, typer.Option("--dir", help="directory to run the command in")
    ] = None,
    env: Annotated[
        str | None,
        typer.Option(
            "--env",
            help="json array of KEY=VALUE strings (default: the shell's environment)",
        ),
    ] = None,
    file: Annotated[Path, typer.Option("--file", help="file to use for jobs")] = Path("jobs.json"),
) -> None:
    """Add a command to the jobs file."""
    jobs = _load_jobs_or_exit(file)
    try:
        job = new_job(
            tag,
            command,
            shell=shell,
            workdir=str(workdir) if workdir is not None else None,
            env=env,
        )
    except JobFileError as exc:
        console.print(f"[red]Invalid job:[/red] {exc}")
        raise typer.Exit(2) from exc
    jobs.append(job)
    try:
        save_jobs(list(jobs), file)
    except JobFileError as exc:
        console.print(f"[red]Job file error:[/red] {exc}")
        raise typer.Exit(2) from exc
    console.print(f"wrote job [bold]{escape(tag)}[/bold] to {file}")


@app.command()
def run(
    file: Annotated[Path, typer.Option("--file", help="file to use for jobs")] = Path("jobs.json"),
    logfile: Annotated[
        Path | None, typer.Option("--logfile", help="path where logs are written")
    ] = None,
) -> None:
    """Run every job in the jobs file concurrently."""
    jobs = _load_jobs_or_exit(file)
    sink = LogSink(console, logfile)
    try:
        sink.reset_log_file()
    except LogWriteError as exc:
        console.print(f"[red]Failed to initialize run:[/red] {exc}")
        raise typer.Exit(1) from exc

    try:
        outcome = asyncio.run(supervise(jobs, sink))
    except InfrastructureError as exc:
        console.print(f"[red]Run aborted:[/red] {exc}")
        raise typer.Exit(1) from exc
    raise typer.Exit(outcome.exit_code)


@app.command()
def logs(
    logfile: Annotated[
        Path, typer.Option("--logfile", help="path where logs are read from")
    ],
    tag: Annotated[str | None, typer.Option("--tag", help="only show this job's lines")] = None,
    filter_: Annotated[
        str | None, typer.Option("--filter", help="filter log output using this regex")
    ] = None,
) -> None:
    """Replay a log file, optionally filtered by tag and message regex."""
    sink = LogSink(console)
    try:
        replay(logfile, sink, tag=tag, pattern=filter_)
    except LogReplayError as exc:
        console.print(f"[red]Log replay error:[/red] {exc}")
        raise typer.Exit(2) from exc


@app.command("list")
def list_jobs(
    file: Annotated[Path, typer.Option("--file", help="file to use for jobs")] = Path("jobs.json"),
) -> None:
    """Show the jobs file as a table."""
    jobs = _load_jobs_or_exit(file)
    table = Table(title=f"Jobs: {file}")
    table.add_column("#")
    table.add_column("tag")
    table.add_column("shell")
    table.add_column("dir")
    table.add_column("command")
    table.add_column("env", justify="right")
    for idx, job in enumerate(jobs, start=1):
        table.add_row(
            str(idx),
            escape(job.tag),
            escape(job.shell),
            escape(job.dir or "-"),
            escape(job.command),
            "inherit" if not job.env else str(len(job.env)),
        )
    console.print(table)


if __name__ == "__main__":
    app()
