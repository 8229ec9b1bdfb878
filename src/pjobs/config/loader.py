from __future__ import annotations

import json
import os
import stat
from collections.abc import Mapping, Sequence
from contextlib import suppress
from pathlib import Path
from typing import Any

import yaml

from pjobs.config.schema import DEFAULT_SHELL, JobSpec
from pjobs.util.errors import JobFileError
from pjobs.util.path_guard import has_symlink_ancestor, open_regular_file

_YAML_SUFFIXES = {".yaml", ".yml"}


def _is_non_blank_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip()) and "\x00" not in value


def _is_str_without_nul(value: object) -> bool:
    return isinstance(value, str) and "\x00" not in value


def _is_env_item(value: object) -> bool:
    if not _is_str_without_nul(value):
        return False
    assert isinstance(value, str)
    key, sep, _ = value.partition("=")
    return bool(sep) and bool(key)


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in _YAML_SUFFIXES


def _parse_job(raw: Any, index: int) -> JobSpec:
    if not isinstance(raw, dict):
        raise JobFileError(f"job #{index} must be an object")
    if any(not isinstance(key, str) for key in raw):
        raise JobFileError(f"job #{index} fields must use string keys")
    if "tag" not in raw or not _is_non_blank_str(raw["tag"]):
        raise JobFileError(f"job #{index} tag is required and must be non-empty string")
    tag = raw["tag"]

    command = raw.get("command", "")
    if not _is_str_without_nul(command):
        raise JobFileError(f"job '{tag}' command must be string")

    shell = raw.get("shell", DEFAULT_SHELL)
    if shell is None:
        shell = ""
    if not _is_str_without_nul(shell):
        raise JobFileError(f"job '{tag}' shell must be string")

    workdir = raw.get("dir") or ""
    if not _is_str_without_nul(workdir):
        raise JobFileError(f"job '{tag}' dir must be string")

    env = raw.get("env")
    if env is None:
        env = []
    if not isinstance(env, list) or not all(_is_str_without_nul(item) for item in env):
        raise JobFileError(f"job '{tag}' env must be list of strings")

    return JobSpec(tag=tag, command=command, shell=shell, dir=workdir, env=list(env))


def parse_jobs(raw: Any) -> list[JobSpec]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise JobFileError("job file root must be a list")
    return [_parse_job(item, index) for index, item in enumerate(raw)]


def load_jobs(path: Path) -> list[JobSpec]:
    """Read the job file; a missing file is an empty job list."""
    if has_symlink_ancestor(path):
        raise JobFileError(f"job file path must not include symlink: {path}")
    try:
        meta = path.lstat()
    except FileNotFoundError:
        return []
    except (OSError, RuntimeError) as exc:
        raise JobFileError(f"failed to read job file: {path}") from exc
    if stat.S_ISLNK(meta.st_mode):
        raise JobFileError(f"job file must not be symlink: {path}")
    if not stat.S_ISREG(meta.st_mode):
        raise JobFileError(f"failed to read job file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeError as exc:
        raise JobFileError(f"failed to decode job file as utf-8: {path}") from exc
    except OSError as exc:
        raise JobFileError(f"failed to read job file: {path}") from exc

    if not content.strip():
        return []
    if _is_yaml(path):
        try:
            raw = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise JobFileError(f"failed to parse yaml: {exc}") from exc
    else:
        try:
            raw = json.loads(content)
        except json.JSONDecodeError as exc:
            raise JobFileError(f"failed to parse json: {exc}") from exc
    return parse_jobs(raw)


def dump_jobs(jobs: Sequence[JobSpec], *, as_yaml: bool = False) -> str:
    data = [job.to_dict() for job in jobs]
    if as_yaml:
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def save_jobs(jobs: Sequence[JobSpec], path: Path) -> None:
    payload = dump_jobs(jobs, as_yaml=_is_yaml(path))
    fd: int | None = None
    try:
        fd = open_regular_file(path, append=False)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fd = None
            f.write(payload)
    except (OSError, RuntimeError) as exc:
        raise JobFileError(f"couldn't write file {path}: {exc}") from exc
    finally:
        if fd is not None:
            with suppress(OSError):
                os.close(fd)


def environ_items(environ: Mapping[str, str] | None = None) -> list[str]:
    source = os.environ if environ is None else environ
    return [f"{key}={value}" for key, value in source.items()]


def parse_env_option(value: str) -> list[str]:
    """Parse the ``--env`` option: a JSON array of KEY=VALUE strings."""
    try:
        raw = json.loads(value)
    except json.JSONDecodeError as exc:
        raise JobFileError(f"env must be a json array of strings: {exc}") from exc
    if not isinstance(raw, list) or not all(_is_env_item(item) for item in raw):
        raise JobFileError("env must be a json array of KEY=VALUE strings")
    return list(raw)


def new_job(
    tag: str,
    command: str,
    *,
    shell: str = DEFAULT_SHELL,
    workdir: str | None = None,
    env: str | None = None,
) -> JobSpec:
    """Build the spec that ``add`` appends; env defaults to the current environment."""
    if not _is_non_blank_str(tag):
        raise JobFileError("job tag is required")
    items = parse_env_option(env) if env else environ_items()
    return JobSpec(
        tag=tag,
        command=command,
        shell=shell,
        dir=workdir if workdir is not None else os.getcwd(),
        env=items,
    )
