from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from pjobs.config.loader import (
    dump_jobs,
    environ_items,
    load_jobs,
    new_job,
    parse_env_option,
    save_jobs,
)
from pjobs.config.schema import DEFAULT_SHELL, JobSpec
from pjobs.util.errors import JobFileError


def _sample_jobs() -> list[JobSpec]:
    return [
        JobSpec(tag="a", command="echo a", shell="/bin/sh", dir="/tmp", env=["A=1", "B=x=y"]),
        JobSpec(tag="b", command="exit 3", shell="/bin/bash", dir="", env=[]),
        JobSpec(tag="c", command="sleep 1 && echo done"),
    ]


def test_save_then_load_json_preserves_order_and_fields(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    jobs = _sample_jobs()

    save_jobs(jobs, path)
    loaded = load_jobs(path)

    assert loaded == jobs
    assert [job.tag for job in loaded] == ["a", "b", "c"]


def test_save_then_load_yaml_preserves_order_and_fields(tmp_path: Path) -> None:
    path = tmp_path / "jobs.yaml"
    jobs = _sample_jobs()

    save_jobs(jobs, path)
    loaded = load_jobs(path)

    assert loaded == jobs


def test_json_job_file_uses_field_order_and_env_as_string_list(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    save_jobs(_sample_jobs()[:1], path)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert list(raw[0].keys()) == ["tag", "command", "shell", "dir", "env"]
    assert raw[0]["env"] == ["A=1", "B=x=y"]
    assert path.read_text(encoding="utf-8").startswith("[\n  {\n")


def test_runtime_fields_are_not_serialized() -> None:
    job = JobSpec(tag="a", command="true")
    job.record(0, 1.5)
    payload = json.loads(dump_jobs([job]))
    assert payload == [
        {"tag": "a", "command": "true", "shell": DEFAULT_SHELL, "dir": "", "env": []}
    ]


def test_missing_job_file_is_empty_job_list(tmp_path: Path) -> None:
    assert load_jobs(tmp_path / "absent.json") == []


def test_empty_job_file_is_empty_job_list(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    path.write_text("\n", encoding="utf-8")
    assert load_jobs(path) == []


def test_missing_shell_and_dir_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    path.write_text(json.dumps([{"tag": "a", "command": "true"}]), encoding="utf-8")

    (job,) = load_jobs(path)
    assert job.shell == DEFAULT_SHELL
    assert job.dir == ""
    assert job.env == []


def test_env_items_are_kept_as_written(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    env = ["PATH", "A=1", "=orphan", ""]
    path.write_text(json.dumps([{"tag": "x", "command": "true", "env": env}]), encoding="utf-8")

    (job,) = load_jobs(path)

    assert job.env == env
    assert job.environ() == {"A": "1"}


def test_unknown_job_fields_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    path.write_text(
        json.dumps([{"tag": "x", "command": "true", "retries": 3, "note": {"k": "v"}}]),
        encoding="utf-8",
    )

    (job,) = load_jobs(path)

    assert job == JobSpec(tag="x", command="true")


@pytest.mark.parametrize("shell", ["", None])
def test_empty_shell_is_stored_as_empty_string(tmp_path: Path, shell: str | None) -> None:
    path = tmp_path / "jobs.json"
    path.write_text(
        json.dumps([{"tag": "x", "command": "true", "shell": shell}]), encoding="utf-8"
    )

    (job,) = load_jobs(path)
    assert job.shell == ""

    save_jobs([job], path)
    assert json.loads(path.read_text(encoding="utf-8"))[0]["shell"] == ""
    assert load_jobs(path) == [job]


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"tag": "a"}, "root must be a list"),
        ([{"command": "true"}], "tag is required"),
        ([{"tag": "  ", "command": "true"}], "tag is required"),
        ([{"tag": "a", "command": 5}], "command must be string"),
        ([{"tag": "a", "command": "x", "env": {"A": "1"}}], "env must be list"),
        ([{"tag": "a", "command": "x", "env": [1]}], "env must be list"),
        ([{"tag": "a", "command": "x", "shell": 5}], "shell must be string"),
        (["not-an-object"], "must be an object"),
    ],
)
def test_invalid_job_file_raises(tmp_path: Path, payload: object, message: str) -> None:
    path = tmp_path / "jobs.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(JobFileError, match=message):
        load_jobs(path)


def test_malformed_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(JobFileError, match="failed to parse json"):
        load_jobs(path)


def test_symlink_job_file_is_rejected(tmp_path: Path) -> None:
    target = tmp_path / "real.json"
    target.write_text("[]", encoding="utf-8")
    link = tmp_path / "jobs.json"
    link.symlink_to(target)

    with pytest.raises(JobFileError, match="symlink"):
        load_jobs(link)
    with pytest.raises(JobFileError):
        save_jobs(_sample_jobs(), link)
    assert target.read_text(encoding="utf-8") == "[]"


def test_new_job_defaults_env_to_current_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PJOBS_TEST_MARKER", "present")
    monkeypatch.chdir(tmp_path)

    job = new_job("a", "echo hi")

    assert "PJOBS_TEST_MARKER=present" in job.env
    assert job.env == environ_items()
    assert job.dir == os.getcwd()
    assert job.shell == DEFAULT_SHELL


def test_new_job_uses_explicit_env_and_dir() -> None:
    job = new_job("a", "env", shell="/bin/sh", workdir="/srv", env='["ONLY=1"]')
    assert job == JobSpec(tag="a", command="env", shell="/bin/sh", dir="/srv", env=["ONLY=1"])


def test_new_job_requires_tag() -> None:
    with pytest.raises(JobFileError, match="tag is required"):
        new_job("", "true")


@pytest.mark.parametrize("value", ["{", '{"A": "1"}', '["A"]', "[1]"])
def test_parse_env_option_rejects_bad_values(value: str) -> None:
    with pytest.raises(JobFileError):
        parse_env_option(value)


def test_environ_parses_key_value_items() -> None:
    job = JobSpec(tag="a", command="true", env=["A=1", "B=x=y", "C="])
    assert job.environ() == {"A": "1", "B": "x=y", "C": ""}


def test_empty_env_means_inherit() -> None:
    assert JobSpec(tag="a", command="true").environ() is None


def test_record_is_set_once() -> None:
    job = JobSpec(tag="a", command="true")
    job.record(2, 0.5)
    assert job.finished
    with pytest.raises(RuntimeError, match="already recorded"):
        job.record(0, 1.0)
    assert (job.exit_code, job.duration) == (2, 0.5)
