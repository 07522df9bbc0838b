"""Unit tests for shell command execution."""

from __future__ import annotations

from pathlib import Path

from tdd_dag.config import default_config
from tdd_dag.execution import ShellRunner


def test_runner_captures_combined_output_into_log(tmp_path: Path) -> None:
    log_file = tmp_path / "node-run.log"

    outcome = ShellRunner().run("echo out; echo err >&2; exit 4", cwd=tmp_path, log_file=log_file)

    assert not outcome.ok
    assert outcome.returncode == 4
    assert log_file.read_text(encoding="utf-8") == "+ echo out; echo err >&2; exit 4\nout\nerr\n"


def test_runner_executes_in_working_directory(tmp_path: Path) -> None:
    outcome = ShellRunner().run("pwd", cwd=tmp_path, log_file=tmp_path / "pwd.log")

    assert outcome.ok
    assert Path(outcome.output.strip()).resolve() == tmp_path.resolve()


def test_runner_does_not_read_stdin(tmp_path: Path) -> None:
    outcome = ShellRunner().run("cat", cwd=tmp_path, log_file=tmp_path / "cat.log")

    assert outcome.ok
    assert outcome.output == ""


def test_missing_shell_maps_to_127(tmp_path: Path) -> None:
    runner = ShellRunner(shell=str(tmp_path / "no-such-shell"))

    outcome = runner.run("echo hi", cwd=tmp_path, log_file=tmp_path / "missing.log")

    assert outcome.returncode == 127
    assert (tmp_path / "missing.log").read_text(encoding="utf-8").startswith("+ echo hi\n")


def test_runner_from_config_selects_login_shell() -> None:
    config = default_config()
    config["executor"]["login_shell"] = True

    runner = ShellRunner.from_config(config)

    assert runner.argv("make test") == ("bash", "-lc", "make test")
    assert ShellRunner().argv("make test") == ("bash", "-c", "make test")
