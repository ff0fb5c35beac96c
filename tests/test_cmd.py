from __future__ import annotations

import subprocess

import pytest

from gwtopo.cmd import CommandRunner
from gwtopo.models import CommandError


class FakeRun:
    def __init__(self, returncode=0, stdout="", stderr="", raises=None):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.raises = raises
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        if self.raises:
            raise self.raises
        return subprocess.CompletedProcess(cmd, self.returncode, self.stdout, self.stderr)


def test_run_captures_output(monkeypatch) -> None:
    fake = FakeRun(stdout="hello\n")
    monkeypatch.setattr(subprocess, "run", fake)

    result = CommandRunner(timeout=5).run(["echo", "hello"], input_text="in")

    assert result.ok
    assert result.stdout == "hello\n"
    assert result.argv == ["echo", "hello"]
    cmd, kwargs = fake.calls[0]
    assert cmd == ["echo", "hello"]
    assert kwargs["input"] == "in"
    assert kwargs["capture_output"] is True
    assert kwargs["text"] is True
    assert kwargs["timeout"] == 5
    assert kwargs["check"] is False


def test_non_zero_exit_does_not_raise(monkeypatch) -> None:
    monkeypatch.setattr(subprocess, "run", FakeRun(returncode=2, stderr="nope"))
    result = CommandRunner().run(["false"])
    assert not result.ok
    assert result.stderr == "nope"


def test_check_raises(monkeypatch) -> None:
    monkeypatch.setattr(subprocess, "run", FakeRun(returncode=1, stderr="boom"))
    with pytest.raises(CommandError, match="boom"):
        CommandRunner().check(["false"])


@pytest.mark.parametrize(
    "sudo, privileged, expected",
    [
        (True, True, ["sudo", "ip", "link"]),
        (True, False, ["ip", "link"]),
        (False, True, ["ip", "link"]),
    ],
)
def test_sudo_prefix(monkeypatch, sudo, privileged, expected) -> None:
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    CommandRunner(sudo=sudo).run(["ip", "link"], privileged=privileged)
    assert fake.calls[0][0] == expected


def test_timeout(monkeypatch) -> None:
    monkeypatch.setattr(
        subprocess, "run", FakeRun(raises=subprocess.TimeoutExpired(["sleep"], 1))
    )
    result = CommandRunner(timeout=1).run(["sleep", "10"])
    assert result.returncode == 124


def test_missing_program(monkeypatch) -> None:
    monkeypatch.setattr(
        subprocess, "run", FakeRun(raises=FileNotFoundError(2, "No such file", "lxc"))
    )
    result = CommandRunner().run(["lxc", "list"])
    assert result.returncode == 127
    assert "No such file" in result.stderr


def test_waits_without_timeout_by_default(monkeypatch) -> None:
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    CommandRunner().run(["/srv/gen/genieacs-base.sh"])
    assert fake.calls[0][1]["timeout"] is None
