"""Run external commands and capture their outcome."""

import logging
import subprocess

from gwtopo.models import CommandResult

_LOGGER = logging.getLogger(__name__)


class CommandRunner:
    """runs argv lists synchronously, one at a time

    Commands never raise on a non-zero exit status, the caller inspects the
    returned CommandResult. Privileged commands get a sudo prefix when the
    runner is configured to use it. Without a timeout every command is
    waited on until it exits.
    """

    def __init__(self, sudo: bool = False, timeout: float | None = None):
        self.sudo = sudo
        self.timeout = timeout

    def run(
        self,
        argv: list[str],
        input_text: str | None = None,
        privileged: bool = False,
    ) -> CommandResult:
        cmd = list(argv)
        if privileged and self.sudo:
            cmd = ["sudo", *cmd]
        _LOGGER.debug("Running: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            _LOGGER.error("Command timed out: %s", " ".join(cmd))
            return CommandResult(124, "", "command timed out", cmd)
        except OSError as exc:
            _LOGGER.error("Command failed: %s: %s", " ".join(cmd), exc)
            return CommandResult(127, "", str(exc), cmd)
        return CommandResult(proc.returncode, proc.stdout, proc.stderr, cmd)

    def check(
        self,
        argv: list[str],
        input_text: str | None = None,
        privileged: bool = False,
    ) -> CommandResult:
        """run and raise CommandError on failure"""
        return self.run(argv, input_text=input_text, privileged=privileged).check()
