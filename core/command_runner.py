"""
Thin wrapper around subprocess for the print spooler commands.

Every command is an argument vector handed straight to subprocess.run;
nothing is ever passed through a shell, so printer names and file paths
are never interpreted as shell syntax.

run() never raises for the failures a print pipeline has to expect
(binary not installed, non-zero exit, timeout). Callers inspect the
returned CommandResult instead.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    argv: tuple
    returncode: Optional[int]
    """Exit status, or None if the command never finished."""

    stdout: str = ""
    stderr: str = ""

    timed_out: bool = False
    """The command outlived its timeout and was killed."""

    not_found: bool = False
    """The executable does not exist on this machine."""

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def error_text(self) -> str:
        """Best human-readable reason for a failure."""
        if self.not_found:
            return f"command not found: {self.argv[0]}"
        if self.timed_out:
            return "command timed out"
        return (self.stderr or self.stdout).strip() or f"exit status {self.returncode}"


class CommandRunner:
    """
    Runs external commands with a hard timeout.

    A single instance is shared by discovery, activation and dispatch;
    tests swap it for a fake with the same run() signature.
    """

    def run(self, argv: Sequence[str], timeout: float) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            argv: Program and arguments, e.g. ["lp", "-d", name, path]
            timeout: Seconds before the process is killed

        Returns:
            CommandResult describing the outcome
        """
        argv = tuple(argv)
        logger.debug(f"Running {list(argv)} (timeout {timeout}s)")
        try:
            completed = subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError:
            logger.debug(f"Executable not found: {argv[0]}")
            return CommandResult(argv=argv, returncode=None, not_found=True)
        except subprocess.TimeoutExpired as e:
            logger.warning(f"{argv[0]} timed out after {timeout}s")
            return CommandResult(
                argv=argv,
                returncode=None,
                stdout=_decode(e.stdout),
                stderr=_decode(e.stderr),
                timed_out=True,
            )
        except OSError as e:
            logger.warning(f"Could not start {argv[0]}: {e}")
            return CommandResult(argv=argv, returncode=None, stderr=str(e))

        return CommandResult(
            argv=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


def _decode(value) -> str:
    # TimeoutExpired carries bytes even when text=True was requested
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
