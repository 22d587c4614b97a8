"""Command runners for exec defaults, exec conditions and system tasks."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from scaffoldx.errors import ScaffoldxError

logger = logging.getLogger(__name__)

DEFAULT_EXEC_TIMEOUT = 10.0
REASON_EXEC_FAILED = "COMMAND_FAILED"
REASON_EXEC_TIMEOUT = "COMMAND_TIMEOUT"


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ExecError(ScaffoldxError):
    """Raised when a command returns non-zero in check mode."""

    def __init__(self, result: ExecResult):
        rendered = " ".join(result.argv)
        detail = (result.stderr or result.stdout).strip()
        super().__init__(f"command failed ({result.returncode}): {rendered}\n{detail}".rstrip(), REASON_EXEC_FAILED)
        self.result = result


class ExecTimeoutError(ScaffoldxError):
    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f"command timed out after {timeout:g}s: {command}", REASON_EXEC_TIMEOUT)
        self.command = command
        self.timeout = timeout


def run_command(
    argv: list[str],
    *,
    cwd: Path,
    check: bool = True,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
) -> ExecResult:
    """Run command and return structured result; ``env`` replaces the environment."""
    completed = subprocess.run(
        argv, cwd=cwd, capture_output=capture, text=True, check=False, timeout=timeout, env=env
    )
    result = ExecResult(
        argv=tuple(argv),
        cwd=cwd.resolve(),
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if check and result.returncode != 0:
        raise ExecError(result)
    return result


def run_shell(
    command: str,
    *,
    cwd: Path,
    check: bool = True,
    capture: bool = True,
) -> ExecResult:
    """Run a shell command line; with ``capture=False`` output goes to the terminal."""
    completed = subprocess.run(
        command,
        shell=True,
        cwd=cwd,
        capture_output=capture,
        text=True,
        check=False,
    )
    result = ExecResult(
        argv=(command,),
        cwd=cwd.resolve(),
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if check and result.returncode != 0:
        raise ExecError(result)
    return result


def run_git(
    args: list[str],
    *,
    repo_root: Path,
    check: bool = True,
) -> ExecResult:
    """Run git command rooted at repo."""
    return run_command(["git", *args], cwd=repo_root, check=check)


async def run_shell_async(
    command: str,
    *,
    cwd: Path | None = None,
    timeout: float = DEFAULT_EXEC_TIMEOUT,
) -> ExecResult:
    """Run a shell command without blocking the event loop.

    The process is killed once ``timeout`` seconds elapse and
    ExecTimeoutError is raised. A non-zero exit is returned, not raised.
    """
    workdir = cwd or Path(os.getcwd())
    proc = await asyncio.create_subprocess_shell(
        command,
        cwd=workdir,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise ExecTimeoutError(command, timeout) from None
    return ExecResult(
        argv=(command,),
        cwd=workdir.resolve(),
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
