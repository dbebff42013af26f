"""External process execution behind a swappable protocol.

Production code uses ``SubprocessRunner`` which spawns programs with
``asyncio.create_subprocess_exec`` so a long build never blocks the event
loop.  Tests use ``InMemoryProcessRunner`` which records invocations and
returns scripted exit codes without spawning anything.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog

from deployhook.schemas.config import Command

logger = structlog.get_logger()


def resolve_working_dir(command: Command, cwd_base: Path) -> Path:
    """Join the command's relative working directory onto ``cwd_base``."""
    if command.working_dir is None:
        return cwd_base
    return cwd_base / command.working_dir


class ProcessRunner(Protocol):
    """Protocol for running a single command to completion."""

    async def run(self, command: Command, cwd_base: Path) -> int:
        """Run ``command`` and return its exit status.

        Raises:
            OSError: If the program cannot be started.
            TimeoutError: If the command exceeds the runner's timeout.
        """
        ...


class SubprocessRunner:
    """Production runner that spawns real child processes.

    Output is inherited from the daemon so it lands in the same log stream.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout

    async def run(self, command: Command, cwd_base: Path) -> int:
        cwd = resolve_working_dir(command, cwd_base)
        logger.info("command_started", command=command.display(), cwd=str(cwd))

        process = await asyncio.create_subprocess_exec(command.program, *command.args, cwd=cwd)
        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=self._timeout)
        except TimeoutError:
            await _kill(process)
            logger.error("command_timed_out", command=command.display(), timeout=self._timeout)
            raise
        except asyncio.CancelledError:
            await _kill(process)
            logger.warning("command_cancelled", command=command.display(), pid=process.pid)
            raise

        logger.info("command_finished", command=command.display(), returncode=returncode)
        return returncode


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill ``process`` if it is still running and reap it."""
    if process.returncode is None:
        process.kill()
    await process.wait()


@dataclass
class RecordedRun:
    """A single invocation captured by ``InMemoryProcessRunner``."""

    program: str
    args: list[str]
    cwd: Path


class InMemoryProcessRunner:
    """Test double that records commands and returns scripted exit codes.

    ``exit_codes`` maps a program (or ``"program arg ..."`` display string) to
    the status it should report; anything else exits 0.
    """

    def __init__(self, exit_codes: dict[str, int] | None = None) -> None:
        self.exit_codes = exit_codes or {}
        self.runs: list[RecordedRun] = []

    async def run(self, command: Command, cwd_base: Path) -> int:
        self.runs.append(
            RecordedRun(
                program=command.program,
                args=list(command.args),
                cwd=resolve_working_dir(command, cwd_base),
            )
        )
        if command.display() in self.exit_codes:
            return self.exit_codes[command.display()]
        return self.exit_codes.get(command.program, 0)
