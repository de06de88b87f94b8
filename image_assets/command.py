"""Library for issuing commands using asyncio and returning the result."""

import asyncio
from abc import ABC, abstractmethod
import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from collections.abc import Sequence
import os

from .exceptions import CommandException, CommandNotFoundException

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "Command",
    "CommandRunner",
    "SubprocessRunner",
    "run",
]

REDACTED = "***"


def _decode(output: bytes) -> str:
    """Decode command output, tools may print bytes that are not utf-8."""
    return output.decode("utf-8", errors="backslashreplace")


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Kill a process that is still running and reap it."""
    if proc.returncode is None:
        proc.kill()
    await proc.wait()


def format_path(path: Path) -> str:
    """Format path for debugging."""
    if path.is_absolute():
        cwd = Path.cwd()
        if path.is_relative_to(cwd):
            rel_path = str(path.relative_to(cwd))
            return f"{rel_path} (abs)"
    return str(path)


@dataclass
class Command:
    """An instance of a command to run."""

    cmd: list[str]
    """Array of command line arguments, the first being the executable."""

    cwd: Path | None = None
    """Current working directory."""

    exc: type[CommandException] = CommandException
    """Exception to throw in case of an error."""

    env: dict[str, str] | None = None
    """Environment variables for the subprocess."""

    secrets: Sequence[str] = field(default=(), repr=False)
    """Argument values that must never appear in logs or error messages."""

    timeout: float | None = None
    """Seconds to wait for the command, or None to wait forever."""

    @property
    def string(self) -> str:
        """Render the command as a single string with secrets masked."""
        return " ".join(
            [
                REDACTED if arg in self.secrets else shlex.quote(arg)
                for arg in self.cmd
            ]
        )

    def __str__(self) -> str:
        """Render as a debug string."""
        cwd: str = ""
        if self.cwd:
            cwd = f"({format_path(self.cwd)}) "
        return f"{cwd}{self.string}"

    def __repr__(self) -> str:
        """Render without exposing secrets."""
        return f"Command({self.string!r})"

    def _redact(self, text: str) -> str:
        for secret in self.secrets:
            if secret:
                text = text.replace(secret, REDACTED)
        return text

    async def run(self) -> bytes:
        """Run the command, returning stdout."""
        _LOGGER.debug("Running command: %s", self)
        env = {
            **os.environ,
            **(self.env if self.env else {}),
        }
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                env=env,
            )
        except FileNotFoundError as err:
            raise CommandNotFoundException(self.cmd[0]) from err
        try:
            out, err = await asyncio.wait_for(proc.communicate(), self.timeout)
        except asyncio.TimeoutError as timeout_err:
            await _terminate(proc)
            raise self.exc(f"Command '{self}' timed out") from timeout_err
        except asyncio.CancelledError:
            await _terminate(proc)
            raise
        if proc.returncode:
            errors = [f"Command '{self}' failed with return code {proc.returncode}"]
            if out:
                errors.append(self._redact(_decode(out)))
            if err:
                errors.append(self._redact(_decode(err)))
            _LOGGER.debug("\n".join(errors))
            raise self.exc("\n".join(errors))
        return out


class CommandRunner(ABC):
    """Executes commands on behalf of the build tool wrappers."""

    @abstractmethod
    async def run(self, cmd: Command) -> str:
        """Execute the command and return its trimmed stdout."""


class SubprocessRunner(CommandRunner):
    """A CommandRunner that spawns local subprocesses."""

    async def run(self, cmd: Command) -> str:
        """Run the command in a subprocess and return trimmed stdout."""
        out = await cmd.run()
        return _decode(out).strip() if out else ""


async def run(cmd: Command) -> str:
    """Run the specified command and return stdout."""
    return await SubprocessRunner().run(cmd)
