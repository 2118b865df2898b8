"""Execution of builder and git subprocesses."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple
import os
import shlex
import subprocess

from .errors import SubprocessError


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(SubprocessError):
    """Raised when a command fails and the caller asked for ``check``."""

    def __init__(self, result: CommandResult):
        message = f"Command failed with exit code {result.returncode}: {format_command(result.command)}"
        stderr = result.stderr.strip()
        if stderr and not result.streamed:
            message = f"{message}: {stderr.splitlines()[-1]}"
        super().__init__(message, returncode=result.returncode, command=result.command)
        self.result = result


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in command)


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = False,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return format_command(command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`.

    Streamed commands inherit the terminal so long builder runs show their
    progress; captured commands return their output as text.
    """

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = False,
    ) -> CommandResult:
        merged_env = self._merge_environment(env)
        try:
            process = subprocess.run(
                list(command),
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=not stream,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            # A missing executable behaves like the shell's "command not found".
            result = CommandResult(command=command, returncode=127, stdout="", stderr=str(exc))
        else:
            result = CommandResult(
                command=command,
                returncode=process.returncode,
                stdout=process.stdout or "",
                stderr=process.stderr or "",
                streamed=stream,
            )
        if check and not result.ok:
            raise CommandError(result)
        return result


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    stream: bool


@dataclass
class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them.

    ``responses`` maps a command prefix to the result returned for any command
    starting with it; the longest matching prefix wins.
    """

    responses: Dict[Tuple[str, ...], CommandResult] = field(default_factory=dict)
    commands: List[RecordedCommand] = field(default_factory=list)

    def respond(self, prefix: Sequence[str], *, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses[tuple(prefix)] = CommandResult(
            command=list(prefix), returncode=returncode, stdout=stdout, stderr=stderr
        )

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = False,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(
                command=list(command),
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else {},
                stream=stream,
            )
        )
        canned = self._lookup(command)
        result = CommandResult(
            command=command,
            returncode=canned.returncode if canned else 0,
            stdout=canned.stdout if canned else "",
            stderr=canned.stderr if canned else "",
            streamed=stream,
        )
        if check and not result.ok:
            raise CommandError(result)
        return result

    def _lookup(self, command: Sequence[str]) -> CommandResult | None:
        parts = tuple(command)
        best: CommandResult | None = None
        best_length = -1
        for prefix, result in self.responses.items():
            if parts[: len(prefix)] == prefix and len(prefix) > best_length:
                best = result
                best_length = len(prefix)
        return best

    def iter_commands(self) -> Iterable[List[str]]:
        return (record.command for record in self.commands)
