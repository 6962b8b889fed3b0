"""Command execution seam.

The orchestrator only talks to a `CommandExecutor`; the real one spawns child
processes, tests swap in a fake that returns canned results.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence


@dataclass(frozen=True)
class Command:
    argv: tuple[str, ...]
    cwd: Optional[Path] = None
    env: Mapping[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None

    @classmethod
    def of(cls, *argv: str, **kwargs) -> "Command":
        return cls(argv=tuple(str(a) for a in argv), **kwargs)

    def with_defaults(
        self, cwd: Optional[Path] = None, timeout: Optional[float] = None
    ) -> "Command":
        """Fill in cwd/timeout where the task left them unset."""
        return Command(
            argv=self.argv,
            cwd=self.cwd if self.cwd is not None else cwd,
            env=self.env,
            timeout=self.timeout if self.timeout is not None else timeout,
        )

    def __str__(self) -> str:
        return " ".join(self.argv)


@dataclass
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


class CommandExecutor(Protocol):
    def run(self, command: Command, stream: bool = False) -> CommandResult:
        """Run `command` to completion.

        Raises OSError when the process cannot be spawned.
        """
        ...


def _resolve_program(argv: Sequence[str]) -> list[str]:
    # npm/gulp are .cmd shims on Windows; Popen without a shell will not find them
    resolved = shutil.which(argv[0])
    return [resolved or argv[0], *argv[1:]]


class SubprocessExecutor:
    def run(self, command: Command, stream: bool = False) -> CommandResult:
        env = None
        if command.env:
            env = dict(os.environ)
            env.update(command.env)
        pipe = None if stream else subprocess.PIPE
        with subprocess.Popen(
            _resolve_program(command.argv),
            cwd=str(command.cwd) if command.cwd is not None else None,
            env=env,
            stdout=pipe,
            stderr=pipe,
            stdin=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
        ) as proc:
            try:
                out, err = proc.communicate(timeout=command.timeout)
            except subprocess.TimeoutExpired:
                proc.kill()
                out, err = proc.communicate()
                return CommandResult(
                    returncode=proc.returncode,
                    stdout=out or "",
                    stderr=err or "",
                    timed_out=True,
                )
            except BaseException:
                # KeyboardInterrupt and friends: never leave the child running
                proc.kill()
                raise
        return CommandResult(
            returncode=proc.returncode, stdout=out or "", stderr=err or ""
        )
