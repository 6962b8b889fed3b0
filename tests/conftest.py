from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.orchestrator.config import BuildOptions
from src.orchestrator.core import Orchestrator
from src.orchestrator.executor import Command, CommandResult
from src.orchestrator.target import BuildTarget

# Settings without a log file so tests never leave handlers behind
TEST_SETTINGS = {
    "project": {"product_name": "CursorClone"},
    "timeouts": {"default": 60, "steps": {"build": 120}},
}

PRODUCT_JSON = {
    "nameShort": "CursorClone",
    "applicationName": "cursorclone",
    "dataFolderName": ".cursorclone",
    "serverDataFolderName": ".cursorclone-server",
}

PACKAGE_JSON = {
    "name": "cursorclone",
    "author": "CursorClone Team",
    "version": "1.2.3",
}

README = "# CursorClone\n\nAn AI-powered code editor. Build it with `cursorclone-build all`.\n"


class FakeExecutor:
    """Records commands and answers with canned results.

    `results` maps a substring of the command line to a CommandResult or an
    exception to raise; the first matching entry wins, anything else
    succeeds. Archiver commands create the archive file they were asked for.
    """

    def __init__(self, results=None):
        self.results = dict(results or {})
        self.calls: list[Command] = []
        self.streams: list[bool] = []

    @property
    def command_lines(self) -> list[str]:
        return [str(c) for c in self.calls]

    def run(self, command: Command, stream: bool = False) -> CommandResult:
        self.calls.append(command)
        self.streams.append(stream)
        line = str(command)
        for pattern, result in self.results.items():
            if pattern in line:
                if isinstance(result, BaseException):
                    raise result
                return result
        self._fake_archive(command)
        return CommandResult(returncode=0, stdout=f"ran {line}\n")

    @staticmethod
    def _fake_archive(command: Command) -> None:
        argv = command.argv
        if argv[0] == "tar":
            dest = Path(argv[2])
        elif argv[0] == "zip":
            dest = Path(argv[3])
        else:
            return
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"archive")


def failing(code: int = 1, stderr: str = "boom") -> CommandResult:
    return CommandResult(returncode=code, stderr=stderr)


def write_checkout(root: Path, target: str = "linux-arm64") -> Path:
    (root / "product.json").write_text(json.dumps(PRODUCT_JSON), encoding="utf-8")
    (root / "package.json").write_text(json.dumps(PACKAGE_JSON), encoding="utf-8")
    (root / "README.md").write_text(README, encoding="utf-8")
    (root / ".build" / f"VSCode-{target}").mkdir(parents=True)
    (root / ".build" / f"VSCode-{target}" / "cursorclone").write_text("bin", encoding="utf-8")
    return root


@pytest.fixture
def checkout(tmp_path) -> Path:
    return write_checkout(tmp_path)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def make_orchestrator(checkout, fake_executor):
    def _make(platform="linux", arch="arm64", settings=None, executor=None, **opts):
        return Orchestrator.configure(
            BuildTarget(platform, arch),
            BuildOptions(**opts),
            settings=TEST_SETTINGS if settings is None else settings,
            executor=executor or fake_executor,
            root=checkout,
        )

    return _make
