"""Compile the editor core and its built-in extensions."""

from __future__ import annotations

from ..orchestrator import task
from ..orchestrator.config import BuildContext
from ..orchestrator.executor import Command
from ..orchestrator.utils import tool

BUILD_SCRIPTS = [
    "clean",
    "compile",
    "compile-extensions",
    "download-builtin-extensions",
]


@task(name="build", help="Clean, compile core and extensions, fetch built-in extensions")
def build(ctx: BuildContext):
    npm = tool(ctx.settings, "npm")
    return [Command.of(npm, "run", script) for script in BUILD_SCRIPTS]
