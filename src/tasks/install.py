from __future__ import annotations

from ..orchestrator import task
from ..orchestrator.config import BuildContext
from ..orchestrator.executor import Command
from ..orchestrator.utils import tool


@task(name="install", help="Install dependencies")
def install(ctx: BuildContext):
    return Command.of(tool(ctx.settings, "npm"), "install")
