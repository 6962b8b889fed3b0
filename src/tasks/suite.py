from __future__ import annotations

from ..orchestrator import task
from ..orchestrator.config import BuildContext
from ..orchestrator.executor import Command
from ..orchestrator.utils import tool


@task(name="test", help="Run the editor test suite")
def run_tests(ctx: BuildContext):
    return Command.of(tool(ctx.settings, "npm"), "test")
