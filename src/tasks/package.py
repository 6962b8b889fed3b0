from __future__ import annotations

from ..orchestrator import task
from ..orchestrator.config import BuildContext
from ..orchestrator.executor import Command
from ..orchestrator.utils import tool


def gulp_target(ctx: BuildContext) -> str:
    return f"vscode-{ctx.target.platform.value}-{ctx.target.arch.value}"


@task(name="package", help="Package the application for the target platform/arch")
def package(ctx: BuildContext):
    """Run the gulp packaging task for the target.

    The target is passed to the child through VSCODE_PLATFORM / VSCODE_ARCH.
    """
    return Command.of(
        tool(ctx.settings, "npm"),
        "run",
        "gulp",
        "--",
        gulp_target(ctx),
        env={
            "VSCODE_PLATFORM": ctx.target.platform.value,
            "VSCODE_ARCH": ctx.target.arch.value,
        },
    )
