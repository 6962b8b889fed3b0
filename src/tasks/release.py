"""Release marker: tag the current version and push it.

Not part of the `all` step order; the CLI appends these steps after a
successful `all --release` run.
"""

from __future__ import annotations

from ..orchestrator.config import BuildContext
from ..orchestrator.core import Step
from ..orchestrator.executor import Command
from ..orchestrator.utils import release_branch, release_remote, tool


def release_steps(ctx: BuildContext) -> list[Step]:
    git = tool(ctx.settings, "git")
    version = ctx.version()
    tag = f"v{version}"
    return [
        # The tag may already exist from an earlier run; pushing still matters
        Step(
            name="tag",
            command=Command.of(git, "tag", "-a", tag, "-m", f"Release {version}"),
            skippable=True,
        ),
        Step(
            name="push",
            command=Command.of(
                git,
                "push",
                release_remote(ctx.settings),
                release_branch(ctx.settings),
                "--tags",
            ),
        ),
    ]
