"""Upstream sync: fetch the upstream editor and merge it into the current branch."""

from __future__ import annotations

from ..orchestrator import task
from ..orchestrator.config import BuildContext
from ..orchestrator.executor import Command
from ..orchestrator.utils import tool, upstream_branch, upstream_remote


@task(
    name="sync",
    help="Sync with upstream (fetch, back up HEAD, merge)",
    skip_when=lambda opts: opts.skip_sync,
)
def sync(ctx: BuildContext):
    git = tool(ctx.settings, "git")
    remote = upstream_remote(ctx.settings)
    branch = upstream_branch(ctx.settings)
    return [
        Command.of(git, "fetch", remote),
        # Keep a pointer to the pre-merge HEAD so a bad merge can be undone
        Command.of(git, "branch", f"backup-{ctx.run_id}"),
        # Plain merge: conflicts surface as a non-zero exit and fail the step
        Command.of(git, "merge", f"{remote}/{branch}", "--no-edit"),
    ]
