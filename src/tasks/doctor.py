"""Build environment check.

Confirms the checkout and toolchain look usable before a long build: required
files, git/npm/node availability, the upstream remote, installed node_modules.
The `.nvmrc` Node version, compiler toolchain and Python checks are
informational only (skippable).
"""

from __future__ import annotations

from ..orchestrator.config import BuildContext
from ..orchestrator.core import Step
from ..orchestrator.errors import MissingArtifact, SubprocessError, ValidationError
from ..orchestrator.executor import Command, CommandExecutor
from ..orchestrator.target import Platform
from ..orchestrator.utils import tool, upstream_remote

REQUIRED_FILES = [
    ("package.json", "Package configuration"),
    ("product.json", "Product configuration"),
    ("tsconfig.json", "TypeScript configuration"),
    ("gulpfile.js", "Gulp build file"),
]


def _exists_check(ctx: BuildContext, rel: str, description: str, hint: str = ""):
    def check():
        path = ctx.path(rel)
        if not path.exists():
            raise MissingArtifact(path, hint=hint or f"{description} missing")
        return f"{description} exists: {path}"

    return check


def _node_matches(expected: str, actual: str) -> bool:
    # "18" and "18.17" in .nvmrc accept any 18.x / 18.17.x node
    return actual == expected or actual.startswith(expected + ".")


def _nvmrc_check(ctx: BuildContext, executor: CommandExecutor):
    def check():
        nvmrc = ctx.path(".nvmrc")
        if not nvmrc.exists():
            return "No .nvmrc, node version not pinned"
        expected = nvmrc.read_text(encoding="utf-8").strip().lstrip("v")
        if not expected[:1].isdigit():
            return f".nvmrc names {expected!r}, not a version number"
        cmd = Command.of(tool(ctx.settings, "node"), "--version").with_defaults(cwd=ctx.root)
        try:
            res = executor.run(cmd)
        except OSError as e:
            raise SubprocessError(f"Failed to start `{cmd}`: {e}") from e
        if res.returncode != 0:
            raise SubprocessError(
                f"`{cmd}` exited with code {res.returncode}",
                exit_code=res.returncode,
                stderr=res.stderr,
            )
        actual = res.stdout.strip().lstrip("v")
        if not _node_matches(expected, actual):
            raise ValidationError([(".nvmrc", "node", expected, actual)])
        return f"node {actual} matches .nvmrc ({expected})"

    return check


def _toolchain_commands(platform: Platform) -> list[Command]:
    if platform == Platform.DARWIN:
        return [Command.of("xcode-select", "--version")]
    if platform == Platform.WIN32:
        return [Command.of("where", "cl")]
    return [Command.of("gcc", "--version"), Command.of("make", "--version")]


def doctor_steps(ctx: BuildContext, executor: CommandExecutor) -> list[Step]:
    git = tool(ctx.settings, "git")
    steps = [
        Step(name=f"file:{rel}", command=_exists_check(ctx, rel, desc))
        for rel, desc in REQUIRED_FILES
    ]
    steps += [
        Step(name="git", command=Command.of(git, "--version")),
        Step(name="git-remotes", command=Command.of(git, "remote", "-v")),
        Step(
            name="upstream-remote",
            command=Command.of(git, "remote", "get-url", upstream_remote(ctx.settings)),
        ),
        Step(name="npm", command=Command.of(tool(ctx.settings, "npm"), "--version")),
        Step(name="node", command=Command.of(tool(ctx.settings, "node"), "--version")),
        Step(name="node-version", command=_nvmrc_check(ctx, executor), skippable=True),
        Step(
            name="node_modules",
            command=_exists_check(
                ctx, "node_modules", "Node modules directory", hint='Run "npm install"'
            ),
        ),
        Step(name="python3", command=Command.of("python3", "--version"), skippable=True),
        Step(
            name="toolchain",
            command=_toolchain_commands(ctx.target.platform),
            skippable=True,
        ),
    ]
    return steps
