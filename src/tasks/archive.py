"""Archive task: bundle the packaged output into a distributable file.

Reads the packaged directory `<build_dir>/VSCode-<platform>-<arch>` and writes
`releases/<Product>-<version>-<platform>-<arch>.tar.gz` on Linux (`.zip` on
macOS and Windows), plus a `.sha256` file next to it.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from ..orchestrator import task
from ..orchestrator.config import BuildContext
from ..orchestrator.errors import MissingArtifact
from ..orchestrator.executor import Command
from ..orchestrator.target import Platform
from ..orchestrator.utils import (
    archive_name_template,
    archive_source_template,
    build_dir,
    product_name,
    releases_dir,
    tool,
)


def file_digest(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def archive_extension(platform: Platform) -> str:
    return ".tar.gz" if platform == Platform.LINUX else ".zip"


def source_dir(ctx: BuildContext) -> Path:
    name = archive_source_template(ctx.settings).format(
        platform=ctx.target.platform.value, arch=ctx.target.arch.value
    )
    return ctx.root.resolve() / build_dir(ctx.settings) / name


def archive_path(ctx: BuildContext) -> Path:
    stem = archive_name_template(ctx.settings).format(
        product=product_name(ctx.settings),
        version=ctx.version(),
        platform=ctx.target.platform.value,
        arch=ctx.target.arch.value,
    )
    out_dir = ctx.root.resolve() / releases_dir(ctx.settings)
    return out_dir / (stem + archive_extension(ctx.target.platform))


@task(name="archive", help="Create the distribution archive")
def archive(ctx: BuildContext):
    src = source_dir(ctx)
    dest = archive_path(ctx)

    def check_packaged_output():
        if not src.is_dir():
            raise MissingArtifact(src, hint="Run the build and package steps first")
        dest.parent.mkdir(parents=True, exist_ok=True)
        # A stale archive from an earlier run would otherwise be appended to by zip
        if dest.exists():
            dest.unlink()
        return None

    if ctx.target.platform == Platform.LINUX:
        bundle = Command.of(
            tool(ctx.settings, "tar"), "-czf", str(dest), "-C", str(src.parent), src.name
        )
    else:
        bundle = Command.of(
            tool(ctx.settings, "zip"), "-r", "-q", str(dest), src.name, cwd=src.parent
        )

    def write_checksum():
        if not dest.exists():
            raise MissingArtifact(dest, hint="Archiver exited cleanly but wrote nothing")
        digest = file_digest(dest)
        checksum = dest.with_name(dest.name + ".sha256")
        checksum.write_text(f"{digest}  {dest.name}\n", encoding="utf-8")
        return f"Archive created: {dest} (sha256 {digest})"

    return [check_packaged_output, bundle, write_checksum]
