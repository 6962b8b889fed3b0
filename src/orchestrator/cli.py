from __future__ import annotations

import importlib
import pkgutil
from pathlib import Path
from typing import Dict, List, Optional

import typer
from dotenv import load_dotenv

from .config import DEFAULT_CONFIG_PATH, BuildOptions, load_config
from .core import Orchestrator, PipelineRun, TaskSpec, select_subset
from .errors import ConfigError
from .executor import CommandExecutor, SubprocessExecutor
from .logging import attach_file_handler, get_logger, set_verbose
from .target import BuildTarget
from .utils import log_file


app = typer.Typer(add_completion=False, help="CursorClone build pipeline CLI")
log = get_logger("orchestrator.cli")

PIPELINE_ORDER = ["sync", "install", "build", "package", "archive", "validate"]

STEP_COMMANDS = {
    "sync": "Sync with upstream VS Code",
    "install": "Install dependencies",
    "build": "Build CursorClone",
    "package": "Package application for distribution",
    "archive": "Create distribution archive",
    "test": "Run tests",
    "validate": "Validate branding and build output",
}

# Tests replace this to avoid spawning real build tools
make_executor = SubprocessExecutor

PlatformOpt = typer.Option(
    None, "--platform", help="Target platform (linux, darwin, win32). Default: host."
)
ArchOpt = typer.Option(None, "--arch", help="Target architecture (x64, arm64). Default: host.")
SkipSyncOpt = typer.Option(False, "--skip-sync", help="Skip upstream sync")
VerboseOpt = typer.Option(False, "--verbose", help="Stream tool output live")
ConfigOpt = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Path to YAML config")
RootOpt = typer.Option(".", "--root", help="Editor checkout to build")
TimeoutOpt = typer.Option(
    None, "--timeout", help="Per-command timeout in seconds (overrides config)"
)


def discover_tasks() -> Dict[str, TaskSpec]:
    """Import all modules in `tasks` package and collect decorated functions."""
    tasks_pkg = "src.tasks"
    specs: Dict[str, TaskSpec] = {}
    try:
        pkg = importlib.import_module(tasks_pkg)
    except ModuleNotFoundError:
        log.warning("No tasks package found.")
        return specs
    for m in pkgutil.iter_modules(pkg.__path__, prefix=f"{tasks_pkg}."):
        try:
            mod = importlib.import_module(m.name)
        except Exception as e:  # noqa: BLE001
            log.warning("Failed to import %s: %s", m.name, e)
            continue
        for attr_name in dir(mod):
            obj = getattr(mod, attr_name)
            spec = getattr(obj, "_task_spec", None)
            if isinstance(spec, TaskSpec):
                specs[spec.name] = spec
    return specs


def build_orchestrator(
    platform: Optional[str],
    arch: Optional[str],
    config: str,
    root: str,
    verbose: bool = False,
    skip_sync: bool = False,
    release: bool = False,
    timeout: Optional[float] = None,
    name: str = "pipeline",
    executor: Optional[CommandExecutor] = None,
) -> Orchestrator:
    """Resolve settings, target and options into a configured orchestrator.

    Raises ConfigError before anything runs if any of them is invalid.
    """
    set_verbose(verbose)
    settings = load_config(config, required=config != DEFAULT_CONFIG_PATH)
    target = BuildTarget.from_args(platform, arch)
    options = BuildOptions(
        verbose=verbose, skip_sync=skip_sync, release=release, timeout=timeout
    )
    orch = Orchestrator.configure(
        target,
        options,
        settings=settings,
        executor=executor or make_executor(),
        root=root,
        name=name,
    )
    if log_file(settings):
        path = Path(root) / log_file(settings)
        try:
            attach_file_handler(path)
        except OSError as e:
            raise ConfigError(f"Cannot open log file {path}: {e}") from e
    return orch


def _finish(orch: Orchestrator, run: PipelineRun) -> None:
    raise typer.Exit(code=orch.summarize(run))


def run_steps(
    names: List[str],
    platform: Optional[str],
    arch: Optional[str],
    skip_sync: bool,
    verbose: bool,
    config: str,
    root: str,
    timeout: Optional[float],
    release: bool = False,
    name: str = "pipeline",
) -> None:
    try:
        orch = build_orchestrator(
            platform,
            arch,
            config,
            root,
            verbose=verbose,
            skip_sync=skip_sync,
            release=release,
            timeout=timeout,
            name=name,
        )
        steps = orch.plan(discover_tasks(), names)
        release_plan = []
        if release:
            from ..tasks.release import release_steps

            release_plan = release_steps(orch.ctx)
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        raise typer.Exit(code=1)

    try:
        run = orch.run_pipeline(steps)
        if release_plan and run.success:
            log.info("Pipeline succeeded, creating release")
            release_run = orch.run_pipeline(release_plan)
            run.results.extend(release_run.results)
            run.aborted_at = release_run.aborted_at
    except Exception:  # noqa: BLE001
        log.exception("Build failed with an unexpected error")
        raise typer.Exit(code=1)
    _finish(orch, run)


def _register_step_command(step_name: str, help_text: str) -> None:
    def command(
        platform: Optional[str] = PlatformOpt,
        arch: Optional[str] = ArchOpt,
        skip_sync: bool = SkipSyncOpt,
        verbose: bool = VerboseOpt,
        config: str = ConfigOpt,
        root: str = RootOpt,
        timeout: Optional[float] = TimeoutOpt,
    ):
        run_steps(
            [step_name], platform, arch, skip_sync, verbose, config, root, timeout,
            name=step_name,
        )

    command.__doc__ = help_text
    app.command(step_name, help=help_text)(command)


for _name, _help in STEP_COMMANDS.items():
    _register_step_command(_name, _help)


@app.command("all")
def full_run(
    platform: Optional[str] = PlatformOpt,
    arch: Optional[str] = ArchOpt,
    skip_sync: bool = SkipSyncOpt,
    verbose: bool = VerboseOpt,
    release: bool = typer.Option(
        False, "--release", help="Tag and push a release after a successful run"
    ),
    config: str = ConfigOpt,
    root: str = RootOpt,
    timeout: Optional[float] = TimeoutOpt,
    from_step: str = typer.Option("", help="Start from this step name"),
    until_step: str = typer.Option("", help="Stop after this step name"),
):
    """Run the complete pipeline: sync, install, build, package, archive, validate."""
    try:
        names = select_subset(PIPELINE_ORDER, from_step or None, until_step or None)
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        raise typer.Exit(code=1)
    run_steps(
        names, platform, arch, skip_sync, verbose, config, root, timeout,
        release=release, name="all",
    )


@app.command("doctor")
def doctor(
    platform: Optional[str] = PlatformOpt,
    arch: Optional[str] = ArchOpt,
    verbose: bool = VerboseOpt,
    config: str = ConfigOpt,
    root: str = RootOpt,
):
    """Check that the build environment is ready."""
    from ..tasks.doctor import doctor_steps

    try:
        orch = build_orchestrator(platform, arch, config, root, verbose=verbose, name="doctor")
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        raise typer.Exit(code=1)
    run = orch.run_pipeline(doctor_steps(orch.ctx, orch.executor), keep_going=True)
    _finish(orch, run)


@app.command("list")
def list_tasks():
    """List pipeline steps in execution order."""
    specs = discover_tasks()
    typer.echo("Pipeline steps (all):")
    for step_name in PIPELINE_ORDER:
        spec = specs.get(step_name)
        typer.echo(f"- {step_name}: {spec.help if spec else '(missing)'}")
    extra = sorted(set(specs) - set(PIPELINE_ORDER))
    if extra:
        typer.echo("Other steps:")
        for step_name in extra:
            typer.echo(f"- {step_name}: {specs[step_name].help}")


@app.command("help")
def show_help(ctx: typer.Context):
    """Show this help."""
    typer.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


@app.callback(invoke_without_command=True)
def _default(ctx: typer.Context):
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


def main():  # pragma: no cover
    load_dotenv()
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
