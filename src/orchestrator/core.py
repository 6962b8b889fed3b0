from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

from .config import BuildContext, BuildOptions
from .errors import BuildError, ConfigError, StepTimeout, SubprocessError
from .executor import Command, CommandExecutor, SubprocessExecutor
from .logging import get_logger
from .target import BuildTarget, check_supported, parse_matrix
from .utils import step_timeout


# A step runs one or more actions: external commands, or in-process checks
# that return optional output text and raise BuildError on failure.
Action = Union[Command, Callable[[], Optional[str]]]
StepCommand = Union[Action, Sequence[Action]]


@dataclass
class TaskSpec:
    name: str
    fn: Callable[[BuildContext], StepCommand]
    help: str = ""
    skippable: bool = False
    skip_when: Optional[Callable[[BuildOptions], bool]] = None


def task(
    name: str,
    help: str = "",
    skippable: bool = False,
    skip_when: Optional[Callable[[BuildOptions], bool]] = None,
):
    """Decorator to declare a pipeline step on a function.

    The wrapped function receives the `BuildContext` and returns the actions
    for the step. It only plans; nothing runs until the orchestrator executes
    the returned actions. `skip_when` lets options turn the step into a
    recorded no-op (and makes it skippable).
    """

    def deco(fn: Callable[[BuildContext], StepCommand]):
        spec = TaskSpec(
            name=name, fn=fn, help=help, skippable=skippable, skip_when=skip_when
        )
        setattr(fn, "_task_spec", spec)
        return fn

    return deco


@dataclass(frozen=True)
class Step:
    name: str
    command: StepCommand
    skippable: bool = False
    skip: bool = False


@dataclass
class StepResult:
    name: str
    succeeded: bool
    output: str = ""
    error_message: Optional[str] = None
    exit_code: Optional[int] = None
    error_kind: Optional[str] = None
    skippable: bool = False
    skipped: bool = False
    duration_seconds: float = 0.0


@dataclass
class PipelineRun:
    name: str
    target: Optional[BuildTarget] = None
    results: list[StepResult] = field(default_factory=list)
    aborted_at: Optional[str] = None

    @property
    def success(self) -> bool:
        if self.aborted_at is not None:
            return False
        return all(r.succeeded for r in self.results if not r.skippable)

    @property
    def state(self) -> str:
        return "aborted" if self.aborted_at is not None else "completed"

    @property
    def failed_steps(self) -> list[str]:
        return [r.name for r in self.results if not r.succeeded]


def select_subset(
    order: Sequence[str], from_step: str | None = None, until_step: str | None = None
) -> list[str]:
    """Slice the fixed step order so an interrupted run can be resumed."""
    ordered = list(order)
    if from_step:
        if from_step not in ordered:
            raise ConfigError(f"Unknown step: {from_step}")
        ordered = ordered[ordered.index(from_step):]
    if until_step:
        if until_step not in order:
            raise ConfigError(f"Unknown step: {until_step}")
        if until_step not in ordered:
            raise ConfigError(f"--until-step {until_step} comes before --from-step {from_step}")
        ordered = ordered[: ordered.index(until_step) + 1]
    return ordered


def _as_actions(command: StepCommand) -> list[Action]:
    if isinstance(command, Command) or callable(command):
        return [command]
    return list(command)


class Orchestrator:
    def __init__(
        self,
        ctx: BuildContext,
        executor: Optional[CommandExecutor] = None,
        name: str = "pipeline",
    ):
        self.ctx = ctx
        self.executor = executor or SubprocessExecutor()
        self.name = name
        self.logger = get_logger(f"orchestrator.{self.name}")

    @classmethod
    def configure(
        cls,
        target: BuildTarget,
        options: BuildOptions,
        settings: Optional[dict] = None,
        executor: Optional[CommandExecutor] = None,
        root: str | Path = ".",
        name: str = "pipeline",
    ) -> "Orchestrator":
        """Validate the target against the supported matrix and build an orchestrator.

        No side effects; raises ConfigError for an unsupported platform/arch.
        """
        settings = settings or {}
        check_supported(target, parse_matrix(settings.get("targets")))
        ctx = BuildContext(
            root=Path(root), target=target, options=options, settings=settings
        )
        return cls(ctx, executor=executor, name=name)

    def plan(self, specs: dict[str, TaskSpec], names: Iterable[str]) -> list[Step]:
        steps: list[Step] = []
        for step_name in names:
            spec = specs.get(step_name)
            if spec is None:
                raise ConfigError(f"Unknown step: {step_name}")
            skip = bool(spec.skip_when and spec.skip_when(self.ctx.options))
            command: StepCommand = [] if skip else spec.fn(self.ctx)
            steps.append(
                Step(
                    name=spec.name,
                    command=command,
                    skippable=spec.skippable or skip,
                    skip=skip,
                )
            )
        return steps

    def _timeout_for(self, step_name: str) -> Optional[float]:
        if self.ctx.options.timeout is not None:
            # 0 on the command line disables the bound
            return self.ctx.options.timeout or None
        return step_timeout(self.ctx.settings, step_name)

    def _run_action(
        self, action: Action, timeout: Optional[float], step_logger: logging.Logger
    ) -> Optional[str]:
        if not isinstance(action, Command):
            return action()
        cmd = action.with_defaults(cwd=self.ctx.root, timeout=timeout)
        step_logger.info("Executing: %s", cmd)
        try:
            res = self.executor.run(cmd, stream=self.ctx.options.verbose)
        except OSError as e:
            raise SubprocessError(f"Failed to start `{cmd}`: {e}") from e
        if res.timed_out:
            raise StepTimeout(
                f"`{cmd}` timed out after {cmd.timeout}s and was killed",
                exit_code=res.returncode,
                stderr=res.stderr,
            )
        if res.returncode != 0:
            raise SubprocessError(
                f"`{cmd}` exited with code {res.returncode}",
                exit_code=res.returncode,
                stderr=res.stderr or res.stdout,
            )
        return res.stdout

    def run_step(self, name: str, command: StepCommand) -> StepResult:
        """Execute every action of a step; failures come back as a StepResult."""
        step_logger = get_logger(f"orchestrator.{self.name}.{name}")
        timeout = self._timeout_for(name)
        started = time.monotonic()
        outputs: list[str] = []
        for action in _as_actions(command):
            try:
                out = self._run_action(action, timeout, step_logger)
            except BuildError as e:
                stderr = getattr(e, "stderr", "")
                if stderr:
                    outputs.append(stderr)
                return StepResult(
                    name=name,
                    succeeded=False,
                    output="\n".join(o.rstrip() for o in outputs),
                    error_message=str(e),
                    exit_code=getattr(e, "exit_code", None),
                    error_kind=e.kind,
                    duration_seconds=time.monotonic() - started,
                )
            except Exception as e:  # noqa: BLE001
                step_logger.exception("Unexpected error in step %s", name)
                return StepResult(
                    name=name,
                    succeeded=False,
                    output="\n".join(o.rstrip() for o in outputs),
                    error_message=f"{type(e).__name__}: {e}",
                    error_kind=type(e).__name__,
                    duration_seconds=time.monotonic() - started,
                )
            if out:
                outputs.append(out)
        return StepResult(
            name=name,
            succeeded=True,
            output="\n".join(o.rstrip() for o in outputs),
            duration_seconds=time.monotonic() - started,
        )

    def run_pipeline(self, steps: Sequence[Step], keep_going: bool = False) -> PipelineRun:
        run = PipelineRun(name=self.name, target=self.ctx.target)
        self.logger.info(
            "Target %s, steps: %s", self.ctx.target, " → ".join(s.name for s in steps)
        )
        for step in steps:
            step_logger = get_logger(f"orchestrator.{self.name}.{step.name}")
            if step.skip:
                step_logger.info("Skip: %s", step.name)
                run.results.append(
                    StepResult(
                        name=step.name, succeeded=True, skippable=True, skipped=True
                    )
                )
                continue

            result = self.run_step(step.name, step.command)
            result.skippable = step.skippable
            run.results.append(result)

            if result.succeeded:
                step_logger.info(
                    "Step succeeded: %s (%.1fs)", step.name, result.duration_seconds
                )
                continue
            if step.skippable:
                step_logger.warning(
                    "Step failed (skippable, continuing): %s: %s",
                    step.name,
                    result.error_message,
                )
                continue
            step_logger.error("Step failed: %s: %s", step.name, result.error_message)
            if result.output and not self.ctx.options.verbose:
                step_logger.error("Captured output of %s:\n%s", step.name, result.output)
            if not keep_going:
                run.aborted_at = step.name
                break
        return run

    def summarize(self, run: PipelineRun) -> int:
        return summarize(run, self.logger)


def summarize(run: PipelineRun, logger: Optional[logging.Logger] = None) -> int:
    """Log one line per step result and return the process exit code."""
    logger = logger or get_logger(f"orchestrator.{run.name}")
    for r in run.results:
        if r.skipped:
            level, status, detail = logging.INFO, "SKIPPED", ""
        elif r.succeeded:
            level, status, detail = logging.INFO, "OK", f"{r.duration_seconds:.1f}s"
        elif r.skippable:
            level, status, detail = logging.WARNING, "WARN", _first_line(r.error_message)
        else:
            level, status, detail = logging.ERROR, "FAILED", _first_line(r.error_message)
        logger.log(level, "%-10s %-8s %s", r.name, status, detail)

    if run.success:
        logger.info("Pipeline %s completed successfully", run.name)
        return 0
    if run.aborted_at is not None:
        logger.error("Pipeline %s aborted at step %s", run.name, run.aborted_at)
    else:
        logger.error(
            "Pipeline %s finished with failures: %s", run.name, ", ".join(run.failed_steps)
        )
    return 1


def _first_line(text: Optional[str]) -> str:
    return text.splitlines()[0] if text else ""
