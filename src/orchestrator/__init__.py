"""Build pipeline orchestrator for the CursorClone editor fork.

Provides step declaration (`@task`), the linear pipeline runner, build targets
and the command executor seam, plus a Typer CLI.
"""

from .core import Orchestrator, PipelineRun, Step, StepResult, TaskSpec, task  # re-export for convenience
from .errors import BuildError, ConfigError, MissingArtifact, SubprocessError, ValidationError
from .target import Arch, BuildTarget, Platform

__all__ = [
    "Orchestrator",
    "PipelineRun",
    "Step",
    "StepResult",
    "TaskSpec",
    "task",
    "BuildError",
    "ConfigError",
    "MissingArtifact",
    "SubprocessError",
    "ValidationError",
    "Arch",
    "BuildTarget",
    "Platform",
]
