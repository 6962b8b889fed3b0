from __future__ import annotations

from typing import Optional


class BuildError(Exception):
    """Base class for failures the orchestrator knows how to report."""

    kind = "BuildError"


class ConfigError(BuildError):
    """Invalid target, option or settings file. Fatal before any step runs."""

    kind = "ConfigError"


class SubprocessError(BuildError):
    kind = "SubprocessError"

    def __init__(
        self, message: str, exit_code: Optional[int] = None, stderr: str = ""
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class StepTimeout(SubprocessError):
    kind = "Timeout"


class MissingArtifact(BuildError):
    kind = "MissingArtifact"

    def __init__(self, path, hint: str = ""):
        msg = f"Expected build output not found: {path}"
        if hint:
            msg = f"{msg}. {hint}"
        super().__init__(msg)
        self.path = path


class ValidationError(BuildError):
    """Branding check failed.

    `mismatches` holds one (source, field, expected, actual) tuple per failed
    check so callers can report each one.
    """

    kind = "ValidationError"

    def __init__(self, mismatches: list[tuple[str, str, object, object]]):
        self.mismatches = list(mismatches)
        lines = [
            f"{src} {field}: expected {expected!r}, got {actual!r}"
            for src, field, expected, actual in self.mismatches
        ]
        super().__init__(
            f"{len(lines)} branding check(s) failed:\n" + "\n".join(lines)
        )
