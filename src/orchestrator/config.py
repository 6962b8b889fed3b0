"""Settings loading and the per-run build context.

Everything a task needs (checkout root, target, flags, settings) is passed in
through `BuildContext` rather than read from the process cwd, argv or env.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigError
from .target import BuildTarget


DEFAULT_CONFIG_PATH = "configs/base.yaml"


def load_config(path: str | Path, required: bool = True) -> dict:
    """Read the YAML settings file.

    A missing file is a ConfigError unless `required` is False, in which case
    the built-in defaults apply.
    """
    p = Path(path)
    if not p.exists():
        if required:
            raise ConfigError(f"Config file not found: {p}")
        return {}
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed config file {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {p} must contain a mapping at the top level")
    return data


def read_json(path: Path) -> dict:
    """Load a JSON config file of the editor checkout (package.json, product.json)."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"{path.name} not found at {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse {path.name}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a JSON object")
    return data


@dataclass(frozen=True)
class BuildOptions:
    verbose: bool = False
    skip_sync: bool = False
    release: bool = False
    timeout: Optional[float] = None


@dataclass
class BuildContext:
    root: Path
    target: BuildTarget
    options: BuildOptions = field(default_factory=BuildOptions)
    settings: dict = field(default_factory=dict)
    run_id: str = field(default_factory=lambda: time.strftime("%Y%m%d-%H%M%S"))

    def path(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def package_json(self) -> dict[str, Any]:
        return read_json(self.path("package.json"))

    def version(self) -> str:
        version = self.package_json().get("version")
        if not version:
            raise ConfigError("package.json has no `version` field")
        return str(version)
