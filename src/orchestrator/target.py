"""Build targets: which (platform, arch) a pipeline run produces binaries for."""

from __future__ import annotations

import platform as _platform
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

from .errors import ConfigError


class Platform(str, Enum):
    LINUX = "linux"
    DARWIN = "darwin"
    WIN32 = "win32"


class Arch(str, Enum):
    X64 = "x64"
    ARM64 = "arm64"


SUPPORTED_ARCHS: dict[Platform, tuple[Arch, ...]] = {
    Platform.LINUX: (Arch.X64, Arch.ARM64),
    Platform.DARWIN: (Arch.X64, Arch.ARM64),
    Platform.WIN32: (Arch.X64, Arch.ARM64),
}


def _parse_platform(value) -> Platform:
    try:
        return Platform(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in Platform)
        raise ConfigError(f"Unknown platform {value!r} (expected one of: {choices})")


def _parse_arch(value) -> Arch:
    try:
        return Arch(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        choices = ", ".join(a.value for a in Arch)
        raise ConfigError(f"Unknown arch {value!r} (expected one of: {choices})")


def parse_matrix(raw: Optional[Mapping[str, Sequence[str]]]) -> dict[Platform, tuple[Arch, ...]]:
    """Turn a `targets:` settings block into a support matrix.

    An empty or missing block means the default matrix.
    """
    if not raw:
        return dict(SUPPORTED_ARCHS)
    if not isinstance(raw, Mapping):
        raise ConfigError("`targets` must map platform names to lists of archs")
    matrix: dict[Platform, tuple[Arch, ...]] = {}
    for plat, archs in raw.items():
        if isinstance(archs, str) or not isinstance(archs, Sequence):
            raise ConfigError(f"`targets.{plat}` must be a list of archs")
        matrix[_parse_platform(plat)] = tuple(_parse_arch(a) for a in archs)
    return matrix


@dataclass(frozen=True)
class BuildTarget:
    platform: Platform
    arch: Arch

    def __post_init__(self):
        # Accept plain strings and normalise to enum members
        object.__setattr__(self, "platform", _parse_platform(self.platform))
        object.__setattr__(self, "arch", _parse_arch(self.arch))
        check_supported(self)

    @classmethod
    def from_args(
        cls, platform: Optional[str] = None, arch: Optional[str] = None
    ) -> "BuildTarget":
        """Build a target from CLI values, defaulting each missing half to the host."""
        return cls(
            platform=platform or detect_host_platform(),
            arch=arch or detect_host_arch(),
        )

    @property
    def slug(self) -> str:
        return f"{self.platform.value}-{self.arch.value}"

    def __str__(self) -> str:
        return self.slug


def check_supported(
    target: BuildTarget, matrix: Optional[Mapping[Platform, Sequence[Arch]]] = None
) -> None:
    matrix = SUPPORTED_ARCHS if matrix is None else matrix
    archs = matrix.get(target.platform)
    if not archs:
        raise ConfigError(f"Platform {target.platform.value} is not a supported target")
    if target.arch not in archs:
        allowed = ", ".join(a.value for a in archs)
        raise ConfigError(
            f"Unsupported platform/arch combination: {target.slug} "
            f"(supported archs for {target.platform.value}: {allowed})"
        )


def detect_host_platform(host: Optional[str] = None) -> str:
    host = sys.platform if host is None else host
    if host.startswith("linux"):
        return Platform.LINUX.value
    if host == "darwin":
        return Platform.DARWIN.value
    if host in ("win32", "cygwin"):
        return Platform.WIN32.value
    # Unknown hosts fall through to target validation
    return host


def detect_host_arch() -> str:
    machine = _platform.machine().lower()
    if machine in ("arm64", "aarch64"):
        return Arch.ARM64.value
    return Arch.X64.value
