from __future__ import annotations

"""Small helpers for reading build settings with built-in defaults."""

from typing import Dict, List, Optional


DEFAULT_PRODUCT_BRANDING = {
    "nameShort": "CursorClone",
    "applicationName": "cursorclone",
    "dataFolderName": ".cursorclone",
    "serverDataFolderName": ".cursorclone-server",
}

DEFAULT_PACKAGE_BRANDING = {
    "name": "cursorclone",
    "author": "CursorClone Team",
}

DEFAULT_README_PHRASES = [
    "CursorClone",
    "AI-powered code editor",
    "cursorclone-build",
]

DEFAULT_REQUIRED_PATHS = ["package.json", "product.json", ".build"]


def _get(d: Dict, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
        if cur is None:
            return default
    return cur


def product_name(p: Dict) -> str:
    return str(_get(p, "project", "product_name", default="CursorClone"))


def build_dir(p: Dict) -> str:
    return _get(p, "project", "build_dir", default=".build")


def releases_dir(p: Dict) -> str:
    return _get(p, "project", "releases_dir", default="releases")


def log_file(p: Dict) -> Optional[str]:
    return _get(p, "logging", "file")


def tool(p: Dict, name: str) -> str:
    """Binary used for an external tool (`npm`, `git`, `tar`, `zip`, `node`)."""
    return str(_get(p, "tools", name, default=name))


def upstream_remote(p: Dict) -> str:
    return _get(p, "upstream", "remote", default="upstream")


def upstream_branch(p: Dict) -> str:
    return _get(p, "upstream", "branch", default="main")


def release_remote(p: Dict) -> str:
    return _get(p, "release", "remote", default="origin")


def release_branch(p: Dict) -> str:
    return _get(p, "release", "branch", default="main")


def step_timeout(p: Dict, step: str) -> Optional[float]:
    """Per-command wall-clock bound for `step`; None or 0 means unbounded."""
    value = _get(p, "timeouts", "steps", step, default=_get(p, "timeouts", "default"))
    if not value:
        return None
    return float(value)


def archive_source_template(p: Dict) -> str:
    return _get(p, "archive", "source_dir", default="VSCode-{platform}-{arch}")


def archive_name_template(p: Dict) -> str:
    return _get(
        p, "archive", "name", default="{product}-{version}-{platform}-{arch}"
    )


def product_branding(p: Dict) -> Dict[str, str]:
    return dict(_get(p, "branding", "product_json", default=DEFAULT_PRODUCT_BRANDING))


def package_branding(p: Dict) -> Dict[str, str]:
    return dict(_get(p, "branding", "package_json", default=DEFAULT_PACKAGE_BRANDING))


def readme_phrases(p: Dict) -> List[str]:
    return list(_get(p, "branding", "readme", default=DEFAULT_README_PHRASES))


def required_paths(p: Dict) -> List[str]:
    return list(_get(p, "branding", "required_paths", default=DEFAULT_REQUIRED_PATHS))
