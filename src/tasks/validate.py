"""Branding validation.

Checks that the editor checkout still carries the product branding after an
upstream merge: fixed fields in product.json and package.json, a few phrases
in README.md, and the presence of the build output.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

from ..orchestrator import task
from ..orchestrator.config import BuildContext, read_json
from ..orchestrator.errors import ValidationError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import (
    package_branding,
    product_branding,
    readme_phrases,
    required_paths,
)

Mismatch = Tuple[str, str, object, object]

_MISSING = "<missing>"


def _check_fields(
    source: str, data: Dict, expected: Dict[str, str], report: List[str]
) -> List[Mismatch]:
    mismatches: List[Mismatch] = []
    for key, want in expected.items():
        got = data.get(key, _MISSING)
        if got != want:
            mismatches.append((source, key, want, got))
        else:
            report.append(f"{source} {key}: correct")
    return mismatches


def check_branding(root: Path, settings: Dict) -> List[str]:
    """Run every branding check under `root`.

    Returns the per-check report lines on success. Raises ValidationError
    listing every mismatch, or ConfigError if a JSON file cannot be parsed.
    """
    logger = get_logger("orchestrator.validate")
    report: List[str] = []
    mismatches: List[Mismatch] = []

    for rel in required_paths(settings):
        if root.joinpath(rel).exists():
            report.append(f"{rel}: present")
        else:
            mismatches.append(("path", rel, "present", _MISSING))

    for filename, expected in (
        ("product.json", product_branding(settings)),
        ("package.json", package_branding(settings)),
    ):
        path = root / filename
        if not path.exists():
            # Already reported by the required-path check when configured there
            if not any(m[1] == filename for m in mismatches):
                mismatches.append(("path", filename, "present", _MISSING))
            continue
        mismatches.extend(_check_fields(filename, read_json(path), expected, report))

    readme = root / "README.md"
    phrases = readme_phrases(settings)
    if phrases:
        if not readme.exists():
            mismatches.append(("path", "README.md", "present", _MISSING))
        else:
            content = readme.read_text(encoding="utf-8")
            for phrase in phrases:
                if phrase in content:
                    report.append(f"README.md contains: {phrase!r}")
                else:
                    mismatches.append(("README.md", "content", phrase, _MISSING))

    for src, field, want, got in mismatches:
        logger.error("%s %s: expected %r, got %r", src, field, want, got)
    if mismatches:
        raise ValidationError(mismatches)
    return report


@task(name="validate", help="Validate product branding and build output")
def validate(ctx: BuildContext):
    def run_checks():
        return "\n".join(check_branding(ctx.root, ctx.settings))

    return run_checks
