"""
Version comparison (pure).

Dotted numeric versions are compared component by component as
integers. Missing trailing components count as 0 and any
``-PRERELEASE`` suffix is ignored for ordering.
No I/O.
"""

from __future__ import annotations

import functools
import re
from typing import Literal

_SEMVER = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-(.+))?$")


def _numeric_parts(version: str) -> list[int]:
    """Numeric components of ``version``, prerelease stripped.

    Non-numeric components count as 0.
    """
    core = version.strip().lstrip("v").split("-", 1)[0]
    parts: list[int] = []
    for piece in core.split("."):
        parts.append(int(piece) if piece.isdigit() else 0)
    return parts


def compare_versions(a: str, b: str) -> int:
    """Compare two dotted versions.

    Returns:
        ``-1`` if ``a < b``, ``0`` if equal, ``1`` if ``a > b``.
    """
    pa, pb = _numeric_parts(a), _numeric_parts(b)
    for i in range(max(len(pa), len(pb))):
        x = pa[i] if i < len(pa) else 0
        y = pb[i] if i < len(pb) else 0
        if x < y:
            return -1
        if x > y:
            return 1
    return 0


version_key = functools.cmp_to_key(compare_versions)
"""Sort key: ``sorted(versions, key=version_key)``."""


def parse_version(version: str) -> dict:
    """Parse a strict ``MAJOR.MINOR.PATCH[-PRERELEASE]`` version.

    Returns:
        ``{"major": int, "minor": int, "patch": int, "prerelease": str | None}``

    Raises:
        ValueError: If the string is not a full three-part version.
    """
    match = _SEMVER.match(version)
    if not match:
        raise ValueError(f"Invalid version format: {version}")
    return {
        "major": int(match.group(1)),
        "minor": int(match.group(2)),
        "patch": int(match.group(3)),
        "prerelease": match.group(4),
    }


def is_version_compatible(version: str, required: str) -> bool:
    """Same-major compatibility. Unparseable input is incompatible."""
    try:
        return parse_version(version)["major"] == parse_version(required)["major"]
    except ValueError:
        return False


def next_version(version: str, bump: Literal["major", "minor", "patch"]) -> str:
    """Return the version after ``version`` for the given bump type."""
    v = parse_version(version)
    if bump == "major":
        return f"{v['major'] + 1}.0.0"
    if bump == "minor":
        return f"{v['major']}.{v['minor'] + 1}.0"
    if bump == "patch":
        return f"{v['major']}.{v['minor']}.{v['patch'] + 1}"
    raise ValueError(f"Invalid version bump: {bump}")


def in_interval(version: str, lower: str, upper: str) -> bool:
    """Whether ``lower < version <= upper``."""
    return compare_versions(lower, version) < 0 and compare_versions(version, upper) <= 0
