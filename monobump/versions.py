"""Version parsing and bumping utilities.

Versions in package manifests must be plain ``major.minor.patch`` strings;
prerelease and build metadata are not supported when bumping.
"""

from __future__ import annotations

import time

import semver

from .models import BumpKind

SNAPSHOT_BASE = "0.0.0"


def parse_version(version_str: str) -> semver.Version:
    """Parse a strict ``X.Y.Z`` version string.

    Raises:
        ValueError: If the string does not have exactly three dot-separated
            non-negative integer components.
    """
    parts = version_str.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid version format: {version_str}")
    major, minor, patch = (int(p) for p in parts)
    return semver.Version(major, minor, patch)


def bump_version(version_str: str, kind: BumpKind, is_breaking: bool = False) -> str:
    """Apply a semantic bump to a version string.

    A breaking major bump on a ``0.x`` version only bumps the minor
    component, so a package is never promoted to 1.0 implicitly. An
    explicit major bump (not flagged breaking) always increments major.

    Examples:
        bump_version("1.2.3", "patch") → "1.2.4"
        bump_version("1.2.3", "minor") → "1.3.0"
        bump_version("1.2.3", "major") → "2.0.0"
        bump_version("0.5.10", "major", is_breaking=True) → "0.6.0"
    """
    version = parse_version(version_str)
    if kind == "major":
        if is_breaking and version.major == 0:
            return str(version.bump_minor())
        return str(version.bump_major())
    if kind == "minor":
        return str(version.bump_minor())
    if kind == "patch":
        return str(version.bump_patch())
    raise ValueError(f"Unknown bump kind: {kind}")


def generate_snapshot_version(now: float | None = None) -> str:
    """Return a snapshot version such as ``0.0.0-1718000000``.

    Args:
        now: Unix timestamp to use. Defaults to the current time.
    """
    timestamp = int(time.time() if now is None else now)
    return f"{SNAPSHOT_BASE}-{timestamp}"
