"""Dependency range handling utilities.

Provides the range rewriter used when an internal dependency gets a new
version, and helpers that apply it to every dependency section of a
manifest.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from .models import DependencyUpdate, Manifest

WORKSPACE_PROTOCOL = "workspace:"
WILDCARD = "*"

_OPERATOR_RE = re.compile(r"^[~^>=<]*")


def rewrite_range(old_range: str, new_version: str) -> str:
    """Point a dependency range at a new version, keeping its operator.

    Examples:
        rewrite_range("^1.0.0", "1.1.0") → "^1.1.0"
        rewrite_range(">=1.0.0", "1.1.0") → ">=1.1.0"
        rewrite_range("1.0.0", "1.1.0") → "1.1.0"
        rewrite_range("workspace:~1.0.0", "1.1.0") → "workspace:~1.1.0"
        rewrite_range("workspace:*", "1.1.0") → "workspace:*"
        rewrite_range("*", "1.1.0") → "*"
    """
    if old_range.startswith(WORKSPACE_PROTOCOL):
        constraint = old_range[len(WORKSPACE_PROTOCOL) :]
        if constraint == WILDCARD:
            return old_range
        operator = _OPERATOR_RE.match(constraint).group(0)
        if operator == constraint:
            # "workspace:^" and friends carry no version to rewrite
            return old_range
        return f"{WORKSPACE_PROTOCOL}{operator}{new_version}"

    if old_range == WILDCARD:
        return old_range

    operator = _OPERATOR_RE.match(old_range).group(0)
    return f"{operator}{new_version}"


def update_dependency_ranges(
    manifest: Manifest, new_versions: Mapping[str, str]
) -> list[DependencyUpdate]:
    """Rewrite ranges for internal deps that are getting a new version.

    Modifies the manifest's dependency maps in place. Only ranges whose
    text actually changed are reported.

    Args:
        manifest: Manifest to update.
        new_versions: Map of package name → new version.

    Returns:
        One DependencyUpdate per rewritten entry.
    """
    updates: list[DependencyUpdate] = []
    for section in manifest.dependency_sections():
        for name, old_range in section.items():
            if name not in new_versions:
                continue
            new_range = rewrite_range(old_range, new_versions[name])
            if new_range != old_range:
                section[name] = new_range
                updates.append(
                    DependencyUpdate(name=name, from_range=old_range, to_range=new_range)
                )
    return updates


def pin_dependency_ranges(
    manifest: Manifest, names: set[str], version: str
) -> list[DependencyUpdate]:
    """Pin every dependency in ``names`` to exactly ``version``.

    Used for snapshots, where internal ranges are always exact pins and
    the operator is dropped.
    """
    updates: list[DependencyUpdate] = []
    for section in manifest.dependency_sections():
        for name, old_range in section.items():
            if name in names and old_range != version:
                section[name] = version
                updates.append(
                    DependencyUpdate(name=name, from_range=old_range, to_range=version)
                )
    return updates
