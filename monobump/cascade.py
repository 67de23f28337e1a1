"""Version cascade through the internal dependency graph.

When a package gets a new version, every internal package that depends on
it has to point its dependency range at the new version, and so needs a
new version of its own. This module works out that complete set and then
applies the new versions and ranges to the in-memory manifests.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping

from .changesets import BUMP_SEVERITY, highest_bump
from .deps import update_dependency_ranges
from .models import (
    BumpKind,
    DependencyGraph,
    PackageReleases,
    UpdatePolicy,
    UpdateResult,
)
from .shell import warn
from .versions import bump_version


def policy_allows(policy: UpdatePolicy, kind: BumpKind) -> bool:
    """Whether an upstream bump of ``kind`` cascades under ``policy``.

    ``none`` never cascades, ``patch`` cascades on any bump, ``minor`` on
    minor and major bumps, ``major`` on major bumps only.
    """
    if policy == "none":
        return False
    return BUMP_SEVERITY[kind] >= BUMP_SEVERITY[policy]


def plan_direct_updates(
    pending: Mapping[str, PackageReleases], graph: DependencyGraph
) -> dict[str, UpdateResult]:
    """Compute new versions for packages named by changesets.

    Each package takes the highest bump among its releases; a breaking
    release anywhere makes the whole bump breaking (relevant for 0.x).
    Packages that aren't part of the graph, or whose manifest declares no
    version, are reported and skipped.

    Raises:
        ValueError: If a package's current version is not ``X.Y.Z``.
    """
    direct: dict[str, UpdateResult] = {}
    for name, entry in pending.items():
        node = graph.nodes.get(name)
        if node is None:
            warn(f"Package {name} referenced in changesets not found")
            continue
        if node.version is None:
            warn(f"Package {name} has no version in {node.manifest_path}, skipping")
            continue
        kind = highest_bump(r.bump_kind for r in entry.releases)
        direct[name] = UpdateResult(
            package_name=name,
            old_version=node.version,
            new_version=bump_version(node.version, kind, entry.is_breaking),
            bump_kind=kind,
            reason="changeset",
        )
    return direct


def cascade_updates(
    direct: Mapping[str, UpdateResult],
    graph: DependencyGraph,
    policy: UpdatePolicy,
) -> dict[str, UpdateResult]:
    """Propagate direct updates to every transitive internal dependent.

    Breadth-first over the reverse dependency edges. Two structures are
    kept apart:

    - ``settled``: package → final UpdateResult. Changeset-driven entries
      are never overridden, and a package is settled at most once.
    - ``visited``: packages whose dependents have already been expanded.
      Guards against cycles and against stale queue entries.

    Cascaded packages always get a patch bump: only their manifest's
    dependency range changes, not their own code. A dependent whose
    manifest declares no version is reported and left alone, and the
    cascade does not continue through it.

    Args:
        direct: Changeset-driven updates keyed by package name.
        graph: Internal dependency graph.
        policy: Internal dependency update policy from config.

    Returns:
        Map of package name → UpdateResult for direct and cascaded
        packages, in the order they were settled.
    """
    settled: dict[str, UpdateResult] = dict(direct)
    visited: set[str] = set()
    unversioned: set[str] = set()
    queue: deque[str] = deque(direct)

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)

        if not policy_allows(policy, settled[current].bump_kind):
            continue

        for dependent in sorted(graph.dependents_of(current)):
            if dependent in direct or dependent in settled:
                continue
            node = graph.nodes[dependent]
            if node.version is None:
                if dependent not in unversioned:
                    unversioned.add(dependent)
                    warn(f"Package {dependent} has no version, not bumping it")
                continue
            settled[dependent] = UpdateResult(
                package_name=dependent,
                old_version=node.version,
                new_version=bump_version(node.version, "patch"),
                bump_kind="patch",
                reason="dependency",
            )
            queue.append(dependent)

    return settled


def apply_updates(results: Mapping[str, UpdateResult], graph: DependencyGraph) -> None:
    """Write new versions and dependency ranges into the in-memory manifests.

    Every updated package gets its new version, and each of its internal
    dependency ranges that points at another updated package is rewritten.
    The rewritten ranges are recorded on the matching UpdateResult.
    """
    new_versions = {name: r.new_version for name, r in results.items()}
    for name, result in results.items():
        node = graph.nodes[name]
        node.version = result.new_version
        node.manifest.version = result.new_version
        result.dependency_updates = update_dependency_ranges(
            node.manifest, new_versions
        )
