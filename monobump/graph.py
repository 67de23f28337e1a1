"""Dependency graph utilities.

Builds the map of internal packages and the reverse dependency edges
(who depends on each package) used to cascade version bumps. Only
dependencies on other packages of the same repository are tracked;
registry dependencies never appear in the graph.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .manifest import load_manifest
from .models import DependencyGraph, PackageNode
from .shell import warn


def build_graph(
    manifest_paths: Iterable[Path], ignore: Iterable[str] = ()
) -> DependencyGraph:
    """Load manifests and build the internal dependency graph.

    Args:
        manifest_paths: package.json files to load.
        ignore: Package names to leave out of the graph entirely.

    Returns:
        DependencyGraph with one node per named package and reverse edges
        from the union of dependencies, devDependencies and
        peerDependencies.

    Example:
        If app depends on lib, and lib depends on core:
        dependents == {"core": {"lib"}, "lib": {"app"}, "app": set()}
    """
    ignored = set(ignore)
    nodes: dict[str, PackageNode] = {}

    # First pass: register every named package
    for path in manifest_paths:
        manifest = load_manifest(path)
        name = manifest.name
        if not name:
            warn(f"No name found in {path}, skipping")
            continue
        if name in ignored:
            continue
        if name in nodes:
            warn(f"Duplicate package {name} in {path}, keeping {nodes[name].manifest_path}")
            continue
        nodes[name] = PackageNode(
            name=name,
            version=manifest.version,
            manifest_path=path,
            manifest=manifest,
        )

    # Second pass: reverse edges for internal deps only
    dependents: dict[str, set[str]] = {name: set() for name in nodes}
    for name, node in nodes.items():
        for dep in node.manifest.all_dependency_names():
            if dep in nodes and dep != name:
                dependents[dep].add(name)

    return DependencyGraph(nodes=nodes, dependents=dependents)

