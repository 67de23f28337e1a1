"""Snapshot releases.

A snapshot publishes every package touched by pending changesets (plus
everything that depends on them) under one shared, timestamp-derived
version such as ``0.0.0-1718000000`` and the ``snapshot`` dist tag.
Manifests are rewritten only for the duration of the publish and are
always restored afterwards, whether publishing worked or not. Changesets,
changelogs and tags are left untouched.
"""

from __future__ import annotations

import subprocess
from collections import deque
from collections.abc import Callable, Iterable
from pathlib import Path

import click
from pydantic import BaseModel

from .changesets import find_changeset_files, read_changeset
from .config import CHANGESET_DIR, ChangesetConfig
from .deps import pin_dependency_ranges
from .graph import build_graph
from .manifest import find_manifests, save_manifest
from .models import ChangesetRecord, DependencyGraph, DependencyUpdate
from .publish import PublishTarget, publish_to_registry
from .shell import fatal, step, warn
from .versions import generate_snapshot_version

SNAPSHOT_TAG = "snapshot"

Publisher = Callable[[PublishTarget, ChangesetConfig, str], None]


class ManifestBackup(BaseModel):
    path: Path
    content: bytes


def registry_publisher(root: Path) -> Publisher:
    """Publisher that runs the repository's package manager."""

    def publish(target: PublishTarget, config: ChangesetConfig, dist_tag: str) -> None:
        publish_to_registry(target, config, dist_tag, root=root)

    return publish


def find_affected_packages(records: Iterable[ChangesetRecord]) -> list[str]:
    """Every package named by any changeset, in first-encountered order.

    Bump kinds are irrelevant here: every snapshot package gets the same
    version.
    """
    affected: list[str] = []
    for record in records:
        for declaration in record.declarations:
            if declaration.package_name not in affected:
                affected.append(declaration.package_name)
    return affected


def cascade_dependents(affected: Iterable[str], graph: DependencyGraph) -> list[str]:
    """Add every transitive dependent of the affected packages.

    No update policy applies: anything that depends, directly or not, on an
    affected package is included. Dependents whose manifest declares no
    version are reported and left out.

    Returns:
        Affected packages first, then dependents in breadth-first order.
    """
    included: list[str] = list(affected)
    seen = set(included)
    visited: set[str] = set()
    queue: deque[str] = deque(included)

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        for dependent in sorted(graph.dependents_of(current)):
            if dependent in seen:
                continue
            seen.add(dependent)
            if graph.nodes[dependent].version is None:
                warn(f"Package {dependent} has no version, leaving it out")
                continue
            included.append(dependent)
            queue.append(dependent)

    return included


def backup_manifests(
    names: Iterable[str], graph: DependencyGraph
) -> dict[str, ManifestBackup]:
    """Read the current manifest bytes of each package from disk."""
    backups: dict[str, ManifestBackup] = {}
    for name in names:
        node = graph.nodes.get(name)
        if node is None:
            continue
        backups[name] = ManifestBackup(
            path=node.manifest_path,
            content=node.manifest_path.read_bytes(),
        )
    return backups


def update_packages_to_snapshot(
    names: list[str], snapshot_version: str, graph: DependencyGraph
) -> dict[str, list[DependencyUpdate]]:
    """Set each package's version to the snapshot and pin internal deps.

    Internal dependencies on other snapshot packages are pinned to the
    exact snapshot version. Each manifest is written to disk.

    Returns:
        Map of package name → dependency ranges that were rewritten, for
        packages with at least one rewrite.
    """
    included = set(names)
    dependency_updates: dict[str, list[DependencyUpdate]] = {}

    for name in names:
        node = graph.nodes.get(name)
        if node is None:
            continue
        node.manifest.version = snapshot_version
        updates = pin_dependency_ranges(node.manifest, included, snapshot_version)
        if updates:
            dependency_updates[name] = updates
        save_manifest(node.manifest_path, node.manifest)

    return dependency_updates


def restore_manifests(backups: dict[str, ManifestBackup]) -> list[Path]:
    """Write every backup back to disk.

    A failure to restore one file is reported and the rest are still
    restored.

    Returns:
        Paths that could not be restored.
    """
    failed: list[Path] = []
    for backup in backups.values():
        try:
            backup.path.write_bytes(backup.content)
        except OSError as exc:
            click.echo(click.style(f"✗ Failed to restore {backup.path}: {exc}", fg="red"), err=True)
            failed.append(backup.path)
    return failed


def publish_snapshot(
    names: list[str],
    snapshot_version: str,
    graph: DependencyGraph,
    config: ChangesetConfig,
    publish: Publisher,
) -> tuple[int, int]:
    """Publish each included, non-private package under the snapshot tag.

    A package whose publish command fails is counted and the loop moves
    on. Any other exception propagates.

    Returns:
        (successful, failed) package counts.
    """
    success = failed = 0
    for name in names:
        node = graph.nodes[name]
        if node.manifest.is_private:
            click.echo(click.style(f"  ○ {name} - skipped (private)", dim=True))
            continue

        target = PublishTarget(
            name=name,
            version=snapshot_version,
            directory=node.directory,
            is_private=False,
            access=node.manifest.access,
        )
        try:
            publish(target, config, SNAPSHOT_TAG)
        except subprocess.CalledProcessError as exc:
            click.echo(click.style(f"  ✗ {name} - failed: {exc}", fg="red"), err=True)
            failed += 1
        else:
            click.echo(click.style(f"  ✓ {name}@{snapshot_version}", fg="green"))
            success += 1
    return success, failed


def run_snapshot(
    config: ChangesetConfig,
    root: Path | None = None,
    dry_run: bool = False,
    publish: Publisher | None = None,
) -> tuple[int, int]:
    """Publish a snapshot release of every affected package.

    Args:
        config: Changeset configuration.
        root: Repository root. Defaults to the current directory.
        dry_run: Only report what would be published.
        publish: Registry publish collaborator. Defaults to the package
            manager based publisher.

    Returns:
        (successful, failed) package counts.

    Raises:
        SystemExit: If there is nothing to snapshot.
    """
    root = root or Path.cwd()
    publish = publish or registry_publisher(root)

    if not (root / CHANGESET_DIR).is_dir():
        fatal("No .changeset directory found. Run `monobump init` first.")

    changeset_files = find_changeset_files(root)
    if not changeset_files:
        fatal("No changeset files found. Create one with `monobump add`.")

    affected = [
        name
        for name in find_affected_packages(read_changeset(p) for p in changeset_files)
        if name not in config.ignore
    ]
    if not affected:
        fatal("No packages found in changesets.")

    graph = build_graph(find_manifests(root), ignore=config.ignore)
    for name in affected:
        if name not in graph.nodes:
            fatal(f'Package "{name}" referenced in changeset not found.')
        if graph.nodes[name].version is None:
            fatal(f'Package "{name}" has no version in {graph.nodes[name].manifest_path}.')

    names = cascade_dependents(affected, graph)
    snapshot_version = generate_snapshot_version()

    step(f"📸 Snapshot version: {snapshot_version}")
    click.echo(f"Packages to publish ({len(names)}):\n")
    for name in names:
        node = graph.nodes[name]
        marker = "●" if name in affected else "↳"
        reason = "" if name in affected else " [dependent]"
        click.echo(f"  {marker} {name} ({node.version} → {snapshot_version}){reason}")

    if dry_run:
        click.echo(click.style("\nDry run complete - no changes were made.", fg="yellow"))
        return 0, 0

    backups = backup_manifests(names, graph)
    try:
        dependency_updates = update_packages_to_snapshot(names, snapshot_version, graph)
        if dependency_updates:
            click.echo("\nUpdated internal dependencies:")
            for name, updates in dependency_updates.items():
                click.echo(f"  {name}:")
                for update in updates:
                    click.echo(f"    {update.name}: {update.from_range} → {update.to_range}")

        step(f"Publishing with --tag {SNAPSHOT_TAG}")
        success, failed = publish_snapshot(names, snapshot_version, graph, config, publish)
    finally:
        click.echo("\nRestoring package.json files...")
        unrestored = restore_manifests(backups)
        restored = len(backups) - len(unrestored)
        click.echo(click.style(f"  ✓ Restored {restored} package.json file(s)", fg="green"))

    if failed:
        click.echo(
            click.style(
                f"\n⚠ Snapshot completed with errors. {success} successful, {failed} failed.",
                fg="yellow",
            )
        )
    else:
        click.echo(
            click.style(
                f"\n✔ Snapshot published successfully! {success} package(s) published.",
                fg="green",
            )
        )
    click.echo(f"Install snapshots with:\n  npm install <package-name>@{SNAPSHOT_TAG}")
    return success, failed
