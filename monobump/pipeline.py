"""Version pipeline: changesets → bumps → cascade → manifests → changelogs.

This module orchestrates the monobump commands that work on pending
changesets:
1. Read and parse every changeset in ``.changeset/``
2. Resolve one bump per package (highest wins)
3. Build the internal dependency graph from all package.json files
4. Cascade new versions to dependents according to the update policy
5. Rewrite manifests and prepend changelog sections
6. Delete the consumed changesets

It also provides the small ``init``, ``add`` and ``status`` helpers.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

import click

from .cascade import apply_updates, cascade_updates, plan_direct_updates
from .changelog import CHANGELOG_NAME, generate_changelog, prepend_changelog
from .changesets import (
    collect_releases,
    delete_changesets,
    find_changeset_files,
    format_changeset,
    read_changeset,
    write_changeset,
)
from .config import CHANGESET_DIR, CONFIG_FILE, ChangesetConfig, default_config_json
from .graph import build_graph
from .manifest import find_manifests, save_manifest
from .models import DependencyGraph, PackageReleases, UpdateResult
from .publish import install_dependencies
from .shell import fatal, step

EMPTY_CHANGESET = "---\n---\n\n"

README_CONTENT = """\
# Changesets

This directory holds pending changesets. Each file names the packages it
affects and the kind of change:

    ---
    "my-package": feat
    ---

    Added a new feature.

Append `!` to the type for a breaking change, or `@major` to request a
major bump. Run `monobump version` to apply them.
"""


def plan_release(
    root: Path,
    config: ChangesetConfig,
    changeset_files: Sequence[Path],
    ignore: Iterable[str] = (),
) -> tuple[DependencyGraph, dict[str, PackageReleases], dict[str, UpdateResult]]:
    """Work out every version change implied by the changeset files.

    Nothing is written. The returned graph's manifests already carry the
    new versions and rewritten dependency ranges.

    Returns:
        (graph, pending releases per package, update results per package)
    """
    ignored = {*config.ignore, *ignore}
    documents = [p.read_text(encoding="utf-8") for p in changeset_files]
    pending = {
        name: entry
        for name, entry in collect_releases(documents, config).items()
        if name not in ignored
    }

    graph = build_graph(find_manifests(root), ignore=ignored)
    direct = plan_direct_updates(pending, graph)
    results = cascade_updates(direct, graph, config.update_internal_dependencies)
    apply_updates(results, graph)
    return graph, pending, results


def _print_result(result: UpdateResult) -> None:
    suffix = " [dependency]" if result.reason == "dependency" else ""
    click.echo(
        f"  {click.style('✔', fg='green')} {click.style(result.package_name, fg='cyan')} "
        f"({result.old_version} → {result.new_version}){suffix}"
    )
    for update in result.dependency_updates:
        click.echo(
            click.style(
                f"      {update.name}: {update.from_range} → {update.to_range}", dim=True
            )
        )


def run_version(
    config: ChangesetConfig,
    root: Path | None = None,
    dry_run: bool = False,
    ignore: Iterable[str] = (),
    install: bool = False,
) -> dict[str, UpdateResult]:
    """Apply pending changesets to manifests and changelogs.

    Args:
        config: Changeset configuration.
        root: Repository root. Defaults to the current directory.
        dry_run: Report the planned changes without writing anything.
        ignore: Extra package names to leave out, on top of config.ignore.
        install: Run the package manager install afterwards.

    Returns:
        Map of package name → UpdateResult for every re-versioned package.

    Raises:
        SystemExit: If there is no changeset directory.
        ValueError: If a manifest version to bump is not ``X.Y.Z``.
    """
    root = root or Path.cwd()
    if not (root / CHANGESET_DIR).is_dir():
        fatal("No .changeset directory found.")

    step("Reading changesets")
    changeset_files = find_changeset_files(root)
    if not changeset_files:
        click.echo(click.style("No changeset files found.", fg="yellow"))
        return {}
    for path in changeset_files:
        click.echo(f"  {path.name}")

    graph, pending, results = plan_release(root, config, changeset_files, ignore)
    if not pending:
        click.echo(click.style("No package releases found in changeset files.", fg="yellow"))
        return {}

    step("Bumping versions")
    for name, result in results.items():
        _print_result(result)
        if dry_run:
            continue

        node = graph.nodes[name]
        save_manifest(node.manifest_path, node.manifest)
        entry = pending.get(name)
        section = generate_changelog(
            name,
            result.new_version,
            entry.documents if entry else [],
            config,
            dependency_updates=result.dependency_updates,
        )
        prepend_changelog(node.directory / CHANGELOG_NAME, section)

    if dry_run:
        click.echo(click.style("\nDry run - no files were modified.", fg="yellow"))
        return results

    click.echo(click.style(f"\nUpdated {len(results)} package(s).", fg="green"))
    delete_changesets(changeset_files)
    click.echo(f"Deleted {len(changeset_files)} changeset file(s).")

    if install and results:
        install_dependencies(root)

    return results


def run_status(config: ChangesetConfig, root: Path | None = None) -> dict[str, UpdateResult]:
    """List pending changesets and the release each package would get."""
    root = root or Path.cwd()
    if not (root / CHANGESET_DIR).is_dir():
        fatal("No .changeset directory found.")

    changeset_files = find_changeset_files(root)
    if not changeset_files:
        click.echo(click.style("No pending changesets.", fg="yellow"))
        return {}

    step(f"Pending changesets ({len(changeset_files)})")
    for path in changeset_files:
        record = read_changeset(path)
        click.echo(click.style(path.name, bold=True))
        for d in record.declarations:
            marker = "!" if d.is_breaking else "@major" if d.is_explicit_major else ""
            click.echo(f"  {d.package_name}: {d.declared_type}{marker}")
        if record.message:
            click.echo(click.style(f"  {record.message.splitlines()[0]}", dim=True))

    _, _, results = plan_release(root, config, changeset_files)
    step("Planned releases")
    if not results:
        click.echo("  No packages would be released.")
    for result in results.values():
        click.echo(
            f"  {result.package_name}: {result.old_version} → {result.new_version} "
            f"({result.bump_kind}, {result.reason})"
        )
    return results


def run_init(root: Path | None = None) -> None:
    """Create ``.changeset/`` with a default config and README."""
    root = root or Path.cwd()
    changeset_dir = root / CHANGESET_DIR
    if not changeset_dir.exists():
        changeset_dir.mkdir()
        click.echo(f"Created {CHANGESET_DIR} directory")

    config_path = changeset_dir / CONFIG_FILE
    if not config_path.exists():
        config_path.write_text(default_config_json() + "\n")
        click.echo(f"Created {CONFIG_FILE} file")

    readme_path = changeset_dir / "README.md"
    if not readme_path.exists():
        readme_path.write_text(README_CONTENT)
        click.echo("Created README.md file")

    click.echo("Changesets initialized")


def add_changeset(
    root: Path,
    packages: Sequence[str],
    declared_type: str,
    message: str,
    breaking: bool = False,
) -> Path:
    """Write a changeset for the given packages."""
    content = format_changeset(packages, declared_type, breaking, message)
    return write_changeset(root, content)


def add_empty_changeset(root: Path) -> Path:
    return write_changeset(root, EMPTY_CHANGESET)
