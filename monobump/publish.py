"""Publishing: registry publish, git tags and GitHub releases.

The registry publish itself is delegated to whichever package manager the
repository uses (npm, yarn, pnpm or bun); tags are created with git and
releases with the GitHub CLI.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import click
from pydantic import BaseModel

from .changelog import CHANGELOG_NAME, changelog_for_version
from .config import ChangesetConfig
from .manifest import find_manifests, load_manifest
from .shell import gh, git, run, step, warn

# Lockfile → package manager, checked in order.
LOCKFILES = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("package-lock.json", "npm"),
)

PUBLISH_COMMANDS: dict[str, list[str]] = {
    "npm": ["npm", "publish"],
    "yarn": ["yarn", "publish", "--non-interactive"],
    "pnpm": ["pnpm", "publish", "--no-git-checks"],
    "bun": ["bun", "publish"],
}


class PublishTarget(BaseModel):
    """What the registry publish needs to know about a package."""

    name: str
    version: str
    directory: Path
    is_private: bool = False
    access: str | None = None


def detect_package_manager(root: Path) -> str | None:
    """Detect the package manager from package.json or lockfiles.

    The ``packageManager`` field of the root manifest (e.g. "pnpm@9.1.0")
    wins over lockfiles. Returns None if nothing is recognised.
    """
    root_manifest = root / "package.json"
    if root_manifest.exists():
        field = json.loads(root_manifest.read_text()).get("packageManager")
        if isinstance(field, str):
            name = field.split("@", 1)[0]
            if name in PUBLISH_COMMANDS:
                return name

    for lockfile, manager in LOCKFILES:
        if (root / lockfile).exists():
            return manager
    return None


def publish_command(
    manager: str, access: str | None, dist_tag: str | None = None
) -> list[str]:
    """Build the publish command line for a package manager."""
    cmd = list(PUBLISH_COMMANDS[manager])
    if access in ("public", "restricted"):
        cmd.extend(["--access", access])
    if dist_tag:
        cmd.extend(["--tag", dist_tag])
    return cmd


def publish_to_registry(
    target: PublishTarget,
    config: ChangesetConfig,
    dist_tag: str | None = None,
    root: Path | None = None,
) -> None:
    """Publish one package with the detected package manager.

    Raises:
        subprocess.CalledProcessError: If the publish command fails.
    """
    manager = detect_package_manager(root or Path.cwd())
    if manager is None:
        warn("Could not detect package manager. Skipping publish.")
        return

    cmd = publish_command(manager, target.access or config.access, dist_tag)
    click.echo(click.style(f"  Publishing with {' '.join(cmd)}", dim=True))
    run(*cmd, cwd=target.directory)


def install_dependencies(root: Path) -> None:
    """Run the package manager's install command in the repository root."""
    manager = detect_package_manager(root)
    if manager is None:
        warn("Could not detect package manager. Skipping install.")
        return

    click.echo(f"\nRunning {manager} install ...\n")
    run(manager, "install", cwd=root)
    click.echo(click.style("✔ Install completed successfully", fg="green"))


def release_tag(target: PublishTarget, root: Path) -> str:
    """Tag name for a package release.

    The package at the repository root is tagged ``v<version>``; every
    other package ``<name>@<version>``.
    """
    if target.directory.resolve() == root.resolve():
        return f"v{target.version}"
    return f"{target.name}@{target.version}"


def tag_exists_remote(tag: str) -> bool:
    output = git("ls-remote", "--tags", "origin", f"refs/tags/{tag}", check=False)
    return bool(output)


def create_and_push_tag(tag: str) -> None:
    git("tag", "-a", tag, "-m", tag)
    click.echo(f"  Created tag {tag}")
    git("push", "origin", tag)
    click.echo(f"  Pushed tag {tag}")


def create_github_release(tag: str, notes: str, draft: bool = False) -> None:
    """Create a GitHub release for a tag, skipping if one already exists."""
    if gh("release", "view", tag, "--json", "tagName", check=False):
        click.echo(click.style(f"  GitHub release for {tag} already exists. Skipping.", dim=True))
        return

    args = ["release", "create", tag, "--title", tag, "--notes", notes]
    if draft:
        args.append("--draft")
    gh(*args)
    click.echo(click.style("  ✔ Created GitHub release", fg="green"))


def find_publish_targets(root: Path, config: ChangesetConfig) -> list[PublishTarget]:
    """Collect every publishable package in the repository."""
    targets: list[PublishTarget] = []
    for path in find_manifests(root):
        manifest = load_manifest(path)
        if not manifest.name or not manifest.version:
            warn(f"Skipping {path} - missing name or version")
            continue
        if manifest.name in config.ignore:
            click.echo(click.style(f"  Ignoring package {manifest.name}", dim=True))
            continue
        targets.append(
            PublishTarget(
                name=manifest.name,
                version=manifest.version,
                directory=path.parent,
                is_private=manifest.is_private,
                access=manifest.access,
            )
        )
    return targets


def publish_package(
    target: PublishTarget,
    root: Path,
    config: ChangesetConfig,
    dry_run: bool = False,
    draft: bool = False,
) -> None:
    """Tag, publish and release a single package.

    A failed registry publish or GitHub release is reported and the
    remaining steps still run. A failed tag push is raised.
    """
    tag = release_tag(target, root)
    click.echo(f"\n{click.style(target.name, fg='cyan')} v{target.version}")

    if dry_run:
        click.echo(f"  [DRY RUN] Would create and push tag {tag}")
    elif tag_exists_remote(tag):
        click.echo(click.style(f"  Tag {tag} already exists on remote. Skipping.", dim=True))
    else:
        create_and_push_tag(tag)

    if target.is_private:
        click.echo(click.style("  Package is private. Skipping publish.", dim=True))
    elif dry_run:
        click.echo("  [DRY RUN] Would publish to the registry")
    else:
        try:
            publish_to_registry(target, config, root=root)
        except subprocess.CalledProcessError as exc:
            click.echo(click.style(f"  ✗ Failed to publish: {exc}", fg="red"), err=True)
            click.echo("  Continuing with GitHub release creation...")

    notes = changelog_for_version(target.directory / CHANGELOG_NAME, target.version)
    if dry_run:
        click.echo(f"  [DRY RUN] Would create GitHub release {tag} (draft: {draft})")
        click.echo(notes or "  (No changelog found for this version)")
        return
    if not notes:
        click.echo(
            click.style(
                f"  No changelog found for version {target.version}. Skipping GitHub release.",
                dim=True,
            )
        )
        return
    try:
        create_github_release(tag, notes, draft=draft)
    except subprocess.CalledProcessError as exc:
        click.echo(click.style(f"  ✗ Failed to create GitHub release: {exc}", fg="red"), err=True)


def run_publish(
    config: ChangesetConfig,
    root: Path | None = None,
    dry_run: bool = False,
    draft: bool = False,
) -> tuple[int, int]:
    """Publish every package, continuing past per-package failures.

    Returns:
        (successful, failed) package counts.
    """
    root = root or Path.cwd()
    step("Publishing packages")

    targets = find_publish_targets(root, config)
    if not targets:
        click.echo(click.style("No packages found.", fg="yellow"))
        return 0, 0

    if dry_run:
        click.echo(click.style("Dry run - no actual publishing will occur.", fg="yellow"))
    click.echo(f"Found {len(targets)} package(s)")

    success = failed = 0
    for target in targets:
        try:
            publish_package(target, root, config, dry_run=dry_run, draft=draft)
            success += 1
        except (subprocess.CalledProcessError, OSError) as exc:
            failed += 1
            click.echo(click.style(f"\n✗ Failed to publish {target.name}: {exc}", fg="red"), err=True)
            click.echo("Continuing with remaining packages...")

    if dry_run:
        click.echo(click.style("\nDry run complete - no changes were made.", fg="yellow"))
    else:
        click.echo(f"\n✔ Publish complete! {success} successful, {failed} failed")
    return success, failed
