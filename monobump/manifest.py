"""package.json reading and writing utilities.

Manifests are parsed into the typed :class:`~monobump.models.Manifest`
record. Fields monobump doesn't know about are carried through untouched,
and writing keeps the original key order, so a rewrite only changes the
values that were actually updated.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .models import Manifest

MANIFEST_NAME = "package.json"
EXCLUDED_DIRS = frozenset({"node_modules", "dist"})


def load_manifest(path: Path) -> Manifest:
    """Load and parse a package.json file."""
    return Manifest.from_json(path.read_text(encoding="utf-8"))


def save_manifest(path: Path, manifest: Manifest) -> None:
    """Write a manifest back with 2-space indent and a trailing newline."""
    path.write_text(manifest.to_json(), encoding="utf-8")


def find_manifests(root: Path, excluded: Iterable[str] = EXCLUDED_DIRS) -> list[Path]:
    """Find every package.json below root, skipping dependency and build dirs.

    Returns:
        Sorted list of manifest paths.
    """
    skip = set(excluded)
    found: list[Path] = []
    for path in sorted(root.rglob(MANIFEST_NAME)):
        relative = path.relative_to(root)
        if any(part in skip for part in relative.parts[:-1]):
            continue
        found.append(path)
    return found
