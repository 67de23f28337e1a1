"""Changelog generation.

Builds a markdown section for one package release from the raw changeset
documents that mention the package, and reads/writes ``CHANGELOG.md``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date
from pathlib import Path

from .changesets import parse_changeset
from .config import ChangesetConfig
from .models import DependencyUpdate

CHANGELOG_NAME = "CHANGELOG.md"
BREAKING_HEADING = "⚠️ Breaking Changes"
DEPENDENCIES_HEADING = "🔗 Dependencies"
NO_CHANGES = "No changes recorded."
FALLBACK_EMOJI = "•"


def group_messages(
    package_name: str, documents: Iterable[str]
) -> tuple[list[str], list[tuple[str, list[str]]]]:
    """Bucket changeset messages for one package.

    Only the first declaration naming the package in each document counts.
    Breaking declarations go to the breaking bucket; everything else,
    including explicit ``@major`` declarations, goes to its type bucket.

    Returns:
        (breaking messages, [(type, messages), ...]) with types in the
        order they were first encountered.
    """
    breaking: list[str] = []
    by_type: dict[str, list[str]] = {}
    for text in documents:
        record = parse_changeset(text)
        for declaration in record.declarations:
            if declaration.package_name != package_name:
                continue
            if declaration.is_breaking:
                breaking.append(record.message)
            else:
                by_type.setdefault(declaration.declared_type, []).append(record.message)
            break
    return breaking, list(by_type.items())


def order_type_groups(
    groups: list[tuple[str, list[str]]], config: ChangesetConfig
) -> list[tuple[str, list[str]]]:
    """Sort type groups by their position in the configured type table.

    Unconfigured types go after all configured ones, keeping the order in
    which they were first encountered (the sort is stable).
    """
    unconfigured = len(config.types)

    def position(group: tuple[str, list[str]]) -> int:
        index = config.type_index(group[0])
        return unconfigured if index is None else index

    return sorted(groups, key=position)


def generate_changelog(
    package_name: str,
    version: str,
    documents: Iterable[str],
    config: ChangesetConfig,
    today: date | None = None,
    dependency_updates: Sequence[DependencyUpdate] = (),
) -> str:
    """Render the changelog section for a new package version.

    Args:
        package_name: Package the section is for.
        version: The version being released.
        documents: Raw text of the changeset documents for this release.
        config: Provides type order, emoji and display names.
        today: Release date. Defaults to the current date.
        dependency_updates: Internal dependency ranges rewritten in this
            release, listed after the changeset entries.

    Returns:
        Markdown text starting with ``## <version> (<date>)``.
    """
    day = (today or date.today()).isoformat()
    lines = [f"## {version} ({day})", ""]

    breaking, groups = group_messages(package_name, documents)
    if not breaking and not groups and not dependency_updates:
        lines.append(NO_CHANGES)
        return "\n".join(lines) + "\n"

    if breaking:
        lines.append(f"### {BREAKING_HEADING}")
        lines.extend(f"- {msg}" for msg in breaking)
        lines.append("")

    for type_name, messages in order_type_groups(groups, config):
        type_config = config.find_type(type_name)
        if type_config:
            heading = f"{type_config.emoji} {type_config.display_name}"
        else:
            heading = f"{FALLBACK_EMOJI} {type_name}"
        lines.append(f"### {heading}")
        lines.extend(f"- {msg}" for msg in messages)
        lines.append("")

    if dependency_updates:
        lines.append(f"### {DEPENDENCIES_HEADING}")
        lines.extend(
            f"- Updated `{u.name}` to `{u.to_range}`" for u in dependency_updates
        )
        lines.append("")

    return "\n".join(lines)


def prepend_changelog(path: Path, section: str) -> None:
    """Prepend a section to a changelog file, creating it if missing."""
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    path.write_text(f"{section}\n{existing}", encoding="utf-8")


def changelog_for_version(path: Path, version: str) -> str | None:
    """Extract the body of a version's section from a changelog file.

    Returns None if the file or the version heading doesn't exist.
    """
    if not path.exists():
        return None

    content = path.read_text(encoding="utf-8")
    header = re.compile(rf"^##\s+{re.escape(version)}\s*(?:\([^)]+\))?$", re.MULTILINE)
    match = header.search(content)
    if not match:
        return None

    body_start = match.end() + 1
    next_header = content.find("\n## ", match.end())
    if next_header == -1:
        return content[body_start:].strip()
    return content[body_start:next_header].strip()
