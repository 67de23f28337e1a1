"""Changeset file parsing and release-type resolution.

A changeset is a markdown file in ``.changeset/`` with a frontmatter block
naming the packages it affects::

    ---
    "@scope/pkg-a": feat
    "@scope/pkg-b": fix!
    "@scope/pkg-c": chore@major
    ---

    Description of the change.

A trailing ``!`` marks a breaking change; a trailing ``@major`` asks for a
major bump without flagging the change as breaking. Lines that don't look
like declarations are ignored.
"""

from __future__ import annotations

import random
import re
from collections.abc import Iterable
from pathlib import Path

import click

from .config import CHANGESET_DIR, ChangesetConfig
from .models import (
    BumpKind,
    ChangesetRecord,
    Declaration,
    PackageReleases,
    ResolvedRelease,
)

FRONTMATTER_DELIMITER = "---"

_DECLARATION_RE = re.compile(r'^"(?P<name>[^"]+)":\s*(?P<type>\w+)(?P<suffix>@major|!)?')

BUMP_SEVERITY: dict[str, int] = {"patch": 0, "minor": 1, "major": 2}

_ID_WORDS = (
    "brave", "calm", "clever", "cold", "dry", "eager", "fancy", "funny",
    "gentle", "happy", "khaki", "lazy", "lucky", "modern", "nice", "odd",
    "polite", "proud", "quiet", "rare", "shy", "silly", "smooth", "tall",
    "tidy", "wild", "yellow", "young",
)
_ID_NOUNS = (
    "apples", "bats", "bees", "birds", "cats", "clouds", "cows", "days",
    "dogs", "ducks", "eels", "falcons", "forks", "geese", "hats", "hornets",
    "kings", "lamps", "lions", "moles", "owls", "pans", "pears", "seals",
    "snails", "spoons", "tigers", "toys", "walls", "wolves",
)
_ID_VERBS = (
    "agree", "argue", "bake", "beg", "care", "clap", "cough", "dance",
    "dream", "drum", "fly", "grin", "hope", "jump", "kick", "knock", "laugh",
    "march", "nod", "pay", "play", "pull", "relax", "rest", "sing", "smile",
    "swim", "talk", "tell", "wait", "wave", "yawn",
)


def split_frontmatter(text: str) -> tuple[list[str], str] | None:
    """Split a changeset document into frontmatter lines and message.

    Returns None if the document does not open with a ``---`` line or the
    block is never closed.
    """
    lines = text.split("\n")
    if not lines or lines[0].rstrip("\r") != FRONTMATTER_DELIMITER:
        return None

    for end, line in enumerate(lines[1:], start=1):
        if line.rstrip("\r") == FRONTMATTER_DELIMITER:
            message = "\n".join(lines[end + 1 :]).strip()
            return lines[1:end], message
    return None


def parse_declaration(line: str) -> Declaration | None:
    """Parse one frontmatter line, or return None if it isn't a declaration."""
    match = _DECLARATION_RE.match(line)
    if not match:
        return None
    suffix = match.group("suffix")
    return Declaration(
        package_name=match.group("name"),
        declared_type=match.group("type"),
        is_breaking=suffix == "!",
        is_explicit_major=suffix == "@major",
    )


def parse_changeset(text: str, path: Path | None = None) -> ChangesetRecord:
    """Parse the text of a changeset document.

    Never raises on malformed input: a document without frontmatter, with
    an empty frontmatter block, or with only unparseable lines produces a
    record with no declarations.
    """
    parts = split_frontmatter(text)
    if parts is None:
        return ChangesetRecord(path=path)

    frontmatter, message = parts
    declarations = [d for d in map(parse_declaration, frontmatter) if d is not None]
    return ChangesetRecord(declarations=declarations, message=message, path=path)


def read_changeset(path: Path) -> ChangesetRecord:
    return parse_changeset(path.read_text(encoding="utf-8"), path=path)


def resolve_bump_kind(
    declared_type: str,
    is_breaking: bool,
    is_explicit_major: bool,
    config: ChangesetConfig,
) -> BumpKind:
    """Resolve the bump kind for a single declaration.

    A breaking or explicit-major declaration is always a major bump, even if
    its type is configured with a smaller release type. Otherwise the type's
    configured release type is used, falling back to a patch.
    """
    if is_breaking or is_explicit_major:
        return "major"

    type_config = config.find_type(declared_type)
    if type_config and type_config.release_type:
        return type_config.release_type
    return "patch"


def resolve_releases(
    record: ChangesetRecord, config: ChangesetConfig
) -> list[ResolvedRelease]:
    """Resolve every declaration of a changeset record."""
    return [
        ResolvedRelease(
            package_name=d.package_name,
            bump_kind=resolve_bump_kind(
                d.declared_type, d.is_breaking, d.is_explicit_major, config
            ),
            message=record.message,
            declared_type=d.declared_type,
            is_breaking=d.is_breaking,
        )
        for d in record.declarations
    ]


def highest_bump(kinds: Iterable[BumpKind]) -> BumpKind:
    """Return the most severe bump kind (patch < minor < major).

    An empty input resolves to a patch.
    """
    highest: BumpKind = "patch"
    for kind in kinds:
        if BUMP_SEVERITY[kind] > BUMP_SEVERITY[highest]:
            highest = kind
    return highest


def collect_releases(
    documents: Iterable[str], config: ChangesetConfig
) -> dict[str, PackageReleases]:
    """Group resolved releases by package across many changeset documents.

    Args:
        documents: Raw text of each changeset document.
        config: Changeset configuration used to resolve bump kinds.

    Returns:
        Map of package name → PackageReleases, in first-encountered order.
    """
    pending: dict[str, PackageReleases] = {}
    for text in documents:
        record = parse_changeset(text)
        named: set[str] = set()
        for release in resolve_releases(record, config):
            entry = pending.setdefault(release.package_name, PackageReleases())
            entry.releases.append(release)
            # A document naming the same package twice is only kept once
            if release.package_name not in named:
                named.add(release.package_name)
                entry.documents.append(text)
    return pending


def find_changeset_files(root: Path, ignore: Iterable[str] = ()) -> list[Path]:
    """List pending changeset files, sorted by name.

    ``README.md`` and any file name listed in ``ignore`` are skipped.
    """
    changeset_dir = root / CHANGESET_DIR
    skipped = {"README.md", *ignore}
    return sorted(p for p in changeset_dir.glob("*.md") if p.name not in skipped)


def delete_changesets(paths: Iterable[Path]) -> None:
    """Delete consumed changeset files. Failures propagate."""
    for path in paths:
        path.unlink()
        click.echo(click.style(f"  Deleted {path}", dim=True))


def generate_changeset_id() -> str:
    """Return a random human-readable id like ``happy-owls-dance``."""
    return "-".join(
        (random.choice(_ID_WORDS), random.choice(_ID_NOUNS), random.choice(_ID_VERBS))
    )


def format_changeset(
    packages: Iterable[str], declared_type: str, is_breaking: bool, message: str
) -> str:
    suffix = "!" if is_breaking else ""
    lines = [FRONTMATTER_DELIMITER]
    lines.extend(f'"{pkg}": {declared_type}{suffix}' for pkg in packages)
    lines.append(FRONTMATTER_DELIMITER)
    return "\n".join(lines) + f"\n\n{message}\n"


def write_changeset(root: Path, content: str) -> Path:
    """Write a new changeset file under ``.changeset/`` with a fresh id."""
    changeset_dir = root / CHANGESET_DIR
    changeset_dir.mkdir(exist_ok=True)

    path = changeset_dir / f"{generate_changeset_id()}.md"
    while path.exists():
        path = changeset_dir / f"{generate_changeset_id()}.md"
    path.write_text(content, encoding="utf-8")
    return path
