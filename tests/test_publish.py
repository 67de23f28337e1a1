"""Tests for monobump.publish."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from monobump.config import ChangesetConfig
from monobump.publish import (
    PublishTarget,
    create_github_release,
    detect_package_manager,
    find_publish_targets,
    publish_command,
    release_tag,
    run_publish,
)


class TestDetectPackageManager:
    """Tests for detect_package_manager()."""

    def test_package_manager_field_wins(self, tmp_path: Path) -> None:
        """The packageManager field beats any lockfile."""
        (tmp_path / "package.json").write_text(json.dumps({"packageManager": "pnpm@9.1.0"}))
        (tmp_path / "yarn.lock").write_text("")
        assert detect_package_manager(tmp_path) == "pnpm"

    @pytest.mark.parametrize(
        ("lockfile", "expected"),
        [
            ("pnpm-lock.yaml", "pnpm"),
            ("yarn.lock", "yarn"),
            ("bun.lockb", "bun"),
            ("package-lock.json", "npm"),
        ],
    )
    def test_lockfiles(self, tmp_path: Path, lockfile: str, expected: str) -> None:
        """Each lockfile maps to its package manager."""
        (tmp_path / lockfile).write_text("")
        assert detect_package_manager(tmp_path) == expected

    def test_unknown(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{}")
        assert detect_package_manager(tmp_path) is None


class TestPublishCommand:
    """Tests for publish_command()."""

    def test_npm_with_access_and_tag(self) -> None:
        assert publish_command("npm", "public", "snapshot") == [
            "npm", "publish", "--access", "public", "--tag", "snapshot",
        ]

    def test_pnpm_skips_git_checks(self) -> None:
        """pnpm publish runs without its git cleanliness checks."""
        assert publish_command("pnpm", None) == ["pnpm", "publish", "--no-git-checks"]

    def test_unknown_access_is_dropped(self) -> None:
        assert publish_command("yarn", "weird") == ["yarn", "publish", "--non-interactive"]


class TestReleaseTag:
    """Tests for release_tag()."""

    def test_package_tag(self, tmp_path: Path) -> None:
        target = PublishTarget(name="@acme/core", version="1.2.0", directory=tmp_path / "core")
        assert release_tag(target, tmp_path) == "@acme/core@1.2.0"

    def test_root_package_uses_v_prefix(self, tmp_path: Path) -> None:
        """The package at the repo root is tagged v<version>."""
        target = PublishTarget(name="root", version="3.0.0", directory=tmp_path)
        assert release_tag(target, tmp_path) == "v3.0.0"


class TestFindPublishTargets:
    """Tests for find_publish_targets()."""

    def test_skips_unversioned_and_ignored(self, workspace: Path) -> None:
        """Versionless and ignored packages are not publish targets."""
        config = ChangesetConfig(ignore=["@acme/tool"])
        targets = find_publish_targets(workspace, config)
        assert [t.name for t in targets] == ["@acme/app", "@acme/core", "@acme/lib"]
        assert targets[0].is_private


class TestCreateGithubRelease:
    """Tests for create_github_release()."""

    @patch("monobump.publish.gh")
    def test_skips_existing_release(self, mock_gh: MagicMock) -> None:
        """An existing release is left alone."""
        mock_gh.return_value = '{"tagName": "v1.0.0"}'
        create_github_release("v1.0.0", "notes")
        mock_gh.assert_called_once_with("release", "view", "v1.0.0", "--json", "tagName", check=False)

    @patch("monobump.publish.gh")
    def test_creates_draft(self, mock_gh: MagicMock) -> None:
        """--draft is passed through to gh."""
        mock_gh.side_effect = ["", ""]
        create_github_release("v1.0.0", "notes", draft=True)
        mock_gh.assert_called_with(
            "release", "create", "v1.0.0", "--title", "v1.0.0", "--notes", "notes", "--draft"
        )


@patch("monobump.publish.gh", return_value="")
@patch("monobump.publish.run")
@patch("monobump.publish.git", return_value="")
class TestRunPublish:
    """Tests for run_publish()."""

    def test_tags_and_publishes_public_packages(
        self,
        mock_git: MagicMock,
        mock_run: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ChangesetConfig,
    ) -> None:
        """Every package is tagged; only public ones are published."""
        (workspace / "package-lock.json").write_text("{}")

        assert run_publish(config, workspace) == (4, 0)

        pushed = [c.args[2] for c in mock_git.call_args_list if c.args[:2] == ("push", "origin")]
        assert pushed == ["@acme/app@0.3.0", "@acme/core@1.0.0", "@acme/lib@1.2.0", "@acme/tool@2.0.0"]
        published_dirs = [c.kwargs["cwd"].name for c in mock_run.call_args_list]
        assert published_dirs == ["core", "lib", "tool"]
        mock_run.assert_any_call(
            "npm", "publish", "--access", "restricted", cwd=workspace / "packages/core"
        )

    def test_existing_remote_tag_is_skipped(
        self,
        mock_git: MagicMock,
        mock_run: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ChangesetConfig,
    ) -> None:
        """Tags already on the remote aren't created again."""
        mock_git.return_value = "abc123\trefs/tags/whatever"

        run_publish(config, workspace)

        assert not any(c.args[0] == "tag" for c in mock_git.call_args_list)

    def test_release_uses_changelog_section(
        self,
        mock_git: MagicMock,
        mock_run: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ChangesetConfig,
    ) -> None:
        """Release notes are the changelog section for the version."""
        (workspace / "packages/core/CHANGELOG.md").write_text(
            "## 1.0.0 (2024-01-01)\n\n### 🐛 Bug Fixes\n- Fixed it\n"
        )

        run_publish(config, workspace)

        mock_gh.assert_any_call(
            "release",
            "create",
            "@acme/core@1.0.0",
            "--title",
            "@acme/core@1.0.0",
            "--notes",
            "### 🐛 Bug Fixes\n- Fixed it",
        )

    def test_failures_are_tallied(
        self,
        mock_git: MagicMock,
        mock_run: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ChangesetConfig,
    ) -> None:
        """One failing package is counted and the others still run."""
        def fake_git(*args: str, check: bool = True) -> str:
            if args[:3] == ("push", "origin", "@acme/lib@1.2.0"):
                raise subprocess.CalledProcessError(1, ["git", *args])
            return ""

        mock_git.side_effect = fake_git

        assert run_publish(config, workspace) == (3, 1)

    def test_dry_run_runs_nothing(
        self,
        mock_git: MagicMock,
        mock_run: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ChangesetConfig,
    ) -> None:
        """Dry run calls neither git, gh nor the package manager."""
        assert run_publish(config, workspace, dry_run=True) == (4, 0)
        mock_git.assert_not_called()
        mock_run.assert_not_called()
        mock_gh.assert_not_called()
