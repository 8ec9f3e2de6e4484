"""Tests for repository discovery."""

import json

import pytest

from watchtower.models import ProcessRecord
from watchtower.pipeline import discover_repo, normalize_repo_url, read_repo_info
from watchtower.pipeline.discovery import read_branch


class TestNormalizeRepoUrl:
    """Tests for normalize_repo_url."""

    @pytest.mark.parametrize("url", [
        "git@github.com:acme/worker.git",
        "https://github.com/acme/worker.git",
        "https://github.com/acme/worker",
        "git+https://github.com/acme/worker.git",
        "ssh://git@github.com/acme/worker.git",
    ])
    def test_github_forms(self, url):
        assert normalize_repo_url(url) == "acme/worker"

    def test_non_github_url_kept(self):
        assert normalize_repo_url("https://gitlab.example.com/acme/worker.git") == (
            "https://gitlab.example.com/acme/worker"
        )

    def test_shorthand_kept(self):
        assert normalize_repo_url("acme/worker") == "acme/worker"


class TestReadRepoInfo:
    """Tests for read_repo_info."""

    def test_package_json_string(self, tmp_path):
        (tmp_path / "package.json").write_text(
            json.dumps({"name": "worker", "repository": "github:acme/worker"}),
            encoding="utf-8",
        )

        info = read_repo_info(str(tmp_path))

        assert info.repo == "github:acme/worker"
        assert info.branch is None

    def test_package_json_object(self, tmp_path):
        (tmp_path / "package.json").write_text(
            json.dumps({"repository": {"type": "git", "url": "git+https://github.com/acme/worker.git"}}),
            encoding="utf-8",
        )

        assert read_repo_info(str(tmp_path)).repo == "acme/worker"

    def test_pyproject_urls(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "worker"\n\n'
            '[project.urls]\nRepository = "https://github.com/acme/py-worker"\n',
            encoding="utf-8",
        )

        assert read_repo_info(str(tmp_path)).repo == "acme/py-worker"

    def test_git_config_with_branch(self, tmp_path):
        git_dir = tmp_path / ".git"
        git_dir.mkdir()
        (git_dir / "config").write_text(
            '[core]\n\tbare = false\n'
            '[remote "origin"]\n\turl = git@github.com:acme/worker.git\n'
            '\tfetch = +refs/heads/*:refs/remotes/origin/*\n',
            encoding="utf-8",
        )
        (git_dir / "HEAD").write_text("ref: refs/heads/feature/retry\n", encoding="utf-8")

        info = read_repo_info(str(tmp_path))

        assert info.repo == "acme/worker"
        assert info.branch == "feature/retry"

    def test_package_json_wins_over_git(self, tmp_path):
        (tmp_path / "package.json").write_text(
            json.dumps({"repository": "https://github.com/acme/from-package"}),
            encoding="utf-8",
        )
        git_dir = tmp_path / ".git"
        git_dir.mkdir()
        (git_dir / "config").write_text(
            '[remote "origin"]\n\turl = https://github.com/acme/from-git.git\n',
            encoding="utf-8",
        )

        assert read_repo_info(str(tmp_path)).repo == "acme/from-package"

    def test_malformed_package_json_falls_through(self, tmp_path):
        (tmp_path / "package.json").write_text("{not json", encoding="utf-8")
        git_dir = tmp_path / ".git"
        git_dir.mkdir()
        (git_dir / "config").write_text(
            '[remote "origin"]\n\turl = https://github.com/acme/worker.git\n',
            encoding="utf-8",
        )

        assert read_repo_info(str(tmp_path)).repo == "acme/worker"

    def test_nothing_found(self, tmp_path):
        info = read_repo_info(str(tmp_path))
        assert not info.found

    def test_missing_cwd(self, tmp_path):
        assert not read_repo_info(str(tmp_path / "gone")).found
        assert not read_repo_info("").found

    def test_detached_head(self, tmp_path):
        git_dir = tmp_path / ".git"
        git_dir.mkdir()
        (git_dir / "HEAD").write_text("3f2a9c1d0e\n", encoding="utf-8")

        assert read_branch(tmp_path) is None

    @pytest.mark.asyncio
    async def test_discover_repo_uses_record_cwd(self, tmp_path):
        (tmp_path / "package.json").write_text(
            json.dumps({"repository": "https://github.com/acme/worker"}),
            encoding="utf-8",
        )

        info = await discover_repo(ProcessRecord(id=1, name="worker-1", cwd=str(tmp_path)))

        assert info.repo == "acme/worker"
