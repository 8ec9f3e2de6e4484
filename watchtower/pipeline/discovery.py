"""
Repository Discovery.

Works out which GitHub repository (and branch) a supervised process runs
from, by looking at its working directory.
"""

import configparser
import json
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from watchtower.core import get_logger
from watchtower.models import ProcessRecord

logger = get_logger(__name__)

PROJECT_URL_KEYS = ("repository", "source", "source code", "homepage")

_SSH_PATTERN = re.compile(r"^[\w.-]+@[^:]+:(.+)$")
_GITHUB_PATTERN = re.compile(r"github\.com[/:]([^/]+/[^/]+)")
_HEAD_PATTERN = re.compile(r"ref:\s*refs/heads/(.+)")


@dataclass(frozen=True)
class RepoInfo:
    repo: Optional[str] = None
    branch: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.repo is not None


def normalize_repo_url(url: str) -> str:
    """
    Reduce a repository URL to owner/repo where possible.

    Example:
        >>> normalize_repo_url("git@github.com:acme/worker.git")
        'acme/worker'
        >>> normalize_repo_url("git+https://github.com/acme/worker.git")
        'acme/worker'
    """
    normalized = url.strip()
    if normalized.endswith(".git"):
        normalized = normalized[:-4]

    ssh = _SSH_PATTERN.match(normalized)
    if ssh:
        normalized = ssh.group(1)

    github = _GITHUB_PATTERN.search(normalized)
    if github:
        return github.group(1)

    return normalized


def read_branch(cwd: Path) -> Optional[str]:
    """Current branch from .git/HEAD; None when detached or unreadable."""
    head_path = cwd / ".git" / "HEAD"
    try:
        head = head_path.read_text(encoding="utf-8").strip()
    except OSError:
        return None

    match = _HEAD_PATTERN.match(head)
    return match.group(1) if match else None


def _from_package_json(cwd: Path) -> Optional[str]:
    path = cwd / "package.json"
    if not path.is_file():
        return None

    data = json.loads(path.read_text(encoding="utf-8"))
    repository = data.get("repository") if isinstance(data, dict) else None
    if isinstance(repository, dict):
        repository = repository.get("url")
    return repository or None


def _from_pyproject(cwd: Path) -> Optional[str]:
    path = cwd / "pyproject.toml"
    if not path.is_file():
        return None

    with open(path, "rb") as f:
        data = tomllib.load(f)

    urls = data.get("project", {}).get("urls", {})
    by_key = {str(k).lower(): v for k, v in urls.items()}
    for key in PROJECT_URL_KEYS:
        value = by_key.get(key)
        if value:
            return value
    return None


def _from_git_config(cwd: Path) -> Optional[str]:
    path = cwd / ".git" / "config"
    if not path.is_file():
        return None

    parser = configparser.ConfigParser(strict=False, interpolation=None)
    parser.read(path, encoding="utf-8")
    section = 'remote "origin"'
    if parser.has_section(section):
        return parser.get(section, "url", fallback=None)
    return None


def read_repo_info(cwd: str, process_name: str = "") -> RepoInfo:
    """
    Discover repo/branch from a working directory.

    Sources, first hit wins: package.json "repository", pyproject.toml
    [project.urls], .git/config remote origin. The branch is only read
    when the repo came from git. Never raises.

    Args:
        cwd: Process working directory
        process_name: Used in log messages

    Returns:
        RepoInfo, empty when nothing was found
    """
    label = process_name or cwd

    if not cwd or not Path(cwd).is_dir():
        logger.warning(f"Process {label} has invalid cwd: {cwd!r}")
        return RepoInfo()

    root = Path(cwd)

    for source, reader in (
        ("package.json", _from_package_json),
        ("pyproject.toml", _from_pyproject),
    ):
        try:
            url = reader(root)
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to parse {source} for {label}: {e}")
            continue
        if url:
            repo = normalize_repo_url(str(url))
            logger.debug(f"Found repo in {source} for {label}: {repo}")
            return RepoInfo(repo=repo)

    try:
        url = _from_git_config(root)
    except (OSError, configparser.Error) as e:
        logger.warning(f"Failed to parse .git/config for {label}: {e}")
        url = None

    if url:
        repo = normalize_repo_url(url)
        logger.debug(f"Found repo in .git/config for {label}: {repo}")
        return RepoInfo(repo=repo, branch=read_branch(root))

    logger.warning(f"Could not discover repo for {label}")
    return RepoInfo()


async def discover_repo(record: ProcessRecord) -> RepoInfo:
    """Discover repo information for a process record."""
    return read_repo_info(record.cwd, record.name)
