"""
Shared fixtures for mirror tests.

Builds real throwaway repositories with the git CLI:

- ``upstream_repo``: the repository being mirrored. main plus tags
  v0.8.1, v1.0 and v2.0; from v1.0 on it ships a Dockerfile with the patch
  marker and its own .github/workflows/ci.yml.
- ``mirror_remote``: a bare repository standing in for this repository's
  hosted remote, seeded with .github/workflows/mirror.yml on main.
- ``workspace``: a clone of ``mirror_remote``.

Tests using them are skipped when git is not installed.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from mirrorsync.config.models import PatchRule, SyncConfig

GIT = shutil.which("git")

requires_git = pytest.mark.skipif(GIT is None, reason="git is not installed")

MARKER = 'ENTRYPOINT ["/app/run"]'
INSERT = "LABEL org.opencontainers.image.source=mirror"

DOCKERFILE = (
    "FROM alpine:3.19\n"
    "COPY . /app\n"
    f"{MARKER}\n"
)

MIRROR_WORKFLOW = "name: mirror\non: workflow_dispatch\n"
UPSTREAM_CI = "name: ci\non: push\n"


def git(cwd: Path, *args: str) -> str:
    """Run git with a fixed identity and return stripped stdout."""
    result = subprocess.run(
        [
            "git",
            "-c", "user.name=Test Upstream",
            "-c", "user.email=upstream@example.com",
            "-c", "commit.gpgsign=false",
            "-c", "tag.gpgsign=false",
            *args,
        ],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def write(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def commit_all(repo: Path, message: str) -> None:
    git(repo, "add", "--all")
    git(repo, "commit", "-q", "-m", message)


def init_repo(path: Path, bare: bool = False) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q", *(["--bare"] if bare else []))
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    return path


def remote_files(bare: Path, rev: str) -> list:
    """Files tracked at ``rev`` in a bare repository."""
    return git(bare, "ls-tree", "-r", "--name-only", rev).splitlines()


def remote_show(bare: Path, rev: str, path: str) -> str:
    return git(bare, "show", f"{rev}:{path}")


@pytest.fixture
def upstream_repo(tmp_path: Path) -> Path:
    """The repository being mirrored."""
    repo = init_repo(tmp_path / "upstream-origin")

    write(repo, "README.md", "# app\n")
    write(repo, "src/app.py", "VERSION = '0.8.1'\n")
    commit_all(repo, "Initial release")
    git(repo, "tag", "v0.8.1")

    write(repo, "src/app.py", "VERSION = '1.0'\n")
    write(repo, "Dockerfile", DOCKERFILE)
    write(repo, ".github/workflows/ci.yml", UPSTREAM_CI)
    commit_all(repo, "Release 1.0")
    git(repo, "tag", "v1.0")

    write(repo, "src/app.py", "VERSION = '2.0'\n")
    write(repo, "src/legacy.py", "OLD = True\n")
    commit_all(repo, "Release 2.0")
    git(repo, "tag", "v2.0")

    (repo / "src" / "legacy.py").unlink()
    write(repo, "docs/notes.md", "unreleased\n")
    commit_all(repo, "Work in progress")

    return repo


@pytest.fixture
def mirror_remote(tmp_path: Path) -> Path:
    """Bare stand-in for this repository's remote."""
    bare = init_repo(tmp_path / "mirror.git", bare=True)

    seed = init_repo(tmp_path / "seed")
    write(seed, ".github/workflows/mirror.yml", MIRROR_WORKFLOW)
    commit_all(seed, "Add mirror workflow")
    git(seed, "push", "-q", str(bare), "HEAD:refs/heads/main")
    shutil.rmtree(seed)

    return bare


@pytest.fixture
def workspace(tmp_path: Path, mirror_remote: Path) -> Path:
    """A clone of the mirror remote."""
    path = tmp_path / "work" / "mirror"
    path.parent.mkdir(parents=True, exist_ok=True)
    git(path.parent, "clone", "-q", str(mirror_remote), str(path))
    return path


@pytest.fixture
def sync_config(tmp_path: Path, upstream_repo: Path, workspace: Path) -> SyncConfig:
    return SyncConfig(
        upstream_url=str(upstream_repo),
        default_branch="main",
        tag_patterns=["v*"],
        excluded_refs=["v0.8.1"],
        workspace_dir=str(workspace),
        upstream_dir=str(tmp_path / "work" / "upstream"),
        patches=[PatchRule(target="Dockerfile", marker=MARKER, insert=INSERT)],
    )
