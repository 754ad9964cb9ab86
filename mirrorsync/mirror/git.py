"""
Git — Thin version-control abstraction over the git CLI.

Everything the synchronizer does to a repository goes through GitRepo:
checkout, clean, stage, diff, commit, tag and push. Pushing takes an
explicit ForcePolicy so that "remote history is disposable" is a declared
choice of the caller, not a side effect of the flags it happened to pass.

Failures raise GitCommandError; callers translate them into the stage
error that applies (enumeration, reconciliation or publish).
"""

from __future__ import annotations

import logging
import os
import subprocess
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import GitCommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600


class ForcePolicy(str, Enum):
    """How a push treats the remote ref's existing history."""

    OVERWRITE_HISTORY = "overwrite-history"  # --force
    FAST_FORWARD_ONLY = "fast-forward-only"


def _git_env() -> dict:
    env = dict(os.environ)
    # Never block on a credential prompt inside CI
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def run_git(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    timeout: int = DEFAULT_TIMEOUT,
    input: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """Run a git command and return the completed process (never raises on exit code)."""
    cmd = ["git"] + list(args)
    try:
        return subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
            input=input,
            env=_git_env(),
        )
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(args, None, f"timed out after {timeout}s") from e
    except FileNotFoundError as e:
        raise GitCommandError(args, None, "git executable not found") from e


class GitRepo:
    """
    A local git working tree.

    Usage:
        repo = GitRepo(Path("work/mirror"))
        repo.add_all()
        if repo.has_staged_changes():
            repo.commit("Automated sync of original sources")
            repo.push("origin", ["refs/heads/main:refs/heads/main"])
    """

    def __init__(
        self,
        path: Path,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.path = Path(path)
        self.user_name = user_name
        self.user_email = user_email
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"GitRepo({str(self.path)!r})"

    # ─── Plumbing ───────────────────────────────────────────

    def call(self, *args: str, timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        """Run git in this repository without checking the exit code."""
        return run_git(args, cwd=self.path, timeout=timeout or self.timeout)

    def run(self, *args: str, timeout: Optional[int] = None) -> str:
        """Run git in this repository and return stripped stdout."""
        result = self.call(*args, timeout=timeout)
        if result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr or result.stdout)
        return result.stdout.strip()

    @property
    def exists(self) -> bool:
        return (self.path / ".git").exists()

    @classmethod
    def clone(
        cls,
        url: str,
        dest: Path,
        branch: Optional[str] = None,
        depth: Optional[int] = None,
        timeout: int = DEFAULT_TIMEOUT,
        **kwargs,
    ) -> "GitRepo":
        """Clone ``url`` into ``dest`` and return the new repository."""
        args: List[str] = ["clone", "--quiet"]
        if branch:
            args += ["--branch", branch]
        if depth:
            args += ["--depth", str(depth)]
        args += [url, str(dest)]

        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"[git] Cloning {_redact(url)} → {dest}")
        result = run_git(args, timeout=timeout)
        if result.returncode != 0:
            raise GitCommandError([_redact(a) for a in args], result.returncode, result.stderr)
        return cls(dest, timeout=timeout, **kwargs)

    # ─── Remotes ────────────────────────────────────────────

    def remote_url(self, remote: str = "origin") -> Optional[str]:
        result = self.call("remote", "get-url", remote)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def ensure_remote(self, remote: str, url: str) -> None:
        """Point ``remote`` at ``url``, adding it when missing."""
        current = self.remote_url(remote)
        if current is None:
            logger.info(f"[git] Adding remote {remote} → {_redact(url)}")
            self.run("remote", "add", remote, url)
        elif current != url:
            # e.g. token rotation
            logger.info(f"[git] Updating remote URL for {remote}")
            self.run("remote", "set-url", remote, url)

    def fetch(self, remote: str = "origin") -> None:
        """Fetch branches and tags, letting the remote rewrite both."""
        self.run("fetch", "--quiet", "--force", "--prune", "--tags", remote)

    # ─── Refs ───────────────────────────────────────────────

    def resolve(self, rev: str) -> Optional[str]:
        """Return the commit id ``rev`` points at, or None if it does not exist."""
        result = self.call("rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}")
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def list_refs(self, prefix: str) -> List[str]:
        """Ref names below ``prefix`` (e.g. refs/tags/), with the prefix stripped."""
        output = self.run("for-each-ref", "--format=%(refname)", prefix)
        names = []
        for line in output.splitlines():
            line = line.strip()
            if line.startswith(prefix):
                names.append(line[len(prefix):])
        return names

    def head(self) -> Optional[str]:
        return self.resolve("HEAD")

    # ─── Working tree ───────────────────────────────────────

    def checkout_detached(self, rev: str) -> None:
        self.run("checkout", "--quiet", "--force", "--detach", rev)

    def checkout_branch(self, branch: str, start_point: str) -> None:
        """Create or reset ``branch`` at ``start_point`` and check it out, discarding local edits."""
        self.run("checkout", "--quiet", "--force", "-B", branch, start_point)

    def clean(self, keep: Sequence[str] = ()) -> None:
        """Remove untracked and ignored files, except under ``keep`` prefixes."""
        args = ["clean", "-ffdxq"]
        for path in keep:
            # -e patterns still apply under -x
            prefix = path.strip("/")
            args += ["-e", f"/{prefix}", "-e", f"/{prefix}/**"]
        self.run(*args)

    def reset_hard(self, rev: str = "HEAD") -> None:
        self.run("reset", "--quiet", "--hard", rev)

    def add_all(self, exclude: Sequence[str] = ()) -> None:
        # --force: files tracked upstream may match this side's .gitignore
        pathspecs = [f":(exclude){path.strip('/')}" for path in exclude]
        self.run("add", "--all", "--force", "--", ".", *pathspecs)

    def has_staged_changes(self) -> bool:
        """True when the index differs from HEAD."""
        result = self.call("diff", "--cached", "--quiet")
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise GitCommandError(["diff", "--cached", "--quiet"], result.returncode, result.stderr)

    def status_porcelain(self) -> str:
        return self.run("status", "--porcelain")

    # ─── History ────────────────────────────────────────────

    def _identity_args(self) -> List[str]:
        args: List[str] = []
        if self.user_name:
            args += ["-c", f"user.name={self.user_name}"]
        if self.user_email:
            args += ["-c", f"user.email={self.user_email}"]
        return args

    def commit(self, message: str) -> str:
        """Commit the index and return the new commit id."""
        self.run(
            *self._identity_args(),
            "-c", "commit.gpgsign=false",
            "commit", "--quiet", "--no-verify", "-m", message,
        )
        return self.run("rev-parse", "HEAD")

    def tag(self, name: str, rev: str = "HEAD", force: bool = True) -> None:
        args = ["-c", "tag.gpgsign=false", "tag"]
        if force:
            args.append("--force")
        args += [name, rev]
        self.run(*args)

    def push(
        self,
        remote: str,
        refspecs: Sequence[str],
        force_policy: ForcePolicy = ForcePolicy.OVERWRITE_HISTORY,
    ) -> str:
        """
        Push ``refspecs`` atomically.

        With OVERWRITE_HISTORY the remote refs are replaced whatever they
        pointed at before.
        """
        args = ["push", "--porcelain", "--atomic"]
        if force_policy is ForcePolicy.OVERWRITE_HISTORY:
            args.append("--force")
        args.append(remote)
        args += list(refspecs)
        return self.run(*args)


def _redact(url: str) -> str:
    """Hide credentials embedded in a remote URL."""
    if "@" in url and "://" in url:
        scheme, rest = url.split("://", 1)
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
    return url
