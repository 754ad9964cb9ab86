"""
Upstream Snapshot — Read-only clone of the repository being mirrored.

Fetched once per run, then checked out (detached) once per ref. The
reconciler patches files in this working copy before copying them, so
every use ends with ``reset()`` to hand the next ref a pristine tree.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import EnumerationError, GitCommandError
from .git import DEFAULT_TIMEOUT, GitRepo
from .refs import Ref, RefCatalog

logger = logging.getLogger(__name__)

REMOTE_BRANCH_PREFIX = "refs/remotes/{remote}/"
TAG_PREFIX = "refs/tags/"


class UpstreamSnapshot:
    """The upstream repository, cloned next to the workspace."""

    def __init__(
        self,
        url: str,
        path: Path,
        default_branch: str = "main",
        remote: str = "origin",
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.url = url
        self.path = Path(path)
        self.default_branch = default_branch
        self.remote = remote
        self.repo = GitRepo(self.path, timeout=timeout)
        self.timeout = timeout

    def fetch(self) -> None:
        """Clone on first use, otherwise fetch every branch and tag."""
        if not self.url:
            raise EnumerationError("No upstream URL configured")

        try:
            if not self.repo.exists:
                self.repo = GitRepo.clone(self.url, self.path, timeout=self.timeout)
            else:
                self.repo.ensure_remote(self.remote, self.url)
                logger.info(f"[upstream] Fetching {self.remote} into {self.path}")
                self.repo.fetch(self.remote)
        except GitCommandError as e:
            raise EnumerationError(f"Failed to fetch upstream: {e.message}") from e

    def catalog(self) -> RefCatalog:
        """Read the upstream branches and tags."""
        branch_prefix = REMOTE_BRANCH_PREFIX.format(remote=self.remote)
        try:
            branches = [b for b in self.repo.list_refs(branch_prefix) if b != "HEAD"]
            tags = self.repo.list_refs(TAG_PREFIX)
        except GitCommandError as e:
            raise EnumerationError(f"Failed to read upstream refs: {e.message}") from e

        catalog = RefCatalog(branches=branches, tags=tags)
        if not catalog.has_branch(self.default_branch):
            raise EnumerationError(
                f"Upstream has no branch '{self.default_branch}'",
                details={"branches": branches},
            )

        logger.info(
            f"[upstream] Catalog: {len(branches)} branch(es), {len(tags)} tag(s)"
        )
        return catalog

    def revision_for(self, ref: Ref) -> str:
        if ref.is_tag:
            return f"{TAG_PREFIX}{ref.name}"
        return f"{REMOTE_BRANCH_PREFIX.format(remote=self.remote)}{ref.name}"

    def commit_for(self, ref: Ref) -> Optional[str]:
        return self.repo.resolve(self.revision_for(ref))

    def checkout(self, ref: Ref) -> None:
        """Put the upstream working copy at ``ref``."""
        self.repo.checkout_detached(self.revision_for(ref))
        self.repo.clean()

    def reset(self) -> None:
        """Discard anything written into the working copy since checkout."""
        self.repo.reset_hard()
        self.repo.clean()
