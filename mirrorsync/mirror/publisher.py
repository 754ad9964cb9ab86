"""
Change Publisher — Commit and force-push reconciled refs.

After reconciliation the whole tree outside the reserved paths is staged.
An empty stage ends the cycle (NO_CHANGE). Otherwise the change is
committed with a fixed message, tags are force-moved to the new commit,
and the branch (plus tag) is pushed with ForcePolicy.OVERWRITE_HISTORY:
mirrored content is derived from upstream plus fixed patches, so the
remote's previous history for the ref carries nothing worth keeping.

The push only ever follows a successful local commit.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .cycle import CycleState, RefCycle
from .errors import GitCommandError, PublishError, ReconciliationError
from .git import ForcePolicy, GitRepo

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Automated sync of original sources"


class ChangePublisher:
    """Stages, commits and pushes one ref cycle."""

    def __init__(
        self,
        repo: GitRepo,
        remote: str = "origin",
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
        force_policy: ForcePolicy = ForcePolicy.OVERWRITE_HISTORY,
        reserved_paths: Sequence[str] = (),
    ):
        self.repo = repo
        self.remote = remote
        self.commit_message = commit_message
        self.force_policy = force_policy
        self.reserved_paths = list(reserved_paths)

    def stage(self, cycle: RefCycle) -> bool:
        """Stage the reconciled tree; True when it differs from HEAD."""
        try:
            # Untracked files under reserved paths are never committed
            self.repo.add_all(exclude=self.reserved_paths)
            return self.repo.has_staged_changes()
        except GitCommandError as e:
            raise ReconciliationError(f"Failed to stage changes: {e.message}", ref=cycle.ref.name) from e

    def publish(self, cycle: RefCycle, dry_run: bool = False) -> RefCycle:
        """
        Move ``cycle`` from RECONCILED to a terminal state.

        Raises:
            PublishError: If commit, tag or push fails (the cycle is left
                in its last reached state for the caller to mark failed)
        """
        ref = cycle.ref

        if not self.stage(cycle):
            cycle.advance(CycleState.NO_CHANGE)
            logger.info(f"[publish] {ref.name}: no changes", extra={"ref": ref.name})
            return cycle

        if dry_run:
            cycle.advance(CycleState.DRY_RUN)
            logger.info(f"[publish] {ref.name}: changes detected (dry run, not committed)",
                        extra={"ref": ref.name})
            return cycle

        try:
            cycle.commit = self.repo.commit(self.commit_message)
        except GitCommandError as e:
            raise PublishError(f"Commit failed: {e.message}", ref=ref.name) from e
        cycle.advance(CycleState.COMMITTED)

        refspecs = [f"refs/heads/{ref.branch}:refs/heads/{ref.branch}"]
        try:
            if ref.is_tag:
                # The tracking branch is checked out, so the commit already moved it
                self.repo.tag(ref.name, "HEAD", force=True)
                refspecs.append(f"refs/tags/{ref.name}:refs/tags/{ref.name}")

            logger.info(
                f"[publish] {ref.name}: pushing {cycle.commit[:12]} to {self.remote} "
                f"({self.force_policy.value})",
                extra={"ref": ref.name},
            )
            self.repo.push(self.remote, refspecs, self.force_policy)
        except GitCommandError as e:
            raise PublishError(f"Push failed: {e.message}", ref=ref.name) from e

        cycle.advance(CycleState.PUSHED)
        return cycle
