"""
Content Reconciler — Make the workspace hold exactly the upstream ref.

For one ref, with the upstream checked out at that ref and the workspace
reset to the ref's previous state:

1. delete every non-reserved file (and the directories left empty)
2. apply the configured patches to the upstream working copy
3. copy the upstream tree in, skipping .git and upstream CI paths
4. reset the upstream working copy, whatever happened in 1-3

The outcome is (upstream ∖ excluded) ∪ (reserved paths, untouched) with
patches applied. Running it twice on unchanged upstream content changes
nothing the second time.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..config.models import PatchRule
from .cycle import ReconcileStats
from .errors import GitCommandError, ReconciliationError
from .patch import apply_patch_file
from .refs import Ref
from .upstream import UpstreamSnapshot
from .workspace import Workspace

logger = logging.getLogger(__name__)


class ContentReconciler:
    """Replaces workspace content with an upstream ref's content."""

    def __init__(
        self,
        upstream: UpstreamSnapshot,
        workspace: Workspace,
        patches: Sequence[PatchRule] = (),
        upstream_excluded_paths: Sequence[str] = (".github",),
    ):
        self.upstream = upstream
        self.workspace = workspace
        self.patches = list(patches)
        self.upstream_excluded_paths = list(upstream_excluded_paths)

    def reconcile(self, ref: Ref) -> ReconcileStats:
        """
        Reconcile the workspace with ``ref``.

        Raises:
            ReconciliationError: On any filesystem or checkout failure
        """
        stats = ReconcileStats()

        try:
            self.upstream.checkout(ref)
        except GitCommandError as e:
            raise ReconciliationError(
                f"Failed to check out upstream: {e.message}", ref=ref.name
            ) from e

        try:
            stats.removed = self.workspace.wipe()
            for rule in self.patches:
                if apply_patch_file(self.upstream.path / rule.target, rule):
                    stats.patched.append(rule.target)
            stats.copied = self.workspace.import_tree(
                self.upstream.path, exclude=self.upstream_excluded_paths
            )
        except Exception as e:
            self._reset_upstream_after_failure(ref)
            if isinstance(e, OSError):
                raise ReconciliationError(f"Filesystem error: {e}", ref=ref.name) from e
            raise
        self._reset_upstream(ref)

        logger.info(
            f"[reconcile] {ref.name}: removed {stats.removed}, copied {stats.copied}"
            + (f", patched {', '.join(stats.patched)}" if stats.patched else ""),
            extra={"ref": ref.name},
        )
        return stats

    def _reset_upstream(self, ref: Ref) -> None:
        try:
            self.upstream.reset()
        except GitCommandError as e:
            raise ReconciliationError(
                f"Failed to reset upstream working copy: {e.message}", ref=ref.name
            ) from e

    def _reset_upstream_after_failure(self, ref: Ref) -> None:
        """Best-effort reset; the error already being raised takes precedence."""
        try:
            self.upstream.reset()
        except GitCommandError as e:
            logger.error(
                f"[reconcile] Failed to reset upstream working copy: {e.message}",
                extra={"ref": ref.name},
            )
