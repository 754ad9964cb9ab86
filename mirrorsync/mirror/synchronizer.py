"""
Mirror Synchronizer — One run over every mirrored ref.

    fetch upstream ─▶ enumerate refs ─▶ for each ref (sequentially):
                                          reset workspace
                                          reconcile content
                                          publish change
                                      ─▶ SyncReport (updated refs)

Refs share one workspace, so they are processed strictly one after the
other, each starting from ``Workspace.reset_to_clean_state``.

Failure handling:
- EnumerationError aborts before any ref is touched
- ReconciliationError aborts the run; the partial report rides on the
  exception (``error.report``)
- PublishError fails that ref only; the next ref still runs

## Usage

    synchronizer = MirrorSynchronizer.from_config(config)
    report = synchronizer.run()
    print(report.updated_refs)
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional
from uuid import uuid4

from ..config.loader import resolve_paths
from ..config.models import SyncConfig
from .cycle import CycleState, RefCycle
from .errors import PublishError, ReconciliationError, SyncError
from .git import ForcePolicy, GitRepo
from .publisher import ChangePublisher
from .reconciler import ContentReconciler
from .refs import Ref, enumerate_refs
from .report import SyncReport
from .upstream import UpstreamSnapshot
from .workspace import Workspace

logger = logging.getLogger(__name__)


def generate_run_id() -> str:
    """Generate a unique run ID."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    suffix = uuid4().hex[:6].upper()
    return f"R-{ts}-{suffix}"


class MirrorSynchronizer:
    """Runs enumerate → reconcile → publish for every selected ref."""

    def __init__(
        self,
        config: SyncConfig,
        upstream: UpstreamSnapshot,
        workspace: Workspace,
        reconciler: ContentReconciler,
        publisher: ChangePublisher,
    ):
        self.config = config
        self.upstream = upstream
        self.workspace = workspace
        self.reconciler = reconciler
        self.publisher = publisher

    @classmethod
    def from_config(cls, config: SyncConfig, base: Optional[Path] = None) -> "MirrorSynchronizer":
        """Wire the stages from a loaded configuration."""
        paths = resolve_paths(config, base)

        upstream = UpstreamSnapshot(
            url=config.upstream_url,
            path=paths["upstream"],
            default_branch=config.default_branch,
            timeout=config.git_timeout,
        )
        repo = GitRepo(
            paths["workspace"],
            user_name=config.identity.name,
            user_email=config.identity.email,
            timeout=config.git_timeout,
        )
        workspace = Workspace(
            repo,
            reserved_paths=config.reserved_paths,
            default_branch=config.default_branch,
            remote=config.remote,
            mirror_url=config.mirror_url,
        )
        reconciler = ContentReconciler(
            upstream,
            workspace,
            patches=config.patches,
            upstream_excluded_paths=config.upstream_excluded_paths,
        )
        publisher = ChangePublisher(
            repo,
            remote=config.remote,
            commit_message=config.commit_message,
            force_policy=ForcePolicy.OVERWRITE_HISTORY,
            reserved_paths=config.reserved_paths,
        )
        return cls(config, upstream, workspace, reconciler, publisher)

    # ─── Stages ─────────────────────────────────────────────

    def select_refs(self, only: Optional[Iterable[str]] = None) -> List[Ref]:
        """Fetch upstream and enumerate the refs to mirror."""
        self.upstream.fetch()
        catalog = self.upstream.catalog()

        refs = enumerate_refs(
            catalog,
            self.config.default_branch,
            tag_patterns=self.config.tag_patterns,
            excluded=self.config.excluded_refs,
            tracking_prefix=self.config.tracking_branch_prefix,
        )

        if only:
            wanted = set(only)
            unknown = wanted - {r.name for r in refs}
            if unknown:
                logger.warning(f"[sync] Not mirrored, ignoring: {', '.join(sorted(unknown))}")
            refs = [r for r in refs if r.name in wanted]

        return refs

    def process_ref(
        self,
        ref: Ref,
        run_id: str,
        dry_run: bool = False,
        cycle: Optional[RefCycle] = None,
    ) -> RefCycle:
        """
        Run one ref through its cycle.

        Raises:
            ReconciliationError: The local tree is in an unknown state
                (the cycle is marked failed first)
        """
        cycle = cycle or RefCycle(ref=ref)
        extra = {"run_id": run_id, "ref": ref.name}

        logger.info(f"[sync] ─── {ref.name} ({ref.kind.value}) → {ref.branch}", extra=extra)

        try:
            cycle.upstream = self.upstream.commit_for(ref)
            cycle.base = self.workspace.reset_to_clean_state(ref)
            cycle.stats = self.reconciler.reconcile(ref)
            cycle.advance(CycleState.RECONCILED)
            self.publisher.publish(cycle, dry_run=dry_run)
        except PublishError as e:
            cycle.fail(e.message)
            logger.error(f"[sync] {ref.name} failed: {e.message}", extra=extra)
            return cycle
        except ReconciliationError as e:
            cycle.fail(e.message)
            raise

        logger.info(
            f"[sync] {ref.name}: {cycle.state.value}",
            extra={**extra, "cycle_state": cycle.state.value},
        )
        return cycle

    # ─── Run ────────────────────────────────────────────────

    def run(self, dry_run: bool = False, only: Optional[Iterable[str]] = None) -> SyncReport:
        """
        Synchronize every selected ref.

        Args:
            dry_run: Reconcile and detect changes, but never commit or push
            only: Restrict the run to these ref names

        Returns:
            SyncReport listing updated and failed refs

        Raises:
            EnumerationError: Upstream could not be read
            ReconciliationError: A working tree fault aborted the run
        """
        run_id = generate_run_id()
        started = time.monotonic()
        report = SyncReport(
            run_id=run_id,
            started_iso=datetime.now(timezone.utc).isoformat(),
            dry_run=dry_run,
        )

        logger.info(
            f"\n{'=' * 60}\n"
            f"  Sync run {run_id}{' (dry run)' if dry_run else ''}\n"
            f"  Upstream: {self.config.upstream_url}\n"
            f"{'=' * 60}",
            extra={"run_id": run_id},
        )

        try:
            refs = self.select_refs(only)
            logger.info(
                f"[sync] {len(refs)} ref(s): {', '.join(r.name for r in refs) or '(none)'}",
                extra={"run_id": run_id},
            )
            if refs:
                self.workspace.prepare()

            for ref in refs:
                cycle = RefCycle(ref=ref)
                report.cycles.append(cycle)
                self.process_ref(ref, run_id, dry_run=dry_run, cycle=cycle)
        except SyncError as e:
            report.aborted = str(e)
            e.report = self._finish(report, started)
            logger.error(f"[sync] Run aborted: {e}", extra={"run_id": run_id})
            raise

        self._finish(report, started)
        logger.info(
            f"[sync] Done in {report.duration_ms}ms: "
            f"updated={report.updated_refs} failed={report.failed_refs}",
            extra={"run_id": run_id},
        )
        return report

    def _finish(self, report: SyncReport, started: float) -> SyncReport:
        report.finished_iso = datetime.now(timezone.utc).isoformat()
        report.duration_ms = int((time.monotonic() - started) * 1000)
        return report
