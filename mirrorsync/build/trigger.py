"""
Downstream Trigger — Fan out one build per updated ref.

Builds run in parallel on a thread pool and are fail-isolated: an
exception in one build becomes a failed receipt for that ref and the
other builds carry on. Receipts come back in the order the refs were
given.

## Usage

    trigger = DownstreamTrigger(DockerBuildPublisher(...), max_workers=4)
    report = trigger.fan_out(sync_report.updated_refs)
    if report.failed:
        ...
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from ..mirror.errors import SyncError
from .base import BuildPublisher
from .receipt import BuildReceipt

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass
class TriggerReport:
    """Receipts of one fan-out."""

    receipts: List[BuildReceipt] = field(default_factory=list)

    @property
    def succeeded(self) -> List[str]:
        return [r.ref for r in self.receipts if r.status == "ok"]

    @property
    def skipped(self) -> List[str]:
        return [r.ref for r in self.receipts if r.status == "skipped"]

    @property
    def failed(self) -> List[str]:
        return [r.ref for r in self.receipts if r.status == "failed"]

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "receipts": [r.model_dump() for r in self.receipts],
        }


class DownstreamTrigger:
    """Invokes a BuildPublisher once per ref, concurrently."""

    def __init__(self, publisher: BuildPublisher, max_workers: int = DEFAULT_MAX_WORKERS):
        self.publisher = publisher
        self.max_workers = max(1, max_workers)

    def fan_out(self, refs: Iterable[str]) -> TriggerReport:
        """
        Build every ref in ``refs`` (duplicates once).

        Never raises for a build failure; see TriggerReport.failed.
        """
        unique = list(dict.fromkeys(refs))
        if not unique:
            logger.info("[build] No updated refs, nothing to build")
            return TriggerReport()

        try:
            self.publisher.prepare()
        except Exception as e:
            logger.error(f"[build] {self.publisher.name} setup failed: {e}")
            return TriggerReport(receipts=[
                BuildReceipt.failed(ref, self.publisher.name, "PREPARE_FAILED", str(e))
                for ref in unique
            ])

        logger.info(
            f"[build] Triggering {len(unique)} build(s) via {self.publisher.name}: "
            f"{', '.join(unique)}"
        )

        workers = min(self.max_workers, len(unique))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="build") as executor:
            receipts = list(executor.map(self._publish_one, unique))

        report = TriggerReport(receipts=receipts)
        logger.info(
            f"[build] Done: {len(report.succeeded)} ok, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report

    def _publish_one(self, ref: str) -> BuildReceipt:
        try:
            return self.publisher.publish(ref)
        except SyncError as e:
            logger.error(f"[build] {ref} failed: {e.message}", extra={"ref": ref})
            return BuildReceipt.failed(ref, self.publisher.name, "BUILD_FAILED", e.message)
        except Exception as e:
            logger.exception(f"[build] {ref} crashed", extra={"ref": ref})
            return BuildReceipt.failed(ref, self.publisher.name, "UNEXPECTED_ERROR", str(e))
