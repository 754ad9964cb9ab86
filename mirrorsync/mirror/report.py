"""
Sync Report — Result of one synchronization run and its CI outputs.

The updated-ref list is the hand-off to the downstream build stage. In CI
it is written as step outputs:

    changed=["v2.0"]
    has_changes=true
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .cycle import CycleState, RefCycle

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Everything a run did, ref by ref."""

    run_id: str
    started_iso: str
    dry_run: bool = False
    finished_iso: Optional[str] = None
    duration_ms: int = 0
    cycles: List[RefCycle] = field(default_factory=list)
    aborted: Optional[str] = None

    @property
    def processed_refs(self) -> List[str]:
        return [c.ref.name for c in self.cycles]

    @property
    def updated_refs(self) -> List[str]:
        """Refs pushed during this run, in processing order."""
        return [c.ref.name for c in self.cycles if c.state is CycleState.PUSHED]

    @property
    def pending_refs(self) -> List[str]:
        """Refs a dry run found changed."""
        return [c.ref.name for c in self.cycles if c.state is CycleState.DRY_RUN]

    @property
    def failed_refs(self) -> List[str]:
        return [c.ref.name for c in self.cycles if c.state is CycleState.FAILED]

    @property
    def ok(self) -> bool:
        return self.aborted is None and not self.failed_refs

    def cycle_for(self, ref_name: str) -> Optional[RefCycle]:
        for cycle in self.cycles:
            if cycle.ref.name == ref_name:
                return cycle
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_iso": self.started_iso,
            "finished_iso": self.finished_iso,
            "duration_ms": self.duration_ms,
            "dry_run": self.dry_run,
            "aborted": self.aborted,
            "processed_refs": self.processed_refs,
            "updated_refs": self.updated_refs,
            "pending_refs": self.pending_refs,
            "failed_refs": self.failed_refs,
            "cycles": [c.to_dict() for c in self.cycles],
        }


def github_outputs(report: SyncReport) -> Dict[str, str]:
    # A dry run reports what would have been pushed
    changed = report.pending_refs if report.dry_run else report.updated_refs
    return {
        "changed": json.dumps(changed),
        "has_changes": "true" if changed else "false",
    }


def write_github_output(path: Path, report: SyncReport) -> Dict[str, str]:
    """Append the step outputs to a $GITHUB_OUTPUT file."""
    outputs = github_outputs(report)
    path = Path(path)
    with path.open("a", encoding="utf-8") as f:
        for key, value in outputs.items():
            f.write(f"{key}={value}\n")
    logger.debug(f"[report] Wrote step outputs to {path}")
    return outputs


def write_report_json(path: Path, report: SyncReport) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.info(f"[report] Run report written to {path}")
