"""
Ref Cycle — The per-ref state machine.

    CLEAN → RECONCILED → NO_CHANGE                 (terminal)
                       → COMMITTED → PUSHED        (terminal)
                       → DRY_RUN                   (terminal, --dry-run only)
    CLEAN | RECONCILED | COMMITTED → FAILED        (terminal)

Only PUSHED refs enter the updated-ref list and trigger builds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import SyncError
from .refs import Ref


class CycleState(str, Enum):
    CLEAN = "clean"
    RECONCILED = "reconciled"
    NO_CHANGE = "no-change"
    COMMITTED = "committed"
    PUSHED = "pushed"
    DRY_RUN = "dry-run"
    FAILED = "failed"


TRANSITIONS = {
    CycleState.CLEAN: {CycleState.RECONCILED, CycleState.FAILED},
    CycleState.RECONCILED: {
        CycleState.NO_CHANGE,
        CycleState.COMMITTED,
        CycleState.DRY_RUN,
        CycleState.FAILED,
    },
    CycleState.COMMITTED: {CycleState.PUSHED, CycleState.FAILED},
}

TERMINAL_STATES = {
    CycleState.NO_CHANGE,
    CycleState.PUSHED,
    CycleState.DRY_RUN,
    CycleState.FAILED,
}


class InvalidTransitionError(SyncError):
    """A cycle was asked to move to a state it cannot reach."""


@dataclass
class ReconcileStats:
    """What one reconciliation did to the working tree."""

    removed: int = 0
    copied: int = 0
    patched: List[str] = field(default_factory=list)


@dataclass
class RefCycle:
    """Progress of one ref through reconcile → publish."""

    ref: Ref
    state: CycleState = CycleState.CLEAN
    upstream: Optional[str] = None
    base: Optional[str] = None
    commit: Optional[str] = None
    error: Optional[str] = None
    stats: ReconcileStats = field(default_factory=ReconcileStats)
    history: List[CycleState] = field(default_factory=lambda: [CycleState.CLEAN])

    def advance(self, new_state: CycleState) -> None:
        allowed = TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise InvalidTransitionError(
                f"cannot move from {self.state.value} to {new_state.value}",
                ref=self.ref.name,
            )
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: str) -> None:
        self.advance(CycleState.FAILED)
        self.error = error

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def changed(self) -> bool:
        """True when the reconciled tree differed from the previous commit."""
        return CycleState.COMMITTED in self.history or self.state is CycleState.DRY_RUN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ref": self.ref.name,
            "kind": self.ref.kind.value,
            "branch": self.ref.branch,
            "state": self.state.value,
            "upstream": self.upstream,
            "base": self.base,
            "commit": self.commit,
            "error": self.error,
            "removed": self.stats.removed,
            "copied": self.stats.copied,
            "patched": list(self.stats.patched),
            "history": [s.value for s in self.history],
        }
