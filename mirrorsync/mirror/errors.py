"""
Sync Errors — Failure taxonomy for a synchronization run.

    EnumerationError     upstream catalog unreadable    fatal, before any ref
    ReconciliationError  working tree / checkout fault  fatal to the run
    PublishError         commit, tag or push rejected   fatal to that ref only
    BuildError           downstream build failed        reported per ref

GitCommandError is the low-level failure raised by the git wrapper; the
stage that observes it re-raises it as one of the above.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class SyncError(Exception):
    """Base class for synchronization failures."""

    def __init__(
        self,
        message: str,
        ref: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.ref = ref
        self.details = details or {}
        # Partial SyncReport attached by the synchronizer when a run aborts
        self.report: Any = None
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.ref:
            return f"{self.ref}: {self.message}"
        return self.message


class GitCommandError(SyncError):
    """A git invocation exited non-zero or timed out."""

    def __init__(
        self,
        args: Sequence[str],
        returncode: Optional[int],
        stderr: str = "",
        ref: Optional[str] = None,
    ):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        summary = self.stderr.splitlines()[-1] if self.stderr else "no output"
        super().__init__(
            f"git {' '.join(self.command)} failed ({returncode}): {summary}",
            ref=ref,
            details={"returncode": returncode, "stderr": self.stderr},
        )


class EnumerationError(SyncError):
    """The upstream ref catalog could not be read."""


class ReconciliationError(SyncError):
    """The working tree could not be brought to the upstream content."""


class PublishError(SyncError):
    """A reconciled ref could not be committed or pushed."""


class BuildError(SyncError):
    """A downstream build-and-publish failed."""
