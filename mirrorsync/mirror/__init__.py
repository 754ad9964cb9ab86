"""
Mirror — Keep this repository a patched copy of an upstream repository.

This package enumerates upstream refs, reconciles the working tree with
each ref, and publishes the refs whose content changed.
"""

from .cycle import CycleState, InvalidTransitionError, RefCycle
from .errors import (
    BuildError,
    EnumerationError,
    GitCommandError,
    PublishError,
    ReconciliationError,
    SyncError,
)
from .git import ForcePolicy, GitRepo
from .patch import apply_patch
from .refs import Ref, RefCatalog, RefKind, enumerate_refs
from .report import SyncReport
from .synchronizer import MirrorSynchronizer

__all__ = [
    "BuildError",
    "CycleState",
    "EnumerationError",
    "ForcePolicy",
    "GitCommandError",
    "GitRepo",
    "InvalidTransitionError",
    "MirrorSynchronizer",
    "PublishError",
    "ReconciliationError",
    "Ref",
    "RefCatalog",
    "RefCycle",
    "RefKind",
    "SyncError",
    "SyncReport",
    "apply_patch",
    "enumerate_refs",
]
