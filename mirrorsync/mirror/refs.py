"""
Ref Enumeration — Decide which upstream refs are mirrored.

    refs = {default branch} ∪ {tags matching a pattern} − {excluded refs}

The result is deterministic for a given catalog: the default branch comes
first, then tags in natural version order (v2.0 before v10.0).

Every tag is mirrored twice on this side: as the tag itself and as an
auxiliary tracking branch (``mirror/v1.0`` by default) that carries the
sync commits between runs.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

DEFAULT_TRACKING_PREFIX = "mirror/"


class RefKind(str, Enum):
    DEFAULT_BRANCH = "default-branch"
    TAG = "tag"


def tracking_branch_for(tag: str, prefix: str = DEFAULT_TRACKING_PREFIX) -> str:
    """Name of the auxiliary branch that tracks a mirrored tag."""
    return f"{prefix}{tag}"


@dataclass(frozen=True)
class Ref:
    """A branch or tag selected for mirroring."""

    name: str
    kind: RefKind
    tracking_prefix: str = DEFAULT_TRACKING_PREFIX

    @property
    def is_tag(self) -> bool:
        return self.kind is RefKind.TAG

    @property
    def tracking_branch(self) -> Optional[str]:
        if not self.is_tag:
            return None
        return tracking_branch_for(self.name, self.tracking_prefix)

    @property
    def branch(self) -> str:
        """Local branch that holds this ref's mirrored commits."""
        return self.tracking_branch or self.name

    def __str__(self) -> str:
        return self.name


@dataclass
class RefCatalog:
    """Branches and tags published by the upstream repository."""

    branches: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def has_branch(self, name: str) -> bool:
        return name in self.branches


def natural_key(name: str) -> list:
    """Sort key treating digit runs as numbers: v1.9 < v1.10."""
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", name)]


def matches_any(name: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns)


def enumerate_refs(
    catalog: RefCatalog,
    default_branch: str,
    tag_patterns: Sequence[str] = ("v*",),
    excluded: Iterable[str] = (),
    tracking_prefix: str = DEFAULT_TRACKING_PREFIX,
) -> List[Ref]:
    """
    Produce the ordered set of refs to process.

    No side effects. The default branch is yielded even when the catalog
    has no tags; anything named in ``excluded`` is never yielded.
    """
    excluded_set = set(excluded)
    refs: List[Ref] = []

    if default_branch not in excluded_set:
        refs.append(Ref(default_branch, RefKind.DEFAULT_BRANCH, tracking_prefix))

    tags = {
        tag for tag in catalog.tags
        if matches_any(tag, tag_patterns) and tag not in excluded_set
    }
    # A tag named like the default branch would share its local branch
    tags.discard(default_branch)

    for tag in sorted(tags, key=natural_key):
        refs.append(Ref(tag, RefKind.TAG, tracking_prefix))

    return refs
