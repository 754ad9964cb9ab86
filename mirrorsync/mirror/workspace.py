"""
Workspace — The local working tree of this (mirror) repository.

One Workspace is shared by every ref of a run, so each ref cycle starts
with ``reset_to_clean_state(ref)``: the ref's branch is force-checked-out
from its last published state (or branched from the default branch for a
ref mirrored for the first time) and everything untracked outside the
reserved paths is removed.

Reserved paths (the CI configuration directory and the tool's own files by
default) and ``.git`` are never deleted or overwritten by ``wipe`` or
``import_tree``.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import GitCommandError, ReconciliationError
from .git import GitRepo
from .refs import Ref

logger = logging.getLogger(__name__)

GIT_DIR = ".git"


def _as_parts(paths: Iterable[str]) -> List[Tuple[str, ...]]:
    return [PurePosixPath(p.strip("/")).parts for p in paths if p.strip("/")]


def _under_any(parts: Tuple[str, ...], prefixes: Sequence[Tuple[str, ...]]) -> bool:
    return any(parts[: len(prefix)] == prefix for prefix in prefixes)


class Workspace:
    """This repository's working tree, reset and rewritten once per ref."""

    def __init__(
        self,
        repo: GitRepo,
        reserved_paths: Sequence[str] = (".github",),
        default_branch: str = "main",
        remote: str = "origin",
        mirror_url: Optional[str] = None,
    ):
        self.repo = repo
        self.reserved_paths = list(reserved_paths)
        self.default_branch = default_branch
        self.remote = remote
        self.mirror_url = mirror_url
        self._protected = _as_parts([GIT_DIR, *self.reserved_paths])

    @property
    def root(self) -> Path:
        return self.repo.path

    def is_protected(self, relative: PurePosixPath) -> bool:
        """True for .git and anything under a reserved path."""
        return _under_any(PurePosixPath(relative).parts, self._protected)

    # ─── Lifecycle ──────────────────────────────────────────

    def prepare(self) -> None:
        """Clone the mirror if needed, then fetch its current branches and tags."""
        try:
            if not self.repo.exists:
                if not self.mirror_url:
                    raise ReconciliationError(
                        f"Workspace {self.root} is not a git repository and no mirror_url is set"
                    )
                cloned = GitRepo.clone(self.mirror_url, self.root, timeout=self.repo.timeout)
                self.repo.path = cloned.path
            logger.info(f"[workspace] Fetching {self.remote}")
            self.repo.fetch(self.remote)
        except GitCommandError as e:
            raise ReconciliationError(f"Failed to prepare workspace: {e.message}") from e

    def base_for(self, ref: Ref) -> Optional[str]:
        """The revision a ref cycle starts from, or None when nothing exists yet."""
        candidates = [
            f"refs/remotes/{self.remote}/{ref.branch}",
            f"refs/remotes/{self.remote}/{self.default_branch}",
            f"refs/heads/{self.default_branch}",
        ]
        for rev in candidates:
            if self.repo.resolve(rev):
                return rev
        return None

    def reset_to_clean_state(self, ref: Ref) -> str:
        """
        Check out ``ref``'s branch at its previous published state.

        Local commits and edits from earlier cycles are discarded. Returns
        the revision the branch was reset to.
        """
        base = self.base_for(ref)
        if base is None:
            raise ReconciliationError(
                f"No base revision for branch '{ref.branch}'", ref=ref.name
            )

        try:
            self.repo.checkout_branch(ref.branch, base)
            self.repo.clean(keep=self.reserved_paths)
        except GitCommandError as e:
            raise ReconciliationError(f"Failed to reset workspace: {e.message}", ref=ref.name) from e

        logger.debug(f"[workspace] {ref.branch} reset to {base}")
        return base

    # ─── Content ────────────────────────────────────────────

    def wipe(self) -> int:
        """
        Delete every non-protected file, then the directories left empty.

        Symlinks are unlinked, never followed. Returns the number of
        entries removed.
        """
        removed = 0

        for dirpath, dirnames, filenames in os.walk(self.root):
            current = Path(dirpath)
            rel_dir = PurePosixPath(current.relative_to(self.root).as_posix())

            keep = []
            for name in dirnames:
                rel = rel_dir / name
                if self.is_protected(rel):
                    continue
                path = current / name
                if path.is_symlink():
                    path.unlink()
                    removed += 1
                    continue
                keep.append(name)
            dirnames[:] = keep

            for name in filenames:
                if self.is_protected(rel_dir / name):
                    continue
                (current / name).unlink()
                removed += 1

        for dirpath, _dirnames, _filenames in os.walk(self.root, topdown=False):
            current = Path(dirpath)
            if current == self.root:
                continue
            rel = PurePosixPath(current.relative_to(self.root).as_posix())
            if self.is_protected(rel):
                continue
            if not any(current.iterdir()):
                current.rmdir()

        logger.debug(f"[workspace] Removed {removed} entries")
        return removed

    def import_tree(self, source: Path, exclude: Sequence[str] = ()) -> int:
        """
        Copy ``source`` into the workspace.

        ``.git`` and ``exclude`` prefixes of the source are skipped, and
        nothing is written under a protected path. File modes and symlinks
        are preserved. Returns the number of entries copied.
        """
        source = Path(source)
        skipped = _as_parts([GIT_DIR, *exclude])
        copied = 0

        for dirpath, dirnames, filenames in os.walk(source):
            current = Path(dirpath)
            rel_dir = PurePosixPath(current.relative_to(source).as_posix())

            keep = []
            for name in dirnames:
                rel = rel_dir / name
                if _under_any(rel.parts, skipped) or self.is_protected(rel):
                    continue
                if (current / name).is_symlink():
                    self._copy_entry(current / name, rel)
                    copied += 1
                    continue
                keep.append(name)
            dirnames[:] = keep

            for name in filenames:
                rel = rel_dir / name
                if _under_any(rel.parts, skipped) or self.is_protected(rel):
                    continue
                self._copy_entry(current / name, rel)
                copied += 1

        logger.debug(f"[workspace] Copied {copied} entries from {source}")
        return copied

    def _copy_entry(self, src: Path, rel: PurePosixPath) -> None:
        dest = self.root / Path(*rel.parts)
        dest.parent.mkdir(parents=True, exist_ok=True)
        if dest.is_symlink() or dest.exists():
            dest.unlink()
        if src.is_symlink():
            os.symlink(os.readlink(src), dest)
        else:
            shutil.copy2(src, dest)
