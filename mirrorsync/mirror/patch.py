"""
Patching — Deterministic one-line insertions into upstream files.

A patch inserts a fixed line immediately before a marker line, e.g. an
extra build instruction ahead of a Dockerfile's ENTRYPOINT:

    rule = PatchRule(
        target="Dockerfile",
        marker='ENTRYPOINT ["/rustic"]',
        insert="COPY --from=builder /etc/ssl/certs /etc/ssl/certs",
    )

``apply_patch`` is pure. When the marker is absent the content is
returned unchanged; when present the line is inserted exactly once, before
the first occurrence. Applying a patch to already patched content is a
no-op.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..config.models import PatchRule

logger = logging.getLogger(__name__)


def _line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n"):
        return "\n"
    return ""


def apply_patch(content: str, marker: str, insert: str) -> str:
    """Return ``content`` with ``insert`` placed on the line before ``marker``."""
    marker = marker.strip()
    insert_stripped = insert.strip()
    lines = content.splitlines(keepends=True)

    for index, line in enumerate(lines):
        if line.strip() != marker:
            continue

        if index > 0 and lines[index - 1].strip() == insert_stripped:
            return content

        # Reuse the file's own newline convention
        newline = _line_ending(line) or (_line_ending(lines[0]) if index > 0 else "") or "\n"
        lines.insert(index, insert + newline)
        return "".join(lines)

    return content


def apply_patch_file(path: Path, rule: PatchRule) -> bool:
    """
    Apply ``rule`` to the file at ``path`` in place.

    Returns True if the file was modified. A missing file is not an error.
    """
    if not path.is_file():
        logger.debug(f"[patch] {rule.target} not present, skipping")
        return False

    # newline="" keeps CRLF files byte-identical outside the inserted line
    with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
        original = f.read()

    patched = apply_patch(original, rule.marker, rule.insert)
    if patched == original:
        logger.debug(f"[patch] {rule.target}: marker not found or already patched")
        return False

    with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
        f.write(patched)

    logger.info(f"[patch] {rule.target}: inserted line before {rule.marker!r}")
    return True
