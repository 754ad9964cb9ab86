"""
Image Tags — Which image references a build of a ref publishes.

    docker.io/owner/app:<ref>       always
    docker.io/owner/app:latest      only for the default branch

Git ref names allow characters docker tags do not (``/``, ``+``...), so the
ref is mapped onto the tag alphabet [A-Za-z0-9_.-], max 128 characters.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from ..config.models import RegistryConfig

MAX_TAG_LENGTH = 128

_INVALID_TAG_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def sanitize_tag(ref: str) -> str:
    """Map a git ref name onto a valid docker tag."""
    tag = _INVALID_TAG_CHARS.sub("-", ref)
    # A tag may not start with '.' or '-'
    tag = tag.lstrip(".-")
    if not tag:
        raise ValueError(f"Ref {ref!r} has no characters usable in an image tag")
    return tag[:MAX_TAG_LENGTH]


def compute_image_tags(
    ref: str,
    registries: Sequence[RegistryConfig],
    default_branch: str = "main",
) -> List[str]:
    """Fully qualified image tags for ``ref``, in registry order."""
    tag = sanitize_tag(ref)
    tags: List[str] = []
    for registry in registries:
        tags.append(f"{registry.repository}:{tag}")
        if ref == default_branch:
            tags.append(f"{registry.repository}:latest")
    return tags
