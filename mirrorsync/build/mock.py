"""
Mock Build Publisher — Non-building publisher for dry runs and tests.

Logs what would be built without invoking docker.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional, Sequence

from ..config.models import RegistryConfig
from ..mirror.errors import BuildError
from .base import BuildPublisher
from .receipt import BuildReceipt
from .tags import compute_image_tags

logger = logging.getLogger(__name__)


class MockBuildPublisher(BuildPublisher):
    """
    Records every publish call and returns an ok receipt.

    Refs listed in ``fail_refs`` raise BuildError instead.
    """

    def __init__(
        self,
        registries: Sequence[RegistryConfig] = (),
        default_branch: str = "main",
        fail_refs: Optional[Iterable[str]] = None,
    ):
        self.registries = list(registries)
        self.default_branch = default_branch
        self.fail_refs = set(fail_refs or ())
        self.calls: List[str] = []
        self.prepared = False
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "mock"

    def prepare(self) -> None:
        self.prepared = True

    def publish(self, ref: str) -> BuildReceipt:
        with self._lock:
            self.calls.append(ref)

        if ref in self.fail_refs:
            raise BuildError("Simulated build failure", ref=ref)

        tags = compute_image_tags(ref, self.registries, self.default_branch)
        logger.info(f"[MOCK:build] Would build and push {ref}: {', '.join(tags) or '(no tags)'}",
                    extra={"ref": ref})
        return BuildReceipt.ok(ref, self.name, tags, details={"mock": True})
