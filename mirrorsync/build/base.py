"""
Build Publisher Base Class — Interface for downstream build collaborators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .receipt import BuildReceipt


class BuildPublisher(ABC):
    """
    Abstract base class for build-and-publish collaborators.

    Publishers build one mirrored ref and publish the result. They may be
    called concurrently for different refs.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The publisher identifier (e.g., 'docker', 'mock')."""
        pass

    def prepare(self) -> None:
        """One-time setup before a fan-out (e.g., registry login)."""
        return None

    @abstractmethod
    def publish(self, ref: str) -> BuildReceipt:
        """
        Build and publish ``ref`` and return a receipt.

        May raise; the trigger turns exceptions into failed receipts.
        """
        pass
