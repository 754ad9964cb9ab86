"""
Build — Downstream build-and-publish for refs the mirror updated.
"""

from .base import BuildPublisher
from .docker import DockerBuildPublisher
from .mock import MockBuildPublisher
from .receipt import BuildReceipt
from .tags import compute_image_tags, sanitize_tag
from .trigger import DownstreamTrigger, TriggerReport

__all__ = [
    "BuildPublisher",
    "BuildReceipt",
    "DockerBuildPublisher",
    "DownstreamTrigger",
    "MockBuildPublisher",
    "TriggerReport",
    "compute_image_tags",
    "sanitize_tag",
]
