"""
Build Receipt — Result of one downstream build-and-publish.

Every triggered ref produces a receipt, regardless of success or failure,
so one failed build never hides the others.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ErrorDetails(BaseModel):
    """Details about a build failure."""

    code: str
    message: str


class BuildReceipt(BaseModel):
    """
    Result of a build-and-publish for one ref.

    Every publisher call produces a receipt.
    """

    status: Literal["ok", "skipped", "failed"]
    ref: str
    publisher: str
    tags: List[str] = Field(default_factory=list)
    duration_ms: int = 0
    ts_iso: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    details: Optional[Dict[str, Any]] = None
    error: Optional[ErrorDetails] = None

    @classmethod
    def ok(
        cls,
        ref: str,
        publisher: str,
        tags: List[str],
        details: Optional[Dict[str, Any]] = None,
    ) -> "BuildReceipt":
        """Create a successful receipt."""
        return cls(
            status="ok",
            ref=ref,
            publisher=publisher,
            tags=tags,
            details=details,
        )

    @classmethod
    def skipped(cls, ref: str, publisher: str, reason: str) -> "BuildReceipt":
        """Create a skipped receipt."""
        return cls(
            status="skipped",
            ref=ref,
            publisher=publisher,
            details={"skip_reason": reason},
        )

    @classmethod
    def failed(
        cls,
        ref: str,
        publisher: str,
        error_code: str,
        error_message: str,
    ) -> "BuildReceipt":
        """Create a failed receipt."""
        return cls(
            status="failed",
            ref=ref,
            publisher=publisher,
            error=ErrorDetails(code=error_code, message=error_message),
        )
