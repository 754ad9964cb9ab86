"""
Validation — Input validation and error handling utilities.

Provides consistent validation patterns for configuration values and
on-disk locations used by the synchronizer.

## Usage

    from mirrorsync.validation import validate_relative_path, ValidationError

    try:
        validate_relative_path(".github", "reserved_paths")
    except ValidationError as e:
        print(f"Validation failed: {e}")
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Dict, Optional


class ValidationError(Exception):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


def validate_path_exists(path: Path, description: str = "Path") -> None:
    """Validate that a path exists."""
    if not path.exists():
        raise ValidationError(f"{description} does not exist: {path}")


def validate_git_repository(path: Path, description: str = "Repository") -> None:
    """Validate that a directory is a git working tree."""
    validate_path_exists(path, description)

    if not path.is_dir():
        raise ValidationError(f"{description} is not a directory: {path}")

    if not (path / ".git").exists():
        raise ValidationError(
            f"{description} is not a git working tree: {path}",
            details={"path": str(path)},
        )


def validate_relative_path(value: str, field: str = "path") -> str:
    """
    Validate a repository-relative path prefix and return it normalized.

    Rejects absolute paths, parent traversal and empty values. Trailing
    slashes are dropped so ``.github/`` and ``.github`` compare equal.

    Raises:
        ValidationError: If the value is not a safe relative path
    """
    cleaned = value.strip().rstrip("/")
    if not cleaned or cleaned == ".":
        raise ValidationError("path must not be empty", field=field)

    path = PurePosixPath(cleaned)
    if path.is_absolute():
        raise ValidationError(f"path must be relative: {value}", field=field)
    if ".." in path.parts:
        raise ValidationError(f"path must not contain '..': {value}", field=field)

    return str(path)


def is_within(path: Path, parent: Path) -> bool:
    """Return True when ``path`` is ``parent`` or lies below it."""
    path = path.resolve()
    parent = parent.resolve()
    return path == parent or parent in path.parents
