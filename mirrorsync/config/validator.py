"""
Configuration Validator — Check sync configuration and tooling.

Catches setups that would fail halfway through a run (missing tools,
missing credentials, an upstream clone inside the workspace) before any
ref is touched.

## Usage

    from mirrorsync.config.validator import ConfigValidator

    validator = ConfigValidator(config)
    for check in validator.validate_all():
        if not check.ok:
            print(f"{check.name}: {check.detail}")
            print(f"  → {check.guidance}")
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..validation import ValidationError, is_within, validate_git_repository
from .loader import resolve_paths
from .models import SyncConfig

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Outcome of one configuration check."""

    name: str
    ok: bool
    detail: str = ""
    guidance: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON output."""
        return {
            "name": self.name,
            "ok": self.ok,
            "detail": self.detail,
            "guidance": self.guidance,
        }


class ConfigValidator:
    """
    Validate a SyncConfig against the local machine.

    Each check returns a CheckResult; none of them raise.
    """

    def __init__(
        self,
        config: SyncConfig,
        base: Optional[Path] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.config = config
        self.paths = resolve_paths(config, base)
        self.which = which

    def check_git(self) -> CheckResult:
        path = self.which("git")
        if path:
            return CheckResult("git", True, path)
        return CheckResult("git", False, "git not found on PATH", "Install git")

    def check_docker(self) -> CheckResult:
        if not self.config.build.registries:
            return CheckResult("docker", True, "no registries configured, builds not used")
        path = self.which("docker")
        if path:
            return CheckResult("docker", True, path)
        return CheckResult(
            "docker", False, "docker not found on PATH",
            "Install docker with the buildx plugin, or drop build.registries",
        )

    def check_upstream_url(self) -> CheckResult:
        if self.config.upstream_url:
            return CheckResult("upstream_url", True, self.config.upstream_url)
        return CheckResult(
            "upstream_url", False, "not set",
            "Set upstream_url in mirror-sync.yaml or MIRROR_SYNC_UPSTREAM_URL",
        )

    def check_workspace(self) -> CheckResult:
        workspace = self.paths["workspace"]
        try:
            validate_git_repository(workspace, "Workspace")
        except ValidationError as e:
            if self.config.mirror_url:
                return CheckResult("workspace", True, f"{workspace} will be cloned from mirror_url")
            return CheckResult(
                "workspace", False, e.message,
                "Run inside a clone of the mirror repository, or set mirror_url",
            )
        return CheckResult("workspace", True, str(workspace))

    def check_upstream_dir(self) -> CheckResult:
        workspace = self.paths["workspace"]
        upstream = self.paths["upstream"]
        if is_within(upstream, workspace):
            return CheckResult(
                "upstream_dir", False,
                f"{upstream} lies inside the workspace and would be mirrored",
                "Point upstream_dir outside workspace_dir (default: sibling directory)",
            )
        return CheckResult("upstream_dir", True, str(upstream))

    def check_registry_credentials(self) -> CheckResult:
        build = self.config.build
        if not build.push or not build.registries:
            return CheckResult("registry_credentials", True, "not pushing")

        missing = [r.repository for r in build.registries if not r.has_credentials]
        if missing:
            return CheckResult(
                "registry_credentials", False,
                f"no credentials for: {', '.join(missing)}",
                "Set username and password_env (or BUILD_REGISTRY_<N>_USERNAME/PASSWORD)",
            )
        return CheckResult("registry_credentials", True, f"{len(build.registries)} registr(y/ies)")

    def check_default_branch(self) -> CheckResult:
        if self.config.default_branch in self.config.excluded_refs:
            return CheckResult(
                "default_branch", False,
                f"'{self.config.default_branch}' is in excluded_refs and will never be mirrored",
                "Remove it from excluded_refs unless that is intended",
            )
        return CheckResult("default_branch", True, self.config.default_branch)

    def validate_all(self) -> List[CheckResult]:
        """Run every check, in a stable order."""
        logger.debug(f"Validating config for workspace {self.paths['workspace']}")
        return [
            self.check_git(),
            self.check_docker(),
            self.check_upstream_url(),
            self.check_workspace(),
            self.check_upstream_dir(),
            self.check_registry_credentials(),
            self.check_default_branch(),
        ]
