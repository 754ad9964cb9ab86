"""
Docker Build Publisher — Build and push a mirrored ref with docker buildx.

For each ref:
1. shallow-clone the mirror at that ref into a private temp directory
2. skip the ref if it has no Dockerfile
3. docker buildx build --platform ... --tag ... [--push] <context>

Registry login happens once per fan-out in ``prepare()``; the token is fed
through --password-stdin and never appears on a command line.

Image construction, caching and authentication themselves belong to
docker; this publisher only invokes it.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Sequence

from ..config.models import BuildConfig
from ..mirror.errors import BuildError, GitCommandError
from ..mirror.git import DEFAULT_TIMEOUT, GitRepo
from ..validation import is_within
from .base import BuildPublisher
from .receipt import BuildReceipt
from .tags import compute_image_tags

logger = logging.getLogger(__name__)

LOGIN_TIMEOUT = 120


class DockerBuildPublisher(BuildPublisher):
    """Builds mirrored refs with ``docker buildx`` and pushes the images."""

    def __init__(
        self,
        build: BuildConfig,
        source_url: str,
        default_branch: str = "main",
        git_timeout: int = DEFAULT_TIMEOUT,
    ):
        self.build = build
        self.source_url = source_url
        self.default_branch = default_branch
        self.git_timeout = git_timeout

    @property
    def name(self) -> str:
        return "docker"

    # ─── Setup ──────────────────────────────────────────────

    def prepare(self) -> None:
        """Log in to every registry that has credentials."""
        if not self.build.push:
            return

        if not self.build.registries:
            raise BuildError("build.push is enabled but no registries are configured")

        for registry in self.build.registries:
            if not registry.has_credentials:
                logger.warning(f"[build] No credentials for {registry.url}, pushing unauthenticated")
                continue
            logger.info(f"[build] Logging in to {registry.url} as {registry.username}")
            self._docker(
                ["login", registry.url, "--username", registry.username, "--password-stdin"],
                input=registry.password.get_secret_value(),
                timeout=LOGIN_TIMEOUT,
            )

    # ─── Build ──────────────────────────────────────────────

    def build_command(self, checkout: Path, tags: Sequence[str]) -> List[str]:
        """The ``docker buildx build`` invocation for a checked-out ref."""
        context = (checkout / self.build.context).resolve()
        dockerfile = (checkout / self.build.dockerfile).resolve()
        for path in (context, dockerfile):
            if not is_within(path, checkout):
                raise BuildError(f"{path} lies outside the checkout")

        args = ["buildx", "build", "--file", str(dockerfile)]
        if self.build.platforms:
            args += ["--platform", ",".join(self.build.platforms)]
        for key, value in sorted(self.build.build_args.items()):
            args += ["--build-arg", f"{key}={value}"]
        for tag in tags:
            args += ["--tag", tag]
        if self.build.cache_from:
            args += ["--cache-from", self.build.cache_from]
        if self.build.cache_to:
            args += ["--cache-to", self.build.cache_to]
        if self.build.push:
            args.append("--push")
        args.append(str(context))
        return args

    def publish(self, ref: str) -> BuildReceipt:
        started = time.monotonic()
        tags = compute_image_tags(ref, self.build.registries, self.default_branch)

        with tempfile.TemporaryDirectory(prefix="mirrorsync-build-") as tmp:
            checkout = self._checkout(ref, Path(tmp) / "src")

            if not (checkout / self.build.dockerfile).is_file():
                logger.info(f"[build] {ref}: no {self.build.dockerfile}, skipping", extra={"ref": ref})
                return BuildReceipt.skipped(
                    ref, self.name, f"{self.build.dockerfile} not found at {ref}"
                )

            logger.info(f"[build] {ref}: building {', '.join(tags) or '(untagged)'}", extra={"ref": ref})
            self._docker(self.build_command(checkout, tags), timeout=self.build.timeout, ref=ref)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"[build] {ref}: done in {duration_ms}ms", extra={"ref": ref})

        receipt = BuildReceipt.ok(
            ref,
            self.name,
            tags,
            details={"pushed": self.build.push, "platforms": list(self.build.platforms)},
        )
        receipt.duration_ms = duration_ms
        return receipt

    # ─── Helpers ────────────────────────────────────────────

    def _checkout(self, ref: str, dest: Path) -> Path:
        try:
            GitRepo.clone(self.source_url, dest, branch=ref, depth=1, timeout=self.git_timeout)
        except GitCommandError as e:
            raise BuildError(f"Failed to check out {ref}: {e.message}", ref=ref) from e
        return dest

    def _docker(
        self,
        args: List[str],
        input: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        ref: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd = ["docker"] + args
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                input=input,
            )
        except subprocess.TimeoutExpired as e:
            raise BuildError(f"docker {args[0]} timed out after {timeout}s", ref=ref) from e
        except FileNotFoundError as e:
            raise BuildError("docker executable not found", ref=ref) from e

        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            summary = output.splitlines()[-1] if output else "no output"
            raise BuildError(
                f"docker {' '.join(args[:2])} failed ({result.returncode}): {summary}",
                ref=ref,
                details={"returncode": result.returncode, "output": output[-4000:]},
            )
        return result
