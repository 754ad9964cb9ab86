"""
Tests for image tag policy and the docker build publisher.

docker itself is never run: subprocess.run is mocked and the ref checkout
is replaced by a directory prepared in tmp_path.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest import mock

import pytest
from pydantic import SecretStr

from mirrorsync.build.docker import DockerBuildPublisher
from mirrorsync.build.tags import compute_image_tags, sanitize_tag
from mirrorsync.config.models import BuildConfig, RegistryConfig
from mirrorsync.mirror.errors import BuildError


def _completed(returncode: int = 0, stdout: str = "", stderr: str = ""):
    return subprocess.CompletedProcess(
        args=["docker"], returncode=returncode, stdout=stdout, stderr=stderr,
    )


def _build_config(**overrides) -> BuildConfig:
    values = dict(
        build_args={"RUST_VERSION": "slim-bookworm"},
        cache_from="type=gha",
        cache_to="type=gha,mode=max",
        registries=[
            RegistryConfig(
                url="docker.io",
                image="owner/app",
                username="owner",
                password=SecretStr("s3cret"),
            )
        ],
    )
    values.update(overrides)
    return BuildConfig(**values)


def _fake_checkout(with_dockerfile: bool = True):
    def checkout(ref: str, dest: Path) -> Path:
        dest.mkdir(parents=True)
        if with_dockerfile:
            (dest / "Dockerfile").write_text("FROM scratch\n")
        return dest
    return checkout


class TestImageTags:
    """Tests for compute_image_tags() and sanitize_tag()."""

    def test_ref_tag(self):
        registries = [RegistryConfig(image="owner/app")]

        assert compute_image_tags("v1.0", registries) == ["docker.io/owner/app:v1.0"]

    def test_default_branch_also_latest(self):
        registries = [RegistryConfig(image="owner/app")]

        assert compute_image_tags("main", registries, "main") == [
            "docker.io/owner/app:main",
            "docker.io/owner/app:latest",
        ]

    def test_every_registry(self):
        registries = [
            RegistryConfig(image="owner/app"),
            RegistryConfig(url="ghcr.io", image="owner/app"),
        ]

        assert compute_image_tags("v2.0", registries) == [
            "docker.io/owner/app:v2.0",
            "ghcr.io/owner/app:v2.0",
        ]

    def test_no_registries(self):
        assert compute_image_tags("main", []) == []

    @pytest.mark.parametrize("ref,expected", [
        ("v1.0", "v1.0"),
        ("feature/login", "feature-login"),
        ("v1.0+build.5", "v1.0-build.5"),
        ("-rc", "rc"),
    ])
    def test_sanitize(self, ref, expected):
        assert sanitize_tag(ref) == expected

    def test_sanitize_truncates(self):
        assert len(sanitize_tag("v" * 300)) == 128

    def test_sanitize_rejects_empty(self):
        with pytest.raises(ValueError):
            sanitize_tag("...")


class TestDockerBuildPublisher:
    """Tests for DockerBuildPublisher."""

    def _publisher(self, **overrides) -> DockerBuildPublisher:
        return DockerBuildPublisher(
            _build_config(**overrides),
            source_url="https://example.com/mirror.git",
            default_branch="main",
        )

    def test_build_command(self, tmp_path: Path):
        publisher = self._publisher()

        args = publisher.build_command(tmp_path, ["docker.io/owner/app:v1.0"])

        assert args[:2] == ["buildx", "build"]
        assert args[args.index("--file") + 1] == str((tmp_path / "Dockerfile").resolve())
        assert args[args.index("--platform") + 1] == "linux/amd64,linux/arm64"
        assert args[args.index("--build-arg") + 1] == "RUST_VERSION=slim-bookworm"
        assert args[args.index("--tag") + 1] == "docker.io/owner/app:v1.0"
        assert args[args.index("--cache-from") + 1] == "type=gha"
        assert args[args.index("--cache-to") + 1] == "type=gha,mode=max"
        assert "--push" in args
        assert args[-1] == str(tmp_path.resolve())

    def test_build_command_without_push(self, tmp_path: Path):
        args = self._publisher(push=False).build_command(tmp_path, [])

        assert "--push" not in args

    def test_context_outside_checkout_rejected(self, tmp_path: Path):
        publisher = self._publisher(context="../elsewhere")

        with pytest.raises(BuildError):
            publisher.build_command(tmp_path / "src", [])

    @mock.patch("mirrorsync.build.docker.subprocess.run")
    def test_publish(self, mock_run):
        mock_run.return_value = _completed()
        publisher = self._publisher()

        with mock.patch.object(DockerBuildPublisher, "_checkout", side_effect=_fake_checkout()):
            receipt = publisher.publish("main")

        assert receipt.status == "ok"
        assert receipt.tags == ["docker.io/owner/app:main", "docker.io/owner/app:latest"]
        cmd = mock_run.call_args[0][0]
        assert cmd[:3] == ["docker", "buildx", "build"]
        assert "docker.io/owner/app:latest" in cmd

    @mock.patch("mirrorsync.build.docker.subprocess.run")
    def test_missing_dockerfile_skipped(self, mock_run):
        publisher = self._publisher()

        with mock.patch.object(
            DockerBuildPublisher, "_checkout", side_effect=_fake_checkout(with_dockerfile=False)
        ):
            receipt = publisher.publish("v0.8.1")

        assert receipt.status == "skipped"
        assert "Dockerfile" in receipt.details["skip_reason"]
        mock_run.assert_not_called()

    @mock.patch("mirrorsync.build.docker.subprocess.run")
    def test_build_failure_raises(self, mock_run):
        mock_run.return_value = _completed(returncode=1, stderr="ERROR: failed to solve")
        publisher = self._publisher()

        with mock.patch.object(DockerBuildPublisher, "_checkout", side_effect=_fake_checkout()):
            with pytest.raises(BuildError, match="failed to solve"):
                publisher.publish("v1.0")

    @mock.patch("mirrorsync.build.docker.subprocess.run")
    def test_docker_missing(self, mock_run):
        mock_run.side_effect = FileNotFoundError("docker")
        publisher = self._publisher()

        with mock.patch.object(DockerBuildPublisher, "_checkout", side_effect=_fake_checkout()):
            with pytest.raises(BuildError, match="not found"):
                publisher.publish("v1.0")

    @mock.patch("mirrorsync.build.docker.subprocess.run")
    def test_prepare_logs_in_with_stdin(self, mock_run):
        mock_run.return_value = _completed()

        self._publisher().prepare()

        cmd = mock_run.call_args[0][0]
        assert cmd == ["docker", "login", "docker.io", "--username", "owner", "--password-stdin"]
        assert mock_run.call_args[1]["input"] == "s3cret"
        assert "s3cret" not in cmd

    @mock.patch("mirrorsync.build.docker.subprocess.run")
    def test_prepare_skips_registries_without_credentials(self, mock_run):
        publisher = self._publisher(registries=[RegistryConfig(image="owner/app")])

        publisher.prepare()

        mock_run.assert_not_called()

    def test_prepare_push_without_registries(self):
        with pytest.raises(BuildError):
            self._publisher(registries=[]).prepare()

    @mock.patch("mirrorsync.build.docker.subprocess.run")
    def test_prepare_noop_without_push(self, mock_run):
        self._publisher(push=False, registries=[]).prepare()

        mock_run.assert_not_called()
