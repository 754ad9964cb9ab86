"""
Tests for the CLI commands.

Uses Click's CliRunner to test commands without spawning subprocesses.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from mirrorsync.main import cli

from tests.conftest import INSERT, MARKER, requires_git

REGISTRY_YAML = """\
upstream_url: https://example.com/upstream.git
default_branch: main
build:
  registries:
    - url: docker.io
      image: owner/app
"""


def _write_config(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestTagsCommand:
    def test_default_branch_gets_latest(self, runner: CliRunner, tmp_path: Path):
        config = _write_config(tmp_path / "mirror-sync.yaml", REGISTRY_YAML)

        result = runner.invoke(cli, ["--config", str(config), "tags", "main"])

        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines() == [
            "docker.io/owner/app:main",
            "docker.io/owner/app:latest",
        ]

    def test_tag_ref(self, runner: CliRunner, tmp_path: Path):
        config = _write_config(tmp_path / "mirror-sync.yaml", REGISTRY_YAML)

        result = runner.invoke(cli, ["--config", str(config), "tags", "v1.0"])

        assert result.stdout.splitlines() == ["docker.io/owner/app:v1.0"]

    def test_invalid_config_reported(self, runner: CliRunner, tmp_path: Path):
        config = _write_config(tmp_path / "bad.yaml", "reserved_paths: [/etc]\n")

        result = runner.invoke(cli, ["--config", str(config), "tags", "main"])

        assert result.exit_code != 0
        assert "Invalid configuration" in result.output


class TestTriggerCommand:
    def test_dry_run(self, runner: CliRunner, tmp_path: Path):
        config = _write_config(tmp_path / "mirror-sync.yaml", REGISTRY_YAML)

        result = runner.invoke(
            cli, ["--config", str(config), "trigger", "v1.0", "v2.0", "--dry-run", "--json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["succeeded"] == ["v1.0", "v2.0"]
        assert data["failed"] == []

    def test_requires_refs(self, runner: CliRunner, tmp_path: Path):
        config = _write_config(tmp_path / "mirror-sync.yaml", REGISTRY_YAML)

        result = runner.invoke(cli, ["--config", str(config), "trigger"])

        assert result.exit_code == 2


class TestCheckConfigCommand:
    def test_failing_check_exits_nonzero(self, runner: CliRunner, tmp_path: Path):
        config = _write_config(
            tmp_path / "mirror-sync.yaml",
            "upstream_url: https://example.com/u.git\nexcluded_refs: [main]\n",
        )

        result = runner.invoke(cli, ["--config", str(config), "check-config", "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["ok"] is False
        checks = {c["name"]: c for c in data["checks"]}
        assert checks["default_branch"]["ok"] is False

    def test_human_output(self, runner: CliRunner, tmp_path: Path):
        config = _write_config(tmp_path / "mirror-sync.yaml", "upstream_url: ''\n")

        result = runner.invoke(cli, ["--config", str(config), "check-config"])

        assert "✗ upstream_url" in result.output
        assert "Setup Guide" in result.output


@requires_git
class TestSyncCommand:
    """End-to-end sync through the CLI."""

    def _config(self, tmp_path: Path, upstream_repo: Path, workspace: Path) -> Path:
        return _write_config(
            tmp_path / "mirror-sync.yaml",
            f"""\
upstream_url: {upstream_repo}
workspace_dir: {workspace}
upstream_dir: {tmp_path / "work" / "upstream"}
excluded_refs: [v0.8.1]
patches:
  - marker: '{MARKER}'
    insert: '{INSERT}'
build:
  registries:
    - image: owner/app
""",
        )

    def test_sync_writes_outputs_and_builds(
        self, runner: CliRunner, tmp_path: Path, upstream_repo: Path, workspace: Path
    ):
        config = self._config(tmp_path, upstream_repo, workspace)
        outputs = tmp_path / "github_output"
        report_file = tmp_path / "report.json"

        result = runner.invoke(cli, [
            "--config", str(config),
            "sync", "--build-dry-run",
            "--github-output", str(outputs),
            "--report", str(report_file),
            "--json",
        ])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["sync"]["updated_refs"] == ["main", "v1.0", "v2.0"]
        assert data["builds"]["succeeded"] == ["main", "v1.0", "v2.0"]

        lines = outputs.read_text().splitlines()
        assert 'changed=["main", "v1.0", "v2.0"]' in lines
        assert "has_changes=true" in lines
        assert json.loads(report_file.read_text())["failed_refs"] == []

    def test_second_sync_reports_no_changes(
        self, runner: CliRunner, tmp_path: Path, upstream_repo: Path, workspace: Path
    ):
        config = self._config(tmp_path, upstream_repo, workspace)
        runner.invoke(cli, ["--config", str(config), "sync", "--no-trigger"])
        outputs = tmp_path / "github_output"

        result = runner.invoke(cli, [
            "--config", str(config), "sync", "--build-dry-run", "--github-output", str(outputs),
        ])

        assert result.exit_code == 0, result.output
        assert "Updated: (nothing)" in result.output
        assert outputs.read_text().splitlines() == ["changed=[]", "has_changes=false"]

    def test_refs_command(
        self, runner: CliRunner, tmp_path: Path, upstream_repo: Path, workspace: Path
    ):
        config = self._config(tmp_path, upstream_repo, workspace)

        result = runner.invoke(cli, ["--config", str(config), "refs", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [r["name"] for r in data] == ["main", "v1.0", "v2.0"]
        assert data[1]["branch"] == "mirror/v1.0"

    def test_unreachable_upstream_aborts(self, runner: CliRunner, tmp_path: Path, workspace: Path):
        config = self._config(tmp_path, tmp_path / "nowhere", workspace)
        outputs = tmp_path / "github_output"

        result = runner.invoke(cli, [
            "--config", str(config), "sync", "--github-output", str(outputs),
        ])

        assert result.exit_code == 1
        assert "has_changes=false" in outputs.read_text()
