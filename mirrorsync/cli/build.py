"""
CLI build commands — trigger image builds for mirrored refs.

Usage:
    python -m mirrorsync trigger REF... [--dry-run] [--json]
    python -m mirrorsync tags REF
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import click

from ..build.base import BuildPublisher
from ..build.trigger import TriggerReport
from ..config.models import SyncConfig
from .config import get_config


def make_publisher(config: SyncConfig, root: Path, dry_run: bool = False) -> BuildPublisher:
    """The docker publisher, or the mock one for dry runs."""
    if dry_run:
        from ..build.mock import MockBuildPublisher

        return MockBuildPublisher(config.build.registries, config.default_branch)

    from ..build.docker import DockerBuildPublisher
    from ..config.loader import resolve_paths
    from ..mirror.git import GitRepo

    source_url: Optional[str] = config.build.source_url or config.mirror_url
    if not source_url:
        workspace = resolve_paths(config, root)["workspace"]
        source_url = GitRepo(workspace).remote_url(config.remote)
    if not source_url:
        raise click.ClickException(
            "Cannot tell where to check refs out from: set build.source_url or mirror_url"
        )

    return DockerBuildPublisher(
        config.build,
        source_url,
        default_branch=config.default_branch,
        git_timeout=config.git_timeout,
    )


def echo_trigger_report(report: TriggerReport) -> None:
    if not report.receipts:
        click.echo("  No builds triggered.")
        return

    for receipt in report.receipts:
        if receipt.status == "ok":
            click.secho(f"  ✅ {receipt.ref}", fg="green", nl=False)
            click.echo(f" — {', '.join(receipt.tags) or 'built'}")
        elif receipt.status == "skipped":
            reason = (receipt.details or {}).get("skip_reason", "")
            click.secho(f"  ⏭  {receipt.ref}", fg="yellow", nl=False)
            click.echo(f" — {reason}")
        else:
            message = receipt.error.message if receipt.error else "unknown error"
            click.secho(f"  ❌ {receipt.ref} — {message}", fg="red")


@click.command("trigger")
@click.argument("refs", nargs=-1, required=True)
@click.option("--dry-run", is_flag=True, help="Log what would be built without running docker")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def trigger(ctx: click.Context, refs: Tuple[str, ...], dry_run: bool, as_json: bool) -> None:
    """Build and publish images for the given refs."""
    import json as json_lib

    from ..build.trigger import DownstreamTrigger

    config = get_config(ctx)
    publisher = make_publisher(config, ctx.obj["root"], dry_run=dry_run)
    report = DownstreamTrigger(publisher, config.build.max_parallel).fan_out(refs)

    if as_json:
        click.echo(json_lib.dumps(report.to_dict(), indent=2))
    else:
        click.echo(f"\n🐳 Builds ({publisher.name})\n")
        echo_trigger_report(report)

    if not report.ok:
        ctx.exit(1)


@click.command("tags")
@click.argument("ref")
@click.pass_context
def tags(ctx: click.Context, ref: str) -> None:
    """Print the image tags a build of REF would publish."""
    from ..build.tags import compute_image_tags

    config = get_config(ctx)
    try:
        image_tags = compute_image_tags(ref, config.build.registries, config.default_branch)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if not image_tags:
        click.echo("No registries configured.", err=True)
        return
    for tag in image_tags:
        click.echo(tag)
