"""
CLI sync commands — run the mirror and inspect upstream refs.

Usage:
    python -m mirrorsync sync [--dry-run] [--only REF]... [--no-trigger]
                              [--build-dry-run] [--report FILE]
                              [--github-output FILE] [--json]
    python -m mirrorsync refs [--json]
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import click

from .config import get_config


def _echo_sync_report(report) -> None:
    icons = {
        "pushed": "⬆️ ",
        "no-change": "✓ ",
        "dry-run": "📝",
        "failed": "❌",
    }
    for cycle in report.cycles:
        state = cycle.state.value
        line = f"  {icons.get(state, '• ')} {cycle.ref.name}: {state}"
        if cycle.commit:
            line += f" ({cycle.commit[:12]})"
        if cycle.error:
            line += f" — {cycle.error}"
        click.echo(line)

    click.echo()
    if report.dry_run:
        click.echo(f"  Would update: {', '.join(report.pending_refs) or '(nothing)'}")
    else:
        click.echo(f"  Updated: {', '.join(report.updated_refs) or '(nothing)'}")
    if report.failed_refs:
        click.secho(f"  Failed:  {', '.join(report.failed_refs)}", fg="red")


def _write_outputs(report, report_file: Optional[str], github_output: Optional[str]) -> None:
    from ..mirror.report import write_github_output, write_report_json

    if report_file:
        write_report_json(Path(report_file), report)
    if github_output:
        write_github_output(Path(github_output), report)


@click.command("sync")
@click.option("--dry-run", is_flag=True, help="Detect changes without committing or pushing")
@click.option("--only", "only", multiple=True, help="Only process this ref (repeatable)")
@click.option("--trigger/--no-trigger", default=True, help="Build the updated refs afterwards")
@click.option("--build-dry-run", is_flag=True, help="Log builds instead of running docker")
@click.option("--report", "report_file", type=click.Path(dir_okay=False), help="Write a JSON run report")
@click.option("--github-output", type=click.Path(dir_okay=False), envvar="GITHUB_OUTPUT",
              help="Append step outputs (changed, has_changes) to this file")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sync(
    ctx: click.Context,
    dry_run: bool,
    only: Tuple[str, ...],
    trigger: bool,
    build_dry_run: bool,
    report_file: Optional[str],
    github_output: Optional[str],
    as_json: bool,
) -> None:
    """Mirror upstream refs into this repository."""
    import json as json_lib

    from ..mirror.errors import SyncError
    from ..mirror.synchronizer import MirrorSynchronizer

    config = get_config(ctx)
    synchronizer = MirrorSynchronizer.from_config(config, ctx.obj["root"])

    try:
        report = synchronizer.run(dry_run=dry_run, only=only or None)
    except SyncError as e:
        if e.report is not None:
            _write_outputs(e.report, report_file, github_output)
            if as_json:
                click.echo(json_lib.dumps({"sync": e.report.to_dict(), "builds": None}, indent=2))
        click.secho(f"✗ Sync aborted: {e}", fg="red", err=True)
        ctx.exit(1)

    _write_outputs(report, report_file, github_output)

    trigger_report = None
    if trigger and not dry_run:
        from ..build.trigger import DownstreamTrigger
        from .build import make_publisher

        if report.updated_refs:
            publisher = make_publisher(config, ctx.obj["root"], dry_run=build_dry_run)
            trigger_report = DownstreamTrigger(
                publisher, config.build.max_parallel
            ).fan_out(report.updated_refs)

    if as_json:
        click.echo(json_lib.dumps(
            {
                "sync": report.to_dict(),
                "builds": trigger_report.to_dict() if trigger_report else None,
            },
            indent=2,
        ))
    else:
        title = "Sync (dry run)" if dry_run else "Sync"
        click.echo(f"\n🔀 {title} {report.run_id}\n")
        _echo_sync_report(report)
        if trigger_report is not None:
            from .build import echo_trigger_report

            click.echo("\n🐳 Builds\n")
            echo_trigger_report(trigger_report)

    if not report.ok or (trigger_report is not None and not trigger_report.ok):
        ctx.exit(1)


@click.command("refs")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def refs(ctx: click.Context, as_json: bool) -> None:
    """Fetch upstream and list the refs that would be mirrored."""
    import json as json_lib

    from ..mirror.errors import SyncError
    from ..mirror.synchronizer import MirrorSynchronizer

    config = get_config(ctx)
    synchronizer = MirrorSynchronizer.from_config(config, ctx.obj["root"])

    try:
        selected = synchronizer.select_refs()
    except SyncError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json_lib.dumps(
            [{"name": r.name, "kind": r.kind.value, "branch": r.branch} for r in selected],
            indent=2,
        ))
        return

    for ref in selected:
        suffix = f"  → {ref.branch}" if ref.is_tag else ""
        click.echo(f"{ref.name:20} {ref.kind.value}{suffix}")
