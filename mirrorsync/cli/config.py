"""
CLI config commands — configuration loading and checking.

Usage:
    python -m mirrorsync check-config [--json]
"""

from __future__ import annotations

import click

from ..config.loader import load_config
from ..config.models import SyncConfig
from ..validation import ConfigurationError


def get_config(ctx: click.Context) -> SyncConfig:
    """Load the configuration once per invocation."""
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config(ctx.obj.get("config_path"))
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from e
    return ctx.obj["config"]


@click.command("check-config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check_config(ctx: click.Context, as_json: bool) -> None:
    """Check configuration, tools and credentials."""
    import json as json_lib

    from ..config.validator import ConfigValidator

    config = get_config(ctx)
    results = ConfigValidator(config, base=ctx.obj["root"]).validate_all()
    failing = [r for r in results if not r.ok]

    if as_json:
        click.echo(json_lib.dumps(
            {"ok": not failing, "checks": [r.to_dict() for r in results]},
            indent=2,
        ))
    else:
        click.echo("\n📋 Mirror Sync Configuration\n")
        for result in results:
            if result.ok:
                click.secho(f"  ✓ {result.name}", fg="green", nl=False)
            else:
                click.secho(f"  ✗ {result.name}", fg="red", nl=False)
            click.echo(f" — {result.detail}")

        click.echo()
        click.secho(f"Summary: {len(results) - len(failing)} ok, {len(failing)} failing", bold=True)

        if failing:
            click.echo("\n📖 Setup Guide:\n")
            for result in failing:
                if result.guidance:
                    click.echo(f"  {result.name}:")
                    click.echo(f"    → {result.guidance}")

    if failing:
        ctx.exit(1)
