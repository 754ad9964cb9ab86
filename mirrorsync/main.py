"""
Mirror Sync — CLI Entry Point

Usage:
    python -m mirrorsync sync [--dry-run]
    python -m mirrorsync refs
    python -m mirrorsync trigger v1.0 v2.0
    python -m mirrorsync tags main
    python -m mirrorsync check-config
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from typing import Optional

import click

from .cli.build import tags, trigger
from .cli.config import check_config
from .cli.sync import refs, sync
from .logging_config import setup_logging

# Initialize logging
setup_logging()


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="MIRROR_SYNC_CONFIG",
    help="Path to mirror-sync.yaml",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """Mirror Sync — Patched mirror of an upstream repository."""
    if verbose:
        setup_logging(level="DEBUG")
    ctx.ensure_object(dict)
    ctx.obj["root"] = Path.cwd()
    ctx.obj["config_path"] = config_path


cli.add_command(sync)
cli.add_command(refs)
cli.add_command(trigger)
cli.add_command(tags)
cli.add_command(check_config)


if __name__ == "__main__":
    cli()
