"""
Run the CLI directly.

Usage:
    python -m mirrorsync sync
    python -m mirrorsync check-config
"""

from .main import cli


if __name__ == "__main__":
    cli()
