"""CLI commands for mirror cache inspection"""

import json
from pathlib import Path

import click

from gitdelta.cli.utils.logging import logger
from gitdelta.config import get_mirror_cache_dir
from gitdelta.git import describe_cache


@click.group(name="cache")
def cache():
    """Inspect the local mirror cache."""
    pass


@cache.command("describe")
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    help="Mirror cache directory.",
    envvar="GITDELTA_CACHE_DIR",
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
def describe(cache_dir, as_json):
    """List the cached mirrors and their branch heads.

    Example:

      gitdelta cache describe --json
    """
    cache_path = Path(cache_dir) if cache_dir else get_mirror_cache_dir()
    mirrors = describe_cache(cache_path)

    if as_json:
        click.echo(json.dumps(mirrors, indent=2))
        return

    if not mirrors:
        logger.info(f"No mirrors in {cache_path}")
        return

    for mirror in mirrors:
        click.echo(f"{mirror['identity']} ({mirror['url']})")
        for branch, head in sorted(mirror["branches"].items()):
            click.echo(f"  {branch:<20} {head}")
