"""gitdelta CLI"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from gitdelta import __version__
from gitdelta.cli.cache import cache
from gitdelta.cli.utils.logging import configure_logging, logger
from gitdelta.exceptions import RepositoryError
from gitdelta.model import RepositoryAccessData, RepositoryConfig
from gitdelta.repository import GitRepository


def _load_config(
    repository_url: Optional[str],
    config_file: Optional[str],
    branch: Optional[str],
    path: Optional[str],
    git: Optional[str],
    cache_dir: Optional[str],
) -> RepositoryConfig:
    overrides = {
        "git_capability": git,
        "cache_dir": Path(cache_dir) if cache_dir else None,
    }
    if config_file:
        config = RepositoryConfig.from_yaml(Path(config_file).read_text())
        access = config.access_data
        update = {}
        if repository_url:
            update["repository_url"] = repository_url
        if path:
            update["path_restriction"] = path
        if update:
            access = RepositoryAccessData(**{**access.model_dump(), **update})
        if branch:
            access = access.with_branch(branch)
        values = {k: v for k, v in overrides.items() if v is not None}
        return config.model_copy(update={"access_data": access, **values})

    if not repository_url:
        raise click.UsageError("Either --repository or --config is required")
    access = RepositoryAccessData(
        repository_url=repository_url,
        branch=branch or "master",
        path_restriction=path,
    )
    return RepositoryConfig.from_defaults(access, **overrides)


def repository_options(f):
    """Options shared by the commands that talk to a repository."""
    f = click.option(
        "--repository",
        "-r",
        "repository_url",
        type=str,
        default=None,
        help="Remote URL or local path of the repository.",
    )(f)
    f = click.option(
        "--cache-dir",
        type=click.Path(file_okay=False),
        help="Mirror cache directory.",
        envvar="GITDELTA_CACHE_DIR",
    )(f)
    f = click.option(
        "--git",
        "git",
        type=str,
        default=None,
        help="Path to a native git executable. Uses the embedded implementation if unset.",
        envvar="GITDELTA_GIT",
    )(f)
    f = click.option(
        "--config",
        "config_file",
        type=click.Path(exists=True, dir_okay=False),
        help="YAML file with a 'repository' section.",
    )(f)
    return f


@click.group()
@click.version_option(__version__, prog_name="gitdelta")
@click.option("--debug/--no-debug", default=False, help="Enable debug mode")
@click.pass_context
def cli(ctx, debug: bool):
    """
    Detect what changed in a git repository since a previous build.
    """
    ctx.ensure_object(dict)
    ctx.obj["DEBUG"] = debug
    configure_logging(debug)


@cli.command("detect")
@click.option("--branch", "-b", type=str, default=None, help="Branch to inspect.")
@click.option(
    "--previous",
    "-p",
    type=str,
    default=None,
    help="Revision recorded by the previous build. Omit for an initial detection.",
)
@click.option("--path", type=str, default=None, help="Only report commits touching this path.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@repository_options
def detect(
    repository_url, branch, previous, path, as_json, config_file, git, cache_dir
):
    """Print the new head revision and the changes since PREVIOUS.

    Example:

      gitdelta detect -r https://github.com/user/repo.git -b main -p 1a2b3c...
    """
    config = _load_config(repository_url, config_file, branch, path, git, cache_dir)
    try:
        result = GitRepository(config).collect_changes_since_last_build("cli", previous)
    except RepositoryError as e:
        logger.error(f"Change detection failed: {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.model_dump(), indent=2))
        return

    click.echo(result.new_revision)
    for change in result.changes:
        subject = change.comment.splitlines()[0] if change.comment else ""
        click.echo(f"{change.revision[:7]} {change.author}: {subject}")
    if result.skipped_commits:
        click.echo(f"... and {result.skipped_commits} more")


@cli.command("checkout")
@click.argument("revision")
@click.argument("target", type=click.Path(file_okay=False))
@repository_options
def checkout(repository_url, revision, target, config_file, git, cache_dir):
    """Replace the contents of TARGET with the tree of REVISION."""
    config = _load_config(repository_url, config_file, None, None, git, cache_dir)
    try:
        GitRepository(config).retrieve_source_code("cli", revision, Path(target))
    except RepositoryError as e:
        logger.error(f"Checkout failed: {e}")
        sys.exit(1)
    logger.info(f"Checked out {revision[:7]} to {target}")


cli.add_command(cache)

if __name__ == "__main__":
    cli(obj={})
