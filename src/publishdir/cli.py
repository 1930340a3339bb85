"""publish-dir CLI: publish a directory to a branch of a remote repository.

Every option can also be set through the environment variable a GitHub
Actions step exposes for it, so the command runs unchanged as a CI step.
"""

from __future__ import annotations

import click

from .config import (
    DEFAULT_CLONE_DEPTH,
    DEFAULT_COMMIT_EMAIL,
    DEFAULT_COMMIT_MESSAGE,
    DEFAULT_COMMIT_USERNAME,
    DEFAULT_SERVER_URL,
    Config,
)
from .exceptions import ConfigError, PublishError
from .publisher import DRY_RUN, publish


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _on_progress(msg: bytes) -> None:
    text = msg.decode(errors="replace")
    text = text.replace("\r", "\r\033[K")
    click.echo(text, nl=False)


def _print_changes(changes, *, err: bool = False) -> None:
    for c in changes:
        click.echo(f"  {c.kind:<7} {c.path}", err=err)
    click.echo(f"{len(changes)} path(s) changed.", err=err)


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--repository", envvar="INPUT_REPOSITORY", default=None,
              help="Target repository as owner/name (default: $GITHUB_REPOSITORY).")
@click.option("--branch", "-b", envvar="INPUT_BRANCH", required=True,
              help="Branch to publish to; created as an orphan if missing.")
@click.option("--folder", "-f", envvar="INPUT_FOLDER", required=True,
              type=click.Path(),
              help="Directory whose contents become the branch content.")
@click.option("--commit-username", envvar="INPUT_COMMIT_USERNAME",
              default=DEFAULT_COMMIT_USERNAME, show_default=True,
              help="Commit author name.")
@click.option("--commit-email", envvar="INPUT_COMMIT_EMAIL",
              default=DEFAULT_COMMIT_EMAIL, show_default=True,
              help="Commit author email.")
@click.option("--commit-message", "-m", envvar="INPUT_COMMIT_MESSAGE",
              default=DEFAULT_COMMIT_MESSAGE, show_default=True,
              help="Commit message.")
@click.option("--token", envvar="GITHUB_TOKEN", default=None,
              help="Token for clone and push (or set GITHUB_TOKEN).")
@click.option("--current-repository", envvar="GITHUB_REPOSITORY", default=None,
              hidden=True)
@click.option("--server-url", envvar="GITHUB_SERVER_URL",
              default=DEFAULT_SERVER_URL, show_default=True,
              help="Base URL of the git host.")
@click.option("--depth", "clone_depth", envvar="INPUT_CLONE_DEPTH",
              type=click.IntRange(min=0), default=DEFAULT_CLONE_DEPTH,
              show_default=True,
              help="Clone depth for an existing branch (0 = full history).")
@click.option("--dry-run", "-n", envvar="INPUT_DRY_RUN", is_flag=True, default=False,
              help="Show what would change without committing or pushing.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, repository, branch, folder, commit_username, commit_email,
         commit_message, token, current_repository, server_url, clone_depth,
         dry_run, verbose):
    """Publish the contents of FOLDER as the only content of BRANCH.

    The branch is cloned (or created as an orphan), emptied, refilled
    from the folder, committed and pushed.  Nothing is committed when the
    folder already matches the branch.

    \b
    Example:
      publish-dir --repository owner/site --branch gh-pages --folder public
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    config = Config(
        repository=repository,
        branch=branch,
        folder=folder,
        commit_username=commit_username,
        commit_email=commit_email,
        commit_message=commit_message,
        token=token,
        current_repository=current_repository,
        server_url=server_url,
        clone_depth=clone_depth,
    )
    try:
        config.validate()
    except ConfigError as exc:
        raise click.ClickException(f"Configuration error: {exc}")

    _status(ctx, f"Publishing {folder} to {branch}")
    try:
        result = publish(config, dry_run=dry_run, echo=click.echo, progress=_on_progress)
    except PublishError as exc:
        raise click.ClickException(str(exc))

    if result.outcome == DRY_RUN:
        _print_changes(result.changes)
        return
    if verbose and result.changes:
        _print_changes(result.changes, err=True)
    click.echo("Successfully published directory to branch")
