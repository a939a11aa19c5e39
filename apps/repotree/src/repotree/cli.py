"""CLI for managing GitHub repository contents."""

import functools
import json
import logging
from pathlib import Path
from typing import Any

import click
from dotenv import find_dotenv, load_dotenv

from gh import GitHubAPIError

from .errors import RequestValidationError, describe_failure
from .models import DEFAULT_BRANCH, EntryKind, OperationResult, join_path
from .service import RepositoryManager

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 1


def setup_logging(verbose: int) -> None:
    """Setup logging."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def reports_errors(command):
    """Turn validation and GitHub errors into a message and exit code."""

    @functools.wraps(command)
    def wrapper(*args, **kwargs):
        try:
            return command(*args, **kwargs)
        except RequestValidationError as e:
            click.echo(f"Error: {e.message}", err=True)
            for detail in e.details:
                click.echo(f"  {detail}", err=True)
            raise SystemExit(2)
        except GitHubAPIError as e:
            click.echo(f"Error: {describe_failure(e)}", err=True)
            raise SystemExit(1)

    return wrapper


def finish(result: OperationResult) -> None:
    echo_json(result.model_dump(exclude_none=True))
    if not result.success:
        raise SystemExit(1)


branch_option = click.option(
    "-b", "--branch", default=DEFAULT_BRANCH, show_default=True, help="Branch to operate on"
)


# ============ CLI Group ============

@click.group()
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("--use-gh-cli", is_flag=True, help="Use gh cli credentials")
@click.option("--base-url", envvar="GITHUB_API_URL", help="GitHub API base URL")
@click.option("--retries", "-r", type=int, default=3, help="Retry attempts for reads")
@click.option("--timeout", type=float, default=30.0, show_default=True, help="Request timeout in seconds")
@click.option("-v", "--verbose", count=True, help="Verbosity (-v, -vv)")
@click.pass_context
def cli(
    ctx: click.Context,
    token: str | None,
    use_gh_cli: bool,
    base_url: str | None,
    retries: int,
    timeout: float,
    verbose: int,
) -> None:
    """Browse, move, rename and delete files in GitHub repositories."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    if "manager_factory" not in ctx.obj:
        ctx.obj["manager_factory"] = functools.partial(
            RepositoryManager,
            token=token,
            use_gh_cli=use_gh_cli,
            max_retries=retries,
            base_url=base_url,
            timeout=timeout,
        )


def get_manager(ctx: click.Context, **kwargs: Any) -> RepositoryManager:
    return ctx.obj["manager_factory"](**kwargs)


# ============ Browse Commands ============

@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.argument("path", default="")
@branch_option
@click.pass_context
@reports_errors
def ls(ctx, owner, repo, path, branch):
    """List a folder."""
    entries = get_manager(ctx).list_directory(owner, repo, path, branch)
    for entry in entries:
        marker = "/" if entry.is_dir else ""
        click.echo(f"{entry.content_id[:7]}  {entry.path}{marker}")


@cli.command()
@click.argument("owner")
@click.argument("repo")
@branch_option
@click.pass_context
@reports_errors
def folders(ctx, owner, repo, branch):
    """List every folder of a branch."""
    listing = get_manager(ctx).list_folders(owner, repo, branch)
    echo_json(listing.model_dump())
    if listing.truncated:
        click.echo("Warning: repository too large, folder list is incomplete", err=True)


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.pass_context
@reports_errors
def branches(ctx, owner, repo):
    """List branches."""
    for branch in get_manager(ctx).list_branches(owner, repo):
        click.echo(f"{branch.sha[:7]}  {branch.name}{'  (protected)' if branch.protected else ''}")


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.argument("path")
@branch_option
@click.option("--json", "as_json", is_flag=True, help="Print content id and metadata as JSON")
@click.pass_context
@reports_errors
def cat(ctx, owner, repo, path, branch, as_json):
    """Show a file."""
    view = get_manager(ctx).view_file(owner, repo, path, branch)
    if as_json:
        echo_json(view.model_dump())
    else:
        click.echo(view.content, nl=False)


# ============ Edit Commands ============

@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.argument("path")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@branch_option
@click.option("--sha", "content_id", help="Current content id (required to overwrite)")
@click.option("-m", "--message", help="Commit message")
@click.pass_context
@reports_errors
def put(ctx, owner, repo, path, source, branch, content_id, message):
    """Create or update PATH with the content of a local file."""
    result = get_manager(ctx).save_file(
        owner, repo, path, source.read_bytes(), branch, content_id=content_id, message=message
    )
    finish(result)


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.argument(
    "sources", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option("-p", "--prefix", default="", help="Folder to upload into ('' for root)")
@click.option("-m", "--message", help="Commit message for every file")
@branch_option
@click.option("-j", "--concurrency", type=int, default=DEFAULT_CONCURRENCY, show_default=True)
@click.pass_context
@reports_errors
def upload(ctx, owner, repo, sources, prefix, message, branch, concurrency):
    """Upload new local files, one commit each."""
    files = [
        {"path": join_path(prefix.strip("/"), source.name), "content": source.read_bytes()}
        for source in sources
    ]
    summary = get_manager(ctx, concurrency=concurrency).upload_files(
        owner, repo, files, branch, message=message
    )
    echo_json(summary.to_response())
    if summary.failed:
        raise SystemExit(1)


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.option("-f", "--file", "files", type=(str, str), multiple=True, metavar="PATH SHA", help="File to move")
@click.option("-d", "--dir", "dirs", multiple=True, metavar="PATH", help="Folder to move")
@click.option("-t", "--to", "destination", required=True, help="Destination folder ('' for root)")
@branch_option
@click.option("-j", "--concurrency", type=int, default=DEFAULT_CONCURRENCY, show_default=True)
@click.pass_context
@reports_errors
def mv(ctx, owner, repo, files, dirs, destination, branch, concurrency):
    """Move files and folders into a destination folder."""
    items = [{"path": path, "sha": sha, "type": EntryKind.FILE} for path, sha in files]
    items += [{"path": path, "type": EntryKind.DIRECTORY} for path in dirs]
    summary = get_manager(ctx, concurrency=concurrency).move(owner, repo, items, destination, branch)
    echo_json(summary.to_response())
    click.echo(
        f"\nMoved {summary.moved}, skipped {summary.skipped}, failed {summary.failed}", err=True
    )
    if summary.failed:
        raise SystemExit(1)


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.argument("path")
@click.argument("new_path")
@click.option("--sha", "content_id", required=True, help="Current content id")
@branch_option
@click.pass_context
@reports_errors
def rename(ctx, owner, repo, path, new_path, content_id, branch):
    """Rename a file within its folder."""
    finish(get_manager(ctx).rename(owner, repo, path, new_path, content_id, branch))


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.argument("path")
@click.option("--sha", "content_id", help="Current content id (files only)")
@click.option("-d", "--dir", "is_dir", is_flag=True, help="Delete a whole folder")
@branch_option
@click.pass_context
@reports_errors
def rm(ctx, owner, repo, path, content_id, is_dir, branch):
    """Delete a file or folder."""
    kind = EntryKind.DIRECTORY if is_dir else EntryKind.FILE
    finish(get_manager(ctx).delete(owner, repo, path, branch, kind=kind, content_id=content_id))


# ============ Pull Request Command ============

@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.option("--head", required=True, help="Branch with the changes")
@click.option("--base", default=DEFAULT_BRANCH, show_default=True, help="Branch to merge into")
@click.option("--title", required=True)
@click.option("--body", default="")
@click.pass_context
@reports_errors
def pr(ctx, owner, repo, head, base, title, body):
    """Open a pull request."""
    pull = get_manager(ctx).create_pull_request(owner, repo, title, head, base, body)
    echo_json(pull.model_dump())


# ============ Repository Commands ============

@cli.command()
@click.pass_context
@reports_errors
def repos(ctx):
    """List your repositories, most recently updated first."""
    for repository in get_manager(ctx).list_repositories():
        visibility = "private" if repository.private else "public"
        click.echo(f"{repository.full_name}  ({visibility})")


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.pass_context
@reports_errors
def readme(ctx, owner, repo):
    """Show the README of a repository."""
    view = get_manager(ctx).get_readme(owner, repo)
    if view is None:
        click.echo(f"No README in {owner}/{repo}", err=True)
        raise SystemExit(1)
    click.echo(view.content, nl=False)


@cli.command("check-name")
@click.argument("name")
@click.pass_context
@reports_errors
def check_name(ctx, name):
    """Check whether a repository name is still free."""
    check = get_manager(ctx).check_repo_name(name)
    echo_json(
        {
            "name": check.name,
            "exists": check.exists,
            "available": check.available,
            "message": check.message,
        }
    )


def main(**extra: Any) -> None:
    """Entry point: load .env from the working directory, then run the CLI."""
    # Before parsing, so .env values reach envvar-backed options
    load_dotenv(find_dotenv(usecwd=True))
    cli(**extra)


if __name__ == "__main__":
    main()
