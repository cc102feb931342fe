"""CLI for typesplit."""

import json
import sys
from contextlib import nullcontext
from typing import Callable

import rich_click as click

from typesplit import __version__, display

# Configure rich-click for pretty help output
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.MAX_WIDTH = 100
click.rich_click.STYLE_OPTION = "bold cyan"
click.rich_click.STYLE_ARGUMENT = "bold cyan"
click.rich_click.STYLE_COMMAND = "bold green"
click.rich_click.STYLE_SWITCH = "bold yellow"
from typesplit.engine import EngineError, MigrationEngine, create_engine
from typesplit.git import GitError, GitOperations
from typesplit.models import BatchPolicy, MigrationMode, RepositoryReference
from typesplit.report import serialize_result
from typesplit.sets import SetBuildError, build_set_request, prepare_destination


def _fail(message: str) -> None:
    display.print_error(message)
    sys.exit(1)


def _require(value: str | None, flag: str, what: str) -> None:
    if not value:
        _fail(f"{what} is required ({flag})")


def source_options(f):
    """Options shared by every subcommand."""
    f = click.option(
        "--json", "json_output", is_flag=True,
        help="Print the final result as JSON instead of the summary table."
    )(f)
    f = click.option(
        "--verbose", "-v", is_flag=True,
        help="Show a progress bar while history is rewritten."
    )(f)
    f = click.option(
        "--dry-run", is_flag=True,
        help="Resolve types and compile the path filter, then stop. "
             "Nothing is created, rewritten or pushed."
    )(f)
    f = click.option(
        "--dest", "-d", "dest_repo", default=None, metavar="REPO",
        help="Destination repository: a local path or a remote URL."
    )(f)
    f = click.option(
        "--src-prefix", "-P", "src_prefix", default="", metavar="PATH",
        help="Directory holding `type/` in the source. Defaults to the repository root."
    )(f)
    f = click.option(
        "--src", "-s", "src_repo", default=None, metavar="REPO",
        help="Source working copy. Must be clean: no changes, no untracked files."
    )(f)
    return f


def batch_policy_option(f):
    return click.option(
        "--batch-policy", type=click.Choice([p.value for p in BatchPolicy]),
        default=BatchPolicy.ATOMIC.value, show_default=True,
        help="What a failure while deleting types from the source leaves behind: "
             "`atomic` restores the source branch, `best-effort` keeps the "
             "removal commits made so far."
    )(f)


def _rewrite_progress(progress) -> Callable[[int, int, str], None]:
    """Engine callback that drives a rich progress bar, added on the first commit."""
    task = None

    def on_progress(step: int, total: int, sha: str) -> None:
        nonlocal task
        if task is None:
            task = progress.add_task("Rewriting history", total=total)
        progress.update(task, completed=step, total=total)

    return on_progress


def _finish(engine: MigrationEngine, json_output: bool) -> None:
    """Run the engine and report the outcome."""
    quiet = display.console.quiet
    if json_output:
        display.console.quiet = True

    request = engine.request
    show_progress = request.verbose and not request.dry_run and not json_output
    progress = display.create_progress() if show_progress else nullcontext()

    try:
        with progress:
            if show_progress:
                engine.on_progress = _rewrite_progress(progress)
            result = engine.run()
    except EngineError as e:
        _fail(str(e))
    finally:
        display.console.quiet = quiet

    if result is None:
        display.print_info("No types given, nothing to do")
        return

    if json_output:
        print(json.dumps(serialize_result(result), indent=2))
    elif not result.request.dry_run:
        display.print_summary(result)


def _migrate(
    mode: MigrationMode,
    src_repo: str | None,
    src_prefix: str,
    dest_repo: str | None,
    dest_prefix: str,
    branch: str | None,
    src_branch: str | None,
    types: tuple[str, ...],
    batch_policy: str,
    force: bool,
    dry_run: bool,
    verbose: bool,
    json_output: bool,
) -> None:
    _require(src_repo, "-s", "Source repository")
    _require(dest_repo, "-d", "Destination repository")
    _require(branch, "-b", "Destination branch")

    if not types:
        display.print_info("No types given, nothing to do")
        return

    try:
        engine = create_engine(
            source=src_repo,
            destination=dest_repo,
            dest_branch=branch,
            types=list(types),
            source_prefix=src_prefix,
            dest_prefix=dest_prefix,
            mode=mode,
            source_branch=src_branch,
            batch_policy=BatchPolicy(batch_policy),
            force=force,
            dry_run=dry_run,
            verbose=verbose,
        )
    except EngineError as e:
        _fail(str(e))

    _finish(engine, json_output)


@click.group()
@click.version_option(__version__, prog_name="typesplit")
def cli():
    """**typesplit** - move configuration types between repositories, history included.

    Extracts `<prefix>/type/<name>` directories from a source repository,
    rewrites the full history so that only those paths remain, and pushes
    the result to a branch of a destination repository.

    **Examples:**

        typesplit copy -s . -d ../types -b import __nginx __php

        typesplit move -s . -d git@host:types.git -b import -B cleanup __nginx

        typesplit make-set -m -s . -B split-web -d ../web-types '__web*'

    The source working copy is never left on a temporary branch: whatever
    happens, it is returned to the branch it started on.
    """


@cli.command()
@source_options
@click.option(
    "--dest-prefix", "-p", "dest_prefix", default="", metavar="PATH",
    help="Directory to hold `type/` in the destination. Defaults to the repository root."
)
@click.option(
    "--branch", "-b", default=None, metavar="NAME",
    help="Branch to create or update in the destination."
)
@click.option(
    "--force", is_flag=True,
    help="Force-update the destination branch instead of requiring a fast-forward."
)
@click.argument("types", nargs=-1, metavar="TYPE...")
def copy(src_repo, src_prefix, dest_repo, dest_prefix, branch, force, types,
         dry_run, verbose, json_output):
    """Copy types, with their history, into a destination branch.

    The source repository keeps everything it had.
    """
    _migrate(
        MigrationMode.COPY, src_repo, src_prefix, dest_repo, dest_prefix, branch,
        None, types, BatchPolicy.ATOMIC.value, force, dry_run, verbose, json_output,
    )


@cli.command()
@source_options
@click.option(
    "--dest-prefix", "-p", "dest_prefix", default="", metavar="PATH",
    help="Directory to hold `type/` in the destination. Defaults to the repository root."
)
@click.option(
    "--branch", "-b", default=None, metavar="NAME",
    help="Branch to create or update in the destination."
)
@click.option(
    "--src-branch", "-B", "src_branch", default=None, metavar="NAME",
    help="Source branch that receives the removal commits. Defaults to the -b value."
)
@click.option(
    "--force", is_flag=True,
    help="Force-update the destination branch instead of requiring a fast-forward."
)
@batch_policy_option
@click.argument("types", nargs=-1, metavar="TYPE...")
def move(src_repo, src_prefix, dest_repo, dest_prefix, branch, src_branch, force,
         batch_policy, types, dry_run, verbose, json_output):
    """Copy types, then delete them from the source.

    After a successful push, the source branch gets one commit per type,
    each removing that type's directory.
    """
    _migrate(
        MigrationMode.MOVE, src_repo, src_prefix, dest_repo, dest_prefix, branch,
        src_branch, types, batch_policy, force, dry_run, verbose, json_output,
    )


@cli.command("make-set")
@source_options
@click.option(
    "--move", "-m", "move_types", is_flag=True,
    help="Delete the selected types from the source after the push."
)
@click.option(
    "--src-branch", "-B", "src_branch", default=None, metavar="NAME",
    help="Source branch that receives the removal commits. Required with -m."
)
@batch_policy_option
@click.argument("patterns", nargs=-1, metavar="TYPE-GLOB...")
def make_set(src_repo, src_prefix, dest_repo, move_types, src_branch, batch_policy,
             patterns, dry_run, verbose, json_output):
    """Populate an empty repository with every type matching the globs.

    Globs are matched against the types present in the source right now.
    The destination branch is always `main`; a local destination that does
    not exist yet is created as a bare repository.
    """
    _require(src_repo, "-s", "Source repository")
    _require(dest_repo, "-d", "Destination repository")
    if move_types:
        _require(src_branch, "-B", "Source branch")

    if not patterns:
        display.print_info("No types given, nothing to do")
        return

    try:
        git = GitOperations(src_repo)
        request = build_set_request(
            git,
            list(patterns),
            RepositoryReference.at(dest_repo),
            source_prefix=src_prefix,
            move=move_types,
            source_branch=src_branch,
            batch_policy=BatchPolicy(batch_policy),
            dry_run=dry_run,
            verbose=verbose,
        )
        engine = MigrationEngine(git, request)
        engine.check_preconditions()
        if not dry_run:
            prepare_destination(request.destination)
    except (GitError, SetBuildError, EngineError) as e:
        _fail(str(e))

    _finish(engine, json_output)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
