"""Migration engine: filter, rewrite, publish and optionally prune the source."""

from pathlib import Path
from typing import Callable

from typesplit import display
from typesplit.git import GitError, GitOperations
from typesplit.models import (
    BatchPolicy,
    MigrationMode,
    MigrationRequest,
    MigrationResult,
    RepositoryReference,
)
from typesplit.pathfilter import PathFilter, compile_filter
from typesplit.prune import PruneError, SourcePruner
from typesplit.publish import PublishError, Publisher
from typesplit.rewrite import HistoryRewriter, RewriteError
from typesplit.tempbranch import TemporaryBranch, exit_on_signals
from typesplit.verification import VerificationError, Verifier


class EngineError(Exception):
    """Engine operation failed."""

    pass


class MigrationEngine:
    """
    Runs one copy or move of a set of type directories.

    Order of events: check preconditions, compile the filter, rewrite a
    temporary branch, verify it, push it, drop the temporary branch and,
    in move mode only, delete the originals on the source branch.
    """

    def __init__(
        self,
        git: GitOperations,
        request: MigrationRequest,
        on_progress: Callable[[int, int, str], None] | None = None,
    ):
        self.git = git
        self.request = request
        self.on_progress = on_progress
        self.verifier = Verifier(git)
        self.publisher = Publisher(git)

    def check_preconditions(self) -> None:
        """Fail before touching any ref if the request cannot succeed."""
        request = self.request

        if not self.git.is_clean():
            raise EngineError(
                f"Working copy of {self.git.repo_path} has uncommitted changes or untracked files"
            )
        if not request.dest_branch:
            raise EngineError("No destination branch given")
        if request.mode is MigrationMode.MOVE and not request.prune_branch:
            raise EngineError("Move mode requires a source branch")

        try:
            self.git.current_ref  # raises on a repository without commits
            available = set(self.git.list_subdirectories(request.source_path))
        except GitError as e:
            raise EngineError(str(e)) from e

        missing = [name for name in request.types if name not in available]
        if missing:
            raise EngineError(
                f"Type directory not found in {request.source_path}: {', '.join(missing)}"
            )

    def run(self) -> MigrationResult | None:
        """Run the migration. Returns None when there is nothing to do."""
        request = self.request
        if not request.types:
            return None

        self.check_preconditions()
        try:
            path_filter = compile_filter(request.types, request.source_path)
            dest_filter = compile_filter(request.types, request.dest_path)
        except ValueError as e:
            raise EngineError(str(e)) from e

        result = MigrationResult(request=request, filter_pattern=path_filter.pattern)
        if request.dry_run:
            display.print_plan(request, path_filter.pattern)
            return result

        display.print_header(request)

        # Spans the removal step too, which runs after the temporary branch is gone
        with exit_on_signals():
            self._publish(result, path_filter, dest_filter)

            if request.mode is MigrationMode.MOVE:
                result.prune = self._prune_source(result.oldref)

        return result

    def _publish(self, result: MigrationResult, path_filter: PathFilter, dest_filter: PathFilter) -> None:
        request = self.request
        try:
            with TemporaryBranch(self.git) as temp:
                result.oldref = temp.oldref

                rewriter = HistoryRewriter(
                    self.git,
                    path_filter,
                    relocate_to=request.dest_path if request.relocates else None,
                    on_progress=self.on_progress,
                )
                result.rewrite = rewriter.rewrite(temp.name)
                display.print_step(
                    f"Rewrote {result.rewrite.commits_seen} commits, "
                    f"kept {result.rewrite.commits_kept}"
                )

                result.verification = self.verifier.verify_history(temp.name, dest_filter)
                if not result.verification.passed:
                    raise EngineError(result.verification.diagnosis)
                result.content_hash = self.verifier.content_hash(temp.ref)

                result.destination_url = self.publisher.push(
                    temp.name, request.destination, request.dest_branch, force=request.force
                )
                display.print_step(f"Pushed {request.dest_branch} to {request.destination}")

        except (GitError, RewriteError, VerificationError, PublishError) as e:
            raise EngineError(str(e)) from e

    def _prune_source(self, oldref: str):
        request = self.request

        def on_removed(name: str, commit: str) -> None:
            display.print_step(f"Removed {request.source_path}/{name} ({commit[:8]})")

        pruner = SourcePruner(self.git, request.batch_policy, on_removed=on_removed)
        try:
            return pruner.prune(request.prune_branch, oldref, request.types, request.source_path)
        except PruneError as e:
            if e.result.commits and not e.result.rolled_back:
                display.print_warning(
                    f"{len(e.result.commits)} removal commit(s) remain on {e.result.branch}"
                )
            raise EngineError(str(e)) from e
        except GitError as e:
            raise EngineError(str(e)) from e


def create_engine(
    source: str | Path,
    destination: str,
    dest_branch: str,
    types: list[str],
    source_prefix: str = "",
    dest_prefix: str = "",
    mode: MigrationMode = MigrationMode.COPY,
    source_branch: str | None = None,
    batch_policy: BatchPolicy = BatchPolicy.ATOMIC,
    force: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
    on_progress: Callable[[int, int, str], None] | None = None,
) -> MigrationEngine:
    """Create a configured migration engine, resolving repository paths once."""
    try:
        git = GitOperations(source)
    except GitError as e:
        raise EngineError(str(e)) from e

    request = MigrationRequest(
        source=git.repo_path,
        destination=RepositoryReference.at(destination),
        dest_branch=dest_branch,
        types=list(types),
        source_prefix=source_prefix,
        dest_prefix=dest_prefix,
        mode=mode,
        source_branch=source_branch,
        batch_policy=batch_policy,
        force=force,
        dry_run=dry_run,
        verbose=verbose,
    )
    return MigrationEngine(git, request, on_progress=on_progress)
