"""Build a new set repository from glob patterns over the current type listing."""

from fnmatch import fnmatchcase
from pathlib import Path

from typesplit.git import GitError, GitOperations, init_bare, remote_is_empty
from typesplit.models import (
    SET_BRANCH,
    BatchPolicy,
    MigrationMode,
    MigrationRequest,
    RepositoryReference,
    type_path,
)


class SetBuildError(Exception):
    """Set construction failed."""

    pass


def list_types(git: GitOperations, source_path: str, ref: str = "HEAD") -> list[str]:
    """Type directories present at ref (the current listing, not historical)."""
    return sorted(git.list_subdirectories(source_path, ref))


def expand_types(patterns: list[str], available: list[str]) -> list[str]:
    """Resolve glob patterns to concrete type names, deduplicated, in pattern order."""
    selected: list[str] = []
    for pattern in patterns:
        matches = [name for name in available if fnmatchcase(name, pattern)]
        if not matches:
            raise SetBuildError(f"No type matches {pattern!r}")
        for name in matches:
            if name not in selected:
                selected.append(name)
    return selected


def prepare_destination(destination: RepositoryReference) -> None:
    """Make sure the destination exists and holds no refs yet."""
    path = destination.local_path
    if path is not None and not path.exists():
        init_bare(path)
        return

    try:
        empty = remote_is_empty(destination.resolve())
    except GitError as e:
        raise SetBuildError(f"Cannot read destination {destination}: {e}")
    if not empty:
        raise SetBuildError(f"Destination repository is not empty: {destination}")


def build_set_request(
    git: GitOperations,
    patterns: list[str],
    destination: RepositoryReference,
    source_prefix: str = "",
    move: bool = False,
    source_branch: str | None = None,
    batch_policy: BatchPolicy = BatchPolicy.ATOMIC,
    dry_run: bool = False,
    verbose: bool = False,
) -> MigrationRequest:
    """Turn a make-set invocation into a concrete migration request."""
    if move and not source_branch:
        raise SetBuildError("Moving types into a set requires a source branch (-B)")

    try:
        available = list_types(git, type_path(source_prefix))
    except GitError as e:
        raise SetBuildError(f"Cannot list types in {git.repo_path}: {e}")
    types = expand_types(patterns, available)

    return MigrationRequest(
        source=Path(git.repo_path),
        destination=destination,
        dest_branch=SET_BRANCH,
        types=types,
        source_prefix=source_prefix,
        dest_prefix="",
        mode=MigrationMode.MOVE if move else MigrationMode.COPY,
        source_branch=source_branch,
        batch_policy=batch_policy,
        dry_run=dry_run,
        verbose=verbose,
    )
