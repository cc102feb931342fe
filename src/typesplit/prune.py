"""Move mode: delete the migrated type directories from the source."""

from typing import Callable

from typesplit.git import GitError, GitOperations
from typesplit.models import BatchPolicy, PruneResult


class PruneError(Exception):
    """Source-side deletion failed."""

    def __init__(self, message: str, result: PruneResult):
        super().__init__(message)
        self.result = result


def removal_message(path: str) -> str:
    """Commit message for removing one type directory."""
    return f"Remove {path}"


class SourcePruner:
    """
    Deletes type directories from a source branch, one commit per type.

    The batch policy decides what a failure half way through leaves behind:
    ATOMIC puts the branch back where it was before the batch (or deletes
    it if this batch created it), BEST_EFFORT keeps the commits already
    made. Either way the working copy ends on oldref.
    """

    def __init__(
        self,
        git: GitOperations,
        policy: BatchPolicy = BatchPolicy.ATOMIC,
        on_removed: Callable[[str, str], None] | None = None,
    ):
        self.git = git
        self.policy = policy
        self.on_removed = on_removed

    def prune(self, branch: str, oldref: str, types: list[str], source_path: str) -> PruneResult:
        result = PruneResult(branch=branch, policy=self.policy)
        existed = self.git.branch_exists(branch)
        start = self.git.rev_parse(branch) if existed else None

        if not existed:
            self.git.create_branch(branch, oldref)
        self.git.checkout(branch)

        try:
            for name in types:
                path = f"{source_path}/{name}"
                result.failed = name
                self.git.remove_path(path)
                result.commits.append(self.git.commit(removal_message(path)))
                result.removed.append(name)
                result.failed = None
                if self.on_removed:
                    self.on_removed(name, result.commits[-1])
        except GitError as e:
            self._abort(branch, oldref, start, result)
            raise PruneError(f"Removing {result.failed} from {branch} failed: {e}", result)
        except BaseException:
            # Interrupted (Ctrl-C, forwarded signal): still leave the working copy on oldref
            self._abort(branch, oldref, start, result)
            raise

        self.git.checkout(oldref)
        return result

    def _abort(self, branch: str, oldref: str, start: str | None, result: PruneResult) -> None:
        if self.policy is BatchPolicy.ATOMIC and result.commits:
            if start is not None:
                self.git.update_ref(f"refs/heads/{branch}", start)
            result.rolled_back = True

        self.git.checkout(oldref, force=True)

        if self.policy is BatchPolicy.ATOMIC and start is None:
            self.git.delete_branch(branch, force=True)
            result.rolled_back = True
