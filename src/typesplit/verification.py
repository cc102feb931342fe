"""Verification of rewritten histories."""

from typesplit.git import GitError, GitOperations
from typesplit.models import VerificationResult
from typesplit.pathfilter import PathFilter


class VerificationError(Exception):
    """Verification operation failed."""

    pass


class Verifier:
    """Checks that a rewritten branch carries nothing but the selected types."""

    def __init__(self, git: GitOperations):
        self.git = git

    def content_hash(self, ref: str = "HEAD") -> str:
        """Get the content hash for a ref."""
        return self.git.get_content_hash(ref)

    def verify_history(self, branch: str, path_filter: PathFilter) -> VerificationResult:
        """
        Walk every commit reachable from branch and collect paths the filter rejects.

        Trees shared between commits are only listed once.
        """
        try:
            commits = self.git.list_commits(f"refs/heads/{branch}")
            violations = []
            checked_trees: set[str] = set()

            for commit in commits:
                if commit.tree in checked_trees:
                    continue
                checked_trees.add(commit.tree)

                for entry in self.git.list_tree(commit.tree):
                    if not path_filter.matches(entry.path):
                        violations.append({"commit": commit.sha, "path": entry.path})

        except GitError as e:
            raise VerificationError(f"Failed to verify {branch}: {e}")

        return VerificationResult(
            passed=not violations,
            branch=branch,
            commits_checked=len(commits),
            violations=violations,
        )
