"""Push a rewritten branch to the destination repository."""

from typesplit.git import GitError, GitOperations
from typesplit.models import RepositoryReference


class PublishError(Exception):
    """Push to the destination failed."""

    pass


class Publisher:
    """Publishes a local branch under a new name in another repository."""

    def __init__(self, git: GitOperations):
        self.git = git

    def push(
        self,
        branch: str,
        destination: RepositoryReference,
        dest_branch: str,
        force: bool = False,
    ) -> str:
        """
        Create or update dest_branch in destination from the local branch.

        Local destinations are resolved to an absolute file:// URL first.
        Returns the URL that was pushed to. Rejections are not retried and
        the destination is never cleaned up: nothing in it was changed.
        """
        url = destination.resolve()
        refspec = f"refs/heads/{branch}:refs/heads/{dest_branch}"

        try:
            self.git.push(url, refspec, force=force)
        except GitError as e:
            raise PublishError(f"Failed to push to {destination} ({dest_branch}): {e}")

        return url
