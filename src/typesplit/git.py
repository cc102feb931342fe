"""Git operations for typesplit."""

import hashlib
import os
import subprocess
import tempfile
from pathlib import Path

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from typesplit.models import EMPTY_TREE, CommitInfo, TreeEntry


class GitError(Exception):
    """Git operation failed."""

    pass


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def run_git(
    *args: str,
    cwd: Path | None = None,
    input: bytes | None = None,
    env: dict[str, str] | None = None,
) -> bytes:
    """Run a git command with an argument vector and return raw stdout."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            input=input,
            env=env,
            capture_output=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        stderr = _decode(e.stderr or b"").strip()
        raise GitError(f"git {args[0]} failed: {stderr or e}")
    except FileNotFoundError:
        raise GitError("git executable not found")
    return result.stdout


def remote_is_empty(url: str) -> bool:
    """Check whether a repository (local or remote) has no refs at all."""
    return not run_git("ls-remote", url).strip()


def init_bare(path: Path) -> None:
    """Create an empty bare repository."""
    try:
        Repo.init(path, bare=True, mkdir=True)
    except (GitCommandError, OSError) as e:
        raise GitError(f"Failed to create repository {path}: {e}")


class GitOperations:
    """Operations on a single working copy."""

    def __init__(self, repo_path: str | Path | None = None):
        self.repo_path = Path(repo_path).expanduser().resolve() if repo_path else Path.cwd()
        try:
            self.repo = Repo(self.repo_path)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise GitError(f"Not a git repository: {self.repo_path}")
        if self.repo.bare:
            raise GitError(f"Repository has no working copy: {self.repo_path}")

    def _run(self, *args: str, input: bytes | None = None, env: dict[str, str] | None = None) -> str:
        return _decode(run_git(*args, cwd=self.repo_path, input=input, env=env)).strip()

    # -- state -------------------------------------------------------------

    @property
    def current_ref(self) -> str:
        """The checked-out branch name, or the commit id when detached."""
        try:
            if self.repo.head.is_detached:
                return self.repo.head.commit.hexsha
            return self.repo.active_branch.name
        except ValueError:
            raise GitError(f"Repository has no commits: {self.repo_path}")

    @property
    def current_branch(self) -> str | None:
        if self.repo.head.is_detached:
            return None
        return self.repo.active_branch.name

    def is_clean(self) -> bool:
        """True when there are no modifications and no untracked files."""
        return not self.repo.is_dirty(index=True, working_tree=True, untracked_files=True)

    def branch_exists(self, name: str) -> bool:
        """Check if a branch exists."""
        return name in [h.name for h in self.repo.heads]

    def ref_exists(self, ref: str) -> bool:
        try:
            self._run("show-ref", "--verify", "--quiet", ref)
        except GitError:
            return False
        return True

    def rev_parse(self, ref: str) -> str:
        try:
            return self._run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
        except GitError:
            raise GitError(f"Unknown revision: {ref}")

    def list_refs(self, prefix: str) -> list[str]:
        output = self._run("for-each-ref", "--format=%(refname)", prefix)
        return [line for line in output.splitlines() if line]

    # -- branches and refs -------------------------------------------------

    def create_branch(self, name: str, from_ref: str = "HEAD") -> None:
        """Create a new branch."""
        try:
            self.repo.create_head(name, from_ref)
        except (GitCommandError, ValueError) as e:
            raise GitError(f"Failed to create branch {name}: {e}")

    def checkout(self, ref: str, force: bool = False) -> None:
        """Check out a branch or commit."""
        args = ["-q"]
        if force:
            args.append("-f")
        try:
            self.repo.git.checkout(*args, ref, "--")
        except GitCommandError as e:
            raise GitError(f"Failed to checkout {ref}: {e}")

    def delete_branch(self, name: str, force: bool = False) -> None:
        """Delete a branch."""
        try:
            self.repo.delete_head(name, force=force)
        except GitCommandError as e:
            raise GitError(f"Failed to delete branch {name}: {e}")

    def update_ref(self, ref: str, sha: str, old: str | None = None) -> None:
        args = ["update-ref", "-m", "typesplit", ref, sha]
        if old is not None:
            args.append(old)
        self._run(*args)

    def delete_ref(self, ref: str) -> None:
        self._run("update-ref", "-d", ref)

    def reset_hard(self, ref: str = "HEAD") -> None:
        """Hard reset to a ref."""
        try:
            self.repo.git.reset("--hard", "-q", ref)
        except GitCommandError as e:
            raise GitError(f"Failed to reset: {e}")

    # -- history plumbing --------------------------------------------------

    def list_commits(self, ref: str) -> list[CommitInfo]:
        """Commits reachable from ref, parents always before children."""
        output = self._run("log", "--reverse", "--topo-order", "--format=%H %T %P", ref, "--")
        commits = []
        for line in output.splitlines():
            sha, tree, *parents = line.split()
            commits.append(CommitInfo(sha=sha, tree=tree, parents=tuple(parents)))
        return commits

    def list_tree(self, treeish: str, pathspec: str | None = None) -> list[TreeEntry]:
        """Recursive listing of every blob in a tree, optionally narrowed to one path."""
        args = ["ls-tree", "-r", "-z", "--full-tree", treeish]
        if pathspec:
            args += ["--", pathspec]
        raw = run_git(*args, cwd=self.repo_path)

        entries = []
        for record in raw.split(b"\0"):
            if not record:
                continue
            meta, path = record.split(b"\t", 1)
            mode, obj_type, sha = _decode(meta).split()
            entries.append(TreeEntry(mode=mode, type=obj_type, sha=sha, path=_decode(path)))
        return entries

    def list_subdirectories(self, path: str, ref: str = "HEAD") -> list[str]:
        """Names of the directories directly below path at ref."""
        raw = run_git("ls-tree", "-z", "--full-tree", ref, "--", f"{path}/", cwd=self.repo_path)
        names = []
        for record in raw.split(b"\0"):
            if not record:
                continue
            meta, entry_path = record.split(b"\t", 1)
            if _decode(meta).split()[1] == "tree":
                names.append(_decode(entry_path).rsplit("/", 1)[-1])
        return names

    def write_tree(self, entries: list[TreeEntry]) -> str:
        """Write a tree object holding exactly the given entries."""
        with tempfile.TemporaryDirectory(prefix="typesplit-index-") as tmp:
            env = {**os.environ, "GIT_INDEX_FILE": str(Path(tmp) / "index")}
            self._run("read-tree", "--empty", env=env)
            if entries:
                index_info = b"".join(
                    _encode(f"{e.mode} {e.type} {e.sha}\t{e.path}") + b"\0" for e in entries
                )
                self._run("update-index", "-z", "--index-info", input=index_info, env=env)
            return self._run("write-tree", env=env)

    def read_commit(self, sha: str) -> bytes:
        return run_git("cat-file", "commit", sha, cwd=self.repo_path)

    def write_commit(self, raw: bytes) -> str:
        return self._run("hash-object", "-t", "commit", "-w", "--stdin", input=raw)

    def independent(self, commits: list[str]) -> list[str]:
        """Subset of commits not reachable from any other commit in the list."""
        if len(commits) < 2:
            return list(commits)
        output = self._run("merge-base", "--independent", *commits)
        survivors = set(output.split())
        return [c for c in commits if c in survivors]

    # -- working copy ------------------------------------------------------

    def remove_path(self, path: str) -> None:
        """Remove a tracked directory from the index and working tree."""
        try:
            self.repo.git.rm("-r", "-q", "--", path)
        except GitCommandError as e:
            raise GitError(f"Failed to remove {path}: {e}")

    def commit(self, message: str) -> str:
        """Commit the staged changes and return the commit hash."""
        try:
            self.repo.git.commit("-q", "-m", message)
        except GitCommandError as e:
            raise GitError(f"Failed to commit: {e}")
        return self.repo.head.commit.hexsha

    def push(self, url: str, refspec: str, force: bool = False) -> None:
        """Push a refspec to a fully-qualified repository URL."""
        args = ["push", "--quiet"]
        if force:
            args.append("--force")
        args += [url, refspec]
        self._run(*args)

    def get_content_hash(self, ref: str = "HEAD") -> str:
        """
        Get a content-only hash for verification.

        This hashes all file modes, paths and blob ids, excluding commit
        messages, timestamps and author metadata.
        """
        listing = run_git("ls-tree", "-r", ref, cwd=self.repo_path)
        if not listing:
            return hashlib.sha256(EMPTY_TREE.encode()).hexdigest()[:16]
        return hashlib.sha256(listing).hexdigest()[:16]
