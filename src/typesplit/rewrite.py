"""History rewrite: keep only the selected type directories in every commit."""

from typing import Callable

from typesplit.git import GitError, GitOperations
from typesplit.models import EMPTY_TREE, CommitInfo, RewriteResult, TreeEntry, backup_ref
from typesplit.pathfilter import PathFilter


# Headers git commit-tree would write itself; anything else refers to the old content
_KEPT_HEADERS = (b"author", b"committer", b"encoding")


class RewriteError(Exception):
    """History rewrite failed."""

    pass


def rebuild_commit(raw: bytes, tree: str, parents: list[str]) -> bytes:
    """Replace tree and parents of a raw commit object, keeping identity and message."""
    header, sep, message = raw.partition(b"\n\n")
    if not sep:
        header, message = raw.rstrip(b"\n"), b""

    kept = []
    current = None
    for line in header.split(b"\n"):
        if line.startswith(b" "):
            # Continuation of a multi-line header such as gpgsig
            if current in _KEPT_HEADERS:
                kept.append(line)
            continue
        current = line.split(b" ", 1)[0]
        if current in _KEPT_HEADERS:
            kept.append(line)

    lines = [b"tree " + tree.encode()]
    lines += [b"parent " + p.encode() for p in parents]
    lines += kept
    return b"\n".join(lines) + b"\n\n" + message


class HistoryRewriter:
    """
    Rewrite a branch in place so it only carries paths matched by a filter.

    Commits are processed parents first. For each one the tree is filtered
    (and optionally relocated), parents are mapped to their rewritten
    counterparts and reduced to the independent subset, and commits that
    no longer change anything are dropped.
    """

    def __init__(
        self,
        git: GitOperations,
        path_filter: PathFilter,
        relocate_to: str | None = None,
        on_progress: Callable[[int, int, str], None] | None = None,
    ):
        self.git = git
        self.path_filter = path_filter
        self.relocate_to = relocate_to.strip("/") if relocate_to else None
        self.on_progress = on_progress

        self._trees: dict[str, str] = {}  # source tree -> filtered tree
        self._new_trees: dict[str, str] = {}  # rewritten commit -> its tree

    def rewrite(self, branch: str) -> RewriteResult:
        ref = f"refs/heads/{branch}"
        backup = backup_ref(branch)
        if self.git.ref_exists(backup):
            raise RewriteError(
                f"A previous backup already exists in {backup}; remove it before rewriting"
            )

        try:
            tip = self.git.rev_parse(ref)
            commits = self.git.list_commits(ref)
        except GitError as e:
            raise RewriteError(f"Cannot read history of {branch}: {e}")

        mapping: dict[str, str | None] = {}
        result = RewriteResult(branch=branch, original_tip=tip, new_tip="", commits_seen=len(commits))

        try:
            for step, commit in enumerate(commits, 1):
                if self.on_progress:
                    self.on_progress(step, len(commits), commit.sha)

                tree = self._filter_tree(commit.tree)
                parents = self._map_parents(commit, mapping)

                if self._is_empty(tree, parents):
                    mapping[commit.sha] = parents[0] if parents else None
                    result.commits_pruned += 1
                    continue

                new_sha = self.git.write_commit(
                    rebuild_commit(self.git.read_commit(commit.sha), tree, parents)
                )
                self._new_trees[new_sha] = tree
                mapping[commit.sha] = new_sha
                result.commits_kept += 1
        except GitError as e:
            raise RewriteError(f"Rewriting {branch} failed: {e}")

        new_tip = mapping.get(tip)
        if new_tip is None:
            raise RewriteError(
                f"No commit on {branch} touches paths matching {self.path_filter.pattern}"
            )
        result.new_tip = new_tip

        try:
            self.git.update_ref(backup, tip)
            self.git.update_ref(ref, new_tip, old=tip)
            if self.git.current_branch == branch:
                self.git.reset_hard("HEAD")
        except GitError as e:
            raise RewriteError(f"Failed to move {branch} to the rewritten history: {e}")

        return result

    def _filter_tree(self, source_tree: str) -> str:
        if source_tree in self._trees:
            return self._trees[source_tree]

        entries = []
        for entry in self.git.list_tree(source_tree, self.path_filter.pathspec):
            if not self.path_filter.matches(entry.path):
                continue
            if self.relocate_to is not None:
                entry = TreeEntry(
                    mode=entry.mode,
                    type=entry.type,
                    sha=entry.sha,
                    path=self.path_filter.relocate(entry.path, self.relocate_to),
                )
            entries.append(entry)

        tree = self.git.write_tree(entries)
        self._trees[source_tree] = tree
        return tree

    def _map_parents(self, commit: CommitInfo, mapping: dict[str, str | None]) -> list[str]:
        parents: list[str] = []
        for parent in commit.parents:
            new_parent = mapping.get(parent)
            if new_parent is not None and new_parent not in parents:
                parents.append(new_parent)
        return self.git.independent(parents)

    def _is_empty(self, tree: str, parents: list[str]) -> bool:
        if not parents:
            return tree == EMPTY_TREE
        if len(parents) == 1:
            return tree == self._new_trees[parents[0]]
        return False
