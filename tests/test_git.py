"""Tests for typesplit.git module."""

from pathlib import Path

import pytest

from conftest import commit_files, run_git
from typesplit.git import GitError, GitOperations, init_bare, remote_is_empty
from typesplit.models import EMPTY_TREE, TreeEntry


class TestGitOperations:
    """Tests for GitOperations class."""

    def test_create_git_ops(self, tmp_repo: Path) -> None:
        ops = GitOperations(tmp_repo)

        assert ops.repo_path == tmp_repo.resolve()

    def test_create_git_ops_invalid_repo(self, tmp_path: Path) -> None:
        with pytest.raises(GitError, match="Not a git repository"):
            GitOperations(tmp_path / "nowhere")

    def test_bare_repo_rejected(self, bare_repo: Path) -> None:
        with pytest.raises(GitError, match="no working copy"):
            GitOperations(bare_repo)

    def test_current_ref_branch(self, tmp_repo: Path) -> None:
        assert GitOperations(tmp_repo).current_ref == "main"

    def test_current_ref_detached(self, tmp_repo: Path) -> None:
        sha = run_git("rev-parse", "HEAD", cwd=tmp_repo)
        run_git("checkout", "-q", "--detach", cwd=tmp_repo)

        ops = GitOperations(tmp_repo)

        assert ops.current_ref == sha
        assert ops.current_branch is None

    def test_is_clean(self, tmp_repo: Path) -> None:
        ops = GitOperations(tmp_repo)
        assert ops.is_clean() is True

        (tmp_repo / "untracked.txt").write_text("new")
        assert ops.is_clean() is False

    def test_is_clean_with_modification(self, tmp_repo: Path) -> None:
        (tmp_repo / "README.md").write_text("changed")

        assert GitOperations(tmp_repo).is_clean() is False

    def test_branches_and_refs(self, tmp_repo: Path) -> None:
        ops = GitOperations(tmp_repo)

        ops.create_branch("scratch")
        assert ops.branch_exists("scratch")
        assert ops.ref_exists("refs/heads/scratch")

        ops.checkout("scratch")
        assert ops.current_ref == "scratch"

        ops.checkout("main")
        ops.delete_branch("scratch", force=True)
        assert not ops.branch_exists("scratch")
        assert not ops.ref_exists("refs/heads/scratch")

    def test_update_and_delete_ref(self, tmp_repo: Path) -> None:
        ops = GitOperations(tmp_repo)
        head = ops.rev_parse("HEAD")

        ops.update_ref("refs/original/refs/heads/x", head)
        assert ops.list_refs("refs/original/") == ["refs/original/refs/heads/x"]

        ops.delete_ref("refs/original/refs/heads/x")
        assert ops.list_refs("refs/original/") == []

    def test_rev_parse_unknown(self, tmp_repo: Path) -> None:
        with pytest.raises(GitError, match="Unknown revision"):
            GitOperations(tmp_repo).rev_parse("no-such-branch")

    def test_list_commits_parents_first(self, source_repo: Path) -> None:
        commits = GitOperations(source_repo).list_commits("main")

        assert len(commits) == 5
        assert commits[0].parents == ()
        for earlier, later in zip(commits, commits[1:]):
            assert later.parents == (earlier.sha,)

    def test_list_tree_with_pathspec(self, source_repo: Path) -> None:
        ops = GitOperations(source_repo)

        paths = [e.path for e in ops.list_tree("HEAD", "type")]

        assert "README.md" not in paths
        assert "type/__foo/manifest" in paths
        assert all(e.type == "blob" for e in ops.list_tree("HEAD"))

    def test_list_subdirectories(self, source_repo: Path) -> None:
        ops = GitOperations(source_repo)

        assert sorted(ops.list_subdirectories("type")) == ["__bar", "__db", "__foo", "__foobar"]
        assert ops.list_subdirectories("missing") == []

    def test_write_tree_nests_paths(self, source_repo: Path) -> None:
        ops = GitOperations(source_repo)
        entries = [e for e in ops.list_tree("HEAD") if e.path.startswith("type/__foo/")]
        moved = [TreeEntry(e.mode, e.type, e.sha, "a/b/" + e.path) for e in entries]

        tree = ops.write_tree(moved)

        assert [e.path for e in ops.list_tree(tree)] == ["a/b/type/__foo/manifest"]

    def test_write_empty_tree(self, tmp_repo: Path) -> None:
        assert GitOperations(tmp_repo).write_tree([]) == EMPTY_TREE

    def test_independent(self, tmp_repo: Path) -> None:
        ops = GitOperations(tmp_repo)
        first = ops.rev_parse("HEAD")
        second = commit_files(tmp_repo, "Second", {"b.txt": "b"})

        assert ops.independent([first, second]) == [second]
        assert ops.independent([first]) == [first]

    def test_remove_path_and_commit(self, source_repo: Path) -> None:
        ops = GitOperations(source_repo)

        ops.remove_path("type/__db")
        sha = ops.commit("Remove type/__db")

        assert sha == ops.rev_parse("HEAD")
        assert not (source_repo / "type" / "__db").exists()
        assert ops.is_clean()

    def test_push(self, tmp_repo: Path, bare_repo: Path) -> None:
        ops = GitOperations(tmp_repo)

        assert remote_is_empty(bare_repo.as_uri())
        ops.push(bare_repo.as_uri(), "refs/heads/main:refs/heads/imported")

        assert not remote_is_empty(bare_repo.as_uri())
        assert run_git("rev-parse", "imported", cwd=bare_repo) == ops.rev_parse("HEAD")

    def test_push_failure(self, tmp_repo: Path, tmp_path: Path) -> None:
        ops = GitOperations(tmp_repo)

        with pytest.raises(GitError, match="git push failed"):
            ops.push((tmp_path / "missing").as_uri(), "refs/heads/main:refs/heads/x")

    def test_content_hash_ignores_metadata(self, tmp_repo: Path) -> None:
        ops = GitOperations(tmp_repo)
        before = ops.get_content_hash("HEAD")

        run_git("commit", "-q", "--amend", "-m", "Different message", cwd=tmp_repo)

        assert ops.get_content_hash("HEAD") == before


def test_init_bare(tmp_path: Path) -> None:
    path = tmp_path / "new" / "set.git"

    init_bare(path)

    assert remote_is_empty(path.as_uri())
