"""Pytest configuration and fixtures for typesplit tests."""

import os
import subprocess
from collections.abc import Generator
from pathlib import Path

import pytest


def run_git(*args: str, cwd: Path, env: dict[str, str] | None = None) -> str:
    """Run a git command and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
        env={**os.environ, **(env or {})},
    )
    return result.stdout.strip()


def commit_files(
    repo: Path,
    message: str,
    files: dict[str, str | None],
    date: str = "2020-01-01T12:00:00+00:00",
) -> str:
    """Write (or delete, for None) files, commit them and return the commit SHA."""
    for name, content in files.items():
        path = repo / name
        if content is None:
            run_git("rm", "-q", "-r", "--", name, cwd=repo)
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        run_git("add", "--", name, cwd=repo)

    dates = {"GIT_AUTHOR_DATE": date, "GIT_COMMITTER_DATE": date}
    run_git("commit", "-q", "-m", message, cwd=repo, env=dates)
    return run_git("rev-parse", "HEAD", cwd=repo)


def files_at(repo: Path, ref: str) -> list[str]:
    """Every path in the tree of ref."""
    output = run_git("ls-tree", "-r", "--name-only", ref, cwd=repo)
    return output.splitlines()


def commit_subjects(repo: Path, ref: str) -> list[str]:
    """Commit subjects reachable from ref, oldest first."""
    output = run_git("log", "--reverse", "--topo-order", "--format=%s", ref, cwd=repo)
    return output.splitlines()


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    run_git("init", "-q", "-b", "main", cwd=path)
    run_git("config", "user.email", "test@test.com", cwd=path)
    run_git("config", "user.name", "Test", cwd=path)
    run_git("config", "commit.gpgsign", "false", cwd=path)
    return path


@pytest.fixture
def tmp_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with a single commit.

    Yields:
        Path to the temporary repository
    """
    repo = init_repo(tmp_path / "repo")
    commit_files(repo, "Initial commit", {"README.md": "# Test Repo\n"})
    yield repo


@pytest.fixture
def source_repo(tmp_path: Path) -> Path:
    """A configuration repository with four types and a mixed history.

    History (oldest first):
        1. add __foo and README (mixed)
        2. add __foobar (shares a prefix with __foo)
        3. README only
        4. add __bar, change __foo
        5. add __db
    """
    repo = init_repo(tmp_path / "source")
    commit_files(repo, "Add foo", {
        "README.md": "# Config\n",
        "type/__foo/manifest": "foo v1\n",
    }, date="2020-01-01T10:00:00+00:00")
    commit_files(repo, "Add foobar", {
        "type/__foobar/manifest": "foobar\n",
    }, date="2020-01-02T10:00:00+00:00")
    commit_files(repo, "Document things", {
        "README.md": "# Config\n\nMore words.\n",
    }, date="2020-01-03T10:00:00+00:00")
    commit_files(repo, "Add bar, update foo", {
        "type/__bar/gencode-remote": "echo bar\n",
        "type/__foo/manifest": "foo v2\n",
    }, date="2020-01-04T10:00:00+00:00")
    commit_files(repo, "Add db", {
        "type/__db/manifest": "db\n",
    }, date="2020-01-05T10:00:00+00:00")
    return repo


@pytest.fixture
def bare_repo(tmp_path: Path) -> Path:
    """An empty bare repository to push to."""
    path = tmp_path / "dest.git"
    run_git("init", "-q", "--bare", "-b", "main", str(path), cwd=tmp_path)
    return path
