"""Tests for typesplit.tempbranch -- the disposable rewrite sandbox."""

import atexit
import os
import signal
from pathlib import Path

import pytest

from conftest import run_git
from typesplit.git import GitOperations
from typesplit.models import TEMP_BRANCH_PREFIX
from typesplit.tempbranch import TemporaryBranch, exit_on_signals


class TestTemporaryBranch:
    """Tests for TemporaryBranch lifecycle."""

    def test_create_does_not_checkout(self, tmp_repo: Path) -> None:
        git = GitOperations(tmp_repo)
        temp = TemporaryBranch(git)

        name = temp.create()

        assert name.startswith(TEMP_BRANCH_PREFIX)
        assert not git.branch_exists(name)
        assert git.current_ref == "main"

    def test_create_avoids_existing_names(self, tmp_repo: Path, monkeypatch) -> None:
        git = GitOperations(tmp_repo)
        git.create_branch(f"{TEMP_BRANCH_PREFIX}aaaaaaaa")
        suffixes = iter(["aaaaaaaa", "bbbbbbbb"])
        monkeypatch.setattr("typesplit.tempbranch.secrets.token_hex", lambda n: next(suffixes))

        assert TemporaryBranch(git).create() == f"{TEMP_BRANCH_PREFIX}bbbbbbbb"

    def test_activate_records_oldref(self, tmp_repo: Path) -> None:
        git = GitOperations(tmp_repo)
        temp = TemporaryBranch(git)
        temp.create()

        temp.activate()

        assert temp.oldref == "main"
        assert git.current_ref == temp.name
        temp.cleanup()

    def test_activate_clears_stale_backup(self, tmp_repo: Path) -> None:
        git = GitOperations(tmp_repo)
        temp = TemporaryBranch(git)
        temp.create()
        git.update_ref(temp.backup_ref, git.rev_parse("HEAD"))

        temp.activate()

        assert not git.ref_exists(temp.backup_ref)
        temp.cleanup()

    def test_cleanup_restores_and_deletes(self, tmp_repo: Path) -> None:
        git = GitOperations(tmp_repo)
        temp = TemporaryBranch(git)
        temp.create()
        temp.activate()
        git.update_ref(temp.backup_ref, git.rev_parse("HEAD"))

        assert temp.cleanup() == []

        assert git.current_ref == "main"
        assert not git.branch_exists(temp.name)
        assert git.list_refs("refs/original/") == []

    def test_cleanup_is_idempotent(self, tmp_repo: Path) -> None:
        git = GitOperations(tmp_repo)
        temp = TemporaryBranch(git)

        assert temp.cleanup() == []
        temp.create()
        assert temp.cleanup() == []

        temp.activate()
        temp.cleanup()
        assert temp.cleanup() == []
        assert git.current_ref == "main"

    def test_cleanup_restores_detached_head(self, tmp_repo: Path) -> None:
        sha = run_git("rev-parse", "HEAD", cwd=tmp_repo)
        run_git("checkout", "-q", "--detach", cwd=tmp_repo)
        git = GitOperations(tmp_repo)

        with TemporaryBranch(git):
            pass

        assert git.current_ref == sha


class TestTemporaryBranchContext:
    """Tests for the context manager guarantees."""

    def test_context_success(self, tmp_repo: Path) -> None:
        git = GitOperations(tmp_repo)

        with TemporaryBranch(git) as temp:
            assert git.current_ref == temp.name

        assert git.current_ref == "main"
        assert not git.branch_exists(temp.name)

    def test_context_cleans_up_on_error(self, tmp_repo: Path) -> None:
        git = GitOperations(tmp_repo)

        with pytest.raises(RuntimeError):
            with TemporaryBranch(git) as temp:
                git.update_ref(temp.backup_ref, git.rev_parse("HEAD"))
                raise RuntimeError("rewrite exploded")

        assert git.current_ref == "main"
        assert not git.branch_exists(temp.name)
        assert not git.ref_exists(temp.backup_ref)

    def test_context_cleans_up_on_system_exit(self, tmp_repo: Path) -> None:
        """A forwarded SIGTERM arrives as SystemExit."""
        git = GitOperations(tmp_repo)

        with pytest.raises(SystemExit):
            with TemporaryBranch(git) as temp:
                raise SystemExit(143)

        assert git.current_ref == "main"
        assert not git.branch_exists(temp.name)

    def test_atexit_registration(self, tmp_repo: Path, monkeypatch) -> None:
        registered = []
        unregistered = []
        monkeypatch.setattr(atexit, "register", registered.append)
        monkeypatch.setattr(atexit, "unregister", unregistered.append)
        git = GitOperations(tmp_repo)

        with TemporaryBranch(git) as temp:
            assert registered == [temp.cleanup]

        assert unregistered == [temp.cleanup]


class TestSignalForwarding:
    """SIGTERM inside the guarded block unwinds as SystemExit."""

    def test_sigterm_cleans_up(self, tmp_repo: Path) -> None:
        git = GitOperations(tmp_repo)
        previous = signal.getsignal(signal.SIGTERM)

        with pytest.raises(SystemExit) as excinfo:
            with TemporaryBranch(git) as temp:
                assert signal.getsignal(signal.SIGTERM) is not previous
                os.kill(os.getpid(), signal.SIGTERM)

        assert excinfo.value.code == 128 + signal.SIGTERM
        assert git.current_ref == "main"
        assert not git.branch_exists(temp.name)
        assert signal.getsignal(signal.SIGTERM) == previous

    def test_exit_on_signals_restores_handler(self) -> None:
        previous = signal.getsignal(signal.SIGTERM)

        with pytest.raises(SystemExit) as excinfo:
            with exit_on_signals():
                os.kill(os.getpid(), signal.SIGTERM)

        assert excinfo.value.code == 143
        assert signal.getsignal(signal.SIGTERM) == previous

    def test_nested_guards_restore_outer(self) -> None:
        with exit_on_signals():
            outer = signal.getsignal(signal.SIGTERM)
            with exit_on_signals():
                pass
            assert signal.getsignal(signal.SIGTERM) == outer
