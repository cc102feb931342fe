"""Disposable branch used as the sandbox for a history rewrite."""

import atexit
import secrets
import signal
import threading
from contextlib import contextmanager

from typesplit import display
from typesplit.git import GitError, GitOperations
from typesplit.models import TEMP_BRANCH_PREFIX, backup_ref


_FORWARDED_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig
)


def _exit_on_signal(signum, frame):
    raise SystemExit(128 + signum)


def _install_signal_handlers() -> dict[int, object]:
    """Route SIGTERM/SIGHUP to SystemExit. Returns the handlers replaced."""
    if threading.current_thread() is not threading.main_thread():
        return {}
    return {sig: signal.signal(sig, _exit_on_signal) for sig in _FORWARDED_SIGNALS}


def _restore_signal_handlers(previous: dict[int, object]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler if handler is not None else signal.SIG_DFL)


@contextmanager
def exit_on_signals():
    """Turn SIGTERM/SIGHUP into SystemExit so finally blocks run."""
    previous = _install_signal_handlers()
    try:
        yield
    finally:
        _restore_signal_handlers(previous)


class TemporaryBranch:
    """
    A uniquely named branch plus the backup ref the rewrite leaves behind.

    Use it as a context manager: cleanup runs on normal exit, on exceptions,
    on SIGTERM/SIGHUP (turned into SystemExit) and, as a last resort, from
    an atexit hook. Cleanup is idempotent.
    """

    def __init__(self, git: GitOperations):
        self.git = git
        self.name: str | None = None
        self.oldref: str | None = None
        self._previous_handlers: dict[int, object] = {}

    @property
    def ref(self) -> str:
        return f"refs/heads/{self.name}"

    @property
    def backup_ref(self) -> str:
        return backup_ref(self.name)

    def create(self) -> str:
        """Pick a branch name that does not collide with an existing ref."""
        while True:
            name = f"{TEMP_BRANCH_PREFIX}{secrets.token_hex(4)}"
            if not self.git.ref_exists(f"refs/heads/{name}") and not self.git.ref_exists(backup_ref(name)):
                self.name = name
                return name

    def activate(self) -> None:
        """Remember where we are, then create the branch at the current tip and check it out."""
        if self.name is None:
            self.create()
        self.oldref = self.git.current_ref

        # A stale backup makes the rewrite refuse to start
        if self.git.ref_exists(self.backup_ref):
            self.git.delete_ref(self.backup_ref)

        self.git.create_branch(self.name, "HEAD")
        self.git.checkout(self.name)

    def cleanup(self) -> list[str]:
        """Remove the backup ref and the branch, returning to oldref. Returns failures."""
        if self.name is None:
            return []

        failures = []
        try:
            for ref in self.git.list_refs(self.backup_ref):
                self.git.delete_ref(ref)
        except GitError as e:
            failures.append(str(e))

        try:
            if self.git.branch_exists(self.name):
                if self.oldref and self.git.current_branch == self.name:
                    self.git.checkout(self.oldref, force=True)
                self.git.delete_branch(self.name, force=True)
        except GitError as e:
            failures.append(str(e))

        for failure in failures:
            display.print_warning(f"cleanup of {self.name}: {failure}")
        return failures

    def _install_handlers(self) -> None:
        atexit.register(self.cleanup)
        self._previous_handlers = _install_signal_handlers()

    def _restore_handlers(self) -> None:
        atexit.unregister(self.cleanup)
        _restore_signal_handlers(self._previous_handlers)
        self._previous_handlers = {}

    def __enter__(self) -> "TemporaryBranch":
        self.create()
        self._install_handlers()
        try:
            self.activate()
        except BaseException:
            self.cleanup()
            self._restore_handlers()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            failures = self.cleanup()
        finally:
            self._restore_handlers()
        if failures and exc_type is None:
            raise GitError(f"Failed to clean up temporary branch {self.name}: {failures[0]}")
