"""Data models for typesplit."""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse


TYPE_DIR = "type"
TEMP_BRANCH_PREFIX = "typesplit-tmp-"
BACKUP_NAMESPACE = "refs/original/"
SET_BRANCH = "main"
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

# scp-like remote syntax: [user@]host:path
_SCP_LIKE = re.compile(r"^(?:[^@/]+@)?[^/:]+:")


class MigrationMode(str, Enum):
    """What happens to the source after a successful push."""

    COPY = "copy"
    MOVE = "move"


class BatchPolicy(str, Enum):
    """How the per-type deletion batch behaves when one item fails."""

    ATOMIC = "atomic"  # Restore the source branch to where it was
    BEST_EFFORT = "best-effort"  # Keep the commits made before the failure


def type_path(prefix: str = "") -> str:
    """Return the type directory path below an optional prefix."""
    parts = [p for p in prefix.split("/") if p]
    return "/".join([*parts, TYPE_DIR])


def backup_ref(branch: str) -> str:
    """Ref under which the rewrite keeps the pre-rewrite tip of a branch."""
    return f"{BACKUP_NAMESPACE}refs/heads/{branch}"


@dataclass(frozen=True)
class RepositoryReference:
    """A repository location: a local working-copy path or a remote URL."""

    location: str

    @classmethod
    def at(cls, location: str) -> "RepositoryReference":
        """Reference with local paths already made absolute."""
        reference = cls(location)
        if reference.is_local:
            return cls(reference.resolve())
        return reference

    @property
    def is_local(self) -> bool:
        if self.location.startswith("file://"):
            return True
        if "://" in self.location:
            return False
        if _SCP_LIKE.match(self.location) and not Path(self.location).exists():
            return False
        return True

    def resolve(self) -> str:
        """Return the fully-qualified form used when talking to git."""
        if not self.is_local or self.location.startswith("file://"):
            return self.location
        return Path(self.location).expanduser().resolve().as_uri()

    @property
    def local_path(self) -> Path | None:
        """Absolute filesystem path for local references."""
        if not self.is_local:
            return None
        if self.location.startswith("file://"):
            return Path(unquote(urlparse(self.location).path)).resolve()
        return Path(self.location).expanduser().resolve()

    def __str__(self) -> str:
        return self.location


@dataclass(frozen=True)
class CommitInfo:
    """A commit as listed for rewriting."""

    sha: str
    tree: str
    parents: tuple[str, ...] = ()


@dataclass(frozen=True)
class TreeEntry:
    """One blob (or gitlink) from a recursive tree listing."""

    mode: str
    type: str
    sha: str
    path: str


@dataclass
class MigrationRequest:
    """Everything one copy/move invocation needs to know."""

    source: Path
    destination: RepositoryReference
    dest_branch: str
    types: list[str]
    source_prefix: str = ""
    dest_prefix: str = ""
    mode: MigrationMode = MigrationMode.COPY
    source_branch: str | None = None
    batch_policy: BatchPolicy = BatchPolicy.ATOMIC
    force: bool = False
    dry_run: bool = False
    verbose: bool = False

    @property
    def source_path(self) -> str:
        return type_path(self.source_prefix)

    @property
    def dest_path(self) -> str:
        return type_path(self.dest_prefix)

    @property
    def relocates(self) -> bool:
        return self.source_path != self.dest_path

    @property
    def prune_branch(self) -> str:
        """Branch the removal commits go to in move mode."""
        return self.source_branch or self.dest_branch


@dataclass
class RewriteResult:
    """Outcome of a history rewrite on one branch."""

    branch: str
    original_tip: str
    new_tip: str
    commits_seen: int = 0
    commits_kept: int = 0
    commits_pruned: int = 0


@dataclass
class VerificationResult:
    """Result of checking a rewritten history against a path filter."""

    passed: bool
    branch: str
    commits_checked: int = 0
    violations: list[dict[str, Any]] = field(default_factory=list)

    @property
    def diagnosis(self) -> str:
        if self.passed:
            return f"All {self.commits_checked} commits on {self.branch} contain only selected paths"

        lines = [f"Unexpected paths on {self.branch}:"]
        for violation in self.violations[:10]:
            lines.append(f"  {violation['commit'][:8]}: {violation['path']}")
        if len(self.violations) > 10:
            lines.append(f"  ... and {len(self.violations) - 10} more")
        return "\n".join(lines)


@dataclass
class PruneResult:
    """Outcome of the per-type source deletion batch."""

    branch: str
    policy: BatchPolicy
    commits: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed: str | None = None
    rolled_back: bool = False


@dataclass
class MigrationResult:
    """Summary of a whole invocation."""

    request: MigrationRequest
    filter_pattern: str
    oldref: str | None = None
    rewrite: RewriteResult | None = None
    verification: VerificationResult | None = None
    destination_url: str | None = None
    prune: PruneResult | None = None
    content_hash: str | None = None
