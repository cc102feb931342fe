"""JSON-friendly serialization of migration results."""

from typing import Any

from typesplit.models import (
    MigrationMode,
    MigrationRequest,
    MigrationResult,
    PruneResult,
    RewriteResult,
)


def _serialize_request(request: MigrationRequest) -> dict[str, Any]:
    """Serialize a MigrationRequest to a dict."""
    return {
        "source": str(request.source),
        "destination": request.destination.location,
        "dest_branch": request.dest_branch,
        "types": request.types,
        "source_path": request.source_path,
        "dest_path": request.dest_path,
        "mode": request.mode.value,
        "source_branch": request.prune_branch if request.mode is MigrationMode.MOVE else None,
        "batch_policy": request.batch_policy.value,
        "dry_run": request.dry_run,
    }


def _serialize_rewrite(rewrite: RewriteResult | None) -> dict[str, Any] | None:
    if rewrite is None:
        return None

    return {
        "original_tip": rewrite.original_tip,
        "new_tip": rewrite.new_tip,
        "commits_seen": rewrite.commits_seen,
        "commits_kept": rewrite.commits_kept,
        "commits_pruned": rewrite.commits_pruned,
    }


def _serialize_prune(prune: PruneResult | None) -> dict[str, Any] | None:
    if prune is None:
        return None

    return {
        "branch": prune.branch,
        "policy": prune.policy.value,
        "commits": prune.commits,
        "removed": prune.removed,
    }


def serialize_result(result: MigrationResult) -> dict[str, Any]:
    """Serialize a MigrationResult for --json output."""
    return {
        "request": _serialize_request(result.request),
        "filter_pattern": result.filter_pattern,
        "oldref": result.oldref,
        "rewrite": _serialize_rewrite(result.rewrite),
        "verified": result.verification.passed if result.verification else None,
        "destination_url": result.destination_url,
        "content_hash": result.content_hash,
        "prune": _serialize_prune(result.prune),
    }
