"""Workspace indexing: scan orchestration, progress and context assembly."""

from memox.application.indexing.context import build_context, estimate_tokens, format_chunk
from memox.application.indexing.coordinator import (
    IndexCoordinator,
    create_coordinator,
    workspace_key,
)
from memox.application.indexing.progress import (
    CancellationToken,
    ProgressCallback,
    ProgressReporter,
    outcome_message,
)

__all__ = [
    "CancellationToken",
    "IndexCoordinator",
    "ProgressCallback",
    "ProgressReporter",
    "build_context",
    "create_coordinator",
    "estimate_tokens",
    "format_chunk",
    "outcome_message",
    "workspace_key",
]
