from workflow_builder.schema.models import (
    ConnectionDiff,
    Diff,
    Draft,
    DraftMetadata,
    Node,
    NodeDiff,
    NodeInput,
    NodePatch,
    Session,
    SessionState,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "ConnectionDiff",
    "Diff",
    "Draft",
    "DraftMetadata",
    "Node",
    "NodeDiff",
    "NodeInput",
    "NodePatch",
    "Session",
    "SessionState",
    "ValidationIssue",
    "ValidationResult",
]
