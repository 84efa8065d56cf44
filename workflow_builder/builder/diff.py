"""
Human-readable rendering of the diff returned by a mutation.
"""

from __future__ import annotations

from workflow_builder.schema.models import ConnectionDiff, Diff, NodeDiff


def describe_diff(diff: Diff) -> str:
    if isinstance(diff, NodeDiff):
        return _describe_node_diff(diff)
    if isinstance(diff, ConnectionDiff):
        arrow = "->" if diff.action == "connect" else "-/->"
        return f"{diff.action} {diff.from_} {arrow} {diff.to}"
    raise TypeError(f"Unsupported diff type {type(diff).__name__}")


def _describe_node_diff(diff: NodeDiff) -> str:
    if diff.action == "add":
        node_type = diff.after.type if diff.after else "?"
        return f"add node {diff.node_id} ({node_type})"
    if diff.action == "remove":
        return f"remove node {diff.node_id}"
    if diff.action == "update":
        changed = []
        if diff.before and diff.after:
            for field in ("type", "input", "depends_on"):
                if getattr(diff.before, field) != getattr(diff.after, field):
                    changed.append("dependsOn" if field == "depends_on" else field)
        suffix = f" [{', '.join(changed)}]" if changed else " [no changes]"
        return f"update node {diff.node_id}{suffix}"
    raise ValueError(f"Unknown node diff action {diff.action!r}")
