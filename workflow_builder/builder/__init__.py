"""
Builder operations: each function applies one step of the session lifecycle.

    lifecycle: start / resolve / status / abort
    mutations: add, update, remove nodes; connect, disconnect edges
    validator: structural checks and cycle detection
    graph: edges, roots, leaves, topological order, ASCII rendering
    commit: commit guard and submission to the workflow service
"""

from workflow_builder.builder.commit import build_workflow_request, commit_session, require_committable
from workflow_builder.builder.diff import describe_diff
from workflow_builder.builder.graph import (
    generate_ascii_graph,
    generate_graph,
    get_topological_order,
)
from workflow_builder.builder.lifecycle import (
    abort_session,
    describe_status,
    resolve_session,
    start_session,
)
from workflow_builder.builder.mutations import (
    add_node,
    connect,
    disconnect,
    remove_node,
    update_node,
)
from workflow_builder.builder.validator import (
    ValidationCode,
    find_cycle,
    validate_draft,
    validate_session,
)

__all__ = [
    "ValidationCode",
    "abort_session",
    "add_node",
    "build_workflow_request",
    "commit_session",
    "connect",
    "describe_diff",
    "describe_status",
    "disconnect",
    "find_cycle",
    "generate_ascii_graph",
    "generate_graph",
    "get_topological_order",
    "remove_node",
    "require_committable",
    "resolve_session",
    "start_session",
    "update_node",
    "validate_draft",
    "validate_session",
]
