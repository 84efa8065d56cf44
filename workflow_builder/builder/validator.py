"""
Structural validation of a workflow draft.

``validate_draft`` is pure and never raises: every check runs, every failure
is collected, and callers inspect ``ValidationResult.ok``. ``validate_session``
stamps the result on the session and drives the DRAFT -> VALIDATED
transition.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from shared.logger import get_logger
from workflow_builder.errors import InvalidStateError
from workflow_builder.schema.models import (
    Draft,
    Node,
    Session,
    SessionState,
    ValidationIssue,
    ValidationResult,
)
from workflow_builder.store.session_store import SessionStore

logger = get_logger(__name__)


class ValidationCode:
    MISSING_NAME = "MISSING_NAME"
    EMPTY_WORKFLOW = "EMPTY_WORKFLOW"
    DUPLICATE_NODE_ID = "DUPLICATE_NODE_ID"
    MISSING_NODE_ID = "MISSING_NODE_ID"
    MISSING_NODE_TYPE = "MISSING_NODE_TYPE"
    MISSING_DEPENDENCY = "MISSING_DEPENDENCY"
    SELF_REFERENCE = "SELF_REFERENCE"
    CYCLE_DETECTED = "CYCLE_DETECTED"


def validate_draft(draft: Draft) -> ValidationResult:
    errors: List[ValidationIssue] = []
    nodes = draft.nodes

    if not draft.name or not draft.name.strip():
        errors.append(ValidationIssue(code=ValidationCode.MISSING_NAME, message="Workflow name is required"))

    if not nodes:
        errors.append(ValidationIssue(code=ValidationCode.EMPTY_WORKFLOW, message="Workflow has no nodes"))

    _check_unique_ids(nodes, errors)
    _check_required_fields(nodes, errors)
    _check_dependencies_exist(nodes, errors)
    _check_self_references(nodes, errors)

    cycle = find_cycle(nodes)
    if cycle:
        errors.append(
            ValidationIssue(
                code=ValidationCode.CYCLE_DETECTED,
                message=f"Cycle detected: {' -> '.join(cycle)}",
                node_id=cycle[0],
                details={"cycle": cycle},
            )
        )

    return ValidationResult(ok=not errors, errors=errors)


def validate_session(session: Session, store: SessionStore) -> ValidationResult:
    """Validate the session's draft, record the outcome and persist the session."""
    if session.is_terminal:
        raise InvalidStateError(
            f"Session '{session.id}' is {session.state.value}; nothing to validate",
            hint="Start a new session with `wfbuild start`",
            details={"sessionId": session.id, "state": session.state.value},
        )

    result = validate_draft(session.draft)
    session.validation = result
    if result.ok and session.state == SessionState.DRAFT:
        session.state = SessionState.VALIDATED
    elif not result.ok and session.state == SessionState.VALIDATED:
        session.state = SessionState.DRAFT
    session.touch()
    store.save(session)

    if result.ok:
        logger.info(f"Session {session.id} validated ({len(session.draft.nodes)} nodes)")
    else:
        logger.info(f"Session {session.id} failed validation: {', '.join(result.codes())}")
    return result


def find_cycle(nodes: Sequence[Node]) -> Optional[List[str]]:
    """
    Return the first dependency cycle found, closed by repeating its entry
    node (``[a, b, c, a]``), or ``None`` when the graph is acyclic.

    Roots are tried in declaration order. Self-dependencies and references
    to unknown ids are ignored here; they have their own validation codes.
    """
    graph: Dict[str, List[str]] = {}
    for node in nodes:
        if node.id and node.id not in graph:
            graph[node.id] = [dep for dep in node.depends_on if dep != node.id]

    visited = set()
    recursion_stack = set()
    path: List[str] = []

    def enter(node_id: str) -> Tuple[str, Iterator[str]]:
        visited.add(node_id)
        recursion_stack.add(node_id)
        path.append(node_id)
        return node_id, iter(graph[node_id])

    for root in graph:
        if root in visited:
            continue
        # One (node, remaining deps) frame per node on the current path
        frames = [enter(root)]
        while frames:
            node_id, deps = frames[-1]
            for dep in deps:
                if dep not in graph:
                    continue
                if dep in recursion_stack:
                    return path[path.index(dep):] + [dep]
                if dep not in visited:
                    frames.append(enter(dep))
                    break
            else:
                frames.pop()
                recursion_stack.discard(node_id)
                path.pop()
    return None


def _check_unique_ids(nodes: Sequence[Node], errors: List[ValidationIssue]) -> None:
    seen = set()
    for index, node in enumerate(nodes):
        if not node.id:
            continue
        if node.id in seen:
            errors.append(
                ValidationIssue(
                    code=ValidationCode.DUPLICATE_NODE_ID,
                    message=f"Duplicate node id '{node.id}'",
                    node_id=node.id,
                    details={"index": index},
                )
            )
        seen.add(node.id)


def _check_required_fields(nodes: Sequence[Node], errors: List[ValidationIssue]) -> None:
    for index, node in enumerate(nodes):
        has_id = bool(node.id and node.id.strip())
        if not has_id:
            errors.append(
                ValidationIssue(
                    code=ValidationCode.MISSING_NODE_ID,
                    message=f"Node at position {index} has no id",
                    details={"index": index},
                )
            )
        if not node.type or not node.type.strip():
            errors.append(
                ValidationIssue(
                    code=ValidationCode.MISSING_NODE_TYPE,
                    message=f"Node '{node.id}' has no type" if has_id else f"Node at position {index} has no type",
                    node_id=node.id if has_id else None,
                    details={"index": index},
                )
            )


def _check_dependencies_exist(nodes: Sequence[Node], errors: List[ValidationIssue]) -> None:
    known = {node.id for node in nodes if node.id}
    for node in nodes:
        for dep in node.depends_on:
            if dep not in known:
                errors.append(
                    ValidationIssue(
                        code=ValidationCode.MISSING_DEPENDENCY,
                        message=f"Node '{node.id}' depends on unknown node '{dep}'",
                        node_id=node.id or None,
                        details={"missingDep": dep},
                    )
                )


def _check_self_references(nodes: Sequence[Node], errors: List[ValidationIssue]) -> None:
    for node in nodes:
        if node.id and node.id in node.depends_on:
            errors.append(
                ValidationIssue(
                    code=ValidationCode.SELF_REFERENCE,
                    message=f"Node '{node.id}' depends on itself",
                    node_id=node.id,
                )
            )
