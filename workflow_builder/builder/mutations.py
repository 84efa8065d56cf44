"""
Mutation operations over a session's draft.

Each operation applies exactly one change, persists the session and returns
the change as a diff. None of them run the validator: a mutation always
drops a previous validation result, so the caller has to validate again
before committing.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from shared.logger import get_logger
from workflow_builder.builder.diff import describe_diff
from workflow_builder.errors import (
    DuplicateNodeError,
    EdgeNotFoundError,
    InvalidInputError,
    InvalidStateError,
    NodeNotFoundError,
)
from workflow_builder.schema.models import (
    ConnectionDiff,
    Diff,
    Draft,
    Node,
    NodeDiff,
    NodeInput,
    NodePatch,
    Session,
    SessionState,
    ValidationResult,
)
from workflow_builder.schema.payloads import (
    AddNodeResult,
    ConnectionResult,
    RemoveNodeResult,
    UpdateNodeResult,
)
from workflow_builder.store.session_store import SessionStore

logger = get_logger(__name__)

RawPayload = Union[str, Mapping[str, Any]]
ModelT = TypeVar("ModelT", bound=BaseModel)


def add_node(session: Session, store: SessionStore, raw_node: RawPayload) -> AddNodeResult:
    _ensure_mutable(session)
    node = _parse(NodeInput, raw_node, what="node").to_node()

    if session.draft.get_node(node.id) is not None:
        raise DuplicateNodeError(
            f"Node '{node.id}' already exists",
            hint="Use update-node to change an existing node",
            details={"nodeId": node.id},
        )

    session.draft.nodes.append(node)
    diff = NodeDiff(action="add", node_id=node.id, after=node.model_copy(deep=True))
    _commit_mutation(session, store, diff)
    return AddNodeResult(node=node, diff=diff)


def update_node(
    session: Session,
    store: SessionStore,
    node_id: str,
    raw_patch: RawPayload,
) -> UpdateNodeResult:
    """Replace the provided fields (``type``, ``input``, ``dependsOn``) of a node."""
    _ensure_mutable(session)
    node = _require_node(session.draft, node_id)
    patch = _parse(NodePatch, raw_patch, what="node update")

    if patch.depends_on is not None and node_id in patch.depends_on:
        raise _self_reference(node_id)

    before = node.model_copy(deep=True)
    if patch.type is not None:
        node.type = patch.type
    if patch.input is not None:
        node.input = dict(patch.input)
    if patch.depends_on is not None:
        node.depends_on = list(patch.depends_on)

    diff = NodeDiff(action="update", node_id=node_id, before=before, after=node.model_copy(deep=True))
    _commit_mutation(session, store, diff)
    return UpdateNodeResult(node=node, diff=diff)


def remove_node(session: Session, store: SessionStore, node_id: str) -> RemoveNodeResult:
    """
    Remove a node and strip its id from every remaining ``dependsOn``.

    The stripped nodes are reported as ``cleaned_deps`` so a removal never
    leaves dangling references behind for the validator to trip over.
    """
    _ensure_mutable(session)
    removed = _require_node(session.draft, node_id)

    session.draft.nodes = [n for n in session.draft.nodes if n.id != node_id]

    cleaned_deps = []
    for node in session.draft.nodes:
        if node_id in node.depends_on:
            node.depends_on = [dep for dep in node.depends_on if dep != node_id]
            cleaned_deps.append(node.id)

    diff = NodeDiff(action="remove", node_id=node_id, before=removed.model_copy(deep=True))
    _commit_mutation(session, store, diff)
    if cleaned_deps:
        logger.info(f"Stripped {node_id} from dependsOn of: {', '.join(cleaned_deps)}")
    return RemoveNodeResult(removed=removed, diff=diff, cleaned_deps=cleaned_deps)


def connect(session: Session, store: SessionStore, from_id: str, to_id: str) -> ConnectionResult:
    """Make ``to_id`` depend on ``from_id`` (``from_id`` must run first)."""
    _ensure_mutable(session)
    if from_id == to_id:
        raise _self_reference(to_id)

    target = _require_node(session.draft, to_id)
    _require_node(session.draft, from_id)

    if from_id in target.depends_on:
        raise InvalidInputError(
            f"Edge {from_id} -> {to_id} already exists",
            details={"reason": "duplicate_edge", "from": from_id, "to": to_id},
        )

    target.depends_on = [*target.depends_on, from_id]
    diff = ConnectionDiff(action="connect", from_=from_id, to=to_id)
    _commit_mutation(session, store, diff)
    return ConnectionResult(node=target, diff=diff)


def disconnect(session: Session, store: SessionStore, from_id: str, to_id: str) -> ConnectionResult:
    _ensure_mutable(session)
    target = _require_node(session.draft, to_id)

    if from_id not in target.depends_on:
        raise EdgeNotFoundError(
            f"Edge {from_id} -> {to_id} does not exist",
            hint="Inspect edges with `wfbuild graph`",
            details={"from": from_id, "to": to_id},
        )

    target.depends_on = [dep for dep in target.depends_on if dep != from_id]
    diff = ConnectionDiff(action="disconnect", from_=from_id, to=to_id)
    _commit_mutation(session, store, diff)
    return ConnectionResult(node=target, diff=diff)


# ── Helpers ──


def _ensure_mutable(session: Session) -> None:
    if not session.is_mutable:
        raise InvalidStateError(
            f"Session '{session.id}' is {session.state.value} and can no longer be modified",
            hint="Start a new session with `wfbuild start`",
            details={"sessionId": session.id, "state": session.state.value},
        )


def _commit_mutation(session: Session, store: SessionStore, diff: Diff) -> None:
    if session.state == SessionState.VALIDATED:
        logger.info(f"Session {session.id} modified after validation; back to DRAFT")
        session.state = SessionState.DRAFT
    session.validation = ValidationResult()
    session.touch()
    store.save(session)
    logger.info(f"{session.id}: {describe_diff(diff)}")


def _require_node(draft: Draft, node_id: str) -> Node:
    node = draft.get_node(node_id)
    if node is None:
        raise NodeNotFoundError(
            f"Node '{node_id}' not found",
            hint="Inspect nodes with `wfbuild graph`",
            details={"nodeId": node_id, "available": draft.node_ids()},
        )
    return node


def _self_reference(node_id: str) -> InvalidInputError:
    return InvalidInputError(
        f"Node '{node_id}' cannot depend on itself",
        details={"reason": "self_reference", "nodeId": node_id},
    )


def _parse(model: Type[ModelT], raw: RawPayload, *, what: str) -> ModelT:
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidInputError(f"Invalid {what} JSON: {exc}") from exc
    else:
        data = raw

    if not isinstance(data, Mapping):
        raise InvalidInputError(
            f"Invalid {what}: expected an object, got {type(data).__name__}",
        )

    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        raise InvalidInputError(
            f"Invalid {what}: {exc.error_count()} problem(s)",
            hint="Nodes need a non-empty string `id` and `type`; `input` is an object, `dependsOn` a list of ids",
            details={"errors": json.loads(exc.json(include_url=False))},
        ) from exc
