"""
Session lifecycle: start, resolve, status and abort.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from shared.logger import get_logger
from workflow_builder.errors import (
    BuilderAlreadyStartedError,
    BuilderNotStartedError,
    InvalidInputError,
    InvalidStateError,
    StaleSessionError,
)
from workflow_builder.schema.models import (
    Draft,
    DraftMetadata,
    Session,
    SessionState,
)
from workflow_builder.store.session_store import SessionStore

logger = get_logger(__name__)


def start_session(
    store: SessionStore,
    name: str,
    *,
    description: Optional[str] = None,
    tags: Iterable[str] = (),
    owner: Optional[str] = None,
    force: bool = False,
) -> Session:
    """
    Create a DRAFT session with an empty draft and make it current.

    An open (non-terminal) current session blocks the start unless ``force``
    is set, in which case it is aborted first.
    """
    if not name or not name.strip():
        raise InvalidInputError("Workflow name is required", details={"field": "name"})

    expected = store.current_session_id()
    previous = store.get_current()
    if previous is not None and not previous.is_terminal:
        if not force:
            raise BuilderAlreadyStartedError(
                f"Session '{previous.id}' ({previous.draft.name}) is still open",
                hint="Commit or abort it first, or pass --force to abort it",
                details={"sessionId": previous.id, "state": previous.state.value},
            )
        abort_session(previous, store)
        expected = None

    tag_list = list(dict.fromkeys(tags))
    metadata = DraftMetadata(tags=tag_list, owner=owner) if tag_list or owner else None
    session = Session(
        state=SessionState.DRAFT,
        workflow_draft=Draft(name=name, description=description, metadata=metadata),
    )
    store.save(session)

    if not store.compare_and_set_current(expected, session.id):
        raise StaleSessionError(
            "Another command changed the current session while starting",
            hint="Run `wfbuild status` and try again",
        )

    logger.info(f"Started session {session.id} for workflow '{name}'")
    return session


def resolve_session(store: SessionStore, session_id: Optional[str] = None) -> Session:
    """Load the explicitly requested session, or the current one."""
    if session_id:
        return store.load(session_id)
    session = store.get_current()
    if session is None:
        raise BuilderNotStartedError(
            "No builder session is active",
            hint="Start one with `wfbuild start <name>`",
        )
    return session


def abort_session(session: Session, store: SessionStore) -> Session:
    if session.is_terminal:
        raise InvalidStateError(
            f"Session '{session.id}' is already {session.state.value}",
            details={"sessionId": session.id, "state": session.state.value},
        )
    session.state = SessionState.ABORTED
    session.touch()
    store.save(session)
    store.compare_and_set_current(session.id, None)
    logger.info(f"Session {session.id} aborted")
    return session


def describe_status(session: Optional[Session]) -> Dict[str, Any]:
    if session is None:
        return {"state": SessionState.IDLE.value, "session": None}

    draft = session.draft
    status: Dict[str, Any] = {
        "state": session.state.value,
        "session": {
            "id": session.id,
            "name": draft.name,
            "description": draft.description,
            "createdAt": session.created_at.isoformat(),
            "updatedAt": session.updated_at.isoformat(),
            "revision": session.revision,
        },
        "nodeCount": len(draft.nodes),
        "edgeCount": sum(len(node.depends_on) for node in draft.nodes),
        "validation": session.validation.model_dump(mode="json", by_alias=True, exclude_none=True),
    }
    if draft.metadata:
        status["session"]["metadata"] = draft.metadata.model_dump(mode="json", exclude_none=True)
    if session.commit:
        status["commit"] = session.commit.model_dump(mode="json", by_alias=True)
    return status
