"""
Commit coordinator — submit a validated draft to the workflow service.

The guard runs before anything touches the network. Service failures
propagate unchanged and leave the session VALIDATED, so a commit can simply
be retried.
"""

from __future__ import annotations

from shared.logger import get_logger
from workflow_builder.client import WorkflowApiClient
from workflow_builder.errors import ValidationRequiredError
from workflow_builder.schema.models import CommitInfo, Session, SessionState
from workflow_builder.schema.payloads import (
    CommitResult,
    WorkflowCreateRequest,
    WorkflowSpecPayload,
)
from workflow_builder.store.session_store import SessionStore

logger = get_logger(__name__)


def require_committable(session: Session) -> None:
    if session.state != SessionState.VALIDATED or not session.validation.ok:
        raise ValidationRequiredError(
            f"Session '{session.id}' is {session.state.value}; only VALIDATED sessions can be committed",
            hint="Run `wfbuild validate` and fix any reported errors first",
            details={"sessionId": session.id, "state": session.state.value},
        )


def build_workflow_request(session: Session) -> WorkflowCreateRequest:
    draft = session.draft
    return WorkflowCreateRequest(
        name=draft.name,
        description=draft.description,
        spec=WorkflowSpecPayload(
            nodes=[node.model_copy(deep=True) for node in draft.nodes],
            metadata=draft.metadata.model_copy(deep=True) if draft.metadata else None,
        ),
    )


def commit_session(session: Session, store: SessionStore, client: WorkflowApiClient) -> CommitResult:
    require_committable(session)
    request = build_workflow_request(session)

    logger.info(f"Committing session {session.id} as workflow '{request.name}' ({len(request.spec.nodes)} nodes)")
    response = client.create_workflow(request)

    session.commit = CommitInfo(workflow_id=response.workflow_id)
    session.state = SessionState.COMMITTED
    session.touch()
    store.save(session)
    store.compare_and_set_current(session.id, None)

    logger.info(f"Session {session.id} committed as {response.workflow_id}")
    return CommitResult(
        session_id=session.id,
        workflow_id=response.workflow_id,
        name=response.name,
        committed_at=session.commit.committed_at,
    )
