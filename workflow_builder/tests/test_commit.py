from __future__ import annotations

import pytest

from workflow_builder.builder.commit import build_workflow_request, commit_session
from workflow_builder.builder.lifecycle import start_session
from workflow_builder.builder.mutations import add_node
from workflow_builder.builder.validator import validate_session
from workflow_builder.errors import (
    InvalidStateError,
    NetworkError,
    ValidationRequiredError,
)
from workflow_builder.schema.models import SessionState


def _build_two_step(store, session) -> None:
    add_node(session, store, {"id": "n1", "type": "http", "input": {"url": "https://example.com"}})
    add_node(session, store, {"id": "n2", "type": "transform", "dependsOn": ["n1"]})


def test_commit_requires_validation(store, session, fake_client) -> None:
    _build_two_step(store, session)

    with pytest.raises(ValidationRequiredError) as excinfo:
        commit_session(session, store, fake_client)

    assert excinfo.value.code == "VALIDATION_REQUIRED"
    assert fake_client.requests == []
    assert store.load(session.id).state == SessionState.DRAFT


def test_commit_rejects_failed_validation(store, session, fake_client) -> None:
    validate_session(session, store)

    with pytest.raises(ValidationRequiredError):
        commit_session(session, store, fake_client)

    assert fake_client.requests == []


def test_request_carries_the_draft(store) -> None:
    session = start_session(store, "demo", description="two steps", tags=["etl"], owner="ops")
    _build_two_step(store, session)

    request = build_workflow_request(session).model_dump(mode="json", by_alias=True, exclude_none=True)

    assert request == {
        "name": "demo",
        "description": "two steps",
        "spec": {
            "version": 1,
            "nodes": [
                {"id": "n1", "type": "http", "input": {"url": "https://example.com"}, "dependsOn": []},
                {"id": "n2", "type": "transform", "input": {}, "dependsOn": ["n1"]},
            ],
            "metadata": {"tags": ["etl"], "owner": "ops"},
        },
    }


def test_commit_end_to_end(store, session, fake_client) -> None:
    _build_two_step(store, session)
    assert validate_session(session, store).ok

    result = commit_session(session, store, fake_client)

    assert result.workflow_id == "wf_123"
    assert result.session_id == session.id
    assert result.name == "demo"
    assert len(fake_client.requests) == 1

    stored = store.load(session.id)
    assert stored.state == SessionState.COMMITTED
    assert stored.commit.workflow_id == "wf_123"
    assert store.current_session_id() is None


def test_service_failure_keeps_session_validated(store, session, fake_client) -> None:
    client = fake_client
    client.error = NetworkError("connection refused")
    _build_two_step(store, session)
    validate_session(session, store)

    with pytest.raises(NetworkError):
        commit_session(session, store, client)

    stored = store.load(session.id)
    assert stored.state == SessionState.VALIDATED
    assert stored.commit is None
    assert store.current_session_id() == session.id

    # Retrying once the service is reachable succeeds
    client.error = None
    assert commit_session(session, store, client).workflow_id == "wf_123"


def test_committed_session_is_frozen(store, session, fake_client) -> None:
    _build_two_step(store, session)
    validate_session(session, store)
    commit_session(session, store, fake_client)

    with pytest.raises(InvalidStateError):
        add_node(session, store, {"id": "n3", "type": "http"})
    with pytest.raises(InvalidStateError):
        validate_session(session, store)
    with pytest.raises(ValidationRequiredError):
        commit_session(session, store, fake_client)
