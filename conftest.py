from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import pytest

from workflow_builder.builder.lifecycle import start_session
from workflow_builder.schema.models import Session
from workflow_builder.schema.payloads import WorkflowCreateRequest, WorkflowCreateResponse
from workflow_builder.store.session_store import SessionStore


class FakeWorkflowClient:
    """Stands in for WorkflowApiClient; records every create request."""

    def __init__(self, workflow_id: str = "wf_123", error: Optional[Exception] = None) -> None:
        self.workflow_id = workflow_id
        self.error = error
        self.requests: List[WorkflowCreateRequest] = []
        self.closed = False

    def create_workflow(self, request: WorkflowCreateRequest) -> WorkflowCreateResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return WorkflowCreateResponse(
            workflow_id=self.workflow_id,
            name=request.name,
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def store(tmp_path) -> SessionStore:
    return SessionStore(tmp_path / "builder-home", lock_timeout=0.2)


@pytest.fixture
def session(store: SessionStore) -> Session:
    return start_session(store, "demo")


@pytest.fixture
def fake_client() -> FakeWorkflowClient:
    return FakeWorkflowClient()
