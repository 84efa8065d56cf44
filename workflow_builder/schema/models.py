"""
Pydantic models describing builder sessions and the workflow draft they wrap.

Persisted and wire field names are camelCase (``dependsOn``, ``workflowDraft``);
attributes use snake_case and populate by either name.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


SESSION_SCHEMA_VERSION = 1
SESSION_ID_PREFIX = "bs_"


def make_session_id() -> str:
    return f"{SESSION_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        validate_assignment=True,
    )


# -----------------------------
# Nodes
# -----------------------------
class Node(StrictModel):
    """
    A unit of work in the draft.

    ``type`` is an opaque executor tag. ``depends_on`` is an ordered set of
    prerequisite node ids; unknown ids are tolerated until validation.
    """

    id: str = ""
    type: str = ""
    input: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list, alias="dependsOn")

    @field_validator("depends_on")
    @classmethod
    def _dedupe_dependencies(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class NodeInput(Node):
    """
    Shape accepted from callers when adding a node.

    Unlike ``Node`` (which must be able to load a half-edited draft), ids and
    types are mandatory here and a node may never depend on itself.
    """

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)

    @field_validator("id", "type")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _reject_self_reference(self) -> "NodeInput":
        if self.id in self.depends_on:
            raise ValueError(f"node '{self.id}' cannot depend on itself")
        return self

    def to_node(self) -> Node:
        return Node.model_validate(self.model_dump(by_alias=True))


class NodePatch(StrictModel):
    """Replacement values for the mutable fields of an existing node."""

    type: Optional[str] = Field(default=None, min_length=1)
    input: Optional[Dict[str, Any]] = None
    depends_on: Optional[List[str]] = Field(default=None, alias="dependsOn")

    @field_validator("type")
    @classmethod
    def _reject_blank_type(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("depends_on")
    @classmethod
    def _dedupe_dependencies(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return None if value is None else list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _require_a_field(self) -> "NodePatch":
        if self.type is None and self.input is None and self.depends_on is None:
            raise ValueError("update requires at least one of: type, input, dependsOn")
        return self


# -----------------------------
# Draft
# -----------------------------
class DraftMetadata(StrictModel):
    tags: List[str] = Field(default_factory=list)
    owner: Optional[str] = None


class Draft(StrictModel):
    name: str = ""
    description: Optional[str] = None
    nodes: List[Node] = Field(default_factory=list)
    metadata: Optional[DraftMetadata] = None

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]


# -----------------------------
# Validation
# -----------------------------
class ValidationIssue(StrictModel):
    code: str
    message: str
    node_id: Optional[str] = Field(default=None, alias="nodeId")
    details: Optional[Dict[str, Any]] = None


class ValidationResult(StrictModel):
    ok: bool = False
    errors: List[ValidationIssue] = Field(default_factory=list)

    def codes(self) -> List[str]:
        return [issue.code for issue in self.errors]


# -----------------------------
# Session
# -----------------------------
class SessionState(str, Enum):
    IDLE = "IDLE"
    DRAFT = "DRAFT"
    VALIDATED = "VALIDATED"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


TERMINAL_STATES = frozenset({SessionState.COMMITTED, SessionState.ABORTED})


class CommitInfo(StrictModel):
    workflow_id: str = Field(alias="workflowId")
    committed_at: datetime = Field(default_factory=_now, alias="committedAt")


class Session(StrictModel):
    """
    Durable record wrapping one draft through build, validate and commit.

    ``version`` is the record schema version. ``revision`` is bumped by the
    store on every save and compared before writing to reject stale updates.
    """

    id: str = Field(default_factory=make_session_id)
    version: int = SESSION_SCHEMA_VERSION
    revision: int = 0
    state: SessionState = SessionState.DRAFT
    created_at: datetime = Field(default_factory=_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=_now, alias="updatedAt")
    workflow_draft: Draft = Field(default_factory=Draft, alias="workflowDraft")
    validation: ValidationResult = Field(default_factory=ValidationResult)
    commit: Optional[CommitInfo] = None

    @property
    def draft(self) -> Draft:
        return self.workflow_draft

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_mutable(self) -> bool:
        return not self.is_terminal

    def touch(self) -> None:
        """Update the ``updated_at`` timestamp."""
        self.updated_at = _now()


# -----------------------------
# Diffs
# -----------------------------
class NodeDiff(StrictModel):
    action: Literal["add", "update", "remove"]
    node_id: str = Field(alias="nodeId")
    before: Optional[Node] = None
    after: Optional[Node] = None


class ConnectionDiff(StrictModel):
    action: Literal["connect", "disconnect"]
    from_: str = Field(alias="from")
    to: str


Diff = Annotated[
    Union[NodeDiff, ConnectionDiff],
    Field(discriminator="action"),
]
