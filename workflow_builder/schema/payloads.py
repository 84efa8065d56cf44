"""
Result payloads returned by builder operations and the commit wire models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from workflow_builder.schema.models import (
    ConnectionDiff,
    DraftMetadata,
    Node,
    NodeDiff,
    StrictModel,
)


WORKFLOW_SPEC_VERSION = 1


# -----------------------------
# Mutation results
# -----------------------------
class AddNodeResult(StrictModel):
    node: Node
    diff: NodeDiff


class UpdateNodeResult(StrictModel):
    node: Node
    diff: NodeDiff


class RemoveNodeResult(StrictModel):
    removed: Node
    diff: NodeDiff
    cleaned_deps: List[str] = Field(default_factory=list, alias="cleanedDeps")


class ConnectionResult(StrictModel):
    node: Node
    diff: ConnectionDiff


# -----------------------------
# Graph view
# -----------------------------
class GraphEdge(StrictModel):
    from_: str = Field(alias="from")
    to: str


class GraphStats(StrictModel):
    node_count: int = Field(alias="nodeCount")
    edge_count: int = Field(alias="edgeCount")
    root_nodes: List[str] = Field(default_factory=list, alias="rootNodes")
    leaf_nodes: List[str] = Field(default_factory=list, alias="leafNodes")
    topological_order: List[str] = Field(default_factory=list, alias="topologicalOrder")
    is_acyclic: bool = Field(alias="isAcyclic")


class GraphView(StrictModel):
    nodes: List[Node]
    edges: List[GraphEdge]
    stats: GraphStats


# -----------------------------
# Commit wire models
# -----------------------------
class WorkflowSpecPayload(StrictModel):
    version: Literal[1] = WORKFLOW_SPEC_VERSION
    nodes: List[Node] = Field(default_factory=list)
    metadata: Optional[DraftMetadata] = None


class WorkflowCreateRequest(StrictModel):
    name: str
    description: Optional[str] = None
    spec: WorkflowSpecPayload


class WorkflowCreateResponse(BaseModel):
    # The service may grow fields; only these are relied upon.
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    workflow_id: str = Field(alias="workflowId")
    name: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class CommitResult(StrictModel):
    session_id: str = Field(alias="sessionId")
    workflow_id: str = Field(alias="workflowId")
    name: str
    committed_at: datetime = Field(alias="committedAt")


def dump_payload(model: BaseModel) -> Dict[str, Any]:
    """Serialise a payload model the way it travels on the wire."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
