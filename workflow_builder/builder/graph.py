"""
Graph views of a draft: derived edges, root/leaf sets, topological order and
a plain-text rendering.

Edges point from a prerequisite to its dependent ("must run before").
"""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Sequence

from workflow_builder.schema.models import Draft, Node, Session
from workflow_builder.schema.payloads import GraphEdge, GraphStats, GraphView

ROOT_MARKER = ">"
LEAF_MARKER = "*"


def derive_edges(nodes: Sequence[Node]) -> List[GraphEdge]:
    return [GraphEdge(from_=dep, to=node.id) for node in nodes for dep in node.depends_on]


def root_nodes(nodes: Sequence[Node]) -> List[str]:
    return [node.id for node in nodes if not node.depends_on]


def leaf_nodes(nodes: Sequence[Node]) -> List[str]:
    referenced = set()
    for node in nodes:
        referenced.update(dep for dep in node.depends_on if dep != node.id)
    return [node.id for node in nodes if node.id not in referenced]


def get_topological_order(nodes: Sequence[Node]) -> List[str]:
    """
    Kahn's algorithm over the dependency relation.

    Ready nodes are emitted in the order they were enqueued: the initial
    zero-in-degree nodes in declaration order, then dependents in the order
    their last prerequisite was emitted. Nodes on a cycle never become ready
    and are left out, so a short result means the draft is not acyclic.
    """
    unique: Dict[str, Node] = {}
    for node in nodes:
        if node.id and node.id not in unique:
            unique[node.id] = node

    in_degree = {node_id: 0 for node_id in unique}
    adjacency: Dict[str, List[str]] = {node_id: [] for node_id in unique}
    for node_id, node in unique.items():
        for dep in node.depends_on:
            if dep in unique:
                adjacency[dep].append(node_id)
                in_degree[node_id] += 1

    queue = deque(node_id for node_id in unique if in_degree[node_id] == 0)
    order: List[str] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for dependent in adjacency[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)
    return order


def generate_graph(session: Session) -> GraphView:
    return build_graph_view(session.draft)


def build_graph_view(draft: Draft) -> GraphView:
    nodes = draft.nodes
    edges = derive_edges(nodes)
    order = get_topological_order(nodes)
    unique_ids = {node.id for node in nodes if node.id}
    stats = GraphStats(
        node_count=len(nodes),
        edge_count=len(edges),
        root_nodes=root_nodes(nodes),
        leaf_nodes=leaf_nodes(nodes),
        topological_order=order,
        is_acyclic=len(order) == len(unique_ids),
    )
    return GraphView(nodes=list(nodes), edges=edges, stats=stats)


def generate_ascii_graph(session: Session) -> str:
    """Render the draft in execution order with root/leaf markers and dependencies."""
    draft = session.draft
    view = build_graph_view(draft)
    name = draft.name or "(unnamed)"
    lines = [f"Workflow: {name}  ({view.stats.node_count} nodes, {view.stats.edge_count} edges)", ""]

    if not draft.nodes:
        lines.append("  (no nodes)")
        return "\n".join(lines)

    roots = set(view.stats.root_nodes)
    leaves = set(view.stats.leaf_nodes)
    by_id: Dict[str, Node] = {}
    for node in draft.nodes:
        by_id.setdefault(node.id, node)

    ordered = view.stats.topological_order
    width = max(len(node_id) for node_id in by_id) if by_id else 0

    def render(node: Node) -> str:
        marker = (ROOT_MARKER if node.id in roots else " ") + (LEAF_MARKER if node.id in leaves else " ")
        line = f"{marker} {node.id.ljust(width)}  [{node.type}]"
        if node.depends_on:
            line += f"  <- {', '.join(node.depends_on)}"
        return line

    lines.extend(render(by_id[node_id]) for node_id in ordered)

    unordered = [node_id for node_id in by_id if node_id not in set(ordered)]
    if unordered:
        lines.append("")
        lines.append("Unordered (cycle or self-reference):")
        lines.extend(render(by_id[node_id]) for node_id in unordered)

    lines.append("")
    lines.append(f"Legend: {ROOT_MARKER} root  {LEAF_MARKER} leaf  <- depends on")
    return "\n".join(lines)
