from __future__ import annotations

from workflow_builder.builder.graph import (
    derive_edges,
    generate_ascii_graph,
    generate_graph,
    get_topological_order,
)
from workflow_builder.builder.mutations import add_node
from workflow_builder.schema.models import Node
from workflow_builder.schema.payloads import dump_payload


def _nodes(*specs: dict) -> list[Node]:
    return [Node.model_validate({"type": "task", **spec}) for spec in specs]


def test_linear_chain_order() -> None:
    nodes = _nodes(
        {"id": "A"},
        {"id": "B", "dependsOn": ["A"]},
        {"id": "C", "dependsOn": ["B"]},
    )

    assert get_topological_order(nodes) == ["A", "B", "C"]


def test_declaration_order_does_not_need_to_match_execution_order() -> None:
    nodes = _nodes(
        {"id": "C", "dependsOn": ["B"]},
        {"id": "B", "dependsOn": ["A"]},
        {"id": "A"},
    )

    assert get_topological_order(nodes) == ["A", "B", "C"]


def test_ready_nodes_leave_in_enqueue_order() -> None:
    nodes = _nodes(
        {"id": "a"},
        {"id": "b"},
        {"id": "c", "dependsOn": ["b"]},
        {"id": "d", "dependsOn": ["a"]},
    )

    # d is unblocked by a before c is unblocked by b
    assert get_topological_order(nodes) == ["a", "b", "d", "c"]


def test_diamond_waits_for_every_prerequisite() -> None:
    nodes = _nodes(
        {"id": "a"},
        {"id": "b", "dependsOn": ["a"]},
        {"id": "c", "dependsOn": ["a"]},
        {"id": "d", "dependsOn": ["c", "b"]},
    )

    assert get_topological_order(nodes) == ["a", "b", "c", "d"]


def test_cycle_members_are_left_out() -> None:
    nodes = _nodes(
        {"id": "a"},
        {"id": "b", "dependsOn": ["c"]},
        {"id": "c", "dependsOn": ["b"]},
    )

    assert get_topological_order(nodes) == ["a"]


def test_unknown_dependencies_do_not_block() -> None:
    nodes = _nodes({"id": "a", "dependsOn": ["missing"]}, {"id": "b", "dependsOn": ["a"]})

    assert get_topological_order(nodes) == ["a", "b"]


def test_edges_point_from_prerequisite_to_dependent() -> None:
    nodes = _nodes({"id": "n1"}, {"id": "n2", "dependsOn": ["n1"]})

    edges = derive_edges(nodes)

    assert [dump_payload(edge) for edge in edges] == [{"from": "n1", "to": "n2"}]


def test_generate_graph_stats(store, session) -> None:
    add_node(session, store, {"id": "n1", "type": "http"})
    add_node(session, store, {"id": "n2", "type": "transform", "dependsOn": ["n1"]})
    add_node(session, store, {"id": "n3", "type": "transform", "dependsOn": ["n1"]})

    view = generate_graph(session)
    payload = dump_payload(view)

    assert payload["edges"] == [{"from": "n1", "to": "n2"}, {"from": "n1", "to": "n3"}]
    assert payload["stats"] == {
        "nodeCount": 3,
        "edgeCount": 2,
        "rootNodes": ["n1"],
        "leafNodes": ["n2", "n3"],
        "topologicalOrder": ["n1", "n2", "n3"],
        "isAcyclic": True,
    }


def test_ascii_graph_marks_roots_and_leaves(store, session) -> None:
    add_node(session, store, {"id": "n1", "type": "http"})
    add_node(session, store, {"id": "n2", "type": "transform", "dependsOn": ["n1"]})

    lines = generate_ascii_graph(session).splitlines()

    assert lines[0] == "Workflow: demo  (2 nodes, 1 edges)"
    assert lines[2] == ">  n1  [http]"
    assert lines[3] == " * n2  [transform]  <- n1"
    assert lines[-1].startswith("Legend:")


def test_ascii_graph_lists_unordered_nodes(store, session) -> None:
    session.draft.nodes = _nodes(
        {"id": "a"},
        {"id": "b", "dependsOn": ["c"]},
        {"id": "c", "dependsOn": ["b"]},
    )

    text = generate_ascii_graph(session)

    assert "Unordered (cycle or self-reference):" in text
    assert "b  [task]  <- c" in text


def test_ascii_graph_for_empty_draft(session) -> None:
    assert "(no nodes)" in generate_ascii_graph(session)
