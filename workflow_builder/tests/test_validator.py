from __future__ import annotations

import json

from workflow_builder.builder.mutations import add_node
from workflow_builder.builder.validator import (
    ValidationCode,
    find_cycle,
    validate_draft,
    validate_session,
)
from workflow_builder.schema.models import Draft, Node, SessionState


def _draft(*nodes: dict, name: str = "demo") -> Draft:
    return Draft(
        name=name,
        nodes=[Node.model_validate({"type": "task", **node}) for node in nodes],
    )


def test_valid_chain_passes() -> None:
    draft = _draft(
        {"id": "A"},
        {"id": "B", "dependsOn": ["A"]},
        {"id": "C", "dependsOn": ["B"]},
    )

    result = validate_draft(draft)

    assert result.ok
    assert result.errors == []


def test_three_node_cycle_reports_closed_path() -> None:
    draft = _draft(
        {"id": "A", "dependsOn": ["B"]},
        {"id": "B", "dependsOn": ["C"]},
        {"id": "C", "dependsOn": ["A"]},
    )

    result = validate_draft(draft)

    assert not result.ok
    assert result.codes() == [ValidationCode.CYCLE_DETECTED]
    issue = result.errors[0]
    assert issue.details["cycle"] == ["A", "B", "C", "A"]
    assert issue.node_id == "A"
    assert "A -> B -> C -> A" in issue.message


def test_missing_dependency_is_reported_without_cycle() -> None:
    draft = _draft({"id": "A", "dependsOn": ["X"]})

    result = validate_draft(draft)

    assert result.codes() == [ValidationCode.MISSING_DEPENDENCY]
    assert result.errors[0].details == {"missingDep": "X"}
    assert result.errors[0].node_id == "A"


def test_self_reference_is_not_also_a_cycle() -> None:
    draft = _draft({"id": "A", "dependsOn": ["A"]})

    result = validate_draft(draft)

    assert result.codes() == [ValidationCode.SELF_REFERENCE]
    assert find_cycle(draft.nodes) is None


def test_self_reference_and_cycle_reported_independently() -> None:
    draft = _draft(
        {"id": "A", "dependsOn": ["A", "B"]},
        {"id": "B", "dependsOn": ["A"]},
    )

    result = validate_draft(draft)

    assert result.codes() == [ValidationCode.SELF_REFERENCE, ValidationCode.CYCLE_DETECTED]
    assert result.errors[1].details["cycle"] == ["A", "B", "A"]


def test_only_first_cycle_is_reported() -> None:
    draft = _draft(
        {"id": "A", "dependsOn": ["B"]},
        {"id": "B", "dependsOn": ["A"]},
        {"id": "C", "dependsOn": ["D"]},
        {"id": "D", "dependsOn": ["C"]},
    )

    result = validate_draft(draft)

    assert result.codes() == [ValidationCode.CYCLE_DETECTED]
    assert result.errors[0].details["cycle"] == ["A", "B", "A"]


def test_cycle_behind_acyclic_prefix_starts_at_entry_node() -> None:
    draft = _draft(
        {"id": "start", "dependsOn": ["loop1"]},
        {"id": "loop1", "dependsOn": ["loop2"]},
        {"id": "loop2", "dependsOn": ["loop1"]},
    )

    assert find_cycle(draft.nodes) == ["loop1", "loop2", "loop1"]


def test_diamond_is_acyclic() -> None:
    draft = _draft(
        {"id": "a"},
        {"id": "b", "dependsOn": ["a"]},
        {"id": "c", "dependsOn": ["a"]},
        {"id": "d", "dependsOn": ["b", "c"]},
    )

    assert find_cycle(draft.nodes) is None
    assert validate_draft(draft).ok


def test_duplicate_ids_flag_every_occurrence_after_the_first() -> None:
    draft = _draft({"id": "a"}, {"id": "a"}, {"id": "b"}, {"id": "a"})

    result = validate_draft(draft)

    duplicates = [e for e in result.errors if e.code == ValidationCode.DUPLICATE_NODE_ID]
    assert [e.details["index"] for e in duplicates] == [1, 3]
    assert all(e.node_id == "a" for e in duplicates)


def test_missing_name_and_empty_workflow() -> None:
    result = validate_draft(Draft(name="  "))

    assert result.codes() == [ValidationCode.MISSING_NAME, ValidationCode.EMPTY_WORKFLOW]


def test_missing_id_and_type() -> None:
    draft = Draft(
        name="demo",
        nodes=[
            Node(id="", type=""),
            Node(id="b", type=""),
        ],
    )

    result = validate_draft(draft)

    assert result.codes() == [
        ValidationCode.MISSING_NODE_ID,
        ValidationCode.MISSING_NODE_TYPE,
        ValidationCode.MISSING_NODE_TYPE,
    ]
    assert result.errors[0].details == {"index": 0}
    assert result.errors[1].node_id is None
    assert result.errors[2].node_id == "b"


def test_checks_run_in_fixed_order_and_accumulate() -> None:
    draft = _draft(
        {"id": "a", "dependsOn": ["ghost"]},
        {"id": "a"},
        {"id": "b", "dependsOn": ["b"]},
        name="",
    )

    result = validate_draft(draft)

    assert result.codes() == [
        ValidationCode.MISSING_NAME,
        ValidationCode.DUPLICATE_NODE_ID,
        ValidationCode.MISSING_DEPENDENCY,
        ValidationCode.SELF_REFERENCE,
    ]


def test_validation_is_deterministic() -> None:
    draft = _draft(
        {"id": "A", "dependsOn": ["B", "X"]},
        {"id": "B", "dependsOn": ["A"]},
    )

    first = validate_draft(draft)
    second = validate_draft(draft)

    assert first == second


def test_validate_session_promotes_and_persists(store, session) -> None:
    add_node(session, store, {"id": "n1", "type": "http"})

    result = validate_session(session, store)

    assert result.ok
    assert session.state == SessionState.VALIDATED
    stored = store.load(session.id)
    assert stored.state == SessionState.VALIDATED
    assert stored.validation.ok


def test_validate_session_failure_stays_draft(store, session) -> None:
    result = validate_session(session, store)

    assert not result.ok
    assert result.codes() == [ValidationCode.EMPTY_WORKFLOW]
    stored = store.load(session.id)
    assert stored.state == SessionState.DRAFT
    assert stored.validation.codes() == [ValidationCode.EMPTY_WORKFLOW]


def test_long_chain_declared_tail_first() -> None:
    count = 5000
    draft = _draft(*({"id": f"n{i}", "dependsOn": [f"n{i - 1}"] if i else []} for i in reversed(range(count))))

    assert find_cycle(draft.nodes) is None
    assert validate_draft(draft).ok


def test_long_cycle_closes_on_entry_node() -> None:
    count = 5000
    draft = _draft(*({"id": f"n{i}", "dependsOn": [f"n{(i - 1) % count}"]} for i in range(count)))

    cycle = find_cycle(draft.nodes)

    assert len(cycle) == count + 1
    assert cycle[0] == cycle[-1] == "n0"
    assert cycle[1] == f"n{count - 1}"


def test_explored_branch_is_not_revisited() -> None:
    draft = _draft(
        {"id": "a", "dependsOn": ["shared"]},
        {"id": "b", "dependsOn": ["shared", "c"]},
        {"id": "c", "dependsOn": ["b"]},
        {"id": "shared"},
    )

    assert find_cycle(draft.nodes) == ["b", "c", "b"]


def test_hand_edited_session_reports_missing_type(store, session) -> None:
    path = store.root / "sessions" / f"{session.id}.json"
    raw = json.loads(path.read_text())
    raw["workflowDraft"]["nodes"] = [{"id": "a"}]
    path.write_text(json.dumps(raw))

    result = validate_session(store.load(session.id), store)

    assert result.codes() == [ValidationCode.MISSING_NODE_TYPE]
    assert result.errors[0].node_id == "a"
