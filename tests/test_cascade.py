from __future__ import annotations

import random

import pytest

from checktree.core.cascade import CascadeEngine
from checktree.core.checktree import CheckTree
from checktree.core.config import default_config
from checktree.core.models import StateChange
from checktree.core.notifier import ChangeNotifier
from checktree.core.store import StateStore
from checktree.core.tree import NotFoundError, build_tree
from checktree.core.tri_state import CHECKED, INDETERMINATE, UNCHECKED


def _scenario_a() -> CheckTree:
    return CheckTree.from_records(
        [
            {
                "id": "root",
                "children": [
                    {
                        "id": "A",
                        "children": [
                            {"id": "A1", "checked": True},
                            {"id": "A2", "checked": False},
                        ],
                    }
                ],
            }
        ]
    )


def _random_records(rng: random.Random, count: int) -> list[dict]:
    records = [{"id": 0, "checked": rng.random() < 0.5, "children": []}]
    for node_id in range(1, count):
        parent = rng.choice(records)
        child = {"id": node_id, "checked": rng.random() < 0.5, "children": []}
        parent["children"].append(child)
        records.append(child)
    return [records[0]]


def _assert_derivation_invariant(checks: CheckTree) -> None:
    for node_id in checks.tree.iter_preorder():
        children = checks.tree.children_of(node_id)
        if not children:
            continue
        child_states = [checks.state_of(child_id) for child_id in children]
        state = checks.state_of(node_id)
        assert (state == CHECKED) == all(s == CHECKED for s in child_states), node_id
        assert (state == UNCHECKED) == all(s == UNCHECKED for s in child_states), node_id
        if state == INDETERMINATE:
            assert len(set(child_states)) > 1 or child_states[0] == INDETERMINATE


def test_scenario_a_load_derives_indeterminate() -> None:
    checks = _scenario_a()
    assert checks.state_of("A1") == CHECKED
    assert checks.state_of("A2") == UNCHECKED
    assert checks.state_of("A") == INDETERMINATE
    assert checks.state_of("root") == INDETERMINATE


def test_scenario_b_check_cascades_down_and_up() -> None:
    checks = _scenario_a()
    checks.check("A")
    assert checks.state_of("A1") == CHECKED
    assert checks.state_of("A2") == CHECKED
    assert checks.state_of("A") == CHECKED
    assert checks.state_of("root") == CHECKED


def test_scenario_c_uncheck_leaf_makes_parent_indeterminate() -> None:
    checks = _scenario_a()
    checks.check("A")
    checks.uncheck("A1")
    assert checks.state_of("A1") == UNCHECKED
    assert checks.state_of("A2") == CHECKED
    assert checks.state_of("A") == INDETERMINATE
    assert checks.state_of("root") == INDETERMINATE


def test_scenario_d_unknown_id_leaves_store_untouched() -> None:
    checks = _scenario_a()
    events: list[StateChange] = []
    checks.on_state_changed(events.append)
    before = checks.store.snapshot()

    with pytest.raises(NotFoundError):
        checks.check("nonexistent-id")

    assert checks.store.snapshot() == before
    assert events == []


def test_invalid_state_leaves_store_untouched() -> None:
    checks = _scenario_a()
    before = checks.store.snapshot()
    with pytest.raises(ValueError):
        checks.set_state("A", 5)
    assert checks.store.snapshot() == before


def test_check_is_idempotent() -> None:
    checks = _scenario_a()
    checks.check("A")
    once = checks.store.snapshot()
    second = checks.engine.set_node_state("A", CHECKED, True)
    assert checks.store.snapshot() == once
    assert second == []


def test_check_reaches_every_descendant() -> None:
    rng = random.Random(7)
    records = _random_records(rng, 40)
    for node_id in range(40):
        checks = CheckTree.from_records(records)
        checks.check(node_id)
        assert checks.state_of(node_id) == CHECKED
        for descendant_id in checks.tree.descendants_of(node_id):
            assert checks.state_of(descendant_id) == CHECKED


def test_derivation_invariant_holds_after_random_edits() -> None:
    rng = random.Random(1234)
    for _ in range(5):
        checks = CheckTree.from_records(_random_records(rng, 60))
        _assert_derivation_invariant(checks)
        for _ in range(40):
            node_id = rng.randrange(60)
            if rng.random() < 0.5:
                checks.check(node_id)
            else:
                checks.uncheck(node_id)
            _assert_derivation_invariant(checks)


def test_events_only_for_nodes_that_changed() -> None:
    checks = _scenario_a()
    events: list[StateChange] = []
    checks.on_state_changed(events.append)

    checks.check("A")

    assert [(e.node_id, e.state) for e in events] == [
        ("A", CHECKED),
        ("A2", CHECKED),
        ("root", CHECKED),
    ]
    assert events[0].record["id"] == "A"


def test_events_are_delivered_after_commit() -> None:
    checks = _scenario_a()
    seen: list[tuple] = []

    def listener(change: StateChange) -> None:
        seen.append((change.node_id, checks.state_of(change.node_id), checks.state_of("root")))

    checks.on_state_changed(listener)
    checks.check("A")

    # Every listener call already sees the final state of the whole cascade.
    assert all(root_state == CHECKED for _, _, root_state in seen)
    assert all(state == CHECKED for _, state, _ in seen)


def test_upward_walk_stops_at_convergence(monkeypatch) -> None:
    checks = CheckTree.from_records(
        [
            {
                "id": "root",
                "children": [
                    {
                        "id": "P",
                        "children": [
                            {"id": "Q", "children": [{"id": "q1", "checked": True}, {"id": "q2"}]},
                            {"id": "r"},
                        ],
                    }
                ],
            }
        ]
    )
    assert checks.state_of("P") == INDETERMINATE
    visited: list = []
    original = checks.engine.derived_state_of

    def tracking(node_id):
        visited.append(node_id)
        return original(node_id)

    monkeypatch.setattr(checks.engine, "derived_state_of", tracking)
    events: list[StateChange] = []
    checks.on_state_changed(events.append)

    checks.check("q2")

    assert visited == ["Q", "P"]
    assert [e.node_id for e in events] == ["q2", "Q"]
    assert checks.state_of("root") == INDETERMINATE


def test_no_change_emits_nothing() -> None:
    checks = CheckTree.from_records(
        [{"id": "root", "children": [{"id": "x", "children": [{"id": "x1"}, {"id": "x2"}]}]}]
    )
    events: list[StateChange] = []
    checks.on_state_changed(events.append)
    checks.uncheck("x1")
    assert events == []


def test_cascade_disabled_keeps_descendants() -> None:
    config = default_config().with_overrides(cascade=False)
    checks = CheckTree.from_records(
        [
            {
                "id": "root",
                "children": [
                    {"id": "A", "children": [{"id": "A1", "checked": True}, {"id": "A2"}]},
                ],
            }
        ],
        config,
    )
    checks.check("A")
    assert checks.state_of("A") == CHECKED
    assert checks.state_of("A2") == UNCHECKED
    assert checks.state_of("root") == CHECKED


def test_indeterminate_is_never_pushed_down() -> None:
    checks = _scenario_a()
    checks.set_state("A", INDETERMINATE)
    assert checks.state_of("A1") == CHECKED
    assert checks.state_of("A2") == UNCHECKED


def test_explicit_indeterminate_on_leaf() -> None:
    checks = CheckTree.from_records(
        [{"id": "root", "children": [{"id": "a", "checked": True}, {"id": "b", "checked": True}]}]
    )
    assert checks.state_of("root") == CHECKED
    checks.set_state("a", INDETERMINATE)
    assert checks.state_of("a") == INDETERMINATE
    assert checks.state_of("root") == INDETERMINATE


def test_root_without_parent_has_no_upward_pass() -> None:
    checks = CheckTree.from_records([{"id": "lonely"}, {"id": "other", "checked": True}])
    events: list[StateChange] = []
    checks.on_state_changed(events.append)
    checks.check("lonely")
    assert [e.node_id for e in events] == ["lonely"]
    assert checks.state_of("other") == CHECKED


def test_subscriber_error_propagates_after_commit() -> None:
    checks = _scenario_a()

    def boom(_change: StateChange) -> None:
        raise RuntimeError("listener failed")

    checks.on_state_changed(boom)
    with pytest.raises(RuntimeError):
        checks.check("A")
    assert checks.state_of("root") == CHECKED


def test_unsubscribe_stops_delivery() -> None:
    checks = _scenario_a()
    events: list[StateChange] = []
    unsubscribe = checks.on_state_changed(events.append)
    unsubscribe()
    unsubscribe()
    checks.check("A")
    assert events == []


def test_reconcile_consistent_seed_is_noop() -> None:
    checks = CheckTree.from_records(
        [
            {
                "id": "r",
                "checked": True,
                "children": [
                    {"id": "a", "checked": True, "children": [{"id": "a1", "checked": True}]},
                    {"id": "b", "checked": True},
                ],
            },
            {"id": "s", "children": [{"id": "s1"}, {"id": "s2"}]},
        ]
    )
    assert checks.last_reconciliation == []
    assert checks.engine.reconcile() == []


def test_reconcile_fixes_inconsistent_seed() -> None:
    checks = CheckTree.from_records(
        [{"id": "r", "checked": True, "children": [{"id": "a"}, {"id": "b"}]}]
    )
    assert checks.state_of("r") == UNCHECKED
    assert [(c.node_id, c.state) for c in checks.last_reconciliation] == [("r", UNCHECKED)]


def test_reconcile_propagates_through_levels() -> None:
    checks = CheckTree.from_records(
        [{"id": "r", "children": [{"id": "m", "children": [{"id": "leaf", "checked": True}]}]}]
    )
    assert checks.state_of("m") == CHECKED
    assert checks.state_of("r") == CHECKED
    assert [c.node_id for c in checks.last_reconciliation] == ["m", "r"]


def test_engine_can_be_driven_directly() -> None:
    tree = build_tree([{"id": "p", "children": [{"id": "c1"}, {"id": "c2"}]}])
    store = StateStore({node_id: UNCHECKED for node_id in tree})
    notifier = ChangeNotifier()
    engine = CascadeEngine(tree, store, notifier)

    changes = engine.set_node_state("c1", CHECKED, cascade_enabled=True)

    assert [(c.node_id, c.state) for c in changes] == [("c1", CHECKED), ("p", INDETERMINATE)]
    assert engine.assign_all(CHECKED) != []
    assert store.snapshot() == {"p": CHECKED, "c1": CHECKED, "c2": CHECKED}


def test_deep_chain_cascades_iteratively() -> None:
    depth = 3000
    root: dict = {"id": 0}
    current = root
    for i in range(1, depth):
        child = {"id": i}
        current["children"] = [child]
        current = child

    checks = CheckTree.from_records(root)
    checks.check(depth - 1)
    assert checks.state_of(0) == CHECKED
    checks.uncheck(0)
    assert checks.state_of(depth - 1) == UNCHECKED


def test_bool_state_is_rejected_before_mutation() -> None:
    checks = _scenario_a()
    before = checks.store.snapshot()
    with pytest.raises(ValueError):
        checks.set_state("A2", True)
    assert checks.store.snapshot() == before


def test_derivation_flags_are_logged(caplog) -> None:
    checks = _scenario_a()
    with caplog.at_level("DEBUG", logger="checktree.core.cascade"):
        checks.check("A")
    assert "derived 'root' as checked (all_checked=True, all_unchecked=False)" in caplog.text
