from __future__ import annotations

from typing import Any, Callable, Hashable, Iterator, Mapping, Optional, Protocol, runtime_checkable

from checktree.core.cascade import CascadeEngine
from checktree.core.config import TreeConfig, default_config
from checktree.core.models import CheckReport, StateChange
from checktree.core.notifier import ChangeNotifier
from checktree.core.store import StateStore
from checktree.core.tree import Tree, build_tree
from checktree.core.tri_state import CHECKED, UNCHECKED


@runtime_checkable
class CheckboxCapability(Protocol):
    """Checkbox operations a tree view can be given at construction time."""

    def check(self, node_id: Hashable) -> Any: ...

    def uncheck(self, node_id: Hashable) -> Any: ...

    def check_all(self) -> Any: ...

    def uncheck_all(self) -> Any: ...

    def get_checked_ids(self) -> Iterator[Hashable]: ...

    def on_state_changed(self, listener: Callable[[StateChange], None]) -> Callable[[], None]: ...


class CheckTree:
    def __init__(self, tree: Tree, config: Optional[TreeConfig] = None) -> None:
        self.tree = tree
        self.config = config or default_config()
        self.store = StateStore(
            {
                node_id: CHECKED if tree.node(node_id).seed_checked else UNCHECKED
                for node_id in tree.iter_preorder()
            }
        )
        self.notifier = ChangeNotifier()
        self.engine = CascadeEngine(tree, self.store, self.notifier)
        self.last_reconciliation = self.engine.reconcile()

    @classmethod
    def from_records(cls, records: Any, config: Optional[TreeConfig] = None) -> "CheckTree":
        config = config or default_config()
        tree = build_tree(
            records,
            config.checked_field,
            id_field=config.id_field,
            children_field=config.children_field,
        )
        return cls(tree, config)

    def on_state_changed(self, listener: Callable[[StateChange], None]) -> Callable[[], None]:
        return self.notifier.subscribe(listener)

    def set_state(self, node_id: Hashable, state: int) -> "CheckTree":
        self.engine.set_node_state(node_id, state, self.config.cascade)
        return self

    def check(self, node_id: Hashable) -> "CheckTree":
        return self.set_state(node_id, CHECKED)

    def uncheck(self, node_id: Hashable) -> "CheckTree":
        return self.set_state(node_id, UNCHECKED)

    def check_all(self) -> "CheckTree":
        self.engine.assign_all(CHECKED)
        return self

    def uncheck_all(self) -> "CheckTree":
        self.engine.assign_all(UNCHECKED)
        return self

    def state_of(self, node_id: Hashable) -> int:
        return self.store.get(node_id)

    def get_checked_ids(self) -> Iterator[Hashable]:
        for node_id in self.tree.iter_preorder():
            if self.store.get(node_id) == CHECKED:
                yield node_id

    def get_checked_records(self) -> list[Mapping[str, Any]]:
        return [self.tree.node(node_id).record for node_id in self.get_checked_ids()]

    def states(self) -> dict[Hashable, int]:
        return {node_id: self.store.get(node_id) for node_id in self.tree.iter_preorder()}

    def report(self, events: int = 0) -> CheckReport:
        return CheckReport(
            checked_ids=list(self.get_checked_ids()),
            states=self.states(),
            reconciled=len(self.last_reconciliation),
            events=events,
        )
