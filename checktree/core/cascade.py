from __future__ import annotations

import logging
from typing import Hashable, Optional

from checktree.core.models import StateChange
from checktree.core.notifier import ChangeNotifier
from checktree.core.store import StateStore
from checktree.core.tree import NotFoundError, Tree
from checktree.core.tri_state import (
    INDETERMINATE,
    derive_state,
    state_name,
    validate_state,
)

logger = logging.getLogger(__name__)


class CascadeEngine:
    """Keeps a `StateStore` consistent with the tree after each state change.

    Every public method validates its input before touching the store,
    commits all of its mutations, and only then hands the resulting
    `StateChange` list to the notifier.
    """

    def __init__(
        self,
        tree: Tree,
        store: StateStore,
        notifier: Optional[ChangeNotifier] = None,
    ) -> None:
        self.tree = tree
        self.store = store
        self.notifier = notifier or ChangeNotifier()

    def set_node_state(
        self,
        node_id: Hashable,
        new_state: int,
        cascade_enabled: bool = True,
    ) -> list[StateChange]:
        if node_id not in self.tree:
            raise NotFoundError(node_id)
        validate_state(new_state)

        changes: list[StateChange] = []
        self._assign(node_id, new_state, changes)

        if cascade_enabled and new_state != INDETERMINATE:
            for descendant_id in self.tree.descendants_of(node_id):
                self._assign(descendant_id, new_state, changes)

        converged_at = self._propagate_up(node_id, changes)
        logger.debug(
            "set %r to %s (cascade=%s): %d changed, converged at %r",
            node_id,
            state_name(new_state),
            cascade_enabled,
            len(changes),
            converged_at,
        )
        self.notifier.emit(changes)
        return changes

    def assign_all(self, state: int) -> list[StateChange]:
        validate_state(state)
        changes: list[StateChange] = []
        for node_id in self.tree.iter_preorder():
            self._assign(node_id, state, changes)
        logger.debug("assigned %s to all nodes: %d changed", state_name(state), len(changes))
        self.notifier.emit(changes)
        return changes

    def reconcile(self) -> list[StateChange]:
        """Derive every parent from its children once, deepest parents first.

        Post-order guarantees a parent is derived after all of its children
        have settled, so one pass over the internal nodes is enough.
        """
        changes: list[StateChange] = []
        for node_id in self.tree.iter_postorder():
            if self.tree.is_leaf(node_id):
                continue
            derived = self.derived_state_of(node_id)
            if derived != self.store.get(node_id):
                self._assign(node_id, derived, changes)
        logger.debug("reconciled %d nodes: %d changed", len(self.tree), len(changes))
        self.notifier.emit(changes)
        return changes

    def derived_state_of(self, node_id: Hashable) -> int:
        children = self.tree.children_of(node_id)
        if not children:
            return self.store.get(node_id)
        result = derive_state(self.store.get(child_id) for child_id in children)
        logger.debug(
            "derived %r as %s (all_checked=%s, all_unchecked=%s)",
            node_id,
            state_name(result.state),
            result.all_checked,
            result.all_unchecked,
        )
        return result.state

    def _propagate_up(self, node_id: Hashable, changes: list[StateChange]) -> Optional[Hashable]:
        for ancestor_id in self.tree.ancestor_chain_of(node_id):
            derived = self.derived_state_of(ancestor_id)
            if derived == self.store.get(ancestor_id):
                return ancestor_id
            self._assign(ancestor_id, derived, changes)
        return None

    def _assign(self, node_id: Hashable, state: int, changes: list[StateChange]) -> None:
        previous = self.store.set(node_id, state)
        if previous != state:
            changes.append(
                StateChange(node_id=node_id, record=self.tree.node(node_id).record, state=state)
            )
