from __future__ import annotations

from typing import Hashable, Iterable, ItemsView

from checktree.core.tree import NotFoundError


class StateStore:
    """Plain mapping of node id to tri-state value. No tree logic lives here."""

    def __init__(self, states: dict[Hashable, int] | None = None) -> None:
        self._states: dict[Hashable, int] = dict(states or {})

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._states

    def get(self, node_id: Hashable) -> int:
        try:
            return self._states[node_id]
        except KeyError:
            raise NotFoundError(node_id) from None

    def set(self, node_id: Hashable, state: int) -> int | None:
        previous = self._states.get(node_id)
        self._states[node_id] = state
        return previous

    def set_many(self, node_ids: Iterable[Hashable], state: int) -> None:
        for node_id in node_ids:
            self._states[node_id] = state

    def items(self) -> ItemsView[Hashable, int]:
        return self._states.items()

    def snapshot(self) -> dict[Hashable, int]:
        return dict(self._states)
