from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable, Mapping, Optional


@dataclass(frozen=True)
class Node:
    id: Hashable
    parent_id: Optional[Hashable]
    children: tuple[Hashable, ...]
    record: Mapping[str, Any] = field(compare=False, repr=False)
    seed_checked: bool = False

    @property
    def is_leaf(self) -> bool:
        return not self.children


@dataclass(frozen=True)
class StateChange:
    node_id: Hashable
    record: Mapping[str, Any] = field(compare=False, repr=False)
    state: int


@dataclass(frozen=True)
class CheckReport:
    checked_ids: list[Hashable]
    states: dict[Hashable, int]
    reconciled: int
    events: int
