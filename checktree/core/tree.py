from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Hashable, Iterable, Iterator, Optional

from checktree.core.models import Node


class ValidationError(ValueError):
    def __init__(self, message: str, node_id: Optional[Hashable] = None) -> None:
        super().__init__(message)
        self.node_id = node_id


class NotFoundError(KeyError):
    def __init__(self, node_id: Hashable) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Unknown node id: {self.node_id!r}"


class Tree:
    """Immutable forest of nodes keyed by id.

    Every traversal walks the explicit parent/children links and is written
    iteratively, so depth is only limited by memory.
    """

    def __init__(self, nodes: dict[Hashable, Node], roots: tuple[Hashable, ...]) -> None:
        self._nodes = nodes
        self.roots = roots

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        try:
            return node_id in self._nodes
        except TypeError:
            return False

    def __iter__(self) -> Iterator[Hashable]:
        return self.iter_preorder()

    def node(self, node_id: Hashable) -> Node:
        if node_id not in self:
            raise NotFoundError(node_id)
        return self._nodes[node_id]

    def parent_of(self, node_id: Hashable) -> Optional[Hashable]:
        return self.node(node_id).parent_id

    def children_of(self, node_id: Hashable) -> tuple[Hashable, ...]:
        return self.node(node_id).children

    def is_leaf(self, node_id: Hashable) -> bool:
        return self.node(node_id).is_leaf

    def descendants_of(self, node_id: Hashable) -> Iterator[Hashable]:
        children = self.children_of(node_id)
        return self._walk_preorder(children)

    def ancestor_chain_of(self, node_id: Hashable) -> Iterator[Hashable]:
        parent_id = self.parent_of(node_id)
        return self._walk_up(parent_id)

    def iter_preorder(self) -> Iterator[Hashable]:
        return self._walk_preorder(self.roots)

    def iter_postorder(self) -> Iterator[Hashable]:
        stack: list[tuple[Hashable, bool]] = [(root, False) for root in reversed(self.roots)]
        while stack:
            node_id, expanded = stack.pop()
            if expanded:
                yield node_id
                continue
            stack.append((node_id, True))
            for child_id in reversed(self._nodes[node_id].children):
                stack.append((child_id, False))

    def _walk_preorder(self, start: Iterable[Hashable]) -> Iterator[Hashable]:
        stack = list(reversed(tuple(start)))
        while stack:
            node_id = stack.pop()
            yield node_id
            stack.extend(reversed(self._nodes[node_id].children))

    def _walk_up(self, node_id: Optional[Hashable]) -> Iterator[Hashable]:
        while node_id is not None:
            yield node_id
            node_id = self._nodes[node_id].parent_id


def _require_id(record: Any, id_field: str) -> Hashable:
    if not isinstance(record, Mapping):
        raise ValidationError(f"Record must be a mapping, got {type(record).__name__}")
    node_id = record.get(id_field)
    if node_id is None:
        raise ValidationError(f"Record is missing '{id_field}': {dict(record)!r}")
    try:
        hash(node_id)
    except TypeError as exc:
        raise ValidationError(f"Record id is not hashable: {node_id!r}") from exc
    return node_id


def _seed_checked(record: Mapping[str, Any], checked_field: str) -> bool:
    return bool(record.get(checked_field) or False)


def build_tree(
    records: Any,
    checked_field: str = "checked",
    *,
    id_field: str = "id",
    children_field: str = "children",
) -> Tree:
    """Build a `Tree` from nested records.

    `records` is a list of root records or a single root record. Each record
    needs an id under `id_field`; children are read from `children_field`.
    Raises `ValidationError` for a missing or repeated id and for a record
    nested inside itself.
    """
    if isinstance(records, Mapping):
        records = [records]
    if not isinstance(records, (list, tuple)):
        raise ValidationError("Tree source must be a record or a list of records")

    parents: dict[Hashable, Optional[Hashable]] = {}
    children: dict[Hashable, list[Hashable]] = {}
    payloads: dict[Hashable, Mapping[str, Any]] = {}
    roots: list[Hashable] = []

    # Identity of every record object already placed in the tree.
    seen: set[int] = set()
    stack: list[tuple[Any, Optional[Hashable]]] = [(record, None) for record in reversed(records)]
    while stack:
        record, parent_id = stack.pop()
        node_id = _require_id(record, id_field)
        if id(record) in seen:
            raise ValidationError(
                f"Record {node_id!r} is repeated or nested inside itself", node_id
            )
        seen.add(id(record))
        if node_id in parents:
            raise ValidationError(f"Duplicate node id: {node_id!r}", node_id)

        parents[node_id] = parent_id
        payloads[node_id] = record
        children[node_id] = []
        if parent_id is None:
            roots.append(node_id)
        else:
            children[parent_id].append(node_id)

        nested = record.get(children_field)
        if nested is None:
            continue
        if not isinstance(nested, (list, tuple)):
            raise ValidationError(f"'{children_field}' of {node_id!r} must be a list", node_id)
        for child in reversed(nested):
            stack.append((child, node_id))

    nodes = {
        node_id: Node(
            id=node_id,
            parent_id=parents[node_id],
            children=tuple(children[node_id]),
            record=payloads[node_id],
            seed_checked=_seed_checked(payloads[node_id], checked_field),
        )
        for node_id in parents
    }
    return Tree(nodes, tuple(roots))


def build_tree_from_rows(
    rows: Iterable[Mapping[str, Any]],
    checked_field: str = "checked",
    *,
    id_field: str = "id",
    parent_field: str = "parent_id",
) -> Tree:
    """Build a `Tree` from flat rows that reference their parent by id."""
    parents: dict[Hashable, Optional[Hashable]] = {}
    payloads: dict[Hashable, Mapping[str, Any]] = {}
    for row in rows:
        node_id = _require_id(row, id_field)
        if node_id in parents:
            raise ValidationError(f"Duplicate node id: {node_id!r}", node_id)
        parents[node_id] = row.get(parent_field)
        payloads[node_id] = row

    children: dict[Hashable, list[Hashable]] = {node_id: [] for node_id in parents}
    roots: list[Hashable] = []
    for node_id, parent_id in parents.items():
        if parent_id is None:
            roots.append(node_id)
        elif parent_id not in parents:
            raise ValidationError(
                f"Node {node_id!r} references unknown parent {parent_id!r}", node_id
            )
        else:
            children[parent_id].append(node_id)

    _check_acyclic(parents)

    nodes = {
        node_id: Node(
            id=node_id,
            parent_id=parents[node_id],
            children=tuple(children[node_id]),
            record=payloads[node_id],
            seed_checked=_seed_checked(payloads[node_id], checked_field),
        )
        for node_id in parents
    }
    return Tree(nodes, tuple(roots))


def _check_acyclic(parents: dict[Hashable, Optional[Hashable]]) -> None:
    # Each chain is walked once; nodes already proven to reach a root are skipped.
    reaches_root: set[Hashable] = set()
    for start in parents:
        chain: list[Hashable] = []
        on_chain: set[Hashable] = set()
        node_id: Optional[Hashable] = start
        while node_id is not None and node_id not in reaches_root:
            if node_id in on_chain:
                raise ValidationError(f"Cyclic parent reference at {node_id!r}", node_id)
            chain.append(node_id)
            on_chain.add(node_id)
            node_id = parents[node_id]
        reaches_root.update(chain)
