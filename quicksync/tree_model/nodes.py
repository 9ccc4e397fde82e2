"""Identifier-addressed helpers over immutable node tuples.

Nodes are located by ``path_or_id`` at mutation time, never by a position
path captured earlier, so an update landing after siblings changed still
reaches the right node or is dropped when the node is gone.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence

from ..backend.types import Entry
from .types import TreeNode


def nodes_from_entries(entries: Iterable[Entry]) -> tuple[TreeNode, ...]:
    """Wrap backend entries as fresh, unfetched nodes."""
    return tuple(
        TreeNode(
            name=entry.name,
            path_or_id=entry.path,
            is_dir=entry.is_dir,
            size=None if entry.is_dir else entry.size,
        )
        for entry in entries
    )


def find_node(nodes: Sequence[TreeNode], node_id: str) -> TreeNode | None:
    for node in nodes:
        if node.path_or_id == node_id:
            return node
        if node.children:
            found = find_node(node.children, node_id)
            if found is not None:
                return found
    return None


def replace_node(
    nodes: tuple[TreeNode, ...],
    node_id: str,
    update: Callable[[TreeNode], TreeNode],
) -> tuple[tuple[TreeNode, ...], bool]:
    """Return ``(new_nodes, replaced)`` with ``update`` applied to ``node_id``.

    Only the spine from the root to the target is rebuilt; untouched
    siblings are shared with the previous tuple.
    """
    out: list[TreeNode] = []
    replaced = False
    for node in nodes:
        if replaced:
            out.append(node)
            continue
        if node.path_or_id == node_id:
            out.append(update(node))
            replaced = True
            continue
        if node.children:
            children, replaced = replace_node(node.children, node_id, update)
            if replaced:
                out.append(node.evolve(children=children))
                continue
        out.append(node)
    if not replaced:
        return nodes, False
    return tuple(out), True


def iter_subtree_ids(nodes: Iterable[TreeNode] | None) -> Iterator[str]:
    """Yield every identifier in ``nodes`` and their materialized descendants."""
    for node in nodes or ():
        yield node.path_or_id
        yield from iter_subtree_ids(node.children)


def node_id_at(nodes: Sequence[TreeNode], index_path: Sequence[int]) -> str | None:
    """Resolve a UI child-index path into a stable identifier, or ``None``."""
    current: Sequence[TreeNode] | None = nodes
    node: TreeNode | None = None
    for index in index_path:
        if current is None or not 0 <= index < len(current):
            return None
        node = current[index]
        current = node.children
    return node.path_or_id if node is not None else None


__all__ = [
    "nodes_from_entries",
    "find_node",
    "replace_node",
    "iter_subtree_ids",
    "node_id_at",
]
