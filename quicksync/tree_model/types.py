"""Tree datatypes for lazily expanded hierarchies."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class TreeNode:
    """One entry in a partially materialized tree.

    ``children`` is ``None`` while unfetched and an empty tuple once fetched
    for an empty directory. Nodes are immutable; engines replace whole
    subtrees instead of mutating in place.
    """

    name: str
    path_or_id: str
    is_dir: bool
    size: int | None = None
    children: tuple["TreeNode", ...] | None = None
    expanded: bool = False
    loading: bool = False

    @property
    def fetched(self) -> bool:
        return self.children is not None

    def evolve(self, **changes) -> TreeNode:
        return replace(self, **changes)


@dataclass(frozen=True)
class TreeRow:
    """One rendered row: a visible node plus its indentation depth."""

    node: TreeNode
    depth: int


__all__ = [
    "TreeNode",
    "TreeRow",
]
