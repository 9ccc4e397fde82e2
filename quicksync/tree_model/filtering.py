"""Presentation-level filtering and row projection over a materialized tree."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, TypeVar

from .types import TreeNode, TreeRow


class Named(Protocol):
    @property
    def name(self) -> str: ...


N = TypeVar("N", bound=Named)


def filter_nodes(nodes: Sequence[N], query: str) -> list[N]:
    """Return siblings whose name contains ``query`` case-insensitively.

    Only the given level is searched; collapsed or expanded subtrees are not
    descended into. Original order is preserved and an empty query keeps
    everything.
    """
    needle = query.casefold()
    if not needle:
        return list(nodes)
    return [node for node in nodes if needle in node.name.casefold()]


def flatten_rows(nodes: Sequence[TreeNode], query: str = "") -> list[TreeRow]:
    """Project the displayed level (filtered) plus expanded descendants into rows."""
    rows: list[TreeRow] = []

    def walk(level: Sequence[TreeNode], depth: int) -> None:
        for node in level:
            rows.append(TreeRow(node=node, depth=depth))
            if node.expanded and node.children:
                walk(node.children, depth + 1)

    walk(filter_nodes(nodes, query), 0)
    return rows


__all__ = [
    "filter_nodes",
    "flatten_rows",
]
