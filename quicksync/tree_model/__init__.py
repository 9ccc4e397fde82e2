"""Lazy tree model for local and path-addressed remote hierarchies.

This package contains non-UI tree primitives:
- immutable node datatypes with three-state children (unfetched/empty/populated)
- identifier-addressed subtree replacement helpers
- presentation-level filtering and row projection
- the ``TreeStateEngine`` that owns one tree
"""

from __future__ import annotations

from .engine import ListDirectory, TreeStateEngine
from .filtering import filter_nodes, flatten_rows
from .nodes import find_node, iter_subtree_ids, node_id_at, nodes_from_entries, replace_node
from .paths import parent_path
from .types import TreeNode, TreeRow

__all__ = [
    "TreeNode",
    "TreeRow",
    "TreeStateEngine",
    "ListDirectory",
    "filter_nodes",
    "flatten_rows",
    "find_node",
    "replace_node",
    "iter_subtree_ids",
    "node_id_at",
    "nodes_from_entries",
    "parent_path",
]
