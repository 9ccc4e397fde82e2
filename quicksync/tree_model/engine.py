"""Lazy-loading tree state for one browsable, path-addressed hierarchy.

The engine owns the root node tuple exclusively and replaces whole subtrees
on every change. Each fetch records a request token for the node it
targets; a completion whose token was superseded (by a root reload that
replaced the nodes, a new ``set_root``, or a later fetch of the same node)
is discarded instead of being applied to whatever now lives at that
address. A root reload that fails leaves the nodes and their in-flight
fetches alone.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Awaitable, Callable, Sequence

from ..backend.types import Entry
from ..errors import BackendError
from .filtering import filter_nodes, flatten_rows
from .nodes import find_node, iter_subtree_ids, node_id_at, nodes_from_entries, replace_node
from .paths import parent_path
from .types import TreeNode, TreeRow

logger = logging.getLogger(__name__)

ListDirectory = Callable[[str], Awaitable[Sequence[Entry]]]


class TreeStateEngine:
    """Partially materialized tree with lazy expand, refresh and up-navigation."""

    def __init__(self, list_directory: ListDirectory, *, on_change: Callable[[], None] | None = None) -> None:
        self._list_directory = list_directory
        self._on_change = on_change
        self.root_path: str | None = None
        self.nodes: tuple[TreeNode, ...] = ()
        self.error: str | None = None
        self.loading = False
        self._tokens = itertools.count(1)
        self._pending: dict[str, int] = {}
        self._root_token = 0
        self._generation = 0

    # -- queries --------------------------------------------------------

    def find(self, node_id: str) -> TreeNode | None:
        return find_node(self.nodes, node_id)

    def node_id_at(self, index_path: Sequence[int]) -> str | None:
        """Translate a UI child-index path into the node's stable identifier."""
        return node_id_at(self.nodes, index_path)

    def filter(self, query: str) -> list[TreeNode]:
        return filter_nodes(self.nodes, query)

    def visible_rows(self, query: str = "") -> list[TreeRow]:
        return flatten_rows(self.nodes, query)

    @property
    def is_empty(self) -> bool:
        return not self.loading and self.error is None and not self.nodes

    # -- navigation -----------------------------------------------------

    async def set_root(self, path: str) -> None:
        """Show ``path`` as the new hierarchy, dropping all prior expansion state."""
        self.root_path = path
        self.nodes = ()
        self._pending.clear()
        await self._load_root()

    async def open(self, node_id: str) -> None:
        """Make a directory node the new root."""
        node = self.find(node_id)
        if node is None or not node.is_dir:
            return
        await self.set_root(node.path_or_id)

    async def go_up(self) -> None:
        if self.root_path is None:
            return
        parent = parent_path(self.root_path)
        if parent is None:
            return
        await self.set_root(parent)

    async def refresh(self, path: str | None = None) -> None:
        """Re-fetch one level, discarding deeper expansion state beneath it.

        ``None`` or the root path refreshes the displayed level. Refreshing a
        node stuck in ``loading`` re-arms it with a new fetch.
        """
        if self.root_path is None:
            return
        if path is None or path == self.root_path:
            await self._load_root()
            return

        node = self.find(path)
        if node is None or not node.is_dir:
            return
        for stale_id in iter_subtree_ids(node.children):
            self._pending.pop(stale_id, None)
        await self._fetch_children(path, keep_children_on_error=True)

    async def toggle(self, node_id: str) -> None:
        """Flip a directory's ``expanded`` flag, fetching children on first expand."""
        node = self.find(node_id)
        if node is None or not node.is_dir:
            return
        if node.expanded:
            self._replace(node_id, lambda current: current.evolve(expanded=False))
            return
        if node.children is not None:
            self._replace(node_id, lambda current: current.evolve(expanded=True))
            return
        await self._fetch_children(node_id, keep_children_on_error=False)

    # -- internals ------------------------------------------------------

    async def _load_root(self) -> None:
        path = self.root_path
        if path is None:
            return
        token = next(self._tokens)
        self._root_token = token
        self.loading = True
        self.error = None
        self._notify()
        try:
            entries = await self._list_directory(path)
        except BackendError as exc:
            if self._root_token != token:
                return
            logger.warning("Listing %s failed: %s", path, exc)
            self.error = str(exc)
            self.loading = False
            self._notify()
            return

        if self._root_token != token:
            logger.debug("Dropping stale root listing for %s", path)
            return
        self._pending.clear()
        self._generation += 1
        self.nodes = nodes_from_entries(entries)
        self.loading = False
        self._notify()

    async def _fetch_children(self, node_id: str, *, keep_children_on_error: bool) -> None:
        token = next(self._tokens)
        generation = self._generation
        self._pending[node_id] = token
        self.error = None
        self._replace(node_id, lambda current: current.evolve(expanded=True, loading=True))
        try:
            entries = await self._list_directory(node_id)
        except BackendError as exc:
            if not self._is_current(node_id, token, generation):
                return
            del self._pending[node_id]
            logger.warning("Listing %s failed: %s", node_id, exc)
            self.error = str(exc)
            if keep_children_on_error:
                self._replace(node_id, lambda current: current.evolve(loading=False))
            else:
                self._replace(node_id, lambda current: current.evolve(loading=False, expanded=False))
            return

        if not self._is_current(node_id, token, generation):
            logger.debug("Dropping stale listing for %s", node_id)
            return
        del self._pending[node_id]
        children = nodes_from_entries(entries)
        self._replace(node_id, lambda current: current.evolve(children=children, loading=False))

    def _is_current(self, node_id: str, token: int, generation: int) -> bool:
        return self._generation == generation and self._pending.get(node_id) == token

    def _replace(self, node_id: str, update: Callable[[TreeNode], TreeNode]) -> bool:
        self.nodes, replaced = replace_node(self.nodes, node_id, update)
        if replaced:
            self._notify()
        return replaced

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()


__all__ = [
    "TreeStateEngine",
    "ListDirectory",
]
