"""Breadcrumb navigation for identifier-addressed (cloud) hierarchies.

Cloud folders have no path strings, so the client keeps the chain of
``{id, name}`` pairs from the drive root to the current folder. The root
sentinel can never be popped.
"""

from __future__ import annotations

from dataclasses import dataclass

ROOT_CRUMB_NAME = "My Drive"


@dataclass(frozen=True)
class CloudCrumb:
    """One breadcrumb step; ``id`` is ``None`` only for the root sentinel."""

    id: str | None
    name: str

    @property
    def is_root(self) -> bool:
        return self.id is None


ROOT_CRUMB = CloudCrumb(id=None, name=ROOT_CRUMB_NAME)


class CloudNavigationStack:
    """Breadcrumb stack from the drive root to the current folder."""

    def __init__(self, root_name: str = ROOT_CRUMB_NAME, *, crumbs: tuple[CloudCrumb, ...] = ()) -> None:
        self._crumbs: list[CloudCrumb] = list(crumbs) or [CloudCrumb(id=None, name=root_name)]

    @property
    def crumbs(self) -> tuple[CloudCrumb, ...]:
        return tuple(self._crumbs)

    @property
    def current(self) -> CloudCrumb:
        return self._crumbs[-1]

    @property
    def folder_id(self) -> str | None:
        """Identifier to list, ``None`` meaning the drive root."""
        return self.current.id

    @property
    def depth(self) -> int:
        """Number of folders entered below the root sentinel."""
        return len(self._crumbs) - 1

    @property
    def at_root(self) -> bool:
        return self.depth == 0

    def copy(self) -> CloudNavigationStack:
        return CloudNavigationStack(crumbs=self.crumbs)

    def push(self, folder_id: str, name: str) -> CloudCrumb:
        crumb = CloudCrumb(id=folder_id, name=name)
        self._crumbs.append(crumb)
        return crumb

    def pop(self) -> CloudCrumb | None:
        """Leave the current folder; returns ``None`` (and keeps the root) at the root."""
        if self.at_root:
            return None
        return self._crumbs.pop()

    def display_path(self, separator: str = " / ") -> str:
        return separator.join(crumb.name for crumb in self._crumbs)


__all__ = [
    "CloudCrumb",
    "CloudNavigationStack",
    "ROOT_CRUMB",
    "ROOT_CRUMB_NAME",
]
