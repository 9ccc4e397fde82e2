"""Per-tree cache from file extension to icon, with negative caching.

The first request for an extension starts one async lookup and returns
``PENDING``. Successes and failures are both cached for the life of the
cache, so a failing extension reaches the backend at most once. There is
no eviction: the extension key space is small.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .errors import BackendError

logger = logging.getLogger(__name__)


class _Sentinel:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


PENDING = _Sentinel("PENDING")
FAILED = _Sentinel("FAILED")


def normalize_extension(ext: str) -> str:
    return ext.strip().lstrip(".").lower()


class IconResolutionCache:
    """Extension -> icon cache fed by an async lookup."""

    def __init__(
        self,
        lookup: Callable[[str], Awaitable[object]],
        *,
        on_resolved: Callable[[str], None] | None = None,
    ) -> None:
        self._lookup = lookup
        self._on_resolved = on_resolved
        self._icons: dict[str, object] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def resolve(self, ext: str) -> object:
        """Return the cached icon, ``FAILED``, or ``PENDING`` while a lookup runs."""
        key = normalize_extension(ext)
        if key in self._icons:
            return self._icons[key]
        if key not in self._tasks:
            self._tasks[key] = asyncio.ensure_future(self._fetch(key))
        return PENDING

    def cached(self, ext: str) -> object | None:
        return self._icons.get(normalize_extension(ext))

    async def settle(self) -> None:
        """Wait for every lookup started so far."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks.values()))

    async def _fetch(self, key: str) -> None:
        try:
            icon = await self._lookup(key)
        except BackendError as exc:
            logger.debug("Icon lookup for %r failed: %s", key, exc)
            icon = FAILED
        except Exception as exc:
            logger.error("Icon lookup for %r raised: %s", key, exc, exc_info=exc)
            icon = FAILED
        self._icons[key] = icon
        self._tasks.pop(key, None)
        if self._on_resolved is not None:
            self._on_resolved(key)


__all__ = [
    "IconResolutionCache",
    "PENDING",
    "FAILED",
    "normalize_extension",
]
