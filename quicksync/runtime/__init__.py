"""Runtime composition: persisted config and the dual-pane wiring.

``PaneComposition`` is imported lazily so that config helpers stay cheap to
import from the CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import AppConfig, ConfigStore, LayoutSizes, load_config, save_config

if TYPE_CHECKING:
    from .panes import PaneComposition


def __getattr__(name: str):
    if name == "PaneComposition":
        from .panes import PaneComposition

        return PaneComposition
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AppConfig",
    "ConfigStore",
    "LayoutSizes",
    "load_config",
    "save_config",
    "PaneComposition",
]
