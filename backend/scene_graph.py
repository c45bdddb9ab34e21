"""
Scene Graph - Access to the host's selected nodes

The authoritative scene graph lives in the Figma plugin sandbox. This
module defines what the selection host needs from it: the current selection
and a push notification whenever that selection changes.

Nodes are read through capability checks so that both the JSON mappings
posted by the canvas plugin and attribute-style objects work.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)

SelectionCallback = Callable[[], None]


def has_capability(node: Any, key: str) -> bool:
    """True when `node` exposes `key` (mapping key or attribute)."""
    if isinstance(node, Mapping):
        return key in node
    return hasattr(node, key)


def get_capability(node: Any, key: str) -> Any:
    if isinstance(node, Mapping):
        return node[key]
    return getattr(node, key)


class SceneGraphProvider(ABC):
    """Read-only view over the host application's selection."""

    def __init__(self) -> None:
        self._callbacks: List[SelectionCallback] = []

    @abstractmethod
    def get_selection(self) -> List[Any]:
        """Return the currently selected nodes, in selection order."""

    def on_selection_change(self, callback: SelectionCallback) -> None:
        self._callbacks.append(callback)

    def _emit_selection_change(self) -> None:
        for callback in list(self._callbacks):
            callback()


class CanvasSceneGraph(SceneGraphProvider):
    """Selection mirror fed by `canvasSelection` messages from the plugin."""

    def __init__(self, nodes: Optional[Sequence[Any]] = None) -> None:
        super().__init__()
        self._selection: List[Any] = list(nodes or [])

    def get_selection(self) -> List[Any]:
        return list(self._selection)

    def update_selection(self, nodes: Optional[Sequence[Any]]) -> None:
        self._selection = list(nodes or [])
        logger.info(f"🖱️ Canvas selection updated ({len(self._selection)} node(s))")
        self._emit_selection_change()
