"""
Node Extractor - Scene node to plain record

Walks a Figma scene node and produces the serializable record the display
surface renders. Fields are copied only when the node has the matching
capability; absence is meaningful and never written as null.
"""

import logging
from numbers import Real
from typing import Any, Dict, List, Optional, Sequence

from paints import normalize_paints
from scene_graph import has_capability, get_capability

logger = logging.getLogger(__name__)

GEOMETRY_FIELDS = ("width", "height")

LAYOUT_FIELDS = (
    "layoutMode",
    "primaryAxisSizingMode",
    "counterAxisSizingMode",
    "primaryAxisAlignItems",
    "counterAxisAlignItems",
)

PAINT_FIELDS = ("fills", "strokes")

STROKE_STRING_FIELDS = ("strokeAlign", "strokeCap", "strokeJoin")


class ExtractionError(Exception):
    """Raised when a scene node cannot be turned into a record."""

    def __init__(self, message: str, node_name: Optional[str] = None, node_type: Optional[str] = None):
        self.node_name = node_name
        self.node_type = node_type
        super().__init__(message)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _describe(node: Any) -> Dict[str, Optional[str]]:
    try:
        name = get_capability(node, "name") if has_capability(node, "name") else None
        node_type = get_capability(node, "type") if has_capability(node, "type") else None
    except Exception:
        name, node_type = None, None
    return {"node_name": name, "node_type": node_type}


def _extract(node: Any, expand_content: bool, max_depth: Optional[int], depth: int) -> Dict[str, Any]:
    node_data: Dict[str, Any] = {
        "name": get_capability(node, "name"),
        "type": get_capability(node, "type"),
    }

    for field in GEOMETRY_FIELDS + LAYOUT_FIELDS:
        if has_capability(node, field):
            node_data[field] = get_capability(node, field)

    # fills/strokes may be figma.mixed on text ranges; only lists are paints
    for field in PAINT_FIELDS:
        if has_capability(node, field):
            paints = get_capability(node, field)
            if isinstance(paints, (list, tuple)):
                node_data[field] = normalize_paints(paints)

    if has_capability(node, "strokeWeight"):
        weight = get_capability(node, "strokeWeight")
        if _is_number(weight):
            node_data["strokeWeight"] = weight
    for field in STROKE_STRING_FIELDS:
        if has_capability(node, field):
            value = get_capability(node, field)
            if isinstance(value, str):
                node_data[field] = value

    if has_capability(node, "children"):
        children = get_capability(node, "children")
        within_depth = max_depth is None or depth < max_depth
        if expand_content and within_depth:
            node_data["children"] = [
                _extract_guarded(child, expand_content, max_depth, depth + 1) for child in children
            ]
        else:
            node_data["childrenCount"] = len(children)

    return node_data


def _extract_guarded(node: Any, expand_content: bool, max_depth: Optional[int], depth: int) -> Dict[str, Any]:
    # Wrapped per node so the error names the innermost failing node
    try:
        return _extract(node, expand_content, max_depth, depth)
    except ExtractionError:
        raise
    except RecursionError as e:
        raise ExtractionError("Node tree is too deep to extract", **_describe(node)) from e
    except Exception as e:
        raise ExtractionError(f"Unexpected node shape: {e}", **_describe(node)) from e


def extract_node(node: Any, expand_content: bool, max_depth: Optional[int] = None) -> Dict[str, Any]:
    """
    Extract a scene node (and, when expanding, all of its descendants).

    Args:
        node: Scene node mapping or object
        expand_content: Inline every descendant when True, otherwise record
            only `childrenCount` on the node itself
        max_depth: Optional cap; containers at this depth (root is 0) are
            summarized by `childrenCount`. None means unbounded.

    Returns:
        The extracted record

    Raises:
        ExtractionError: If any part of the node has an unexpected shape
    """
    return _extract_guarded(node, expand_content, max_depth, 0)


def extract_selection(
    nodes: Sequence[Any], expand_content: bool, max_depth: Optional[int] = None
) -> Optional[List[Dict[str, Any]]]:
    """Extract every selected node independently; None for an empty selection."""
    if not nodes:
        return None
    return [extract_node(node, expand_content, max_depth) for node in nodes]


def collapse_selection(data: Any) -> Any:
    """Show a one-node selection as the node itself rather than a list."""
    if isinstance(data, list) and len(data) == 1:
        return data[0]
    return data
