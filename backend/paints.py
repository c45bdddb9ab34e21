"""
Paints - Color and paint normalization

Converts Figma colors and paint lists (fills/strokes) into the plain
records shipped to the display surface.
"""

import math
import logging
from typing import Any, Dict, List, Iterable

from scene_graph import has_capability as _has, get_capability as _get

logger = logging.getLogger(__name__)

PAINT_TYPE_SOLID = "SOLID"
DEFAULT_OPACITY = 1.0
DEFAULT_ALPHA = 1.0


def _round_half_up(value: float) -> int:
    # half-up, not round()'s half-to-even
    return int(math.floor(value + 0.5))


def _channel_hex(channel: float) -> str:
    return format(_round_half_up(channel * 255), "02x")


def encode_color(color: Any) -> Dict[str, Any]:
    """Return `{r, g, b, a, hex}` for a normalized RGB(A) color.

    Channels are not clamped. A source outside 0..1 yields hex digits outside
    the 00-ff range and that is passed through as-is.
    """
    r = _get(color, "r")
    g = _get(color, "g")
    b = _get(color, "b")
    return {
        "r": r,
        "g": g,
        "b": b,
        "a": _get(color, "a") if _has(color, "a") else DEFAULT_ALPHA,
        "hex": f"#{_channel_hex(r)}{_channel_hex(g)}{_channel_hex(b)}",
    }


def is_solid_paint(paint: Any) -> bool:
    return str(_get(paint, "type")).upper() == PAINT_TYPE_SOLID


def normalize_paint(paint: Any) -> Dict[str, Any]:
    paint_data: Dict[str, Any] = {
        "type": _get(paint, "type"),
        "opacity": _get(paint, "opacity") if _has(paint, "opacity") else DEFAULT_OPACITY,
    }
    # Gradient/image payloads are not interpreted, only type + opacity
    if is_solid_paint(paint) and _has(paint, "color"):
        paint_data["color"] = encode_color(_get(paint, "color"))
    return paint_data


def normalize_paints(paints: Iterable[Any]) -> List[Dict[str, Any]]:
    """Map a fills/strokes list to canonical paint records, preserving order."""
    return [normalize_paint(paint) for paint in paints]
