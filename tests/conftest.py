"""Pytest configuration and fixtures for the selection sync test suite.

Adds the flat ``backend/`` module directory to the import path (the modules
import each other by bare name) and provides recording transports and small
scene-node builders shared by the host, surface and extractor tests.
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

backend_path = Path(__file__).parent.parent / "backend"
if str(backend_path) not in sys.path:
    sys.path.insert(0, str(backend_path))


class RecordingTransport:
    """Async `send` stand-in that keeps every envelope in order."""

    def __init__(self):
        self.sent = []

    async def __call__(self, payload):
        self.sent.append(payload)

    def of_type(self, message_type):
        return [m for m in self.sent if m.get("type") == message_type]

    def clear(self):
        self.sent.clear()


def solid(r, g, b, a=None, opacity=None):
    color = {"r": r, "g": g, "b": b}
    if a is not None:
        color["a"] = a
    paint = {"type": "SOLID", "color": color}
    if opacity is not None:
        paint["opacity"] = opacity
    return paint


def frame(name, children=None, **fields):
    node = {"name": name, "type": "FRAME", "width": 100, "height": 50}
    node.update(fields)
    node["children"] = list(children or [])
    return node


def text(name, **fields):
    node = {"name": name, "type": "TEXT", "width": 40, "height": 12}
    node.update(fields)
    return node


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def card():
    """A frame with a nested frame and two text leaves."""
    return frame(
        "Card",
        children=[
            text("Title", fills=[solid(0, 0, 0)]),
            frame("Body", children=[text("Line 1"), text("Line 2")]),
        ],
        layoutMode="VERTICAL",
        fills=[solid(1, 1, 1)],
    )


@pytest.fixture
def attribute_node():
    """Attribute-style node, the way a plugin-side object exposes fields."""
    child = SimpleNamespace(name="Dot", type="ELLIPSE", width=4, height=4, fills=[], strokes=[])
    return SimpleNamespace(name="Group 1", type="GROUP", width=8, height=8, children=[child, child])
