"""Tests for the host side of the selection sync protocol.

Validates the init / toggleExpand / notify handling, spontaneous pushes on
selection change, error reporting on extraction failures, and that the host
keeps working after any single failure.
"""

import pytest

from conftest import frame, text
from scene_graph import CanvasSceneGraph
from selection_host import SelectionSyncHost
from sync_protocol import SELECTION_ERROR_MESSAGE


def _walk(record):
    yield record
    for child in record.get("children", []):
        yield from _walk(child)


@pytest.fixture
def provider(card):
    return CanvasSceneGraph([card])


@pytest.fixture
def host(provider, transport):
    return SelectionSyncHost(provider, send=transport)


class TestStartupAndInit:
    """Tests for the initial, expanded pushes."""

    @pytest.mark.asyncio
    async def test_start_pushes_expanded_selection(self, host, transport):
        """Test that startup favors a complete tree."""
        await host.start()
        assert len(transport.sent) == 1
        message = transport.sent[0]
        assert message["type"] == "selectionChange"
        assert [n["name"] for n in message["data"][0]["children"]] == ["Title", "Body"]

    @pytest.mark.asyncio
    async def test_init_pushes_expanded_selection(self, host, transport):
        """Test the init handshake response."""
        await host.handle_message({"type": "init"})
        data = transport.sent[-1]["data"]
        assert "children" in data[0]
        assert "children" in data[0]["children"][1]

    @pytest.mark.asyncio
    async def test_empty_selection_pushes_null(self, transport):
        """Test that nothing selected is sent as data: null."""
        host = SelectionSyncHost(CanvasSceneGraph(), send=transport)
        await host.handle_message({"type": "init"})
        assert transport.sent == [{"type": "selectionChange", "data": None}]

    @pytest.mark.asyncio
    async def test_selection_is_always_a_list(self, host, transport):
        """Test that the host leaves collapsing to the surface."""
        await host.start()
        assert isinstance(transport.sent[0]["data"], list)
        assert len(transport.sent[0]["data"]) == 1


class TestToggleExpand:
    """Tests for the depth toggle request."""

    @pytest.mark.asyncio
    async def test_toggle_off_yields_one_collapsed_push(self, host, transport):
        """Test exactly one selectionChange without any children field."""
        await host.handle_message({"type": "toggleExpand", "expandContent": False})
        assert len(transport.sent) == 1
        assert transport.sent[0]["type"] == "selectionChange"
        for tree in transport.sent[0]["data"]:
            for record in _walk(tree):
                assert "children" not in record
        assert transport.sent[0]["data"][0]["childrenCount"] == 2

    @pytest.mark.asyncio
    async def test_toggle_on_expands(self, host, transport):
        """Test that expandContent true inlines all descendants."""
        await host.handle_message({"type": "toggleExpand", "expandContent": True})
        names = [r["name"] for r in _walk(transport.sent[0]["data"][0])]
        assert names == ["Card", "Title", "Body", "Line 1", "Line 2"]

    @pytest.mark.asyncio
    async def test_duplicate_messages_have_same_effect(self, host, transport):
        """Test idempotence: replays produce identical pushes."""
        message = {"type": "toggleExpand", "expandContent": False}
        await host.handle_message(message)
        await host.handle_message(message)
        assert len(transport.sent) == 2
        assert transport.sent[0] == transport.sent[1]

    @pytest.mark.asyncio
    async def test_max_depth_caps_expansion(self, provider, transport):
        """Test the configured cap on expanded pushes."""
        host = SelectionSyncHost(provider, send=transport, max_depth=1)
        await host.handle_message({"type": "toggleExpand", "expandContent": True})
        body = transport.sent[0]["data"][0]["children"][1]
        assert body["childrenCount"] == 2


class TestSelectionChange:
    """Tests for spontaneous pushes when the canvas selection changes."""

    @pytest.mark.asyncio
    async def test_canvas_selection_defaults_to_expanded(self, host, transport):
        """Test that changes before any toggle match the expanded startup push."""
        node = frame("Other", children=[text("x"), text("y"), text("z")])
        await host.handle_message({"type": "canvasSelection", "nodes": [node]})
        assert len(transport.sent) == 1
        data = transport.sent[0]["data"]
        assert data[0]["name"] == "Other"
        assert [child["name"] for child in data[0]["children"]] == ["x", "y", "z"]
        assert "childrenCount" not in data[0]

    @pytest.mark.asyncio
    async def test_canvas_selection_follows_last_toggle(self, host, transport):
        """Test that spontaneous pushes reuse the last requested depth."""
        node = frame("Other", children=[text("x"), text("y"), text("z")])
        await host.handle_message({"type": "toggleExpand", "expandContent": False})
        transport.clear()

        await host.handle_message({"type": "canvasSelection", "nodes": [node]})
        data = transport.sent[0]["data"]
        assert data[0]["childrenCount"] == 3
        assert "children" not in data[0]

        await host.handle_message({"type": "toggleExpand", "expandContent": True})
        transport.clear()
        await host.handle_message({"type": "canvasSelection", "nodes": [node]})
        assert len(transport.sent[0]["data"][0]["children"]) == 3

    @pytest.mark.asyncio
    async def test_init_resets_depth_to_expanded(self, host, transport):
        """Test that a re-initialized surface gets expanded pushes again."""
        await host.handle_message({"type": "toggleExpand", "expandContent": False})
        await host.handle_message({"type": "init"})
        transport.clear()
        await host.handle_message({"type": "canvasSelection", "nodes": [frame("Other", children=[text("x")])]})
        assert "children" in transport.sent[0]["data"][0]

    @pytest.mark.asyncio
    async def test_provider_update_schedules_push(self, host, provider, transport):
        """Test pushes triggered directly by the provider."""
        provider.update_selection([text("Solo")])
        await host.drain()
        assert transport.sent == [{
            "type": "selectionChange",
            "data": [{"name": "Solo", "type": "TEXT", "width": 40, "height": 12}],
        }]

    @pytest.mark.asyncio
    async def test_multi_selection_keeps_order(self, host, transport):
        """Test one independent tree per selected node."""
        await host.handle_message({"type": "canvasSelection", "nodes": [text("B"), text("A")]})
        assert [n["name"] for n in transport.sent[0]["data"]] == ["B", "A"]

    @pytest.mark.asyncio
    async def test_cleared_selection_pushes_null(self, host, transport):
        """Test deselecting everything."""
        await host.handle_message({"type": "canvasSelection", "nodes": []})
        assert transport.sent == [{"type": "selectionChange", "data": None}]


class TestFailures:
    """Tests for extraction failures and ignored messages."""

    @pytest.mark.asyncio
    async def test_extraction_failure_sends_error(self, transport):
        """Test that a broken node becomes an error message."""
        host = SelectionSyncHost(CanvasSceneGraph([{"type": "FRAME"}]), send=transport)
        await host.handle_message({"type": "init"})
        assert transport.sent == [{"type": "error", "message": SELECTION_ERROR_MESSAGE}]

    @pytest.mark.asyncio
    async def test_host_recovers_after_failure(self, transport):
        """Test that the next selection change is processed normally."""
        provider = CanvasSceneGraph([{"name": "Broken", "type": "FRAME", "children": 1}])
        host = SelectionSyncHost(provider, send=transport)
        await host.start()
        await host.handle_message({"type": "canvasSelection", "nodes": [text("Fine")]})
        assert [m["type"] for m in transport.sent] == ["error", "selectionChange"]
        assert transport.sent[1]["data"][0]["name"] == "Fine"

    @pytest.mark.asyncio
    async def test_unknown_and_malformed_messages_are_ignored(self, host, transport):
        """Test that out-of-band messages produce no response."""
        await host.handle_message({"type": "pong"})
        await host.handle_message({"type": "toggleExpand", "expandContent": "no"})
        await host.handle_message({"type": "selectionChange", "data": None})
        await host.handle_message({})
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_push_failure_is_contained(self, provider):
        """Test that a failing transport does not break scheduled pushes."""

        async def broken_send(_):
            raise RuntimeError("WebSocket not connected")

        host = SelectionSyncHost(provider, send=broken_send)
        provider.update_selection([text("A")])
        await host.drain()


class TestNotify:
    """Tests for surface notifications."""

    @pytest.mark.asyncio
    async def test_notify_calls_notifier(self, provider, transport):
        """Test that the notice reaches the host's notifier."""
        notices = []
        host = SelectionSyncHost(provider, send=transport, notifier=notices.append)
        await host.handle_message({"type": "notify", "message": "Copied to clipboard!"})
        assert notices == ["Copied to clipboard!"]
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_notifier_failure_is_contained(self, provider, transport):
        """Test that a failing notifier does not raise."""

        def failing(_):
            raise RuntimeError("no UI")

        host = SelectionSyncHost(provider, send=transport, notifier=failing)
        await host.handle_message({"type": "notify", "message": "hello"})
