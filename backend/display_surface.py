"""
Display Surface - Surface side of the selection sync protocol

Renders the latest extracted selection as pretty and minified JSON with a
token estimate for each, copies the active rendering to a clipboard, and
asks the host to re-extract when the "Include Children" preference flips.
"""

import enum
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel

import sync_protocol
from node_extractor import collapse_selection
from sync_protocol import ErrorMessage, SelectionChangeMessage, try_decode_message
from token_estimator import estimate_tokens, format_token_count

logger = logging.getLogger(__name__)

SendJson = Callable[[Dict[str, Any]], Awaitable[None]]
Clipboard = Callable[[str], None]

TAB_PRETTY = "pretty"
TAB_MINIFIED = "minified"
TABS = (TAB_PRETTY, TAB_MINIFIED)
TAB_LABELS = {TAB_PRETTY: "Pretty", TAB_MINIFIED: "Minified"}

EMPTY_STATE_TEXT = "Select an element in Figma to view its raw data"


class ClipboardError(Exception):
    """The copy operation could not complete."""


class SurfaceState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    AWAITING_DATA = "awaiting_data"
    DISPLAYING = "displaying"


class FileClipboard:
    """Clipboard stand-in that writes the copied text to a file."""

    def __init__(self, path: str):
        self.path = Path(path)

    def __call__(self, text: str) -> None:
        try:
            self.path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ClipboardError(f"Could not write {self.path}: {e}") from e


def unavailable_clipboard(_: str) -> None:
    raise ClipboardError("No clipboard configured")


def render_pretty(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def render_minified(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


class DisplaySurface:
    """
    Stateful view over the host's pushes.

    The only state shared with the host is the include-children preference,
    and it is always sent explicitly in `toggleExpand`.
    """

    def __init__(
        self,
        send: SendJson,
        clipboard: Clipboard = unavailable_clipboard,
        include_children: bool = True,
        active_tab: str = TAB_PRETTY,
    ):
        self.send = send
        self.clipboard = clipboard
        self.include_children = include_children
        self.state = SurfaceState.UNINITIALIZED
        self.active_tab = TAB_PRETTY
        self.select_tab(active_tab)
        self.selection_data: Any = None
        self.last_error: Optional[str] = None
        self.pretty_json = ""
        self.minified_json = ""
        self.pretty_token_count = 0
        self.minified_token_count = 0

    async def start(self) -> None:
        """Ask the host for the current selection."""
        self._transition(SurfaceState.AWAITING_DATA)
        await self.send(sync_protocol.init_message())
        logger.info("👋 Sent init, awaiting selection data")

    def _transition(self, state: SurfaceState) -> None:
        if state is not self.state:
            logger.debug(f"Surface state {self.state.value} -> {state.value}")
            self.state = state

    async def handle_message(self, message: Dict[str, Any]) -> Optional[BaseModel]:
        """Apply one inbound envelope; returns the decoded message, None when ignored."""
        decoded = try_decode_message(message)
        if isinstance(decoded, SelectionChangeMessage):
            self._show_selection(decoded.data)
        elif isinstance(decoded, ErrorMessage):
            self.last_error = decoded.message
            logger.warning(f"⚠️ Host reported an error: {decoded.message}")
        else:
            logger.debug("Ignoring message not addressed to the surface")
            return None
        return decoded

    def _show_selection(self, data: Any) -> None:
        if self.state is SurfaceState.UNINITIALIZED:
            # Data pushed ahead of init still counts as the awaited data
            self._transition(SurfaceState.AWAITING_DATA)
        self._transition(SurfaceState.DISPLAYING)
        self.selection_data = data
        if data is None:
            self.pretty_json = ""
            self.minified_json = ""
            self.pretty_token_count = 0
            self.minified_token_count = 0
            logger.info("🫥 Selection is empty")
            return

        data_to_show = collapse_selection(data)
        self.pretty_json = render_pretty(data_to_show)
        self.minified_json = render_minified(data_to_show)
        self.pretty_token_count = estimate_tokens(self.pretty_json)
        self.minified_token_count = estimate_tokens(self.minified_json)
        logger.info(
            f"🖼️ Displaying selection (pretty={self.pretty_token_count} tokens, minified={self.minified_token_count} tokens)"
        )

    @property
    def has_content(self) -> bool:
        return self.selection_data is not None

    async def set_include_children(self, include_children: bool) -> None:
        """Update the depth preference; re-request the selection when it changes."""
        if include_children == self.include_children:
            return
        self.include_children = include_children
        if self.has_content:
            await self.send(sync_protocol.toggle_expand_message(include_children))

    def select_tab(self, tab: str) -> None:
        if tab not in TABS:
            raise ValueError(f"Unknown tab {tab!r}; expected one of {', '.join(TABS)}")
        self.active_tab = tab

    @property
    def active_text(self) -> str:
        if not self.has_content:
            return EMPTY_STATE_TEXT
        return self.pretty_json if self.active_tab == TAB_PRETTY else self.minified_json

    @property
    def token_label(self) -> str:
        count = self.pretty_token_count if self.active_tab == TAB_PRETTY else self.minified_token_count
        return format_token_count(count)

    @property
    def copy_label(self) -> str:
        return f"Copy {TAB_LABELS[self.active_tab]} JSON"

    async def copy_active(self) -> bool:
        """
        Copy the active rendering and tell the host how it went.

        Returns:
            True when the clipboard accepted the text, False when it failed
            or there was nothing to copy
        """
        if not self.has_content:
            logger.debug("Nothing to copy")
            return False

        text = self.pretty_json if self.active_tab == TAB_PRETTY else self.minified_json
        try:
            self.clipboard(text)
        except Exception as e:
            logger.warning(f"📋 Copy failed: {e}")
            await self.send(sync_protocol.notify_message(sync_protocol.NOTIFY_COPY_FAILED))
            return False
        await self.send(sync_protocol.notify_message(sync_protocol.NOTIFY_COPIED))
        return True
