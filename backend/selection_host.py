"""
Selection Host - Host side of the selection sync protocol

Owns the scene-graph provider and pushes freshly extracted selection trees
to the display surface:
- on `init` (expanded)
- on `toggleExpand` (with the requested depth flag)
- whenever the selection changes (with the last requested depth flag)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import sync_protocol
from node_extractor import extract_selection
from scene_graph import SceneGraphProvider, CanvasSceneGraph
from sync_protocol import (
    CanvasSelectionMessage,
    InitMessage,
    NotifyMessage,
    ToggleExpandMessage,
    try_decode_message,
)

logger = logging.getLogger(__name__)

SendJson = Callable[[Dict[str, Any]], Awaitable[None]]
Notifier = Callable[[str], None]

# Startup favors a complete tree until the surface asks otherwise
INITIAL_EXPAND_CONTENT = True


def log_notifier(message: str) -> None:
    logger.info(f"🔔 {message}")


class SelectionSyncHost:
    def __init__(
        self,
        provider: SceneGraphProvider,
        send: SendJson,
        notifier: Notifier = log_notifier,
        max_depth: Optional[int] = None,
    ):
        self.provider = provider
        self.send = send
        self.notifier = notifier
        self.max_depth = max_depth
        self.expand_content = INITIAL_EXPAND_CONTENT
        self._background_tasks: Set[asyncio.Task] = set()
        self.provider.on_selection_change(self._on_selection_change)

    async def start(self) -> None:
        """Push the current selection, fully expanded, once the channel is up."""
        await self.send_selection(INITIAL_EXPAND_CONTENT)

    async def send_selection(self, expand_content: Optional[bool] = None) -> None:
        """
        Extract the current selection and push it as one `selectionChange`.

        Extraction failures never escape: they are reported to the surface as
        an `error` message and the host stays ready for the next event.
        """
        if expand_content is None:
            expand_content = self.expand_content

        selection = self.provider.get_selection()

        if not selection:
            await self.send(sync_protocol.selection_change_message(None))
            return

        try:
            selection_data = extract_selection(selection, expand_content, self.max_depth)
        except Exception:
            logger.exception("❌ Error extracting selection data")
            await self.send(sync_protocol.error_message(sync_protocol.SELECTION_ERROR_MESSAGE))
            return

        logger.info(f"📤 Pushing selection ({len(selection_data)} node(s), expand={expand_content})")
        await self.send(sync_protocol.selection_change_message(selection_data))

    async def handle_message(self, message: Dict[str, Any]) -> None:
        """Handle one inbound envelope; anything undecodable is ignored."""
        decoded = try_decode_message(message)
        if decoded is None:
            return

        handlers = {
            InitMessage: self._handle_init,
            ToggleExpandMessage: self._handle_toggle_expand,
            NotifyMessage: self._handle_notify,
            CanvasSelectionMessage: self._handle_canvas_selection,
        }

        handler = handlers.get(type(decoded), self._handle_unknown)
        await handler(decoded)

    async def _handle_init(self, _: InitMessage) -> None:
        logger.info("👋 Surface initialized, sending expanded selection")
        self.expand_content = INITIAL_EXPAND_CONTENT
        await self.send_selection(INITIAL_EXPAND_CONTENT)

    async def _handle_toggle_expand(self, message: ToggleExpandMessage) -> None:
        logger.info(f"🔀 Surface toggled expand to {message.expandContent}")
        self.expand_content = message.expandContent
        await self.send_selection(message.expandContent)

    async def _handle_notify(self, message: NotifyMessage) -> None:
        try:
            self.notifier(message.message)
        except Exception as e:
            logger.warning(f"⚠️ Failed to show notification: {e}")

    async def _handle_canvas_selection(self, message: CanvasSelectionMessage) -> None:
        if isinstance(self.provider, CanvasSceneGraph):
            self.provider.update_selection(message.nodes)
            await self.drain()
        else:
            logger.debug("Ignoring canvas selection; provider is not canvas-fed")

    async def _handle_unknown(self, message: Any) -> None:
        logger.debug(f"Ignoring message not addressed to the host: {getattr(message, 'type', None)}")

    async def _push_selection_change(self) -> None:
        try:
            await self.send_selection(self.expand_content)
        except Exception as e:
            logger.error(f"❌ Failed to push selection change: {e}")

    def _on_selection_change(self) -> None:
        # Provider callbacks are synchronous; schedule the push on the running loop
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("⚠️ Selection changed outside of an event loop; push skipped")
            return
        task = loop.create_task(self._push_selection_change())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self) -> None:
        """Wait for every scheduled selection push to finish."""
        while self._background_tasks:
            pending = list(self._background_tasks)
            await asyncio.gather(*pending, return_exceptions=True)
            self._background_tasks.difference_update(pending)
