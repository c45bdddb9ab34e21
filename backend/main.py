import os
import sys
import signal
import logging
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

from bridge_channel import BridgeChannel, ROLE_HOST, ROLE_SURFACE
from display_surface import DisplaySurface, FileClipboard, TABS, TAB_PRETTY, unavailable_clipboard
from scene_graph import CanvasSceneGraph
from selection_host import SelectionSyncHost
from sync_protocol import SelectionChangeMessage

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_BRIDGE_URL = "ws://localhost:3055"
DEFAULT_CHANNEL = "figma-inspector-default"
ROLES = (ROLE_HOST, ROLE_SURFACE)

# CLI flag -> config field
CLI_FLAGS = {
    "--bridge-url=": "bridge_url",
    "--channel=": "channel",
    "--role=": "role",
    "--max-depth=": "max_depth",
    "--tab=": "tab",
    "--copy-to=": "copy_to",
    "--log-level=": "log_level",
}


@dataclass
class SyncConfig:
    bridge_url: str = DEFAULT_BRIDGE_URL
    channel: str = DEFAULT_CHANNEL
    role: str = ROLE_HOST
    max_depth: Optional[int] = None
    tab: str = TAB_PRETTY
    copy_to: Optional[str] = None
    log_level: str = "INFO"


def _parse_max_depth(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        depth = int(value)
    except ValueError:
        raise ValueError(f"max depth must be an integer, got {value!r}")
    if depth < 0:
        raise ValueError(f"max depth must be >= 0, got {depth}")
    return depth


def parse_config(argv: List[str], environ: Mapping[str, str]) -> SyncConfig:
    """Build the configuration from environment variables with CLI overrides"""
    raw: Dict[str, Any] = {
        "bridge_url": environ.get("BRIDGE_URL", DEFAULT_BRIDGE_URL),
        "channel": environ.get("FIGMA_CHANNEL"),
        "role": environ.get("SYNC_ROLE", ROLE_HOST),
        "max_depth": environ.get("SYNC_MAX_DEPTH"),
        "tab": environ.get("SURFACE_TAB", TAB_PRETTY),
        "copy_to": environ.get("SURFACE_COPY_FILE"),
        "log_level": environ.get("LOG_LEVEL", "INFO"),
    }

    for arg in argv:
        for flag, field in CLI_FLAGS.items():
            if arg.startswith(flag):
                raw[field] = arg.split("=", 1)[1]
                break
        else:
            raise ValueError(f"Unknown argument: {arg}")

    if not raw["channel"]:
        raw["channel"] = DEFAULT_CHANNEL
    if raw["role"] not in ROLES:
        raise ValueError(f"role must be one of {', '.join(ROLES)}, got {raw['role']!r}")
    if raw["tab"] not in TABS:
        raise ValueError(f"tab must be one of {', '.join(TABS)}, got {raw['tab']!r}")
    raw["max_depth"] = _parse_max_depth(raw["max_depth"])
    raw["log_level"] = str(raw["log_level"]).upper()
    raw["copy_to"] = raw["copy_to"] or None

    return SyncConfig(**raw)


def get_config() -> SyncConfig:
    """Get configuration from environment variables or CLI args"""
    try:
        return parse_config(sys.argv[1:], os.environ)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)


def configure_logging(config: SyncConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=f'[%(asctime)s] [{config.role}] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S'
    )


def build_host(config: SyncConfig) -> BridgeChannel:
    provider = CanvasSceneGraph()
    channel = BridgeChannel(config.bridge_url, config.channel, ROLE_HOST)
    host = SelectionSyncHost(provider, send=channel.send_json, max_depth=config.max_depth)
    channel.on_message = host.handle_message
    channel.on_connect = host.start
    return channel


def build_surface(config: SyncConfig, stream=sys.stdout) -> BridgeChannel:
    clipboard = FileClipboard(config.copy_to) if config.copy_to else unavailable_clipboard
    channel = BridgeChannel(config.bridge_url, config.channel, ROLE_SURFACE)
    surface = DisplaySurface(send=channel.send_json, clipboard=clipboard, active_tab=config.tab)

    async def on_message(message: Dict[str, Any]) -> None:
        decoded = await surface.handle_message(message)
        if not isinstance(decoded, SelectionChangeMessage):
            return
        stream.write(f"{surface.active_text}\n-- {surface.token_label} --\n")
        stream.flush()
        if config.copy_to and surface.has_content:
            await surface.copy_active()

    channel.on_message = on_message
    channel.on_connect = surface.start
    return channel


def main():
    config = get_config()
    configure_logging(config)

    logger.info(f"Starting selection sync ({config.role})")
    logger.info(f"Bridge URL: {config.bridge_url}")
    logger.info(f"Channel: {config.channel}")
    if config.role == ROLE_HOST:
        logger.info(f"Max depth: {config.max_depth if config.max_depth is not None else 'unbounded'}")
        channel = build_host(config)
    else:
        logger.info(f"Active tab: {config.tab}")
        channel = build_surface(config)

    # Handle shutdown signals
    def signal_handler(signum, frame):
        logger.info("Received shutdown signal")
        channel.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        asyncio.run(channel.run_with_reconnect())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        channel.shutdown()


if __name__ == "__main__":
    main()
