"""
Sync Protocol - Selection sync message vocabulary

Messages exchanged between the selection host (owns the scene graph) and
the display surface (renders extracted trees). Every envelope is a plain
JSON object discriminated by its `type` field. Delivery order is the only
ordering guarantee; all messages are fire-and-forget.
"""

import json
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

# Surface -> Host
MESSAGE_TYPE_INIT = "init"
MESSAGE_TYPE_TOGGLE_EXPAND = "toggleExpand"
MESSAGE_TYPE_NOTIFY = "notify"
# Host -> Surface
MESSAGE_TYPE_SELECTION_CHANGE = "selectionChange"
MESSAGE_TYPE_ERROR = "error"
# Canvas plugin -> Host (scene-graph provider feed)
MESSAGE_TYPE_CANVAS_SELECTION = "canvasSelection"

NOTIFY_COPIED = "Copied to clipboard!"
NOTIFY_COPY_FAILED = "Failed to copy to clipboard"
SELECTION_ERROR_MESSAGE = "Failed to process selection data"

# Envelope key used by the plugin iframe for postMessage payloads
PLUGIN_MESSAGE_KEY = "pluginMessage"


class ProtocolDecodeError(Exception):
    """Inbound message with an unknown `type` or a malformed payload."""

    def __init__(self, message: str, raw: Any = None):
        self.raw = raw
        super().__init__(message)


class InitMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["init"] = MESSAGE_TYPE_INIT


class ToggleExpandMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["toggleExpand"] = MESSAGE_TYPE_TOGGLE_EXPAND
    expandContent: StrictBool


class NotifyMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["notify"] = MESSAGE_TYPE_NOTIFY
    message: StrictStr


class SelectionChangeMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["selectionChange"] = MESSAGE_TYPE_SELECTION_CHANGE
    # Required key, but null is a valid value (empty selection)
    data: Union[List[Dict[str, Any]], Dict[str, Any], None] = Field(...)


class ErrorMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["error"] = MESSAGE_TYPE_ERROR
    message: StrictStr


class CanvasSelectionMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["canvasSelection"] = MESSAGE_TYPE_CANVAS_SELECTION
    nodes: List[Dict[str, Any]] = []


SyncMessage = Annotated[
    Union[
        InitMessage,
        ToggleExpandMessage,
        NotifyMessage,
        SelectionChangeMessage,
        ErrorMessage,
        CanvasSelectionMessage,
    ],
    Field(discriminator="type"),
]

_sync_message_adapter = TypeAdapter(SyncMessage)


def _unwrap(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ProtocolDecodeError(f"Invalid JSON: {e}", raw=raw) from e
    if not isinstance(raw, dict):
        raise ProtocolDecodeError(f"Expected a JSON object, got {type(raw).__name__}", raw=raw)
    inner = raw.get(PLUGIN_MESSAGE_KEY)
    if isinstance(inner, dict):
        return inner
    return raw


def decode_message(raw: Any) -> BaseModel:
    """
    Decode one inbound envelope into its message model.

    Args:
        raw: JSON text/bytes or an already parsed dict; a `pluginMessage`
            wrapper is unwrapped

    Returns:
        The matching message model

    Raises:
        ProtocolDecodeError: For unknown types or malformed payloads
    """
    payload = _unwrap(raw)
    try:
        return _sync_message_adapter.validate_python(payload)
    except ValidationError as e:
        raise ProtocolDecodeError(
            f"Malformed or unknown message type {payload.get('type')!r}: {e.error_count()} error(s)",
            raw=payload,
        ) from e


def try_decode_message(raw: Any) -> Optional[BaseModel]:
    """Decode `raw`, or return None when it is not a protocol message."""
    try:
        return decode_message(raw)
    except ProtocolDecodeError as e:
        logger.debug(f"Ignoring undecodable message: {e}")
        return None


def encode_message(message: BaseModel) -> Dict[str, Any]:
    return message.model_dump(mode="json")


def selection_change_message(data: Any) -> Dict[str, Any]:
    return encode_message(SelectionChangeMessage(data=data))


def error_message(message: str) -> Dict[str, Any]:
    return encode_message(ErrorMessage(message=message))


def init_message() -> Dict[str, Any]:
    return encode_message(InitMessage())


def toggle_expand_message(expand_content: bool) -> Dict[str, Any]:
    return encode_message(ToggleExpandMessage(expandContent=expand_content))


def notify_message(message: str) -> Dict[str, Any]:
    return encode_message(NotifyMessage(message=message))
