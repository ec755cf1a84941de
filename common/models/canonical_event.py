"""
Canonical event model for Ariadne.

This module defines the in-memory representation of a single recorded
interaction or state change, after decoding, plus the integer codes used
by DOM-level recorders (rrweb) for event types, node types and
incremental sources.

A CanonicalEvent is what the Decoder produces, what the Synthesizer
produces from flat analytics events, and what the Classifier consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional, Union


DEFAULT_WINDOW_ID = "default"


class EventType(IntEnum):
    """Top-level recorder event type."""

    DOM_CONTENT_LOADED = 0
    LOAD = 1
    FULL_SNAPSHOT = 2
    INCREMENTAL_SNAPSHOT = 3
    META = 4
    CUSTOM = 5
    PLUGIN = 6


class NodeType(IntEnum):
    """Serialized DOM node type inside snapshots and mutation adds."""

    DOCUMENT = 0
    DOCUMENT_TYPE = 1
    ELEMENT = 2
    TEXT = 3
    CDATA = 4
    COMMENT = 5


class IncrementalSource(IntEnum):
    """Source of an incremental snapshot event."""

    MUTATION = 0
    MOUSE_MOVE = 1
    MOUSE_INTERACTION = 2
    SCROLL = 3
    VIEWPORT_RESIZE = 4
    INPUT = 5
    TOUCH_MOVE = 6
    MEDIA_INTERACTION = 7
    STYLE_SHEET_RULE = 8
    CANVAS_MUTATION = 9
    FONT = 10
    LOG = 11
    DRAG = 12
    STYLE_SHEET_RULE_DELETE = 13


class MouseInteraction(IntEnum):
    """Sub-type of a MouseInteraction incremental event."""

    MOUSE_UP = 0
    MOUSE_DOWN = 1
    CLICK = 2
    CONTEXT_MENU = 3
    DBL_CLICK = 4
    FOCUS = 5
    BLUR = 6
    TOUCH_START = 7
    TOUCH_MOVE_DEPARTED = 8
    TOUCH_END = 9
    TOUCH_CANCEL = 10


class MediaInteraction(IntEnum):
    """Sub-type of a MediaInteraction incremental event."""

    PLAY = 0
    PAUSE = 1
    SEEKED = 2
    VOLUME_CHANGE = 3
    RATE_CHANGE = 4


EventData = Union[Dict[str, Any], str]


@dataclass(frozen=True)
class CanonicalEvent:
    """
    One normalized recorder event.

    Attributes:
        type:
            Integer event type. Known values map to EventType; unknown
            values are kept as plain ints so that nothing is lost on
            re-encoding.
        data:
            Variant payload. Usually a dict; FullSnapshot payloads may
            still be a compressed/serialized string, which the node
            resolver handles.
        timestamp:
            Epoch milliseconds.
        window_id:
            Recorder window/tab identifier. Never None: the decoder
            carries the last seen value forward, or uses "default".
    """

    type: int
    data: EventData = field(default_factory=dict)
    timestamp: int = 0
    window_id: str = DEFAULT_WINDOW_ID

    # ------------------------------------------------------------------ #
    # Convenience accessors
    # ------------------------------------------------------------------ #

    @property
    def payload(self) -> Dict[str, Any]:
        """Return `data` when it is a dict, else an empty dict."""
        return self.data if isinstance(self.data, dict) else {}

    @property
    def source(self) -> Optional[int]:
        """Incremental source code, or None for non-incremental events."""
        if self.type != EventType.INCREMENTAL_SNAPSHOT:
            return None
        value = self.payload.get("source")
        return value if isinstance(value, int) else None

    def is_mutation(self) -> bool:
        return self.source == IncrementalSource.MUTATION

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the recorder wire shape."""
        return {
            "type": int(self.type),
            "data": self.data,
            "timestamp": self.timestamp,
            "windowId": self.window_id,
        }

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], window_id: Optional[str] = None
    ) -> "CanonicalEvent":
        """
        Build a CanonicalEvent from a recorder-shaped dict.

        Args:
            data:
                Dict with at least a "type" key.
            window_id:
                Window id to use; when None, falls back to the dict's own
                "windowId" and then to DEFAULT_WINDOW_ID.

        Raises:
            KeyError if "type" is missing.
            ValueError if "type" or "timestamp" is not numeric.
        """
        raw_type = data["type"]
        if isinstance(raw_type, bool) or not isinstance(raw_type, (int, float, str)):
            raise ValueError(f"Invalid event type: {raw_type!r}")

        timestamp = data.get("timestamp") or 0
        payload = data.get("data")
        if payload is None:
            payload = {}

        return cls(
            type=int(raw_type),
            data=payload,
            timestamp=int(float(timestamp)),
            window_id=window_id or data.get("windowId") or DEFAULT_WINDOW_ID,
        )
