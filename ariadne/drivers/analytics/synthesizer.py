"""
Cross-source event synthesizer for Ariadne.

Product analytics tools export flat, named events ("Page View",
"[Amplitude] Element Clicked", ...) with no DOM and no node ids. The
EventSynthesizer turns one session of such events into CanonicalEvents
that the classifier consumes exactly like a native recording:

    Meta            page URL and viewport of the first event
    FullSnapshot    a small synthetic document
    per source event:
        Mutation        a real element node, only the first time an
                        element descriptor is seen
        Click / Input / Scroll
                        zero or one, chosen from the event name
        Mutation        a feed entry, so a synthesized click has a
                        visible response
        Custom          {tag, payload}

Node ids are allocated per synthesize() call: the static document uses
ids 1-10 and every dynamically added node gets an id from 100 upward, so
synthesized ids never collide within a session.

Typical usage:

    from ariadne.drivers.analytics.normalizer import normalize_analytics_events
    from ariadne.drivers.analytics.synthesizer import EventSynthesizer

    events = EventSynthesizer().synthesize(normalize_analytics_events(rows))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from common.models.canonical_event import (
    DEFAULT_WINDOW_ID,
    CanonicalEvent,
    EventType,
    IncrementalSource,
    MouseInteraction,
    NodeType,
)

from .normalizer import AnalyticsEvent


LOG = logging.getLogger(__name__)

# Static synthetic document.
DOCUMENT_ID = 1
DOCTYPE_ID = 2
HTML_ID = 3
HEAD_ID = 4
TITLE_ID = 5
TITLE_TEXT_ID = 6
BODY_ID = 7
APP_ID = 8
APP_TEXT_ID = 9
FEED_ID = 10

STATIC_ID_LIMIT = 50
FIRST_DYNAMIC_ID = 100

REDACTED_INPUT = "[REDACTED]"

# --------------------------------------------------------------------------- #
# Name vocabulary
# --------------------------------------------------------------------------- #

PAGEVIEW_NAMES = frozenset(
    {"$mp_web_page_view", "Page View", "$pageview", "[Amplitude] Page Viewed", "page_view"}
)
CLICK_NAMES = frozenset({"$click", "Click", "click", "[Amplitude] Element Clicked"})
FORM_SUBMIT_NAMES = frozenset(
    {"$form_submit", "Form Submit", "submit", "[Amplitude] Form Submitted", "form_submit"}
)
INPUT_NAMES = frozenset({"$input", "Input", "input", "[Amplitude] Element Changed"})
SCROLL_NAMES = frozenset({"$scroll", "Scroll", "scroll", "[Amplitude] Scroll"})
SESSION_START_NAMES = frozenset({"$session_start", "[Amplitude] Start Session", "session_start"})
SESSION_END_NAMES = frozenset({"$session_end", "[Amplitude] End Session", "session_end"})
ERROR_NAMES = frozenset({"$exception", "Error", "error"})

GENERIC_DROPPED_KEYS = frozenset({"time", "distinct_id", "amplitude_event_type"})


def classify_event_name(name: str) -> str:
    """
    Map an analytics event name to a synthesis kind.

    Returns one of "pageview", "click", "form_submit", "input", "scroll",
    "session_start", "session_end", "error", "search" or "generic".
    First match wins, in that order.
    """
    lowered = name.lower()
    if name in PAGEVIEW_NAMES:
        return "pageview"
    if name in CLICK_NAMES or "click" in lowered:
        return "click"
    if name in FORM_SUBMIT_NAMES:
        return "form_submit"
    if name in INPUT_NAMES or "input" in lowered:
        return "input"
    if name in SCROLL_NAMES:
        return "scroll"
    if name in SESSION_START_NAMES:
        return "session_start"
    if name in SESSION_END_NAMES:
        return "session_end"
    if name in ERROR_NAMES or "error" in lowered or "exception" in lowered:
        return "error"
    if "search" in lowered:
        return "search"
    return "generic"


def _first(props: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = props.get(key)
        if value not in (None, ""):
            return value
    return default


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


# --------------------------------------------------------------------------- #
# Element descriptors
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class ElementDescriptor:
    """What an analytics event says about the element it happened on."""

    tag_name: str
    text: str = ""
    class_name: str = ""
    element_id: str = ""
    href: str = ""
    input_type: str = ""
    name: str = ""

    @classmethod
    def from_properties(cls, props: Dict[str, Any], *, default_tag: str) -> "ElementDescriptor":
        return cls(
            tag_name=str(
                _first(props, "$element_tag", "tag_name", "[Amplitude] Element Tag", default=default_tag)
            ).lower(),
            text=str(_first(props, "$element_text", "element_text", "[Amplitude] Element Text", default="")),
            class_name=str(
                _first(props, "$element_class", "element_class", "[Amplitude] Element Class", default="")
            ),
            element_id=str(_first(props, "$element_id", "element_id", "[Amplitude] Element ID", default="")),
            href=str(_first(props, "[Amplitude] Element Href", "$element_href", "element_href", default="")),
            input_type=str(_first(props, "$element_type", "element_type", "input_type", default="")),
            name=str(_first(props, "$element_name", "element_name", "field_name", default="")),
        )

    def key(self) -> Tuple[str, str, str, str, str]:
        return (self.tag_name, self.element_id, self.class_name, self.text, self.href)

    def attributes(self) -> Dict[str, str]:
        pairs = (
            ("id", self.element_id),
            ("class", self.class_name),
            ("href", self.href),
            ("type", self.input_type),
            ("name", self.name),
        )
        return {k: v for k, v in pairs if v}

    def to_dict(self) -> Dict[str, str]:
        return {
            "tagName": self.tag_name,
            "textContent": self.text,
            "className": self.class_name,
            "id": self.element_id,
        }


# --------------------------------------------------------------------------- #
# Configuration
# --------------------------------------------------------------------------- #


@dataclass
class SynthesizerConfig:
    """
    Options for EventSynthesizer.

    Attributes:
        default_width / default_height:
            Viewport used when the first event carries no screen size.
        title:
            Synthetic page title. Defaults to "<Vendor> Session".
        window_id:
            Window id stamped on every produced event.
    """

    default_width: int = 1920
    default_height: int = 1080
    title: Optional[str] = None
    window_id: str = DEFAULT_WINDOW_ID


class NodeIdAllocator:
    """Monotonic id source for dynamically added synthetic nodes."""

    def __init__(self, start: int = FIRST_DYNAMIC_ID) -> None:
        self._next = start

    def allocate(self) -> int:
        node_id = self._next
        self._next += 1
        return node_id


class _SynthesisRun:
    """State of one synthesize() call."""

    def __init__(self, config: SynthesizerConfig) -> None:
        self.config = config
        self.ids = NodeIdAllocator()
        self.elements: Dict[Tuple[str, str, str, str, str], int] = {}
        self.out: List[CanonicalEvent] = []

    def emit(self, event_type: int, data: Dict[str, Any], timestamp: int) -> None:
        self.out.append(
            CanonicalEvent(
                type=int(event_type),
                data=data,
                timestamp=timestamp,
                window_id=self.config.window_id,
            )
        )

    def element_node(self, descriptor: ElementDescriptor) -> Tuple[int, Optional[Dict[str, Any]]]:
        """Return (node_id, node) where node is None if already added."""
        key = descriptor.key()
        existing = self.elements.get(key)
        if existing is not None:
            return existing, None

        node_id = self.ids.allocate()
        self.elements[key] = node_id
        children: List[Dict[str, Any]] = []
        if descriptor.text:
            children.append(
                {"type": NodeType.TEXT, "textContent": descriptor.text, "id": self.ids.allocate()}
            )
        node = {
            "type": NodeType.ELEMENT,
            "tagName": descriptor.tag_name,
            "attributes": descriptor.attributes(),
            "childNodes": children,
            "id": node_id,
        }
        return node_id, node

    def feed_entry(self, label: str) -> Dict[str, Any]:
        return {
            "type": NodeType.ELEMENT,
            "tagName": "p",
            "attributes": {"class": "feed-entry"},
            "childNodes": [{"type": NodeType.TEXT, "textContent": label, "id": self.ids.allocate()}],
            "id": self.ids.allocate(),
        }


def _document(title: str, page_url: str, vendor_label: str, width: int, height: int) -> Dict[str, Any]:
    text = NodeType.TEXT
    element = NodeType.ELEMENT
    return {
        "type": NodeType.DOCUMENT,
        "id": DOCUMENT_ID,
        "childNodes": [
            {"type": NodeType.DOCUMENT_TYPE, "name": "html", "publicId": "", "systemId": "", "id": DOCTYPE_ID},
            {
                "type": element,
                "tagName": "html",
                "attributes": {},
                "id": HTML_ID,
                "childNodes": [
                    {
                        "type": element,
                        "tagName": "head",
                        "attributes": {},
                        "id": HEAD_ID,
                        "childNodes": [
                            {
                                "type": element,
                                "tagName": "title",
                                "attributes": {},
                                "id": TITLE_ID,
                                "childNodes": [{"type": text, "textContent": title, "id": TITLE_TEXT_ID}],
                            }
                        ],
                    },
                    {
                        "type": element,
                        "tagName": "body",
                        "attributes": {"style": f"margin:0;width:{width}px;height:{height}px;"},
                        "id": BODY_ID,
                        "childNodes": [
                            {
                                "type": element,
                                "tagName": "div",
                                "attributes": {"id": "app"},
                                "id": APP_ID,
                                "childNodes": [
                                    {
                                        "type": text,
                                        "textContent": f"Session reconstructed from {vendor_label} events: {page_url}",
                                        "id": APP_TEXT_ID,
                                    }
                                ],
                            },
                            {
                                "type": element,
                                "tagName": "section",
                                "attributes": {"id": "event-feed"},
                                "id": FEED_ID,
                                "childNodes": [],
                            },
                        ],
                    },
                ],
            },
        ],
    }


# --------------------------------------------------------------------------- #
# Synthesizer
# --------------------------------------------------------------------------- #


class EventSynthesizer:
    """
    Build CanonicalEvents from one session of AnalyticsEvents.

    The instance holds configuration only; all id allocation happens in a
    per-call run object, so one synthesizer can serve many sessions.
    """

    def __init__(self, config: Optional[SynthesizerConfig] = None) -> None:
        self.config = config or SynthesizerConfig()

    def synthesize(self, events: Sequence[AnalyticsEvent]) -> List[CanonicalEvent]:
        if not events:
            return []

        ordered = sorted(events, key=lambda e: e.timestamp_ms)
        first = ordered[0]
        base = first.timestamp_ms
        run = _SynthesisRun(self.config)

        page_url = next((e.page_url for e in ordered if e.page_url), "")
        width = int(_number(first.properties.get("$screen_width")) or self.config.default_width)
        height = int(_number(first.properties.get("$screen_height")) or self.config.default_height)
        vendor_label = first.vendor.capitalize() if first.vendor != "generic" else "Analytics"
        title = self.config.title or f"{vendor_label} Session"

        run.emit(EventType.META, {"href": page_url, "width": width, "height": height}, base)
        run.emit(
            EventType.FULL_SNAPSHOT,
            {
                "node": _document(title, page_url, vendor_label, width, height),
                "initialOffset": {"top": 0, "left": 0},
            },
            base,
        )

        for event in ordered:
            self._synthesize_one(run, event)

        LOG.debug(
            "Synthesized %d canonical events from %d analytics events",
            len(run.out),
            len(ordered),
        )
        return run.out

    # ------------------------------------------------------------------ #
    # Per event
    # ------------------------------------------------------------------ #

    def _synthesize_one(self, run: _SynthesisRun, event: AnalyticsEvent) -> None:
        kind = classify_event_name(event.name)
        props = event.properties
        ts = event.timestamp_ms

        descriptor: Optional[ElementDescriptor] = None
        if kind == "click":
            descriptor = ElementDescriptor.from_properties(props, default_tag="div")
        elif kind == "input":
            descriptor = ElementDescriptor.from_properties(props, default_tag="input")

        # The element must exist before the interaction that targets it.
        node_id = None
        if descriptor is not None:
            node_id, node = run.element_node(descriptor)
            if node is not None:
                self._emit_adds(run, [{"parentId": APP_ID, "nextId": None, "node": node}], ts)

        if kind == "click":
            run.emit(
                EventType.INCREMENTAL_SNAPSHOT,
                {
                    "source": IncrementalSource.MOUSE_INTERACTION,
                    "type": MouseInteraction.CLICK,
                    "id": node_id,
                    "x": _number(_first(props, "$click_x", "[Amplitude] Element Position X", "x", default=0)),
                    "y": _number(_first(props, "$click_y", "[Amplitude] Element Position Y", "y", default=0)),
                },
                ts,
            )
        elif kind == "input":
            data: Dict[str, Any] = {
                "source": IncrementalSource.INPUT,
                "id": node_id,
                "text": REDACTED_INPUT,
            }
            if props.get("checked") is not None:
                data["isChecked"] = bool(props["checked"])
            run.emit(EventType.INCREMENTAL_SNAPSHOT, data, ts)
        elif kind == "scroll":
            run.emit(
                EventType.INCREMENTAL_SNAPSHOT,
                {
                    "source": IncrementalSource.SCROLL,
                    "id": DOCUMENT_ID,
                    "x": _number(_first(props, "scroll_x", "$scroll_x", default=0)),
                    "y": _number(_first(props, "scroll_y", "$scroll_y", "scroll_depth", default=0)),
                },
                ts,
            )

        # Feed entry after the interaction: it is the page's visible response.
        feed = {"parentId": FEED_ID, "nextId": None, "node": run.feed_entry(event.name)}
        self._emit_adds(run, [feed], ts)

        tag, payload = self._custom(kind, event, descriptor)
        run.emit(EventType.CUSTOM, {"tag": tag, "payload": payload}, ts)

    @staticmethod
    def _emit_adds(run: _SynthesisRun, adds: List[Dict[str, Any]], ts: int) -> None:
        run.emit(
            EventType.INCREMENTAL_SNAPSHOT,
            {
                "source": IncrementalSource.MUTATION,
                "texts": [],
                "attributes": [],
                "removes": [],
                "adds": adds,
            },
            ts,
        )

    def _custom(
        self,
        kind: str,
        event: AnalyticsEvent,
        descriptor: Optional[ElementDescriptor],
    ) -> Tuple[str, Dict[str, Any]]:
        props = event.properties

        if kind == "pageview":
            return "$pageview", {
                "$current_url": event.page_url,
                "$referrer": _first(props, "$referrer", "[Amplitude] Page Referrer", "referrer", default=""),
                "page_title": _first(props, "[Amplitude] Page Title", "page_title", default=""),
            }
        if kind == "click":
            return "click", {"event": event.name, "element": descriptor.to_dict() if descriptor else {}}
        if kind == "form_submit":
            return "form_submit", {
                "type": "submit",
                "formId": _first(props, "form_id", "$form_id", "[Amplitude] Form ID", default=""),
                "formAction": _first(props, "form_action", "$form_action", "[Amplitude] Form Action", default=""),
                "pageUrl": event.page_url,
            }
        if kind == "input":
            return "input", {"event": event.name}
        if kind == "scroll":
            return "scroll", {"event": event.name}
        if kind == "session_start":
            return "session_start", {
                "sessionId": _first(props, "$session_id", "session_id", default=event.session_key),
                "userId": event.distinct_id,
            }
        if kind == "session_end":
            return "session_end", {
                "sessionId": _first(props, "$session_id", "session_id", default=event.session_key),
            }
        if kind == "error":
            return "console_error", {
                "level": "error",
                "message": str(
                    _first(props, "error_message", "$exception_message", "message", default="Unknown error")
                ),
                "type": "error",
            }
        if kind == "search":
            return "search", {
                "query": _first(props, "search_query", "query", "term", default=""),
                "results_count": _first(props, "results_count", "num_results"),
                "pageUrl": event.page_url,
            }

        payload = {
            key: value
            for key, value in props.items()
            if not key.startswith("$") and key not in GENERIC_DROPPED_KEYS
        }
        payload["_page_url"] = event.page_url
        return event.name, payload
