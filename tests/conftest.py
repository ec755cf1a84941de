"""Shared pytest fixtures: canonical event builders and gzip helpers."""
from __future__ import annotations

import base64
import gzip
import json
from typing import Any, Dict, List, Optional

import pytest

from common.models.canonical_event import (
    CanonicalEvent,
    EventType,
    IncrementalSource,
    MouseInteraction,
    NodeType,
)


BASE_TS = 1_700_000_000_000


def gzip_latin1(obj: Any) -> str:
    """JSON -> gzip -> bytes read back as Latin-1 text."""
    return gzip.compress(json.dumps(obj).encode("utf-8")).decode("latin-1")


def gzip_base64(obj: Any) -> str:
    """JSON -> gzip -> base64 text."""
    return base64.b64encode(gzip.compress(json.dumps(obj).encode("utf-8"))).decode("ascii")


class EventBuilder:
    """Small factory for CanonicalEvents with offsets relative to BASE_TS."""

    base = BASE_TS

    def at(self, offset: int) -> int:
        return self.base + offset

    def event(self, type_: int, data: Any, offset: int) -> CanonicalEvent:
        return CanonicalEvent(type=int(type_), data=data, timestamp=self.at(offset))

    # -- context -------------------------------------------------------- #

    def meta(
        self,
        offset: int = 0,
        href: str = "https://shop.example.com/cart",
        width: int = 1024,
        height: int = 768,
    ) -> CanonicalEvent:
        return self.event(EventType.META, {"href": href, "width": width, "height": height}, offset)

    @staticmethod
    def element(
        node_id: int,
        tag: str,
        attributes: Optional[Dict[str, Any]] = None,
        text: Optional[str] = None,
    ) -> Dict[str, Any]:
        children: List[Dict[str, Any]] = []
        if text is not None:
            children.append({"type": NodeType.TEXT, "textContent": text, "id": node_id + 1000})
        return {
            "type": NodeType.ELEMENT,
            "tagName": tag,
            "attributes": attributes or {},
            "childNodes": children,
            "id": node_id,
        }

    def document(self, body_children: List[Dict[str, Any]], title: str = "Shop") -> Dict[str, Any]:
        return {
            "type": NodeType.DOCUMENT,
            "id": 1,
            "childNodes": [
                {
                    "type": NodeType.ELEMENT,
                    "tagName": "html",
                    "attributes": {},
                    "id": 2,
                    "childNodes": [
                        {
                            "type": NodeType.ELEMENT,
                            "tagName": "head",
                            "attributes": {},
                            "id": 3,
                            "childNodes": [self.element(4, "title", text=title)],
                        },
                        {
                            "type": NodeType.ELEMENT,
                            "tagName": "body",
                            "attributes": {},
                            "id": 5,
                            "childNodes": body_children,
                        },
                    ],
                }
            ],
        }

    def snapshot(
        self,
        body_children: List[Dict[str, Any]],
        offset: int = 1,
        title: str = "Shop",
    ) -> CanonicalEvent:
        return self.event(
            EventType.FULL_SNAPSHOT,
            {"node": self.document(body_children, title=title), "initialOffset": {"top": 0, "left": 0}},
            offset,
        )

    # -- incremental ---------------------------------------------------- #

    def incremental(self, source: int, offset: int, **data: Any) -> CanonicalEvent:
        return self.event(EventType.INCREMENTAL_SNAPSHOT, {"source": int(source), **data}, offset)

    def mouse(self, kind: int, node_id: int, offset: int, **data: Any) -> CanonicalEvent:
        return self.incremental(
            IncrementalSource.MOUSE_INTERACTION, offset, type=int(kind), id=node_id, **data
        )

    def click(self, node_id: int, offset: int) -> CanonicalEvent:
        return self.mouse(MouseInteraction.CLICK, node_id, offset, x=10, y=10)

    def focus(self, node_id: int, offset: int) -> CanonicalEvent:
        return self.mouse(MouseInteraction.FOCUS, node_id, offset)

    def blur(self, node_id: int, offset: int) -> CanonicalEvent:
        return self.mouse(MouseInteraction.BLUR, node_id, offset)

    def input(self, node_id: int, text: str, offset: int, **data: Any) -> CanonicalEvent:
        return self.incremental(IncrementalSource.INPUT, offset, id=node_id, text=text, **data)

    def scroll(self, y: float, offset: int, x: float = 0) -> CanonicalEvent:
        return self.incremental(IncrementalSource.SCROLL, offset, id=1, x=x, y=y)

    def mutation(self, offset: int, adds: Optional[List[Dict[str, Any]]] = None) -> CanonicalEvent:
        return self.incremental(
            IncrementalSource.MUTATION,
            offset,
            texts=[],
            attributes=[],
            removes=[],
            adds=adds or [],
        )

    def hover(self, node_id: int, offset: int) -> CanonicalEvent:
        return self.incremental(
            IncrementalSource.MOUSE_MOVE,
            offset,
            positions=[{"x": 5, "y": 5, "id": node_id, "timeOffset": 0}],
        )

    # -- custom / plugin ------------------------------------------------ #

    def custom(self, tag: str, payload: Any, offset: int) -> CanonicalEvent:
        return self.event(EventType.CUSTOM, {"tag": tag, "payload": payload}, offset)

    def plugin(self, payload: Any, offset: int, plugin: str = "rrweb/network@1") -> CanonicalEvent:
        return self.event(EventType.PLUGIN, {"plugin": plugin, "payload": payload}, offset)


@pytest.fixture
def ev() -> EventBuilder:
    return EventBuilder()


@pytest.fixture
def shop_page(ev: EventBuilder) -> List[CanonicalEvent]:
    """Meta + FullSnapshot of a page with a button, a link and two inputs."""
    return [
        ev.meta(0),
        ev.snapshot(
            [
                ev.element(10, "button", text="Buy"),
                ev.element(11, "a", {"href": "/docs/getting-started"}),
                ev.element(20, "input", {"type": "email", "placeholder": "Email"}),
                ev.element(21, "input", {"type": "password", "name": "password"}),
            ]
        ),
    ]


@pytest.fixture
def mixpanel_rows() -> List[Dict[str, Any]]:
    """A short Mixpanel export of one user session (epoch seconds)."""
    t0 = 1_705_312_200

    def row(name: str, offset: int, **props: Any) -> Dict[str, Any]:
        return {
            "event": name,
            "properties": {
                "time": t0 + offset,
                "distinct_id": "user-1",
                "$insert_id": f"ins-{offset}",
                "$current_url": "https://shop.example.com/",
                "$screen_width": 1280,
                "$screen_height": 720,
                **props,
            },
        }

    return [
        row("$mp_web_page_view", 0, **{"$referrer": "https://google.com"}),
        row("$click", 1, **{"$element_tag": "button", "$element_text": "Add to cart"}),
        row("$input", 2, **{"$element_tag": "input", "$element_type": "email", "$element_name": "email"}),
        row("$scroll", 3, scroll_y=900),
        row("$form_submit", 4, form_id="checkout"),
        row("$exception", 5, error_message="TypeError: cart is undefined"),
        row("Page View", 6),
        row("Coupon Applied", 7, code="SAVE10", **{"$browser": "Chrome"}),
    ]


@pytest.fixture
def amplitude_rows() -> List[Dict[str, Any]]:
    def row(event_type: str, seconds: int, **props: Any) -> Dict[str, Any]:
        return {
            "event_type": event_type,
            "event_time": f"2024-01-15 09:50:{seconds:02d}.000000",
            "user_id": "amp-user",
            "device_id": "dev-1",
            "session_id": 1705312200000,
            "event_properties": {"[Amplitude] Page URL": "https://app.example.com/", **props},
        }

    return [
        row("[Amplitude] Page Viewed", 0),
        row(
            "[Amplitude] Element Clicked",
            1,
            **{"[Amplitude] Element Tag": "a", "[Amplitude] Element Text": "Pricing"},
        ),
        row("Search Performed", 2, search_query="shoes"),
    ]
