"""
Event classifier for Ariadne.

The classifier walks a list of CanonicalEvents once, in timestamp order,
and produces a SessionBundle:

- A semantic log: at most one human-readable entry per event that has an
  observable action ("Clicked button", "Typed", "Scrolled", ...), with
  friction flags ("[RAGE CLICK]", "[NO RESPONSE]", ...) computed from
  local, time-windowed context.
- RunningCounters updated once per relevant event.
- BehavioralSignals derived from the final counters.
- Per-field input histories.

It does not know where events come from: native recordings (via the
decoder) and synthesized analytics sessions (via the synthesizer) go
through exactly the same code.

Typical usage:

    from ariadne.core.classifier import EventClassifier

    bundle = EventClassifier().classify(events)
    print(bundle.to_json())
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, fields
from typing import Any, Deque, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from common.models.canonical_event import (
    CanonicalEvent,
    EventType,
    IncrementalSource,
    MediaInteraction,
    MouseInteraction,
)
from common.models.node_info import NodeInfo
from common.models.session_bundle import (
    RunningCounters,
    SemanticLogEntry,
    SessionBundle,
    format_duration,
    format_time,
)

from ..drivers.rrweb.node_resolver import NodeResolver, redact
from .input_tracker import InputTracker
from .signals import derive_behavioral_signals


LOG = logging.getLogger(__name__)

HOVER_TAGS = ("button", "a", "input", "select")
FOCUS_TAGS = ("input", "textarea", "select")
TEXT_ENTRY_TAGS = ("input", "textarea")


# --------------------------------------------------------------------------- #
# Configuration
# --------------------------------------------------------------------------- #


@dataclass
class ClassifierConfig:
    """
    Thresholds used by the classifier.

    The defaults define what counts as friction; change them only for
    experiments.

    Attributes:
        idle_threshold_ms:
            Gaps between interactions longer than this add
            (gap - threshold) to idle time.
        rage_click_window_ms / rage_click_prior_clicks:
            A click is a rage click when at least `rage_click_prior_clicks`
            earlier clicks landed on the same node within the window.
        thrash_window_ms / thrash_min_clicks / thrash_min_nodes:
            At least `thrash_min_clicks` earlier clicks in the window,
            spread over at least `thrash_min_nodes` distinct nodes.
        dead_click_lookahead_events / dead_click_window_ms:
            Bounds of the forward scan for a Mutation after a click.
        hover_log_interval_ms:
            Minimum time between two logged hovers on the same node.
        hesitation_ms:
            A repeat hover later than this after the previous one is a
            hesitation.
        input_debounce_ms / input_length_delta:
            Input changes faster than the debounce that move the length by
            no more than the delta are not logged.
        paste_window_ms:
            Bulk additions within this window are classified as pastes.
        scroll_log_interval_ms:
            Minimum time between two logged scrolls.
        rapid_scroll_px_per_ms:
            Scroll speed above which a scroll counts as rapid.
        page_height_viewports:
            Assumed page height in viewport heights, for scroll depth.
        content_loaded_min_adds:
            Mutations adding more nodes than this are logged.
        tap_max_distance_px / tap_max_duration_ms / swipe_min_distance_px /
        long_press_min_ms:
            Touch gesture bounds.
        detail_max_chars:
            Console message details are truncated to this length.
        slow_request_ms / slow_lcp_ms:
            Network and page-load slowness thresholds.
        max_click_history:
            Cap on remembered clicks.
    """

    idle_threshold_ms: int = 5000
    rage_click_window_ms: int = 2000
    rage_click_prior_clicks: int = 1
    thrash_window_ms: int = 1500
    thrash_min_clicks: int = 3
    thrash_min_nodes: int = 3
    dead_click_lookahead_events: int = 100
    dead_click_window_ms: int = 1000
    hover_log_interval_ms: int = 3000
    hesitation_ms: int = 2000
    input_debounce_ms: int = 500
    input_length_delta: int = 3
    paste_window_ms: int = 100
    scroll_log_interval_ms: int = 2000
    rapid_scroll_px_per_ms: float = 5.0
    page_height_viewports: int = 3
    content_loaded_min_adds: int = 10
    tap_max_distance_px: int = 10
    tap_max_duration_ms: int = 300
    swipe_min_distance_px: int = 50
    long_press_min_ms: int = 500
    detail_max_chars: int = 100
    slow_request_ms: int = 3000
    slow_lcp_ms: int = 4000
    max_click_history: int = 64

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ClassifierConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _num(value: Any) -> str:
    """Render a number without a trailing ".0" for whole values."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _clip(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


@dataclass
class _Click:
    node_id: Any
    timestamp: int


@dataclass
class _TouchStart:
    x: float
    y: float
    timestamp: int


class _Draft:
    """The (at most one) log entry being built for the current event."""

    __slots__ = ("action", "details", "flags")

    def __init__(self) -> None:
        self.action = ""
        self.details = ""
        self.flags: List[str] = []

    def set(self, action: str, details: str = "") -> None:
        self.action = action
        self.details = details

    def flag(self, flag: str) -> None:
        self.flags.append(flag)


# --------------------------------------------------------------------------- #
# Classifier
# --------------------------------------------------------------------------- #


class EventClassifier:
    """
    Stateless entry point; each classify() call owns a fresh session walk.

    A single EventClassifier can be shared between threads: nothing
    mutable lives on the instance.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None) -> None:
        self.config = config or ClassifierConfig()

    def classify(self, events: Sequence[CanonicalEvent]) -> SessionBundle:
        if not events:
            return SessionBundle.empty()
        return _SessionWalk(events, self.config).run()


class _SessionWalk:
    """All mutable state of one parse."""

    def __init__(self, events: Sequence[CanonicalEvent], config: ClassifierConfig) -> None:
        self.cfg = config
        # Stable sort: ties keep arrival order.
        self.events: List[CanonicalEvent] = sorted(events, key=lambda e: e.timestamp)
        self.start_time = self.events[0].timestamp

        self.counters = RunningCounters()
        self.resolver = NodeResolver()
        self.logs: List[SemanticLogEntry] = []
        self.inputs = InputTracker(
            self.start_time,
            debounce_ms=config.input_debounce_ms,
            length_delta=config.input_length_delta,
            paste_window_ms=config.paste_window_ms,
        )

        self.page_url = ""
        self.viewport_width = 0
        self.viewport_height = 0

        self.last_interaction_time = self.start_time
        self.clicks: Deque[_Click] = deque(maxlen=config.max_click_history)
        self.hover_state: Dict[Any, int] = {}
        self.touch_start: Optional[_TouchStart] = None

        self.last_scroll_log = 0
        self.last_scroll_y = 0.0
        self.last_scroll_time = 0
        self.last_scroll_direction = 0

    # ------------------------------------------------------------------ #
    # Driver
    # ------------------------------------------------------------------ #

    def run(self) -> SessionBundle:
        self._load_context()

        for index, event in enumerate(self.events):
            draft = _Draft()
            self._track_idle(event)

            if event.type == EventType.INCREMENTAL_SNAPSHOT:
                self.last_interaction_time = event.timestamp
                self._on_incremental(index, event, draft)
            elif event.type == EventType.CUSTOM:
                self._on_custom(event, draft)
            elif event.type == EventType.PLUGIN:
                self._on_plugin(event, draft)

            if draft.action:
                self.logs.append(
                    SemanticLogEntry(
                        timestamp=format_time(event.timestamp - self.start_time),
                        raw_timestamp=event.timestamp,
                        action=draft.action,
                        details=draft.details,
                        flags=draft.flags,
                    )
                )

        end_time = self.events[-1].timestamp
        duration_ms = end_time - self.start_time

        LOG.debug(
            "Classified %d events into %d log entries (%d nodes known)",
            len(self.events),
            len(self.logs),
            len(self.resolver),
        )

        return SessionBundle(
            logs=self.logs,
            summary=self.counters,
            behavioral_signals=derive_behavioral_signals(self.counters, duration_ms),
            page_url=self.page_url,
            page_title=self.resolver.page_title,
            viewport_width=self.viewport_width,
            viewport_height=self.viewport_height,
            total_duration=format_duration(duration_ms),
            event_count=len(self.events),
            raw_input_diffs=self.inputs.summaries(end_time),
        )

    def _load_context(self) -> None:
        meta = next((e for e in self.events if e.type == EventType.META), None)
        if meta is not None:
            data = meta.payload
            self.page_url = str(data.get("href") or "")
            self.viewport_width = data.get("width") or 0
            self.viewport_height = data.get("height") or 0

        snapshot = next((e for e in self.events if e.type == EventType.FULL_SNAPSHOT), None)
        if snapshot is not None and snapshot.data:
            self.resolver.load_snapshot(snapshot.data)

        if self.page_url:
            host = urlparse(self.page_url).hostname or self.page_url
            title = self.resolver.page_title
            details = f"on {host}" + (f' - "{title}"' if title else "")
            self.logs.append(
                SemanticLogEntry(
                    timestamp=format_time(0),
                    raw_timestamp=self.start_time,
                    action="Session Started",
                    details=details,
                )
            )

    def _track_idle(self, event: CanonicalEvent) -> None:
        gap = event.timestamp - self.last_interaction_time
        if gap > self.cfg.idle_threshold_ms:
            self.counters.idle_time += gap - self.cfg.idle_threshold_ms

    # ------------------------------------------------------------------ #
    # Incremental snapshots
    # ------------------------------------------------------------------ #

    def _on_incremental(self, index: int, event: CanonicalEvent, draft: _Draft) -> None:
        data = event.payload
        source = data.get("source")

        if source == IncrementalSource.MUTATION:
            added = self.resolver.apply_mutation(data)
            if added > self.cfg.content_loaded_min_adds:
                draft.set("Content loaded", f"{added} elements added")
        elif source == IncrementalSource.MOUSE_INTERACTION:
            self._on_mouse_interaction(index, event, draft)
        elif source == IncrementalSource.MOUSE_MOVE:
            self._on_mouse_move(event, draft)
        elif source == IncrementalSource.TOUCH_MOVE:
            positions = data.get("positions") or []
            if len(positions) >= 2:
                self.counters.pinch_zooms += 1
                draft.set("Pinch zoomed")
                draft.flag("[PINCH ZOOM]")
        elif source == IncrementalSource.MEDIA_INTERACTION:
            self._on_media(data, draft)
        elif source == IncrementalSource.DRAG:
            positions = [p for p in data.get("positions") or [] if isinstance(p, dict)]
            if positions:
                start, end = positions[0], positions[-1]
                distance = math.hypot(
                    (end.get("x") or 0) - (start.get("x") or 0),
                    (end.get("y") or 0) - (start.get("y") or 0),
                )
                draft.set("Dragged", f"{_round(distance)}px")
        elif source == IncrementalSource.CANVAS_MUTATION:
            draft.set("Drew on canvas", "interactive element")
        elif source == IncrementalSource.LOG:
            self._on_console(data, draft)
        elif source == IncrementalSource.INPUT:
            self._on_input(event, draft)
        elif source == IncrementalSource.SCROLL:
            self._on_scroll(event, draft)
        elif source == IncrementalSource.VIEWPORT_RESIZE:
            self._on_resize(data, draft)

    # -- mouse / touch ------------------------------------------------- #

    def _on_mouse_interaction(self, index: int, event: CanonicalEvent, draft: _Draft) -> None:
        data = event.payload
        kind = data.get("type")
        node_id = data.get("id")
        info = self.resolver.get(node_id)
        name = self.resolver.name_for(node_id)
        tag = info.tag if info else ""
        c = self.counters

        if kind == MouseInteraction.CLICK:
            self._on_click(index, event, node_id, info, name, draft)

        elif kind == MouseInteraction.DBL_CLICK:
            c.double_clicks += 1
            draft.set("Double-clicked", name)

        elif kind == MouseInteraction.CONTEXT_MENU:
            c.right_clicks += 1
            draft.set("Right-clicked", name)

        elif kind == MouseInteraction.FOCUS:
            if tag in FOCUS_TAGS:
                draft.set("Focused on", name)
                self.inputs.focus(
                    node_id,
                    event.timestamp,
                    field_name=name,
                    field_type=(info.type if info else None) or "text",
                )

        elif kind == MouseInteraction.BLUR:
            if tag in TEXT_ENTRY_TAGS:
                state = self.inputs.blur(node_id, event.timestamp)
                if state is not None and not state.last_text:
                    if not state.had_content:
                        draft.set("Abandoned", f"{name} without entering anything")
                        draft.flag("[ABANDONED INPUT]")
                        c.abandoned_inputs += 1
                    else:
                        draft.set("Cleared and left", name)
                        draft.flag("[CLEARED INPUT]")
                        c.cleared_inputs += 1

        elif kind == MouseInteraction.TOUCH_START:
            c.total_touches += 1
            self.touch_start = _TouchStart(
                x=data.get("x") or 0, y=data.get("y") or 0, timestamp=event.timestamp
            )
            draft.set("Touched", name)

        elif kind == MouseInteraction.TOUCH_END:
            self._on_touch_end(event, name, draft)

        elif kind == MouseInteraction.TOUCH_CANCEL:
            draft.set("Touch cancelled", f"on {name}")
            self.touch_start = None

    def _on_click(
        self,
        index: int,
        event: CanonicalEvent,
        node_id: Any,
        info: Optional[NodeInfo],
        name: str,
        draft: _Draft,
    ) -> None:
        cfg = self.cfg
        c = self.counters
        ts = event.timestamp

        c.total_clicks += 1
        draft.set("Clicked", name)

        same_node = [
            click
            for click in self.clicks
            if click.node_id == node_id and ts - click.timestamp < cfg.rage_click_window_ms
        ]
        if len(same_node) >= cfg.rage_click_prior_clicks:
            draft.flag("[RAGE CLICK]")
            c.rage_clicks += 1

        recent = [click for click in self.clicks if ts - click.timestamp < cfg.thrash_window_ms]
        if len(recent) >= cfg.thrash_min_clicks:
            if len({click.node_id for click in recent}) >= cfg.thrash_min_nodes:
                draft.flag("[CLICK THRASHING]")

        self.clicks.append(_Click(node_id=node_id, timestamp=ts))

        if not self._has_response(index):
            draft.flag("[NO RESPONSE]")
            c.dead_clicks += 1

        tag = info.tag if info else ""
        if tag == "a" or (info is not None and info.href):
            draft.action = "Clicked link"
        elif tag == "button" or (info is not None and info.role == "button"):
            draft.action = "Clicked button"
        elif tag == "input" and info is not None and info.type == "submit":
            draft.action = "Clicked submit"
            c.form_submissions += 1
        elif tag == "input" and info is not None and info.type in ("checkbox", "radio"):
            draft.action = "Toggled checkbox" if info.type == "checkbox" else "Selected radio"

    def _has_response(self, index: int) -> bool:
        """Look for a Mutation shortly after the click at `index`."""
        origin = self.events[index].timestamp
        limit = min(index + self.cfg.dead_click_lookahead_events, len(self.events))
        for later in self.events[index + 1 : limit]:
            if later.timestamp - origin > self.cfg.dead_click_window_ms:
                return False
            if later.is_mutation():
                return True
        return False

    def _on_touch_end(self, event: CanonicalEvent, name: str, draft: _Draft) -> None:
        start = self.touch_start
        if start is None:
            return
        data = event.payload
        cfg = self.cfg
        dx = (data.get("x") or 0) - start.x
        dy = (data.get("y") or 0) - start.y
        distance = math.hypot(dx, dy)
        duration = event.timestamp - start.timestamp

        if distance < cfg.tap_max_distance_px and duration < cfg.tap_max_duration_ms:
            draft.set("Tapped", name)
        elif distance > cfg.swipe_min_distance_px:
            self.counters.swipes += 1
            if abs(dx) > abs(dy):
                direction = "right" if dx > 0 else "left"
            else:
                direction = "down" if dy > 0 else "up"
            draft.set("Swiped", direction)
            draft.flag("[SWIPE]")
        elif duration > cfg.long_press_min_ms:
            draft.set("Long pressed", name)
            draft.flag("[LONG PRESS]")
        self.touch_start = None

    def _on_mouse_move(self, event: CanonicalEvent, draft: _Draft) -> None:
        positions = event.payload.get("positions") or []
        if not positions or not isinstance(positions[-1], dict):
            return
        node_id = positions[-1].get("id")
        if not node_id:
            return

        info = self.resolver.get(node_id)
        if info is None:
            return
        if info.tag not in HOVER_TAGS and info.role != "button":
            return

        previous = self.hover_state.get(node_id)
        if previous is not None and event.timestamp - previous <= self.cfg.hover_log_interval_ms:
            return

        name = self.resolver.name_for(node_id)
        self.counters.total_hovers += 1
        if previous is not None:
            duration = event.timestamp - previous
            self.counters.hover_time += duration
            if duration > self.cfg.hesitation_ms:
                self.counters.hesitations += 1
                draft.set("Hesitated over", name)
                draft.flag("[HESITATION]")
            else:
                draft.set("Hovered over", name)
        else:
            draft.set("Hovered over", name)
        self.hover_state[node_id] = event.timestamp

    # -- media / console ----------------------------------------------- #

    def _on_media(self, data: Dict[str, Any], draft: _Draft) -> None:
        c = self.counters
        c.total_media_interactions += 1
        name = self.resolver.name_for(data.get("id"), placeholder="media")
        kind = data.get("type")

        if kind == MediaInteraction.PLAY:
            c.video_plays += 1
            draft.set("Played", name)
        elif kind == MediaInteraction.PAUSE:
            c.video_pauses += 1
            draft.set("Paused", name)
        elif kind == MediaInteraction.SEEKED:
            draft.set("Seeked", f"{name} to {_round(data.get('currentTime') or 0)}s")
            draft.flag("[VIDEO SEEK]")
        elif kind == MediaInteraction.VOLUME_CHANGE:
            if data.get("muted"):
                draft.set("Muted", name)
            else:
                volume = _round((data.get("volume") or 0) * 100)
                draft.set("Changed volume", f"on {name} to {volume}%")
        elif kind == MediaInteraction.RATE_CHANGE:
            rate = _num(data.get("playbackRate") or 1)
            draft.set("Changed playback speed", f"on {name} to {rate}x")
        else:
            draft.set("Interacted with", name)

    def _on_console(self, data: Dict[str, Any], draft: _Draft) -> None:
        level = data.get("level")
        payload = data.get("payload")
        message = " ".join(str(p) for p in payload) if isinstance(payload, list) else ""
        limit = self.cfg.detail_max_chars

        if level == "error":
            trace = data.get("trace")
            if not message and isinstance(trace, list) and trace:
                message = str(trace[0])
            self.counters.console_errors += 1
            draft.set("Console Error", redact((message or "Unknown error")[:limit]))
            draft.flag("[CONSOLE ERROR]")
        elif level == "warn":
            draft.set("Console Warning", redact(message[:limit]))
            draft.flag("[CONSOLE WARNING]")

    # -- input --------------------------------------------------------- #

    def _on_input(self, event: CanonicalEvent, draft: _Draft) -> None:
        data = event.payload
        self.counters.total_inputs += 1
        node_id = data.get("id")
        info = self.resolver.get(node_id)
        name = self.resolver.name_for(node_id, placeholder="input")
        text = redact(str(data.get("text") or ""))

        change = self.inputs.record(
            node_id,
            text,
            event.timestamp,
            field_name=name,
            field_type=(info.type if info else None) or "text",
            password_field=info is not None and info.type == "password",
        )

        if change.changed and change.should_log:
            previous = change.previous
            if text:
                if change.is_password:
                    draft.set("Typed", f"in {name} ({len(text)} characters, masked)")
                else:
                    draft.set("Typed", f'"{_clip(text, 50)}" in {name}')
                if previous is not None and len(text) < len(previous.last_text):
                    draft.flag("[CORRECTION]")
            elif previous is not None and previous.last_text:
                draft.set("Cleared", name)
                self.counters.cleared_inputs += 1

        checked = data.get("isChecked")
        if checked is not None:
            draft.set("Checked" if checked else "Unchecked", name)

    # -- scroll / viewport ---------------------------------------------- #

    def _on_scroll(self, event: CanonicalEvent, draft: _Draft) -> None:
        data = event.payload
        cfg = self.cfg
        c = self.counters
        ts = event.timestamp
        y = _as_number(data.get("y")) or 0.0
        x = _as_number(data.get("x")) or 0.0

        c.total_scrolls += 1

        page_height = self.viewport_height * cfg.page_height_viewports
        if page_height > 0:
            depth = min(100, _round(y / page_height * 100))
        else:
            depth = 100 if y > 0 else 0
        c.scroll_depth_max = max(c.scroll_depth_max, depth)

        if self.last_scroll_time > 0:
            elapsed = ts - self.last_scroll_time
            moved = abs(y - self.last_scroll_y)
            rapid = moved / elapsed > cfg.rapid_scroll_px_per_ms if elapsed > 0 else moved > 0
            if rapid:
                c.rapid_scrolls += 1
                if ts - self.last_scroll_log > cfg.scroll_log_interval_ms:
                    draft.flag("[RAPID SCROLL]")

        if y != self.last_scroll_y and self.last_scroll_time > 0:
            direction = 1 if y > self.last_scroll_y else -1
            if self.last_scroll_direction and direction != self.last_scroll_direction:
                c.scroll_reversals += 1
            self.last_scroll_direction = direction

        self.last_scroll_y = y
        self.last_scroll_time = ts

        if ts - self.last_scroll_log > cfg.scroll_log_interval_ms and y > 100:
            if y > self.viewport_height * 2:
                details = "deep into page"
            elif y > self.viewport_height:
                details = "down the page"
            else:
                details = "near top"
            if x > 100:
                details += f" (horizontal: {_num(x)}px)"
                draft.flag("[HORIZONTAL SCROLL]")
            draft.set("Scrolled", details)
            self.last_scroll_log = ts

    def _on_resize(self, data: Dict[str, Any], draft: _Draft) -> None:
        width = data.get("width") or 0
        height = data.get("height") or 0
        was_portrait = self.viewport_height > self.viewport_width
        is_portrait = height > width
        self.viewport_width, self.viewport_height = width, height
        self.counters.resize_events += 1

        if was_portrait != is_portrait:
            self.counters.orientation_changes += 1
            draft.set("Rotated device", "to portrait" if is_portrait else "to landscape")
            draft.flag("[ORIENTATION CHANGE]")
        else:
            draft.set("Resized window", f"to {_num(width)}x{_num(height)}")

    # ------------------------------------------------------------------ #
    # Custom and plugin events
    # ------------------------------------------------------------------ #

    def _on_custom(self, event: CanonicalEvent, draft: _Draft) -> None:
        data = event.payload
        payload = data.get("payload")
        tag = data.get("tag")
        if not isinstance(payload, dict):
            return

        c = self.counters
        kind = payload.get("type")
        limit = self.cfg.detail_max_chars

        if payload.get("level") == "error" or kind == "error":
            c.console_errors += 1
            message = payload.get("message") or payload.get("content") or "Unknown error"
            draft.set("Console Error", redact(str(message)[:limit]))
            draft.flag("[CONSOLE ERROR]")

        if payload.get("level") == "warn" or kind == "warning":
            message = payload.get("message") or payload.get("content") or ""
            draft.set("Console Warning", redact(str(message)[:limit]))
            draft.flag("[CONSOLE WARNING]")

        if kind == "navigation" or payload.get("href"):
            target = payload.get("href") or payload.get("url") or "new page"
            draft.set("Navigated", f"to {target}")

        if kind == "selection" or payload.get("selection"):
            c.total_selections += 1
            selected = str(payload.get("selection") or payload.get("text") or "")
            if selected:
                draft.set("Selected text", f'"{redact(_clip(selected, 50))}"')

        if kind == "copy":
            c.copy_events += 1
            draft.set("Copied", "text to clipboard")
        if kind == "paste":
            c.paste_events += 1
            draft.set("Pasted", "from clipboard")
        if kind == "cut":
            draft.set("Cut", "text to clipboard")

        if kind in ("submit", "form_submit"):
            c.form_submissions += 1
            draft.set("Submitted", "form")
            draft.flag("[FORM SUBMIT]")

        if kind == "visibilitychange":
            c.tab_switches += 1
            if payload.get("hidden"):
                draft.set("Switched away", "from tab")
                draft.flag("[TAB SWITCH]")
            else:
                draft.set("Returned", "to tab")

        if kind == "pagehide":
            draft.set("Left page")
        if kind == "pageshow":
            draft.set("Returned to page")
        if kind == "beforeunload":
            draft.set("Attempted to leave", "page")
            draft.flag("[EXIT INTENT]")
        if kind in ("print", "beforeprint"):
            draft.set("Printed", "page")
        if kind == "fullscreenchange":
            draft.set("Entered fullscreen" if payload.get("isFullscreen") else "Exited fullscreen")
        if kind == "online":
            draft.set("Came online")
        if kind == "offline":
            draft.set("Went offline")
            draft.flag("[OFFLINE]")
        if kind == "storage":
            draft.set("Storage changed", str(payload.get("key") or ""))

        if kind in ("keydown", "keypress"):
            key = payload.get("key") or payload.get("code") or ""
            if key and (payload.get("ctrlKey") or payload.get("metaKey") or payload.get("altKey")):
                modifiers = [
                    label
                    for label, flag in (
                        ("Ctrl", "ctrlKey"),
                        ("Cmd", "metaKey"),
                        ("Alt", "altKey"),
                        ("Shift", "shiftKey"),
                    )
                    if payload.get(flag)
                ]
                draft.set("Pressed", "+".join(modifiers + [str(key)]))
                draft.flag("[KEYBOARD SHORTCUT]")

        if tag == "$pageview":
            draft.set("Viewed page", str(payload.get("$current_url") or ""))
        if tag == "$pageleave":
            draft.set("Left page")
        if tag == "$autocapture":
            element_text = str(payload.get("$el_text") or "")
            if element_text:
                draft.set("Interacted with", f'"{redact(element_text[:50])}"')

    def _on_plugin(self, event: CanonicalEvent, draft: _Draft) -> None:
        payload = event.payload.get("payload")
        if not isinstance(payload, dict):
            return
        cfg = self.cfg

        requests = payload.get("requests")
        if isinstance(requests, list):
            statuses = [
                (_as_number(r.get("responseStatus")), _as_number(r.get("duration")))
                for r in requests
                if isinstance(r, dict)
            ]
            failed = [s for s, _ in statuses if s is not None and (s >= 400 or s == 0)]
            if failed:
                self.counters.network_errors += len(failed)
                codes = ", ".join(_num(code) for code in dict.fromkeys(failed))
                draft.set("Network error", f"{len(failed)} failed request(s) - {codes}")
                draft.flag("[NETWORK ERROR]")

            slow = [
                s
                for s, duration in statuses
                if s is not None and s < 400 and duration is not None and duration > cfg.slow_request_ms
            ]
            if slow:
                draft.set("Slow network", f"{len(slow)} slow request(s)")
                draft.flag("[SLOW NETWORK]")

        if payload.get("type") == "performance" or payload.get("performanceEntries"):
            lcp = _as_number(payload.get("largestContentfulPaint") or payload.get("lcp"))
            if lcp and lcp > cfg.slow_lcp_ms:
                draft.set("Slow page load", f"LCP: {_round(lcp)}ms")
                draft.flag("[SLOW LOAD]")
