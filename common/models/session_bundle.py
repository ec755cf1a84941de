"""
Session output model for Ariadne.

This module defines everything a single parse produces:

- SemanticLogEntry: one human-readable line of the interaction log.
- RunningCounters: the per-parse counters updated by the classifier.
- BehavioralSignals: the session-level booleans derived from counters.
- InputDiff / InputFieldSummary: per-field value history.
- SessionBundle: the output contract handed to collaborators.

Python attributes are snake_case; `to_dict()` emits the camelCase keys
that downstream consumers (prompt builders, persistence, UI tables)
expect.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def format_duration(ms: float) -> str:
    """Format a millisecond offset as "MM:SS" (minutes may exceed 59)."""
    seconds = int(max(ms, 0) // 1000)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_time(ms: float) -> str:
    """Format a millisecond offset as a log timestamp "[MM:SS]"."""
    return f"[{format_duration(ms)}]"


# --------------------------------------------------------------------------- #
# Log entries
# --------------------------------------------------------------------------- #


@dataclass
class SemanticLogEntry:
    """
    A single entry of the semantic interaction log.

    Attributes:
        timestamp:
            Offset from session start, formatted "[MM:SS]".
        raw_timestamp:
            Epoch milliseconds of the source event.
        action:
            Short verb phrase, e.g. "Clicked button".
        details:
            Object of the action, e.g. '"Buy" button'.
        flags:
            Friction flags such as "[RAGE CLICK]". Order of first
            occurrence is kept; duplicates are removed on construction.
    """

    timestamp: str
    raw_timestamp: int
    action: str
    details: str = ""
    flags: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.flags = list(dict.fromkeys(self.flags))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "rawTimestamp": self.raw_timestamp,
            "action": self.action,
            "details": self.details,
            "flags": list(self.flags),
        }


# --------------------------------------------------------------------------- #
# Counters and signals
# --------------------------------------------------------------------------- #


@dataclass
class RunningCounters:
    """
    Mutable per-parse counters.

    `idle_time` accumulates milliseconds while parsing; `to_dict()`
    reports it rounded to whole seconds.
    """

    # Clicks
    total_clicks: int = 0
    rage_clicks: int = 0
    dead_clicks: int = 0
    double_clicks: int = 0
    right_clicks: int = 0
    # Inputs
    total_inputs: int = 0
    abandoned_inputs: int = 0
    cleared_inputs: int = 0
    # Scrolling
    total_scrolls: int = 0
    scroll_depth_max: int = 0
    rapid_scrolls: int = 0
    scroll_reversals: int = 0
    # Hover / attention
    total_hovers: int = 0
    hesitations: int = 0
    hover_time: int = 0
    # Touch
    total_touches: int = 0
    swipes: int = 0
    pinch_zooms: int = 0
    # Media
    total_media_interactions: int = 0
    video_plays: int = 0
    video_pauses: int = 0
    # Selection / clipboard
    total_selections: int = 0
    copy_events: int = 0
    paste_events: int = 0
    # Errors
    console_errors: int = 0
    network_errors: int = 0
    # Engagement
    tab_switches: int = 0
    idle_time: int = 0
    form_submissions: int = 0
    # Viewport
    resize_events: int = 0
    orientation_changes: int = 0

    def to_dict(self) -> Dict[str, int]:
        data = {_camel(f.name): getattr(self, f.name) for f in fields(self)}
        data["idleTime"] = int(self.idle_time / 1000 + 0.5)
        return data


@dataclass(frozen=True)
class BehavioralSignals:
    """Session-level booleans derived from RunningCounters."""

    is_exploring: bool = False
    is_frustrated: bool = False
    is_engaged: bool = False
    is_confused: bool = False
    is_mobile: bool = False
    completed_goal: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}

    def active(self) -> List[str]:
        """Names (camelCase) of the signals that are set."""
        return [name for name, value in self.to_dict().items() if value]


# --------------------------------------------------------------------------- #
# Input field history
# --------------------------------------------------------------------------- #


@dataclass
class InputDiff:
    """One observed value change of an input field."""

    field_name: str
    field_type: str
    timestamp: str
    raw_timestamp: int
    previous_value: str
    new_value: str
    change_type: str  # typed | deleted | corrected | cleared | pasted
    characters_added: int = 0
    characters_removed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}


@dataclass
class InputFieldSummary:
    """
    Summary of everything that happened to one input field.

    Attributes:
        field_name / field_type:
            Semantic name and `type` attribute of the field.
        focus_time / blur_time:
            "[MM:SS]" offsets; blur_time is None if the field was never
            blurred.
        time_spent_ms:
            Blur (or session end) minus focus.
        final_value:
            Last observed value, masked for password fields.
        total_changes / total_corrections:
            Number of diffs, and how many were classified "corrected".
        was_abandoned / was_cleared:
            Field left without content / emptied after having content.
        diffs:
            Ordered InputDiff list.
    """

    field_name: str
    field_type: str
    focus_time: str
    blur_time: Optional[str]
    time_spent_ms: int
    final_value: str
    total_changes: int
    total_corrections: int
    was_abandoned: bool
    was_cleared: bool
    diffs: List[InputDiff] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {_camel(f.name): getattr(self, f.name) for f in fields(self)}
        data["diffs"] = [d.to_dict() for d in self.diffs]
        return data


# --------------------------------------------------------------------------- #
# Bundle
# --------------------------------------------------------------------------- #


@dataclass
class SessionBundle:
    """
    Output of one parse. This is the only contract with collaborators.

    Attributes:
        logs:
            Semantic log entries, timestamp ordered.
        summary:
            Final RunningCounters.
        behavioral_signals:
            Derived BehavioralSignals.
        page_url / page_title:
            From the Meta event and the snapshot <title>.
        viewport_width / viewport_height:
            Last known viewport size.
        total_duration:
            "MM:SS" from first to last event ("00:00" when empty).
        event_count:
            Number of canonical events parsed.
        raw_input_diffs:
            Per-field input histories.
    """

    logs: List[SemanticLogEntry] = field(default_factory=list)
    summary: RunningCounters = field(default_factory=RunningCounters)
    behavioral_signals: BehavioralSignals = field(default_factory=BehavioralSignals)
    page_url: str = ""
    page_title: str = ""
    viewport_width: int = 0
    viewport_height: int = 0
    total_duration: str = "00:00"
    event_count: int = 0
    raw_input_diffs: List[InputFieldSummary] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "SessionBundle":
        """The defined zero result for an empty event list."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logs": [entry.to_dict() for entry in self.logs],
            "summary": self.summary.to_dict(),
            "behavioralSignals": self.behavioral_signals.to_dict(),
            "pageUrl": self.page_url,
            "pageTitle": self.page_title,
            "viewportSize": {
                "width": self.viewport_width,
                "height": self.viewport_height,
            },
            "totalDuration": self.total_duration,
            "eventCount": self.event_count,
            "rawInputDiffs": [s.to_dict() for s in self.raw_input_diffs],
        }

    def to_json(self, *, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)
