"""
Exporter for Ariadne -> downstream consumers.

This module takes a SessionBundle and turns it into the plain-text views
that collaborators (prompt builders, reviewers, report generators) read:

- render_session_log():     one line per semantic log entry
- render_session_context(): page info, metric blocks and detected signals
- render_input_diffs():     per-field input history
- build_prompt_data():      all of the above plus metadata, as a dict

It does NOT perform any I/O and does not call any model. Callers decide
where the text goes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from common.models.session_bundle import SemanticLogEntry, SessionBundle


# (block title, [(label, summary key, suffix)])
METRIC_BLOCKS: List[Tuple[str, List[Tuple[str, str, str]]]] = [
    (
        "CLICK METRICS",
        [
            ("Total Clicks", "totalClicks", ""),
            ("Rage Clicks", "rageClicks", ""),
            ("Dead/Unresponsive Clicks", "deadClicks", ""),
            ("Double Clicks", "doubleClicks", ""),
            ("Right Clicks", "rightClicks", ""),
        ],
    ),
    (
        "INPUT METRICS",
        [
            ("Total Input Events", "totalInputs", ""),
            ("Abandoned Inputs", "abandonedInputs", ""),
            ("Cleared Inputs", "clearedInputs", ""),
        ],
    ),
    (
        "SCROLL METRICS",
        [
            ("Total Scrolls", "totalScrolls", ""),
            ("Max Scroll Depth", "scrollDepthMax", "%"),
            ("Rapid Scrolls", "rapidScrolls", ""),
            ("Scroll Reversals", "scrollReversals", ""),
        ],
    ),
    (
        "ATTENTION METRICS",
        [
            ("Hover Events", "totalHovers", ""),
            ("Hesitations", "hesitations", ""),
            ("Idle Time", "idleTime", "s"),
            ("Tab Switches", "tabSwitches", ""),
        ],
    ),
    (
        "MOBILE/TOUCH METRICS",
        [
            ("Touch Events", "totalTouches", ""),
            ("Swipes", "swipes", ""),
            ("Pinch Zooms", "pinchZooms", ""),
            ("Orientation Changes", "orientationChanges", ""),
        ],
    ),
    (
        "MEDIA METRICS",
        [
            ("Media Interactions", "totalMediaInteractions", ""),
            ("Video Plays", "videoPlays", ""),
            ("Video Pauses", "videoPauses", ""),
        ],
    ),
    (
        "CLIPBOARD METRICS",
        [
            ("Text Selections", "totalSelections", ""),
            ("Copy Events", "copyEvents", ""),
            ("Paste Events", "pasteEvents", ""),
        ],
    ),
    (
        "ERROR METRICS",
        [
            ("Console Errors", "consoleErrors", ""),
            ("Network Errors", "networkErrors", ""),
        ],
    ),
    (
        "CONVERSION METRICS",
        [
            ("Form Submissions", "formSubmissions", ""),
            ("Resize Events", "resizeEvents", ""),
        ],
    ),
]

SIGNAL_DESCRIPTIONS = {
    "isExploring": "User appears to be EXPLORING (lots of scrolling, few clicks)",
    "isFrustrated": "User appears FRUSTRATED (rage clicks, dead clicks or errors)",
    "isEngaged": "User appears ENGAGED (clicks, inputs and a long enough visit)",
    "isConfused": "User appears CONFUSED (hesitations or back-and-forth behavior)",
    "isMobile": "User is on a MOBILE device (touch events detected)",
    "completedGoal": "User COMPLETED GOAL (form submission detected)",
}


@dataclass
class ExporterConfig:
    """
    Options for build_prompt_data().

    Attributes:
        source:
            Free-form label of where the events came from ("rrweb",
            "mixpanel", ...).
        metadata:
            Extra key/values copied into the prompt data.
    """

    source: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def format_log_entry(entry: SemanticLogEntry) -> str:
    flags = f" {' '.join(entry.flags)}" if entry.flags else ""
    return f"{entry.timestamp} {entry.action}: {entry.details}{flags}"


def render_session_log(bundle: SessionBundle) -> str:
    """One line per entry: "[MM:SS] Action: details [FLAG] [FLAG]"."""
    return "\n".join(format_log_entry(entry) for entry in bundle.logs)


def render_session_context(bundle: SessionBundle) -> str:
    counters = bundle.summary.to_dict()
    lines: List[str] = [f"Page: {bundle.page_url or 'Unknown'}"]
    if bundle.page_title:
        lines.append(f'Title: "{bundle.page_title}"')
    lines += [
        f"Duration: {bundle.total_duration}",
        f"Total Events: {bundle.event_count}",
        f"Viewport: {bundle.viewport_width}x{bundle.viewport_height}",
    ]

    for title, metrics in METRIC_BLOCKS:
        lines += ["", f"=== {title} ==="]
        lines += [f"- {label}: {counters[key]}{suffix}" for label, key, suffix in metrics]

    lines += ["", "=== BEHAVIORAL SIGNALS (Auto-detected) ==="]
    active = bundle.behavioral_signals.active()
    if active:
        lines += [f"- {SIGNAL_DESCRIPTIONS[name]}" for name in active]
    else:
        lines.append("- No strong behavioral signals detected")
    return "\n".join(lines)


def render_input_diffs(bundle: SessionBundle) -> str:
    """
    Per-field history, e.g.:

        "Email" email field (email): 3 changes, 1 corrections, 12.0s spent
          [00:03] typed: "" -> "jo"
    """
    blocks: List[str] = []
    for summary in bundle.raw_input_diffs:
        notes = []
        if summary.was_abandoned:
            notes.append("abandoned")
        if summary.was_cleared:
            notes.append("cleared")
        header = (
            f"{summary.field_name} ({summary.field_type}): "
            f"{summary.total_changes} changes, {summary.total_corrections} corrections, "
            f"{summary.time_spent_ms / 1000:.1f}s spent"
        )
        if notes:
            header += f" [{', '.join(notes)}]"
        lines = [header]
        for diff in summary.diffs:
            lines.append(
                f'  {diff.timestamp} {diff.change_type}: "{diff.previous_value}" -> "{diff.new_value}"'
            )
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def build_prompt_data(
    bundle: SessionBundle,
    session_id: str,
    *,
    config: Optional[ExporterConfig] = None,
) -> Dict[str, Any]:
    """
    Pack the rendered views of a bundle with metadata.

    Returns:
        {
          "sessionId": ...,
          "generatedAt": ISO-8601 UTC,
          "source": ...,
          "sessionLog": str,
          "sessionContext": str,
          "inputDiffs": str,
          "summary": {...camelCase counters...},
          "behavioralSignals": {...},
          "metadata": {...}
        }
    """
    cfg = config or ExporterConfig()
    return {
        "sessionId": session_id,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "source": cfg.source,
        "sessionLog": render_session_log(bundle),
        "sessionContext": render_session_context(bundle),
        "inputDiffs": render_input_diffs(bundle),
        "summary": bundle.summary.to_dict(),
        "behavioralSignals": bundle.behavioral_signals.to_dict(),
        "metadata": dict(cfg.metadata),
    }
