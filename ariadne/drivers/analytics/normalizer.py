"""
Analytics export normalizer for Ariadne.

Flat analytics exports come in vendor-specific shapes:

    Mixpanel (one JSON object per line):
        {"event": "$mp_web_page_view",
         "properties": {"time": 1705312200, "distinct_id": "u1",
                        "$current_url": "https://...", ...}}

    Amplitude (one JSON object per line):
        {"event_type": "[Amplitude] Page Viewed",
         "event_time": "2024-01-15 10:30:00.000000",
         "event_properties": {...}, "user_id": "u1", "device_id": "d1",
         "session_id": 1705312200000, ...}

This module converts both into AnalyticsEvent records with epoch-ms
timestamps, and groups them into sessions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


LOG = logging.getLogger(__name__)

MIXPANEL_SESSION_BUCKET_S = 1800

# Mixpanel "time" above this is already in milliseconds.
_EPOCH_MS_THRESHOLD = 100_000_000_000

PAGE_URL_KEYS = ("$current_url", "[Amplitude] Page URL", "page_url", "url", "$url")


class NormalizeError(ValueError):
    """Raised when a raw analytics record has no recognizable shape."""


@dataclass
class AnalyticsEvent:
    """
    One named analytics event.

    Attributes:
        name:
            Event name as sent by the vendor.
        timestamp_ms:
            Epoch milliseconds.
        distinct_id:
            User / device identifier ("" when unknown).
        properties:
            Free-form property bag (vendor-prefixed keys kept as-is).
        session_key:
            Grouping key, or None if the event belongs to no session.
        vendor:
            "mixpanel", "amplitude" or "generic".
    """

    name: str
    timestamp_ms: int
    distinct_id: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)
    session_key: Optional[str] = None
    vendor: str = "generic"

    @property
    def page_url(self) -> str:
        for key in PAGE_URL_KEYS:
            value = self.properties.get(key)
            if value:
                return str(value)
        return ""


@dataclass
class AnalyticsSession:
    """Events sharing one session key, in arrival order."""

    session_key: str
    distinct_id: str
    events: List[AnalyticsEvent] = field(default_factory=list)
    start_ms: int = 0
    end_ms: int = 0

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


# --------------------------------------------------------------------------- #
# Vendor shapes
# --------------------------------------------------------------------------- #


def parse_amplitude_time(value: str) -> int:
    """Parse Amplitude "YYYY-MM-DD HH:MM:SS[.ffffff]" (UTC) into epoch ms."""
    text = value.strip().replace("T", " ").rstrip("Z")
    for fmt in ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S"):
        try:
            parsed = datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        return int(parsed.timestamp() * 1000)
    raise NormalizeError(f"Unrecognized Amplitude event_time: {value!r}")


def normalize_mixpanel_event(raw: Dict[str, Any]) -> AnalyticsEvent:
    props = raw.get("properties")
    if not isinstance(props, dict):
        raise NormalizeError("Mixpanel event has no properties object")
    try:
        time_value = float(props.get("time") or 0)
    except (TypeError, ValueError) as exc:
        raise NormalizeError(f"Invalid Mixpanel time: {props.get('time')!r}") from exc
    if not time_value > 0:
        raise NormalizeError(f"Mixpanel event has no usable time: {props.get('time')!r}")

    if time_value >= _EPOCH_MS_THRESHOLD:
        timestamp_ms, time_s = int(time_value), time_value / 1000
    else:
        timestamp_ms, time_s = int(time_value * 1000), time_value

    distinct_id = str(props.get("distinct_id") or "")
    session_key = props.get("$session_id") or (
        f"{distinct_id}-{int(time_s // MIXPANEL_SESSION_BUCKET_S)}"
    )
    return AnalyticsEvent(
        name=str(raw.get("event") or ""),
        timestamp_ms=timestamp_ms,
        distinct_id=distinct_id,
        properties=dict(props),
        session_key=str(session_key),
        vendor="mixpanel",
    )


def normalize_amplitude_event(raw: Dict[str, Any]) -> AnalyticsEvent:
    event_time = raw.get("event_time")
    if not isinstance(event_time, str):
        raise NormalizeError("Amplitude event has no event_time")
    props = raw.get("event_properties")
    props = dict(props) if isinstance(props, dict) else {}

    user = raw.get("user_id") or raw.get("device_id") or ""
    session_id = raw.get("session_id")
    session_key = None
    if session_id and session_id != -1:
        session_key = f"{user}_{session_id}"

    return AnalyticsEvent(
        name=str(raw.get("event_type") or ""),
        timestamp_ms=parse_amplitude_time(event_time),
        distinct_id=str(user),
        properties=props,
        session_key=session_key,
        vendor="amplitude",
    )


def normalize_analytics_event(raw: Any) -> AnalyticsEvent:
    """
    Normalize one raw record, detecting the vendor from its keys.

    An AnalyticsEvent passes through unchanged.

    Raises:
        NormalizeError if the record matches no known shape.
    """
    if isinstance(raw, AnalyticsEvent):
        return raw
    if not isinstance(raw, dict):
        raise NormalizeError(f"Analytics record must be an object, got {type(raw).__name__}")
    if "event_type" in raw:
        return normalize_amplitude_event(raw)
    if "event" in raw and "properties" in raw:
        return normalize_mixpanel_event(raw)
    raise NormalizeError("Record is neither a Mixpanel nor an Amplitude event")


def normalize_analytics_events(
    records: Iterable[Any], *, errors: Optional[List[str]] = None
) -> List[AnalyticsEvent]:
    """
    Normalize many records, skipping (and optionally reporting) bad ones.
    """
    events: List[AnalyticsEvent] = []
    for index, raw in enumerate(records):
        try:
            events.append(normalize_analytics_event(raw))
        except NormalizeError as exc:
            LOG.debug("Skipping analytics record %d: %s", index, exc)
            if errors is not None:
                errors.append(f"{index}: {exc}")
    return events


# --------------------------------------------------------------------------- #
# Session grouping
# --------------------------------------------------------------------------- #


def group_sessions(events: Iterable[AnalyticsEvent]) -> List[AnalyticsSession]:
    """
    Group events by session_key, preserving first-seen session order.

    Events without a session key are dropped.
    """
    sessions: Dict[str, AnalyticsSession] = {}
    for event in events:
        if not event.session_key:
            continue
        session = sessions.get(event.session_key)
        if session is None:
            session = AnalyticsSession(
                session_key=event.session_key,
                distinct_id=event.distinct_id,
                start_ms=event.timestamp_ms,
                end_ms=event.timestamp_ms,
            )
            sessions[event.session_key] = session
        session.events.append(event)
        session.start_ms = min(session.start_ms, event.timestamp_ms)
        session.end_ms = max(session.end_ms, event.timestamp_ms)
    return list(sessions.values())
