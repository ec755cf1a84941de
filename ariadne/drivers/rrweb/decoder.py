"""
Recorder blob decoder for Ariadne.

This module turns the heterogeneous items delivered by a DOM-recorder
blob API into an ordered list of CanonicalEvent instances.

A raw item may be:

    - a JSON string (one NDJSON line that was not parsed yet),
    - a `[windowId, payload]` pair,
    - an object that is already an event (has a "type" field),
    - an object wrapping events in a "data" field (with "window_id" or
      "windowId").

Each shape is modelled as an explicit record variant with its own
`resolve()`; `classify_raw_record()` picks the variant. The payload of a
record is a single event or a list of events.

Events may be compressed. An event with a "cv" marker and a string
"data" field is decoded as base64 -> gzip -> JSON, then as Latin-1 bytes
-> gzip -> JSON; if neither works the event is kept unchanged. String
leaves nested deeper in a payload are decompressed opportunistically
when they start with the gzip magic bytes.

Decoding never raises for bad input: an undecodable item is skipped and
recorded in a DecodeReport, and its neighbours are unaffected.

Typical usage:

    from ariadne.drivers.rrweb.decoder import decode_snapshots, iter_ndjson_lines

    items = iter_ndjson_lines(blob_text)
    events = decode_snapshots(items)
"""

from __future__ import annotations

import base64
import gzip
import json
import logging
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from common.models.canonical_event import DEFAULT_WINDOW_ID, CanonicalEvent


LOG = logging.getLogger(__name__)

GZIP_MAGIC = "\x1f\x8b"

# Everything that base64 / latin-1 / gzip / json can raise on bad input.
DECOMPRESS_ERRORS = (ValueError, OSError, EOFError, zlib.error)


class DecodeError(Exception):
    """
    Raised internally when a single raw item cannot be decoded.

    It never escapes decode_snapshots(); it only feeds the DecodeReport.
    """


# --------------------------------------------------------------------------- #
# Decompression helpers
# --------------------------------------------------------------------------- #


def _gunzip_json(raw: bytes) -> Any:
    return json.loads(gzip.decompress(raw).decode("utf-8"))


def gunzip_base64_json(text: str) -> Any:
    """base64 text -> gzip -> JSON. Raises on any failure."""
    return _gunzip_json(base64.b64decode(text))


def gunzip_latin1_json(text: str) -> Any:
    """
    Treat each character of `text` as one byte, gunzip, parse JSON.

    This is how gzip output ends up when a transport decoded the bytes as
    Latin-1 ("binary") text. Raises on any failure.
    """
    return _gunzip_json(text.encode("latin-1"))


def try_decompress_string(text: str) -> Optional[Any]:
    """
    Decompress a string that looks like raw gzip output.

    Returns the parsed JSON value, or None when the string does not carry
    the gzip magic bytes or cannot be decoded.
    """
    if len(text) < 2 or not text.startswith(GZIP_MAGIC):
        return None
    try:
        return gunzip_latin1_json(text)
    except DECOMPRESS_ERRORS:
        pass
    try:
        return gunzip_base64_json(text)
    except DECOMPRESS_ERRORS:
        return None


def decompress_nested(value: Any) -> Any:
    """
    Return a copy of `value` with every gzip-looking string leaf replaced
    by its decompressed JSON value.
    """
    if isinstance(value, str):
        decompressed = try_decompress_string(value)
        return value if decompressed is None else decompressed
    if isinstance(value, list):
        return [decompress_nested(item) for item in value]
    if isinstance(value, dict):
        return {key: decompress_nested(item) for key, item in value.items()}
    return value


def decompress_event(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Decode one raw event into a recorder-shaped dict.

    Returns None if the event is not an object (after JSON-parsing string
    input) or has no "type".
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None

    if not isinstance(raw, dict):
        return None

    event: Dict[str, Any] = raw
    data = raw.get("data")

    if raw.get("cv") and isinstance(data, str):
        parsed: Any = None
        for decode in (gunzip_base64_json, gunzip_latin1_json):
            try:
                parsed = decode(data)
                break
            except DECOMPRESS_ERRORS:
                continue
        if parsed is not None:
            event = {
                "type": raw.get("type"),
                "timestamp": raw.get("timestamp"),
                "data": decompress_nested(parsed),
            }
        else:
            LOG.debug("Compressed event could not be decoded; keeping as-is")
    elif isinstance(data, dict):
        event = {**raw, "data": decompress_nested(data)}

    if event.get("type") is None:
        return None
    return event


# --------------------------------------------------------------------------- #
# Raw record variants
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class WindowTupleRecord:
    """A `[windowId, payload]` pair."""

    window_id: Any
    payload: Any

    def resolve(self) -> Tuple[Optional[str], Any]:
        window_id = str(self.window_id) if self.window_id else None
        return window_id, self.payload


@dataclass(frozen=True)
class EventObjectRecord:
    """An object that already is an event (has a "type" field)."""

    obj: Dict[str, Any]

    def resolve(self) -> Tuple[Optional[str], Any]:
        return self.obj.get("windowId") or None, self.obj


@dataclass(frozen=True)
class WrappedDataRecord:
    """An object carrying its event(s) in "data"."""

    obj: Dict[str, Any]

    def resolve(self) -> Tuple[Optional[str], Any]:
        window_id = self.obj.get("window_id") or self.obj.get("windowId") or None
        return window_id, self.obj["data"]


@dataclass(frozen=True)
class JsonTextRecord:
    """An unparsed JSON string; resolves through the variant it parses to."""

    text: str

    def resolve(self) -> Tuple[Optional[str], Any]:
        try:
            parsed = json.loads(self.text)
        except ValueError as exc:
            raise DecodeError(f"invalid JSON: {exc}") from exc
        inner = classify_raw_record(parsed)
        if inner is None or isinstance(inner, JsonTextRecord):
            raise DecodeError("JSON text does not hold a record")
        return inner.resolve()


RawRecord = Union[JsonTextRecord, WindowTupleRecord, EventObjectRecord, WrappedDataRecord]


def classify_raw_record(item: Any) -> Optional[RawRecord]:
    """Return the record variant for `item`, or None if it has no known shape."""
    if isinstance(item, str):
        return JsonTextRecord(item)
    if isinstance(item, (list, tuple)):
        if len(item) < 2:
            return None
        return WindowTupleRecord(item[0], item[1])
    if isinstance(item, dict):
        if item.get("type") is not None:
            return EventObjectRecord(item)
        if item.get("data"):
            return WrappedDataRecord(item)
    return None


# --------------------------------------------------------------------------- #
# Batch decoding
# --------------------------------------------------------------------------- #


@dataclass
class DecodeReport:
    """
    Counts for one decode_snapshots() call.

    Attributes:
        items:
            Number of raw items seen.
        decoded:
            Number of canonical events produced.
        skipped:
            Items or events dropped (empty, unknown shape, no type).
        errors:
            Short "index: reason" strings for items that failed to decode.
    """

    items: int = 0
    decoded: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "decoded": self.decoded,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


def decode_snapshots(
    items: Iterable[Any],
    *,
    report: Optional[DecodeReport] = None,
) -> List[CanonicalEvent]:
    """
    Decode raw recorder items into CanonicalEvents, in arrival order.

    The window id of each event is the one declared by its record, or the
    last declared one, or DEFAULT_WINDOW_ID if none was declared yet.

    Args:
        items:
            Raw items as delivered by the blob API.
        report:
            Optional DecodeReport updated in place.
    """
    report = report if report is not None else DecodeReport()
    events: List[CanonicalEvent] = []
    last_window_id: Optional[str] = None

    for index, item in enumerate(items):
        report.items += 1
        if not item:
            report.skipped += 1
            continue

        try:
            record = classify_raw_record(item)
            if record is None:
                report.skipped += 1
                continue

            window_id, payload = record.resolve()
            if not payload:
                report.skipped += 1
                continue

            if window_id:
                last_window_id = window_id
            else:
                window_id = last_window_id or DEFAULT_WINDOW_ID

            raw_events = payload if isinstance(payload, list) else [payload]
            for raw in raw_events:
                decoded = decompress_event(raw)
                if decoded is None:
                    report.skipped += 1
                    continue
                try:
                    event = CanonicalEvent.from_dict(decoded, window_id=window_id)
                except (KeyError, TypeError, ValueError) as exc:
                    report.errors.append(f"{index}: {exc}")
                    continue
                events.append(event)
                report.decoded += 1
        except Exception as exc:  # noqa: BLE001
            report.errors.append(f"{index}: {exc}")
            LOG.debug("Skipping undecodable item %d: %s", index, exc)

    if report.errors:
        LOG.info(
            "Decoded %d events from %d items (%d skipped, %d errors)",
            report.decoded,
            report.items,
            report.skipped,
            len(report.errors),
        )
    return events


def iter_ndjson_lines(text: str) -> List[Any]:
    """
    Split newline-delimited JSON blob text into parsed items.

    Blank lines and lines that are not valid JSON are dropped.
    """
    items: List[Any] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            items.append(json.loads(line))
        except ValueError:
            LOG.debug("Dropping unparseable NDJSON line")
    return items
