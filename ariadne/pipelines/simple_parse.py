"""
Simple parse pipeline for Ariadne.

This module wires together:

- A driver (rrweb decoder, or analytics normalizer + synthesizer).
- The EventClassifier.
- Optionally, the exporter's prompt data.

It parses a single session and returns a SessionBundle that can be
POSTed to a collaborator endpoint, or written to disk as JSON.

Typical usage:

    from ariadne.pipelines.simple_parse import SimpleParseConfig, parse_session

    result = parse_session("rrweb", items, config=SimpleParseConfig(session_id="s-1"))
    print(result.to_json())
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from common.models.canonical_event import CanonicalEvent
from common.models.session_bundle import SessionBundle
from ..core.classifier import ClassifierConfig, EventClassifier
from ..core.exporter import ExporterConfig, build_prompt_data
from ..drivers.analytics.normalizer import normalize_analytics_events
from ..drivers.analytics.synthesizer import EventSynthesizer, SynthesizerConfig
from ..drivers.rrweb.decoder import DecodeReport, decode_snapshots


LOG = logging.getLogger(__name__)

RRWEB_SOURCES = ("rrweb", "recording")
ANALYTICS_SOURCES = ("analytics", "mixpanel", "amplitude")


class ParseError(Exception):
    """
    Raised when parse input is structurally unusable (e.g. not a list).

    Bad individual items never raise; they are skipped and reported.
    """


@dataclass
class SimpleParseConfig:
    """
    Configuration for a single parse.

    Attributes:
        session_id:
            Optional identifier, carried into the result and prompt data.
        classifier:
            Thresholds for the EventClassifier.
        synthesizer:
            Options for analytics sessions.
        include_prompt_data:
            If True, the result carries build_prompt_data() output.
        metadata:
            Free-form metadata copied into the prompt data.
    """

    session_id: Optional[str] = None
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    synthesizer: SynthesizerConfig = field(default_factory=SynthesizerConfig)
    include_prompt_data: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SimpleParseResult:
    """
    Result of a single parse.

    Attributes:
        source:
            "rrweb" or "analytics".
        bundle:
            The SessionBundle.
        events:
            The CanonicalEvents the classifier consumed.
        decode_report:
            Decode counts (rrweb sources only).
        skipped_records:
            "index: reason" strings for analytics records that could not
            be normalized.
        prompt_data:
            build_prompt_data() output, when requested.
    """

    source: str
    bundle: SessionBundle
    events: List[CanonicalEvent] = field(default_factory=list)
    session_id: Optional[str] = None
    decode_report: Optional[DecodeReport] = None
    skipped_records: List[str] = field(default_factory=list)
    prompt_data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "sessionId": self.session_id,
            "source": self.source,
            "bundle": self.bundle.to_dict(),
        }
        if self.decode_report is not None:
            data["decodeReport"] = self.decode_report.to_dict()
        if self.skipped_records:
            data["skippedRecords"] = list(self.skipped_records)
        if self.prompt_data is not None:
            data["promptData"] = self.prompt_data
        return data

    def to_json(self, *, indent: Optional[int] = 2) -> str:
        """
        Serialize the bundle to a JSON string.

        Args:
            indent: Indent level for pretty-printing, or None for compact.
        """
        return self.bundle.to_json(indent=indent)


def _require_list(items: Any, what: str) -> List[Any]:
    if not isinstance(items, list):
        raise ParseError(f"{what} must be a list, got {type(items).__name__}")
    return items


def _finish(
    source: str,
    events: List[CanonicalEvent],
    config: SimpleParseConfig,
    **extra: Any,
) -> SimpleParseResult:
    bundle = EventClassifier(config.classifier).classify(events)
    prompt_data = None
    if config.include_prompt_data:
        prompt_data = build_prompt_data(
            bundle,
            config.session_id or "",
            config=ExporterConfig(source=source, metadata=dict(config.metadata)),
        )

    LOG.info(
        "Parsed session %s (%s): %d events, %d log entries, duration %s",
        config.session_id or "-",
        source,
        bundle.event_count,
        len(bundle.logs),
        bundle.total_duration,
    )
    return SimpleParseResult(
        source=source,
        bundle=bundle,
        events=events,
        session_id=config.session_id,
        prompt_data=prompt_data,
        **extra,
    )


def parse_raw_snapshots(
    items: Any,
    *,
    config: Optional[SimpleParseConfig] = None,
) -> SimpleParseResult:
    """
    Decode raw recorder items and classify them.

    Raises:
        ParseError if `items` is not a list.
    """
    config = config or SimpleParseConfig()
    report = DecodeReport()
    events = decode_snapshots(_require_list(items, "snapshots"), report=report)
    return _finish("rrweb", events, config, decode_report=report)


def parse_analytics_events(
    records: Any,
    *,
    config: Optional[SimpleParseConfig] = None,
) -> SimpleParseResult:
    """
    Normalize flat analytics records, synthesize canonical events and
    classify them as one session.

    Raises:
        ParseError if `records` is not a list.
    """
    config = config or SimpleParseConfig()
    skipped: List[str] = []
    analytics = normalize_analytics_events(_require_list(records, "events"), errors=skipped)
    events = EventSynthesizer(config.synthesizer).synthesize(analytics)
    return _finish("analytics", events, config, skipped_records=skipped)


def parse_session(
    source: str,
    items: Any,
    *,
    config: Optional[SimpleParseConfig] = None,
) -> SimpleParseResult:
    """
    Parse one session from any supported source.

    Args:
        source:
            "rrweb" (or "recording") for recorder blobs; "analytics",
            "mixpanel" or "amplitude" for flat analytics exports.
        items:
            The raw list for that source.

    Raises:
        ParseError for an unknown source or non-list input.
    """
    key = (source or "").lower()
    if key in RRWEB_SOURCES:
        return parse_raw_snapshots(items, config=config)
    if key in ANALYTICS_SOURCES:
        return parse_analytics_events(items, config=config)
    raise ParseError(f"Unknown source: {source!r}")


def dump_result(result: SimpleParseResult, *, indent: Optional[int] = 2) -> str:
    """Serialize the full result envelope (not just the bundle)."""
    return json.dumps(result.to_dict(), ensure_ascii=False, indent=indent)
