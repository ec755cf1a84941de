"""Tests for the analytics normalizer and synthesizer."""
import pytest

from ariadne.core.classifier import EventClassifier
from ariadne.drivers.analytics.normalizer import (
    AnalyticsEvent,
    NormalizeError,
    group_sessions,
    normalize_analytics_event,
    normalize_analytics_events,
    parse_amplitude_time,
)
from ariadne.drivers.analytics.synthesizer import (
    FEED_ID,
    FIRST_DYNAMIC_ID,
    STATIC_ID_LIMIT,
    EventSynthesizer,
    SynthesizerConfig,
    classify_event_name,
)
from common.models.canonical_event import EventType


def _node_ids(node):
    ids = [node["id"]]
    for child in node.get("childNodes", []):
        ids.extend(_node_ids(child))
    return ids


class TestNormalizer:
    """Vendor detection, timestamps and session keys."""

    def test_mixpanel_seconds(self, mixpanel_rows):
        event = normalize_analytics_event(mixpanel_rows[0])
        assert event.vendor == "mixpanel"
        assert event.timestamp_ms == 1_705_312_200_000
        assert event.distinct_id == "user-1"
        assert event.session_key == "user-1-947395"
        assert event.page_url == "https://shop.example.com/"

    def test_mixpanel_milliseconds_and_session_id(self):
        event = normalize_analytics_event(
            {"event": "x", "properties": {"time": 1_705_312_200_123, "$session_id": "s-1"}}
        )
        assert event.timestamp_ms == 1_705_312_200_123
        assert event.session_key == "s-1"

    def test_amplitude(self, amplitude_rows):
        event = normalize_analytics_event(amplitude_rows[1])
        assert event.vendor == "amplitude"
        assert event.name == "[Amplitude] Element Clicked"
        assert event.timestamp_ms == 1_705_312_201_000
        assert event.session_key == "amp-user_1705312200000"
        assert event.page_url == "https://app.example.com/"

    def test_amplitude_without_session(self, amplitude_rows):
        row = dict(amplitude_rows[0], session_id=-1)
        assert normalize_analytics_event(row).session_key is None

    def test_amplitude_time_formats(self):
        assert parse_amplitude_time("2024-01-15 09:50:00.250000") == 1_705_312_200_250
        assert parse_amplitude_time("2024-01-15 09:50:00") == 1_705_312_200_000
        with pytest.raises(NormalizeError):
            parse_amplitude_time("yesterday")

    def test_unknown_shapes(self):
        with pytest.raises(NormalizeError):
            normalize_analytics_event({"foo": "bar"})
        with pytest.raises(NormalizeError):
            normalize_analytics_event(["not", "a", "dict"])

    def test_passthrough(self):
        event = AnalyticsEvent(name="x", timestamp_ms=1)
        assert normalize_analytics_event(event) is event

    def test_bad_records_are_reported(self, mixpanel_rows):
        errors = []
        untimed = {"event": "$pageview", "properties": {"distinct_id": "u"}}
        negative = {"event": "$pageview", "properties": {"distinct_id": "u", "time": -5}}
        events = normalize_analytics_events(
            [mixpanel_rows[0], {"foo": 1}, 42, untimed, negative], errors=errors
        )
        assert len(events) == 1
        assert [e.split(":")[0] for e in errors] == ["1", "2", "3", "4"]
        assert "no usable time" in errors[2]


class TestGroupSessions:
    """Session grouping keeps first-seen order."""

    def test_grouping(self):
        events = [
            AnalyticsEvent(name="a", timestamp_ms=300, session_key="s2"),
            AnalyticsEvent(name="b", timestamp_ms=100, session_key="s1"),
            AnalyticsEvent(name="c", timestamp_ms=50, session_key="s2"),
            AnalyticsEvent(name="d", timestamp_ms=10),
        ]
        sessions = group_sessions(events)
        assert [s.session_key for s in sessions] == ["s2", "s1"]
        assert [e.name for e in sessions[0].events] == ["a", "c"]
        assert (sessions[0].start_ms, sessions[0].end_ms, sessions[0].duration_ms) == (50, 300, 250)


class TestEventNames:
    """Vocabulary mapping."""

    @pytest.mark.parametrize(
        "name, kind",
        [
            ("$mp_web_page_view", "pageview"),
            ("[Amplitude] Page Viewed", "pageview"),
            ("Button Click", "click"),
            ("$form_submit", "form_submit"),
            ("Search Input", "input"),
            ("$scroll", "scroll"),
            ("[Amplitude] Start Session", "session_start"),
            ("session_end", "session_end"),
            ("Checkout Error", "error"),
            ("Search Performed", "search"),
            ("Coupon Applied", "generic"),
        ],
    )
    def test_classify_event_name(self, name, kind):
        assert classify_event_name(name) == kind


class TestSynthesizer:
    """Synthesized canonical streams."""

    def test_empty(self):
        assert EventSynthesizer().synthesize([]) == []

    def test_stream_shape(self, mixpanel_rows):
        events = EventSynthesizer().synthesize(normalize_analytics_events(mixpanel_rows))
        meta, snapshot = events[0], events[1]
        assert meta.type == EventType.META
        assert meta.data == {"href": "https://shop.example.com/", "width": 1280, "height": 720}
        assert snapshot.type == EventType.FULL_SNAPSHOT
        assert snapshot.timestamp == meta.timestamp
        assert all(e.timestamp >= meta.timestamp for e in events)
        assert [e.timestamp for e in events] == sorted(e.timestamp for e in events)

    def test_node_id_ranges(self, mixpanel_rows):
        events = EventSynthesizer().synthesize(normalize_analytics_events(mixpanel_rows))
        static_ids = _node_ids(events[1].data["node"])
        assert max(static_ids) < STATIC_ID_LIMIT
        dynamic_ids = [
            node_id
            for e in events
            if e.is_mutation()
            for add in e.data["adds"]
            for node_id in _node_ids(add["node"])
        ]
        assert min(dynamic_ids) >= FIRST_DYNAMIC_ID
        assert len(set(static_ids + dynamic_ids)) == len(static_ids) + len(dynamic_ids)
        feed_adds = [add for e in events if e.is_mutation() for add in e.data["adds"] if add["parentId"] == FEED_ID]
        assert len(feed_adds) == len(mixpanel_rows)

    def test_pageview_customs(self, mixpanel_rows):
        events = EventSynthesizer().synthesize(normalize_analytics_events(mixpanel_rows))
        pageviews = [e for e in events if e.type == EventType.CUSTOM and e.data["tag"] == "$pageview"]
        assert len(pageviews) == 2
        assert pageviews[0].data["payload"]["$referrer"] == "https://google.com"

    def test_repeated_element_reuses_node(self):
        click = {"$element_tag": "button", "$element_text": "Go"}
        events = EventSynthesizer().synthesize(
            [
                AnalyticsEvent(name="$click", timestamp_ms=1000, properties=click),
                AnalyticsEvent(name="$click", timestamp_ms=2000, properties=click),
            ]
        )
        clicks = [e for e in events if e.payload.get("source") == 2]
        assert len(clicks) == 2
        assert clicks[0].data["id"] == clicks[1].data["id"]

    def test_spaced_clicks_are_not_dead(self):
        click = {"$element_tag": "button", "$element_text": "Next"}
        events = EventSynthesizer().synthesize(
            [AnalyticsEvent(name="$click", timestamp_ms=ts, properties=click) for ts in (1000, 11_000, 21_000)]
        )
        kinds = [e.payload.get("source") for e in events[2:6]]
        assert kinds == [0, 2, 0, None]
        bundle = EventClassifier().classify(events)
        assert bundle.summary.total_clicks == 3
        assert bundle.summary.dead_clicks == 0
        assert not bundle.behavioral_signals.is_frustrated

    def test_title_and_window(self, amplitude_rows):
        config = SynthesizerConfig(window_id="amp-tab")
        events = EventSynthesizer(config).synthesize(normalize_analytics_events(amplitude_rows))
        assert {e.window_id for e in events} == {"amp-tab"}
        bundle = EventClassifier().classify(events)
        assert bundle.page_title == "Amplitude Session"
        assert (bundle.viewport_width, bundle.viewport_height) == (1920, 1080)

    def test_classified_session(self, mixpanel_rows):
        events = EventSynthesizer().synthesize(normalize_analytics_events(mixpanel_rows))
        bundle = EventClassifier().classify(events)
        s = bundle.summary
        assert s.total_clicks == 1
        assert s.total_inputs == 1
        assert s.total_scrolls == 1
        assert s.form_submissions == 1
        assert s.console_errors == 1
        assert bundle.page_title == "Mixpanel Session"
        clicked = [e for e in bundle.logs if e.action == "Clicked button"]
        assert clicked[0].details == '"Add to cart" button'
        typed = [e for e in bundle.logs if e.action == "Typed"]
        assert typed[0].details == '"[REDACTED]" in "email" email field'
        assert bundle.behavioral_signals.completed_goal
