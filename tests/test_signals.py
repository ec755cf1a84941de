"""Tests for behavioral signal derivation."""
from ariadne.core.signals import derive_behavioral_signals
from common.models.session_bundle import RunningCounters


class TestDeriveBehavioralSignals:
    """Each signal against its threshold."""

    def test_quiet_session(self):
        assert derive_behavioral_signals(RunningCounters(), 0).active() == []

    def test_exploring(self):
        assert derive_behavioral_signals(RunningCounters(total_scrolls=21, total_clicks=4), 0).is_exploring
        assert not derive_behavioral_signals(RunningCounters(total_scrolls=21, total_clicks=5), 0).is_exploring
        assert not derive_behavioral_signals(RunningCounters(total_scrolls=20), 0).is_exploring

    def test_frustrated(self):
        assert derive_behavioral_signals(RunningCounters(rage_clicks=1), 0).is_frustrated
        assert derive_behavioral_signals(RunningCounters(dead_clicks=3), 0).is_frustrated
        assert not derive_behavioral_signals(RunningCounters(dead_clicks=2), 0).is_frustrated
        assert derive_behavioral_signals(RunningCounters(rapid_scrolls=4), 0).is_frustrated
        assert derive_behavioral_signals(RunningCounters(console_errors=1), 0).is_frustrated
        assert derive_behavioral_signals(RunningCounters(network_errors=1), 0).is_frustrated

    def test_engaged_needs_duration(self):
        counters = RunningCounters(total_clicks=4, total_inputs=1)
        assert not derive_behavioral_signals(counters, 30_000).is_engaged
        assert derive_behavioral_signals(counters, 30_001).is_engaged

    def test_confused(self):
        assert derive_behavioral_signals(RunningCounters(hesitations=3), 0).is_confused
        assert derive_behavioral_signals(RunningCounters(scroll_reversals=6), 0).is_confused
        assert derive_behavioral_signals(RunningCounters(abandoned_inputs=1), 0).is_confused
        assert not derive_behavioral_signals(RunningCounters(hesitations=2, scroll_reversals=5), 0).is_confused

    def test_mobile_and_goal(self):
        assert derive_behavioral_signals(RunningCounters(total_touches=1), 0).is_mobile
        assert derive_behavioral_signals(RunningCounters(orientation_changes=1), 0).is_mobile
        assert derive_behavioral_signals(RunningCounters(form_submissions=1), 0).completed_goal
