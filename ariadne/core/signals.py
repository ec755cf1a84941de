"""
Behavioral signal aggregation.

Turns the final RunningCounters of a parse (plus session duration) into
six session-level booleans. Pure function: no state, no side effects.
"""

from __future__ import annotations

from common.models.session_bundle import BehavioralSignals, RunningCounters


ENGAGED_MIN_DURATION_MS = 30_000


def derive_behavioral_signals(counters: RunningCounters, duration_ms: int) -> BehavioralSignals:
    """
    Derive BehavioralSignals from counters.

    - exploring:  scrolls > 20 and clicks < 5
    - frustrated: rage clicks, > 2 dead clicks, > 3 rapid scrolls, or any
                  console / network error
    - engaged:    clicks > 3, at least one input, duration > 30s
    - confused:   hesitations > 2, scroll reversals > 5, or an abandoned input
    - mobile:     any touch, swipe or orientation change
    - completed_goal: at least one form submission
    """
    c = counters
    return BehavioralSignals(
        is_exploring=c.total_scrolls > 20 and c.total_clicks < 5,
        is_frustrated=(
            c.rage_clicks > 0
            or c.dead_clicks > 2
            or c.rapid_scrolls > 3
            or c.console_errors > 0
            or c.network_errors > 0
        ),
        is_engaged=(
            c.total_clicks > 3
            and c.total_inputs > 0
            and duration_ms > ENGAGED_MIN_DURATION_MS
        ),
        is_confused=(
            c.hesitations > 2
            or c.scroll_reversals > 5
            or c.abandoned_inputs > 0
        ),
        is_mobile=c.total_touches > 0 or c.swipes > 0 or c.orientation_changes > 0,
        completed_goal=c.form_submissions > 0,
    )
