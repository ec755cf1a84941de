"""Tests for per-field input tracking."""
from ariadne.core.input_tracker import InputTracker, edit_span, is_masked_value


def _record(tracker, node_id, text, ts, field_type="text", password=False):
    return tracker.record(
        node_id,
        text,
        ts,
        field_name=f"field {node_id}",
        field_type=field_type,
        password_field=password,
    )


class TestEditSpan:
    """Tests for edit_span()."""

    def test_replacement(self):
        assert edit_span("cat", "car") == (1, 1)

    def test_append_and_delete(self):
        assert edit_span("ab", "abcd") == (2, 0)
        assert edit_span("abcd", "ab") == (0, 2)

    def test_identical(self):
        assert edit_span("same", "same") == (0, 0)

    def test_repeated_characters(self):
        assert edit_span("aa", "aaa") == (1, 0)


class TestInputTracker:
    """Tests for InputTracker debounce and diff classification."""

    def test_debounce(self):
        tracker = InputTracker(0)
        assert _record(tracker, 1, "a", 0).should_log
        assert not _record(tracker, 1, "ab", 100).should_log
        assert _record(tracker, 1, "abcdefg", 200).should_log
        assert _record(tracker, 1, "abcdefgh", 900).should_log

    def test_unchanged_value_not_logged(self):
        tracker = InputTracker(0)
        _record(tracker, 1, "a", 0)
        change = _record(tracker, 1, "a", 1000)
        assert not change.changed
        assert not change.should_log

    def test_change_types(self):
        tracker = InputTracker(0)
        _record(tracker, 1, "hello", 0)
        _record(tracker, 1, "help", 1000)
        _record(tracker, 1, "hel", 2000)
        _record(tracker, 1, "hel and a long paste", 2050)
        _record(tracker, 1, "", 3000)
        (summary,) = tracker.summaries(4000)
        assert [d.change_type for d in summary.diffs] == [
            "typed",
            "corrected",
            "deleted",
            "pasted",
            "cleared",
        ]
        assert summary.total_corrections == 1
        assert summary.was_cleared
        assert not summary.was_abandoned

    def test_password_values_masked(self):
        tracker = InputTracker(0)
        change = _record(tracker, 2, "secret", 0, field_type="password", password=True)
        assert change.is_password
        (summary,) = tracker.summaries(10)
        assert summary.diffs[0].new_value == "******"
        assert summary.final_value == "******"

    def test_masked_value_detection(self):
        assert is_masked_value("****")
        assert not is_masked_value("a**")

    def test_focus_without_typing_is_abandoned(self):
        tracker = InputTracker(1000)
        tracker.focus(3, 1000, field_name="email", field_type="email")
        state = tracker.blur(3, 4000)
        assert state is not None and not state.had_content
        (summary,) = tracker.summaries(5000)
        assert summary.was_abandoned
        assert summary.focus_time == "[00:00]"
        assert summary.blur_time == "[00:03]"
        assert summary.time_spent_ms == 3000

    def test_summary_without_blur_runs_to_end(self):
        tracker = InputTracker(0)
        _record(tracker, 4, "hi", 1000)
        (summary,) = tracker.summaries(6000)
        assert summary.blur_time is None
        assert summary.time_spent_ms == 5000
        assert summary.final_value == "hi"
