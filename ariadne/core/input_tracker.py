"""
Per-field input tracking for the event classifier.

The classifier needs two views of what happens inside form fields:

- A small "last value" state per node, used to debounce noisy Input
  events and to decide, on blur, whether the field was abandoned or
  cleared.
- A full history per node (ordered value diffs with a classified change
  type, focus/blur times, correction count), exported as
  InputFieldSummary records.

Both live here so the classifier only asks questions and formats log
lines.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from common.models.session_bundle import InputDiff, InputFieldSummary, format_time


MASK_PATTERN = re.compile(r"^\*+$")


@dataclass
class InputState:
    """Last accepted value of a field."""

    last_text: str = ""
    last_timestamp: int = 0
    had_content: bool = False


@dataclass
class InputChange:
    """
    Outcome of feeding one Input event to the tracker.

    Attributes:
        previous:
            State before this event (None if the field was unseen).
        changed:
            True if the value differs from the previous state.
        should_log:
            True if the change passes the debounce rule and deserves a
            log line.
        is_password:
            True if the value must be shown masked.
    """

    previous: Optional[InputState]
    changed: bool
    should_log: bool
    is_password: bool


@dataclass
class _FieldHistory:
    field_name: str
    field_type: str
    focus_timestamp: int
    blur_timestamp: Optional[int] = None
    values: List[str] = field(default_factory=list)
    diffs: List[InputDiff] = field(default_factory=list)
    corrections: int = 0


def is_masked_value(text: str) -> bool:
    return MASK_PATTERN.match(text) is not None


def edit_span(before: str, after: str) -> Tuple[int, int]:
    """
    Return (characters_added, characters_removed) between two values.

    The common prefix and suffix are ignored, so replacing "cat" with
    "car" counts one character added and one removed.
    """
    prefix = 0
    limit = min(len(before), len(after))
    while prefix < limit and before[prefix] == after[prefix]:
        prefix += 1

    suffix = 0
    while (
        suffix < limit - prefix
        and before[len(before) - 1 - suffix] == after[len(after) - 1 - suffix]
    ):
        suffix += 1

    return len(after) - prefix - suffix, len(before) - prefix - suffix


class InputTracker:
    """
    Input state and history for one parse.

    Args:
        start_time:
            Session start (epoch ms), used to format "[MM:SS]" offsets.
        debounce_ms / length_delta:
            A change that comes less than `debounce_ms` after the previous
            one and moves the length by at most `length_delta` characters
            is not logged (it is still recorded).
        paste_window_ms:
            More than 3 characters added within this window of the previous
            change is classified as a paste.
    """

    def __init__(
        self,
        start_time: int,
        *,
        debounce_ms: int = 500,
        length_delta: int = 3,
        paste_window_ms: int = 100,
    ) -> None:
        self.start_time = start_time
        self.debounce_ms = debounce_ms
        self.length_delta = length_delta
        self.paste_window_ms = paste_window_ms
        self.states: Dict[int, InputState] = {}
        self._history: Dict[int, _FieldHistory] = {}

    def state(self, node_id: int) -> Optional[InputState]:
        return self.states.get(node_id)

    # ------------------------------------------------------------------ #
    # Focus / blur
    # ------------------------------------------------------------------ #

    def focus(self, node_id: int, timestamp: int, *, field_name: str, field_type: str) -> None:
        if node_id not in self.states:
            self.states[node_id] = InputState(last_timestamp=timestamp)
        if node_id not in self._history:
            self._history[node_id] = _FieldHistory(
                field_name=field_name,
                field_type=field_type,
                focus_timestamp=timestamp,
            )

    def blur(self, node_id: int, timestamp: int) -> Optional[InputState]:
        history = self._history.get(node_id)
        if history is not None:
            history.blur_timestamp = timestamp
        return self.states.get(node_id)

    # ------------------------------------------------------------------ #
    # Value changes
    # ------------------------------------------------------------------ #

    def record(
        self,
        node_id: int,
        text: str,
        timestamp: int,
        *,
        field_name: str,
        field_type: str,
        password_field: bool = False,
    ) -> InputChange:
        """Feed one Input event value (already redacted)."""
        previous = self.states.get(node_id)
        since_last = timestamp - previous.last_timestamp if previous else None
        previous_text = previous.last_text if previous else ""
        had_content = (previous.had_content if previous else False) or len(text) > 0
        is_password = password_field or is_masked_value(text)

        history = self._history.get(node_id)
        if history is None:
            history = _FieldHistory(
                field_name=field_name,
                field_type=field_type,
                focus_timestamp=timestamp,
            )
            self._history[node_id] = history

        if previous_text != text:
            history.diffs.append(
                self._diff(history, previous_text, text, timestamp, since_last, is_password)
            )
            history.values.append(text)

        changed = previous is None or previous.last_text != text
        should_log = False
        if changed:
            should_log = (
                previous is None
                or since_last is None
                or since_last > self.debounce_ms
                or abs(len(text) - len(previous.last_text)) > self.length_delta
            )
            self.states[node_id] = InputState(
                last_text=text,
                last_timestamp=timestamp,
                had_content=had_content,
            )

        return InputChange(
            previous=previous,
            changed=changed,
            should_log=should_log,
            is_password=is_password,
        )

    def _diff(
        self,
        history: _FieldHistory,
        previous_text: str,
        text: str,
        timestamp: int,
        since_last: Optional[int],
        is_password: bool,
    ) -> InputDiff:
        added, removed = edit_span(previous_text, text)

        if not text and previous_text:
            change_type = "cleared"
        elif added and removed:
            change_type = "corrected"
            history.corrections += 1
        elif removed:
            change_type = "deleted"
        elif added > 3 and since_last is not None and since_last < self.paste_window_ms:
            change_type = "pasted"
        else:
            change_type = "typed"

        return InputDiff(
            field_name=history.field_name,
            field_type=history.field_type,
            timestamp=format_time(timestamp - self.start_time),
            raw_timestamp=timestamp,
            previous_value="*" * len(previous_text) if is_password else previous_text,
            new_value="*" * len(text) if is_password else text,
            change_type=change_type,
            characters_added=added,
            characters_removed=removed,
        )

    # ------------------------------------------------------------------ #
    # Export
    # ------------------------------------------------------------------ #

    def summaries(self, end_timestamp: int) -> List[InputFieldSummary]:
        """Build one InputFieldSummary per tracked field, in first-seen order."""
        result: List[InputFieldSummary] = []
        for node_id, history in self._history.items():
            state = self.states.get(node_id)
            final_value = state.last_text if state else ""
            had_content = state.had_content if state else False
            was_abandoned = not history.diffs or (
                not had_content and history.blur_timestamp is not None
            )
            was_cleared = not final_value and any(history.values)
            end = history.blur_timestamp if history.blur_timestamp is not None else end_timestamp

            result.append(
                InputFieldSummary(
                    field_name=history.field_name,
                    field_type=history.field_type,
                    focus_time=format_time(history.focus_timestamp - self.start_time),
                    blur_time=(
                        format_time(history.blur_timestamp - self.start_time)
                        if history.blur_timestamp is not None
                        else None
                    ),
                    time_spent_ms=end - history.focus_timestamp,
                    final_value=(
                        "*" * len(final_value)
                        if history.field_type == "password"
                        else final_value
                    ),
                    total_changes=len(history.diffs),
                    total_corrections=history.corrections,
                    was_abandoned=was_abandoned,
                    was_cleared=was_cleared,
                    diffs=list(history.diffs),
                )
            )
        return result
