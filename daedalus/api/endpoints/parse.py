"""
Parse endpoint helpers for Daedalus.

This module defines a small, framework-agnostic parse layer on top of the
Ariadne pipelines.

It does NOT implement HTTP handling directly. Instead, it provides plain
Python methods that accept JSON-like payloads and return
JSON-serializable dicts.

Typical usage from an HTTP server:

    handler = ParseHandler()

    def post_rrweb(request_body):
        try:
            return 200, handler.parse_rrweb(request_body)
        except ParseRequestError as e:
            return 400, {"error": str(e)}
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List

from ariadne.core.classifier import ClassifierConfig
from ariadne.pipelines.batch_parse import BatchParseJob, run_batch_parse
from ariadne.pipelines.simple_parse import (
    ParseError,
    SimpleParseConfig,
    parse_analytics_events,
    parse_raw_snapshots,
)


class ParseRequestError(Exception):
    """
    Raised when a parse request body is invalid or incomplete.

    HTTP servers should usually map this to a 4xx error (e.g. 400).
    """


@dataclass
class ParseStats:
    """Counters reported by the health endpoint."""

    sessions_parsed: int = 0
    requests_failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "sessions_parsed": self.sessions_parsed,
            "requests_failed": self.requests_failed,
        }


@dataclass
class ParseHandler:
    """
    High-level parse interface.

    Every method accepts either an object with the documented list field,
    or a bare JSON list. Objects may also carry:

        "session_id":          str
        "include_prompt_data": bool
        "config":              classifier threshold overrides

    All methods return {"status": "ok", ...}.
    """

    config: SimpleParseConfig = field(default_factory=SimpleParseConfig)
    stats: ParseStats = field(default_factory=ParseStats)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _items(self, payload: Any, key: str) -> List[Any]:
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            raise ParseRequestError("Payload must be an object or an array")
        items = payload.get(key)
        if items is None:
            raise ParseRequestError(f"Missing '{key}' field")
        if not isinstance(items, list):
            raise ParseRequestError(f"'{key}' must be an array")
        return items

    def _config_for(self, payload: Any) -> SimpleParseConfig:
        if not isinstance(payload, dict):
            return self.config

        overrides = payload.get("config")
        if overrides is not None and not isinstance(overrides, dict):
            raise ParseRequestError("'config' must be an object")

        classifier = self.config.classifier
        if overrides:
            classifier = ClassifierConfig.from_dict(overrides)

        return replace(
            self.config,
            session_id=payload.get("session_id") or self.config.session_id,
            include_prompt_data=bool(
                payload.get("include_prompt_data", self.config.include_prompt_data)
            ),
            classifier=classifier,
        )

    # ------------------------------------------------------------------ #
    # Single session
    # ------------------------------------------------------------------ #

    def parse_rrweb(self, payload: Any) -> Dict[str, Any]:
        """
        Parse one recorder session.

        Payload format:
            {"snapshots": [ raw items ... ], "session_id": "..."}
            or a bare array of raw items.

        Returns:
            {"status": "ok", "sessionId": ..., "source": "rrweb",
             "bundle": {...}, "decodeReport": {...}}
        """
        items = self._items(payload, "snapshots")
        try:
            result = parse_raw_snapshots(items, config=self._config_for(payload))
        except ParseError as exc:
            self.stats.requests_failed += 1
            raise ParseRequestError(str(exc)) from exc
        self.stats.sessions_parsed += 1
        return {"status": "ok", **result.to_dict()}

    def parse_analytics(self, payload: Any) -> Dict[str, Any]:
        """
        Parse one session of flat analytics events (Mixpanel / Amplitude).

        Payload format:
            {"events": [ raw records ... ], "session_id": "..."}
            or a bare array of raw records.
        """
        items = self._items(payload, "events")
        try:
            result = parse_analytics_events(items, config=self._config_for(payload))
        except ParseError as exc:
            self.stats.requests_failed += 1
            raise ParseRequestError(str(exc)) from exc
        self.stats.sessions_parsed += 1
        return {"status": "ok", **result.to_dict()}

    # ------------------------------------------------------------------ #
    # Batch
    # ------------------------------------------------------------------ #

    def parse_batch(self, payload: Any) -> Dict[str, Any]:
        """
        Parse several sessions.

        Payload format:
            {
              "sessions": [
                {"session_id": "...", "source": "rrweb", "items": [...]},
                ...
              ],
              "stop_on_error": false
            }

        Returns:
            {
              "status": "ok",
              "results": {session_id: {...}},
              "failures": {session_id: "error message"}
            }
        """
        sessions = self._items(payload, "sessions")
        stop_on_error = bool(payload.get("stop_on_error")) if isinstance(payload, dict) else False
        base = self._config_for(payload)

        jobs: List[BatchParseJob] = []
        for index, entry in enumerate(sessions):
            if not isinstance(entry, dict):
                raise ParseRequestError(f"Session #{index} must be an object")
            session_id = entry.get("session_id")
            source = entry.get("source")
            if not session_id or not source:
                raise ParseRequestError(f"Session #{index} needs 'session_id' and 'source'")
            jobs.append(
                BatchParseJob(
                    job_id=str(session_id),
                    source=str(source),
                    items=entry.get("items"),
                    parse_config=replace(base, session_id=str(session_id)),
                )
            )

        try:
            batch = run_batch_parse(jobs, stop_on_error=stop_on_error)
        except ValueError as exc:
            self.stats.requests_failed += 1
            raise ParseRequestError(str(exc)) from exc

        results: Dict[str, Any] = {}
        failures: Dict[str, str] = {}
        for job_id, job_result in batch.results.items():
            if job_result.ok and job_result.parse_result is not None:
                results[job_id] = job_result.parse_result.to_dict()
            else:
                failures[job_id] = str(job_result.error)

        self.stats.sessions_parsed += len(results)
        return {"status": "ok", "results": results, "failures": failures}
