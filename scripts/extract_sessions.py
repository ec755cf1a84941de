#!/usr/bin/env python3
"""
Ariadne session extraction utility.

This script parses session recordings or analytics exports into semantic
session bundles, from local files or http(s) URLs, and writes them as
JSON (optionally POSTing them to a collaborator endpoint).

Typical usage:

    # One recorder blob (NDJSON or a JSON array) to stdout
    python scripts/extract_sessions.py rrweb ./blobs/session-1.ndjson

    # Several blob chunks of the same session, fetched over HTTP
    python scripts/extract_sessions.py rrweb \
        https://cdn.example.com/s1/0.ndjson https://cdn.example.com/s1/1.ndjson \
        --session-id s1 --output s1.json

    # A Mixpanel / Amplitude export split into one file per session
    python scripts/extract_sessions.py --config config/ariadne.example.yml \
        analytics ./export.jsonl --split-sessions --output-dir ./bundles

    # A manifest of sessions (JSON or YAML)
    python scripts/extract_sessions.py batch ./manifest.yml --output-dir ./bundles
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
import yaml  # Requires PyYAML

from ariadne.core.classifier import ClassifierConfig
from ariadne.drivers.analytics.synthesizer import SynthesizerConfig
from ariadne.drivers.rrweb.decoder import iter_ndjson_lines
from ariadne.pipelines.batch_parse import (
    BatchParseJob,
    BatchParseResult,
    jobs_from_analytics_export,
    run_batch_parse,
)
from ariadne.pipelines.simple_parse import (
    ParseError,
    SimpleParseConfig,
    SimpleParseResult,
    dump_result,
    parse_analytics_events,
    parse_raw_snapshots,
)


LOG = logging.getLogger("ariadne.extract_sessions")

DEFAULT_TIMEOUT = 30
LIST_KEYS = ("snapshots", "events", "data", "items")


# --------------------------------------------------------------------------- #
# Config loading
# --------------------------------------------------------------------------- #


def load_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise SystemExit(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict) or "ariadne" not in data:
        raise SystemExit("Config root must contain an 'ariadne' key")
    return data["ariadne"] or {}


def build_parse_config(cfg: Dict[str, Any], args: argparse.Namespace) -> SimpleParseConfig:
    synth_cfg = cfg.get("synthesizer", {}) or {}
    output_cfg = cfg.get("output", {}) or {}

    return SimpleParseConfig(
        session_id=getattr(args, "session_id", None),
        classifier=ClassifierConfig.from_dict(cfg.get("classifier")),
        synthesizer=SynthesizerConfig(
            default_width=int(synth_cfg.get("default_width", 1920)),
            default_height=int(synth_cfg.get("default_height", 1080)),
            title=synth_cfg.get("title"),
        ),
        include_prompt_data=bool(args.prompt_data or output_cfg.get("include_prompt_data", False)),
        metadata=dict(output_cfg.get("metadata") or {}),
    )


# --------------------------------------------------------------------------- #
# Input helpers
# --------------------------------------------------------------------------- #


def is_url(ref: str) -> bool:
    return ref.startswith("http://") or ref.startswith("https://")


def read_text(ref: str, *, timeout: int) -> str:
    """Read a local file or download an http(s) URL."""
    if is_url(ref):
        try:
            resp = requests.get(ref, timeout=timeout)
        except requests.RequestException as exc:
            raise SystemExit(f"HTTP request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise SystemExit(f"HTTP {resp.status_code} error for GET {ref}")
        return resp.text

    path = Path(ref)
    if not path.exists():
        raise SystemExit(f"Input file not found: {path}")
    return path.read_text(encoding="utf-8")


def parse_items(text: str) -> List[Any]:
    """
    Turn input text into a list of raw items.

    Accepts a JSON array, a JSON object wrapping one under a known key,
    or newline-delimited JSON. An object that declares a window id is a
    single recorder record and is kept whole so its window survives.
    """
    try:
        data = json.loads(text)
    except ValueError:
        return iter_ndjson_lines(text)

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if data.get("window_id") or data.get("windowId"):
            return [data]
        for key in LIST_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
        return [data]
    return []


def load_items(refs: List[str], *, timeout: int) -> List[Any]:
    items: List[Any] = []
    for ref in refs:
        chunk = parse_items(read_text(ref, timeout=timeout))
        LOG.info("Loaded %d item(s) from %s", len(chunk), ref)
        items.extend(chunk)
    return items


# --------------------------------------------------------------------------- #
# Output helpers
# --------------------------------------------------------------------------- #


def sanitize_filename(s: str) -> str:
    """
    Sanitize a string for use as a filename.

    Replaces any run of characters outside [A-Za-z0-9._-] with '_'.
    """
    return re.sub(r"[^A-Za-z0-9._-]+", "_", s)


def post_result(
    url: str,
    result: SimpleParseResult,
    *,
    timeout: int,
    headers: Optional[Dict[str, str]] = None,
) -> None:
    try:
        resp = requests.post(url, json=result.to_dict(), headers=headers or {}, timeout=timeout)
    except requests.RequestException as exc:
        raise SystemExit(f"HTTP request failed: {exc}") from exc
    if resp.status_code >= 400:
        raise SystemExit(f"HTTP {resp.status_code} error for POST {url}: {resp.text[:200]}")
    LOG.info("Posted session %s to %s", result.session_id or "-", url)


def emit_result(
    result: SimpleParseResult,
    *,
    output: Optional[Path],
    post_url: Optional[str],
    timeout: int,
    headers: Optional[Dict[str, str]] = None,
) -> None:
    text = dump_result(result)
    if output is None:
        print(text)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        print(f"Wrote {result.source} session {result.session_id or '-'} -> {output}")
    if post_url:
        post_result(post_url, result, timeout=timeout, headers=headers)


def emit_batch(
    batch: BatchParseResult,
    *,
    output_dir: Path,
    post_url: Optional[str],
    timeout: int,
    headers: Optional[Dict[str, str]] = None,
) -> int:
    output_dir.mkdir(parents=True, exist_ok=True)
    for job_result in batch.successful_jobs():
        path = output_dir / f"session_{sanitize_filename(job_result.job.job_id)}.json"
        emit_result(
            job_result.parse_result,  # type: ignore[arg-type]
            output=path,
            post_url=post_url,
            timeout=timeout,
            headers=headers,
        )

    failures = batch.failed_jobs()
    for job_result in failures:
        print(f"Failed to parse {job_result.job.job_id}: {job_result.error}", file=sys.stderr)
    if failures:
        print(f"Completed with {len(failures)} failure(s).", file=sys.stderr)
        return 2
    return 0


# --------------------------------------------------------------------------- #
# Command handlers
# --------------------------------------------------------------------------- #


def cmd_rrweb(cfg: Dict[str, Any], args: argparse.Namespace) -> int:
    items = load_items(args.inputs, timeout=args.timeout)
    result = parse_raw_snapshots(items, config=build_parse_config(cfg, args))
    if result.decode_report is not None and result.decode_report.errors:
        print(
            f"Skipped {len(result.decode_report.errors)} undecodable item(s).",
            file=sys.stderr,
        )
    emit_result(
        result,
        output=Path(args.output) if args.output else None,
        post_url=args.post_url,
        timeout=args.timeout,
        headers=args.headers,
    )
    return 0


def cmd_analytics(cfg: Dict[str, Any], args: argparse.Namespace) -> int:
    records = load_items(args.inputs, timeout=args.timeout)
    parse_config = build_parse_config(cfg, args)

    if args.split_sessions:
        skipped: List[str] = []
        jobs = jobs_from_analytics_export(records, skipped=skipped)
        if skipped:
            print(f"Skipped {len(skipped)} unrecognized record(s).", file=sys.stderr)
        if not jobs:
            print("No sessions found.")
            return 0
        batch = run_batch_parse(jobs, default_config=parse_config)
        return emit_batch(
            batch,
            output_dir=Path(args.output_dir),
            post_url=args.post_url,
            timeout=args.timeout,
            headers=args.headers,
        )

    result = parse_analytics_events(records, config=parse_config)
    emit_result(
        result,
        output=Path(args.output) if args.output else None,
        post_url=args.post_url,
        timeout=args.timeout,
        headers=args.headers,
    )
    return 0


def load_manifest(ref: str, *, timeout: int) -> List[Dict[str, Any]]:
    """
    Read a batch manifest (JSON or YAML):

        sessions:
          - session_id: s1
            source: rrweb
            inputs: [./s1/0.ndjson, ./s1/1.ndjson]
    """
    data = yaml.safe_load(read_text(ref, timeout=timeout)) or {}
    sessions = data.get("sessions") if isinstance(data, dict) else data
    if not isinstance(sessions, list):
        raise SystemExit("Manifest must contain a 'sessions' list")
    return sessions


def cmd_batch(cfg: Dict[str, Any], args: argparse.Namespace) -> int:
    parse_config = build_parse_config(cfg, args)
    jobs: List[BatchParseJob] = []
    for index, entry in enumerate(load_manifest(args.manifest, timeout=args.timeout)):
        if not isinstance(entry, dict) or not entry.get("session_id") or not entry.get("source"):
            raise SystemExit(f"Manifest session #{index} needs 'session_id' and 'source'")
        refs = entry.get("inputs") or ([entry["input"]] if entry.get("input") else [])
        jobs.append(
            BatchParseJob(
                job_id=str(entry["session_id"]),
                source=str(entry["source"]),
                items=load_items([str(r) for r in refs], timeout=args.timeout),
            )
        )

    try:
        batch = run_batch_parse(jobs, stop_on_error=args.stop_on_error, default_config=parse_config)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    return emit_batch(
        batch,
        output_dir=Path(args.output_dir),
        post_url=args.post_url,
        timeout=args.timeout,
        headers=args.headers,
    )


# --------------------------------------------------------------------------- #
# CLI setup
# --------------------------------------------------------------------------- #


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Parse session recordings and analytics exports into semantic session bundles.",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML config file (root key 'ariadne').",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help=f"HTTP timeout in seconds (default: {DEFAULT_TIMEOUT}).",
    )
    parser.add_argument(
        "--post-url",
        default=None,
        help="If set, POST each parsed session (JSON) to this URL.",
    )
    parser.add_argument(
        "--prompt-data",
        action="store_true",
        help="Include rendered log/context text (prompt data) in the output.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable INFO logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # rrweb
    p_rrweb = subparsers.add_parser(
        "rrweb",
        help="Parse one recorder session from blob chunks (files or URLs).",
    )
    p_rrweb.add_argument("inputs", nargs="+", help="Blob files or http(s) URLs, in order.")
    p_rrweb.add_argument("--session-id", default=None, help="Session identifier.")
    p_rrweb.add_argument("--output", default=None, help="Output file (default: stdout).")

    # analytics
    p_analytics = subparsers.add_parser(
        "analytics",
        help="Parse a Mixpanel / Amplitude export.",
    )
    p_analytics.add_argument("inputs", nargs="+", help="Export files or http(s) URLs.")
    p_analytics.add_argument("--session-id", default=None, help="Session identifier.")
    p_analytics.add_argument("--output", default=None, help="Output file (default: stdout).")
    p_analytics.add_argument(
        "--split-sessions",
        action="store_true",
        help="Group records into sessions and write one file per session.",
    )
    p_analytics.add_argument(
        "--output-dir",
        default="./ariadne_sessions",
        help="Directory for --split-sessions output (default: ./ariadne_sessions).",
    )

    # batch
    p_batch = subparsers.add_parser(
        "batch",
        help="Parse every session listed in a JSON/YAML manifest.",
    )
    p_batch.add_argument("manifest", help="Manifest file or URL.")
    p_batch.add_argument(
        "--output-dir",
        default="./ariadne_sessions",
        help="Directory where session files will be written (default: ./ariadne_sessions).",
    )
    p_batch.add_argument(
        "--stop-on-error",
        action="store_true",
        help="Abort the batch at the first failing session.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    cfg = load_config(Path(args.config)) if args.config else {}
    http_cfg = cfg.get("http", {}) or {}
    if args.timeout is None:
        args.timeout = int(http_cfg.get("timeout", DEFAULT_TIMEOUT))
    if args.post_url is None:
        args.post_url = http_cfg.get("post_url")
    args.headers = dict(http_cfg.get("headers") or {})

    try:
        if args.command == "rrweb":
            return cmd_rrweb(cfg, args)
        if args.command == "analytics":
            return cmd_analytics(cfg, args)
        if args.command == "batch":
            return cmd_batch(cfg, args)

        parser.print_help()
        return 1

    except ParseError as exc:
        print(f"ParseError: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
