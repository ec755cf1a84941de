"""
Batch parse pipeline for Ariadne.

This module builds on `simple_parse` to parse multiple sessions, typically
all sessions of one export, in a single process.

It is intentionally:

- Sequential (one job after another; parses share no state).
- Safe: errors in one job do not crash the others (unless configured).

Typical use case:

    from ariadne.pipelines.batch_parse import BatchParseJob, run_batch_parse

    jobs = [
        BatchParseJob(job_id="s-1", source="rrweb", items=items_1),
        BatchParseJob(job_id="s-2", source="mixpanel", items=rows_2),
    ]

    result = run_batch_parse(jobs)
    for job_id, job_result in result.results.items():
        if job_result.ok:
            print(job_id, "OK", job_result.parse_result.bundle.total_duration)
        else:
            print(job_id, "FAILED", job_result.error)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..drivers.analytics.normalizer import (
    AnalyticsSession,
    group_sessions,
    normalize_analytics_events,
)
from .simple_parse import (
    SimpleParseConfig,
    SimpleParseResult,
    parse_session,
)

LOG = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Job / result types
# --------------------------------------------------------------------------- #


@dataclass
class BatchParseJob:
    """
    Description of a single parse job in a batch.

    Attributes:
        job_id:
            Identifier of the session. Must be unique within a batch.
        source:
            Source name accepted by parse_session().
        items:
            Raw items for that source.
        parse_config:
            Optional SimpleParseConfig; session_id defaults to job_id.
    """

    job_id: str
    source: str
    items: Any
    parse_config: Optional[SimpleParseConfig] = None


@dataclass
class BatchParseJobResult:
    """
    Result of a single job within a batch.

    Attributes:
        job:
            The job description that was executed.
        parse_result:
            The SimpleParseResult, or None if the job failed.
        error:
            Exception instance if the job failed, otherwise None.
    """

    job: BatchParseJob
    parse_result: Optional[SimpleParseResult]
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        """Return True if the job finished without error."""
        return self.error is None and self.parse_result is not None


@dataclass
class BatchParseResult:
    """
    Aggregate result for a batch of jobs.

    Attributes:
        results:
            Mapping of job_id -> BatchParseJobResult, in job order.
    """

    results: Dict[str, BatchParseJobResult] = field(default_factory=dict)

    def successful_jobs(self) -> List[BatchParseJobResult]:
        """Return all jobs that completed successfully."""
        return [r for r in self.results.values() if r.ok]

    def failed_jobs(self) -> List[BatchParseJobResult]:
        """Return all jobs that failed."""
        return [r for r in self.results.values() if not r.ok]


# --------------------------------------------------------------------------- #
# Runner
# --------------------------------------------------------------------------- #


def run_batch_parse(
    jobs: List[BatchParseJob],
    *,
    stop_on_error: bool = False,
    default_config: Optional[SimpleParseConfig] = None,
) -> BatchParseResult:
    """
    Run multiple parses in sequence.

    Args:
        jobs:
            List of BatchParseJob objects. job_id must be unique per job.
        stop_on_error:
            If True, abort the batch when the first job fails.
            If False (default), continue with remaining jobs and record
            the error in each failing job's BatchParseJobResult.
        default_config:
            Config used for jobs that do not carry their own.

    Raises:
        ValueError on duplicate job ids.
    """
    if not jobs:
        return BatchParseResult(results={})

    seen_ids = set()
    for job in jobs:
        if job.job_id in seen_ids:
            raise ValueError(f"Duplicate job_id in batch: {job.job_id}")
        seen_ids.add(job.job_id)

    results: Dict[str, BatchParseJobResult] = {}
    base_config = default_config or SimpleParseConfig()

    LOG.info("Starting batch parse with %d job(s)", len(jobs))

    for job in jobs:
        LOG.info("Running job '%s' (source=%s)", job.job_id, job.source)
        config = job.parse_config or base_config
        if config.session_id is None:
            config = replace(config, session_id=job.job_id)

        try:
            parse_result = parse_session(job.source, job.items, config=config)
            result = BatchParseJobResult(job=job, parse_result=parse_result, error=None)
            LOG.info(
                "Job '%s' completed: %d log entries",
                job.job_id,
                len(parse_result.bundle.logs),
            )
        except Exception as exc:  # noqa: BLE001
            LOG.exception("Error during parse for job '%s'", job.job_id)
            result = BatchParseJobResult(job=job, parse_result=None, error=exc)
            if stop_on_error:
                results[job.job_id] = result
                LOG.info("Stopping batch due to error in job '%s'", job.job_id)
                break

        results[job.job_id] = result

    LOG.info(
        "Batch parse finished: %d total, %d success, %d failed",
        len(results),
        sum(1 for r in results.values() if r.ok),
        sum(1 for r in results.values() if not r.ok),
    )
    return BatchParseResult(results=results)


def jobs_from_analytics_export(
    records: List[Any],
    *,
    source: str = "analytics",
    skipped: Optional[List[str]] = None,
) -> List[BatchParseJob]:
    """
    Split a flat analytics export into one job per session.

    Records are normalized once and grouped with group_sessions(); each
    job carries the already-normalized AnalyticsEvents of its session.
    """
    events = normalize_analytics_events(records, errors=skipped)
    sessions: List[AnalyticsSession] = group_sessions(events)
    LOG.info("Split %d analytics records into %d session(s)", len(records), len(sessions))
    return [
        BatchParseJob(job_id=session.session_key, source=source, items=list(session.events))
        for session in sessions
    ]
