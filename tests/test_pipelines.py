"""Tests for the parse pipelines."""
import json

import pytest

from ariadne.pipelines.batch_parse import BatchParseJob, jobs_from_analytics_export, run_batch_parse
from ariadne.pipelines.simple_parse import (
    ParseError,
    SimpleParseConfig,
    dump_result,
    parse_analytics_events,
    parse_raw_snapshots,
    parse_session,
)


class TestSimpleParse:
    """Tests for single-session parsing."""

    def test_rrweb(self, shop_page, ev):
        items = [e.to_dict() for e in shop_page + [ev.click(10, 100)]] + ["{broken"]
        result = parse_raw_snapshots(items, config=SimpleParseConfig(session_id="s-1"))
        assert result.source == "rrweb"
        assert result.session_id == "s-1"
        assert result.bundle.summary.total_clicks == 1
        assert result.decode_report.decoded == 3
        assert len(result.decode_report.errors) == 1
        assert result.prompt_data is None

    def test_non_list_input(self):
        with pytest.raises(ParseError):
            parse_raw_snapshots({"type": 4})
        with pytest.raises(ParseError):
            parse_analytics_events("events")

    def test_unknown_source(self):
        with pytest.raises(ParseError):
            parse_session("heatmap", [])

    def test_source_aliases(self, mixpanel_rows):
        assert parse_session("Mixpanel", mixpanel_rows).source == "analytics"
        assert parse_session("recording", []).source == "rrweb"

    def test_analytics_skipped_records(self, mixpanel_rows):
        result = parse_analytics_events(mixpanel_rows + [{"nope": True}])
        assert result.skipped_records == ["8: Record is neither a Mixpanel nor an Amplitude event"]
        assert result.bundle.summary.form_submissions == 1

    def test_prompt_data_and_envelope(self, shop_page):
        config = SimpleParseConfig(session_id="s-2", include_prompt_data=True, metadata={"k": "v"})
        result = parse_raw_snapshots([e.to_dict() for e in shop_page], config=config)
        assert result.prompt_data["sessionId"] == "s-2"
        assert result.prompt_data["source"] == "rrweb"
        assert result.prompt_data["metadata"] == {"k": "v"}

        envelope = json.loads(dump_result(result))
        assert envelope["sessionId"] == "s-2"
        assert envelope["decodeReport"]["items"] == 2
        assert envelope["bundle"]["pageTitle"] == "Shop"
        assert json.loads(result.to_json()) == envelope["bundle"]

    def test_empty_session(self):
        result = parse_raw_snapshots([])
        assert result.bundle.event_count == 0
        assert result.bundle.logs == []


class TestBatchParse:
    """Tests for the batch runner."""

    def test_duplicate_ids(self):
        jobs = [BatchParseJob("a", "rrweb", []), BatchParseJob("a", "rrweb", [])]
        with pytest.raises(ValueError):
            run_batch_parse(jobs)

    def test_failures_are_recorded(self, shop_page):
        jobs = [
            BatchParseJob("bad", "heatmap", []),
            BatchParseJob("good", "rrweb", [e.to_dict() for e in shop_page]),
        ]
        result = run_batch_parse(jobs)
        assert [r.job.job_id for r in result.failed_jobs()] == ["bad"]
        assert isinstance(result.results["bad"].error, ParseError)
        good = result.results["good"].parse_result
        assert good.session_id == "good"

    def test_stop_on_error(self, shop_page):
        jobs = [
            BatchParseJob("bad", "rrweb", "not a list"),
            BatchParseJob("good", "rrweb", [e.to_dict() for e in shop_page]),
        ]
        result = run_batch_parse(jobs, stop_on_error=True)
        assert list(result.results) == ["bad"]

    def test_explicit_session_id_kept(self):
        config = SimpleParseConfig(session_id="fixed")
        result = run_batch_parse([BatchParseJob("job", "rrweb", [], parse_config=config)])
        assert result.results["job"].parse_result.session_id == "fixed"

    def test_empty_batch(self):
        assert run_batch_parse([]).results == {}

    def test_jobs_from_analytics_export(self, mixpanel_rows, amplitude_rows):
        skipped = []
        jobs = jobs_from_analytics_export(mixpanel_rows + amplitude_rows + [7], skipped=skipped)
        assert [job.job_id for job in jobs] == ["user-1-947395", "amp-user_1705312200000"]
        assert len(jobs[0].items) == len(mixpanel_rows)
        assert skipped and skipped[0].startswith("11:")

        result = run_batch_parse(jobs)
        assert len(result.successful_jobs()) == 2
        assert result.results["amp-user_1705312200000"].parse_result.bundle.page_title == "Amplitude Session"
