"""
Integration tests for the report pipeline, summarizer client and track store.

The summarizer endpoint is replaced with an httpx MockTransport and the
store uses a throwaway SQLite file, so no network access is needed.
"""

import asyncio
import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from track_report import (
    NoTracksFoundError,
    ReportPipeline,
    SummarizerError,
    UpstreamFormatError,
)
from track_report.config import RetryConfig, SummarizerConfig, reset_config
from track_report.errors import SummarizerConnectionError
from track_report.llm_client import MockSummarizerClient, SummarizerClient
from track_report.models import LocationPoint
from track_report.pipeline import resolve_date_range
from track_report.storage import TrackStore


T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

VALID_CONTENT = {
    "totalPoints": 3,
    "totalDistance": "1 km 1 m",
    "totalTime": "0h 20m 0s",
    "lastLocation": {"lat": 40.009, "lng": -74.0, "motion": False},
    "lastConfidence": 100,
    "anomalies": False,
    "narrative": "The device set off at 09:00 and came to rest at 09:20.",
}


def sample_points() -> list[dict]:
    return [
        {"latitude": 40.0, "longitude": -74.0, "timestamp": T0, "motion": True},
        {"latitude": 40.009, "longitude": -74.0, "timestamp": T0 + timedelta(minutes=10), "motion": True},
        {"latitude": 40.009, "longitude": -74.0, "timestamp": T0 + timedelta(minutes=20), "motion": False},
    ]


def completion_response(content: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "choices": [{"message": {"role": "assistant", "content": content}}],
            "usage": {"prompt_tokens": 120, "completion_tokens": 60},
        },
    )


def make_client(handler, api_key: str | None = "test-key") -> SummarizerClient:
    reset_config()
    settings = SummarizerConfig(
        base_url="http://summarizer.test",
        api_key=api_key,
        retry=RetryConfig(max_attempts=2, base_delay=0.0),
    )
    return SummarizerClient(settings=settings, transport=httpx.MockTransport(handler))


def test_resolve_date_range():
    """Dates cover whole UTC days, inclusive."""
    print("\n🧪 Testing date range resolution...")

    start, end = resolve_date_range("2024-05-01", "2024-05-02")
    assert start == datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)
    assert end == datetime(2024, 5, 2, 23, 59, 59, 999000, tzinfo=timezone.utc)

    with pytest.raises(ValueError):
        resolve_date_range("2024-05-02", "2024-05-01")
    with pytest.raises(ValueError):
        resolve_date_range("yesterday", "2024-05-01")

    # Only calendar dates in YYYY-MM-DD form
    for start, end in [
        ("20240501", "20240502"),
        ("2024-W18-3", "2024-05-02"),
        ("2024-05-01", "2024-05-02 "),
        ("2024-05-01T00:00", "2024-05-02"),
    ]:
        with pytest.raises(ValueError):
            resolve_date_range(start, end)

    print("   ✅ Date range resolved")


def test_summarizer_parses_valid_content():
    """A well-formed completion becomes an AiSummary."""
    print("\n🧪 Testing summarizer happy path...")

    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["payload"] = json.loads(request.content)
        return completion_response(json.dumps(VALID_CONTENT))

    async def run():
        pipeline = ReportPipeline(config={}, summarizer=make_client(handler))
        return await pipeline.build_report(7, sample_points())

    report = asyncio.run(run())

    assert seen["url"] == "http://summarizer.test/v1/chat/completions"
    assert seen["auth"] == "Bearer test-key"
    assert seen["payload"]["model"] == "gpt-3.5-turbo"
    assert seen["payload"]["messages"][0]["role"] == "system"
    assert "## Input track data" in seen["payload"]["messages"][1]["content"]

    assert report.device_id == 7
    assert report.report_id is None
    assert report.ai_summary.total_points == 3
    assert report.ai_summary.narrative.startswith("The device set off")
    assert report.overview.total_distance == "1 km 1 m"
    assert report.timeline == [
        "09:00 started moving",
        "09:10 arrived, moved 1001 m",
        "09:20 resting, lasted 0h 10m 0s",
    ]

    print("   ✅ Summary parsed")


def test_malformed_content_raises_and_persists_nothing():
    """Non-JSON content is an UpstreamFormatError; no report row is written."""
    print("\n🧪 Testing malformed summarizer content...")

    def handler(request: httpx.Request) -> httpx.Response:
        return completion_response("Sure! Here is your summary: the device moved.")

    async def run(db_path: Path):
        store = TrackStore(db_path)
        pipeline = ReportPipeline(config={}, store=store, summarizer=make_client(handler))

        with pytest.raises(UpstreamFormatError) as exc_info:
            await pipeline.build_report(7, sample_points())
        assert "Here is your summary" in exc_info.value.raw

        assert await store.get_report(1) is None

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(run(Path(tmp) / "tracks.db"))

    print("   ✅ Malformed content rejected")


def test_missing_choices_and_wrong_shape():
    print("\n🧪 Testing unexpected response shapes...")

    def no_choices(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "x"})

    def not_json(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    messages = [{"role": "user", "content": "hi"}]

    with pytest.raises(UpstreamFormatError):
        asyncio.run(make_client(no_choices).chat_completion(messages))
    with pytest.raises(UpstreamFormatError):
        asyncio.run(make_client(not_json).chat_completion(messages))

    with pytest.raises(UpstreamFormatError):
        SummarizerClient.parse_summary(json.dumps({"totalPoints": 3}))

    print("   ✅ Unexpected shapes rejected")


def test_http_and_connection_errors():
    """HTTP errors and unreachable endpoints surface as SummarizerError."""
    print("\n🧪 Testing summarizer failures...")

    calls = {"count": 0}

    def server_error(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503, text="overloaded")

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    messages = [{"role": "user", "content": "hi"}]

    with pytest.raises(SummarizerError):
        asyncio.run(make_client(server_error).chat_completion(messages))
    assert calls["count"] == 2

    with pytest.raises(SummarizerConnectionError):
        asyncio.run(make_client(refused).chat_completion(messages))

    print("   ✅ Failures surfaced")


def test_mock_summarizer_report_is_stored():
    """The offline summarizer goes through the full store round trip."""
    print("\n🧪 Testing pipeline with mock summarizer and store...")

    async def run(db_path: Path):
        store = TrackStore(db_path)
        pipeline = ReportPipeline(config={}, store=store, summarizer=MockSummarizerClient())

        report = await pipeline.build_report(7, sample_points())
        stored = await store.get_report(report.report_id)
        return report, stored

    with tempfile.TemporaryDirectory() as tmp:
        report, stored = asyncio.run(run(Path(tmp) / "tracks.db"))

    assert report.report_id == 1
    assert report.confidence == 100
    assert "09:10 arrived, moved 1001 m" in report.ai_summary.narrative

    assert stored["device_id"] == 7
    assert stored["confidence"] == 100
    assert stored["summary"]["totalPoints"] == 3
    assert stored["summary"]["lastLocation"] == {"lat": 40.009, "lng": -74.0, "motion": False}
    assert stored["summary"]["timeline"] == report.timeline

    print("   ✅ Report stored")


def test_device_report_from_store():
    """Stored tracks are filtered, converted and reported."""
    print("\n🧪 Testing device report from stored tracks...")

    async def run(db_path: Path):
        store = TrackStore(db_path)
        await store.add_track(7, 40.0, -74.0, T0, motion=None, method="wifi", accuracy=30.0)
        await store.add_track(7, None, None, T0 + timedelta(minutes=5))
        await store.add_track(7, 40.0, -74.0, T0 + timedelta(minutes=10), motion=True, method="cell")
        other_device = LocationPoint(
            latitude=41.0, longitude=-73.0, timestamp=T0 + timedelta(minutes=12),
            motion=True, method="wifi", accuracy=12.5,
        )
        await store.add_point(8, other_device)
        await store.add_point(7, LocationPoint(
            latitude=40.0, longitude=-74.0, timestamp=T0 + timedelta(days=2), motion=True,
        ))

        other_records = await store.fetch_tracks(8, *resolve_date_range("2024-05-01", "2024-05-01"))
        assert [r.to_point() for r in other_records] == [other_device]

        records = await store.fetch_tracks(7, *resolve_date_range("2024-05-01", "2024-05-01"))
        points = [r.to_point() for r in records if r.is_locatable]

        pipeline = ReportPipeline(config={}, store=store, use_mock_summarizer=True)
        report = await pipeline.build_device_report(7, "2024-05-01", "2024-05-01")
        return records, points, report

    with tempfile.TemporaryDirectory() as tmp:
        records, points, report = asyncio.run(run(Path(tmp) / "tracks.db"))

    assert len(records) == 3
    assert len(points) == 2
    assert points[0].method.value == "wifi"
    assert points[0].motion is False
    assert points[1].method.value == "gps"

    assert report.overview.total_points == 2
    assert report.timeline == ["09:00 started stationary", "09:10 resumed moving"]
    assert report.report_id is not None

    print("   ✅ Device report built from store")


def test_device_report_without_usable_tracks():
    print("\n🧪 Testing device report without usable tracks...")

    async def run(db_path: Path):
        store = TrackStore(db_path)
        pipeline = ReportPipeline(config={}, store=store, use_mock_summarizer=True)

        with pytest.raises(NoTracksFoundError) as exc_info:
            await pipeline.build_device_report(7, "2024-05-01", "2024-05-01")
        assert "No tracks found" in str(exc_info.value)

        await store.add_track(7, None, -74.0, T0)
        with pytest.raises(NoTracksFoundError) as exc_info:
            await pipeline.build_device_report(7, "2024-05-01", "2024-05-01")
        assert "No valid location points" in str(exc_info.value)

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(run(Path(tmp) / "tracks.db"))

    print("   ✅ Missing tracks reported")


def test_low_confidence_warnings():
    print("\n🧪 Testing pipeline warnings...")

    points = [
        {"latitude": 0.0, "longitude": 0.0, "timestamp": T0, "motion": True},
        {"latitude": 0.002, "longitude": 0.0, "timestamp": T0 + timedelta(minutes=1), "motion": False},
    ]

    async def run():
        pipeline = ReportPipeline(config={}, use_mock_summarizer=True)
        return await pipeline.build_report(3, points)

    report = asyncio.run(run())

    assert report.confidence == 60
    assert report.ai_summary.anomalies is True
    assert any("below the anomaly threshold" in w for w in report.warnings)
    assert any("[1]" in w for w in report.warnings)

    print("   ✅ Warnings collected")


class SlowSummarizer(MockSummarizerClient):
    """Mock summarizer that answers late for anomalous tracks."""

    async def summarize(self, summary, details, timeline=None):
        if summary.anomalies:
            await asyncio.sleep(0.05)
        return await super().summarize(summary, details, timeline)


def test_concurrent_reports_keep_their_own_warnings():
    """Reports built at the same time on one pipeline do not share warnings."""
    print("\n🧪 Testing concurrent reports...")

    anomalous = [
        {"latitude": 0.0, "longitude": 0.0, "timestamp": T0, "motion": True},
        {"latitude": 0.002, "longitude": 0.0, "timestamp": T0 + timedelta(minutes=1), "motion": False},
    ]

    async def run():
        pipeline = ReportPipeline(config={}, summarizer=SlowSummarizer())
        return await asyncio.gather(
            pipeline.build_report(1, anomalous),
            pipeline.build_report(2, sample_points()),
        )

    flagged, clean = asyncio.run(run())

    assert flagged.device_id == 1
    assert any("below the anomaly threshold" in w for w in flagged.warnings)
    assert any("[1]" in w for w in flagged.warnings)
    assert clean.device_id == 2
    assert clean.warnings == []

    print("   ✅ Warnings kept per report")


def test_concurrent_summarizer_calls():
    """One SummarizerClient serves overlapping requests."""
    print("\n🧪 Testing concurrent summarizer calls...")

    calls = {"count": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            await asyncio.sleep(0.05)
        return completion_response(json.dumps(VALID_CONTENT))

    async def run():
        pipeline = ReportPipeline(config={}, summarizer=make_client(handler))
        return await asyncio.gather(
            pipeline.build_report(1, sample_points()),
            pipeline.build_report(2, sample_points()),
        )

    first, second = asyncio.run(run())

    assert calls["count"] == 2
    assert first.ai_summary.total_points == 3
    assert second.ai_summary.total_points == 3

    print("   ✅ Both calls completed")


def run_all_tests():
    """Run all tests."""
    print("=" * 60)
    print("Pipeline Tests")
    print("=" * 60)

    test_resolve_date_range()
    test_summarizer_parses_valid_content()
    test_malformed_content_raises_and_persists_nothing()
    test_missing_choices_and_wrong_shape()
    test_http_and_connection_errors()
    test_mock_summarizer_report_is_stored()
    test_device_report_from_store()
    test_device_report_without_usable_tracks()
    test_low_confidence_warnings()
    test_concurrent_reports_keep_their_own_warnings()
    test_concurrent_summarizer_calls()

    print("\n" + "=" * 60)
    print("🎉 All pipeline tests passed!")
    print("=" * 60)


if __name__ == "__main__":
    run_all_tests()
