"""
Pipeline Module

This module orchestrates a complete device report: loading tracks,
running the engine, calling the summarizer and persisting the result.
"""

import logging
import re
import time
from datetime import date, datetime, time as dt_time, timezone
from pathlib import Path
from typing import Any, Sequence

from .engine import PointInput, ReportEngine, validate_points
from .errors import NoTracksFoundError, TrackReportError
from .llm_client import MockSummarizerClient, SummarizerClient
from .models import DeviceReport
from .storage import TrackStore
from .utils.helpers import load_config


logger = logging.getLogger(__name__)


DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def resolve_date_range(start_date: str, end_date: str) -> tuple[datetime, datetime]:
    """
    Turn YYYY-MM-DD strings into an inclusive UTC range.

    Returns:
        (start of start_date, last millisecond of end_date)

    Raises:
        ValueError: If a date is malformed or the range is inverted
    """
    for value in (start_date, end_date):
        if not DATE_PATTERN.fullmatch(value):
            raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")

    start_day = date.fromisoformat(start_date)
    end_day = date.fromisoformat(end_date)

    if end_day < start_day:
        raise ValueError(f"endDate {end_date} is before startDate {start_date}")

    start = datetime.combine(start_day, dt_time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_day, dt_time(23, 59, 59, 999000), tzinfo=timezone.utc)
    return start, end


class ReportPipeline:
    """
    Main pipeline orchestrator for device reports.

    Coordinates all stages:
    1. Track loading & pre-filtering
    2. Input validation
    3. Aggregation
    4. Timeline synthesis
    5. Summarizer call
    6. Persistence
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        config_path: str | Path | None = None,
        store: TrackStore | None = None,
        summarizer: SummarizerClient | None = None,
        use_mock_summarizer: bool = False,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Configuration dictionary (overrides config file)
            config_path: Path to config.yaml file
            store: Track store; reports are not persisted without one
            summarizer: Summarizer client (built from config if None)
            use_mock_summarizer: If True, use the offline mock summarizer
        """
        if config is not None:
            self.config = config
        else:
            try:
                self.config = load_config(config_path)
            except FileNotFoundError:
                logger.warning("Config file not found, using defaults")
                self.config = {}

        self.engine = ReportEngine(self.config)
        self.store = store

        if summarizer is not None:
            self.summarizer = summarizer
        elif use_mock_summarizer:
            self.summarizer = MockSummarizerClient()
        else:
            self.summarizer = SummarizerClient.from_config(self.config)

    @staticmethod
    def _warn(warnings: list[str], message: str) -> None:
        """Log warning and collect it for this run."""
        warnings.append(message)
        logger.warning(message)

    async def build_report(
        self,
        device_id: int,
        points: Sequence[PointInput],
    ) -> DeviceReport:
        """
        Build, summarize and persist a report for a point sequence.

        Args:
            device_id: Device the points belong to
            points: Ordered location points

        Returns:
            DeviceReport

        Raises:
            EmptyInputError, InvalidPointError: On bad input
            SummarizerError: If the summarizer fails; nothing is persisted
        """
        start_time = time.time()
        warnings: list[str] = []

        logger.info(f"Starting report for device {device_id}")

        validated = validate_points(points)

        summary = self.engine.ingest(validated)
        timeline = list(self.engine.timeline(validated))
        details = self.engine.track_details(validated)

        if summary.anomalies:
            self._warn(
                warnings,
                f"Last fix confidence {summary.last_confidence} is below the anomaly threshold"
            )
        if summary.pairwise_anomalies:
            flagged = self.engine.anomaly_indices(validated)
            self._warn(warnings, f"Movement while stationary at points {flagged}")

        ai_summary = await self.summarizer.summarize(summary, details, timeline)

        report_id = None
        if self.store is not None:
            stored = ai_summary.model_dump(mode="json", by_alias=True)
            stored["timeline"] = timeline
            report_id = await self.store.save_report(
                device_id,
                stored,
                confidence=summary.last_confidence,
            )

        processing_time = time.time() - start_time
        logger.info(f"Report for device {device_id} completed in {processing_time:.2f}s")

        return DeviceReport(
            device_id=device_id,
            overview=summary,
            timeline=timeline,
            last_location=summary.last_location,
            confidence=summary.last_confidence,
            ai_summary=ai_summary,
            report_id=report_id,
            processing_time_seconds=processing_time,
            warnings=warnings,
        )

    async def build_device_report(
        self,
        device_id: int,
        start_date: str,
        end_date: str,
    ) -> DeviceReport:
        """
        Build a report from stored tracks of a device.

        Args:
            device_id: Device identifier
            start_date: First day, YYYY-MM-DD (UTC)
            end_date: Last day, YYYY-MM-DD (UTC), inclusive

        Raises:
            NoTracksFoundError: If no tracks, or no locatable tracks, exist
            ValueError: If the dates are malformed
        """
        if self.store is None:
            raise TrackReportError("No track store configured")

        start, end = resolve_date_range(start_date, end_date)
        records = await self.store.fetch_tracks(device_id, start, end)

        if not records:
            raise NoTracksFoundError("No tracks found for this device and date range")

        # Pre-filter rows the engine would reject
        points = [record.to_point() for record in records if record.is_locatable]
        skipped = len(records) - len(points)
        if skipped:
            logger.info(f"Skipped {skipped} tracks without coordinates or device time")

        if not points:
            raise NoTracksFoundError("No valid location points found")

        return await self.build_report(device_id, points)
