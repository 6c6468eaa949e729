"""
Engine Module

Pure, synchronous function-call surface over the analyzers. Validates the
caller's point sequence once and hands it to the aggregator, timeline
synthesizer and confidence scorer. Holds no per-call state, so one engine
may serve concurrent callers.
"""

import logging
from collections.abc import Mapping
from typing import Any, Iterator, Sequence

from pydantic import ValidationError

from .aggregator import TrackAggregator
from .anomalies import AnomalyDetector
from .confidence import ConfidenceScorer
from .errors import EmptyInputError, InvalidPointError
from .models import (
    ConfidenceResult,
    LocationPoint,
    ReportSummary,
    TimelineEvent,
    TrackDetail,
)
from .timeline import TimelineSynthesizer


logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ("latitude", "longitude", "timestamp")

PointInput = LocationPoint | Mapping[str, Any]


def validate_points(points: Sequence[PointInput]) -> list[LocationPoint]:
    """
    Validate a caller-supplied point sequence.

    Args:
        points: LocationPoint instances or raw mappings

    Returns:
        List of LocationPoint in the given order

    Raises:
        EmptyInputError: If the sequence is empty
        InvalidPointError: If any point misses a required field or fails
            validation; points are never skipped
    """
    if not points:
        raise EmptyInputError()

    validated: list[LocationPoint] = []

    for i, raw in enumerate(points):
        if isinstance(raw, LocationPoint):
            # model_construct() bypasses validation, so re-check the basics
            for name in REQUIRED_FIELDS:
                if getattr(raw, name, None) is None:
                    raise InvalidPointError(i, f"missing {name}")
            validated.append(raw)
            continue

        if not isinstance(raw, Mapping):
            raise InvalidPointError(i, f"unsupported point type {type(raw).__name__}")

        for name in REQUIRED_FIELDS:
            if raw.get(name) is None:
                raise InvalidPointError(i, f"missing {name}")

        try:
            validated.append(LocationPoint.model_validate(raw))
        except ValidationError as e:
            raise InvalidPointError(i, str(e)) from e

    for i in range(1, len(validated)):
        if validated[i].timestamp < validated[i - 1].timestamp:
            logger.warning(f"Timestamps not in order at point {i}")

    return validated


class ReportEngine:
    """
    Geo-analytics engine for device location tracks.

    Produces trip statistics, per-point confidence, anomaly flags and a
    textual timeline from an ordered point sequence.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize the engine.

        Args:
            config: Configuration dictionary (from config.yaml)
        """
        self.config = config or {}

        self.scorer = ConfidenceScorer(self.config)
        self.detector = AnomalyDetector(self.config)
        self.aggregator = TrackAggregator(
            self.config,
            scorer=self.scorer,
            detector=self.detector,
        )
        self.synthesizer = TimelineSynthesizer(self.config)

    def ingest(self, points: Sequence[PointInput]) -> ReportSummary:
        """
        Summarize a point sequence.

        Raises:
            EmptyInputError: If points is empty
            InvalidPointError: If a point is missing required fields
        """
        return self.aggregator.summarize(validate_points(points))

    def timeline(self, points: Sequence[PointInput]) -> Iterator[str]:
        """
        Textual timeline entries for a point sequence.

        Validation happens immediately; the entries themselves are lazy.
        """
        return self.synthesizer.lines(validate_points(points))

    def timeline_events(self, points: Sequence[PointInput]) -> Iterator[TimelineEvent]:
        """Structured timeline events for a point sequence."""
        return self.synthesizer.events(validate_points(points))

    def track_details(self, points: Sequence[PointInput]) -> list[TrackDetail]:
        """Per-point distance, duration and confidence records."""
        return self.aggregator.track_details(validate_points(points))

    def anomaly_indices(self, points: Sequence[PointInput]) -> list[int]:
        """Indices of points that moved while reporting no motion."""
        return self.detector.scan(validate_points(points))

    def confidence(
        self,
        prev: LocationPoint | None,
        curr: LocationPoint,
    ) -> ConfidenceResult:
        """Confidence of curr given its predecessor."""
        return self.scorer.score(prev, curr)
