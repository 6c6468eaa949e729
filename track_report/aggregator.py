"""
Aggregation Module

This module reduces an ordered point sequence into trip statistics:
- Total distance and elapsed time
- Average reported accuracy
- Motion classification
- Confidence and anomaly flags for the last fix
- Per-point track details for the summarizer
"""

import logging
from typing import Any, Sequence

import numpy as np

from .anomalies import AnomalyDetector
from .confidence import ConfidenceScorer
from .errors import EmptyInputError
from .models import (
    LastLocation,
    LocationPoint,
    ReportSummary,
    TrackDetail,
)
from .utils.helpers import (
    format_distance_km,
    format_duration,
    point_distance,
    seconds_between,
)


logger = logging.getLogger(__name__)


MOTION_VERY_ACTIVE = "Very active"
MOTION_NORMAL = "Normal"
MOTION_SEDENTARY = "Need to move around"


def accuracy_level(accuracy: float | None) -> str:
    """
    Classify a reported accuracy radius.

    Args:
        accuracy: Error radius in meters, or None

    Returns:
        "High", "Medium", "Low" or "Unknown"
    """
    if accuracy is None:
        return "Unknown"
    if accuracy < 20:
        return "High"
    if accuracy < 50:
        return "Medium"
    return "Low"


class TrackAggregator:
    """
    Computes aggregate statistics for a device track.

    Single forward pass; holds no state between calls.
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        scorer: ConfidenceScorer | None = None,
        detector: AnomalyDetector | None = None,
    ):
        """
        Initialize aggregator.

        Args:
            config: Configuration dictionary
            scorer: Confidence scorer (built from config if None)
            detector: Anomaly detector (built from config if None)
        """
        self.config = config or {}
        self.scorer = scorer or ConfidenceScorer(self.config)
        self.detector = detector or AnomalyDetector(self.config)

    def summarize(self, points: Sequence[LocationPoint]) -> ReportSummary:
        """
        Reduce a point sequence into a ReportSummary.

        Args:
            points: Ordered, non-empty list of location points

        Returns:
            ReportSummary with totals, accuracy, motion status and flags

        Raises:
            EmptyInputError: If points is empty
        """
        if not points:
            raise EmptyInputError()

        total_distance = 0.0
        total_time = 0.0
        prev: LocationPoint | None = None

        for point in points:
            if prev is not None:
                total_distance += point_distance(prev, point)
                # Out-of-order timestamps must not subtract from the total
                total_time += max(0.0, seconds_between(prev.timestamp, point.timestamp))
            prev = point

        last = points[-1]
        if len(points) >= 2:
            last_confidence = self.scorer.score(points[-2], last).confidence
        else:
            last_confidence = 100

        summary = ReportSummary(
            total_points=len(points),
            total_distance_meters=total_distance,
            total_time_seconds=total_time,
            avg_accuracy=self.average_accuracy(points),
            motion_status=self.motion_status(points),
            last_confidence=last_confidence,
            anomalies=self.detector.is_low_confidence(last_confidence),
            pairwise_anomalies=self.detector.has_anomalies(points),
            last_location=LastLocation(
                latitude=last.latitude,
                longitude=last.longitude,
                motion=last.motion,
                accuracy=last.accuracy,
                accuracy_level=accuracy_level(last.accuracy),
            ),
            total_distance=format_distance_km(total_distance / 1000),
            total_time=format_duration(total_time),
        )

        logger.info(
            f"Summarized {summary.total_points} points: "
            f"{summary.total_distance} over {summary.total_time}, "
            f"last confidence {summary.last_confidence}"
        )
        return summary

    @staticmethod
    def average_accuracy(points: Sequence[LocationPoint]) -> float:
        """Mean of the defined accuracy values, 0 when none are defined."""
        accuracies = [p.accuracy for p in points if p.accuracy is not None]
        if not accuracies:
            return 0.0
        return float(np.mean(accuracies))

    @staticmethod
    def motion_status(points: Sequence[LocationPoint]) -> str:
        """Classify activity by comparing moving and stationary fixes."""
        motion = np.array([p.motion for p in points], dtype=bool)
        moving = int(np.count_nonzero(motion))
        stationary = len(points) - moving

        if moving > stationary:
            return MOTION_VERY_ACTIVE
        if moving == stationary:
            return MOTION_NORMAL
        return MOTION_SEDENTARY

    def track_details(self, points: Sequence[LocationPoint]) -> list[TrackDetail]:
        """
        Build the per-point records sent to the summarizer.

        Args:
            points: Ordered list of location points

        Returns:
            One TrackDetail per point, first point with zero distance/duration
        """
        details: list[TrackDetail] = []
        prev: LocationPoint | None = None

        for point in points:
            result = self.scorer.score(prev, point)
            duration = 0.0
            if prev is not None:
                duration = max(0.0, seconds_between(prev.timestamp, point.timestamp))

            details.append(TrackDetail(
                timestamp=point.timestamp,
                latitude=point.latitude,
                longitude=point.longitude,
                motion=point.motion,
                distance_km=result.distance / 1000,
                duration_sec=duration,
                confidence=result.confidence,
            ))
            prev = point

        return details
