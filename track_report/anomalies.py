"""
Anomaly Detection Module

Flags implausible movement in a point sequence. Two notions coexist:
- pairwise: a fix moved noticeably while the device reported standing still
- summary: the confidence of the final fix fell below a threshold
"""

import logging
from typing import Any, Sequence

from .models import LocationPoint
from .utils.helpers import point_distance


logger = logging.getLogger(__name__)


class AnomalyDetector:
    """Detects pairwise and low-confidence anomalies."""

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize anomaly detector.

        Args:
            config: Configuration dictionary with an ``anomalies`` section
        """
        self.config = config or {}
        anomaly_config = self.config.get("anomalies", {})

        self.stationary_distance = anomaly_config.get("stationary_distance_m", 50)
        self.confidence_threshold = anomaly_config.get("confidence_threshold", 70)

    def pair_anomaly(self, prev: LocationPoint, curr: LocationPoint) -> bool:
        """True when curr moved too far from prev while reporting no motion."""
        return not curr.motion and point_distance(prev, curr) > self.stationary_distance

    def scan(self, points: Sequence[LocationPoint]) -> list[int]:
        """
        Find every anomalous adjacent pair.

        Returns:
            Indices of the later point of each anomalous pair
        """
        flagged: list[int] = []

        for i in range(1, len(points)):
            if self.pair_anomaly(points[i - 1], points[i]):
                flagged.append(i)

        if flagged:
            logger.info(f"Detected {len(flagged)} stationary-movement anomalies")
        return flagged

    def has_anomalies(self, points: Sequence[LocationPoint]) -> bool:
        """True if any adjacent pair is anomalous."""
        for i in range(1, len(points)):
            if self.pair_anomaly(points[i - 1], points[i]):
                return True
        return False

    def is_low_confidence(self, confidence: int) -> bool:
        """Summary-level flag used for the final fix."""
        return confidence < self.confidence_threshold
