"""
Timeline Module

Walks a point sequence once and emits narrative entries at movement/rest
transitions:
- trip start (moving or stationary)
- resumed motion after a rest
- rest started, with how long the last leg lasted
- arrival at a new position while moving
"""

import logging
from typing import Any, Iterator, Sequence

from .models import LocationPoint, TimelineEvent, TimelineEventKind
from .utils.helpers import (
    format_clock_time,
    format_duration,
    point_distance,
    round_half_up,
    seconds_between,
)


logger = logging.getLogger(__name__)


class TimelineSynthesizer:
    """
    Builds a chronological textual timeline from location points.

    Entries are produced lazily in a single forward pass.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize timeline synthesizer.

        Args:
            config: Configuration dictionary with a ``timeline`` section
        """
        self.config = config or {}
        timeline_config = self.config.get("timeline", {})

        # Moving legs shorter than this (after rounding) are noise
        self.min_arrival_distance = timeline_config.get("min_arrival_distance_m", 1)

    def events(self, points: Sequence[LocationPoint]) -> Iterator[TimelineEvent]:
        """
        Yield timeline events in chronological order.

        Args:
            points: Ordered list of location points

        Yields:
            TimelineEvent for every state transition
        """
        prev: LocationPoint | None = None

        for point in points:
            if prev is None:
                yield self._trip_start(point)
            else:
                event = self._transition(prev, point)
                if event is not None:
                    yield event
            prev = point

    def lines(self, points: Sequence[LocationPoint]) -> Iterator[str]:
        """Yield the rendered text of each timeline event."""
        for event in self.events(points):
            yield event.text

    def _trip_start(self, point: LocationPoint) -> TimelineEvent:
        state = "moving" if point.motion else "stationary"
        return TimelineEvent(
            kind=TimelineEventKind.TRIP_START,
            timestamp=point.timestamp,
            text=f"{format_clock_time(point.timestamp)} started {state}",
        )

    def _transition(
        self,
        prev: LocationPoint,
        curr: LocationPoint,
    ) -> TimelineEvent | None:
        """Classify the (prev, curr) pair; None means nothing worth telling."""
        time_str = format_clock_time(curr.timestamp)

        if curr.motion and not prev.motion:
            return TimelineEvent(
                kind=TimelineEventKind.RESUMED_MOTION,
                timestamp=curr.timestamp,
                text=f"{time_str} resumed moving",
            )

        if not curr.motion and prev.motion:
            elapsed = max(0.0, seconds_between(prev.timestamp, curr.timestamp))
            duration = round_half_up(elapsed)
            return TimelineEvent(
                kind=TimelineEventKind.REST_STARTED,
                timestamp=curr.timestamp,
                text=f"{time_str} resting, lasted {format_duration(duration)}",
                duration_seconds=duration,
            )

        if curr.motion and prev.motion:
            distance = round_half_up(point_distance(prev, curr))
            if distance >= self.min_arrival_distance:
                return TimelineEvent(
                    kind=TimelineEventKind.ARRIVED,
                    timestamp=curr.timestamp,
                    text=f"{time_str} arrived, moved {distance} m",
                    distance_meters=distance,
                )

        return None
