"""
Confidence Scoring Module

This module scores how plausible a location fix is given its predecessor:
- Teleport detection (huge jump in a short time)
- Stationary device reporting movement
- Implausible travel speed
- Stale fixes after long gaps

Rules are kept as an ordered table so new ones can be appended without
touching the scoring loop.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from .models import ConfidenceResult, LocationPoint
from .utils.helpers import point_bearing, point_distance, round_half_up, seconds_between


logger = logging.getLogger(__name__)


MAX_CONFIDENCE = 100
MIN_CONFIDENCE = 0


@dataclass(frozen=True)
class PairMetrics:
    """Measurements for an ordered (previous, current) pair of fixes."""
    prev: LocationPoint
    curr: LocationPoint
    distance: float  # meters
    delta_seconds: float  # may be <= 0 for out-of-order input

    @property
    def speed(self) -> float:
        """Ground speed in m/s, 0 when no time elapsed."""
        if self.delta_seconds <= 0:
            return 0.0
        return self.distance / self.delta_seconds


@dataclass(frozen=True)
class ConfidenceRule:
    """
    A single scoring rule.

    When the predicate matches, the running confidence is either replaced by
    ``override`` or reduced by ``penalty``.
    """
    name: str
    predicate: Callable[[PairMetrics], bool]
    penalty: float = 0
    override: float | None = None

    def apply(self, confidence: float, metrics: PairMetrics) -> float:
        if not self.predicate(metrics):
            return confidence
        if self.override is not None:
            return self.override
        return confidence - self.penalty


def default_rules(config: dict[str, Any] | None = None) -> tuple[ConfidenceRule, ...]:
    """
    Build the standard rule table.

    Args:
        config: The ``confidence`` section of config.yaml

    Returns:
        Rules in evaluation order
    """
    cfg = config or {}

    teleport_distance = cfg.get("teleport_distance_m", 100_000)
    teleport_window = cfg.get("teleport_window_s", 600)
    stationary_distance = cfg.get("stationary_distance_m", 50)
    stationary_penalty = cfg.get("stationary_penalty", 40)
    max_speed = cfg.get("max_speed_mps", 55)
    speed_penalty = cfg.get("speed_penalty", 40)
    stale_gap = cfg.get("stale_gap_s", 1800)
    stale_distance = cfg.get("stale_distance_m", 1000)
    stale_penalty = cfg.get("stale_penalty", 20)

    return (
        ConfidenceRule(
            name="teleport",
            predicate=lambda m: m.distance > teleport_distance and m.delta_seconds < teleport_window,
            override=MIN_CONFIDENCE,
        ),
        ConfidenceRule(
            name="stationary_but_moved",
            predicate=lambda m: not m.curr.motion and m.distance > stationary_distance,
            penalty=stationary_penalty,
        ),
        ConfidenceRule(
            name="implausible_speed",
            predicate=lambda m: m.speed > max_speed,
            penalty=speed_penalty,
        ),
        ConfidenceRule(
            name="stale_fix",
            predicate=lambda m: m.delta_seconds > stale_gap and m.distance > stale_distance,
            penalty=stale_penalty,
        ),
    )


class ConfidenceScorer:
    """
    Rule-based 0-100 trust score for a fix given its predecessor.

    Deterministic and side-effect free.
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        rules: Sequence[ConfidenceRule] | None = None,
    ):
        """
        Initialize confidence scorer.

        Args:
            config: Configuration dictionary with a ``confidence`` section
            rules: Explicit rule table (defaults built from config)
        """
        self.config = config or {}
        confidence_config = self.config.get("confidence", {})

        if rules is None:
            rules = default_rules(confidence_config)
        self.rules: tuple[ConfidenceRule, ...] = tuple(rules)

    def with_rules(self, *extra: ConfidenceRule) -> "ConfidenceScorer":
        """Return a scorer that evaluates ``extra`` after the current rules."""
        return ConfidenceScorer(self.config, rules=self.rules + extra)

    def score(
        self,
        prev: LocationPoint | None,
        curr: LocationPoint,
    ) -> ConfidenceResult:
        """
        Score the current fix.

        Args:
            prev: Previous fix, or None for the first point of a sequence
            curr: Current fix

        Returns:
            ConfidenceResult with clamped confidence, distance and bearing
        """
        if prev is None:
            return ConfidenceResult(confidence=MAX_CONFIDENCE, distance=0.0, bearing=0.0)

        metrics = PairMetrics(
            prev=prev,
            curr=curr,
            distance=point_distance(prev, curr),
            delta_seconds=seconds_between(prev.timestamp, curr.timestamp),
        )

        confidence = MAX_CONFIDENCE
        for rule in self.rules:
            updated = rule.apply(confidence, metrics)
            if updated != confidence:
                logger.debug(f"Rule {rule.name} adjusted confidence {confidence} -> {updated}")
            confidence = updated

        # Fractional penalties from config still yield an integer score
        confidence = max(MIN_CONFIDENCE, min(round_half_up(confidence), MAX_CONFIDENCE))

        return ConfidenceResult(
            confidence=confidence,
            distance=metrics.distance,
            bearing=point_bearing(prev, curr),
        )

    def score_sequence(
        self,
        points: Sequence[LocationPoint],
    ) -> list[ConfidenceResult]:
        """Score every point of an ordered sequence against its predecessor."""
        results: list[ConfidenceResult] = []
        prev: LocationPoint | None = None

        for point in points:
            results.append(self.score(prev, point))
            prev = point

        return results
