"""
Prompt Builder Module

This module constructs the prompt sent to the external summarizer. The
prompt carries the per-point track details, the engine's own statistics and
the timeline, and asks for a single JSON object in return.
"""

import json
import logging
from typing import Any, Sequence

import numpy as np

from .models import ReportSummary, TrackDetail


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an assistant that summarizes device location tracks.

Rules:
- answer with one JSON object only
- no markdown, no code fences, no extra text
- copy numeric figures from the engine summary, do not recompute them
- the narrative is third-person, chronological and at most five sentences"""


OUTPUT_SCHEMA = """{
  "totalPoints": number,                   // total number of points
  "totalDistance": string,                 // formatted like "1 km 234 m"
  "totalTime": string,                     // formatted like "1h 23m 45s"
  "lastLocation": { "lat": number, "lng": number, "motion": boolean },
  "lastConfidence": number,                // confidence of the last track
  "anomalies": boolean,                    // true if lastConfidence < 70
  "narrative": string                      // short prose description of the trip
}"""


class PromptBuilder:
    """
    Builds the summarizer prompt from engine output.

    Long tracks are downsampled so the prompt stays within the model's
    context; the first and last points are always kept.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize prompt builder.

        Args:
            config: Configuration dictionary with a ``summarizer`` section
        """
        self.config = config or {}
        summarizer_config = self.config.get("summarizer", {})

        self.max_track_lines = summarizer_config.get("max_track_lines", 200)

    def get_system_prompt(self) -> str:
        """Return the system prompt."""
        return SYSTEM_PROMPT

    def format_track_line(self, index: int, detail: TrackDetail) -> str:
        """Render one track detail as a numbered prompt line."""
        return (
            f"{index}. Time: {detail.timestamp.isoformat()}, "
            f"Lat: {detail.latitude}, Lng: {detail.longitude}, "
            f"Motion: {str(detail.motion).lower()}, "
            f"Distance: {detail.distance_km:.3f} km, "
            f"Duration: {detail.duration_sec:.0f} s, "
            f"Confidence: {detail.confidence}"
        )

    def select_details(self, details: Sequence[TrackDetail]) -> list[tuple[int, TrackDetail]]:
        """
        Pick the track details to include, with their 1-based positions.

        Returns:
            (position, detail) pairs in chronological order
        """
        if len(details) <= self.max_track_lines:
            return [(i + 1, d) for i, d in enumerate(details)]

        indices = np.unique(
            np.linspace(0, len(details) - 1, num=self.max_track_lines).round().astype(int)
        )
        logger.info(
            f"Downsampled {len(details)} track points to {len(indices)} prompt lines"
        )
        return [(int(i) + 1, details[int(i)]) for i in indices]

    def build_prompt(
        self,
        details: Sequence[TrackDetail],
        summary: ReportSummary,
        timeline: Sequence[str] | None = None,
    ) -> str:
        """
        Build the complete user prompt.

        Args:
            details: Per-point track details
            summary: Engine-computed summary
            timeline: Rendered timeline entries

        Returns:
            Prompt text
        """
        track_lines = "\n".join(
            self.format_track_line(pos, detail)
            for pos, detail in self.select_details(details)
        )

        engine_summary = {
            "totalPoints": summary.total_points,
            "totalDistance": summary.total_distance,
            "totalTime": summary.total_time,
            "lastLocation": {
                "lat": summary.last_location.latitude,
                "lng": summary.last_location.longitude,
                "motion": summary.last_location.motion,
            },
            "lastConfidence": summary.last_confidence,
            "anomalies": summary.anomalies,
            "motionStatus": summary.motion_status,
            "avgAccuracy": round(summary.avg_accuracy, 1),
        }

        sections = [
            "Analyze the following device track data and generate a JSON summary.",
            "",
            "## Input track data",
            track_lines,
            "",
            "## Engine summary",
            json.dumps(engine_summary, indent=2),
        ]

        if timeline:
            sections.extend([
                "",
                "## Timeline",
                "\n".join(f"- {line}" for line in timeline),
            ])

        sections.extend([
            "",
            "## Output",
            "Output JSON with the following fields:",
            OUTPUT_SCHEMA,
            "",
            "Ensure the output is valid JSON and do NOT include any extra text.",
        ])

        prompt = "\n".join(sections)
        logger.debug(f"Built summarizer prompt ({len(prompt)} chars)")
        return prompt
