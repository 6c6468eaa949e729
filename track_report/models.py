"""
Pydantic models for the Track Report engine.

This module defines all data models used throughout the engine,
including the input location samples, derived analysis results,
the summarizer payload and the final device report.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================

class LocationMethod(str, Enum):
    """Positioning technology used for a fix."""
    GPS = "gps"
    WIFI = "wifi"


class TimelineEventKind(str, Enum):
    """Kinds of narrative timeline entries."""
    TRIP_START = "trip_start"
    RESUMED_MOTION = "resumed_motion"
    REST_STARTED = "rest_started"
    ARRIVED = "arrived"


# =============================================================================
# Input Models - Raw Location Samples
# =============================================================================

class LocationPoint(BaseModel):
    """A single device location sample."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
    timestamp: datetime = Field(..., description="UTC timestamp")
    motion: bool = Field(default=False, description="Device-reported movement state")
    method: LocationMethod | None = Field(None, description="Positioning technology")
    accuracy: float | None = Field(None, ge=0, description="Reported error radius in meters")

    @field_validator("timestamp")
    @classmethod
    def normalize_to_utc(cls, value: datetime) -> datetime:
        """Treat naive timestamps as UTC and convert aware ones to UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# =============================================================================
# Analysis Models
# =============================================================================

class ConfidenceResult(BaseModel):
    """Trust score for a fix given its predecessor."""
    model_config = ConfigDict(frozen=True)

    confidence: int = Field(..., ge=0, le=100)
    distance: float = Field(..., ge=0, description="Meters from the previous fix")
    bearing: float = Field(..., ge=-180, le=180, description="Initial bearing in degrees")


class LastLocation(BaseModel):
    """Most recent position of the device."""
    latitude: float
    longitude: float
    motion: bool
    accuracy: float | None = None
    accuracy_level: str = "Unknown"


class ReportSummary(BaseModel):
    """Aggregate statistics for a point sequence."""
    total_points: int = Field(..., ge=1)
    total_distance_meters: float = Field(..., ge=0)
    total_time_seconds: float = Field(..., ge=0)
    avg_accuracy: float = Field(..., ge=0)
    motion_status: str
    last_confidence: int = Field(..., ge=0, le=100)
    anomalies: bool = Field(..., description="Last confidence fell below the threshold")
    pairwise_anomalies: bool = Field(
        default=False,
        description="Some fix moved while the device reported being stationary",
    )
    last_location: LastLocation

    # Presentation strings
    total_distance: str
    total_time: str


class TimelineEvent(BaseModel):
    """One narrative entry of the trip timeline."""
    model_config = ConfigDict(frozen=True)

    kind: TimelineEventKind
    timestamp: datetime
    text: str
    distance_meters: int | None = None
    duration_seconds: int | None = None


class TrackDetail(BaseModel):
    """Per-point record handed to the summarizer."""
    timestamp: datetime
    latitude: float
    longitude: float
    motion: bool
    distance_km: float = Field(..., ge=0)
    duration_sec: float = Field(..., ge=0)
    confidence: int = Field(..., ge=0, le=100)


# =============================================================================
# Output Models - Summarizer Payload and Device Report
# =============================================================================

class AiLastLocation(BaseModel):
    """Last location as echoed by the summarizer."""
    lat: float
    lng: float
    motion: bool


class AiSummary(BaseModel):
    """
    Structured payload returned by the external summarizer.

    Field aliases match the JSON keys requested in the prompt.
    """
    model_config = ConfigDict(populate_by_name=True)

    total_points: int = Field(..., alias="totalPoints")
    total_distance: str = Field(..., alias="totalDistance")
    total_time: str = Field(..., alias="totalTime")
    last_location: AiLastLocation = Field(..., alias="lastLocation")
    last_confidence: float = Field(..., alias="lastConfidence")
    anomalies: bool
    narrative: str | None = None


class DeviceReport(BaseModel):
    """Final output of the report pipeline."""
    device_id: int
    overview: ReportSummary
    timeline: list[str] = Field(default_factory=list)
    last_location: LastLocation
    confidence: int = Field(..., ge=0, le=100)
    ai_summary: AiSummary

    # Metadata
    report_id: int | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time_seconds: float | None = None
    warnings: list[str] = Field(default_factory=list)
