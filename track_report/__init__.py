"""
Track Report: Device Location Analytics and Reporting

Turns an ordered stream of device location samples into per-fix confidence
scores, trip statistics, anomaly flags and a chronological timeline, and
optionally hands the result to an external text generator for a short
narrative report.
"""

__version__ = "1.0.0"
__author__ = "Track Report Team"

from .engine import ReportEngine
from .pipeline import ReportPipeline
from .errors import (
    EmptyInputError,
    InvalidPointError,
    NoTracksFoundError,
    SummarizerError,
    TrackReportError,
    UpstreamFormatError,
)
from .models import (
    AiSummary,
    ConfidenceResult,
    DeviceReport,
    LocationMethod,
    LocationPoint,
    ReportSummary,
    TimelineEvent,
)

__all__ = [
    "AiSummary",
    "ConfidenceResult",
    "DeviceReport",
    "EmptyInputError",
    "InvalidPointError",
    "LocationMethod",
    "LocationPoint",
    "NoTracksFoundError",
    "ReportEngine",
    "ReportPipeline",
    "ReportSummary",
    "SummarizerError",
    "TimelineEvent",
    "TrackReportError",
    "UpstreamFormatError",
]
