"""
Error types raised by the Track Report engine and its collaborators.
"""


class TrackReportError(Exception):
    """Base class for all Track Report errors."""
    pass


class EmptyInputError(TrackReportError):
    """Raised when an analysis is requested for an empty point sequence."""

    def __init__(self, message: str = "No location points supplied"):
        super().__init__(message)


class InvalidPointError(TrackReportError):
    """Raised when a point lacks latitude, longitude or timestamp."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Invalid location point at index {index}: {reason}")


class NoTracksFoundError(TrackReportError):
    """Raised when the store has no usable tracks for a device and range."""
    pass


class SummarizerError(TrackReportError):
    """Raised when the external summarizer request fails."""
    pass


class SummarizerConnectionError(SummarizerError):
    """Raised when the summarizer endpoint is not reachable."""
    pass


class UpstreamFormatError(SummarizerError):
    """Raised when the summarizer returns a payload that cannot be parsed."""

    def __init__(self, message: str, raw: str = ""):
        self.raw = raw
        super().__init__(message)
