"""
Exceptions raised while assembling reports.
"""

from typing import Optional


class ReportError(Exception):
    """Base class for report generation failures."""


class ImageUnresolvable(ReportError):
    """A photo reference could not be fetched or decoded."""

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Could not resolve image {reference}: {reason}")


class AggregationError(ReportError):
    """Audit input could not be turned into report data. Fatal."""

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"Audit #{position}: {message}"
        super().__init__(message)


class SerializationError(ReportError):
    """The document writer failed to produce output. Fatal."""

    def __init__(self, report_format: str, message: str):
        self.report_format = report_format
        super().__init__(f"{report_format.upper()} serialization failed: {message}")
