"""
State definition for the report generation workflow.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence, TypedDict, Union

from src.reporting.aggregator import ReportData
from src.reporting.base import ChartSet, ReportRenderer
from src.reporting.extinguishers import ExtinguisherRoster
from src.reporting.kinds import ReportFormat, ReportKind
from src.schemas.models import AuditRecord, ReportSummary


class ReportStatus(str, Enum):
    """Lifecycle of one report request."""
    IDLE = "idle"
    AGGREGATING = "aggregating"
    RESOLVING_IMAGES = "resolving_images"
    RENDERING = "rendering"
    SERIALIZED = "serialized"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass(frozen=True)
class ReportOutput:
    """A finished document, ready to hand to the caller."""
    filename: str
    content: bytes
    media_type: str
    format: ReportFormat
    kind: ReportKind
    omitted_photos: int = 0


class ReportState(TypedDict, total=False):
    """State for report workflow."""

    # Input
    report_format: ReportFormat
    kind: ReportKind
    audits: Sequence[Union[AuditRecord, Mapping[str, Any]]]
    questions: List[str]
    summary: Optional[Union[ReportSummary, Mapping[str, Any]]]
    charts: ChartSet
    on_date: date
    renderer: ReportRenderer
    roster: Optional[ExtinguisherRoster]

    # Request tracking
    request_id: str
    start_time: float

    # Intermediate results
    data: Optional[ReportData]
    omitted_photos: int
    content: Optional[bytes]

    # Result
    output: Optional[ReportOutput]
    status: ReportStatus
    error: Optional[Exception]
