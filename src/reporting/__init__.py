"""
Reporting module for warehouse audit reports.

Importing the package registers the PDF, workbook and document renderers.
"""

from src.reporting.errors import (
    ReportError,
    ImageUnresolvable,
    AggregationError,
    SerializationError,
)
from src.reporting.aggregator import (
    ReportRow,
    AreaTally,
    QuestionStat,
    ReportData,
    aggregate,
    coerce_audits,
)
from src.reporting.image_resolver import ResolvedImage, resolve_image, resolve_images
from src.reporting.layout import ScaledDimension, LayoutCursor, scale, needs_break, rows_spanned
from src.reporting.kinds import ReportFormat, ReportKind, build_filename
from src.reporting.extinguishers import (
    EXTINGUISHER_QUESTIONS,
    ExtinguisherEntry,
    ExtinguisherRoster,
    extinguisher_audits,
    extinguisher_roster,
)
from src.reporting.compliance import build_summary, calculate_compliance
from src.reporting.base import (
    ChartImage,
    ChartSet,
    RenderPayload,
    ReportRenderer,
    clean_text,
    get_renderer,
)
from src.reporting.pdf_renderer import FixedPageRenderer
from src.reporting.xlsx_renderer import WorkbookRenderer
from src.reporting.docx_renderer import FlowingDocumentRenderer

__all__ = [
    "ReportError",
    "ImageUnresolvable",
    "AggregationError",
    "SerializationError",
    "ReportRow",
    "AreaTally",
    "QuestionStat",
    "ReportData",
    "aggregate",
    "coerce_audits",
    "ResolvedImage",
    "resolve_image",
    "resolve_images",
    "ScaledDimension",
    "LayoutCursor",
    "scale",
    "needs_break",
    "rows_spanned",
    "ReportFormat",
    "ReportKind",
    "build_filename",
    "EXTINGUISHER_QUESTIONS",
    "ExtinguisherEntry",
    "ExtinguisherRoster",
    "extinguisher_audits",
    "extinguisher_roster",
    "build_summary",
    "calculate_compliance",
    "ChartImage",
    "ChartSet",
    "RenderPayload",
    "ReportRenderer",
    "clean_text",
    "get_renderer",
    "FixedPageRenderer",
    "WorkbookRenderer",
    "FlowingDocumentRenderer",
]
