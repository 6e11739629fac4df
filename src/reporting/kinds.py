"""
Report kinds, output formats and file naming.
"""

from datetime import date
from enum import Enum


class ReportFormat(str, Enum):
    """Supported output formats."""
    PDF = "pdf"
    XLSX = "xlsx"
    DOCX = "docx"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES[self]


MEDIA_TYPES = {
    ReportFormat.PDF: "application/pdf",
    ReportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ReportFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


class ReportKind(str, Enum):
    """What the report is about; drives its title and filename prefix."""
    AUDIT_5S = "audit_5s"
    EXTINGUISHER = "extinguisher"

    @property
    def report_title(self) -> str:
        return {
            ReportKind.AUDIT_5S: "5S Audit Report",
            ReportKind.EXTINGUISHER: "Fire Extinguisher Inspection Report",
        }[self]

    @property
    def filename_prefix(self) -> str:
        return {
            ReportKind.AUDIT_5S: "5S_Audit_Report",
            ReportKind.EXTINGUISHER: "Extinguisher_Report",
        }[self]


def build_filename(kind: ReportKind, report_format: ReportFormat, on_date: date) -> str:
    """``<prefix>_<YYYY-MM-DD>.<ext>``, reproducible for the same inputs."""
    return f"{ReportKind(kind).filename_prefix}_{on_date.isoformat()}.{ReportFormat(report_format).extension}"

