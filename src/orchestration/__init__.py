"""
Orchestration module for report generation.
"""

from src.orchestration.state import ReportOutput, ReportState, ReportStatus
from src.orchestration.graph import (
    create_report_workflow,
    generate_report,
    generate_pdf_report,
    generate_xlsx_report,
    generate_docx_report,
    generate_extinguisher_report,
)

__all__ = [
    "ReportOutput",
    "ReportState",
    "ReportStatus",
    "create_report_workflow",
    "generate_report",
    "generate_pdf_report",
    "generate_xlsx_report",
    "generate_docx_report",
    "generate_extinguisher_report",
]
