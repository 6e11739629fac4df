"""
Pydantic schemas for the warehouse audit report engine.
"""

from src.schemas.models import (
    Answer,
    AnswerEntry,
    AuditMetadata,
    AuditRecord,
    ReportSummary,
    ExtinguisherArea,
    Extinguisher,
    ExtinguisherInspection,
    TALLY_KEYS,
)

__all__ = [
    "Answer",
    "AnswerEntry",
    "AuditMetadata",
    "AuditRecord",
    "ReportSummary",
    "ExtinguisherArea",
    "Extinguisher",
    "ExtinguisherInspection",
    "TALLY_KEYS",
]
