"""
Pydantic schemas for audit and inspection input data.
"""

import uuid
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Answer(str, Enum):
    """Checklist answer values."""
    YES = "Yes"
    NO = "No"
    NOT_APPLICABLE = "N/A"


# Accepted spellings, including the Spanish labels used by the checklist app
ANSWER_ALIASES = {
    "yes": Answer.YES,
    "y": Answer.YES,
    "si": Answer.YES,
    "sí": Answer.YES,
    "no": Answer.NO,
    "n": Answer.NO,
    "n/a": Answer.NOT_APPLICABLE,
    "na": Answer.NOT_APPLICABLE,
    "not applicable": Answer.NOT_APPLICABLE,
    "notapplicable": Answer.NOT_APPLICABLE,
}

TALLY_KEYS = (Answer.YES.value, Answer.NO.value, Answer.NOT_APPLICABLE.value)


class AnswerEntry(BaseModel):
    """One answered checklist question."""
    model_config = ConfigDict(frozen=True)

    answer: Optional[Answer] = Field(None, description="Answer, None when unset")
    observation: Optional[str] = Field(None, description="Free-text observation")
    photo: Optional[Union[str, bytes]] = Field(
        None, description="Photo evidence: URL, data URI or inline bytes"
    )

    @field_validator("answer", mode="before")
    @classmethod
    def normalize_answer(cls, v):
        """Map answer aliases onto the Answer enum."""
        if v is None or isinstance(v, Answer):
            return v
        if isinstance(v, str):
            key = v.strip().lower()
            if not key:
                return None
            if key in ANSWER_ALIASES:
                return ANSWER_ALIASES[key]
        return v

    @field_validator("observation", "photo", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat blank strings and empty payloads as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        if isinstance(v, bytes) and not v:
            return None
        return v


class AuditMetadata(BaseModel):
    """Who audited which area, and when."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    auditor_name: str = Field(
        "",
        validation_alias=AliasChoices("auditor_name", "auditor", "nombreAuditor"),
    )
    area: str = Field(..., min_length=1, description="Physical area audited")
    date: str = Field("", validation_alias=AliasChoices("date", "fecha"))

    @field_validator("area")
    @classmethod
    def validate_area(cls, v: str) -> str:
        """Area must carry a non-blank name."""
        v = v.strip()
        if not v:
            raise ValueError("Audit area is required")
        return v


class AuditRecord(BaseModel):
    """One completed checklist submission."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    metadata: AuditMetadata = Field(
        ..., validation_alias=AliasChoices("metadata", "audit_data", "auditData")
    )
    answers: Dict[int, AnswerEntry] = Field(default_factory=dict)

    @property
    def area(self) -> str:
        return self.metadata.area

    def ordered_answers(self):
        """Answer entries in ascending question order."""
        return sorted(self.answers.items())


class ReportSummary(BaseModel):
    """Headline statistics printed at the top of every report."""
    average_compliance: float = Field(..., ge=0, le=100)
    lowest_compliance_area: str = "N/A"

    @property
    def average_compliance_label(self) -> str:
        return f"{self.average_compliance:.1f}%"


# ============================================================================
# FIRE EXTINGUISHER INSPECTIONS
# ============================================================================

class ExtinguisherArea(BaseModel):
    """Area that holds extinguishers."""
    id: str
    name: str


class Extinguisher(BaseModel):
    """A fire extinguisher installed in an area."""
    id: str
    area_id: str
    location: str
    series: Optional[str] = None
    type: Optional[str] = None
    capacity: Optional[str] = None


class ExtinguisherInspection(BaseModel):
    """Inspection of one extinguisher against the fixed question list."""
    extinguisher_id: str
    created_at: Optional[str] = None
    answers: Dict[int, AnswerEntry] = Field(default_factory=dict)


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
