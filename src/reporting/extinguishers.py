"""
Fire extinguisher inventory and inspections.

Inspections are adapted to audit records so they flow through the same
aggregation and photo resolution as 5S audits. The roster keeps what the audit
records cannot carry: every installed extinguisher, inspected or not, with its
series, type and capacity.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from src.schemas.models import (
    AnswerEntry,
    AuditMetadata,
    AuditRecord,
    Extinguisher,
    ExtinguisherArea,
    ExtinguisherInspection,
)
from utils.logger import get_logger

logger = get_logger(__name__, component="EXTINGUISHERS")

# Fixed checklist used for every extinguisher inspection
EXTINGUISHER_QUESTIONS: List[str] = [
    "Is the extinguisher pressurized?",
    "Does the extinguisher have its hose, nozzle and horn?",
    "Does the extinguisher have a pressure gauge?",
    "Is the extinguisher in good condition?",
    "Is the signage visible?",
    "Does the extinguisher have its seal and safety pin?",
    "Is the extinguisher free of obstructions?",
]

UNKNOWN_AREA = "Unknown"
NOT_INSPECTED = "This extinguisher has not been inspected."


def location_label(location: str, series: Optional[str]) -> str:
    return f"{location} (Series: {series})" if series else location


@dataclass(frozen=True)
class ExtinguisherEntry:
    """One installed extinguisher as listed in the report."""
    id: str
    area: str
    location: str
    series: Optional[str] = None
    type: Optional[str] = None
    capacity: Optional[str] = None
    inspected: bool = False
    inspected_at: str = ""

    @property
    def label(self) -> str:
        return location_label(self.location, self.series)


@dataclass(frozen=True)
class ExtinguisherRoster:
    """Every extinguisher of the report, with inventory counts."""
    entries: List[ExtinguisherEntry]
    total_areas: int

    @property
    def total_extinguishers(self) -> int:
        return len(self.entries)

    @property
    def inspected_count(self) -> int:
        return sum(1 for entry in self.entries if entry.inspected)

    def by_area(self) -> Dict[str, List[ExtinguisherEntry]]:
        """Entries grouped by area, areas alphabetical, extinguishers in input order."""
        groups: Dict[str, List[ExtinguisherEntry]] = {}
        for entry in self.entries:
            groups.setdefault(entry.area, []).append(entry)
        return {area: groups[area] for area in sorted(groups, key=str.casefold)}


def _latest_inspections(
    inspections: Sequence[ExtinguisherInspection],
) -> Dict[str, ExtinguisherInspection]:
    # Later inspections of the same extinguisher replace earlier ones
    return {inspection.extinguisher_id: inspection for inspection in inspections}


def extinguisher_roster(
    areas: Sequence[ExtinguisherArea],
    extinguishers: Sequence[Extinguisher],
    inspections: Sequence[ExtinguisherInspection],
) -> ExtinguisherRoster:
    """
    List every extinguisher with its area name and inspection status.

    Extinguishers whose area is not declared are filed under ``"Unknown"``.
    """
    area_names: Dict[str, str] = {a.id: a.name for a in areas}
    latest = _latest_inspections(inspections)

    entries = []
    for ext in extinguishers:
        inspection = latest.get(ext.id)
        entries.append(ExtinguisherEntry(
            id=ext.id,
            area=area_names.get(ext.area_id) or UNKNOWN_AREA,
            location=ext.location,
            series=ext.series,
            type=ext.type,
            capacity=ext.capacity,
            inspected=inspection is not None,
            inspected_at=(inspection.created_at or "") if inspection is not None else "",
        ))

    roster = ExtinguisherRoster(entries=entries, total_areas=len(areas))
    logger.info(
        f"Extinguisher roster: {roster.total_extinguishers} extinguisher(s), "
        f"{roster.inspected_count} inspected, {roster.total_areas} area(s)"
    )
    return roster


def extinguisher_audits(
    areas: Sequence[ExtinguisherArea],
    extinguishers: Sequence[Extinguisher],
    inspections: Sequence[ExtinguisherInspection],
) -> List[AuditRecord]:
    """
    Adapt extinguisher inspections to audit records.

    Each record carries the extinguisher id, and its location label fills the
    auditor column. Every checklist question is present: questions the
    inspection left unanswered get an empty entry and read N/A. Extinguishers
    that were never inspected produce no record; the roster lists them.
    """
    area_names: Dict[str, str] = {a.id: a.name for a in areas}
    latest = _latest_inspections(inspections)

    records = []
    for ext in extinguishers:
        inspection = latest.get(ext.id)
        if inspection is None:
            continue
        answers = {index: AnswerEntry() for index in range(len(EXTINGUISHER_QUESTIONS))}
        answers.update(inspection.answers)
        records.append(AuditRecord(
            id=ext.id,
            metadata=AuditMetadata(
                auditor_name=location_label(ext.location, ext.series),
                area=area_names.get(ext.area_id) or UNKNOWN_AREA,
                date=inspection.created_at or "",
            ),
            answers=answers,
        ))
    return records
