"""
Data aggregation for reports.

Flattens completed audits into per-answer rows, groups them by area and
tallies answers per question and area. Ordering always follows the input:
audits in the order given, questions ascending, areas by first appearance.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from src.reporting.errors import AggregationError
from src.reporting.image_resolver import PhotoReference, ResolvedImage, photo_key
from src.schemas.models import Answer, AuditRecord, TALLY_KEYS
from utils.logger import get_logger

logger = get_logger(__name__, component="AGGREGATOR")

UNSET_ANSWER_LABEL = "N/A"


def question_placeholder(index: int) -> str:
    """Label for an answer whose question index is not declared."""
    return f"Question {index + 1} not found"


@dataclass(frozen=True)
class ReportRow:
    """One (audit, question) pair flattened for display."""
    area: str
    date: str
    auditor: str
    question_number: int
    question_text: str
    answer: Optional[Answer] = None
    observation: str = ""
    photo_ref: Optional[PhotoReference] = None
    photo: Optional[ResolvedImage] = None
    audit_id: str = ""

    @property
    def question_label(self) -> str:
        return f"{self.question_number}. {self.question_text}"

    @property
    def answer_label(self) -> str:
        return self.answer.value if self.answer else UNSET_ANSWER_LABEL

    @property
    def has_photo_ref(self) -> bool:
        return self.photo_ref is not None

    @property
    def photo_key(self) -> Optional[str]:
        return photo_key(self.photo_ref) if self.photo_ref is not None else None


@dataclass(frozen=True)
class AreaTally:
    """Answer counts for one area."""
    area: str
    counts: Dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.counts.values())


@dataclass(frozen=True)
class QuestionStat:
    """Per-area answer counts for one declared question."""
    index: int
    question: str
    stats: List[AreaTally] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.stats)

    def totals(self) -> Dict[str, int]:
        """Counts summed over all areas."""
        totals = {key: 0 for key in TALLY_KEYS}
        for tally in self.stats:
            for key in TALLY_KEYS:
                totals[key] += tally.counts.get(key, 0)
        return totals


@dataclass(frozen=True)
class ReportData:
    """Everything the renderers draw from, built once per report."""
    rows: List[ReportRow]
    area_groups: Dict[str, List[ReportRow]]
    question_stats: List[QuestionStat]

    def sorted_areas(self) -> List[str]:
        """Area names in alphabetical display order."""
        return sorted(self.area_groups, key=str.casefold)

    def photo_references(
        self,
        predicate: Optional[Callable[[ReportRow], bool]] = None,
    ) -> List[PhotoReference]:
        """Photo references of rows (optionally filtered), in row order."""
        return [
            row.photo_ref
            for row in self.rows
            if row.photo_ref is not None and (predicate is None or predicate(row))
        ]

    def rows_by_audit(self) -> Dict[str, List[ReportRow]]:
        """Rows of each audit, keyed by audit id, in question order."""
        groups: Dict[str, List[ReportRow]] = {}
        for row in self.rows:
            groups.setdefault(row.audit_id, []).append(row)
        return groups

    def photo_rows(self) -> List[ReportRow]:
        """Rows that carry a photo reference, resolved or not."""
        return [row for row in self.rows if row.has_photo_ref]

    def attach_photos(self, resolved: Mapping[str, Optional[ResolvedImage]]) -> "ReportData":
        """
        Return a copy whose rows carry their resolved photos.

        Rows whose photo was not resolved keep ``photo=None``.
        """
        rows = [
            replace(row, photo=resolved.get(row.photo_key)) if row.has_photo_ref else row
            for row in self.rows
        ]
        return ReportData(
            rows=rows,
            area_groups=_group_by_area(rows),
            question_stats=self.question_stats,
        )


def _group_by_area(rows: Sequence[ReportRow]) -> Dict[str, List[ReportRow]]:
    groups: Dict[str, List[ReportRow]] = {}
    for row in rows:
        groups.setdefault(row.area, []).append(row)
    return groups


def _coerce_audit(audit: Union[AuditRecord, Mapping[str, Any]], position: int) -> AuditRecord:
    if isinstance(audit, AuditRecord):
        return audit
    if isinstance(audit, Mapping):
        try:
            return AuditRecord.model_validate(audit)
        except ValidationError as e:
            fields = ", ".join(
                ".".join(str(loc) for loc in error["loc"]) for error in e.errors()
            )
            raise AggregationError(f"malformed audit record ({fields})", position) from e
    raise AggregationError(f"unsupported audit type {type(audit).__name__}", position)


def coerce_audits(
    audits: Sequence[Union[AuditRecord, Mapping[str, Any]]],
) -> List[AuditRecord]:
    """
    Validate audits given as models or plain dicts.

    Raises:
        AggregationError: If an audit is malformed, naming its position
    """
    return [_coerce_audit(audit, position) for position, audit in enumerate(audits)]


def aggregate(
    audits: Sequence[Union[AuditRecord, Mapping[str, Any]]],
    question_texts: Sequence[str],
) -> ReportData:
    """
    Build rows, area groups and per-question statistics.

    Args:
        audits: Completed audits, as AuditRecord instances or plain dicts
        question_texts: Declared questions, index-aligned with answer keys

    Returns:
        ReportData

    Raises:
        AggregationError: If an audit is malformed
    """
    if any(not isinstance(text, str) for text in question_texts):
        raise AggregationError("question texts must be strings")

    records = coerce_audits(audits)

    rows: List[ReportRow] = []
    tallies: Dict[int, Dict[str, Dict[str, int]]] = {}

    for record in records:
        meta = record.metadata
        for index, entry in record.ordered_answers():
            if 0 <= index < len(question_texts):
                question_text = question_texts[index]
            else:
                question_text = question_placeholder(index)
                logger.debug(f"Audit {record.id}: unknown question index {index}")

            rows.append(ReportRow(
                area=meta.area,
                date=meta.date,
                auditor=meta.auditor_name,
                question_number=index + 1,
                question_text=question_text,
                answer=entry.answer,
                observation=entry.observation or "",
                photo_ref=entry.photo,
                audit_id=record.id,
            ))

            counts = tallies.setdefault(index, {}).setdefault(
                meta.area, {key: 0 for key in TALLY_KEYS}
            )
            if entry.answer is not None:
                counts[entry.answer.value] += 1

    question_stats = [
        QuestionStat(
            index=index,
            question=f"{index + 1}. {text}",
            stats=[
                AreaTally(area=area, counts=dict(counts))
                for area, counts in tallies.get(index, {}).items()
            ],
        )
        for index, text in enumerate(question_texts)
    ]

    data = ReportData(
        rows=rows,
        area_groups=_group_by_area(rows),
        question_stats=question_stats,
    )
    logger.info(
        f"Aggregated {len(records)} audit(s): {len(rows)} rows, "
        f"{len(data.area_groups)} area(s), {len(question_stats)} question(s)"
    )
    return data
