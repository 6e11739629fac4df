"""
Compliance statistics used for report summaries.
"""

from typing import Dict, List, Mapping, Sequence

from src.schemas.models import Answer, AnswerEntry, AuditRecord, ReportSummary


def calculate_compliance(answers: Mapping[int, AnswerEntry]) -> float:
    """
    Percentage of Yes among the Yes/No answers of one audit.

    N/A and unset answers are ignored. An audit without any Yes/No answer is
    fully compliant (100).
    """
    relevant = [a for a in answers.values() if a.answer in (Answer.YES, Answer.NO)]
    if not relevant:
        return 100.0
    yes_count = sum(1 for a in relevant if a.answer == Answer.YES)
    return yes_count / len(relevant) * 100


def average_compliance(audits: Sequence[AuditRecord]) -> float:
    """Mean compliance over audits, 0 when there are none."""
    if not audits:
        return 0.0
    return sum(calculate_compliance(a.answers) for a in audits) / len(audits)


def compliance_by_area(audits: Sequence[AuditRecord]) -> Dict[str, float]:
    """Mean compliance per area, areas in first-appearance order."""
    per_area: Dict[str, List[float]] = {}
    for audit in audits:
        per_area.setdefault(audit.area, []).append(calculate_compliance(audit.answers))
    return {area: sum(values) / len(values) for area, values in per_area.items()}


def lowest_compliance_area(audits: Sequence[AuditRecord]) -> str:
    """Area with the lowest mean compliance; first one wins ties."""
    by_area = compliance_by_area(audits)
    if not by_area:
        return "N/A"
    return min(by_area, key=by_area.get)


def build_summary(audits: Sequence[AuditRecord]) -> ReportSummary:
    """Headline statistics computed from the audits themselves."""
    return ReportSummary(
        average_compliance=average_compliance(audits),
        lowest_compliance_area=lowest_compliance_area(audits),
    )
