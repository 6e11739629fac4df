"""
Unit tests for compliance statistics.
"""

import pytest

from src.reporting.compliance import (
    average_compliance,
    build_summary,
    calculate_compliance,
    compliance_by_area,
    lowest_compliance_area,
)
from src.schemas.models import AnswerEntry, AuditRecord


def _audit(area, *answers):
    return AuditRecord.model_validate({
        "metadata": {"area": area},
        "answers": {i: {"answer": a} for i, a in enumerate(answers)},
    })


class TestCalculateCompliance:

    def test_ratio_of_yes_over_yes_and_no(self):
        answers = {0: AnswerEntry(answer="Yes"), 1: AnswerEntry(answer="No"), 2: AnswerEntry(answer="Yes")}
        assert calculate_compliance(answers) == pytest.approx(200 / 3)

    def test_not_applicable_ignored(self):
        answers = {0: AnswerEntry(answer="Yes"), 1: AnswerEntry(answer="N/A"), 2: AnswerEntry()}
        assert calculate_compliance(answers) == 100

    def test_no_relevant_answers_is_fully_compliant(self):
        assert calculate_compliance({0: AnswerEntry(answer="N/A")}) == 100
        assert calculate_compliance({}) == 100


class TestAggregateCompliance:

    def test_average(self):
        audits = [_audit("Dock", "Yes", "No"), _audit("Dock", "Yes", "Yes")]
        assert average_compliance(audits) == pytest.approx(75)

    def test_average_of_nothing(self):
        assert average_compliance([]) == 0

    def test_by_area_and_lowest(self):
        audits = [
            _audit("Dock", "Yes", "No"),
            _audit("Office", "No", "No"),
            _audit("Dock", "Yes", "Yes"),
        ]

        assert compliance_by_area(audits) == {"Dock": pytest.approx(75), "Office": 0}
        assert lowest_compliance_area(audits) == "Office"

    def test_lowest_tie_goes_to_first_area(self):
        audits = [_audit("Dock", "No"), _audit("Office", "No")]
        assert lowest_compliance_area(audits) == "Dock"

    def test_lowest_of_nothing(self):
        assert lowest_compliance_area([]) == "N/A"

    def test_build_summary(self, audits):
        summary = build_summary(audits)

        # Warehouse: 1 Yes / 1 No -> 50; Assembly: 2 Yes / 1 No -> 66.7
        assert summary.average_compliance == pytest.approx((50 + 200 / 3) / 2)
        assert summary.lowest_compliance_area == "Warehouse"
        assert summary.average_compliance_label == "58.3%"
