"""
Renderer tests. Output is re-opened with the writer libraries and inspected.
"""

import io
import math
import re
from datetime import date

import pytest
from docx import Document
from openpyxl import load_workbook

from src.reporting import get_renderer
from src.reporting.aggregator import aggregate
from src.reporting.base import ChartImage, ChartSet, RenderPayload, clean_text
from src.reporting.errors import SerializationError
from src.reporting.extinguishers import EXTINGUISHER_QUESTIONS, extinguisher_audits, extinguisher_roster
from src.reporting.image_resolver import resolve_images
from src.reporting.kinds import ReportFormat, ReportKind
from src.reporting.pdf_renderer import FixedPageRenderer
from src.schemas.models import (
    AuditRecord,
    Extinguisher,
    ExtinguisherArea,
    ExtinguisherInspection,
    ReportSummary,
)
from utils.config import config

PDF_IMAGE = re.compile(rb"/Subtype\s*/Image")
PDF_PAGE = re.compile(rb"/Type\s*/Page\b")


@pytest.fixture
def charts(png_bytes):
    return ChartSet(
        area_compliance=ChartImage.from_bytes("area_compliance", png_bytes(600, 300, (10, 10, 200))),
        compliance_history=ChartImage.from_bytes("compliance_history", png_bytes(600, 250, (10, 200, 10))),
        questions=[ChartImage.from_bytes("question_0", png_bytes(400, 200, (120, 120, 0)))],
    )


@pytest.fixture
def payload_factory(audits, questions, png_bytes):
    """Payload with inline photos attached to the given answers."""

    def _make(charts=None, photo_answers=("No",)):
        with_photos = []
        for n, audit in enumerate(audits):
            answers = {}
            for index, entry in audit.answers.items():
                photo = None
                if entry.answer is not None and entry.answer.value in photo_answers:
                    photo = png_bytes(80, 60, (n * 90 + index * 20, 40, 160))
                answers[index] = {
                    "answer": entry.answer,
                    "observation": entry.observation,
                    "photo": photo,
                }
            with_photos.append(AuditRecord.model_validate({
                "id": audit.id,
                "metadata": audit.metadata.model_dump(),
                "answers": answers,
            }))

        data = aggregate(with_photos, questions)
        data = data.attach_photos(resolve_images(data.photo_references()))
        return RenderPayload(
            kind=ReportKind.AUDIT_5S,
            summary=ReportSummary(average_compliance=58.3, lowest_compliance_area="Warehouse"),
            data=data,
            charts=charts or ChartSet(),
            generated_on=date(2024, 3, 5),
        )

    return _make


@pytest.fixture
def extinguisher_payload(png_bytes):
    """Three extinguishers over two areas, one never inspected, one photo."""
    areas = [ExtinguisherArea(id="ar1", name="Loading Dock"), ExtinguisherArea(id="ar2", name="Boiler Room")]
    extinguishers = [
        Extinguisher(id="e1", area_id="ar1", location="North wall", series="PQS-100",
                     type="ABC", capacity="6 kg"),
        Extinguisher(id="e2", area_id="ar1", location="Gate"),
        Extinguisher(id="e3", area_id="ar2", location="Burner"),
    ]
    inspections = [
        ExtinguisherInspection(
            extinguisher_id="e1", created_at="2024-04-01",
            answers={
                0: {"answer": "Yes", "photo": png_bytes(80, 60)},
                3: {"answer": "No", "observation": "Dented"},
            },
        ),
        ExtinguisherInspection(extinguisher_id="e3", answers={1: {"answer": "No"}}),
    ]

    data = aggregate(extinguisher_audits(areas, extinguishers, inspections), EXTINGUISHER_QUESTIONS)
    data = data.attach_photos(resolve_images(data.photo_references()))
    return RenderPayload(
        kind=ReportKind.EXTINGUISHER,
        summary=ReportSummary(average_compliance=33.3),
        data=data,
        charts=ChartSet(),
        generated_on=date(2024, 3, 5),
        roster=extinguisher_roster(areas, extinguishers, inspections),
    )


def _single_audit_payload(audits, questions):
    data = aggregate(audits, questions)
    data = data.attach_photos(resolve_images(data.photo_references()))
    return RenderPayload(
        kind=ReportKind.AUDIT_5S,
        summary=ReportSummary(average_compliance=0),
        data=data,
        charts=ChartSet(),
        generated_on=date(2024, 3, 5),
    )


class TestRendererRegistry:

    def test_fresh_instance_per_call(self):
        assert get_renderer("pdf") is not get_renderer("pdf")
        assert isinstance(get_renderer(ReportFormat.PDF), FixedPageRenderer)

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            get_renderer("odt")


class TestFixedPageRenderer:
    """Tests for the PDF output."""

    def test_produces_pdf(self, payload_factory):
        content = get_renderer("pdf").render(payload_factory())

        assert content.startswith(b"%PDF")
        # Summary page, area sections, question analysis
        assert len(PDF_PAGE.findall(content)) >= 3

    def test_embeds_no_answer_photos_and_charts(self, payload_factory, charts):
        """Two "No" photos plus three charts, each a distinct image."""
        content = get_renderer("pdf").render(payload_factory(charts=charts))

        assert len(PDF_IMAGE.findall(content)) == 5

    def test_only_non_conformities_embedded(self, payload_factory):
        payload = payload_factory(photo_answers=("Yes", "No"))
        content = get_renderer("pdf").render(payload)

        # Photos of "Yes" rows are resolved but never drawn
        assert len(PDF_IMAGE.findall(content)) == 2

    def test_long_area_paginates(self, questions):
        """A table longer than a page is split instead of overflowing."""
        audits = [{
            "metadata": {"area": "Dock"},
            "answers": {i % 3: {"answer": "No", "observation": "Pallet blocking exit " * 8}},
        } for i in range(60)]
        data = aggregate(audits, questions)
        payload = RenderPayload(
            kind=ReportKind.AUDIT_5S,
            summary=ReportSummary(average_compliance=0, lowest_compliance_area="Dock"),
            data=data,
            charts=ChartSet(),
            generated_on=date(2024, 3, 5),
        )

        content = get_renderer("pdf").render(payload)
        assert len(PDF_PAGE.findall(content)) > 4

    def test_writer_failure_is_serialization_error(self, payload_factory, monkeypatch):
        def boom(self, payload):
            raise RuntimeError("disk full")

        monkeypatch.setattr(FixedPageRenderer, "_render", boom)
        with pytest.raises(SerializationError) as exc_info:
            get_renderer("pdf").render(payload_factory())

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert str(exc_info.value) == "PDF serialization failed: disk full"


class TestWorkbookRenderer:
    """Tests for the spreadsheet output."""

    def test_sheets_and_rows(self, payload_factory, charts):
        wb = load_workbook(io.BytesIO(get_renderer("xlsx").render(payload_factory(charts=charts))))

        assert wb.sheetnames == ["Summary", "Audit Detail", "Photo Evidence", "Question Analysis"]

        detail = wb["Audit Detail"]
        assert detail.max_row == 7
        assert detail["A2"].value == "Assembly"
        assert detail["H1"].value == "Photo"

    def test_photo_column_labels(self, audits, questions, charts):
        data = aggregate(audits, questions)
        content = get_renderer("xlsx").render(RenderPayload(
            kind=ReportKind.AUDIT_5S,
            summary=ReportSummary(average_compliance=50),
            data=data,
            charts=charts,
            generated_on=date(2024, 3, 5),
        ))
        detail = load_workbook(io.BytesIO(content))["Audit Detail"]
        labels = [detail.cell(row=r, column=8).value for r in range(2, 8)]

        assert "https://photos.example.com/a1-q2.png" in labels
        assert labels.count("No") == 5

    def test_images_anchored(self, payload_factory, charts):
        wb = load_workbook(io.BytesIO(get_renderer("xlsx").render(payload_factory(charts=charts))))

        assert len(wb["Summary"]._images) == 2
        assert len(wb["Photo Evidence"]._images) == 2
        assert len(wb["Question Analysis"]._images) == 1

    def test_evidence_rows_fit_their_photo(self, payload_factory):
        ws = load_workbook(io.BytesIO(get_renderer("xlsx").render(payload_factory())))["Photo Evidence"]

        # Approximate viewer constants, read from config
        photo_height = config.workbook_photo_width_px * 60 / 80
        expected = math.ceil(photo_height) * config.workbook_points_per_pixel
        assert ws.row_dimensions[2].height == pytest.approx(expected)
        assert ws["H3"].value is None

    def test_unresolved_photo_marked(self, audits, questions):
        data = aggregate(audits, questions).attach_photos({})
        content = get_renderer("xlsx").render(RenderPayload(
            kind=ReportKind.AUDIT_5S,
            summary=ReportSummary(average_compliance=50),
            data=data,
            charts=ChartSet(),
            generated_on=date(2024, 3, 5),
        ))
        ws = load_workbook(io.BytesIO(content))["Photo Evidence"]

        assert ws["H2"].value == "Photo unavailable"


class TestFlowingDocumentRenderer:
    """Tests for the word-processing output."""

    def test_structure(self, payload_factory, charts):
        doc = Document(io.BytesIO(get_renderer("docx").render(payload_factory(charts=charts))))

        # Two area tables and three question tallies
        assert len(doc.tables) == 5
        # Two photos and three charts
        assert len(doc.inline_shapes) == 5

    def test_photo_row_follows_answer_row(self, payload_factory):
        doc = Document(io.BytesIO(get_renderer("docx").render(payload_factory())))
        assembly = doc.tables[0]

        # Header, three answers and one merged photo row
        assert len(assembly.rows) == 5
        assert assembly.rows[1].cells[1].text == "No"
        photo_row = assembly.rows[2]
        assert photo_row.cells[0]._tc is photo_row.cells[-1]._tc

    def test_area_headings_start_new_pages(self, payload_factory):
        doc = Document(io.BytesIO(get_renderer("docx").render(payload_factory())))
        headings = [p for p in doc.paragraphs if p.text.startswith("Area details:")]

        assert [p.text for p in headings] == ["Area details: Assembly", "Area details: Warehouse"]
        assert all(p.paragraph_format.page_break_before for p in headings)

    def test_missing_data_noted(self, questions):
        audits = [{"metadata": {"area": "Dock"}, "answers": {0: {"answer": "Yes"}}}]
        content = get_renderer("docx").render(RenderPayload(
            kind=ReportKind.AUDIT_5S,
            summary=ReportSummary(average_compliance=100),
            data=aggregate(audits, questions),
            charts=ChartSet(),
            generated_on=date(2024, 3, 5),
        ))
        text = "\n".join(p.text for p in Document(io.BytesIO(content)).paragraphs)

        assert "5S Audit Report" in text
        assert text.count("No data recorded for this question.") == 2
        assert "Chart not available." in text


class TestExtinguisherLayouts:
    """Tests for the dedicated extinguisher inventory layout in each format."""

    def test_payload_requires_roster(self, audits, questions):
        with pytest.raises(ValueError):
            RenderPayload(
                kind=ReportKind.EXTINGUISHER,
                summary=ReportSummary(average_compliance=0),
                data=aggregate(audits, questions),
                charts=ChartSet(),
                generated_on=date(2024, 3, 5),
            )

    def test_pdf_shows_every_photo(self, extinguisher_payload):
        content = get_renderer("pdf").render(extinguisher_payload)

        assert content.startswith(b"%PDF")
        # The only photo belongs to a "Yes" answer, no charts are drawn
        assert len(PDF_IMAGE.findall(content)) == 1

    def test_pdf_photo_selection_by_kind(self, extinguisher_payload):
        renderer = get_renderer("pdf")
        yes_row = next(row for row in extinguisher_payload.data.rows if row.has_photo_ref)

        assert renderer.wants_photo(yes_row, ReportKind.EXTINGUISHER)
        assert not renderer.wants_photo(yes_row, ReportKind.AUDIT_5S)

    def test_workbook_sheets_and_counts(self, extinguisher_payload):
        wb = load_workbook(io.BytesIO(get_renderer("xlsx").render(extinguisher_payload)))

        assert wb.sheetnames == ["Summary", "Inspection Detail", "Photo Evidence"]
        summary = wb["Summary"]
        assert summary["A4"].value == "Total areas"
        assert [summary.cell(row=r, column=2).value for r in (4, 5, 6)] == [2, 3, 2]
        assert summary._images == []

    def test_workbook_inspection_detail(self, extinguisher_payload):
        ws = load_workbook(io.BytesIO(get_renderer("xlsx").render(extinguisher_payload)))["Inspection Detail"]

        # Boiler Room: 7 questions, Loading Dock: 7 questions plus one uninspected
        assert ws.max_row == 16
        assert ws["A2"].value == "Boiler Room"
        assert ws["F2"].value == "N/A"

        assert [ws.cell(row=9, column=c).value for c in range(2, 7)] == [
            "North wall", "PQS-100", "ABC", "6 kg", "2024-04-01",
        ]
        assert ws["G9"].value == 1
        assert ws["K9"].value == "Embedded"
        assert ws["I10"].value == "N/A"
        assert ws["I12"].value == "No"
        assert ws["J12"].value == "Dented"

        assert ws["B16"].value == "Gate"
        assert ws["F16"].value == "Not inspected"
        assert ws["G16"].value is None

    def test_workbook_evidence(self, extinguisher_payload):
        ws = load_workbook(io.BytesIO(get_renderer("xlsx").render(extinguisher_payload)))["Photo Evidence"]

        assert ws["B1"].value == "Extinguisher Location"
        assert ws["A2"].value == "Loading Dock"
        assert ws["B2"].value == "North wall"
        assert len(ws._images) == 1

    def test_document_lists_every_extinguisher(self, extinguisher_payload):
        doc = Document(io.BytesIO(get_renderer("docx").render(extinguisher_payload)))
        text = "\n".join(p.text for p in doc.paragraphs)

        assert "Total extinguishers: 3" in text
        assert "Extinguishers inspected: 2" in text
        assert "Extinguisher at: North wall (Series: PQS-100)" in text
        assert "Capacity: 6 kg" in text
        assert text.count("This extinguisher has not been inspected.") == 1
        assert "Question Analysis" not in text
        assert "Chart not available." not in text

        burner, north_wall = doc.tables
        # Header and the full checklist, plus one merged photo row
        assert len(burner.rows) == 8
        assert len(north_wall.rows) == 9
        assert north_wall.rows[6].cells[2].text == "N/A"
        assert len(doc.inline_shapes) == 1


class TestControlCharacters:
    """Free text pasted from other documents carries C0 control characters."""

    def test_clean_text(self):
        assert clean_text("line\x0bbreak\x00") == "linebreak"
        assert clean_text("tab\tand\nnewline") == "tab\tand\nnewline"
        assert clean_text(3) == 3
        assert clean_text(None) is None

    @pytest.mark.parametrize("fmt", ["pdf", "xlsx", "docx"])
    def test_vertical_tab_in_observation(self, questions, fmt):
        audits = [{
            "metadata": {"area": "Dock", "auditor": "Ana\x01Ruiz"},
            "answers": {0: {"answer": "No", "observation": "line\x0bbreak from pasted text"}},
        }]

        content = get_renderer(fmt).render(_single_audit_payload(audits, questions))
        assert content

    def test_workbook_cells_cleaned(self, questions):
        audits = [{
            "metadata": {"area": "Dock", "auditor": "Ana\x01Ruiz"},
            "answers": {0: {"answer": "No", "observation": "line\x0bbreak from pasted text"}},
        }]
        content = get_renderer("xlsx").render(_single_audit_payload(audits, questions))
        detail = load_workbook(io.BytesIO(content))["Audit Detail"]

        assert detail["C2"].value == "AnaRuiz"
        assert detail["G2"].value == "linebreak from pasted text"

    def test_document_cells_cleaned(self, questions):
        audits = [{
            "metadata": {"area": "Dock", "auditor": "Ana\x01Ruiz"},
            "answers": {0: {"answer": "No", "observation": "line\x0bbreak from pasted text"}},
        }]
        content = get_renderer("docx").render(_single_audit_payload(audits, questions))
        row = Document(io.BytesIO(content)).tables[0].rows[1]

        assert row.cells[2].text == "linebreak from pasted text"
        assert row.cells[3].text == "AnaRuiz"


class TestTallEvidencePhotos:

    def test_photo_beyond_row_limit_spans_rows(self, questions, png_bytes):
        """A photo taller than Excel's row limit covers several default rows."""
        audits = [{
            "metadata": {"area": "Dock"},
            "answers": {
                0: {"answer": "No", "photo": png_bytes(80, 400)},
                1: {"answer": "No", "photo": png_bytes(80, 60)},
            },
        }]
        content = get_renderer("xlsx").render(_single_audit_payload(audits, questions))
        ws = load_workbook(io.BytesIO(content))["Photo Evidence"]

        unit_pt = config.workbook_row_height_px * config.workbook_points_per_pixel
        tall_px = config.workbook_photo_width_px * 400 / 80
        span = math.ceil(tall_px / config.workbook_row_height_px)
        next_row = 2 + span

        assert ws.row_dimensions[2].height == pytest.approx(unit_pt)
        assert ws.row_dimensions[next_row - 1].height == pytest.approx(unit_pt)
        assert ws["A3"].value is None
        assert ws.cell(row=next_row, column=1).value == "Dock"

        short_px = math.ceil(config.workbook_photo_width_px * 60 / 80)
        assert ws.row_dimensions[next_row].height == pytest.approx(short_px * config.workbook_points_per_pixel)
