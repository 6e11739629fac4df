"""
End-to-end tests for the report workflow.
"""

import io
from datetime import date

import pytest
from openpyxl import load_workbook

from src.orchestration import (
    ReportStatus,
    create_report_workflow,
    generate_docx_report,
    generate_extinguisher_report,
    generate_pdf_report,
    generate_report,
    generate_xlsx_report,
)
from src.orchestration import nodes
from src.orchestration.nodes import deliver_node
from src.reporting import image_resolver
from src.reporting.base import ChartSet
from src.reporting.errors import AggregationError, SerializationError
from src.reporting.kinds import ReportKind
from src.reporting.pdf_renderer import FixedPageRenderer
from src.reporting.xlsx_renderer import WorkbookRenderer

ON_DATE = date(2024, 3, 5)


@pytest.fixture
def photo_server(monkeypatch, png_bytes, fake_response):
    """Serves a PNG for every URL except those ending in ``missing.png``."""
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        if url.endswith("missing.png"):
            return fake_response(404)
        return fake_response(200, png_bytes())

    monkeypatch.setattr(image_resolver.requests, "get", fake_get)
    return calls


class TestGenerateReport:
    """Tests for the full aggregate, resolve, render, deliver pipeline."""

    def test_pdf_delivered(self, audits, questions, photo_server):
        output = generate_report("pdf", audits, questions, on_date=ON_DATE)

        assert output.filename == "5S_Audit_Report_2024-03-05.pdf"
        assert output.media_type == "application/pdf"
        assert output.content.startswith(b"%PDF")
        assert output.omitted_photos == 0
        assert photo_server == ["https://photos.example.com/a1-q2.png"]

    def test_missing_photo_still_generates(self, audits, questions, photo_server):
        """A 404 photo is omitted and reported, the document is still produced."""
        broken = audits[0].model_copy(update={"answers": {
            **audits[0].answers,
            1: audits[0].answers[1].model_copy(update={"photo": "https://photos.example.com/missing.png"}),
        }})

        output = generate_xlsx_report([broken, audits[1]], questions, on_date=ON_DATE)

        assert output.omitted_photos == 1
        ws = load_workbook(io.BytesIO(output.content))["Photo Evidence"]
        assert ws["H2"].value == "Photo unavailable"
        assert ws._images == []

    def test_format_specific_photo_selection(self, audits, questions, photo_server):
        """Workbooks embed every photo, the PDF only photos of "No" answers."""
        yes_photo = audits[1].answers[1].model_copy(update={"photo": "https://photos.example.com/yes.png"})
        audit = audits[1].model_copy(update={"answers": {**audits[1].answers, 1: yes_photo}})

        generate_pdf_report([audit], questions, on_date=ON_DATE)
        assert photo_server == []

        generate_docx_report([audit], questions, on_date=ON_DATE)
        assert photo_server == ["https://photos.example.com/yes.png"]

    def test_summary_computed_when_omitted(self, audits, questions, photo_server):
        output = generate_xlsx_report(audits, questions, on_date=ON_DATE)
        ws = load_workbook(io.BytesIO(output.content))["Summary"]

        assert ws["B4"].value == "58.3%"
        assert ws["B5"].value == "Warehouse"

    def test_summary_and_charts_from_caller(self, audits, questions, photo_server, png_bytes):
        output = generate_xlsx_report(
            audits,
            questions,
            summary={"average_compliance": 91.3, "lowest_compliance_area": "Dock"},
            charts={"area_compliance": png_bytes(300, 150), "question_2": png_bytes(200, 100, (0, 0, 0))},
            on_date=ON_DATE,
        )
        wb = load_workbook(io.BytesIO(output.content))

        assert wb["Summary"]["B4"].value == "91.3%"
        assert len(wb["Summary"]._images) == 1
        assert len(wb["Question Analysis"]._images) == 1

    def test_extinguisher_report(self, photo_server):
        output = generate_extinguisher_report(
            "xlsx",
            areas=[{"id": "ar1", "name": "Loading Dock"}],
            extinguishers=[
                {"id": "e1", "area_id": "ar1", "location": "North wall", "series": "PQS-100"},
                {"id": "e2", "area_id": "ar1", "location": "Gate"},
            ],
            inspections=[{
                "extinguisher_id": "e1",
                "answers": {2: {"answer": "Yes", "photo": "https://photos.example.com/e1.png"}},
            }],
            on_date=ON_DATE,
        )

        assert output.filename == "Extinguisher_Report_2024-03-05.xlsx"
        assert output.omitted_photos == 0
        assert photo_server == ["https://photos.example.com/e1.png"]

        wb = load_workbook(io.BytesIO(output.content))
        detail = wb["Inspection Detail"]
        # Full checklist for e1, one row for the uninspected e2
        assert detail.max_row == 9
        assert detail["F9"].value == "Not inspected"
        assert len(wb["Photo Evidence"]._images) == 1

    def test_extinguisher_kind_needs_roster(self, audits, questions):
        with pytest.raises(ValueError):
            generate_docx_report(audits, questions, kind="extinguisher", on_date=ON_DATE)

    def test_malformed_audit_fails(self, questions, photo_server):
        with pytest.raises(AggregationError):
            generate_report("pdf", [{"metadata": {}, "answers": {}}], questions)

        # Nothing was fetched once aggregation failed
        assert photo_server == []

    def test_invalid_summary_fails(self, audits, questions, photo_server):
        with pytest.raises(AggregationError) as exc_info:
            generate_report("pdf", audits, questions, summary={"average_compliance": 140})

        assert exc_info.value.__cause__ is not None

    def test_writer_failure_fails(self, audits, questions, photo_server, monkeypatch):
        def boom(self, payload):
            raise OSError("no space left on device")

        monkeypatch.setattr(WorkbookRenderer, "_render", boom)
        with pytest.raises(SerializationError) as exc_info:
            generate_xlsx_report(audits, questions)

        assert isinstance(exc_info.value.__cause__, OSError)

    def test_unknown_format(self, audits, questions):
        with pytest.raises(ValueError):
            generate_report("odt", audits, questions)


class TestWorkflowStates:
    """Tests for the state machine."""

    def test_graph_reaches_delivered(self, audits, questions, photo_server):
        app = create_report_workflow().compile()
        final_state = app.invoke({
            "report_format": FixedPageRenderer.report_format,
            "kind": ReportKind.AUDIT_5S,
            "audits": audits,
            "questions": questions,
            "summary": None,
            "charts": ChartSet(),
            "on_date": ON_DATE,
            "renderer": FixedPageRenderer(),
            "request_id": "test0001",
            "status": ReportStatus.IDLE,
            "error": None,
        })

        assert final_state["status"] == ReportStatus.DELIVERED
        assert final_state["output"].content.startswith(b"%PDF")

    def test_graph_stops_in_failed(self, questions):
        app = create_report_workflow().compile()
        final_state = app.invoke({
            "report_format": FixedPageRenderer.report_format,
            "kind": ReportKind.AUDIT_5S,
            "audits": ["garbage"],
            "questions": questions,
            "renderer": FixedPageRenderer(),
            "request_id": "test0002",
            "status": ReportStatus.IDLE,
            "error": None,
        })

        assert final_state["status"] == ReportStatus.FAILED
        assert isinstance(final_state["error"], AggregationError)
        assert final_state.get("output") is None

    def test_deliver_node_builds_output(self):
        state = deliver_node({
            "report_format": FixedPageRenderer.report_format,
            "kind": ReportKind.AUDIT_5S,
            "on_date": ON_DATE,
            "content": b"%PDF-1.4",
            "omitted_photos": 2,
            "start_time": 0.0,
        })

        assert state["status"] == ReportStatus.DELIVERED
        assert state["output"].omitted_photos == 2
        assert state["output"].filename == "5S_Audit_Report_2024-03-05.pdf"

    def test_resolution_crash_reaches_failed(self, audits, questions, monkeypatch):
        def crash(references):
            raise RuntimeError("thread pool shut down")

        monkeypatch.setattr(nodes, "resolve_images", crash)
        app = create_report_workflow().compile()
        final_state = app.invoke({
            "report_format": FixedPageRenderer.report_format,
            "kind": ReportKind.AUDIT_5S,
            "audits": audits,
            "questions": questions,
            "summary": None,
            "charts": ChartSet(),
            "on_date": ON_DATE,
            "renderer": FixedPageRenderer(),
            "request_id": "test0003",
            "status": ReportStatus.IDLE,
            "error": None,
        })

        assert final_state["status"] == ReportStatus.FAILED
        assert isinstance(final_state["error"], RuntimeError)
        assert final_state.get("content") is None

    def test_resolution_crash_raised_to_caller(self, audits, questions, monkeypatch):
        def crash(references):
            raise RuntimeError("thread pool shut down")

        monkeypatch.setattr(nodes, "resolve_images", crash)
        with pytest.raises(RuntimeError, match="thread pool"):
            generate_report("pdf", audits, questions, on_date=ON_DATE)

    def test_deliver_failure_recorded(self):
        state = deliver_node({
            "report_format": FixedPageRenderer.report_format,
            "kind": ReportKind.AUDIT_5S,
            "on_date": None,
            "content": b"%PDF-1.4",
            "start_time": 0.0,
            "status": ReportStatus.SERIALIZED,
        })

        assert isinstance(state["error"], AttributeError)
        assert state["status"] == ReportStatus.SERIALIZED
        assert state.get("output") is None
