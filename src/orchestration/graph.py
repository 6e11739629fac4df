"""
LangGraph workflow construction and execution.
"""

import uuid
from datetime import date
from typing import Any, Literal, Mapping, Optional, Sequence, Union

from langgraph.graph import StateGraph, END

from src.orchestration.state import ReportOutput, ReportState, ReportStatus
from src.orchestration.nodes import (
    aggregate_node,
    resolve_images_node,
    render_node,
    deliver_node,
    fail_node,
)
from src.reporting.base import ChartImage, ChartSet, get_renderer
from src.reporting.extinguishers import (
    EXTINGUISHER_QUESTIONS,
    ExtinguisherRoster,
    extinguisher_audits,
    extinguisher_roster,
)
from src.reporting.kinds import ReportFormat, ReportKind
from src.schemas.models import (
    AuditRecord,
    Extinguisher,
    ExtinguisherArea,
    ExtinguisherInspection,
    ReportSummary,
)
from utils.logger import get_logger, clear_request_id

logger = get_logger(__name__, component="GRAPH")

ChartInput = Union[ChartSet, Mapping[str, Union[ChartImage, bytes, str]], None]


def route_after_aggregate(state: ReportState) -> Literal["resolve_images", "fail"]:
    """Stop before any network work when the input is unusable."""
    return "fail" if state.get("error") else "resolve_images"


def route_after_resolve(state: ReportState) -> Literal["render", "fail"]:
    """Photo failures are per image; anything else stops the run."""
    return "fail" if state.get("error") else "render"


def route_after_render(state: ReportState) -> Literal["deliver", "fail"]:
    """Only a fully serialized document is delivered."""
    return "fail" if state.get("error") else "deliver"


def route_after_deliver(state: ReportState) -> Literal["end", "fail"]:
    return "fail" if state.get("error") else "end"


def create_report_workflow() -> StateGraph:
    """
    Create the report workflow graph.

    Returns:
        Configured StateGraph
    """
    workflow = StateGraph(ReportState)

    # Add nodes
    workflow.add_node("aggregate", aggregate_node)
    workflow.add_node("resolve_images", resolve_images_node)
    workflow.add_node("render", render_node)
    workflow.add_node("deliver", deliver_node)
    workflow.add_node("fail", fail_node)

    workflow.set_entry_point("aggregate")

    workflow.add_conditional_edges(
        "aggregate",
        route_after_aggregate,
        {"resolve_images": "resolve_images", "fail": "fail"}
    )
    workflow.add_conditional_edges(
        "resolve_images",
        route_after_resolve,
        {"render": "render", "fail": "fail"}
    )
    workflow.add_conditional_edges(
        "render",
        route_after_render,
        {"deliver": "deliver", "fail": "fail"}
    )
    workflow.add_conditional_edges(
        "deliver",
        route_after_deliver,
        {"end": END, "fail": "fail"}
    )
    workflow.add_edge("fail", END)

    return workflow


def _coerce_charts(charts: ChartInput) -> ChartSet:
    if charts is None:
        return ChartSet()
    if isinstance(charts, ChartSet):
        return charts
    return ChartSet.from_named({
        name: chart if isinstance(chart, ChartImage) else ChartImage.from_bytes(name, chart)
        for name, chart in charts.items()
    })


def generate_report(
    report_format: Union[ReportFormat, str],
    audits: Sequence[Union[AuditRecord, Mapping[str, Any]]],
    questions: Sequence[str],
    summary: Optional[Union[ReportSummary, Mapping[str, Any]]] = None,
    charts: ChartInput = None,
    kind: Union[ReportKind, str] = ReportKind.AUDIT_5S,
    on_date: Optional[date] = None,
    roster: Optional[ExtinguisherRoster] = None,
) -> ReportOutput:
    """
    Generate one report document.

    Args:
        report_format: ``pdf``, ``xlsx`` or ``docx``
        audits: Completed audits (AuditRecord or plain dicts)
        questions: Declared question texts, index-aligned with answer keys
        summary: Headline statistics; computed from the audits when omitted
        charts: ChartSet, or a mapping of chart name to image
        kind: Report kind, drives title and filename
        on_date: Generation date used in the document and filename (default today)
        roster: Installed extinguishers, required for extinguisher reports

    Returns:
        ReportOutput with the complete serialized document

    Raises:
        ValueError: If the format or kind is unknown, a chart cannot be decoded,
            or an extinguisher report has no roster
        AggregationError: If the audits are malformed
        SerializationError: If the writer fails
    """
    report_format = ReportFormat(report_format)
    kind = ReportKind(kind)
    if kind == ReportKind.EXTINGUISHER and roster is None:
        raise ValueError("Extinguisher reports need the extinguisher roster")
    renderer = get_renderer(report_format)

    app = create_report_workflow().compile()

    initial_state: ReportState = {
        "report_format": report_format,
        "kind": kind,
        "audits": audits,
        "questions": list(questions),
        "summary": summary,
        "charts": _coerce_charts(charts),
        "on_date": on_date or date.today(),
        "renderer": renderer,
        "roster": roster,
        "request_id": str(uuid.uuid4())[:8],
        "data": None,
        "omitted_photos": 0,
        "content": None,
        "output": None,
        "status": ReportStatus.IDLE,
        "error": None,
    }

    try:
        final_state = app.invoke(initial_state)
    finally:
        clear_request_id()

    if final_state["status"] == ReportStatus.FAILED:
        raise final_state["error"]

    return final_state["output"]


def generate_pdf_report(audits, questions, summary=None, charts=None, **kwargs) -> ReportOutput:
    """Fixed-page PDF report."""
    return generate_report(ReportFormat.PDF, audits, questions, summary, charts, **kwargs)


def generate_xlsx_report(audits, questions, summary=None, charts=None, **kwargs) -> ReportOutput:
    """Spreadsheet workbook report."""
    return generate_report(ReportFormat.XLSX, audits, questions, summary, charts, **kwargs)


def generate_docx_report(audits, questions, summary=None, charts=None, **kwargs) -> ReportOutput:
    """Flowing word-processing document report."""
    return generate_report(ReportFormat.DOCX, audits, questions, summary, charts, **kwargs)


def generate_extinguisher_report(
    report_format: Union[ReportFormat, str],
    areas: Sequence[Union[ExtinguisherArea, Mapping[str, Any]]],
    extinguishers: Sequence[Union[Extinguisher, Mapping[str, Any]]],
    inspections: Sequence[Union[ExtinguisherInspection, Mapping[str, Any]]],
    on_date: Optional[date] = None,
) -> ReportOutput:
    """
    Fire extinguisher inspection report over the whole inventory.

    Every extinguisher is listed, inspected or not, and each inspection shows
    the full fixed checklist.

    Raises:
        pydantic.ValidationError: If an area, extinguisher or inspection is malformed
    """
    areas = [ExtinguisherArea.model_validate(a) for a in areas]
    extinguishers = [Extinguisher.model_validate(e) for e in extinguishers]
    inspections = [ExtinguisherInspection.model_validate(i) for i in inspections]

    return generate_report(
        report_format,
        extinguisher_audits(areas, extinguishers, inspections),
        EXTINGUISHER_QUESTIONS,
        kind=ReportKind.EXTINGUISHER,
        on_date=on_date,
        roster=extinguisher_roster(areas, extinguishers, inspections),
    )
