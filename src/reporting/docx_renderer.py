"""
Flowing word-processing document rendering with python-docx.

Pagination is left to the document viewer. Sections that must start on a new
page say so through their heading paragraph format.
"""

import io
from typing import Optional, Sequence

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Inches, Pt, RGBColor

from src.reporting.aggregator import QuestionStat, ReportRow
from src.reporting.base import ChartImage, RenderPayload, ReportRenderer, clean_text, register_renderer
from src.reporting.extinguishers import NOT_INSPECTED, ExtinguisherEntry
from src.reporting.kinds import ReportFormat, ReportKind
from src.reporting.layout import scale
from src.schemas.models import TALLY_KEYS
from utils.config import config
from utils.logger import get_logger

logger = get_logger(__name__, component="DOCX")

AREA_HEADERS = ("Question", "Answer", "Observation", "Auditor", "Date")
INSPECTION_HEADERS = ("#", "Question", "Answer", "Observation")
MUTED = RGBColor(0x6B, 0x72, 0x80)


@register_renderer(ReportFormat.DOCX)
class FlowingDocumentRenderer(ReportRenderer):
    """Summary, charts, one section per area and the question analysis."""

    def _render(self, payload: RenderPayload) -> bytes:
        logger.info(f"Rendering document: {payload.title}")

        doc = Document()
        doc.core_properties.title = payload.title
        doc.core_properties.author = config.app_title

        doc.add_heading(payload.title, 0)
        generated = doc.add_paragraph(f"Generated {payload.generated_on.isoformat()}")
        generated.alignment = WD_ALIGN_PARAGRAPH.CENTER

        if payload.kind == ReportKind.EXTINGUISHER:
            self._add_inventory(doc, payload)
        else:
            self._add_audit(doc, payload)

        buffer = io.BytesIO()
        doc.save(buffer)
        logger.info(f"Document rendered: {len(doc.tables)} table(s), {len(doc.inline_shapes)} image(s)")
        return buffer.getvalue()

    def _add_audit(self, doc, payload: RenderPayload) -> None:
        self._add_summary(doc, payload)
        self._add_chart(doc, "Compliance by Area", payload.charts.area_compliance)
        self._add_chart(doc, "Compliance History", payload.charts.compliance_history)

        data = payload.data
        for area in data.sorted_areas():
            self._add_area_section(doc, area, data.area_groups[area])

        if data.question_stats:
            heading = doc.add_heading("Question Analysis", 1)
            heading.paragraph_format.page_break_before = True
            for stat in data.question_stats:
                self._add_question(doc, stat, payload.charts.question_chart(stat.index))

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _labelled(self, doc, label: str, value: str) -> None:
        para = doc.add_paragraph()
        para.add_run(f"{label}: ").bold = True
        para.add_run(clean_text(value))

    def _muted(self, doc, text: str) -> None:
        run = doc.add_paragraph().add_run(clean_text(text))
        run.italic = True
        run.font.color.rgb = MUTED

    def _add_picture(self, run, data: bytes, native_width: int, native_height: int, width_in: float) -> None:
        size = scale(native_width, native_height, width_in)
        run.add_picture(io.BytesIO(data), width=Inches(size.width), height=Inches(size.height))

    def _add_table(self, doc, headers: Sequence[str]):
        table = doc.add_table(rows=1, cols=len(headers))
        table.style = "Table Grid"
        for cell, header in zip(table.rows[0].cells, headers):
            cell.text = ""
            cell.paragraphs[0].add_run(header).bold = True
        return table

    def _add_row(self, table, values: Sequence[str]) -> None:
        for cell, value in zip(table.add_row().cells, values):
            cell.text = clean_text(value)

    def _add_photo_row(self, table, row: ReportRow) -> None:
        """Merged row across the table holding the photo of ``row``."""
        photo_cells = table.add_row().cells
        merged = photo_cells[0].merge(photo_cells[-1])
        para = merged.paragraphs[0]
        para.alignment = WD_ALIGN_PARAGRAPH.CENTER
        self._add_picture(
            para.add_run(), row.photo.data, row.photo.width, row.photo.height,
            config.docx_photo_width_in,
        )

    # ------------------------------------------------------------------
    # Audit sections
    # ------------------------------------------------------------------

    def _add_summary(self, doc, payload: RenderPayload) -> None:
        doc.add_heading("Cycle Summary", 1)
        self._labelled(doc, "Average compliance", payload.summary.average_compliance_label)
        self._labelled(doc, "Lowest compliance area", payload.summary.lowest_compliance_area)
        self._labelled(doc, "Areas audited", str(len(payload.data.area_groups)))
        self._labelled(doc, "Answers recorded", str(len(payload.data.rows)))

    def _add_chart(self, doc, title: str, chart: Optional[ChartImage]) -> None:
        caption = doc.add_paragraph()
        caption.add_run(title).bold = True
        caption.alignment = WD_ALIGN_PARAGRAPH.CENTER
        if chart is None:
            self._muted(doc, "Chart not available.")
            return
        para = doc.add_paragraph()
        para.alignment = WD_ALIGN_PARAGRAPH.CENTER
        self._add_picture(para.add_run(), chart.data, chart.width, chart.height, config.docx_chart_width_in)

    def _add_area_section(self, doc, area: str, rows: Sequence[ReportRow]) -> None:
        """
        Area heading on a new page and a table of its answers.

        A row with a resolved photo is followed by a merged row holding the image.
        """
        heading = doc.add_heading(clean_text(f"Area details: {area}"), 1)
        heading.paragraph_format.page_break_before = True

        table = self._add_table(doc, AREA_HEADERS)
        for row in rows:
            self._add_row(table, (row.question_label, row.answer_label, row.observation, row.auditor, row.date))
            if row.photo is not None:
                self._add_photo_row(table, row)

    def _add_question(self, doc, stat: QuestionStat, chart: Optional[ChartImage]) -> None:
        doc.add_heading(clean_text(stat.question), 2)

        if stat.has_data:
            table = self._add_table(doc, ("Area",) + TALLY_KEYS)
            for tally in stat.stats:
                self._add_row(table, [tally.area] + [str(tally.counts[key]) for key in TALLY_KEYS])
        else:
            self._muted(doc, "No data recorded for this question.")

        if chart is not None:
            para = doc.add_paragraph()
            para.alignment = WD_ALIGN_PARAGRAPH.CENTER
            para.paragraph_format.space_before = Pt(6)
            self._add_picture(para.add_run(), chart.data, chart.width, chart.height, config.docx_chart_width_in)

    # ------------------------------------------------------------------
    # Extinguisher sections
    # ------------------------------------------------------------------

    def _add_inventory(self, doc, payload: RenderPayload) -> None:
        """Inventory counts, then one section per area listing every extinguisher."""
        roster = payload.roster
        doc.add_heading("Inspection Summary", 1)
        self._labelled(doc, "Total areas", str(roster.total_areas))
        self._labelled(doc, "Total extinguishers", str(roster.total_extinguishers))
        self._labelled(doc, "Extinguishers inspected", str(roster.inspected_count))

        rows_by_id = payload.data.rows_by_audit()
        for area, entries in roster.by_area().items():
            heading = doc.add_heading(clean_text(f"Area: {area}"), 1)
            heading.paragraph_format.page_break_before = True
            for entry in entries:
                self._add_extinguisher(doc, entry, rows_by_id.get(entry.id, []))

    def _add_extinguisher(self, doc, entry: ExtinguisherEntry, rows: Sequence[ReportRow]) -> None:
        doc.add_heading(clean_text(f"Extinguisher at: {entry.label}"), 2)

        if not entry.inspected:
            self._muted(doc, NOT_INSPECTED)
            return

        self._labelled(doc, "Inspected", entry.inspected_at or "N/A")
        if entry.type:
            self._labelled(doc, "Type", entry.type)
        if entry.capacity:
            self._labelled(doc, "Capacity", entry.capacity)

        table = self._add_table(doc, INSPECTION_HEADERS)
        for row in rows:
            self._add_row(table, (str(row.question_number), row.question_text, row.answer_label, row.observation))
            if row.photo is not None:
                self._add_photo_row(table, row)
