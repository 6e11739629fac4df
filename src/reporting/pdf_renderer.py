"""
Fixed-page PDF rendering on a reportlab canvas.

Content is placed at absolute positions. A single layout cursor decides every
page break; tables are split across pages and the cursor follows them.
"""

import io
from dataclasses import dataclass
from typing import List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import A4, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, Table, TableStyle

from src.reporting.aggregator import QuestionStat, ReportRow
from src.reporting.base import ChartImage, RenderPayload, ReportRenderer, register_renderer
from src.reporting.extinguishers import NOT_INSPECTED, ExtinguisherEntry
from src.reporting.kinds import ReportFormat, ReportKind
from src.reporting.layout import LayoutCursor, needs_break, scale
from src.schemas.models import Answer, TALLY_KEYS
from utils.config import config
from utils.logger import get_logger

logger = get_logger(__name__, component="PDF")


# ============================================================================
# COLORS
# ============================================================================

BRAND_PRIMARY = HexColor("#1e40af")   # Deep blue
BRAND_GRAY = HexColor("#6b7280")      # Gray
BRAND_SLATE = HexColor("#475569")     # Table headers
BRAND_LIGHT = HexColor("#f3f4f6")     # Light gray
BRAND_DARK = HexColor("#1f2937")      # Dark
BRAND_RED = HexColor("#dc2626")       # Extinguisher tables

# Answer cell colors, as Paragraph font markup
ANSWER_COLORS = {
    Answer.YES: "#059669",      # Green
    Answer.NO: "#dc2626",       # Red
    Answer.NOT_APPLICABLE: "#6b7280",
}

PAGE_SIZES = {"A4": A4, "letter": letter}

# Vertical rhythm
TOP_MARGIN = 20 * mm
BOTTOM_MARGIN = 20 * mm
SECTION_GAP = 8 * mm
BLOCK_GAP = 4 * mm
# Space a heading needs below it so it is never stranded at a page bottom
HEADING_KEEP = 25 * mm

# Share of the usable width taken by each area-table column
AREA_COLUMN_SHARES = (0.50, 0.14, 0.36)
STATS_COLUMN_SHARES = (0.40, 0.20, 0.20, 0.20)
EXTINGUISHER_COLUMN_SHARES = (0.06, 0.44, 0.14, 0.36)


# ============================================================================
# CANVAS WITH FOOTER
# ============================================================================

class ReportCanvas(canvas.Canvas):
    """Canvas that stamps a footer with 'Page X of Y' on every page."""

    def __init__(self, *args, report_title: str = "", generated_label: str = "", **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []
        self.report_title = report_title
        self.generated_label = generated_label

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        num_pages = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(num_pages)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def _draw_footer(self, page_count: int):
        """Draw footer line, report title and page numbers."""
        self.saveState()

        page_width = self._pagesize[0]
        footer_y = 10 * mm

        self.setStrokeColor(BRAND_GRAY)
        self.line(15 * mm, footer_y + 4 * mm, page_width - 15 * mm, footer_y + 4 * mm)

        self.setFont("Helvetica", 8)
        self.setFillColor(BRAND_GRAY)
        self.drawString(15 * mm, footer_y, f"{self.report_title} - {self.generated_label}")
        self.drawRightString(
            page_width - 15 * mm,
            footer_y,
            f"Page {self._pageNumber} of {page_count}"
        )

        self.restoreState()


@dataclass
class _PageContext:
    """Canvas plus layout cursor for one render pass."""
    canvas: ReportCanvas
    layout: LayoutCursor
    page_width: float
    page_height: float
    margin: float

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    def baseline(self, top: float) -> float:
        """Convert a top-down position into reportlab's bottom-up y."""
        return self.page_height - top


# ============================================================================
# RENDERER
# ============================================================================

@register_renderer(ReportFormat.PDF)
class FixedPageRenderer(ReportRenderer):
    """Paginated PDF report: title, summary, charts, areas, question analysis."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup table cell paragraph styles."""

        def safe_add(style):
            """Safely add style if it doesn't exist."""
            if style.name not in self.styles:
                self.styles.add(style)

        safe_add(ParagraphStyle(
            name="CellText",
            parent=self.styles["Normal"],
            fontSize=8,
            leading=10,
            textColor=BRAND_DARK,
        ))
        safe_add(ParagraphStyle(
            name="CellHeader",
            parent=self.styles["Normal"],
            fontSize=8,
            leading=10,
            textColor=white,
            fontName="Helvetica-Bold",
        ))

    def wants_photo(self, row: ReportRow, kind: ReportKind) -> bool:
        # 5S reports show evidence of non-conformities only
        return kind == ReportKind.EXTINGUISHER or row.answer == Answer.NO

    def _render(self, payload: RenderPayload) -> bytes:
        logger.info(f"Rendering PDF: {payload.title}")

        buffer = io.BytesIO()
        page_width, page_height = PAGE_SIZES[config.pdf_page_size]
        pdf = ReportCanvas(
            buffer,
            pagesize=(page_width, page_height),
            report_title=payload.title,
            generated_label=f"Generated {payload.generated_on.isoformat()}",
        )
        pdf.setTitle(payload.title)
        pdf.setAuthor(config.app_title)

        ctx = _PageContext(
            canvas=pdf,
            layout=LayoutCursor(TOP_MARGIN, page_height - BOTTOM_MARGIN, on_new_page=pdf.showPage),
            page_width=page_width,
            page_height=page_height,
            margin=config.pdf_margin_mm * mm,
        )

        self._draw_title(ctx, payload)
        if payload.kind == ReportKind.EXTINGUISHER:
            self._draw_inventory(ctx, payload)
        else:
            self._draw_audit(ctx, payload)

        pdf.showPage()
        pdf.save()

        logger.info(f"PDF rendered: {ctx.layout.page_count} page(s)")
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _draw_text(
        self,
        ctx: _PageContext,
        text: str,
        font: str = "Helvetica",
        size: float = 10,
        color=BRAND_DARK,
        centered: bool = False,
        keep_with_next: float = 0,
        gap_after: float = 2 * mm,
        indent: float = 0,
    ) -> None:
        """Draw wrapped text as one block."""
        width = ctx.content_width - indent
        lines = simpleSplit(text, font, size, width) or [""]
        leading = size * 1.25
        height = leading * len(lines)

        ctx.layout.ensure(height + keep_with_next)
        top = ctx.layout.reserve(height)

        pdf = ctx.canvas
        pdf.setFont(font, size)
        pdf.setFillColor(color)
        for i, line in enumerate(lines):
            y = ctx.baseline(top + size + i * leading)
            if centered:
                pdf.drawCentredString(ctx.page_width / 2, y, line)
            else:
                pdf.drawString(ctx.margin + indent, y, line)

        ctx.layout.advance(gap_after)

    def _draw_image(
        self,
        ctx: _PageContext,
        data: bytes,
        native_width: int,
        native_height: int,
        target_width: float,
        indent: float = 0,
    ) -> None:
        """Draw an image scaled to ``target_width`` at the cursor."""
        size = scale(native_width, native_height, target_width)
        top = ctx.layout.reserve(size.height)
        ctx.canvas.drawImage(
            ImageReader(io.BytesIO(data)),
            ctx.margin + indent,
            ctx.baseline(top + size.height),
            width=size.width,
            height=size.height,
            mask="auto",
        )

    def _draw_table(self, ctx: _PageContext, table: Table) -> None:
        """
        Draw a table, splitting it across pages when it runs past the limit.

        The header row repeats on every fragment. The cursor ends where the last
        fragment ends.
        """
        layout = ctx.layout
        width = ctx.content_width
        remaining = table

        while True:
            available = layout.remaining
            _, height = remaining.wrapOn(ctx.canvas, width, available)

            if not needs_break(layout.cursor, height, layout.limit):
                top = layout.reserve(height)
                remaining.drawOn(ctx.canvas, ctx.margin, ctx.baseline(top + height))
                return

            parts = remaining.split(width, available) if available > 0 else []
            if len(parts) < 2:
                if layout.at_page_top:
                    # A single row taller than a page is placed alone as-is
                    logger.warning("Table row taller than a page, drawing without split")
                    top = layout.reserve(height)
                    remaining.drawOn(ctx.canvas, ctx.margin, ctx.baseline(top + height))
                    return
                layout.new_page()
                continue

            head, remaining = parts[0], parts[1]
            _, head_height = head.wrapOn(ctx.canvas, width, available)
            top = layout.reserve(head_height)
            head.drawOn(ctx.canvas, ctx.margin, ctx.baseline(top + head_height))
            layout.new_page()

    def _cell(self, text: str, style: str = "CellText", color: Optional[str] = None) -> Paragraph:
        markup = escape(text)
        if color:
            markup = f'<font color="{color}">{markup}</font>'
        return Paragraph(markup, self.styles[style])

    def _table_style(self, header_color) -> List[tuple]:
        return [
            ("BACKGROUND", (0, 0), (-1, 0), header_color),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [white, BRAND_LIGHT]),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ("LEFTPADDING", (0, 0), (-1, -1), 4),
            ("RIGHTPADDING", (0, 0), (-1, -1), 4),
        ]

    def _column_widths(self, ctx: _PageContext, shares: Sequence[float]) -> List[float]:
        return [ctx.content_width * share for share in shares]

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _draw_title(self, ctx: _PageContext, payload: RenderPayload) -> None:
        """Build title section."""
        self._draw_text(ctx, payload.title, "Helvetica-Bold", 22, BRAND_PRIMARY, centered=True, gap_after=3 * mm)
        self._draw_text(
            ctx,
            f"{config.app_title} - {payload.generated_on.isoformat()}",
            "Helvetica", 11, BRAND_GRAY, centered=True, gap_after=SECTION_GAP,
        )

    def _draw_audit(self, ctx: _PageContext, payload: RenderPayload) -> None:
        """Summary and charts, then area sections and the question analysis on new pages."""
        self._draw_summary(ctx, payload)
        self._draw_chart(ctx, "Compliance by Area", payload.charts.area_compliance)
        self._draw_chart(ctx, "Compliance History", payload.charts.compliance_history)

        data = payload.data
        if data.area_groups:
            ctx.layout.new_page()
            for area in data.sorted_areas():
                self._draw_area_section(ctx, area, data.area_groups[area])

        if data.question_stats:
            ctx.layout.new_page()
            self._draw_question_analysis(ctx, payload)

    def _draw_summary(self, ctx: _PageContext, payload: RenderPayload) -> None:
        """Headline statistics."""
        summary = payload.summary
        data = payload.data
        self._draw_text(ctx, "Cycle Summary", "Helvetica-Bold", 16, BRAND_PRIMARY, keep_with_next=HEADING_KEEP)
        self._draw_text(ctx, f"Average compliance: {summary.average_compliance_label}", size=12)
        self._draw_text(ctx, f"Lowest compliance area: {summary.lowest_compliance_area}", size=12)
        self._draw_text(
            ctx,
            f"Areas audited: {len(data.area_groups)}   Answers recorded: {len(data.rows)}",
            size=10, color=BRAND_GRAY, gap_after=SECTION_GAP,
        )

    def _draw_chart(self, ctx: _PageContext, title: str, chart: Optional[ChartImage]) -> None:
        """Chart title with the chart scaled to the content width."""
        if chart is None:
            self._draw_text(ctx, title, "Helvetica-Bold", 12, centered=True, keep_with_next=HEADING_KEEP)
            self._draw_text(ctx, "Chart not available.", "Helvetica-Oblique", 9, BRAND_GRAY,
                            centered=True, gap_after=SECTION_GAP)
            return

        chart_height = scale(chart.width, chart.height, ctx.content_width).height
        self._draw_text(ctx, title, "Helvetica-Bold", 12, centered=True, keep_with_next=chart_height)
        self._draw_image(ctx, chart.data, chart.width, chart.height, ctx.content_width)
        ctx.layout.advance(BLOCK_GAP)

    def _draw_area_section(self, ctx: _PageContext, area: str, rows: Sequence[ReportRow]) -> None:
        """Area heading, answer table and photo evidence for non-conformities."""
        self._draw_text(ctx, f"Area details: {area}", "Helvetica-Bold", 14, BRAND_PRIMARY,
                        keep_with_next=HEADING_KEEP)

        body = [[
            self._cell("Question", "CellHeader"),
            self._cell("Answer", "CellHeader"),
            self._cell("Observation", "CellHeader"),
        ]]
        for row in rows:
            body.append([
                self._cell(row.question_label),
                self._cell(row.answer_label, color=ANSWER_COLORS.get(row.answer)),
                self._cell(row.observation),
            ])

        table = Table(body, colWidths=self._column_widths(ctx, AREA_COLUMN_SHARES), repeatRows=1)
        table.setStyle(TableStyle(self._table_style(BRAND_SLATE)))
        self._draw_table(ctx, table)
        ctx.layout.advance(BLOCK_GAP)

        evidence = [row for row in rows if row.answer == Answer.NO and row.photo is not None]
        if evidence:
            self._draw_evidence(ctx, f"Photo evidence for {area}", evidence)

        ctx.layout.advance(SECTION_GAP)

    def _draw_evidence(self, ctx: _PageContext, title: str, rows: Sequence[ReportRow]) -> None:
        """Captioned photos, each kept on the same page as its caption."""
        photo_width = config.pdf_photo_width_mm * mm
        first = scale(rows[0].photo.width, rows[0].photo.height, photo_width).height
        self._draw_text(ctx, title, "Helvetica-Bold", 11,
                        keep_with_next=first + 10 * mm)

        for row in rows:
            photo = row.photo
            photo_height = scale(photo.width, photo.height, photo_width).height
            self._draw_text(
                ctx, f"Question {row.question_label}", "Helvetica", 9, BRAND_GRAY,
                keep_with_next=photo_height, gap_after=1.5 * mm, indent=5 * mm,
            )
            self._draw_image(ctx, photo.data, photo.width, photo.height, photo_width, indent=5 * mm)
            ctx.layout.advance(BLOCK_GAP)

    def _draw_question_analysis(self, ctx: _PageContext, payload: RenderPayload) -> None:
        """Per-question tallies by area, each followed by its chart."""
        self._draw_text(ctx, "Question Analysis", "Helvetica-Bold", 16, BRAND_PRIMARY,
                        keep_with_next=HEADING_KEEP, gap_after=5 * mm)

        for stat in payload.data.question_stats:
            self._draw_text(ctx, stat.question, "Helvetica-Bold", 10, keep_with_next=15 * mm)

            if stat.has_data:
                self._draw_table(ctx, self._stats_table(ctx, stat))
                ctx.layout.advance(BLOCK_GAP)
            else:
                self._draw_text(ctx, "No data recorded for this question.", "Helvetica-Oblique", 9,
                                BRAND_GRAY)

            chart = payload.charts.question_chart(stat.index)
            if chart is not None:
                self._draw_image(ctx, chart.data, chart.width, chart.height, ctx.content_width)
                ctx.layout.advance(BLOCK_GAP)

            ctx.layout.advance(BLOCK_GAP)

    def _stats_table(self, ctx: _PageContext, stat: QuestionStat) -> Table:
        body = [[self._cell(label, "CellHeader") for label in ("Area",) + TALLY_KEYS]]
        for tally in stat.stats:
            body.append([self._cell(tally.area)] + [
                self._cell(str(tally.counts[key])) for key in TALLY_KEYS
            ])
        table = Table(body, colWidths=self._column_widths(ctx, STATS_COLUMN_SHARES), repeatRows=1)
        table.setStyle(TableStyle(self._table_style(BRAND_GRAY)))
        return table

    # ------------------------------------------------------------------
    # Extinguisher inventory
    # ------------------------------------------------------------------

    def _draw_inventory(self, ctx: _PageContext, payload: RenderPayload) -> None:
        """Inventory counts, then every extinguisher of each area."""
        roster = payload.roster
        self._draw_text(ctx, "Inspection Summary", "Helvetica-Bold", 16, BRAND_PRIMARY, keep_with_next=HEADING_KEEP)
        self._draw_text(ctx, f"Total areas: {roster.total_areas}", size=12)
        self._draw_text(ctx, f"Total extinguishers: {roster.total_extinguishers}", size=12)
        self._draw_text(ctx, f"Extinguishers inspected: {roster.inspected_count}", size=12, gap_after=SECTION_GAP)

        rows_by_id = payload.data.rows_by_audit()
        for area, entries in roster.by_area().items():
            self._draw_text(ctx, f"Area: {area}", "Helvetica-Bold", 14, BRAND_PRIMARY, keep_with_next=HEADING_KEEP)
            for entry in entries:
                self._draw_extinguisher(ctx, entry, rows_by_id.get(entry.id, []))
            ctx.layout.advance(SECTION_GAP)

    def _draw_extinguisher(self, ctx: _PageContext, entry: ExtinguisherEntry, rows: Sequence[ReportRow]) -> None:
        self._draw_text(ctx, f"Extinguisher at: {entry.label}", "Helvetica-Bold", 11, BRAND_GRAY,
                        keep_with_next=HEADING_KEEP)

        if not entry.inspected:
            self._draw_text(ctx, NOT_INSPECTED, "Helvetica-Oblique", 9, BRAND_GRAY,
                            indent=5 * mm, gap_after=BLOCK_GAP)
            return

        details = [f"Inspected: {entry.inspected_at or 'N/A'}"]
        if entry.type:
            details.append(f"Type: {entry.type}")
        if entry.capacity:
            details.append(f"Capacity: {entry.capacity}")
        self._draw_text(ctx, "   ".join(details), size=9, color=BRAND_GRAY)

        body = [[self._cell(label, "CellHeader") for label in ("#", "Question", "Answer", "Observation")]]
        for row in rows:
            body.append([
                self._cell(str(row.question_number)),
                self._cell(row.question_text),
                self._cell(row.answer_label, color=ANSWER_COLORS.get(row.answer)),
                self._cell(row.observation),
            ])
        table = Table(body, colWidths=self._column_widths(ctx, EXTINGUISHER_COLUMN_SHARES), repeatRows=1)
        table.setStyle(TableStyle(self._table_style(BRAND_RED)))
        self._draw_table(ctx, table)
        ctx.layout.advance(BLOCK_GAP)

        evidence = [row for row in rows if row.photo is not None]
        if evidence:
            self._draw_evidence(ctx, f"Evidence for extinguisher at {entry.location}", evidence)
