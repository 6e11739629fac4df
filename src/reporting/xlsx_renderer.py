"""
Spreadsheet workbook rendering with openpyxl.

Images float over the grid: the rows an image covers are sized explicitly so
the next block of content starts below it instead of underneath it.
"""

import io
import math
from typing import Any, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.cell.cell import Cell
from openpyxl.drawing.image import Image as XLImage
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from src.reporting.aggregator import ReportRow
from src.reporting.base import ChartImage, RenderPayload, ReportRenderer, clean_text, register_renderer
from src.reporting.image_resolver import ResolvedImage
from src.reporting.kinds import ReportFormat, ReportKind
from src.reporting.layout import rows_spanned, scale
from src.schemas.models import Answer, TALLY_KEYS
from utils.config import config
from utils.image_utils import is_data_uri
from utils.logger import get_logger

logger = get_logger(__name__, component="XLSX")

HEADER_COLOR = "475569"
TITLE_COLOR = "1E40AF"
ANSWER_FONT_COLORS = {
    Answer.YES: "059669",
    Answer.NO: "DC2626",
    Answer.NOT_APPLICABLE: "6B7280",
}

DETAIL_HEADERS = ["Area", "Date", "Auditor", "Question No.", "Question", "Answer", "Observation", "Photo"]
DETAIL_WIDTHS = [30, 15, 30, 15, 80, 15, 50, 50]
PHOTO_COLUMN = 8

EVIDENCE_HEADERS = ["Area", "Date", "Auditor", "Question", "Answer", "Observation", "Reference", "Photo"]
EVIDENCE_WIDTHS = [25, 15, 25, 60, 12, 40, 40]

INSPECTION_HEADERS = [
    "Area", "Extinguisher Location", "Series", "Type", "Capacity", "Inspection Date",
    "Question No.", "Question", "Answer", "Observation", "Photo",
]
INSPECTION_WIDTHS = [30, 40, 20, 15, 15, 25, 15, 60, 15, 50, 50]
INSPECTION_ANSWER_COLUMN = 9

EXTINGUISHER_EVIDENCE_HEADERS = [
    "Area", "Extinguisher Location", "Series", "Question", "Answer", "Observation", "Reference", "Photo",
]
EXTINGUISHER_EVIDENCE_WIDTHS = [25, 35, 15, 60, 12, 40, 40]

# Excel's hard limit for a single row height
MAX_ROW_HEIGHT_PT = 409

EvidenceItem = Tuple[List[Any], Optional[ResolvedImage]]


def _write(ws: Worksheet, row: int, column: int, value: Any) -> Cell:
    return ws.cell(row=row, column=column, value=clean_text(value))


def _header_row(ws: Worksheet, row: int, headers) -> None:
    for col, header in enumerate(headers, start=1):
        cell = _write(ws, row, col, header)
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _set_widths(ws: Worksheet, widths: Sequence[float]) -> None:
    for col, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(col)].width = width


def _write_values(ws: Worksheet, row: int, values: Sequence[Any]) -> None:
    for col, value in enumerate(values, start=1):
        _write(ws, row, col, value).alignment = Alignment(vertical="top", wrap_text=True)


def _photo_label(reference) -> str:
    """What the Photo column shows for a reference."""
    if reference is None:
        return "No"
    if isinstance(reference, bytes) or is_data_uri(reference):
        return "Embedded"
    return reference


@register_renderer(ReportFormat.XLSX)
class WorkbookRenderer(ReportRenderer):
    """
    Workbook with Summary, Audit Detail, Photo Evidence and Question Analysis
    sheets. Extinguisher reports have Summary, Inspection Detail and Photo
    Evidence sheets instead.
    """

    def _render(self, payload: RenderPayload) -> bytes:
        logger.info(f"Rendering workbook: {payload.title}")

        wb = Workbook()
        summary_ws = wb.active
        summary_ws.title = "Summary"

        if payload.kind == ReportKind.EXTINGUISHER:
            self._build_inventory_summary(summary_ws, payload)
            self._build_inspection_detail(wb.create_sheet("Inspection Detail"), payload)
            self._build_evidence(
                wb.create_sheet("Photo Evidence"),
                EXTINGUISHER_EVIDENCE_HEADERS,
                EXTINGUISHER_EVIDENCE_WIDTHS,
                self._extinguisher_evidence(payload),
            )
        else:
            self._build_summary(summary_ws, payload)
            self._build_detail(wb.create_sheet("Audit Detail"), payload)
            self._build_evidence(
                wb.create_sheet("Photo Evidence"),
                EVIDENCE_HEADERS,
                EVIDENCE_WIDTHS,
                self._audit_evidence(payload),
            )
            self._build_question_analysis(wb.create_sheet("Question Analysis"), payload)

        buffer = io.BytesIO()
        wb.save(buffer)
        logger.info(f"Workbook rendered: {len(wb.sheetnames)} sheet(s)")
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Image placement
    # ------------------------------------------------------------------

    def _place_image(
        self,
        ws: Worksheet,
        data: bytes,
        native_width: int,
        native_height: int,
        row: int,
        column: int,
        width_px: float,
        row_height_px: Optional[float] = None,
    ) -> int:
        """
        Anchor an image at (row, column) and size the rows it covers.

        Returns:
            First row free below the image
        """
        size = scale(native_width, native_height, width_px)
        unit = row_height_px or config.workbook_row_height_px
        span = rows_spanned(size.height, unit)

        for offset in range(span):
            ws.row_dimensions[row + offset].height = unit * config.workbook_points_per_pixel

        image = XLImage(io.BytesIO(data))
        image.width = round(size.width)
        image.height = round(size.height)
        image.anchor = f"{get_column_letter(column)}{row}"
        ws.add_image(image)
        return row + span

    def _place_chart(self, ws: Worksheet, chart: Optional[ChartImage], row: int, column: int = 1) -> int:
        if chart is None:
            cell = _write(ws, row, column, "Chart not available.")
            cell.font = Font(italic=True, color="999999")
            return row + 1
        return self._place_image(
            ws, chart.data, chart.width, chart.height, row, column, config.workbook_chart_width_px
        )

    def _place_evidence(self, ws: Worksheet, photo: Optional[ResolvedImage], row: int, photo_px: float) -> int:
        if photo is None:
            cell = _write(ws, row, PHOTO_COLUMN, "Photo unavailable")
            cell.font = Font(italic=True, color="999999")
            return row + 1
        height_px = math.ceil(scale(photo.width, photo.height, photo_px).height)
        # One row sized to the photo, unless that exceeds what Excel allows for a row
        row_height_px = None
        if height_px * config.workbook_points_per_pixel <= MAX_ROW_HEIGHT_PT:
            row_height_px = height_px
        return self._place_image(
            ws, photo.data, photo.width, photo.height, row, PHOTO_COLUMN, photo_px,
            row_height_px=row_height_px,
        )

    # ------------------------------------------------------------------
    # Sheets
    # ------------------------------------------------------------------

    def _title(self, ws: Worksheet, title: str) -> None:
        ws["A1"] = clean_text(title)
        ws["A1"].font = Font(bold=True, size=14, color="FFFFFF")
        ws["A1"].fill = PatternFill(start_color=TITLE_COLOR, end_color=TITLE_COLOR, fill_type="solid")
        ws.merge_cells("A1:D1")
        ws.row_dimensions[1].height = 25

    def _stats(self, ws: Worksheet, stats: Sequence[Tuple[str, Any]], row: int = 3) -> int:
        for label, value in stats:
            _write(ws, row, 1, label).font = Font(bold=True, size=11)
            _write(ws, row, 2, value).font = Font(size=11)
            row += 1

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 25
        return row

    def _build_summary(self, ws: Worksheet, payload: RenderPayload) -> None:
        """Title, headline statistics and the two overview charts."""
        self._title(ws, payload.title)
        row = self._stats(ws, [
            ("Generated", payload.generated_on.isoformat()),
            ("Average compliance", payload.summary.average_compliance_label),
            ("Lowest compliance area", payload.summary.lowest_compliance_area),
            ("Areas audited", len(payload.data.area_groups)),
            ("Answers recorded", len(payload.data.rows)),
        ])

        row += 1
        for title, chart in (
            ("Compliance by Area", payload.charts.area_compliance),
            ("Compliance History", payload.charts.compliance_history),
        ):
            _write(ws, row, 1, title).font = Font(bold=True, size=12)
            row = self._place_chart(ws, chart, row + 1) + 1

    def _build_detail(self, ws: Worksheet, payload: RenderPayload) -> None:
        """One row per answer, areas in alphabetical order."""
        _header_row(ws, 1, DETAIL_HEADERS)
        _set_widths(ws, DETAIL_WIDTHS)
        ws.freeze_panes = "A2"

        row = 2
        data = payload.data
        for area in data.sorted_areas():
            for item in data.area_groups[area]:
                _write_values(ws, row, [
                    item.area, item.date, item.auditor, item.question_number,
                    item.question_text, item.answer_label, item.observation,
                    _photo_label(item.photo_ref),
                ])
                if item.answer in ANSWER_FONT_COLORS:
                    ws.cell(row=row, column=6).font = Font(bold=True, color=ANSWER_FONT_COLORS[item.answer])
                row += 1

    def _audit_evidence(self, payload: RenderPayload) -> List[EvidenceItem]:
        data = payload.data
        return [
            ([
                item.area, item.date, item.auditor, item.question_label,
                item.answer_label, item.observation, _photo_label(item.photo_ref),
            ], item.photo)
            for area in data.sorted_areas()
            for item in data.area_groups[area]
            if item.has_photo_ref
        ]

    def _build_evidence(
        self,
        ws: Worksheet,
        headers: Sequence[str],
        widths: Sequence[float],
        items: Sequence[EvidenceItem],
    ) -> None:
        """Each row with a photo reference, the image in its own row."""
        _header_row(ws, 1, headers)
        _set_widths(ws, widths)
        photo_px = config.workbook_photo_width_px
        ws.column_dimensions[get_column_letter(PHOTO_COLUMN)].width = (
            photo_px / config.workbook_pixels_per_width_unit + 2
        )
        ws.freeze_panes = "A2"

        row = 2
        for values, photo in items:
            _write_values(ws, row, values)
            row = self._place_evidence(ws, photo, row, photo_px)

        if row == 2:
            _write(ws, 2, 1, "No photo evidence recorded.").font = Font(italic=True)

    def _build_question_analysis(self, ws: Worksheet, payload: RenderPayload) -> None:
        """Per question: tallies by area, then the question's chart."""
        ws.column_dimensions["A"].width = 30
        for col in range(2, 5):
            ws.column_dimensions[get_column_letter(col)].width = 12

        row = 1
        for stat in payload.data.question_stats:
            _write(ws, row, 1, stat.question).font = Font(bold=True, size=12)
            ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=4)
            row += 1

            if stat.has_data:
                _header_row(ws, row, ("Area",) + TALLY_KEYS)
                row += 1
                for tally in stat.stats:
                    _write(ws, row, 1, tally.area)
                    for col, key in enumerate(TALLY_KEYS, start=2):
                        ws.cell(row=row, column=col, value=tally.counts[key])
                    row += 1
            else:
                _write(ws, row, 1, "No data recorded for this question.").font = Font(italic=True)
                row += 1

            chart = payload.charts.question_chart(stat.index)
            if chart is not None:
                row = self._place_chart(ws, chart, row + 1)
            row += 2

    # ------------------------------------------------------------------
    # Extinguisher sheets
    # ------------------------------------------------------------------

    def _build_inventory_summary(self, ws: Worksheet, payload: RenderPayload) -> None:
        roster = payload.roster
        self._title(ws, payload.title)
        self._stats(ws, [
            ("Generated", payload.generated_on.isoformat()),
            ("Total areas", roster.total_areas),
            ("Total extinguishers", roster.total_extinguishers),
            ("Extinguishers inspected", roster.inspected_count),
        ])

    def _build_inspection_detail(self, ws: Worksheet, payload: RenderPayload) -> None:
        """
        Every checklist question of every inspected extinguisher.

        Extinguishers never inspected get a single row marked "Not inspected".
        """
        _header_row(ws, 1, INSPECTION_HEADERS)
        _set_widths(ws, INSPECTION_WIDTHS)
        ws.freeze_panes = "A2"

        rows_by_id = payload.data.rows_by_audit()
        row = 2
        for entries in payload.roster.by_area().values():
            for entry in entries:
                inventory = [entry.area, entry.location, entry.series, entry.type, entry.capacity]
                if not entry.inspected:
                    _write_values(ws, row, inventory)
                    _write(ws, row, 6, "Not inspected").font = Font(italic=True, color="999999")
                    row += 1
                    continue

                for item in rows_by_id.get(entry.id, []):
                    _write_values(ws, row, inventory + [
                        entry.inspected_at or "N/A", item.question_number, item.question_text,
                        item.answer_label, item.observation, _photo_label(item.photo_ref),
                    ])
                    if item.answer in ANSWER_FONT_COLORS:
                        ws.cell(row=row, column=INSPECTION_ANSWER_COLUMN).font = Font(
                            bold=True, color=ANSWER_FONT_COLORS[item.answer]
                        )
                    row += 1

    def _extinguisher_evidence(self, payload: RenderPayload) -> List[EvidenceItem]:
        rows_by_id = payload.data.rows_by_audit()
        items: List[EvidenceItem] = []
        for entries in payload.roster.by_area().values():
            for entry in entries:
                photo_rows: List[ReportRow] = [
                    item for item in rows_by_id.get(entry.id, []) if item.has_photo_ref
                ]
                for item in photo_rows:
                    items.append(([
                        entry.area, entry.location, entry.series, item.question_label,
                        item.answer_label, item.observation, _photo_label(item.photo_ref),
                    ], item.photo))
        return items
