"""
Shared renderer interface and chart inputs.

Every output format implements ``ReportRenderer.render(payload) -> bytes``.
Renderers are registered per ``ReportFormat`` and instantiated fresh for each
report, so no layout state survives between calls.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Mapping, Optional, Type, Union

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from src.reporting.aggregator import ReportData, ReportRow
from src.reporting.errors import SerializationError
from src.reporting.extinguishers import ExtinguisherRoster
from src.reporting.kinds import ReportFormat, ReportKind
from src.schemas.models import ReportSummary
from utils.image_utils import decode_data_uri, get_image_dimensions, is_data_uri

QUESTION_CHART_PATTERN = re.compile(r"^question_(\d+)$")


def clean_text(value):
    """
    Strip control characters the OOXML writers reject.

    Observations pasted from other documents often carry vertical tabs or
    other C0 controls. Non-string values pass through.
    """
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


@dataclass(frozen=True)
class ChartImage:
    """Pre-rendered chart raster supplied by the charting component."""
    name: str
    data: bytes
    width: int
    height: int

    @classmethod
    def from_bytes(cls, name: str, payload: Union[bytes, str]) -> "ChartImage":
        """
        Build a chart from PNG bytes or a ``data:image/png;base64,`` URI.

        Raises:
            ValueError: If the payload is not a decodable image
        """
        if isinstance(payload, str):
            if not is_data_uri(payload):
                raise ValueError(f"Chart {name!r} must be bytes or a data URI")
            payload = decode_data_uri(payload)
        width, height = get_image_dimensions(payload)
        return cls(name=name, data=payload, width=width, height=height)


@dataclass(frozen=True)
class ChartSet:
    """The chart rasters a report embeds."""
    area_compliance: Optional[ChartImage] = None
    compliance_history: Optional[ChartImage] = None
    questions: List[Optional[ChartImage]] = field(default_factory=list)

    def question_chart(self, index: int) -> Optional[ChartImage]:
        if 0 <= index < len(self.questions):
            return self.questions[index]
        return None

    @classmethod
    def from_named(cls, charts: Mapping[str, ChartImage]) -> "ChartSet":
        """
        Build a ChartSet from logical names.

        Recognized names: ``area_compliance``, ``compliance_history`` and
        ``question_<n>`` (zero-based question index). Others are ignored.
        """
        question_charts: Dict[int, ChartImage] = {}
        for name, chart in charts.items():
            match = QUESTION_CHART_PATTERN.match(name)
            if match:
                question_charts[int(match.group(1))] = chart

        size = max(question_charts) + 1 if question_charts else 0
        return cls(
            area_compliance=charts.get("area_compliance"),
            compliance_history=charts.get("compliance_history"),
            questions=[question_charts.get(i) for i in range(size)],
        )


@dataclass(frozen=True)
class RenderPayload:
    """Inputs of one render pass."""
    kind: ReportKind
    summary: ReportSummary
    data: ReportData
    charts: ChartSet
    generated_on: date
    roster: Optional[ExtinguisherRoster] = None

    def __post_init__(self):
        if self.kind == ReportKind.EXTINGUISHER and self.roster is None:
            raise ValueError("Extinguisher reports need the extinguisher roster")

    @property
    def title(self) -> str:
        return self.kind.report_title


class ReportRenderer(ABC):
    """Base class for format renderers."""

    report_format: ReportFormat

    def wants_photo(self, row: ReportRow, kind: ReportKind) -> bool:
        """Whether this format embeds the photo of ``row`` in a ``kind`` report."""
        return True

    def render(self, payload: RenderPayload) -> bytes:
        """
        Render the whole document to bytes.

        Raises:
            SerializationError: On any writer failure, with the cause chained
        """
        try:
            return self._render(payload)
        except SerializationError:
            raise
        except Exception as e:
            raise SerializationError(self.report_format.value, str(e)) from e

    @abstractmethod
    def _render(self, payload: RenderPayload) -> bytes:
        """Format-specific emission."""


_RENDERERS: Dict[ReportFormat, Type[ReportRenderer]] = {}


def register_renderer(report_format: ReportFormat) -> Callable[[Type[ReportRenderer]], Type[ReportRenderer]]:
    """Class decorator registering a renderer for a format."""
    def decorator(renderer_cls: Type[ReportRenderer]) -> Type[ReportRenderer]:
        renderer_cls.report_format = report_format
        _RENDERERS[report_format] = renderer_cls
        return renderer_cls
    return decorator


def get_renderer(report_format: Union[ReportFormat, str]) -> ReportRenderer:
    """
    Fresh renderer instance for a format.

    Raises:
        ValueError: If the format is unknown
    """
    report_format = ReportFormat(report_format)
    if report_format not in _RENDERERS:
        raise ValueError(f"No renderer registered for {report_format.value}")
    return _RENDERERS[report_format]()
